"""
Pytest configuration and shared fixtures.
"""
import io

import fitz  # PyMuPDF
import pytest
from PIL import Image, ImageDraw

from models import CoordinateSpace, SurfaceBitmap


def make_pdf_bytes(page_count=3, width=200, height=300, password=None):
    """Build an in-memory PDF whose pages differ visibly."""
    doc = fitz.open()
    for i in range(page_count):
        page = doc.new_page(width=width, height=height)
        page.draw_rect(
            fitz.Rect(20, 20 + i * 10, 120, 60 + i * 10),
            color=(0, 0, 0),
            fill=(0.2 * i, 0.5, 0.8),
        )
        page.insert_text((30, 100), f"Page {i + 1}", fontsize=14)

    if password:
        data = doc.tobytes(
            encryption=fitz.PDF_ENCRYPT_AES_256,
            owner_pw=f"owner-{password}",
            user_pw=password,
        )
    else:
        data = doc.tobytes()
    doc.close()
    return data


def make_png_bytes(width=400, height=300, color=(250, 250, 250)):
    img = Image.new("RGB", (width, height), color)
    draw = ImageDraw.Draw(img)
    draw.rectangle([20, 20, 120, 60], fill=(200, 30, 30))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def make_transparent_png_bytes(width=400, height=300):
    """Fully transparent PNG with an opaque blue square at (20, 20)-(60, 60)."""
    img = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    draw.rectangle([20, 20, 59, 59], fill=(0, 0, 255, 255))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def make_banded_bitmap(width=400, height=600):
    """Surface bitmap with one solid color per 100-pixel band."""
    colors = [
        (255, 0, 0),
        (0, 255, 0),
        (0, 0, 255),
        (255, 255, 0),
        (0, 255, 255),
        (255, 0, 255),
    ]
    img = Image.new("RGB", (width, height), (0, 0, 0))
    draw = ImageDraw.Draw(img)
    for band in range(height // 100):
        draw.rectangle([0, band * 100, width - 1, band * 100 + 99], fill=colors[band % len(colors)])
    return SurfaceBitmap(image=img, space=CoordinateSpace.new(width, height))


@pytest.fixture
def pdf_bytes():
    return make_pdf_bytes()


@pytest.fixture
def png_bytes():
    return make_png_bytes()


@pytest.fixture
def banded_bitmap():
    return make_banded_bitmap()


@pytest.fixture
def pdf_path(tmp_path):
    path = tmp_path / "sample.pdf"
    path.write_bytes(make_pdf_bytes())
    return path


@pytest.fixture
def png_path(tmp_path):
    path = tmp_path / "sample.png"
    path.write_bytes(make_png_bytes())
    return path
