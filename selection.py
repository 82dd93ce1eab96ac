"""Region selection state machine driven by pointer events."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional, Tuple, Union

from constants import MIN_REGION_SIZE
from models import BoundingBox, CoordinateSpace
from region_geometry import clip_to_surface

logger = logging.getLogger(__name__)


class SelectionMode(Enum):
    """Interaction mode of the surface."""

    NAVIGATE = "navigate"
    SELECT_REGION = "select_region"


class GestureState(Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


class Effect(Enum):
    """Observable consequences of a transition."""

    REDRAW = "redraw"
    COMMITTED = "committed"
    DISCARDED = "discarded"
    CLEARED = "cleared"


# --- Events (pointer positions are surface-local) ---

@dataclass(frozen=True)
class PointerDown:
    x: float
    y: float


@dataclass(frozen=True)
class PointerMove:
    x: float
    y: float


@dataclass(frozen=True)
class PointerUp:
    pass


@dataclass(frozen=True)
class PointerLeave:
    pass


@dataclass(frozen=True)
class UndoLast:
    pass


@dataclass(frozen=True)
class ClearAll:
    pass


@dataclass(frozen=True)
class SetMode:
    mode: SelectionMode


@dataclass(frozen=True)
class SurfaceChanged:
    """A new page or file was rendered; space is None when nothing is shown."""
    space: Optional[CoordinateSpace]


Event = Union[
    PointerDown, PointerMove, PointerUp, PointerLeave,
    UndoLast, ClearAll, SetMode, SurfaceChanged,
]


@dataclass(frozen=True)
class SelectionState:
    """Immutable snapshot of the selection for the current surface."""
    mode: SelectionMode = SelectionMode.NAVIGATE
    gesture: GestureState = GestureState.IDLE
    space: Optional[CoordinateSpace] = None
    anchor: Optional[Tuple[float, float]] = None
    transient: Optional[BoundingBox] = None
    committed: Tuple[BoundingBox, ...] = ()
    # Bumped on every change to the committed sequence or surface
    revision: int = 0

    @property
    def labels(self) -> List[Tuple[int, BoundingBox]]:
        """1-based ordinals in insertion order."""
        return list(enumerate(self.committed, start=1))


def _reset(state: SelectionState, **changes) -> SelectionState:
    return replace(
        state,
        gesture=GestureState.IDLE,
        anchor=None,
        transient=None,
        committed=(),
        revision=state.revision + 1,
        **changes
    )


def _finish_gesture(state: SelectionState) -> Tuple[SelectionState, Tuple[Effect, ...]]:
    idle = replace(state, gesture=GestureState.IDLE, anchor=None, transient=None)
    candidate = state.transient
    space = state.space

    if candidate is not None and space is not None:
        candidate = clip_to_surface(candidate, space.width, space.height)

    if (
        candidate is None
        or candidate.width < MIN_REGION_SIZE
        or candidate.height < MIN_REGION_SIZE
    ):
        logger.debug(f"Gesture discarded as click: {state.transient}")
        return idle, (Effect.DISCARDED, Effect.REDRAW)

    committed = replace(
        idle,
        committed=state.committed + (candidate,),
        revision=state.revision + 1
    )
    logger.debug(f"Region {len(committed.committed)} committed: {candidate.bounds}")
    return committed, (Effect.COMMITTED, Effect.REDRAW)


def transition(state: SelectionState, event: Event) -> Tuple[SelectionState, Tuple[Effect, ...]]:
    """
    Apply one event to the selection state.

    Pure function: the input state is never modified.

    Args:
        state: Current state
        event: Pointer or command event

    Returns:
        Tuple of (new state, effects)
    """
    if isinstance(event, SurfaceChanged):
        return _reset(state, space=event.space), (Effect.CLEARED, Effect.REDRAW)

    if isinstance(event, SetMode):
        if event.mode == state.mode:
            return state, ()
        return _reset(state, mode=event.mode), (Effect.CLEARED, Effect.REDRAW)

    if isinstance(event, UndoLast):
        if not state.committed:
            return state, ()
        undone = replace(
            state,
            committed=state.committed[:-1],
            revision=state.revision + 1
        )
        return undone, (Effect.REDRAW,)

    if isinstance(event, ClearAll):
        if not state.committed:
            return state, ()
        cleared = replace(state, committed=(), revision=state.revision + 1)
        return cleared, (Effect.CLEARED, Effect.REDRAW)

    # Pointer handling is inert outside region-select mode or without a surface
    if state.mode is not SelectionMode.SELECT_REGION or state.space is None:
        return state, ()

    if isinstance(event, PointerDown):
        if state.gesture is not GestureState.IDLE:
            return state, ()
        anchor = (event.x, event.y)
        dragging = replace(
            state,
            gesture=GestureState.DRAGGING,
            anchor=anchor,
            transient=BoundingBox(x=event.x, y=event.y, width=0, height=0, space=state.space)
        )
        return dragging, (Effect.REDRAW,)

    if isinstance(event, PointerMove):
        if state.gesture is not GestureState.DRAGGING:
            return state, ()
        transient = BoundingBox.from_corners(state.anchor, (event.x, event.y), space=state.space)
        return replace(state, transient=transient), (Effect.REDRAW,)

    if isinstance(event, (PointerUp, PointerLeave)):
        if state.gesture is not GestureState.DRAGGING:
            return state, ()
        return _finish_gesture(state)

    raise TypeError(f"Unknown selection event: {event!r}")


class SelectionController:
    """Hold the selection state for one surface and redraw it on change."""

    def __init__(self, surface=None, mode: SelectionMode = SelectionMode.NAVIGATE):
        """
        Initialize SelectionController.

        Args:
            surface: DisplaySurface to draw on, or None before a page is shown
            mode: Initial interaction mode
        """
        self.surface = None
        self.state = SelectionState(mode=mode)
        self.attach_surface(surface)

    @property
    def committed(self) -> Tuple[BoundingBox, ...]:
        return self.state.committed

    @property
    def transient(self) -> Optional[BoundingBox]:
        return self.state.transient

    @property
    def mode(self) -> SelectionMode:
        return self.state.mode

    @property
    def is_dragging(self) -> bool:
        return self.state.gesture is GestureState.DRAGGING

    def dispatch(self, event: Event) -> Tuple[Effect, ...]:
        self.state, effects = transition(self.state, event)
        if Effect.REDRAW in effects and self.surface is not None:
            self.surface.draw(self.state.committed, self.state.transient)
        return effects

    def attach_surface(self, surface) -> Tuple[Effect, ...]:
        """Switch to a new surface, dropping every region of the previous one."""
        self.surface = surface
        space = surface.space if surface is not None else None
        return self.dispatch(SurfaceChanged(space))

    def pointer_down(self, screen_x: float, screen_y: float) -> Tuple[Effect, ...]:
        return self.dispatch(PointerDown(*self._to_surface(screen_x, screen_y)))

    def pointer_move(self, screen_x: float, screen_y: float) -> Tuple[Effect, ...]:
        return self.dispatch(PointerMove(*self._to_surface(screen_x, screen_y)))

    def pointer_up(self) -> Tuple[Effect, ...]:
        return self.dispatch(PointerUp())

    def pointer_leave(self) -> Tuple[Effect, ...]:
        return self.dispatch(PointerLeave())

    def undo_last(self) -> Tuple[Effect, ...]:
        return self.dispatch(UndoLast())

    def clear_all(self) -> Tuple[Effect, ...]:
        return self.dispatch(ClearAll())

    def set_mode(self, mode: SelectionMode) -> Tuple[Effect, ...]:
        return self.dispatch(SetMode(mode))

    def drag(
        self,
        start: Tuple[float, float],
        end: Tuple[float, float]
    ) -> Tuple[Effect, ...]:
        """Replay a complete drag gesture in screen coordinates."""
        self.pointer_down(*start)
        self.pointer_move(*end)
        return self.pointer_up()

    def _to_surface(self, screen_x: float, screen_y: float) -> Tuple[float, float]:
        if self.surface is None:
            return screen_x, screen_y
        return self.surface.to_surface_point(screen_x, screen_y)
