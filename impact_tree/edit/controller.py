"""
Interaction Controller - Single source of truth for editing state.

This controller owns the interaction state and coordinates between:
- Pointer/keyboard events from the UI (screen coordinates)
- GraphStore mutations (nodes, relationships)
- Relationship inference for new edges
- The auto-pan task that runs while a node is dragged

Modes are tagged variants: SelectMode (optionally carrying a drag
session), AddNodeMode(category) and ConnectMode (optionally carrying a
pending source and an in-progress drag-to-connect gesture). Every
transition replaces the InteractionState value and notifies the
on_change listener, so the UI never reads half-updated state.
"""

import logging
from dataclasses import dataclass, replace
from typing import Callable, Optional, Tuple, Union

from impact_tree.config import EditorSettings
from impact_tree.edit.autopan import AutoPanController, FrameScheduler
from impact_tree.edit.duplicate_guard import DuplicateGuard, monotonic_ms
from impact_tree.errors import NodeNotFoundError
from impact_tree.graph_store import GraphState, GraphStore
from impact_tree.hit_test import node_at, relationship_at
from impact_tree.inference import infer_relationship
from impact_tree.models import Node, Relationship
from impact_tree.node_types import (
    CONNECT_SHORTCUT,
    SELECT_SHORTCUT,
    NodeTypeCatalog,
)
from impact_tree.viewport import ViewportModel

logger = logging.getLogger(__name__)

DELETE_KEYS = frozenset(['Delete', 'Backspace'])


@dataclass(frozen=True)
class Selection:
    kind: str  # 'node' or 'relationship'
    id: str


@dataclass(frozen=True)
class DragSession:
    node_id: str
    last_pointer: Tuple[float, float]  # screen coordinates
    moved: bool = False


@dataclass(frozen=True)
class ConnectGesture:
    """Pointer pressed on a node while in connect mode, not yet released."""
    source_id: str


@dataclass(frozen=True)
class SelectMode:
    drag: Optional[DragSession] = None


@dataclass(frozen=True)
class AddNodeMode:
    category: str


@dataclass(frozen=True)
class ConnectMode:
    source_id: Optional[str] = None
    gesture: Optional[ConnectGesture] = None


Mode = Union[SelectMode, AddNodeMode, ConnectMode]


@dataclass(frozen=True)
class InteractionState:
    """Immutable snapshot of current interaction state."""
    mode: Mode = SelectMode()
    selection: Optional[Selection] = None
    suppress_click_until: Optional[float] = None

    @property
    def mode_name(self) -> str:
        if isinstance(self.mode, AddNodeMode):
            return 'add-node'
        if isinstance(self.mode, ConnectMode):
            return 'connect'
        return 'select'

    @property
    def drag(self) -> Optional[DragSession]:
        return self.mode.drag if isinstance(self.mode, SelectMode) else None

    @property
    def connect_source(self) -> Optional[str]:
        return self.mode.source_id if isinstance(self.mode, ConnectMode) else None

    @property
    def pending_category(self) -> Optional[str]:
        return self.mode.category if isinstance(self.mode, AddNodeMode) else None

    @property
    def selected_node_id(self) -> Optional[str]:
        if self.selection and self.selection.kind == 'node':
            return self.selection.id
        return None

    @property
    def selected_relationship_id(self) -> Optional[str]:
        if self.selection and self.selection.kind == 'relationship':
            return self.selection.id
        return None


class InteractionController:
    """Consumes input events and turns them into graph and viewport changes."""

    def __init__(self, store: Optional[GraphStore] = None,
                 viewport: Optional[ViewportModel] = None,
                 catalog: Optional[NodeTypeCatalog] = None,
                 settings: Optional[EditorSettings] = None,
                 scheduler: Optional[FrameScheduler] = None,
                 clock: Callable[[], float] = monotonic_ms):
        self._settings = settings or EditorSettings()
        self._store = store or GraphStore(catalog=catalog)
        self._catalog = catalog or self._store.catalog
        self._viewport = viewport or ViewportModel(
            min_scale=self._settings.min_zoom, max_scale=self._settings.max_zoom,
        )
        self._clock = clock
        self._guard = DuplicateGuard(
            window_ms=self._settings.duplicate_window_ms,
            distance=self._settings.duplicate_distance,
            clock=clock,
        )
        self._pointer: Optional[Tuple[float, float]] = None
        self._autopan = AutoPanController(
            self._viewport,
            pointer_getter=lambda: self._pointer,
            scheduler=scheduler,
            threshold=self._settings.auto_pan_edge_threshold,
            max_speed=self._settings.auto_pan_max_speed,
            interval=self._settings.auto_pan_frame_interval,
        )
        self._state = InteractionState()
        self._on_change: Optional[Callable[[InteractionState], None]] = None

    @property
    def state(self) -> InteractionState:
        return self._state

    @property
    def store(self) -> GraphStore:
        return self._store

    @property
    def graph(self) -> GraphState:
        return self._store.state

    @property
    def viewport(self) -> ViewportModel:
        return self._viewport

    @property
    def autopan(self) -> AutoPanController:
        return self._autopan

    @property
    def guard(self) -> DuplicateGuard:
        return self._guard

    def set_on_change(self, callback: Optional[Callable[[InteractionState], None]]):
        self._on_change = callback

    def _set_state(self, state: InteractionState) -> InteractionState:
        if state != self._state:
            self._state = state
            if self._on_change:
                self._on_change(state)
        return self._state

    def _set_mode(self, mode: Mode) -> InteractionState:
        return self._set_state(replace(self._state, mode=mode))

    # --- Mode changes ---

    def choose_node_type(self, category: str) -> InteractionState:
        self._end_drag()
        return self._set_mode(AddNodeMode(category))

    def enter_connect_mode(self) -> InteractionState:
        self._end_drag()
        if isinstance(self._state.mode, ConnectMode):
            return self._state
        return self._set_mode(ConnectMode())

    def enter_select_mode(self) -> InteractionState:
        self._end_drag()
        return self._set_mode(SelectMode())

    def cancel(self) -> InteractionState:
        """Escape: end a drag if one is active, otherwise leave the transient mode."""
        if self._state.drag is not None:
            self._end_drag()
            return self._state
        if not isinstance(self._state.mode, SelectMode):
            return self._set_mode(SelectMode())
        return self._state

    def handle_key(self, key: str, in_text_input: bool = False) -> bool:
        """Dispatch a key press. Returns True if the key was consumed."""
        if in_text_input:
            return False
        if key == 'Escape':
            self.cancel()
            return True
        if key in DELETE_KEYS:
            return self.delete_selection()

        key = key.lower()
        if len(key) != 1:
            return False
        if key == CONNECT_SHORTCUT:
            self.enter_connect_mode()
            return True
        if key == SELECT_SHORTCUT:
            self.enter_select_mode()
            return True
        category = self._catalog.category_for_shortcut(key)
        if category:
            self.choose_node_type(category)
            return True
        return False

    # --- Clicks ---

    def _click_suppressed(self) -> bool:
        until = self._state.suppress_click_until
        if until is None:
            return False
        self._set_state(replace(self._state, suppress_click_until=None))
        return self._clock() < until

    def click(self, screen_x: float, screen_y: float) -> None:
        """
        Handle a click in screen coordinates.

        Nodes take priority over relationships; anything else is the canvas.
        Clicks arriving right after a drag released are dropped.
        """
        if self._click_suppressed():
            logger.debug("Ignoring click right after drag")
            return
        x, y = self._viewport.screen_to_canvas(screen_x, screen_y)
        graph = self._store.state

        node_id = node_at(graph, x, y)
        if node_id:
            self.click_node(node_id)
            return
        rel_id = relationship_at(graph, x, y)
        if rel_id:
            self.click_relationship(rel_id)
            return
        self.click_canvas(x, y)

    def click_node(self, node_id: str) -> Optional[Relationship]:
        mode = self._state.mode
        if isinstance(mode, ConnectMode):
            if mode.source_id is None:
                self._set_mode(ConnectMode(source_id=node_id))
            elif mode.source_id == node_id:
                self._set_mode(ConnectMode())
            else:
                return self._connect(mode.source_id, node_id)
        elif isinstance(mode, SelectMode):
            self._set_state(replace(self._state, selection=Selection('node', node_id)))
        return None

    def click_relationship(self, relationship_id: str) -> None:
        if isinstance(self._state.mode, SelectMode):
            self._set_state(replace(
                self._state, selection=Selection('relationship', relationship_id),
            ))

    def click_canvas(self, x: float, y: float) -> Optional[Node]:
        """Click on empty canvas at canvas coordinates (x, y)."""
        mode = self._state.mode
        if isinstance(mode, AddNodeMode):
            return self.request_node(mode.category, x, y)
        if isinstance(mode, SelectMode):
            self._set_state(replace(self._state, selection=None))
        return None

    def request_node(self, category: str, x: float, y: float) -> Optional[Node]:
        """
        Create a node of category at canvas (x, y) unless it repeats the previous request.

        On success the new node is selected and the mode returns to select.
        """
        if not self._guard.accept(x, y, category):
            logger.info(f"Dropped duplicate {category} request at ({x:.0f}, {y:.0f})")
            return None
        self._end_drag()
        node = self._store.create_node(category, x, y)
        self._set_state(replace(
            self._state, mode=SelectMode(), selection=Selection('node', node.id),
        ))
        return node

    def _connect(self, source_id: str, target_id: str) -> Optional[Relationship]:
        """
        Add an inferred relationship source -> target and return to select mode.

        Raises RelationshipValidationError with the state left in
        Connect(source) when the store rejects the pair.
        """
        source = self._store.state.nodes.get(source_id)
        if source is None:
            # Source deleted while pending
            logger.debug(f"Pending connect source {source_id} no longer exists")
            self._set_mode(ConnectMode())
            return None
        rel_type, color = infer_relationship(source)
        relationship = self._store.add_relationship(source_id, target_id, rel_type, color)
        self._set_mode(SelectMode())
        return relationship

    # --- Pointer (drag) ---

    def pointer_down(self, screen_x: float, screen_y: float) -> None:
        self._pointer = (screen_x, screen_y)
        state = replace(self._state, suppress_click_until=None)
        x, y = self._viewport.screen_to_canvas(screen_x, screen_y)
        node_id = node_at(self._store.state, x, y)

        mode = state.mode
        if node_id and isinstance(mode, SelectMode) and mode.drag is None:
            self._set_state(replace(state, mode=SelectMode(DragSession(node_id, (screen_x, screen_y)))))
            self._autopan.start()
            return
        if node_id and isinstance(mode, ConnectMode):
            self._set_state(replace(state, mode=replace(mode, gesture=ConnectGesture(node_id))))
            return
        self._set_state(state)

    def pointer_move(self, screen_x: float, screen_y: float) -> None:
        self._pointer = (screen_x, screen_y)
        drag = self._state.drag
        if drag is None:
            return

        dx, dy = self._viewport.screen_delta_to_canvas(
            screen_x - drag.last_pointer[0], screen_y - drag.last_pointer[1],
        )
        if dx == 0 and dy == 0:
            return
        node = self._store.state.nodes.get(drag.node_id)
        if node is None:
            self._end_drag()
            return
        self._store.move_node(drag.node_id, node.position_x + dx, node.position_y + dy)
        self._set_mode(SelectMode(DragSession(drag.node_id, (screen_x, screen_y), moved=True)))

    def pointer_up(self, screen_x: float, screen_y: float) -> Optional[Relationship]:
        """
        End a drag or a drag-to-connect gesture.

        Releasing a gesture over a different node commits the connection
        exactly as two clicks would.
        """
        self._pointer = (screen_x, screen_y)
        drag = self._state.drag
        if drag is not None:
            self._end_drag()
            if drag.moved:
                self._arm_click_suppression()
            return None

        mode = self._state.mode
        if isinstance(mode, ConnectMode) and mode.gesture is not None:
            source_id = mode.gesture.source_id
            x, y = self._viewport.screen_to_canvas(screen_x, screen_y)
            target_id = node_at(self._store.state, x, y, exclude=source_id)
            if target_id is None:
                self._set_mode(replace(mode, gesture=None))
                return None
            self._set_mode(ConnectMode(source_id=source_id))
            self._arm_click_suppression()
            return self._connect(source_id, target_id)
        return None

    def pointer_leave(self) -> None:
        """Pointer left the canvas: end any drag, drop a connect gesture without committing."""
        self._pointer = None
        drag = self._state.drag
        if drag is not None:
            self._end_drag()
            if drag.moved:
                self._arm_click_suppression()
            return
        mode = self._state.mode
        if isinstance(mode, ConnectMode) and mode.gesture is not None:
            self._set_mode(replace(mode, gesture=None))

    def _arm_click_suppression(self):
        until = self._clock() + self._settings.click_after_drag_ignore_ms
        self._set_state(replace(self._state, suppress_click_until=until))

    def _end_drag(self):
        self._autopan.stop()
        if self._state.drag is not None:
            self._set_mode(SelectMode())

    # --- Editing ---

    def edit_node(self, node_id: str, **fields) -> Optional[Node]:
        """Property edit from the UI. Unknown ids are ignored."""
        try:
            return self._store.update_node(node_id, **fields)
        except NodeNotFoundError:
            logger.debug(f"Ignoring edit of missing node {node_id}")
            return None

    def delete_selection(self) -> bool:
        selection = self._state.selection
        if selection is None:
            return False
        if selection.kind == 'node':
            if self._state.drag and self._state.drag.node_id == selection.id:
                self._end_drag()
            self._store.delete_node(selection.id)
        else:
            self._store.delete_relationship(selection.id)
        self._set_state(replace(self._state, selection=None))
        return True

    # --- View ---

    def zoom_in(self, center: Optional[Tuple[float, float]] = None):
        return self._viewport.zoom(self._settings.zoom_in_factor, center)

    def zoom_out(self, center: Optional[Tuple[float, float]] = None):
        return self._viewport.zoom(self._settings.zoom_out_factor, center)

    def reset_view(self):
        return self._viewport.reset()

    def center_view(self):
        bounds = self._store.state.bounds()
        if bounds is None:
            return self._viewport.view_box
        return self._viewport.center_on(bounds)

    # --- Whole-graph operations ---

    def _reset_interaction(self):
        self._end_drag()
        self._guard.reset()
        self._set_state(InteractionState())
        self._viewport.reset()

    def load(self, state: GraphState) -> None:
        """Replace the graph with an imported snapshot and reset interaction."""
        self._store.load(state)
        self._reset_interaction()

    def new_tree(self) -> None:
        self._store.new_tree()
        self._reset_interaction()

    def close(self) -> None:
        """Tear down: cancel auto-pan and drop any transient state."""
        self._autopan.stop()
        self._pointer = None
        self._state = InteractionState()
        self._on_change = None
