"""
Edit controller for mind maps.

Every user-visible structural operation runs as one transaction:
mutate the tree store, lay out the new snapshot anchored at the root's
pre-mutation position, commit the positions, then ask the viewport to
refocus. Operations run one at a time, to completion.

The viewport and the reference-document viewer are external collaborators,
reached only through the small protocols defined here. Refocus requests are
delivered after a short delay and the latest request wins.
"""

from __future__ import annotations

from contextlib import contextmanager
from enum import IntEnum
from typing import Callable, Iterator, Optional, Protocol, TypedDict, Union
import logging
import threading

from .document import dumps, loads
from .errors import MindMapError
from .geom import Direction
from .layout import LayoutResult, TreeLayout
from .tree import DEFAULT_LABEL, NodeStyle, TreeStore


logger = logging.getLogger(__name__)

# Seconds to wait before refocusing, so a render pass can settle first
REFOCUS_DELAY = 0.05

BACKGROUND_PALETTE = ['#ffeb3b', '#4caf50', '#2196f3', '#f44336', '#9c27b0']
FONT_SIZE_STEP = 2
BASE_FONT_SIZE = 14


class Viewport(Protocol):
    """Viewport that can centre on a node or fit the whole map."""

    def focus_on(self, node_id: str) -> None: ...

    def fit_all(self) -> None: ...


class DocumentViewer(Protocol):
    """Side-by-side viewer for an auxiliary reference document."""

    def show(self, url: str) -> None: ...


Timer = Callable[[float, Callable[[], None]], None]


def _start_timer(delay: float, callback: Callable[[], None]) -> None:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()


class RefocusScheduler:
    """
    Deferred, last-write-wins refocus requests.

    Each request gets a generation number. When a request comes due after a
    newer one was issued, it is dropped.
    """

    def __init__(
        self,
        viewport: Optional[Viewport],
        delay: float = REFOCUS_DELAY,
        timer: Optional[Timer] = None
    ):
        """
        Initialize scheduler.

        Args:
            viewport: Viewport to refocus, or None to drop every request
            delay: Seconds between a request and its delivery
            timer: Function scheduling a callback after a delay
                (default: a daemon threading.Timer)
        """
        self.viewport = viewport
        self.delay = delay
        self._timer = timer if timer is not None else _start_timer
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def request(self, node_id: Optional[str] = None) -> int:
        """
        Ask for a refocus on node_id, or on the whole map when None.

        Returns:
            Generation number of the request
        """
        self._generation += 1
        generation = self._generation
        if self.viewport is not None:
            self._timer(self.delay, lambda: self._deliver(generation, node_id))
        return generation

    def _deliver(self, generation: int, node_id: Optional[str]) -> None:
        if generation != self._generation:
            logger.debug("Refocus request %d superseded by %d", generation, self._generation)
            return
        if node_id is None:
            self.viewport.fit_all()
        else:
            self.viewport.focus_on(node_id)


class EventType(IntEnum):
    """
    The controller fires two events:
    - commit: an operation changed the map
    - reject: an operation failed and the map is unchanged
    """
    commit = 0
    reject = 1


class Event(TypedDict, total=False):
    """Event dictionary passed to event listeners."""
    type: EventType
    operation: str
    node_id: Optional[str]
    error: Optional[MindMapError]


class EditController:
    """
    Runs edit operations against a tree store.

    Attributes:
        store: Current tree store
        engine: Layout used after every structural change
    """

    def __init__(
        self,
        store: Optional[TreeStore] = None,
        viewport: Optional[Viewport] = None,
        viewer: Optional[DocumentViewer] = None,
        direction: Union[Direction, str] = Direction.LR,
        refocus_delay: float = REFOCUS_DELAY,
        timer: Optional[Timer] = None
    ):
        self.store = store if store is not None else TreeStore()
        self.engine = TreeLayout().direction(direction)
        self.viewer = viewer
        self.refocus = RefocusScheduler(viewport, refocus_delay, timer)
        self.last_layout: Optional[LayoutResult] = None
        self.event: Optional[dict] = None

    def on(self, e: Union[EventType, str], listener: Callable[[Event], None]) -> EditController:
        """
        Subscribe a listener to an event.

        Args:
            e: Event type (EventType enum or string name)
            listener: Function to call when event fires

        Returns:
            self for method chaining
        """
        if self.event is None:
            self.event = {}
        if isinstance(e, str):
            e = EventType[e]
        self.event[e] = listener
        return self

    def trigger(self, e: Event) -> None:
        """Call the listener registered for the event's type, if any."""
        if self.event and e['type'] in self.event:
            self.event[e['type']](e)

    @contextmanager
    def _operation(self, name: str, node_id: Optional[str]) -> Iterator[None]:
        try:
            yield
        except MindMapError as exc:
            logger.warning("%s on %r rejected: %s", name, node_id, exc.message)
            self.trigger({
                'type': EventType.reject,
                'operation': name,
                'node_id': node_id,
                'error': exc,
            })
            raise

    def _commit(self, name: str, node_id: Optional[str], anchor) -> LayoutResult:
        result = self.engine.run(self.store.nodes(), self.store.edges(), anchor)
        self.store.set_positions(result.positions, result.source_side, result.target_side)
        self.last_layout = result
        logger.info("%s on %r committed (%d nodes)", name, node_id, len(self.store))
        self.trigger({'type': EventType.commit, 'operation': name, 'node_id': node_id})
        return result

    def relayout(self) -> LayoutResult:
        """Lay out the current tree again without changing it."""
        return self._commit('relayout', None, self.store.root_position)

    def add_child(self, parent_id: str, label: str = DEFAULT_LABEL) -> str:
        """
        Add a child node and focus on it.

        Raises:
            InvalidParent: If the parent is missing or collapsed
        """
        anchor = self.store.root_position
        with self._operation('add_child', parent_id):
            node_id = self.store.add_child(parent_id, label)
        self._commit('add_child', node_id, anchor)
        self.refocus.request(node_id)
        return node_id

    def delete_subtree(self, node_id: str) -> set[str]:
        """
        Delete a node with its descendants and fit the map in view.

        Raises:
            RootDeletionForbidden: For the root
            NodeNotFound: If the node does not exist
        """
        anchor = self.store.root_position
        with self._operation('delete_subtree', node_id):
            removed = self.store.delete_subtree(node_id)
        self._commit('delete_subtree', node_id, anchor)
        self.refocus.request(None)
        return removed

    def toggle_collapse(self, node_id: str) -> bool:
        """
        Collapse or expand a node and focus on it.

        Raises:
            NodeNotFound: If the node does not exist
        """
        anchor = self.store.root_position
        with self._operation('toggle_collapse', node_id):
            collapsed = self.store.toggle_collapse(node_id)
        self._commit('toggle_collapse', node_id, anchor)
        self.refocus.request(node_id)
        return collapsed

    def update_style(self, node_id: str, **style) -> NodeStyle:
        """Restyle a node. Layout is not affected."""
        with self._operation('update_style', node_id):
            updated = self.store.update_style(node_id, **style)
        self.trigger({'type': EventType.commit, 'operation': 'update_style', 'node_id': node_id})
        return updated

    def cycle_background(self, node_id: str) -> NodeStyle:
        """Switch a node's background to the next palette colour."""
        with self._operation('cycle_background', node_id):
            current = self.store.node(node_id).style.background_color
        if current in BACKGROUND_PALETTE:
            k = (BACKGROUND_PALETTE.index(current) + 1) % len(BACKGROUND_PALETTE)
        else:
            k = 0
        return self.update_style(node_id, background_color=BACKGROUND_PALETTE[k])

    def increase_font_size(self, node_id: str, step: int = FONT_SIZE_STEP) -> NodeStyle:
        """Grow a node's font size by step."""
        with self._operation('increase_font_size', node_id):
            current = self.store.node(node_id).style.font_size
        try:
            size = float(str(current).removesuffix('px')) if current is not None else BASE_FONT_SIZE
        except ValueError:
            size = BASE_FONT_SIZE
        size += step
        return self.update_style(node_id, font_size=int(size) if size.is_integer() else size)

    def rename(self, node_id: str, label: str) -> None:
        """Change a node's label."""
        with self._operation('rename', node_id):
            self.store.set_label(node_id, label)
        self.trigger({'type': EventType.commit, 'operation': 'rename', 'node_id': node_id})

    def import_document(self, text: str) -> TreeStore:
        """
        Replace the map with a JSON document and fit it in view.

        The current map is kept if the document is rejected.

        Raises:
            MalformedDocument: If the document is not a valid tree
        """
        with self._operation('import_document', None):
            store = loads(text, self.engine)
        self.store = store
        self.last_layout = None
        logger.info("import_document committed (%d nodes)", len(store))
        self.trigger({'type': EventType.commit, 'operation': 'import_document', 'node_id': None})
        self.refocus.request(None)
        return store

    def export_document(self) -> str:
        """Serialize the map to JSON text."""
        return dumps(self.store)

    def open_reference(self, url: str) -> None:
        """Show an auxiliary reference document next to the map."""
        if self.viewer is None:
            logger.debug("No document viewer attached; ignoring %s", url)
            return
        self.viewer.show(url)
