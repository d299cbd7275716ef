"""Layer lifecycle reconciliation against a rendering surface.

The reconciler owns every layer object on the rendering surface. Callers
describe what each logical slot (base map, ice data, coastlines, graticule)
should show as a ``LayerRequest``; the reconciler works out the smallest set
of surface mutations that gets there and tracks each slot's load status.

Swaps are flicker-free. A new layer is mounted invisible next to the current
one and is only revealed, with the old layer removed in the same step, when
its first tile loads. A layer whose tiles all fail is removed and the slot
reports ``error`` while the previous layer stays on screen; ``retry`` mounts
it again.

Every mount gets a generation number. Tile callbacks carry the generation
they were created for and are ignored once the slot has moved on, so a
superseded swap can never finalize the slot.

Example:
    >>> reconciler = LayerReconciler(surface)
    >>> reconciler.apply(Slot.ICE, url_builder.build_layer_request(src, day))
    >>> reconciler.status(Slot.ICE).state
    <LoadState.LOADING: 'loading'>
"""

from __future__ import annotations

import asyncio
import dataclasses
import enum
import logging
from typing import TYPE_CHECKING, Any, Protocol

from seaice.core import errors

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from seaice.services import url_builder

logger = logging.getLogger(__name__)

DEFAULT_SETTLE_DELAY = 0.15


class Slot(enum.StrEnum):
    BASE = "base"
    ICE = "ice"
    COASTLINES = "coastlines"
    GRATICULE = "graticule"


# Draw order: base below ice below coastlines below graticule.
Z_INDEX: dict[Slot, int] = {
    Slot.BASE: 100,
    Slot.ICE: 200,
    Slot.COASTLINES: 300,
    Slot.GRATICULE: 400,
}


class LoadState(enum.StrEnum):
    EMPTY = "empty"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class TileEventListener(Protocol):
    """Callbacks the rendering surface invokes for one layer's tiles."""

    def on_tile_loading(self) -> None: ...

    def on_tile_loaded(self) -> None: ...

    def on_tile_error(self, message: str) -> None: ...


class RenderingSurface(Protocol):
    """The map-drawing engine, specified only at its interface.

    Layer handles are opaque to the reconciler. For URL layers the surface
    reports tile lifecycle events through the listener passed at creation;
    vector layers are drawn synchronously and report nothing.
    """

    def create_layer(
        self,
        request: url_builder.LayerRequest,
        listener: TileEventListener,
    ) -> Any: ...

    def add_layer(self, handle: Any) -> None: ...

    def remove_layer(self, handle: Any) -> None: ...

    def set_opacity(self, handle: Any, opacity: float) -> None: ...

    def set_z_index(self, handle: Any, z_index: int) -> None: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(
        self,
        delay: float,
        callback: Callable[[], None],
    ) -> TimerHandle: ...


class LoopScheduler:
    """Schedules callbacks on the running asyncio event loop."""

    def call_later(
        self,
        delay: float,
        callback: Callable[[], None],
    ) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


@dataclasses.dataclass(frozen=True)
class SlotStatus:
    """Snapshot of one slot's load status.

    Attributes:
        slot: The logical slot.
        state: Current load state.
        generation: Generation of the most recent mount.
        url: URL of the desired layer, empty when the slot is empty.
        failed_tiles: Tiles of the current layer that failed to load after
            the layer had already shown at least one tile.
        error: Failure message while in ``error`` state.
    """

    slot: Slot
    state: LoadState
    generation: int
    url: str = ""
    failed_tiles: int = 0
    error: str | None = None


@dataclasses.dataclass(eq=False)
class _Mount:
    """One surface layer owned by a slot."""

    handle: Any
    request: url_builder.LayerRequest
    generation: int
    pending_tiles: int = 0
    loaded_tiles: int = 0
    failed_tiles: int = 0
    revealed: bool = False
    settle_timer: TimerHandle | None = None

    def cancel_timer(self) -> None:
        if self.settle_timer is not None:
            self.settle_timer.cancel()
            self.settle_timer = None


@dataclasses.dataclass(eq=False)
class _SlotState:
    slot: Slot
    generation: int = 0
    state: LoadState = LoadState.EMPTY
    desired: url_builder.LayerRequest | None = None
    live: _Mount | None = None
    pending: _Mount | None = None
    error: str | None = None

    def mount_for(self, generation: int) -> _Mount | None:
        for mount in (self.pending, self.live):
            if mount is not None and mount.generation == generation:
                return mount
        return None


class _Listener:
    """Routes surface tile events to the reconciler, tagged by generation."""

    def __init__(
        self,
        reconciler: LayerReconciler,
        slot: Slot,
        generation: int,
    ) -> None:
        self._reconciler = reconciler
        self._slot = slot
        self._generation = generation

    def on_tile_loading(self) -> None:
        self._reconciler._tile_loading(self._slot, self._generation)

    def on_tile_loaded(self) -> None:
        self._reconciler._tile_loaded(self._slot, self._generation)

    def on_tile_error(self, message: str) -> None:
        self._reconciler._tile_error(self._slot, self._generation, message)


def _same_layer(
    a: url_builder.LayerRequest,
    b: url_builder.LayerRequest,
) -> bool:
    """Whether two requests differ at most in opacity."""
    return dataclasses.replace(a, opacity=b.opacity) == b


class LayerReconciler:
    """Reconciles desired per-slot layers with live rendering-surface layers.

    Attributes:
        settle_delay: Seconds the pending-tile counter must stay at zero
            before a loading slot is reported ready.
    """

    def __init__(
        self,
        surface: RenderingSurface,
        *,
        scheduler: Scheduler | None = None,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        on_status: Callable[[SlotStatus], None] | None = None,
    ) -> None:
        self._surface = surface
        self._scheduler = scheduler or LoopScheduler()
        self.settle_delay = settle_delay
        self._on_status = on_status
        self._slots = {slot: _SlotState(slot) for slot in Slot}
        self._closed = False

    # Public API

    def apply(
        self,
        slot: Slot,
        request: url_builder.LayerRequest | None,
    ) -> None:
        """Make ``slot`` show ``request``; None or an empty request clears it.

        Equal requests are no-ops, opacity-only changes are applied in place
        and anything else mounts a new layer next to the current one.
        """
        if self._closed:
            raise RuntimeError("LayerReconciler is closed")

        state = self._slots[slot]
        if request is None or request.is_empty:
            self._clear(state)
            return
        if request == state.desired:
            return

        live = state.live
        if live is not None and _same_layer(live.request, request):
            self._discard_pending(state)
            state.desired = request
            if live.request.opacity != request.opacity and live.revealed:
                self._surface.set_opacity(live.handle, request.opacity)
            live.request = request
            state.state = self._live_state(live)
            state.error = None
            self._notify(state)
            return

        state.desired = request
        self._mount(state, request)

    def apply_all(
        self,
        desired: Mapping[Slot, url_builder.LayerRequest | None],
    ) -> None:
        for slot, request in desired.items():
            self.apply(slot, request)

    def retry(self, slot: Slot) -> bool:
        """Mount the desired layer of a failed slot again.

        Returns:
            True if a new mount was started.
        """
        state = self._slots[slot]
        if state.state != LoadState.ERROR or state.desired is None:
            return False
        logger.info("Retrying %s layer %s", slot, state.desired.url)
        self._mount(state, state.desired)
        return True

    def status(self, slot: Slot) -> SlotStatus:
        state = self._slots[slot]
        current = state.pending or state.live
        return SlotStatus(
            slot=slot,
            state=state.state,
            generation=state.generation,
            url=state.desired.url if state.desired else "",
            failed_tiles=current.failed_tiles if current else 0,
            error=state.error,
        )

    def statuses(self) -> dict[Slot, SlotStatus]:
        return {slot: self.status(slot) for slot in Slot}

    def mounted_handles(self, slot: Slot) -> list[Any]:
        """Surface handles currently owned by ``slot``, live first."""
        state = self._slots[slot]
        return [m.handle for m in (state.live, state.pending) if m is not None]

    def close(self) -> None:
        """Remove every layer; late tile callbacks become no-ops."""
        for state in self._slots.values():
            self._clear(state, notify=False)
        self._closed = True

    # Transitions

    def _clear(self, state: _SlotState, notify: bool = True) -> None:
        had_layers = state.live is not None or state.pending is not None
        self._discard_pending(state)
        if state.live is not None:
            state.live.cancel_timer()
            self._surface.remove_layer(state.live.handle)
            state.live = None
        if had_layers or state.state != LoadState.EMPTY:
            state.generation += 1
        state.desired = None
        state.state = LoadState.EMPTY
        state.error = None
        if notify:
            self._notify(state)

    def _discard_pending(self, state: _SlotState) -> None:
        pending = state.pending
        if pending is None:
            return
        pending.cancel_timer()
        self._surface.remove_layer(pending.handle)
        state.pending = None
        logger.debug(
            "Discarded stale %s layer generation %d", state.slot,
            pending.generation,
        )

    def _mount(
        self,
        state: _SlotState,
        request: url_builder.LayerRequest,
    ) -> None:
        self._discard_pending(state)
        state.generation += 1
        generation = state.generation
        listener = _Listener(self, state.slot, generation)
        handle = self._surface.create_layer(request, listener)
        mount = _Mount(handle=handle, request=request, generation=generation)
        state.pending = mount
        state.state = LoadState.LOADING
        state.error = None

        self._surface.set_opacity(handle, 0.0)
        self._surface.add_layer(handle)
        self._enforce_z_order()
        logger.debug(
            "Mounted %s layer generation %d: %s", state.slot, generation,
            request.url or request.kind,
        )

        if request.geometry is not None:
            self._reveal(state, mount)
            state.state = LoadState.READY
        self._notify(state)

    def _reveal(self, state: _SlotState, mount: _Mount) -> None:
        """Show ``mount`` and drop the layer it replaces, in one step."""
        mount.revealed = True
        self._surface.set_opacity(mount.handle, mount.request.opacity)
        previous = state.live
        if previous is not None and previous is not mount:
            previous.cancel_timer()
            self._surface.remove_layer(previous.handle)
        state.live = mount
        if state.pending is mount:
            state.pending = None
        self._enforce_z_order()

    def _enforce_z_order(self) -> None:
        for slot, state in self._slots.items():
            for mount in (state.live, state.pending):
                if mount is not None:
                    self._surface.set_z_index(mount.handle, Z_INDEX[slot])

    def _live_state(self, mount: _Mount) -> LoadState:
        if mount.pending_tiles or mount.settle_timer is not None:
            return LoadState.LOADING
        return LoadState.READY

    # Tile events

    def _current(self, slot: Slot, generation: int) -> _Mount | None:
        if self._closed:
            return None
        mount = self._slots[slot].mount_for(generation)
        if mount is None:
            logger.debug(
                "Ignoring stale tile event for %s generation %d", slot,
                generation,
            )
        return mount

    def _tile_loading(self, slot: Slot, generation: int) -> None:
        mount = self._current(slot, generation)
        if mount is None:
            return
        mount.pending_tiles += 1
        mount.cancel_timer()

    def _tile_loaded(self, slot: Slot, generation: int) -> None:
        mount = self._current(slot, generation)
        if mount is None:
            return
        state = self._slots[slot]
        mount.pending_tiles = max(mount.pending_tiles - 1, 0)
        mount.loaded_tiles += 1

        if not mount.revealed:
            self._reveal(state, mount)
            if mount.request.ready_on_first_tile:
                state.state = LoadState.READY
            self._notify(state)
        self._maybe_settle(state, mount)

    def _tile_error(self, slot: Slot, generation: int, message: str) -> None:
        mount = self._current(slot, generation)
        if mount is None:
            return
        state = self._slots[slot]
        mount.pending_tiles = max(mount.pending_tiles - 1, 0)
        mount.failed_tiles += 1

        if mount.loaded_tiles == 0:
            self._fail(state, mount, message)
            return
        logger.debug("Tile of %s layer failed: %s", slot, message)
        self._maybe_settle(state, mount)

    def _fail(self, state: _SlotState, mount: _Mount, message: str) -> None:
        failure = errors.TileLoadFailed(mount.request.url, message)
        logger.warning(
            "%s layer failed before any tile loaded (%s): %s",
            state.slot, failure.url, failure.message,
        )
        mount.cancel_timer()
        self._surface.remove_layer(mount.handle)
        if state.pending is mount:
            state.pending = None
        if state.live is mount:
            state.live = None
        state.state = LoadState.ERROR
        state.error = failure.message
        self._notify(state)

    def _maybe_settle(self, state: _SlotState, mount: _Mount) -> None:
        if mount.pending_tiles:
            return
        mount.cancel_timer()
        generation = mount.generation
        mount.settle_timer = self._scheduler.call_later(
            self.settle_delay,
            lambda: self._settled(state.slot, generation),
        )

    def _settled(self, slot: Slot, generation: int) -> None:
        mount = self._current(slot, generation)
        if mount is None:
            return
        mount.settle_timer = None
        state = self._slots[slot]
        if mount.pending_tiles or state.live is not mount:
            return
        if state.state == LoadState.LOADING:
            state.state = LoadState.READY
            logger.debug(
                "%s layer ready (%d tiles, %d failed)", slot,
                mount.loaded_tiles, mount.failed_tiles,
            )
            self._notify(state)

    def _notify(self, state: _SlotState) -> None:
        if self._on_status is not None:
            self._on_status(self.status(state.slot))
