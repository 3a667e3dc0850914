"""Asynchronous bitmap resolution for the base photo and image overlays.

Decodes run out-of-band through an :class:`ImageLoader`; completions are
expected back on the GUI thread. Every request carries the revision that was
current when it was issued, and a completion whose revision has since been
superseded is dropped instead of applied.
"""
from __future__ import annotations

import logging
import threading
from functools import partial
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional, Protocol, Sequence, Set

from overlay_stage.overlay_model import OverlayItem, image_sources

_LOGGER = logging.getLogger("OverlayStage.ImageCache")


class Bitmap(Protocol):
    """Decoded image with natural dimensions (QImage satisfies this)."""

    def width(self) -> int: ...
    def height(self) -> int: ...


class DecodeError(Exception):
    """A resource identifier could not be turned into a bitmap."""

    def __init__(self, uri: str, reason: str) -> None:
        super().__init__(f"{reason}: {uri}")
        self.uri = uri
        self.reason = reason


DecodeCallback = Callable[[Optional[Bitmap], Optional[DecodeError]], None]


class ImageLoader(Protocol):
    def load(self, uri: str, callback: DecodeCallback) -> None:
        """Start decoding ``uri``; call ``callback(bitmap, None)`` or ``callback(None, error)`` later."""


class ResolvedBitmapCache:
    """Overlay id -> decoded bitmap.

    Keyed by overlay instance, not by source: two overlays sharing a source each
    hold their own entry. All writes go through :meth:`update`, which applies the
    change to the state current at commit time under one lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: Dict[str, Bitmap] = {}
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def snapshot(self) -> Mapping[str, Bitmap]:
        with self._lock:
            return MappingProxyType(dict(self._entries))

    def get(self, overlay_id: str) -> Optional[Bitmap]:
        with self._lock:
            return self._entries.get(overlay_id)

    def __contains__(self, overlay_id: object) -> bool:
        with self._lock:
            return overlay_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def update(self, change: Callable[[Dict[str, Bitmap]], Dict[str, Bitmap]]) -> bool:
        """Apply ``change`` to a copy of the current entries and commit the result.

        Returns True when the committed mapping differs from the previous one.
        """

        with self._lock:
            current = self._entries
            proposed = change(dict(current))
            if proposed.keys() == current.keys() and all(proposed[key] is current[key] for key in current):
                return False
            self._entries = proposed
            self._generation += 1
            return True

    def merge(self, overlay_id: str, bitmap: Bitmap) -> bool:
        def _merge(entries: Dict[str, Bitmap]) -> Dict[str, Bitmap]:
            entries[overlay_id] = bitmap
            return entries

        return self.update(_merge)

    def retain(self, overlay_ids: Set[str]) -> bool:
        """Drop entries whose overlay is no longer in the collection."""

        return self.update(lambda entries: {key: value for key, value in entries.items() if key in overlay_ids})


class OverlayBitmapResolver:
    """Keeps the resolved cache in step with the overlay collection."""

    def __init__(
        self,
        loader: ImageLoader,
        *,
        cache: Optional[ResolvedBitmapCache] = None,
        on_changed: Optional[Callable[[], None]] = None,
    ) -> None:
        self._loader = loader
        self._cache = cache if cache is not None else ResolvedBitmapCache()
        self._on_changed = on_changed
        self._revision = 0
        self._failed: Set[str] = set()
        self._inflight: Dict[str, int] = {}

    @property
    def cache(self) -> ResolvedBitmapCache:
        return self._cache

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def failed_ids(self) -> frozenset[str]:
        return frozenset(self._failed)

    @property
    def pending_ids(self) -> frozenset[str]:
        return frozenset(overlay_id for overlay_id, token in self._inflight.items() if token == self._revision)

    def sync(self, overlays: Sequence[OverlayItem]) -> List[str]:
        """Accept a new collection revision and request every missing bitmap.

        Returns the overlay ids for which a decode was started.
        """

        self._revision += 1
        token = self._revision
        present = {item.id for item in overlays}
        if self._cache.retain(present):
            _LOGGER.debug("Evicted bitmaps for removed overlays (revision=%d)", token)
            self._notify()
        self._failed &= present
        for stale_id in [key for key in self._inflight if key not in present]:
            del self._inflight[stale_id]

        requested: List[str] = []
        for overlay_id, source in image_sources(overlays):
            if overlay_id in self._cache or overlay_id in self._failed:
                continue
            requested.append(overlay_id)
            self._inflight[overlay_id] = token
            _LOGGER.debug("Decoding overlay %s from %s (revision=%d)", overlay_id, source, token)
            self._loader.load(source, partial(self._on_decoded, token, overlay_id, source))
        return requested

    def _on_decoded(
        self,
        token: int,
        overlay_id: str,
        source: str,
        bitmap: Optional[Bitmap],
        error: Optional[DecodeError],
    ) -> None:
        if token != self._revision:
            _LOGGER.debug(
                "Discarding overlay bitmap for %s (revision %d superseded by %d)",
                overlay_id,
                token,
                self._revision,
            )
            return
        if self._inflight.get(overlay_id) == token:
            del self._inflight[overlay_id]
        if error is not None or bitmap is None:
            self._failed.add(overlay_id)
            _LOGGER.warning("Overlay %s could not be decoded from %s: %s", overlay_id, source, error)
            return
        if self._cache.merge(overlay_id, bitmap):
            self._notify()

    def _notify(self) -> None:
        if self._on_changed is None:
            return
        self._on_changed()


class BaseImageSlot:
    """Holds the decoded base photo; only the latest requested source may land."""

    def __init__(self, loader: ImageLoader, *, on_changed: Optional[Callable[[], None]] = None) -> None:
        self._loader = loader
        self._on_changed = on_changed
        self._source: Optional[str] = None
        self._bitmap: Optional[Bitmap] = None
        self._revision = 0
        self._pending = False

    @property
    def bitmap(self) -> Optional[Bitmap]:
        return self._bitmap

    @property
    def source(self) -> Optional[str]:
        return self._source

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def pending(self) -> bool:
        return self._pending

    def request(self, source: Optional[str]) -> bool:
        """Point the slot at a new source. Returns False when the source is unchanged."""

        source = source or None
        if source == self._source and self._revision:
            return False
        self._revision += 1
        self._source = source
        token = self._revision
        if source is None:
            self._pending = False
            self._set_bitmap(None)
            return True
        self._pending = True
        _LOGGER.debug("Decoding base image %s (revision=%d)", source, token)
        self._loader.load(source, partial(self._on_decoded, token, source))
        return True

    def _on_decoded(
        self,
        token: int,
        source: str,
        bitmap: Optional[Bitmap],
        error: Optional[DecodeError],
    ) -> None:
        if token != self._revision:
            _LOGGER.debug("Discarding stale base image %s (revision %d superseded by %d)", source, token, self._revision)
            return
        self._pending = False
        if error is not None or bitmap is None:
            _LOGGER.warning("Base image could not be decoded from %s: %s", source, error)
            self._set_bitmap(None)
            return
        self._set_bitmap(bitmap)

    def _set_bitmap(self, bitmap: Optional[Bitmap]) -> None:
        if bitmap is self._bitmap:
            return
        self._bitmap = bitmap
        if self._on_changed is not None:
            self._on_changed()
