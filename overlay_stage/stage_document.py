"""Owner of the overlay collection and the base photo reference."""
from __future__ import annotations

import logging
import secrets
import time
from typing import Callable, List, Optional, Sequence

from overlay_stage.overlay_model import (
    OverlayCollection,
    OverlayItem,
    OverlayKind,
    OverlayUpdater,
    as_collection,
)

_LOGGER = logging.getLogger("OverlayStage.Document")

IMAGE_OVERLAY_ORIGIN = (300.0, 300.0)
IMAGE_OVERLAY_SCALE = 0.6
TEXT_OVERLAY_ORIGIN = (300.0, 80.0)
TEXT_OVERLAY_SCALE = 1.0
DEFAULT_TEXT = "LOL"

Listener = Callable[[], None]


def uid(prefix: str = "id") -> str:
    """Session-unique id: ``<prefix>_<random hex>_<epoch ms>``."""

    return f"{prefix}_{secrets.token_hex(6)}_{int(time.time() * 1000)}"


class StageDocument:
    """Holds overlays (paint order) and the base image uri; notifies listeners on change.

    Overlays are only ever appended, replaced wholesale, truncated, or cleared;
    the document never reorders them.
    """

    def __init__(
        self,
        *,
        base_image: Optional[str] = None,
        id_factory: Callable[[str], str] = uid,
        default_text: str = DEFAULT_TEXT,
    ) -> None:
        self._overlays: OverlayCollection = ()
        self._base_image = base_image or None
        self._id_factory = id_factory
        self._default_text = default_text
        self._overlay_listeners: List[Listener] = []
        self._base_listeners: List[Listener] = []

    @property
    def overlays(self) -> OverlayCollection:
        return self._overlays

    @property
    def base_image(self) -> Optional[str]:
        return self._base_image

    def on_overlays_changed(self, listener: Listener) -> None:
        self._overlay_listeners.append(listener)

    def on_base_image_changed(self, listener: Listener) -> None:
        self._base_listeners.append(listener)

    def set_overlays(self, overlays: Sequence[OverlayItem]) -> None:
        collection = as_collection(overlays)
        if collection == self._overlays:
            return
        self._overlays = collection
        self._emit(self._overlay_listeners)

    def update_overlays(self, updater: OverlayUpdater) -> None:
        """Replace the collection with ``updater(current)``."""

        self.set_overlays(updater(self._overlays))

    def set_base_image(self, uri: Optional[str]) -> None:
        uri = uri or None
        if uri == self._base_image:
            return
        self._base_image = uri
        _LOGGER.info("Base image set to %s", uri or "<none>")
        self._emit(self._base_listeners)

    def add_image_overlay(self, source: str) -> OverlayItem:
        x, y = IMAGE_OVERLAY_ORIGIN
        item = OverlayItem(
            id=self._id_factory("ov"),
            kind=OverlayKind.IMAGE,
            x=x,
            y=y,
            scale=IMAGE_OVERLAY_SCALE,
            rotation=0.0,
            image_source=source,
        )
        self.update_overlays(lambda overlays: overlays + (item,))
        _LOGGER.debug("Added image overlay %s (%s)", item.id, source)
        return item

    def add_text_overlay(self, text: Optional[str] = None) -> OverlayItem:
        x, y = TEXT_OVERLAY_ORIGIN
        item = OverlayItem(
            id=self._id_factory("txt"),
            kind=OverlayKind.TEXT,
            x=x,
            y=y,
            scale=TEXT_OVERLAY_SCALE,
            rotation=0.0,
            text=self._default_text if text is None else text,
        )
        self.update_overlays(lambda overlays: overlays + (item,))
        _LOGGER.debug("Added text overlay %s (%r)", item.id, item.text)
        return item

    def remove_last(self) -> Optional[OverlayItem]:
        if not self._overlays:
            return None
        removed = self._overlays[-1]
        self.update_overlays(lambda overlays: overlays[:-1])
        return removed

    def clear(self) -> None:
        self.set_overlays(())

    def _emit(self, listeners: Sequence[Listener]) -> None:
        for listener in list(listeners):
            listener()
