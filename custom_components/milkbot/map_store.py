"""Persistent storage of the platform map for one config entry."""

from __future__ import annotations

import logging
from collections.abc import Callable

from homeassistant.core import HomeAssistant
from homeassistant.helpers.storage import Store

from .const import MAP_STORAGE_KEY_PREFIX, MAP_STORAGE_VERSION
from .exceptions import InvalidMapDocument
from .map_document import (
    apply_x_sentinel,
    map_document_to_dict,
    new_map_document,
    parse_map_document,
    stamp_map_time,
)
from .models import MapDocument

_LOGGER = logging.getLogger(__name__)


class MapStore:
    """Holds the current map in memory and persists it with ``Store``."""

    def __init__(self, hass: HomeAssistant, entry_id: str) -> None:
        self._store: Store[dict] = Store(
            hass, MAP_STORAGE_VERSION, f"{MAP_STORAGE_KEY_PREFIX}.{entry_id}"
        )
        self._document = new_map_document()
        self._listeners: list[Callable[[MapDocument], None]] = []

    @property
    def document(self) -> MapDocument:
        return self._document

    def add_listener(self, listener: Callable[[MapDocument], None]) -> Callable[[], None]:
        """Call ``listener`` whenever the in-memory map changes."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    async def async_load(self) -> MapDocument:
        """Load the stored map. Invalid data is logged and ignored."""
        data = await self._store.async_load()
        if data is None:
            _LOGGER.debug("No stored map, starting with an empty one")
            return self._document
        try:
            document = parse_map_document(data)
        except InvalidMapDocument as err:
            _LOGGER.warning("Ignoring invalid stored map: %s", err)
            return self._document
        self._set(document)
        _LOGGER.debug(
            "Loaded map %r with %d locations", document.map_name, len(document.body.locations)
        )
        return document

    async def async_save(self) -> MapDocument:
        """Persist the current map, stamping MapTime."""
        document = stamp_map_time(apply_x_sentinel(self._document))
        await self._store.async_save(map_document_to_dict(document))
        self._set(document)
        return document

    async def async_set_document(self, document: MapDocument, *, persist: bool = True) -> MapDocument:
        """Replace the current map and (by default) save it."""
        self._set(apply_x_sentinel(document))
        if persist:
            return await self.async_save()
        return self._document

    async def async_remove(self) -> None:
        """Delete the stored map."""
        await self._store.async_remove()

    def _set(self, document: MapDocument) -> None:
        self._document = document
        for listener in list(self._listeners):
            try:
                listener(document)
            except Exception:
                _LOGGER.exception("Error in map listener")
