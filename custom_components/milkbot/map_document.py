"""Platform map document operations.

Every mutation returns a new ``MapDocument`` whose locations are fully
re-indexed (``locations[i].index == i + 1``). An X coordinate of exactly
0.0 is replaced with ``X_ZERO_SENTINEL`` before the document is stored
or sent.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import replace
from typing import Any

from .const import DEFAULT_MAP_NAME, DEFAULT_PLATFORM_NUMBER, X_ZERO_SENTINEL
from .exceptions import InvalidMapDocument
from .models import (
    Location,
    LocationEntry,
    LocationType,
    MapBody,
    MapDocument,
    utc_timestamp,
)

_LOGGER = logging.getLogger(__name__)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_int(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    return isinstance(value, int) or (isinstance(value, float) and value.is_integer())


def sentinel_x(x: float) -> float:
    """Return ``X_ZERO_SENTINEL`` for an X of exactly zero, else ``x``."""
    return X_ZERO_SENTINEL if x == 0.0 else x


def new_map_document() -> MapDocument:
    """Return an empty map with default values."""
    return MapDocument(
        platform_number=DEFAULT_PLATFORM_NUMBER,
        map_time=utc_timestamp(),
        map_name=DEFAULT_MAP_NAME,
        is_active=False,
        body=MapBody(),
    )


def _parse_location(raw: Any, position: int) -> LocationEntry:
    if not isinstance(raw, Mapping):
        raise InvalidMapDocument(f"Location {position} is not an object")
    location = raw.get("Location") or {}
    if not isinstance(location, Mapping):
        raise InvalidMapDocument(f"Location {position} has an invalid Location reference")
    try:
        index = raw.get("Index", position + 1)
        return LocationEntry(
            index=int(index),
            location=Location(
                type=_location_type(int(location.get("Type", LocationType.UNKNOWN))),
                id=int(location.get("ID", 0)),
            ),
            x=sentinel_x(float(raw.get("XLocationInMeters", 0.0))),
            y=float(raw.get("YLocationInMeters", 0.0)),
            z=float(raw.get("ZLocationInMeters", 0.0)),
        )
    except (TypeError, ValueError) as err:
        raise InvalidMapDocument(f"Location {position} is malformed: {err}") from err


def _location_type(value: int) -> int:
    try:
        return LocationType(value)
    except ValueError:
        return value


def parse_map_document(data: Any) -> MapDocument:
    """Build a MapDocument from its JSON form, filling in optional fields.

    Missing ``IsActive`` becomes False, missing ``MapTime`` becomes now and
    missing ``Locations`` becomes empty. A document without an int
    ``PlatformNumber``, a str ``MapName`` or a ``Map`` object is rejected.
    Loaded ``Index`` values are kept as stored.
    """
    if not isinstance(data, Mapping):
        raise InvalidMapDocument("Map document is not an object")
    platform_number = data.get("PlatformNumber")
    if not _is_int(platform_number):
        raise InvalidMapDocument("PlatformNumber is missing or not a number")
    map_name = data.get("MapName")
    if not isinstance(map_name, str):
        raise InvalidMapDocument("MapName is missing or not a string")
    body = data.get("Map")
    if not isinstance(body, Mapping):
        raise InvalidMapDocument("Map is missing or not an object")

    raw_locations = body.get("Locations")
    if not isinstance(raw_locations, list):
        raw_locations = []
    locations = tuple(_parse_location(raw, i) for i, raw in enumerate(raw_locations))

    platform_id = body.get("PlatformID")
    try:
        farm_id = int(body.get("FarmId", 0) or 0)
    except (TypeError, ValueError) as err:
        raise InvalidMapDocument(f"FarmId is malformed: {err}") from err

    return MapDocument(
        platform_number=int(platform_number),
        map_time=data.get("MapTime") or utc_timestamp(),
        map_name=map_name,
        is_active=bool(data.get("IsActive", False)),
        body=MapBody(
            platform_id=str(platform_id) if platform_id is not None else None,
            is_negative=bool(body.get("IsNegative", False)),
            farm_id=farm_id,
            site_name=str(body.get("SiteName") or ""),
            locations=locations,
        ),
    )


def validate_import(data: Any) -> MapDocument:
    """Strictly validate an imported map document and parse it.

    Unlike ``parse_map_document`` every body field and every location field
    must be present with the right type.
    """
    if not isinstance(data, Mapping):
        raise InvalidMapDocument("Map document is not an object")
    if not _is_number(data.get("PlatformNumber")):
        raise InvalidMapDocument("PlatformNumber must be a number")
    if not isinstance(data.get("MapName"), str):
        raise InvalidMapDocument("MapName must be a string")
    body = data.get("Map")
    if not isinstance(body, Mapping):
        raise InvalidMapDocument("Map must be an object")
    if not isinstance(body.get("IsNegative"), bool):
        raise InvalidMapDocument("Map.IsNegative must be a boolean")
    if not _is_number(body.get("FarmId")):
        raise InvalidMapDocument("Map.FarmId must be a number")
    if not isinstance(body.get("SiteName"), str):
        raise InvalidMapDocument("Map.SiteName must be a string")
    locations = body.get("Locations")
    if not isinstance(locations, list):
        raise InvalidMapDocument("Map.Locations must be a list")
    for position, loc in enumerate(locations, start=1):
        if not isinstance(loc, Mapping):
            raise InvalidMapDocument(f"Location {position} must be an object")
        if not _is_number(loc.get("Index")):
            raise InvalidMapDocument(f"Location {position}: Index must be a number")
        ref = loc.get("Location")
        if (
            not isinstance(ref, Mapping)
            or not _is_number(ref.get("Type"))
            or not _is_number(ref.get("ID"))
        ):
            raise InvalidMapDocument(f"Location {position}: Location.Type and ID must be numbers")
        for key in ("XLocationInMeters", "YLocationInMeters", "ZLocationInMeters"):
            if not _is_number(loc.get(key)):
                raise InvalidMapDocument(f"Location {position}: {key} must be a number")
    return parse_map_document(data)


def validate_for_send(document: MapDocument) -> None:
    """Raise InvalidMapDocument unless the map can be sent to the robot."""
    if not document.map_name.strip():
        raise InvalidMapDocument("Map name is required")
    if not document.body.site_name.strip():
        raise InvalidMapDocument("Site name is required")
    if not document.body.locations:
        raise InvalidMapDocument("At least one location is required")


def map_document_to_dict(document: MapDocument) -> dict[str, Any]:
    """Return the JSON form used for storage, export and import."""
    body = document.body
    return {
        "PlatformNumber": document.platform_number,
        "MapTime": document.map_time,
        "MapName": document.map_name,
        "IsActive": document.is_active,
        "Map": {
            "PlatformID": body.platform_id,
            "IsNegative": body.is_negative,
            "FarmId": body.farm_id,
            "SiteName": body.site_name,
            "Locations": [
                {
                    "Index": entry.index,
                    "Location": {"Type": int(entry.location.type), "ID": entry.location.id},
                    "XLocationInMeters": entry.x,
                    "YLocationInMeters": entry.y,
                    "ZLocationInMeters": entry.z,
                }
                for entry in body.locations
            ],
        },
    }


def reindex(locations: Iterable[LocationEntry]) -> tuple[LocationEntry, ...]:
    """Renumber locations so ``index == position + 1``."""
    return tuple(
        entry if entry.index == i else replace(entry, index=i)
        for i, entry in enumerate(locations, start=1)
    )


def _with_locations(document: MapDocument, locations: Iterable[LocationEntry]) -> MapDocument:
    return replace(document, body=replace(document.body, locations=reindex(locations)))


def add_location(
    document: MapDocument,
    location_type: int = LocationType.UNKNOWN,
    location_id: int = 0,
    x: float = X_ZERO_SENTINEL,
    y: float = 0.0,
    z: float = 0.0,
) -> MapDocument:
    """Append a location at the end of the list."""
    entry = LocationEntry(
        index=len(document.body.locations) + 1,
        location=Location(type=location_type, id=location_id),
        x=sentinel_x(round(x, 3)),
        y=round(y, 3),
        z=round(z, 3),
    )
    return _with_locations(document, (*document.body.locations, entry))


def remove_location(document: MapDocument, position: int) -> MapDocument:
    """Remove the location at zero-based ``position``.

    Raises IndexError when ``position`` is out of range.
    """
    locations = list(document.body.locations)
    if not 0 <= position < len(locations):
        raise IndexError(f"No location at position {position}")
    del locations[position]
    return _with_locations(document, locations)


def move_location_up(document: MapDocument, position: int) -> MapDocument:
    """Swap the location at ``position`` with the one before it.

    Out-of-range positions (including the first) return the document as is.
    """
    locations = list(document.body.locations)
    if not 0 < position < len(locations):
        return document
    locations[position - 1], locations[position] = locations[position], locations[position - 1]
    return _with_locations(document, locations)


def move_location_down(document: MapDocument, position: int) -> MapDocument:
    """Swap the location at ``position`` with the one after it.

    Out-of-range positions (including the last) return the document as is.
    """
    locations = list(document.body.locations)
    if not 0 <= position < len(locations) - 1:
        return document
    locations[position], locations[position + 1] = locations[position + 1], locations[position]
    return _with_locations(document, locations)


def update_location(
    document: MapDocument,
    position: int,
    *,
    location_type: int | None = None,
    location_id: int | None = None,
    x: float | None = None,
    y: float | None = None,
    z: float | None = None,
) -> MapDocument:
    """Change fields of one location. Coordinates are rounded to millimetres."""
    locations = list(document.body.locations)
    if not 0 <= position < len(locations):
        raise IndexError(f"No location at position {position}")
    entry = locations[position]
    location = Location(
        type=entry.location.type if location_type is None else location_type,
        id=entry.location.id if location_id is None else location_id,
    )
    locations[position] = replace(
        entry,
        location=location,
        x=entry.x if x is None else sentinel_x(round(x, 3)),
        y=entry.y if y is None else round(y, 3),
        z=entry.z if z is None else round(z, 3),
    )
    return _with_locations(document, locations)


def update_map_info(
    document: MapDocument,
    *,
    map_name: str | None = None,
    platform_number: int | None = None,
    is_active: bool | None = None,
    platform_id: str | None = None,
    is_negative: bool | None = None,
    farm_id: int | None = None,
    site_name: str | None = None,
) -> MapDocument:
    """Change the scalar fields of a map. ``None`` keeps the current value."""
    body_changes: dict[str, Any] = {
        key: value
        for key, value in (
            ("platform_id", platform_id),
            ("is_negative", is_negative),
            ("farm_id", farm_id),
            ("site_name", site_name),
        )
        if value is not None
    }
    doc_changes: dict[str, Any] = {
        key: value
        for key, value in (
            ("map_name", map_name),
            ("platform_number", platform_number),
            ("is_active", is_active),
        )
        if value is not None
    }
    if body_changes:
        doc_changes["body"] = replace(document.body, **body_changes)
    return replace(document, **doc_changes) if doc_changes else document


def apply_x_sentinel(document: MapDocument) -> MapDocument:
    """Replace every X of exactly 0.0 with the sentinel. Idempotent."""
    locations = document.body.locations
    if not any(entry.x == 0.0 for entry in locations):
        return document
    _LOGGER.debug("Replacing zero X coordinates with %s", X_ZERO_SENTINEL)
    return replace(
        document,
        body=replace(
            document.body,
            locations=tuple(
                replace(entry, x=X_ZERO_SENTINEL) if entry.x == 0.0 else entry
                for entry in locations
            ),
        ),
    )


def stamp_map_time(document: MapDocument) -> MapDocument:
    """Return the document with MapTime set to now."""
    return replace(document, map_time=utc_timestamp())
