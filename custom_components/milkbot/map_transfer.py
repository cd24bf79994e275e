"""Two-phase transfer of a platform map to the robot."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .commands import CommandDispatcher, MapLocationsCommand, MapMetadataCommand
from .exceptions import CommandResult
from .map_document import apply_x_sentinel
from .models import LocationEntry, MapDocument

_LOGGER = logging.getLogger(__name__)

LOCATION_SEPARATOR = "|"


def _coordinate(value: float) -> str:
    # -0.0 would otherwise be sent as "-0.000"
    return f"{value + 0.0:.3f}"


def encode_locations(locations: Iterable[LocationEntry]) -> str:
    """Encode locations as ``Type,ID,X,Y,Z|Type,ID,X,Y,Z|...``."""
    return LOCATION_SEPARATOR.join(
        f"{int(entry.location.type)},{int(entry.location.id)},"
        f"{_coordinate(entry.x)},{_coordinate(entry.y)},{_coordinate(entry.z)}"
        for entry in locations
    )


class MapTransferProtocol:
    """Sends a map as a metadata write followed by a locations write.

    The two writes are not atomic. If the locations write fails the robot
    keeps the new metadata with its old locations; nothing is rolled back
    or retried.
    """

    def __init__(self, dispatcher: CommandDispatcher) -> None:
        self._dispatcher = dispatcher

    async def send_map(self, document: MapDocument) -> CommandResult:
        """Send ``document``. Returns the first failing write's result."""
        document = apply_x_sentinel(document)
        body = document.body

        metadata = MapMetadataCommand(
            is_negative=body.is_negative,
            map_name=document.map_name,
            farm_id=body.farm_id,
            site_name=body.site_name,
            platform_number=document.platform_number,
        )
        result = await self._dispatcher.send(metadata)
        if not result:
            _LOGGER.error("Map metadata write failed (%s); locations not sent", result.error)
            return result

        result = await self._dispatcher.send(
            MapLocationsCommand(encoded_locations=encode_locations(body.locations))
        )
        if not result:
            _LOGGER.error(
                "Map locations write failed (%s) after metadata was accepted; "
                "robot holds new metadata with its previous locations",
                result.error,
            )
            return result

        _LOGGER.info(
            "Sent map %r with %d locations to robot", document.map_name, len(body.locations)
        )
        return result
