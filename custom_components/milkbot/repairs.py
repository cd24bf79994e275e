"""Repair issue helpers for the Milkbot integration.

One repair condition:
- robot_disconnected: the link dropped or the status frame stopped
  changing for too long. Fixable by reconnecting.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from homeassistant.components.repairs import RepairsFlow
from homeassistant.core import HomeAssistant
from homeassistant.data_entry_flow import FlowResult
from homeassistant.helpers import issue_registry as ir

from .const import CONF_ROBOT_NAME, DATA_COORDINATOR, DOMAIN

_LOGGER = logging.getLogger(__name__)

if TYPE_CHECKING:
    from .coordinator import MilkbotDataCoordinator

# Combined with entry_id to create a unique key per robot
ISSUE_ROBOT_DISCONNECTED = "robot_disconnected"


def async_create_robot_disconnected_issue(
    hass: HomeAssistant, entry_id: str, name: str, reason: str
) -> None:
    """Create an ERROR repair issue for a lost robot connection.

    Marked fixable so HA shows a 'Reconnect' button in the UI.
    """
    ir.async_create_issue(
        hass,
        DOMAIN,
        f"{ISSUE_ROBOT_DISCONNECTED}_{entry_id}",
        is_fixable=True,
        severity=ir.IssueSeverity.ERROR,
        translation_key=ISSUE_ROBOT_DISCONNECTED,
        translation_placeholders={"name": name, "reason": reason},
    )


def async_delete_robot_disconnected_issue(hass: HomeAssistant, entry_id: str) -> None:
    """Remove the disconnect repair issue once the robot is connected again."""
    ir.async_delete_issue(hass, DOMAIN, f"{ISSUE_ROBOT_DISCONNECTED}_{entry_id}")


class MilkbotRepairFlow(RepairsFlow):
    """Handler for Milkbot repair flows."""

    async def async_step_init(self, user_input: dict[str, Any] | None = None) -> FlowResult:
        """Handle the initial step of the repair flow."""
        return await self.async_step_confirm()

    async def async_step_confirm(self, user_input: dict[str, Any] | None = None) -> FlowResult:
        """Handle confirm: reconnect to the robot."""
        entry_id = _entry_id_from_issue(self.issue_id)

        if user_input is not None:
            if entry_id is None or entry_id not in self.hass.data.get(DOMAIN, {}):
                return self.async_abort(reason="unknown")
            coordinator: MilkbotDataCoordinator = self.hass.data[DOMAIN][entry_id][
                DATA_COORDINATOR
            ]
            if not await coordinator.async_reconnect():
                _LOGGER.warning("Reconnect from repair flow failed")
                return self.async_abort(reason="cannot_connect")
            return self.async_create_entry(data={})

        robot_name = "Milkbot"
        if entry_id and (entry := self.hass.config_entries.async_get_entry(entry_id)):
            robot_name = entry.data.get(CONF_ROBOT_NAME, robot_name)

        return self.async_show_form(
            step_id="confirm",
            description_placeholders={"name": robot_name},
        )


def _entry_id_from_issue(issue_id: str) -> str | None:
    prefix = f"{ISSUE_ROBOT_DISCONNECTED}_"
    if issue_id.startswith(prefix):
        return issue_id[len(prefix) :]
    return None


async def async_create_fix_flow(
    hass: HomeAssistant,
    issue_id: str,
    data: dict[str, Any] | None,
) -> RepairsFlow:
    """Create a repair flow for fixable Milkbot issues."""
    return MilkbotRepairFlow()
