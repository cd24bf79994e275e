"""Opt-in Sentry error reporting for the Milkbot Home Assistant integration."""

from __future__ import annotations

import logging
import os
import re
from typing import TYPE_CHECKING, Any

import sentry_sdk

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

_LOGGER = logging.getLogger(__name__)

DSN_ENV_VAR = "MILKBOT_SENTRY_DSN"

_BLE_ADDRESS_RE = re.compile(r"\b(?:[0-9A-Fa-f]{2}[:-]){5}[0-9A-Fa-f]{2}\b")


def init_error_reporting(
    dsn: str | None = None,
    environment: str = "production",
    tags: dict[str, str] | None = None,
) -> bool:
    """Initialize Sentry error reporting if a DSN is configured.

    Reporting is off unless ``dsn`` is given or ``MILKBOT_SENTRY_DSN`` is
    set. No PII is collected: secret-looking keys and Bluetooth addresses
    are scrubbed before sending. Returns True when the SDK was initialized.
    """
    effective_dsn = dsn or os.environ.get(DSN_ENV_VAR)
    if not effective_dsn:
        return False

    try:
        sentry_sdk.init(
            dsn=effective_dsn,
            environment=environment,
            traces_sample_rate=0.0,
            send_default_pii=False,
            before_send=_scrub_event,
        )
        for key, value in (tags or {}).items():
            sentry_sdk.set_tag(key, value)
    except Exception as exc:
        _LOGGER.warning("Failed to initialize error reporting: %s", exc)
        return False

    _LOGGER.debug("Error reporting initialized (dsn=%s...)", effective_dsn[:30])
    return True


def _is_sensitive_key(key: str) -> bool:
    """Return True if the key name looks like it holds a secret or an address."""
    key_lower = key.lower()
    if any(s in key_lower for s in ("password", "token", "secret", "credential")):
        return True
    if key_lower in ("address", "mac", "name_filter"):
        return True
    return key_lower == "key" or "_key" in key_lower or key_lower.endswith("key")


def _scrub_value(value: Any) -> Any:
    if isinstance(value, str):
        return _BLE_ADDRESS_RE.sub("[ADDRESS]", value)
    return value


def _scrub_dict(data: dict) -> None:  # type: ignore[type-arg]
    """Redact sensitive values in a dict in-place."""
    for key in list(data):
        if _is_sensitive_key(str(key)):
            data[key] = "[REDACTED]"
        else:
            data[key] = _scrub_value(data[key])


def _frame_is_ours(frame: dict) -> bool:  # type: ignore[type-arg]
    """True if this stack frame is from the Milkbot integration."""
    module = frame.get("module") or ""
    if module.startswith("custom_components.milkbot"):
        return True
    filename = (frame.get("filename") or "").replace("\\", "/")
    return "/custom_components/milkbot/" in filename


def _scrub_event(event: dict, hint: dict) -> dict | None:  # type: ignore[type-arg]
    """Remove sensitive data and drop events not raised in our integration."""
    values = event.get("exception", {}).get("values") or []
    raising_frame_ours = False
    for entry in values:
        frames = entry.get("stacktrace", {}).get("frames") or []
        # Frames run oldest to newest; the last one raised the exception.
        if frames and _frame_is_ours(frames[-1]):
            raising_frame_ours = True
            break
    if not raising_frame_ours:
        return None

    for entry in values:
        if "value" in entry:
            entry["value"] = _scrub_value(entry["value"])

    if "extra" in event:
        _scrub_dict(event["extra"])

    for crumb in event.get("breadcrumbs", {}).get("values", []):
        if "message" in crumb:
            crumb["message"] = _scrub_value(crumb["message"])
        if isinstance(crumb.get("data"), dict):
            _scrub_dict(crumb["data"])

    if isinstance(event.get("contexts"), dict):
        for ctx_data in event["contexts"].values():
            if isinstance(ctx_data, dict):
                _scrub_dict(ctx_data)

    return event


async def async_init_error_reporting(
    hass: HomeAssistant,
    dsn: str | None = None,
    environment: str = "production",
    tags: dict[str, str] | None = None,
) -> bool:
    """Initialize error reporting in the executor to avoid blocking the event loop."""
    return await hass.async_add_executor_job(init_error_reporting, dsn, environment, tags)
