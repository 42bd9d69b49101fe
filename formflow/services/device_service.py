"""Best-effort respondent device and location resolution.

Results only populate submission metadata. Nothing here may block admission:
unrecognised input resolves to ``unknown``.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from formflow.db.enums import DeviceType

logger = logging.getLogger(__name__)

UNKNOWN_PLACE = "Unknown"

_MOBILE_RE = re.compile(r"android|webos|iphone|ipod|blackberry|iemobile|opera mini", re.I)
_TABLET_RE = re.compile(r"(ipad|tablet|playbook|silk)|(android(?!.*mobile))", re.I)
_DESKTOP_RE = re.compile(r"windows|macintosh|linux|x11", re.I)


def detect_device(user_agent: str | None) -> DeviceType:
    """Classify a user-agent string.

    Mobile is checked first, so Android phones land there even though the
    tablet pattern also matches bare ``android``.
    """
    if not user_agent:
        return DeviceType.UNKNOWN
    if _MOBILE_RE.search(user_agent):
        return DeviceType.MOBILE
    if _TABLET_RE.search(user_agent):
        return DeviceType.TABLET
    if _DESKTOP_RE.search(user_agent):
        return DeviceType.DESKTOP
    return DeviceType.UNKNOWN


def extract_location_info(address: str | None) -> dict[str, str]:
    """Split a reverse-geocoded address into city and country.

    Takes the last two comma-separated parts, e.g.
    ``"221B Baker St, London, United Kingdom"`` -> London / United Kingdom.
    """
    parts = [p.strip() for p in (address or "").split(",")]
    if len(parts) >= 2:
        return {
            "city": parts[-2] or UNKNOWN_PLACE,
            "country": parts[-1] or UNKNOWN_PLACE,
        }
    return {"city": UNKNOWN_PLACE, "country": UNKNOWN_PLACE}


def resolve_location(answer: Any, capture_city: bool) -> dict[str, Any] | None:
    """Build submission location metadata from a ``location`` field answer.

    Accepts ``{"latitude", "longitude", "address"?, "city"?}``. Malformed
    answers resolve to None.
    """
    if not isinstance(answer, dict):
        return None
    try:
        latitude = float(answer["latitude"])
        longitude = float(answer["longitude"])
    except (KeyError, TypeError, ValueError):
        logger.debug("location_answer_malformed", exc_info=True)
        return None

    location: dict[str, Any] = {"latitude": latitude, "longitude": longitude}
    if capture_city:
        if answer.get("address"):
            location.update(extract_location_info(str(answer["address"])))
        else:
            location["city"] = str(answer.get("city") or UNKNOWN_PLACE)
            location["country"] = str(answer.get("country") or UNKNOWN_PLACE)
    return location
