"""
Ward-set resolution and ward validation.

One deployment serves one ward set (a single ward or a group). The set is
picked from an explicit identifier (e.g. ``?wardSet=165``), then from the
request host name, then from CONFIGURED_WARD.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Union

from .config import WardConfig, WardSet
from .exceptions import ValidationError


def find_ward_set(identifier: str, config: WardConfig) -> Optional[WardSet]:
    """Ward set whose name or alias equals the identifier (case-insensitive)."""
    key = identifier.strip().lower()
    for ward_set in config.sets:
        if key == ward_set.name.lower() or key in ward_set.aliases:
            return ward_set
    return None


def ward_set_for_host(host: str, config: WardConfig) -> Optional[WardSet]:
    """Ward set whose alias appears in the host name (port ignored)."""
    hostname = host.split(":")[0].lower()
    for ward_set in config.sets:
        if any(alias in hostname for alias in ward_set.aliases):
            return ward_set
    return None


def resolve_ward_set(
    identifier: Optional[str],
    host: Optional[str],
    config: WardConfig,
) -> List[str]:
    """
    Wards served for a request.

    Args:
        identifier: Ward-set identifier from the URL, if any
        host: Request host header, if any
        config: Ward configuration

    Returns:
        Ward numbers as strings; the first is the default ward
    """
    ward_set = None
    if identifier:
        ward_set = find_ward_set(identifier, config)
    if ward_set is None and host:
        ward_set = ward_set_for_host(host, config)
    if ward_set is not None and ward_set.wards:
        return list(ward_set.wards)
    return config.default_wards


def validate_ward(value: Union[str, int, None], allowed: Iterable[str]) -> int:
    """
    Parse a ward number and check it is served.

    Raises:
        ValidationError: if missing, not numeric, or not in ``allowed``
    """
    if value is None or str(value).strip() == "":
        raise ValidationError("Ward is required", field_name="ward")
    text = str(value).strip()
    try:
        ward = int(text)
    except ValueError:
        raise ValidationError("Invalid ward number", field_name="ward", field_value=value) from None

    allowed = [str(w).strip() for w in allowed]
    if str(ward) not in allowed:
        raise ValidationError(
            "Invalid ward number",
            field_name="ward",
            field_value=value,
            expected=", ".join(allowed),
        )
    return ward
