"""Utility methods."""

import logging
import re
from typing import Dict, Optional

_LOGGER = logging.getLogger(__name__)

_HEX_RE = re.compile(r"[0-9a-f]{12}\Z")


def format_mac(mac: str) -> str:
    """Format a hex MAC string with colons (e.g., aa:bb:cc...)."""
    return ":".join(mac[i : i + 2] for i in range(0, 12, 2))


def normalize_mac(mac: str) -> str:
    """
    Normalize a MAC-like id so the same player always maps to one key.

    Real MAC addresses in any common notation become lowercase and
    colon-separated. Players may also report other unique ids here; those
    are returned stripped but otherwise untouched.
    """
    mac = mac.strip()
    compact = re.sub(r"[:\-.]", "", mac).lower()
    if _HEX_RE.match(compact):
        return format_mac(compact)
    return mac


def decode_properties(props: Optional[Dict[bytes, Optional[bytes]]]) -> Dict[str, str]:
    """Decode zeroconf TXT records into a str -> str mapping."""
    out: Dict[str, str] = {}
    if not props:
        return out
    for k, v in props.items():
        ks = k.decode("utf-8", errors="ignore") if isinstance(k, bytes) else str(k)
        if v is None:
            vs = ""
        elif isinstance(v, bytes):
            vs = v.decode("utf-8", errors="ignore")
        else:
            vs = str(v)
        out[ks] = vs
    return out
