"""Generated placeholder avatars for members without an image URL."""
from __future__ import annotations

import base64
from typing import Final

AVATAR_COLORS: Final[tuple[str, ...]] = (
    "#4a90e2",
    "#50e3c2",
    "#bd10e0",
    "#f5a623",
    "#f8e71c",
    "#7ed321",
    "#9013fe",
    "#b8e986",
    "#417505",
    "#d0021b",
)

_SVG_TEMPLATE: Final = (
    '<svg width="200" height="200" viewBox="0 0 200 200" xmlns="http://www.w3.org/2000/svg">'
    '<rect width="100%" height="100%" fill="{color}" />'
    '<text x="50%" y="50%" dominant-baseline="central" text-anchor="middle" '
    "font-family=\"-apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, "
    "'Helvetica Neue', Arial, sans-serif\" "
    'font-size="100" font-weight="bold" fill="#ffffff">{initial}</text>'
    "</svg>"
)


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value >= 0x80000000 else value


def name_hash(name: str) -> int:
    """31-multiplier string hash over UTF-16 code units with 32-bit shift semantics.

    Only the shift wraps to 32 bits; the running value does not, so the same
    name always lands on the same palette colour as the browser client.
    """
    units = name.encode("utf-16-le")
    result = 0
    for index in range(0, len(units), 2):
        code = int.from_bytes(units[index:index + 2], "little")
        result = code + (_to_int32(_to_int32(result) << 5) - result)
    return result


def avatar_color(name: str) -> str:
    return AVATAR_COLORS[abs(name_hash(name)) % len(AVATAR_COLORS)]


def generate_avatar(name: str) -> str:
    """Return an SVG data URL showing the name's initial, or "" for an empty name."""
    if not name:
        return ""
    svg = _SVG_TEMPLATE.format(color=avatar_color(name), initial=name[0].upper())
    return "data:image/svg+xml;base64," + base64.b64encode(svg.encode("utf-8")).decode("ascii")
