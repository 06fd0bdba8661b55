"""Hex color parsing for subtitle styling.

Colors arrive from requests as ``#RRGGBB`` (opaque) or ``#RRGGBBAA``. The
ASS format stores colors as ``&HAABBGGRR`` where alpha ``00`` is opaque and
``FF`` is fully transparent; the AA byte of the input is carried over as-is.
"""

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_TEXT_COLOR = "#FFFFFF"
DEFAULT_BACKGROUND_COLOR = "#00000080"

_HEX_COLOR = re.compile(r"^#?([0-9a-fA-F]{6})([0-9a-fA-F]{2})?$")


@dataclass(frozen=True)
class AssColor:
    """An RGBA color in ASS byte order."""

    red: int
    green: int
    blue: int
    alpha: int = 0

    @property
    def bgr(self) -> str:
        """``BBGGRR`` hex, as used by ``\\c`` override tags."""
        return f"{self.blue:02X}{self.green:02X}{self.red:02X}"

    @property
    def alpha_hex(self) -> str:
        return f"{self.alpha:02X}"

    @property
    def ass(self) -> str:
        """Full ``&HAABBGGRR`` value for style lines."""
        return f"&H{self.alpha_hex}{self.bgr}"

    @property
    def is_opaque(self) -> bool:
        return self.alpha == 0


def parse_hex_color(value: str) -> AssColor:
    """Parse a ``#RRGGBB`` or ``#RRGGBBAA`` string.

    Raises:
        ValueError: If the value is not a valid hex color
    """
    match = _HEX_COLOR.match(value.strip())
    if not match:
        raise ValueError(f"Invalid hex color: {value!r}")
    rgb, alpha = match.groups()
    return AssColor(
        red=int(rgb[0:2], 16),
        green=int(rgb[2:4], 16),
        blue=int(rgb[4:6], 16),
        alpha=int(alpha, 16) if alpha else 0,
    )


def resolve_color(value: str | None, default: str) -> AssColor:
    """Resolve a user-supplied color, falling back to ``default`` on bad input.

    Args:
        value: Hex color from the request, or None
        default: Hex color used when value is missing or malformed

    Returns:
        Parsed color (never raises for malformed ``value``)
    """
    if value:
        try:
            return parse_hex_color(value)
        except ValueError:
            logger.warning(f"Ignoring invalid color {value!r}, using {default}")
    return parse_hex_color(default)
