"""
Content identifier normalization

The catalog returns identifiers as strings or numbers depending on the
endpoint, the annotation store keeps them as TEXT, and numeric JSON
encoders may emit ``125266.0``. Every equality comparison across sources
goes through ``normalize_content_id``.
"""

import math
import re
from typing import Any

# Plain decimal integers, optionally followed by a zero fraction ("125266.000")
_INTEGRAL_TEXT = re.compile(r"([+-]?)(\d+)(?:\.0*)?", re.ASCII)


def normalize_content_id(content_id: Any) -> str:
    """
    Return the canonical trimmed decimal-integer form of an identifier.

    Never raises: anything that is not a plain decimal integer (exponent
    notation, fractions, free text) falls back to ``str(value).strip()``.

    Numbers and strings differ for fractional values: a float is floored
    (``125266.5`` -> ``'125266'``) while the string ``"125266.5"`` is kept
    as is. Catalog and store identifiers are always integral, so the two
    only diverge for input that matches nothing anyway.

    Examples:
        >>> normalize_content_id(125266)
        '125266'
        >>> normalize_content_id(" 125266 ")
        '125266'
        >>> normalize_content_id(125266.0)
        '125266'
        >>> normalize_content_id("125266.0")
        '125266'
        >>> normalize_content_id("1e5")
        '1e5'
    """
    if content_id is None:
        return ""

    if isinstance(content_id, bool):
        return str(content_id)

    if isinstance(content_id, int):
        return str(content_id)

    if isinstance(content_id, float):
        if math.isfinite(content_id):
            return str(math.floor(content_id))
        return str(content_id)

    text = str(content_id).strip()
    match = _INTEGRAL_TEXT.fullmatch(text)
    if match is None:
        return text

    sign, digits = match.groups()
    return digits if sign != "-" else f"-{digits}"
