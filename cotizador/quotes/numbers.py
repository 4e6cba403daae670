# cotizador/quotes/numbers.py
"""Parsing and formatting of es-CO numbers and peso amounts."""

import math
import re

_STRIP_RE   = re.compile(r'[^0-9.,]')
_PREFIX_RE  = re.compile(r'\d+(?:\.\d*)?|\.\d+')


def parse_number(value) -> float:
    """Turn user-typed text such as ``"1.250,5"`` into ``1250.5``.

    ``.`` is a thousands separator and is dropped, ``,`` is the decimal
    mark.  Everything other than digits and those two separators is
    discarded, except a ``-`` typed before the first digit which keeps
    the value negative.  Like JavaScript's ``parseFloat`` only the
    leading numeric part counts (``"1,2,3"`` -> ``1.2``).  Text that
    holds no number gives ``0``.  Numbers are returned unchanged.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value

    text = str(value or '')
    first_digit = re.search(r'\d', text)
    negative = bool(first_digit) and '-' in text[:first_digit.start()]

    cleaned = _STRIP_RE.sub('', text).replace('.', '').replace(',', '.')
    match = _PREFIX_RE.match(cleaned)
    if not match:
        return 0.0
    number = float(match.group(0))
    if not math.isfinite(number):
        return 0.0
    return -number if negative and number else number


def _coerce(value) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _group(digits: str) -> str:
    parts = []
    while len(digits) > 3:
        parts.append(digits[-3:])
        digits = digits[:-3]
    parts.append(digits)
    return '.'.join(reversed(parts))


def format_cop(value) -> str:
    """Colombian pesos without decimals: 11900 -> '$11.900'."""
    number = _coerce(value)
    # half away from zero
    rounded = int(math.floor(abs(number) + 0.5))
    sign = '-' if number < 0 and rounded else ''
    return f"{sign}${_group(str(rounded))}"


def _plain(number: float) -> str:
    text = f"{_coerce(number):.4f}".rstrip('0').rstrip('.')
    if text in ('-0', ''):
        text = '0'
    return text.replace('.', ',')


def format_percent(value) -> str:
    """Percentage label: 19 -> '19', 19.5 -> '19,5'."""
    return _plain(parse_number(value))


def format_quantity(value) -> str:
    """Quantity cell: 10.0 -> '10', 2.5 -> '2,5'."""
    return _plain(parse_number(value))


def to_input_text(value) -> str:
    """Text for a numeric form field; numbers become es-CO text (2.5 -> '2,5')."""
    if value is None:
        return ''
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _plain(value)
    return str(value)
