"""Small helpers that build JSON and GeoJSON text."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


def _escape_char(ch: str) -> str:
    escaped = _ESCAPES.get(ch)
    if escaped is not None:
        return escaped
    if ord(ch) < 0x20:
        return f"\\u{ord(ch):04x}"
    return ch


def escape_string(text: str) -> str:
    """Escape ``text`` for use inside a JSON string literal."""
    return "".join(_escape_char(ch) for ch in text)


def _quoted(text: str) -> str:
    return f'"{escape_string(text)}"'


def to_json_object(props: Mapping[str, str]) -> str:
    """Render a string-to-string mapping as a JSON object with sorted keys."""
    members = ",".join(
        f"{_quoted(key)}:{_quoted(props[key])}" for key in sorted(props)
    )
    return "{" + members + "}"


def to_json_array(items: Iterable[str]) -> str:
    """Render strings as a JSON array, keeping their order."""
    return "[" + ",".join(_quoted(item) for item in items) + "]"


def _number(value: float) -> str:
    return format(value, ".15g")


def point_to_geojson(x: float, y: float, z: float | None = None) -> str:
    """Return a GeoJSON Point, two- or three-dimensional."""
    coords = [x, y] if z is None else [x, y, z]
    joined = ",".join(_number(c) for c in coords)
    return '{"type":"Point","coordinates":[' + joined + "]}"