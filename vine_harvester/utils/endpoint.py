"""Endpoint template rendering.

Data-source endpoints carry ``{placeholder}`` markers such as ``{lat}``,
``{lon}``, ``{date}``, ``{polygon}``, ``{apiKey}``, ``{startDate}`` or
``{lonLeft}``.  The reconciler registers endpoints verbatim; callers that
issue the request resolve them with ``render_endpoint``.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import date, datetime
from urllib.parse import quote

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def placeholders(template: str) -> list[str]:
    """Placeholder names in *template*, in order of first appearance."""
    seen: dict[str, None] = {}
    for match in _PLACEHOLDER.finditer(template):
        seen.setdefault(match.group(1), None)
    return list(seen)


def render_endpoint(template: str, values: Mapping[str, object], *, quote_values: bool = True) -> str:
    """Substitute known placeholders; unknown ones are left intact.

    Dates render as ``YYYY-MM-DD`` and datetimes as ISO 8601.  Values
    are percent-encoded unless *quote_values* is false.
    """

    def _substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in values:
            return match.group(0)
        text = _format_value(values[name])
        return quote(text, safe=",:") if quote_values else text

    return _PLACEHOLDER.sub(_substitute, template)


def _format_value(value: object) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)
