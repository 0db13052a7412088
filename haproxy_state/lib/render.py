from __future__ import annotations

from typing import Any, List, Mapping

from ..errors import InvalidOptionValueError


def _option_line(indent: str, name: str, value: str) -> str:
    if value == "":
        return f"{indent}{name}\n"
    return f"{indent}{name} {value}\n"


def render_options(options: Mapping[str, Any], *, indent: str = "") -> str:
    """Render an option mapping as HAProxy config lines.

    Keys are emitted in insertion order. A list value emits one line per
    element; an empty string emits the bare option name.
    """

    lines: List[str] = []
    for name, value in options.items():
        if not isinstance(name, str):
            raise InvalidOptionValueError(name, name)
        if isinstance(value, str):
            lines.append(_option_line(indent, name, value))
        elif isinstance(value, (list, tuple)):
            for item in value:
                if not isinstance(item, str):
                    raise InvalidOptionValueError(name, item)
                lines.append(_option_line(indent, name, item))
        else:
            raise InvalidOptionValueError(name, value)
    return "".join(lines)


def render_section(keyword: str, options: Mapping[str, Any], *, indent: str = "  ") -> str:
    """Render a section header (global, defaults, listen ...) and its options."""

    return f"{keyword}\n" + render_options(options, indent=indent)
