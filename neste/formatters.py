# neste — nested text templates on top of Jinja2
# Copyright (C) 2024-2026 Dr Horst Herb
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""Built-in formatters and the formatter table.

A formatter is a callable with the signature::

    formatter(writer, name, *values) -> None

``writer`` is a binary sink (anything with ``write(bytes)``), ``name`` is the
name the formatter was invoked under and ``values`` are the piped value
followed by any filter arguments.  Formatters write their output and return
nothing.  Inside a template they are used as ordinary Jinja2 filters::

    {{ title|capFirst }}
    {{ first|html(second, third) }}
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from html import escape as html_escape
from types import MappingProxyType
from typing import Any, BinaryIO

Formatter = Callable[..., None]


def _text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", "surrogateescape")
    return str(value)


def _encode(text: str) -> bytes:
    # Lone surrogates outside the surrogateescape range need surrogatepass.
    try:
        return text.encode("utf-8", "surrogateescape")
    except UnicodeEncodeError:
        return text.encode("utf-8", "surrogatepass")


def value_bytes(*values: Any) -> bytes:
    """Return the bytes a formatter operates on.

    A single ``bytes`` value is used as is.  Anything else is concatenated:
    strings are joined directly, a space goes between two adjacent
    non-string operands.
    """
    if len(values) == 1 and isinstance(values[0], (bytes, bytearray)):
        return bytes(values[0])

    parts: list[str] = []
    prev_is_str = True
    for i, value in enumerate(values):
        is_str = isinstance(value, str)
        if i > 0 and not is_str and not prev_is_str:
            parts.append(" ")
        parts.append(_text(value))
        prev_is_str = is_str
    return _encode("".join(parts))


def html_formatter(writer: BinaryIO, name: str, *values: Any) -> None:
    """Escape ``&``, ``<``, ``>`` and both quote characters for HTML.

    Example::

        {{ value|html }}   or   {{ value|e }}

    If value is ``<b>"x"</b>`` the output is
    ``&lt;b&gt;&quot;x&quot;&lt;/b&gt;``.
    """
    text = value_bytes(*values).decode("utf-8", "surrogateescape")
    writer.write(_encode(html_escape(text, quote=True)))


def add_slashes_formatter(writer: BinaryIO, name: str, *values: Any) -> None:
    """Put a backslash before every double quote.

    Useful for escaping strings in CSV, for example.  Single quotes and
    backslashes are left alone.

    If value is ``"I'm using neste"``, the output is ``\\"I'm using neste\\"``.
    """
    writer.write(value_bytes(*values).replace(b'"', b'\\"'))


def _first_char(data: bytes) -> tuple[str | None, int]:
    # A malformed lead byte counts as a one-byte character.
    for size in range(1, min(4, len(data)) + 1):
        try:
            return data[:size].decode("utf-8"), size
        except UnicodeDecodeError:
            continue
    return None, 1


def cap_first_formatter(writer: BinaryIO, name: str, *values: Any) -> None:
    """Capitalize the first character of the value.

    If value is ``neste``, the output is ``Neste``.
    """
    data = value_bytes(*values)
    if not data:
        return

    char, size = _first_char(data)
    if char is None:
        writer.write(data)
        return

    upper = char.upper()
    if len(upper) != 1:
        # No single code point upper-case form (e.g. "ß").
        upper = char
    writer.write(upper.encode("utf-8"))
    writer.write(data[size:])


BUILTIN_FORMATTERS: Mapping[str, Formatter] = MappingProxyType({
    "html": html_formatter,
    "e": html_formatter,  # shorthand for "html"
    "addSlashes": add_slashes_formatter,
    "capFirst": cap_first_formatter,
})


def merge_formatters(
    builtins: Mapping[str, Formatter],
    user_supplied: Mapping[str, Formatter] | None = None,
) -> Mapping[str, Formatter]:
    """Combine *builtins* with *user_supplied* formatters.

    User formatters win on a name collision.  Neither input is modified;
    the result is a new read-only mapping.
    """
    table = dict(builtins)
    if user_supplied:
        for name, formatter in user_supplied.items():
            if formatter is None:
                raise ValueError(f"Formatter {name!r} must not be None")
            table[name] = formatter
    return MappingProxyType(table)
