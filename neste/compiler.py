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

"""Jinja2 adapter: compiles template source and executes compiled templates.

Each delimiter pair gets its own :class:`jinja2.Environment`, created on
first use.  Formatters are installed as filters, so a template written with
the default delimiters looks like::

    <h1>{{ title|capFirst }}</h1>
    {% for item in items %}<li>{{ item|e }}</li>
    {% endfor %}

Data passed to :func:`execute` that is not a mapping is available in the
template as ``it``.
"""

from __future__ import annotations

import io
import logging
from collections.abc import Callable, Mapping
from typing import Any, TextIO

from jinja2 import Environment, StrictUndefined, Template, TemplateSyntaxError

from neste.errors import ExecutionError, ParseError
from neste.formatters import Formatter

logger = logging.getLogger(__name__)

DEFAULT_DELIMITERS = ("{{", "}}")
CURSOR_NAME = "it"

# Jinja2 requires these to differ from the variable start string.
_RESERVED_START_STRINGS = ("{%", "{#")


def check_delimiters(left: str, right: str) -> None:
    """Raise :class:`ValueError` for a delimiter pair Jinja2 cannot use."""
    if not left or not right:
        raise ValueError("Delimiters must be non-empty strings")
    if left in _RESERVED_START_STRINGS:
        raise ValueError(f"Left delimiter {left!r} clashes with Jinja2 block or comment syntax")


def _as_filter(name: str, formatter: Formatter) -> Callable[..., str]:
    """Wrap a writer-style formatter as a Jinja2 filter returning text."""

    def _filter(value: Any, *args: Any) -> str:
        buf = io.BytesIO()
        formatter(buf, name, value, *args)
        return buf.getvalue().decode("utf-8", "replace")

    _filter.__name__ = f"neste_{name}"
    return _filter


class Compiler:
    """Compiles template source with a fixed formatter table.

    Args:
        formatters: Formatter table installed into every environment.
    """

    def __init__(self, formatters: Mapping[str, Formatter]) -> None:
        self.formatters = formatters
        self._environments: dict[tuple[str, str], Environment] = {}

    def environment(self, delimiters: tuple[str, str]) -> Environment:
        """Return the Jinja2 environment for *delimiters*, creating it once."""
        key = (delimiters[0], delimiters[1])
        env = self._environments.get(key)
        if env is None:
            check_delimiters(*key)
            env = Environment(
                variable_start_string=key[0],
                variable_end_string=key[1],
                keep_trailing_newline=True,
                autoescape=False,  # formatters do the escaping
                undefined=StrictUndefined,
            )
            env.filters.update(
                {name: _as_filter(name, fmt) for name, fmt in self.formatters.items()}
            )
            self._environments[key] = env
            logger.debug("Created environment for delimiters %r %r", *key)
        return env

    def compile(
        self, source: str, delimiters: tuple[str, str], name: str | None = None,
    ) -> Template:
        """Compile *source* and return the Jinja2 template.

        Raises :class:`ParseError` if the source is malformed.
        """
        env = self.environment(delimiters)
        try:
            compiled = env.from_string(source)
        except TemplateSyntaxError as exc:
            label = name or "<string>"
            raise ParseError(
                f"{label}, line {exc.lineno}: {exc.message}",
                name=name,
                lineno=exc.lineno,
            ) from exc
        logger.debug("Compiled template %s", name or "<string>")
        return compiled


def _context(data: Any) -> Mapping[str, Any]:
    if data is None:
        return {}
    if isinstance(data, Mapping):
        return data
    return {CURSOR_NAME: data}


def execute(compiled: Template, sink: TextIO, data: Any = None) -> None:
    """Apply *compiled* to *data*, streaming output to ``sink.write``.

    Output written before a failure stays in *sink*.  Raises
    :class:`ExecutionError` for missing fields, bad data or a failing
    user formatter.
    """
    try:
        for chunk in compiled.generate(_context(data)):
            sink.write(chunk)
    except Exception as exc:
        raise ExecutionError(str(exc)) from exc
