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

"""Nested text templates on top of Jinja2.

Names and manages compiled templates (from strings or files), renders them
straight to strings for nesting into parent templates, reparses changed
template files on demand and adds a few built-in formatters.

Usage::

    from neste import Manager

    tm = Manager("templates")
    head = tm.must_add_file("head.html").render({"title": "Page"})
    page = tm.must_add_file("index.html").render({"head": head})
"""

from neste.compiler import CURSOR_NAME, DEFAULT_DELIMITERS
from neste.errors import ExecutionError, FailurePolicy, NesteError, ParseError, TemplateFileError
from neste.formatters import BUILTIN_FORMATTERS, merge_formatters
from neste.manager import Manager
from neste.template import Template, TemplateFile

__all__ = [
    "BUILTIN_FORMATTERS",
    "CURSOR_NAME",
    "DEFAULT_DELIMITERS",
    "ExecutionError",
    "FailurePolicy",
    "Manager",
    "NesteError",
    "ParseError",
    "Template",
    "TemplateFile",
    "TemplateFileError",
    "merge_formatters",
]
