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

"""Exceptions raised by neste and the load-failure policy."""

from __future__ import annotations

from enum import Enum


class NesteError(Exception):
    """Base class for all neste errors."""


class ParseError(NesteError):
    """Template source could not be compiled."""

    def __init__(self, message: str, name: str | None = None, lineno: int | None = None) -> None:
        self.name = name
        self.lineno = lineno
        super().__init__(message)


class TemplateFileError(NesteError):
    """Template file is missing or unreadable."""

    def __init__(self, message: str, path: str | None = None) -> None:
        self.path = path
        super().__init__(message)


class ExecutionError(NesteError):
    """Applying a compiled template to data failed."""


class FailurePolicy(Enum):
    """What a loader does when a template cannot be read or compiled.

    ``PROPAGATE`` raises the :class:`NesteError` to the caller and leaves the
    manager untouched.  ``ABORT`` logs the failure and raises
    :class:`SystemExit`; meant for start-up loading where a broken template
    should stop the program.
    """

    PROPAGATE = "propagate"
    ABORT = "abort"
