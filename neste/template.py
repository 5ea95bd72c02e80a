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

"""Compiled templates and their file provenance.

A :class:`Template` is handed out by :class:`~neste.manager.Manager` and
keeps its identity for as long as the manager holds it: reloading a
template file swaps the compiled Jinja2 template inside the same object,
so callers may keep references around.
"""

from __future__ import annotations

import io
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, TextIO

import jinja2

from neste.compiler import execute
from neste.errors import NesteError, TemplateFileError

if TYPE_CHECKING:
    from neste.manager import Manager

logger = logging.getLogger(__name__)


@dataclass
class TemplateFile:
    """Where a file-backed template came from.

    Attributes:
        filename: Key of the template, relative to the manager's base directory.
        path: Joined path that is stat'ed and read.
        mtime: Last recorded modification time in nanoseconds.
        strict: Loaded with the abort-on-failure policy.
        strip_newline: One trailing newline is dropped when reading.
    """

    filename: str
    path: Path
    mtime: int
    strict: bool = False
    strip_newline: bool = True


def file_mtime(path: Path) -> int:
    """Return the modification time of *path* in nanoseconds."""
    try:
        return os.stat(path).st_mtime_ns
    except OSError as exc:
        raise TemplateFileError(f"Cannot stat template file {path}: {exc}", path=str(path)) from exc


def read_source(path: Path, strip_newline: bool = True) -> str:
    """Read a template file as UTF-8 text.

    With *strip_newline* a single trailing ``\\n`` is removed if present,
    which keeps nested fragments from piling up blank lines.
    """
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise TemplateFileError(f"Cannot read template file {path}: {exc}", path=str(path)) from exc

    if strip_newline and data.endswith(b"\n"):
        data = data[:-1]

    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise TemplateFileError(
            f"Template file {path} is not valid UTF-8: {exc}", path=str(path),
        ) from exc


class Template:
    """A compiled template owned by a :class:`~neste.manager.Manager`.

    Args:
        manager: Owning manager; supplies the reload flag and the
            configuration used when recompiling.
        compiled: Compiled Jinja2 template.
        name: Identifier for string templates, filename for file templates.
        file: Provenance for file-backed templates, ``None`` otherwise.
    """

    def __init__(
        self,
        manager: Manager,
        compiled: jinja2.Template,
        name: str,
        file: TemplateFile | None = None,
    ) -> None:
        self._manager: Manager | None = manager
        self._compiled = compiled
        self.name = name
        self.file = file

    def __repr__(self) -> str:
        kind = "file" if self.file is not None else "string"
        return f"<Template {kind} {self.name!r}>"

    @property
    def compiled(self) -> jinja2.Template:
        """The current compiled Jinja2 template."""
        return self._compiled

    @property
    def attached(self) -> bool:
        """Whether the template is still held by its manager."""
        return self._manager is not None

    def _detach(self) -> None:
        self._manager = None

    def execute(self, sink: TextIO, data: Any = None) -> None:
        """Apply the template to *data*, writing output to *sink*.

        If this is a template file and the manager has reloading enabled,
        the file is reparsed first when its modification time has changed;
        a failed reload is raised and nothing is written.
        """
        manager = self._manager
        if self.file is not None and manager is not None and manager.reloading:
            self.reload()
        execute(self._compiled, sink, data)

    def render(self, data: Any = None) -> str:
        """Apply the template to *data* and return the output.

        On error nothing is returned; the exception propagates and any
        partially generated output is discarded.
        """
        buf = io.StringIO()
        self.execute(buf, data)
        return buf.getvalue()

    def is_stale(self) -> bool:
        """Whether the backing file changed since it was last compiled."""
        if self.file is None:
            return False
        return file_mtime(self.file.path) > self.file.mtime

    def reload(self) -> bool:
        """Reparse the template file if its modification time has changed.

        Uses the manager's current delimiters and formatters.  Returns
        ``True`` if the template was recompiled.  On a missing file or a
        parse error the previous compiled template stays in place and the
        error is raised.  Calling this is unnecessary when the manager has
        reloading enabled.
        """
        if self.file is None:
            return False

        manager = self._manager
        if manager is None:
            raise NesteError(f"Template {self.name!r} is no longer held by a manager")

        info = self.file
        with manager.lock:
            try:
                if file_mtime(info.path) <= info.mtime:
                    return False
                source = read_source(info.path, info.strip_newline)
                compiled = manager.compile(source, name=info.filename)
                mtime = file_mtime(info.path)
            except NesteError as exc:
                logger.warning("Reload of %s failed, keeping previous version: %s", info.path, exc)
                raise

            self._compiled = compiled
            info.mtime = mtime

        logger.info("Reloaded template %s", info.filename)
        return True
