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

"""Template manager: names, caches and reloads compiled templates.

The manager keeps two independent namespaces, string templates keyed by an
identifier and template files keyed by their filename relative to the base
directory.  Delimiters, formatters and the reload flag are held here and
apply to every template compiled (or recompiled) afterwards.

Usage::

    from neste import Manager

    tm = Manager("templates", reloading=True)
    tm.must_add_file("base.html")
    tm.must_add_file("index.html")

    content = tm.get_file("index.html").render({"rows": rows})
    page = tm.get_file("base.html").render({"title": "Index", "content": content})
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Mapping
from pathlib import Path, PurePath

import jinja2

from neste.compiler import DEFAULT_DELIMITERS, Compiler, check_delimiters
from neste.errors import FailurePolicy, NesteError, TemplateFileError
from neste.formatters import BUILTIN_FORMATTERS, Formatter, merge_formatters
from neste.template import Template, TemplateFile, file_mtime, read_source

logger = logging.getLogger(__name__)

RELOADING_ENV_VAR = "NESTE_RELOADING"
_TRUE_VALUES = ("1", "true", "yes", "on")


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in _TRUE_VALUES


def _normalize(filename: str | PurePath) -> str:
    """Return the key a template file is stored under."""
    return PurePath(filename).as_posix()


class Manager:
    """Registry of compiled string templates and template files.

    Args:
        base_dir: Directory template filenames are relative to.
        formatters: Extra formatters; these take precedence over the
            built-ins with the same name.  The mapping is not modified.
        delimiters: ``(left, right)`` variable delimiters, ``{{``/``}}``
            by default.
        reloading: Reparse changed template files on every render.  When
            ``None``, read from the ``NESTE_RELOADING`` environment variable.
    """

    def __init__(
        self,
        base_dir: str | Path = ".",
        formatters: Mapping[str, Formatter] | None = None,
        *,
        delimiters: tuple[str, str] | None = None,
        reloading: bool | None = None,
    ) -> None:
        left, right = delimiters if delimiters is not None else DEFAULT_DELIMITERS
        check_delimiters(left, right)

        self.lock = threading.RLock()
        self._base_dir = Path(base_dir).expanduser()
        self._delimiters = (left, right)
        self._reloading = _env_flag(RELOADING_ENV_VAR) if reloading is None else bool(reloading)
        self.formatters = merge_formatters(BUILTIN_FORMATTERS, formatters)
        self.compiler = Compiler(self.formatters)
        self._strings: dict[str, Template] = {}
        self._files: dict[str, Template] = {}

    def __repr__(self) -> str:
        return (
            f"<Manager base_dir={str(self._base_dir)!r} "
            f"strings={len(self._strings)} files={len(self._files)}>"
        )

    def __len__(self) -> int:
        return len(self._strings) + len(self._files)

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, (str, PurePath)):
            return False
        return name in self._strings or _normalize(name) in self._files

    # --- Configuration ------------------------------------------------------

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    @property
    def delimiters(self) -> tuple[str, str]:
        return self._delimiters

    @property
    def reloading(self) -> bool:
        return self._reloading

    def set_base_dir(self, base_dir: str | Path) -> None:
        """Change the directory new template files are loaded from.

        Templates already loaded keep reading from their original path.
        """
        with self.lock:
            self._base_dir = Path(base_dir).expanduser()

    def set_delimiters(self, left: str, right: str) -> None:
        """Set the variable delimiters used for subsequent compiles and reloads."""
        check_delimiters(left, right)
        with self.lock:
            self._delimiters = (left, right)

    def set_reloading(self, reloading: bool) -> None:
        """Enable or disable reparsing of changed template files on render."""
        with self.lock:
            self._reloading = bool(reloading)

    def compile(self, source: str, name: str | None = None) -> jinja2.Template:
        """Compile *source* with the current delimiters and formatters."""
        with self.lock:
            return self.compiler.compile(source, self._delimiters, name=name)

    # --- Adding templates ---------------------------------------------------

    def add(
        self,
        source: str,
        identifier: str,
        *,
        policy: FailurePolicy | str = FailurePolicy.PROPAGATE,
    ) -> Template:
        """Compile a template string and store it under *identifier*.

        An existing template with the same identifier is replaced.  On a
        parse error the manager is left unchanged and the error is handled
        according to *policy*.
        """
        policy = FailurePolicy(policy)
        with self.lock:
            try:
                compiled = self.compile(source, name=identifier)
            except NesteError as exc:
                self._load_failed(exc, policy, identifier)
                raise

            template = Template(self, compiled, identifier)
            self._store(self._strings, identifier, template)
        return template

    def must_add(self, source: str, identifier: str) -> Template:
        """Like :meth:`add`, but exits the program if the template can't be parsed."""
        return self.add(source, identifier, policy=FailurePolicy.ABORT)

    def add_file(
        self,
        filename: str | PurePath,
        *,
        strip_newline: bool = True,
        policy: FailurePolicy | str = FailurePolicy.PROPAGATE,
    ) -> Template:
        """Load, compile and store the template file *filename*.

        *filename* is relative to the base directory and is also the key the
        template is stored under.  With *strip_newline* (the default) a
        single trailing newline of the file is ignored so that nesting
        rendered fragments does not accumulate blank lines.
        """
        policy = FailurePolicy(policy)
        key = _normalize(filename)
        with self.lock:
            path = self._base_dir / key
            try:
                mtime = file_mtime(path)
                source = read_source(path, strip_newline)
                compiled = self.compile(source, name=key)
            except NesteError as exc:
                self._load_failed(exc, policy, key)
                raise

            info = TemplateFile(
                filename=key,
                path=path,
                mtime=mtime,
                strict=policy is FailurePolicy.ABORT,
                strip_newline=strip_newline,
            )
            template = Template(self, compiled, key, info)
            self._store(self._files, key, template)

        logger.debug("Loaded template file %s", path)
        return template

    def add_file_nl(
        self,
        filename: str | PurePath,
        *,
        policy: FailurePolicy | str = FailurePolicy.PROPAGATE,
    ) -> Template:
        """Like :meth:`add_file`, but keeps the file's trailing newline."""
        return self.add_file(filename, strip_newline=False, policy=policy)

    def must_add_file(self, filename: str | PurePath) -> Template:
        """Like :meth:`add_file`, but exits the program on failure."""
        return self.add_file(filename, policy=FailurePolicy.ABORT)

    def must_add_file_nl(self, filename: str | PurePath) -> Template:
        """Like :meth:`add_file_nl`, but exits the program on failure."""
        return self.add_file(filename, strip_newline=False, policy=FailurePolicy.ABORT)

    def add_directory(
        self,
        dirname: str | PurePath = "",
        *,
        strip_newline: bool = True,
        policy: FailurePolicy | str = FailurePolicy.ABORT,
    ) -> list[Template]:
        """Load every regular file below ``base_dir / dirname``.

        Each file is keyed by its path relative to the base directory.
        Exits the program on the first failure unless *policy* says
        otherwise.  Under ``PROPAGATE`` the load is not all-or-nothing:
        files loaded before the failing one stay in the manager.
        """
        policy = FailurePolicy(policy)
        templates: list[Template] = []
        with self.lock:
            root = self._base_dir / dirname
            if not root.is_dir():
                exc = TemplateFileError(f"Template directory {root} does not exist", path=str(root))
                self._load_failed(exc, policy, str(root))
                raise exc

            for dirpath, dirnames, filenames in os.walk(root):
                dirnames.sort()
                for name in sorted(filenames):
                    path = os.path.join(dirpath, name)
                    if not os.path.isfile(path):
                        continue
                    relative = os.path.relpath(path, self._base_dir)
                    templates.append(
                        self.add_file(relative, strip_newline=strip_newline, policy=policy)
                    )

        logger.info("Loaded %d template files from %s", len(templates), root)
        return templates

    # --- Lookup and removal -------------------------------------------------

    def get(self, identifier: str) -> Template | None:
        """Return the string template *identifier*, or ``None``."""
        return self._strings.get(identifier)

    def get_file(self, filename: str | PurePath) -> Template | None:
        """Return the template file *filename*, or ``None``."""
        return self._files.get(_normalize(filename))

    def identifiers(self) -> list[str]:
        return list(self._strings)

    def filenames(self) -> list[str]:
        return list(self._files)

    def remove(self, identifier: str) -> bool:
        """Remove a string template.  Returns ``True`` if one was removed."""
        with self.lock:
            template = self._strings.pop(identifier, None)
            if template is not None:
                template._detach()
        return template is not None

    def remove_file(self, filename: str | PurePath) -> bool:
        """Remove a template file.  Returns ``True`` if one was removed."""
        with self.lock:
            template = self._files.pop(_normalize(filename), None)
            if template is not None:
                template._detach()
        return template is not None

    def clear(self) -> bool:
        """Remove all templates.  Returns ``True`` if any were removed."""
        with self.lock:
            removed = [*self._strings.values(), *self._files.values()]
            self._strings = {}
            self._files = {}
            for template in removed:
                template._detach()
        if removed:
            logger.debug("Cleared %d templates", len(removed))
        return bool(removed)

    def reload_all(self) -> list[str]:
        """Reload every template file whose file changed.

        Returns the filenames that were recompiled.  Stops at the first
        failure, raising its error.
        """
        with self.lock:
            templates = list(self._files.values())
            return [t.name for t in templates if t.reload()]

    # --- Internals ----------------------------------------------------------

    @staticmethod
    def _store(namespace: dict[str, Template], key: str, template: Template) -> None:
        previous = namespace.get(key)
        if previous is not None:
            previous._detach()
        namespace[key] = template

    @staticmethod
    def _load_failed(exc: NesteError, policy: FailurePolicy, name: str) -> None:
        """Log a load failure; raise :class:`SystemExit` under ``ABORT``."""
        if policy is FailurePolicy.ABORT:
            logger.critical("Cannot load template %s: %s", name, exc)
            raise SystemExit(f"neste: cannot load template {name}: {exc}") from exc
        logger.warning("Cannot load template %s: %s", name, exc)
