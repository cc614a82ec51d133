"""Choosing which preprocessors run, in what order, and for which renderers."""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from typing import Any, Protocol

from chapterbook.config import (
    COMMAND_PREFIX,
    Config,
    config_get,
    use_default_preprocessors,
)

log = logging.getLogger(__name__)

LINKS = "links"
INDEX = "index"
DEFAULT_PREPROCESSORS = (LINKS, INDEX)


class PipelineError(Exception):
    """Raised when the preprocessor configuration is invalid or cyclic."""


class _Preprocessor(Protocol):
    name: str

    def supports_renderer(self, renderer: str) -> bool: ...


@dataclass(frozen=True)
class StepSpec:
    """A preprocessor to run: a built-in one, or an external command."""

    name: str
    command: str | None = None

    @property
    def is_builtin(self) -> bool:
        """Whether this preprocessor is provided by the package rather than a command."""
        return self.command is None

    def supports_renderer(self, renderer: str) -> bool:
        """Whether this preprocessor should run for ``renderer``.

        Built-in steps support every renderer. An external command is asked by
        running it with ``supports <renderer>``; exit status zero means yes.
        """
        if self.command is None:
            return True
        try:
            args = shlex.split(self.command)
        except ValueError as exc:
            log.warning("Unable to parse the command for %r: %s", self.name, exc)
            return False
        if not args:
            log.warning("The command for the %r preprocessor is empty", self.name)
            return False
        try:
            completed = subprocess.run(
                [*args, "supports", renderer],
                stdin=subprocess.DEVNULL,
                check=False,
            )
        except OSError as exc:
            log.warning(
                "The command %r wasn't found, is the %r preprocessor installed? (%s)",
                self.command,
                self.name,
                exc,
            )
            return False
        return completed.returncode == 0


def is_default_preprocessor(name: str) -> bool:
    """Whether ``name`` is one of the built-in preprocessors."""
    return name in DEFAULT_PREPROCESSORS


def get_custom_preprocessor_cmd(key: str, table: Any) -> str:
    """The command for an external preprocessor, falling back to a prefixed name."""
    command = table.get("command") if isinstance(table, dict) else None
    if isinstance(command, str):
        return command
    return f"{COMMAND_PREFIX}{key}"


class _TopologicalSort:
    """Nodes with "comes before" edges, popped layer by layer."""

    def __init__(self) -> None:
        self._predecessors: dict[str, set[str]] = {}

    def insert(self, name: str) -> None:
        self._predecessors.setdefault(name, set())

    def add_dependency(self, first: str, then: str) -> None:
        self.insert(first)
        self.insert(then)
        self._predecessors[then].add(first)

    def pop_all(self) -> list[str]:
        ready = [name for name, preds in self._predecessors.items() if not preds]
        for name in ready:
            del self._predecessors[name]
        for preds in self._predecessors.values():
            preds.difference_update(ready)
        return ready

    def __len__(self) -> int:
        return len(self._predecessors)


def _string_list(table: dict[str, Any], name: str, key: str) -> list[str] | None:
    value = table.get(key)
    if value is None:
        return None
    if not isinstance(value, list):
        raise PipelineError(f"Expected preprocessor.{name}.{key} to be an array")
    if not all(isinstance(entry, str) for entry in value):
        raise PipelineError(f"Expected preprocessor.{name}.{key} to contain strings")
    return value


def determine_preprocessors(config: Config) -> list[StepSpec]:
    """Work out which preprocessors to run, ordered by their before/after constraints.

    Ties are broken by sorting names by code point, so the order is stable.
    """
    defaults_enabled = use_default_preprocessors(config)
    ordering = _TopologicalSort()

    if defaults_enabled:
        for name in DEFAULT_PREPROCESSORS:
            ordering.insert(name)

    table = config_get(config, "preprocessor")
    if not isinstance(table, dict):
        table = {}

    def exists(name: str) -> bool:
        return (defaults_enabled and name in DEFAULT_PREPROCESSORS) or name in table

    for name, entry in table.items():
        ordering.insert(name)
        if not isinstance(entry, dict):
            continue

        for later in _string_list(entry, name, "before") or ():
            if exists(later):
                ordering.add_dependency(name, later)
            else:
                log.warning(
                    'preprocessor.%s.before contains "%s", which was not found', name, later
                )

        for earlier in _string_list(entry, name, "after") or ():
            if exists(earlier):
                ordering.add_dependency(earlier, name)
            else:
                log.warning(
                    'preprocessor.%s.after contains "%s", which was not found', name, earlier
                )

    steps: list[StepSpec] = []
    while layer := ordering.pop_all():
        for name in sorted(layer):
            if name in DEFAULT_PREPROCESSORS:
                steps.append(StepSpec(name=name))
            else:
                steps.append(
                    StepSpec(name=name, command=get_custom_preprocessor_cmd(name, table[name]))
                )

    if len(ordering):
        raise PipelineError("Cyclic dependency detected in preprocessors")
    return steps


def preprocessor_should_run(
    preprocessor: _Preprocessor, renderer_name: str, config: Config
) -> bool:
    """Decide whether ``preprocessor`` runs for the renderer called ``renderer_name``.

    Built-in preprocessors run whenever they support the renderer (if enabled).
    Otherwise ``preprocessor.<name>.renderers`` decides when it is a list, and
    the preprocessor's own ``supports_renderer`` decides when it is not.
    """
    name = preprocessor.name
    if use_default_preprocessors(config) and is_default_preprocessor(name):
        return preprocessor.supports_renderer(renderer_name)

    explicit = config_get(config, f"preprocessor.{name}.renderers")
    if isinstance(explicit, list):
        return any(isinstance(entry, str) and entry == renderer_name for entry in explicit)

    return preprocessor.supports_renderer(renderer_name)