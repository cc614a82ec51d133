"""Book configuration: loading ``book.toml`` text, dotted-key access and renderer selection."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from typing import Any

COMMAND_PREFIX = "chapterbook-"
DEFAULT_RENDERER = "html"
BUILTIN_RENDERERS = frozenset({"html", "markdown"})

Config = dict[str, Any]


class ConfigError(Exception):
    """Raised when configuration text or values are invalid."""


@dataclass(frozen=True)
class RendererSpec:
    """A renderer to run: a built-in one, or an external command."""

    name: str
    command: str | None = None

    @property
    def is_builtin(self) -> bool:
        """Whether this renderer is provided by the package rather than a command."""
        return self.command is None


def load_config(text: str) -> Config:
    """Parse TOML configuration text into a nested dictionary."""
    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid configuration file: {exc}") from exc


def _split_key(key: str) -> list[str]:
    parts = key.split(".")
    if not key or any(not part for part in parts):
        raise ConfigError(f"Invalid configuration key: {key!r}")
    return parts


def config_get(config: Config, key: str) -> Any:
    """Look up a dotted key such as ``output.html.theme``; ``None`` when absent."""
    current: Any = config
    for part in _split_key(key):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


def config_set(config: Config, key: str, value: Any) -> None:
    """Set a dotted key, creating intermediate tables as needed."""
    *parents, last = _split_key(key)
    current: Any = config
    for part in parents:
        current = current.setdefault(part, {})
        if not isinstance(current, dict):
            raise ConfigError(f"Unable to set {key!r}: {part!r} is not a table")
    current[last] = value


def get_preprocessor_table(config: Config, name: str) -> dict[str, Any] | None:
    """Return the ``preprocessor.<name>`` table, or ``None`` if there is none."""
    table = config_get(config, "preprocessor")
    if not isinstance(table, dict):
        return None
    entry = table.get(name)
    return entry if isinstance(entry, dict) else None


def use_default_preprocessors(config: Config) -> bool:
    """Whether the built-in preprocessors are enabled (``build.use-default-preprocessors``)."""
    value = config_get(config, "build.use-default-preprocessors")
    if value is None:
        return True
    if not isinstance(value, bool):
        raise ConfigError("build.use-default-preprocessors must be a boolean")
    return value


def interpret_custom_renderer(key: str, table: Any) -> RendererSpec:
    """Build the spec for an external renderer, falling back to a prefixed command name."""
    command = table.get("command") if isinstance(table, dict) else None
    if not isinstance(command, str):
        command = f"{COMMAND_PREFIX}{key}"
    return RendererSpec(name=key, command=command)


def determine_renderers(config: Config) -> list[RendererSpec]:
    """Work out which renderers to run from the ``output`` table, defaulting to HTML."""
    renderers: list[RendererSpec] = []
    output = config_get(config, "output")
    if isinstance(output, dict):
        for key in sorted(output):
            if key in BUILTIN_RENDERERS:
                renderers.append(RendererSpec(name=key))
            else:
                renderers.append(interpret_custom_renderer(key, output[key]))
    if not renderers:
        renderers.append(RendererSpec(name=DEFAULT_RENDERER))
    return renderers