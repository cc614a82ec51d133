"""A preprocessor that hands the book back unchanged, usable as a command."""

from __future__ import annotations

import argparse
import json
import re
import sys
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any

from chapterbook.book import Book
from chapterbook.config import Config, get_preprocessor_table

BUILT_AGAINST_VERSION = "0.4.21"

_VERSION_RE = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-([0-9A-Za-z.-]+))?(?:\+([0-9A-Za-z.-]+))?$"
)


def _parse_version(text: str) -> tuple[tuple[int, int, int], str | None]:
    match = _VERSION_RE.match(text.strip())
    if match is None:
        raise ValueError(f"unexpected version string: {text!r}")
    major, minor, patch, pre, _build = match.groups()
    return (int(major), int(minor), int(patch)), pre


def _caret_matches(requirement: str, version: str) -> bool:
    """Whether ``version`` satisfies the caret requirement ``^requirement``."""
    (req, req_pre) = _parse_version(requirement)
    (ver, ver_pre) = _parse_version(version)
    if ver_pre is not None and (req_pre is None or ver != req):
        return False
    if ver < req:
        return False
    if req[0] > 0:
        return ver[0] == req[0]
    if req[1] > 0:
        return ver[0] == 0 and ver[1] == req[1]
    return ver == req


@dataclass
class PreprocessorContext:
    """What a preprocessor is told about the book it is run on."""

    root: Path
    config: Config = field(default_factory=dict)
    renderer: str = ""
    mdbook_version: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.root, Path):
            self.root = Path(self.root)

    @classmethod
    def from_json(cls, data: Any) -> PreprocessorContext:
        """Build a context from its decoded JSON object."""
        if not isinstance(data, dict):
            raise ValueError("the preprocessor context must be a JSON object")
        config = data.get("config", {})
        if not isinstance(config, dict):
            raise ValueError("the preprocessor context's config must be an object")
        try:
            return cls(
                root=Path(data["root"]),
                config=config,
                renderer=str(data["renderer"]),
                mdbook_version=str(data["mdbook_version"]),
            )
        except KeyError as exc:
            raise ValueError(f"the preprocessor context is missing {exc.args[0]!r}") from exc


class NopPreprocessor:
    """A preprocessor which does precisely nothing."""

    name = "nop-preprocessor"

    def run(self, ctx: PreprocessorContext, book: Book) -> Book:
        """Return the book untouched, unless the config asks it to fail."""
        table = get_preprocessor_table(ctx.config, self.name)
        if table is not None and "blow-up" in table:
            raise RuntimeError("Boom!!1!")
        return book

    def supports_renderer(self, renderer: str) -> bool:
        """Every renderer is supported except one called ``not-supported``."""
        return renderer != "not-supported"


def parse_input(stream: IO[str] | IO[bytes]) -> tuple[PreprocessorContext, Book]:
    """Read the ``[context, book]`` JSON pair a preprocessor receives on its input."""
    try:
        data = json.loads(stream.read())
    except json.JSONDecodeError as exc:
        raise ValueError(f"Unable to parse the input: {exc}") from exc
    if not isinstance(data, list) or len(data) != 2:
        raise ValueError("Unable to parse the input: expected a [context, book] pair")
    raw_ctx, raw_book = data
    return PreprocessorContext.from_json(raw_ctx), Book.from_json(raw_book)


def _make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=NopPreprocessor.name,
        description="A book preprocessor which does precisely nothing",
    )
    sub = parser.add_subparsers(dest="command")
    supports = sub.add_parser(
        "supports", help="Check whether a renderer is supported by this preprocessor"
    )
    supports.add_argument("renderer")
    return parser


def _handle_preprocessing(pre: NopPreprocessor) -> None:
    ctx, book = parse_input(sys.stdin)
    if not _caret_matches(BUILT_AGAINST_VERSION, ctx.mdbook_version):
        print(
            f"Warning: The {pre.name} plugin was built against version "
            f"{BUILT_AGAINST_VERSION} of the book tool, but we're being called "
            f"from version {ctx.mdbook_version}",
            file=sys.stderr,
        )
    processed = pre.run(ctx, book)
    json.dump(processed.to_json(), sys.stdout)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the preprocessor; return the process exit status."""
    args = _make_parser().parse_args(argv)
    preprocessor = NopPreprocessor()

    if args.command == "supports":
        return 0 if preprocessor.supports_renderer(args.renderer) else 1

    try:
        _handle_preprocessing(preprocessor)
    except (ValueError, RuntimeError) as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())