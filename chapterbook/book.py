"""In-memory representation of a book and loading it from its source directory."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union

from chapterbook.summary import (
    Link,
    PartTitle,
    SectionNumber,
    Separator,
    Summary,
    SummaryItem,
)
from chapterbook.summary_parser import SummaryParseError, parse_summary

log = logging.getLogger(__name__)

_BOM = "\ufeff"


class BookLoadError(Exception):
    """Raised when a book cannot be loaded from disk."""


@dataclass
class Chapter:
    """A chapter, usually backed by one markdown file, possibly with sub-chapters."""

    name: str
    content: str = ""
    number: SectionNumber | None = None
    sub_items: list[BookItem] = field(default_factory=list)
    path: Path | None = None
    source_path: Path | None = None
    parent_names: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.path is not None and not isinstance(self.path, Path):
            self.path = Path(self.path)
        if self.source_path is not None and not isinstance(self.source_path, Path):
            self.source_path = Path(self.source_path)
        if self.number is not None and not isinstance(self.number, SectionNumber):
            self.number = SectionNumber(self.number)

    @classmethod
    def draft(cls, name: str, parent_names: list[str] | None = None) -> Chapter:
        """Create a draft chapter with no source file and no content."""
        return cls(name=name, parent_names=list(parent_names or []))

    def is_draft(self) -> bool:
        """Whether the chapter has no source markdown file."""
        return self.path is None

    def __str__(self) -> str:
        if self.number is not None:
            return f"{self.number} {self.name}"
        return self.name


BookItem = Union[Chapter, Separator, PartTitle]


@dataclass
class Book:
    """A tree of chapters, separators and part titles."""

    sections: list[BookItem] = field(default_factory=list)

    def __iter__(self) -> Iterator[BookItem]:
        """Iterate depth-first over every item in the book."""
        return _walk(self.sections)

    def for_each(self, func: Callable[[BookItem], BookItem | None]) -> None:
        """Apply ``func`` to every item, children before their parent.

        If ``func`` returns something other than ``None``, that value replaces
        the item in the book.
        """
        _for_each(func, self.sections)

    def push_item(self, item: BookItem) -> Book:
        """Append an item to the top level of the book."""
        self.sections.append(item)
        return self

    def to_json(self) -> dict[str, Any]:
        """Return the book as JSON-ready data."""
        return {
            "sections": [_item_to_json(item) for item in self.sections],
            "__non_exhaustive": None,
        }

    @classmethod
    def from_json(cls, data: dict[str, Any] | str | bytes) -> Book:
        """Build a book from data produced by :meth:`to_json` (or its JSON text)."""
        if isinstance(data, (str, bytes)):
            data = json.loads(data)
        if not isinstance(data, dict):
            raise ValueError("a book must be a JSON object")
        return cls(sections=[_item_from_json(item) for item in data.get("sections", [])])


def _walk(items: list[BookItem]) -> Iterator[BookItem]:
    for item in items:
        yield item
        if isinstance(item, Chapter):
            yield from _walk(item.sub_items)


def _for_each(func: Callable[[BookItem], BookItem | None], items: list[BookItem]) -> None:
    for position, item in enumerate(items):
        if isinstance(item, Chapter):
            _for_each(func, item.sub_items)
        replacement = func(item)
        if replacement is not None:
            items[position] = replacement


def _path_to_json(path: Path | None) -> str | None:
    return None if path is None else str(path)


def _item_to_json(item: BookItem) -> Any:
    if isinstance(item, Separator):
        return "Separator"
    if isinstance(item, PartTitle):
        return {"PartTitle": item.title}
    return {
        "Chapter": {
            "name": item.name,
            "content": item.content,
            "number": None if item.number is None else list(item.number),
            "sub_items": [_item_to_json(sub) for sub in item.sub_items],
            "path": _path_to_json(item.path),
            "source_path": _path_to_json(item.source_path),
            "parent_names": list(item.parent_names),
        }
    }


def _item_from_json(data: Any) -> BookItem:
    if data == "Separator":
        return Separator()
    if isinstance(data, dict) and "PartTitle" in data:
        return PartTitle(str(data["PartTitle"]))
    if isinstance(data, dict) and "Chapter" in data:
        raw = data["Chapter"]
        number = raw.get("number")
        path = raw.get("path")
        source_path = raw.get("source_path")
        return Chapter(
            name=raw["name"],
            content=raw.get("content", ""),
            number=None if number is None else SectionNumber(number),
            sub_items=[_item_from_json(sub) for sub in raw.get("sub_items", [])],
            path=None if path is None else Path(path),
            source_path=None if source_path is None else Path(source_path),
            parent_names=list(raw.get("parent_names", [])),
        )
    raise ValueError(f"unrecognised book item: {data!r}")


def _escape_brackets(text: str) -> str:
    return text.replace("[", "\\[").replace("]", "\\]")


def load_book(src_dir: str | Path, create_missing: bool = True) -> Book:
    """Load a book from its source directory, driven by its ``SUMMARY.md``."""
    src_dir = Path(src_dir)
    summary_md = src_dir / "SUMMARY.md"
    try:
        summary_content = summary_md.read_text(encoding="utf-8")
    except OSError as exc:
        raise BookLoadError(f"Couldn't open SUMMARY.md in {str(src_dir)!r} directory") from exc

    try:
        summary = parse_summary(summary_content)
    except SummaryParseError as exc:
        raise BookLoadError(f"Summary parsing failed for file={str(summary_md)!r}: {exc}") from exc

    if create_missing:
        try:
            _create_missing(src_dir, summary)
        except OSError as exc:
            raise BookLoadError(f"Unable to create missing chapters: {exc}") from exc

    return load_book_from_disk(summary, src_dir)


def _create_missing(src_dir: Path, summary: Summary) -> None:
    pending: list[SummaryItem] = list(summary.all_items())
    while pending:
        item = pending.pop()
        if not isinstance(item, Link):
            continue
        if item.location is not None:
            filename = src_dir / item.location
            if not filename.exists():
                filename.parent.mkdir(parents=True, exist_ok=True)
                log.debug("Creating missing file %s", filename)
                with filename.open("w", encoding="utf-8") as handle:
                    handle.write(f"# {_escape_brackets(item.name)}\n")
        pending.extend(item.nested_items)


def load_book_from_disk(summary: Summary, src_dir: str | Path) -> Book:
    """Load every chapter listed in ``summary`` from files under ``src_dir``."""
    log.debug("Loading the book from disk")
    src_dir = Path(src_dir)
    return Book(sections=[_load_summary_item(item, src_dir, []) for item in summary.all_items()])


def _load_summary_item(item: SummaryItem, src_dir: Path, parent_names: list[str]) -> BookItem:
    if isinstance(item, Separator):
        return Separator()
    if isinstance(item, PartTitle):
        return PartTitle(item.title)
    return _load_chapter(item, src_dir, parent_names)


def _load_chapter(link: Link, src_dir: Path, parent_names: list[str]) -> Chapter:
    if link.location is not None:
        log.debug("Loading %s (%s)", link.name, link.location)
        location = link.location if link.location.is_absolute() else src_dir / link.location
        try:
            with location.open(encoding="utf-8", newline="") as handle:
                content = handle.read()
        except OSError as exc:
            raise BookLoadError(f"Chapter file not found, {link.location}") from exc
        except UnicodeDecodeError as exc:
            raise BookLoadError(f'Unable to read "{link.name}" ({location})') from exc

        if content.startswith(_BOM):
            content = content[len(_BOM):]

        try:
            stripped = location.relative_to(src_dir)
        except ValueError as exc:
            raise BookLoadError(
                f"Chapter {location} is not inside the book source directory {src_dir}"
            ) from exc

        chapter = Chapter(
            name=link.name,
            content=content,
            path=stripped,
            source_path=stripped,
            parent_names=list(parent_names),
        )
    else:
        chapter = Chapter.draft(link.name, parent_names)

    chapter.number = link.number
    sub_parents = [*parent_names, link.name]
    chapter.sub_items = [
        _load_summary_item(nested, src_dir, list(sub_parents)) for nested in link.nested_items
    ]
    return chapter