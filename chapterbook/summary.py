"""Data model for a parsed ``SUMMARY.md``: section numbers, links, separators and parts."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from itertools import chain
from pathlib import Path
from typing import Union


class SectionNumber(tuple):
    """A section number such as ``1.2.3``, stored as a tuple of integers."""

    __slots__ = ()

    def __new__(cls, parts: Iterable[int] = ()) -> SectionNumber:
        return super().__new__(cls, (int(part) for part in parts))

    def __str__(self) -> str:
        if not self:
            return "0"
        return "".join(f"{part}." for part in self)

    def __repr__(self) -> str:
        return f"SectionNumber({list(self)!r})"


@dataclass
class Link:
    """An entry in ``SUMMARY.md`` pointing at a chapter, possibly with nested entries.

    A ``location`` of ``None`` marks a draft chapter with no source file.
    """

    name: str
    location: Path | None = None
    number: SectionNumber | None = None
    nested_items: list[SummaryItem] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.location is not None and not isinstance(self.location, Path):
            self.location = Path(self.location)
        if self.number is not None and not isinstance(self.number, SectionNumber):
            self.number = SectionNumber(self.number)

    def nested_links(self) -> Iterator[Link]:
        """Yield the links directly nested under this one, skipping other items."""
        return (item for item in self.nested_items if isinstance(item, Link))


@dataclass(frozen=True)
class Separator:
    """A horizontal rule (``---``) between chapters."""


@dataclass(frozen=True)
class PartTitle:
    """The title of a part of the numbered chapters."""

    title: str


SummaryItem = Union[Link, Separator, PartTitle]


@dataclass
class Summary:
    """The parsed ``SUMMARY.md``, describing how a book is laid out."""

    title: str | None = None
    prefix_chapters: list[SummaryItem] = field(default_factory=list)
    numbered_chapters: list[SummaryItem] = field(default_factory=list)
    suffix_chapters: list[SummaryItem] = field(default_factory=list)

    def all_items(self) -> Iterator[SummaryItem]:
        """Yield the top-level items: prefix, then numbered, then suffix chapters."""
        return chain(self.prefix_chapters, self.numbered_chapters, self.suffix_chapters)