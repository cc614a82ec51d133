"""Parser turning the text of a ``SUMMARY.md`` file into a :class:`Summary`."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path

from markdown_it import MarkdownIt
from markdown_it.token import Token

from chapterbook.summary import (
    Link,
    PartTitle,
    SectionNumber,
    Separator,
    Summary,
    SummaryItem,
)

log = logging.getLogger(__name__)


class SummaryParseError(Exception):
    """Raised when a ``SUMMARY.md`` file does not follow the expected layout."""


class EventKind(Enum):
    """The kinds of event in the flattened markdown stream."""

    START = auto()
    END = auto()
    TEXT = auto()
    CODE = auto()
    HTML = auto()
    SOFT_BREAK = auto()
    HARD_BREAK = auto()
    RULE = auto()


@dataclass(frozen=True)
class Event:
    """One step of the markdown event stream the parser walks over."""

    kind: EventKind
    tag: str | None = None
    level: int | None = None
    href: str | None = None
    text: str = ""
    offset: int = field(default=0, compare=False)

    def is_start(self, tag: str, level: int | None = None) -> bool:
        return self.kind is EventKind.START and self._matches(tag, level)

    def is_end(self, tag: str, level: int | None = None) -> bool:
        return self.kind is EventKind.END and self._matches(tag, level)

    def _matches(self, tag: str, level: int | None) -> bool:
        return self.tag == tag and (level is None or self.level == level)


class _SummaryMarkdown(MarkdownIt):
    """CommonMark parser that keeps link destinations as written."""

    def normalizeLink(self, url: str) -> str:  # noqa: N802 - overrides the library name
        return url


_MARKDOWN = _SummaryMarkdown("commonmark")

_BLOCK_TAGS = {"bullet_list": "list", "ordered_list": "list", "list_item": "item"}


def _token_events(token: Token, offset: int, open_links: list[str]) -> Iterator[Event]:
    if token.hidden:
        return
    kind = token.type
    if kind == "inline":
        for child in token.children or ():
            yield from _token_events(child, offset, open_links)
    elif kind == "text":
        yield Event(EventKind.TEXT, text=token.content, offset=offset)
    elif kind == "code_inline":
        yield Event(EventKind.CODE, text=token.content, offset=offset)
    elif kind in ("html_block", "html_inline"):
        yield Event(EventKind.HTML, text=token.content, offset=offset)
    elif kind == "softbreak":
        yield Event(EventKind.SOFT_BREAK, offset=offset)
    elif kind == "hardbreak":
        yield Event(EventKind.HARD_BREAK, offset=offset)
    elif kind == "hr":
        yield Event(EventKind.RULE, offset=offset)
    elif kind in ("fence", "code_block"):
        yield Event(EventKind.START, tag="code_block", offset=offset)
        yield Event(EventKind.TEXT, text=token.content, offset=offset)
        yield Event(EventKind.END, tag="code_block", offset=offset)
    elif kind == "image":
        yield Event(EventKind.START, tag="image", offset=offset)
        for child in token.children or ():
            yield from _token_events(child, offset, open_links)
        yield Event(EventKind.END, tag="image", offset=offset)
    elif kind == "link_open":
        href = str(token.attrGet("href") or "")
        open_links.append(href)
        yield Event(EventKind.START, tag="link", href=href, offset=offset)
    elif kind == "link_close":
        href = open_links.pop() if open_links else ""
        yield Event(EventKind.END, tag="link", href=href, offset=offset)
    elif token.nesting != 0:
        base = kind.rsplit("_", 1)[0]
        tag = _BLOCK_TAGS.get(base, base)
        level = int(token.tag[1:]) if base == "heading" else None
        event_kind = EventKind.START if token.nesting > 0 else EventKind.END
        yield Event(event_kind, tag=tag, level=level, offset=offset)


def _markdown_events(text: str) -> Iterator[Event]:
    line_starts = [0, *(i + 1 for i, ch in enumerate(text) if ch == "\n")]
    offset = 0
    open_links: list[str] = []
    for token in _MARKDOWN.parse(text):
        if token.map:
            offset = line_starts[min(token.map[0], len(line_starts) - 1)]
        yield from _token_events(token, offset, open_links)


def stringify_tokens(tokens: Iterable[Event]) -> str:
    """Strip the styling from a run of events and return just the plain text."""
    parts: list[str] = []
    for event in tokens:
        if event.kind in (EventKind.TEXT, EventKind.CODE):
            parts.append(event.text)
        elif event.kind is EventKind.SOFT_BREAK:
            parts.append(" ")
    return "".join(parts)


def _update_section_numbers(sections: Sequence[SummaryItem], level: int, by: int) -> None:
    for link in (item for item in sections if isinstance(item, Link)):
        if link.number is not None:
            number = link.number
            link.number = SectionNumber(
                (*number[:level], number[level] + by, *number[level + 1 :])
            )
        _update_section_numbers(link.nested_items, level, by)


def _last_link(items: Sequence[SummaryItem]) -> Link:
    for item in reversed(items):
        if isinstance(item, Link):
            return item
    raise SummaryParseError(
        "Unable to get last link because the list of SummaryItems doesn't contain any Links"
    )


class SummaryParser:
    """A recursive-descent parser over the markdown events of a ``SUMMARY.md``."""

    def __init__(self, text: str) -> None:
        self._src = text
        self._stream = _markdown_events(text)
        self._offset = 0
        self._back: Event | None = None
        self._root_items = 0
        self._root_number = SectionNumber()

    def parse(self) -> Summary:
        """Parse the whole text into a :class:`Summary`."""
        title = self.parse_title()
        prefix = self._with_context(
            "There was an error parsing the prefix chapters", self.parse_affix, True
        )
        numbered = self._with_context(
            "There was an error parsing the numbered chapters", self.parse_parts
        )
        suffix = self._with_context(
            "There was an error parsing the suffix chapters", self.parse_affix, False
        )
        return Summary(
            title=title,
            prefix_chapters=prefix,
            numbered_chapters=numbered,
            suffix_chapters=suffix,
        )

    @staticmethod
    def _with_context(context: str, func, *args):
        try:
            return func(*args)
        except SummaryParseError as exc:
            raise SummaryParseError(f"{context}: {exc}") from exc

    def parse_title(self) -> str | None:
        """Parse a leading level-one heading, skipping HTML such as comments."""
        while True:
            event = self.next_event()
            if event is None:
                return None
            if event.is_start("heading", 1):
                log.debug("Found a h1 in the SUMMARY")
                return stringify_tokens(self._collect_until_end("heading", 1))
            if event.kind is EventKind.HTML:
                continue
            self._push_back(event)
            return None

    def parse_affix(self, is_prefix: bool) -> list[SummaryItem]:
        """Parse the unnumbered chapters before or after the numbered ones."""
        log.debug("Parsing %s items", "prefix" if is_prefix else "suffix")
        items: list[SummaryItem] = []
        while True:
            event = self.next_event()
            if event is None:
                break
            if event.is_start("list") or event.is_start("heading", 1):
                if is_prefix:
                    self._push_back(event)
                    break
                raise self._parse_error("Suffix chapters cannot be followed by a list")
            if event.is_start("link"):
                items.append(self.parse_link(event.href or ""))
            elif event.kind is EventKind.RULE:
                items.append(Separator())
        return items

    def parse_parts(self) -> list[SummaryItem]:
        """Parse the numbered chapters, split into parts by level-one headings."""
        parts: list[SummaryItem] = []
        self._root_number = SectionNumber()
        self._root_items = 0
        while True:
            event = self.next_event()
            if event is None:
                break
            if event.is_start("paragraph"):
                self._push_back(event)
                break
            if event.is_start("heading", 1):
                log.debug("Found a h1 in the SUMMARY")
                title: str | None = stringify_tokens(self._collect_until_end("heading", 1))
            else:
                self._push_back(event)
                title = None
            chapters = self._with_context(
                "There was an error parsing the numbered chapters", self.parse_numbered
            )
            if title is not None:
                parts.append(PartTitle(title))
            parts.extend(chapters)
        return parts

    def parse_link(self, href: str) -> Link:
        """Finish parsing a link whose opening event has just been read."""
        href = href.replace("%20", " ")
        name = stringify_tokens(self._collect_until_end("link"))
        return Link(name=name, location=Path(href) if href else None)

    def parse_numbered(self) -> list[SummaryItem]:
        """Parse one run of numbered chapters, continuing the section numbering."""
        items: list[SummaryItem] = []
        first = True
        while True:
            event = self.next_event()
            if event is None:
                break
            if event.is_start("paragraph"):
                if not first:
                    self._push_back(event)
                    break
            elif event.is_start("heading", 1):
                self._push_back(event)
                break
            elif event.is_start("list"):
                self._push_back(event)
                bunch = self._parse_nested_numbered(self._root_number)
                _update_section_numbers(bunch, 0, self._root_items)
                self._root_items += len(bunch)
                items.extend(bunch)
            elif event.kind is EventKind.START:
                closing = Event(
                    EventKind.END, tag=event.tag, level=event.level, href=event.href
                )
                while (inner := self.next_event()) is not None:
                    if inner == closing:
                        break
            elif event.kind is EventKind.RULE:
                items.append(Separator())
            first = False
        return items

    def next_event(self) -> Event | None:
        """Return the next event, or ``None`` at the end of the text."""
        if self._back is not None:
            event, self._back = self._back, None
            return event
        event = next(self._stream, None)
        if event is not None:
            self._offset = event.offset
        return event

    def _push_back(self, event: Event) -> None:
        assert self._back is None, "only one event can be pushed back"
        self._back = event

    def _collect_until_end(self, tag: str, level: int | None = None) -> list[Event]:
        events: list[Event] = []
        for event in self._stream:
            if event.is_end(tag, level):
                break
            events.append(event)
        return events

    def _parse_nested_numbered(self, parent: SectionNumber) -> list[SummaryItem]:
        items: list[SummaryItem] = []
        while True:
            event = self.next_event()
            if event is None:
                break
            if event.is_start("item"):
                items.append(self._parse_nested_item(parent, len(items)))
            elif event.is_start("list"):
                if not items:
                    continue
                last = _last_link(items)
                last.nested_items = self._parse_nested_numbered(
                    last.number or SectionNumber()
                )
            elif event.is_end("list"):
                break
        return items

    def _parse_nested_item(self, parent: SectionNumber, existing: int) -> Link:
        while True:
            event = self.next_event()
            if event is not None and event.is_start("paragraph"):
                continue
            if event is not None and event.is_start("link"):
                link = self.parse_link(event.href or "")
                link.number = SectionNumber((*parent, existing + 1))
                return link
            log.warning("Expected a start of a link, actually got %r", event)
            raise self._parse_error(
                "The link items for nested chapters must only contain a hyperlink"
            )

    def _current_location(self) -> tuple[int, int]:
        previous = self._src[: self._offset]
        line = previous.count("\n") + 1
        start_of_line = max(previous.rfind("\n"), 0)
        return line, len(self._src[start_of_line : self._offset])

    def _parse_error(self, message: str) -> SummaryParseError:
        line, col = self._current_location()
        return SummaryParseError(
            f"failed to parse SUMMARY.md line {line}, column {col}: {message}"
        )


def parse_summary(text: str) -> Summary:
    """Parse the text of a ``SUMMARY.md`` file."""
    return SummaryParser(text).parse()