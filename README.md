# chapterbook

`chapterbook` turns a directory of Markdown files into an in-memory book.
A `SUMMARY.md` file describes the layout: optional prefix chapters, numbered
chapters grouped into parts, and optional suffix chapters. The package parses
that outline, loads every chapter from disk, and works out which
preprocessors and renderers a book's configuration asks for, and in what order.

## Installation

```
pip install chapterbook
```

For running the test suite:

```
pip install "chapterbook[test]"
pytest
```

## The SUMMARY.md format

```markdown
# Summary

[Introduction](intro.md)

# Part One

- [Getting started](start.md)
    - [Installing](install.md)
- [Draft chapter]()

---

[Appendix](appendix.md)
```

* A leading `#` heading is the title; HTML comments before it are skipped.
* Plain links before the first list are prefix chapters.
* List items are numbered chapters; nesting gives section numbers such as
  `1.1.`. Further `#` headings start new named parts (`PartTitle`), and
  numbering carries on across parts and `---` separators (`Separator`).
* Plain links after the numbered chapters are suffix chapters. A list after
  the suffix chapters is an error.
* A link with an empty target is a draft chapter with no file behind it.
* `%20` in a link target stands for a space.

## Parsing an outline

```python
from chapterbook.summary_parser import parse_summary

with open("src/SUMMARY.md", encoding="utf-8") as handle:
    summary = parse_summary(handle.read())

print(summary.title)
for item in summary.all_items():   # prefix, numbered, then suffix items
    print(item)
```

`parse_summary` returns a `Summary` (from `chapterbook.summary`) holding
`Link`, `Separator` and `PartTitle` items. A `Link` has a `name`, a
`location` (a `Path`, or `None` for a draft), a `number` (a `SectionNumber`,
printed as `1.2.`) and `nested_items`. Malformed outlines raise
`SummaryParseError`, with the line and column of the problem in the message.
`SummaryParser` exposes the individual steps (`parse_title`, `parse_affix`,
`parse_parts`, `parse_numbered`) for finer control.

## Loading a book

```python
from chapterbook.book import load_book

book = load_book("src", create_missing=True)
for item in book:          # depth-first over chapters, separators and part titles
    print(item)
```

`load_book` reads `SUMMARY.md` from the given source directory. With
`create_missing=True` (the default), chapter files named in the outline but
absent on disk are created with a heading holding the chapter's name. A
leading UTF-8 byte-order mark in a chapter is dropped. Failures raise
`BookLoadError`. `load_book_from_disk` does the same from an already parsed
`Summary`.

Each `Chapter` carries its `name`, `content`, `number`, `sub_items`, its
`path` relative to the source directory, and `parent_names`. Draft chapters
(`Chapter.draft`, `is_draft()`) have no path and no content.

`Book.for_each` applies a function to every item, children before their
parent; a non-`None` return value replaces the item. `Book.push_item` appends
a top-level item. `Book.to_json` and `Book.from_json` move a book to and from
the JSON shape exchanged with external preprocessors.

## Configuration, renderers and preprocessors

```python
from chapterbook.config import load_config, determine_renderers
from chapterbook.pipeline import determine_preprocessors

with open("book.toml", encoding="utf-8") as handle:
    config = load_config(handle.read())

renderers = determine_renderers(config)          # HTML when nothing is configured
preprocessors = determine_preprocessors(config)  # "index" and "links" by default
```

The configuration is a plain nested dictionary; `config_get` and
`config_set` read and write dotted keys such as `output.html.theme`.

* `determine_renderers` returns a `RendererSpec` for each table under
  `[output]`, in name order. `html` and `markdown` are built-in; any other
  name runs the table's `command`, or `chapterbook-<name>` if none is given.
* `determine_preprocessors` returns `StepSpec` entries. Entries under
  `[preprocessor.<name>]` may carry `before` and `after` lists to order them;
  ties are broken by name, references to unknown preprocessors are ignored
  with a warning, and a cycle raises `PipelineError`. A `command` key
  overrides the default command `chapterbook-<name>`.
* Setting `build.use-default-preprocessors = false` turns off the built-in
  `links` and `index` steps.
* `preprocessor_should_run` decides whether a step runs for a renderer: a
  `renderers` list in the preprocessor's table limits it to those renderers;
  otherwise the step's own `supports_renderer` decides. For an external step
  that means running its command with `supports <renderer>` and treating exit
  status 0 as yes.

## The no-op preprocessor

`chapterbook-nop` is a preprocessor that hands the book back unchanged. It is a
starting point for writing your own.

Ask whether a renderer is supported (exit status 0 means yes, 1 means no;
only `not-supported` is refused):

```
chapterbook-nop supports html
```

Run it on a book: it reads a JSON array of `[context, book]` from standard
input and writes the book as JSON to standard output. The context needs
`root`, `config`, `renderer` and `mdbook_version`; if the version is not
compatible with 0.4.21, a warning goes to standard error.

```
chapterbook-nop < input.json > output.json
```

If the context's configuration has a `blow-up` key in the
`preprocessor.nop-preprocessor` table, the run fails with an error message
and exit status 1.

## What this package does not do

The package reads and plans; it does not build. There is no HTML or Markdown
renderer, and the built-in `links` and `index` steps are names in the plan
only: nothing here rewrites chapter content. There is no command for creating
a new book, building it, serving it over HTTP, watching it for changes,
cleaning its output, or testing the code samples in its chapters.