"""Parse SUMMARY.md outlines, load Markdown books and plan their build steps."""

__version__ = "0.1.0"