"""Task sources named in a note's OmniFocus block.

A block's first non-blank line names where tasks come from: ``inbox``,
``project: <name>`` or ``tag: <name>``. Keywords are case-insensitive and
names are trimmed.
"""

from __future__ import annotations

import msgspec

from ..errors import SourceParseError

SOURCE_FORMATS = ("inbox", "project: <name>", "tag: <name>")


class Inbox(msgspec.Struct, frozen=True, tag="inbox"):
    pass


class Project(msgspec.Struct, frozen=True, tag="project"):
    name: str


class Tag(msgspec.Struct, frozen=True, tag="tag"):
    name: str


TaskSource = Inbox | Project | Tag


class BlockConfig(msgspec.Struct, frozen=True, kw_only=True):
    source: TaskSource
    show_completed: bool = False


def _unknown_source(text: str) -> SourceParseError:
    return SourceParseError(
        f'Unknown source "{text}". Use one of: {", ".join(SOURCE_FORMATS)}'
    )


def parse_source(text: str) -> TaskSource | None:
    """Parse a source line.

    Returns:
        TaskSource | None: None for blank input

    Raises:
        SourceParseError: If the line is not a supported form or names nothing
    """
    stripped = text.strip()
    if not stripped:
        return None
    if stripped.lower() == "inbox":
        return Inbox()

    keyword, sep, name = stripped.partition(":")
    if sep:
        keyword = keyword.strip().lower()
        name = name.strip()
        if name and keyword == "project":
            return Project(name)
        if name and keyword == "tag":
            return Tag(name)
    raise _unknown_source(stripped)


def parse_block_config(text: str) -> BlockConfig | None:
    """Parse a whole block: a source line, then optional flag lines.

    A later line reading ``showCompleted`` (any case) includes completed
    tasks. Returns None when the block has no source line.
    """
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if not lines:
        return None
    source = parse_source(lines[0])
    if source is None:
        return None
    show_completed = any(line.lower() == "showcompleted" for line in lines[1:])
    return BlockConfig(source=source, show_completed=show_completed)


def source_label(source: TaskSource) -> str:
    """Human-readable label, e.g. ``project "Home"``."""
    if isinstance(source, Project):
        return f'project "{source.name}"'
    if isinstance(source, Tag):
        return f'tag "{source.name}"'
    return "inbox"
