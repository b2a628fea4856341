"""Parsing of task listings and name resolution for projects and tags."""

from __future__ import annotations

from collections.abc import Sequence

import msgspec

from ..resolve import resolve_name

FIELD_SEPARATOR = "\x1f"


class OmniFocusTask(msgspec.Struct, frozen=True, kw_only=True):
    id: str
    name: str
    note: str = ""
    completed: bool = False


def parse_task_output(text: str) -> list[OmniFocusTask]:
    """Parse the script output listing tasks.

    One task per line with fields ``name``, ``id``, ``note`` and an optional
    ``completed`` flag separated by ``\\x1f``. Newlines inside a note arrive
    as a literal ``\\n`` and are restored.
    """
    if not text.strip():
        return []

    tasks = []
    for line in text.split("\n"):
        if not line.strip():
            continue
        fields = line.split(FIELD_SEPARATOR)
        name = fields[0]
        task_id = fields[1] if len(fields) > 1 else ""
        note = fields[2].replace("\\n", "\n") if len(fields) > 2 else ""
        completed = len(fields) > 3 and fields[3].strip().lower() == "true"
        tasks.append(OmniFocusTask(id=task_id, name=name, note=note, completed=completed))
    return tasks


def resolve_project(query: str, projects: Sequence[str]) -> str:
    return resolve_name(query, projects, "project")


def resolve_tag(query: str, tags: Sequence[str]) -> str:
    return resolve_name(query, tags, "tag")
