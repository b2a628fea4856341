"""Conversions between note text and GUS rich-text fields, plus display helpers."""

from __future__ import annotations

import re
from urllib.parse import quote

WORK_LOCATOR_URL = "https://gus.my.salesforce.com/apex/ADM_WorkLocator?bugorworknumber="

_HTML_ESCAPES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&#39;"),
)

_BR = re.compile(r"<br\s*/?>", re.IGNORECASE)
_P_CLOSE = re.compile(r"</p>", re.IGNORECASE)
_TAG = re.compile(r"<[^>]+>")
_EXTRA_NEWLINES = re.compile(r"\n{3,}")

_ACTIVE_STATUSES = frozenset(
    {
        "New",
        "Acknowledged",
        "Triaged",
        "In Progress",
        "Integrate",
        "Pending Release",
        "QA In Progress",
    }
)
_REJECTED_STATUSES = frozenset(
    {"Rejected", "Never", "Inactive", "Not a bug", "Not Reproducible", "Deferred"}
)


def _escape_html(value: str) -> str:
    for char, entity in _HTML_ESCAPES:
        value = value.replace(char, entity)
    return value


def _unescape_html(value: str) -> str:
    for char, entity in _HTML_ESCAPES:
        value = value.replace(entity, char)
    return value


def convert_text_to_html(text: str) -> str:
    """Render note text for a GUS rich-text field.

    ``## Title`` becomes ``<h3>``, ``### Title`` becomes ``<strong>``, and
    the remaining lines are HTML-escaped and joined with ``<br>``. A blank
    line directly after a header is dropped.
    """
    processed: list[str] = []
    kinds: list[str] = []
    prev_was_header = False

    for line in text.split("\n"):
        stripped = line.strip()
        if not stripped and prev_was_header:
            prev_was_header = False
            continue
        if stripped.startswith("###"):
            processed.append(f"<strong>{_escape_html(stripped[3:].strip())}</strong>")
            kinds.append("strong")
            prev_was_header = True
        elif stripped.startswith("##"):
            processed.append(f"<h3>{_escape_html(stripped[2:].strip())}</h3>")
            kinds.append("h3")
            prev_was_header = True
        else:
            processed.append(_escape_html(line))
            kinds.append("normal")
            prev_was_header = False

    parts: list[str] = []
    last = len(processed) - 1
    for i, (chunk, kind) in enumerate(zip(processed, kinds)):
        parts.append(chunk)
        if i < last and kind != "h3" and chunk.strip():
            parts.append("<br>")
    return "".join(parts)


def html_to_text(html: str | None) -> str:
    """Flatten a GUS rich-text value into plain text."""
    if not html or not html.strip():
        return ""
    text = _BR.sub("\n", html)
    text = _P_CLOSE.sub("\n", text)
    text = _TAG.sub("", text)
    text = _unescape_html(text)
    return _EXTRA_NEWLINES.sub("\n\n", text).strip()


def status_category(status: str) -> str:
    """Classify a work-item status for display.

    Returns one of ``closed``, ``active``, ``waiting``, ``review``,
    ``completed``, ``rejected`` or ``default``.
    """
    s = status.strip()
    if s.startswith("Closed") or s in ("Fixed", "Duplicate"):
        return "closed"
    if s in _ACTIVE_STATUSES:
        return "active"
    if s.startswith("Waiting") or s in ("Investigating", "More Info Reqd from Support"):
        return "waiting"
    if s == "Ready for Review":
        return "review"
    if s == "Completed":
        return "completed"
    if s in _REJECTED_STATUSES:
        return "rejected"
    return "default"


def work_locator_url(name: str) -> str:
    """Browser URL that opens a work item by its ``W-`` number."""
    return WORK_LOCATOR_URL + quote(name, safe="")
