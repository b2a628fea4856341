"""Resolve a user-typed name against a list of known names."""

from __future__ import annotations

from collections.abc import Sequence

from .errors import AmbiguousNameError, NameNotFoundError


def resolve_name(query: str, candidates: Sequence[str], entity_label: str) -> str:
    """Resolve ``query`` to exactly one of ``candidates``.

    A case-insensitive exact match wins. Otherwise the query must be a
    case-insensitive substring of exactly one candidate. The returned value
    keeps the candidate's original casing.

    Args:
        query: Name as typed by the user
        candidates: Known names, in display order
        entity_label: Word used in error messages (e.g. "project", "tag")

    Returns:
        str: The matching candidate

    Raises:
        NameNotFoundError: If nothing matches
        AmbiguousNameError: If several candidates contain the query
    """
    lowered = query.lower()
    for candidate in candidates:
        if candidate.lower() == lowered:
            return candidate

    matches = [c for c in candidates if lowered in c.lower()]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise NameNotFoundError(
            f'No {entity_label} matching "{query}". '
            f"Available {entity_label}s: {', '.join(candidates)}",
            query,
            candidates,
        )
    raise AmbiguousNameError(
        f'Ambiguous {entity_label} "{query}". '
        f"Multiple {entity_label}s match: {', '.join(matches)}",
        query,
        matches,
    )
