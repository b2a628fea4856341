"""Placeholder substitution for saved SOQL query templates."""

from __future__ import annotations

PLACEHOLDERS = ("me", "team", "product_tag")


def substitute_query_template(
    template: str,
    *,
    me: str | None = None,
    team: str | None = None,
    product_tag: str | None = None,
) -> str:
    """Replace ``${me}``, ``${team}`` and ``${product_tag}`` in a template.

    Tokens whose value is not supplied are left as-is, as is any other
    ``${...}`` token, so substitution can be done in several passes.
    Values are inserted literally; escape them first if they end up inside a
    string literal.
    """
    values = {"me": me, "team": team, "product_tag": product_tag}
    result = template
    for name in PLACEHOLDERS:
        value = values[name]
        if value is not None:
            result = result.replace("${" + name + "}", value)
    return result
