"""Escaping for strings embedded in SOQL and SOSL queries.

The two languages reserve different characters, so each has its own
function. Every external string concatenated into a query goes through one of
these.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

# ? & | ! { } [ ] ( ) ^ ~ : \ " ' + - =
# '*' is the SOSL wildcard and is not escaped.
_SOSL_RESERVED = re.compile(r"""[?&|!{}\[\]()^~:\\"'+\-=]""")


def escape_soql_literal(value: str) -> str:
    """Escape a value for use inside a single-quoted SOQL string literal."""
    return value.replace("'", "''")


def escape_sosl_literal(value: str) -> str:
    """Backslash-escape SOSL reserved characters, leaving ``*`` alone."""
    return _SOSL_RESERVED.sub(lambda m: "\\" + m.group(0), value)


def soql_in_list(values: Iterable[str]) -> str:
    """Render values as the body of a SOQL ``IN (...)`` clause.

    >>> soql_in_list(["W-1", "O'Brien"])
    "'W-1','O''Brien'"
    """
    return ",".join(f"'{escape_soql_literal(v)}'" for v in values)
