"""GUS REST client, domain operations and query helpers."""

from .client import GusClient
from .escaping import escape_soql_literal, escape_sosl_literal, soql_in_list
from .models import (
    Comment,
    CreatedEpic,
    CreatedRecord,
    CreatedWorkItem,
    EpicPayload,
    SearchResult,
    UserInfo,
    WorkItem,
    WorkItemLookup,
    WorkItemPayload,
    parse_work_item,
)
from .operations import GusOperations
from .templates import substitute_query_template
from .text import convert_text_to_html, html_to_text, status_category, work_locator_url

__all__ = [
    "Comment",
    "CreatedEpic",
    "CreatedRecord",
    "CreatedWorkItem",
    "EpicPayload",
    "GusClient",
    "GusOperations",
    "SearchResult",
    "UserInfo",
    "WorkItem",
    "WorkItemLookup",
    "WorkItemPayload",
    "convert_text_to_html",
    "escape_soql_literal",
    "escape_sosl_literal",
    "html_to_text",
    "parse_work_item",
    "soql_in_list",
    "status_category",
    "substitute_query_template",
    "work_locator_url",
]
