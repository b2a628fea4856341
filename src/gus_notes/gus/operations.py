"""GUS domain operations.

Builds the work-item, comment, search and create operations on top of
:class:`~gus_notes.gus.client.GusClient`. Every value interpolated into a
SOQL or SOSL string goes through :mod:`gus_notes.gus.escaping`.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from ..config import DEFAULT_GUS_CONFIG, GusConfig
from ..errors import GusApiError
from ..logging_config import get_logger
from .client import GusClient
from .escaping import escape_soql_literal, escape_sosl_literal, soql_in_list
from .models import (
    Comment,
    CreatedEpic,
    CreatedWorkItem,
    EpicPayload,
    SearchResult,
    WorkItem,
    WorkItemLookup,
    WorkItemPayload,
    parse_comment,
    parse_search_result,
    parse_work_item,
)
from .templates import substitute_query_template

logger = get_logger("gus.operations")

WORK_ITEM_FIELDS = (
    "Id, Name, Subject__c, Status__c, Details__c, RecordType.DeveloperName, "
    "Type__c, Severity__c, Story_Points__c, Product_Tag__r.Name, Epic__r.Name"
)
SEARCH_LIMIT = 10


class GusOperations:
    """High-level GUS operations bound to one authenticated client.

    Args:
        client: Authenticated GUS client
        config: Connection config; supplies default team and product tag
            for query templates
    """

    def __init__(self, client: GusClient, config: GusConfig | None = None) -> None:
        self.client = client
        self.config = config or DEFAULT_GUS_CONFIG

    # Work items

    async def query_work_items(self, soql: str) -> list[WorkItem]:
        """Run a SOQL query over ``ADM_Work__c`` and map every row."""
        records = await self.client.query_records(soql)
        return [parse_work_item(r) for r in records]

    async def fetch_work_item_by_name(self, name: str) -> WorkItem | None:
        """Fetch one work item by its ``W-`` number, or None if it does not exist."""
        name = name.strip()
        if not name:
            return None
        soql = (
            f"SELECT {WORK_ITEM_FIELDS} FROM ADM_Work__c "
            f"WHERE Name = '{escape_soql_literal(name)}' LIMIT 1"
        )
        items = await self.query_work_items(soql)
        return items[0] if items else None

    async def fetch_work_items_by_names(self, names: Iterable[str]) -> WorkItemLookup:
        """Fetch several work items by name in one query.

        Items come back in the order the names were given; names with no
        matching record are listed in ``missing``.
        """
        wanted: list[str] = []
        for name in names:
            name = name.strip()
            if name and name not in wanted:
                wanted.append(name)
        if not wanted:
            return WorkItemLookup(items=[], missing=[])

        soql = (
            "SELECT Id, Name, Subject__c, Status__c, Details__c FROM ADM_Work__c "
            f"WHERE Name IN ({soql_in_list(wanted)})"
        )
        items = await self.query_work_items(soql)
        order = {name: i for i, name in enumerate(wanted)}
        items.sort(key=lambda item: order.get(item.name, len(order)))
        found = {item.name for item in items}
        missing = [name for name in wanted if name not in found]
        if missing:
            logger.info("Work items not found: %s", ", ".join(missing))
        return WorkItemLookup(items=items, missing=missing)

    async def fetch_comments(self, work_item_id: str) -> list[Comment]:
        """Fetch a work item's comments, oldest first."""
        soql = (
            "SELECT Id, Body__c, Comment_Created_By__c, Comment_Created_Date__c, "
            "Subject__c FROM ADM_Comment__c "
            f"WHERE Work__c = '{escape_soql_literal(work_item_id)}' "
            "ORDER BY Comment_Created_Date__c ASC"
        )
        records = await self.client.query_records(soql)
        return [parse_comment(r) for r in records]

    # Search

    async def _search(self, term: str, returning: str, label: str) -> list[SearchResult]:
        sosl = (
            f"FIND {{{escape_sosl_literal(term)}*}} IN ALL FIELDS "
            f"RETURNING {returning} LIMIT {SEARCH_LIMIT}"
        )
        records = await self.client.search_records(sosl, label=label)
        return [parse_search_result(r) for r in records]

    async def search_product_tags(self, term: str) -> list[SearchResult]:
        """Prefix search over product tag names."""
        term = term.strip()
        if not term:
            return []
        return await self._search(term, "ADM_Product_Tag__c(Id, Name)", "Product tag search")

    async def search_epics(
        self, term: str, restrict_to_my_teams: bool = True
    ) -> list[SearchResult]:
        """Prefix search over epic names.

        Args:
            term: Search term; a blank term returns no results
            restrict_to_my_teams: Only return epics owned by the current
                user's scrum teams. If the team lookup fails or finds no
                teams, the search runs unrestricted.
        """
        term = term.strip()
        if not term:
            return []

        where = ""
        if restrict_to_my_teams:
            team_ids = await self._my_team_ids()
            if team_ids:
                where = f" WHERE Team__c IN ({soql_in_list(team_ids)})"
        return await self._search(term, f"ADM_Epic__c(Id, Name{where})", "Epic search")

    async def _my_team_ids(self) -> list[str]:
        try:
            user_id = await self.current_user_id()
            soql = (
                "SELECT Scrum_Team__c FROM ADM_Scrum_Team_Member__c "
                f"WHERE Member_Name__c = '{escape_soql_literal(user_id)}' LIMIT 100"
            )
            records = await self.client.query_records(soql)
        except GusApiError as e:
            logger.warning("Team lookup failed, searching all teams: %s", e)
            return []
        return [r["Scrum_Team__c"] for r in records if r.get("Scrum_Team__c")]

    # Metadata and identity

    async def get_record_type_ids(self) -> dict[str, str]:
        """Map ``ADM_Work__c`` record type developer names to their ids."""
        records = await self.client.query_records(
            "SELECT Id, DeveloperName FROM RecordType WHERE SObjectType = 'ADM_Work__c'"
        )
        return {r["DeveloperName"]: r["Id"] for r in records if r.get("DeveloperName")}

    async def current_user_id(self) -> str:
        info = await self.client.fetch_user_info()
        return info.user_id

    async def render_query_template(
        self,
        template: str,
        team: str | None = None,
        product_tag: str | None = None,
    ) -> str:
        """Fill a saved query template.

        ``${me}`` is the current user's id, fetched only when the template
        uses it. ``${team}`` and ``${product_tag}`` come from the arguments
        or the config defaults. Values are SOQL-escaped.
        """
        values: dict[str, Any] = {
            "team": team if team is not None else self.config.default_team,
            "product_tag": (
                product_tag if product_tag is not None else self.config.default_product_tag
            ),
        }
        if "${me}" in template:
            values["me"] = await self.current_user_id()
        escaped = {k: escape_soql_literal(v) for k, v in values.items() if v is not None}
        return substitute_query_template(template, **escaped)

    # Create

    async def create_work_item(self, payload: WorkItemPayload) -> CreatedWorkItem:
        """Create a work item and look up its assigned ``W-`` number.

        The name falls back to the record id if the follow-up lookup fails
        or returns nothing; the record exists either way.
        """
        created = await self.client.create_record("ADM_Work__c", payload.to_sobject())

        name = created.id
        soql = (
            "SELECT Id, Name FROM ADM_Work__c "
            f"WHERE Id = '{escape_soql_literal(created.id)}' LIMIT 1"
        )
        try:
            records = await self.client.query_records(soql)
        except GusApiError as e:
            logger.warning("Created work item %s but could not fetch its name: %s", created.id, e)
        else:
            if records and records[0].get("Name"):
                name = records[0]["Name"]

        return CreatedWorkItem(id=created.id, name=name, url=created.url)

    async def create_epic(self, payload: EpicPayload) -> CreatedEpic:
        """Create an epic; its name is the one supplied."""
        created = await self.client.create_record("ADM_Epic__c", payload.to_sobject())
        return CreatedEpic(id=created.id, name=payload.name, url=created.url)
