"""Typed projections of GUS records.

Remote records arrive as loosely-typed JSON dicts; the ``parse_*`` helpers
map them onto these structs. ``name``, ``subject`` and ``status`` default to
``""`` when absent; every other optional field stays ``None``. ``id`` is
``None`` when a saved query does not select ``Id``.
"""

from __future__ import annotations

from typing import Any

import msgspec


class UserInfo(msgspec.Struct, kw_only=True):
    """Subset of ``/services/oauth2/userinfo``."""

    user_id: str
    organization_id: str | None = None
    preferred_username: str | None = None


class WorkItem(msgspec.Struct, frozen=True, kw_only=True):
    """An ``ADM_Work__c`` record."""

    id: str | None = None
    name: str = ""
    subject: str = ""
    status: str = ""
    record_type_name: str | None = None
    description: str | None = None
    currency_iso_code: str | None = None
    severity: str | None = None
    assignee_id: str | None = None
    product_tag_name: str | None = None
    epic_name: str | None = None
    created_at: str | None = None
    modified_at: str | None = None


class WorkItemLookup(msgspec.Struct, frozen=True, kw_only=True):
    """Work items fetched by name, in request order, plus the names not found."""

    items: list[WorkItem]
    missing: list[str]


class Comment(msgspec.Struct, frozen=True, kw_only=True):
    """An ``ADM_Comment__c`` record."""

    id: str | None = None
    body: str = ""
    created_by: str | None = None
    created_at: str | None = None
    subject: str | None = None


class SearchResult(msgspec.Struct, frozen=True, kw_only=True):
    """Id/name pair returned by product tag and epic searches."""

    id: str | None = None
    name: str


class CreatedRecord(msgspec.Struct, frozen=True, kw_only=True):
    """Result of a create call: the new id and its record page URL."""

    id: str
    url: str


class CreatedWorkItem(msgspec.Struct, frozen=True, kw_only=True):
    id: str
    name: str
    url: str


class CreatedEpic(msgspec.Struct, frozen=True, kw_only=True):
    id: str
    name: str
    url: str


class WorkItemPayload(msgspec.Struct, kw_only=True):
    """Fields for a new work item."""

    subject: str
    details: str
    product_tag_id: str
    record_type_id: str
    type: str = "User Story"
    epic_id: str | None = None
    story_points: float | None = None
    severity: str | None = None
    assignee_id: str | None = None

    def to_sobject(self) -> dict[str, Any]:
        """Return the ``ADM_Work__c`` request body; unset optionals are omitted."""
        body: dict[str, Any] = {
            "Subject__c": self.subject,
            "Details__c": self.details,
            "Product_Tag__c": self.product_tag_id,
            "RecordTypeId": self.record_type_id,
            "Type__c": self.type,
        }
        if self.epic_id:
            body["Epic__c"] = self.epic_id
        if self.story_points is not None:
            body["Story_Points__c"] = self.story_points
        if self.severity:
            body["Severity__c"] = self.severity
        if self.assignee_id:
            body["Assignee__c"] = self.assignee_id
        return body


class EpicPayload(msgspec.Struct, kw_only=True):
    """Fields for a new epic. Epics carry no product tag."""

    name: str
    description: str | None = None

    def to_sobject(self) -> dict[str, Any]:
        body: dict[str, Any] = {"Name": self.name}
        if self.description:
            body["Description__c"] = self.description
        return body


def _related_name(record: dict[str, Any], relation: str) -> str | None:
    related = record.get(relation)
    if isinstance(related, dict):
        return related.get("Name") or related.get("DeveloperName")
    return None


def parse_work_item(record: dict[str, Any]) -> WorkItem:
    """Map a raw ``ADM_Work__c`` row onto :class:`WorkItem`."""
    record_type = record.get("RecordType")
    return WorkItem(
        id=record.get("Id"),
        name=record.get("Name") or "",
        subject=record.get("Subject__c") or "",
        status=record.get("Status__c") or "",
        record_type_name=(
            record_type.get("DeveloperName") if isinstance(record_type, dict) else None
        ),
        description=record.get("Details__c"),
        currency_iso_code=record.get("CurrencyIsoCode"),
        severity=record.get("Severity__c"),
        assignee_id=record.get("Assignee__c"),
        product_tag_name=_related_name(record, "Product_Tag__r"),
        epic_name=_related_name(record, "Epic__r"),
        created_at=record.get("CreatedDate"),
        modified_at=record.get("LastModifiedDate"),
    )


def parse_comment(record: dict[str, Any]) -> Comment:
    """Map a raw ``ADM_Comment__c`` row onto :class:`Comment`."""
    return Comment(
        id=record.get("Id"),
        body=record.get("Body__c") or "",
        created_by=record.get("Comment_Created_By__c"),
        created_at=record.get("Comment_Created_Date__c"),
        subject=record.get("Subject__c"),
    )


def parse_search_result(record: dict[str, Any]) -> SearchResult:
    return SearchResult(id=record.get("Id"), name=record.get("Name") or "")
