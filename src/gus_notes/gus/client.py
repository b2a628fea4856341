"""Low-level GUS REST client.

Wraps an ``httpx.AsyncClient`` with bearer auth and the few endpoints the
notes integration needs: SOQL query (with pagination), SOSL search, the
OAuth identity endpoint and sObject create.
"""

from __future__ import annotations

from types import TracebackType
from typing import Any

import httpx
import msgspec

from ..config import DEFAULT_API_VERSION, instance_base_url
from ..errors import GusApiError
from ..logging_config import get_logger
from ..responses import decode_json, extract_error_message
from .models import CreatedRecord, UserInfo

logger = get_logger("gus.client")


class GusClient:
    """Authenticated client for one GUS instance.

    Usable as an async context manager. The underlying ``httpx`` client is
    closed on exit only when this object created it.
    """

    def __init__(
        self,
        access_token: str,
        instance_url: str,
        http_client: httpx.AsyncClient | None = None,
        api_version: str = DEFAULT_API_VERSION,
    ) -> None:
        self.access_token = access_token
        self.instance_url = instance_base_url(instance_url)
        self.api_version = api_version
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=30.0)

    async def __aenter__(self) -> GusClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    @property
    def data_url(self) -> str:
        return f"{self.instance_url}/services/data/{self.api_version}"

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    async def _request(
        self,
        method: str,
        url: str,
        *,
        failure_prefix: str,
        extra_headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> tuple[httpx.Response, Any]:
        headers = {**self._headers, **(extra_headers or {})}
        try:
            response = await self._http.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise GusApiError(f"{failure_prefix}: {e}") from e
        return response, decode_json(response)

    async def query_records(self, soql: str) -> list[dict[str, Any]]:
        """Run a SOQL query and return every record across all pages.

        Args:
            soql: SOQL query string

        Returns:
            list[dict]: Raw records in server order

        Raises:
            GusApiError: If any page fails; partial results are discarded
        """
        records: list[dict[str, Any]] = []
        url: str | None = f"{self.data_url}/query"
        params: dict[str, str] | None = {"q": soql}
        pages = 0

        while url:
            response, data = await self._request(
                "GET", url, params=params, failure_prefix="SOQL query failed"
            )
            if not response.is_success:
                message = extract_error_message(data, response.status_code)
                raise GusApiError(
                    f"SOQL query failed: {message}", status_code=response.status_code
                )
            pages += 1
            if not isinstance(data, dict):
                break
            records.extend(data.get("records") or [])

            next_url = data.get("nextRecordsUrl")
            if data.get("done") or not next_url:
                url = None
            elif next_url.startswith("/"):
                url = f"{self.instance_url}{next_url}"
            else:
                url = next_url
            params = None

        logger.debug("SOQL query returned %d records in %d page(s)", len(records), pages)
        return records

    async def search_records(
        self, sosl: str, label: str = "SOSL search"
    ) -> list[dict[str, Any]]:
        """Run a SOSL search and return ``searchRecords``.

        Args:
            sosl: SOSL search string
            label: What is being searched, used to prefix error messages

        Raises:
            GusApiError: On a non-2xx response or transport failure
        """
        response, data = await self._request(
            "GET",
            f"{self.data_url}/search",
            params={"q": sosl},
            failure_prefix=f"{label} failed",
        )
        if not response.is_success:
            message = extract_error_message(data, response.status_code)
            raise GusApiError(
                f"{label} failed: {message}", status_code=response.status_code
            )
        if isinstance(data, dict):
            return data.get("searchRecords") or []
        return []

    async def fetch_user_info(self) -> UserInfo:
        """Fetch the identity of the token's user.

        Raises:
            GusApiError: On failure or when the response has no ``user_id``
        """
        response, data = await self._request(
            "GET",
            f"{self.instance_url}/services/oauth2/userinfo",
            failure_prefix="User info failed",
        )
        if not response.is_success:
            message = extract_error_message(data, response.status_code)
            raise GusApiError(
                f"User info failed: {message}", status_code=response.status_code
            )
        try:
            return msgspec.convert(data, UserInfo)
        except msgspec.ValidationError as e:
            raise GusApiError(f"User info failed: {e}") from e

    async def create_record(self, sobject: str, payload: dict[str, Any]) -> CreatedRecord:
        """Create one sObject record.

        Args:
            sobject: API name of the object (e.g. ``ADM_Work__c``)
            payload: Field values

        Returns:
            CreatedRecord: New record id and its page URL

        Raises:
            GusApiError: If the create is rejected or returns no id
        """
        response, data = await self._request(
            "POST",
            f"{self.data_url}/sobjects/{sobject}",
            content=msgspec.json.encode(payload),
            extra_headers={"Content-Type": "application/json"},
            failure_prefix=f"Create {sobject} failed",
        )

        data = data if isinstance(data, dict) else {}
        if not response.is_success or not data.get("success"):
            errors = data.get("errors")
            first = errors[0] if isinstance(errors, list) and errors else errors
            message = first.get("message") if isinstance(first, dict) else None
            raise GusApiError(
                message or f"Create {sobject} failed: HTTP {response.status_code}",
                status_code=response.status_code,
            )

        record_id = data.get("id")
        if not record_id:
            raise GusApiError(f"Create {sobject} returned no id")

        logger.info("Created %s %s", sobject, record_id)
        return CreatedRecord(id=record_id, url=f"{self.instance_url}/{record_id}")
