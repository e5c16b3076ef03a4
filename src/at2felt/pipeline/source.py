"""
AirtableSource - Record Fetcher

Reads submission records from an Airtable table through the REST API,
filtered by status and following pagination until every page is read.
"""

import logging
from typing import Any, Optional

import requests

from ..config.settings import AirtableCredentials
from ..domain.models import Record
from ..types import FetchError

logger = logging.getLogger(__name__)


def build_status_formula(field: str, value: str) -> str:
    """
    Build an Airtable filterByFormula expression matching one status value.

    Single quotes in the value are escaped so the formula stays well formed.

        >>> build_status_formula("Status", "Approved")
        "{Status} = 'Approved'"
    """
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"{{{field}}} = '{escaped}'"


class AirtableSource:
    """
    Read-only client for one Airtable table.

    No retries are attempted: a failing request raises FetchError and the
    run is reported as failed.
    """

    def __init__(
        self,
        credentials: AirtableCredentials,
        session: Optional[requests.Session] = None,
        timeout_s: float = 30,
        page_size: int = 100,
    ):
        self.credentials = credentials
        self.timeout_s = timeout_s
        self.page_size = page_size
        self._session = session or requests.Session()

    @property
    def table_url(self) -> str:
        base = self.credentials.api_url.rstrip("/")
        # requests percent-encodes the table name ("poster submissions")
        return f"{base}/{self.credentials.base_id}/{self.credentials.table}"

    def fetch(self, status: str = "Approved", status_field: str = "Status") -> list[Record]:
        """
        Fetch every record whose status field equals the given value.

        Args:
            status: Status value to match
            status_field: Field holding the status

        Returns:
            Records in the order Airtable returns them; may be empty

        Raises:
            FetchError: Network failure, timeout, rejected query or malformed payload
        """
        formula = build_status_formula(status_field, status)
        logger.info(f"Fetching records from '{self.credentials.table}' where {formula}")

        records: list[Record] = []
        offset: Optional[str] = None
        pages = 0

        while True:
            params: dict[str, Any] = {
                "filterByFormula": formula,
                "pageSize": self.page_size,
            }
            if offset:
                params["offset"] = offset

            payload = self._request_page(params)
            pages += 1

            raw_records = payload.get("records")
            if not isinstance(raw_records, list):
                raise FetchError("Airtable response is missing the 'records' list")

            for raw in raw_records:
                records.append(self._to_record(raw))

            offset = payload.get("offset")
            if not offset:
                break

        logger.info(f"Fetched {len(records)} records across {pages} page(s)")
        return records

    def _request_page(self, params: dict[str, Any]) -> dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.credentials.api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = self._session.get(
                self.table_url,
                params=params,
                headers=headers,
                timeout=self.timeout_s,
            )
        except requests.RequestException as e:
            raise FetchError(f"Airtable request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise FetchError(
                f"Airtable query rejected (HTTP {response.status_code}): {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise FetchError(f"Airtable returned invalid JSON: {e}") from e

        if not isinstance(payload, dict):
            raise FetchError("Airtable returned an unexpected payload")
        return payload

    @staticmethod
    def _to_record(raw: Any) -> Record:
        if not isinstance(raw, dict) or not raw.get("id"):
            raise FetchError("Airtable returned a record without an 'id'")
        fields = raw.get("fields") or {}
        if not isinstance(fields, dict):
            raise FetchError(f"Record {raw['id']} has malformed fields")
        return Record(id=raw["id"], fields=fields, created_time=raw.get("createdTime"))
