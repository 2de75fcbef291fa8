"""
Record store access - Airtable REST API over httpx

Services only depend on the RecordStore interface. Filters support exact
field equality and linked-record containment; the Airtable formula language
stays inside AirtableRecordStore.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

import httpx

from .config import (
    AIRTABLE_API_KEY,
    AIRTABLE_API_URL,
    AIRTABLE_BASE_ID,
    AIRTABLE_MAX_RETRIES,
    AIRTABLE_RATE_LIMIT_WAIT,
)
from .errors import RateLimitedError, TransportError

logger = logging.getLogger(__name__)

# Airtable accepts at most 10 records per create request
AIRTABLE_BATCH_SIZE = 10


@dataclass
class Record:
    id: str
    fields: dict[str, Any] = field(default_factory=dict)
    created_time: Optional[str] = None

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)


@dataclass
class BatchResult:
    created: list[Record] = field(default_factory=list)
    requested: int = 0
    cancelled: bool = False

    @property
    def created_count(self) -> int:
        return len(self.created)


class RecordStore(ABC):
    """Relational record API the domain services are written against"""

    @abstractmethod
    def select(
        self,
        table: str,
        filter_by: Optional[dict[str, Any]] = None,
        linked: Optional[dict[str, str]] = None,
        max_records: Optional[int] = None,
    ) -> list[Record]:
        """
        Return rows where every filter_by field equals its value and every
        linked field contains the given record id.
        """

    @abstractmethod
    def find(self, table: str, record_id: str) -> Optional[Record]:
        pass

    @abstractmethod
    def create(self, table: str, fields: dict[str, Any]) -> Record:
        pass

    @abstractmethod
    def update(self, table: str, record_id: str, fields: dict[str, Any]) -> Record:
        pass

    @abstractmethod
    def destroy(self, table: str, record_id: str) -> None:
        pass

    def first(self, table: str, **kwargs) -> Optional[Record]:
        rows = self.select(table, max_records=1, **kwargs)
        return rows[0] if rows else None

    def batch_create(
        self,
        table: str,
        rows: Iterable[dict[str, Any]],
        cancel: Optional[Callable[[], bool]] = None,
    ) -> BatchResult:
        """
        Create rows one chunk at a time. Already created rows stay committed
        when the cancel callback fires.
        """
        rows = list(rows)
        result = BatchResult(requested=len(rows))
        for start in range(0, len(rows), AIRTABLE_BATCH_SIZE):
            if cancel is not None and cancel():
                logger.warning(
                    f"⚠️ Batch create on {table} cancelled after {result.created_count}/{len(rows)} records"
                )
                result.cancelled = True
                break
            result.created.extend(self._create_chunk(table, rows[start:start + AIRTABLE_BATCH_SIZE]))
        return result

    def _create_chunk(self, table: str, chunk: list[dict[str, Any]]) -> list[Record]:
        return [self.create(table, row) for row in chunk]


def _formula_value(value: Any) -> str:
    if isinstance(value, bool):
        return "TRUE()" if value else "FALSE()"
    if isinstance(value, (int, float)):
        return str(value)
    escaped = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def build_filter_formula(
    filter_by: Optional[dict[str, Any]] = None,
    linked: Optional[dict[str, str]] = None,
) -> Optional[str]:
    """Translate equality/containment filters into an Airtable formula"""
    clauses = []
    for name, value in (filter_by or {}).items():
        if value is None:
            clauses.append(f"{{{name}}} = BLANK()")
        else:
            clauses.append(f"{{{name}}} = {_formula_value(value)}")
    for name, record_id in (linked or {}).items():
        clauses.append(f"FIND({_formula_value(record_id)}, ARRAYJOIN({{{name}}}))")

    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return f"AND({', '.join(clauses)})"


class AirtableRecordStore(RecordStore):
    """RecordStore backed by the Airtable REST API"""

    def __init__(
        self,
        api_key: Optional[str] = AIRTABLE_API_KEY,
        base_id: Optional[str] = AIRTABLE_BASE_ID,
        api_url: str = AIRTABLE_API_URL,
        rate_limit_wait: float = AIRTABLE_RATE_LIMIT_WAIT,
        max_retries: int = AIRTABLE_MAX_RETRIES,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if client is None:
            if not api_key or not base_id:
                raise TransportError("Airtable is not configured (AIRTABLE_API_KEY / AIRTABLE_BASE_ID)")
            client = httpx.Client(
                base_url=f"{api_url}/{base_id}",
                headers={"Authorization": f"Bearer {api_key}"},
                timeout=30.0,
            )
        self.client = client
        self.rate_limit_wait = rate_limit_wait
        self.max_retries = max_retries
        self._sleep = sleep

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send a request, waiting and retrying the same request on 429"""
        attempt = 0
        while True:
            try:
                response = self.client.request(method, path, **kwargs)
            except httpx.HTTPError as e:
                logger.error(f"❌ Airtable {method} {path} failed: {e}")
                raise TransportError(f"Record store request failed: {e}") from e

            if response.status_code != 429:
                return response

            attempt += 1
            if attempt > self.max_retries:
                logger.error(f"❌ Airtable still rate limited after {self.max_retries} retries: {method} {path}")
                raise RateLimitedError()
            logger.warning(
                f"⚠️ Airtable rate limited ({method} {path}), waiting {self.rate_limit_wait}s "
                f"before retry {attempt}/{self.max_retries}"
            )
            self._sleep(self.rate_limit_wait)

    @staticmethod
    def _raise_for_status(response: httpx.Response, context: str) -> None:
        if response.is_success:
            return
        logger.error(f"❌ Airtable {context} failed: HTTP {response.status_code} {response.text[:300]}")
        raise TransportError(f"Record store {context} failed with HTTP {response.status_code}")

    @staticmethod
    def _to_record(payload: dict) -> Record:
        return Record(
            id=payload["id"],
            fields=payload.get("fields", {}),
            created_time=payload.get("createdTime"),
        )

    def select(self, table, filter_by=None, linked=None, max_records=None):
        params: dict[str, Any] = {"pageSize": 100}
        formula = build_filter_formula(filter_by, linked)
        if formula:
            params["filterByFormula"] = formula
        if max_records:
            params["maxRecords"] = max_records

        records: list[Record] = []
        while True:
            response = self._request("GET", f"/{table}", params=params)
            self._raise_for_status(response, f"select on {table}")
            body = response.json()
            records.extend(self._to_record(r) for r in body.get("records", []))
            offset = body.get("offset")
            if not offset:
                break
            params["offset"] = offset
        return records

    def find(self, table, record_id):
        response = self._request("GET", f"/{table}/{record_id}")
        if response.status_code == 404:
            return None
        self._raise_for_status(response, f"find on {table}")
        return self._to_record(response.json())

    def create(self, table, fields):
        return self._create_chunk(table, [fields])[0]

    def _create_chunk(self, table, chunk):
        response = self._request(
            "POST", f"/{table}", json={"records": [{"fields": f} for f in chunk], "typecast": True}
        )
        self._raise_for_status(response, f"create on {table}")
        return [self._to_record(r) for r in response.json().get("records", [])]

    def update(self, table, record_id, fields):
        response = self._request("PATCH", f"/{table}/{record_id}", json={"fields": fields, "typecast": True})
        self._raise_for_status(response, f"update on {table}")
        return self._to_record(response.json())

    def destroy(self, table, record_id):
        response = self._request("DELETE", f"/{table}/{record_id}")
        self._raise_for_status(response, f"destroy on {table}")


_store: Optional[RecordStore] = None


def get_record_store() -> RecordStore:
    """FastAPI dependency returning the shared record store"""
    global _store
    if _store is None:
        _store = AirtableRecordStore()
    return _store
