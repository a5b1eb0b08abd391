"""Record store: the hosted database and recording bucket behind one interface.

``RestRecordStore`` talks to a PostgREST-compatible hosted database and its
object storage. ``JsonRecordStore`` keeps the same tables as JSON files on
disk (fcntl lock + atomic write) for offline use and tests.
"""

import fcntl
import json
import os
import tempfile
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import httpx
import structlog

from kids_gate.config import Settings
from kids_gate.exceptions import BackendError

logger = structlog.get_logger()

Filters = dict[str, Any]


class RecordStore(ABC):
    """Minimal table/bucket API used by the configuration, content and history modules."""

    @abstractmethod
    async def select(
        self,
        table: str,
        filters: Filters | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]: ...

    @abstractmethod
    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]: ...

    @abstractmethod
    async def update(self, table: str, values: dict[str, Any], filters: Filters) -> int: ...

    @abstractmethod
    async def delete(self, table: str, filters: Filters) -> int: ...

    @abstractmethod
    async def upload(
        self, bucket: str, name: str, data: bytes, content_type: str
    ) -> str:
        """Store an object and return its public reference."""

    async def aclose(self) -> None:
        pass


def _matches(row: dict[str, Any], filters: Filters | None) -> bool:
    return all(row.get(key) == value for key, value in (filters or {}).items())


class JsonRecordStore(RecordStore):
    """Tables as ``<table>.json`` files under ``data_dir``.

    Args:
        data_dir: Directory holding the table files and the ``buckets`` folder.
    """

    def __init__(self, data_dir: Path):
        self.data_dir = data_dir
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _table_path(self, table: str) -> Path:
        return self.data_dir / f"{table}.json"

    @contextmanager
    def _locked(self, table: str) -> Iterator[None]:
        lock_path = self.data_dir / f"{table}.json.lock"
        with open(lock_path, "w") as lock_file:
            fcntl.flock(lock_file, fcntl.LOCK_EX)
            yield

    def _read(self, table: str) -> list[dict[str, Any]]:
        path = self._table_path(table)
        if not path.exists():
            return []
        try:
            return json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise BackendError(f"cannot read table {table}: {e}") from e

    def _write(self, table: str, rows: list[dict[str, Any]]) -> None:
        try:
            with tempfile.NamedTemporaryFile(
                "w", dir=self.data_dir, delete=False, suffix=".json"
            ) as tmp:
                json.dump(rows, tmp, indent=2, default=str)
            os.replace(tmp.name, self._table_path(table))
        except OSError as e:
            raise BackendError(f"cannot write table {table}: {e}") from e

    async def select(
        self,
        table: str,
        filters: Filters | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        with self._locked(table):
            rows = [row for row in self._read(table) if _matches(row, filters)]
        if order_by:
            rows.sort(
                key=lambda row: (str(row.get(order_by) or ""), row.get("id", 0)),
                reverse=descending,
            )
        if limit is not None:
            rows = rows[:limit]
        return rows

    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        with self._locked(table):
            rows = self._read(table)
            next_id = max((r.get("id", 0) for r in rows), default=0) + 1
            stored = {"id": next_id, "created_at": datetime.now(UTC).isoformat(), **row}
            rows.append(stored)
            self._write(table, rows)
        return dict(stored)

    async def update(self, table: str, values: dict[str, Any], filters: Filters) -> int:
        count = 0
        with self._locked(table):
            rows = self._read(table)
            for row in rows:
                if _matches(row, filters):
                    row.update(values)
                    count += 1
            if count:
                self._write(table, rows)
        return count

    async def delete(self, table: str, filters: Filters) -> int:
        with self._locked(table):
            rows = self._read(table)
            kept = [row for row in rows if not _matches(row, filters)]
            if len(kept) != len(rows):
                self._write(table, kept)
        return len(rows) - len(kept)

    async def upload(
        self, bucket: str, name: str, data: bytes, content_type: str
    ) -> str:
        bucket_dir = self.data_dir / "buckets" / bucket
        try:
            bucket_dir.mkdir(parents=True, exist_ok=True)
            path = bucket_dir / name
            path.write_bytes(data)
        except OSError as e:
            raise BackendError(f"cannot store {bucket}/{name}: {e}") from e
        return path.resolve().as_uri()


def _filter_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class RestRecordStore(RecordStore):
    """PostgREST tables at ``/rest/v1`` and object storage at ``/storage/v1``.

    Args:
        base_url: Project URL of the hosted database.
        api_key: Service or anon key sent as ``apikey`` and bearer token.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
            },
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("backend_request_failed", method=method, path=path, error=str(e))
            raise BackendError(f"{method} {path} failed: {e}") from e
        return response

    async def _request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._request(method, path, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            logger.warning("backend_response_invalid", method=method, path=path, error=str(e))
            raise BackendError(f"{method} {path} returned a non-JSON body") from e

    @staticmethod
    def _filter_params(filters: Filters | None) -> dict[str, str]:
        return {key: f"eq.{_filter_value(value)}" for key, value in (filters or {}).items()}

    async def select(
        self,
        table: str,
        filters: Filters | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        params = {"select": "*", **self._filter_params(filters)}
        if order_by:
            params["order"] = f"{order_by}.{'desc' if descending else 'asc'}"
        if limit is not None:
            params["limit"] = str(limit)
        return await self._request_json("GET", f"/rest/v1/{table}", params=params)

    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        data = await self._request_json(
            "POST",
            f"/rest/v1/{table}",
            json=row,
            headers={"Prefer": "return=representation"},
        )
        if not isinstance(data, list) or not data:
            raise BackendError(f"POST /rest/v1/{table} returned no row")
        return data[0]

    async def update(self, table: str, values: dict[str, Any], filters: Filters) -> int:
        rows = await self._request_json(
            "PATCH",
            f"/rest/v1/{table}",
            params=self._filter_params(filters),
            json=values,
            headers={"Prefer": "return=representation"},
        )
        return len(rows)

    async def delete(self, table: str, filters: Filters) -> int:
        rows = await self._request_json(
            "DELETE",
            f"/rest/v1/{table}",
            params=self._filter_params(filters),
            headers={"Prefer": "return=representation"},
        )
        return len(rows)

    async def upload(
        self, bucket: str, name: str, data: bytes, content_type: str
    ) -> str:
        await self._request(
            "POST",
            f"/storage/v1/object/{bucket}/{name}",
            content=data,
            headers={"Content-Type": content_type},
        )
        return f"{self.base_url}/storage/v1/object/public/{bucket}/{name}"

    async def aclose(self) -> None:
        await self._client.aclose()


def create_record_store(settings: Settings) -> RecordStore:
    """Hosted store when a backend URL is configured, local JSON files otherwise."""
    if settings.backend_url:
        return RestRecordStore(
            settings.backend_url,
            settings.backend_key or "",
            timeout=settings.backend_timeout_seconds,
        )
    logger.info("record_store_local", path=str(settings.data_dir))
    return JsonRecordStore(settings.data_dir)
