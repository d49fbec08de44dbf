"""
Persistence gateway: table-level CRUD over the notebook's HTTP API.

Every call is blocking (requests); the mutation engine runs them in worker
threads. Failures are raised as GatewayError carrying the HTTP status and the
server's error message.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

# table -> (resource path, parent filter accepted by list/create)
TABLES = {
    "projects": ("api-projects", None),
    "analyses": ("api-analyses", "project_id"),
    "datasets": ("api-datasets", "project_id"),
    "sections": ("api-sections", "analysis_id"),
}


class GatewayError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def error_message(res: requests.Response) -> str:
    try:
        body = res.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"HTTP {res.status_code}"


class PersistenceGateway:
    """CRUD on the remote tables; ids and timestamps are assigned by the server."""

    def __init__(self, base_url: str, session: Optional[requests.Session] = None, timeout: float = 30):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _url(self, table: str, record_id: Optional[str] = None) -> str:
        try:
            path, _ = TABLES[table]
        except KeyError:
            raise ValueError(f"Unknown table: {table}") from None
        url = f"{self.base_url}/{path}"
        return f"{url}/{record_id}" if record_id else url

    def _send(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            res = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise GatewayError(f"Request failed: {type(e).__name__}") from e
        if not res.ok:
            raise GatewayError(error_message(res), status_code=res.status_code)
        if not res.content:
            return None
        try:
            return res.json()
        except ValueError:
            raise GatewayError("Malformed response body", status_code=res.status_code) from None

    def list(self, table: str, **filters: Any) -> List[Dict[str, Any]]:
        _, parent = TABLES.get(table, (None, None))
        params = {parent: filters[parent]} if parent and parent in filters else None
        body = self._send("GET", self._url(table), params=params)
        if not isinstance(body, dict):
            raise GatewayError(f"Malformed {table} listing")
        return list(body.get(table) or [])

    def create(self, table: str, values: Dict[str, Any]) -> Dict[str, Any]:
        logger.debug("create %s %s", table, sorted(values))
        record = self._send("POST", self._url(table), json=values)
        if not isinstance(record, dict):
            raise GatewayError(f"Malformed {table} row")
        return record

    def update(self, table: str, record_id: str, values: Dict[str, Any]) -> Dict[str, Any]:
        logger.debug("update %s %s %s", table, record_id, sorted(values))
        return self._send("PUT", self._url(table, record_id), json=values)

    def delete(self, table: str, record_id: str) -> None:
        logger.debug("delete %s %s", table, record_id)
        self._send("DELETE", self._url(table, record_id))
