"""
Notebook client: session lifecycle around one WorkspaceStore.

login -> open_workspace -> (mutations through the store) -> sign_out
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import requests

from radnotebook.workspace.gateway import GatewayError, PersistenceGateway, error_message
from radnotebook.workspace.notifications import Notifier
from radnotebook.workspace.store import WorkspaceStore

logger = logging.getLogger(__name__)


class NotebookClient:
    def __init__(self, base_url: str, session: Optional[requests.Session] = None, timeout: float = 30):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.user: Optional[Dict[str, Any]] = None
        self.refresh_token: Optional[str] = None
        self.store: Optional[WorkspaceStore] = None
        self._gateway = PersistenceGateway(self.base_url, session=self.session, timeout=timeout)

    @property
    def gateway(self) -> PersistenceGateway:
        return self._gateway

    @property
    def authenticated(self) -> bool:
        return "Authorization" in self.session.headers

    def _call(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            res = self.session.request(method, f"{self.base_url}/{path}", timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise GatewayError(f"Request failed: {type(e).__name__}") from e
        if not res.ok:
            raise GatewayError(error_message(res), status_code=res.status_code)
        return res.json() if res.content else None

    # ---- account ----

    def signup(self, email: str, password: str, display_name: Optional[str] = None) -> Dict[str, Any]:
        payload = {"email": email, "password": password}
        if display_name:
            payload["display_name"] = display_name
        return self._call("POST", "api-users", json=payload)

    def _use_tokens(self, body: Dict[str, Any]) -> None:
        self.user = body.get("user")
        self.refresh_token = body.get("refresh_token")
        self.session.headers["Authorization"] = f"Bearer {body['access_token']}"

    def login(self, email: str, password: str) -> Dict[str, Any]:
        body = self._call("POST", "api-users/login", json={"email": email, "password": password})
        self._use_tokens(body)
        logger.info("Signed in as %s", (self.user or {}).get("email"))
        return body

    def refresh(self) -> Dict[str, Any]:
        if not self.refresh_token:
            raise GatewayError("Not signed in", status_code=401)
        body = self._call("POST", "api-users/refresh", json={"refresh_token": self.refresh_token})
        self._use_tokens(body)
        return body

    def current_user(self) -> Dict[str, Any]:
        return self._call("GET", "api-users/me")

    def update_profile(self, **changes: Any) -> Dict[str, Any]:
        return self._call("PUT", "api-users/me", json=changes)

    # ---- workspace ----

    def open_workspace(self, notifier: Optional[Notifier] = None) -> WorkspaceStore:
        if self.store is None:
            self.store = WorkspaceStore(self.gateway, notifier)
        return self.store

    async def sign_out(self) -> None:
        if self.store is not None:
            await self.store.wait_idle()
        if self.authenticated:
            try:
                await asyncio.to_thread(self._call, "POST", "api-users/logout")
            except GatewayError as e:
                logger.warning("Server-side sign out failed: %s", e.message)
        if self.store is not None:
            self.store.reset()
        self.session.headers.pop("Authorization", None)
        self.user = None
        self.refresh_token = None

    # ---- analysis and sharing ----

    def analyze_report(self, text: str) -> Dict[str, str]:
        return self._call("POST", "analyze-report", json={"reportText": text})

    def shared_project(self, share_token: str) -> Dict[str, Any]:
        return self._call("GET", f"api-shared/{share_token}")

    def shared_sections(self, share_token: str, analysis_id: str) -> List[Dict[str, Any]]:
        body = self._call("GET", f"api-shared/{share_token}/analyses/{analysis_id}/sections")
        return list(body.get("sections") or [])
