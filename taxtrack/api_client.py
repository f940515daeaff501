"""
api_client.py - HTTP client for the TaxTrack REST backend

The backend is an external collaborator; this module only knows its HTTP
contract:

  POST /api/auth/login      {email, password}   -> {user, token}
  POST /api/auth/register   {...}               -> {user, token}
  GET  /api/tax             (bearer)            -> [transaction, ...]
  POST /api/tax             (bearer) fields     -> transaction
  POST /api/receipts        (bearer) multipart  -> {transactions: [...]}
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import logging

import httpx

from taxtrack.errors import AuthenticationError, RemoteStoreError

logger = logging.getLogger(__name__)


@dataclass
class AuthSession:
    user: Dict[str, Any]
    token: str


class TaxTrackApiClient:
    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def close(self):
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    @property
    def authenticated(self) -> bool:
        return bool(self.token)

    def _auth_headers(self) -> Dict[str, str]:
        if not self.token:
            raise AuthenticationError("Not signed in to the TaxTrack backend")
        return {"Authorization": f"Bearer {self.token}"}

    @staticmethod
    def _error_message(resp: httpx.Response) -> Optional[str]:
        try:
            body = resp.json()
        except ValueError:
            return resp.text or None
        if isinstance(body, dict):
            return body.get("message") or body.get("error")
        return None

    def _request(self, method: str, path: str, auth: bool = True, **kwargs) -> Any:
        headers = self._auth_headers() if auth else {}
        try:
            resp = self._client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise RemoteStoreError("Could not reach the TaxTrack backend", detail=str(exc)) from exc

        if resp.is_error:
            detail = self._error_message(resp)
            logger.warning("%s %s returned %s: %s", method, path, resp.status_code, detail)
            error_cls = AuthenticationError if resp.status_code == 401 else RemoteStoreError
            raise error_cls(
                f"Backend answered {resp.status_code} for {method} {path}",
                status_code=resp.status_code,
                detail=detail,
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise RemoteStoreError(
                f"Backend sent a non-JSON body for {method} {path}",
                status_code=resp.status_code,
            ) from exc

    def _session_from(self, body: Any) -> AuthSession:
        if not isinstance(body, dict) or not body.get("token"):
            raise AuthenticationError("Backend did not return a token")
        self.token = body["token"]
        return AuthSession(user=body.get("user") or {}, token=self.token)

    def login(self, email: str, password: str) -> AuthSession:
        body = self._request("POST", "/api/auth/login", auth=False,
                             json={"email": email, "password": password})
        return self._session_from(body)

    def register(self, **fields) -> AuthSession:
        body = self._request("POST", "/api/auth/register", auth=False, json=fields)
        return self._session_from(body)

    def logout(self):
        self.token = None

    def list_transactions(self) -> List[Dict[str, Any]]:
        body = self._request("GET", "/api/tax")
        if not isinstance(body, list):
            raise RemoteStoreError("Expected a list of transactions from GET /api/tax")
        return body

    def create_transaction(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        body = self._request("POST", "/api/tax", json=fields)
        if body is None:
            return {}
        if not isinstance(body, dict):
            raise RemoteStoreError("Expected a transaction object from POST /api/tax")
        return body

    def upload_receipt(self, filename: str, content: bytes, tx_type: str = "VAT") -> List[Dict[str, Any]]:
        body = self._request(
            "POST",
            "/api/receipts",
            files={"file": (filename, content)},
            data={"type": tx_type},
        )
        if body is None:
            return []
        if not isinstance(body, dict):
            raise RemoteStoreError("Expected an object from POST /api/receipts")
        rows = body.get("transactions") or []
        if not isinstance(rows, list):
            raise RemoteStoreError("Expected a list of transactions from POST /api/receipts")
        return rows
