"""Minimal TaxJar transactions client used by the record variants."""

from __future__ import annotations

from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from core.logs import get_sync_logger
from core.settings import TAXJAR


logger = get_sync_logger("api")


class TaxJarError(Exception):
    """Any failure talking to TaxJar; the queue treats it as transient."""


class TaxJarConnectionError(TaxJarError):
    pass


class TaxJarApiError(TaxJarError):
    def __init__(self, status_code: int, detail: str = "", method: str = "", path: str = "") -> None:
        self.status_code = status_code
        self.detail = detail
        self.method = method
        self.path = path
        super().__init__(f"{method} {path} -> {status_code}: {detail}".strip())


class TaxJarClient:
    def __init__(
        self,
        api_token: str | None = None,
        *,
        api_url: str = TAXJAR.api_url,
        timeout: int = TAXJAR.timeout_sec,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_token = api_token if api_token is not None else TAXJAR.api_token
        self.api_url = api_url if api_url.endswith("/") else api_url + "/"
        self.timeout = timeout
        self.session = session or requests.Session()

    # ------------------------------------------------------------------
    # Orders
    def create_order(self, payload: Dict[str, Any]) -> Dict:
        return self._request("POST", "transactions/orders", payload)

    def update_order(self, transaction_id: str, payload: Dict[str, Any]) -> Dict:
        return self._request("PUT", _path("orders", transaction_id), payload)

    def delete_order(self, transaction_id: str) -> Dict:
        return self._request("DELETE", _path("orders", transaction_id))

    def show_order(self, transaction_id: str) -> Dict:
        return self._request("GET", _path("orders", transaction_id))

    # ------------------------------------------------------------------
    # Refunds
    def create_refund(self, payload: Dict[str, Any]) -> Dict:
        return self._request("POST", "transactions/refunds", payload)

    def update_refund(self, transaction_id: str, payload: Dict[str, Any]) -> Dict:
        return self._request("PUT", _path("refunds", transaction_id), payload)

    def delete_refund(self, transaction_id: str) -> Dict:
        return self._request("DELETE", _path("refunds", transaction_id))

    def show_refund(self, transaction_id: str) -> Dict:
        return self._request("GET", _path("refunds", transaction_id))

    # ------------------------------------------------------------------
    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict:
        if not self.api_token:
            raise TaxJarApiError(401, "TaxJar API token is not configured", method, path)
        headers = {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
            "User-Agent": TAXJAR.user_agent,
        }
        try:
            response = self.session.request(
                method,
                self.api_url + path,
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise TaxJarConnectionError(str(exc)) from exc

        if response.status_code >= 400:
            detail = _error_detail(response)
            logger.info("%s %s returned %s: %s", method, path, response.status_code, detail)
            raise TaxJarApiError(response.status_code, detail, method, path)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise TaxJarApiError(response.status_code, "response is not JSON", method, path) from exc


def _path(kind: str, transaction_id: str) -> str:
    return "transactions/" + kind + "/" + quote(str(transaction_id), safe='')


def _error_detail(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return (response.text or "")[:500]
    if isinstance(body, dict):
        return str(body.get("detail") or body.get("error") or body)[:500]
    return str(body)[:500]


__all__ = ["TaxJarApiError", "TaxJarClient", "TaxJarConnectionError", "TaxJarError"]
