"""A small HTTP client for the Cloudflare v4 API."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

import requests

DEFAULT_BASE_URL = "https://api.cloudflare.com/client/v4"
DEFAULT_TIMEOUT = 30.0


class CloudflareError(Exception):
    """An API call failed."""

    def __init__(self, message: str, *, status: Optional[int] = None, errors: Iterable[Any] = ()) -> None:
        super().__init__(message)
        self.status = status
        self.errors = tuple(errors)


class AuthenticationError(CloudflareError):
    """The API rejected the credentials (HTTP 401)."""


class AuthorizationError(CloudflareError):
    """The credentials lack the needed permission (HTTP 403)."""


def _describe_errors(errors: Iterable[Any]) -> str:
    parts = []
    for error in errors:
        if isinstance(error, dict):
            code = error.get("code")
            message = error.get("message", "")
            parts.append(f"{code}: {message}" if code is not None else str(message))
        else:
            parts.append(str(error))
    return "; ".join(parts)


class CloudflareClient:
    """Sends authenticated requests and unwraps the API's response envelope."""

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_BASE_URL,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        if not token:
            raise ValueError("the API token must not be empty")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session if session is not None else requests.Session()
        self._headers = {"Authorization": f"Bearer {token}"}

    def __enter__(self) -> "CloudflareClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self._session.close()

    def _send(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        body: Any = None,
    ) -> Dict[str, Any]:
        try:
            response = self._session.request(
                method,
                self.base_url + path,
                params=dict(params) if params else None,
                json=body,
                headers=self._headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise CloudflareError(f"{method} {path} failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError:
            payload = None

        errors = payload.get("errors") or [] if isinstance(payload, dict) else []
        status = response.status_code
        failed = status >= 400 or not isinstance(payload, dict) or payload.get("success") is False
        if failed:
            detail = _describe_errors(errors) or f"HTTP {status}"
            message = f"{method} {path} failed: {detail}"
            if status == 401:
                raise AuthenticationError(message, status=status, errors=errors)
            if status == 403:
                raise AuthorizationError(message, status=status, errors=errors)
            raise CloudflareError(message, status=status, errors=errors)
        return payload

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        body: Any = None,
    ) -> Any:
        """Send one request and return the ``result`` of the response."""
        return self._send(method, path, params, body).get("result")

    def get_all(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        per_page: Optional[int] = None,
    ) -> List[Any]:
        """Fetch every page of a listing.

        With ``per_page`` the listing is paged by number; without it, the
        cursor given in ``result_info`` is followed.
        """
        query: Dict[str, Any] = dict(params or {})
        results: List[Any] = []

        if per_page is not None:
            page = 1
            while True:
                query.update(page=page, per_page=per_page)
                payload = self._send("GET", path, query)
                results.extend(payload.get("result") or [])
                total = (payload.get("result_info") or {}).get("total_pages")
                if not total or page >= total:
                    return results
                page += 1

        while True:
            payload = self._send("GET", path, query or None)
            results.extend(payload.get("result") or [])
            cursors = (payload.get("result_info") or {}).get("cursors") or {}
            after = cursors.get("after")
            if not after:
                return results
            query["cursor"] = after