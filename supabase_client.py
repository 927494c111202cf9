"""
supabase_client.py
==================
Thin client for the hosted backend used by MCU Rankings.

Two services are spoken to over plain HTTP:

* **REST tables**: ``/rest/v1/<table>`` (PostgREST query syntax)
* **Auth**: ``/auth/v1/token``, ``/auth/v1/signup``,
  ``/auth/v1/user`` and ``/auth/v1/logout``

The table methods (``select`` / ``upsert`` / ``update``) follow the same
contract as :class:`database.SQLStore`, so repositories work against either
backend.  Failures raise :class:`app.errors.FetchError` (tables) or
:class:`app.errors.AuthError` (auth); nothing is retried here.

Usage
-----
::

    from supabase_client import SupabaseClient

    client = SupabaseClient("https://xyz.supabase.co", "anon-key")
    rows = client.select("mcu_shows", "id, title",
                         filters=[("show_key", "eq", "loki")],
                         order=["season_number"])
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import requests

from app.errors import AuthError, FetchError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
_DEFAULT_TIMEOUT = 10  # seconds
_REST_PATH = "/rest/v1"
_AUTH_PATH = "/auth/v1"
_FILTER_OPS = ("eq", "ilike")

Filter = Tuple[str, str, Any]
OrderSpec = Union[str, Tuple[str, bool]]


def _order_param(order: Sequence[OrderSpec]) -> str:
    parts = []
    for spec in order:
        if isinstance(spec, str):
            column, ascending = spec, True
        else:
            column, ascending = spec
        parts.append(f"{column}.{'asc' if ascending else 'desc'}")
    return ",".join(parts)


def _filter_params(filters: Optional[Iterable[Filter]]) -> List[Tuple[str, str]]:
    params: List[Tuple[str, str]] = []
    for column, op, value in filters or []:
        if op not in _FILTER_OPS:
            raise ValueError(f"Unsupported filter operator: {op}")
        if isinstance(value, bool):
            value = "true" if value else "false"
        params.append((column, f"{op}.{value}"))
    return params


def is_network_unavailable_error(exc: BaseException) -> bool:
    """True when *exc* means the host could not be reached at all."""
    return isinstance(exc, (requests.Timeout, requests.ConnectionError))


def _error_message(resp: requests.Response) -> str:
    """Pull the most useful message out of an error response."""
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        for key in ("message", "error_description", "msg", "error"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {resp.status_code}"


class SupabaseClient:
    """Table and auth access for a hosted project.

    Args:
        url:      Project URL, e.g. ``https://abc.supabase.co``.
        anon_key: Public anon API key.
        timeout:  HTTP request timeout in seconds.
    """

    def __init__(
        self,
        url: str,
        anon_key: str,
        timeout: int = _DEFAULT_TIMEOUT,
        access_token: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not url or not anon_key:
            raise ValueError("url and anon_key must not be empty")
        self._url = url.rstrip("/")
        self._anon_key = anon_key
        self._timeout = timeout
        self._session = session or requests.Session()
        self._access_token = access_token

    # ------------------------------------------------------------------
    # Token handling
    # ------------------------------------------------------------------

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    def with_access_token(self, token: Optional[str]) -> "SupabaseClient":
        """Return a client that sends *token* as the bearer (``None`` = anon).

        The HTTP session is shared; the original client is left untouched.
        """
        return SupabaseClient(self._url, self._anon_key, self._timeout,
                              access_token=token, session=self._session)

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "apikey": self._anon_key,
            "Authorization": f"Bearer {self._access_token or self._anon_key}",
            "Content-Type": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    def select(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Iterable[Filter]] = None,
        order: Optional[Sequence[OrderSpec]] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Return rows of *table* matching every filter.

        Raises:
            FetchError: The request failed or returned an error status.
        """
        params: List[Tuple[str, str]] = [("select", columns.replace(" ", ""))]
        params.extend(_filter_params(filters))
        if order:
            params.append(("order", _order_param(order)))
        if limit is not None:
            params.append(("limit", str(limit)))
        data = self._request("GET", table, params=params)
        return data or []

    def upsert(self, table: str, row: Dict[str, Any], on_conflict: str) -> None:
        """Insert *row*, or merge it into the row sharing *on_conflict*."""
        self._request(
            "POST", table,
            params=[("on_conflict", on_conflict)],
            json=row,
            prefer="resolution=merge-duplicates,return=minimal",
        )
        logger.info("Upserted %s on %s=%s", table, on_conflict, row.get(on_conflict))

    def update(
        self,
        table: str,
        filters: Iterable[Filter],
        patch: Dict[str, Any],
    ) -> Optional[Dict[str, Any]]:
        """Apply *patch* to matching rows; return the first updated row."""
        data = self._request(
            "PATCH", table,
            params=_filter_params(filters),
            json=patch,
            prefer="return=representation",
        )
        logger.info("Updated %s with %s", table, sorted(patch))
        return data[0] if data else None

    def _request(self, method: str, table: str, params=None, json=None,
                 prefer: Optional[str] = None):
        url = f"{self._url}{_REST_PATH}/{table}"
        headers = self._headers({"Prefer": prefer} if prefer else None)
        try:
            resp = self._session.request(
                method, url, params=params, json=json,
                headers=headers, timeout=self._timeout,
            )
        except requests.RequestException as exc:
            logger.error("%s %s failed: %s", method, table, exc)
            if is_network_unavailable_error(exc):
                raise FetchError(f"Network unavailable: {exc}") from exc
            raise FetchError(str(exc)) from exc

        if resp.status_code >= 400:
            message = _error_message(resp)
            logger.error("%s %s returned %d: %s", method, table, resp.status_code, message)
            raise FetchError(message, status=resp.status_code)
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise FetchError(f"Invalid JSON from {table}: {exc}") from exc

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def sign_in_with_password(self, email: str, password: str) -> Dict[str, Any]:
        """Verify credentials and return ``{user, access_token, refresh_token}``.

        Raises:
            AuthError: ``code='invalid_credentials'`` for a wrong pair,
                       another code for every other failure.
        """
        data = self._auth_request(
            "POST", "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        session = {
            "user": data.get("user") or {},
            "access_token": data.get("access_token"),
            "refresh_token": data.get("refresh_token"),
        }
        return session

    def sign_up(self, email: str, password: str) -> Dict[str, Any]:
        """Create an account; returns the new user object."""
        data = self._auth_request(
            "POST", "/signup", json={"email": email, "password": password},
        )
        return data.get("user") or data

    def get_user(self, access_token: str) -> Dict[str, Any]:
        """Return the user behind *access_token* or raise :class:`AuthError`."""
        return self._auth_request("GET", "/user", token=access_token)

    def sign_out(self, access_token: Optional[str] = None) -> None:
        token = access_token or self._access_token
        if token:
            self._auth_request("POST", "/logout", token=token)

    def _auth_request(self, method: str, path: str, params=None, json=None,
                      token: Optional[str] = None) -> Dict[str, Any]:
        url = f"{self._url}{_AUTH_PATH}{path}"
        headers = {
            "apikey": self._anon_key,
            "Content-Type": "application/json",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            resp = self._session.request(
                method, url, params=params, json=json,
                headers=headers, timeout=self._timeout,
            )
        except requests.RequestException as exc:
            logger.error("Auth %s failed: %s", path, exc)
            code = "network_error" if is_network_unavailable_error(exc) else "error"
            raise AuthError(str(exc), code=code) from exc

        if resp.status_code >= 400:
            message = _error_message(resp)
            code = "error"
            if "Invalid login credentials" in message:
                code = AuthError.INVALID_CREDENTIALS
            logger.warning("Auth %s returned %d: %s", path, resp.status_code, message)
            raise AuthError(message, code=code)
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as exc:
            raise AuthError(f"Invalid JSON from auth service: {exc}") from exc
