"""Binary cache existence probes over HTTP."""

from __future__ import annotations

import enum
import logging

import requests
from requests.adapters import HTTPAdapter

from flake_ci.errors import VerifyError

LOGGER = logging.getLogger(__name__)

DEFAULT_POOL_MAXSIZE = 16


class CacheVerdict(str, enum.Enum):
    PRESENT = "present"
    ABSENT = "absent"
    # Verification disabled; never returned by a cache probe.
    UNCHECKED = "unchecked"


def narinfo_url(endpoint: str, hash_token: str) -> str:
    return f"{endpoint.rstrip('/')}/{hash_token}.narinfo"


class CacheVerifier:
    """Checks a binary cache for `<hash>.narinfo` entries.

    A 2xx response means the artifact is cached and a 404 means it is not.
    Anything else raises `VerifyError`, since a failed probe says nothing about
    whether the artifact exists.
    """

    def __init__(
        self,
        endpoint: str,
        auth_token: str | None = None,
        *,
        session: requests.Session | None = None,
        timeout: float | None = None,
        pool_maxsize: int = DEFAULT_POOL_MAXSIZE,
    ) -> None:
        self.endpoint = endpoint
        self.timeout = timeout
        if session is None:
            session = requests.Session()
            # One pooled connection per concurrent verify worker.
            adapter = HTTPAdapter(pool_maxsize=pool_maxsize)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        self._session = session
        self._headers: dict[str, str] = {}
        if auth_token:
            self._headers["Authorization"] = f"bearer {auth_token}"

    def verify(self, hash_token: str) -> CacheVerdict:
        url = narinfo_url(self.endpoint, hash_token)
        try:
            response = self._session.get(url, headers=self._headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise VerifyError(f"Unable to query binary cache ({exc})") from exc

        status = response.status_code
        if 200 <= status < 300:
            return CacheVerdict.PRESENT
        if status == 404:
            return CacheVerdict.ABSENT
        raise VerifyError(
            f"Unable to query binary cache ({url}: status {status})",
            status_code=status,
        )

    def close(self) -> None:
        self._session.close()


def verify_cache(
    hash_token: str,
    endpoint: str,
    auth_token: str | None = None,
    *,
    session: requests.Session | None = None,
) -> CacheVerdict:
    """One-shot probe of `endpoint` for `hash_token`."""

    verifier = CacheVerifier(endpoint, auth_token, session=session, pool_maxsize=1)
    try:
        return verifier.verify(hash_token)
    finally:
        if session is None:
            verifier.close()
