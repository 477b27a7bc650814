from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional

import requests
from curl_cffi import requests as curl_requests


DEFAULT_IMPERSONATE = "chrome120"


class Transport(ABC):
    """Issues a single GET and returns the HTTP status code.

    Any exception raised by get() counts as a failed attempt; an HTTP error
    status is a successful round trip from the requester's point of view.
    """

    @abstractmethod
    def get(self, url: str, timeout: float) -> int:
        ...

    def close(self) -> None:
        """Release pooled connections."""


class RequestsTransport(Transport):
    """Transport over ``requests`` with one Session per calling thread."""

    def __init__(self, headers: Optional[Dict[str, str]] = None) -> None:
        self._headers = headers
        self._local = threading.local()
        self._sessions: list[requests.Session] = []
        self._lock = threading.Lock()

    def _session(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            if self._headers:
                session.headers.update(self._headers)
            self._local.session = session
            with self._lock:
                self._sessions.append(session)
        return session

    def get(self, url: str, timeout: float) -> int:
        resp = self._session().get(url, timeout=timeout, stream=True)
        try:
            return resp.status_code
        finally:
            resp.close()

    def close(self) -> None:
        with self._lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()


class CurlTransport(Transport):
    """Transport over ``curl_cffi`` that impersonates a browser TLS fingerprint.

    curl_cffi sessions are not safe to share across threads, so a fresh
    session is used per attempt.
    """

    def __init__(self, impersonate: str = DEFAULT_IMPERSONATE, headers: Optional[Dict[str, str]] = None) -> None:
        self._impersonate = impersonate
        self._headers = headers

    def get(self, url: str, timeout: float) -> int:
        session = curl_requests.Session()
        try:
            response = session.request(
                method="GET",
                url=url,
                headers=self._headers,
                impersonate=self._impersonate,
                timeout=timeout,
            )
            return response.status_code
        finally:
            session.close()


def create_transport(name: str, impersonate: str = DEFAULT_IMPERSONATE) -> Transport:
    if name == "requests":
        return RequestsTransport()
    if name == "curl":
        return CurlTransport(impersonate=impersonate)
    raise ValueError(f"Unknown transport: {name}")
