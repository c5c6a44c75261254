"""
Bounded HTTP retrieval for repository metadata and archives.

Redirects are followed by hand so the hop count can be capped, and bodies are
streamed through ``BoundedReader`` so an oversized payload is abandoned as soon
as it crosses the byte ceiling instead of after it has been buffered.
"""
from __future__ import annotations

import json
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urljoin, urlsplit

import requests

from ..errors import FetchError, FetchErrorKind
from ..logger import get_logger
from ..settings import settings

log = get_logger(__name__)

DEFAULT_JSON_MAX_BYTES = 5 * 1024 * 1024
_CHUNK_SIZE = 64 * 1024


class BoundedReader:
    """Drain a streamed response, failing once ``max_bytes`` is exceeded."""

    def __init__(
        self,
        response: requests.Response,
        max_bytes: int,
        url: str,
        chunk_size: int = _CHUNK_SIZE,
    ) -> None:
        self._response = response
        self.max_bytes = max_bytes
        self.url = url
        self.chunk_size = chunk_size
        self.bytes_read = 0

    def _abort(self) -> FetchError:
        self._response.close()
        return FetchError(
            FetchErrorKind.SIZE_EXCEEDED,
            self.url,
            detail=f"body exceeds {self.max_bytes} bytes",
        )

    def read(self) -> bytes:
        declared = self._response.headers.get("Content-Length")
        if declared and declared.isdigit() and int(declared) > self.max_bytes:
            raise self._abort()

        buffer = bytearray()
        try:
            for chunk in self._response.iter_content(chunk_size=self.chunk_size):
                if not chunk:
                    continue
                self.bytes_read += len(chunk)
                if self.bytes_read > self.max_bytes:
                    raise self._abort()
                buffer.extend(chunk)
        except requests.RequestException as exc:
            self._response.close()
            raise FetchError(FetchErrorKind.TRANSPORT, self.url, detail=str(exc)) from exc
        finally:
            self._response.close()
        return bytes(buffer)


class RemoteFetcher:
    """GET helper with a redirect bound, size caps, and identifying headers."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        user_agent: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        max_redirects: Optional[int] = None,
    ) -> None:
        self.session = session or requests.Session()
        self.user_agent = user_agent or settings.user_agent
        self.token = token if token is not None else settings.github_token
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.max_redirects = (
            max_redirects if max_redirects is not None else settings.max_redirects
        )

    def _headers(self, url: str, origin: str, extra: Optional[Mapping[str, str]]) -> Dict[str, str]:
        headers = {"User-Agent": self.user_agent}
        # Credentials never follow a redirect onto another host.
        if self.token and urlsplit(url).netloc == urlsplit(origin).netloc:
            headers["Authorization"] = f"token {self.token}"
        if extra:
            headers.update(extra)
        return headers

    def _open(self, url: str, headers: Optional[Mapping[str, str]] = None) -> requests.Response:
        current = url
        for hop in range(self.max_redirects + 1):
            try:
                response = self.session.get(
                    current,
                    headers=self._headers(current, url, headers),
                    stream=True,
                    allow_redirects=False,
                    timeout=self.timeout,
                )
            except requests.RequestException as exc:
                raise FetchError(FetchErrorKind.TRANSPORT, current, detail=str(exc)) from exc

            location = response.headers.get("Location")
            if 300 <= response.status_code < 400 and location:
                response.close()
                target = urljoin(current, location)
                log.debug("fetch_redirect", source=current, target=target, hop=hop + 1)
                current = target
                continue

            if not 200 <= response.status_code < 300:
                response.close()
                raise FetchError(
                    FetchErrorKind.HTTP_STATUS, current, status_code=response.status_code
                )
            return response

        raise FetchError(
            FetchErrorKind.TOO_MANY_REDIRECTS,
            url,
            detail=f"more than {self.max_redirects} redirects",
        )

    def fetch_bytes(
        self,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        max_bytes: int = DEFAULT_JSON_MAX_BYTES,
    ) -> bytes:
        response = self._open(url, headers)
        body = BoundedReader(response, max_bytes, url).read()
        log.debug("fetch_completed", url=url, bytes=len(body))
        return body

    def fetch_json(
        self,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        max_bytes: int = DEFAULT_JSON_MAX_BYTES,
    ) -> Dict[str, Any]:
        merged = {"Accept": "application/vnd.github.v3+json"}
        if headers:
            merged.update(headers)
        body = self.fetch_bytes(url, merged, max_bytes=max_bytes)
        try:
            payload = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise FetchError(FetchErrorKind.MALFORMED_BODY, url, detail=str(exc)) from exc
        if not isinstance(payload, dict):
            raise FetchError(FetchErrorKind.MALFORMED_BODY, url, detail="expected a JSON object")
        return payload
