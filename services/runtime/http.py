"""Outbound HTTP retrieval for catalog metadata and release archives."""

from __future__ import annotations

import functools
import http.client
import logging
import time
from typing import BinaryIO, Mapping
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode, urlsplit, urlunsplit
from urllib.request import HTTPHandler, HTTPSHandler, OpenerDirector, Request, build_opener

from app.version import get_app_version
from services.runtime.constants import DEFAULT_CONNECT_TIMEOUT, DEFAULT_READ_TIMEOUT
from services.runtime.models import FetchError, HttpStatusError

_LOGGER = logging.getLogger(__name__)

__all__ = ["ContentFetcher", "build_url"]


class _ReadTimeoutHTTPConnection(http.client.HTTPConnection):
    def __init__(self, *args, read_timeout: float, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._read_timeout = read_timeout

    def connect(self) -> None:
        super().connect()
        self.sock.settimeout(self._read_timeout)


class _ReadTimeoutHTTPSConnection(http.client.HTTPSConnection):
    def __init__(self, *args, read_timeout: float, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._read_timeout = read_timeout

    def connect(self) -> None:
        super().connect()
        self.sock.settimeout(self._read_timeout)


class _ReadTimeoutHTTPHandler(HTTPHandler):
    def __init__(self, read_timeout: float) -> None:
        super().__init__()
        self._read_timeout = read_timeout

    def http_open(self, req):  # type: ignore[override]
        factory = functools.partial(
            _ReadTimeoutHTTPConnection, read_timeout=self._read_timeout
        )
        return self.do_open(factory, req)


class _ReadTimeoutHTTPSHandler(HTTPSHandler):
    def __init__(self, read_timeout: float) -> None:
        super().__init__()
        self._read_timeout = read_timeout

    def https_open(self, req):  # type: ignore[override]
        factory = functools.partial(
            _ReadTimeoutHTTPSConnection, read_timeout=self._read_timeout
        )
        return self.do_open(factory, req, context=getattr(self, "_context", None))


def build_url(url: str, query_params: Mapping[str, str] | None = None) -> str:
    """Append ``query_params`` to ``url``, keeping any query it already has."""

    if not query_params:
        return url
    parts = urlsplit(url)
    query = urlencode(list(query_params.items()))
    if parts.query:
        query = f"{parts.query}&{query}"
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


class ContentFetcher:
    """Perform GET requests with a short connect and a long read timeout.

    The connect timeout bounds establishing the connection; once connected the
    socket switches to the read timeout so large archive transfers are not cut
    short by a slow chunk.
    """

    def __init__(
        self,
        *,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
        opener: OpenerDirector | None = None,
        user_agent: str | None = None,
    ) -> None:
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self._opener = opener or build_opener(
            _ReadTimeoutHTTPHandler(read_timeout),
            _ReadTimeoutHTTPSHandler(read_timeout),
        )
        self._user_agent = user_agent or f"runtime-fetcher/{get_app_version()}"

    def get(
        self,
        url: str,
        query_params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> BinaryIO:
        """Return the response body of ``url`` as a readable binary stream.

        The caller owns the returned stream and must close it.
        """

        full_url = build_url(url, query_params)
        request = Request(full_url, method="GET")
        request.add_header("User-Agent", self._user_agent)
        for name, value in (headers or {}).items():
            request.add_header(name, value)

        start = time.monotonic()
        try:
            response = self._opener.open(request, timeout=self.connect_timeout)
        except HTTPError as exc:
            body = _read_error_body(exc)
            _LOGGER.debug("Request %s failed with status %s", full_url, exc.code)
            raise HttpStatusError(exc.code, full_url, body) from exc
        except (URLError, OSError) as exc:
            raise FetchError(f"Http request {full_url} failed: {exc}") from exc

        elapsed_ms = (time.monotonic() - start) * 1000
        _LOGGER.debug("Request %s took %.0f ms", full_url, elapsed_ms)

        status = getattr(response, "status", None)
        if status is not None and not 200 <= status < 300:
            try:
                body = response.read().decode("utf-8", errors="replace")
            finally:
                response.close()
            raise HttpStatusError(status, full_url, body)
        return response


def _read_error_body(error: HTTPError) -> str:
    try:
        payload = error.read()
    except OSError:
        return ""
    finally:
        error.close()
    if not payload:
        return ""
    return payload.decode("utf-8", errors="replace")
