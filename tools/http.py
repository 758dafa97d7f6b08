"""tools/http.py

HTTP transport shared by engine provisioning and the GitHub reporting calls.

What it does
------------
* GET / POST with bounded retries: 15s initial delay, doubled per retry,
  3 retries. Statuses in ``{200, 201, 401, 403, 416}`` are terminal; every
  other status and every transport error is retried.
* GitHub rate limits: a 403 with ``x-ratelimit-remaining: 0`` sleeps until
  ``x-ratelimit-reset`` when that fits the 105s budget, otherwise raises
  :class:`~pipeline.errors.RateLimitError` with the delay in minutes.
* Streaming downloads with a 5-minute wall clock, partial-file cleanup and
  empty-file detection.
* A pluggable trust store (trust-all, or a custom CA combined with the
  certifi roots). Sessions are memoized per trust-store configuration.

``sleep`` and ``clock`` are injectable so tests never wait.
"""

from __future__ import annotations

import hashlib
import json
import logging
import math
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional

import certifi
import requests
import urllib3

from pipeline.constants import (
    BRIDGE_CLI_EMPTY_DOWNLOAD,
    DOWNLOAD_TIMEOUT_SECONDS,
    HTTP_TIMEOUT_SECONDS,
    NETWORK_SSL_VALIDATION_ERROR_MESSAGE,
    NON_RETRY_HTTP_CODES,
    RATE_LIMIT_BUDGET_SECONDS,
    RETRY_COUNT,
    RETRY_DELAY_SECONDS,
    SARIF_GAS_API_RATE_LIMIT_ERROR,
    SSL_MUTUALLY_EXCLUSIVE_ERROR,
)
from pipeline.errors import (
    ConfigurationError,
    IntegrityError,
    InvalidUrlError,
    NetworkError,
    NotFoundError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

SECONDARY_RATE_LIMIT = "secondary rate limit"
CHUNK_SIZE = 1024 * 64
# A reset time already in the past still waits this long before retrying.
MIN_RATE_LIMIT_WAIT_SECONDS = 1.0


@dataclass(frozen=True)
class HttpResponse:
    status: int
    body: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        if not self.body:
            return None
        try:
            return json.loads(self.text)
        except ValueError as e:
            raise IntegrityError(f"Response body is not valid JSON: {e}", http_status=self.status) from e


# ---------------------------------------------------------------------------
# Trust store
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TrustStore:
    trust_all: bool = False
    cert_file: Optional[str] = None

    def __post_init__(self) -> None:
        if self.trust_all and self.cert_file:
            raise ConfigurationError(SSL_MUTUALLY_EXCLUSIVE_ERROR)

    @property
    def cache_key(self) -> str:
        return f"trustAll:{self.trust_all}|certFile:{self.cert_file or ''}"


_session_cache: Dict[str, Any] = {}


def combined_ca_bundle(cert_file: str) -> Path:
    """Write certifi roots + ``cert_file`` to one PEM file and return its path."""
    custom = Path(cert_file)
    if not custom.is_file():
        raise ConfigurationError(f"SSL certificate file not found: {cert_file}")

    system_roots = Path(certifi.where()).read_text(encoding="utf-8")
    custom_pem = custom.read_text(encoding="utf-8")
    digest = hashlib.sha256((system_roots + custom_pem).encode("utf-8")).hexdigest()[:16]

    out = Path(tempfile.gettempdir()) / f"bridge-ca-bundle-{digest}.pem"
    if not out.exists():
        out.write_text(system_roots.rstrip("\n") + "\n" + custom_pem, encoding="utf-8")
    logger.debug("Using combined CA bundle %s", out)
    return out


def session_for(trust: TrustStore) -> requests.Session:
    """Return the process-wide session for ``trust``.

    Only one configuration is cached at a time; a different configuration
    replaces (and closes) the previous session.
    """
    key = trust.cache_key
    cached = _session_cache.get("session")
    if cached is not None and _session_cache.get("key") == key:
        return cached

    if cached is not None:
        cached.close()

    session = requests.Session()
    if trust.trust_all:
        session.verify = False
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
        logger.debug("SSL verification disabled (trust all)")
    elif trust.cert_file:
        session.verify = str(combined_ca_bundle(trust.cert_file))

    _session_cache["key"] = key
    _session_cache["session"] = session
    return session


def reset_session_cache() -> None:
    cached = _session_cache.pop("session", None)
    _session_cache.pop("key", None)
    if cached is not None:
        cached.close()


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class HttpTransport:
    """GET/POST/download with the retry and rate-limit policy above."""

    def __init__(
        self,
        *,
        trust: Optional[TrustStore] = None,
        session: Any = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
        retry_delay: float = RETRY_DELAY_SECONDS,
        retry_count: int = RETRY_COUNT,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        download_timeout: float = DOWNLOAD_TIMEOUT_SECONDS,
    ) -> None:
        self.trust = trust or TrustStore()
        self._session = session
        self._sleep = sleep
        self._clock = clock
        self.retry_delay = retry_delay
        self.retry_count = retry_count
        self.timeout = timeout
        self.download_timeout = download_timeout

    @property
    def session(self) -> Any:
        if self._session is None:
            self._session = session_for(self.trust)
        return self._session

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        *,
        ok_statuses: Iterable[int] = (),
        fail_fast: Iterable[int] = (),
    ) -> HttpResponse:
        return self._request("GET", url, headers=headers, ok_statuses=ok_statuses, fail_fast=fail_fast)

    def post(
        self,
        url: str,
        json_body: Any,
        headers: Optional[Dict[str, str]] = None,
        *,
        ok_statuses: Iterable[int] = (),
        fail_fast: Iterable[int] = (),
    ) -> HttpResponse:
        return self._request(
            "POST", url, headers=headers, json_body=json_body, ok_statuses=ok_statuses, fail_fast=fail_fast
        )

    def download(self, url: str, dest: Path, headers: Optional[Dict[str, str]] = None) -> Path:
        """Stream ``url`` to ``dest``.

        Fails if ``dest`` already exists. 404 raises :class:`NotFoundError`
        immediately; other terminal statuses raise :class:`NetworkError`.
        """
        if dest.exists():
            raise IntegrityError(f"Destination file path {dest} already exists")
        dest.parent.mkdir(parents=True, exist_ok=True)

        delay = self.retry_delay
        retries_left = self.retry_count
        while True:
            try:
                status = self._download_once(url, dest, headers)
            except (requests.exceptions.InvalidURL, requests.exceptions.MissingSchema) as e:
                raise InvalidUrlError(f"Invalid URL: {url}") from e
            except requests.exceptions.RequestException as e:
                _unlink(dest)
                last_error: Exception = self._transport_error(url, e)
            else:
                if status == 200:
                    break
                if status == 404:
                    raise NotFoundError(f"HTTP 404 for {url}", http_status=404)
                last_error = NetworkError(f"Download of {url} failed with HTTP {status}", http_status=status)
                if status in NON_RETRY_HTTP_CODES:
                    raise last_error

            if retries_left <= 0:
                raise last_error
            logger.info("Download of %s failed, retrying in %s seconds (%d retries left)", url, delay, retries_left)
            self._sleep(delay)
            delay *= 2
            retries_left -= 1

        if not dest.exists() or dest.stat().st_size == 0:
            _unlink(dest)
            raise IntegrityError(BRIDGE_CLI_EMPTY_DOWNLOAD.format(url))
        logger.debug("Downloaded %s to %s", url, dest)
        return dest

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        json_body: Any = None,
        ok_statuses: Iterable[int] = (),
        fail_fast: Iterable[int] = (),
    ) -> HttpResponse:
        terminal = set(NON_RETRY_HTTP_CODES) | set(ok_statuses) | set(fail_fast)
        delay = self.retry_delay
        retries_left = self.retry_count
        rate_limit_waited = 0.0

        while True:
            try:
                raw = self.session.request(
                    method, url, headers=headers or {}, json=json_body, timeout=self.timeout
                )
            except (requests.exceptions.InvalidURL, requests.exceptions.MissingSchema) as e:
                raise InvalidUrlError(f"Invalid URL: {url}") from e
            except requests.exceptions.RequestException as e:
                last_error: Exception = self._transport_error(url, e)
            else:
                response = _wrap(raw)
                wait = self._rate_limit_wait(response)
                if wait is not None:
                    if retries_left <= 0 or rate_limit_waited + wait > RATE_LIMIT_BUDGET_SECONDS:
                        minutes = max(1, math.ceil(wait / 60))
                        raise RateLimitError(
                            SARIF_GAS_API_RATE_LIMIT_ERROR.format(minutes), wait_minutes=minutes
                        )
                    logger.info("GitHub API rate limit reached, retrying in %d seconds", math.ceil(wait))
                    self._sleep(wait)
                    rate_limit_waited += wait
                    retries_left -= 1
                    continue

                if response.status in terminal:
                    return response
                last_error = NetworkError(
                    f"{method} {url} failed with HTTP {response.status}", http_status=response.status
                )

            if retries_left <= 0:
                raise last_error
            logger.info("%s %s failed, retrying in %s seconds (%d retries left)", method, url, delay, retries_left)
            self._sleep(delay)
            delay *= 2
            retries_left -= 1

    def _rate_limit_wait(self, response: HttpResponse) -> Optional[float]:
        """Seconds to wait when ``response`` is a rate-limit rejection, else None."""
        if response.status not in (403, 429):
            return None

        remaining = response.header("x-ratelimit-remaining")
        secondary = SECONDARY_RATE_LIMIT in response.text.lower()
        if remaining != "0" and not secondary:
            return None

        retry_after = response.header("retry-after")
        if retry_after and retry_after.isdigit():
            return float(retry_after)

        reset = response.header("x-ratelimit-reset")
        if reset:
            try:
                return max(MIN_RATE_LIMIT_WAIT_SECONDS, float(reset) - self._clock())
            except ValueError:
                logger.debug("Unparsable x-ratelimit-reset header %r", reset)
        return float(self.retry_delay)

    def _download_once(self, url: str, dest: Path, headers: Optional[Dict[str, str]]) -> int:
        started = self._clock()
        raw = self.session.request(
            "GET", url, headers=headers or {}, stream=True, timeout=(self.timeout, self.download_timeout)
        )
        try:
            if raw.status_code != 200:
                return raw.status_code
            with dest.open("wb") as f:
                for chunk in raw.iter_content(chunk_size=CHUNK_SIZE):
                    if self._clock() - started > self.download_timeout:
                        raise requests.exceptions.Timeout(
                            f"Download exceeded {int(self.download_timeout)} seconds"
                        )
                    if chunk:
                        f.write(chunk)
            return 200
        except BaseException:
            _unlink(dest)
            raise
        finally:
            raw.close()

    def _transport_error(self, url: str, error: Exception) -> NetworkError:
        if isinstance(error, requests.exceptions.SSLError):
            return NetworkError(f"{NETWORK_SSL_VALIDATION_ERROR_MESSAGE} ({error})")
        return NetworkError(f"Request to {url} failed: {error}")


def _wrap(raw: Any) -> HttpResponse:
    headers = {str(k).lower(): str(v) for k, v in (raw.headers or {}).items()}
    return HttpResponse(status=int(raw.status_code), body=raw.content or b"", headers=headers)


def _unlink(path: Path) -> None:
    if path.exists():
        path.unlink()
