"""
Object Storage Gateway: checklist attachment blobs.

All outbound calls to the object store go through this class. It speaks the
Supabase Storage REST dialect:

    POST   {base}/storage/v1/object/{bucket}/{path}          upload bytes
    DELETE {base}/storage/v1/object/{bucket}                 body {"prefixes": [path]}
    POST   {base}/storage/v1/object/sign/{bucket}/{path}     body {"expiresIn": s}
    public URL: {base}/storage/v1/object/public/{bucket}/{path}

Configuration (app config):
    STORAGE_URL          base URL of the storage service
    STORAGE_BUCKET       bucket name (default "uploads")
    STORAGE_SERVICE_KEY  bearer key with write access to the bucket

  - Retry: max 2 extra attempts on network errors / 5xx, backoff 1 s → 4 s
  - Timeout: 30 s (configurable per call)
  - 4xx responses are not retried

Testability: pass a mock `session` to StorageGateway() in tests instead of
letting it create a real requests.Session internally.
"""

from __future__ import annotations

import logging
import time
from typing import Any
from urllib.parse import quote

import requests
from flask import current_app

logger = logging.getLogger(__name__)

# ── Retry constants ────────────────────────────────────────────────────────
_RETRY_MAX = 2
_RETRY_BACKOFF_SECONDS = [1, 4]

# ── Default request timeout ────────────────────────────────────────────────
_DEFAULT_TIMEOUT = 30

DEFAULT_BUCKET = "uploads"


class GatewayResult:
    """Structured return value from StorageGateway calls.

    Attributes:
        ok:           True if the call succeeded (HTTP 2xx + no exception).
        status_code:  HTTP status code (None if network-level failure).
        data:         Parsed JSON response body, else None.
        error:        Human-readable error message or None.
        duration_ms:  Round-trip latency in milliseconds.
        url:          Public or signed URL produced by the call, if any.
    """

    def __init__(
        self,
        ok: bool,
        status_code: int | None,
        data: dict | list | None,
        error: str | None,
        duration_ms: int,
        url: str | None = None,
    ) -> None:
        self.ok = ok
        self.status_code = status_code
        self.data = data
        self.error = error
        self.duration_ms = duration_ms
        self.url = url

    def __repr__(self) -> str:
        return f"<GatewayResult ok={self.ok} status={self.status_code} error={self.error!r}>"


class StorageGateway:
    """Object storage REST gateway.

    Instantiate once at module level (module-level singleton pattern).
    Settings are read from the Flask app config at call time unless given
    explicitly.

    Usage:
        from concierge.integrations import storage_gateway as gw_module
        result = gw_module.storage_gateway.put(path, data, "application/pdf")
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        *,
        base_url: str | None = None,
        bucket: str | None = None,
        service_key: str | None = None,
        backoff_seconds: list[int] | None = None,
    ) -> None:
        self._session: requests.Session | None = session
        self._base_url = base_url
        self._bucket = bucket
        self._service_key = service_key
        self._backoff = backoff_seconds if backoff_seconds is not None else _RETRY_BACKOFF_SECONDS

    # ── Settings ─────────────────────────────────────────────────────────────

    @property
    def session(self) -> requests.Session:
        """Return (or lazily create) the requests.Session."""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    @property
    def base_url(self) -> str:
        url = self._base_url or current_app.config.get("STORAGE_URL") or ""
        return url.rstrip("/")

    @property
    def bucket(self) -> str:
        return self._bucket or current_app.config.get("STORAGE_BUCKET") or DEFAULT_BUCKET

    @property
    def service_key(self) -> str:
        return self._service_key or current_app.config.get("STORAGE_SERVICE_KEY") or ""

    def _object_url(self, *parts: str) -> str:
        return "/".join([f"{self.base_url}/storage/v1/object", *parts])

    def public_url(self, path: str) -> str:
        return self._object_url("public", self.bucket, quote(path))

    # ── Core request dispatcher ───────────────────────────────────────────────

    def _do_request(
        self,
        method: str,
        url: str,
        headers: dict,
        *,
        data: bytes | None = None,
        json_body: dict | None = None,
        timeout: int = _DEFAULT_TIMEOUT,
    ) -> requests.Response:
        """Execute a single HTTP request, no retry logic here."""
        kwargs: dict[str, Any] = {"headers": headers, "timeout": timeout}
        if data is not None:
            kwargs["data"] = data
        if json_body is not None:
            kwargs["json"] = json_body
        return self.session.request(method, url, **kwargs)

    def request(
        self,
        method: str,
        url: str,
        *,
        data: bytes | None = None,
        json_body: dict | None = None,
        content_type: str | None = None,
        timeout: int = _DEFAULT_TIMEOUT,
    ) -> GatewayResult:
        """Execute an authenticated request against the object store with retries.

        Returns:
            GatewayResult, never raises. Callers check .ok.
        """
        if not self.base_url:
            return GatewayResult(
                ok=False, status_code=None, data=None,
                error="Object storage is not configured (STORAGE_URL unset)",
                duration_ms=0,
            )

        headers = {"Authorization": f"Bearer {self.service_key}"}
        if content_type:
            headers["Content-Type"] = content_type

        last_error = "Unknown error"
        last_status: int | None = None
        t_start = time.perf_counter()

        for attempt in range(_RETRY_MAX + 1):
            try:
                t0 = time.perf_counter()
                resp = self._do_request(
                    method, url, headers,
                    data=data, json_body=json_body, timeout=timeout,
                )
                duration_ms = int((time.perf_counter() - t0) * 1000)
                last_status = resp.status_code

                if resp.ok:
                    try:
                        body = resp.json() if resp.content else {}
                    except ValueError:
                        body = {}
                    return GatewayResult(
                        ok=True, status_code=resp.status_code, data=body,
                        error=None, duration_ms=duration_ms,
                    )

                last_error = f"HTTP {resp.status_code}: {resp.text[:500]}"
                if resp.status_code < 500:
                    logger.warning(
                        "Storage request rejected status=%d method=%s url=%s",
                        resp.status_code, method, url,
                    )
                    break
                logger.warning(
                    "Storage request failed attempt=%d/%d status=%d url=%s",
                    attempt + 1, _RETRY_MAX + 1, resp.status_code, url,
                )

            except requests.Timeout:
                last_error = f"Request timed out after {timeout}s"
                logger.warning(
                    "Storage request timed out attempt=%d/%d url=%s",
                    attempt + 1, _RETRY_MAX + 1, url,
                )

            except requests.RequestException as exc:
                last_error = str(exc)[:500]
                logger.warning(
                    "Storage network error attempt=%d/%d url=%s error=%s",
                    attempt + 1, _RETRY_MAX + 1, url, last_error,
                )

            if attempt < _RETRY_MAX and self._backoff:
                sleep_s = self._backoff[min(attempt, len(self._backoff) - 1)]
                logger.info("Retrying storage request in %ss (attempt %d)", sleep_s, attempt + 2)
                time.sleep(sleep_s)

        return GatewayResult(
            ok=False,
            status_code=last_status,
            data=None,
            error=last_error,
            duration_ms=int((time.perf_counter() - t_start) * 1000),
        )

    # ── Object operations ─────────────────────────────────────────────────────

    def put(self, path: str, data: bytes, content_type: str) -> GatewayResult:
        """Upload bytes under `path`. On success `.url` is the public URL."""
        url = self._object_url(self.bucket, quote(path))
        result = self.request("POST", url, data=data, content_type=content_type)
        if result.ok:
            result.url = self.public_url(path)
            logger.info("Stored object bucket=%s path=%s bytes=%d", self.bucket, path, len(data))
        return result

    def remove(self, path: str) -> GatewayResult:
        """Delete the object at `path`."""
        url = self._object_url(self.bucket)
        return self.request("DELETE", url, json_body={"prefixes": [path]})

    def create_signed_url(self, path: str, expires_in: int = 60) -> GatewayResult:
        """Ask the store for a time-limited download URL. On success `.url` is set."""
        url = self._object_url("sign", self.bucket, quote(path))
        result = self.request("POST", url, json_body={"expiresIn": expires_in})
        if result.ok:
            signed = (result.data or {}).get("signedURL") or (result.data or {}).get("signedUrl")
            if not signed:
                result.ok = False
                result.error = "Signed URL missing from storage response"
            elif signed.startswith("http"):
                result.url = signed
            else:
                result.url = f"{self.base_url}/storage/v1{signed}"
        return result


# Module-level singleton. Import this module and use the attribute in services.
# In tests, override via:
#   from concierge.integrations import storage_gateway as gw_module
#   monkeypatch.setattr(gw_module, "storage_gateway", StorageGateway(session=mock_session))
storage_gateway = StorageGateway()
