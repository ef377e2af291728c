"""HTTP client for the remote days API."""

from __future__ import annotations

import threading
import time
from datetime import date
from typing import Callable, TypeVar

import httpx
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from .config import Settings
from .constants import HTTP_TIMEOUT, RETRY_ATTEMPTS, RETRYABLE_STATUS_CODES
from .models import RemoteRecord

T = TypeVar("T")


class DaysApiError(Exception):
    """Raised for failed days API calls."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    return isinstance(exc, DaysApiError) and exc.status_code in RETRYABLE_STATUS_CODES


class DaysApiClient:
    """Fetch and upsert day records with HTTP basic auth.

    ``GET /days/{day}`` returns the record or 404; ``POST /days/{day}``
    creates or replaces it. Retries stop, and backoff sleeps end early, once
    ``cancel`` is set.
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        countries: tuple[str, ...] | list[str],
        transport: httpx.BaseTransport | None = None,
        timeout: float = HTTP_TIMEOUT,
        cancel: threading.Event | None = None,
        retry_wait: wait_base = wait_exponential(multiplier=1, min=1, max=30),
    ) -> None:
        self.countries = tuple(countries)
        self.cancel = cancel
        self._retry_wait = retry_wait
        self._client = httpx.Client(
            base_url=base_url,
            auth=(username, password),
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.BaseTransport | None = None,
        cancel: threading.Event | None = None,
    ) -> DaysApiClient:
        settings.require_days_api()
        return cls(
            settings.days_api_url,
            settings.days_api_user,
            settings.days_api_password,
            settings.countries,
            transport=transport,
            cancel=cancel,
        )

    # --- retry plumbing ---

    def _cancelled(self, retry_state: RetryCallState | None = None) -> bool:
        return self.cancel is not None and self.cancel.is_set()

    def _sleep(self, seconds: float) -> None:
        if self.cancel is None:
            time.sleep(seconds)
        else:
            self.cancel.wait(seconds)

    def _with_retry(self, fn: Callable[..., T], *args) -> T:
        retrying = Retrying(
            retry=retry_if_exception(_is_retryable),
            wait=self._retry_wait,
            stop=stop_after_attempt(RETRY_ATTEMPTS) | self._cancelled,
            sleep=self._sleep,
            reraise=True,
        )
        return retrying(fn, *args)

    def _check_cancelled(self) -> None:
        if self._cancelled():
            raise DaysApiError("days API call cancelled")

    # --- public API ---

    def get_day(self, day: date | str) -> RemoteRecord | None:
        """Return the remote record for ``day`` or None when it does not exist."""
        key = day.isoformat() if isinstance(day, date) else day
        return self._with_retry(self._get_day, key)

    def _get_day(self, key: str) -> RemoteRecord | None:
        self._check_cancelled()
        resp = self._client.get(f"/days/{key}")
        if resp.status_code == httpx.codes.NOT_FOUND:
            return None
        if not resp.is_success:
            raise DaysApiError(
                f"unexpected status code: {resp.status_code} (body {resp.text})",
                status_code=resp.status_code,
            )
        try:
            payload = resp.json()
        except ValueError as exc:
            raise DaysApiError(f"decoding day {key} (code: {resp.status_code}): {exc}") from exc
        if not isinstance(payload, dict):
            raise DaysApiError(
                f"decoding day {key} (code: {resp.status_code}): expected an object, got {type(payload).__name__}"
            )
        return RemoteRecord.from_json(payload, self.countries)

    def upsert_day(self, record: RemoteRecord) -> None:
        self._with_retry(self._upsert_day, record)

    def _upsert_day(self, record: RemoteRecord) -> None:
        self._check_cancelled()
        resp = self._client.post(f"/days/{record.day}", json=record.to_json())
        if not resp.is_success:
            raise DaysApiError(
                f"unexpected status code: {resp.status_code} (body {resp.text})",
                status_code=resp.status_code,
            )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> DaysApiClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.close()
