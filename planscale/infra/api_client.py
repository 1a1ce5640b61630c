import logging
import threading
import time
from datetime import timezone
from email.utils import parsedate_to_datetime

import requests

from planscale.constants import (
    HTTP_CONNECT_TIMEOUT_SEC,
    HTTP_GET_RETRIES,
    HTTP_MAX_RETRY_AFTER_SEC,
    HTTP_READ_TIMEOUT_SEC,
    HTTP_WRITE_BACKOFF_SEC,
    HTTP_WRITE_RETRIES,
)
from planscale.errors import PersistenceFailure

logger = logging.getLogger(__name__)

_WRITE_METHODS = ("POST", "PUT", "PATCH", "DELETE")


class TakeoffApiClient:
    """REST client for measurement and calibration persistence."""

    def __init__(
        self,
        base_url,
        token=None,
        request_timeout=(HTTP_CONNECT_TIMEOUT_SEC, HTTP_READ_TIMEOUT_SEC),
        get_retries=HTTP_GET_RETRIES,
        write_retries=HTTP_WRITE_RETRIES,
        write_backoff_sec=HTTP_WRITE_BACKOFF_SEC,
        rate_limit_retries=3,
        max_retry_after_sec=HTTP_MAX_RETRY_AFTER_SEC,
    ):
        self.base_url = str(base_url or "").rstrip("/")
        self.token = token or None
        self.request_timeout = request_timeout
        self.get_retries = max(0, int(get_retries or 0))
        self.write_retries = max(0, int(write_retries or 0))
        self.write_backoff_sec = max(0.0, float(write_backoff_sec or 0.0))
        self.rate_limit_retries = max(0, int(rate_limit_retries or 0))
        self.max_retry_after_sec = max(1, int(max_retry_after_sec or 1))
        self.session = requests.Session()
        self._session_lock = threading.Lock()

    @classmethod
    def from_config(cls, config):
        return cls(
            config.get("api_base_url", ""),
            token=config.get("api_token") or None,
            write_retries=config.get_int("write_retries", HTTP_WRITE_RETRIES),
            write_backoff_sec=config.get_float("write_backoff_sec", HTTP_WRITE_BACKOFF_SEC),
        )

    def _headers(self):
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _url(self, path):
        return f"{self.base_url}/{path.lstrip('/')}"

    @staticmethod
    def _retry_after_to_seconds(raw_value):
        text = str(raw_value or "").strip()
        if not text:
            return 1
        try:
            return max(0, int(text))
        except ValueError:
            try:
                parsed = parsedate_to_datetime(text)
            except (TypeError, ValueError, OverflowError):
                return 1
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return max(0, int(parsed.timestamp() - time.time()))

    def _sleep_for_retry_after(self, response):
        headers = getattr(response, "headers", {}) or {}
        retry_after = headers.get("Retry-After") if hasattr(headers, "get") else None
        delay = min(self.max_retry_after_sec, self._retry_after_to_seconds(retry_after))
        time.sleep(delay)

    def _sleep_for_backoff(self, attempt):
        time.sleep(self.write_backoff_sec * (2 ** (attempt - 1)))

    @staticmethod
    def _json_or_error(response, endpoint):
        if response.status_code == 204 or not getattr(response, "content", b""):
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise PersistenceFailure(f"Invalid JSON response from takeoff endpoint: {endpoint}") from exc

    def _request(self, method, path, data=None):
        method = method.upper()
        url = self._url(path)
        is_write = method in _WRITE_METHODS
        retries = self.write_retries if is_write else self.get_retries
        # A POST may already have been applied when the connection drops.
        transport_retries = 0 if method == "POST" else retries
        rate_limit_attempt = 0
        attempt = 0

        while True:
            lock = getattr(self, "_session_lock", None)
            if lock is None:
                self._session_lock = lock = threading.Lock()
            try:
                with lock:
                    resp = self.session.request(
                        method,
                        url,
                        headers=self._headers(),
                        json=data,
                        timeout=self.request_timeout,
                    )
            except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as exc:
                if attempt >= transport_retries:
                    raise PersistenceFailure(f"{method} {url} failed: {exc}") from exc
                attempt += 1
                logger.warning("Retrying %s %s after transport error (attempt %d): %s", method, url, attempt, exc)
                if is_write:
                    self._sleep_for_backoff(attempt)
                continue

            if resp.status_code == 429 and rate_limit_attempt < self.rate_limit_retries:
                rate_limit_attempt += 1
                self._sleep_for_retry_after(resp)
                continue

            if is_write and resp.status_code >= 500 and attempt < retries:
                attempt += 1
                logger.warning("Retrying %s %s after HTTP %d (attempt %d)", method, url, resp.status_code, attempt)
                self._sleep_for_backoff(attempt)
                continue

            try:
                resp.raise_for_status()
            except requests.exceptions.HTTPError as exc:
                raise PersistenceFailure(f"{method} {url} returned HTTP {resp.status_code}") from exc
            return resp

    # ── Measurements ─────────────────────────────────────────

    def list_measurements(self):
        endpoint = "measurements"
        payload = self._json_or_error(self._request("GET", endpoint), endpoint)
        if payload is None:
            return []
        if isinstance(payload, dict):
            payload = payload.get("measurements", [])
        if not isinstance(payload, list):
            raise PersistenceFailure(f"Unexpected JSON shape from takeoff endpoint: {endpoint}")
        return payload

    def create_measurement(self, payload):
        endpoint = "measurements"
        result = self._json_or_error(self._request("POST", endpoint, data=payload), endpoint)
        return result if isinstance(result, dict) else {}

    def update_measurement(self, measurement_id, partial):
        endpoint = f"measurements/{measurement_id}"
        result = self._json_or_error(self._request("PATCH", endpoint, data=partial), endpoint)
        return result if isinstance(result, dict) else {}

    def delete_measurement(self, measurement_id):
        self._request("DELETE", f"measurements/{measurement_id}")

    # ── Calibration ──────────────────────────────────────────

    def get_calibration(self):
        endpoint = "calibration"
        result = self._json_or_error(self._request("GET", endpoint), endpoint)
        return result if isinstance(result, dict) else None

    def save_calibration(self, payload):
        endpoint = "calibration"
        result = self._json_or_error(self._request("PUT", endpoint, data=payload), endpoint)
        return result if isinstance(result, dict) else {}


__all__ = ["TakeoffApiClient"]
