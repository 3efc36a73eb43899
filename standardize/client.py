"""HTTP client for the external name/address standardization service.

The service takes ``{"operation": ..., "data": {...}}`` and answers with
``{"success": bool, "result" | "results": ..., "error": ...}``; a GET on the
same URL is its health check.
"""

import logging

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from standardize.config import StandardizationSettings, get_settings
from standardize.errors import ConfigurationError, ServiceUnavailable

logger = logging.getLogger(__name__)

OPERATIONS = ("standardizeName", "standardizeAddress", "compareNames", "findDuplicates", "processBatch")


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, ServiceUnavailable) and exc.retryable


class StandardizationClient:
    """Synchronous client; one request per operation call."""

    def __init__(
        self,
        settings: StandardizationSettings | None = None,
        transport: httpx.BaseTransport | None = None,
        retry_wait: wait_base | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        if not self.settings.service_url:
            raise ConfigurationError("DEDUPE_SERVICE_URL is not set")
        if not self.settings.api_key:
            raise ConfigurationError("DEDUPE_API_KEY is not set")
        self._url = self.settings.service_url
        self._retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=8)
        self._http = httpx.Client(
            timeout=self.settings.timeout,
            headers={"Authorization": f"Bearer {self.settings.api_key}"},
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "StandardizationClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def call(self, operation: str, data: dict) -> dict:
        """POST one operation; retries 429/5xx with exponential backoff."""
        if operation not in OPERATIONS:
            raise ValueError(f"unknown operation {operation!r}")
        retrying = retry(
            retry=retry_if_exception(_is_retryable),
            stop=stop_after_attempt(self.settings.max_retries + 1),
            wait=self._retry_wait,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return retrying(self._post)(operation, data)

    def _post(self, operation: str, data: dict) -> dict:
        try:
            response = self._http.post(self._url, json={"operation": operation, "data": data})
        except httpx.HTTPError as exc:
            raise ServiceUnavailable(f"{operation}: {exc}") from exc

        if response.is_error:
            raise ServiceUnavailable(
                f"{operation}: API error {response.status_code} - {_error_message(response)}",
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise ServiceUnavailable(f"{operation}: response is not JSON") from exc
        if not isinstance(payload, dict) or not payload.get("success"):
            message = payload.get("error") if isinstance(payload, dict) else None
            raise ServiceUnavailable(f"{operation}: {message or 'API request failed'}")
        return payload

    def health(self) -> dict:
        """Never raises: any failure reports unhealthy."""
        try:
            response = self._http.get(self._url)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("health check failed: %s", exc)
            return {"status": "unhealthy", "apiConfigured": False, "error": str(exc)}
        if not isinstance(payload, dict):
            logger.warning("health check returned %s instead of an object", type(payload).__name__)
            return {"status": "unhealthy", "apiConfigured": False, "error": "malformed health response"}
        return {
            "status": "healthy" if payload.get("status") == "healthy" else "unhealthy",
            "apiConfigured": bool(payload.get("apiConfigured")),
        }

    # --------- operations ---------
    def standardize_name(self, name: str) -> dict:
        return _result(self.call("standardizeName", {"name": name}), "standardizeName")

    def standardize_address(self, address: str) -> dict:
        return _result(self.call("standardizeAddress", {"address": address}), "standardizeAddress")

    def compare_names(self, name1: str, name2: str) -> dict:
        return _result(self.call("compareNames", {"name1": name1, "name2": name2}), "compareNames")

    def find_duplicates(self, records: list[dict]) -> list[dict]:
        result = _result(self.call("findDuplicates", {"records": records}), "findDuplicates")
        groups = result.get("duplicateGroups")
        if not isinstance(groups, list):
            raise ServiceUnavailable("findDuplicates: response has no duplicateGroups list")
        return groups

    def process_batch(self, records: list[dict], batch_operation: str) -> list[dict]:
        results = self.call("processBatch", {"records": records, "batchOperation": batch_operation}).get("results")
        if not isinstance(results, list) or len(results) != len(records):
            raise ServiceUnavailable("processBatch: result count does not match the batch")
        return results


def _result(payload: dict, operation: str) -> dict:
    result = payload.get("result")
    if not isinstance(result, dict):
        raise ServiceUnavailable(f"{operation}: response has no result object")
    return result


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or "Unknown error"
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return "Unknown error"


def health_check(settings: StandardizationSettings | None = None) -> dict:
    """Health of the configured service; missing config reports unhealthy instead of raising."""
    settings = settings or get_settings()
    if not settings.api_configured:
        return {"status": "unhealthy", "apiConfigured": False}
    with StandardizationClient(settings) as client:
        return client.health()
