import json

import httpx
import pytest
from tenacity import wait_none

from standardize.client import StandardizationClient, health_check
from standardize.config import StandardizationSettings
from standardize.errors import ConfigurationError, ServiceUnavailable


def _client(settings: StandardizationSettings, handler) -> StandardizationClient:
    return StandardizationClient(settings, transport=httpx.MockTransport(handler))


def test_posts_operation_and_data(settings: StandardizationSettings) -> None:
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        assert request.headers["Authorization"] == "Bearer test-key"
        return httpx.Response(200, json={"success": True, "result": {"standardizedName": "Acme Inc.",
                                                                     "confidence": 0.95}})

    with _client(settings, handler) as client:
        result = client.standardize_name("acme inc")

    assert seen == [{"operation": "standardizeName", "data": {"name": "acme inc"}}]
    assert result["standardizedName"] == "Acme Inc."


def test_non_2xx_raises_service_unavailable(settings: StandardizationSettings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "Gemini API key not configured on server"})

    with _client(settings, handler) as client, pytest.raises(ServiceUnavailable) as excinfo:
        client.process_batch([{"name": "acme"}], "standardizeName")

    assert excinfo.value.status_code == 500
    assert excinfo.value.retryable
    assert "not configured" in str(excinfo.value)


def test_unsuccessful_payload_raises(settings: StandardizationSettings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": False, "error": "Batch size too large"})

    with _client(settings, handler) as client, pytest.raises(ServiceUnavailable, match="Batch size too large"):
        client.find_duplicates([{"name": "acme"}])


def test_batch_result_count_must_match(settings: StandardizationSettings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": True, "results": [{"standardizedName": "A"}]})

    with _client(settings, handler) as client, pytest.raises(ServiceUnavailable):
        client.process_batch([{"name": "a"}, {"name": "b"}], "standardizeName")


def test_transport_error_raises_service_unavailable(settings: StandardizationSettings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with _client(settings, handler) as client, pytest.raises(ServiceUnavailable) as excinfo:
        client.compare_names("a", "b")
    assert not excinfo.value.retryable


def test_health(settings: StandardizationSettings) -> None:
    def healthy(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        return httpx.Response(200, json={"status": "healthy", "apiConfigured": True})

    def down(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("down", request=request)

    with _client(settings, healthy) as client:
        assert client.health() == {"status": "healthy", "apiConfigured": True}
    with _client(settings, down) as client:
        assert client.health()["status"] == "unhealthy"


def test_missing_configuration() -> None:
    with pytest.raises(ConfigurationError):
        StandardizationClient(StandardizationSettings(service_url=None, api_key="k"))
    with pytest.raises(ConfigurationError):
        StandardizationClient(StandardizationSettings(service_url="https://x.test", api_key=None))
    assert health_check(StandardizationSettings(service_url=None, api_key=None)) == {
        "status": "unhealthy", "apiConfigured": False,
    }


def test_unknown_operation(settings: StandardizationSettings) -> None:
    with _client(settings, lambda request: httpx.Response(200)) as client, pytest.raises(ValueError):
        client.call("dropTables", {})


@pytest.mark.parametrize("body", [["ok"], "healthy", 42])
def test_health_with_non_object_body(settings: StandardizationSettings, body) -> None:
    with _client(settings, lambda request: httpx.Response(200, json=body)) as client:
        assert client.health()["status"] == "unhealthy"


def _retrying_client(settings: StandardizationSettings, handler) -> StandardizationClient:
    settings = settings.model_copy(update={"max_retries": 2})
    return StandardizationClient(settings, transport=httpx.MockTransport(handler), retry_wait=wait_none())


def test_server_error_is_retried_until_success(settings: StandardizationSettings) -> None:
    statuses = iter([503, 429, 200])
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        status = next(statuses)
        calls.append(status)
        if status != 200:
            return httpx.Response(status, json={"error": "busy"})
        return httpx.Response(200, json={"success": True, "result": {"isDuplicate": False, "confidence": 0.1}})

    with _retrying_client(settings, handler) as client:
        assert client.compare_names("a", "b")["isDuplicate"] is False
    assert calls == [503, 429, 200]


def test_retries_stop_after_max_retries(settings: StandardizationSettings) -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(502, json={"error": "bad gateway"})

    with _retrying_client(settings, handler) as client, pytest.raises(ServiceUnavailable) as excinfo:
        client.standardize_name("acme")
    assert excinfo.value.status_code == 502
    assert len(calls) == 3


@pytest.mark.parametrize("status", [400, 401, 404])
def test_client_errors_are_not_retried(settings: StandardizationSettings, status: int) -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(status)
        return httpx.Response(status, json={"error": "nope"})

    with _retrying_client(settings, handler) as client, pytest.raises(ServiceUnavailable):
        client.standardize_address("1 Main St")
    assert calls == [status]


def test_transport_errors_are_not_retried(settings: StandardizationSettings) -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        raise httpx.ReadTimeout("timed out", request=request)

    with _retrying_client(settings, handler) as client, pytest.raises(ServiceUnavailable):
        client.find_duplicates([{"index": 0, "name": "acme"}])
    assert len(calls) == 1
