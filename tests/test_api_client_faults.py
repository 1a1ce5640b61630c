import pytest

from planscale.errors import PersistenceFailure
from planscale.infra import api_client


class _FakeResponse:
    def __init__(self, status_code=200, payload=None, headers=None, json_error=None, content=b"{}"):
        self.status_code = status_code
        self._payload = payload if payload is not None else {}
        self.headers = headers or {}
        self._json_error = json_error
        self.content = content

    def raise_for_status(self):
        if self.status_code >= 400:
            raise api_client.requests.exceptions.HTTPError(f"status={self.status_code}")

    def json(self):
        if self._json_error is not None:
            raise self._json_error
        return self._payload


class _Session:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _client(responses, **overrides):
    client = api_client.TakeoffApiClient.__new__(api_client.TakeoffApiClient)
    client.base_url = "https://takeoff.example.invalid/api/plans/7"
    client.token = None
    client.session = _Session(responses)
    client.request_timeout = (1, 1)
    client.get_retries = 1
    client.write_retries = 2
    client.write_backoff_sec = 0.5
    client.rate_limit_retries = 3
    client.max_retry_after_sec = 30
    for key, value in overrides.items():
        setattr(client, key, value)
    return client


@pytest.fixture
def sleeps(monkeypatch):
    recorded = []
    monkeypatch.setattr(api_client.time, "sleep", lambda sec: recorded.append(sec))
    return recorded


def test_get_retries_on_timeout(sleeps):
    client = _client([api_client.requests.exceptions.Timeout("slow"), _FakeResponse(200, [{"id": "a"}])])
    assert client.list_measurements() == [{"id": "a"}]
    assert len(client.session.calls) == 2
    assert sleeps == []


def test_get_gives_up_after_retries(sleeps):
    client = _client(
        [api_client.requests.exceptions.ConnectionError("down"), api_client.requests.exceptions.ConnectionError("down")]
    )
    with pytest.raises(PersistenceFailure):
        client.get_calibration()


def test_write_retries_server_errors_with_backoff(sleeps):
    client = _client([_FakeResponse(503), _FakeResponse(502), _FakeResponse(201, {"id": "srv-1"})])
    assert client.create_measurement({"id": "local"}) == {"id": "srv-1"}
    assert sleeps == [0.5, 1.0]
    method, url, kwargs = client.session.calls[-1]
    assert method == "POST"
    assert url == "https://takeoff.example.invalid/api/plans/7/measurements"
    assert kwargs["json"] == {"id": "local"}


def test_write_retries_exhausted_raise_persistence_failure(sleeps):
    client = _client([_FakeResponse(500), _FakeResponse(500), _FakeResponse(500)])
    with pytest.raises(PersistenceFailure):
        client.update_measurement("srv-1", {"label": "x"})
    assert len(client.session.calls) == 3


def test_client_errors_are_not_retried(sleeps):
    client = _client([_FakeResponse(404)])
    with pytest.raises(PersistenceFailure):
        client.delete_measurement("srv-1")
    assert client.session.calls[0][0] == "DELETE"
    assert client.session.calls[0][1].endswith("/measurements/srv-1")


def test_rate_limit_honours_retry_after(sleeps):
    client = _client([_FakeResponse(429, headers={"Retry-After": "2"}), _FakeResponse(200, {"unit": "ft"})])
    assert client.get_calibration() == {"unit": "ft"}
    assert sleeps == [2]


def test_retry_after_is_capped(sleeps):
    client = _client([_FakeResponse(429, headers={"Retry-After": "600"}), _FakeResponse(204, content=b"")])
    client.save_calibration({"unit": "ft"})
    assert sleeps == [30]
    assert client.session.calls[0][0] == "PUT"


def test_invalid_json_raises_persistence_failure(sleeps):
    client = _client([_FakeResponse(200, json_error=ValueError("bad json"))])
    with pytest.raises(PersistenceFailure):
        client.list_measurements()


def test_list_accepts_wrapped_payload(sleeps):
    client = _client([_FakeResponse(200, {"measurements": [{"id": "a"}]})])
    assert client.list_measurements() == [{"id": "a"}]


def test_headers_include_bearer_token():
    client = _client([], token="secret")
    assert client._headers()["Authorization"] == "Bearer secret"
    assert "Authorization" not in _client([])._headers()


def test_from_config_reads_write_policy():
    class _Config:
        data = {"api_base_url": "https://x.invalid/api/", "api_token": "t", "write_retries": 4, "write_backoff_sec": 0.1}

        def get(self, key, default=None):
            return self.data.get(key, default)

        def get_int(self, key, default):
            return int(self.data.get(key, default))

        def get_float(self, key, default):
            return float(self.data.get(key, default))

    client = api_client.TakeoffApiClient.from_config(_Config())
    assert client.base_url == "https://x.invalid/api"
    assert client.write_retries == 4
    assert client.write_backoff_sec == 0.1
    assert client.token == "t"


def test_post_not_resent_after_transport_error(sleeps):
    client = _client([api_client.requests.exceptions.Timeout("slow"), _FakeResponse(201, {"id": "srv-1"})])
    with pytest.raises(PersistenceFailure):
        client.create_measurement({"id": "local"})
    assert len(client.session.calls) == 1
    assert sleeps == []


def test_patch_retried_after_transport_error(sleeps):
    client = _client([api_client.requests.exceptions.ConnectionError("reset"), _FakeResponse(200, {"id": "srv-1"})])
    assert client.update_measurement("srv-1", {"label": "x"}) == {"id": "srv-1"}
    assert sleeps == [0.5]
