import socket

import pytest
from flask import Flask

from conftest import make_config
from device_simulator import DeviceServer
from models import Configuration
from remote_client import DecodeError, NetworkError, NoApiKey, RemoteSettingsClient


def _free_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_push_then_fetch_round_trip(device):
    client = RemoteSettingsClient(device.url, api_key="secret")
    configuration = make_config(colors=(11, 2, 7), num_sparkles=33, sparkle_size=4, speed=123)
    client.push(configuration)

    fetched = client.fetch_current()
    assert fetched.color_set() == configuration.color_set()
    assert fetched.matches(configuration)
    assert (fetched.num_sparkles, fetched.sparkle_size, fetched.speed) == (33, 4, 123)
    assert device.settings.matches(configuration)


def test_fetch_is_independent_of_wire_color_order():
    app = Flask(__name__)

    @app.route("/api/settings")
    def settings():
        return {"colors": [0xFFD700, 0xFF0000, 0x00FF00], "num_sparkles": 9,
                "sparkle_size": 2, "speed": 77}

    server = DeviceServer(app=app).start()
    try:
        fetched = RemoteSettingsClient(server.url, api_key="k").fetch_current()
    finally:
        server.stop()
    assert fetched.matches(make_config(colors=(3, 0, 11), num_sparkles=9, sparkle_size=2, speed=77))


def test_generate_returns_suggestion(device):
    suggestion = RemoteSettingsClient(device.url, api_key="secret").generate()
    assert suggestion.theme
    assert suggestion.configuration.active_indices


def test_missing_api_key_short_circuits():
    # Nothing listens here; NoApiKey must be raised before any connection attempt
    client = RemoteSettingsClient(f"http://127.0.0.1:{_free_port()}", api_key="")
    assert not client.has_api_key
    with pytest.raises(NoApiKey):
        client.fetch_current()
    with pytest.raises(NoApiKey):
        client.push(Configuration.default())
    with pytest.raises(NoApiKey):
        client.generate()


def test_wrong_api_key_is_a_network_error(device):
    client = RemoteSettingsClient(device.url, api_key="wrong")
    with pytest.raises(NetworkError, match="401"):
        client.push(Configuration.default())


def test_unreachable_device_is_a_network_error():
    client = RemoteSettingsClient(f"http://127.0.0.1:{_free_port()}", api_key="k", timeout=1)
    with pytest.raises(NetworkError):
        client.fetch_current()


@pytest.mark.parametrize(
    "body",
    ["not json at all", '{"colors": 5}', '["a list"]', '{"colors": [], "num_sparkles": 1}'],
)
def test_malformed_body_is_a_decode_error(body):
    app = Flask(__name__)

    @app.route("/api/settings")
    def settings():
        return body, 200, {"Content-Type": "application/json"}

    server = DeviceServer(app=app).start()
    try:
        with pytest.raises(DecodeError):
            RemoteSettingsClient(server.url, api_key="k").fetch_current()
    finally:
        server.stop()


def test_query_carries_api_key():
    client = RemoteSettingsClient("http://device.local/", api_key="a b&c")
    assert client._url("/api/settings") == "http://device.local/api/settings?apiKey=a+b%26c"
