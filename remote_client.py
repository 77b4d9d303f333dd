import json
import logging
import urllib.error
import urllib.parse
import urllib.request

import config
from models import Configuration, InvalidConfiguration, Suggestion

logger = logging.getLogger("sparkle_matrix.remote")

SETTINGS_PATH = "/api/settings"
GENERATE_PATH = "/api/generate"


class RemoteError(Exception):
    """Base class for everything that can go wrong talking to the device."""


class NetworkError(RemoteError):
    """Device unreachable, timed out, or answered with a non-2xx status."""


class DecodeError(RemoteError):
    """Device answered, but the body is not a settings payload."""


class NoApiKey(RemoteError):
    """No API key configured; remote calls are not attempted."""


class RemoteSettingsClient:
    """Reads and writes the sparkle device's settings over HTTP."""

    def __init__(self, base_url=config.DEFAULT_API_URL, api_key=None,
                 timeout=config.HTTP_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key or None
        self.timeout = timeout

    @property
    def has_api_key(self) -> bool:
        return self.api_key is not None

    def _url(self, path):
        query = urllib.parse.urlencode({"apiKey": self.api_key})
        return f"{self.base_url}{path}?{query}"

    def _request(self, method, path, payload=None):
        if not self.has_api_key:
            raise NoApiKey("no API key configured")

        data = None
        headers = {"User-Agent": "Sparkle-Controller", "Accept": "application/json"}
        if payload is not None:
            data = json.dumps(payload).encode()
            headers["Content-Type"] = "application/json"

        req = urllib.request.Request(self._url(path), data=data, headers=headers, method=method)
        logger.debug(f"[HTTP] {method} {self.base_url}{path}")
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                return response.read()
        except urllib.error.HTTPError as e:
            raise NetworkError(f"{method} {path} failed with HTTP {e.code}") from e
        except (urllib.error.URLError, OSError) as e:
            # URLError covers refused/unresolvable; socket timeouts are OSError
            raise NetworkError(f"{method} {path} failed: {e}") from e

    def _get_json(self, path):
        body = self._request("GET", path)
        try:
            return json.loads(body.decode())
        except (UnicodeDecodeError, ValueError) as e:
            raise DecodeError(f"GET {path} returned malformed JSON: {e}") from e

    def fetch_current(self) -> Configuration:
        """Current settings reported by the device."""
        data = self._get_json(SETTINGS_PATH)
        try:
            configuration = Configuration.from_wire(data)
        except InvalidConfiguration as e:
            raise DecodeError(f"unexpected settings payload: {e}") from e
        logger.info(
            f"[HTTP] Device reports {len(configuration.active_indices)} colors, "
            f"{configuration.num_sparkles} sparkles, size {configuration.sparkle_size}, "
            f"speed {configuration.speed}"
        )
        return configuration

    def push(self, configuration: Configuration) -> None:
        """Send settings to the device. Any non-2xx answer is a NetworkError."""
        self._request("POST", SETTINGS_PATH, configuration.to_wire())
        logger.info("[HTTP] Settings applied on device")

    def generate(self) -> Suggestion:
        """Ask the device for a generated preset."""
        data = self._get_json(GENERATE_PATH)
        try:
            suggestion = Suggestion.from_wire(data)
        except InvalidConfiguration as e:
            raise DecodeError(f"unexpected suggestion payload: {e}") from e
        logger.info(f"[HTTP] Received suggestion '{suggestion.theme}'")
        return suggestion
