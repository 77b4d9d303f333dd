"""
Sparkle Matrix Device Simulator

Emulates the device's HTTP API so the controller can be used without
hardware:

    GET  /api/settings   current settings
    POST /api/settings   replace settings
    GET  /api/generate   a generated preset suggestion

Run this FIRST, then start main.py with SPARKLE_API_URL=http://127.0.0.1:8081
and any SPARKLE_API_KEY (or the one passed with --api-key).
"""

import argparse
import logging
import random
import threading

from flask import Flask, jsonify, request
from werkzeug.serving import make_server

import config
from logger_setup import setup_logging
from models import Configuration, InvalidConfiguration

logger = logging.getLogger("sparkle_matrix.device")

# Generated themes: name -> palette indices
THEMES = {
    "Campfire": (0, 1, 11),
    "Deep Sea": (4, 5, 6),
    "Spring Meadow": (2, 3, 10),
    "Candy Shop": (7, 9, 10),
    "Starlight": (5, 8),
    "Sunset Strip": (0, 1, 7, 9),
}


def create_app(initial=None, api_key=None, rng=None):
    """
    Build the device app.

    When api_key is set every request must carry ?apiKey=<api_key>, otherwise
    the device answers 401. The current settings live in app.config["DEVICE_STATE"].
    """
    app = Flask(__name__)
    app.config["DEVICE_STATE"] = {
        "settings": initial or Configuration.default(),
        "lock": threading.Lock(),
        "rng": rng or random.Random(),
    }

    def _state():
        return app.config["DEVICE_STATE"]

    @app.before_request
    def check_api_key():
        if api_key is not None and request.args.get("apiKey") != api_key:
            logger.warning(f"[Device] Rejected {request.method} {request.path}: bad API key")
            return jsonify(error="invalid api key"), 401
        return None

    @app.route("/api/settings", methods=["GET"])
    def get_settings():
        with _state()["lock"]:
            settings = _state()["settings"]
        return jsonify(settings.to_wire())

    @app.route("/api/settings", methods=["POST"])
    def update_settings():
        data = request.get_json(silent=True)
        try:
            settings = Configuration.from_wire(data)
        except InvalidConfiguration as e:
            logger.warning(f"[Device] Rejected settings: {e}")
            return jsonify(error=str(e)), 400
        with _state()["lock"]:
            _state()["settings"] = settings
        logger.info(
            f"[Device] Settings applied: {len(settings.active_indices)} colors, "
            f"{settings.num_sparkles} sparkles, size {settings.sparkle_size}, "
            f"speed {settings.speed}"
        )
        return jsonify(result="ok")

    @app.route("/api/generate", methods=["GET"])
    def generate():
        rng = _state()["rng"]
        theme = rng.choice(sorted(THEMES))
        indices = THEMES[theme]
        suggestion = Configuration(
            active_colors=tuple(i in indices for i in range(len(config.PALETTE))),
            num_sparkles=rng.randint(40, config.NUM_SPARKLES_MAX),
            sparkle_size=rng.randint(1, 5),
            speed=rng.randint(20, 200),
        )
        payload = suggestion.to_wire()
        payload["theme"] = theme
        logger.info(f"[Device] Suggested '{theme}'")
        return jsonify(payload)

    return app


class DeviceServer:
    """Serves the simulator app from a background thread."""

    def __init__(self, app=None, host="127.0.0.1", port=0, **app_options):
        self.app = app or create_app(**app_options)
        self.host = host
        self._server = make_server(host, port, self.app, threaded=True)
        self.port = self._server.server_port
        self._thread = None

    @property
    def url(self):
        return f"http://{self.host}:{self.port}"

    @property
    def settings(self):
        return self.app.config["DEVICE_STATE"]["settings"]

    def start(self):
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        logger.info(f"[Device] Listening on {self.url}")
        return self

    def serve_forever(self):
        """Block serving requests on the calling thread."""
        self._server.serve_forever()

    def stop(self):
        self._server.shutdown()
        self._server.server_close()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None


def main(argv=None):
    parser = argparse.ArgumentParser(description="Sparkle matrix device simulator")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=config.SIMULATOR_PORT)
    parser.add_argument("--api-key", default=None, help="require this key on every request")
    args = parser.parse_args(argv)

    setup_logging("INFO")
    server = DeviceServer(host=args.host, port=args.port, api_key=args.api_key)
    print(f"Starting device simulator on {server.url}")
    print("-" * 50)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("[Device] Stopped")


if __name__ == "__main__":
    main()
