# ============================================================================
# CONFIGURATION
# ============================================================================

import json
import logging
import os

logger = logging.getLogger("sparkle_matrix.config")

# Matrix geometry (cells)
MATRIX_WIDTH = 64
MATRIX_HEIGHT = 64

# Palette shown on the color tab (order is fixed, one toggle per entry)
PALETTE = (
    0xFF0000,  # Red
    0xFF8000,  # Orange
    0xFFFF00,  # Yellow
    0x00FF00,  # Green
    0x00FFFF,  # Cyan
    0x0000FF,  # Blue
    0x8000FF,  # Purple
    0xFF00FF,  # Magenta
    0xFFFFFF,  # White
    0xFF69B4,  # Hot Pink
    0xDDA0DD,  # Plum
    0xFFD700,  # Gold
)

# Slider domains
NUM_SPARKLES_MIN = 1
NUM_SPARKLES_MAX = 200
SPARKLE_SIZE_MIN = 1
SPARKLE_SIZE_MAX = 10
SPEED_MIN = 10  # ms between device frames (fastest)
SPEED_MAX = 500  # ms between device frames (slowest)

# Default configuration before the device has reported anything
DEFAULT_NUM_SPARKLES = 150
DEFAULT_SPARKLE_SIZE = 3
DEFAULT_SPEED = 40

# Preview tick bounds (ms)
MIN_TICK_MS = 15
MAX_TICK_MS = 3000

# UI timing (ms)
APPLIED_FALLBACK_DELAY_MS = 1500
LONG_PRESS_DELAY_MS = 500

# Device API
DEFAULT_API_URL = "http://127.0.0.1:8081"
HTTP_TIMEOUT = 5.0  # seconds
SIMULATOR_PORT = 8081

# Files
SETTINGS_FILE = "sparkle_config.json"
PRESETS_FILE = "sparkle_presets.json"
PRESETS_KEY = "sparklePresets"

DEFAULT_SETTINGS = {
    "api_url": DEFAULT_API_URL,
    "api_key": None,
    "log_level": "INFO",
    "presets_file": PRESETS_FILE,
}

# Environment overrides (env var -> settings key)
ENV_OVERRIDES = {
    "SPARKLE_API_URL": "api_url",
    "SPARKLE_API_KEY": "api_key",
    "SPARKLE_LOG_LEVEL": "log_level",
}


def load_settings(path=SETTINGS_FILE, environ=None):
    """
    Load application settings.

    Starts from DEFAULT_SETTINGS, overlays the JSON settings file (if it
    exists) and then the SPARKLE_* environment variables. An empty api_key
    counts as no key.
    """
    settings = dict(DEFAULT_SETTINGS)
    environ = os.environ if environ is None else environ

    if path and os.path.exists(path):
        try:
            with open(path, "r") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("settings file must hold a JSON object")
            for key in DEFAULT_SETTINGS:
                if key in data:
                    settings[key] = data[key]
        except (OSError, ValueError) as e:
            logger.warning(f"[Config] Ignoring unreadable settings file {path}: {e}")

    for env_name, key in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value is not None:
            settings[key] = value

    if not settings["api_key"]:
        settings["api_key"] = None

    return settings
