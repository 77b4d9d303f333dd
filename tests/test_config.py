import json

import config


def test_defaults_without_file_or_env(tmp_path):
    settings = config.load_settings(str(tmp_path / "missing.json"), environ={})
    assert settings == config.DEFAULT_SETTINGS


def test_file_then_environment(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({
        "api_url": "http://matrix.local",
        "api_key": "from-file",
        "log_level": "DEBUG",
        "unrelated": 1,
    }))
    settings = config.load_settings(str(path), environ={"SPARKLE_API_KEY": "from-env"})
    assert settings["api_url"] == "http://matrix.local"
    assert settings["api_key"] == "from-env"
    assert settings["log_level"] == "DEBUG"
    assert "unrelated" not in settings


def test_empty_key_means_no_key(tmp_path):
    settings = config.load_settings(str(tmp_path / "none.json"), environ={"SPARKLE_API_KEY": ""})
    assert settings["api_key"] is None


def test_malformed_file_is_ignored(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("[1, 2")
    assert config.load_settings(str(path), environ={}) == config.DEFAULT_SETTINGS
    path.write_text("[1, 2]")
    assert config.load_settings(str(path), environ={}) == config.DEFAULT_SETTINGS
