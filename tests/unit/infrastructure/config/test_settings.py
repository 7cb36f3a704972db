import pytest

from wsmux.infrastructure.config.settings import (
    ApiSettings, get_config, load_api_settings, load_configuration, set_config, set_config_for_testing,
)


@pytest.fixture
def yaml_config(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        "wsapi_key: yaml-key\n"
        "wssdk_max_threads: 3\n"
        "wssdk_distance_unit: METRIC\n",
        encoding="utf-8",
    )
    return config_file


@pytest.fixture
def no_env_file(tmp_path):
    env_file = tmp_path / "empty.env"
    env_file.write_text("", encoding="utf-8")
    return env_file


def test_yaml_values_are_loaded(yaml_config, no_env_file):
    load_configuration(config_file=yaml_config, env_file=no_env_file, force=True)

    assert get_config("wsapi_key") == "yaml-key"
    assert get_config("wssdk_max_threads") == 3


def test_environment_overrides_yaml(yaml_config, no_env_file, monkeypatch):
    monkeypatch.setenv("WSSDK_MAX_THREADS", "7")
    monkeypatch.setenv("WSAPI_RETURN_DIAGNOSTICS", "true")
    load_configuration(config_file=yaml_config, env_file=no_env_file, force=True)

    assert get_config("wssdk_max_threads") == 7
    assert get_config("wsapi_return_diagnostics") is True


def test_dotenv_does_not_override_real_environment(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text("WSAPI_VERSION=v9\nWSAPI_KEY=from-dotenv\n", encoding="utf-8")
    monkeypatch.setenv("WSAPI_VERSION", "v2")
    monkeypatch.delenv("WSAPI_KEY", raising=False)

    load_configuration(config_file=tmp_path / "missing.yaml", env_file=env_file, force=True)

    assert get_config("wsapi_version") == "v2"
    assert get_config("wsapi_key") == "from-dotenv"


def test_test_config_wins_over_everything(monkeypatch):
    monkeypatch.setenv("WSAPI_VERSION", "v2")
    set_config_for_testing({"wsapi_version": "v-test"})

    assert get_config("wsapi_version") == "v-test"


def test_defaults_and_fallbacks(tmp_path, no_env_file):
    load_configuration(config_file=tmp_path / "missing.yaml", env_file=no_env_file, force=True)

    assert get_config("wssdk_request_retry_on_error_count") == 5
    assert get_config("not.a.key", "fallback") == "fallback"
    assert get_config("not.a.key") is None


def test_malformed_yaml_is_ignored(tmp_path, no_env_file, caplog):
    bad = tmp_path / "bad.yaml"
    bad.write_text("wsapi_key: [unterminated\n", encoding="utf-8")

    load_configuration(config_file=bad, env_file=no_env_file, force=True)

    assert "Failed to load or parse YAML config" in caplog.text
    assert get_config("wsapi_key") == ""


def test_load_api_settings_coerces_types():
    set_config_for_testing({
        "wsapi_base_uri": "https://example.test/",
        "wsapi_key": "abc",
        "wsapi_return_diagnostics": "yes",
        "wssdk_max_threads": "4",
        "wssdk_thread_launch_interval_delay": "0",
        "wssdk_temperature_unit": "Celsius",
        "wssdk_log_errors": "0",
        "wssdk_request_retry_on_error_delay": 1,
    })

    api = load_api_settings()

    assert isinstance(api, ApiSettings)
    assert api.base_uri == "https://example.test"
    assert api.key == "abc"
    assert api.return_diagnostics is True
    assert api.max_threads == 4
    assert api.thread_launch_interval_delay == 0.0
    assert api.temperature_unit == "celsius"
    assert api.distance_unit == "imperial"
    assert api.log_errors is False
    assert api.request_retry_count == 5
    assert api.request_retry_delay == 1.0


def test_runtime_values_win_over_environment_and_survive_reload(tmp_path, no_env_file, monkeypatch):
    monkeypatch.setenv("WSSDK_DISTANCE_UNIT", "imperial")
    set_config("wssdk_distance_unit", "metric")

    load_configuration(config_file=tmp_path / "missing.yaml", env_file=no_env_file, force=True)

    assert get_config("wssdk_distance_unit") == "metric"
    assert load_api_settings().distance_unit == "metric"
