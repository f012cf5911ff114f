from pathlib import Path

import pytest

from parley.config import CONFIG_ENV_VAR, Config
from parley.errors import ConfigError


def test_defaults_apply_when_file_missing(tmp_path: Path):
    config = Config(config_path=tmp_path / "missing.yaml")

    assert config.relay.relay_port == 8787
    assert config.relay.translation_model == "gpt-3.5-turbo"
    assert config.realtime.vad_silence_duration_ms == 500
    assert config.session.default_mode == "transcribe"
    assert config.session.stop_on_protocol_error is False
    assert config.developer.debug_mode is False


def test_yaml_keys_load_into_sections(tmp_path: Path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        """
relay_port: "9000"
translation_temperature: 0.5
realtime_model: gpt-4o-mini-realtime-preview
default_mode: translate
default_language: Arabic
stop_on_protocol_error: "yes"
log_file: ~/logs/parley.log
debug_mode: true
""".strip(),
        encoding="utf-8",
    )

    config = Config(config_path=config_file)

    assert config.relay.relay_port == 9000
    assert config.relay.translation_temperature == 0.5
    assert config.realtime.realtime_model == "gpt-4o-mini-realtime-preview"
    assert config.session.default_mode == "translate"
    assert config.session.default_language == "Arabic"
    assert config.session.stop_on_protocol_error is True
    assert config.logging.log_file == Path("~/logs/parley.log").expanduser()
    assert config.developer.debug_mode is True


def test_invalid_values_keep_defaults(tmp_path: Path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("relay_port: not-a-port\nvad_threshold: null\n", encoding="utf-8")

    config = Config(config_path=config_file)

    assert config.relay.relay_port == 8787
    assert config.realtime.vad_threshold == 0.5


def test_env_var_selects_config_file(tmp_path: Path, monkeypatch):
    config_file = tmp_path / "env.yaml"
    config_file.write_text("relay_host: 0.0.0.0\n", encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(config_file))

    config = Config()

    assert config.config_path == config_file
    assert config.relay.relay_host == "0.0.0.0"


def test_non_mapping_or_broken_yaml_is_config_error(tmp_path: Path):
    as_list = tmp_path / "list.yaml"
    as_list.write_text("- a\n- b\n", encoding="utf-8")
    broken = tmp_path / "broken.yaml"
    broken.write_text("relay_port: [unterminated\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        Config(config_path=as_list)
    with pytest.raises(ConfigError):
        Config(config_path=broken)


def test_empty_file_loads_defaults(tmp_path: Path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("# nothing set yet\n", encoding="utf-8")

    config = Config(config_path=config_file)

    assert config.relay.relay_port == 8787
    assert config.session.default_mode == "transcribe"
