"""
Tests for configuration loading and command-line parsing.
"""

import pytest

from backendstatus.config import ConfigError, load_config, parse_address, parse_args


class TestParseAddress:
    def test_ipv4(self):
        assert parse_address("127.0.0.1:9463") == ("127.0.0.1", 9463)

    def test_bracketed_ipv6(self):
        assert parse_address("[::1]:9464") == ("::1", 9464)

    def test_empty_host_means_all_interfaces(self):
        assert parse_address(":9463") == ("0.0.0.0", 9463)

    def test_hostname(self):
        assert parse_address("localhost:80") == ("localhost", 80)

    @pytest.mark.parametrize("bad", ["9463", "host:", "host:abc", "host:70000", "::1:80"])
    def test_invalid(self, bad):
        with pytest.raises(ConfigError):
            parse_address(bad)


class TestLoadConfig:
    def test_missing_file_uses_defaults(self, tmp_path):
        settings = load_config(tmp_path / "absent.yaml")
        assert settings.listen == "127.0.0.1:9463"
        assert settings.serve == "127.0.0.1:9464"
        assert settings.log_level == "INFO"

    def test_reads_settings_section(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "settings:\n"
            "  listen: '0.0.0.0:1111'\n"
            "  serve: '0.0.0.0:2222'\n"
            "  log_level: debug\n"
        )
        settings = load_config(path)
        assert settings.listen == "0.0.0.0:1111"
        assert settings.serve == "0.0.0.0:2222"
        assert settings.log_level == "DEBUG"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(path).listen == "127.0.0.1:9463"

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("settings: [unclosed\n")
        with pytest.raises(ConfigError, match="invalid YAML"):
            load_config(path)

    def test_invalid_address(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("settings:\n  listen: nowhere\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_capacity_is_not_configurable(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("settings:\n  history_size: 3\n  max_datagram: 16\n")
        settings = load_config(path)
        assert not hasattr(settings, "history_size")
        assert not hasattr(settings, "max_datagram")

    def test_unknown_log_level(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("settings:\n  log_level: chatty\n")
        with pytest.raises(ConfigError, match="log_level"):
            load_config(path)


class TestParseArgs:
    def test_flags_override_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("settings:\n  listen: '10.0.0.1:1'\n  serve: '10.0.0.1:2'\n")
        settings = parse_args(["--config", str(path), "--listen", "127.0.0.1:5000", "--debug"])
        assert settings.listen == "127.0.0.1:5000"
        assert settings.serve == "10.0.0.1:2"
        assert settings.log_level == "DEBUG"

    def test_bad_flag_address(self, tmp_path):
        with pytest.raises(ConfigError):
            parse_args(["--config", str(tmp_path / "absent.yaml"), "--serve", "bogus"])
