"""
Configuration Tests
===================
"""

from teleop_channel.config import Settings, load_config


class TestConfig:
    """Tests for settings loading."""

    def test_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        for name in ("TELEOP_WS_URL", "TELEOP_ROBOT_NAME", "TELEOP_ACCESS_TOKEN",
                     "TELEOP_RECONNECT_DELAY", "TELEOP_LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))

        settings = load_config()

        assert settings.connection.reconnect_delay_seconds == 0.0
        assert settings.exchanges.frames == "camera0"
        assert settings.exchanges.state == "state"
        assert settings.exchanges.commands == "commands"
        assert settings.exchanges.rgb == "rgbjpeg"

    def test_yaml_then_env(self, tmp_path, monkeypatch):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "robot:\n"
            "  name: r2d2\n"
            "  access_token: from-file\n"
            "connection:\n"
            "  url: ws://file:1\n"
        )
        monkeypatch.delenv("TELEOP_WS_URL", raising=False)
        monkeypatch.delenv("TELEOP_ROBOT_NAME", raising=False)
        monkeypatch.setenv("TELEOP_ACCESS_TOKEN", "from-env")
        monkeypatch.setenv("TELEOP_RECONNECT_DELAY", "0.25")

        settings = load_config(str(config_file))

        assert settings.robot.name == "r2d2"
        assert settings.robot.access_token == "from-env"
        assert settings.connection.url == "ws://file:1"
        assert settings.connection.reconnect_delay_seconds == 0.25

    def test_connect_options(self):
        options = Settings().connection.connect_options()

        assert options["max_size"] == 16 * 1024 * 1024
        assert set(options) == {
            "open_timeout", "ping_interval", "ping_timeout", "close_timeout", "max_size",
        }
