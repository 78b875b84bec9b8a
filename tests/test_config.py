"""Tests for configuration loading and validation."""

import pytest

from impulse_testing.config import Config, ConfigError, LifecycleCommand, load_config
from impulse_testing.constants import CONFIG_FILE

VALID_CONFIG = """
lifecycle:
  start:
    - command: docker compose up -d db
      timeout: 60000
    - command: npm run dev
      keepAlive: true
      envs:
        PORT: 3000
  stop:
    - docker compose down
screenshots:
  diffThreshold: 0.5
output:
  text: true
"""


def write_config(content: str):
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_FILE.write_text(content)


class TestConfigFromDict:
    """Tests for Config.from_dict validation."""

    def test_minimal(self):
        """Should accept an empty lifecycle."""
        config = Config.from_dict({"lifecycle": {}})

        assert config.start_commands == []
        assert config.stop_commands == []
        assert config.diff_threshold is None
        assert config.output_console is True

    def test_missing_lifecycle(self):
        """Should require a lifecycle mapping."""
        with pytest.raises(ConfigError) as exc_info:
            Config.from_dict({})
        assert any(issue.startswith("lifecycle") for issue in exc_info.value.issues)

    def test_timeout_and_keep_alive_conflict(self):
        """Should reject commands that set both timeout and keepAlive."""
        data = {"lifecycle": {"start": [{"command": "npm start", "timeout": 1000, "keepAlive": True}]}}

        with pytest.raises(ConfigError) as exc_info:
            Config.from_dict(data)

        assert "lifecycle.start.0: cannot use both 'timeout' and 'keepAlive'" in str(exc_info.value)

    def test_collects_all_issues(self):
        """Should report every issue at once."""
        data = {
            "lifecycle": {"start": [{"command": ""}], "stop": "make stop"},
            "screenshots": {"diffThreshold": 150},
        }

        with pytest.raises(ConfigError) as exc_info:
            Config.from_dict(data)

        issues = exc_info.value.issues
        assert "lifecycle.start.0.command: required non-empty string" in issues
        assert "lifecycle.stop: expected a list" in issues
        assert "screenshots.diffThreshold: must be between 0 and 100" in issues

    def test_threshold_must_be_number(self):
        """Should reject a non-numeric threshold."""
        with pytest.raises(ConfigError, match="diffThreshold"):
            Config.from_dict({"lifecycle": {}, "screenshots": {"diffThreshold": "low"}})

    def test_envs_become_strings(self):
        """Should stringify environment values."""
        issues = []
        cmd = LifecycleCommand.from_dict({"command": "x", "envs": {"PORT": 3000}}, "p", issues)
        assert cmd.envs == {"PORT": "3000"}
        assert issues == []


class TestLifecycleCommand:
    """Tests for command timeouts."""

    def test_default_timeout(self):
        """Should default to 30 seconds."""
        assert LifecycleCommand(command="make").timeout_seconds == 30.0

    def test_timeout_in_milliseconds(self):
        """Should convert milliseconds to seconds."""
        assert LifecycleCommand(command="make", timeout=1500).timeout_seconds == 1.5


class TestLoadConfig:
    """Tests for load_config."""

    def test_load(self, workspace):
        """Should load .testing/config.yml."""
        write_config(VALID_CONFIG)

        config = load_config()

        assert [c.command for c in config.start_commands] == ["docker compose up -d db", "npm run dev"]
        assert config.start_commands[0].timeout == 60000
        assert config.start_commands[1].keep_alive is True
        assert config.start_commands[1].envs == {"PORT": "3000"}
        assert config.stop_commands[0].command == "docker compose down"
        assert config.diff_threshold == 0.5
        assert config.output_text is True

    def test_missing_file(self, workspace):
        """Should fail with a clear message when the file is missing."""
        with pytest.raises(ConfigError, match="Failed to load configuration"):
            load_config()

    def test_unparsable_file(self, workspace):
        """Should fail when the YAML cannot be parsed."""
        write_config("lifecycle: [unclosed\n")
        with pytest.raises(ConfigError, match="Failed to parse configuration"):
            load_config()

    def test_invalid_file_names_path(self, workspace):
        """Should mention the file when validation fails."""
        write_config("screenshots: {diffThreshold: -1}\n")

        with pytest.raises(ConfigError) as exc_info:
            load_config()

        assert str(CONFIG_FILE) in str(exc_info.value)
        assert len(exc_info.value.issues) == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
