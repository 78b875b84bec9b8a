"""
Configuration loading for impulse-testing.

Reads ``.testing/config.yml``:

    lifecycle:
      start:
        - command: docker compose up -d db
          timeout: 60000
        - command: npm run dev
          keepAlive: true
          envs:
            PORT: "3000"
      stop:
        - command: docker compose down
    screenshots:
      diffThreshold: 0.1
    output:
      console: true
      text: false

Validation collects every issue before failing so a broken config can be
fixed in one pass.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .constants import CONFIG_FILE

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT_MS = 30000


class ConfigError(ValueError):
    """Raised when the configuration file is missing or invalid."""

    def __init__(self, message: str, issues: Optional[List[str]] = None):
        self.issues = list(issues or [])
        if self.issues:
            message += "\n" + "\n".join(f"  - {issue}" for issue in self.issues)
        super().__init__(message)


@dataclass(frozen=True)
class LifecycleCommand:
    """A shell command run before or after a story."""

    command: str
    timeout: Optional[int] = None  # milliseconds
    keep_alive: bool = False
    envs: Dict[str, str] = field(default_factory=dict)

    @property
    def timeout_seconds(self) -> float:
        return (self.timeout or DEFAULT_COMMAND_TIMEOUT_MS) / 1000

    @classmethod
    def from_dict(cls, data: Any, path: str, issues: List[str]) -> Optional["LifecycleCommand"]:
        if isinstance(data, str):
            data = {"command": data}
        if not isinstance(data, dict):
            issues.append(f"{path}: expected a mapping with a 'command'")
            return None

        command = data.get("command")
        if not isinstance(command, str) or not command.strip():
            issues.append(f"{path}.command: required non-empty string")
            return None

        timeout = data.get("timeout")
        if timeout is not None and (isinstance(timeout, bool) or not isinstance(timeout, (int, float))):
            issues.append(f"{path}.timeout: expected a number of milliseconds")
            timeout = None

        keep_alive = data.get("keepAlive", False)
        if not isinstance(keep_alive, bool):
            issues.append(f"{path}.keepAlive: expected a boolean")
            keep_alive = False

        if timeout is not None and keep_alive:
            issues.append(
                f"{path}: cannot use both 'timeout' and 'keepAlive' - timeout waits for "
                "command completion while keepAlive runs indefinitely"
            )

        envs = data.get("envs") or {}
        if not isinstance(envs, dict):
            issues.append(f"{path}.envs: expected a mapping")
            envs = {}

        return cls(
            command=command,
            timeout=int(timeout) if timeout is not None else None,
            keep_alive=keep_alive,
            envs={str(k): str(v) for k, v in envs.items()},
        )


@dataclass(frozen=True)
class Config:
    """Validated contents of config.yml."""

    start_commands: List[LifecycleCommand] = field(default_factory=list)
    stop_commands: List[LifecycleCommand] = field(default_factory=list)
    diff_threshold: Optional[float] = None
    output_console: bool = True
    output_text: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> "Config":
        """
        Validate a parsed config mapping.

        Raises:
            ConfigError: With one line per issue found
        """
        issues: List[str] = []
        if not isinstance(data, dict):
            raise ConfigError("Invalid configuration:", ["(root): expected a mapping"])

        lifecycle = data.get("lifecycle")
        start: List[LifecycleCommand] = []
        stop: List[LifecycleCommand] = []
        if not isinstance(lifecycle, dict):
            issues.append("lifecycle: required mapping with 'start' and 'stop' lists")
        else:
            for key, target in (("start", start), ("stop", stop)):
                entries = lifecycle.get(key)
                if entries is None:
                    entries = []
                if not isinstance(entries, list):
                    issues.append(f"lifecycle.{key}: expected a list")
                    continue
                for i, entry in enumerate(entries):
                    cmd = LifecycleCommand.from_dict(entry, f"lifecycle.{key}.{i}", issues)
                    if cmd:
                        target.append(cmd)

        diff_threshold = None
        screenshots = data.get("screenshots") or {}
        if not isinstance(screenshots, dict):
            issues.append("screenshots: expected a mapping")
        elif screenshots.get("diffThreshold") is not None:
            value = screenshots["diffThreshold"]
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                issues.append("screenshots.diffThreshold: expected a number")
            elif not 0 <= value <= 100:
                issues.append("screenshots.diffThreshold: must be between 0 and 100")
            else:
                diff_threshold = float(value)

        output = data.get("output") or {}
        if not isinstance(output, dict):
            issues.append("output: expected a mapping")
            output = {}

        if issues:
            raise ConfigError("Invalid configuration:", issues)

        return cls(
            start_commands=start,
            stop_commands=stop,
            diff_threshold=diff_threshold,
            output_console=bool(output.get("console", True)),
            output_text=bool(output.get("text", False)),
        )


def load_config(path: Union[str, Path] = CONFIG_FILE) -> Config:
    """
    Load and validate the configuration file.

    Args:
        path: Config file location (default: .testing/config.yml)

    Returns:
        Validated Config

    Raises:
        ConfigError: If the file is missing, unparsable or invalid
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Failed to load configuration from {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse configuration in {path}: {e}") from e

    try:
        config = Config.from_dict(raw)
    except ConfigError as e:
        raise ConfigError(f"Invalid configuration in {path}:", e.issues) from None

    logger.debug(
        "Loaded config from %s: %d start, %d stop commands",
        path,
        len(config.start_commands),
        len(config.stop_commands),
    )
    return config
