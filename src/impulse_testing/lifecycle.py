"""
Lifecycle of the application under test.

``start_app`` runs the configured ``lifecycle.start`` commands in order.
Commands with ``keepAlive: true`` are spawned in the background (dev servers,
watchers) and are only stopped by the cleanup handle it returns. Everything
else runs to completion within its timeout.

Usage:
    config = load_config()
    cleanup = start_app(config, url="http://localhost:3000")
    try:
        ...  # drive the browser
    finally:
        stop_app(cleanup, config)
"""

import logging
import os
import shlex
import subprocess
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

import requests

from .config import Config, LifecycleCommand

logger = logging.getLogger(__name__)

Cleanup = Callable[[], None]

URL_POLL_INTERVAL = 1.0
URL_REQUEST_TIMEOUT = 2.0
PROCESS_STOP_TIMEOUT = 5.0


class CommandError(RuntimeError):
    """A lifecycle command could not be run or exited unsuccessfully."""


@dataclass
class RunningProcess:
    """A background command started with keepAlive."""

    process: subprocess.Popen
    command: str


def _command_args(cmd: LifecycleCommand) -> List[str]:
    args = shlex.split(cmd.command)
    if not args:
        raise CommandError(f"Invalid command: {cmd.command!r}")
    return args


def execute_command(cmd: LifecycleCommand, background: bool = False) -> Optional[RunningProcess]:
    """
    Execute a single lifecycle command.

    Args:
        cmd: The command to run
        background: Spawn without waiting (also implied by ``cmd.keep_alive``)

    Returns:
        The RunningProcess for background commands, None otherwise

    Raises:
        CommandError: If the command cannot be started, times out, or exits non-zero
    """
    args = _command_args(cmd)
    env = {**os.environ, **cmd.envs}

    if background or cmd.keep_alive:
        logger.info("Executing (background): %s", cmd.command)
        try:
            process = subprocess.Popen(args, env=env)
        except OSError as e:
            raise CommandError(f"Failed to start {cmd.command!r}: {e}") from e
        return RunningProcess(process=process, command=cmd.command)

    logger.info("Executing: %s", cmd.command)
    try:
        subprocess.run(
            args,
            env=env,
            timeout=cmd.timeout_seconds,
            check=True,
            capture_output=True,
            text=True,
        )
    except subprocess.TimeoutExpired as e:
        raise CommandError(f"Command {cmd.command!r} timed out after {cmd.timeout_seconds:g}s") from e
    except subprocess.CalledProcessError as e:
        stderr = (e.stderr or "").strip()
        detail = f": {stderr[-500:]}" if stderr else ""
        raise CommandError(f"Command {cmd.command!r} exited with code {e.returncode}{detail}") from e
    except OSError as e:
        raise CommandError(f"Failed to start {cmd.command!r}: {e}") from e

    logger.info("Executed: %s", cmd.command)
    return None


def terminate_process(running: RunningProcess):
    """Terminate a background command, escalating to kill if it does not exit."""
    process = running.process
    if process.poll() is not None:
        return
    process.terminate()
    try:
        process.wait(timeout=PROCESS_STOP_TIMEOUT)
    except subprocess.TimeoutExpired:
        logger.warning("Process %r ignored SIGTERM, killing", running.command)
        process.kill()
        process.wait()


def wait_for_url(url: str, timeout: float = 30.0):
    """
    Poll a URL until the server answers.

    Any status below 500 counts as available: redirects and 404s mean the
    server is up even if the page is not ready yet.

    Raises:
        TimeoutError: If the URL does not become available in time
    """
    deadline = time.monotonic() + timeout
    last_error = ""

    while time.monotonic() < deadline:
        try:
            response = requests.get(url, timeout=URL_REQUEST_TIMEOUT)
            if response.status_code < 500:
                logger.debug("%s is available (HTTP %d)", url, response.status_code)
                return
            last_error = f"HTTP {response.status_code}"
        except requests.RequestException as e:
            last_error = str(e)
        time.sleep(URL_POLL_INTERVAL)

    raise TimeoutError(
        f"Timeout: {url} did not become available within {timeout:g}s"
        + (f" (last error: {last_error})" if last_error else "")
    )


def start_app(config: Config, url: Optional[str] = None) -> Cleanup:
    """
    Start the application using the lifecycle.start commands.

    Args:
        config: Validated configuration
        url: Optional URL to wait for once keepAlive commands are running

    Returns:
        Cleanup function that stops every background process

    Raises:
        CommandError, TimeoutError: Startup failed; started processes are stopped first
    """
    running: List[RunningProcess] = []

    try:
        for cmd in config.start_commands:
            process = execute_command(cmd, background=cmd.keep_alive)
            if process:
                running.append(process)

        if url and any(cmd.keep_alive for cmd in config.start_commands):
            wait_for_url(url)
    except Exception:
        for process in running:
            try:
                terminate_process(process)
            except Exception as e:
                logger.debug("Ignoring error while stopping %r: %s", process.command, e)
        raise

    def cleanup():
        for process in running:
            try:
                terminate_process(process)
            except Exception:
                logger.exception("Failed to stop process %r", process.command)

    return cleanup


def stop_app(cleanup: Cleanup, config: Config):
    """Run the cleanup handle, then the lifecycle.stop commands (each best-effort)."""
    cleanup()

    for cmd in config.stop_commands:
        try:
            execute_command(cmd, background=False)
        except Exception:
            logger.exception("Failed to execute stop command %r", cmd.command)
