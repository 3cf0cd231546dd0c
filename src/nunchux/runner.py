# =============================================================================
# External Command Execution
# =============================================================================
# Status probes, file listings and provider scripts all shell out. They go
# through a CommandRunner so composition and sorting can be tested against
# canned output.

import asyncio
import os
import signal
from abc import ABC, abstractmethod

from loguru import logger

STATUS_TIMEOUT = 0.5
PROVIDER_TASKS_TIMEOUT = 2.0


class CommandError(Exception):
    """An external command failed, timed out or could not be started."""

    def __init__(
        self,
        argv: list[str],
        message: str,
        returncode: int | None = None,
        stderr: str = "",
        timed_out: bool = False,
    ):
        super().__init__(message)
        self.argv = argv
        self.returncode = returncode
        self.stderr = stderr
        self.timed_out = timed_out


def env_with_bin_dir(bin_dir: str) -> dict[str, str] | None:
    """
    Environment with ``bin_dir`` prepended to PATH.

    Status commands rely on helper scripts (lines, ago, nearest) that live
    next to the nunchux-run wrapper.

    Returns:
        A new environment dict, or None to inherit the current one
    """
    if not bin_dir:
        return None
    current_path = os.environ.get("PATH", "")
    return {**os.environ, "PATH": f"{bin_dir}{os.pathsep}{current_path}"}


class CommandRunner(ABC):
    """Runs external commands and returns their stdout."""

    @abstractmethod
    async def run(
        self,
        argv: list[str],
        *,
        timeout: float | None = None,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
    ) -> str:
        """Run ``argv`` and return stdout; raise CommandError on failure."""

    async def bash(
        self,
        script: str,
        *,
        timeout: float | None = None,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
    ) -> str:
        return await self.run(["bash", "-c", script], timeout=timeout, cwd=cwd, env=env)


class SubprocessRunner(CommandRunner):
    """asyncio subprocess implementation; kills the process group on timeout or cancel."""

    async def run(
        self,
        argv: list[str],
        *,
        timeout: float | None = None,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
    ) -> str:
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=env,
                start_new_session=True,
            )
        except OSError as e:
            raise CommandError(argv, f"could not start {argv[0]}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            await _kill(process)
            logger.debug(
                "Command timed out",
                operation="run_command",
                status="timeout",
                command=argv[0],
                timeout=timeout
            )
            raise CommandError(argv, f"{argv[0]} timed out after {timeout}s", timed_out=True)
        except asyncio.CancelledError:
            await _kill(process)
            raise

        if process.returncode != 0:
            stderr_text = stderr.decode(errors="replace").strip()
            raise CommandError(
                argv,
                f"{argv[0]} exited with code {process.returncode}",
                returncode=process.returncode,
                stderr=stderr_text,
            )

        return stdout.decode(errors="replace")


async def _kill(process: asyncio.subprocess.Process) -> None:
    # Kill the whole session group, forked children included
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    await process.wait()
