"""Asynchronous subprocess execution.

All script strategies spawn processes through run_process(): argument
vectors only, never a shell. There is no engine-level timeout; a process
runs until it exits.
"""

import asyncio
import os
from collections.abc import Mapping, Sequence
from pathlib import Path

import structlog

from noderun.contracts import ErrorKind, ProcessError, ProcessOutput

logger = structlog.get_logger(__name__)


async def run_process(
    command: Sequence[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> ProcessOutput:
    """Spawn a process, wait for it, and capture stdout/stderr.

    Args:
        command: Executable followed by its arguments
        cwd: Working directory (inherited when None)
        env: Extra environment variables, merged over the current environment

    Returns:
        ProcessOutput with exit code and raw output bytes

    Raises:
        ProcessError: PROCESS_SPAWN_FAILED if the executable cannot be started
    """
    argv = tuple(str(part) for part in command)
    process_env = None
    if env:
        process_env = {**os.environ, **env}

    logger.debug("Spawning process", command=argv, cwd=str(cwd) if cwd else None)
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            env=process_env,
        )
    except OSError as e:
        raise ProcessError(
            ErrorKind.PROCESS_SPAWN_FAILED,
            f"Failed to execute process: {e}",
        ) from e

    stdout, stderr = await proc.communicate()
    returncode = proc.returncode if proc.returncode is not None else -1
    logger.debug(
        "Process finished",
        command=argv,
        returncode=returncode,
        stdout_bytes=len(stdout),
        stderr_bytes=len(stderr),
    )
    return ProcessOutput(command=argv, returncode=returncode, stdout=stdout, stderr=stderr)
