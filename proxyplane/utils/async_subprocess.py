"""
Async subprocess utilities
Runs child processes (caddy, systemctl) without blocking the event loop.
"""
import asyncio
from typing import Awaitable, Callable, Optional, List
from dataclasses import dataclass


@dataclass
class SubprocessResult:
    """Result from subprocess execution (mirrors subprocess.CompletedProcess)"""
    returncode: int
    stdout: str
    stderr: str
    args: List[str]

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """stdout and stderr combined, like `cmd 2>&1`."""
        return self.stdout + self.stderr


# Signature shared by run_async and the fakes used in tests
ProcessRunner = Callable[..., Awaitable[SubprocessResult]]


async def run_async(
    cmd: List[str],
    timeout: Optional[float] = None,
    cwd: Optional[str] = None,
    env: Optional[dict] = None,
    check: bool = False
) -> SubprocessResult:
    """
    Async replacement for subprocess.run()

    Args:
        cmd: Command and arguments as list
        timeout: Optional timeout in seconds
        cwd: Working directory
        env: Environment variables
        check: Raise exception on non-zero exit code

    Returns:
        SubprocessResult with returncode, stdout, stderr

    Raises:
        asyncio.TimeoutError: If timeout is exceeded (the process is killed)
        RuntimeError: If the process cannot be started, or check=True and returncode != 0
    """
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            env=env
        )

        try:
            if timeout:
                stdout_bytes, stderr_bytes = await asyncio.wait_for(
                    process.communicate(),
                    timeout=timeout
                )
            else:
                stdout_bytes, stderr_bytes = await process.communicate()
        except asyncio.TimeoutError:
            # Kill process on timeout
            process.kill()
            await process.wait()
            raise

        result = SubprocessResult(
            returncode=process.returncode,
            stdout=stdout_bytes.decode('utf-8', errors='replace') if stdout_bytes else "",
            stderr=stderr_bytes.decode('utf-8', errors='replace') if stderr_bytes else "",
            args=cmd
        )

        if check and result.returncode != 0:
            raise RuntimeError(
                f"Command {' '.join(cmd)} failed with exit code {result.returncode}: {result.stderr}"
            )

        return result

    except Exception as e:
        # Re-raise with more context
        if not isinstance(e, (asyncio.TimeoutError, RuntimeError)):
            raise RuntimeError(f"Subprocess execution failed: {e}") from e
        raise


def privileged(cmd: List[str], use_sudo: bool) -> List[str]:
    """Prefix a command with sudo when the control plane runs unprivileged."""
    return ["sudo", *cmd] if use_sudo else list(cmd)
