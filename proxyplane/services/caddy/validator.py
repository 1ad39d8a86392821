"""
Offline Caddyfile validation (`caddy validate`), used as the pre-flight gate
before any reload tier runs.
"""

import asyncio
import logging
from pathlib import Path
from typing import Union

from ...utils.async_subprocess import ProcessRunner, run_async
from .models import ValidationResult

logger = logging.getLogger(__name__)


class CaddyValidator:
    """Asks the caddy binary to parse the Caddyfile without applying it."""

    def __init__(
        self,
        config_path: Union[str, Path],
        caddy_binary: str = "caddy",
        timeout: float = 30.0,
        runner: ProcessRunner = run_async,
    ):
        self.config_path = Path(config_path)
        self.caddy_binary = caddy_binary
        self.timeout = timeout
        self.runner = runner

    async def check(self) -> ValidationResult:
        """
        Validate and keep the raw output for diagnostics.

        Fails on a non-zero exit, on spawn errors/timeouts, and whenever the
        combined output mentions "error" (case-insensitive), even with exit 0.
        """
        cmd = [self.caddy_binary, "validate", "--config", str(self.config_path)]
        try:
            result = await self.runner(cmd, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"[CADDY] Caddy validation timed out after {self.timeout}s")
            return ValidationResult(valid=False, output=f"caddy validate timed out after {self.timeout}s")
        except RuntimeError as e:
            logger.error(f"[CADDY] Caddy config validation failed: {e}")
            return ValidationResult(valid=False, output=str(e))

        output = result.output
        if not result.success or "error" in output.lower():
            logger.error(f"[CADDY] Caddy validation failed (exit {result.returncode}): {output}")
            return ValidationResult(valid=False, output=output)

        return ValidationResult(valid=True, output=output)

    async def validate(self) -> bool:
        return (await self.check()).valid
