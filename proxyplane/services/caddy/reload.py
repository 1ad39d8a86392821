"""
Caddy Reload Orchestration

Applies a validated Caddyfile to the running proxy through an escalating list
of control channels:

1. Admin API   - POST the Caddyfile to <admin>/load (graceful, no sudo)
2. systemd     - systemctl reload <service>
3. Caddy CLI   - caddy reload --config <Caddyfile>

Each tier is tried at most once per apply(), in order. A tier never raises;
it reports a ReloadAttempt and the orchestrator decides whether to escalate.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence

import aiofiles
import httpx

from ...config import Settings
from ...utils.async_subprocess import ProcessRunner, privileged, run_async
from .aggregator import MainConfigAggregator
from .errors import ReloadFailed, ValidationFailed
from .models import ReloadAttempt, ReloadOutcome, ReloadTier
from .validator import CaddyValidator

logger = logging.getLogger(__name__)

# Informational line `caddy reload` prints on stderr on every successful run
BENIGN_CLI_STDERR = "using provided configuration"


class ReloadStrategy(ABC):
    """One control channel able to push a Caddyfile into the live proxy."""

    tier: ReloadTier

    @abstractmethod
    async def reload(self, config_path: Path) -> ReloadAttempt:
        """
        Apply the Caddyfile at config_path.

        Returns:
            ReloadAttempt describing success or the failure signature
        """
        pass


class AdminApiReload(ReloadStrategy):
    """POST the raw Caddyfile to Caddy's admin endpoint; only HTTP 200 counts."""

    tier = ReloadTier.ADMIN_API

    def __init__(
        self,
        admin_url: str = "http://localhost:2019",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.load_url = f"{admin_url.rstrip('/')}/load"
        self.timeout = timeout
        self.transport = transport

    async def reload(self, config_path: Path) -> ReloadAttempt:
        try:
            async with aiofiles.open(config_path, 'rb') as f:
                body = await f.read()

            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.load_url,
                    content=body,
                    headers={"Content-Type": "text/caddyfile"},
                )
        except (httpx.HTTPError, OSError) as e:
            logger.warning(f"[CADDY-RELOAD] Caddy API reload failed: {type(e).__name__}: {e}")
            return ReloadAttempt(tier=self.tier, success=False, detail=f"{type(e).__name__}: {e}")

        if response.status_code == 200:
            return ReloadAttempt(tier=self.tier, success=True, status_code=200, detail="HTTP 200")

        logger.warning(
            f"[CADDY-RELOAD] Caddy API returned HTTP {response.status_code}: {response.text[:200]}"
        )
        return ReloadAttempt(
            tier=self.tier,
            success=False,
            status_code=response.status_code,
            detail=f"HTTP {response.status_code}",
            stdout=response.text[:200],
        )


class _CommandReload(ReloadStrategy):
    """Shared plumbing for tiers that shell out."""

    def __init__(self, timeout: float = 30.0, use_sudo: bool = True, runner: ProcessRunner = run_async):
        self.timeout = timeout
        self.use_sudo = use_sudo
        self.runner = runner

    @abstractmethod
    def command(self, config_path: Path) -> List[str]:
        pass

    def is_benign_stderr(self, stderr: str) -> bool:
        return False

    async def reload(self, config_path: Path) -> ReloadAttempt:
        cmd = privileged(self.command(config_path), self.use_sudo)
        try:
            result = await self.runner(cmd, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"[CADDY-RELOAD] {' '.join(cmd)} timed out after {self.timeout}s")
            return ReloadAttempt(tier=self.tier, success=False, detail=f"timed out after {self.timeout}s")
        except RuntimeError as e:
            logger.warning(f"[CADDY-RELOAD] {' '.join(cmd)} could not run: {e}")
            return ReloadAttempt(tier=self.tier, success=False, detail=str(e))

        stderr = result.stderr.strip()
        stdout = result.stdout.strip()
        if stderr and not self.is_benign_stderr(stderr):
            logger.warning(f"[CADDY-RELOAD] {self.tier.value} stderr: {stderr}")
        if stdout:
            logger.debug(f"[CADDY-RELOAD] {self.tier.value} stdout: {stdout}")

        if not result.success:
            return ReloadAttempt(
                tier=self.tier,
                success=False,
                detail=f"exit code {result.returncode}",
                stdout=stdout,
                stderr=stderr,
            )
        return ReloadAttempt(tier=self.tier, success=True, detail="exit code 0", stdout=stdout, stderr=stderr)


class ServiceManagerReload(_CommandReload):
    tier = ReloadTier.SERVICE_MANAGER

    def __init__(self, service_name: str = "caddy", **kwargs):
        super().__init__(**kwargs)
        self.service_name = service_name

    def command(self, config_path: Path) -> List[str]:
        return ["systemctl", "reload", self.service_name]


class CliReload(_CommandReload):
    tier = ReloadTier.CLI

    def __init__(self, caddy_binary: str = "caddy", **kwargs):
        super().__init__(**kwargs)
        self.caddy_binary = caddy_binary

    def command(self, config_path: Path) -> List[str]:
        return [self.caddy_binary, "reload", "--config", str(config_path)]

    def is_benign_stderr(self, stderr: str) -> bool:
        return BENIGN_CLI_STDERR in stderr


def default_strategies(
    settings: Settings,
    runner: ProcessRunner = run_async,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> List[ReloadStrategy]:
    """Admin API, then systemd, then the caddy CLI."""
    command_options = dict(timeout=settings.caddy_reload_timeout, use_sudo=settings.caddy_use_sudo, runner=runner)
    return [
        AdminApiReload(settings.caddy_admin_url, timeout=settings.caddy_reload_timeout, transport=transport),
        ServiceManagerReload(settings.caddy_service_name, **command_options),
        CliReload(settings.caddy_binary, **command_options),
    ]


class ReloadOrchestrator:
    """Validates the Caddyfile, then walks the reload tiers until one succeeds."""

    def __init__(
        self,
        aggregator: MainConfigAggregator,
        validator: CaddyValidator,
        strategies: Sequence[ReloadStrategy],
    ):
        self.aggregator = aggregator
        self.validator = validator
        self.strategies = list(strategies)

    @property
    def config_path(self) -> Path:
        return self.aggregator.caddyfile_path

    async def apply(self) -> ReloadOutcome:
        """
        Apply the current Caddyfile to the running proxy.

        Returns:
            ReloadOutcome naming the tier that succeeded

        Raises:
            MissingImportDirective: If regeneration could not restore the import
            ValidationFailed: If `caddy validate` rejects the file (no tier is run)
            ReloadFailed: If every tier failed
        """
        if not await self.aggregator.has_import_directive():
            logger.warning("[CADDY-RELOAD] Main Caddyfile missing import directive, regenerating...")
            await self.aggregator.regenerate_top_level()

        validation = await self.validator.check()
        if not validation.valid:
            raise ValidationFailed(validation.output)

        outcome = ReloadOutcome()
        for strategy in self.strategies:
            attempt = await strategy.reload(self.config_path)
            outcome.attempts.append(attempt)
            if attempt.success:
                outcome.tier = strategy.tier
                logger.info(f"[CADDY-RELOAD] Caddy configuration reloaded via {strategy.tier.value}")
                return outcome
            logger.warning(f"[CADDY-RELOAD] {strategy.tier.value} reload failed ({attempt.detail})")

        logger.error(
            "[CADDY-RELOAD] Failed to reload Caddy - all methods exhausted: "
            + "; ".join(
                f"{a.tier.value}: {a.detail} stderr={a.stderr!r} stdout={a.stdout!r}"
                for a in outcome.attempts
            )
        )
        raise ReloadFailed(outcome.attempts)
