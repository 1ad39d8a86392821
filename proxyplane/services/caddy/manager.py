"""
Caddy Configuration Manager

Single entry point used by the API and the project lifecycle hooks. Wires
templates, fragment generation, top-level aggregation, validation and the
reload tiers together, and serializes every reload through one pipeline.

Layout under <data_dir>/caddy:
- Caddyfile          top-level config (global options + imports)
- sites/<id>.caddy   one fragment per deployed project
- system.caddy       control plane domain block (HTTPS mode only)
- settings.json      persisted global options
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import Mapping, Optional

import aiofiles
import aiofiles.os
import httpx

from ...config import Settings, get_settings
from ...schemas import CaddyStatus, ProjectConfig
from ...utils.async_subprocess import ProcessRunner, run_async
from ...utils.slug_generator import project_path_prefix, project_path_slug
from ..build_detector import BuildOutputResolver, detect_build_output
from .aggregator import MainConfigAggregator
from .errors import CaddyConfigError, SlugCollisionError
from .generator import ProjectConfigGenerator
from .models import ProxySettings, ReloadOutcome, SecurityMode
from .pipeline import FileChange, ReloadPipeline
from .proxy_settings import ProxySettingsStore
from .reload import ReloadOrchestrator, default_strategies
from .system_domain import SystemDomainManager
from .template_loader import TemplateRenderer
from .templates import TEMPLATES
from .validator import CaddyValidator

logger = logging.getLogger(__name__)


class CaddyConfigManager:
    """
    Keeps Caddy's configuration in sync with the set of deployed projects.

    Every mutating operation goes write -> regenerate -> validate -> reload.
    A config rejected by `caddy validate` is rolled back and never applied.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        runner: ProcessRunner = run_async,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        build_output_resolver: BuildOutputResolver = detect_build_output,
        templates: Mapping[str, str] = TEMPLATES,
    ):
        self.settings = settings or get_settings()
        self.runner = runner
        self.transport = transport

        self.renderer = TemplateRenderer(templates)
        self.generator = ProjectConfigGenerator(
            self.renderer,
            self.settings.apps_dir,
            default_build_dir=self.settings.default_build_dir,
            build_output_resolver=build_output_resolver,
        )
        self.proxy_settings = ProxySettingsStore(self.settings.proxy_settings_path)
        self.aggregator = MainConfigAggregator(self.settings, self.renderer, self.proxy_settings)
        self.validator = CaddyValidator(
            self.settings.caddyfile_path,
            caddy_binary=self.settings.caddy_binary,
            timeout=self.settings.caddy_validate_timeout,
            runner=runner,
        )
        self.orchestrator = ReloadOrchestrator(
            self.aggregator,
            self.validator,
            default_strategies(self.settings, runner=runner, transport=transport),
        )
        self.pipeline = ReloadPipeline(self.aggregator, self.orchestrator)
        self.system_domain = SystemDomainManager(self.settings, self.renderer, self.pipeline)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def initialize(self) -> ReloadOutcome:
        """
        Ensure the directory layout exists and apply the current configuration.

        Called once at startup. Existing fragments are kept as they are.
        """
        await aiofiles.os.makedirs(self.settings.sites_dir, exist_ok=True)
        outcome = await self.pipeline.run()
        logger.info(f"[CADDY] Caddy configuration initialized at {self.settings.caddy_dir}")
        return outcome

    async def refresh_main_caddyfile(self) -> ReloadOutcome:
        """Regenerate the top-level Caddyfile from disk state and reload."""
        return await self.pipeline.run()

    # =========================================================================
    # Projects
    # =========================================================================

    def get_project_config_path(self, project_id: str) -> Path:
        return self.settings.sites_dir / f"{project_id}.caddy"

    async def update_project_config(self, project: ProjectConfig) -> ReloadOutcome:
        """
        Write the project's fragment and apply it.

        Raises:
            SlugCollisionError: If another project already serves /app/<slug>
            ValidationFailed: Fragment rejected; previous fragment restored
            ReloadFailed: All reload tiers failed
        """
        content = await self.generator.generate(project)
        config_path = self.get_project_config_path(project.id)
        logger.info(f"[CADDY] Writing Caddy config for project {project.name} ({project.id})")

        # slug scan runs under the pipeline lock, before the fragment is written
        return await self.pipeline.run(
            [FileChange(config_path, content)],
            precheck=lambda: self._check_slug_available(project),
        )

    async def delete_project_config(self, project_id: str) -> None:
        """Best effort: failures are logged, never raised."""
        config_path = self.get_project_config_path(project_id)
        if not config_path.exists():
            logger.debug(f"[CADDY] No Caddy config for project {project_id}, nothing to delete")
            return

        try:
            await self.pipeline.run([FileChange(config_path, None, restore=False)])
            logger.info(f"[CADDY] Deleted Caddy config for project {project_id}")
        except (CaddyConfigError, OSError) as e:
            logger.error(f"[CADDY] Failed to delete Caddy config for project {project_id}: {e}")

    async def _check_slug_available(self, project: ProjectConfig) -> None:
        slug = project_path_slug(project.name, project.id)
        route = re.compile(r"^\s*handle_path\s+/app/" + re.escape(slug) + r"\*", re.MULTILINE)
        own_path = self.get_project_config_path(project.id)

        if not self.settings.sites_dir.exists():
            return

        for fragment in sorted(self.settings.sites_dir.glob("*.caddy")):
            if fragment == own_path:
                continue
            async with aiofiles.open(fragment, 'r', encoding='utf-8') as f:
                content = await f.read()
            if route.search(content):
                owner_id = fragment.stem
                logger.warning(f"[CADDY] Slug /app/{slug} for {project.id} already used by {owner_id}")
                raise SlugCollisionError(slug, owner_id)

    def get_project_url(self, project: ProjectConfig, server_ip: Optional[str] = None) -> str:
        """Path-based URL; always valid regardless of custom domains."""
        return f"http://{server_ip or 'localhost'}{project_path_prefix(project.name, project.id)}"

    # =========================================================================
    # System domain
    # =========================================================================

    async def update_system_config(self, domain: str) -> ReloadOutcome:
        return await self.system_domain.set_domain(domain)

    async def remove_system_config(self) -> ReloadOutcome:
        return await self.system_domain.remove_domain()

    def has_system_domain(self) -> bool:
        return self.system_domain.has_system_domain()

    def security_mode(self) -> SecurityMode:
        return self.system_domain.security_mode()

    # =========================================================================
    # Global options
    # =========================================================================

    async def get_proxy_settings(self) -> ProxySettings:
        return await self.proxy_settings.load()

    async def update_proxy_settings(self, disable_auto_https: bool) -> ProxySettings:
        settings = ProxySettings(disable_auto_https=disable_auto_https)
        await self.pipeline.run([
            FileChange(self.proxy_settings.path, ProxySettingsStore.dump(settings)),
        ])
        return settings

    # =========================================================================
    # Status
    # =========================================================================

    async def check_status(self) -> CaddyStatus:
        """
        installed: `caddy version` runs and exits 0.
        running: the admin API answers GET /config/.
        """
        installed = False
        try:
            result = await self.runner(
                [self.settings.caddy_binary, "version"],
                timeout=self.settings.caddy_validate_timeout,
            )
            installed = result.success
        except (asyncio.TimeoutError, RuntimeError) as e:
            logger.debug(f"[CADDY] caddy version failed: {e}")

        running = False
        config_url = f"{self.settings.caddy_admin_url.rstrip('/')}/config/"
        try:
            async with httpx.AsyncClient(timeout=5.0, transport=self.transport) as client:
                response = await client.get(config_url)
            running = response.status_code == 200
        except httpx.HTTPError as e:
            logger.debug(f"[CADDY] Admin API not reachable at {config_url}: {e}")

        return CaddyStatus(installed=installed, running=running)


# Singleton instance
_caddy_config_manager: Optional[CaddyConfigManager] = None


def get_caddy_config_manager() -> CaddyConfigManager:
    """Get the singleton Caddy config manager instance."""
    global _caddy_config_manager

    if _caddy_config_manager is None:
        _caddy_config_manager = CaddyConfigManager()

    return _caddy_config_manager
