"""
System domain management.

Binding the control plane to a domain writes system.caddy, which switches the
top-level Caddyfile to its HTTPS variant. Removing it falls back to IP-only
HTTP access on :80.
"""

import logging

from ...config import Settings
from .models import ReloadOutcome, SecurityMode
from .pipeline import FileChange, ReloadPipeline
from .template_loader import TemplateRenderer

logger = logging.getLogger(__name__)


class SystemDomainManager:
    def __init__(self, settings: Settings, renderer: TemplateRenderer, pipeline: ReloadPipeline):
        self.settings = settings
        self.renderer = renderer
        self.pipeline = pipeline

    def render_system_block(self, domain: str) -> str:
        return self.renderer.render("system-domain", {
            "domain": domain,
            "API_PORT": self.settings.api_port,
            "SITES_DIR": self.settings.sites_dir,
            "UI_DIST_DIR": self.settings.ui_dist_dir,
        })

    async def set_domain(self, domain: str) -> ReloadOutcome:
        """Serve the control plane (and its /api) on domain with automatic HTTPS."""
        logger.info(f"[CADDY] Configuring system domain: {domain}")
        content = self.render_system_block(domain)
        return await self.pipeline.run([FileChange(self.settings.system_caddy_path, content)])

    async def remove_domain(self) -> ReloadOutcome:
        logger.info("[CADDY] Removing system domain configuration")
        return await self.pipeline.run([FileChange(self.settings.system_caddy_path, None)])

    def has_system_domain(self) -> bool:
        return self.settings.system_caddy_path.exists()

    def security_mode(self) -> SecurityMode:
        return SecurityMode.DOMAIN_HTTPS if self.has_system_domain() else SecurityMode.IP_HTTP
