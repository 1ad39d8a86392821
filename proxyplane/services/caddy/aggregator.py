"""
Top-level Caddyfile aggregation.

The Caddyfile only declares global options and imports the per-project
fragments (plus system.caddy when a system domain is active). It is always
rewritten in full from current on-disk state.
"""

import logging
from pathlib import Path
from typing import List
from urllib.parse import urlsplit

import aiofiles
import aiofiles.os

from ...config import Settings
from .errors import MissingImportDirective
from .proxy_settings import ProxySettingsStore
from .template_loader import TemplateRenderer

logger = logging.getLogger(__name__)


class MainConfigAggregator:
    """Regenerates <caddy_dir>/Caddyfile."""

    def __init__(self, settings: Settings, renderer: TemplateRenderer, proxy_settings: ProxySettingsStore):
        self.settings = settings
        self.renderer = renderer
        self.proxy_settings = proxy_settings

    @property
    def caddyfile_path(self) -> Path:
        return self.settings.caddyfile_path

    @property
    def import_directive(self) -> str:
        return f"import {self.settings.sites_dir}/*.caddy"

    @property
    def admin_address(self) -> str:
        """host:port of the admin endpoint, as Caddy's `admin` option expects."""
        return urlsplit(self.settings.caddy_admin_url).netloc or "localhost:2019"

    def system_domain_active(self) -> bool:
        return self.settings.system_caddy_path.exists()

    async def render_top_level(self) -> str:
        variables = {
            "API_PORT": self.settings.api_port,
            "SITES_DIR": self.settings.sites_dir,
            "UI_DIST_DIR": self.settings.ui_dist_dir,
            "ADMIN_ADDRESS": self.admin_address,
        }

        if self.system_domain_active():
            variables["SYSTEM_CADDY_PATH"] = self.settings.system_caddy_path
            return self.renderer.render("main-with-system", variables)

        proxy_settings = await self.proxy_settings.load()
        global_options: List[str] = [f"admin {self.admin_address}"]
        if proxy_settings.disable_auto_https:
            global_options.append("auto_https off")
        variables["GLOBAL_OPTIONS"] = "\n  ".join(global_options)
        return self.renderer.render("main-caddyfile", variables)

    async def regenerate_top_level(self) -> None:
        """
        Rewrite the Caddyfile and verify the sites import survived.

        Raises:
            MissingImportDirective: If the written file lacks the import
            OSError: On filesystem failure (path included in the error)
        """
        content = await self.render_top_level()

        await aiofiles.os.makedirs(self.caddyfile_path.parent, exist_ok=True)
        async with aiofiles.open(self.caddyfile_path, 'w', encoding='utf-8') as f:
            await f.write(content)

        if not await self.has_import_directive():
            logger.error(f"[CADDY] Main Caddyfile is missing import directive: {self.caddyfile_path}")
            raise MissingImportDirective(str(self.caddyfile_path))

        variant = "with system domain" if self.system_domain_active() else "IP-only"
        logger.info(f"[CADDY] Updated main Caddyfile ({variant})")

    async def has_import_directive(self) -> bool:
        if not self.caddyfile_path.exists():
            return False
        async with aiofiles.open(self.caddyfile_path, 'r', encoding='utf-8') as f:
            content = await f.read()
        return self.import_directive in content
