"""
Persisted global Caddy options (currently only auto_https).
"""

import logging
from pathlib import Path
from typing import Union

import aiofiles
from pydantic import ValidationError

from .models import ProxySettings

logger = logging.getLogger(__name__)


class ProxySettingsStore:
    """JSON file next to the Caddyfile; missing or unreadable file means defaults."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    async def load(self) -> ProxySettings:
        if not self.path.exists():
            return ProxySettings()

        async with aiofiles.open(self.path, 'r', encoding='utf-8') as f:
            raw = await f.read()

        try:
            return ProxySettings.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"[CADDY] Ignoring invalid proxy settings at {self.path}: {e}")
            return ProxySettings()

    @staticmethod
    def dump(settings: ProxySettings) -> str:
        """settings.json content; written through the reload pipeline."""
        return settings.model_dump_json(indent=2)
