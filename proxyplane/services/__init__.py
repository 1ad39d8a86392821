"""
Services Module

Key Submodules:
- caddy: Reverse proxy config synthesis and reload
- build_detector: Locates build output for static projects

Usage:
    from proxyplane.services import get_caddy_config_manager
"""

from .caddy import CaddyConfigManager, get_caddy_config_manager

__all__ = [
    "CaddyConfigManager",
    "get_caddy_config_manager",
]
