"""
Caddy Module - Reverse proxy configuration for deployed projects

Architecture:
- templates / template_loader: Caddyfile templates and {{placeholder}} rendering
- generator: Per-project fragments (<sites_dir>/<id>.caddy)
- aggregator: Top-level Caddyfile (global options + imports)
- validator / reload: `caddy validate` gate and escalating reload tiers
- pipeline: Serialized write -> regenerate -> validate -> reload with rollback
- system_domain: HTTPS for the control plane itself
- manager: CaddyConfigManager facade used by the API

Usage:
    from proxyplane.services.caddy import get_caddy_config_manager

    manager = get_caddy_config_manager()
    await manager.update_project_config(project)
"""

from .errors import (
    CaddyConfigError,
    TemplateNotFound,
    ValidationFailed,
    ReloadFailed,
    MissingImportDirective,
    SlugCollisionError,
)
from .models import SecurityMode, ReloadTier, ReloadAttempt, ReloadOutcome, ProxySettings
from .template_loader import TemplateRenderer, render_template
from .generator import ProjectConfigGenerator
from .aggregator import MainConfigAggregator
from .validator import CaddyValidator
from .reload import (
    ReloadStrategy,
    AdminApiReload,
    ServiceManagerReload,
    CliReload,
    ReloadOrchestrator,
    default_strategies,
)
from .pipeline import FileChange, ReloadPipeline
from .system_domain import SystemDomainManager
from .manager import CaddyConfigManager, get_caddy_config_manager

__all__ = [
    # Errors
    "CaddyConfigError",
    "TemplateNotFound",
    "ValidationFailed",
    "ReloadFailed",
    "MissingImportDirective",
    "SlugCollisionError",
    # Models
    "SecurityMode",
    "ReloadTier",
    "ReloadAttempt",
    "ReloadOutcome",
    "ProxySettings",
    # Components
    "TemplateRenderer",
    "render_template",
    "ProjectConfigGenerator",
    "MainConfigAggregator",
    "CaddyValidator",
    "ReloadStrategy",
    "AdminApiReload",
    "ServiceManagerReload",
    "CliReload",
    "ReloadOrchestrator",
    "default_strategies",
    "FileChange",
    "ReloadPipeline",
    "SystemDomainManager",
    # Facade
    "CaddyConfigManager",
    "get_caddy_config_manager",
]
