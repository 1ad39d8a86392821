"""
Caddy subsystem data models.

ReloadAttempt/ReloadOutcome are ephemeral: they are logged and returned to the
caller, never persisted.
"""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


class SecurityMode(str, Enum):
    """
    How the control plane itself is reachable.

    Derived from the presence of system.caddy, never stored.
    """

    IP_HTTP = "ip-http"
    DOMAIN_HTTPS = "domain-https"

    def __str__(self) -> str:
        return self.value


class ReloadTier(str, Enum):
    """Control channels used to apply a Caddyfile, in escalation order."""

    ADMIN_API = "admin-api"
    SERVICE_MANAGER = "service-manager"
    CLI = "cli"


class ReloadAttempt(BaseModel):
    """Result of one reload tier."""
    tier: ReloadTier
    success: bool
    detail: str = ""
    status_code: Optional[int] = None
    stdout: str = ""
    stderr: str = ""


class ReloadOutcome(BaseModel):
    """Result of one apply(): the winning tier plus every attempt made."""
    tier: Optional[ReloadTier] = None
    attempts: List[ReloadAttempt] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.tier is not None


class ValidationResult(BaseModel):
    valid: bool
    output: str = ""


class ProxySettings(BaseModel):
    """Global Caddy options persisted next to the Caddyfile."""
    disable_auto_https: bool = True
