"""
Caddy configuration errors.

Every error carries an HTTP status_code (500 unless overridden) so the API
layer can surface it with the diagnostic detail attached.
"""

from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ReloadAttempt


class CaddyConfigError(Exception):
    """Base error for Caddy config synthesis and reload."""
    status_code = 500


class TemplateNotFound(CaddyConfigError):
    """Exception raised when rendering an unknown template name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Template not found: {name}")


class ValidationFailed(CaddyConfigError):
    """Generated Caddyfile was rejected by `caddy validate`; it was not applied."""

    def __init__(self, output: str, message: str = "Caddy config validation failed"):
        self.output = output
        super().__init__(message)


class ReloadFailed(CaddyConfigError):
    """Every reload tier failed."""

    def __init__(self, attempts: Optional[List["ReloadAttempt"]] = None):
        self.attempts = attempts or []
        tiers = ", ".join(f"{a.tier.value}: {a.detail}" for a in self.attempts)
        super().__init__(f"Failed to reload Caddy - all methods exhausted ({tiers})")


class MissingImportDirective(CaddyConfigError):
    """Top-level Caddyfile does not import the project fragments directory."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Caddyfile at {path} is missing the sites import directive")


class SlugCollisionError(CaddyConfigError):
    """Another project already owns the /app/<slug> route."""
    status_code = 409

    def __init__(self, slug: str, owner_id: str):
        self.slug = slug
        self.owner_id = owner_id
        super().__init__(f"Path /app/{slug} is already used by project {owner_id}")
