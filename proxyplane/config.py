from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings
from functools import lru_cache

class Settings(BaseSettings):
    # Root for all control-plane state (Caddy config lives under <data_dir>/caddy)
    data_dir: str = "/opt/proxyplane/data"

    # Deployed project sources: <apps_dir>/<project_id>/
    apps_dir: str = "/opt/proxyplane/apps"

    # Built control panel UI served as the fallback handler
    ui_dist_dir: str = "/opt/proxyplane/ui/dist"

    # Port the control-plane API listens on (proxied by Caddy under /api/*)
    api_port: int = Field(3000, validation_alias="PORT")

    # Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = "INFO"

    # ==========================================================================
    # Caddy
    # ==========================================================================
    caddy_binary: str = "caddy"
    caddy_admin_url: str = "http://localhost:2019"
    caddy_service_name: str = "caddy"

    # Prefix systemctl/caddy reload with sudo (control plane usually runs unprivileged)
    caddy_use_sudo: bool = True

    # Upper bound (seconds) for each reload tier and for validation
    caddy_reload_timeout: float = 30.0
    caddy_validate_timeout: float = 30.0

    # Used when no build output can be detected for a static project
    default_build_dir: str = "dist"

    @property
    def caddy_dir(self) -> Path:
        return Path(self.data_dir) / "caddy"

    @property
    def caddyfile_path(self) -> Path:
        """Top-level Caddyfile loaded by the proxy process."""
        return self.caddy_dir / "Caddyfile"

    @property
    def sites_dir(self) -> Path:
        """Per-project fragments: <sites_dir>/<project_id>.caddy"""
        return self.caddy_dir / "sites"

    @property
    def system_caddy_path(self) -> Path:
        return self.caddy_dir / "system.caddy"

    @property
    def proxy_settings_path(self) -> Path:
        return self.caddy_dir / "settings.json"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra fields from .env file
        case_sensitive = False  # Allow lowercase env vars to match uppercase field names
        populate_by_name = True

@lru_cache()
def get_settings():
    return Settings()
