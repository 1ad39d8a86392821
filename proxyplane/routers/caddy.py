"""
Caddy status and global settings endpoints.
"""

import logging
from fastapi import APIRouter, Depends, HTTPException

from ..schemas import ProxySettingsRead, ProxySettingsUpdate, ProxyStatusRead
from ..services.caddy import CaddyConfigError, CaddyConfigManager, ValidationFailed, get_caddy_config_manager

logger = logging.getLogger(__name__)
router = APIRouter()


def to_http_exception(error: CaddyConfigError) -> HTTPException:
    """Map a Caddy error to its HTTP status, keeping validator output in the detail."""
    detail = str(error)
    if isinstance(error, ValidationFailed) and error.output.strip():
        detail = f"{detail}: {error.output.strip()}"
    return HTTPException(status_code=error.status_code, detail=detail)


@router.get("/status", response_model=ProxyStatusRead)
async def get_status(manager: CaddyConfigManager = Depends(get_caddy_config_manager)):
    """Whether Caddy is installed and running, and how the control plane is exposed."""
    status = await manager.check_status()
    return ProxyStatusRead(
        installed=status.installed,
        running=status.running,
        securityMode=manager.security_mode().value,
    )


@router.get("/settings", response_model=ProxySettingsRead)
async def get_proxy_settings(manager: CaddyConfigManager = Depends(get_caddy_config_manager)):
    settings = await manager.get_proxy_settings()
    return ProxySettingsRead(disableAutoHttps=settings.disable_auto_https)


@router.patch("/settings", response_model=ProxySettingsRead)
async def update_proxy_settings(
    update: ProxySettingsUpdate,
    manager: CaddyConfigManager = Depends(get_caddy_config_manager),
):
    """
    Update global Caddy options, then regenerate and reload.

    A body whose disableAutoHttps is not a boolean is rejected with 422.
    """
    try:
        settings = await manager.update_proxy_settings(update.disableAutoHttps)
    except CaddyConfigError as e:
        logger.error(f"[CADDY] Failed to update proxy settings: {e}")
        raise to_http_exception(e)

    return ProxySettingsRead(disableAutoHttps=settings.disable_auto_https)
