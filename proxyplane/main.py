from fastapi import FastAPI
from .routers import caddy
from .config import get_settings
from .services.caddy import CaddyConfigError, get_caddy_config_manager
import logging
import uvicorn

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Proxyplane Control Plane API")


@app.on_event("startup")
async def startup():
    # Apply the Caddy configuration; keep the API up even if Caddy is unreachable
    try:
        outcome = await get_caddy_config_manager().initialize()
        logger.info(f"Caddy initialized (reloaded via {outcome.tier.value})")
    except (CaddyConfigError, OSError) as e:
        logger.error(f"Failed to initialize Caddy configuration: {e}", exc_info=True)


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "proxyplane"}


app.include_router(caddy.router, prefix="/api/caddy", tags=["caddy"])


def run():
    """Console entry point; Caddy proxies /api/* to this port on loopback."""
    uvicorn.run(app, host="127.0.0.1", port=settings.api_port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
