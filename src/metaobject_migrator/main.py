"""FastAPI application entry point for the migrator job API.

Serve ``app`` with any ASGI server. Jobs use the store
credentials from the environment (see ``config.load_settings``); requests
must carry ``X-MIGRATOR-API-KEY``.
"""
import logging
import os

from fastapi import FastAPI

from . import __version__
from .api.routes import router as api_router
from .config import load_api_key


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logging.basicConfig(
    level=os.getenv("MIGRATOR_LOG_LEVEL", "INFO").upper(),
    format=LOG_FORMAT,
)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Build the job API with its export and import routes."""
    app = FastAPI(
        title="Metaobject Migrator API",
        version=__version__,
        description="Queue metaobject export and import jobs for one Shopify store",
    )
    app.include_router(api_router)

    if load_api_key() is None:
        logger.warning("MIGRATOR_API_KEY is not set; job requests will be refused")
    return app


app = create_app()
