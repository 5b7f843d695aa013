"""
Crucible Monitor Web API - Main FastAPI Application
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import crucible, health
from app.services.database import get_db_service
from app.services.monitor import get_monitor
from app.utils.config import get_app_config, get_logs_dir
from crucible.__version__ import __version__
from crucible.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Console + rotating files under DATA_DIR/logs, format from config.yaml."""
    config = get_app_config()
    setup_logging(
        log_dir=str(get_logs_dir()),
        log_level=os.getenv("LOG_LEVEL", config.get("logging.level", "INFO")),
        enable_console=True,
        enable_file=os.getenv("LOG_TO_FILE", "true").lower() == "true",
        log_format=config.get("logging.format", "standard"),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager pour démarrage/arrêt de l'application.
    Initialise la base de données et démarre le suivi des matchs.
    """
    configure_logging()
    logger.info("Starting Crucible Monitor Web API")

    # Initialiser la base de données
    db_service = get_db_service()
    await db_service.init_db()
    logger.info("Database initialized")

    # Démarrer le polling de l'appliance (si configurée)
    monitor = get_monitor()
    await monitor.start()
    logger.info(f"Match monitor started (polling {'enabled' if monitor.polling_enabled else 'disabled'})")

    yield

    await monitor.stop()
    logger.info("Match monitor stopped")

    await db_service.close()
    logger.info("Crucible Monitor Web API shutdown complete")


# Création application FastAPI
app = FastAPI(
    title="Crucible Monitor Web API",
    description="Classification temps réel des matchs et de la qualité de connexion",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware (dashboard servi sur une autre origine)
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Inclusion des routes API
app.include_router(health.router, prefix="/api", tags=["health"])
app.include_router(crucible.router, prefix="/api", tags=["crucible"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,  # Dev uniquement
        log_level="info",
    )
