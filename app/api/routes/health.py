"""
Health check endpoint pour monitoring
"""

import logging
import time

import psutil
from fastapi import APIRouter

from app.models.schemas import HealthCheck
from app.services.database import get_db_service
from app.services.monitor import get_monitor
from app.utils.config import get_data_dir
from crucible.__version__ import __version__

logger = logging.getLogger(__name__)
router = APIRouter()

# Temps de démarrage pour calcul uptime
start_time = time.time()


@router.get("/health", response_model=HealthCheck)
async def health_check():
    """
    Health check endpoint pour monitoring de l'application.

    Retourne:
    - Statut de l'application
    - Uptime
    - Statistiques mémoire
    - Espace disque disponible
    - Nombre de matchs en cours et de sessions suivies par le polling
    """
    try:
        uptime = time.time() - start_time

        # Statistiques mémoire
        memory = psutil.virtual_memory()

        # Espace disque (répertoire DATA_DIR)
        data_dir = get_data_dir()
        if data_dir.exists():
            disk = psutil.disk_usage(str(data_dir))
            disk_available_gb = disk.free / (1024**3)
        else:
            disk_available_gb = 0.0

        monitor = get_monitor()
        stats = await get_db_service().get_stats()

        return HealthCheck(
            status="healthy",
            version=__version__,
            uptime_seconds=uptime,
            active_matches=stats.active_matches,
            active_sessions=monitor.active_sessions,
            polling=monitor.polling_enabled and monitor.is_running,
            disk_space_gb_available=disk_available_gb,
            memory_usage_percent=memory.percent,
            total_matches_completed=stats.completed_matches,
        )

    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return HealthCheck(
            status="unhealthy",
            version=__version__,
            uptime_seconds=time.time() - start_time,
            disk_space_gb_available=0.0,
            memory_usage_percent=0.0,
        )
