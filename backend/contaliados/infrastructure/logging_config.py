"""
Configuración de logging para la aplicación
Crea archivos de log por día en la carpeta configurada (LOG_DIR)
"""
import logging
from logging.handlers import RotatingFileHandler
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..config import settings

# Áreas que registran cada asiento, cierre y liquidación
AREAS_DETALLADAS = ("ledger", "periodos", "comisiones", "webhooks")


def setup_logging(log_dir: Optional[str] = None, level: Optional[int] = None):
    """Configura el sistema de logging con archivos diarios"""
    log_path = Path(log_dir or settings.log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    if level is None:
        level = logging.getLevelName(settings.log_level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    today = datetime.now().strftime("%Y-%m-%d")
    log_file = log_path / f"contaliados_{today}.log"

    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s", "%Y-%m-%d %H:%M:%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    # 10 MB por archivo, 5 respaldos
    file_handler = RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8")
    file_handler.setFormatter(formatter)
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    logging.getLogger("contaliados").setLevel(level)
    for area in AREAS_DETALLADAS:
        logging.getLogger(f"contaliados.{area}").setLevel(logging.DEBUG if settings.debug else level)

    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.INFO)

    logging.info(f"Sistema de logging configurado. Archivo: {log_file}")
    return root_logger


def get_logger(name: str = None):
    """Obtiene un logger con el nombre especificado"""
    if name:
        return logging.getLogger(f"contaliados.{name}")
    return logging.getLogger("contaliados")
