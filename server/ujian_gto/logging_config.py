import logging

from ujian_gto.config import settings


def configure_logging(level: str = None):
    """
    Configure application logging once at startup.

    The level comes from settings (LOG_LEVEL) unless passed explicitly.
    """
    log_level = (level or settings.log_level).upper()
    log_level_value = getattr(logging, log_level, logging.INFO)

    logging.basicConfig(
        level=log_level_value,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # Uvicorn already logs every request line
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    app_logger = logging.getLogger("ujian_gto")
    app_logger.setLevel(log_level_value)
    return app_logger
