# api/ged/logging_setup.py
import logging
import logging.config
from typing import Optional

from .config import settings


class PrefixFormatter(logging.Formatter):
    """Préfixe visible sur les avertissements et erreurs."""

    PREFIXES = {
        logging.WARNING: "[WARN] ",
        logging.ERROR: "[ERREUR] ",
        logging.CRITICAL: "[CRITIQUE] ",
    }

    def format(self, record):
        line = super().format(record)
        return self.PREFIXES.get(record.levelno, "") + line


_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def _level(name: Optional[str]) -> int:
    return _LEVELS.get((name or "").strip().lower(), logging.INFO)


def setup_logging(level_name: Optional[str] = None) -> None:
    level = _level(level_name or settings.LOG_LEVEL)

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "()": PrefixFormatter,
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "level": level,
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            # remonte jusqu'au handler racine (pas de double affichage)
            "ged": {"level": level},
        },
        "root": {"handlers": ["console"], "level": logging.WARNING},
    })

    # SQL brut seulement en debug
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if level == logging.DEBUG else logging.WARNING
    )
