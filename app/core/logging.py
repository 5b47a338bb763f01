from __future__ import annotations

import logging
import os
from logging.config import dictConfig
from typing import Any, Dict, Iterable, Optional

_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")
DRIVER_LOGGERS = ("pymongo", "motor")

# Allocator retries and fallbacks live here; ops often want them louder than the rest of the app.
ORDER_ID_LOGGER = "app.features.order_id"


def _norm_level(v: Optional[str], default: str) -> str:
    s = (v or default).upper().strip()
    return s if s in _LEVELS else default


def _console(level: str) -> Dict[str, Any]:
    return {"level": level, "handlers": ["console"], "propagate": False}


def _loggers(names: Iterable[str], level: str) -> Dict[str, Dict[str, Any]]:
    return {name: _console(level) for name in names}


def init_logging(
    *,
    root_level: str = "INFO",
    app_level: Optional[str] = None,
    third_party_level: str = "WARNING",
    order_id_level: Optional[str] = None,
) -> None:
    """
    Console logging for the valuation service.

    - root: generic libraries
    - "app": our code (pricing, order ids, valuations)
    - "app.features.order_id": sequence allocation, defaults to the app level
    - Mongo driver chatter (heartbeats, topology) is WARNING unless asked otherwise

    Env overrides:
      LOG_ROOT_LEVEL, LOG_APP_LEVEL, LOG_ORDER_ID_LEVEL, LOG_THIRD_PARTY_LEVEL
    """
    root_lvl = _norm_level(os.getenv("LOG_ROOT_LEVEL"), root_level)
    app_lvl = _norm_level(os.getenv("LOG_APP_LEVEL"), app_level or root_lvl)
    order_id_lvl = _norm_level(os.getenv("LOG_ORDER_ID_LEVEL"), order_id_level or app_lvl)
    third_lvl = _norm_level(os.getenv("LOG_THIRD_PARTY_LEVEL"), third_party_level)

    loggers: Dict[str, Dict[str, Any]] = {
        "app": _console(app_lvl),
        ORDER_ID_LOGGER: _console(order_id_lvl),
    }
    loggers.update(_loggers(SERVER_LOGGERS, root_lvl))
    loggers.update(_loggers(DRIVER_LOGGERS, third_lvl))

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stdout",
                    "formatter": "standard",
                }
            },
            "root": {"level": root_lvl, "handlers": ["console"]},
            "loggers": loggers,
        }
    )

    logging.getLogger(__name__).info(
        "[logging] configured root=%s app=%s order_id=%s third_party=%s",
        root_lvl,
        app_lvl,
        order_id_lvl,
        third_lvl,
    )
