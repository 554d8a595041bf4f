import structlog

from bento_lib.logging.structured.configure import configure_structlog_from_bento_config, configure_structlog_uvicorn
from fastapi import Depends
from functools import lru_cache
from structlog.stdlib import BoundLogger
from typing import Annotated

from .config import Config, ConfigDependency

__all__ = [
    "get_logger",
    "LoggerDependency",
]

LOGGER_NAME = "saved_query_service"


@lru_cache()
def _get_logger(config: Config) -> BoundLogger:
    configure_structlog_from_bento_config(config)
    configure_structlog_uvicorn()
    return structlog.stdlib.get_logger(LOGGER_NAME)


def get_logger(config: ConfigDependency) -> BoundLogger:
    return _get_logger(config)


LoggerDependency = Annotated[BoundLogger, Depends(get_logger)]
