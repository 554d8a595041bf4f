import structlog

from saved_query_service.config import get_config
from saved_query_service.logger import get_logger


def test_get_logger():
    logger = get_logger(get_config())
    assert structlog.is_configured()

    # configured once per config; later calls share the same logger
    assert get_logger(get_config()) is logger
