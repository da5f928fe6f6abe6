import logging
import sys

import structlog
from pythonjsonlogger import jsonlogger


def setup_logging(level: str = "INFO", json_logs: bool = False):
    """Structured logging setup shared by the API and its startup hooks"""

    if json_logs:
        formatter = jsonlogger.JsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s"
        )
        renderer = structlog.processors.JSONRenderer()
    else:
        formatter = logging.Formatter('%(levelname)-8s %(name)s: %(message)s')
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Replace handlers so repeated app construction (tests) does not duplicate output
    root = logging.getLogger()
    for existing in list(root.handlers):
        if getattr(existing, "_intake_handler", False):
            root.removeHandler(existing)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler._intake_handler = True
    root.addHandler(handler)
    root.setLevel(level)

    # SQL echo is noisy at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    return structlog.get_logger()
