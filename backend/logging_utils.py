import logging
import os


LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'

_QUIET_LOGGERS = ('boto3', 'botocore', 'urllib3', 's3transfer', 'PIL', 'fpdf', 'httpx', 'httpcore')


def configure_logging() -> None:
    """Configure logging consistently for Lambda, Flask and the test runner."""
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    root = logging.getLogger()

    level = getattr(logging, log_level, None)
    if not isinstance(level, int):
        level = logging.INFO
    root.setLevel(level)

    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
