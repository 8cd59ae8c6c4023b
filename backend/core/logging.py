import logging
import sys

from core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = None) -> None:
    """Configure the root logger once; later calls only adjust the level."""
    level = (level or settings.LOG_LEVEL or "INFO").upper()
    root = logging.getLogger()
    if not any(getattr(h, "_device_hub", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._device_hub = True
        root.addHandler(handler)
    root.setLevel(level)
