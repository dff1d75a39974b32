import logging, sys
from .config import settings

def setup_logging(level: str | None = None):
    root = logging.getLogger()
    root.setLevel((level or settings.log_level).upper())
    h = logging.StreamHandler(sys.stdout)
    h.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
    root.handlers.clear()
    root.addHandler(h)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("selenium").setLevel(logging.WARNING)
