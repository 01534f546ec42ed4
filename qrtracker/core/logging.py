import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_configured = False


def setup_logging(level: int = logging.INFO) -> None:
    global _configured
    root = logging.getLogger()
    root.setLevel(level)
    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)

    # uvicorn installs its own access log; keep ours as the single request line.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    _configured = True
