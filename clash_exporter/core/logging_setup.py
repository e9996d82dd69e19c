import logging

from pythonjsonlogger import jsonlogger

TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s %(message)s"


def setup_logging(level: int | str = logging.INFO, fmt: str = "json"):
    """
    Configure root logger to emit structured JSON logs, or plain text
    lines when `fmt` is "text".
    """
    handler = logging.StreamHandler()
    if fmt == "json":
        formatter = jsonlogger.JsonFormatter(
            "%(asctime) %(levelname) %(name) %(message)"
        )
    else:
        formatter = logging.Formatter(TEXT_FORMAT)
    handler.setFormatter(formatter)
    root = logging.getLogger()
    root.handlers = []      # remove default handlers
    root.addHandler(handler)
    root.setLevel(level)
