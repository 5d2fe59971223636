import logging
from typing import Union

from rich.logging import RichHandler


def configure_logging(level: Union[int, str] = logging.INFO, enable_rich: bool = True) -> None:
    """
    Configure the root logger, rendering through rich unless disabled.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    handlers = [RichHandler(rich_tracebacks=True)] if enable_rich else None
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )
    logging.getLogger("PIL").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Return a named logger (after logging is configured).
    """
    return logging.getLogger(name)
