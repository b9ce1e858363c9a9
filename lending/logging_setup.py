from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

from lending.config import settings

_configured = False


def configure_logging(level: str | None = None, rich: bool = True) -> None:
    """Install a root handler once. The CLI uses Rich output, the API plain records."""
    global _configured
    if _configured:
        return
    level_name = (level or settings.log_level or "INFO").upper()
    if rich:
        handler: logging.Handler = RichHandler(console=Console(stderr=True), show_path=settings.debug, rich_tracebacks=True)
        fmt = "%(message)s"
    else:
        handler = logging.StreamHandler()
        fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=fmt, handlers=[handler])
    _configured = True
