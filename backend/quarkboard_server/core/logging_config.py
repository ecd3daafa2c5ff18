from __future__ import annotations

import logging

_NOISY_LOGGERS: tuple[str, ...] = (
    "asyncio",
    "httpx",
    "httpcore",
    "multipart",
    "uvicorn.access",
)

_FORMAT = '[%(levelname)s] %(name)s: %(message)s'


def _ensure_stream_handler(logger: logging.Logger) -> None:
    handler_exists = any(isinstance(h, logging.StreamHandler) for h in logger.handlers)
    if handler_exists:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(handler)


def resolve_level(level_name: str | None) -> int:
    value = getattr(logging, (level_name or 'INFO').upper(), None)
    return value if isinstance(value, int) else logging.INFO


def configure_logging(level_name: str | None = None) -> None:
    """Configure the root logger and quiet chatty third-party loggers."""

    lvl = resolve_level(level_name)

    root_logger = logging.getLogger()
    root_logger.setLevel(lvl)
    _ensure_stream_handler(root_logger)

    for noisy_name in _NOISY_LOGGERS:
        logger = logging.getLogger(noisy_name)
        if logger.level < logging.INFO:
            logger.setLevel(logging.INFO)

    logging.getLogger("quarkboard_server").setLevel(lvl)
