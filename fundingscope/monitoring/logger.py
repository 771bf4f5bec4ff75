from __future__ import annotations

import logging

from fundingscope.core.config import LoggingConfig

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(cfg: LoggingConfig | None = None) -> None:
    cfg = cfg or LoggingConfig()
    level = getattr(logging, cfg.level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # basicConfig is a no-op once the root has handlers; the level still follows the config
    logging.getLogger().setLevel(level)
    for name in cfg.quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"fundingscope.{name}")
