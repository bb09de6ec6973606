import logging
import os
import re
import sys
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
MASK = '***MASKED***'

# Third-party loggers that are only useful when debugging.
NOISY_LOGGERS = ('aiohttp.access', 'httpx', 'httpcore')


def _key_value_rule(key: str) -> re.Pattern:
    return re.compile(rf'({key}["\']?\s*[:=]\s*["\']?)([^"\'}}\s,]+)', re.IGNORECASE)


class SensitiveDataFilter(logging.Filter):
    """Mask bot tokens, webhook tokens and key material before records are emitted."""

    RULES = [
        _key_value_rule('token'),
        _key_value_rule('authorization'),
        _key_value_rule(r'encryption[_-]?key'),
        _key_value_rule('secret'),
        re.compile(r'(\bbot\s+)([A-Za-z0-9_\-]{20,}\.[A-Za-z0-9_\-\.]+)', re.IGNORECASE),
        re.compile(r'(/webhooks/\d+/)([A-Za-z0-9_\-\.]+)'),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self.mask(record.msg)
        if isinstance(record.args, dict):
            record.args = {name: self.mask(value) for name, value in record.args.items()}
        elif isinstance(record.args, tuple):
            record.args = tuple(self.mask(value) for value in record.args)
        return True

    @classmethod
    def mask(cls, value):
        if not isinstance(value, str):
            return value
        for rule in cls.RULES:
            value = rule.sub(rf'\g<1>{MASK}', value)
        return value


def setup_logging(
    component_name: str,
    log_level: Optional[str] = None,
) -> logging.Logger:
    """
    Configure the stdout handler for one component ('vault' or 'cli').

    The level comes from log_level, then LOG_LEVEL, then INFO. Calling
    this twice for the same component only updates the level.

    Returns:
        The component logger
    """
    level_name = (log_level or os.getenv('LOG_LEVEL', 'INFO')).upper()
    level = getattr(logging, level_name, logging.INFO)

    logger = logging.getLogger(component_name)
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        handler.addFilter(SensitiveDataFilter())
        logger.addHandler(handler)
        logger.propagate = False

    for handler in logger.handlers:
        handler.setLevel(level)

    if level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return the module logger; records reach the handler of the top-level component."""
    return logging.getLogger(name)
