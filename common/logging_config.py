import logging
import os
import re
import sys
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

PACKAGE_LOGGERS = ('driver', 'objectstore', 'common')

MASK = '***MASKED***'

# Swift credentials, temp URL keys and URL signatures
SECRET_NAMES = ('x-auth-key', 'x-auth-token', r'temp[_-]?url[_-]?key', 'password', 'token')


def _secret_pattern(name: str) -> "re.Pattern[str]":
    return re.compile(rf'({name}["\']?\s*[:=]\s*["\']?)([^"\'}}\s,&]+)', re.IGNORECASE)


class SensitiveDataFilter(logging.Filter):
    """Masks Swift credentials and temp URL signatures before records are emitted."""

    SIGNATURE = re.compile(r'(temp_url_sig=)([0-9a-f]+)', re.IGNORECASE)
    SECRETS = [_secret_pattern(name) for name in SECRET_NAMES]

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self.mask(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(self.mask(arg) if isinstance(arg, str) else arg for arg in record.args)
        elif isinstance(record.args, dict):
            record.args = {key: self.mask(val) if isinstance(val, str) else val for key, val in record.args.items()}
        return True

    def mask(self, text: str) -> str:
        text = self.SIGNATURE.sub(rf'\1{MASK}', text)
        for pattern in self.SECRETS:
            text = pattern.sub(rf'\1{MASK}', text)
        return text


def setup_logging(component_name: str, log_level: Optional[str] = None) -> logging.Logger:
    """
    Configure stdout logging for a service process.

    One handler is shared by the component logger and the package loggers
    (driver, objectstore, common), so module loggers from get_logger(__name__)
    end up in the same stream.

    Args:
        component_name: Name of the service (e.g., 'storage-driver')
        log_level: DEBUG, INFO, WARNING or ERROR. Falls back to the LOG_LEVEL env var, then INFO

    Returns:
        The component logger
    """
    level_name = (log_level or os.getenv('LOG_LEVEL', 'INFO')).upper()
    level = getattr(logging, level_name, logging.INFO)

    component_logger = logging.getLogger(component_name)
    if component_logger.handlers:
        component_logger.setLevel(level)
        return component_logger

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    stdout_handler.addFilter(SensitiveDataFilter())

    for name in (component_name,) + PACKAGE_LOGGERS:
        configured = logging.getLogger(name)
        configured.setLevel(level)
        if not configured.handlers:
            configured.addHandler(stdout_handler)
        configured.propagate = False

    return component_logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
