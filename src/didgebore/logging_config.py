"""
Logging Configuration for didgebore.

Provides centralized logging control with easily toggleable levels:
- DEBUG: Full diagnostic output (every correction term of every analysis)
- INFO: Key events only (calibration fits, CLI runs)
- WARNING+: Errors and advisories only (unit plausibility)

Usage:
    from didgebore.logging_config import setup_logging, set_debug_mode

    setup_logging(debug=False)
    set_debug_mode(True)
"""

import logging
import os

# Named loggers for the package components
LOGGER_NAMES = [
    'didgebore.geometry',
    'didgebore.acoustic_model',
    'didgebore.harmonics',
    'didgebore.calibration',
    'didgebore.calibration_tool',
    'didgebore.cli',
]


def setup_logging(debug: bool = False, log_file: str = None):
    """
    Setup logging configuration for didgebore.

    Args:
        debug: If True, set DEBUG level. Otherwise INFO level.
        log_file: Optional file path to write logs to.
    """
    level = logging.DEBUG if debug else logging.INFO

    formatter = logging.Formatter(
        '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%H:%M:%S'
    )

    package_logger = logging.getLogger('didgebore')
    package_logger.setLevel(level)

    # Repeated setup must not stack handlers
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    for name in LOGGER_NAMES:
        logging.getLogger(name).setLevel(level)


def set_debug_mode(enabled: bool):
    """
    Enable or disable debug mode for all components.

    Args:
        enabled: True for DEBUG level, False for INFO level.
    """
    set_logging_level(logging.DEBUG if enabled else logging.INFO)


def set_logging_level(level: int):
    """
    Set logging level for all didgebore components.

    Args:
        level: logging.DEBUG, logging.INFO, logging.WARNING, etc.
    """
    for name in LOGGER_NAMES:
        logging.getLogger(name).setLevel(level)


# Environment variable control
if os.environ.get('DIDGEBORE_DEBUG', '').lower() in ('1', 'true', 'yes'):
    setup_logging(debug=True)
elif os.environ.get('DIDGEBORE_QUIET', '').lower() in ('1', 'true', 'yes'):
    setup_logging(debug=False)
    set_logging_level(logging.WARNING)
