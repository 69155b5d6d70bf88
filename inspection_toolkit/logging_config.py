from __future__ import annotations

"""Central logging configuration for Inspection Toolkit.

Import and call :func:`setup_logging` at application start-up.
"""

import logging
import logging.config
import os

from inspection_toolkit.config import ConfigManager

__all__ = ["setup_logging"]

_EDITING_LOGGERS = (
    "inspection_toolkit.core.services.structure_editing_service",
    "inspection_toolkit.core.services.selection_service",
    "inspection_toolkit.core.session",
)


def setup_logging() -> None:
    """Configure logging for the application using configuration from YAML files."""
    log_dir = os.environ.get("INSPECTION_LOG_DIR", "logs")
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, "app.log")

    logging_config = ConfigManager().get_logging_config()
    if logging_config and isinstance(logging_config, dict) and logging_config.get("version"):
        # Copy before patching so the cached config keeps its packaged value
        logging_config = dict(logging_config)
        handlers = dict(logging_config.get("handlers", {}))
        if "file" in handlers:
            handlers["file"] = dict(handlers["file"], filename=log_file)
        logging_config["handlers"] = handlers
        try:
            logging.config.dictConfig(logging_config)
            logging.info("===== Logging initialised from config files =====")
        except (ValueError, TypeError, AttributeError, ImportError) as exc:
            _setup_minimal_logging()
            logging.error("Invalid logging config, using minimal fallback: %s", exc)
    else:
        _setup_minimal_logging()
        logging.error("===== Logging initialised with minimal fallback (no config) =====")

    _apply_debug_overrides()


def _setup_minimal_logging() -> None:
    """Set up minimal console-only logging when config is unavailable."""
    minimal_config = {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'simple': {
                'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            },
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'formatter': 'simple',
                'level': 'INFO',
            },
        },
        'root': {
            'level': 'INFO',
            'handlers': ['console'],
        },
        # Keep a module logger entry so it can be flipped via env even in minimal mode
        'loggers': {
            'inspection_toolkit.core.services.structure_editing_service': {
                'handlers': ['console'],
                'level': 'INFO',
                'propagate': False,
            }
        }
    }
    logging.config.dictConfig(minimal_config)


def _apply_debug_overrides() -> None:
    """Apply environment-driven module-specific debug overrides.

    Supports:
    - INSPECTION_DEBUG_EDITS=true  -> DEBUG for editing service, selection and session
    - INSPECTION_DEBUG_MODULES=comma,separated,logger,names -> DEBUG for listed loggers
    """
    debug_edits = os.environ.get('INSPECTION_DEBUG_EDITS', '').strip().lower() in {'1', 'true', 'yes', 'on'}
    extra_modules = os.environ.get('INSPECTION_DEBUG_MODULES', '').strip()
    targets = []
    if debug_edits:
        targets.extend(_EDITING_LOGGERS)
    if extra_modules:
        targets.extend([m.strip() for m in extra_modules.split(',') if m.strip()])
    for name in targets:
        logger = logging.getLogger(name)
        logger.setLevel(logging.DEBUG)
        # Ensure at least one handler emits DEBUG for this logger
        has_debug_handler = any(h.level <= logging.DEBUG for h in logger.handlers)
        if not has_debug_handler:
            h = logging.StreamHandler()
            h.setLevel(logging.DEBUG)
            h.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
            logger.addHandler(h)
        logger.info("Debug override active for logger '%s'", name)
