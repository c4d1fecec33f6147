# logging_util.py
import os
import sys
from contextvars import ContextVar
from typing import Dict, Any

from utils.logger_init import logger  # Import pre-configured logger

# Per-request context, merged into every record's "extra"
_request_context: ContextVar[Dict[str, Any]] = ContextVar('content_lock_request_context', default={})
CURRENT_FILE_PATH = os.path.abspath(__file__)
BASE_DIR = os.path.dirname(CURRENT_FILE_PATH)


def set_context(**kwargs):
    """
    Merge values into the current request context.
    A new dict is stored each time so concurrent requests never share one.
    """
    new_context = dict(_request_context.get())
    new_context.update(kwargs)
    _request_context.set(new_context)


def get_context() -> Dict[str, Any]:
    """Return a copy of the current request context"""
    return dict(_request_context.get())


def clear_context():
    _request_context.set({})


class SafeContextFilter:
    def __call__(self, record):
        try:
            record["extra"].update(get_context())
        except Exception as e:
            # a broken context must never drop the log line
            record["extra"]["context_error"] = str(e)
        return True


def _level_no(name: str) -> int:
    try:
        return logger.level(name.upper()).no
    except ValueError:
        return logger.level("INFO").no


def build_level_filter(logging_levels: Dict[str, str]):
    """Filter log records by module name with hierarchical package path support"""
    root_level = _level_no(logging_levels.get("root", "INFO"))
    package_levels = {pkg: _level_no(level) for pkg, level in logging_levels.items() if pkg != "root"}

    def log_filter(record):
        module_name = record["name"] or ""
        matching_level = root_level
        matching_length = 0

        for pkg_path, level in package_levels.items():
            if module_name == pkg_path or module_name.startswith(pkg_path + "."):
                path_length = len(pkg_path.split('.'))
                if path_length > matching_length:
                    matching_level = level
                    matching_length = path_length

        return record["level"].no >= matching_level

    return log_filter


def configure_logger(log_file="app.log", max_bytes=10 * 1024 * 1024, backup_count=5):
    """Configure logger with context support"""
    # Lazy import to avoid circular dependency
    from config.common_settings import CommonConfig
    config = CommonConfig()

    logger.remove()

    log_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "{level.icon} {level.name:<8} | "
        "<blue>{thread.name}</blue> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
        "{extra} | "
        "{message}"
    )

    level_filter = build_level_filter(config.get_logging_config())
    context_filter = SafeContextFilter()

    logger.add(
        sink=log_file,
        format=log_format,
        filter=lambda record: context_filter(record) and level_filter(record),
        colorize=False,
        enqueue=True,
        rotation=max_bytes,
        retention=backup_count,
        catch=True,
        level="DEBUG"  # Base level - actual filtering done by level_filter
    )

    logger.add(
        sink=sys.stdout,
        format=log_format,
        filter=lambda record: context_filter(record) and level_filter(record),
        colorize=True,
        enqueue=True,
        catch=True,
        level="DEBUG"
    )

    return logger


# Initialize the logger
logger = configure_logger(os.path.join(BASE_DIR, "../app.log"))
