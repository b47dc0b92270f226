"""
Logging configuration for Multisite CLI
"""

import logging
import logging.handlers
import sys
from typing import Optional
from datetime import datetime

from config import (
    LOG_LEVEL,
    LOG_FILE,
    LOG_DIR,
    LOG_FORMAT,
    LOG_ROTATION_SIZE,
    LOG_BACKUP_COUNT,
)


class OperationLogger:
    """Enhanced logger for tracking site operations with structured logging"""

    def __init__(self, name: str = "multisite_cli"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, LOG_LEVEL.upper()))

        # Create logs directory if it doesn't exist
        LOG_DIR.mkdir(parents=True, exist_ok=True)

        # Setup handlers if not already configured
        if not self.logger.handlers:
            self._setup_handlers()

    def _setup_handlers(self):
        """Setup file and console handlers"""

        # File handler with rotation
        log_file_path = LOG_DIR / LOG_FILE
        file_handler = logging.handlers.RotatingFileHandler(
            log_file_path, maxBytes=LOG_ROTATION_SIZE, backupCount=LOG_BACKUP_COUNT
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))

        # Console handler
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(logging.Formatter("%(levelname)s - %(message)s"))

        self.logger.addHandler(file_handler)
        self.logger.addHandler(console_handler)

    def log_operation_start(self, operation: str, **kwargs):
        """Log the start of an operation with context"""
        context = {
            "operation": operation,
            "timestamp": datetime.now().isoformat(),
            "context": kwargs,
        }
        self.logger.info(f"Starting {operation}", extra={"structured": context})

    def log_operation_end(self, operation: str, success: bool, **kwargs):
        """Log the end of an operation with results"""
        context = {
            "operation": operation,
            "success": success,
            "timestamp": datetime.now().isoformat(),
            "results": kwargs,
        }
        level = logging.INFO if success else logging.ERROR
        self.logger.log(
            level,
            f"Completed {operation} - {'SUCCESS' if success else 'FAILED'}",
            extra={"structured": context},
        )

    def log_batch_progress(self, operation: str, current: int, total: int, **kwargs):
        """Log progress of batch operations"""
        progress = (current / total) * 100 if total > 0 else 0
        context = {
            "operation": operation,
            "progress": f"{current}/{total} ({progress:.1f}%)",
            "timestamp": datetime.now().isoformat(),
            **kwargs,
        }
        self.logger.info(
            f"Batch progress: {current}/{total} ({progress:.1f}%)",
            extra={"structured": context},
        )

    def log_item_failure(self, operation: str, item_id, reason: str, **kwargs):
        """Log a recoverable per-item failure inside a batch operation"""
        context = {
            "operation": operation,
            "item_id": item_id,
            "reason": reason,
            "timestamp": datetime.now().isoformat(),
            **kwargs,
        }
        self.logger.warning(
            f"{operation}: item {item_id} failed - {reason}",
            extra={"structured": context},
        )

    def log_cache_flush(self, group: str, count: int, **kwargs):
        """Log object cache invalidation"""
        context = {
            "cache": {
                "group": group,
                "deleted": count,
                "timestamp": datetime.now().isoformat(),
            },
            **kwargs,
        }
        self.logger.debug(
            f"Cache flush {group}: {count} keys", extra={"structured": context}
        )

    def log_error(self, error: Exception, context: Optional[dict] = None):
        """Log errors with full context"""
        error_context = {
            "error": {
                "type": type(error).__name__,
                "message": str(error),
                "timestamp": datetime.now().isoformat(),
            },
            "context": context or {},
        }
        self.logger.error(
            f"Error: {type(error).__name__}: {error}",
            extra={"structured": error_context},
            exc_info=True,
        )


def get_logger(name: str = "multisite_cli") -> OperationLogger:
    """Get a configured logger instance"""
    return OperationLogger(name)


# Global logger instance
logger = get_logger()
