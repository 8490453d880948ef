"""
Structured logging for the RESO OData client.

Provides rotating log files per log type, JSON structured records and
per-operation request metrics.
"""

import logging
import json
import threading
import traceback
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field, asdict
from enum import Enum

from .errors import ResoError


class LogType(Enum):
    """Types of log files."""
    MAIN = "client_main"
    API = "api_calls"
    REPLICATION = "replication"
    ERROR = "errors"
    PERFORMANCE = "performance"


@dataclass
class RequestMetrics:
    """Metrics for a tracked client operation (a query run or a replication)."""
    operation: str
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_seconds: float = 0.0
    requests_made: int = 0
    records_fetched: int = 0
    errors_encountered: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)

    def complete(self) -> None:
        """Mark the operation as complete and calculate duration."""
        self.end_time = datetime.now()
        self.duration_seconds = (self.end_time - self.start_time).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        result = asdict(self)
        result['start_time'] = self.start_time.isoformat()
        if self.end_time:
            result['end_time'] = self.end_time.isoformat()
        return result


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured JSON logging."""

    def __init__(self, log_type: str = "general"):
        super().__init__()
        self.log_type = log_type

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'log_type': self.log_type,
            'logger': record.name,
            'message': record.getMessage()
        }

        if hasattr(record, 'context') and record.context:
            log_entry['context'] = record.context

        if record.exc_info:
            log_entry['error_details'] = {
                'exception_type': record.exc_info[0].__name__ if record.exc_info[0] else None,
                'exception_message': str(record.exc_info[1]) if record.exc_info[1] else None,
                'traceback': traceback.format_exception(*record.exc_info) if record.exc_info[0] else None
            }

        return json.dumps(log_entry, default=str)


class StandardFormatter(logging.Formatter):
    """Standard human-readable formatter."""

    def __init__(self):
        super().__init__(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )


class ResoLogger:
    """
    Logging system for RESO API clients.

    Provides:
    - Rotating log files for API calls, replication progress, errors and performance
    - Structured JSON logging
    - Request metrics per tracked operation
    """

    DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
    DEFAULT_BACKUP_COUNT = 5

    def __init__(
        self,
        log_dir: str = "logs",
        log_level: str = "INFO",
        max_bytes: int = DEFAULT_MAX_BYTES,
        backup_count: int = DEFAULT_BACKUP_COUNT,
        use_json_format: bool = True,
        console: bool = True
    ):
        """
        Initialize ResoLogger.

        Args:
            log_dir: Directory for log files.
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            max_bytes: Maximum size of each log file before rotation.
            backup_count: Number of backup files to keep.
            use_json_format: Whether to use JSON structured logging.
            console: Whether to echo the main log to the console.
        """
        self.log_dir = Path(log_dir)
        self.log_level = getattr(logging, log_level.upper(), logging.INFO)
        self.max_bytes = max_bytes
        self.backup_count = backup_count
        self.use_json_format = use_json_format
        self.console = console

        self.log_dir.mkdir(parents=True, exist_ok=True)

        self._loggers: Dict[LogType, logging.Logger] = {}
        self._handlers: Dict[LogType, logging.Handler] = {}
        self._metrics: List[RequestMetrics] = []
        self._current_operation: Optional[RequestMetrics] = None
        # Guards _metrics and _current_operation across request threads
        self._metrics_lock = threading.Lock()

        self._setup_loggers()

    def _setup_loggers(self) -> None:
        """Set up rotating log files for each log type."""
        for log_type in LogType:
            logger = logging.getLogger(f"reso_odata.{log_type.value}")
            logger.setLevel(self.log_level)

            # Remove existing handlers
            logger.handlers.clear()

            log_file = self.log_dir / f"{log_type.value}.log"
            handler = RotatingFileHandler(
                log_file,
                maxBytes=self.max_bytes,
                backupCount=self.backup_count
            )
            handler.setLevel(self.log_level)

            if self.use_json_format:
                formatter = StructuredFormatter(log_type.value)
            else:
                formatter = StandardFormatter()
            handler.setFormatter(formatter)

            logger.addHandler(handler)

            self._loggers[log_type] = logger
            self._handlers[log_type] = handler

        if self.console:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(self.log_level)
            console_handler.setFormatter(StandardFormatter())
            self._loggers[LogType.MAIN].addHandler(console_handler)

    def _log_with_context(
        self,
        log_type: LogType,
        level: int,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        exc_info: bool = False
    ) -> None:
        """Log a message with optional context."""
        logger = self._loggers.get(log_type)
        if logger:
            extra = {'context': context or {}}
            logger.log(level, message, extra=extra, exc_info=exc_info)

    # Operation tracking
    def start_operation(self, operation: str, metadata: Optional[Dict[str, Any]] = None) -> RequestMetrics:
        """
        Start tracking an operation.

        Args:
            operation: Operation name (e.g. 'replicate_Property').
            metadata: Extra details stored with the metrics.

        Returns:
            RequestMetrics for the new operation.
        """
        operation_metrics = RequestMetrics(
            operation=operation,
            start_time=datetime.now(),
            metadata=metadata or {}
        )
        with self._metrics_lock:
            self._current_operation = operation_metrics
        self._log_with_context(
            LogType.MAIN,
            logging.INFO,
            f"Operation started: {operation}",
            {'event': 'operation_start', 'operation': operation, 'metadata': metadata or {}}
        )
        return operation_metrics

    def complete_operation(self, status: str = "success") -> Optional[RequestMetrics]:
        """
        Complete the current operation and record its metrics.

        Args:
            status: Completion status.

        Returns:
            RequestMetrics for the completed operation, or None if none was started.
        """
        with self._metrics_lock:
            metrics = self._current_operation
            if metrics is None:
                return None
            metrics.complete()
            self._metrics.append(metrics)
            self._current_operation = None

        self._log_with_context(
            LogType.MAIN,
            logging.INFO,
            f"Operation completed: {metrics.operation}, Status: {status}, "
            f"Duration: {metrics.duration_seconds:.2f}s, Requests: {metrics.requests_made}, "
            f"Records: {metrics.records_fetched}",
            {'event': 'operation_complete', 'status': status, 'metrics': metrics.to_dict()}
        )
        self._log_with_context(
            LogType.PERFORMANCE,
            logging.INFO,
            f"Operation completed: {metrics.operation}",
            metrics.to_dict()
        )

        return metrics

    # API logging methods
    def log_api_request(
        self,
        endpoint: str,
        method: str = "GET",
        params: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log API request details."""
        context = {
            'event': 'api_request',
            'endpoint': endpoint,
            'method': method,
            'params': params or {}
        }
        self._log_with_context(
            LogType.API,
            logging.DEBUG,
            f"API Request: {method} {endpoint}",
            context
        )

    def log_api_response(
        self,
        endpoint: str,
        status_code: int,
        response_time_ms: float,
        records_returned: int = 0
    ) -> None:
        """Log API response details and timing."""
        context = {
            'event': 'api_response',
            'endpoint': endpoint,
            'status_code': status_code,
            'response_time_ms': response_time_ms,
            'records_returned': records_returned
        }

        level = logging.INFO if 200 <= status_code <= 299 else logging.WARNING
        self._log_with_context(
            LogType.API,
            level,
            f"API Response: {endpoint} - Status: {status_code}, "
            f"Time: {response_time_ms:.2f}ms, Records: {records_returned}",
            context
        )

        self._record(requests_made=1, records_fetched=records_returned)

    def log_api_error(self, endpoint: str, error: Exception) -> None:
        """Log API error with context."""
        context = {
            'event': 'api_error',
            'endpoint': endpoint,
            'error_type': type(error).__name__,
            'error_message': str(error)
        }
        if isinstance(error, ResoError):
            context.update(error.to_dict())

        self._log_with_context(
            LogType.API,
            logging.ERROR,
            f"API Error: {endpoint} - {type(error).__name__}: {error}",
            context
        )

        self._log_error(error, context)

    # Replication logging methods
    def log_replication_page(
        self,
        resource: str,
        page_number: int,
        records_in_page: int,
        total_records: int,
        has_more: bool
    ) -> None:
        """Log a fetched replication page."""
        context = {
            'event': 'replication_page',
            'resource': resource,
            'page_number': page_number,
            'records_in_page': records_in_page,
            'total_records': total_records,
            'has_more': has_more
        }
        self._log_with_context(
            LogType.REPLICATION,
            logging.INFO,
            f"Replication {resource} page {page_number}: {records_in_page} records "
            f"(total {total_records}){'' if has_more else ', final page'}",
            context
        )

    def log_replication_complete(self, resource: str, pages: int, total_records: int) -> None:
        """Log the end of a replication stream."""
        context = {
            'event': 'replication_complete',
            'resource': resource,
            'pages': pages,
            'total_records': total_records
        }
        self._log_with_context(
            LogType.REPLICATION,
            logging.INFO,
            f"Replication {resource} complete: {total_records} records in {pages} pages",
            context
        )

    # Error logging methods
    def _log_error(
        self,
        error: Exception,
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log error to error log file."""
        error_context = {
            'event': 'error',
            'error_type': type(error).__name__,
            'error_message': str(error),
            **(context or {})
        }
        self._log_with_context(
            LogType.ERROR,
            logging.ERROR,
            f"{type(error).__name__}: {error}",
            error_context
        )

        self._record(errors_encountered=1)

    def log_error(
        self,
        message: str,
        error: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log an error with optional exception and context."""
        error_context = {
            'event': 'error',
            'message': message,
            **(context or {})
        }

        if error:
            error_context['error_type'] = type(error).__name__
            error_context['error_message'] = str(error)
            error_context['traceback'] = traceback.format_exc()

        self._log_with_context(
            LogType.ERROR,
            logging.ERROR,
            message,
            error_context,
            exc_info=error is not None
        )

        self._record(errors_encountered=1)

    # Performance metrics methods
    def log_performance_metric(
        self,
        metric_name: str,
        value: float,
        unit: str = "",
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log a performance metric."""
        metric_context = {
            'event': 'performance_metric',
            'metric_name': metric_name,
            'value': value,
            'unit': unit,
            **(context or {})
        }
        self._log_with_context(
            LogType.PERFORMANCE,
            logging.INFO,
            f"Performance: {metric_name} = {value}{unit}",
            metric_context
        )

    def _record(self, **increments: int) -> None:
        """Add counts to the current operation, if one is being tracked."""
        with self._metrics_lock:
            if self._current_operation is None:
                return
            for name, amount in increments.items():
                setattr(self._current_operation, name, getattr(self._current_operation, name) + amount)

    def get_metrics(self) -> List[RequestMetrics]:
        """Get all completed operation metrics."""
        with self._metrics_lock:
            return self._metrics.copy()

    def get_current_operation_metrics(self) -> Optional[RequestMetrics]:
        """Get metrics for the current operation."""
        return self._current_operation

    # Utility methods
    def get_logger(self, log_type: LogType) -> logging.Logger:
        """Get a specific logger by type."""
        return self._loggers.get(log_type, self._loggers[LogType.MAIN])

    def set_log_level(self, level: str) -> None:
        """Set log level for all loggers."""
        log_level = getattr(logging, level.upper(), logging.INFO)
        self.log_level = log_level

        for logger in self._loggers.values():
            logger.setLevel(log_level)

        for handler in self._handlers.values():
            handler.setLevel(log_level)

    def get_log_files(self) -> Dict[str, Path]:
        """Get paths to all log files."""
        return {
            log_type.value: self.log_dir / f"{log_type.value}.log"
            for log_type in LogType
        }

    def close(self) -> None:
        """Close all log handlers."""
        for handler in self._handlers.values():
            handler.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()


def create_reso_logger(
    log_dir: str = "logs",
    log_level: str = "INFO",
    use_json_format: bool = True
) -> ResoLogger:
    """
    Create a configured client logger.

    Args:
        log_dir: Directory for log files.
        log_level: Logging level.
        use_json_format: Whether to use JSON structured logging.

    Returns:
        Configured ResoLogger instance.
    """
    return ResoLogger(
        log_dir=log_dir,
        log_level=log_level,
        use_json_format=use_json_format
    )
