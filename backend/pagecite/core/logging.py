"""Structured logging configuration using structlog."""

import logging
import re
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import structlog
from typing_extensions import override

# ANSI escape code pattern for stripping colors
ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*m")

# PII patterns for detection and masking
PII_PATTERNS = {
    "email": r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b",
    "phone": r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b",
    "national_id": r"\b[12]\d{9}\b",
    "api_key": r"\b(sk-|AKIA|ghp_)[A-Za-z0-9_-]{20,}\b",
    "ip_address": r"\b\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}\b",
}

_PII_MASKING_ENABLED = True
_REQUEST_LOGGER_NAME = "request"


def strip_ansi(text: str) -> str:
    """Remove ANSI escape codes from text."""
    return ANSI_ESCAPE.sub("", text)


def mask_pii_in_message(message: str) -> tuple[str, list[str]]:
    """Mask PII in log messages.

    Returns:
        (masked_message, detected_types)
    """
    detected = []
    masked = message

    for pii_type, pattern in PII_PATTERNS.items():
        for match in re.finditer(pattern, masked, re.IGNORECASE):
            original = match.group()
            detected.append(pii_type)

            if pii_type in ("api_key", "national_id"):
                replacement = "***"
            elif pii_type == "email":
                replacement = f"***@{original.split('@')[1]}"
            elif pii_type == "ip_address":
                replacement = "***.***.***.***"
            else:
                replacement = f"***{original[-4:]}"

            masked = masked.replace(original, replacement, 1)

    return masked, detected


class CleanFileHandler(logging.Handler):
    """File handler that writes clean, readable logs without ANSI codes."""

    def __init__(self, filepath: Path, max_size_mb: int = 10, max_days: int = 30):
        super().__init__()
        self.filepath = filepath
        self.max_size = max_size_mb * 1024 * 1024
        self.max_days = max_days

    @override
    def emit(self, record: Any) -> None:
        try:
            clean_msg = strip_ansi(self.format(record))

            with open(self.filepath, "a", encoding="utf-8") as f:
                f.write(clean_msg + "\n")

            if self.filepath.stat().st_size > self.max_size:
                self._rotate()

        except Exception:
            self.handleError(record)

    def _rotate(self) -> None:
        """Rotate log file with timestamp."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        rotated = self.filepath.with_suffix(f".{timestamp}.log")
        if self.filepath.exists():
            self.filepath.rename(rotated)

        self._cleanup_old_logs()

    def _cleanup_old_logs(self) -> None:
        """Delete rotated log files older than max_days."""
        cutoff = datetime.now() - timedelta(days=self.max_days)

        for log_file in self.filepath.parent.glob(f"{self.filepath.stem}.*.log"):
            try:
                timestamp_str = log_file.stem.split(".")[-1]
                file_time = datetime.strptime(timestamp_str, "%Y%m%d_%H%M%S")
                if file_time < cutoff:
                    log_file.unlink()
            except (ValueError, OSError):
                continue


def setup_logging(
    log_level: str = "INFO",
    json_format: bool = False,
    log_to_file: bool = False,
    log_dir: str | Path | None = None,
    pii_masking_enabled: bool = True,
) -> None:
    """Configure structured logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_format: If True, output JSON format; otherwise, console-friendly format
        log_to_file: If True, also write app/error/request logs under ``log_dir``
        log_dir: Directory for log files
        pii_masking_enabled: Mask PII in request summaries
    """
    global _PII_MASKING_ENABLED
    _PII_MASKING_ENABLED = pii_masking_enabled

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(console_handler)

    if log_to_file and log_dir:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)

        app_handler = CleanFileHandler(directory / "app.log", max_size_mb=10, max_days=30)
        app_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        app_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(app_handler)

        error_handler = CleanFileHandler(directory / "error.log", max_size_mb=5, max_days=60)
        error_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        error_handler.setLevel(logging.ERROR)
        root_logger.addHandler(error_handler)

        request_handler = CleanFileHandler(directory / "request.log", max_size_mb=20, max_days=7)
        request_handler.setFormatter(
            logging.Formatter("%(asctime)s | %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
        )
        request_logger = logging.getLogger(_REQUEST_LOGGER_NAME)
        request_logger.addHandler(request_handler)
        request_logger.setLevel(logging.INFO)
        request_logger.propagate = False

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors_list = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ]
    else:
        processors_list = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors_list,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> Any:
    """Get a configured logger instance."""
    return structlog.get_logger(name)


def log_request(
    method: str,
    path: str,
    client_key: str | None = None,
    question: str | None = None,
    answer: str | None = None,
    source_count: int | None = None,
    duration_ms: float | None = None,
    status: str = "success",
    error: str | None = None,
) -> None:
    """Log one request/response summary line.

    Questions and answers are truncated to 500 characters and PII-masked
    unless masking was disabled in ``setup_logging``.
    """
    logger = logging.getLogger(_REQUEST_LOGGER_NAME)

    max_len = 500
    question_text = None
    if question:
        question_text = question[:max_len] + "..." if len(question) > max_len else question

    answer_text = None
    if answer:
        answer_text = answer[:max_len] + "..." if len(answer) > max_len else answer

    if _PII_MASKING_ENABLED:
        if question_text:
            question_text, _ = mask_pii_in_message(question_text)
        if answer_text:
            answer_text, _ = mask_pii_in_message(answer_text)
        if client_key:
            client_key, _ = mask_pii_in_message(client_key)

    parts = [f"[{method}] {path}"]

    if client_key:
        parts.append(f"client={client_key}")

    if question_text:
        parts.append(f"| INPUT: {question_text}")

    if answer_text:
        parts.append(f"| OUTPUT: {answer_text}")

    if source_count is not None:
        parts.append(f"| SOURCES: {source_count}")

    if duration_ms:
        parts.append(f"| {duration_ms:.0f}ms")

    parts.append(f"| {status.upper()}")

    if error:
        parts.append(f"| ERROR: {error}")

    logger.info(" ".join(parts))
