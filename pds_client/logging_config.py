"""
Конфигурация структурированного логирования клиента
"""

import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pds_client.config import Settings

# Стандартные атрибуты LogRecord; всё остальное пришло через extra
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}

_BEARER_PATTERN = re.compile(r"(Bearer\s+)[A-Za-z0-9._~+/=-]+")


class TokenRedactingFilter(logging.Filter):
    """Заменяет значения Bearer токенов в сообщениях на ***."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = _BEARER_PATTERN.sub(r"\1***", message)
        if redacted != message:
            record.msg, record.args = redacted, None
        return True


class JSONFormatter(logging.Formatter):
    """
    Форматтер для JSON логов.

    Поля из extra (например, epoch или status сессии) попадают в JSON как есть.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        log_data.update(
            {key: value for key, value in vars(record).items() if key not in _RECORD_ATTRS}
        )

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """Цветной вывод уровня для консоли (разработка)."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        # Копия записи: остальные handlers видят уровень без escape-кодов
        colored = logging.makeLogRecord(vars(record))
        color = self.COLORS.get(colored.levelname, "")
        colored.levelname = f"{color}{colored.levelname}{self.RESET}"
        return super().format(colored)


def setup_logging(
    level: str = "INFO",
    json_logs: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """
    Настройка логирования клиента.

    Args:
        level: Уровень логирования (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: JSON вместо цветного текста в консоли
        log_file: Путь к файлу логов (всегда JSON)

    Example:
        >>> setup_logging(level="DEBUG")
        >>> logging.getLogger(__name__).info("[LOGIN] ok", extra={"epoch": 3})
    """
    handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    if json_logs:
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(
            ColoredFormatter(
                "[PDS] %(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%H:%M:%S",
            )
        )
    handlers.append(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(JSONFormatter())
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())
    root_logger.handlers = []
    for handler in handlers:
        handler.addFilter(TokenRedactingFilter())
        root_logger.addHandler(handler)

    # httpx логирует каждый запрос на INFO
    for noisy in ("httpx", "httpcore", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    root_logger.debug(f"[LOGGING] Configured: level={level}, json={json_logs}, file={log_file}")


def configure_from_settings(settings: Settings) -> None:
    """setup_logging() с уровнем и форматом из настроек (PDS_LOG_LEVEL, PDS_JSON_LOGS)."""
    setup_logging(level=settings.log_level, json_logs=settings.json_logs, log_file=settings.log_file)
