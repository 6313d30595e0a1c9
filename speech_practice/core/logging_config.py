"""
Логирование сервиса практики речи.

Консоль: цветной вывод coloredlogs. Файл (опционально): JSON-строки с
ротацией. В каждую запись добавляется Request ID текущего HTTP-запроса.
"""
import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable, Optional

import coloredlogs

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"

# Сторонние логгеры, которые на INFO пишут каждый запрос
QUIET_LOGGERS = ("httpx", "httpcore", "asyncio", "uvicorn.access")

# Request ID выставляется middleware в main.py
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIdFilter(logging.Filter):
    """Добавляет record.request_id ("-" вне HTTP-запроса)"""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = request_id_var.get() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """Одна JSON-строка на запись (для файла)"""

    def format(self, record):
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "logger": record.name,
            "level": record.levelname,
            "message": record.getMessage(),
        }

        request_id = getattr(record, "request_id", None)
        if request_id and request_id != "-":
            payload["request_id"] = request_id
        session_id = getattr(record, "session_id", None)
        if session_id:
            payload["session_id"] = session_id

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False)


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(coloredlogs.ColoredFormatter(
        CONSOLE_FORMAT,
        datefmt="%H:%M:%S",
        field_styles={
            "asctime": {"color": "green"},
            "name": {"color": "blue"},
            "levelname": {"color": "magenta", "bold": True},
            "request_id": {"color": "cyan"},
        },
    ))
    return handler


def _file_handler(
    log_file: str,
    level: int,
    max_file_size: int,
    backup_count: int,
    json_logs: bool,
) -> logging.Handler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(
        path, maxBytes=max_file_size, backupCount=backup_count, encoding="utf-8")
    handler.setLevel(level)
    handler.addFilter(RequestIdFilter())
    if json_logs:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    max_file_size: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    json_logs: bool = True,
    quiet_loggers: Iterable[str] = QUIET_LOGGERS,
):
    """
    Настраивает корневой логгер.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR или CRITICAL
        log_file: Файл для логов; без него только консоль
        max_file_size: Размер файла до ротации, байт
        backup_count: Сколько старых файлов хранить
        json_logs: JSON в файле вместо текстового формата
        quiet_loggers: Логгеры, понижаемые до WARNING
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(_console_handler(level))
    if log_file:
        root.addHandler(_file_handler(log_file, level, max_file_size, backup_count, json_logs))

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)

    root.info(f"Logging configured: level={log_level.upper()}, file={log_file or 'none'}")
