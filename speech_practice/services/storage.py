import json
import os
import logging
import tempfile
from pathlib import Path
from typing import Dict, Optional, Protocol

from speech_practice.core.exceptions import PersistenceError

logger = logging.getLogger(__name__)

CREDENTIAL_KEY = "geminiApiKey"
HISTORY_KEY = "speechCoachHistory"


class KeyValueStore(Protocol):
    """Постоянное хранилище строк по ключу"""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileKeyValueStore:
    """
    Хранилище в одном JSON-файле {ключ: строка}.

    Запись атомарная: временный файл в той же директории + os.replace,
    так что читатель видит либо старое, либо новое содержимое.
    Отсутствующий или поврежденный файл читается как пустой.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ошибка чтения хранилища {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Хранилище {self.path} повреждено: ожидался объект")
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, data: Dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=".storage-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, ensure_ascii=False)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            logger.error(f"Ошибка записи хранилища {self.path}: {e}")
            raise PersistenceError(f"Failed to write storage: {e}")

    def get(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)
        logger.debug(f"Storage set: {key}")

    def delete(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)
            logger.debug(f"Storage delete: {key}")


class CredentialStore:
    """Ключ API: из хранилища, иначе из настроек окружения"""

    def __init__(self, store: KeyValueStore, default: Optional[str] = None):
        self._store = store
        self._default = default.strip() if default and default.strip() else None

    def get(self) -> Optional[str]:
        try:
            saved = self._store.get(CREDENTIAL_KEY)
        except PersistenceError as e:
            logger.warning(f"Не удалось прочитать ключ API: {e.detail}")
            saved = None
        if saved and saved.strip():
            return saved.strip()
        return self._default

    def set(self, key: str) -> bool:
        """Сохраняет ключ. Пустой ключ не сохраняется (возвращает False)"""
        if not key or not key.strip():
            return False
        self._store.set(CREDENTIAL_KEY, key.strip())
        logger.info("API key saved")
        return True

    def has_credential(self) -> bool:
        return self.get() is not None
