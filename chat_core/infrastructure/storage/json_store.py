import json
import os
import shutil
import threading
from contextlib import suppress
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple
from uuid import uuid4

from chat_core.config.settings import settings
from chat_core.domain.conversation import ConversationStore, StoreDocument
from chat_core.domain.exceptions import StorageError
from chat_core.infrastructure.logging.logger import logger


class JsonFileStore(ConversationStore):
    """把全部会话保存在单个 JSON 文件中。

    load/save 都以整个集合为单位；写入先落到临时文件再 os.replace，
    磁盘上的文件始终是完整合法的 JSON。调用方在 load→修改→save 期间
    需要持有 ``lock``。
    """

    def __init__(self, path: str | Path | None = None, strict: Optional[bool] = None):
        self._path = Path(path or settings.storage_path).resolve()
        self._strict = settings.storage_strict if strict is None else strict
        self.lock = threading.RLock()
        # "missing" / "ok" / "corrupt"
        self.last_load_status = "missing"
        self._quarantined: Optional[Tuple[int, int]] = None

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> StoreDocument:
        if not self._path.exists():
            self.last_load_status = "missing"
            return StoreDocument()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            doc = StoreDocument.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            return self._handle_corrupt(e)
        self.last_load_status = "ok"
        return doc

    def save(self, doc: StoreDocument) -> None:
        tmp_path = self._path.with_name(f"{self._path.name}.{uuid4().hex}.tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(doc.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as e:
            with suppress(OSError):
                tmp_path.unlink()
            raise StorageError(code="STORE_WRITE_ERROR", message=str(e), path=str(self._path)) from e
        self.last_load_status = "ok"
        self._quarantined = None

    def _handle_corrupt(self, error: Exception) -> StoreDocument:
        self.last_load_status = "corrupt"
        if self._strict:
            logger.error(
                "Conversation store is unreadable",
                extra={"extra": {"path": str(self._path), "error": str(error)}},
            )
            raise StorageError(
                code="STORE_CORRUPT",
                message=f"Conversation store {self._path} is unreadable: {error}",
                path=str(self._path),
            ) from error

        backup = self._quarantine()
        logger.warning(
            "Conversation store is unreadable, treating it as empty",
            extra={"extra": {"path": str(self._path), "backup": backup, "error": str(error)}},
        )
        return StoreDocument()

    def _quarantine(self) -> Optional[str]:
        """把损坏的文件复制一份，避免下一次 save 覆盖掉原始数据。"""
        try:
            st = self._path.stat()
            signature = (st.st_mtime_ns, st.st_size)
            if signature == self._quarantined:
                return None
            stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
            backup = self._path.with_name(f"{self._path.name}.corrupt-{stamp}")
            shutil.copy2(self._path, backup)
        except OSError as e:
            logger.error(
                "Failed to back up unreadable conversation store",
                extra={"extra": {"path": str(self._path), "error": str(e)}},
            )
            return None
        self._quarantined = signature
        return str(backup)
