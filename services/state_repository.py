# services/state_repository.py
import os
import sys
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional

import yaml

from services.errors import PersistenceError
from services.models import STATE_KEY, PersistedState

ChangeCallback = Callable[[], None]


class StateRepository(ABC):
    """永続化状態の保存先（ローカル／リモート共通インターフェース）"""

    def __init__(self):
        self._subscribers: list[ChangeCallback] = []

    @abstractmethod
    def get(self) -> Optional[PersistedState]:
        """保存済みの状態を返す（未保存・破損時はNone）"""
        ...

    @abstractmethod
    def put(self, state: PersistedState) -> None:
        """状態を保存する"""
        ...

    def subscribe(self, callback: ChangeCallback) -> None:
        """外部からの変更通知を購読する"""
        self._subscribers.append(callback)

    def _notify_external_change(self):
        for callback in list(self._subscribers):
            callback()

    def close(self) -> None:
        pass


def _decode(document, source: str) -> Optional[PersistedState]:
    if document is None:
        return None
    try:
        return PersistedState.from_dict(document)
    except PersistenceError as e:
        # 破損データは「未保存」として扱う
        print(f"[StateRepository] {source} の状態を読み込めません: {e}", file=sys.stderr)
        return None


class InMemoryStateRepository(StateRepository):
    """メモリ上の保存先。同期無効時のリモート媒体やテストで使う"""

    def __init__(self, document: Optional[dict] = None):
        super().__init__()
        self._document = document

    def get(self) -> Optional[PersistedState]:
        return _decode(self._document, "memory")

    def put(self, state: PersistedState) -> None:
        self._document = state.to_dict()

    def push_external(self, document: dict) -> None:
        """他端末からの書き込みを模擬して変更通知を送る"""
        self._document = document
        self._notify_external_change()


class YamlFileStateRepository(StateRepository):
    """YAMLファイルへの保存先（ファイル内の固定キーに1レコード）"""

    def __init__(self, path: str, key: str = STATE_KEY):
        super().__init__()
        self._path = Path(path)
        self._key = key
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        with open(self._path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise PersistenceError(f"{self._path} does not contain a mapping")
        return data

    def get(self) -> Optional[PersistedState]:
        with self._lock:
            try:
                data = self._read_all()
            except (OSError, yaml.YAMLError, PersistenceError) as e:
                print(f"[StateRepository] {self._path} を読み込めません: {e}", file=sys.stderr)
                return None
        return _decode(data.get(self._key), str(self._path))

    def put(self, state: PersistedState) -> None:
        with self._lock:
            try:
                data = self._read_all()
            except (OSError, yaml.YAMLError, PersistenceError):
                data = {}
            data[self._key] = state.to_dict()

            # 一時ファイルに書いてから置き換える（途中状態を残さない）
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_name(self._path.name + ".tmp")
            with open(tmp_path, "w", encoding="utf-8") as f:
                yaml.safe_dump(data, f, allow_unicode=True, sort_keys=False)
            os.replace(tmp_path, self._path)
            self._after_write()

    def _after_write(self):
        pass


class SyncedFolderStateRepository(YamlFileStateRepository):
    """同期フォルダ（iCloud Drive / Dropbox等）上のYAMLファイル

    他端末による更新はファイルの更新時刻で検知する。poll() は
    スケジューラから定期的に呼ばれる。
    """

    def __init__(self, path: str, key: str = STATE_KEY):
        super().__init__(path, key)
        self._last_seen_mtime = self._current_mtime()

    def _current_mtime(self) -> Optional[float]:
        try:
            return self._path.stat().st_mtime
        except OSError:
            return None

    def _after_write(self):
        # 自分の書き込みは外部変更として扱わない
        self._last_seen_mtime = self._current_mtime()

    def poll(self) -> bool:
        """外部変更があれば購読者に通知してTrueを返す"""
        with self._lock:
            mtime = self._current_mtime()
            if mtime is None or mtime == self._last_seen_mtime:
                return False
            self._last_seen_mtime = mtime
        self._notify_external_change()
        return True
