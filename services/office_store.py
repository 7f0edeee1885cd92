# services/office_store.py
"""設定と出社ログの保持・永続化

ローカルとリモート（同期）の2つの保存先を持ち、lastUpdated が新しい方を
丸ごと採用する（フィールド単位のマージはしない）。同時刻ならローカル優先。
"""
import sys
import threading
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional, Sequence

from services.calendar_math import DateLike, day_key, to_day
from services.errors import PersistenceError
from services.launch_agent import LaunchAgentInterface
from services.models import (
    DayLog,
    DayType,
    OfficeConfig,
    OfficeLocation,
    PersistedState,
    clamp_radius,
    clamp_target_pct,
)
from services.state_repository import StateRepository

StateCallback = Callable[[PersistedState], None]


def _now() -> datetime:
    """テスト時にモック可能な現在時刻取得"""
    return datetime.now(timezone.utc)


class OfficeStore:
    def __init__(
        self,
        local: StateRepository,
        remote: StateRepository,
        launch_agent: Optional[LaunchAgentInterface] = None,
    ):
        self.config = OfficeConfig()
        self.log = DayLog()
        self._local = local
        self._remote = remote
        self._launch_agent = launch_agent
        self._last_known: Optional[PersistedState] = None
        # 外部（リモート）由来の更新を適用中のスレッド。そのスレッドの書き込みはリモートへ送らない
        self._applying_thread: Optional[int] = None
        self._lock = threading.RLock()
        self._subscribers: list[StateCallback] = []

        remote.subscribe(self.on_external_change)

    @property
    def last_known_state(self) -> Optional[PersistedState]:
        return self._last_known

    @property
    def is_applying_external(self) -> bool:
        return self._applying_thread == threading.get_ident()

    # --- 変更通知 ---

    def subscribe(self, callback: StateCallback) -> Callable[[], None]:
        """状態変更の通知を購読する。戻り値を呼ぶと解除"""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, state: PersistedState):
        # ロック外で呼ぶ（購読者が別スレッドのロックを取るため）
        for callback in list(self._subscribers):
            callback(state)

    # --- 参照 ---

    def entry_for(self, day: DateLike) -> Optional[DayType]:
        return self.log.get(day_key(day))

    def is_geofenced(self, day: DateLike) -> bool:
        return day_key(day) in self.log.geofenced_dates

    # --- 永続化 ---

    def _write(self, state: PersistedState):
        try:
            self._local.put(state)
            if not self.is_applying_external:
                self._remote.put(state)
        except (OSError, PersistenceError) as e:
            print(f"[OfficeStore] 状態の保存に失敗しました: {e}", file=sys.stderr)
        self._last_known = state

    def _snapshot(self) -> PersistedState:
        return PersistedState(config=self.config.copy(), log=self.log.copy(), last_updated=_now())

    def _apply(self, state: PersistedState):
        self.config = state.config.copy()
        self.log = state.log.copy()
        self._last_known = state

    def save(self) -> PersistedState:
        """現在の状態をローカル（と必要ならリモート）に保存する"""
        with self._lock:
            state = self._snapshot()
            self._write(state)
        self._notify(state)
        return state

    def load(self) -> Optional[PersistedState]:
        """ローカルとリモートを読み、新しい方を採用する"""
        local = self._local.get()
        remote = self._remote.get()
        if local is None and remote is None:
            return None

        with self._lock:
            if remote is None or (local is not None and local.last_updated >= remote.last_updated):
                winner = local
                self._apply(local)
                # ローカルの方が新しければリモートを修復する
                if remote is None or local.last_updated > remote.last_updated:
                    self._put_quietly(self._remote, local)
            else:
                winner = remote
                self._apply(remote)
                self._put_quietly(self._local, remote)
        self._notify(winner)
        return winner

    def _put_quietly(self, repository: StateRepository, state: PersistedState):
        try:
            repository.put(state)
        except (OSError, PersistenceError) as e:
            print(f"[OfficeStore] 状態の同期に失敗しました: {e}", file=sys.stderr)

    def on_external_change(self) -> bool:
        """リモートの変更通知を受けて、より新しければ適用する"""
        remote = self._remote.get()
        if remote is None:
            return False

        me = threading.get_ident()
        try:
            # 比較から適用・保存までを1回のロック区間で行う
            with self._lock:
                current = self._last_known
                if current is not None and remote.last_updated <= current.last_updated:
                    return False
                self._applying_thread = me
                self._apply(remote)
                self._write(remote)
            self._notify(remote)
        finally:
            if self._applying_thread == me:
                self._applying_thread = None
        return True

    # --- 更新API ---

    def _mutate(self, change: Callable[[OfficeConfig, DayLog], None]) -> PersistedState:
        with self._lock:
            config = self.config.copy()
            log = self.log.copy()
            change(config, log)
            self.config = config
            self.log = log
            state = self._snapshot()
            self._write(state)
        self._notify(state)
        return state

    def set(self, day_type: Optional[DayType], day: DateLike, geofenced: bool = False) -> PersistedState:
        """指定日の種別を書き込む（Noneで削除）"""
        key = day_key(day)
        return self._mutate(lambda config, log: log.set(key, day_type, geofenced))

    def mark_yesterday(self, day_type: DayType, today: Optional[date] = None) -> PersistedState:
        today = to_day(today) if today is not None else date.today()
        return self.set(day_type, today - timedelta(days=1))

    def clear_log(self) -> PersistedState:
        """ログを全消去する（ユーザー操作のみ）"""
        def change(config, log):
            log.entries.clear()
            log.geofenced_dates.clear()

        return self._mutate(change)

    def set_target_pct(self, value: float) -> PersistedState:
        pct = clamp_target_pct(value)

        def change(config, log):
            config.target_pct = pct

        return self._mutate(change)

    def set_preferred_weekdays(self, weekdays: Sequence[int]) -> PersistedState:
        ordered = []
        for w in weekdays:
            w = int(w)
            if not 0 <= w <= 6:
                raise ValueError(f"weekday must be 0-6, got {w}")
            if w not in ordered:
                ordered.append(w)

        def change(config, log):
            config.preferred_weekdays = ordered

        return self._mutate(change)

    def upsert_office(self, office: OfficeLocation) -> PersistedState:
        """同じidがあれば更新、なければ追加する（引数のオブジェクトは保持しない）"""
        stored = replace(office, radius_meters=clamp_radius(office.radius_meters))

        def change(config, log):
            for i, existing in enumerate(config.offices):
                if existing.id == stored.id:
                    config.offices[i] = stored
                    return
            config.offices.append(stored)

        return self._mutate(change)

    add_office = upsert_office
    update_office = upsert_office

    def remove_office(self, office_id: str) -> PersistedState:
        def change(config, log):
            config.offices = [o for o in config.offices if o.id != office_id]

        return self._mutate(change)

    def set_office_enabled(self, office_id: str, enabled: bool) -> PersistedState:
        def change(config, log):
            office = config.office_by_id(office_id)
            if office is not None:
                office.enabled = enabled

        return self._mutate(change)

    def set_launch_at_login(self, enabled: bool) -> PersistedState:
        def change(config, log):
            config.launch_at_login = enabled

        state = self._mutate(change)
        if self._launch_agent is not None:
            self._launch_agent.apply(enabled)
        return state
