# graph/geofence_automaton.py
"""位置情報による自動チェックインの状態機械

状態は Idle / Armed（領域監視中）/ PendingLocationFix（1回測位待ち）。
1日に自動記録するのは最大1回で、重複したコールバックは day_gate で
無視される。週末と確定済みの日は監視しない。
"""
import sys
import threading
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional, Union

from graph.graph import build_graph
from graph.nodes.day_gate_node import ALREADY_CHECKED_IN
from graph.state import CheckInState
from services.calendar_math import day_key, is_weekday
from services.errors import AuthorizationDenied, LocationError
from services.geo import Coordinate
from services.models import (
    DEFAULT_RADIUS_METERS,
    MAX_MONITORED_REGIONS,
    DayLog,
    DayType,
    OfficeConfig,
    OfficeLocation,
    clamp_radius,
)
from services.office_store import OfficeStore
from services.region_monitor_interface import CircularRegion, RegionMonitorInterface

NO_OFFICES = "no offices configured"
WEEKEND_PAUSED = "weekend paused"
PERMISSION_REQUIRED = "location permission required"
LOCATION_TIMEOUT = "location request timed out"


def _today() -> date:
    """テスト時にモック可能"""
    return date.today()


def _now() -> datetime:
    """テスト時にモック可能な現在時刻取得"""
    return datetime.now()


class Phase(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    PENDING_LOCATION_FIX = "pending_location_fix"


class FixPurpose(str, Enum):
    SET_OFFICE_LOCATION = "set_office_location"
    CHECK_NOW = "check_now"


@dataclass
class PendingFix:
    purpose: FixPurpose
    requested_at: datetime
    candidates: list[OfficeLocation] = field(default_factory=list)
    office: Optional[OfficeLocation] = None


def monitoring_gate(config: OfficeConfig, log: DayLog, today: date) -> tuple[bool, str]:
    """今日、領域監視を行うべきかを判定する"""
    if not config.enabled_offices:
        return False, NO_OFFICES
    if not is_weekday(today):
        return False, WEEKEND_PAUSED
    entry = log.get(day_key(today))
    if entry == DayType.IN_OFFICE:
        return False, ALREADY_CHECKED_IN
    if entry is not None:
        return False, f"today is marked {entry.display_name}"
    return True, ""


class GeofenceAutomaton:
    def __init__(
        self,
        office_store: OfficeStore,
        monitor: RegionMonitorInterface,
        notifier,
        fix_timeout_seconds: float = 60,
        max_regions: int = MAX_MONITORED_REGIONS,
    ):
        self._store = office_store
        self._monitor = monitor
        self._graph = build_graph(office_store=office_store, notifier=notifier)
        self._fix_timeout = timedelta(seconds=fix_timeout_seconds)
        self._max_regions = min(max_regions, MAX_MONITORED_REGIONS)
        self._authorized = monitor.is_authorized()
        self._armed_ids: list[str] = []
        self._pending: Optional[PendingFix] = None
        self._last_reconcile_day: Optional[date] = None
        self._in_checkin = False
        self._bound = False
        self._lock = threading.RLock()
        self.status = ""

    @property
    def phase(self) -> Phase:
        if self._pending is not None:
            return Phase.PENDING_LOCATION_FIX
        if self._armed_ids:
            return Phase.ARMED
        return Phase.IDLE

    @property
    def pending(self) -> Optional[PendingFix]:
        return self._pending

    @property
    def armed_office_ids(self) -> list[str]:
        return list(self._armed_ids)

    def bind(self):
        """ストアの変更購読を開始し、監視状態を合わせる"""
        if self._bound:
            return
        self._bound = True
        self._store.subscribe(self._on_state_change)
        self.reconcile()

    def _on_state_change(self, state):
        # 自動チェックイン処理中の書き込みは処理後にまとめて反映する
        if self._in_checkin:
            return
        self.reconcile()

    def _set_status(self, status: str):
        self.status = status
        print(f"[Geofence] {status}")

    def _stop_all(self):
        # 登録は原子的でないため、既存の領域はすべて外してから張り直す
        for region in self._monitor.monitored_regions():
            self._monitor.stop_monitoring(region.identifier)
        self._armed_ids = []

    # --- 監視のライフサイクル ---

    def reconcile(self) -> bool:
        """設定・ログ・日付に合わせて領域監視を張り直す。監視したらTrue"""
        with self._lock:
            today = _today()
            self._last_reconcile_day = today
            should_arm, status = monitoring_gate(self._store.config, self._store.log, today)
            if should_arm and not self._authorized:
                should_arm, status = False, PERMISSION_REQUIRED

            self._stop_all()
            if not should_arm:
                self._set_status(status)
                return False

            offices = self._store.config.enabled_offices[: self._max_regions]
            for office in offices:
                region = CircularRegion(
                    identifier=office.id,
                    center=Coordinate(office.latitude, office.longitude),
                    radius_meters=clamp_radius(office.radius_meters),
                    notify_on_entry=True,
                    notify_on_exit=False,
                )
                self._monitor.start_monitoring(region)
                self._armed_ids.append(office.id)

            names = ", ".join(o.name for o in offices)
            self._set_status(f"Monitoring {len(offices)} office(s): {names}")
            return True

    def tick(self):
        """定期実行: 測位待ちの期限切れと日付変更（スリープ復帰）を処理する"""
        with self._lock:
            self.expire_pending_fix()
            if _today() != self._last_reconcile_day:
                self.reconcile()

    # --- 領域イベント ---

    def _run_checkin(self, **overrides) -> dict:
        state: CheckInState = {
            "today": day_key(_today()),
            "trigger": "region_enter",
            "region_id": None,
            "coordinate": None,
            "candidate_offices": [],
            "matched_office_id": None,
            "matched_office_name": None,
            "today_entry": None,
            "action_taken": None,
            "status": None,
            "notified": False,
        }
        state.update(overrides)
        self._in_checkin = True
        try:
            return self._graph.invoke(state)
        finally:
            self._in_checkin = False

    def _finish_checkin(self, result: dict) -> str:
        # 記録後は同日中に再監視しない（reconcileで停止される）
        self.reconcile()
        if result.get("status"):
            self._set_status(result["status"])
        return result.get("action_taken") or "skipped"

    def on_region_enter(self, region_id: str) -> str:
        with self._lock:
            result = self._run_checkin(trigger="region_enter", region_id=region_id)
            if result.get("action_taken") == "no_match":
                self._set_status(result["status"])
                return "no_match"
            return self._finish_checkin(result)

    def on_region_exit(self, region_id: str) -> None:
        """退出イベントは使わない"""
        return None

    # --- 1回測位 ---

    def _request_fix(self, pending: PendingFix):
        # 未解決の要求は上書きする（最後の要求が優先）
        self._pending = pending
        self._monitor.request_location()

    def check_location_now(self) -> bool:
        """現在地がオフィス内か1回だけ確認する。測位を要求したらTrue"""
        with self._lock:
            should_check, status = monitoring_gate(self._store.config, self._store.log, _today())
            if should_check and not self._authorized:
                should_check, status = False, PERMISSION_REQUIRED
            if not should_check:
                self._set_status(status)
                return False

            candidates = [replace(o) for o in self._store.config.enabled_offices]
            self._request_fix(PendingFix(FixPurpose.CHECK_NOW, _now(), candidates=candidates))
            self._set_status("Checking current location…")
            return True

    def set_office_to_current_location(
        self,
        name: str = "Office",
        office_id: Optional[str] = None,
        radius_meters: Optional[float] = None,
    ) -> None:
        """次の測位結果でオフィスの座標を設定する"""
        with self._lock:
            existing = self._store.config.office_by_id(office_id) if office_id else None
            if existing is not None:
                office = replace(existing, name=name or existing.name)
                if radius_meters is not None:
                    office.radius_meters = clamp_radius(radius_meters)
            else:
                office = OfficeLocation(
                    name=name,
                    latitude=0.0,
                    longitude=0.0,
                    radius_meters=DEFAULT_RADIUS_METERS if radius_meters is None else radius_meters,
                )
                if office_id:
                    office.id = office_id
            self._request_fix(PendingFix(FixPurpose.SET_OFFICE_LOCATION, _now(), office=office))
            self._set_status("Requesting current location…")

    def on_location_fix(self, coordinate: Coordinate) -> Optional[str]:
        with self._lock:
            pending = self._pending
            if pending is None:
                return None
            self._pending = None

            if pending.purpose == FixPurpose.SET_OFFICE_LOCATION:
                office = replace(
                    pending.office,
                    latitude=coordinate.latitude,
                    longitude=coordinate.longitude,
                )
                self._in_checkin = True
                try:
                    self._store.upsert_office(office)
                finally:
                    self._in_checkin = False
                self.reconcile()
                self._set_status(f"Set {office.name} to current location")
                return "office_set"

            result = self._run_checkin(
                trigger="location_fix",
                coordinate=coordinate,
                candidate_offices=pending.candidates,
            )
            if result.get("action_taken") == "no_match":
                self._set_status(result["status"])
                return "no_match"
            return self._finish_checkin(result)

    def expire_pending_fix(self, now: Optional[datetime] = None) -> bool:
        """期限切れの測位待ちを破棄する"""
        with self._lock:
            if self._pending is None:
                return False
            now = now or _now()
            if now - self._pending.requested_at < self._fix_timeout:
                return False
            self._pending = None
            self._set_status(LOCATION_TIMEOUT)
            return True

    # --- 権限・エラー ---

    def on_authorization_change(self, granted: bool) -> None:
        with self._lock:
            was_authorized = self._authorized
            self._authorized = granted
            if granted and not was_authorized:
                self.reconcile()
            elif not granted:
                self._stop_all()
                self._set_status(PERMISSION_REQUIRED)

    def request_permission(self) -> bool:
        """プロバイダに許可を求め、結果を反映する"""
        self._monitor.request_permission()
        granted = self._monitor.is_authorized()
        self.on_authorization_change(granted)
        return granted

    def on_error(self, error: Union[str, LocationError]) -> None:
        """プロバイダのエラー。保留中の要求を破棄し、ログには触れない"""
        if isinstance(error, AuthorizationDenied):
            self.on_authorization_change(False)
        with self._lock:
            self._pending = None
            self.status = f"Location error: {error}"
            print(f"[Geofence] {self.status}", file=sys.stderr)
