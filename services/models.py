# services/models.py
import copy
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from services.calendar_math import day_key
from services.errors import PersistenceError

STATE_KEY = "office_checkin_state_v1"

MIN_RADIUS_METERS = 50.0
MAX_RADIUS_METERS = 5000.0
DEFAULT_RADIUS_METERS = 250.0
MAX_MONITORED_REGIONS = 20

DEFAULT_TARGET_PCT = 50.0
# 月=0 ... 日=6。火・水・木を優先し、次に月・金
DEFAULT_PREFERRED_WEEKDAYS = [1, 2, 3, 0, 4]

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class DayType(str, Enum):
    IN_OFFICE = "inOffice"
    PTO = "pto"
    SICK = "sick"
    EXEMPT = "exempt"
    PUBLIC_HOLIDAY = "publicHoliday"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    DayType.IN_OFFICE: "In Office",
    DayType.PTO: "PTO",
    DayType.SICK: "Sick",
    DayType.EXEMPT: "Exempt",
    DayType.PUBLIC_HOLIDAY: "Public Holiday",
}

# 出社率の分母から除外される種別
EXCLUDED_DAY_TYPES = frozenset(
    {DayType.PTO, DayType.SICK, DayType.EXEMPT, DayType.PUBLIC_HOLIDAY}
)
# 自動チェックインしない（その日が確定済み）種別
RESOLVED_DAY_TYPES = EXCLUDED_DAY_TYPES | {DayType.IN_OFFICE}


def clamp_radius(value: float) -> float:
    return max(MIN_RADIUS_METERS, min(MAX_RADIUS_METERS, float(value)))


def clamp_target_pct(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


def _parse_timestamp(raw) -> datetime:
    if raw is None:
        return EPOCH
    if isinstance(raw, datetime):
        ts = raw
    elif isinstance(raw, date):
        ts = datetime(raw.year, raw.month, raw.day)
    else:
        ts = datetime.fromisoformat(str(raw))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


@dataclass
class DayLog:
    entries: dict[str, DayType] = field(default_factory=dict)
    # 位置情報で自動記録された日付キー（IN_OFFICEのキーの部分集合）
    geofenced_dates: set[str] = field(default_factory=set)

    def get(self, key: str) -> Optional[DayType]:
        return self.entries.get(key)

    def set(self, key: str, day_type: Optional[DayType], geofenced: bool = False):
        """1日分のエントリを書き込む（Noneは削除）"""
        if day_type is None:
            self.entries.pop(key, None)
            self.geofenced_dates.discard(key)
            return
        self.entries[key] = day_type
        if geofenced and day_type == DayType.IN_OFFICE:
            self.geofenced_dates.add(key)
        else:
            self.geofenced_dates.discard(key)

    def copy(self) -> "DayLog":
        return DayLog(entries=dict(self.entries), geofenced_dates=set(self.geofenced_dates))

    def to_dict(self) -> dict:
        return {
            "entries": {k: v.value for k, v in sorted(self.entries.items())},
            "geofenced_dates": sorted(self.geofenced_dates),
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "DayLog":
        data = data or {}
        entries = {}
        for raw_key, raw_type in (data.get("entries") or {}).items():
            key = day_key(raw_key) if isinstance(raw_key, date) else str(raw_key)
            entries[key] = DayType(raw_type)
        geofenced = set()
        for raw_key in data.get("geofenced_dates") or []:
            key = day_key(raw_key) if isinstance(raw_key, date) else str(raw_key)
            if entries.get(key) == DayType.IN_OFFICE:
                geofenced.add(key)
        return cls(entries=entries, geofenced_dates=geofenced)


@dataclass
class OfficeLocation:
    name: str
    latitude: float
    longitude: float
    radius_meters: float = DEFAULT_RADIUS_METERS
    enabled: bool = True
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self):
        self.latitude = float(self.latitude)
        self.longitude = float(self.longitude)
        self.radius_meters = clamp_radius(self.radius_meters)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "radius_meters": self.radius_meters,
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "OfficeLocation":
        return cls(
            id=str(data.get("id") or uuid.uuid4()),
            name=str(data.get("name", "Office")),
            latitude=data["latitude"],
            longitude=data["longitude"],
            radius_meters=data.get("radius_meters", DEFAULT_RADIUS_METERS),
            enabled=bool(data.get("enabled", True)),
        )


@dataclass
class OfficeConfig:
    target_pct: float = DEFAULT_TARGET_PCT
    preferred_weekdays: list[int] = field(
        default_factory=lambda: list(DEFAULT_PREFERRED_WEEKDAYS)
    )
    offices: list[OfficeLocation] = field(default_factory=list)
    launch_at_login: bool = False

    def __post_init__(self):
        self.target_pct = clamp_target_pct(self.target_pct)

    @property
    def enabled_offices(self) -> list[OfficeLocation]:
        return [o for o in self.offices if o.enabled]

    def office_by_id(self, office_id: str) -> Optional[OfficeLocation]:
        for office in self.offices:
            if office.id == office_id:
                return office
        return None

    def copy(self) -> "OfficeConfig":
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        # 旧形式（単一オフィス）のフィールドは書き出さない
        return {
            "target_pct": self.target_pct,
            "preferred_weekdays": list(self.preferred_weekdays),
            "offices": [o.to_dict() for o in self.offices],
            "launch_at_login": self.launch_at_login,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "OfficeConfig":
        data = data or {}
        offices = [OfficeLocation.from_dict(o) for o in data.get("offices") or []]

        # 旧形式（単一オフィス）からの移行
        if not offices:
            name = data.get("office_name")
            lat = data.get("office_latitude")
            lon = data.get("office_longitude")
            if name is not None and lat is not None and lon is not None:
                offices = [
                    OfficeLocation(
                        name=str(name),
                        latitude=lat,
                        longitude=lon,
                        radius_meters=data.get("office_radius_meters") or DEFAULT_RADIUS_METERS,
                    )
                ]

        weekdays = data.get("preferred_weekdays")
        return cls(
            target_pct=data.get("target_pct", DEFAULT_TARGET_PCT),
            preferred_weekdays=(
                [int(w) for w in weekdays]
                if weekdays is not None
                else list(DEFAULT_PREFERRED_WEEKDAYS)
            ),
            offices=offices,
            launch_at_login=bool(data.get("launch_at_login", False)),
        )


@dataclass
class PersistedState:
    config: OfficeConfig
    log: DayLog
    last_updated: datetime = EPOCH

    def to_dict(self) -> dict:
        return {
            "config": self.config.to_dict(),
            "log": self.log.to_dict(),
            "last_updated": self.last_updated.isoformat(),
        }

    @classmethod
    def from_dict(cls, data) -> "PersistedState":
        """永続化ドキュメントを復元する（不正な内容はPersistenceError）"""
        if not isinstance(data, dict):
            raise PersistenceError(f"state document must be a mapping, got {type(data).__name__}")
        try:
            return cls(
                config=OfficeConfig.from_dict(data["config"]),
                log=DayLog.from_dict(data["log"]),
                last_updated=_parse_timestamp(data.get("last_updated")),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise PersistenceError(f"malformed state document: {e!r}") from e
