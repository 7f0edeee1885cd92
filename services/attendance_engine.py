# services/attendance_engine.py
"""出社率の集計と出社推奨日の計画

会計年度は2月1日始まり。四半期は Q1=2〜4月, Q2=5〜7月, Q3=8〜10月,
Q4=11〜翌1月（暦年をまたぐ）。
"""
import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional, Sequence

from services.calendar_math import DateLike, day_key, is_weekday, list_days, to_day
from services.models import (
    DEFAULT_PREFERRED_WEEKDAYS,
    EXCLUDED_DAY_TYPES,
    DayLog,
    DayType,
)

# 月 -> (四半期名, 開始月, 開始年オフセット, 終了月, 終了年オフセット)
_QUARTERS = {
    2: ("Q1", 2, 0, 4, 0),
    3: ("Q1", 2, 0, 4, 0),
    4: ("Q1", 2, 0, 4, 0),
    5: ("Q2", 5, 0, 7, 0),
    6: ("Q2", 5, 0, 7, 0),
    7: ("Q2", 5, 0, 7, 0),
    8: ("Q3", 8, 0, 10, 0),
    9: ("Q3", 8, 0, 10, 0),
    10: ("Q3", 8, 0, 10, 0),
    11: ("Q4", 11, 0, 1, 1),
    12: ("Q4", 11, 0, 1, 1),
    1: ("Q4", 11, -1, 1, 0),
}


@dataclass
class FiscalQuarter:
    name: str
    start: date
    end: date

    @property
    def fiscal_year(self) -> int:
        # 会計年度は四半期の終わる暦年
        return self.end.year

    @property
    def label(self) -> str:
        return f"{self.name} FY{self.fiscal_year}"


@dataclass
class AttendanceSummary:
    office_days: int
    eligible_working_days: int
    attendance_pct: float


@dataclass
class OfficeDayPlan:
    target_pct: float
    total_eligible_working_days: int
    required_office_days: int
    office_days_so_far: int
    remaining_office_days_needed: int
    recommended_dates: list[date] = field(default_factory=list)

    @property
    def is_under_filled(self) -> bool:
        """期間内の候補日が足りず、必要日数を埋めきれていない"""
        return len(self.recommended_dates) < self.remaining_office_days_needed


def _month_end(year: int, month: int) -> date:
    if month == 12:
        return date(year, 12, 31)
    return date(year, month + 1, 1) - timedelta(days=1)


def fiscal_quarter(value: DateLike) -> FiscalQuarter:
    """指定日を含む会計四半期を返す"""
    d = to_day(value)
    name, start_month, start_off, end_month, end_off = _QUARTERS[d.month]
    start = date(d.year + start_off, start_month, 1)
    end = _month_end(d.year + end_off, end_month)
    return FiscalQuarter(name=name, start=start, end=end)


def fiscal_quarter_label(value: DateLike) -> str:
    return fiscal_quarter(value).label


def month_range(value: DateLike) -> tuple[date, date]:
    """指定日を含む月の初日と末日"""
    d = to_day(value)
    return date(d.year, d.month, 1), _month_end(d.year, d.month)


def eligible_working_days(log: DayLog, start: DateLike, end: DateLike) -> list[date]:
    """期間内の平日から PTO/Sick/Exempt/PublicHoliday を除いた日"""
    return [
        d
        for d in list_days(start, end)
        if is_weekday(d) and log.get(day_key(d)) not in EXCLUDED_DAY_TYPES
    ]


def _count_office_days(log: DayLog, days: Sequence[date]) -> int:
    return sum(1 for d in days if log.get(day_key(d)) == DayType.IN_OFFICE)


def attendance(log: DayLog, start: DateLike, end: DateLike) -> AttendanceSummary:
    """期間全体（経過日数ではない）に対する出社率を計算する"""
    eligible = eligible_working_days(log, start, end)
    office_count = _count_office_days(log, eligible)
    pct = 0.0 if not eligible else office_count * 100.0 / len(eligible)
    return AttendanceSummary(
        office_days=office_count,
        eligible_working_days=len(eligible),
        attendance_pct=pct,
    )


def office_day_plan(
    log: DayLog,
    start: DateLike,
    end: DateLike,
    from_date: DateLike,
    target_pct: float,
    preferred_weekdays: Optional[Sequence[int]] = None,
) -> OfficeDayPlan:
    """目標出社率を満たすための推奨出社日を計画する

    週ごとに preferred_weekdays の優先順で候補を選ぶため、特定の曜日だけが
    先の週まで埋まることはない。期間が尽きた場合は必要日数より少ない
    候補を返す（エラーにはしない）。
    """
    if preferred_weekdays is None:
        preferred_weekdays = DEFAULT_PREFERRED_WEEKDAYS

    eligible = eligible_working_days(log, start, end)
    total_eligible = len(eligible)
    required = math.ceil(target_pct * total_eligible / 100.0)
    so_far = _count_office_days(log, eligible)
    remaining = max(0, required - so_far)

    start_day = to_day(start)
    end_day = to_day(end)
    anchor = max(to_day(from_date), start_day)

    recommended: list[date] = []
    to_pick = remaining
    week_start = anchor - timedelta(days=anchor.weekday())

    while week_start <= end_day and to_pick > 0:
        for weekday in preferred_weekdays:
            if to_pick <= 0:
                break
            if not 0 <= weekday <= 6:
                continue
            candidate = week_start + timedelta(days=weekday)
            # 週の頭側は anchor より前になり得る
            if candidate < anchor or candidate > end_day:
                continue
            if not is_weekday(candidate) or candidate in recommended:
                continue
            entry = log.get(day_key(candidate))
            if entry == DayType.IN_OFFICE or entry in EXCLUDED_DAY_TYPES:
                continue
            recommended.append(candidate)
            to_pick -= 1

        try:
            week_start = week_start + timedelta(days=7)
        except OverflowError:
            break

    return OfficeDayPlan(
        target_pct=target_pct,
        total_eligible_working_days=total_eligible,
        required_office_days=required,
        office_days_so_far=so_far,
        remaining_office_days_needed=remaining,
        recommended_dates=recommended,
    )
