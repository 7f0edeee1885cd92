# services/status_report.py
from dataclasses import dataclass
from datetime import date
from typing import Optional

from services.attendance_engine import (
    AttendanceSummary,
    OfficeDayPlan,
    attendance,
    fiscal_quarter,
    month_range,
    office_day_plan,
)
from services.calendar_math import DateLike, to_day
from services.models import DayLog, OfficeConfig


@dataclass
class StatusReport:
    quarter_label: str
    quarter: AttendanceSummary
    month: AttendanceSummary
    quarter_to_date: AttendanceSummary
    plan: OfficeDayPlan


def build_status_report(
    config: OfficeConfig,
    log: DayLog,
    today: Optional[DateLike] = None,
    month_cursor: Optional[DateLike] = None,
) -> StatusReport:
    """四半期・月・四半期累計の出社率と推奨日をまとめる

    四半期累計は四半期の初日から、表示中の月の末日までを対象にする。
    """
    today = to_day(today) if today is not None else date.today()
    cursor = to_day(month_cursor) if month_cursor is not None else today
    quarter = fiscal_quarter(today)
    month_start, month_end = month_range(cursor)

    return StatusReport(
        quarter_label=quarter.label,
        quarter=attendance(log, quarter.start, quarter.end),
        month=attendance(log, month_start, month_end),
        quarter_to_date=attendance(log, quarter.start, month_end),
        plan=office_day_plan(
            log,
            quarter.start,
            quarter.end,
            today,
            config.target_pct,
            config.preferred_weekdays,
        ),
    )


def format_status_report(report: StatusReport, limit: int = 6) -> str:
    lines = [
        f"{report.quarter_label}: {report.quarter.attendance_pct:.1f}% "
        f"({report.quarter.office_days} / {report.quarter.eligible_working_days})",
        f"This month: {report.month.attendance_pct:.1f}%",
        f"Quarter to date: {report.quarter_to_date.attendance_pct:.1f}%",
    ]
    plan = report.plan
    if plan.remaining_office_days_needed == 0:
        lines.append(f"You're on track for {plan.target_pct:.0f}%+.")
    elif not plan.recommended_dates:
        lines.append("No eligible days left in this range.")
    else:
        lines.append(f"Recommended office days (need {plan.remaining_office_days_needed}):")
        for d in plan.recommended_dates[:limit]:
            lines.append(f"  {d.isoformat()} {d.strftime('%a')}")
    return "\n".join(lines)
