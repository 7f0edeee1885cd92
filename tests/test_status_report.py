from datetime import date

from services.models import DayLog, DayType, OfficeConfig
from services.status_report import build_status_report, format_status_report

TODAY = date(2024, 5, 8)


def test_status_report_empty_log():
    """ログが空なら出社率0%、四半期の半分が必要日数"""
    report = build_status_report(OfficeConfig(), DayLog(), today=TODAY)

    assert report.quarter_label == "Q2 FY2024"
    assert report.month.eligible_working_days == 23
    assert report.quarter.eligible_working_days == 66
    assert report.quarter.attendance_pct == 0.0
    assert report.plan.required_office_days == 33
    assert report.plan.remaining_office_days_needed == 33


def test_quarter_to_date_follows_month_cursor():
    """四半期累計は表示中の月の末日までを対象にすること"""
    report = build_status_report(
        OfficeConfig(), DayLog(), today=TODAY, month_cursor=date(2024, 6, 10)
    )
    assert report.month.eligible_working_days == 20
    assert report.quarter_to_date.eligible_working_days == 43


def test_status_report_counts_office_days():
    log = DayLog()
    log.set("2024-05-06", DayType.IN_OFFICE)
    log.set("2024-05-07", DayType.IN_OFFICE)
    log.set("2024-05-08", DayType.PTO)

    report = build_status_report(OfficeConfig(), log, today=TODAY)
    assert report.month.office_days == 2
    assert report.month.eligible_working_days == 22
    assert report.plan.office_days_so_far == 2
    assert report.plan.remaining_office_days_needed == 31


def test_format_lists_recommendations():
    report = build_status_report(OfficeConfig(), DayLog(), today=TODAY)
    text = format_status_report(report, limit=3)

    assert text.splitlines()[0] == "Q2 FY2024: 0.0% (0 / 66)"
    assert "Recommended office days (need 33):" in text
    # 推奨日は曜日の優先順（火・水・木・月・金）で、今日以降から
    assert "  2024-05-08 Wed" in text
    assert len([line for line in text.splitlines() if line.startswith("  ")]) == 3


def test_format_on_track():
    report = build_status_report(OfficeConfig(target_pct=0), DayLog(), today=TODAY)
    assert "You're on track for 0%+." in format_status_report(report)
