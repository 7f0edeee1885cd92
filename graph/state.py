from typing import TypedDict, Optional

from services.geo import Coordinate
from services.models import OfficeLocation


class CheckInState(TypedDict):
    today: str                                # YYYY-MM-DD
    trigger: str                              # "region_enter" / "location_fix"
    region_id: Optional[str]                  # 進入した領域のID（=オフィスID）
    coordinate: Optional[Coordinate]          # 1回測位の結果
    candidate_offices: list[OfficeLocation]   # 測位要求時点の候補オフィス
    matched_office_id: Optional[str]
    matched_office_name: Optional[str]
    today_entry: Optional[str]                # 今日の既存エントリ（DayTypeの値）
    action_taken: Optional[str]               # "marked" / "skipped" / "no_match"
    status: Optional[str]                     # 表示用ステータス
    notified: bool
