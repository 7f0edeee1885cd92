from graph.state import CheckInState
from services.calendar_math import date_from_day_key
from services.models import DayType
from services.office_store import OfficeStore


def mark_node(state: CheckInState, office_store: OfficeStore = None) -> dict:
    """今日を出社（位置情報による自動記録）として書き込むノード"""
    today = date_from_day_key(state["today"])
    office_store.set(DayType.IN_OFFICE, today, geofenced=True)

    return {
        "action_taken": "marked",
        "status": f"Checked in at {state['matched_office_name']}",
    }
