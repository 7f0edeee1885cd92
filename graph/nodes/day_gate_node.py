# graph/nodes/day_gate_node.py
from graph.state import CheckInState
from services.models import RESOLVED_DAY_TYPES, DayType
from services.office_store import OfficeStore

ALREADY_CHECKED_IN = "already checked in"


def day_gate_node(state: CheckInState, office_store: OfficeStore = None) -> dict:
    """今日がすでに確定済み（出社・休暇等）なら記録をスキップするノード"""
    entry = office_store.log.get(state["today"])

    if entry in RESOLVED_DAY_TYPES:
        status = (
            ALREADY_CHECKED_IN
            if entry == DayType.IN_OFFICE
            else f"today is marked {entry.display_name}"
        )
        return {"today_entry": entry.value, "action_taken": "skipped", "status": status}

    return {"today_entry": None}
