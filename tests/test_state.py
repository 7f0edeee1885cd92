from graph.state import CheckInState
from services.geo import Coordinate


def test_checkin_state_creation():
    """CheckInStateが正しいキーで生成できること"""
    state: CheckInState = {
        "today": "2024-05-08",
        "trigger": "location_fix",
        "region_id": None,
        "coordinate": Coordinate(35.68, 139.76),
        "candidate_offices": [],
        "matched_office_id": None,
        "matched_office_name": None,
        "today_entry": None,
        "action_taken": None,
        "status": None,
        "notified": False,
    }
    assert state["today"] == "2024-05-08"
    assert state["coordinate"].latitude == 35.68
    assert state["candidate_offices"] == []
