# graph/nodes/office_match_node.py
from graph.state import CheckInState
from services.geo import Coordinate, distance_meters
from services.office_store import OfficeStore

NOT_AT_ANY_OFFICE = "not at any office"


def office_match_node(state: CheckInState, office_store: OfficeStore = None) -> dict:
    """イベントに対応するオフィスを特定するノード"""
    if state["trigger"] == "region_enter":
        office = office_store.config.office_by_id(state["region_id"])
        if office is None:
            return {
                "action_taken": "no_match",
                "status": f"unknown region {state['region_id']}",
            }
        if not office.enabled:
            # 無効化直後に届いた進入通知
            return {"action_taken": "no_match", "status": f"{office.name} is disabled"}
        return {"matched_office_id": office.id, "matched_office_name": office.name}

    # 1回測位: 設定順で最初に半径内に入ったオフィス
    coord = state["coordinate"]
    for office in state["candidate_offices"]:
        center = Coordinate(office.latitude, office.longitude)
        if distance_meters(coord, center) <= office.radius_meters:
            return {"matched_office_id": office.id, "matched_office_name": office.name}

    return {"action_taken": "no_match", "status": NOT_AT_ANY_OFFICE}
