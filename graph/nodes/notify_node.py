from graph.state import CheckInState


NOTIFICATION_TITLE = "Office Check-In"

MESSAGES = {
    "marked": "✅ Marked today as In Office ({office})",
}


def notify_node(state: CheckInState, notifier=None) -> dict:
    """自動チェックインの結果を通知するノード"""
    if state["action_taken"] != "marked":
        return {"notified": False}

    body = MESSAGES["marked"].format(office=state["matched_office_name"])
    # 通知の失敗は無視する
    sent = notifier.send(NOTIFICATION_TITLE, body)
    return {"notified": bool(sent)}
