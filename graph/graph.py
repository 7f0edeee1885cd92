# graph/graph.py
from langgraph.graph import StateGraph, END
from graph.state import CheckInState


def route_after_office_match(state: CheckInState) -> str:
    if state["action_taken"] == "no_match":
        return "end"
    return "day_gate"


def route_after_day_gate(state: CheckInState) -> str:
    if state["action_taken"] == "skipped":
        return "end"
    return "mark"


def build_graph(office_store=None, notifier=None):
    """自動チェックイン用のLangGraphグラフを構築して返す

    各ノード関数はサービス依存を持つため、functools.partialでラップして
    LangGraphが期待する (state) -> dict シグネチャに合わせる。
    """
    from functools import partial
    from graph.nodes.office_match_node import office_match_node
    from graph.nodes.day_gate_node import day_gate_node
    from graph.nodes.mark_node import mark_node
    from graph.nodes.notify_node import notify_node

    office_match_wrapped = partial(office_match_node, office_store=office_store)
    day_gate_wrapped = partial(day_gate_node, office_store=office_store)
    mark_wrapped = partial(mark_node, office_store=office_store)
    notify_wrapped = partial(notify_node, notifier=notifier)

    workflow = StateGraph(CheckInState)

    workflow.add_node("office_match", office_match_wrapped)
    workflow.add_node("day_gate", day_gate_wrapped)
    workflow.add_node("mark", mark_wrapped)
    workflow.add_node("notify", notify_wrapped)

    workflow.set_entry_point("office_match")

    workflow.add_conditional_edges(
        "office_match",
        route_after_office_match,
        {"day_gate": "day_gate", "end": END},
    )
    workflow.add_conditional_edges(
        "day_gate",
        route_after_day_gate,
        {"mark": "mark", "end": END},
    )

    workflow.add_edge("mark", "notify")
    workflow.add_edge("notify", END)

    return workflow.compile()
