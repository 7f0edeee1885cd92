# tests/test_office_store.py
import threading

import pytest
from datetime import date, datetime, timezone
from unittest.mock import MagicMock, patch

from services.models import DayLog, DayType, OfficeConfig, OfficeLocation, PersistedState
from services.office_store import OfficeStore
from services.state_repository import InMemoryStateRepository

T1 = datetime(2024, 5, 8, 9, 0, tzinfo=timezone.utc)
T2 = datetime(2024, 5, 8, 10, 0, tzinfo=timezone.utc)
T3 = datetime(2024, 5, 8, 11, 0, tzinfo=timezone.utc)


def _document(target_pct=50, ts=T1):
    return PersistedState(
        config=OfficeConfig(target_pct=target_pct), log=DayLog(), last_updated=ts
    ).to_dict()


def _make_store(local_doc=None, remote_doc=None, launch_agent=None):
    local = InMemoryStateRepository(local_doc)
    remote = InMemoryStateRepository(remote_doc)
    store = OfficeStore(local=local, remote=remote, launch_agent=launch_agent)
    return store, local, remote


def test_set_writes_entry_and_persists():
    store, local, remote = _make_store()
    store.set(DayType.IN_OFFICE, date(2024, 5, 8))

    assert store.entry_for(date(2024, 5, 8)) == DayType.IN_OFFICE
    assert local.get().log.get("2024-05-08") == DayType.IN_OFFICE
    assert remote.get().log.get("2024-05-08") == DayType.IN_OFFICE


def test_set_same_day_twice_single_entry():
    """同じ日に2回書いてもエントリは1件"""
    store, _, _ = _make_store()
    store.set(DayType.IN_OFFICE, date(2024, 5, 8))
    store.set(DayType.IN_OFFICE, datetime(2024, 5, 8, 18, 0))
    assert store.log.entries == {"2024-05-08": DayType.IN_OFFICE}


def test_geofenced_flag_cleared_by_manual_set():
    """自動記録した日を手動で設定し直すとgeofenced印が外れること"""
    store, _, _ = _make_store()
    store.set(DayType.IN_OFFICE, date(2024, 5, 8), geofenced=True)
    assert store.is_geofenced(date(2024, 5, 8)) is True

    store.set(DayType.IN_OFFICE, date(2024, 5, 8))
    assert store.is_geofenced(date(2024, 5, 8)) is False

    store.set(DayType.IN_OFFICE, date(2024, 5, 9), geofenced=True)
    store.set(DayType.SICK, date(2024, 5, 9))
    assert store.is_geofenced(date(2024, 5, 9)) is False


def test_set_none_removes_entry():
    store, _, _ = _make_store()
    store.set(DayType.IN_OFFICE, date(2024, 5, 8), geofenced=True)
    store.set(None, date(2024, 5, 8))
    assert store.entry_for(date(2024, 5, 8)) is None
    assert store.log.geofenced_dates == set()


def test_mutation_produces_new_snapshot():
    store, _, _ = _make_store()
    first = store.set(DayType.PTO, date(2024, 5, 8))
    second = store.set(DayType.SICK, date(2024, 5, 9))
    assert first is not second
    assert "2024-05-09" not in first.log.entries
    assert store.last_known_state is second


def test_load_prefers_newer_local_and_heals_remote():
    """ローカルが新しければ採用し、リモートへ書き戻すこと"""
    store, _, remote = _make_store(_document(70, T2), _document(30, T1))
    store.load()

    assert store.config.target_pct == 70
    assert remote.get().last_updated == T2
    assert remote.get().config.target_pct == 70


def test_load_tie_favors_local():
    store, _, remote = _make_store(_document(70, T1), _document(30, T1))
    with patch.object(remote, "put") as mock_put:
        store.load()
    assert store.config.target_pct == 70
    mock_put.assert_not_called()


def test_load_prefers_newer_remote_without_repush():
    """リモートが新しければ採用し、リモートへは書き戻さないこと"""
    store, local, remote = _make_store(_document(70, T1), _document(30, T2))
    with patch.object(remote, "put") as mock_put:
        store.load()
    assert store.config.target_pct == 30
    mock_put.assert_not_called()
    assert local.get().last_updated == T2


def test_load_local_only_pushes_to_remote():
    store, _, remote = _make_store(_document(70, T1), None)
    store.load()
    assert store.config.target_pct == 70
    assert remote.get().config.target_pct == 70


def test_load_nothing_keeps_defaults():
    store, _, _ = _make_store()
    assert store.load() is None
    assert store.config.target_pct == 50
    assert store.log.entries == {}


def test_load_ignores_malformed_remote():
    """壊れたリモートは存在しないものとして扱うこと"""
    store, _, _ = _make_store(_document(70, T1), {"config": "broken"})
    store.load()
    assert store.config.target_pct == 70


def test_external_change_applies_newer_without_propagation():
    """リモートの新しい変更を適用し、リモートへは書き戻さないこと"""
    store, local, remote = _make_store(_document(70, T1), _document(70, T1))
    store.load()

    seen_flags = []
    store.subscribe(lambda state: seen_flags.append(store.is_applying_external))

    with patch.object(remote, "put") as mock_put:
        remote.push_external(_document(40, T2))
        mock_put.assert_not_called()

    assert store.config.target_pct == 40
    assert local.get().last_updated == T2
    assert seen_flags == [True]
    assert store.is_applying_external is False


def test_external_change_ignores_older():
    store, _, remote = _make_store(_document(70, T2), None)
    store.load()

    assert store.on_external_change() is False  # 自分が書き戻したもの
    remote.push_external(_document(10, T1))
    assert store.config.target_pct == 70


def test_write_during_external_apply_not_pushed():
    """外部更新の適用中に発生した書き込みはリモートへ送らないこと"""
    store, local, remote = _make_store()

    def on_change(state):
        if store.is_applying_external and store.entry_for(date(2024, 5, 10)) is None:
            store.set(DayType.PTO, date(2024, 5, 10))

    store.subscribe(on_change)
    remote.push_external(_document(40, T3))

    assert store.entry_for(date(2024, 5, 10)) == DayType.PTO
    assert local.get().log.get("2024-05-10") == DayType.PTO
    assert remote.get().log.get("2024-05-10") is None


def test_save_failure_is_not_fatal():
    local = MagicMock()
    local.put.side_effect = OSError("disk full")
    store = OfficeStore(local=local, remote=InMemoryStateRepository())
    state = store.set(DayType.IN_OFFICE, date(2024, 5, 8))
    assert store.entry_for(date(2024, 5, 8)) == DayType.IN_OFFICE
    assert store.last_known_state is state


def test_subscribe_and_unsubscribe():
    store, _, _ = _make_store()
    callback = MagicMock()
    unsubscribe = store.subscribe(callback)
    store.set(DayType.IN_OFFICE, date(2024, 5, 8))
    assert callback.call_count == 1

    unsubscribe()
    store.set(DayType.PTO, date(2024, 5, 9))
    assert callback.call_count == 1


def test_clear_log():
    store, _, _ = _make_store()
    store.set(DayType.IN_OFFICE, date(2024, 5, 8), geofenced=True)
    store.set(DayType.PTO, date(2024, 5, 9))
    store.clear_log()
    assert store.log.entries == {}
    assert store.log.geofenced_dates == set()


def test_mark_yesterday():
    store, _, _ = _make_store()
    store.mark_yesterday(DayType.SICK, today=date(2024, 5, 1))
    assert store.entry_for(date(2024, 4, 30)) == DayType.SICK


def test_set_target_pct_clamped():
    store, _, _ = _make_store()
    store.set_target_pct(150)
    assert store.config.target_pct == 100
    store.set_target_pct(-1)
    assert store.config.target_pct == 0


def test_set_preferred_weekdays():
    store, _, _ = _make_store()
    store.set_preferred_weekdays([2, 2, 0])
    assert store.config.preferred_weekdays == [2, 0]
    with pytest.raises(ValueError):
        store.set_preferred_weekdays([7])


def test_office_crud():
    store, _, remote = _make_store()
    store.add_office(OfficeLocation(name="HQ", latitude=35.0, longitude=139.0, id="hq"))
    store.add_office(OfficeLocation(name="Annex", latitude=35.1, longitude=139.1, id="annex"))
    store.update_office(
        OfficeLocation(name="Head Office", latitude=35.0, longitude=139.0, radius_meters=10, id="hq")
    )

    assert [o.name for o in store.config.offices] == ["Head Office", "Annex"]
    assert store.config.offices[0].radius_meters == 50

    store.set_office_enabled("annex", False)
    assert [o.id for o in store.config.enabled_offices] == ["hq"]

    store.remove_office("hq")
    assert [o.id for o in store.config.offices] == ["annex"]
    assert [o.id for o in remote.get().config.offices] == ["annex"]


def test_set_launch_at_login_calls_agent():
    agent = MagicMock()
    store, _, _ = _make_store(launch_agent=agent)
    store.set_launch_at_login(True)
    assert store.config.launch_at_login is True
    agent.apply.assert_called_once_with(True)


def test_write_from_other_thread_before_external_apply_is_kept():
    """リモート読込後・適用前に別スレッドで書いた新しい記録を古いリモートで上書きしないこと"""
    store, local, remote = _make_store(_document(70, T1), _document(70, T1))
    store.load()
    remote._document = _document(40, T2)
    original_get = remote.get

    def get_then_write_elsewhere():
        snapshot = original_get()
        writer = threading.Thread(
            target=store.set, args=(DayType.IN_OFFICE, date(2099, 5, 8)), kwargs={"geofenced": True}
        )
        writer.start()
        writer.join()
        return snapshot

    with patch.object(remote, "get", side_effect=get_then_write_elsewhere):
        assert store.on_external_change() is False

    assert store.entry_for(date(2099, 5, 8)) == DayType.IN_OFFICE
    assert store.is_geofenced(date(2099, 5, 8)) is True
    assert store.config.target_pct == 70
    assert local.get().log.get("2099-05-08") == DayType.IN_OFFICE
    assert remote.get().log.get("2099-05-08") == DayType.IN_OFFICE


def test_other_thread_write_during_external_apply_is_pushed():
    """外部更新の適用中でも、別スレッドの書き込みはリモートへ送ること"""
    store, local, remote = _make_store()

    def on_change(state):
        if store.is_applying_external:
            writer = threading.Thread(target=store.set, args=(DayType.PTO, date(2024, 5, 10)))
            writer.start()
            writer.join()

    store.subscribe(on_change)
    remote.push_external(_document(40, T3))

    assert store.is_applying_external is False
    assert store.entry_for(date(2024, 5, 10)) == DayType.PTO
    assert remote.get().log.get("2024-05-10") == DayType.PTO


def test_upsert_office_does_not_keep_caller_object():
    """渡したオブジェクトを後から変更しても保存済みの設定は変わらないこと"""
    store, _, remote = _make_store()
    office = OfficeLocation(name="HQ", latitude=35.0, longitude=139.0, id="hq")
    store.upsert_office(office)

    office.enabled = False
    office.radius_meters = 10

    assert store.config.offices[0] is not office
    assert store.config.offices[0].enabled is True
    assert store.config.offices[0].radius_meters == 250
    assert remote.get().config.offices[0].enabled is True
