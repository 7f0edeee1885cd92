import pytest
from unittest.mock import MagicMock, patch

from main import add_office_from_text, run_tick
from services.office_store import OfficeStore
from services.state_repository import InMemoryStateRepository, SyncedFolderStateRepository


def _make_store():
    return OfficeStore(local=InMemoryStateRepository(), remote=InMemoryStateRepository())


def test_add_office_from_map_link():
    store = _make_store()
    with patch("builtins.print"):
        add_office_from_text(store, ["HQ", "https://maps.example/@35.6812,139.7671,17z"])

    office = store.config.offices[0]
    assert office.name == "HQ"
    assert (office.latitude, office.longitude) == (35.6812, 139.7671)


def test_add_office_joins_split_coordinates():
    """シェルで分割された "lat, lon" も受け付けること"""
    store = _make_store()
    with patch("builtins.print"):
        add_office_from_text(store, ["Annex", "35.0,", "139.0"])
    assert store.config.offices[0].latitude == 35.0


def test_add_office_invalid_text_exits():
    store = _make_store()
    with patch("builtins.print"), pytest.raises(SystemExit) as exc:
        add_office_from_text(store, ["HQ", "somewhere"])
    assert exc.value.code == 1
    assert store.config.offices == []


def test_run_tick_polls_synced_folder():
    remote = MagicMock(spec=SyncedFolderStateRepository)
    automaton = MagicMock()
    run_tick(remote, automaton)
    remote.poll.assert_called_once()
    automaton.tick.assert_called_once()
