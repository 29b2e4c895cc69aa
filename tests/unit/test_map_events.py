from unittest.mock import MagicMock, patch

import pytest

import visual_app
from pickup_zones import ZoneKey
from selection_controller import BackgroundClicked, ZoneClicked
from visual_app import map_selection_events

KEY = ZoneKey.from_coords(40.7128, -74.006)
KNOWN = {str(KEY): KEY}


def _state(objects):
    return {"selection": {"indices": {}, "objects": objects}}


def test_zone_pick_emits_zone_clicked():
    events, seen = map_selection_events(_state({"pickup-zones": [{"key": str(KEY)}]}), None, KNOWN)
    assert events == [ZoneClicked(KEY)]
    assert seen == ("zone", str(KEY))


def test_unchanged_selection_emits_nothing():
    seen = ("zone", str(KEY))
    events, new_seen = map_selection_events(_state({"pickup-zones": [{"key": str(KEY)}]}), seen, KNOWN)
    assert events == []
    assert new_seen == seen


def test_selection_cleared_is_background_click():
    events, seen = map_selection_events(_state({}), ("zone", str(KEY)), KNOWN)
    assert events == [BackgroundClicked()]
    assert seen is None


def test_nothing_selected_on_first_run_emits_nothing():
    assert map_selection_events(None, None, KNOWN) == ([], None)
    assert map_selection_events(_state({}), None, KNOWN) == ([], None)


def test_flow_layer_pick_is_ignored():
    seen = ("zone", str(KEY))
    events, new_seen = map_selection_events(_state({"flow-lines": [{"tooltip": "65.0%"}]}), seen, KNOWN)
    assert events == []
    assert new_seen == seen


def test_unknown_zone_key_is_ignored(caplog):
    events, seen = map_selection_events(_state({"pickup-zones": [{"key": "1.000000_2.000000"}]}), None, KNOWN)
    assert events == []
    assert seen == ("zone", "1.000000_2.000000")
    assert "does not match a pickup zone" in caplog.text


@pytest.fixture
def fake_st(multi_zone_csv):
    st = MagicMock()
    st.session_state = {}
    with patch.object(visual_app, "st", st):
        visual_app.get_controller().load(multi_zone_csv)
        yield st


def _pick(fake_st, key):
    fake_st.session_state[visual_app.map_widget_key()] = _state({"pickup-zones": [{"key": str(key)}]})
    visual_app._on_map_select()


def test_clear_selection_gives_the_map_a_fresh_widget_key(fake_st):
    before = visual_app.map_widget_key()
    _pick(fake_st, KEY)
    visual_app._clear_selection()

    assert visual_app.map_widget_key() != before
    assert fake_st.session_state["map_selection_seen"] is None
    assert visual_app.get_controller().state.selection.selected_key is None


def test_same_zone_can_be_picked_again_after_clear(fake_st):
    controller = visual_app.get_controller()
    _pick(fake_st, KEY)
    assert controller.state.selection.selected_key == KEY

    visual_app._clear_selection()
    _pick(fake_st, KEY)
    assert controller.state.selection.selected_key == KEY
    assert controller.renderer.info_panel.visible


def test_map_select_before_load_is_ignored():
    st = MagicMock()
    st.session_state = {}
    with patch.object(visual_app, "st", st):
        visual_app._on_map_select()
    assert st.session_state["map_selection_seen"] is None
