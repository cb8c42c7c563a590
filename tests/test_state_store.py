from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

from alert_monitor.state import ApiStatus, EndpointState, NotificationStateStore


def test_first_load_creates_zero_state(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    store = NotificationStateStore(path)

    state = store.load("payments")

    assert state == EndpointState()
    doc = json.loads(path.read_text(encoding="utf-8"))
    assert doc["endpoints"]["payments"] == {
        "mutePayment": False,
        "mutePaymentUntil": None,
        "muteApi": False,
        "lastApiStatus": "success",
        "lastFailureMessage": "",
        "processedPaymentIds": [],
        "mutedPaymentIds": [],
    }


def test_save_and_reload_round_trip(tmp_path: Path) -> None:
    store = NotificationStateStore(tmp_path / "state.json")
    until = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
    state = EndpointState(
        mute_payment=True,
        mute_payment_until=until,
        last_api_status=ApiStatus.FAILURE,
        last_failure_message="HTTP 500",
        processed_payment_ids=["1", "2"],
        muted_payment_ids=["2"],
    )
    store.save("payments", state)

    loaded = NotificationStateStore(tmp_path / "state.json").load("payments")
    assert loaded == state
    assert loaded.mute_payment_until == until


def test_tags_do_not_clobber_each_other(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    a = NotificationStateStore(path)
    b = NotificationStateStore(path)

    a.save("a", EndpointState(mute_api=True))
    b.save("b", EndpointState(processed_payment_ids=["x"]))

    store = NotificationStateStore(path)
    assert store.load("a").mute_api is True
    assert store.load("b").processed_payment_ids == ["x"]
    assert sorted(store.tags()) == ["a", "b"]


def test_delete(tmp_path: Path) -> None:
    store = NotificationStateStore(tmp_path / "state.json")
    store.save("a", EndpointState())
    assert store.delete("a") is True
    assert store.delete("a") is False
    assert store.tags() == []


def test_corrupt_file_yields_defaults(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    path.write_text("][", encoding="utf-8")
    assert NotificationStateStore(path).load("a") == EndpointState()


def test_corrupt_record_yields_defaults(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    path.write_text(json.dumps({"endpoints": {"a": {"lastApiStatus": "exploded"}}}), encoding="utf-8")
    assert NotificationStateStore(path).load("a") == EndpointState()


def test_unrelated_top_level_keys_survive_saves(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    path.write_text(json.dumps({"mutePayment": True, "endpoints": {}}), encoding="utf-8")
    store = NotificationStateStore(path)
    store.save("a", EndpointState(processed_payment_ids=["p1"]))

    doc = json.loads(path.read_text(encoding="utf-8"))
    assert doc["mutePayment"] is True
    assert doc["endpoints"]["a"]["processedPaymentIds"] == ["p1"]


def test_state_model_helpers() -> None:
    state = EndpointState.model_validate(
        {"mutePayment": True, "mutePaymentUntil": "2024-05-01T12:00:00", "mutedPaymentIds": [1, "1", 2]}
    )
    assert state.muted_payment_ids == ["1", "2"]
    assert state.mute_payment_until.tzinfo is not None
    assert state.mute_expired(datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc))
    assert not state.mute_expired(datetime(2024, 5, 1, 11, 59, tzinfo=timezone.utc))

    state.add_processed(["a", "b", "a"])
    assert state.processed_payment_ids == ["a", "b"]

    state.clear_mute()
    assert (state.mute_payment, state.mute_payment_until, state.muted_payment_ids) == (False, None, [])
