import pytest

from kiosk_agent.domain.device.device_state import DeviceState, LastKnownState, decide


@pytest.mark.parametrize(
    "is_active, kiosk_mode, should_run, kiosk_enabled",
    [
        (True, True, True, True),
        (True, False, True, False),
        (False, True, False, False),
        (False, False, False, False),
    ],
)
def test_decide_follows_reachable_backend(is_active, kiosk_mode, should_run, kiosk_enabled):
    decision = decide(DeviceState(is_active=is_active, kiosk_mode=kiosk_mode), LastKnownState(local_lock=True))

    assert decision.reachable is True
    assert decision.should_run is should_run
    assert decision.kiosk_enabled is kiosk_enabled


def test_unreachable_backend_holds_last_known_state():
    last_known = LastKnownState()
    last_known.observe(DeviceState(is_active=True, kiosk_mode=False))

    decision = decide(None, last_known)

    assert decision.reachable is False
    assert decision.should_run is True
    assert decision.kiosk_enabled is False


def test_local_lock_wins_when_unreachable():
    decision = decide(None, LastKnownState(active=False, kiosk_mode=False, local_lock=True))

    assert decision.should_run is True
    assert decision.kiosk_enabled is True


def test_unreachable_without_history_stays_idle():
    decision = decide(None, LastKnownState())

    assert decision.should_run is False
    assert decision.kiosk_enabled is False


def test_from_row_treats_null_as_false():
    state = DeviceState.from_row({"is_active": None, "kiosk_mode": True})

    assert state.is_active is False
    assert state.locked is False


def test_observe_tracks_lock():
    last_known = LastKnownState()
    last_known.observe(DeviceState(is_active=True, kiosk_mode=True))
    assert last_known.local_lock is True

    last_known.observe(DeviceState(is_active=False, kiosk_mode=True))
    assert last_known.local_lock is False


def test_from_row_reads_boolean_strings():
    state = DeviceState.from_row({"is_active": "false", "kiosk_mode": " TRUE "})

    assert state.is_active is False
    assert state.kiosk_mode is True


@pytest.mark.parametrize("value", [1, 0, "yes", "", 1.0, [True]])
def test_from_row_rejects_non_boolean_flags(value):
    with pytest.raises(ValueError):
        DeviceState.from_row({"is_active": value, "kiosk_mode": False})
