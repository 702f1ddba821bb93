import pytest

from conftest import KIOSK_APP, OWNER_PACKAGE, FakeLockdown
from kiosk_agent.application.policy_enforcer import PolicyEnforcer


@pytest.mark.asyncio
async def test_apply_locks_to_app_and_owner(policy, lockdown):
    result = await policy.apply(KIOSK_APP)

    assert result.changed and result.ok
    assert lockdown.lock_task_packages == [KIOSK_APP, OWNER_PACKAGE]
    assert lockdown.status_bar_disabled is True
    assert lockdown.keyguard_disabled is True
    assert policy.applied_app == KIOSK_APP


@pytest.mark.asyncio
async def test_apply_twice_is_a_noop(policy, lockdown):
    await policy.apply(KIOSK_APP)
    calls = list(lockdown.calls)

    result = await policy.apply(KIOSK_APP)

    assert result.changed is False
    assert lockdown.calls == calls


@pytest.mark.asyncio
async def test_first_clear_always_runs_then_is_idempotent(policy, lockdown):
    lockdown.lock_task_packages = ["left.over.app"]

    first = await policy.clear()
    calls = list(lockdown.calls)
    second = await policy.clear()

    assert first.changed is True
    assert lockdown.locked is False
    assert second.changed is False
    assert lockdown.calls == calls


@pytest.mark.asyncio
async def test_incapable_device_is_left_untouched(ui_executor):
    lockdown = FakeLockdown(capable=False)
    policy = PolicyEnforcer(lockdown, ui_executor, owner_package=OWNER_PACKAGE)

    applied = await policy.apply(KIOSK_APP)
    cleared = await policy.clear()

    assert applied.capable is False and cleared.capable is False
    assert lockdown.calls == ["is_lockdown_capable", "is_lockdown_capable"]
    assert policy.applied_app is None


@pytest.mark.asyncio
async def test_failing_sub_step_does_not_block_others(policy, lockdown):
    lockdown.fail_steps = {"status_bar"}

    result = await policy.apply(KIOSK_APP)

    assert result.ok is False
    assert result.steps == {"lock_task_packages": True, "status_bar": False, "keyguard": True}
    assert lockdown.keyguard_disabled is True
    assert policy.applied_app == KIOSK_APP


@pytest.mark.asyncio
async def test_failed_task_restriction_is_retried(policy, lockdown):
    lockdown.fail_steps = {"lock_task_packages"}
    await policy.apply(KIOSK_APP)
    assert policy.applied_app is None

    lockdown.fail_steps = set()
    result = await policy.apply(KIOSK_APP)

    assert result.changed is True
    assert lockdown.lock_task_packages == [KIOSK_APP, OWNER_PACKAGE]


@pytest.mark.asyncio
async def test_apply_after_clear_locks_again(policy, lockdown):
    await policy.apply(KIOSK_APP)
    await policy.clear()
    await policy.apply(KIOSK_APP)

    assert lockdown.locked is True


@pytest.mark.asyncio
async def test_apply_runs_again_after_capability_returns(policy, lockdown):
    await policy.apply(KIOSK_APP)

    lockdown.capable = False
    await policy.clear()
    assert policy.applied_app is None

    lockdown.capable = True
    result = await policy.apply(KIOSK_APP)

    assert result.changed is True
    assert lockdown.lock_task_packages == [KIOSK_APP, OWNER_PACKAGE]
