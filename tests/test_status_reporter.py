import pytest

from kiosk_agent.core.nats_subjects import AgentCommands, AgentEvents, NatsSubjects
from kiosk_agent.core.status_reporter import StatusReporter
from kiosk_agent.domain.device.device_state import CycleDecision
from kiosk_agent.domain.device.enums import OrchestratorStatus


class FakeNats:
    def __init__(self, enabled=True):
        self.enabled = enabled
        self.published = []

    def is_enabled(self):
        return self.enabled

    async def publish(self, subject, payload):
        self.published.append((subject, payload))


def test_listeners_see_transitions_only():
    reporter = StatusReporter()
    seen = []
    reporter.add_listener(seen.append)

    reporter.update(OrchestratorStatus.STARTING.value)
    reporter.update(OrchestratorStatus.ACTIVE.value)
    reporter.update(OrchestratorStatus.ACTIVE.value)
    reporter.update(OrchestratorStatus.COMMUNICATION_FAILURE.value)

    assert seen == [OrchestratorStatus.ACTIVE.value, OrchestratorStatus.COMMUNICATION_FAILURE.value]


def test_failing_listener_does_not_break_others():
    reporter = StatusReporter()
    seen = []

    def broken(status):
        raise RuntimeError("ui gone")

    reporter.add_listener(broken)
    reporter.add_listener(seen.append)
    reporter.update(OrchestratorStatus.INACTIVE.value)

    assert seen == [OrchestratorStatus.INACTIVE.value]


@pytest.mark.asyncio
async def test_status_published_to_nats():
    nats = FakeNats()
    reporter = StatusReporter(device_id="dev-1", nats=nats)

    reporter.update(
        OrchestratorStatus.ACTIVE.value,
        CycleDecision(reachable=True, should_run=True, kiosk_enabled=True),
    )
    await reporter.flush()

    subject, event = nats.published[0]
    assert subject == NatsSubjects.agent_event("dev-1", AgentEvents.KIOSK_STATUS)
    assert event["event_type"] == "KIOSK_STATUS"
    assert event["payload"]["status"] == OrchestratorStatus.ACTIVE.value
    assert event["payload"]["kiosk_enabled"] is True


@pytest.mark.asyncio
async def test_nothing_published_when_nats_disabled():
    nats = FakeNats(enabled=False)
    reporter = StatusReporter(device_id="dev-1", nats=nats)

    reporter.update(OrchestratorStatus.ACTIVE.value)
    await reporter.flush()

    assert nats.published == []


def test_subjects_are_scoped_per_device():
    event = NatsSubjects.agent_event("dev-9", AgentEvents.KIOSK_STATUS)
    command = NatsSubjects.agent_command("dev-9", AgentCommands.SUPERVISOR)

    assert event.endswith(".dev-9.event.kiosk_status")
    assert command.endswith(".dev-9.command.supervisor")
