from kiosk_agent.core.config import settings


class NatsChannels:
    EVENT = "event"
    COMMAND = "command"


class AgentEvents:
    KIOSK_STATUS = "kiosk_status"


class AgentCommands:
    SUPERVISOR = "supervisor"


class NatsSubjects:

    @staticmethod
    def agent_event(device_id: str, event: str) -> str:
        return (
            f"{settings.NATS_PREFIX}."
            f"{device_id}."
            f"{NatsChannels.EVENT}."
            f"{event}"
        )

    @staticmethod
    def agent_command(device_id: str, command: str) -> str:
        return (
            f"{settings.NATS_PREFIX}."
            f"{device_id}."
            f"{NatsChannels.COMMAND}."
            f"{command}"
        )
