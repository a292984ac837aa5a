from typing import Optional


class BrokerageError(Exception):
    """Base class for errors raised by the commission and revenue share code."""


class CommissionValidationError(BrokerageError):
    """Transaction figures that cannot be split (non-positive amounts, bad percentages)."""


class DataIntegrityError(BrokerageError):
    """Stored agent or transaction data is inconsistent; needs operator attention."""


class SponsorCycleError(DataIntegrityError):
    def __init__(self, agent_id: int, repeated_agent_id: int):
        self.agent_id = agent_id
        self.repeated_agent_id = repeated_agent_id
        super().__init__(
            f"Sponsor chain of agent {agent_id} loops back to agent {repeated_agent_id}"
        )


class MissingAgentError(DataIntegrityError):
    def __init__(self, agent_id: Optional[int], context: str = ""):
        self.agent_id = agent_id
        message = f"Agent {agent_id} does not exist"
        if context:
            message = f"{message} ({context})"
        super().__init__(message)


class ConcurrentWriteError(BrokerageError):
    """A write kept losing serialization races; the whole operation may be retried."""
