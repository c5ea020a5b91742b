"""Exception taxonomy for the social dynamics engine."""

from __future__ import annotations


class SocialDynamicsError(Exception):
    pass


class DuplicateAgentError(SocialDynamicsError):
    def __init__(self, agent_id: str):
        super().__init__(f"agent {agent_id!r} is already registered")
        self.agent_id = agent_id


class UnknownAgentError(SocialDynamicsError, KeyError):
    def __init__(self, agent_id: str):
        super().__init__(f"agent {agent_id!r} is not registered")
        self.agent_id = agent_id

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])


class InvalidGroupSizeError(SocialDynamicsError):
    """Raised when a gang proposal is built outside the configured size bounds.

    Formation never produces such a group; seeing this means a bug in the
    candidate search, not bad input.
    """

    def __init__(self, size: int, min_size: int, max_size: int):
        super().__init__(f"group of {size} outside bounds [{min_size}, {max_size}]")
        self.size = size


class ActionStatusError(SocialDynamicsError):
    def __init__(self, status: str):
        super().__init__(f"action already {status}")
        self.status = status
