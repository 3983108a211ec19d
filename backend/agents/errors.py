class AgentError(Exception):
    """Base class for failures raised inside the agent layer."""


class ConfigurationError(AgentError):
    """No usable credential or provider for the LLM boundary."""


class AgentExecutionError(AgentError):
    """The LLM boundary call made by an agent failed."""

    def __init__(self, agent_name: str, cause: BaseException | None = None) -> None:
        self.agent_name = agent_name
        self.cause = cause
        detail = str(cause) if cause is not None and str(cause) else "Unknown error"
        super().__init__(f"{agent_name} failed: {detail}")


class ValidationError(AgentError):
    """Agent output that parsed but does not have the expected shape."""


class ParseError(AgentError):
    """Agent output that could not be parsed as JSON."""
