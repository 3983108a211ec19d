import asyncio
import json
import logging
import random
import re
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from agents.errors import AgentExecutionError, ConfigurationError, ParseError, ValidationError
from services import llm_api
from services.llm_api import ApiConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


class BaseAgent(ABC):
    """
    Shared contract for every agent: guarded LLM calls, tolerant JSON parsing,
    field validators, retry with backoff and execution timing.

    Agents hold configuration only; conversation data is always passed in.
    """

    def __init__(
        self,
        agent_name: str,
        version: str = "1.0.0",
        api_config: ApiConfig | None = None,
    ) -> None:
        self.agent_name = agent_name
        self.version = version
        self.api_config = api_config

    @property
    @abstractmethod
    def agent_type(self) -> str:
        ...

    def get_name(self) -> str:
        return self.agent_name

    def get_version(self) -> str:
        return self.version

    def get_info(self) -> dict:
        return {"name": self.agent_name, "version": self.version, "type": self.agent_type}

    # ------------------------------------------------------------------
    # LLM boundary
    # ------------------------------------------------------------------

    async def invoke(
        self,
        prompt: str,
        system_prompt: str,
        api_config: ApiConfig | None = None,
    ) -> str:
        config = api_config or self.api_config or llm_api.get_current_api_config()
        if not llm_api.has_credential(config):
            raise ConfigurationError(
                f"No API key set for {config.name}. Please configure it in the settings."
            )
        try:
            return await llm_api.call_llm_api(prompt, system_prompt, config)
        except ConfigurationError:
            raise
        except Exception as exc:
            logger.error("Error in %s: %s", self.agent_name, exc)
            raise AgentExecutionError(self.agent_name, exc) from exc

    async def generate(self, prompt: str, timeout_ms: int | None = None) -> str:
        try:
            return await llm_api.generate_response(
                prompt, api_config=self.api_config, timeout_ms=timeout_ms
            )
        except ConfigurationError:
            raise
        except Exception as exc:
            logger.error("Error in %s: %s", self.agent_name, exc)
            raise AgentExecutionError(self.agent_name, exc) from exc

    # ------------------------------------------------------------------
    # Response parsing
    # ------------------------------------------------------------------

    def extract_json(self, raw: str | None) -> Any:
        """Parse raw model output as JSON, unwrapping a Markdown code fence first."""
        if not raw or not isinstance(raw, str):
            raise ParseError(f"{self.agent_name} received an empty response")

        text = raw.strip()
        if "```" in text:
            match = _CODE_FENCE.search(text)
            if match:
                text = match.group(1).strip()
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise ParseError(f"{self.agent_name} could not parse JSON response: {exc}") from exc

    def parse_json_response(self, raw: str | None, fallback: T) -> Any | T:
        try:
            return self.extract_json(raw)
        except ParseError as exc:
            logger.error("Error parsing JSON response in %s: %s", self.agent_name, exc)
            return fallback

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    def require_fields(self, obj: Any, fields: list[str], context: str = "object") -> None:
        if not isinstance(obj, dict):
            raise ValidationError(f"Invalid {context}: expected an object, got {type(obj).__name__}")
        missing = [f for f in fields if obj.get(f) is None]
        if missing:
            raise ValidationError(
                f"Invalid {context}: missing required fields: {', '.join(missing)}"
            )

    def require_array(self, value: Any, field_name: str, context: str = "object") -> None:
        if not isinstance(value, list):
            raise ValidationError(f"Invalid {context}: {field_name} must be array")

    def require_number_in_range(
        self,
        value: Any,
        field_name: str,
        minimum: float = 0,
        maximum: float = 1,
        context: str = "object",
    ) -> None:
        if (
            isinstance(value, bool)
            or not isinstance(value, (int, float))
            or not minimum <= value <= maximum
        ):
            raise ValidationError(
                f"Invalid {context}: {field_name} must be number between {minimum} and {maximum}"
            )

    def require_string(self, value: Any, field_name: str, context: str = "object") -> None:
        if not isinstance(value, str):
            raise ValidationError(f"Invalid {context}: {field_name} must be string")

    def require_boolean(self, value: Any, field_name: str, context: str = "object") -> None:
        if not isinstance(value, bool):
            raise ValidationError(f"Invalid {context}: {field_name} must be boolean")

    # ------------------------------------------------------------------
    # Execution helpers
    # ------------------------------------------------------------------

    async def measure_execution_time(
        self,
        operation: Callable[[], Awaitable[T]],
        operation_name: str,
    ) -> tuple[T, int]:
        logger.info("[%s] %s started", self.agent_name, operation_name)
        start = time.monotonic()
        try:
            result = await operation()
        except Exception as exc:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.error(
                "[%s] %s failed after %dms: %s", self.agent_name, operation_name, elapsed_ms, exc
            )
            raise
        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.info("[%s] %s completed in %dms", self.agent_name, operation_name, elapsed_ms)
        return result, elapsed_ms

    async def retry_with_backoff(
        self,
        operation: Callable[[], Awaitable[T]],
        max_retries: int = 3,
        base_delay_ms: int = 1000,
    ) -> T:
        """
        Await operation() up to max_retries times. Failed attempt n sleeps
        base_delay_ms * 2**n plus up to base_delay_ms of jitter; the last
        error is re-raised once attempts run out.
        """
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")

        for attempt in range(max_retries):
            try:
                return await operation()
            except Exception as exc:
                if attempt == max_retries - 1:
                    raise
                delay_ms = base_delay_ms * 2**attempt + random.uniform(0, base_delay_ms)
                logger.info(
                    "[%s] Retry attempt %d/%d in %.0fms after error: %s",
                    self.agent_name,
                    attempt + 1,
                    max_retries,
                    delay_ms,
                    exc,
                )
                await asyncio.sleep(delay_ms / 1000)
        raise AssertionError("unreachable")
