"""
LLM boundary used by the agents.

Two entry points:
  call_llm_api(prompt, system_prompt, api_config)  -- full chat call
  generate_response(prompt)                        -- single-prompt variant

The active provider is resolved synchronously from the environment by
get_current_api_config(); a key is never looked up lazily by the agents.
"""
import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from langchain_anthropic import ChatAnthropic
from langchain_core.messages import HumanMessage, SystemMessage
from openai import AsyncOpenAI
from pydantic import BaseModel, ConfigDict

from agents.errors import ConfigurationError

load_dotenv(Path(__file__).parent.parent / ".env")

logger = logging.getLogger(__name__)

_MAX_TOKENS = 4096
_TEMPERATURE = 0.2
_DEFAULT_SYSTEM_PROMPT = (
    "You are a precise assistant for building web forms. "
    "When asked for JSON, return only valid JSON with no commentary."
)


class ApiConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    base_url: str
    api_key: str = ""
    model: str
    description: str = ""
    is_chat_completion_compatible: bool = True
    # Hosted key identifier; the key itself comes from <SYSTEM_KEY>_API_KEY
    system_key: str | None = None
    supports_temperature: bool = True


LLM_APIS: list[ApiConfig] = [
    ApiConfig(
        name="OpenAI-system",
        base_url="https://api.openai.com/v1",
        model="gpt-4.1",
        description="OpenAI's gpt-4.1 model using the hosted key",
        system_key="openai",
    ),
    ApiConfig(
        name="OpenAI",
        base_url="https://api.openai.com/v1",
        model="gpt-4.1",
        description="OpenAI's gpt-4.1 model (provide your own API key)",
    ),
    ApiConfig(
        name="Anthropic",
        base_url="https://api.anthropic.com/v1",
        model="claude-sonnet-4-6",
        description="Anthropic's claude-sonnet-4-6 model (provide your own API key)",
    ),
    ApiConfig(
        name="Mistral",
        base_url="https://api.mistral.ai/v1",
        model="mistral-large-latest",
        description="Mistral's mistral-large-latest model (provide your own API key)",
    ),
    ApiConfig(
        name="Gemini",
        base_url="https://generativelanguage.googleapis.com/v1beta",
        model="gemini-2.0-flash",
        description="Google's gemini-2.0-flash model (not chat-completion compatible)",
        is_chat_completion_compatible=False,
    ),
]


def get_current_api_config() -> ApiConfig:
    """Resolve the provider selected by LLM_PROVIDER, with key/model overrides from the environment."""
    selected = os.getenv("LLM_PROVIDER", "Anthropic")
    config = next((api for api in LLM_APIS if api.name == selected), None)
    if config is None:
        logger.warning("Unknown LLM_PROVIDER %r, falling back to Anthropic", selected)
        config = next(api for api in LLM_APIS if api.name == "Anthropic")

    overrides = {}
    api_key = os.getenv("LLM_API_KEY") or (
        os.getenv("ANTHROPIC_API_KEY", "") if config.name.startswith("Anthropic") else ""
    )
    if api_key:
        overrides["api_key"] = api_key
    if os.getenv("LLM_MODEL"):
        overrides["model"] = os.getenv("LLM_MODEL")
    if os.getenv("LLM_BASE_URL"):
        overrides["base_url"] = os.getenv("LLM_BASE_URL")
    return config.model_copy(update=overrides) if overrides else config


def has_credential(api_config: ApiConfig) -> bool:
    return bool(api_config.api_key or api_config.system_key)


def _resolve_key(api_config: ApiConfig) -> str:
    if api_config.api_key:
        return api_config.api_key
    if api_config.system_key:
        key = os.getenv(f"{api_config.system_key.upper()}_API_KEY", "")
        if key:
            return key
    raise ConfigurationError(
        f"No API key set for {api_config.name}. Please configure it in the settings."
    )


def _content_text(content) -> str:
    if isinstance(content, str):
        return content
    # Anthropic may return a list of content blocks
    return "".join(
        block.get("text", "") if isinstance(block, dict) else str(block)
        for block in content
    )


async def call_llm_api(
    prompt: str,
    system_prompt: str,
    api_config: ApiConfig,
    timeout_ms: int | None = None,
) -> str:
    """Send one system + user exchange to the configured provider and return the raw text."""
    api_key = _resolve_key(api_config)
    timeout = timeout_ms / 1000 if timeout_ms else None

    if not api_config.is_chat_completion_compatible:
        raise ConfigurationError(
            f"{api_config.name} is not chat-completion compatible and cannot be used by the agents."
        )

    if api_config.name.startswith("Anthropic"):
        kwargs = {"model": api_config.model, "api_key": api_key, "max_tokens": _MAX_TOKENS}
        if api_config.supports_temperature:
            kwargs["temperature"] = _TEMPERATURE
        if timeout:
            kwargs["timeout"] = timeout
        llm = ChatAnthropic(**kwargs)
        response = await llm.ainvoke(
            [
                SystemMessage(content=system_prompt),
                HumanMessage(content=prompt),
            ]
        )
        text = _content_text(response.content)
    else:
        kwargs = {
            "model": api_config.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
        }
        if api_config.supports_temperature:
            kwargs["temperature"] = _TEMPERATURE
        async with AsyncOpenAI(
            api_key=api_key, base_url=api_config.base_url, timeout=timeout
        ) as client:
            completion = await client.chat.completions.create(**kwargs)
        text = completion.choices[0].message.content if completion.choices else None

    if not text:
        raise RuntimeError(f"No content returned from {api_config.name}")
    return text.strip()


async def generate_response(
    prompt: str,
    api_config: ApiConfig | None = None,
    timeout_ms: int | None = None,
) -> str:
    """Single-prompt variant of call_llm_api using a generic system prompt."""
    config = api_config or get_current_api_config()
    if not has_credential(config):
        raise ConfigurationError(
            f"No API key set for {config.name}. Please configure it in the settings."
        )
    return await call_llm_api(prompt, _DEFAULT_SYSTEM_PROMPT, config, timeout_ms=timeout_ms)
