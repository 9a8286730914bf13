"""Text and structured generation over the provider HTTP APIs.

Three providers are supported, all called with httpx:

- openai: Chat Completions with a JSON schema response format
- gemini: generateContent with a response schema
- bedrock: the Bedrock proxy invoke API with a bearer token file
"""

import json
import os
import re
from dataclasses import dataclass
from typing import Optional

import httpx
from pydantic import BaseModel

from ..config import (
    BEDROCK_MAX_TOKENS,
    BEDROCK_MODEL_ID,
    BEDROCK_PROXY_URL,
    BEDROCK_TOKEN_FILE,
    GEMINI_BASE_URL,
    GEMINI_MODEL,
    OPENAI_BASE_URL,
    OPENAI_MODEL,
    PROVIDERS,
    STRUCTURED_TEMPERATURE,
    TEXT_TEMPERATURE,
    get_llm_timeout,
)
from ..errors import ConfigurationError, InvalidInputError
from ..logging_config import get_logger

logger = get_logger(__name__, namespace='llm')

_JSON_FENCE_RE = re.compile(r'^```(?:json)?\s*|\s*```$', re.IGNORECASE)


class CalendarObject(BaseModel):
    """Structured output of the second generation call."""
    title: str
    summary: str
    bullets: list[str]


# JSON schema sent to providers that support constrained output
CALENDAR_OBJECT_SCHEMA = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "summary": {"type": "string"},
        "bullets": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["title", "summary", "bullets"],
    "additionalProperties": False,
}

# Gemini uses an OpenAPI subset without additionalProperties
GEMINI_CALENDAR_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "title": {"type": "STRING"},
        "summary": {"type": "STRING"},
        "bullets": {"type": "ARRAY", "items": {"type": "STRING"}},
    },
    "required": ["title", "summary", "bullets"],
}


@dataclass(frozen=True)
class ModelHandle:
    """Resolved provider, model and credentials for generation calls."""
    provider: str
    model: str
    api_key: str
    base_url: str


def get_bedrock_token() -> str | None:
    """Read JWT token from bedrock proxy config."""
    try:
        if BEDROCK_TOKEN_FILE.exists():
            token_data = json.loads(BEDROCK_TOKEN_FILE.read_text())
            return token_data.get("access_token")
    except Exception as e:
        logger.warning(f"Failed to read bedrock token: {e}")
    return None


def select_model(provider: str) -> ModelHandle:
    """Resolve a provider name to a model handle.

    Raises:
        InvalidInputError: Unknown provider name (400)
        ConfigurationError: Known provider without credentials (500)
    """
    if provider == 'openai':
        key = os.getenv("OPENAI_API_KEY")
        if not key:
            raise ConfigurationError("Missing OPENAI_API_KEY for OpenAI provider")
        return ModelHandle('openai', OPENAI_MODEL, key, OPENAI_BASE_URL)

    if provider == 'gemini':
        key = os.getenv("GOOGLE_GENERATIVE_AI_API_KEY") or os.getenv("GEMINI_API_KEY")
        if not key:
            raise ConfigurationError("Missing GOOGLE_GENERATIVE_AI_API_KEY for Gemini provider")
        return ModelHandle('gemini', GEMINI_MODEL, key, GEMINI_BASE_URL)

    if provider == 'bedrock':
        token = get_bedrock_token()
        if not token:
            raise ConfigurationError(
                f"Missing Bedrock token (expected access_token in {BEDROCK_TOKEN_FILE})"
            )
        return ModelHandle('bedrock', BEDROCK_MODEL_ID, token, BEDROCK_PROXY_URL)

    names = ', '.join(f"'{p}'" for p in PROVIDERS)
    raise InvalidInputError(f"Invalid provider. Use one of {names}")


async def _post_json(url: str, headers: dict, payload: dict, params: Optional[dict] = None) -> dict:
    async with httpx.AsyncClient(timeout=get_llm_timeout()) as client:
        response = await client.post(url, headers=headers, json=payload, params=params)
        response.raise_for_status()
        return response.json()


def _parse_json_text(text: str) -> dict:
    """Parse a JSON object from model text, tolerating code fences and prose."""
    cleaned = _JSON_FENCE_RE.sub('', text.strip())
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        start, end = cleaned.find('{'), cleaned.rfind('}')
        if start == -1 or end <= start:
            raise
        return json.loads(cleaned[start:end + 1])


async def _openai_chat(model: ModelHandle, prompt: str, temperature: float, schema: Optional[dict]) -> str:
    payload = {
        "model": model.model,
        "messages": [{"role": "user", "content": prompt}],
        "temperature": temperature,
    }
    if schema is not None:
        payload["response_format"] = {
            "type": "json_schema",
            "json_schema": {"name": "calendar_object", "strict": True, "schema": schema},
        }
    data = await _post_json(
        f"{model.base_url}/chat/completions",
        headers={
            "Authorization": f"Bearer {model.api_key}",
            "Content-Type": "application/json",
        },
        payload=payload,
    )
    return data["choices"][0]["message"]["content"] or ''


async def _gemini_generate(model: ModelHandle, prompt: str, temperature: float, schema: Optional[dict]) -> str:
    config = {"temperature": temperature}
    if schema is not None:
        config["responseMimeType"] = "application/json"
        config["responseSchema"] = schema
    data = await _post_json(
        f"{model.base_url}/models/{model.model}:generateContent",
        headers={
            "x-goog-api-key": model.api_key,
            "Content-Type": "application/json",
        },
        payload={
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": config,
        },
    )
    parts = data["candidates"][0]["content"]["parts"]
    return ''.join(part.get("text", '') for part in parts)


async def _bedrock_invoke(model: ModelHandle, prompt: str, temperature: float) -> str:
    data = await _post_json(
        f"{model.base_url}/model/{model.model}/invoke",
        headers={
            "Authorization": f"Bearer {model.api_key}",
            "Content-Type": "application/json",
        },
        payload={
            "anthropic_version": "bedrock-2023-05-31",
            "max_tokens": BEDROCK_MAX_TOKENS,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        },
    )
    return ''.join(block.get("text", '') for block in data["content"] if block.get("type", "text") == "text")


async def generate_text(model: ModelHandle, prompt: str, temperature: float = TEXT_TEMPERATURE) -> str:
    """Generate free text from a prompt.

    Raises:
        httpx.HTTPError: Transport failure, timeout or non-2xx response
    """
    if model.provider == 'openai':
        text = await _openai_chat(model, prompt, temperature, None)
    elif model.provider == 'gemini':
        text = await _gemini_generate(model, prompt, temperature, None)
    else:
        text = await _bedrock_invoke(model, prompt, temperature)
    logger.debug(f"{model.provider}/{model.model} returned {len(text)} chars")
    return text.strip()


async def generate_structured(
    model: ModelHandle,
    prompt: str,
    temperature: float = STRUCTURED_TEMPERATURE,
) -> CalendarObject:
    """Generate a CalendarObject from a prompt.

    Raises:
        httpx.HTTPError: Transport failure, timeout or non-2xx response
        pydantic.ValidationError: Output does not match {title, summary, bullets}
        json.JSONDecodeError: Output is not JSON
    """
    if model.provider == 'openai':
        text = await _openai_chat(model, prompt, temperature, CALENDAR_OBJECT_SCHEMA)
    elif model.provider == 'gemini':
        text = await _gemini_generate(model, prompt, temperature, GEMINI_CALENDAR_SCHEMA)
    else:
        schema_hint = json.dumps(CALENDAR_OBJECT_SCHEMA, ensure_ascii=False)
        text = await _bedrock_invoke(
            model,
            f"{prompt}\n\nRespond with only a JSON object matching this schema:\n{schema_hint}",
            temperature,
        )
    return CalendarObject.model_validate(_parse_json_text(text))
