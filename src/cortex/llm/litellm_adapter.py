"""LiteLLM adapter - one provider for chat, embedding, speech and vision roles."""

import base64
import json
import mimetypes
import os
import re
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import litellm
import yaml
from litellm import acompletion, aembedding, atranscription

from cortex.core.config import Settings, get_settings
from cortex.core.errors import CollaboratorError, ContextOverflowError
from cortex.core.logging import get_logger
from cortex.core.types import MessageDict, ToolSpec
from cortex.llm.base import GenerationResult

logger = get_logger("llm.litellm_adapter")

# Disable LiteLLM's verbose logging
litellm.suppress_debug_info = True

DEFAULT_MODELS_FILE = Path(__file__).parent.parent / "configs" / "models.yaml"

ROLES = ("chat", "vision", "transcription", "embedding")

CAPTION_MAX_TOKENS = 150

_STREAM_TOKEN = re.compile(r"\S+\s*")


class ModelConfig:
    """Model configuration from YAML."""

    def __init__(self, data: dict[str, Any]):
        self.model_id = data["model_id"]
        self.litellm_name = data["litellm_name"]
        self.max_context = data.get("max_context", 4096)
        self.supports_tools = data.get("supports_tools", True)
        self.temperature = data.get("temperature", 0.7)
        self.auth_env = data.get("auth_env")
        self.base_url_env = data.get("base_url_env")

    @property
    def api_key(self) -> str | None:
        if not self.auth_env:
            return None
        return os.getenv(self.auth_env)

    @property
    def base_url(self) -> str | None:
        if not self.base_url_env:
            return None
        return os.getenv(self.base_url_env)

    @property
    def is_available(self) -> bool:
        """Check if model is available (has required credentials)."""
        if self.auth_env and not self.api_key:
            return False
        if self.base_url_env and not self.base_url:
            return False
        return True

    def call_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {"model": self.litellm_name}
        if self.api_key:
            params["api_key"] = self.api_key
        if self.base_url:
            params["api_base"] = self.base_url
        return params


class ModelRegistry:
    """Model definitions plus the role -> model mapping, loaded from YAML."""

    def __init__(self, config_path: Path | str):
        with open(config_path) as f:
            data = yaml.safe_load(f)

        self.models = {m["model_id"]: ModelConfig(m) for m in data["models"]}
        self.roles: dict[str, str] = data.get("roles", {})

        unknown = {role: mid for role, mid in self.roles.items() if mid not in self.models}
        if unknown:
            raise ValueError(f"Roles reference unknown models: {unknown}")

        logger.info(f"Loaded {len(self.models)} models from registry")

    def get(self, model_id: str) -> ModelConfig | None:
        return self.models.get(model_id)

    def for_role(self, role: str) -> ModelConfig:
        """Resolve the model assigned to a role."""
        model_id = self.roles.get(role)
        if model_id is None:
            raise ValueError(f"No model configured for role '{role}'")
        model = self.models[model_id]
        if not model.is_available:
            raise ValueError(f"Model {model_id} not available (missing credentials/config)")
        return model


class LiteLLMProvider:
    """Text generation, embedding, transcription and captioning via LiteLLM."""

    def __init__(self, registry: ModelRegistry):
        self.registry = registry

    async def generate(
        self,
        messages: list[MessageDict],
        max_tokens: int = 300,
        tools: list[ToolSpec] | None = None,
    ) -> GenerationResult:
        model = self.registry.for_role("chat")
        params = model.call_params()
        params.update(messages=messages, max_tokens=max_tokens, temperature=model.temperature)
        if tools and model.supports_tools:
            params["tools"] = tools

        logger.debug(
            f"LiteLLM request: model={model.litellm_name}, "
            f"messages={len(messages)}, tools={len(tools) if tools else 0}"
        )

        try:
            response = await acompletion(**params)
        except litellm.ContextWindowExceededError as e:
            raise ContextOverflowError(str(e)) from e

        message = response.choices[0].message
        usage = getattr(response, "usage", None)
        result = GenerationResult(
            content=message.content or "",
            model=response.model or model.litellm_name,
            tool_calls=self._parse_tool_calls(message),
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )
        logger.debug(
            f"LiteLLM response: model={result.model}, "
            f"tokens={result.input_tokens}+{result.output_tokens}"
        )
        return result

    @staticmethod
    def _parse_tool_calls(message: Any) -> list[dict] | None:
        raw_calls = getattr(message, "tool_calls", None)
        if not raw_calls:
            return None

        tool_calls = []
        for tc in raw_calls:
            try:
                args = tc.function.arguments
                if isinstance(args, str):
                    args = json.loads(args) if args else {}
                tool_calls.append({"id": tc.id, "name": tc.function.name, "input": args})
            except (AttributeError, json.JSONDecodeError) as e:
                logger.warning(f"Failed to parse tool call: {e}")
        return tool_calls or None

    async def stream(
        self, messages: list[MessageDict], max_tokens: int = 300
    ) -> AsyncIterator[str]:
        model = self.registry.for_role("chat")
        params = model.call_params()
        params.update(
            messages=messages,
            max_tokens=max_tokens,
            temperature=model.temperature,
            stream=True,
        )

        try:
            response = await acompletion(**params)
        except litellm.ContextWindowExceededError as e:
            raise ContextOverflowError(str(e)) from e

        async for chunk in response:
            delta = chunk.choices[0].delta.content
            if delta:
                yield delta

    async def reset(self) -> None:
        # Stateless HTTP backends keep nothing between calls
        logger.debug("Generator reset")

    async def embed(self, text: str) -> list[float]:
        model = self.registry.for_role("embedding")
        response = await aembedding(input=[text], **model.call_params())
        item = response.data[0]
        vector = item["embedding"] if isinstance(item, dict) else item.embedding
        return list(vector)

    async def transcribe(self, audio_path: Path) -> str:
        model = self.registry.for_role("transcription")
        with open(audio_path, "rb") as audio:
            response = await atranscription(file=audio, **model.call_params())
        text = getattr(response, "text", None)
        if text is None:
            raise CollaboratorError(f"No transcript returned for {audio_path}")
        return text.strip()

    async def stream_transcription(self, audio_path: Path) -> AsyncIterator[str]:
        """Yield the transcript word by word."""
        text = await self.transcribe(audio_path)
        for token in _STREAM_TOKEN.findall(text):
            yield token

    async def caption(self, image_path: Path, prompt: str) -> str:
        model = self.registry.for_role("vision")
        media_type = mimetypes.guess_type(str(image_path))[0] or "image/jpeg"
        data = base64.b64encode(Path(image_path).read_bytes()).decode("ascii")

        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:{media_type};base64,{data}"},
                    },
                ],
            }
        ]
        params = model.call_params()
        params.update(messages=messages, max_tokens=CAPTION_MAX_TOKENS)
        response = await acompletion(**params)
        content = response.choices[0].message.content
        if not content:
            raise CollaboratorError(f"No caption returned for {image_path}")
        return content.strip()


def create_provider(settings: Settings | None = None) -> LiteLLMProvider:
    """Create a provider from the configured (or bundled) model registry."""
    settings = settings or get_settings()
    config_path = settings.models_file or DEFAULT_MODELS_FILE

    if not Path(config_path).exists():
        raise FileNotFoundError(f"Model registry not found at {config_path}")

    return LiteLLMProvider(ModelRegistry(config_path))
