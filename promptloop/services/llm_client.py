"""LLM completion client using the OpenAI SDK (OpenAI or OpenRouter)"""
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Type, Union

from openai import OpenAI
from pydantic import BaseModel, ValidationError

from promptloop.config import settings

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

ResponseFormat = Union[Type[BaseModel], Dict[str, Any], None]

@dataclass
class LLMResponse:
    """Response from an LLM completion"""

    text: str
    choices: List[str] = field(default_factory=list)
    tokens_used: int = 0
    latency_ms: int = 0
    model: str = ""
    parsed: Optional[BaseModel] = None

class LLMError(Exception):
    """Raised for any provider failure, timeout or unparseable structured reply"""

    def __init__(self, message: str, latency_ms: int = 0):
        super().__init__(message)
        self.latency_ms = latency_ms

def _is_schema_model(response_format: ResponseFormat) -> bool:
    return isinstance(response_format, type) and issubclass(response_format, BaseModel)

class LLMClient:
    """Chat completion client with optional schema-validated responses"""

    def __init__(
        self,
        provider: str,
        api_key: str,
        default_model: str,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        temperature: float = 0.2,
    ):
        self.provider = provider
        self.api_key = api_key
        self.default_model = default_model
        self.timeout = timeout
        self.temperature = temperature

        if provider == "openrouter":
            self.base_url = base_url or OPENROUTER_BASE_URL
        else:
            self.base_url = base_url  # None for OpenAI default

        self.client = OpenAI(api_key=api_key, base_url=self.base_url, timeout=timeout)

    @classmethod
    def from_settings(cls) -> "LLMClient":
        return cls(
            provider=settings.LLM_PROVIDER,
            api_key=settings.LLM_API_KEY,
            default_model=settings.DEFAULT_LLM_MODEL,
            base_url=settings.LLM_BASE_URL,
            timeout=settings.LLM_TIMEOUT_SECONDS,
        )

    def with_credentials(self, provider: Optional[str], api_key: Optional[str]) -> "LLMClient":
        """Client for a per-evaluator provider/token override; self when nothing is overridden"""
        if not api_key and not provider:
            return self
        provider = provider or self.provider
        return LLMClient(
            provider=provider,
            api_key=api_key or self.api_key,
            default_model=self.default_model,
            base_url=self.base_url if provider == self.provider else None,
            timeout=self.timeout,
            temperature=self.temperature,
        )

    def _response_format_payload(self, response_format: ResponseFormat) -> Optional[Dict[str, Any]]:
        if response_format is None:
            return None
        if _is_schema_model(response_format):
            return {
                "type": "json_schema",
                "json_schema": {
                    "name": response_format.__name__,
                    "schema": response_format.model_json_schema(),
                },
            }
        return response_format

    def generate(
        self,
        messages: List[Dict[str, Any]],
        response_format: ResponseFormat = None,
        model: Optional[str] = None,
        max_tokens: int = 2048,
    ) -> LLMResponse:
        """
        Execute a chat completion.

        When `response_format` is a pydantic model the request runs in
        JSON-schema mode and the reply is validated into `parsed`.
        Raises LLMError on provider failure or an invalid structured reply.
        """
        model = model or self.default_model
        start_time = time.time()

        request = {
            "model": model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": max_tokens,
        }
        format_payload = self._response_format_payload(response_format)
        if format_payload is not None:
            request["response_format"] = format_payload

        try:
            response = self.client.chat.completions.create(**request)
        except Exception as e:
            latency_ms = int((time.time() - start_time) * 1000)
            raise LLMError(f"LLM completion failed: {str(e)}", latency_ms=latency_ms) from e

        latency_ms = int((time.time() - start_time) * 1000)
        choices = [choice.message.content or "" for choice in response.choices]
        text = choices[0] if choices else ""
        tokens_used = response.usage.total_tokens if response.usage else 0

        parsed = None
        if _is_schema_model(response_format):
            try:
                parsed = response_format.model_validate_json(text)
            except ValidationError as e:
                raise LLMError(f"LLM returned an invalid {response_format.__name__}: {e}", latency_ms=latency_ms) from e

        logger.debug(f"LLM call model={model} tokens={tokens_used} latency_ms={latency_ms}")
        return LLMResponse(
            text=text,
            choices=choices,
            tokens_used=tokens_used,
            latency_ms=latency_ms,
            model=model,
            parsed=parsed,
        )

def optimization_client(base: Optional[LLMClient], company) -> Tuple[Optional[LLMClient], Optional[str]]:
    """Client and model used for insights/optimization, honoring a company's own credentials"""
    if base is None or company is None:
        return base, None
    client = base.with_credentials(company.optimization_provider, company.optimization_token)
    return client, company.optimization_model or None
