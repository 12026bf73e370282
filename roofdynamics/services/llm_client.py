"""OpenAI chat completions client."""

import hashlib
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from roofdynamics.exceptions import ConfigurationError, ContractViolationError, UpstreamError

logger = logging.getLogger(__name__)


@dataclass
class InferenceConfig:
    """Connection settings for the inference API."""

    api_key: Optional[str]
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4o-mini"
    temperature: float = 0.2
    max_tokens: int = 4000
    timeout: float = 120.0


@dataclass
class Completion:
    """Text content of a completion plus what the API reported about it."""

    content: str
    model: str
    usage: Dict[str, Any] = field(default_factory=dict)


class InferenceClient:
    """Client for an OpenAI-compatible chat completions endpoint.

    Failures are not retried: a non-2xx answer or a malformed body is
    raised to the caller, which ends the run.
    """

    def __init__(self, config: InferenceConfig, http_client: Optional[httpx.Client] = None):
        """Initialize the client. ``http_client`` is used as-is when given."""
        self.config = config
        self._http_client = http_client

    def _hash_text(self, text: str) -> str:
        """Hash text using SHA256."""
        return hashlib.sha256(text.encode()).hexdigest()

    def _build_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

    def chat_completion(
        self,
        messages: List[Dict[str, str]],
        json_mode: bool = False,
    ) -> Completion:
        """
        Call the chat completions API.

        Args:
            messages: List of message dicts with 'role' and 'content'
            json_mode: Whether to request a JSON object response

        Returns:
            Completion with the message content, model and token usage

        Raises:
            ConfigurationError: If no API key is configured
            UpstreamError: On a non-2xx response or transport failure
            ContractViolationError: If the body has no message content
        """
        if not self.config.api_key:
            raise ConfigurationError("OpenAI API key not configured")

        payload = {
            "model": self.config.model,
            "messages": messages,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        request_hash = self._hash_text(json.dumps(payload, sort_keys=True))
        logger.info(f"LLM request to {self.config.model}, hash: {request_hash[:16]}")

        url = f"{self.config.base_url.rstrip('/')}/chat/completions"
        try:
            if self._http_client is not None:
                response = self._http_client.post(url, headers=self._build_headers(), json=payload)
            else:
                with httpx.Client(timeout=self.config.timeout) as client:
                    response = client.post(url, headers=self._build_headers(), json=payload)
        except httpx.HTTPError as e:
            raise UpstreamError(f"OpenAI API request failed: {e}") from e

        if response.is_error:
            logger.error(f"OpenAI API error: {response.status_code} {response.text}")
            raise UpstreamError(
                f"OpenAI API error: {response.status_code} {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            result = response.json()
            content = result["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            raise ContractViolationError("Invalid response from OpenAI API")

        if not isinstance(content, str):
            raise ContractViolationError("Invalid response from OpenAI API")

        response_hash = self._hash_text(content)
        logger.info(f"LLM response hash: {response_hash[:16]}")

        return Completion(
            content=content,
            model=result.get("model") or self.config.model,
            usage=result.get("usage") or {},
        )
