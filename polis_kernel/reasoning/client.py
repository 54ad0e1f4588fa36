"""
Reasoning collaborator: the opaque completion call behind every decision.

The kernel only depends on the Reasoner protocol: given a system prompt, a
message history, a model id and an output schema, return raw JSON text or
None. OpenAICompatibleReasoner is the production backend for any endpoint
speaking the chat-completions dialect.
"""

import logging
from typing import Dict, List, Optional, Protocol, Type, TypeVar

import requests
from pydantic import BaseModel, ValidationError

from polis_kernel.errors import UpstreamFailure, ValidationFailed
from polis_kernel.models.scheduler import ReasonerConfig

logger = logging.getLogger(__name__)

Message = Dict[str, str]
ModelT = TypeVar("ModelT", bound=BaseModel)


class Reasoner(Protocol):
    """Protocol for the reasoning backend, pluggable."""

    def complete(
        self,
        system_prompt: str,
        messages: List[Message],
        model: str,
        output_schema: Type[BaseModel],
    ) -> Optional[str]: ...


class OpenAICompatibleReasoner:
    """Chat-completions client requesting a json_schema structured response."""

    def __init__(self, config: Optional[ReasonerConfig] = None, session: Optional[requests.Session] = None):
        self.config = config or ReasonerConfig()
        self._session = session or requests.Session()

    def complete(
        self,
        system_prompt: str,
        messages: List[Message],
        model: str,
        output_schema: Type[BaseModel],
    ) -> Optional[str]:
        payload = {
            "model": model or self.config.model,
            "messages": [{"role": "system", "content": system_prompt}, *messages],
            "temperature": self.config.temperature,
            "response_format": {
                "type": "json_schema",
                "json_schema": {
                    "name": "ResponseSchema",
                    "schema": output_schema.model_json_schema(),
                },
            },
            "stream": False,
        }
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"

        url = self.config.base_url.rstrip("/") + "/chat/completions"
        try:
            resp = self._session.post(
                url, json=payload, headers=headers, timeout=self.config.timeout_seconds
            )
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise UpstreamFailure(f"completion request failed: {e}") from e

        choices = data.get("choices") or []
        if not choices:
            logger.warning("Completion returned no choices (model=%s)", payload["model"])
            return None
        return (choices[0].get("message") or {}).get("content")


def parse_structured(raw: Optional[str], schema: Type[ModelT]) -> ModelT:
    """
    Validate raw completion text against a schema.

    Raises UpstreamFailure when there is nothing to parse and
    ValidationFailed when the text does not match the contract.
    """
    if raw is None or not raw.strip():
        raise UpstreamFailure("reasoning collaborator returned nothing")
    try:
        return schema.model_validate_json(_strip_fences(raw))
    except ValidationError as e:
        raise ValidationFailed(f"response does not match {schema.__name__}: {e}") from e


def _strip_fences(raw: str) -> str:
    text = raw.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()
