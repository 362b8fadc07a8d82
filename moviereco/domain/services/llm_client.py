# moviereco/domain/services/llm_client.py

from __future__ import annotations
from enum import Enum
from typing import Any, Dict, List, Optional
import asyncio
import json
import logging
import re
from time import monotonic as _now

from openai import AsyncOpenAI

from moviereco.domain.errors import OutputValidationError, UpstreamUnavailableError
from moviereco.domain.services.constants import LLM_MAX_ATTEMPTS, LLM_RETRY_DELAY_S
from moviereco.domain.services.guardrails import harden_system_prompt

logger = logging.getLogger(__name__)


class ModelTier(str, Enum):
    FULL = "full"    # ranking, comparison, enrichment, preference summary
    MINI = "mini"    # query enhancement


# Reasoning-family models reject `temperature` and want `max_completion_tokens`
_REASONING_MODEL_RE = re.compile(r"^(gpt-5|o1|o3|o4)")

# Regex to strip code fences (``` or ```json) from LLM output
_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


def _strip_fences(s: str) -> str:
    """Remove ``` or ```json fences the LLM might add."""
    return _CODE_FENCE_RE.sub("", s).strip()


def parse_json(text: str) -> Dict[str, Any]:
    """
    Parse a JSON-mode completion into an untyped dict.
    Shape checks are the output guardrail's job; this only guarantees "a JSON object".
    """
    try:
        parsed = json.loads(_strip_fences(text))
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse JSON response: {text[:500]!r}")
        raise OutputValidationError(f"Invalid JSON response from LLM: {e}") from e
    if not isinstance(parsed, dict):
        raise OutputValidationError(f"Expected a JSON object from LLM, got {type(parsed).__name__}")
    return parsed


class ReasoningClient:
    """
    Thin wrapper over OpenAI chat completions with:
      - two model tiers (chosen by the caller, never inferred)
      - fixed-delay retry (empty completions count as failures)
      - a hardened system prompt on every call
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        *,
        model_full: str,
        model_mini: str,
        timeout_s: int = 30,
        max_attempts: int = LLM_MAX_ATTEMPTS,
        retry_delay_s: float = LLM_RETRY_DELAY_S,
    ):
        self.client = client
        self.models = {ModelTier.FULL: model_full, ModelTier.MINI: model_mini}
        self.timeout_s = timeout_s
        self.max_attempts = max(1, max_attempts)
        self.retry_delay_s = retry_delay_s

    def _request_kwargs(self, model: str, temperature: float, max_tokens: int, json_mode: bool) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "response_format": {"type": "json_object" if json_mode else "text"},
            "timeout": self.timeout_s,
        }
        if _REASONING_MODEL_RE.match(model):
            kwargs["max_completion_tokens"] = max_tokens
        else:
            kwargs["temperature"] = temperature
            kwargs["max_tokens"] = max_tokens
        return kwargs

    async def _call_llm(self, messages: List[dict], model: str, **kwargs) -> str:
        t0 = _now()
        resp = await self.client.chat.completions.create(model=model, messages=messages, **kwargs)
        dt = _now() - t0
        u = getattr(resp, "usage", None)
        logger.info(
            f"LLM call model={getattr(resp, 'model', model)} duration={dt:.3f}s "
            f"tokens(prompt={getattr(u, 'prompt_tokens', None)}, completion={getattr(u, 'completion_tokens', None)})"
        )
        content = resp.choices[0].message.content if resp.choices else None
        if not content or not content.strip():
            raise ValueError("Empty response from OpenAI")
        return content

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        tier: ModelTier,
        temperature: float,
        max_tokens: int,
        json_mode: bool = True,
    ) -> str:
        """
        Run one completion with retry. Raises UpstreamUnavailableError (chained to the
        last failure) once every attempt is exhausted.
        """
        model = self.models[tier]
        messages = [
            {"role": "system", "content": harden_system_prompt(system_prompt)},
            {"role": "user", "content": user_prompt},
        ]
        kwargs = self._request_kwargs(model, temperature, max_tokens, json_mode)

        last_err: Optional[Exception] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await self._call_llm(messages, model, **kwargs)
            except Exception as e:
                last_err = e
                logger.error(f"OpenAI attempt {attempt}/{self.max_attempts} failed (model={model}): {e}")
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.retry_delay_s)

        raise UpstreamUnavailableError(
            f"OpenAI request failed after {self.max_attempts} attempts: {last_err}"
        ) from last_err

    async def complete_json(self, system_prompt: str, user_prompt: str, **kwargs) -> Dict[str, Any]:
        """complete() in JSON mode, parsed into an untyped dict."""
        text = await self.complete(system_prompt, user_prompt, json_mode=True, **kwargs)
        return parse_json(text)
