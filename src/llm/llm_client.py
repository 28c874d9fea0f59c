import json
import logging
import os
import re
from typing import Any, Optional, Union

from pydantic import ValidationError

from llm.providers.base import LLMProvider
from llm.prompts import SYSTEM_PROMPT
from llm.schemas import CandidateReply, ModificationPlan, Unparseable

logger = logging.getLogger(__name__)

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)
_BARE_JSON = re.compile(r"\{.*\}", re.DOTALL)


def provider_from_env() -> Optional[LLMProvider]:
    """Build the provider named by LLM_PROVIDER; None means "no reasoning service"."""
    name = os.getenv("LLM_PROVIDER", "").strip().lower()
    if not name:
        return None
    if name == "mock":
        from llm.providers.mock_provider import MockProvider
        return MockProvider()
    if name == "openai":
        from llm.providers.openai_provider import OpenAIProvider
        return OpenAIProvider()
    if name == "ollama":
        from llm.providers.ollama_provider import OllamaProvider
        return OllamaProvider()
    if name == "gemini":
        from llm.providers.gemini_provider import GeminiProvider
        return GeminiProvider()
    raise RuntimeError(f"Unknown LLM_PROVIDER: {name}")


def extract_json(text: str) -> Optional[dict]:
    """Pull the first JSON object out of a chatty reply (fenced or bare)."""
    if not text:
        return None
    for pattern in (_FENCED_JSON, _BARE_JSON):
        match = pattern.search(text)
        if not match:
            continue
        try:
            data = json.loads(match.group(1) if match.groups() else match.group(0))
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    return None


class LLMClient:
    """Reasoning-service client.

    Every call has two outcomes: a validated reply model, or ``Unparseable``.
    Transport errors and shape mismatches both land in the second branch.
    """

    def __init__(self, provider: LLMProvider):
        self.provider = provider

    def complete(self, prompt: str, system: str = SYSTEM_PROMPT) -> str:
        return self.provider.generate(system=system, user=prompt)

    def _structured(self, prompt: str, model) -> Union[Any, Unparseable]:
        try:
            raw = self.complete(prompt)
        except Exception as e:
            logger.warning(f"Reasoning service unavailable: {e}")
            return Unparseable(reason=f"unavailable: {e}")

        data = extract_json(raw)
        if data is None:
            logger.warning("Reasoning service reply contained no JSON object")
            return Unparseable(reason="no JSON object in reply", raw=raw)

        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Reasoning service reply has unexpected shape: {e}")
            return Unparseable(reason="unexpected shape", raw=raw)

    def generate_candidates(self, prompt: str) -> Union[CandidateReply, Unparseable]:
        return self._structured(prompt, CandidateReply)

    def plan_modification(self, prompt: str) -> Union[ModificationPlan, Unparseable]:
        return self._structured(prompt, ModificationPlan)
