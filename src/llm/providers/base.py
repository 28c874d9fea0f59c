from __future__ import annotations
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class LLMProvider(ABC):
    @abstractmethod
    def generate(self, *, system: str, user: str) -> str:
        """
        Return the raw model reply as TEXT.

        Schedule and modification replies are parsed and validated by LLMClient;
        providers only move bytes and may raise on transport errors.
        """
        raise NotImplementedError


class HTTPChatProvider(LLMProvider):
    """One POST per prompt; subclasses shape the request and pick the text out of the reply."""

    name = "http"
    timeout_s: float = 30.0

    @abstractmethod
    def build_request(self, system: str, user: str) -> Dict[str, Any]:
        """Keyword arguments for ``httpx.Client.post`` (url, json, headers, params)."""

    @abstractmethod
    def reply_text(self, data: Dict[str, Any]) -> str:
        ...

    def generate(self, *, system: str, user: str) -> str:
        request = self.build_request(system, user)
        with httpx.Client(timeout=self.timeout_s) as client:
            r = client.post(**request)
            r.raise_for_status()
            data = r.json()
        try:
            return self.reply_text(data)
        except (KeyError, IndexError, TypeError) as e:
            logger.warning(f"{self.name} reply missing text: {e}")
            raise ValueError(f"{self.name} reply has no text content") from e


def env_float(value: Optional[str], default: float) -> float:
    try:
        return float(value) if value else default
    except ValueError:
        return default
