from __future__ import annotations
import os
from typing import Any, Dict

from .base import HTTPChatProvider, env_float


class OpenAIProvider(HTTPChatProvider):
    """Chat Completions API (or any compatible server via OPENAI_BASE_URL)."""

    name = "openai"

    def __init__(self):
        self.api_key = os.getenv("OPENAI_API_KEY", "").strip()
        self.model = os.getenv("OPENAI_MODEL", "gpt-4o-mini").strip()
        self.base_url = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1").strip().rstrip("/")
        self.timeout_s = env_float(os.getenv("OPENAI_TIMEOUT_S"), 30.0)

        if not self.api_key:
            raise RuntimeError("OPENAI_API_KEY is missing")

    def build_request(self, system: str, user: str) -> Dict[str, Any]:
        return {
            "url": f"{self.base_url}/chat/completions",
            "headers": {"Authorization": f"Bearer {self.api_key}"},
            "json": {
                "model": self.model,
                "messages": [
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                "response_format": {"type": "json_object"},
                "temperature": 0.2,
            },
        }

    def reply_text(self, data: Dict[str, Any]) -> str:
        return data["choices"][0]["message"]["content"]
