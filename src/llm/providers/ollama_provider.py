from __future__ import annotations
import os
from typing import Any, Dict

from .base import HTTPChatProvider, env_float


class OllamaProvider(HTTPChatProvider):
    name = "ollama"

    def __init__(self):
        self.model = os.getenv("OLLAMA_MODEL", "llama3.1").strip()
        self.base_url = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434").strip().rstrip("/")
        # local models are slow on first load
        self.timeout_s = env_float(os.getenv("OLLAMA_TIMEOUT_S"), 120.0)

    def build_request(self, system: str, user: str) -> Dict[str, Any]:
        return {
            "url": f"{self.base_url}/api/chat",
            "json": {
                "model": self.model,
                "stream": False,
                "format": "json",
                "messages": [
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                "options": {"temperature": 0.2},
            },
        }

    def reply_text(self, data: Dict[str, Any]) -> str:
        return data["message"]["content"]
