from __future__ import annotations
import os
from typing import Any, Dict

from .base import HTTPChatProvider, env_float


class GeminiProvider(HTTPChatProvider):
    name = "gemini"

    def __init__(self):
        self.api_key = os.getenv("GEMINI_API_KEY", "").strip()
        self.model = os.getenv("GEMINI_MODEL", "gemini-1.5-flash-latest").strip()
        self.base_url = os.getenv(
            "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
        ).strip().rstrip("/")
        self.timeout_s = env_float(os.getenv("GEMINI_TIMEOUT_S"), 30.0)

        if not self.api_key:
            raise RuntimeError("GEMINI_API_KEY is missing")

    def build_request(self, system: str, user: str) -> Dict[str, Any]:
        return {
            "url": f"{self.base_url}/models/{self.model}:generateContent",
            "params": {"key": self.api_key},
            "json": {
                "systemInstruction": {"parts": [{"text": system}]},
                "contents": [{"role": "user", "parts": [{"text": user}]}],
                "generationConfig": {
                    "temperature": 0.7,
                    "topK": 40,
                    "topP": 0.95,
                    "maxOutputTokens": 2048,
                    "responseMimeType": "application/json",
                },
            },
        }

    def reply_text(self, data: Dict[str, Any]) -> str:
        parts = data["candidates"][0]["content"]["parts"]
        return "".join(p.get("text", "") for p in parts)
