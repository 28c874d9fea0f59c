from __future__ import annotations
import json
import re
from llm.providers.base import LLMProvider

class MockProvider(LLMProvider):
    def generate(self, *, system: str, user: str) -> str:
        """
        Returns dummy JSON responses based on the prompt content.
        """
        # Schedule generation: no candidates, the deterministic packer takes over
        if "schedule candidates" in user:
            return json.dumps({
                "explanation": "Mock reasoning service - no AI candidates",
                "reasoning": "Deferring to the deterministic packer",
                "candidates": [],
            })

        # Modification request: simple keyword matching for demo purposes
        match = re.search(r'modify their current schedule with this request: "(.*)"', user)
        if match:
            request = match.group(1)
            lower = request.lower()
            ids = re.findall(r"\b(?:course|priority|incomplete)_\w+", request)
            if "remove" in lower or "cancel" in lower or "delete" in lower:
                action = "remove"
            elif "move" in lower or "reschedule" in lower or "later" in lower:
                action = "reschedule"
            else:
                action = "add"
            return json.dumps({
                "action": action,
                "affectedTasks": ids,
                "newTask": {"name": request, "duration_minutes": 60} if action == "add" else None,
                "suggestions": [f"{action} based on: {request}"],
            })

        # Default fallback
        return "{}"
