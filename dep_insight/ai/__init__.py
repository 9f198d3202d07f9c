"""DeepSeek integration for LLM-backed dependency graph insights."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum


class AIModel(Enum):
    DEEPSEEK_CHAT = "deepseek-chat"
    DEEPSEEK_CODER = "deepseek-coder"
    DEEPSEEK_REASONER = "deepseek-reasoner"


OPTIMAL_TEMPS: dict[str, float] = {
    "deepseek-chat": 0.3,
    "deepseek-coder": 0.2,
    "deepseek-reasoner": 0.6,
}

DEFAULT_BASE_URL = "https://api.deepseek.com/v1"


@dataclass
class AIConfig:
    api_key: str = ""
    model: AIModel = AIModel.DEEPSEEK_CHAT
    temperature: float | None = None
    max_tokens: int = 4000
    base_url: str = ""
    max_retries: int = 3
    base_delay: float = 1.0  # seconds, doubled per retry
    max_delay: float = 30.0
    timeout: float = 30.0  # per attempt

    def __post_init__(self):
        if not self.api_key:
            self.api_key = os.getenv("DEEPSEEK_API_KEY", "")
        if not self.base_url:
            self.base_url = os.getenv("DEEPSEEK_BASE_URL", DEFAULT_BASE_URL)

    def get_optimal_temperature(self) -> float:
        """Explicit temperature, else the per-model default."""
        if self.temperature is not None:
            return self.temperature
        return OPTIMAL_TEMPS.get(self.model.value, 0.3)


from .client import LLMClient, LLMError, sanitize_graph_json  # noqa: E402

__all__ = [
    "AIConfig",
    "AIModel",
    "LLMClient",
    "LLMError",
    "sanitize_graph_json",
]
