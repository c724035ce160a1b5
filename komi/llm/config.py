from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class LLMConfig:
    api_key: str = os.getenv("GROQ_API_KEY", "")
    model: str = os.getenv("GROQ_MODEL", "llama-3.3-70b-versatile")
    timeout: float = float(os.getenv("LLM_TIMEOUT", "10"))
    max_tokens: int = 1000
    temperature: float = 0.3
    # One attempt per request; a timeout goes straight to the fallback.
    max_retries: int = int(os.getenv("LLM_MAX_RETRIES", "0"))
    enabled: bool = True

    @property
    def available(self) -> bool:
        return self.enabled and bool(self.api_key)


DEFAULT_LLM_CONFIG = LLMConfig()


def get_llm_config() -> LLMConfig:
    return DEFAULT_LLM_CONFIG
