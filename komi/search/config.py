from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class ServiceConfig:
    # Empty URL -> call the collaborator in-process.
    analyzer_url: str = os.getenv("ANALYZER_URL", "")
    recommender_url: str = os.getenv("RECOMMENDER_URL", "")
    analyzer_timeout: float = float(os.getenv("ANALYZER_TIMEOUT", "15"))
    recommender_timeout: float = float(os.getenv("RECOMMENDER_TIMEOUT", "10"))
    environment: str = os.getenv("APP_ENV", "production")

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


DEFAULT_SERVICE_CONFIG = ServiceConfig()
