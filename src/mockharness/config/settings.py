from __future__ import annotations

from dataclasses import dataclass
import os


@dataclass(frozen=True)
class Settings:
    mock_http: str
    mock_host: str
    mock_port: int


def get_settings() -> Settings:
    """
    Centralized configuration for tests and harness code.
    Values come from environment variables with safe defaults.
    """
    return Settings(
        mock_http=os.getenv("MOCK_HTTP", "http://127.0.0.1:3000"),
        mock_host=os.getenv("MOCK_HOST", "127.0.0.1"),
        mock_port=int(os.getenv("MOCK_PORT", "3000")),
    )
