"""
Configuration management for the CLI.
"""

from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings


class AgentSettings(BaseSettings):
    """Agent settings with environment variable support (``CODEAGENT_*``)."""

    # Workspace
    working_directory: str = Field(default=".", description="Directory the tools operate in")
    max_steps: Optional[int] = Field(default=50, description="Model round ceiling, None for no ceiling")

    # Model selection
    provider: str = Field(default="anthropic", description="Provider adapter: anthropic, openai or together")
    model: Optional[str] = Field(default=None, description="Model alias or id, None for the provider default")
    api_key: Optional[str] = Field(default=None, description="API key, None to use the provider's env var")
    llm_config_path: Optional[str] = Field(default=None, description="Path to the LLM YAML configuration")

    # Triage
    triage: Literal["model", "heuristic"] = Field(default="model", description="How the effort level is decided")

    # Output
    log_level: str = Field(default="WARNING", description="Logging level")
    transcript_path: Optional[str] = Field(default=None, description="File receiving raw Harmony transcripts")

    model_config = {
        "env_file": ".env",
        "env_prefix": "CODEAGENT_",
        "case_sensitive": False,
    }

    @classmethod
    def load_from_file(cls, config_path: Path, **overrides) -> "AgentSettings":
        """Load settings from a YAML configuration file; explicit overrides win."""
        config_data = {}
        if config_path.exists():
            with open(config_path, "r") as f:
                config_data = yaml.safe_load(f) or {}

        config_data.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**config_data)
