"""Configuration loading for the repository agent."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from agentic_repo_agent.constants import (
    DEFAULT_MAX_STEPS,
    DEFAULT_MODEL,
    DEFAULT_PRIMARY_BRANCH,
    FALLBACK_MODEL,
    OPENAI_API_URL,
)


@dataclass
class Config:
    """Application configuration loaded from environment."""
    
    openai_api_key: str
    model: str = DEFAULT_MODEL
    fallback_model: str = FALLBACK_MODEL
    api_url: str = OPENAI_API_URL
    github_token: Optional[str] = None
    max_steps: int = DEFAULT_MAX_STEPS
    primary_branch: str = DEFAULT_PRIMARY_BRANCH
    knowledge: Optional[str] = None
    trace: bool = False


class ConfigError(Exception):
    """Raised when required configuration is missing or malformed."""
    pass


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


def _read_knowledge(path_value: Optional[str]) -> Optional[str]:
    if not path_value:
        return None
    path = Path(path_value).expanduser()
    if not path.is_file():
        raise ConfigError(f"AGENT_KNOWLEDGE_FILE does not exist: {path}")
    return path.read_text(encoding="utf-8")


def load_config(require_all: bool = True) -> Optional[Config]:
    """
    Load configuration from environment variables.
    
    Args:
        require_all: If True, raises ConfigError if required vars are missing.
                     If False, returns None for missing config.
    
    Returns:
        Config object if all required vars present, None if require_all=False and missing.
    
    Raises:
        ConfigError: If require_all=True and required vars are missing,
                     or if a numeric setting cannot be parsed.
    """
    load_dotenv()
    
    openai_api_key = os.environ.get("OPENAI_API_KEY")
    
    if not openai_api_key:
        if require_all:
            raise ConfigError(
                "Missing required environment variables: OPENAI_API_KEY\n"
                "Please set it in your environment or create a .env file.\n"
                "See .env.example for the required format."
            )
        return None
    
    raw_steps = os.environ.get("AGENT_MAX_STEPS", str(DEFAULT_MAX_STEPS))
    try:
        max_steps = int(raw_steps)
    except ValueError:
        raise ConfigError(f"AGENT_MAX_STEPS must be an integer, got: {raw_steps!r}")
    if max_steps < 1:
        raise ConfigError(f"AGENT_MAX_STEPS must be at least 1, got: {max_steps}")
    
    github_token = (
        os.environ.get("GITHUB_TOKEN")
        or os.environ.get("GITHUB_ACCESS_TOKEN")
        or None
    )
    
    return Config(
        openai_api_key=openai_api_key,
        model=os.environ.get("OPENAI_MODEL") or DEFAULT_MODEL,
        fallback_model=os.environ.get("AGENT_FALLBACK_MODEL") or FALLBACK_MODEL,
        api_url=os.environ.get("OPENAI_API_URL") or OPENAI_API_URL,
        github_token=github_token,
        max_steps=max_steps,
        primary_branch=os.environ.get("AGENT_PRIMARY_BRANCH") or DEFAULT_PRIMARY_BRANCH,
        knowledge=_read_knowledge(os.environ.get("AGENT_KNOWLEDGE_FILE")),
        trace=_env_flag("AGENT_TRACE"),
    )
