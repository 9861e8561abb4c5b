"""
Secret management utilities for mcp-lite.

API keys are read from environment variables, optionally populated from
.env files for local development.
"""

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Paths to check for .env files, in order of precedence
ENV_PATHS = [
    Path(".env"),
    Path(".secrets.env"),
    Path.home() / ".mcp-lite" / ".env",
]

# Provider name -> (API key variable, model variable)
PROVIDER_ENV_VARS = {
    "openai": ("OPENAI_API_KEY", "OPENAI_MODEL"),
    "anthropic": ("ANTHROPIC_API_KEY", "ANTHROPIC_MODEL"),
    "google": ("GOOGLE_API_KEY", "GOOGLE_MODEL"),
}


def load_env_files(paths: Optional[List[Path]] = None) -> Optional[Path]:
    """
    Load environment variables from the first .env file that exists.

    Variables already present in the environment are not overridden.

    Args:
        paths: Candidate files; defaults to ENV_PATHS.

    Returns:
        The file that was loaded, or None.
    """
    for env_path in paths if paths is not None else ENV_PATHS:
        if env_path.exists():
            load_dotenv(dotenv_path=env_path, override=False)
            return env_path
    return None


def get_secret(key: str, default: Optional[str] = None) -> Optional[str]:
    """
    Get a secret from environment variables with fallback.
    """
    return os.environ.get(key, default)


def get_api_key(provider: str) -> Optional[str]:
    """
    Get API key for a specific provider.

    Args:
        provider: Provider name ("openai", "anthropic", "google").

    Returns:
        The API key for the specified provider or None if not set.

    Raises:
        ValueError: If the provider is not supported.
    """
    provider = provider.lower()
    if provider not in PROVIDER_ENV_VARS:
        raise ValueError(f"Unknown provider: {provider}")
    return get_secret(PROVIDER_ENV_VARS[provider][0])


def get_model_override(provider: str) -> Optional[str]:
    """Model name configured through the provider's *_MODEL variable."""
    env_vars = PROVIDER_ENV_VARS.get(provider.lower())
    return get_secret(env_vars[1]) if env_vars else None
