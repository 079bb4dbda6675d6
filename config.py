"""
Configuration module for Flowpilot.
Handles environment variables, model specifications, and agent settings.
"""

import os
from dataclasses import dataclass
from typing import List, Dict, Any, Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class AWSConfig:
    """AWS-specific configuration"""
    region: str = os.getenv("AWS_REGION", "us-east-1")
    access_key_id: str = os.getenv("AWS_ACCESS_KEY_ID", "")
    secret_access_key: str = os.getenv("AWS_SECRET_ACCESS_KEY", "")
    session_token: str = os.getenv("AWS_SESSION_TOKEN", "")
    profile_name: str = os.getenv("AWS_PROFILE", "")

    def has_explicit_credentials(self) -> bool:
        return bool(self.access_key_id and self.secret_access_key)

    def has_session_token(self) -> bool:
        return bool(self.session_token)

    def has_profile(self) -> bool:
        return bool(self.profile_name)


@dataclass
class ModelConfig:
    """Model-specific configuration"""
    model_id: str = os.getenv("BEDROCK_MODEL_ID", "us.anthropic.claude-sonnet-4-5-20250929-v1:0")
    max_tokens: int = int(os.getenv("MAX_TOKENS", "4096"))
    temperature: Optional[float] = float(os.getenv("TEMPERATURE", "")) if os.getenv("TEMPERATURE") else None
    # Cheaper model for summarizing tool output and old observations; empty means model_id
    summary_model_id: str = os.getenv("SUMMARY_MODEL_ID", "")
    # Send tool definitions through the API and read structured tool_use blocks
    native_tool_calling: bool = _env_bool("NATIVE_TOOL_CALLING", "false")


@dataclass
class AgentConfig:
    """Orchestrator loop configuration"""
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    working_directory: str = os.getenv("WORKING_DIRECTORY", ".")
    max_steps: int = int(os.getenv("MAX_STEPS", "70"))
    require_confirmation: bool = _env_bool("REQUIRE_CONFIRMATION", "true")
    summarize_threshold: int = int(os.getenv("SUMMARIZE_THRESHOLD", "1000"))
    history_token_budget: int = int(os.getenv("HISTORY_TOKEN_BUDGET", "24000"))
    command_timeout: int = int(os.getenv("COMMAND_TIMEOUT", "30"))


# ============================================================
# Model Specifications -- Anthropic Claude on Bedrock
# ============================================================
AVAILABLE_MODELS: List[Dict[str, Any]] = [
    {
        "id": "us.anthropic.claude-sonnet-4-5-20250929-v1:0",
        "base_id": "anthropic.claude-sonnet-4-5-20250929-v1:0",
        "name": "Claude Sonnet 4.5",
        "max_output_tokens": 64000,
    },
    {
        "id": "us.anthropic.claude-haiku-4-5-20251001-v1:0",
        "base_id": "anthropic.claude-haiku-4-5-20251001-v1:0",
        "name": "Claude Haiku 4.5",
        "max_output_tokens": 64000,
    },
    {
        "id": "us.anthropic.claude-sonnet-4-20250514-v1:0",
        "base_id": "anthropic.claude-sonnet-4-20250514-v1:0",
        "name": "Claude Sonnet 4",
        "max_output_tokens": 64000,
    },
    {
        "id": "anthropic.claude-3-5-haiku-20241022-v1:0",
        "base_id": "anthropic.claude-3-5-haiku-20241022-v1:0",
        "name": "Claude 3.5 Haiku",
        "max_output_tokens": 8192,
    },
]


# Create global config instances
aws_config = AWSConfig()
model_config = ModelConfig()
agent_config = AgentConfig()


def get_model_by_id(model_id: str) -> Optional[Dict[str, Any]]:
    """Get model configuration by ID"""
    for model in AVAILABLE_MODELS:
        if model["id"] == model_id or model.get("base_id") == model_id:
            return model
    return None


def get_model_name(model_id: str) -> str:
    model = get_model_by_id(model_id)
    return model["name"] if model else model_id


def get_max_output_tokens(model_id: str) -> int:
    model = get_model_by_id(model_id)
    return model["max_output_tokens"] if model else 4096


def get_credentials_info() -> str:
    if aws_config.has_profile():
        return f"Using AWS profile: {aws_config.profile_name}"
    elif aws_config.has_explicit_credentials():
        if aws_config.has_session_token():
            return "Using temporary credentials (with session token)"
        return "Using explicit credentials"
    return "Using default credential chain"
