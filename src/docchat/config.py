"""
Configuration classes for docchat.

``AgentServiceSettings`` describes where the remote agent service lives and
which agents to use; it is validated with pydantic and falls back to
environment variables for anything not given explicitly. The dataclasses
below it tune the orchestration core.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

logger = logging.getLogger(__name__)


# Environment variable for each settings field
ENV_VARS = {
    "endpoint": "DOCCHAT_ENDPOINT",
    "primary_agent_id": "DOCCHAT_PRIMARY_AGENT_ID",
    "connected_agent_id": "DOCCHAT_CONNECTED_AGENT_ID",
    "environment": "DOCCHAT_ENVIRONMENT",
}

# Set by the hosting platform when running as a managed web app
HOSTED_SIGNAL_VAR = "WEBSITE_INSTANCE_ID"

LOCAL_ENVIRONMENTS = {"development", "dev", "local"}


class AgentServiceSettings(BaseModel):
    """
    Pydantic schema for the remote agent service configuration.

    Reads each field from its ``DOCCHAT_*`` environment variable when it is
    not provided directly.
    """

    endpoint: str = Field(..., description="Project endpoint of the agent service")
    primary_agent_id: str = Field(..., description="Agent that answers each turn")
    connected_agent_id: Optional[str] = Field(
        None, description="Agent owning the document-search tool; attach/detach is skipped when unset"
    )
    environment: str = Field(
        "development", description="Deployment environment; only used to pick a credential strategy"
    )

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _fill_from_environment(cls, data: Any) -> Any:
        """Fills unset fields from environment variables."""
        if data is None:
            data = {}
        if not isinstance(data, dict):
            return data

        data = dict(data)
        for field_name, env_var in ENV_VARS.items():
            if data.get(field_name):
                continue
            env_value = os.getenv(env_var)
            if env_value:
                data[field_name] = env_value
                logger.debug(f"Read '{field_name}' from env var '{env_var}'.")

        for required in ("endpoint", "primary_agent_id"):
            if not data.get(required):
                raise ValueError(
                    f"'{required}' is not configured. "
                    f"Set the '{ENV_VARS[required]}' environment variable or provide it directly."
                )
        return data

    @property
    def is_hosted(self) -> bool:
        """True when a managed identity should be used instead of a local login."""
        if os.getenv(HOSTED_SIGNAL_VAR):
            return True
        return self.environment.strip().lower() not in LOCAL_ENVIRONMENTS


def load_settings(path: Optional[Union[str, Path]] = None, **overrides) -> AgentServiceSettings:
    """
    Build settings from an optional YAML file, explicit overrides, and the environment.

    Precedence: overrides > YAML file > environment variables.

    The YAML file may hold the fields at the top level or under an
    ``agent_service`` key.
    """
    data: Dict[str, Any] = {}
    if path is not None:
        file_path = Path(path).expanduser()
        with open(file_path, "r") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Settings file {file_path} must contain a mapping")
        data.update(loaded.get("agent_service", loaded))
        logger.debug(f"Loaded settings from {file_path}")

    data.update({k: v for k, v in overrides.items() if v is not None})
    return AgentServiceSettings(**data)


@dataclass
class PollingPolicy:
    """
    Adaptive-delay polling schedule for one kind of turn.

    The first ``grace_polls`` polls wait ``base_delay_s``; after that each poll
    waits ``step_s`` longer than the previous one, up to ``max_delay_s``.
    ``deadline_s`` bounds the whole wait.
    """

    base_delay_s: float
    grace_polls: int
    step_s: float
    max_delay_s: float
    deadline_s: float

    def __post_init__(self):
        if self.base_delay_s <= 0 or self.deadline_s <= 0:
            raise ValueError("base_delay_s and deadline_s must be positive")
        if self.step_s < 0 or self.grace_polls < 0:
            raise ValueError("step_s and grace_polls must not be negative")
        if self.max_delay_s < self.base_delay_s:
            raise ValueError(
                f"max_delay_s ({self.max_delay_s}) must be >= base_delay_s ({self.base_delay_s})"
            )

    def next_delay(self, current_delay: float, polls_done: int) -> float:
        """Delay to use after ``polls_done`` polls have completed."""
        if polls_done < self.grace_polls:
            return current_delay
        return min(current_delay + self.step_s, self.max_delay_s)


def _new_conversation_policy() -> PollingPolicy:
    # New turns upload, index and wire tools server side before answering
    return PollingPolicy(base_delay_s=0.5, grace_polls=3, step_s=0.25, max_delay_s=2.0, deadline_s=300.0)


def _continuation_policy() -> PollingPolicy:
    return PollingPolicy(base_delay_s=0.25, grace_polls=2, step_s=0.25, max_delay_s=1.0, deadline_s=120.0)


@dataclass
class PollingConfig:
    """Polling schedules for new-conversation and continuation turns."""

    new_conversation: PollingPolicy = field(default_factory=_new_conversation_policy)
    continuation: PollingPolicy = field(default_factory=_continuation_policy)

    def for_turn(self, is_new_conversation: bool) -> PollingPolicy:
        return self.new_conversation if is_new_conversation else self.continuation


@dataclass
class OrchestratorConfig:
    """Configuration for the conversation orchestrator."""

    polling: PollingConfig = field(default_factory=PollingConfig)

    # Delete remote objects created by a start that later failed
    rollback_remote_on_failed_start: bool = True

    # How long end() waits for a session's detached attach work
    background_drain_timeout_s: float = 30.0

    # Vector store names are "<prefix>_<UTC yyyymmdd_HHMMSS>"
    vector_store_name_prefix: str = "VectorStore"

    no_response_text: str = "No response received from assistant."
