from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import DEFAULT_EVENT_QUEUE_SIZE


class BatchDefaults(BaseModel):
    """Option values applied when a batch request leaves them unset."""

    continue_on_error: bool = False
    max_concurrency: int = Field(default=1, ge=1)
    validate_first: bool = False
    delay: float = Field(default=0.0, ge=0.0)


class WorkflowSettings(BaseModel):
    """Workflow engine settings."""

    register_builtins: bool = True
    definitions_path: Optional[str] = None
    default_wait_seconds: float = 1.0
    default_max_stories: int = 5


class EventBusConfig(BaseModel):
    """Event bus configuration settings."""

    backend: Literal["inmemory"] = "inmemory"
    max_queue_size: int = DEFAULT_EVENT_QUEUE_SIZE


class GatewayConfig(BaseModel):
    """Entity gateway configuration settings."""

    backend: Literal["inmemory"] = "inmemory"


class BatchflowConfig(BaseModel):
    """Top-level configuration model."""

    batch: BatchDefaults = BatchDefaults()
    workflows: WorkflowSettings = WorkflowSettings()
    events: EventBusConfig = EventBusConfig()
    gateway: GatewayConfig = GatewayConfig()
    log_level: str = "INFO"


def load_config(path: Optional[str] = None) -> BatchflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to BATCHFLOW_CONFIG env
            variable or 'batchflow.yaml' in the current directory.
    """

    config_path = path or os.getenv("BATCHFLOW_CONFIG", "batchflow.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = BatchflowConfig(**data)
    else:
        config = BatchflowConfig()

    env_log_level = os.getenv("BATCHFLOW_LOG_LEVEL")
    if env_log_level:
        config.log_level = env_log_level.upper()
    return config
