"""Pydantic models for steptrail configuration."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ProjectIdentity(BaseModel):
    """Project identity shown in the CLI and API."""

    name: str = "steptrail"
    version: str = "0.1.0"


class DriverConfig(BaseModel):
    """Settings for the scenario driver."""

    test_timeout: float | None = None  # seconds, None = unbounded
    skip_after_failure: bool = True


class TestMetadata(BaseModel):
    """Title and requirement tags for one test identifier."""

    __test__ = False  # keep pytest from collecting this class

    title: str | None = None
    requirements: list[str] = Field(default_factory=list)


class WebhookConfig(BaseModel):
    """Configuration for a single webhook endpoint."""

    url: str
    events: list[str] = Field(default_factory=lambda: ["test.completed"])
    secret: str = ""  # HMAC signing key, supports ${ENV_VAR}


class StepTrailConfig(BaseModel):
    """Root configuration model for .steptrail.yaml."""

    project: ProjectIdentity = Field(default_factory=ProjectIdentity)
    driver: DriverConfig = Field(default_factory=DriverConfig)
    tests: dict[str, TestMetadata] = Field(default_factory=dict)
    history_db_path: str = "steptrail_history.db"
    history_max_records: int = 0  # per test identifier, 0 = unlimited
    webhooks: list[WebhookConfig] = Field(default_factory=list)
    event_log_size: int = 100
