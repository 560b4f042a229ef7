"""steptrail configuration system."""

from steptrail.config.loader import find_config_file, load_config
from steptrail.config.models import DriverConfig, StepTrailConfig, TestMetadata, WebhookConfig

__all__ = [
    "DriverConfig",
    "StepTrailConfig",
    "TestMetadata",
    "WebhookConfig",
    "load_config",
    "find_config_file",
]
