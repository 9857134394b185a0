"""Configuration models and the lazily loaded global settings."""

from .config import (
    ClassifierSettings,
    Config,
    CrawlerConfig,
    EnrichmentConfig,
    LexiconSettings,
    MonitoringConfig,
    PaginationConfig,
    PolitenessPreset,
    SpeedPreset,
    find_config_file,
    settings,
)

__all__ = [
    "Config",
    "CrawlerConfig",
    "EnrichmentConfig",
    "PolitenessPreset",
    "PaginationConfig",
    "ClassifierSettings",
    "LexiconSettings",
    "MonitoringConfig",
    "SpeedPreset",
    "find_config_file",
    "settings",
]
