"""
Visionary Configuration Management

Centralized configuration system with JSON loading and validation.
"""

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from .constants import (
    DEFAULT_API_BASE,
    DEFAULT_ASPECT_RATIO,
    DEFAULT_CHAT_MODEL,
    DEFAULT_IMAGE_MODEL,
    DEFAULT_IMAGE_SIZE,
    DEFAULT_LANGUAGE,
    DEFAULT_PRO_IMAGE_MODEL,
    DEFAULT_STORAGE_QUOTA_BYTES,
    DEFAULT_TEXT_MODEL,
    DEFAULT_VIDEO_MODEL,
    DEFAULT_VISUAL_STYLE,
    MAX_REFERENCE_IMAGES,
    MAX_VIDEO_POLL_ATTEMPTS,
    VIDEO_POLL_INTERVAL_SECONDS,
)
from .exceptions import ConfigurationError, FeatureDisabledError, InvalidConfigError


@dataclass
class GenerationConfig:
    """Settings for the Generation Service client."""
    api_base: str = DEFAULT_API_BASE
    text_model: str = DEFAULT_TEXT_MODEL
    image_model: str = DEFAULT_IMAGE_MODEL
    pro_image_model: str = DEFAULT_PRO_IMAGE_MODEL
    video_model: str = DEFAULT_VIDEO_MODEL
    chat_model: str = DEFAULT_CHAT_MODEL
    timeout: float = 120.0
    max_retries: int = 2
    poll_interval: float = VIDEO_POLL_INTERVAL_SECONDS
    max_poll_attempts: int = MAX_VIDEO_POLL_ATTEMPTS


@dataclass
class StorageConfig:
    """Durable storage settings."""
    storage_dir: Path = field(default_factory=lambda: Path("storage"))
    quota_bytes: int = DEFAULT_STORAGE_QUOTA_BYTES


@dataclass
class FeatureFlags:
    """Optional studio features."""
    item_library: bool = True
    global_vault: bool = True
    image_editing: bool = True
    animation: bool = True

    def require(self, feature: str) -> None:
        """Raise FeatureDisabledError if the named flag is off."""
        if not getattr(self, feature):
            raise FeatureDisabledError(feature)


@dataclass
class ProjectDefaults:
    """Format defaults applied to new projects."""
    aspect_ratio: str = DEFAULT_ASPECT_RATIO
    image_size: str = DEFAULT_IMAGE_SIZE.value
    visual_style: str = DEFAULT_VISUAL_STYLE
    language: str = DEFAULT_LANGUAGE.value
    max_reference_images: int = MAX_REFERENCE_IMAGES


@dataclass
class VisionaryConfig:
    """Main configuration class for Visionary."""

    generation: GenerationConfig = field(default_factory=GenerationConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    features: FeatureFlags = field(default_factory=FeatureFlags)
    defaults: ProjectDefaults = field(default_factory=ProjectDefaults)

    verbose_logging: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> 'VisionaryConfig':
        """Create VisionaryConfig from dictionary."""
        config = cls()
        config.verbose_logging = data.get('verbose_logging', config.verbose_logging)

        try:
            if 'generation' in data:
                config.generation = GenerationConfig(**data['generation'])
            if 'storage' in data:
                storage_data = dict(data['storage'])
                if 'storage_dir' in storage_data:
                    storage_data['storage_dir'] = Path(storage_data['storage_dir'])
                config.storage = StorageConfig(**storage_data)
            if 'features' in data:
                config.features = FeatureFlags(**data['features'])
            if 'defaults' in data:
                config.defaults = ProjectDefaults(**data['defaults'])
        except TypeError as e:
            raise InvalidConfigError(f"Unknown configuration key: {e}")

        if config.generation.max_poll_attempts < 1:
            raise InvalidConfigError(
                "max_poll_attempts must be at least 1",
                {"max_poll_attempts": config.generation.max_poll_attempts}
            )
        if config.storage.quota_bytes <= 0:
            raise InvalidConfigError(
                "quota_bytes must be positive",
                {"quota_bytes": config.storage.quota_bytes}
            )
        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        data = asdict(self)
        data['storage']['storage_dir'] = str(self.storage.storage_dir)
        return data


def load_config(config_path: Path = None) -> VisionaryConfig:
    """
    Load configuration from JSON file.

    Args:
        config_path: Path to configuration file. If None, uses default.

    Returns:
        Loaded VisionaryConfig instance
    """
    if config_path is None:
        config_path = Path("config/visionary_config.json")
    config_path = Path(config_path)

    if not config_path.exists():
        return VisionaryConfig()

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidConfigError(f"Invalid JSON in config file: {e}")
    except OSError as e:
        raise ConfigurationError(f"Failed to load config: {e}")

    return VisionaryConfig.from_dict(data)


def save_config(config: VisionaryConfig, config_path: Path) -> None:
    """Write configuration to a JSON file."""
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, 'w', encoding='utf-8') as f:
        json.dump(config.to_dict(), f, indent=2)


# Global config instance
_config: Optional[VisionaryConfig] = None


def get_config() -> VisionaryConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: VisionaryConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
