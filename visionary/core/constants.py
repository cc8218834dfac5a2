"""
Visionary Constants

Global constants used throughout the storyboard studio.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple

# =============================================================================
# FORMAT SETTINGS
# =============================================================================

ASPECT_RATIOS: Tuple[str, ...] = ("1:1", "2:3", "3:2", "3:4", "4:3", "9:16", "16:9", "21:9")
VIDEO_ASPECT_RATIOS: Tuple[str, ...] = ("16:9", "9:16")

class ImageSize(Enum):
    """Resolution tiers for shot renders."""
    SIZE_1K = "1K"
    SIZE_2K = "2K"
    SIZE_4K = "4K"

    @property
    def is_pro(self) -> bool:
        """2K and 4K renders need the pro image model."""
        return self is not ImageSize.SIZE_1K

class Language(Enum):
    """Output language for generated script text."""
    EN = "en"
    ZH = "zh"

DEFAULT_ASPECT_RATIO = "16:9"
DEFAULT_IMAGE_SIZE = ImageSize.SIZE_1K
DEFAULT_VISUAL_STYLE = "cinematic"
DEFAULT_LANGUAGE = Language.ZH

MAX_REFERENCE_IMAGES = 3
DEFAULT_MIME_TYPE = "image/png"

# =============================================================================
# VISUAL STYLE PRESETS
# =============================================================================

CUSTOM_STYLE_ID = "custom"
CUSTOM_STYLE_NAME = "Custom Style"

@dataclass(frozen=True)
class StylePreset:
    """A named visual style and the keywords it contributes to prompts."""
    id: str
    name: str
    description: str

VISUAL_STYLES: Dict[str, StylePreset] = {
    preset.id: preset for preset in (
        StylePreset("cinematic", "Cinematic", "High contrast, dramatic lighting, anamorphic lenses"),
        StylePreset("anime", "Anime", "Modern Japanese animation style, vibrant line art"),
        StylePreset("noir", "Film Noir", "B&W, high contrast, moody shadows, chiaroscuro"),
        StylePreset("cyberpunk", "Cyberpunk", "Neon lights, futuristic, rainy streets, high-tech low-life"),
        StylePreset("sketch", "Sketch", "Traditional hand-drawn storyboard, charcoal and graphite"),
        StylePreset("3d-render", "3D Render", "Unreal Engine 5, Octane render, raytracing, photorealistic"),
        StylePreset(CUSTOM_STYLE_ID, "Custom", "Describe your own style"),
    )
}

def resolve_style(style_id: str) -> StylePreset:
    """Resolve a style id to its preset.

    Unknown ids are treated as free-text style descriptions.
    """
    preset = VISUAL_STYLES.get(style_id)
    if preset is not None:
        return preset
    return StylePreset(style_id, CUSTOM_STYLE_NAME, style_id)

# =============================================================================
# DURABLE STORAGE SLOTS
# =============================================================================

class StorageKey(Enum):
    """Named key-value slots in durable storage."""
    PROJECTS = "visionary_projects_v1"
    CHARACTER_ROSTER = "visionary_char_bible_v1"
    ITEM_ROSTER = "visionary_item_library_v1"
    GLOBAL_CHARACTERS = "visionary_global_library_v1"
    GLOBAL_ITEMS = "visionary_global_item_lib_v1"

DEFAULT_STORAGE_QUOTA_BYTES = 5 * 1024 * 1024

# =============================================================================
# GENERATION DEFAULTS
# =============================================================================

DEFAULT_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_TEXT_MODEL = "gemini-3-pro-preview"
DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image"
DEFAULT_PRO_IMAGE_MODEL = "gemini-3-pro-image-preview"
DEFAULT_VIDEO_MODEL = "veo-3.1-fast-generate-preview"
DEFAULT_CHAT_MODEL = "gemini-3-flash-preview"

VIDEO_POLL_INTERVAL_SECONDS = 10.0
MAX_VIDEO_POLL_ATTEMPTS = 60  # 60 * 10s = 10 minutes max wait
DEFAULT_MOTION_PROMPT = "Cinematic movement"
