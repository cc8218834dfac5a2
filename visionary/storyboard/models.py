"""
Storyboard data model.

Projects, scripts, shots and the character/item rosters that feed shot
generation. Every entity round-trips through ``to_dict``/``from_dict`` as
plain JSON so the project store can persist it.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from visionary.core.constants import (
    ASPECT_RATIOS,
    DEFAULT_ASPECT_RATIO,
    DEFAULT_IMAGE_SIZE,
    DEFAULT_VISUAL_STYLE,
    ImageSize,
)


def new_id() -> str:
    """Generate an opaque unique identifier."""
    return str(uuid.uuid4())


class ShotStatus(Enum):
    """Generation lifecycle of a single shot."""
    IDLE = "idle"
    GENERATING = "generating"
    COMPLETED = "completed"
    ERROR = "error"
    ANIMATING = "animating"

    @property
    def is_busy(self) -> bool:
        """True while a remote request for the shot is outstanding."""
        return self in (ShotStatus.GENERATING, ShotStatus.ANIMATING)


@dataclass
class CharacterProfile:
    """A reusable character description."""
    id: str
    name: str
    summary: str = ""
    age: Optional[str] = None
    gender: Optional[str] = None
    occupation: Optional[str] = None
    personality: Optional[str] = None
    backstory: Optional[str] = None
    visual_traits: List[str] = field(default_factory=list)
    reference_image_url: Optional[str] = None
    alternate_images: List[str] = field(default_factory=list)
    is_global: bool = False

    # Fields a user may edit through the roster API.
    EDITABLE_FIELDS = frozenset({
        "name", "summary", "age", "gender", "occupation",
        "personality", "backstory", "visual_traits", "reference_image_url",
    })

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "summary": self.summary,
            "age": self.age,
            "gender": self.gender,
            "occupation": self.occupation,
            "personality": self.personality,
            "backstory": self.backstory,
            "visual_traits": list(self.visual_traits),
            "reference_image_url": self.reference_image_url,
            "alternate_images": list(self.alternate_images),
            "is_global": self.is_global,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CharacterProfile:
        traits = data.get("visual_traits", [])
        if isinstance(traits, str):
            traits = split_traits(traits)
        return cls(
            id=data.get("id") or new_id(),
            name=data.get("name", ""),
            summary=data.get("summary", ""),
            age=data.get("age"),
            gender=data.get("gender"),
            occupation=data.get("occupation"),
            personality=data.get("personality"),
            backstory=data.get("backstory"),
            visual_traits=list(traits),
            reference_image_url=data.get("reference_image_url"),
            alternate_images=list(data.get("alternate_images", [])),
            is_global=bool(data.get("is_global", False)),
        )


@dataclass
class KeyItem:
    """A reusable prop or object description."""
    id: str
    name: str
    description: str = ""
    image_url: Optional[str] = None
    is_global: bool = False

    EDITABLE_FIELDS = frozenset({"name", "description", "image_url"})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "image_url": self.image_url,
            "is_global": self.is_global,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> KeyItem:
        return cls(
            id=data.get("id") or new_id(),
            name=data.get("name", ""),
            description=data.get("description", ""),
            image_url=data.get("image_url"),
            is_global=bool(data.get("is_global", False)),
        )


@dataclass
class Shot:
    """One storyboard panel with its own generation lifecycle."""
    id: str
    sequence_number: int
    shot_type: str
    narrative_description: str
    visual_prompt: str
    status: ShotStatus = ShotStatus.IDLE
    dialogue: Optional[str] = None
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    assigned_character_id: Optional[str] = None
    assigned_item_ids: List[str] = field(default_factory=list)
    base_reference_image: Optional[str] = None
    image_history: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sequence_number": self.sequence_number,
            "shot_type": self.shot_type,
            "narrative_description": self.narrative_description,
            "visual_prompt": self.visual_prompt,
            "status": self.status.value,
            "dialogue": self.dialogue,
            "image_url": self.image_url,
            "video_url": self.video_url,
            "assigned_character_id": self.assigned_character_id,
            "assigned_item_ids": list(self.assigned_item_ids),
            "base_reference_image": self.base_reference_image,
            "image_history": list(self.image_history),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Shot:
        return cls(
            id=data.get("id") or new_id(),
            sequence_number=int(data.get("sequence_number", 0)),
            shot_type=data.get("shot_type", ""),
            narrative_description=data.get("narrative_description", ""),
            visual_prompt=data.get("visual_prompt", ""),
            status=ShotStatus(data.get("status", ShotStatus.IDLE.value)),
            dialogue=data.get("dialogue"),
            image_url=data.get("image_url"),
            video_url=data.get("video_url"),
            assigned_character_id=data.get("assigned_character_id"),
            assigned_item_ids=list(data.get("assigned_item_ids", [])),
            base_reference_image=data.get("base_reference_image"),
            image_history=list(data.get("image_history", [])),
        )


@dataclass
class StoryboardScript:
    """One generated narrative: an ordered shot list plus its roster snapshot."""
    title: str
    theme: str
    shots: List[Shot] = field(default_factory=list)
    visual_style: str = ""
    character_roster: List[CharacterProfile] = field(default_factory=list)
    item_roster: List[KeyItem] = field(default_factory=list)
    reference_images: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "theme": self.theme,
            "visual_style": self.visual_style,
            "shots": [shot.to_dict() for shot in self.shots],
            "character_roster": [c.to_dict() for c in self.character_roster],
            "item_roster": [i.to_dict() for i in self.item_roster],
            "reference_images": list(self.reference_images),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> StoryboardScript:
        return cls(
            title=data.get("title", ""),
            theme=data.get("theme", ""),
            visual_style=data.get("visual_style", ""),
            shots=[Shot.from_dict(s) for s in data.get("shots", [])],
            character_roster=[CharacterProfile.from_dict(c) for c in data.get("character_roster", [])],
            item_roster=[KeyItem.from_dict(i) for i in data.get("item_roster", [])],
            reference_images=list(data.get("reference_images", [])),
        )


@dataclass
class FormatSettings:
    """Project-wide render settings."""
    aspect_ratio: str = DEFAULT_ASPECT_RATIO
    image_size: ImageSize = DEFAULT_IMAGE_SIZE
    visual_style: str = DEFAULT_VISUAL_STYLE
    custom_style_description: Optional[str] = None

    def __post_init__(self):
        if self.aspect_ratio not in ASPECT_RATIOS:
            raise ValueError(f"Unsupported aspect ratio: {self.aspect_ratio}")
        if not isinstance(self.image_size, ImageSize):
            self.image_size = ImageSize(self.image_size)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "aspect_ratio": self.aspect_ratio,
            "image_size": self.image_size.value,
            "visual_style": self.visual_style,
            "custom_style_description": self.custom_style_description,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> FormatSettings:
        return cls(
            aspect_ratio=data.get("aspect_ratio", DEFAULT_ASPECT_RATIO),
            image_size=ImageSize(data.get("image_size", DEFAULT_IMAGE_SIZE.value)),
            visual_style=data.get("visual_style", DEFAULT_VISUAL_STYLE),
            custom_style_description=data.get("custom_style_description"),
        )


@dataclass
class Project:
    """The top-level persisted unit."""
    id: str
    script: StoryboardScript
    format_settings: FormatSettings = field(default_factory=FormatSettings)
    saved_at: float = field(default_factory=time.time)
    last_viewed_shot_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "saved_at": self.saved_at,
            "script": self.script.to_dict(),
            "format_settings": self.format_settings.to_dict(),
            "last_viewed_shot_id": self.last_viewed_shot_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Project:
        return cls(
            id=data["id"],
            saved_at=float(data.get("saved_at", 0.0)),
            script=StoryboardScript.from_dict(data.get("script", {})),
            format_settings=FormatSettings.from_dict(data.get("format_settings", {})),
            last_viewed_shot_id=data.get("last_viewed_shot_id"),
        )


def split_traits(text: str) -> List[str]:
    """Split a comma-separated trait string into trimmed, non-empty traits."""
    return [part.strip() for part in text.split(",") if part.strip()]


EDITABLE_FIELDS: Dict[str, FrozenSet[str]] = {
    "character": CharacterProfile.EDITABLE_FIELDS,
    "item": KeyItem.EDITABLE_FIELDS,
}
