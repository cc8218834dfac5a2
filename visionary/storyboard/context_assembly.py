"""
Generation-context assembly.

Builds the multi-modal payload sent to the Generation Service for one shot
render. Assembly is pure: identical inputs always yield an identical
``GenerationContext`` (same parts, same order, same fingerprint), and no input
is mutated.

Part order:
    1. the shot's base reference image (image-to-image seed)
    2. the assigned character's reference image
    3. each assigned item's image, in assignment order
    4. project-level reference images
    5. one text part: shot framing, identity/item blocks, style directive
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from visionary.core.constants import DEFAULT_MIME_TYPE, ImageSize, resolve_style

from .models import CharacterProfile, FormatSettings, KeyItem, Shot


@dataclass(frozen=True)
class ContextPart:
    """One element of a multi-modal generation request."""
    kind: str  # "image" or "text"
    data: str  # base64 payload for images, prompt text for text
    mime_type: Optional[str] = None
    source: str = ""

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "kind": self.kind,
            "data": self.data,
            "mime_type": self.mime_type,
            "source": self.source,
        }


@dataclass(frozen=True)
class GenerationContext:
    """Everything the image model needs to render one shot."""
    shot_id: str
    parts: Tuple[ContextPart, ...]
    aspect_ratio: str
    image_size: ImageSize

    @property
    def images(self) -> Tuple[ContextPart, ...]:
        return tuple(p for p in self.parts if p.kind == "image")

    @property
    def prompt(self) -> str:
        return "\n".join(p.data for p in self.parts if p.kind == "text")

    def to_dict(self) -> Dict:
        return {
            "shot_id": self.shot_id,
            "parts": [p.to_dict() for p in self.parts],
            "aspect_ratio": self.aspect_ratio,
            "image_size": self.image_size.value,
        }

    def fingerprint(self) -> str:
        """SHA-256 over the canonical JSON form of the context."""
        canonical = json.dumps(self.to_dict(), sort_keys=True, ensure_ascii=False)
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def split_data_uri(artifact: str) -> Tuple[str, str]:
    """Split an image artifact into (mime_type, base64 payload).

    Accepts ``data:<mime>;base64,<payload>`` URIs or a bare base64 payload.
    """
    if artifact.startswith("data:") and "base64," in artifact:
        header, payload = artifact.split("base64,", 1)
        mime_type = header[len("data:"):].rstrip(";") or DEFAULT_MIME_TYPE
        return mime_type, payload
    return DEFAULT_MIME_TYPE, artifact


def _image_part(artifact: str, source: str) -> ContextPart:
    mime_type, payload = split_data_uri(artifact)
    return ContextPart(kind="image", data=payload, mime_type=mime_type, source=source)


def character_identity_block(character: CharacterProfile) -> str:
    """Textual identity block; traits are repeated verbatim and in full."""
    fields = [f"Name: {character.name}."]
    if character.age:
        fields.append(f"Age: {character.age}.")
    if character.gender:
        fields.append(f"Gender: {character.gender}.")
    if character.occupation:
        fields.append(f"Occupation: {character.occupation}.")
    fields.append(f"Traits: {', '.join(character.visual_traits)}.")
    if character.summary:
        fields.append(f"{character.summary}.")
    return "[CHARACTER IDENTITY]: " + " ".join(fields)


def item_block(item: KeyItem) -> str:
    return f"[KEY ITEM]: {item.name} - {item.description}."


def _find_character(characters: Sequence[CharacterProfile], character_id: Optional[str]):
    if not character_id:
        return None
    return next((c for c in characters if c.id == character_id), None)


def assemble_generation_context(
    shot: Shot,
    settings: FormatSettings,
    characters: Sequence[CharacterProfile] = (),
    items: Sequence[KeyItem] = (),
    reference_images: Sequence[str] = (),
) -> GenerationContext:
    """Build the generation context for ``shot`` from the current project state.

    Character and item ids that do not resolve in the roster are skipped.
    """
    parts: List[ContextPart] = []
    text_blocks: List[str] = []

    if shot.base_reference_image:
        parts.append(_image_part(shot.base_reference_image, "base_reference"))

    character = _find_character(characters, shot.assigned_character_id)
    if character is not None:
        if character.reference_image_url:
            parts.append(_image_part(character.reference_image_url, f"character:{character.id}"))
        text_blocks.append(character_identity_block(character))

    items_by_id = {item.id: item for item in items}
    for item_id in shot.assigned_item_ids:
        item = items_by_id.get(item_id)
        if item is None:
            continue
        if item.image_url:
            parts.append(_image_part(item.image_url, f"item:{item.id}"))
        text_blocks.append(item_block(item))

    for index, artifact in enumerate(reference_images):
        parts.append(_image_part(artifact, f"reference:{index}"))

    parts.append(ContextPart(
        kind="text",
        data=build_shot_prompt(shot, settings, text_blocks),
        source="prompt",
    ))

    return GenerationContext(
        shot_id=shot.id,
        parts=tuple(parts),
        aspect_ratio=settings.aspect_ratio,
        image_size=settings.image_size,
    )


def build_shot_prompt(shot: Shot, settings: FormatSettings, context_blocks: Sequence[str]) -> str:
    """Render the master prompt for one shot."""
    style = resolve_style(settings.visual_style)
    lines = [
        "STORYBOARD SHOT GENERATION",
        "",
        f"[SHOT CONFIG]: {shot.shot_type}, Shot #{shot.sequence_number}",
        f"[SCENE]: {shot.visual_prompt}",
    ]
    lines.extend(context_blocks)
    lines.append("")
    lines.append(f"[AESTHETIC]: {style.name} ({style.description})")
    if settings.custom_style_description:
        lines.append(f"[STYLE DIRECTION]: {settings.custom_style_description}")
    lines.append("")
    lines.append(
        "[DIRECTIVE]: Match composition and lighting to the provided images. "
        "Maintain extreme character and item consistency. "
        f"Use {settings.aspect_ratio} ratio. High quality, cinematic."
    )
    return "\n".join(lines)
