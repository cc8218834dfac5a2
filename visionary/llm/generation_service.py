"""
Generation Service interface.

The studio and the shot lifecycle controller depend only on this contract.
Every call is a coroutine and may fail with a ``GenerationFailure`` (or one of
its subclasses) or with ``AuthorizationMissing``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from visionary.core.constants import Language, StylePreset
from visionary.storyboard.context_assembly import GenerationContext
from visionary.storyboard.models import CharacterProfile, StoryboardScript


@dataclass
class StoryConcept:
    """A refined premise from the guided concept flow."""
    title: str
    premise: str


@dataclass
class Citation:
    title: str
    uri: str


@dataclass
class ChatMessage:
    """One turn of the grounded assistant conversation."""
    role: str  # "user" or "model"
    text: str
    citations: List[Citation] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "role": self.role,
            "text": self.text,
            "citations": [{"title": c.title, "uri": c.uri} for c in self.citations],
        }


class GenerationService(ABC):
    """Abstract text/image/video generation backend."""

    @abstractmethod
    def has_credentials(self) -> bool:
        """Whether a credential is configured at all."""

    @abstractmethod
    async def generate_storyboard(
        self,
        seed_text: str,
        style: StylePreset,
        language: Language,
        characters: Sequence[CharacterProfile] = (),
    ) -> StoryboardScript:
        """Write a 6-8 shot script from a premise. Shots come back ``idle``."""

    @abstractmethod
    async def refine_concept(
        self,
        genre: str,
        conflict: str,
        protagonist: str,
        seed: str,
        language: Language,
    ) -> StoryConcept:
        """Turn guided-flow inputs into a title and premise."""

    @abstractmethod
    async def generate_shot_image(self, context: GenerationContext) -> str:
        """Render one shot. Returns an image data URI."""

    @abstractmethod
    async def generate_character_reference(
        self, character: CharacterProfile, style: StylePreset
    ) -> str:
        """Render a 1:1 character design sheet. Returns an image data URI."""

    @abstractmethod
    async def edit_image(self, image: str, instruction: str) -> str:
        """Apply a text instruction to an existing image."""

    @abstractmethod
    async def animate(self, image: str, motion_prompt: str, aspect_ratio: str) -> str:
        """Turn an image into a short clip. Returns a video data URI."""

    @abstractmethod
    async def chat(self, message: str, history: Sequence[ChatMessage]) -> ChatMessage:
        """Grounded assistant reply with web citations."""
