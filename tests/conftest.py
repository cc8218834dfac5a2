"""
Pytest Configuration and Fixtures

Shared fixtures for all tests.
"""

import asyncio
import pytest
import tempfile
import shutil
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from visionary.core.config import FeatureFlags, VisionaryConfig
from visionary.core.constants import Language
from visionary.llm.generation_service import ChatMessage, GenerationService, StoryConcept
from visionary.storyboard.context_assembly import GenerationContext
from visionary.storyboard.lifecycle import ShotLifecycleController
from visionary.storyboard.models import (
    CharacterProfile,
    KeyItem,
    Shot,
    StoryboardScript,
    new_id,
)
from visionary.storyboard.roster import Roster
from visionary.storyboard.state import ProjectState


class FakeGenerationService(GenerationService):
    """
    Controllable in-process Generation Service.

    ``hold(key)`` makes the next call for ``key`` (a shot id, or the method
    name for calls with no shot) wait until the returned event is set.
    ``fail(key, exc)`` makes the next call for ``key`` raise ``exc``.
    """

    def __init__(self):
        self.calls: List[Tuple[str, object]] = []
        self.credentials = True
        self.script: Optional[StoryboardScript] = None
        self._holds: Dict[str, asyncio.Event] = {}
        self._failures: Dict[str, Exception] = {}
        self._counter = 0

    def hold(self, key: str) -> asyncio.Event:
        event = asyncio.Event()
        self._holds[key] = event
        return event

    def fail(self, key: str, error: Exception) -> None:
        self._failures[key] = error

    def calls_to(self, method: str) -> list:
        return [args for name, args in self.calls if name == method]

    async def _settle(self, key: str) -> None:
        event = self._holds.pop(key, None)
        if event is not None:
            await event.wait()
        error = self._failures.pop(key, None)
        if error is not None:
            raise error

    def _artifact(self, prefix: str, key: str) -> str:
        self._counter += 1
        return f"data:{prefix};base64,{key}-{self._counter}"

    def has_credentials(self) -> bool:
        return self.credentials

    async def generate_storyboard(self, seed_text, style, language, characters=()):
        self.calls.append(("generate_storyboard", (seed_text, style, language, tuple(characters))))
        await self._settle("generate_storyboard")
        return self.script

    async def refine_concept(self, genre, conflict, protagonist, seed, language):
        self.calls.append(("refine_concept", (genre, conflict, protagonist, seed, language)))
        await self._settle("refine_concept")
        return StoryConcept(title=f"{genre} story", premise=f"{protagonist} faces {conflict}")

    async def generate_shot_image(self, context: GenerationContext) -> str:
        self.calls.append(("generate_shot_image", context))
        await self._settle(context.shot_id)
        return self._artifact("image/png", context.shot_id)

    async def generate_character_reference(self, character, style) -> str:
        self.calls.append(("generate_character_reference", (character, style)))
        await self._settle(character.id)
        return self._artifact("image/png", character.id)

    async def edit_image(self, image: str, instruction: str) -> str:
        self.calls.append(("edit_image", (image, instruction)))
        await self._settle("edit_image")
        return self._artifact("image/png", "edited")

    async def animate(self, image: str, motion_prompt: str, aspect_ratio: str) -> str:
        self.calls.append(("animate", (image, motion_prompt, aspect_ratio)))
        await self._settle("animate")
        return self._artifact("video/mp4", "clip")

    async def chat(self, message: str, history: Sequence[ChatMessage]) -> ChatMessage:
        self.calls.append(("chat", (message, tuple(history))))
        await self._settle("chat")
        return ChatMessage(role="model", text=f"echo: {message}")


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def sample_characters() -> List[CharacterProfile]:
    """Two roster characters, one with a reference image."""
    return [
        CharacterProfile(
            id="char-mara",
            name="Mara Quill",
            summary="A safecracker who never carries a gun",
            age="34",
            gender="female",
            occupation="safecracker",
            visual_traits=["silver bob haircut", "scar across left eyebrow", "green trench coat"],
            reference_image_url="data:image/jpeg;base64,MARAREF",
        ),
        CharacterProfile(
            id="char-otto",
            name="Otto Brisk",
            summary="Getaway driver",
            visual_traits=["bald", "aviator sunglasses"],
        ),
    ]


@pytest.fixture
def sample_items() -> List[KeyItem]:
    return [
        KeyItem(id="item-key", name="Brass Key", description="An ornate skeleton key",
                image_url="data:image/png;base64,KEYIMG"),
        KeyItem(id="item-map", name="Vault Map", description="Hand-drawn blueprint"),
    ]


def make_shot(number: int, **fields) -> Shot:
    return Shot(
        id=fields.pop("id", f"shot-{number}"),
        sequence_number=number,
        shot_type=fields.pop("shot_type", "wide"),
        narrative_description=fields.pop("narrative_description", f"Beat {number}"),
        visual_prompt=fields.pop("visual_prompt", f"Visual prompt {number}"),
        **fields,
    )


@pytest.fixture
def sample_script(sample_characters, sample_items) -> StoryboardScript:
    """A three-shot script titled 'Heist'."""
    return StoryboardScript(
        title="Heist",
        theme="Trust among thieves",
        visual_style="cinematic",
        shots=[
            make_shot(1, shot_type="establishing", assigned_character_id="char-mara"),
            make_shot(2, shot_type="close-up", assigned_item_ids=["item-key"]),
            make_shot(3, shot_type="over-the-shoulder"),
        ],
    )


@pytest.fixture
def fake_service() -> FakeGenerationService:
    return FakeGenerationService()


@pytest.fixture
def project_state(sample_characters, sample_items) -> ProjectState:
    return ProjectState(
        project_id=new_id(),
        roster=Roster(sample_characters, sample_items),
        language=Language.EN,
    )


@pytest.fixture
def controller(fake_service, project_state, sample_script) -> ShotLifecycleController:
    """Controller with the sample script loaded."""
    ctrl = ShotLifecycleController(fake_service, project_state, FeatureFlags())
    ctrl.load_script(sample_script)
    return ctrl


@pytest.fixture
def test_config(temp_dir) -> VisionaryConfig:
    config = VisionaryConfig()
    config.storage.storage_dir = temp_dir / "storage"
    config.generation.poll_interval = 0.0
    config.generation.max_poll_attempts = 3
    return config


@pytest.fixture
def shot_factory():
    """Build shots with sensible defaults."""
    return make_shot
