"""
Visionary Studio

Top-level facade tying the project state, the shot lifecycle controller, the
project store and the Generation Service together. Mirrors the authoring
flows: quick create or guided concept, roster and library management,
character reference drawing, save/load/delete, and the grounded assistant.

Roster and library mutations write through to storage immediately. When a
write is rejected the in-memory edit stays applied and the storage error is
raised to the caller.
"""

from __future__ import annotations

import copy
import time
from typing import Any, Iterable, List, Optional, Set, Tuple

from visionary.core.config import VisionaryConfig, get_config
from visionary.core.constants import ImageSize, Language, resolve_style
from visionary.core.exceptions import (
    AssetNotFoundError,
    AuthorizationMissing,
    NoActiveScriptError,
    OperationInFlightError,
)
from visionary.core.logging_config import LogLevel, get_logger, setup_logging
from visionary.llm.gemini_client import GeminiGenerationService
from visionary.llm.generation_service import ChatMessage, GenerationService, StoryConcept
from visionary.storage.backends import JsonFileStorage
from visionary.storage.project_store import ProjectStore
from visionary.storyboard.lifecycle import ShotLifecycleController
from visionary.storyboard.models import (
    CharacterProfile,
    FormatSettings,
    KeyItem,
    Project,
    StoryboardScript,
    new_id,
)
from visionary.storyboard.roster import GlobalLibrary, new_character, new_item
from visionary.storyboard.state import AuthorizationGate, ProjectState

logger = get_logger("studio")


class StoryboardStudio:
    """
    One authoring session.

    Usage:
        studio = StoryboardStudio.from_config()
        studio.start()
        script = await studio.quick_create("A heist on a floating city")
        await studio.controller.request_image_generation(script.shots[0].id)
        studio.save_project()
    """

    def __init__(
        self,
        service: GenerationService,
        store: ProjectStore,
        config: Optional[VisionaryConfig] = None,
    ):
        self.config = config or get_config()
        self.service = service
        self.store = store
        self.gate = AuthorizationGate()
        self.state = self._fresh_state()
        self.controller = ShotLifecycleController(
            service, self.state, self.config.features, self.gate
        )
        self.chat_history: List[ChatMessage] = []
        self.pending_concept: Optional[StoryConcept] = None
        self._drawing: Set[str] = set()

    @classmethod
    def from_config(
        cls,
        config: Optional[VisionaryConfig] = None,
        api_key: Optional[str] = None,
    ) -> StoryboardStudio:
        """Build a studio with file-backed storage and the Gemini service."""
        config = config or get_config()
        if config.verbose_logging:
            setup_logging(level=LogLevel.DEBUG, verbose=True)
        storage = JsonFileStorage(config.storage.storage_dir, config.storage.quota_bytes)
        service = GeminiGenerationService(api_key=api_key, config=config.generation)
        return cls(service, ProjectStore(storage), config)

    def _fresh_state(self) -> ProjectState:
        defaults = self.config.defaults
        return ProjectState(
            format_settings=FormatSettings(
                aspect_ratio=defaults.aspect_ratio,
                image_size=ImageSize(defaults.image_size),
                visual_style=defaults.visual_style,
            ),
            language=Language(defaults.language),
            max_reference_images=defaults.max_reference_images,
        )

    def start(self) -> None:
        """Restore rosters and libraries from storage."""
        self.store.load_all()
        self.state.roster.replace(self.store.characters, self.store.items)
        self.state.library = GlobalLibrary(
            copy.deepcopy(self.store.global_characters),
            copy.deepcopy(self.store.global_items),
        )

    # =========================================================================
    # AUTHORIZATION
    # =========================================================================

    @property
    def authorized(self) -> bool:
        return self.gate.is_open and self.service.has_credentials()

    def restore_authorization(self, api_key: Optional[str] = None) -> None:
        """Reopen generation after the user supplies a credential."""
        if api_key and hasattr(self.service, "set_api_key"):
            self.service.set_api_key(api_key)
        self.gate.open()

    async def _guarded(self, call):
        self.gate.check(self.service)
        try:
            return await call()
        except AuthorizationMissing as e:
            self.gate.close(str(e))
            raise

    # =========================================================================
    # SCRIPT CREATION
    # =========================================================================

    async def quick_create(self, seed: str) -> StoryboardScript:
        """Write a script straight from a one-line premise and make it active."""
        if not seed.strip():
            raise ValueError("Story seed is empty")
        style = resolve_style(self.state.format_settings.visual_style)
        characters = list(self.state.roster.characters)
        script = await self._guarded(lambda: self.service.generate_storyboard(
            seed, style, self.state.language, characters
        ))
        return self._start_project(script)

    async def refine_concept(
        self,
        genre: str,
        conflict: str,
        protagonist: str,
        seed: str = "",
    ) -> StoryConcept:
        """Guided flow, step one: turn structured inputs into a premise."""
        concept = await self._guarded(lambda: self.service.refine_concept(
            genre, conflict, protagonist, seed, self.state.language
        ))
        self.pending_concept = concept
        return concept

    async def accept_concept(self, concept: Optional[StoryConcept] = None) -> StoryboardScript:
        """Guided flow, step two: write the script from the accepted premise."""
        concept = concept or self.pending_concept
        if concept is None:
            raise ValueError("No concept to accept")
        script = await self.quick_create(concept.premise)
        self.pending_concept = None
        return script

    def _start_project(self, script: StoryboardScript) -> StoryboardScript:
        self.state.project_id = new_id()
        self.state.last_viewed_shot_id = None
        self.controller.load_script(script)
        logger.info(f"New project {self.state.project_id}: '{script.title}'")
        return self.controller.snapshot_script()

    # =========================================================================
    # PROJECTS
    # =========================================================================

    def save_project(self) -> Project:
        """Upsert the active project with a snapshot of the current roster."""
        script = self.controller.snapshot_script()
        if script is None:
            raise NoActiveScriptError("save project")
        if self.state.project_id is None:
            self.state.project_id = new_id()
        project = Project(
            id=self.state.project_id,
            script=script,
            format_settings=copy.deepcopy(self.state.format_settings),
            saved_at=time.time(),
            last_viewed_shot_id=self.state.last_viewed_shot_id,
        )
        self.store.upsert_project(project)
        return project

    def load_project(self, project_id: str) -> Project:
        """Make a saved project active: script, roster, references and format."""
        stored = self.store.get_project(project_id)
        if stored is None:
            raise AssetNotFoundError("project", project_id)
        project = copy.deepcopy(stored)

        self.state.project_id = project.id
        self.state.format_settings = project.format_settings
        self.state.reference_images = list(project.script.reference_images)
        self.state.last_viewed_shot_id = project.last_viewed_shot_id
        self.state.roster.replace(project.script.character_roster, project.script.item_roster)
        self.controller.load_script(project.script)
        logger.info(f"Loaded project {project.id}: '{project.script.title}'")

        self._persist_roster()
        return project

    def delete_project(self, project_id: str) -> bool:
        deleted = self.store.delete_project(project_id)
        if deleted and self.state.project_id == project_id:
            self.state.project_id = None
        return deleted

    def list_projects(self) -> List[Project]:
        """Saved projects, most recently saved first."""
        return copy.deepcopy(self.store.projects)

    def close_project(self) -> None:
        self.controller.clear()
        self.state.project_id = None
        self.state.reference_images = []
        self.state.last_viewed_shot_id = None

    # =========================================================================
    # FORMAT & REFERENCES
    # =========================================================================

    def set_style(self, style_id: str, custom_description: Optional[str] = None) -> FormatSettings:
        return self.state.set_style(style_id, custom_description)

    def set_format(self, **changes: Any) -> FormatSettings:
        if "image_size" in changes:
            changes["image_size"] = ImageSize(changes["image_size"])
        return self.state.update_format(**changes)

    def set_language(self, language: str) -> None:
        self.state.language = Language(language)

    def add_reference_images(self, images: Iterable[str]) -> int:
        return self.state.add_reference_images(images)

    def remove_reference_image(self, index: int) -> None:
        self.state.remove_reference_image(index)

    def view_shot(self, shot_id: str) -> None:
        self.controller.get_shot(shot_id)
        self.state.last_viewed_shot_id = shot_id

    # =========================================================================
    # PROJECT ROSTER
    # =========================================================================

    def _persist_characters(self) -> None:
        self.store.persist_character_roster(self.state.roster.characters)

    def _persist_items(self) -> None:
        self.store.persist_item_roster(self.state.roster.items)

    def _persist_roster(self) -> None:
        self._persist_characters()
        self._persist_items()

    def _persist_library(self) -> None:
        self.store.persist_global_libraries(self.state.library.characters, self.state.library.items)

    def add_character(self, name: str = "", **fields: Any) -> CharacterProfile:
        character = self.state.roster.add_character(new_character(name, **fields))
        self._persist_characters()
        return copy.deepcopy(character)

    def update_character(self, character_id: str, field_name: str, value: Any) -> CharacterProfile:
        character = self.state.roster.update_character(character_id, field_name, value)
        self._persist_characters()
        return copy.deepcopy(character)

    def remove_character(self, character_id: str) -> bool:
        removed = self.state.roster.remove_character(character_id)
        if removed:
            self.controller.forget_asset_references(character_ids=[character_id])
            self._persist_characters()
        return removed

    def add_item(self, name: str = "", **fields: Any) -> KeyItem:
        self.config.features.require("item_library")
        item = self.state.roster.add_item(new_item(name, **fields))
        self._persist_items()
        return copy.deepcopy(item)

    def update_item(self, item_id: str, field_name: str, value: Any) -> KeyItem:
        self.config.features.require("item_library")
        item = self.state.roster.update_item(item_id, field_name, value)
        self._persist_items()
        return copy.deepcopy(item)

    def remove_item(self, item_id: str) -> bool:
        self.config.features.require("item_library")
        removed = self.state.roster.remove_item(item_id)
        if removed:
            self.controller.forget_asset_references(item_ids=[item_id])
            self._persist_items()
        return removed

    async def generate_character_reference(self, character_id: str) -> Optional[CharacterProfile]:
        """Draw (or redraw) a character's design sheet.

        The previous reference image moves to the character's gallery. Returns
        None if the character was removed while drawing.
        """
        character = self.state.roster.get_character(character_id)
        if character_id in self._drawing:
            raise OperationInFlightError(character_id, "draw reference", "drawing")

        subject = copy.deepcopy(character)
        style = resolve_style(self.state.format_settings.visual_style)
        self._drawing.add(character_id)
        try:
            image = await self._guarded(
                lambda: self.service.generate_character_reference(subject, style)
            )
        finally:
            self._drawing.discard(character_id)

        if self.state.roster.find_character(character_id) is None:
            logger.info(f"Character {character_id} removed while drawing, result discarded")
            return None
        updated = self.state.roster.set_character_reference(character_id, image)
        self._persist_characters()
        return copy.deepcopy(updated)

    def select_alternate_image(self, character_id: str, index: int) -> CharacterProfile:
        character = self.state.roster.select_alternate_image(character_id, index)
        self._persist_characters()
        return copy.deepcopy(character)

    # =========================================================================
    # GLOBAL LIBRARY
    # =========================================================================

    def save_character_to_library(self, character_id: str) -> CharacterProfile:
        self.config.features.require("global_vault")
        stored = self.state.library.save_character(self.state.roster.get_character(character_id))
        self._persist_library()
        return copy.deepcopy(stored)

    def save_item_to_library(self, item_id: str) -> KeyItem:
        self.config.features.require("global_vault")
        stored = self.state.library.save_item(self.state.roster.get_item(item_id))
        self._persist_library()
        return copy.deepcopy(stored)

    def import_from_library(
        self,
        character_ids: Iterable[str] = (),
        item_ids: Iterable[str] = (),
    ) -> int:
        self.config.features.require("global_vault")
        imported = self.state.roster.import_from_library(self.state.library, character_ids, item_ids)
        if imported:
            self._persist_roster()
        return imported

    def search_library(self, text: str) -> Tuple[List[CharacterProfile], List[KeyItem]]:
        self.config.features.require("global_vault")
        library = self.state.library
        return copy.deepcopy(library.search_characters(text)), copy.deepcopy(library.search_items(text))

    def remove_from_library(
        self,
        character_ids: Iterable[str] = (),
        item_ids: Iterable[str] = (),
    ) -> int:
        self.config.features.require("global_vault")
        removed = self.state.library.remove_many(character_ids, item_ids)
        if removed:
            self._persist_library()
        return removed

    # =========================================================================
    # ASSISTANT
    # =========================================================================

    async def chat(self, message: str) -> ChatMessage:
        """Ask the grounded assistant; the exchange is appended to the history."""
        history = tuple(self.chat_history)
        reply = await self._guarded(lambda: self.service.chat(message, history))
        self.chat_history.append(ChatMessage(role="user", text=message))
        self.chat_history.append(reply)
        return reply
