"""
Project Store

Durable home of the saved-project list, the project-local rosters and the
global libraries. The cached collections change only after a write lands, so
a rejected write leaves both disk and cache at their previous value; the
caller's in-memory edits are never rolled back.
"""

import copy
from typing import Callable, Iterable, List, Optional, Sequence, TypeVar

from visionary.core.constants import StorageKey
from visionary.core.exceptions import StorageError
from visionary.core.logging_config import get_logger
from visionary.storyboard.models import CharacterProfile, KeyItem, Project

from .backends import KeyValueStorage

logger = get_logger("storage.project_store")

T = TypeVar("T")


class ProjectStore:
    """Persists projects and asset collections through a KeyValueStorage."""

    def __init__(self, storage: KeyValueStorage):
        self.storage = storage
        self.projects: List[Project] = []
        self.characters: List[CharacterProfile] = []
        self.items: List[KeyItem] = []
        self.global_characters: List[CharacterProfile] = []
        self.global_items: List[KeyItem] = []

    # =========================================================================
    # LOADING
    # =========================================================================

    def load_all(self) -> None:
        """Restore every slot. Missing or corrupt slots load as empty; never raises."""
        self.projects = self._load_list(StorageKey.PROJECTS, Project.from_dict)
        self.characters = self._load_list(StorageKey.CHARACTER_ROSTER, CharacterProfile.from_dict)
        self.items = self._load_list(StorageKey.ITEM_ROSTER, KeyItem.from_dict)
        self.global_characters = self._load_list(StorageKey.GLOBAL_CHARACTERS, CharacterProfile.from_dict)
        self.global_items = self._load_list(StorageKey.GLOBAL_ITEMS, KeyItem.from_dict)
        logger.info(
            f"Loaded {len(self.projects)} project(s), {len(self.global_characters)} library "
            f"character(s), {len(self.global_items)} library item(s)"
        )

    def _load_list(self, key: StorageKey, decode: Callable[[dict], T]) -> List[T]:
        try:
            raw = self.storage.read(key.value)
        except StorageError as e:
            logger.error(f"Could not read '{key.value}', starting empty: {e}")
            return []
        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.error(f"Slot '{key.value}' does not hold a list, starting empty")
            return []
        try:
            return [decode(entry) for entry in raw]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.error(f"Malformed entry in '{key.value}', starting empty: {e}")
            return []

    # =========================================================================
    # PROJECTS
    # =========================================================================

    def get_project(self, project_id: str) -> Optional[Project]:
        return next((p for p in self.projects if p.id == project_id), None)

    def upsert_project(self, project: Project) -> None:
        """Insert or replace by id; the saved project moves to the front."""
        updated = [copy.deepcopy(project)] + [p for p in self.projects if p.id != project.id]
        self._write(StorageKey.PROJECTS, [p.to_dict() for p in updated])
        self.projects = updated
        logger.info(f"Saved project '{project.script.title}' ({project.id})")

    def delete_project(self, project_id: str) -> bool:
        """Remove by id. Returns False if no such project existed."""
        if self.get_project(project_id) is None:
            return False
        remaining = [p for p in self.projects if p.id != project_id]
        self._write(StorageKey.PROJECTS, [p.to_dict() for p in remaining])
        self.projects = remaining
        logger.info(f"Deleted project {project_id}")
        return True

    # =========================================================================
    # ROSTERS & LIBRARIES
    # =========================================================================

    def persist_character_roster(self, characters: Sequence[CharacterProfile]) -> None:
        self._write(StorageKey.CHARACTER_ROSTER, [c.to_dict() for c in characters])
        self.characters = [CharacterProfile.from_dict(c.to_dict()) for c in characters]

    def persist_item_roster(self, items: Sequence[KeyItem]) -> None:
        self._write(StorageKey.ITEM_ROSTER, [i.to_dict() for i in items])
        self.items = [KeyItem.from_dict(i.to_dict()) for i in items]

    def persist_global_libraries(
        self,
        characters: Iterable[CharacterProfile],
        items: Iterable[KeyItem],
    ) -> None:
        """Write both library slots together; neither changes if the pair does not fit."""
        characters = list(characters)
        items = list(items)
        self.storage.write_many({
            StorageKey.GLOBAL_CHARACTERS.value: [c.to_dict() for c in characters],
            StorageKey.GLOBAL_ITEMS.value: [i.to_dict() for i in items],
        })
        logger.debug(f"Flushed global libraries ({len(characters)} character(s), {len(items)} item(s))")
        self.global_characters = [CharacterProfile.from_dict(c.to_dict()) for c in characters]
        self.global_items = [KeyItem.from_dict(i.to_dict()) for i in items]

    def _write(self, key: StorageKey, value) -> None:
        self.storage.write(key.value, value)
        logger.debug(f"Flushed '{key.value}' ({self.storage.size_of(key.value)} bytes)")
