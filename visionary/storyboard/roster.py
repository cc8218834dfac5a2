"""
Character and item rosters.

A ``Roster`` holds the characters and items in scope for one project. A
``GlobalLibrary`` holds cross-project templates. Moving an asset between the
two always copies it, so later edits on one side never leak to the other.
"""

from __future__ import annotations

import copy
from typing import Any, Iterable, List, Optional, Tuple

from visionary.core.exceptions import AssetNotFoundError, UnknownFieldError
from visionary.core.logging_config import get_logger

from .models import CharacterProfile, KeyItem, new_id, split_traits

logger = get_logger("storyboard.roster")


# =============================================================================
# FIELD UPDATES
# =============================================================================

def update_character(character: CharacterProfile, field_name: str, value: Any) -> CharacterProfile:
    """Set one editable field on ``character`` in place.

    ``visual_traits`` also accepts a comma-separated string.
    """
    if field_name not in CharacterProfile.EDITABLE_FIELDS:
        raise UnknownFieldError("character", field_name)
    if field_name == "visual_traits":
        value = split_traits(value) if isinstance(value, str) else list(value)
    setattr(character, field_name, value)
    return character


def update_item(item: KeyItem, field_name: str, value: Any) -> KeyItem:
    """Set one editable field on ``item`` in place."""
    if field_name not in KeyItem.EDITABLE_FIELDS:
        raise UnknownFieldError("item", field_name)
    setattr(item, field_name, value)
    return item


def new_character(name: str = "", **fields: Any) -> CharacterProfile:
    character = CharacterProfile(id=new_id(), name=name)
    for field_name, value in fields.items():
        update_character(character, field_name, value)
    return character


def new_item(name: str = "", **fields: Any) -> KeyItem:
    item = KeyItem(id=new_id(), name=name)
    for field_name, value in fields.items():
        update_item(item, field_name, value)
    return item


def _local_copy(asset):
    clone = copy.deepcopy(asset)
    clone.is_global = False
    return clone


def _global_copy(asset):
    clone = copy.deepcopy(asset)
    clone.is_global = True
    return clone


def _upsert(collection: list, asset) -> None:
    for index, existing in enumerate(collection):
        if existing.id == asset.id:
            collection[index] = asset
            return
    collection.append(asset)


# =============================================================================
# PROJECT ROSTER
# =============================================================================

class Roster:
    """Characters and items in scope for the active project."""

    def __init__(
        self,
        characters: Optional[Iterable[CharacterProfile]] = None,
        items: Optional[Iterable[KeyItem]] = None,
    ):
        self.characters: List[CharacterProfile] = list(characters or [])
        self.items: List[KeyItem] = list(items or [])

    # -- characters ---------------------------------------------------------

    def find_character(self, character_id: Optional[str]) -> Optional[CharacterProfile]:
        if not character_id:
            return None
        return next((c for c in self.characters if c.id == character_id), None)

    def get_character(self, character_id: str) -> CharacterProfile:
        character = self.find_character(character_id)
        if character is None:
            raise AssetNotFoundError("character", character_id)
        return character

    def add_character(self, character: CharacterProfile) -> CharacterProfile:
        _upsert(self.characters, character)
        return character

    def remove_character(self, character_id: str) -> bool:
        before = len(self.characters)
        self.characters = [c for c in self.characters if c.id != character_id]
        return len(self.characters) != before

    def update_character(self, character_id: str, field_name: str, value: Any) -> CharacterProfile:
        return update_character(self.get_character(character_id), field_name, value)

    def set_character_reference(self, character_id: str, image: str) -> CharacterProfile:
        """Install a freshly drawn reference image, keeping the old one in the gallery."""
        character = self.get_character(character_id)
        previous = character.reference_image_url
        if previous and previous not in character.alternate_images:
            character.alternate_images.append(previous)
        character.reference_image_url = image
        return character

    def select_alternate_image(self, character_id: str, index: int) -> CharacterProfile:
        """Swap gallery entry ``index`` in as the reference image."""
        character = self.get_character(character_id)
        if not 0 <= index < len(character.alternate_images):
            raise AssetNotFoundError("alternate image", f"{character_id}[{index}]")
        chosen = character.alternate_images[index]
        if character.reference_image_url:
            character.alternate_images[index] = character.reference_image_url
        else:
            del character.alternate_images[index]
        character.reference_image_url = chosen
        return character

    # -- items --------------------------------------------------------------

    def find_item(self, item_id: Optional[str]) -> Optional[KeyItem]:
        if not item_id:
            return None
        return next((i for i in self.items if i.id == item_id), None)

    def get_item(self, item_id: str) -> KeyItem:
        item = self.find_item(item_id)
        if item is None:
            raise AssetNotFoundError("item", item_id)
        return item

    def add_item(self, item: KeyItem) -> KeyItem:
        _upsert(self.items, item)
        return item

    def remove_item(self, item_id: str) -> bool:
        before = len(self.items)
        self.items = [i for i in self.items if i.id != item_id]
        return len(self.items) != before

    def update_item(self, item_id: str, field_name: str, value: Any) -> KeyItem:
        return update_item(self.get_item(item_id), field_name, value)

    # -- library exchange ---------------------------------------------------

    def import_from_library(
        self,
        library: GlobalLibrary,
        character_ids: Iterable[str] = (),
        item_ids: Iterable[str] = (),
    ) -> int:
        """Copy library assets into the project; ids already present are skipped.

        Returns the number of assets imported.
        """
        imported = 0
        for character_id in character_ids:
            if self.find_character(character_id) is not None:
                continue
            self.characters.append(_local_copy(library.get_character(character_id)))
            imported += 1
        for item_id in item_ids:
            if self.find_item(item_id) is not None:
                continue
            self.items.append(_local_copy(library.get_item(item_id)))
            imported += 1
        logger.info(f"Imported {imported} asset(s) from the global library")
        return imported

    def snapshot(self) -> Tuple[List[CharacterProfile], List[KeyItem]]:
        """Independent copies of the current roster."""
        return copy.deepcopy(self.characters), copy.deepcopy(self.items)

    def replace(self, characters: Iterable[CharacterProfile], items: Iterable[KeyItem]) -> None:
        self.characters = copy.deepcopy(list(characters))
        self.items = copy.deepcopy(list(items))


# =============================================================================
# GLOBAL LIBRARY
# =============================================================================

class GlobalLibrary:
    """Cross-project character and item templates."""

    def __init__(
        self,
        characters: Optional[Iterable[CharacterProfile]] = None,
        items: Optional[Iterable[KeyItem]] = None,
    ):
        self.characters: List[CharacterProfile] = list(characters or [])
        self.items: List[KeyItem] = list(items or [])

    def get_character(self, character_id: str) -> CharacterProfile:
        for character in self.characters:
            if character.id == character_id:
                return character
        raise AssetNotFoundError("character", character_id)

    def get_item(self, item_id: str) -> KeyItem:
        for item in self.items:
            if item.id == item_id:
                return item
        raise AssetNotFoundError("item", item_id)

    def save_character(self, character: CharacterProfile) -> CharacterProfile:
        """Upsert a copy of ``character`` flagged as global."""
        stored = _global_copy(character)
        _upsert(self.characters, stored)
        return stored

    def save_item(self, item: KeyItem) -> KeyItem:
        stored = _global_copy(item)
        _upsert(self.items, stored)
        return stored

    def search_characters(self, text: str) -> List[CharacterProfile]:
        needle = text.strip().lower()
        if not needle:
            return list(self.characters)
        return [
            c for c in self.characters
            if needle in c.name.lower() or needle in c.summary.lower()
        ]

    def search_items(self, text: str) -> List[KeyItem]:
        needle = text.strip().lower()
        if not needle:
            return list(self.items)
        return [
            i for i in self.items
            if needle in i.name.lower() or needle in i.description.lower()
        ]

    def remove_many(self, character_ids: Iterable[str] = (), item_ids: Iterable[str] = ()) -> int:
        """Bulk delete by id. Returns the number of assets removed."""
        drop_chars = set(character_ids)
        drop_items = set(item_ids)
        before = len(self.characters) + len(self.items)
        self.characters = [c for c in self.characters if c.id not in drop_chars]
        self.items = [i for i in self.items if i.id not in drop_items]
        return before - len(self.characters) - len(self.items)
