"""
Tests for Storyboard Data Model

Tests for visionary/storyboard/models.py
"""

import pytest

from visionary.core.constants import ImageSize
from visionary.storyboard.models import (
    CharacterProfile,
    FormatSettings,
    Project,
    ShotStatus,
    StoryboardScript,
    split_traits,
)


class TestShotStatus:
    """Tests for ShotStatus."""

    def test_busy_statuses(self):
        assert ShotStatus.GENERATING.is_busy
        assert ShotStatus.ANIMATING.is_busy
        assert not ShotStatus.COMPLETED.is_busy
        assert not ShotStatus.ERROR.is_busy
        assert not ShotStatus.IDLE.is_busy


class TestFormatSettings:
    """Tests for FormatSettings."""

    def test_defaults(self):
        settings = FormatSettings()

        assert settings.aspect_ratio == "16:9"
        assert settings.image_size == ImageSize.SIZE_1K
        assert settings.visual_style == "cinematic"

    def test_rejects_unknown_aspect_ratio(self):
        with pytest.raises(ValueError):
            FormatSettings(aspect_ratio="5:4")

    def test_coerces_image_size(self):
        assert FormatSettings(image_size="2K").image_size == ImageSize.SIZE_2K

    def test_pro_sizes(self):
        assert not ImageSize.SIZE_1K.is_pro
        assert ImageSize.SIZE_2K.is_pro
        assert ImageSize.SIZE_4K.is_pro


class TestCharacterProfile:
    """Tests for CharacterProfile."""

    def test_from_dict_splits_trait_string(self):
        character = CharacterProfile.from_dict({
            "id": "c1",
            "name": "Ivy",
            "visual_traits": "red hair,  freckles , ,tall",
        })

        assert character.visual_traits == ["red hair", "freckles", "tall"]

    def test_from_dict_generates_missing_id(self):
        assert CharacterProfile.from_dict({"name": "Nameless"}).id

    def test_split_traits(self):
        assert split_traits(" a , b,,c ") == ["a", "b", "c"]


class TestProjectSerialization:
    """Tests for Project to_dict/from_dict."""

    def test_project_round_trip(self, sample_script, sample_characters, sample_items):
        sample_script.character_roster = sample_characters
        sample_script.item_roster = sample_items
        sample_script.shots[0].status = ShotStatus.COMPLETED
        sample_script.shots[0].image_url = "data:image/png;base64,AAA"
        project = Project(
            id="p1",
            script=sample_script,
            format_settings=FormatSettings(aspect_ratio="9:16", image_size=ImageSize.SIZE_2K),
            saved_at=1700000000.0,
            last_viewed_shot_id="shot-2",
        )

        restored = Project.from_dict(project.to_dict())

        assert restored == project

    def test_script_defaults(self):
        script = StoryboardScript.from_dict({"title": "Empty"})

        assert script.shots == []
        assert script.character_roster == []
        assert script.reference_images == []
