"""
Project-wide editable state.

``ProjectState`` gathers the settings that feed every generation request
(format settings, roster, free-form reference images, language) into one
owned aggregate, so related fields such as the style id and the custom style
text always change together. ``AuthorizationGate`` is the project-wide
credential switch shared by every generation entry point.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable, List, Optional

from visionary.core.constants import MAX_REFERENCE_IMAGES, Language
from visionary.core.exceptions import AuthorizationMissing
from visionary.core.logging_config import get_logger

from .models import FormatSettings
from .roster import GlobalLibrary, Roster

logger = get_logger("storyboard.state")


@dataclass
class ProjectState:
    """The active project's editable settings."""
    project_id: Optional[str] = None
    format_settings: FormatSettings = field(default_factory=FormatSettings)
    roster: Roster = field(default_factory=Roster)
    library: GlobalLibrary = field(default_factory=GlobalLibrary)
    reference_images: List[str] = field(default_factory=list)
    language: Language = Language.ZH
    max_reference_images: int = MAX_REFERENCE_IMAGES
    last_viewed_shot_id: Optional[str] = None

    def update_format(self, **changes) -> FormatSettings:
        """Replace format settings atomically; validation runs before anything changes."""
        self.format_settings = replace(self.format_settings, **changes)
        return self.format_settings

    def set_style(self, style_id: str, custom_description: Optional[str] = None) -> FormatSettings:
        return self.update_format(
            visual_style=style_id,
            custom_style_description=custom_description,
        )

    def add_reference_images(self, images: Iterable[str]) -> int:
        """Append images up to the slot limit. Returns how many were accepted."""
        remaining = self.max_reference_images - len(self.reference_images)
        accepted = list(images)[:max(remaining, 0)]
        self.reference_images.extend(accepted)
        return len(accepted)

    def remove_reference_image(self, index: int) -> None:
        del self.reference_images[index]


class AuthorizationGate:
    """Project-wide credential switch.

    Closed when the Generation Service reports a missing or invalid credential;
    stays closed until ``open()`` is called after the user supplies a key.
    """

    def __init__(self, is_open: bool = True):
        self._open = is_open
        self.reason: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self._open

    def close(self, reason: str) -> None:
        if self._open:
            logger.warning(f"Authorization gate closed: {reason}")
        self._open = False
        self.reason = reason

    def open(self) -> None:
        self._open = True
        self.reason = None
        logger.info("Authorization gate reopened")

    def check(self, service) -> None:
        """Raise AuthorizationMissing unless generation may be dispatched."""
        if not self._open:
            raise AuthorizationMissing(
                "Generation is locked until a valid API key is supplied",
                {"reason": self.reason},
            )
        if not service.has_credentials():
            self.close("no API key configured")
            raise AuthorizationMissing("No API key configured for the Generation Service")
