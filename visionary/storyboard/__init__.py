"""
Visionary Storyboard Module

Data model, rosters, generation-context assembly and the shot lifecycle
controller.
"""

from .context_assembly import ContextPart, GenerationContext, assemble_generation_context
from .lifecycle import ShotLifecycleController
from .models import (
    CharacterProfile,
    FormatSettings,
    KeyItem,
    Project,
    Shot,
    ShotStatus,
    StoryboardScript,
)
from .roster import GlobalLibrary, Roster
from .state import AuthorizationGate, ProjectState

__all__ = [
    'CharacterProfile',
    'KeyItem',
    'Shot',
    'ShotStatus',
    'StoryboardScript',
    'FormatSettings',
    'Project',
    'Roster',
    'GlobalLibrary',
    'ProjectState',
    'AuthorizationGate',
    'ContextPart',
    'GenerationContext',
    'assemble_generation_context',
    'ShotLifecycleController',
]
