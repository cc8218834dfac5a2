"""
Visionary Studio - AI-Assisted Storyboard Authoring

Turns a story idea into a shot list, per-shot illustrations and short video
clips through an external generative service, and keeps the resulting
storyboards, character bibles and item libraries in durable local storage.

Version: 1.0.0
"""

__version__ = "1.0.0"
__project__ = "Visionary Studio"

# Load environment variables before anything reads an API key
from visionary.core.env_loader import ensure_env_loaded
ensure_env_loaded()

from .studio import StoryboardStudio

__all__ = [
    '__version__',
    'StoryboardStudio',
]
