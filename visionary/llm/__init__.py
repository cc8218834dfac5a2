"""
Visionary LLM Module

Generation Service contract and the Gemini-backed implementation.
"""

from .generation_service import ChatMessage, Citation, GenerationService, StoryConcept
from .gemini_client import GeminiGenerationService, TransientAPIError

__all__ = [
    'GenerationService',
    'GeminiGenerationService',
    'TransientAPIError',
    'StoryConcept',
    'ChatMessage',
    'Citation',
]
