"""
Visionary Prompts

Prompt templates and response schemas for the Generation Service.
"""

from typing import Dict, Sequence

from visionary.core.constants import Language, StylePreset
from visionary.storyboard.models import CharacterProfile


class StoryboardPromptLibrary:
    """
    Prompt templates for:
    - Concept refinement (guided flow)
    - Script writing
    - Character design sheets
    - Image edits
    """

    # ==========================================================================
    # CONCEPT & SCRIPT
    # ==========================================================================

    REFINE_CONCEPT = """You are a world-class screenwriter and narrative designer. Your goal is to refine raw story inputs into a professional cinematic premise.

GENRE: {genre}
PRIMARY CONFLICT: {conflict}
PROTAGONIST: {protagonist}
INITIAL SEED: {seed}

OUTPUT LANGUAGE: {language_name}

Please provide a catchy title and a high-stakes, 2-3 sentence premise that defines the inciting incident and the protagonist's goal."""

    WRITE_SCRIPT = """You are an expert film director and storyboard artist. Create a professional storyboard script.

CORE STORY IDEA: "{seed}"
MASTER VISUAL STYLE: {style_name}
STYLE DEFINITION: {style_description}

{character_context}

TASK INSTRUCTIONS:
1. Generate a sequence of 6-8 shots that tell a coherent story.
2. {language_instruction}
3. CRITICAL CONSISTENCY RULE: Every "visualPrompt" MUST be in English.
4. "visualPrompt" MUST act as a precise image generation prompt. It must explicitly include the style keyword "{style_name}" and detailed descriptions.
5. CHARACTER PERSISTENCE: If a character from the "CHARACTER BIBLE" is in the shot, you MUST include their full physical traits in the "visualPrompt". Describe their features exactly as provided.
6. "characterInvolved" must contain the ID of the primary character featured in that shot."""

    LANGUAGE_INSTRUCTIONS = {
        Language.ZH: "Please output all text content (title, theme, shotType, description, dialogue) in Simplified Chinese.",
        Language.EN: "Please output all text content in English.",
    }

    LANGUAGE_NAMES = {
        Language.ZH: "Simplified Chinese",
        Language.EN: "English",
    }

    # ==========================================================================
    # IMAGES
    # ==========================================================================

    CHARACTER_SHEET = """CHARACTER CONCEPT DESIGN SHEET:
Name: {name}, Traits: {traits}.
Style: {style}. Front and side view, neutral background."""

    EDIT_IMAGE = "Edit this image: {instruction}"

    # ==========================================================================
    # RESPONSE SCHEMAS (Gemini OpenAPI subset)
    # ==========================================================================

    CONCEPT_SCHEMA: Dict = {
        "type": "OBJECT",
        "properties": {
            "title": {"type": "STRING"},
            "premise": {"type": "STRING"},
        },
        "required": ["title", "premise"],
    }

    SCRIPT_SCHEMA: Dict = {
        "type": "OBJECT",
        "properties": {
            "title": {"type": "STRING"},
            "theme": {"type": "STRING"},
            "visualStyle": {"type": "STRING"},
            "shots": {
                "type": "ARRAY",
                "items": {
                    "type": "OBJECT",
                    "properties": {
                        "shotNumber": {"type": "INTEGER"},
                        "shotType": {"type": "STRING"},
                        "description": {"type": "STRING"},
                        "visualPrompt": {"type": "STRING"},
                        "dialogue": {"type": "STRING"},
                        "characterInvolved": {"type": "STRING"},
                    },
                    "required": ["shotNumber", "shotType", "description", "visualPrompt"],
                },
            },
        },
        "required": ["title", "theme", "visualStyle", "shots"],
    }

    @classmethod
    def render_refine_concept(
        cls, genre: str, conflict: str, protagonist: str, seed: str, language: Language
    ) -> str:
        return cls.REFINE_CONCEPT.format(
            genre=genre,
            conflict=conflict,
            protagonist=protagonist,
            seed=seed,
            language_name=cls.LANGUAGE_NAMES[language],
        )

    @classmethod
    def render_script(
        cls,
        seed: str,
        style: StylePreset,
        language: Language,
        characters: Sequence[CharacterProfile] = (),
    ) -> str:
        character_context = ""
        if characters:
            entries = "; ".join(
                f"[ID: {c.id}] Name: {c.name}, Bio: {c.summary}" for c in characters
            )
            character_context = f"THE CHARACTER BIBLE (STRICTLY ADHERE TO THESE BIOGRAPHIES): {entries}"
        return cls.WRITE_SCRIPT.format(
            seed=seed,
            style_name=style.name,
            style_description=style.description,
            character_context=character_context,
            language_instruction=cls.LANGUAGE_INSTRUCTIONS[language],
        )

    @classmethod
    def render_character_sheet(cls, character: CharacterProfile, style: StylePreset) -> str:
        return cls.CHARACTER_SHEET.format(
            name=character.name,
            traits=", ".join(character.visual_traits),
            style=f"{style.name} style",
        )

    @classmethod
    def render_edit(cls, instruction: str) -> str:
        return cls.EDIT_IMAGE.format(instruction=instruction)
