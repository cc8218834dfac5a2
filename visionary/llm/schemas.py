"""
Wire Models

Pydantic models for the Gemini REST responses the client consumes. Only the
fields we read are declared; everything else is ignored.
"""

from typing import Collection, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from visionary.storyboard.models import Shot, ShotStatus, StoryboardScript, new_id


class WireModel(BaseModel):
    """Base for camelCase wire payloads."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# =============================================================================
# STRUCTURED TEXT OUTPUTS
# =============================================================================

class ShotResponse(WireModel):
    """One shot as written by the script model."""
    shot_number: int = Field(alias="shotNumber")
    shot_type: str = Field(alias="shotType")
    description: str
    visual_prompt: str = Field(alias="visualPrompt")
    dialogue: Optional[str] = None
    character_involved: Optional[str] = Field(default=None, alias="characterInvolved")


class StoryboardResponse(WireModel):
    """A complete script as written by the script model."""
    title: str
    theme: str
    visual_style: str = Field(default="", alias="visualStyle")
    shots: List[ShotResponse] = Field(min_length=1)

    def to_script(self, known_character_ids: Collection[str] = ()) -> StoryboardScript:
        """Convert to a fresh script: new shot ids, all ``idle``, numbered 1..n."""
        shots = []
        for index, raw in enumerate(self.shots):
            character_id = raw.character_involved if raw.character_involved in known_character_ids else None
            shots.append(Shot(
                id=new_id(),
                sequence_number=index + 1,
                shot_type=raw.shot_type,
                narrative_description=raw.description,
                visual_prompt=raw.visual_prompt,
                status=ShotStatus.IDLE,
                dialogue=raw.dialogue or None,
                assigned_character_id=character_id,
            ))
        return StoryboardScript(
            title=self.title,
            theme=self.theme,
            visual_style=self.visual_style,
            shots=shots,
        )


class ConceptResponse(WireModel):
    title: str
    premise: str


# =============================================================================
# GENERATE CONTENT ENVELOPE
# =============================================================================

class InlineData(WireModel):
    mime_type: str = Field(default="image/png", alias="mimeType")
    data: str


class ResponsePart(WireModel):
    text: Optional[str] = None
    inline_data: Optional[InlineData] = Field(default=None, alias="inlineData")


class Content(WireModel):
    parts: List[ResponsePart] = Field(default_factory=list)


class WebSource(WireModel):
    uri: str = ""
    title: str = "Source"


class GroundingChunk(WireModel):
    web: Optional[WebSource] = None


class GroundingMetadata(WireModel):
    grounding_chunks: List[GroundingChunk] = Field(default_factory=list, alias="groundingChunks")


class Candidate(WireModel):
    content: Optional[Content] = None
    finish_reason: Optional[str] = Field(default=None, alias="finishReason")
    grounding_metadata: Optional[GroundingMetadata] = Field(default=None, alias="groundingMetadata")


class PromptFeedback(WireModel):
    block_reason: Optional[str] = Field(default=None, alias="blockReason")


class GenerateContentResponse(WireModel):
    candidates: List[Candidate] = Field(default_factory=list)
    prompt_feedback: Optional[PromptFeedback] = Field(default=None, alias="promptFeedback")

    def _parts(self) -> List[ResponsePart]:
        if not self.candidates or self.candidates[0].content is None:
            return []
        return self.candidates[0].content.parts

    @property
    def text(self) -> str:
        return "".join(part.text for part in self._parts() if part.text)

    def first_image(self) -> Optional[InlineData]:
        return next((p.inline_data for p in self._parts() if p.inline_data), None)

    def web_sources(self) -> List[WebSource]:
        if not self.candidates or self.candidates[0].grounding_metadata is None:
            return []
        return [
            chunk.web for chunk in self.candidates[0].grounding_metadata.grounding_chunks
            if chunk.web is not None
        ]


# =============================================================================
# LONG-RUNNING VIDEO OPERATIONS
# =============================================================================

class VideoRef(WireModel):
    uri: str


class GeneratedSample(WireModel):
    video: Optional[VideoRef] = None


class GenerateVideoResponse(WireModel):
    generated_samples: List[GeneratedSample] = Field(default_factory=list, alias="generatedSamples")


class OperationResponse(WireModel):
    generate_video_response: Optional[GenerateVideoResponse] = Field(
        default=None, alias="generateVideoResponse"
    )


class OperationError(WireModel):
    code: int = 0
    message: str = ""


class Operation(WireModel):
    """A long-running job handle as returned by ``predictLongRunning``."""
    name: str
    done: bool = False
    error: Optional[OperationError] = None
    response: Optional[OperationResponse] = None

    def video_uri(self) -> Optional[str]:
        if self.response is None or self.response.generate_video_response is None:
            return None
        for sample in self.response.generate_video_response.generated_samples:
            if sample.video is not None:
                return sample.video.uri
        return None
