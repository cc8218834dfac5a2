"""
Tests for Gemini Generation Service

Tests for visionary/llm/gemini_client.py, driven through httpx.MockTransport.
"""

import base64
import json
from typing import List

import httpx
import pytest

from visionary.core.config import GenerationConfig
from visionary.core.constants import ImageSize, Language, resolve_style
from visionary.core.exceptions import (
    AuthorizationMissing,
    ContentBlockedError,
    GenerationFailure,
    TimeoutExceeded,
)
from visionary.core.retry import RetryConfig
from visionary.llm.gemini_client import GeminiGenerationService, TransientAPIError
from visionary.llm.generation_service import ChatMessage
from visionary.storyboard.context_assembly import assemble_generation_context
from visionary.storyboard.models import FormatSettings, ShotStatus

API = "https://generativelanguage.googleapis.com/v1beta"


def image_response(data="IMGDATA", mime="image/png") -> dict:
    return {"candidates": [{"content": {"parts": [{"inlineData": {"mimeType": mime, "data": data}}]}}]}


def text_response(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class Recorder:
    """Replays canned responses and records every request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if callable(response):
            return response(request)
        return response

    def body(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def make_service():
    """Build a service over a Recorder; returns (service, recorder, sleeper)."""
    def build(*responses, api_key="test-key", max_retries=1):
        recorder = Recorder(*responses)
        sleeper = SleepRecorder()
        config = GenerationConfig(max_retries=max_retries, poll_interval=5.0, max_poll_attempts=3)
        service = GeminiGenerationService(
            api_key=api_key,
            config=config,
            client=httpx.AsyncClient(transport=httpx.MockTransport(recorder)),
            sleep=sleeper,
            retry=RetryConfig(
                max_retries=max_retries,
                base_delay=0.0,
                jitter=False,
                retryable_exceptions=(TransientAPIError,),
            ),
        )
        return service, recorder, sleeper
    return build


class TestShotImages:
    """Tests for generate_shot_image."""

    @pytest.mark.asyncio
    async def test_fast_model_for_1k(self, make_service, shot_factory, sample_characters):
        service, recorder, _ = make_service(httpx.Response(200, json=image_response(mime="image/jpeg")))
        shot = shot_factory(1, assigned_character_id="char-mara")
        context = assemble_generation_context(shot, FormatSettings(), sample_characters)

        image = await service.generate_shot_image(context)

        assert image == "data:image/jpeg;base64,IMGDATA"
        request = recorder.requests[0]
        assert str(request.url) == f"{API}/models/gemini-2.5-flash-image:generateContent"
        assert request.headers["x-goog-api-key"] == "test-key"
        body = recorder.body()
        parts = body["contents"][0]["parts"]
        assert parts[0] == {"inlineData": {"mimeType": "image/jpeg", "data": "MARAREF"}}
        assert "Mara Quill" in parts[-1]["text"]
        assert body["generationConfig"]["imageConfig"] == {"aspectRatio": "16:9"}

    @pytest.mark.asyncio
    async def test_pro_model_for_larger_sizes(self, make_service, shot_factory):
        service, recorder, _ = make_service(httpx.Response(200, json=image_response()))
        settings = FormatSettings(aspect_ratio="9:16", image_size=ImageSize.SIZE_4K)

        await service.generate_shot_image(assemble_generation_context(shot_factory(1), settings))

        assert "gemini-3-pro-image-preview:generateContent" in str(recorder.requests[0].url)
        assert recorder.body()["generationConfig"]["imageConfig"] == {"aspectRatio": "9:16", "imageSize": "4K"}

    @pytest.mark.asyncio
    async def test_missing_image_is_failure(self, make_service, shot_factory):
        service, _, _ = make_service(httpx.Response(200, json=text_response("I cannot draw that")))

        with pytest.raises(GenerationFailure):
            await service.generate_shot_image(assemble_generation_context(shot_factory(1), FormatSettings()))

    @pytest.mark.asyncio
    async def test_blocked_prompt(self, make_service, shot_factory):
        service, _, _ = make_service(httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}}))

        with pytest.raises(ContentBlockedError) as exc_info:
            await service.generate_shot_image(assemble_generation_context(shot_factory(1), FormatSettings()))
        assert exc_info.value.is_content_block


class TestErrorMapping:
    """HTTP failures map onto the error taxonomy."""

    @pytest.mark.asyncio
    async def test_unauthorized(self, make_service):
        service, _, _ = make_service(httpx.Response(401, json={"error": {"message": "API key not valid"}}))

        with pytest.raises(AuthorizationMissing):
            await service.edit_image("AAAA", "add rain")

    @pytest.mark.asyncio
    async def test_entity_not_found_means_missing_key(self, make_service):
        service, _, _ = make_service(
            httpx.Response(404, json={"error": {"message": "Requested entity was not found."}})
        )

        with pytest.raises(AuthorizationMissing):
            await service.edit_image("AAAA", "add rain")

    @pytest.mark.asyncio
    async def test_transient_error_is_retried(self, make_service):
        service, recorder, _ = make_service(
            httpx.Response(503, json={"error": {"message": "overloaded"}}),
            httpx.Response(200, json=image_response()),
        )

        image = await service.edit_image("AAAA", "add rain")

        assert image.endswith("IMGDATA")
        assert len(recorder.requests) == 2

    @pytest.mark.asyncio
    async def test_retries_are_bounded(self, make_service):
        service, recorder, _ = make_service(httpx.Response(429, json={"error": {"message": "slow down"}}))

        with pytest.raises(TransientAPIError):
            await service.edit_image("AAAA", "add rain")
        assert len(recorder.requests) == 2

    @pytest.mark.asyncio
    async def test_bad_request_is_not_retried(self, make_service):
        service, recorder, _ = make_service(httpx.Response(400, json={"error": {"message": "bad"}}))

        with pytest.raises(GenerationFailure):
            await service.edit_image("AAAA", "add rain")
        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_no_key_fails_before_sending(self, make_service):
        service, recorder, _ = make_service(httpx.Response(200, json=image_response()), api_key="")

        assert not service.has_credentials()
        with pytest.raises(AuthorizationMissing):
            await service.edit_image("AAAA", "add rain")
        assert recorder.requests == []


class TestTextGeneration:
    """Tests for script writing, concept refinement and chat."""

    @pytest.mark.asyncio
    async def test_generate_storyboard(self, make_service, sample_characters):
        script_json = json.dumps({
            "title": "Heist",
            "theme": "Trust",
            "visualStyle": "Cinematic",
            "shots": [
                {"shotNumber": 3, "shotType": "wide", "description": "Rooftop", "visualPrompt": "A roof",
                 "characterInvolved": "char-mara"},
                {"shotNumber": 7, "shotType": "close-up", "description": "Dial", "visualPrompt": "A dial",
                 "dialogue": "Quiet.", "characterInvolved": "someone-else"},
            ],
        })
        service, recorder, _ = make_service(httpx.Response(200, json=text_response(script_json)))

        script = await service.generate_storyboard(
            "A heist", resolve_style("cinematic"), Language.ZH, sample_characters
        )

        assert script.title == "Heist"
        assert [s.sequence_number for s in script.shots] == [1, 2]
        assert all(s.status == ShotStatus.IDLE for s in script.shots)
        assert script.shots[0].assigned_character_id == "char-mara"
        assert script.shots[1].assigned_character_id is None
        assert script.shots[1].dialogue == "Quiet."
        assert len({s.id for s in script.shots}) == 2

        body = recorder.body()
        assert "gemini-3-pro-preview:generateContent" in str(recorder.requests[0].url)
        assert body["generationConfig"]["responseMimeType"] == "application/json"
        prompt = body["contents"][0]["parts"][0]["text"]
        assert "Simplified Chinese" in prompt
        assert "[ID: char-mara] Name: Mara Quill" in prompt

    @pytest.mark.asyncio
    async def test_script_without_shots_is_failure(self, make_service):
        empty = json.dumps({"title": "Nothing", "theme": "", "visualStyle": "", "shots": []})
        service, _, _ = make_service(httpx.Response(200, json=text_response(empty)))

        with pytest.raises(GenerationFailure):
            await service.generate_storyboard("A heist", resolve_style("anime"), Language.EN)

    @pytest.mark.asyncio
    async def test_malformed_script_is_failure(self, make_service):
        service, _, _ = make_service(httpx.Response(200, json=text_response("not json at all")))

        with pytest.raises(GenerationFailure):
            await service.generate_storyboard("A heist", resolve_style("anime"), Language.EN)

    @pytest.mark.asyncio
    async def test_refine_concept(self, make_service):
        concept_json = json.dumps({"title": "Glass City", "premise": "A thief must steal the sky."})
        service, recorder, _ = make_service(httpx.Response(200, json=text_response(concept_json)))

        concept = await service.refine_concept("heist", "betrayal", "Mara", "floating city", Language.EN)

        assert concept.title == "Glass City"
        assert concept.premise == "A thief must steal the sky."
        assert "OUTPUT LANGUAGE: English" in recorder.body()["contents"][0]["parts"][0]["text"]

    @pytest.mark.asyncio
    async def test_chat_returns_citations(self, make_service):
        payload = text_response("Vaults use time locks.")
        payload["candidates"][0]["groundingMetadata"] = {"groundingChunks": [
            {"web": {"uri": "https://example.org/vaults", "title": "Vault History"}},
            {"retrievedContext": {}},
        ]}
        service, recorder, _ = make_service(httpx.Response(200, json=payload))
        history = [ChatMessage(role="user", text="hi"), ChatMessage(role="model", text="hello")]

        reply = await service.chat("How do vaults work?", history)

        assert reply.role == "model"
        assert reply.text == "Vaults use time locks."
        assert [(c.title, c.uri) for c in reply.citations] == [("Vault History", "https://example.org/vaults")]
        body = recorder.body()
        assert body["tools"] == [{"google_search": {}}]
        assert [c["role"] for c in body["contents"]] == ["user", "model", "user"]

    @pytest.mark.asyncio
    async def test_chat_fallback_text(self, make_service):
        service, _, _ = make_service(httpx.Response(200, json={"candidates": []}))

        reply = await service.chat("?", [])

        assert reply.text == "Could not process."


class TestImageUtilities:
    """Tests for character sheets and edits."""

    @pytest.mark.asyncio
    async def test_character_reference_prompt(self, make_service, sample_characters):
        service, recorder, _ = make_service(httpx.Response(200, json=image_response()))

        await service.generate_character_reference(sample_characters[0], resolve_style("noir"))

        body = recorder.body()
        prompt = body["contents"][0]["parts"][0]["text"]
        assert prompt.startswith("CHARACTER CONCEPT DESIGN SHEET:")
        assert "Traits: silver bob haircut, scar across left eyebrow, green trench coat." in prompt
        assert "Style: Film Noir style." in prompt
        assert body["generationConfig"]["imageConfig"] == {"aspectRatio": "1:1"}

    @pytest.mark.asyncio
    async def test_edit_sends_source_image(self, make_service):
        service, recorder, _ = make_service(httpx.Response(200, json=image_response()))

        await service.edit_image("data:image/webp;base64,SRC", "make it night")

        parts = recorder.body()["contents"][0]["parts"]
        assert parts[0] == {"inlineData": {"mimeType": "image/webp", "data": "SRC"}}
        assert parts[1] == {"text": "Edit this image: make it night"}


class TestAnimation:
    """Tests for the long-running video path."""

    @pytest.mark.asyncio
    async def test_polls_until_done_and_downloads(self, make_service):
        video_uri = "https://files.example.com/v1/video.mp4?alt=media"
        service, recorder, sleeper = make_service(
            httpx.Response(200, json={"name": "models/veo/operations/op1"}),
            httpx.Response(200, json={"name": "models/veo/operations/op1", "done": False}),
            httpx.Response(200, json={
                "name": "models/veo/operations/op1",
                "done": True,
                "response": {"generateVideoResponse": {"generatedSamples": [{"video": {"uri": video_uri}}]}},
            }),
            httpx.Response(200, content=b"MP4DATA"),
        )

        video = await service.animate("data:image/png;base64,FRAME", "slow dolly", "9:16")

        assert video == "data:video/mp4;base64," + base64.b64encode(b"MP4DATA").decode("ascii")
        assert sleeper.delays == [5.0, 5.0]
        start = recorder.body(0)
        assert "veo-3.1-fast-generate-preview:predictLongRunning" in str(recorder.requests[0].url)
        assert start["instances"][0]["image"] == {"bytesBase64Encoded": "FRAME", "mimeType": "image/png"}
        assert start["parameters"]["aspectRatio"] == "9:16"
        assert str(recorder.requests[1].url) == f"{API}/models/veo/operations/op1"
        assert str(recorder.requests[3].url) == video_uri

    @pytest.mark.asyncio
    async def test_poll_budget_is_enforced(self, make_service):
        service, recorder, sleeper = make_service(
            httpx.Response(200, json={"name": "operations/op2"}),
            httpx.Response(200, json={"name": "operations/op2", "done": False}),
        )

        with pytest.raises(TimeoutExceeded):
            await service.animate("FRAME", "", "16:9")

        assert len(sleeper.delays) == 3
        assert len(recorder.requests) == 4
        assert recorder.body(0)["instances"][0]["prompt"] == "Cinematic movement"

    @pytest.mark.asyncio
    async def test_finished_without_video(self, make_service):
        service, _, _ = make_service(
            httpx.Response(200, json={"name": "operations/op3"}),
            httpx.Response(200, json={"name": "operations/op3", "done": True,
                                      "error": {"code": 3, "message": "unsafe"}}),
        )

        with pytest.raises(GenerationFailure):
            await service.animate("FRAME", "", "16:9")
