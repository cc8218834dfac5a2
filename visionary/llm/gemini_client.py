"""
Gemini Generation Service

REST client for Google's Generative Language API covering script writing,
shot/character image synthesis, image edits, video animation and grounded chat.

Endpoints:
- ``models/{model}:generateContent`` for text, images and chat
- ``models/{model}:predictLongRunning`` plus operation polling for video
"""

from __future__ import annotations

import asyncio
import base64
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import httpx
from pydantic import ValidationError

from visionary.core.config import GenerationConfig
from visionary.core.constants import DEFAULT_MOTION_PROMPT, Language, StylePreset
from visionary.core.env_loader import get_gemini_api_key
from visionary.core.exceptions import (
    AuthorizationMissing,
    ContentBlockedError,
    GenerationFailure,
    TimeoutExceeded,
)
from visionary.core.logging_config import get_logger
from visionary.core.retry import RetryConfig, retry_async_call
from visionary.storyboard.context_assembly import GenerationContext, split_data_uri
from visionary.storyboard.models import CharacterProfile, StoryboardScript

from .generation_service import ChatMessage, Citation, GenerationService, StoryConcept
from .prompts import StoryboardPromptLibrary
from .schemas import (
    ConceptResponse,
    GenerateContentResponse,
    Operation,
    StoryboardResponse,
)

logger = get_logger("llm.gemini")

# Error text the API returns for a revoked or unknown key/project.
ENTITY_NOT_FOUND = "Requested entity was not found."
FALLBACK_CHAT_REPLY = "Could not process."


class TransientAPIError(GenerationFailure):
    """Rate limits, 5xx responses and dropped connections; retried with backoff."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message, {"status_code": status_code} if status_code else None)
        self.status_code = status_code


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:500]
    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        return payload["error"].get("message", "")
    return str(payload)[:500]


def raise_for_status(response: httpx.Response) -> None:
    """Map an HTTP response onto the error taxonomy."""
    if response.is_success:
        return
    status = response.status_code
    message = _error_message(response)
    if status in (401, 403) or ENTITY_NOT_FOUND in message:
        raise AuthorizationMissing(message or f"HTTP {status}", {"status_code": status})
    if status == 429 or status >= 500:
        raise TransientAPIError(f"HTTP {status}: {message}", status)
    raise GenerationFailure(f"HTTP {status}: {message}", {"status_code": status})


class GeminiGenerationService(GenerationService):
    """GenerationService backed by the Gemini REST API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        config: Optional[GenerationConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        retry: Optional[RetryConfig] = None,
    ):
        """
        Args:
            api_key: Gemini key; defaults to GEMINI_API_KEY / GOOGLE_API_KEY / API_KEY
            config: Model ids, timeouts, retry and polling budgets
            client: Shared AsyncClient (a private one is created when omitted)
            sleep: Poll delay coroutine
            retry: Backoff policy for transient failures
        """
        self.api_key = api_key if api_key is not None else get_gemini_api_key()
        self.config = config or GenerationConfig()
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep
        self._retry = retry or RetryConfig(
            max_retries=self.config.max_retries,
            retryable_exceptions=(TransientAPIError,),
        )

    # =========================================================================
    # TRANSPORT
    # =========================================================================

    def has_credentials(self) -> bool:
        return bool(self.api_key)

    def set_api_key(self, api_key: str) -> None:
        self.api_key = api_key

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> GeminiGenerationService:
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise AuthorizationMissing("No API key configured for the Generation Service")
        return {
            "Content-Type": "application/json",
            "x-goog-api-key": self.api_key,
        }

    def _model_url(self, model: str, method: str) -> str:
        return f"{self.config.api_base}/models/{model}:{method}"

    async def _send(self, method: str, url: str, body: Optional[Dict] = None) -> httpx.Response:
        client = self._get_client()
        try:
            response = await client.request(
                method, url,
                json=body,
                headers=self._headers(),
                timeout=self.config.timeout,
                follow_redirects=True,
            )
        except httpx.TimeoutException as e:
            raise TransientAPIError(f"Request timed out: {e}")
        except httpx.TransportError as e:
            raise TransientAPIError(f"Connection failed: {e}")
        raise_for_status(response)
        return response

    async def _request_json(self, method: str, url: str, body: Optional[Dict] = None) -> Dict[str, Any]:
        response = await self._send(method, url, body)
        try:
            return response.json()
        except ValueError as e:
            raise GenerationFailure(f"Invalid JSON from API: {e}")

    async def _call(self, method: str, url: str, body: Optional[Dict] = None) -> Dict[str, Any]:
        return await retry_async_call(self._request_json, method, url, body, config=self._retry)

    async def _generate_content(self, model: str, body: Dict) -> GenerateContentResponse:
        data = await self._call("POST", self._model_url(model, "generateContent"), body)
        try:
            response = GenerateContentResponse.model_validate(data)
        except ValidationError as e:
            raise GenerationFailure(f"Unexpected response shape from {model}: {e}")
        if response.prompt_feedback and response.prompt_feedback.block_reason:
            raise ContentBlockedError(response.prompt_feedback.block_reason)
        return response

    async def _generate_image(self, model: str, parts: List[Dict], image_config: Dict) -> str:
        body = {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "responseModalities": ["IMAGE"],
                "imageConfig": image_config,
            },
        }
        response = await self._generate_content(model, body)
        image = response.first_image()
        if image is None:
            finish = response.candidates[0].finish_reason if response.candidates else None
            raise GenerationFailure(f"No image returned by {model}", {"finish_reason": finish})
        return f"data:{image.mime_type};base64,{image.data}"

    # =========================================================================
    # TEXT
    # =========================================================================

    async def refine_concept(
        self,
        genre: str,
        conflict: str,
        protagonist: str,
        seed: str,
        language: Language,
    ) -> StoryConcept:
        prompt = StoryboardPromptLibrary.render_refine_concept(genre, conflict, protagonist, seed, language)
        response = await self._generate_content(self.config.text_model, {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": StoryboardPromptLibrary.CONCEPT_SCHEMA,
            },
        })
        try:
            concept = ConceptResponse.model_validate_json(response.text or "{}")
        except ValidationError as e:
            raise GenerationFailure(f"Malformed concept: {e}")
        return StoryConcept(title=concept.title, premise=concept.premise)

    async def generate_storyboard(
        self,
        seed_text: str,
        style: StylePreset,
        language: Language,
        characters: Sequence[CharacterProfile] = (),
    ) -> StoryboardScript:
        prompt = StoryboardPromptLibrary.render_script(seed_text, style, language, characters)
        response = await self._generate_content(self.config.text_model, {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": StoryboardPromptLibrary.SCRIPT_SCHEMA,
            },
        })
        try:
            parsed = StoryboardResponse.model_validate_json(response.text or "{}")
        except ValidationError as e:
            raise GenerationFailure(f"Malformed storyboard script: {e}")

        script = parsed.to_script({c.id for c in characters})
        logger.info(f"Script '{script.title}' written with {len(script.shots)} shots")
        return script

    async def chat(self, message: str, history: Sequence[ChatMessage]) -> ChatMessage:
        contents = [
            {"role": turn.role, "parts": [{"text": turn.text}]}
            for turn in history
        ]
        contents.append({"role": "user", "parts": [{"text": message}]})
        response = await self._generate_content(self.config.chat_model, {
            "contents": contents,
            "tools": [{"google_search": {}}],
        })
        citations = [
            Citation(title=source.title or "Source", uri=source.uri)
            for source in response.web_sources()
        ]
        return ChatMessage(role="model", text=response.text or FALLBACK_CHAT_REPLY, citations=citations)

    # =========================================================================
    # IMAGES
    # =========================================================================

    async def generate_shot_image(self, context: GenerationContext) -> str:
        parts = []
        for part in context.parts:
            if part.kind == "image":
                parts.append({"inlineData": {"mimeType": part.mime_type, "data": part.data}})
            else:
                parts.append({"text": part.data})

        image_config = {"aspectRatio": context.aspect_ratio}
        if context.image_size.is_pro:
            model = self.config.pro_image_model
            image_config["imageSize"] = context.image_size.value
        else:
            model = self.config.image_model

        logger.debug(f"Rendering shot {context.shot_id} with {model} ({len(context.images)} reference image(s))")
        return await self._generate_image(model, parts, image_config)

    async def generate_character_reference(self, character: CharacterProfile, style: StylePreset) -> str:
        prompt = StoryboardPromptLibrary.render_character_sheet(character, style)
        return await self._generate_image(
            self.config.image_model,
            [{"text": prompt}],
            {"aspectRatio": "1:1"},
        )

    async def edit_image(self, image: str, instruction: str) -> str:
        mime_type, payload = split_data_uri(image)
        return await self._generate_image(
            self.config.image_model,
            [
                {"inlineData": {"mimeType": mime_type, "data": payload}},
                {"text": StoryboardPromptLibrary.render_edit(instruction)},
            ],
            {},
        )

    # =========================================================================
    # VIDEO
    # =========================================================================

    async def animate(self, image: str, motion_prompt: str, aspect_ratio: str) -> str:
        mime_type, payload = split_data_uri(image)
        body = {
            "instances": [{
                "prompt": motion_prompt or DEFAULT_MOTION_PROMPT,
                "image": {"bytesBase64Encoded": payload, "mimeType": mime_type},
            }],
            "parameters": {
                "aspectRatio": aspect_ratio,
                "resolution": "720p",
                "sampleCount": 1,
            },
        }
        data = await self._call("POST", self._model_url(self.config.video_model, "predictLongRunning"), body)
        operation = self._parse_operation(data)
        logger.info(f"Video job started: {operation.name}")

        attempts = 0
        while not operation.done:
            if attempts >= self.config.max_poll_attempts:
                raise TimeoutExceeded("animate", attempts)
            await self._sleep(self.config.poll_interval)
            attempts += 1
            data = await self._call("GET", f"{self.config.api_base}/{operation.name}")
            operation = self._parse_operation(data)
            logger.debug(f"Video job {operation.name}: poll {attempts}, done={operation.done}")

        if operation.error is not None and operation.error.message:
            raise GenerationFailure(f"Video job failed: {operation.error.message}", {"code": operation.error.code})
        uri = operation.video_uri()
        if not uri:
            raise GenerationFailure("Video job finished without a video", {"operation": operation.name})

        response = await retry_async_call(self._send, "GET", uri, config=self._retry)
        encoded = base64.b64encode(response.content).decode("ascii")
        logger.info(f"Video job {operation.name} complete ({len(response.content)} bytes)")
        return f"data:video/mp4;base64,{encoded}"

    @staticmethod
    def _parse_operation(data: Dict[str, Any]) -> Operation:
        try:
            return Operation.model_validate(data)
        except ValidationError as e:
            raise GenerationFailure(f"Unexpected operation payload: {e}")
