"""
Shot Lifecycle Controller

Drives each shot through its generation lifecycle:

    idle --generate--> generating --ok--> completed
    generating --fail--> error
    completed --regenerate/edit--> generating
    completed --animate--> animating --ok--> completed (with video)
    animating --fail--> error
    error --generate--> generating

Rules enforced here:
- at most one outstanding request per shot (a second one is rejected);
- a failed request flips only its own shot to ``error`` and never erases the
  last good image;
- every completion re-fetches the live shot by id before writing, and results
  for a script that has since been replaced are dropped;
- every request ends in ``completed`` or ``error``.
"""

from __future__ import annotations

import copy
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Set, Tuple

from visionary.core.config import FeatureFlags
from visionary.core.constants import DEFAULT_MOTION_PROMPT, VIDEO_ASPECT_RATIOS
from visionary.core.exceptions import (
    AuthorizationMissing,
    GenerationFailure,
    OperationInFlightError,
    PreconditionFailed,
    ShotNotFoundError,
    UnknownFieldError,
)
from visionary.core.logging_config import get_logger

from .context_assembly import assemble_generation_context
from .models import Shot, ShotStatus, StoryboardScript
from .state import AuthorizationGate, ProjectState

logger = get_logger("storyboard.lifecycle")

# Shot fields a user may rewrite by hand.
EDITABLE_SHOT_FIELDS = frozenset({"shot_type", "narrative_description", "visual_prompt", "dialogue"})


class ShotLifecycleController:
    """
    Owns the active script's shot list and every mutation of it.

    Callers read shots through snapshot copies (``shots``, ``get_shot``,
    ``snapshot_script``); mutating a snapshot never affects the controller.
    """

    def __init__(
        self,
        service,
        state: Optional[ProjectState] = None,
        features: Optional[FeatureFlags] = None,
        gate: Optional[AuthorizationGate] = None,
    ):
        """
        Args:
            service: GenerationService used for every remote call
            state: Project settings read at dispatch time
            features: Optional feature switches
            gate: Authorization gate shared with other entry points
        """
        self.service = service
        self.state = state or ProjectState()
        self.features = features or FeatureFlags()
        self.gate = gate or AuthorizationGate()

        self._script: Optional[StoryboardScript] = None
        self._epoch = 0
        self._in_flight: Dict[str, str] = {}  # shot id -> operation

    # =========================================================================
    # SCRIPT
    # =========================================================================

    def load_script(self, script: StoryboardScript) -> None:
        """Make ``script`` the active script.

        Outstanding requests for the previous script are orphaned; their
        results are discarded. Shots persisted mid-request come back settled:
        ``generating`` resolves to ``completed`` if an image exists, otherwise
        ``idle``; ``animating`` resolves to ``completed``.
        """
        self._epoch += 1
        self._in_flight.clear()
        self._script = copy.deepcopy(script)

        for index, shot in enumerate(self._script.shots):
            shot.sequence_number = index + 1
            if shot.status == ShotStatus.GENERATING:
                shot.status = ShotStatus.COMPLETED if shot.image_url else ShotStatus.IDLE
            elif shot.status == ShotStatus.ANIMATING:
                shot.status = ShotStatus.COMPLETED
            if shot.status != ShotStatus.COMPLETED:
                shot.video_url = None

        logger.info(
            f"Loaded script '{self._script.title}' with {len(self._script.shots)} shots "
            f"(epoch {self._epoch})"
        )

    def clear(self) -> None:
        """Drop the active script."""
        self._epoch += 1
        self._in_flight.clear()
        self._script = None

    @property
    def has_script(self) -> bool:
        return self._script is not None

    @property
    def shots(self) -> Tuple[Shot, ...]:
        if self._script is None:
            return ()
        return tuple(copy.deepcopy(shot) for shot in self._script.shots)

    def get_shot(self, shot_id: str) -> Shot:
        return copy.deepcopy(self._require_shot(shot_id))

    def snapshot_script(self) -> Optional[StoryboardScript]:
        """Deep copy of the active script, roster snapshot included."""
        if self._script is None:
            return None
        script = copy.deepcopy(self._script)
        script.character_roster, script.item_roster = self.state.roster.snapshot()
        script.reference_images = list(self.state.reference_images)
        return script

    def is_in_flight(self, shot_id: str) -> bool:
        return shot_id in self._in_flight

    def _find_shot(self, shot_id: str) -> Optional[Shot]:
        if self._script is None:
            return None
        return next((s for s in self._script.shots if s.id == shot_id), None)

    def _require_shot(self, shot_id: str) -> Shot:
        shot = self._find_shot(shot_id)
        if shot is None:
            raise ShotNotFoundError(shot_id)
        return shot

    # =========================================================================
    # GENERATION REQUESTS
    # =========================================================================

    async def request_image_generation(self, shot_id: str) -> Optional[Shot]:
        """Render (or re-render) a shot's image from the current project state.

        Returns a snapshot of the settled shot, or None if the shot vanished
        while the request was outstanding.
        """
        shot = self._admit(shot_id, "generate")
        context = assemble_generation_context(
            shot,
            self.state.format_settings,
            self.state.roster.characters,
            self.state.roster.items,
            self.state.reference_images,
        )
        self._begin(shot, "generate", ShotStatus.GENERATING)
        logger.debug(f"Shot {shot_id}: context {context.fingerprint()[:12]} with {len(context.images)} image(s)")

        return await self._run(
            shot_id,
            "generate",
            lambda: self.service.generate_shot_image(context),
            self._apply_new_image,
        )

    async def request_image_edit(self, shot_id: str, instruction: str) -> Optional[Shot]:
        """Apply a text edit to the shot's current image."""
        self.features.require("image_editing")
        shot = self._admit(shot_id, "edit")
        if not shot.image_url:
            raise PreconditionFailed(shot_id, "edit", "shot has no image")
        if not instruction.strip():
            raise PreconditionFailed(shot_id, "edit", "edit instruction is empty")
        source_image = shot.image_url
        self._begin(shot, "edit", ShotStatus.GENERATING)

        return await self._run(
            shot_id,
            "edit",
            lambda: self.service.edit_image(source_image, instruction),
            self._apply_new_image,
        )

    async def request_animation(
        self,
        shot_id: str,
        motion_prompt: str = DEFAULT_MOTION_PROMPT,
        video_aspect_ratio: str = "16:9",
    ) -> Optional[Shot]:
        """Animate the shot's image into a short clip.

        The shot reports ``animating`` for the whole polling window; other
        shots remain free to run their own requests meanwhile.
        """
        self.features.require("animation")
        shot = self._admit(shot_id, "animate")
        if not shot.image_url:
            raise PreconditionFailed(shot_id, "animate", "shot has no image to animate")
        if video_aspect_ratio not in VIDEO_ASPECT_RATIOS:
            raise PreconditionFailed(
                shot_id, "animate", f"unsupported video aspect ratio {video_aspect_ratio}"
            )
        source_image = shot.image_url
        prompt = motion_prompt.strip() or DEFAULT_MOTION_PROMPT
        self._begin(shot, "animate", ShotStatus.ANIMATING)

        return await self._run(
            shot_id,
            "animate",
            lambda: self.service.animate(source_image, prompt, video_aspect_ratio),
            self._apply_video,
        )

    def _admit(self, shot_id: str, operation: str) -> Shot:
        """Synchronous checks run before any remote call."""
        shot = self._require_shot(shot_id)
        if shot_id in self._in_flight or shot.status.is_busy:
            raise OperationInFlightError(shot_id, operation, shot.status.value)
        self.gate.check(self.service)
        return shot

    def _begin(self, shot: Shot, operation: str, status: ShotStatus) -> None:
        self._in_flight[shot.id] = operation
        shot.status = status
        shot.video_url = None
        logger.info(f"Shot {shot.id} [{operation}]: {status.value}")

    async def _run(
        self,
        shot_id: str,
        operation: str,
        call: Callable[[], Awaitable[str]],
        apply: Callable[[Shot, str], None],
    ) -> Optional[Shot]:
        epoch = self._epoch
        try:
            artifact = await call()
        except AuthorizationMissing as e:
            self.gate.close(str(e))
            self._settle_failure(epoch, shot_id, operation, e)
            raise
        except GenerationFailure as e:
            self._settle_failure(epoch, shot_id, operation, e)
        except Exception as e:
            logger.exception(f"Shot {shot_id} [{operation}]: unexpected error")
            self._settle_failure(epoch, shot_id, operation, e)
        else:
            live = self._live_shot(epoch, shot_id, operation)
            if live is not None:
                if not artifact:
                    self._settle_failure(
                        epoch, shot_id, operation, GenerationFailure("No artifact returned")
                    )
                else:
                    apply(live, artifact)
                    live.status = ShotStatus.COMPLETED
                    logger.info(f"Shot {shot_id} [{operation}]: completed")
        finally:
            if epoch == self._epoch:
                self._in_flight.pop(shot_id, None)
                # Cancelled tasks must not leave the shot busy.
                live = self._find_shot(shot_id)
                if live is not None and live.status.is_busy:
                    live.status = ShotStatus.ERROR
                    logger.warning(f"Shot {shot_id} [{operation}]: abandoned, marked error")

        live = self._find_shot(shot_id) if epoch == self._epoch else None
        return copy.deepcopy(live) if live is not None else None

    def _live_shot(self, epoch: int, shot_id: str, operation: str) -> Optional[Shot]:
        """Re-fetch the shot after a suspension; None if the result is stale."""
        if epoch != self._epoch:
            logger.info(f"Shot {shot_id} [{operation}]: script replaced, result discarded")
            return None
        shot = self._find_shot(shot_id)
        if shot is None:
            logger.info(f"Shot {shot_id} [{operation}]: shot removed, result discarded")
        return shot

    def _settle_failure(self, epoch: int, shot_id: str, operation: str, error: Exception) -> None:
        logger.error(f"Shot {shot_id} [{operation}] failed: {error}")
        live = self._live_shot(epoch, shot_id, operation)
        if live is not None:
            live.status = ShotStatus.ERROR

    @staticmethod
    def _apply_new_image(shot: Shot, image: str) -> None:
        if shot.image_url:
            shot.image_history.append(shot.image_url)
        shot.image_url = image
        shot.video_url = None

    @staticmethod
    def _apply_video(shot: Shot, video: str) -> None:
        shot.video_url = video

    # =========================================================================
    # LOCAL EDITS
    # =========================================================================

    def revert_image(self, shot_id: str) -> Shot:
        """Restore the previous image from the shot's history."""
        shot = self._require_shot(shot_id)
        if shot_id in self._in_flight or shot.status.is_busy:
            raise OperationInFlightError(shot_id, "revert", shot.status.value)
        if not shot.image_history:
            raise PreconditionFailed(shot_id, "revert", "no earlier image to restore")
        shot.image_url = shot.image_history.pop()
        shot.video_url = None
        shot.status = ShotStatus.COMPLETED
        logger.info(f"Shot {shot_id} [revert]: restored earlier image")
        return copy.deepcopy(shot)

    def reorder(self, dragged_shot_id: str, target_shot_id: str) -> bool:
        """Move the dragged shot to the target's position and renumber every shot.

        Returns False (and changes nothing) if either id is unknown or they match.
        """
        if self._script is None or dragged_shot_id == target_shot_id:
            return False
        shots = self._script.shots
        ids = [s.id for s in shots]
        if dragged_shot_id not in ids or target_shot_id not in ids:
            return False

        dragged = shots.pop(ids.index(dragged_shot_id))
        shots.insert(ids.index(target_shot_id), dragged)
        self._renumber()
        logger.debug(f"Moved shot {dragged_shot_id} to position {dragged.sequence_number}")
        return True

    def _renumber(self) -> None:
        for index, shot in enumerate(self._script.shots):
            shot.sequence_number = index + 1

    def assign_character(self, shot_id: str, character_id: Optional[str]) -> Shot:
        """Point the shot at a roster character, or clear it with None."""
        shot = self._require_shot(shot_id)
        if character_id is not None:
            self.state.roster.get_character(character_id)
        shot.assigned_character_id = character_id
        return copy.deepcopy(shot)

    def assign_items(self, shot_id: str, item_ids: Iterable[str]) -> Shot:
        self.features.require("item_library")
        shot = self._require_shot(shot_id)
        ordered: List[str] = []
        seen: Set[str] = set()
        for item_id in item_ids:
            if item_id in seen:
                continue
            self.state.roster.get_item(item_id)
            ordered.append(item_id)
            seen.add(item_id)
        shot.assigned_item_ids = ordered
        return copy.deepcopy(shot)

    def toggle_item(self, shot_id: str, item_id: str) -> Shot:
        """Add the item to the shot, or remove it if already assigned."""
        shot = self._require_shot(shot_id)
        if item_id in shot.assigned_item_ids:
            remaining = [i for i in shot.assigned_item_ids if i != item_id]
            return self.assign_items(shot_id, remaining)
        return self.assign_items(shot_id, shot.assigned_item_ids + [item_id])

    def set_base_reference_image(self, shot_id: str, image: Optional[str]) -> Shot:
        shot = self._require_shot(shot_id)
        shot.base_reference_image = image
        return copy.deepcopy(shot)

    def edit_shot(self, shot_id: str, field_name: str, value: Optional[str]) -> Shot:
        """Rewrite one text field of a shot."""
        if field_name not in EDITABLE_SHOT_FIELDS:
            raise UnknownFieldError("shot", field_name)
        shot = self._require_shot(shot_id)
        setattr(shot, field_name, value)
        return copy.deepcopy(shot)

    def forget_asset_references(self, character_ids: Iterable[str] = (), item_ids: Iterable[str] = ()) -> int:
        """Drop assignments that point at removed roster entries.

        Returns the number of shots touched.
        """
        if self._script is None:
            return 0
        gone_chars = set(character_ids)
        gone_items = set(item_ids)
        touched = 0
        for shot in self._script.shots:
            changed = False
            if shot.assigned_character_id in gone_chars:
                shot.assigned_character_id = None
                changed = True
            kept = [i for i in shot.assigned_item_ids if i not in gone_items]
            if len(kept) != len(shot.assigned_item_ids):
                shot.assigned_item_ids = kept
                changed = True
            touched += changed
        return touched
