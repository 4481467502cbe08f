"""
Homework flow: one analysis, from input to rendered guidance.

    IDLE → INPUT_SELECTED → [RECOGNIZING → SEGMENTED] → AWAITING_ENTITLEMENT
         → GENERATING → DISPLAYED | BLOCKED | FAILED

Photo path: recognition failure lands in FAILED but keeps the photo, so
submit() can still send the raw image for analysis.

A free use is consumed right before generation is called. A generation that
then fails still counts as a used analysis.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Protocol

from parentmath.exceptions import (
    ConfigurationError, InvalidSubmission, InvalidTransition, ParentMathError,
    SelectionRequired, StoreError,
)
from parentmath.homework.rendering import render_guidance
from parentmath.homework.schemas import InputKind, Mode, Submission
from parentmath.homework.segmenter import ProblemRecord, detect_problems
from parentmath.results import Blocked, Err, Fallback
from parentmath.usage.entitlement import gate
from parentmath.usage.store import EntitlementStore

logger = logging.getLogger(__name__)

MIN_TEXT_CHARS = 2


class FlowState(str, Enum):
    IDLE = "idle"
    INPUT_SELECTED = "input_selected"
    RECOGNIZING = "recognizing"
    SEGMENTED = "segmented"
    AWAITING_ENTITLEMENT = "awaiting_entitlement"
    GENERATING = "generating"
    DISPLAYED = "displayed"
    BLOCKED = "blocked"
    FAILED = "failed"


class HomeworkAI(Protocol):
    async def recognize(self, image: bytes, media_type: str) -> str: ...

    async def generate(self, submission: Submission) -> str: ...


@dataclass
class Preferences:
    mode: Mode = "parent"
    method: InputKind = "text"


@dataclass
class SessionContext:
    """Everything a flow needs about the signed-in user and the outside world."""
    uid: str
    store: EntitlementStore
    ai: HomeworkAI
    preferences: Preferences = field(default_factory=Preferences)


class HomeworkFlow:
    def __init__(self, context: SessionContext):
        self.context = context
        self.state = FlowState.IDLE
        self._clear()

    def _clear(self):
        self.text: Optional[str] = None
        self.image: Optional[bytes] = None
        self.media_type: Optional[str] = None
        self.detection = None
        self.problems: list[ProblemRecord] = []
        self.selected: Optional[ProblemRecord] = None
        self.recognition_error: Optional[Err] = None
        self.outcome = None

    @property
    def mode(self) -> Mode:
        return self.context.preferences.mode

    def _require(self, *states: FlowState):
        if self.state not in states:
            raise InvalidTransition(f"Cannot do that while {self.state.value}.")

    # ── input ──

    def select_text(self, text: str, mode: Optional[Mode] = None):
        self._require(FlowState.IDLE, FlowState.INPUT_SELECTED)
        trimmed = (text or "").strip()
        if not trimmed:
            raise InvalidSubmission()
        if len(trimmed) < MIN_TEXT_CHARS:
            raise InvalidSubmission("Problem seems too short. Please enter a complete math problem.")
        self._clear()
        self.text = trimmed
        self._remember(mode, "text")
        self.state = FlowState.INPUT_SELECTED

    def select_image(self, image: bytes, media_type: str, mode: Optional[Mode] = None):
        self._require(FlowState.IDLE, FlowState.INPUT_SELECTED)
        if not image:
            raise InvalidSubmission("Please select an image first.")
        self._clear()
        self.image = image
        self.media_type = media_type
        self._remember(mode, "image")
        self.state = FlowState.INPUT_SELECTED

    def _remember(self, mode: Optional[Mode], method: InputKind):
        if mode:
            self.context.preferences.mode = mode
        self.context.preferences.method = method

    # ── photo path ──

    async def recognize(self):
        """Read the photo and split it into problems. Returns the detection result or Err."""
        self._require(FlowState.INPUT_SELECTED)
        if self.image is None:
            raise InvalidTransition("Only photos need to be read.")

        self.state = FlowState.RECOGNIZING
        try:
            raw = await self.context.ai.recognize(self.image, self.media_type or "image/jpeg")
        except ParentMathError as e:
            logger.warning(f"Recognition failed for {self.context.uid}: {e.message}")
            self.recognition_error = Err.from_error(e)
            self.outcome = self.recognition_error
            self.state = FlowState.FAILED
            return self.recognition_error

        self.detection = detect_problems(raw)
        self.problems = list(self.detection.value)
        if isinstance(self.detection, Fallback) or len(self.problems) == 1:
            self.selected = self.problems[0] if self.problems else None
        self.state = FlowState.SEGMENTED
        return self.detection

    def select_problem(self, problem_id: str) -> ProblemRecord:
        self._require(FlowState.SEGMENTED)
        for p in self.problems:
            if p.id == problem_id:
                self.selected = p
                return p
        raise InvalidSubmission("That problem is not on this page.")

    # ── submission ──

    def submission(self) -> Submission:
        if self.text is not None:
            return Submission(mode=self.mode, kind="text", text=self.text)
        if self.image is None:
            raise InvalidSubmission()
        if self.selected is not None:
            return Submission(mode=self.mode, kind="text", text=self.selected.text)
        if len(self.problems) > 1:
            raise SelectionRequired()
        return Submission(mode=self.mode, kind="image", image=self.image,
                          media_type=self.media_type or "image/jpeg")

    async def submit(self):
        """Check entitlement, consume a use, generate and render.

        Returns Ok/Fallback (rendered guidance), Blocked or Err.
        """
        self._require(FlowState.INPUT_SELECTED, FlowState.SEGMENTED, FlowState.FAILED)
        if self.state == FlowState.FAILED and self.recognition_error is None:
            raise InvalidTransition("Start over to try again.")
        submission = self.submission()
        uid = self.context.uid

        self.state = FlowState.AWAITING_ENTITLEMENT
        try:
            profile = await self.context.store.get_profile(uid)
            if profile is None:
                raise StoreError()
        except StoreError as e:
            return self._fail(e)

        decision = gate(profile)
        if not decision.allowed:
            logger.info(f"{uid} blocked: {profile.free_uses_used} free uses used")
            self.outcome = Blocked(uses_remaining=decision.uses_remaining)
            self.state = FlowState.BLOCKED
            return self.outcome

        try:
            await self.context.store.consume_use(uid)
        except StoreError as e:
            return self._fail(e)

        self.state = FlowState.GENERATING
        try:
            raw = await self.context.ai.generate(submission)
        except ConfigurationError as e:
            logger.error(f"Generation not configured: {e.message}")
            return self._fail(e)
        except ParentMathError as e:
            return self._fail(e)

        self.outcome = render_guidance(submission.mode, raw)
        self.state = FlowState.DISPLAYED
        return self.outcome

    def _fail(self, error: ParentMathError) -> Err:
        self.outcome = Err.from_error(error)
        self.state = FlowState.FAILED
        self.recognition_error = None
        return self.outcome

    def reset(self):
        """Back to IDLE. Inputs are dropped; mode and method preferences stay."""
        self._clear()
        self.state = FlowState.IDLE
