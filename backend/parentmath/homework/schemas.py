from pydantic import BaseModel, Field
from typing import Literal, Optional, Union

from parentmath.homework.images import MAX_PAYLOAD_CHARS

Mode = Literal["parent", "child"]
InputKind = Literal["text", "image"]


class Submission(BaseModel):
    """One analysis request. Consumed once by the generation call."""
    mode: Mode
    kind: InputKind
    text: Optional[str] = None
    image: Optional[bytes] = None
    media_type: Optional[str] = None


# ═══════════════════════════════════════
# Requests
# ═══════════════════════════════════════

class DetectRequest(BaseModel):
    image: str = Field(..., max_length=MAX_PAYLOAD_CHARS, description="Base64 image or data URL")
    media_type: str = "image/jpeg"


class AnalyzeRequest(BaseModel):
    mode: Mode = "parent"
    kind: InputKind = "text"
    text: Optional[str] = Field(None, max_length=2000)
    image: Optional[str] = Field(None, max_length=MAX_PAYLOAD_CHARS)
    media_type: Optional[str] = None


# ═══════════════════════════════════════
# Parent-mode guidance
# ═══════════════════════════════════════

class NumberRole(BaseModel):
    value: Union[int, float, str]
    role: str = ""


class ParsedProblem(BaseModel):
    original_problem: str = ""
    numbers: list[NumberRole] = []
    unit: Optional[str] = None
    unknown: str = ""
    operation: str = ""
    operation_why: str = ""
    problem_type: str = ""


class NewMathMethod(BaseModel):
    name: str
    explanation: str = ""


class TeachingStep(BaseModel):
    title: str
    instruction: Optional[str] = None
    say_this: str


class QuickNotes(BaseModel):
    concept: str
    common_mistake: str
    if_they_ask: str


class Teaching(BaseModel):
    problem_restatement: str
    new_math_method: Optional[NewMathMethod] = None
    steps: list[TeachingStep]
    quick_notes: QuickNotes
    visual_hint: Optional[str] = None


class Answer(BaseModel):
    expression: str
    value: Union[int, float, str]


class ParentGuidance(BaseModel):
    parsed: ParsedProblem = Field(default_factory=ParsedProblem)
    teaching: Teaching
    answer: Answer


# ═══════════════════════════════════════
# Rendered output
# ═══════════════════════════════════════

class Span(BaseModel):
    text: str
    bold: bool = False


class Block(BaseModel):
    kind: Literal["heading", "paragraph", "list_item", "preformatted"]
    spans: list[Span] = []
    level: Optional[int] = None


class RenderedGuidance(BaseModel):
    mode: Mode
    format: Literal["structured", "markdown"]
    blocks: list[Block] = []
    guidance: Optional[ParentGuidance] = None
    raw: str = ""
