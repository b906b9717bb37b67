from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# --- Function-calling schemas advertised to the model ---


class CallableShape(BaseModel):
    """A function the model may choose to call instead of answering in free text."""

    name: str
    description: str = ""
    parameters: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    def to_openai(self) -> Dict[str, Any]:
        return self.model_dump()


class ReplyArgs(BaseModel):
    replyText: str = Field(description="The reply to the message")


class CorrectnessArgs(BaseModel):
    correct: bool = Field(description="Indicates whether the operation is correct")
    reason: str = Field(description="Explains why the operation is correct or incorrect")


class QuestionListArgs(BaseModel):
    questions: List[str] = Field(default_factory=list)


# --- Gateway results ---


class ResultKind(str, Enum):
    TEXT = "text"
    STRUCTURED = "structured"


class GatewayResult(BaseModel):
    """Tagged gateway output: free text, or whatever a local handler returned."""

    kind: ResultKind
    value: Any = None

    @classmethod
    def from_value(cls, value: Any) -> "GatewayResult":
        kind = ResultKind.TEXT if isinstance(value, str) else ResultKind.STRUCTURED
        return cls(kind=kind, value=value)


# --- Form action responses ---


class ActionResult(BaseModel):
    """What a form submission hands back to the page. Never carries an exception."""

    message: Optional[str] = None
    reply: str = ""
    questions: List[str] = Field(default_factory=list)
    ocr_text: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None
