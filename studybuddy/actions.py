"""Form actions behind the web page.

Each action builds a prompt, resolves it through the gateway and returns an
:class:`ActionResult`. Actions never raise: OCR or LLM failures are logged and
turned into a user-facing ``error`` string.
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from studybuddy.llm_utils import LLMGateway
from studybuddy.ocr import VisionOCR
from studybuddy.prompts import (
    QUESTION_LIST_SHAPE,
    REPLY_SHAPE,
    check_idiomatic_chinese,
    generate_questions_from_textbook,
    generate_questions_with_new_vocab,
    question_list,
    reply,
)
from studybuddy.schemas import ActionResult

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Something went wrong! Please try again."


class MissingFieldError(ValueError):
    pass


def split_words(raw: Any) -> List[str]:
    """Split a comma (or Chinese comma) separated word list, dropping blanks."""
    if not raw:
        return []
    if isinstance(raw, (list, tuple)):
        raw = ",".join(str(word) for word in raw)
    raw = str(raw)
    normalized = raw.replace("，", ",").replace("、", ",")
    return [word.strip() for word in normalized.split(",") if word.strip()]


def _require(fields: Mapping[str, Any], name: str) -> str:
    value = fields.get(name)
    if value is None or not str(value).strip():
        raise MissingFieldError(f"Missing required field '{name}'")
    return str(value).strip()


def _optional_text(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _as_questions(value: Any) -> List[str]:
    if isinstance(value, list):
        return [str(item) for item in value]
    if isinstance(value, str):
        return [line.strip() for line in value.splitlines() if line.strip()]
    return []


class FormActions:
    """Dispatch form submissions by their ``type`` field."""

    def __init__(self, gateway: LLMGateway, ocr: Optional[VisionOCR] = None) -> None:
        self.gateway = gateway
        self.ocr = ocr
        self._actions: Dict[str, Callable[[Mapping[str, Any]], ActionResult]] = {
            "message": self.send_message,
            "checkAnswer": self.check_answer,
            "generateQuestions": self.generate_questions_from_image,
            "vocabQuestions": self.generate_vocab_questions,
        }

    def handle(self, fields: Mapping[str, Any]) -> ActionResult:
        action_type = str(fields.get("type") or "message")
        action = self._actions.get(action_type)
        if action is None:
            return ActionResult(error=f"Unknown action type '{action_type}'")
        try:
            return action(fields)
        except MissingFieldError as exc:
            return ActionResult(message=_optional_text(fields.get("message")), error=str(exc))
        except Exception as exc:
            logger.exception("Action %s failed", action_type)
            return ActionResult(
                message=_optional_text(fields.get("message")), error=str(exc) or GENERIC_ERROR
            )

    def send_message(self, fields: Mapping[str, Any]) -> ActionResult:
        message = _require(fields, "message")
        result = self.gateway.ask_language_model_shape(message, REPLY_SHAPE, reply)
        return ActionResult(message=message, reply=str(result.value))

    def check_answer(self, fields: Mapping[str, Any]) -> ActionResult:
        question = _require(fields, "question")
        answer = _require(fields, "answer")
        result = self.gateway.ask_language_model_shape(
            check_idiomatic_chinese(question, answer), REPLY_SHAPE, reply
        )
        return ActionResult(message=answer, reply=str(result.value))

    def generate_questions_from_image(self, fields: Mapping[str, Any]) -> ActionResult:
        image = _require(fields, "image")
        topic = _require(fields, "topic")
        if self.ocr is None:
            return ActionResult(error="OCR is not configured")

        ocr_text = self.ocr.extract_text(image)
        if not ocr_text:
            return ActionResult(ocr_text="", error="No text was found in the image")

        prompt = generate_questions_from_textbook(
            ocr_text=ocr_text,
            known_words=split_words(fields.get("knownWords")),
            target_subject=topic,
        )
        result = self.gateway.ask_language_model_shape(prompt, QUESTION_LIST_SHAPE, question_list)
        return ActionResult(ocr_text=ocr_text, questions=_as_questions(result.value))

    def generate_vocab_questions(self, fields: Mapping[str, Any]) -> ActionResult:
        vocab = split_words(_require(fields, "vocab"))
        result = self.gateway.ask_language_model_shape(
            generate_questions_with_new_vocab(vocab), QUESTION_LIST_SHAPE, question_list
        )
        return ActionResult(questions=_as_questions(result.value))
