"""Prompt templates and the function shapes the call sites advertise.

The cache key is derived from the rendered prompt, so the template wording
(trailing spaces and indentation included) must stay exactly as it is or
previously cached responses stop matching.
"""

from typing import Any, Dict, List, Sequence

from studybuddy.schemas import (
    CallableShape,
    CorrectnessArgs,
    QuestionListArgs,
    ReplyArgs,
)

# ==================== PROMPT TEMPLATES ====================


def generate_questions_with_new_vocab(new_vocab: Sequence[str]) -> str:
    """Ask for Journey to the West themed questions that force use of ``new_vocab``."""
    return (
        "The following are a list of Chinese words I need to learn. \n"
        "  Can you ask me a set of questions in which i have to use them to answer. \n"
        "  The theme of the questions is the classic story Journey to the West. \n"
        "  Try to have all the non new vocab words be HSK3, or at most HSK4.\n"
        f"  New Vocabulary: {', '.join(new_vocab)}"
    )


def generate_questions_from_textbook(
    ocr_text: str, known_words: Sequence[str], target_subject: str
) -> str:
    """Ask for questions teaching the page's vocabulary, re-themed around ``target_subject``."""
    return (
        f"The following text is the result of running OCR on a textbook page: {ocr_text}\n"
        f"  I know the following words: {', '.join(known_words)}\n"
        "  Can you generate a list of questions from the textbook's text that teach me the "
        "same vocabulary/grammar, but make the questions about the "
        f"{target_subject}? This subject is more interesting to me."
    )


def check_idiomatic_chinese(question: str, answer: str) -> str:
    return (
        "The following is question from a quiz.  \n"
        "  I need to answer it in idiomatic Chinese, but I should only try to use HSK3 "
        "and HSK4 terms in my answer, \n"
        "  unless the specific term I need is higher level.\n"
        "  Can you tell me if it's fully idiomatic and correct, or if there's anything "
        "I can improve?\n"
        "  Don't tell me exactly what i should say, so that I have the opportunity to "
        "try to correct my sentence\n"
        f"  Question: {question}\n"
        f"  Answer: {answer}"
    )


# ==================== CALLABLE SHAPES ====================

REPLY_SHAPE = CallableShape(
    name="reply",
    description="Replies to the message",
    parameters={
        "type": "object",
        "properties": {
            "replyText": {
                "type": "string",
                "description": "The reply to the message",
            },
        },
        "required": ["replyText"],
    },
)

EVALUATE_CORRECTNESS_SHAPE = CallableShape(
    name="evaluateCorrectness",
    description="Evaluate the correctness of an operation and provide a reason",
    parameters={
        "type": "object",
        "properties": {
            "correct": {
                "type": "boolean",
                "description": "Indicates whether the operation is correct",
            },
            "reason": {
                "type": "string",
                "description": "Explains why the operation is correct or incorrect",
            },
        },
        "required": ["correct", "reason"],
    },
)

QUESTION_LIST_SHAPE = CallableShape(
    name="questionList",
    description="Returns the generated quiz questions",
    parameters={
        "type": "object",
        "properties": {
            "questions": {
                "type": "array",
                "items": {"type": "string"},
                "description": "The generated questions, one per entry",
            },
        },
        "required": ["questions"],
    },
)


# ==================== LOCAL HANDLERS ====================


def reply(args: Dict[str, Any]) -> str:
    return ReplyArgs.model_validate(args).replyText


def evaluate_correctness(args: Dict[str, Any]) -> Dict[str, Any]:
    return CorrectnessArgs.model_validate(args).model_dump()


def question_list(args: Dict[str, Any]) -> List[str]:
    parsed = QuestionListArgs.model_validate(args)
    return [question.strip() for question in parsed.questions if question.strip()]

