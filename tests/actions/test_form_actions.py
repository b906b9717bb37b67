import json
from types import SimpleNamespace

import pytest

from studybuddy.actions import GENERIC_ERROR, FormActions, split_words
from studybuddy.errors import OCRError
from studybuddy.prompts import QUESTION_LIST_SHAPE, REPLY_SHAPE


class StubOCR:
    def __init__(self, text="", error=None):
        self.text = text
        self.error = error
        self.images = []

    def extract_text(self, image):
        self.images.append(image)
        if self.error is not None:
            raise self.error
        return self.text


@pytest.fixture
def ocr():
    return StubOCR(text="我每天早上喝茶。")


@pytest.fixture
def actions(gateway, ocr):
    return FormActions(gateway, ocr)


def test_split_words_handles_chinese_commas():
    assert split_words("你好， 谢谢、再见,  ,朋友") == ["你好", "谢谢", "再见", "朋友"]
    assert split_words(None) == []


def test_message_action_replies_through_reply_shape(actions, fake_client, completions):
    fake_client.queue(completions.function("reply", json.dumps({"replyText": "你好！"})))

    result = actions.handle({"message": "Say hi"})

    assert result.ok
    assert result.message == "Say hi"
    assert result.reply == "你好！"
    assert fake_client.calls[0]["functions"] == [REPLY_SHAPE.to_openai()]


def test_check_answer_builds_idiomatic_prompt(actions, fake_client, completions):
    fake_client.queue(completions.function("reply", json.dumps({"replyText": "Very natural."})))

    result = actions.handle({"type": "checkAnswer", "question": "你好吗？", "answer": "我很好。"})

    assert result.reply == "Very natural."
    prompt = fake_client.calls[0]["messages"][0]["content"]
    assert "Question: 你好吗？" in prompt
    assert "Answer: 我很好。" in prompt


def test_generate_questions_runs_ocr_then_gateway(actions, ocr, fake_client, completions):
    questions = ["牛顿每天早上喝什么？", "为什么苹果会掉下来？"]
    fake_client.queue(completions.function("questionList", json.dumps({"questions": questions})))

    result = actions.handle(
        {"type": "generateQuestions", "image": "aW1hZ2U=", "topic": "Physics", "knownWords": "我, 喝"}
    )

    assert result.ok
    assert result.questions == questions
    assert result.ocr_text == "我每天早上喝茶。"
    assert ocr.images == ["aW1hZ2U="]
    call = fake_client.calls[0]
    assert call["functions"] == [QUESTION_LIST_SHAPE.to_openai()]
    prompt = call["messages"][0]["content"]
    assert "textbook page: 我每天早上喝茶。" in prompt
    assert "I know the following words: 我, 喝" in prompt
    assert "about the Physics?" in prompt


def test_free_text_question_list_is_split_into_lines(actions, fake_client, completions):
    fake_client.queue(completions.text("1. 孙悟空是谁？\n\n2. 唐僧去哪里？"))

    result = actions.handle({"type": "vocabQuestions", "vocab": "孙悟空，唐僧"})

    assert result.questions == ["1. 孙悟空是谁？", "2. 唐僧去哪里？"]
    assert "New Vocabulary: 孙悟空, 唐僧" in fake_client.calls[0]["messages"][0]["content"]


def test_ocr_failure_becomes_user_error(gateway, fake_client):
    actions = FormActions(gateway, StubOCR(error=OCRError("Bad image data.")))

    result = actions.handle({"type": "generateQuestions", "image": "aW1hZ2U=", "topic": "Physics"})

    assert result.error == "Bad image data."
    assert fake_client.calls == []


def test_empty_ocr_text_short_circuits(gateway, fake_client):
    actions = FormActions(gateway, StubOCR(text=""))

    result = actions.handle({"type": "generateQuestions", "image": "aW1hZ2U=", "topic": "Physics"})

    assert result.error == "No text was found in the image"
    assert fake_client.calls == []


def test_missing_field_reports_field_name(actions, fake_client):
    result = actions.handle({"type": "checkAnswer", "question": "你好吗？"})

    assert result.error == "Missing required field 'answer'"
    assert fake_client.calls == []


def test_non_string_message_field_still_yields_result(actions, fake_client):
    result = actions.handle({"type": "checkAnswer", "message": 5})

    assert result.message == "5"
    assert result.error == "Missing required field 'question'"
    assert fake_client.calls == []


def test_non_string_message_on_upstream_failure(actions, fake_client):
    fake_client.queue(RuntimeError("upstream down"))

    result = actions.handle({"type": "checkAnswer", "question": "你好吗？", "answer": "好", "message": 7})

    assert result.message == "7"
    assert result.error == "upstream down"


def test_known_words_may_arrive_as_a_list(actions, fake_client, completions):
    fake_client.queue(completions.function("questionList", json.dumps({"questions": ["q"]})))

    result = actions.handle(
        {"type": "generateQuestions", "image": "aW1hZ2U=", "topic": "Physics", "knownWords": ["我", "喝"]}
    )

    assert result.ok
    assert "I know the following words: 我, 喝" in fake_client.calls[0]["messages"][0]["content"]


def test_unknown_type_is_reported(actions):
    result = actions.handle({"type": "launchRocket"})

    assert result.error == "Unknown action type 'launchRocket'"


def test_unknown_function_from_model_is_caught(actions, fake_client, completions):
    fake_client.queue(completions.function("mystery", "{}"))

    result = actions.handle({"message": "hello"})

    assert result.message == "hello"
    assert result.reply == ""
    assert "mystery" in result.error


def test_exception_without_message_uses_generic_error(actions, fake_client):
    fake_client.queue(RuntimeError())

    result = actions.handle({"message": "hello"})

    assert result.error == GENERIC_ERROR


def test_missing_ocr_client_is_reported(gateway):
    result = FormActions(gateway).handle(
        {"type": "generateQuestions", "image": "aW1hZ2U=", "topic": "Physics"}
    )

    assert result.error == "OCR is not configured"
