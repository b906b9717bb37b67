import copy
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from studybuddy import llm_utils
from studybuddy.cache import ResponseCache
from studybuddy.config import GatewaySettings
from studybuddy.llm_utils import LLMGateway


def make_text_completion(content, role="assistant"):
    message = SimpleNamespace(role=role, content=content, function_call=None)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def make_function_completion(name, arguments, content=None):
    function_call = SimpleNamespace(name=name, arguments=arguments)
    message = SimpleNamespace(role="assistant", content=content, function_call=function_call)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeCompletions:
    def __init__(self):
        self.outcomes = []
        self.calls = []

    def create(self, **kwargs):
        # The gateway keeps mutating its history after the call returns.
        self.calls.append(copy.deepcopy(kwargs))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeOpenAIClient:
    def __init__(self):
        self.completions = FakeCompletions()
        self.chat = SimpleNamespace(completions=self.completions)

    def queue(self, *outcomes):
        self.completions.outcomes.extend(outcomes)

    @property
    def calls(self):
        return self.completions.calls


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(llm_utils.time, "sleep", lambda *_: None)


@pytest.fixture
def fake_client():
    return FakeOpenAIClient()


@pytest.fixture
def cache_path(tmp_path):
    return tmp_path / "responseCache.json"


@pytest.fixture
def response_cache(cache_path):
    cache = ResponseCache(str(cache_path)).init()
    try:
        yield cache
    finally:
        cache.close()


@pytest.fixture
def gateway_settings():
    return GatewaySettings(api_key="sk-test", model_name="gpt-test", max_retries=3)


@pytest.fixture
def gateway(response_cache, gateway_settings, fake_client):
    return LLMGateway(response_cache, settings=gateway_settings, client=fake_client)


@pytest.fixture
def completions():
    return SimpleNamespace(text=make_text_completion, function=make_function_completion)
