"""
Test OpenAIChatClient against a fake SDK client, and backend selection
"""

from types import SimpleNamespace

import httpx
import pytest
from openai import APITimeoutError

from formchat.config import Settings
from formchat.contracts import ChatMessage
from formchat.errors import CollaboratorError, ConfigError
from formchat.llm import build_llm_client
from formchat.utils.openai_client import OpenAIChatClient

MESSAGES = [ChatMessage("system", "Fill the form."), ChatMessage("user", "Hi")]


class FakeCompletions:
    def __init__(self, result):
        self.result = result
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        if isinstance(self.result, BaseException):
            raise self.result
        return self.result


def fake_client(result):
    completions = FakeCompletions(result)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


def completion(content):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=12, completion_tokens=3),
    )


def test_complete_returns_content():
    client, completions = fake_client(completion("SAY Hello!"))
    llm = OpenAIChatClient(api_key=None, model_name="gpt-4o-mini", timeout=5, client=client)

    assert llm.complete(MESSAGES) == "SAY Hello!"
    assert completions.kwargs["model"] == "gpt-4o-mini"
    assert completions.kwargs["timeout"] == 5
    assert completions.kwargs["messages"] == [
        {"role": "system", "content": "Fill the form."},
        {"role": "user", "content": "Hi"},
    ]


def test_timeout_is_collaborator_error():
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    client, _ = fake_client(APITimeoutError(request=request))
    llm = OpenAIChatClient(api_key=None, client=client)

    with pytest.raises(CollaboratorError) as exc_info:
        llm.complete(MESSAGES)

    assert exc_info.value.backend == "openai"


def test_empty_content_is_collaborator_error():
    client, _ = fake_client(completion(None))
    llm = OpenAIChatClient(api_key=None, client=client)

    with pytest.raises(CollaboratorError):
        llm.complete(MESSAGES)


def test_malformed_payload_is_collaborator_error():
    client, _ = fake_client(SimpleNamespace(choices=[]))
    llm = OpenAIChatClient(api_key=None, client=client)

    with pytest.raises(CollaboratorError):
        llm.complete(MESSAGES)


def test_api_key_required():
    with pytest.raises(ValueError):
        OpenAIChatClient(api_key=None)


def test_build_openai_backend():
    llm = build_llm_client(Settings(llm_backend="openai", openai_api_key="sk-test", llm_timeout=7))

    assert isinstance(llm, OpenAIChatClient)
    assert llm.timeout == 7


def test_unknown_backend():
    with pytest.raises(ConfigError):
        build_llm_client(Settings(llm_backend="carrier-pigeon"))
