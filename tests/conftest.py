"""
Shared fixtures: form definitions, record store and a scripted LLM client
"""

import pytest

from formchat.config import FormConfig
from formchat.persistence import FormPersistence

FORMS = {
    "global_system_prompt": "You are a front-desk assistant.",
    "forms": [
        {
            "name": "registration",
            "title": "New Patient Registration",
            "greeting": "Hello! What is your name?",
            "fields": [
                "First Name: {{.FirstName}} (John)",
                "Driver's License Number: {{.License}} (555-55-5555)",
            ],
            "primary_key": ["License"],
            "next_form": "visit",
        },
        {
            "name": "visit",
            "title": "Visit Form",
            "fields": [
                "Patient Name: {{.FullName}}",
                "Driver's License Number: {{.License}}",
                "Reason for Visit: {{.ReasonForVisit}}",
            ],
            "primary_key": ["License"],
            "context_form": "registration",
        },
        {
            "name": "feedback",
            "title": "Feedback",
            "fields": ["Comment: {{.Comment}}"],
        },
    ],
}


class MockLLMClient:
    """
    LLM client returning scripted replies in order.

    A reply that is an exception instance is raised instead of returned.
    Every call's message list is recorded in .calls.
    """

    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.calls = []

    def complete(self, messages):
        self.calls.append([m.to_dict() for m in messages])
        if not self.replies:
            return "SAY Anything else?"
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


@pytest.fixture
def forms():
    return FormConfig.from_dict(FORMS)


@pytest.fixture
def persistence(tmp_path):
    return FormPersistence(str(tmp_path / "forms"))


@pytest.fixture
def llm():
    return MockLLMClient()
