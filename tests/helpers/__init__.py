"""Test helpers: scripted fakes for the orchestrator's collaborators."""

from tests.helpers.fakes import (
    FakeAgentChannel,
    FakeOutbound,
    FakeTaskIntake,
    FakeVoice,
    OpenCall,
    Sent,
    collect,
    result,
)

__all__ = [
    "FakeAgentChannel",
    "FakeOutbound",
    "FakeTaskIntake",
    "FakeVoice",
    "OpenCall",
    "Sent",
    "collect",
    "result",
]
