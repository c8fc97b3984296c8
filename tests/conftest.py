"""
Pytest fixtures for planner tests.
"""

from datetime import datetime

import pytest

from cfplanner.engines.mastery.store import InMemoryMasteryStore
from cfplanner.pedagogy.topic_graph import TopicGraph
from tests.fakes import NOW, FakeJudge


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def graph() -> TopicGraph:
    return TopicGraph.default()


@pytest.fixture
def store() -> InMemoryMasteryStore:
    return InMemoryMasteryStore()


@pytest.fixture
def judge() -> FakeJudge:
    return FakeJudge(handles=["tourist"])
