from typing import Any

import pytest

from api.v1.core.registries import (
    JobRegistry,
    Registry,
    job_registry,
    topic_provider_registry,
)
from api.v1.infra.jobs.handlers import TopicGenerationHandler
from api.v1.infra.jobs.models import JobType
from api.v1.plans.registry_init import init_plan_registries
from api.v1.plans.topics import StubTopicProvider


class MockHandler:
    async def handle(self, session: Any, payload: dict[str, Any]) -> dict[str, Any]:
        return {"status": "completed"}


def test_registry_basic_operations():
    """Test basic registry register, get, list operations."""
    registry = Registry[str]("Test")

    # Test empty registry
    assert registry.list() == []

    # Test register and get
    registry.register("test_impl", "test_value")
    assert registry.get("test_impl") == "test_value"
    assert registry.list() == ["test_impl"]

    # Test KeyError for missing implementation
    with pytest.raises(KeyError, match="No test implementation registered"):
        registry.get("nonexistent")


def test_registry_overwrites_implementation():
    """Test that registering the same name overwrites previous implementation."""
    registry = Registry[str]("Test")

    registry.register("same_name", "first_value")
    registry.register("same_name", "second_value")
    assert registry.get("same_name") == "second_value"
    assert registry.list() == ["same_name"]  # Only one entry


def test_frozen_registry_rejects_registration():
    registry = JobRegistry()
    registry.register("research", MockHandler())
    registry.freeze()

    assert registry.is_frozen() is True
    with pytest.raises(RuntimeError, match="registry is frozen"):
        registry.register("auto_approval", MockHandler())
    assert registry.list() == ["research"]


def test_topic_generation_handler_is_registered():
    """Importing the app wires the topic_generation handler."""
    import api.main  # noqa: F401

    handler = job_registry.get(JobType.TOPIC_GENERATION.value)
    assert isinstance(handler, TopicGenerationHandler)


def test_stub_topic_provider_is_registered():
    init_plan_registries()

    provider = topic_provider_registry.get("stub")
    assert isinstance(provider, StubTopicProvider)
    assert provider.categories == ["Trading", "Lifestyle", "Fin. Freedom"]
