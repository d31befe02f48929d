"""
Registry initialization for plans module.
Registers topic provider implementations.
"""

from api.config.settings import TopicProviderType, settings
from api.v1.core.registries import topic_provider_registry
from api.v1.plans.topics import StubTopicProvider


def init_plan_registries():
    """Initialize plan-related registries."""
    if TopicProviderType.STUB.value not in topic_provider_registry.list():
        topic_provider_registry.register(
            TopicProviderType.STUB.value, StubTopicProvider(settings.topic_categories)
        )
