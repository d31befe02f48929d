from typing import Any, Generic, Protocol, TypeVar

# Base registry implementation
T = TypeVar("T")


class Registry(Generic[T]):
    """Generic registry for pluggable implementations."""

    def __init__(self, name: str):
        self.name = name
        self._implementations: dict[str, T] = {}
        self._frozen = False

    def register(self, name: str, implementation: T) -> None:
        """Register an implementation with a given name."""
        if self._frozen:
            raise RuntimeError(
                f"Cannot register '{name}' in {self.name.lower()} registry: "
                "registry is frozen in production mode"
            )
        self._implementations[name] = implementation

    def get(self, name: str) -> T:
        """Get an implementation by name."""
        if name not in self._implementations:
            raise KeyError(
                f"No {self.name.lower()} implementation registered with name: {name}"
            )
        return self._implementations[name]

    def list(self) -> list[str]:
        """List all registered implementation names."""
        return list(self._implementations.keys())

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        """Check if the registry is frozen."""
        return self._frozen


# Job Registry - background processing handlers
class JobHandler(Protocol):
    """Protocol for job handlers that execute queued work."""

    async def handle(
        self,
        session: Any,  # AsyncSession
        payload: dict[str, Any],
    ) -> dict[str, Any] | None:
        """
        Handle a background job.

        Args:
            session: Database session for job processing
            payload: Job-specific parameters

        Returns:
            Optional result dictionary, logged with the completed job

        Raises:
            Any exception marks the job failed and schedules a retry.
        """
        ...


class JobRegistry(Registry[JobHandler]):
    """Registry for background job handlers, keyed by job type."""

    def __init__(self):
        super().__init__("Job")


# Topic Provider Registry - ranked content ideas for plan items
class TopicProvider(Protocol):
    """Protocol for topic providers (research collaborators)."""

    async def generate_topics(self, owner_id: Any) -> list[Any]:
        """
        Return a ranked list of topic suggestions for an owner.

        Each entry exposes ``category`` and ``idea``. Implementations raise
        RateLimitError when the upstream service throttles.
        """
        ...


class TopicProviderRegistry(Registry[TopicProvider]):
    """Registry for topic providers (stub, ...)."""

    def __init__(self):
        super().__init__("TopicProvider")


# Global registry instances (singletons)
job_registry = JobRegistry()
topic_provider_registry = TopicProviderRegistry()
