"""Local store of materialized media resources keyed by opaque reference."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Protocol
import uuid

logger = logging.getLogger(__name__)

REFERENCE_SCHEME = "blob:"


@dataclass(frozen=True)
class StoredResource:
    reference: str
    content: bytes
    content_type: str


class ResourceStore(Protocol):
    def create(self, content: bytes, content_type: str) -> str:
        """Materialize bytes and return an opaque reference."""

    def get(self, reference: str) -> StoredResource | None:
        """Return the resource while its reference is not revoked."""

    def revoke(self, reference: str) -> bool:
        """Drop the resource; return False if it was already revoked."""


@dataclass
class InMemoryResourceStore:
    def __post_init__(self) -> None:
        self._resources: dict[str, StoredResource] = {}
        self.revocations: dict[str, int] = {}

    def create(self, content: bytes, content_type: str) -> str:
        reference = f"{REFERENCE_SCHEME}{uuid.uuid4()}"
        self._resources[reference] = StoredResource(
            reference=reference,
            content=content,
            content_type=content_type,
        )
        logger.debug("Created resource %s (%d bytes)", reference, len(content))
        return reference

    def get(self, reference: str) -> StoredResource | None:
        return self._resources.get(reference)

    def revoke(self, reference: str) -> bool:
        if self._resources.pop(reference, None) is None:
            return False
        self.revocations[reference] = self.revocations.get(reference, 0) + 1
        logger.debug("Revoked resource %s", reference)
        return True

    @property
    def live_references(self) -> list[str]:
        return list(self._resources)
