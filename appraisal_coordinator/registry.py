"""
Appraisal Coordinator — Capability Registry

Maps task types to the providers that declared them. Lookup order is
registration order: the first provider registered for a type is the
first one chosen.
"""

from __future__ import annotations

import logging
import threading

from appraisal_coordinator.providers import Provider

logger = logging.getLogger("appraisal_ai.registry")


class CapabilityRegistry:
    """Thread-safe task type → provider index."""

    def __init__(self):
        self._by_type: dict[str, list[Provider]] = {}
        self._by_id: dict[str, Provider] = {}
        self._lock = threading.Lock()

    def register(self, provider: Provider) -> None:
        """
        Index a provider under each of its capabilities.

        Registering the same provider twice yields duplicate entries.
        """
        logger.info(
            "Registering provider %s (%s) for %d task types",
            provider.name, provider.provider_id, len(provider.capabilities),
        )
        with self._lock:
            self._by_id[provider.provider_id] = provider
            for capability in sorted(provider.capabilities):
                self._by_type.setdefault(capability, []).append(provider)

    def find(self, task_type: str) -> list[Provider]:
        with self._lock:
            return list(self._by_type.get(task_type, ()))

    def get(self, provider_id: str) -> Provider | None:
        with self._lock:
            return self._by_id.get(provider_id)

    def providers(self) -> list[Provider]:
        with self._lock:
            return list(self._by_id.values())

    def task_types(self) -> list[str]:
        with self._lock:
            return sorted(self._by_type)
