"""Port: clustering algorithm over stored items."""

from __future__ import annotations

from abc import ABC, abstractmethod

from neuralytics.domain.models import ClusteringOptions, ClusteringResult


class ClusteringPort(ABC):
    """Partition a snapshot of item ids into clusters."""

    name: str = ""

    @abstractmethod
    async def cluster(
        self,
        item_ids: list[str],
        options: ClusteringOptions,
    ) -> ClusteringResult:
        """Return clusters over *item_ids*."""
