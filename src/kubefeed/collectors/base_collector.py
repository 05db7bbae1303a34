# src/kubefeed/collectors/base_collector.py
"""
This module defines the abstract base classes for all data sources feeding
the cluster state. Collectors raise CollectionError when the source cannot be
read, so callers can tell a failed fetch apart from an empty one.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from ..models.cluster import PodID
from ..models.specs import PodHistory


class BaseCollector(ABC):
    """
    Abstract Base Class for all collectors.
    """

    @abstractmethod
    async def collect(self) -> List[Any]:
        """
        Fetch data from the source, parse it and return a list of Pydantic models.

        Raises:
            CollectionError: If the source cannot be read.
        """
        pass

    async def close(self):
        """
        Clean up resources (e.g., close HTTP sessions or API clients).
        """
        pass


class HistoryProvider(ABC):
    """Source of archived usage used once at startup."""

    @abstractmethod
    async def get_cluster_history(self) -> Dict[PodID, PodHistory]:
        """
        Raises:
            CollectionError: If the archive cannot be read.
        """
        pass

    async def close(self):
        pass
