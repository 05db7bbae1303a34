from abc import ABC, abstractmethod
from typing import List

from ..models.specs import Checkpoint


class CheckpointRepository(ABC):
    """
    Abstract base class for persisted checkpoint stores.
    Defines the contract for listing and deleting checkpoints per namespace.
    """

    @abstractmethod
    async def list_checkpoints(self, namespace: str) -> List[Checkpoint]:
        """
        Lists the checkpoints stored in a namespace.

        Raises:
            CollectionError: If the store cannot be listed.
        """
        pass

    @abstractmethod
    async def delete_checkpoint(self, namespace: str, name: str) -> None:
        """
        Deletes a single checkpoint.

        Raises:
            CollectionError: If the deletion fails.
        """
        pass

    async def close(self):
        """
        Clean up resources (e.g., close API clients).
        """
        pass
