class KubeFeedError(Exception):
    """Base exception for KubeFeed."""

    pass


class CollectionError(KubeFeedError):
    """Raised when a top-level listing or fetch against an external source fails."""

    pass


class SelectorFetchError(KubeFeedError):
    """Raised when a selector cannot be derived from a target object."""

    pass


class CheckpointDecodeError(KubeFeedError):
    """Raised when a checkpoint payload cannot be decoded."""

    pass


class TargetRejectedError(KubeFeedError):
    """Raised when the cluster state refuses a target object."""

    pass


class AttributionError(KubeFeedError):
    """Base exception for references to entities missing from the cluster state."""

    pass


class PodNotFoundError(AttributionError):
    """Raised when a pod is not present in the cluster state."""

    pass


class ContainerNotFoundError(AttributionError):
    """Raised when a container is not present in the cluster state."""

    pass


class TargetNotFoundError(AttributionError):
    """Raised when a target is not present in the cluster state."""

    pass
