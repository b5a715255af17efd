"""Exception types raised by dtclusters."""


class ClusteringError(Exception):
    """Base class for dtclusters errors."""
    pass


class DelayAborted(ClusteringError):
    """Raised by a progress callback to request cancellation.

    Long-running operations catch this and return an ``Aborted`` outcome
    instead of letting it escape.
    """
    pass


class CorpusLockedError(ClusteringError):
    """Raised when a locked corpus is mutated or reordered."""
    pass


class JobStateError(ClusteringError):
    """Raised when a ClusterJob is executed more than once."""
    pass


class AgglomeratorStateError(ClusteringError):
    """Raised when an aborted agglomerator is used again."""
    pass
