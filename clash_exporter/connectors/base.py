# File: connectors/base.py

from abc import ABC, abstractmethod


class Connector(ABC):
    """
    Base class for snapshot sources.
    Subclasses must accept a single `cfg` object in __init__.
    """

    @abstractmethod
    def fetch_snapshot(self) -> bytes:
        """
        Fetch one raw connections snapshot from the external service.
        Raise FetchError when the service cannot be reached.
        """
        raise NotImplementedError

    def close(self) -> None:
        """Release any pooled resources."""
