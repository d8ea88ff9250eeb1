from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class IConnection(ABC):
    """
    One subscribed client connection (socket, SSE stream, in-process queue...).
    `send` must not block the caller; implementations buffer or drop.
    """

    @property
    @abstractmethod
    def connection_id(self) -> str:
        pass

    @property
    @abstractmethod
    def owner_id(self) -> Optional[str]:
        """The authenticated user behind the connection, if any."""
        pass

    @abstractmethod
    def send(self, event_name: str, payload: Dict[str, Any]) -> None:
        pass
