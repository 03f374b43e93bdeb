"""
Abstract base class for controller data sources.

The reporting pipeline only talks to controllers through this interface,
so the transport (OData over HTTP, fixtures in tests) can be swapped freely.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Sequence

from ..exceptions import ConnectivityError
from ..schemas.models import DeliveryGroup, Machine, SessionInterval, TimeWindow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credential:
    """Username/password pair for a controller."""

    username: str
    password: str = field(default="", repr=False)


class DataSource(ABC):
    """
    Abstract base class for controller data sources.

    Implementations must be safe to call from several threads at once:
    controllers are collected in parallel and the three fetches for one
    controller may run concurrently.
    """

    @property
    @abstractmethod
    def source_type(self) -> str:
        """Return the data source identifier (e.g., 'odata')."""
        pass

    @abstractmethod
    def probe(self, controller: str, credential: Optional[Credential] = None) -> None:
        """
        Verify a controller is reachable and accepts the credential.

        Raises:
            ConnectivityError: If the controller is unreachable or rejects
                the credential.
        """
        pass

    @abstractmethod
    def fetch_delivery_groups(
        self, controller: str, credential: Optional[Credential] = None
    ) -> list[DeliveryGroup]:
        """
        Fetch all delivery groups defined on a controller.

        Raises:
            CollectionError: If retrieval fails.
        """
        pass

    @abstractmethod
    def fetch_machines(
        self, controller: str, credential: Optional[Credential] = None
    ) -> list[Machine]:
        """
        Fetch all machines known to a controller.

        Raises:
            CollectionError: If retrieval fails.
        """
        pass

    @abstractmethod
    def fetch_sessions(
        self,
        controller: str,
        window: TimeWindow,
        credential: Optional[Credential] = None,
    ) -> list[SessionInterval]:
        """
        Fetch sessions overlapping the window.

        Raises:
            CollectionError: If retrieval fails.
        """
        pass

    def check_connectivity(
        self,
        controllers: Sequence[str],
        credential: Optional[Credential] = None,
    ) -> list[str]:
        """
        Return the reachable subset of controllers, in input order.

        Controllers that fail the probe are logged and left out.
        """
        reachable = []
        for controller in controllers:
            try:
                self.probe(controller, credential)
            except ConnectivityError as e:
                logger.warning(f"Excluding controller: {e}")
                continue
            reachable.append(controller)

        logger.info(f"{len(reachable)}/{len(controllers)} controller(s) reachable")
        return reachable

    def close(self) -> None:
        """Release resources. No-op by default."""
        pass

    def __enter__(self) -> "DataSource":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
