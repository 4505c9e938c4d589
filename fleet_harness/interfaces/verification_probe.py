"""
VerificationProbe interface.

Defines the contract for checking that one content address is retrievable
from the network.
"""

from abc import ABC, abstractmethod


class VerificationProbe(ABC):
    """Abstract base class for data retrievability checks."""

    @abstractmethod
    async def retrieve(self, address: str) -> bool:
        """
        Try to retrieve the content stored at an address.

        Args:
            address: Content address (hex string)

        Returns:
            True if the content was retrieved, False otherwise.
        """
        pass

    async def close(self) -> None:
        """Release any resources held by the probe."""
        return None
