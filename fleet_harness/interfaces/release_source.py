"""
ReleaseSource interface.

Defines where the latest published node version comes from.
"""

from abc import ABC, abstractmethod


class ReleaseSource(ABC):
    """Abstract base class for published release lookups."""

    @abstractmethod
    async def latest_version(self) -> str:
        """
        Get the latest published version (without a leading "v").

        Raises:
            ReleaseLookupError: if the version cannot be determined.
        """
        pass

    async def close(self) -> None:
        """Release any resources held by the source."""
        return None
