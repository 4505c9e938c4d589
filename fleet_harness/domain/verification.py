"""
Verification domain models.
"""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field


class VerificationSample(BaseModel):
    """
    Result of one verification pass.

    Passes only when every requested address was retrieved and at least
    one address was requested. Partial success is failure.
    """

    model_config = ConfigDict(frozen=True)

    requested: tuple[str, ...] = ()
    verified_count: int = Field(default=0, ge=0)
    missing: tuple[str, ...] = ()
    interrupted: bool = Field(
        default=False,
        description="Pass stopped early by a stop request; unchecked addresses are not missing",
    )
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def total_count(self) -> int:
        return len(self.requested)

    @property
    def passed(self) -> bool:
        return (
            not self.interrupted
            and self.total_count > 0
            and self.verified_count == self.total_count
        )

    @property
    def percent(self) -> int:
        if self.total_count == 0:
            return 0
        return self.verified_count * 100 // self.total_count
