"""
Verification runner.

Checks that addresses from the corpus are retrievable. A pass requires
every requested address; a single miss fails the whole sample.
"""

import random

from fleet_harness.domain import VerificationSample
from fleet_harness.errors import VerificationFailure
from fleet_harness.interfaces import VerificationProbe
from fleet_harness.logging import get_logger
from fleet_harness.runtime.ticker import Ticker
from fleet_harness.verification.corpus import AddressCorpus

logger = get_logger(__name__)


class VerificationRunner:
    """
    Runs retrieval checks for a corpus sample, one address at a time.

    With a ticker, a stop request ends the pass before the next address;
    the sample is then marked interrupted.
    """

    def __init__(
        self,
        probe: VerificationProbe,
        rng: random.Random | None = None,
        ticker: Ticker | None = None,
    ):
        self._probe = probe
        self._rng = rng or random.Random()
        self._ticker = ticker

    def select(self, corpus: AddressCorpus, sample_size: int | None = None) -> list[str]:
        """Whole corpus, or a uniform sample without replacement."""
        if sample_size is None or sample_size >= len(corpus):
            return list(corpus.addresses)
        if sample_size < 1:
            raise ValueError(f"sample_size must be positive, got {sample_size}")
        return self._rng.sample(list(corpus.addresses), sample_size)

    async def verify(
        self,
        corpus: AddressCorpus,
        sample_size: int | None = None,
    ) -> VerificationSample:
        """
        Check retrievability of a corpus sample.

        Probe errors count as "not retrieved"; this never raises for a
        failed retrieval.
        """
        requested = self.select(corpus, sample_size)
        missing: list[str] = []
        checked = 0
        interrupted = False

        for address in requested:
            if self._ticker is not None and self._ticker.cancelled:
                interrupted = True
                break
            try:
                retrieved = await self._probe.retrieve(address)
            except Exception as e:
                logger.warning("Retrieval of %s raised: %s", address, e)
                retrieved = False
            checked += 1
            if not retrieved:
                missing.append(address)

        sample = VerificationSample(
            requested=tuple(requested),
            verified_count=checked - len(missing),
            missing=tuple(missing),
            interrupted=interrupted,
        )

        if interrupted:
            logger.warning(
                "Data verification interrupted after %d / %d chunks",
                checked,
                sample.total_count,
            )
        elif sample.passed:
            logger.info(
                "Data verification: %d / %d chunks available (%d%%)",
                sample.verified_count,
                sample.total_count,
                sample.percent,
            )
        else:
            logger.warning("WARNING: %s", VerificationFailure(sample))
            for address in sample.missing[:10]:
                logger.warning("  missing: %s", address)
        return sample
