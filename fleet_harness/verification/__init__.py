"""
Data availability verification against a recorded address corpus.
"""

from fleet_harness.verification.corpus import AddressCorpus, load_corpus
from fleet_harness.verification.probes import (
    CommandVerificationProbe,
    HttpVerificationProbe,
)
from fleet_harness.verification.runner import VerificationRunner

__all__ = [
    "AddressCorpus",
    "CommandVerificationProbe",
    "HttpVerificationProbe",
    "VerificationRunner",
    "load_corpus",
]
