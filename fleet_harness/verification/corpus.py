"""
Address corpus: content addresses recorded by an earlier load run that are
expected to stay retrievable.
"""

from collections.abc import Iterator, Sequence
from pathlib import Path

from fleet_harness.errors import ConfigError


class AddressCorpus:
    """Ordered, de-duplicated set of content addresses. Read-only."""

    def __init__(self, addresses: Sequence[str], source: Path | None = None):
        seen: set[str] = set()
        ordered: list[str] = []
        for address in addresses:
            address = address.strip()
            if address and address not in seen:
                seen.add(address)
                ordered.append(address)
        if not ordered:
            raise ConfigError(f"Address corpus is empty: {source or '<memory>'}")
        self._addresses = tuple(ordered)
        self._source = source

    @property
    def addresses(self) -> tuple[str, ...]:
        return self._addresses

    @property
    def source(self) -> Path | None:
        return self._source

    def __len__(self) -> int:
        return len(self._addresses)

    def __iter__(self) -> Iterator[str]:
        return iter(self._addresses)

    def __repr__(self) -> str:
        return f"AddressCorpus({len(self._addresses)} addresses, source={self._source})"


def load_corpus(path: Path) -> AddressCorpus:
    """
    Load a newline-delimited address file.

    Raises:
        ConfigError: if the file is missing, unreadable or holds no addresses
    """
    if not path.is_file():
        raise ConfigError(
            f"Addresses file not found: {path} (run a load test first to record chunk addresses)"
        )
    try:
        with open(path, encoding="utf-8") as f:
            lines = f.read().splitlines()
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read addresses file {path}: {e}") from e
    return AddressCorpus(lines, source=path)
