"""Relay endpoint dataclass.

Represents one third-party relay in the failover rotation.
"""

from dataclasses import dataclass


RELAY_KINDS = ("raw", "wrapper")


@dataclass(frozen=True)
class RelayEndpoint:
    """A relay that forwards a GET to the upstream market-data host.

    The upstream URL is percent-encoded and appended to ``url``.  ``raw``
    relays return the upstream body untouched; ``wrapper`` relays return a
    JSON object whose ``contents`` field carries the upstream body.
    """

    url: str
    timeout_seconds: float = 12.0
    kind: str = "raw"  # "raw" or "wrapper"

    def __post_init__(self) -> None:
        if self.kind not in RELAY_KINDS:
            raise ValueError(f"Unknown relay kind: {self.kind!r}")
        if self.timeout_seconds <= 0:
            raise ValueError(
                f"Relay timeout must be positive, got {self.timeout_seconds}"
            )


DEFAULT_RELAYS: tuple[RelayEndpoint, ...] = (
    RelayEndpoint("https://corsproxy.io/?", 12.0),
    RelayEndpoint("https://api.allorigins.win/raw?url=", 12.0),
    RelayEndpoint("https://api.codetabs.com/v1/proxy?quest=", 15.0),
)
