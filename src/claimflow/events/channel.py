"""Stream naming and partitioning for the status-change event channel.

Events for one claim always land on the same partition, so their relative
order is preserved. Unrelated claims spread over the partitions and are
consumed independently.
"""

import zlib
from typing import Final

from beartype import beartype

from ..core.config import Settings

EVENT_FIELD: Final = "event"
KEY_FIELD: Final = "claimNumber"


@beartype
def partition_for(claim_number: str, partitions: int) -> int:
    """Stable partition index for a claim number."""
    if partitions < 1:
        raise ValueError("partitions must be >= 1")
    return zlib.crc32(claim_number.encode("utf-8")) % partitions


@beartype
def stream_name(prefix: str, partition: int) -> str:
    return f"{prefix}:{partition}"


@beartype
def stream_for(claim_number: str, settings: Settings) -> str:
    return stream_name(
        settings.event_stream_prefix,
        partition_for(claim_number, settings.event_partitions),
    )


@beartype
def all_streams(settings: Settings) -> list[str]:
    return [
        stream_name(settings.event_stream_prefix, partition)
        for partition in range(settings.event_partitions)
    ]


@beartype
def dead_letter_stream(settings: Settings) -> str:
    return f"{settings.event_stream_prefix}:dead-letter"
