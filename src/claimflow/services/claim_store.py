# ClaimFlow - Claims Lifecycle & Notification Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""PostgreSQL persistence for claims."""

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Final

import asyncpg
from beartype import beartype

from ..core.database import Database
from ..core.errors import ServiceError, conflict
from ..core.result_types import Err, Ok, Result
from ..models.claim import Claim, ClaimStatus, PolicyType

logger = logging.getLogger(__name__)

CLAIM_COLUMNS: Final = (
    "id",
    "claim_number",
    "policy_number",
    "policy_type",
    "claim_type",
    "owner_id",
    "owner_email",
    "incident_date",
    "claimed_amount",
    "description",
    "incident_location",
    "severity",
    "documents_path",
    "status",
    "submitted_at",
    "approved_amount",
    "approved_date",
    "rejected_date",
    "rejection_reason",
    "settled_date",
    "admin_notes",
    "reviewed_by",
    "created_at",
    "updated_at",
)

# Columns a status transition may touch besides status and updated_at.
TRANSITION_COLUMNS: Final = frozenset(
    {
        "approved_amount",
        "approved_date",
        "rejected_date",
        "rejection_reason",
        "settled_date",
        "admin_notes",
        "reviewed_by",
    }
)

_SELECT: Final = f"SELECT {', '.join(CLAIM_COLUMNS)} FROM claims"


def _row_to_claim(row: Mapping[str, Any]) -> Claim:
    return Claim(**{column: row[column] for column in CLAIM_COLUMNS})


def _enum_value(value: Any) -> Any:
    return value.value if hasattr(value, "value") else value


class ClaimStore:
    """Claim rows keyed by claim number.

    Status changes go through :py:meth:`transition`, a single conditional
    ``UPDATE`` that only matches while the row is still in one of the expected
    source states. Two concurrent writers can therefore never both win.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    @beartype
    async def insert(self, claim: Claim) -> Result[Claim, ServiceError]:
        """Persist a new claim."""
        placeholders = ", ".join(f"${i}" for i in range(1, len(CLAIM_COLUMNS) + 1))
        query = (
            f"INSERT INTO claims ({', '.join(CLAIM_COLUMNS)}) "
            f"VALUES ({placeholders}) RETURNING {', '.join(CLAIM_COLUMNS)}"
        )
        values = [_enum_value(getattr(claim, column)) for column in CLAIM_COLUMNS]
        try:
            row = await self._db.write_returning(query, *values)
        except asyncpg.UniqueViolationError:
            return Err(conflict(f"Claim number {claim.claim_number} already exists"))
        if row is None:
            raise RuntimeError(f"Insert of claim {claim.claim_number} returned no row")
        return Ok(_row_to_claim(row))

    @beartype
    async def get(self, claim_number: str) -> Claim | None:
        row = await self._db.fetchrow(f"{_SELECT} WHERE claim_number = $1", claim_number)
        return _row_to_claim(row) if row else None

    @beartype
    async def list_claims(
        self,
        *,
        owner_id: str | None = None,
        status: ClaimStatus | None = None,
        policy_type: PolicyType | None = None,
        policy_number: str | None = None,
    ) -> list[Claim]:
        """List claims matching every given filter, newest first."""
        conditions: list[str] = []
        params: list[Any] = []
        for column, value in (
            ("owner_id", owner_id),
            ("status", _enum_value(status)),
            ("policy_type", _enum_value(policy_type)),
            ("policy_number", policy_number),
        ):
            if value is not None:
                params.append(value)
                conditions.append(f"{column} = ${len(params)}")

        query = _SELECT
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY submitted_at DESC, claim_number DESC"

        rows = await self._db.fetch(query, *params)
        return [_row_to_claim(row) for row in rows]

    @beartype
    async def transition(
        self,
        claim_number: str,
        *,
        from_statuses: Iterable[ClaimStatus],
        to_status: ClaimStatus,
        changes: Mapping[str, Any] | None = None,
    ) -> Claim | None:
        """Atomically move a claim to ``to_status`` if it is still in ``from_statuses``.

        Returns the updated claim, or ``None`` when the claim does not exist
        or was no longer in an expected state.
        """
        changes = dict(changes or {})
        unknown = set(changes) - TRANSITION_COLUMNS
        if unknown:
            raise ValueError(f"Columns not writable by a transition: {sorted(unknown)}")

        params: list[Any] = [
            claim_number,
            [status.value for status in from_statuses],
            to_status.value,
        ]
        assignments = ["status = $3", "updated_at = NOW()"]
        for column, value in changes.items():
            params.append(value)
            assignments.append(f"{column} = ${len(params)}")

        query = (
            f"UPDATE claims SET {', '.join(assignments)} "
            "WHERE claim_number = $1 AND status = ANY($2::text[]) "
            f"RETURNING {', '.join(CLAIM_COLUMNS)}"
        )
        row = await self._db.write_returning(query, *params)
        if row is None:
            return None
        logger.debug("Claim %s moved to %s", claim_number, to_status.value)
        return _row_to_claim(row)

    @beartype
    async def count_by_status(self) -> dict[ClaimStatus, int]:
        """Count claims per status in one grouped query."""
        rows = await self._db.fetch(
            "SELECT status, COUNT(*) AS count FROM claims GROUP BY status"
        )
        return {ClaimStatus(row["status"]): int(row["count"]) for row in rows}
