# ClaimFlow - Claims Lifecycle & Notification Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Service error taxonomy carried inside ``Err`` results.

Services never raise for business failures. They return ``Err(ServiceError)``
and the API layer maps the error kind onto an HTTP status.
"""

from collections.abc import Iterable
from enum import Enum

from attrs import field, frozen
from beartype import beartype


class ErrorKind(str, Enum):
    """Failure categories shared by every service."""

    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    VALIDATION = "VALIDATION_ERROR"
    CONFLICT = "CONFLICT"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    # Logged by the publisher and the push channel, never returned to clients.
    DELIVERY_FAILURE = "DELIVERY_FAILURE"


@frozen
class ServiceError:
    """Immutable description of a failed operation."""

    kind: ErrorKind = field()
    message: str = field()
    field_errors: dict[str, str] = field(factory=dict)

    def __str__(self) -> str:
        return self.message

    @property
    def code(self) -> str:
        return self.kind.value


@beartype
def not_found(message: str) -> ServiceError:
    return ServiceError(ErrorKind.NOT_FOUND, message)


@beartype
def forbidden(message: str) -> ServiceError:
    return ServiceError(ErrorKind.FORBIDDEN, message)


@beartype
def conflict(message: str) -> ServiceError:
    return ServiceError(ErrorKind.CONFLICT, message)


@beartype
def unauthenticated(message: str = "Authentication required") -> ServiceError:
    return ServiceError(ErrorKind.UNAUTHENTICATED, message)


@beartype
def upstream_unavailable(message: str) -> ServiceError:
    return ServiceError(ErrorKind.UPSTREAM_UNAVAILABLE, message)


@beartype
def delivery_failure(message: str) -> ServiceError:
    return ServiceError(ErrorKind.DELIVERY_FAILURE, message)


@beartype
def invalid_transition(
    claim_number: str,
    action: str,
    required: Iterable[Enum],
    actual: Enum,
) -> ServiceError:
    """Build the error for a violated state precondition.

    The message always names both the required source state(s) and the
    state the claim was actually in, e.g.
    ``Claim CLM-1 can only be approved from UNDER_REVIEW status. Current status: SUBMITTED``.
    """
    names = [state.value for state in required]
    if len(names) == 1:
        expected = f"{names[0]} status"
    else:
        expected = " or ".join(names) + " status"
    return ServiceError(
        ErrorKind.INVALID_TRANSITION,
        f"Claim {claim_number} can only be {action} from {expected}. "
        f"Current status: {actual.value}",
    )
