"""Ok/Err results returned by stores and services.

Business failures travel as ``Err(ServiceError)`` values; routers turn them
into HTTP responses and the event consumer picks its retry policy from
the error kind.
"""

from typing import TYPE_CHECKING, Any, Generic, NoReturn, TypeVar

from attrs import frozen
from beartype import beartype

T = TypeVar("T")
E = TypeVar("E")


@frozen
class Ok(Generic[T]):
    """Successful outcome."""

    value: T

    @beartype
    def is_ok(self) -> bool:
        return True

    @beartype
    def is_err(self) -> bool:
        return False

    @property
    def ok_value(self) -> T:
        return self.value

    @property
    def err_value(self) -> None:
        return None

    def unwrap(self) -> T:
        return self.value

    def unwrap_err(self) -> NoReturn:
        raise ValueError(f"Expected an error, got Ok({self.value!r})")


@frozen
class Err(Generic[E]):
    """Failed outcome carrying the error value."""

    error: E

    @beartype
    def is_ok(self) -> bool:
        return False

    @beartype
    def is_err(self) -> bool:
        return True

    @property
    def ok_value(self) -> None:
        return None

    @property
    def err_value(self) -> E:
        return self.error

    def unwrap(self) -> NoReturn:
        raise ValueError(f"Expected a value, got Err({self.error!r})")

    def unwrap_err(self) -> E:
        return self.error


if TYPE_CHECKING:
    Result = Ok[T] | Err[E]
else:

    class Result(Generic[T, E]):
        """Subscriptable alias so ``Result[T, E]`` works at runtime."""

        def __class_getitem__(cls, params: Any) -> Any:
            return Ok[Any] | Err[Any]
