"""
Explicit success/failure values for seat and booking operations.

    result = await manager.acquire(...)
    if isinstance(result, Err):
        ...
    hold = result.value
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from seat_engine.core.errors import SeatEngineError

T = TypeVar("T")
E = TypeVar("E", bound=SeatEngineError)


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err(Generic[E]):
    error: E

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self):
        raise self.error


Result = Union[Ok[T], Err[E]]
