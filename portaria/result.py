"""Tagged results for reads whose outcome the caller must branch on."""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from portaria.errors import RegistrationError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    error: RegistrationError

    @property
    def is_ok(self) -> bool:
        return False

    def unwrap(self):
        raise self.error


Result = Union[Ok[T], Err]
