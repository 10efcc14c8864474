"""Success-or-fault values passed between the chat service and its callers."""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from .exceptions import GatewayError

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a value or the GatewayError that prevented producing it."""

    value: Optional[T] = None
    fault: Optional[GatewayError] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, fault: GatewayError) -> "Result[T]":
        return cls(fault=fault)

    @property
    def ok(self) -> bool:
        return self.fault is None

    def unwrap(self) -> T:
        """Return the value, raising the fault if there is one."""
        if self.fault is not None:
            raise self.fault
        return self.value
