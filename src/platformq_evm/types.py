"""
Core types, result container and error hierarchy for EVM operations.
"""

from enum import Enum
from typing import Any, Generic, List, Optional, Tuple, TypeVar, Union, Dict
from dataclasses import dataclass, field

T = TypeVar("T")


class EvmType(Enum):
    """Backend that produced a client instance"""
    WEB3 = "web3"
    RPC = "rpc"


class ErrorKind(Enum):
    """Failure categories carried by a failed Result"""
    TRANSPORT = "transport"  # Network/connection failure
    PROTOCOL = "protocol"  # Well-formed JSON-RPC error or rejected result
    REVERT = "revert"  # Contract execution reverted
    ENCODING = "encoding"  # ABI mismatch or malformed calldata
    CONFIGURATION = "configuration"  # Invalid or contradictory options
    INTERNAL = "internal"  # Unclassified backend failure


class TransactionStatus(Enum):
    """Transaction status states"""
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    REVERTED = "reverted"


class EvmError(Exception):
    """Base exception for EVM and RPC operations"""

    kind = ErrorKind.INTERNAL

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None):
        self.message = message
        self.code = code
        self.data = data
        super().__init__(message)

    def to_info(self) -> "ErrorInfo":
        return ErrorInfo(kind=self.kind, message=self.message, code=self.code, data=self.data)


class TransportError(EvmError):
    """Network level failure (timeout, refused connection, malformed response).

    ``ambiguous`` is set when the request may have reached the node before the
    failure, e.g. a read timeout after the body was written.
    """

    kind = ErrorKind.TRANSPORT

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None,
                 ambiguous: bool = False):
        super().__init__(message, code, data)
        self.ambiguous = ambiguous


class ProtocolError(EvmError):
    """Well-formed JSON-RPC error response or a result rejected by result rules"""

    kind = ErrorKind.PROTOCOL

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None,
                 retryable: bool = False):
        super().__init__(message, code, data)
        self.retryable = retryable


class RevertError(EvmError):
    """Contract execution reverted"""
    kind = ErrorKind.REVERT


class EncodingError(EvmError, ValueError):
    """ABI mismatch or malformed calldata"""
    kind = ErrorKind.ENCODING


class ConfigurationError(EvmError, ValueError):
    """Invalid or contradictory configuration"""
    kind = ErrorKind.CONFIGURATION


_ERRORS_BY_KIND = {
    ErrorKind.TRANSPORT: TransportError,
    ErrorKind.PROTOCOL: ProtocolError,
    ErrorKind.REVERT: RevertError,
    ErrorKind.ENCODING: EncodingError,
    ErrorKind.CONFIGURATION: ConfigurationError,
    ErrorKind.INTERNAL: EvmError,
}


@dataclass(frozen=True)
class ErrorInfo:
    """Structured error payload of a failed Result"""
    kind: ErrorKind
    message: str
    code: Optional[int] = None
    data: Any = None

    def to_exception(self) -> EvmError:
        return _ERRORS_BY_KIND[self.kind](self.message, code=self.code, data=self.data)


@dataclass(frozen=True)
class Result(Generic[T]):
    """Success/failure container returned by every public operation.

    Exactly one arm is populated: ``ok`` with ``data``, or ``not ok`` with ``error``.
    """
    ok: bool
    data: Optional[T] = None
    error: Optional[ErrorInfo] = None

    def __post_init__(self):
        if self.ok and self.error is not None:
            raise ValueError("A successful Result cannot carry an error")
        if not self.ok and (self.error is None or self.data is not None):
            raise ValueError("A failed Result must carry an error and no data")

    @classmethod
    def success(cls, data: Optional[T] = None) -> "Result[T]":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error: Union[EvmError, ErrorInfo]) -> "Result[T]":
        if isinstance(error, EvmError):
            error = error.to_info()
        return cls(ok=False, error=error)

    def unwrap(self) -> T:
        """Return the data or raise the carried error"""
        if not self.ok:
            raise self.error.to_exception()
        return self.data


def _freeze(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    return value


@dataclass(frozen=True)
class EvmInput:
    """Contract function name and its positional arguments"""
    method: str
    params: Tuple[Any, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "params", _freeze(self.params))


@dataclass(frozen=True)
class SignedTransaction:
    """Signed transaction payload, all fields as 0x-prefixed hex"""
    raw_transaction: str
    transaction_hash: str
    r: str
    s: str
    v: int


@dataclass
class TransactionResult:
    """Result of a submitted transaction"""
    transaction_hash: str
    status: TransactionStatus
    confirmations: int = 0
    block_number: Optional[int] = None
    block_hash: Optional[str] = None
    gas_used: Optional[int] = None
    effective_gas_price: Optional[int] = None
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    logs: List[Dict[str, Any]] = field(default_factory=list)


EvmOutput = Result
