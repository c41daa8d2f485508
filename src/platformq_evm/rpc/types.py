"""
Request, response and option types for the JSON-RPC engine.
"""

import itertools
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, List, Optional

from ..types import ConfigurationError, EvmError, ProtocolError, TransportError

# Methods whose resubmission could broadcast a transaction twice
BROADCAST_METHODS = frozenset({
    "eth_sendRawTransaction",
    "eth_sendTransaction",
    "Filecoin.MpoolPush",
    "Filecoin.MpoolPushMessage",
})

_request_ids = itertools.count(1)


def next_request_id() -> int:
    return next(_request_ids)


@dataclass(frozen=True)
class RPCRequest:
    """JSON-RPC request: method, positional params and correlation id"""
    method: str
    params: List[Any] = field(default_factory=list)
    id: int = field(default_factory=next_request_id)

    def __post_init__(self):
        if not isinstance(self.method, str) or not self.method:
            raise ConfigurationError("RPC method must be a non-empty string")
        if not isinstance(self.params, (list, tuple)):
            raise ConfigurationError("RPC params must be an ordered list")
        object.__setattr__(self, "params", list(self.params))

    @property
    def is_broadcast(self) -> bool:
        return self.method in BROADCAST_METHODS

    def to_payload(self) -> Dict[str, Any]:
        return {"jsonrpc": "2.0", "method": self.method, "params": self.params, "id": self.id}


@dataclass(frozen=True)
class RPCResponse:
    """Successful JSON-RPC response"""
    id: Any
    result: Any = None


def is_retryable_error(error: EvmError, request: RPCRequest) -> bool:
    """Default transport predicate.

    Transport failures are retried, except ambiguous ones on broadcast methods
    where the node may already hold the transaction. Protocol errors are
    retried only when result rules marked them retryable.
    """
    if isinstance(error, TransportError):
        return not (error.ambiguous and request.is_broadcast)
    if isinstance(error, ProtocolError):
        return error.retryable
    return False


@dataclass(frozen=True)
class RPCRetryOptions:
    """Retry ceiling and delay policy. A single attempt unless configured."""
    max_attempts: int = 1
    delay: float = 0.0
    backoff: float = 1.0
    max_delay: float = 30.0
    is_retryable: Callable[[EvmError, RPCRequest], bool] = is_retryable_error

    def __post_init__(self):
        if not isinstance(self.max_attempts, int) or self.max_attempts < 1:
            raise ConfigurationError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.delay < 0 or self.max_delay < 0:
            raise ConfigurationError("Retry delays must be non-negative")
        if self.backoff < 1:
            raise ConfigurationError(f"backoff must be >= 1, got {self.backoff}")


@dataclass(frozen=True)
class RPCResultRulesOptions:
    """Rules deciding whether a well-formed response is semantically acceptable"""
    allow_null: bool = True
    allow_empty: bool = True
    sentinel_codes: FrozenSet[int] = frozenset()
    retry_error_codes: FrozenSet[int] = frozenset()
    retry_on_reject: bool = False
    validator: Optional[Callable[[Any], bool]] = None

    def rejection(self, result: Any) -> Optional[str]:
        """Reason the result is rejected, or None when accepted"""
        if result is None:
            return None if self.allow_null else "null result"
        if not self.allow_empty and result in ([], {}, "", "0x"):
            return "empty result"
        if self.sentinel_codes and isinstance(result, dict):
            code = result.get("code")
            if isinstance(result.get("error"), dict):
                code = result["error"].get("code", code)
            if code in self.sentinel_codes:
                return f"sentinel code {code} in result"
        if self.validator is not None and not self.validator(result):
            return "result failed validation"
        return None


@dataclass(frozen=True)
class RPCOptions:
    """Per-request options: retry policy plus result rules"""
    retry: RPCRetryOptions = field(default_factory=RPCRetryOptions)
    rules: RPCResultRulesOptions = field(default_factory=RPCResultRulesOptions)


DEFAULT_OPTIONS = RPCOptions()


def is_rpc_options(obj: Any) -> bool:
    return isinstance(obj, RPCOptions)


@dataclass(frozen=True)
class RPCEngineConfig:
    """Endpoint configuration. The token is sent as a bearer credential."""
    base_url: str
    token: Optional[str] = field(default=None, repr=False)
    timeout: float = 30.0
    headers: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.base_url, str) or not self.base_url.startswith(("http://", "https://")):
            raise ConfigurationError(f"RPC base_url must be an http(s) URL: {self.base_url!r}")
        if self.timeout <= 0:
            raise ConfigurationError("RPC timeout must be positive")

    def request_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", **self.headers}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers
