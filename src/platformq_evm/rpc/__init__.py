"""
JSON-RPC engine: retry policy, result rules and typed method clients.
"""

from .types import (
    BROADCAST_METHODS,
    DEFAULT_OPTIONS,
    RPCEngineConfig,
    RPCOptions,
    RPCRequest,
    RPCResponse,
    RPCResultRulesOptions,
    RPCRetryOptions,
    is_retryable_error,
    is_rpc_options,
)
from .engine import RPCEngine
from .methods import EthereumRPC, FilecoinRPC, RPCClient, with_request_method

__all__ = [
    "BROADCAST_METHODS",
    "DEFAULT_OPTIONS",
    "RPCEngineConfig",
    "RPCOptions",
    "RPCRequest",
    "RPCResponse",
    "RPCResultRulesOptions",
    "RPCRetryOptions",
    "is_retryable_error",
    "is_rpc_options",
    "RPCEngine",
    "RPCClient",
    "EthereumRPC",
    "FilecoinRPC",
    "with_request_method",
]
