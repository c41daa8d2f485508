"""
PlatformQ EVM Library

Backend-agnostic EVM client with interchangeable web3.py and JSON-RPC
backends, and a retrying JSON-RPC request engine.
"""

from .types import (
    EvmType,
    ErrorKind,
    ErrorInfo,
    Result,
    EvmOutput,
    EvmInput,
    TransactionStatus,
    TransactionResult,
    SignedTransaction,
    EvmError,
    TransportError,
    ProtocolError,
    RevertError,
    EncodingError,
    ConfigurationError
)

from .models import (
    EvmTransactionOptions,
    DEFAULT_TRANSACTION_OPTIONS,
    is_evm_transaction_options
)

from .interfaces import (
    IEvm,
    IRPC
)

from .utils import (
    validate_address,
    normalize_address,
    abi_to_signature,
    get_function_signature_from_txinput,
    get_encoded_params_from_txinput
)

from .decorators import (
    evm_operation,
    with_call_method,
    with_send_method,
    with_methods
)

from .rpc import (
    RPCEngine,
    RPCEngineConfig,
    RPCRequest,
    RPCResponse,
    RPCOptions,
    RPCRetryOptions,
    RPCResultRulesOptions,
    DEFAULT_OPTIONS,
    is_rpc_options,
    is_retryable_error,
    RPCClient,
    EthereumRPC,
    FilecoinRPC,
    with_request_method
)

from .config import EvmSettings
from .factory import EvmFactory
from .adapters import (
    BaseEvm,
    Web3Evm,
    RpcEvm,
    RpcContract
)

__all__ = [
    # Types
    "EvmType",
    "ErrorKind",
    "ErrorInfo",
    "Result",
    "EvmOutput",
    "EvmInput",
    "TransactionStatus",
    "TransactionResult",
    "SignedTransaction",
    "EvmError",
    "TransportError",
    "ProtocolError",
    "RevertError",
    "EncodingError",
    "ConfigurationError",

    # Models
    "EvmTransactionOptions",
    "DEFAULT_TRANSACTION_OPTIONS",
    "is_evm_transaction_options",

    # Interfaces
    "IEvm",
    "IRPC",

    # Utils
    "validate_address",
    "normalize_address",
    "abi_to_signature",
    "get_function_signature_from_txinput",
    "get_encoded_params_from_txinput",

    # Decorators
    "evm_operation",
    "with_call_method",
    "with_send_method",
    "with_methods",

    # RPC
    "RPCEngine",
    "RPCEngineConfig",
    "RPCRequest",
    "RPCResponse",
    "RPCOptions",
    "RPCRetryOptions",
    "RPCResultRulesOptions",
    "DEFAULT_OPTIONS",
    "is_rpc_options",
    "is_retryable_error",
    "RPCClient",
    "EthereumRPC",
    "FilecoinRPC",
    "with_request_method",

    # Config & Factory
    "EvmSettings",
    "EvmFactory",

    # Backends
    "BaseEvm",
    "Web3Evm",
    "RpcEvm",
    "RpcContract"
]

__version__ = "1.0.0"
