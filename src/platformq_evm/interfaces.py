"""
Interfaces (protocols) for EVM clients and JSON-RPC engines.
Using Python's Protocol for structural subtyping.
"""

from typing import Protocol, Dict, Any, Optional, List, Union
from abc import abstractmethod
from decimal import Decimal

from .types import EvmInput, EvmType, Result, SignedTransaction, TransactionResult
from .models import EvmTransactionOptions
from .rpc.types import RPCOptions, RPCRequest, RPCResponse

TransactionOptionsLike = Union[EvmTransactionOptions, Dict[str, Any]]


class IRPC(Protocol):
    """Interface for JSON-RPC engines"""

    @abstractmethod
    async def request(self, request: RPCRequest, options: RPCOptions) -> Result[RPCResponse]:
        """Execute a JSON-RPC request with retry and result rules"""
        ...


class IEvm(Protocol):
    """Interface every EVM backend satisfies"""

    @abstractmethod
    async def call(self, input: EvmInput, options: Optional[TransactionOptionsLike] = None) -> Result[Any]:
        """Read-only contract call, resolves to the decoded return data"""
        ...

    @abstractmethod
    async def send(self, input: EvmInput, options: TransactionOptionsLike) -> Result[TransactionResult]:
        """Submit a state-changing transaction and await ``options.confirmations``"""
        ...

    @abstractmethod
    async def sign(self, input: EvmInput, options: TransactionOptionsLike) -> Result[SignedTransaction]:
        """Sign a contract transaction without broadcasting it"""
        ...

    @abstractmethod
    async def send_signed(self, signed: Union[SignedTransaction, str],
                          options: Optional[TransactionOptionsLike] = None) -> Result[TransactionResult]:
        """Broadcast a pre-signed transaction"""
        ...

    @abstractmethod
    async def request(self, method: str, params: Optional[List[Any]] = None,
                      rpc_options: Optional[RPCOptions] = None) -> Result[Any]:
        """Raw JSON-RPC call against the provider endpoint"""
        ...

    @abstractmethod
    def encode_evm_input_to_txinput(self, input: EvmInput) -> Result[str]:
        """Encode a function call into calldata"""
        ...

    @abstractmethod
    def decode_txinput_to_evm_input(self, tx_input: str) -> Result[EvmInput]:
        """Decode calldata back into a function call"""
        ...

    @abstractmethod
    def encode_function_signature_by_abi(self, abi: Union[str, Dict[str, Any]]) -> Result[str]:
        """4-byte selector of an ABI function fragment"""
        ...

    @abstractmethod
    def encode_function_signature_by_function_name(self, name: str) -> Result[str]:
        """4-byte selector of a function in the client's ABI"""
        ...

    @abstractmethod
    def generate_wei(self, number: Union[int, float, str, Decimal], unit: str) -> int:
        """Convert an amount in ``unit`` to wei exactly"""
        ...

    @abstractmethod
    def get_contract(self) -> Any:
        """Backend contract object, or None if not initialized"""
        ...

    @abstractmethod
    def get_contract_address(self) -> Optional[str]:
        """Checksummed contract address, or None"""
        ...

    @abstractmethod
    def get_contract_abi(self) -> List[Dict[str, Any]]:
        """Contract ABI fragments"""
        ...

    @abstractmethod
    def get_evm_type(self) -> EvmType:
        """Backend of this client"""
        ...

    @abstractmethod
    def get_provider_url(self) -> Optional[str]:
        """Provider URL, or None if not configured"""
        ...

    @abstractmethod
    def get_web3(self) -> Any:
        """AsyncWeb3 handle of the web3 backend, otherwise None"""
        ...

    @abstractmethod
    def get_rpc_provider(self) -> Any:
        """EthereumRPC handle of the rpc backend, otherwise None"""
        ...
