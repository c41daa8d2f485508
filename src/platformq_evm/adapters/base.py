"""
Base EVM client with the backend-independent half of every operation.
"""

import asyncio
import logging
from typing import Optional, Dict, Any, List, Union
from abc import ABC, abstractmethod
from decimal import Decimal

import httpx
from eth_account import Account
from eth_utils import encode_hex, is_hex
from pydantic import SecretStr

from ..types import (
    ConfigurationError, ErrorInfo, ErrorKind, EvmError, EvmInput, EvmType,
    RevertError, SignedTransaction, TransactionResult, TransactionStatus
)
from ..interfaces import IEvm
from ..models import EvmTransactionOptions
from ..decorators import evm_operation
from ..rpc import DEFAULT_OPTIONS, RPCEngine, RPCEngineConfig, RPCOptions, RPCRequest
from ..utils import (
    abi_to_signature, find_function_abi, get_function_signature_from_txinput,
    normalize_address, to_wei_decimal
)

logger = logging.getLogger(__name__)


class BaseEvm(IEvm, ABC):
    """
    Base client with common functionality.

    Subclasses bind one chain-client library and implement the underscore
    hooks; validation, signing, confirmation tracking and Result handling
    live here so both backends behave the same way.
    """

    evm_type: EvmType

    def __init__(self,
                 provider_url: Optional[str] = None,
                 contract_address: Optional[str] = None,
                 abi: Optional[List[Dict[str, Any]]] = None,
                 private_key: Optional[str] = None,
                 rpc_options: Optional[RPCOptions] = None,
                 rpc_token: Optional[str] = None,
                 http_client: Optional[httpx.AsyncClient] = None,
                 poll_interval: float = 2.0,
                 rpc_timeout: float = 30.0):
        if provider_url is not None and not provider_url.startswith(("http://", "https://")):
            raise ConfigurationError(f"Provider URL must be http(s): {provider_url}")
        if poll_interval <= 0:
            raise ConfigurationError("poll_interval must be positive")

        self._provider_url = provider_url
        self._contract_address = normalize_address(contract_address) if contract_address else None
        self._abi: List[Dict[str, Any]] = list(abi) if abi else []
        self._private_key: Optional[SecretStr] = None
        self._rpc_options = rpc_options or DEFAULT_OPTIONS
        self._rpc_token = rpc_token
        self._poll_interval = poll_interval
        self._engine: Optional[RPCEngine] = None

        if private_key:
            try:
                Account.from_key(private_key)
            except (ValueError, TypeError):
                raise ConfigurationError("Invalid private key")
            self._private_key = SecretStr(private_key)

        if provider_url:
            config = RPCEngineConfig(provider_url, token=rpc_token, timeout=rpc_timeout)
            self._engine = RPCEngine(config, client=http_client)

    # Accessors

    def get_contract_address(self) -> Optional[str]:
        return self._contract_address

    def get_contract_abi(self) -> List[Dict[str, Any]]:
        return self._abi

    def get_evm_type(self) -> EvmType:
        return self.evm_type

    def get_provider_url(self) -> Optional[str]:
        return self._provider_url

    def get_web3(self) -> Any:
        return None

    def get_rpc_provider(self) -> Any:
        return None

    # Operations

    @evm_operation()
    async def call(self, input: EvmInput, options: Optional[EvmTransactionOptions] = None) -> Any:
        self._require_contract()
        fn_abi = self._function_abi(input)
        return await self._call(input, fn_abi, options)

    @evm_operation()
    async def send(self, input: EvmInput, options: EvmTransactionOptions) -> TransactionResult:
        self._require_contract()
        fn_abi = self._function_abi(input)
        key = self._signing_key(options)
        if key is None:
            if not options.from_address:
                raise ConfigurationError("Sending without a private key requires a from address")
            tx_hash = await self._send_unlocked(input, fn_abi, options)
        else:
            signed = await self._sign(input, fn_abi, options, key)
            tx_hash = await self._broadcast(signed.raw_transaction)
        logger.info(f"Submitted {input.method} transaction {tx_hash}")
        return await self._track(tx_hash, options.confirmations)

    @evm_operation()
    async def sign(self, input: EvmInput, options: EvmTransactionOptions) -> SignedTransaction:
        self._require_contract()
        fn_abi = self._function_abi(input)
        key = self._signing_key(options)
        if key is None:
            raise ConfigurationError("No private key available for signing")
        return await self._sign(input, fn_abi, options, key)

    @evm_operation()
    async def send_signed(self, signed: Union[SignedTransaction, str],
                          options: Optional[EvmTransactionOptions] = None) -> TransactionResult:
        raw = signed.raw_transaction if isinstance(signed, SignedTransaction) else signed
        if not isinstance(raw, str) or not raw.startswith("0x") or not is_hex(raw) or len(raw) <= 2:
            raise ConfigurationError("Signed transaction must be a 0x-prefixed hex string")
        self._require_provider()
        tx_hash = await self._broadcast(raw)
        logger.info(f"Submitted signed transaction {tx_hash}")
        return await self._track(tx_hash, options.confirmations)

    @evm_operation()
    async def request(self, method: str, params: Optional[List[Any]] = None,
                      rpc_options: Optional[RPCOptions] = None) -> Any:
        if self._engine is None:
            raise ConfigurationError("No provider URL configured for raw RPC requests")
        result = await self._engine.request(RPCRequest(method, list(params or [])),
                                            rpc_options or self._rpc_options)
        return result.unwrap().result

    @evm_operation(ErrorKind.ENCODING)
    def encode_evm_input_to_txinput(self, input: EvmInput) -> str:
        fn_abi = self._function_abi(input)
        return self._encode(input, fn_abi)

    @evm_operation(ErrorKind.ENCODING)
    def decode_txinput_to_evm_input(self, tx_input: str) -> EvmInput:
        selector = get_function_signature_from_txinput(tx_input)
        if not self._abi:
            raise ConfigurationError("No contract ABI configured")
        return self._decode(selector, tx_input)

    @evm_operation(ErrorKind.ENCODING)
    def encode_function_signature_by_abi(self, abi: Union[str, Dict[str, Any]]) -> str:
        return self._selector(abi_to_signature(abi))

    @evm_operation(ErrorKind.ENCODING)
    def encode_function_signature_by_function_name(self, name: str) -> str:
        return self._selector(abi_to_signature(find_function_abi(self._abi, name)))

    def generate_wei(self, number: Union[int, float, str, Decimal], unit: str) -> int:
        """
        Convert ``number`` of ``unit`` into wei.

        Raises:
            EncodingError: unknown unit, or the amount is not a whole number of wei
        """
        to_wei_decimal(number, unit)
        return self._to_wei(number, unit)

    async def disconnect(self) -> None:
        """Release provider resources"""

    # Shared helpers

    def _function_abi(self, input: EvmInput) -> Dict[str, Any]:
        if not self._abi:
            raise ConfigurationError("No contract ABI configured")
        return find_function_abi(self._abi, input.method, len(input.params))

    def _require_contract(self) -> None:
        self._require_provider()
        if self._contract_address is None:
            raise ConfigurationError("No contract address configured")
        if not self._abi:
            raise ConfigurationError("No contract ABI configured")

    def _signing_key(self, options: EvmTransactionOptions) -> Optional[str]:
        key = options.secret_key or (self._private_key.get_secret_value() if self._private_key else None)
        if key is None:
            return None
        if options.from_address:
            try:
                address = Account.from_key(key).address
            except (ValueError, TypeError):
                raise ConfigurationError("Invalid private key")
            if address != options.from_address:
                raise ConfigurationError(f"Private key does not belong to {options.from_address}")
        return key

    def _sender(self, options: EvmTransactionOptions, key: Optional[str]) -> Optional[str]:
        if options.from_address:
            return options.from_address
        if key:
            return Account.from_key(key).address
        return None

    async def _sign(self, input: EvmInput, fn_abi: Dict[str, Any],
                    options: EvmTransactionOptions, key: str) -> SignedTransaction:
        tx = await self._build_transaction(input, fn_abi, options, self._sender(options, key))
        tx.pop("from", None)
        try:
            signed = Account.sign_transaction(tx, key)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Cannot sign transaction: {e}")
        return SignedTransaction(
            raw_transaction=encode_hex(signed.raw_transaction),
            transaction_hash=encode_hex(signed.hash),
            r=hex(signed.r),
            s=hex(signed.s),
            v=signed.v,
        )

    async def _track(self, tx_hash: str, confirmations: int) -> TransactionResult:
        """Poll until the transaction is ``confirmations`` blocks deep.

        No upper bound; wrap in ``asyncio.wait_for`` or cancel the task to stop.
        The transaction is already broadcast here, so every failure carries
        ``tx_hash`` as its data.
        """
        if confirmations == 0:
            return TransactionResult(transaction_hash=tx_hash, status=TransactionStatus.SUBMITTED)

        try:
            while True:
                receipt = await self._get_receipt(tx_hash)
                if receipt is not None:
                    if receipt.status == TransactionStatus.REVERTED:
                        raise await self._reverted(tx_hash, receipt.block_number)
                    depth = await self._get_block_number() - receipt.block_number + 1
                    if depth >= confirmations:
                        receipt.confirmations = depth
                        logger.info(f"Transaction {tx_hash} confirmed with {depth} confirmations")
                        return receipt
                await asyncio.sleep(self._poll_interval)
        except RevertError:
            raise
        except Exception as e:
            error = e if isinstance(e, EvmError) else self._classify_exception(e, None)
            logger.warning(f"Lost track of submitted transaction {tx_hash}: {error.message}")
            raise ErrorInfo(
                kind=error.kind,
                message=f"Transaction {tx_hash} was submitted but its confirmation is unknown: {error.message}",
                code=error.code,
                data=tx_hash,
            ).to_exception() from e

    async def _reverted(self, tx_hash: str, block_number: int) -> RevertError:
        """Error for a mined transaction that failed, with the reason a replay recovers"""
        try:
            await self._replay(tx_hash, block_number)
        except RevertError as e:
            return RevertError(f"Transaction {tx_hash} reverted: {e.message}", code=e.code, data=tx_hash)
        except Exception as e:
            # Reason stays unknown; the revert itself is certain
            logger.debug(f"Could not replay {tx_hash}: {type(e).__name__}: {e}")
        return RevertError(f"Transaction {tx_hash} reverted", data=tx_hash)

    def _secrets(self, options: Optional[EvmTransactionOptions]) -> List[str]:
        secrets = [self._private_key.get_secret_value() if self._private_key else None, self._rpc_token]
        if isinstance(options, EvmTransactionOptions):
            secrets.append(options.secret_key)
        return [secret for secret in secrets if secret]

    def _classify_exception(self, error: Exception, default_kind: Optional[ErrorKind]) -> EvmError:
        """Map a library exception to the EvmError taxonomy"""
        if default_kind is not None:
            return ErrorInfo(kind=default_kind, message=f"{type(error).__name__}: {error}").to_exception()
        logger.exception(f"Unclassified {self.evm_type.value} backend error")
        return EvmError(f"{type(error).__name__}: {error}")

    # Backend hooks

    @abstractmethod
    def get_contract(self) -> Any:
        ...

    @abstractmethod
    def _require_provider(self) -> None:
        ...

    @abstractmethod
    async def _call(self, input: EvmInput, fn_abi: Dict[str, Any],
                    options: Optional[EvmTransactionOptions]) -> Any:
        ...

    @abstractmethod
    async def _build_transaction(self, input: EvmInput, fn_abi: Dict[str, Any],
                                 options: EvmTransactionOptions, sender: Optional[str]) -> Dict[str, Any]:
        """Complete, signable transaction dict for a contract call"""
        ...

    @abstractmethod
    async def _send_unlocked(self, input: EvmInput, fn_abi: Dict[str, Any],
                             options: EvmTransactionOptions) -> str:
        """Send through a node-managed account, returning the transaction hash"""
        ...

    @abstractmethod
    async def _broadcast(self, raw_transaction: str) -> str:
        ...

    @abstractmethod
    async def _get_receipt(self, tx_hash: str) -> Optional[TransactionResult]:
        ...

    @abstractmethod
    async def _get_block_number(self) -> int:
        ...

    @abstractmethod
    async def _replay(self, tx_hash: str, block_number: int) -> None:
        """Re-run a mined transaction as a call at ``block_number``; raises RevertError if it reverts"""
        ...

    @abstractmethod
    def _encode(self, input: EvmInput, fn_abi: Dict[str, Any]) -> str:
        ...

    @abstractmethod
    def _decode(self, selector: str, tx_input: str) -> EvmInput:
        ...

    @abstractmethod
    def _selector(self, signature: str) -> str:
        ...

    @abstractmethod
    def _to_wei(self, number: Union[int, float, str, Decimal], unit: str) -> int:
        ...
