"""
EVM backend built on web3.py (AsyncWeb3).
"""

import asyncio
import logging
from typing import Optional, Dict, Any, List, Union
from decimal import Decimal

import aiohttp
import httpx
from eth_abi.exceptions import DecodingError, EncodingError as AbiEncodingError
from eth_utils import decode_hex
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import (
    BadFunctionCallOutput,
    ContractLogicError,
    InvalidAddress,
    MismatchedABI,
    ProviderConnectionError,
    TimeExhausted,
    TransactionNotFound,
    Web3Exception,
    Web3RPCError,
    Web3ValidationError,
)
from web3.providers.async_base import AsyncBaseProvider

from ..types import (
    ConfigurationError, EncodingError, ErrorKind, EvmError, EvmInput, EvmType, ProtocolError,
    RevertError, TransactionResult, TransactionStatus, TransportError
)
from ..models import EvmTransactionOptions
from ..rpc import RPCOptions
from ..utils import (
    checksum_abi_values, get_encoded_params_from_txinput, input_types,
    normalize_outputs, normalize_value
)
from .base import BaseEvm

logger = logging.getLogger(__name__)

REVERT_ERROR_CODE = 3

_ENCODING_ERRORS = (
    Web3ValidationError,
    MismatchedABI,
    BadFunctionCallOutput,
    InvalidAddress,
    DecodingError,
    AbiEncodingError,
)


class Web3Evm(BaseEvm):
    """EVM client backed by web3.py"""

    evm_type = EvmType.WEB3

    def __init__(self,
                 provider_url: Optional[str] = None,
                 contract_address: Optional[str] = None,
                 abi: Optional[List[Dict[str, Any]]] = None,
                 private_key: Optional[str] = None,
                 rpc_options: Optional[RPCOptions] = None,
                 rpc_token: Optional[str] = None,
                 http_client: Optional[httpx.AsyncClient] = None,
                 poll_interval: float = 2.0,
                 rpc_timeout: float = 30.0,
                 provider: Optional[AsyncBaseProvider] = None):
        super().__init__(provider_url, contract_address, abi, private_key,
                         rpc_options, rpc_token, http_client, poll_interval, rpc_timeout)
        self._web3: Optional[AsyncWeb3] = None
        self._contract = None

        if provider is None and provider_url:
            headers = {"Authorization": f"Bearer {rpc_token}"} if rpc_token else {}
            # Retries are decided by the caller, not by the provider
            provider = AsyncHTTPProvider(provider_url, request_kwargs={
                "headers": headers, "timeout": aiohttp.ClientTimeout(total=rpc_timeout)
            }, exception_retry_configuration=None)

        if provider is not None:
            self._web3 = AsyncWeb3(provider)
            if self._abi:
                self._contract = self._web3.eth.contract(address=self._contract_address, abi=self._abi)
            logger.info(f"Initialized web3 client for {provider_url or type(provider).__name__}")

    def get_contract(self) -> Any:
        return self._contract

    def get_web3(self) -> Optional[AsyncWeb3]:
        return self._web3

    async def disconnect(self) -> None:
        """Close the provider session"""
        provider = self._web3.provider if self._web3 else None
        if isinstance(provider, AsyncHTTPProvider) and hasattr(provider, "disconnect"):
            await provider.disconnect()
        logger.info("Disconnected web3 client")

    def _require_provider(self) -> None:
        if self._web3 is None:
            raise ConfigurationError("Web3 client is not initialized: no provider configured")

    def _contract_function(self, input: EvmInput):
        return getattr(self._contract.functions, input.method)(*input.params)

    async def _call(self, input: EvmInput, fn_abi: Dict[str, Any],
                    options: Optional[EvmTransactionOptions]) -> Any:
        call_tx = {}
        if options is not None and options.from_address:
            call_tx["from"] = options.from_address
        raw = await self._contract_function(input).call(call_tx)
        outputs = fn_abi.get("outputs", [])
        return normalize_outputs([raw] if len(outputs) == 1 else (raw or ()))

    async def _build_transaction(self, input: EvmInput, fn_abi: Dict[str, Any],
                                 options: EvmTransactionOptions, sender: Optional[str]) -> Dict[str, Any]:
        params = options.to_tx_params()
        if sender:
            params["from"] = sender
            if "nonce" not in params:
                params["nonce"] = await self._web3.eth.get_transaction_count(sender, "pending")
        tx = await self._contract_function(input).build_transaction(params)
        return dict(tx)

    async def _send_unlocked(self, input: EvmInput, fn_abi: Dict[str, Any],
                             options: EvmTransactionOptions) -> str:
        tx_hash = await self._contract_function(input).transact(options.to_tx_params())
        return Web3.to_hex(tx_hash)

    async def _broadcast(self, raw_transaction: str) -> str:
        tx_hash = await self._web3.eth.send_raw_transaction(raw_transaction)
        return Web3.to_hex(tx_hash)

    async def _get_receipt(self, tx_hash: str) -> Optional[TransactionResult]:
        try:
            receipt = await self._web3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        return TransactionResult(
            transaction_hash=Web3.to_hex(receipt["transactionHash"]),
            status=TransactionStatus.CONFIRMED if receipt["status"] == 1 else TransactionStatus.REVERTED,
            block_number=receipt["blockNumber"],
            block_hash=Web3.to_hex(receipt["blockHash"]),
            gas_used=receipt["gasUsed"],
            effective_gas_price=receipt.get("effectiveGasPrice"),
            from_address=receipt.get("from"),
            to_address=receipt.get("to"),
            logs=[dict(log) for log in receipt.get("logs", [])],
        )

    async def _get_block_number(self) -> int:
        return await self._web3.eth.block_number

    async def _replay(self, tx_hash: str, block_number: int) -> None:
        tx = await self._web3.eth.get_transaction(tx_hash)
        call = {key: tx[field] for key, field in
                (("from", "from"), ("to", "to"), ("data", "input"), ("value", "value"), ("gas", "gas"))
                if tx.get(field) is not None}
        try:
            await self._web3.eth.call(call, block_identifier=block_number)
        except (ContractLogicError, Web3RPCError) as e:
            raise self._classify_exception(e, None)

    def _codec_contract(self):
        self._require_provider()
        if self._contract is None:
            raise ConfigurationError("No contract ABI configured")
        return self._contract

    def _encode(self, input: EvmInput, fn_abi: Dict[str, Any]) -> str:
        return self._codec_contract().encode_abi(input.method, args=list(input.params))

    def _decode(self, selector: str, tx_input: str) -> EvmInput:
        try:
            func = self._codec_contract().get_function_by_selector(selector)
        except ValueError as e:
            raise EncodingError(f"Cannot decode calldata with selector {selector}: {e}")
        # Positional, so unnamed and duplicate parameter names decode too
        types = input_types(func.abi)
        values = self._web3.codec.decode(types, decode_hex(get_encoded_params_from_txinput(tx_input)))
        return EvmInput(func.abi["name"], normalize_value(checksum_abi_values(types, values)))

    def _selector(self, signature: str) -> str:
        return Web3.to_hex(Web3.keccak(text=signature)[:4])

    def _to_wei(self, number: Union[int, float, str, Decimal], unit: str) -> int:
        if isinstance(number, float):
            number = str(number)
        return Web3.to_wei(number, unit.lower())

    def _classify_exception(self, error: Exception, default_kind: Optional[ErrorKind]) -> EvmError:
        if isinstance(error, ContractLogicError):
            return RevertError(getattr(error, "message", None) or str(error),
                               code=REVERT_ERROR_CODE, data=getattr(error, "data", None))
        if isinstance(error, Web3RPCError):
            rpc_error = (error.rpc_response or {}).get("error") or {}
            message = rpc_error.get("message") or str(error)
            code = rpc_error.get("code")
            if code == REVERT_ERROR_CODE or "revert" in message.lower():
                return RevertError(message, code=code, data=rpc_error.get("data"))
            return ProtocolError(message, code=code, data=rpc_error.get("data"))
        if isinstance(error, _ENCODING_ERRORS):
            return EncodingError(f"{type(error).__name__}: {error}")
        if isinstance(error, (ProviderConnectionError, TimeExhausted, aiohttp.ClientError,
                              asyncio.TimeoutError, OSError)):
            return TransportError(f"{type(error).__name__}: {error}", ambiguous=True)
        if isinstance(error, Web3Exception) and default_kind is None:
            return ProtocolError(f"{type(error).__name__}: {error}")
        return super()._classify_exception(error, default_kind)
