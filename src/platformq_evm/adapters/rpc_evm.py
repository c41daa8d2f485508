"""
EVM backend built on eth-abi and eth-account, talking to the node through
the JSON-RPC engine.
"""

import logging
from typing import Optional, Dict, Any, List, Tuple, Union
from decimal import Decimal

import httpx
from eth_abi import decode as abi_decode, encode as abi_encode
from eth_abi.exceptions import DecodingError, EncodingError as AbiEncodingError
from eth_utils import (
    decode_hex, encode_hex, function_signature_to_4byte_selector,
    is_checksum_address, to_checksum_address
)

from ..types import (
    ConfigurationError, EncodingError, ErrorKind, EvmError, EvmInput, EvmType,
    ProtocolError, Result, RevertError, TransactionResult, TransactionStatus
)
from ..models import EvmTransactionOptions
from ..rpc import EthereumRPC, RPCOptions
from ..utils import (
    abi_to_signature, checksum_abi_values, input_types, map_abi_addresses,
    normalize_outputs, output_types, to_wei_decimal
)
from .base import BaseEvm

logger = logging.getLogger(__name__)

REVERT_ERROR_CODE = 3


def _require_checksum(value: Any) -> Any:
    if not isinstance(value, str) or not is_checksum_address(value):
        raise EncodingError(f"Address must be checksummed: {value!r}")
    return value


class RpcContract:
    """Contract codec over eth-abi: address, ABI and selector table"""

    def __init__(self, address: Optional[str], abi: List[Dict[str, Any]]):
        self.address = address
        self.abi = abi
        self._by_selector: Dict[str, Dict[str, Any]] = {}
        for item in abi:
            if item.get("type", "function") == "function" and item.get("name"):
                selector = encode_hex(function_signature_to_4byte_selector(abi_to_signature(item)))
                self._by_selector[selector] = item

    def encode(self, fn_abi: Dict[str, Any], params: Tuple[Any, ...]) -> str:
        types = input_types(fn_abi)
        for abi_type, value in zip(types, params):
            map_abi_addresses(abi_type, value, _require_checksum)
        selector = function_signature_to_4byte_selector(abi_to_signature(fn_abi))
        return encode_hex(selector + abi_encode(types, list(params)))

    def decode_input(self, selector: str, tx_input: str) -> Tuple[Dict[str, Any], Tuple[Any, ...]]:
        fn_abi = self._by_selector.get(selector)
        if fn_abi is None:
            raise EncodingError(f"No function with selector {selector} in ABI")
        types = input_types(fn_abi)
        values = abi_decode(types, decode_hex(tx_input)[4:])
        return fn_abi, checksum_abi_values(types, values)

    def decode_output(self, fn_abi: Dict[str, Any], data: str) -> Any:
        types = output_types(fn_abi)
        raw = decode_hex(data)
        if types and not raw:
            raise EncodingError(f"Empty output from {fn_abi['name']}; is the contract deployed?")
        return normalize_outputs(checksum_abi_values(types, abi_decode(types, raw)))


class RpcEvm(BaseEvm):
    """EVM client speaking JSON-RPC directly through the RPC engine"""

    evm_type = EvmType.RPC

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
        super().__init__(provider_url, contract_address, abi, private_key,
                         rpc_options, rpc_token, http_client, poll_interval, rpc_timeout)
        self._rpc: Optional[EthereumRPC] = None
        self._contract: Optional[RpcContract] = None

        if self._engine is not None:
            self._rpc = EthereumRPC(self._engine, self._rpc_options)
            if self._abi:
                self._contract = RpcContract(self._contract_address, self._abi)
            logger.info(f"Initialized JSON-RPC client for {provider_url}")

    def get_contract(self) -> Optional[RpcContract]:
        return self._contract

    def get_rpc_provider(self) -> Optional[EthereumRPC]:
        return self._rpc

    def _require_provider(self) -> None:
        if self._rpc is None:
            raise ConfigurationError("RPC client is not initialized: no provider configured")

    def _codec_contract(self) -> RpcContract:
        self._require_provider()
        if self._contract is None:
            raise ConfigurationError("No contract ABI configured")
        return self._contract

    @staticmethod
    def _unwrap(result: Result[Any]) -> Any:
        """Payload of an RPC result, with node reverts raised as RevertError"""
        if result.ok:
            return result.data
        error = result.error
        if error.code == REVERT_ERROR_CODE or "revert" in error.message.lower():
            raise RevertError(error.message, code=error.code, data=error.data)
        raise error.to_exception()

    async def _call(self, input: EvmInput, fn_abi: Dict[str, Any],
                    options: Optional[EvmTransactionOptions]) -> Any:
        tx = {"to": self._contract_address, "data": self._contract.encode(fn_abi, input.params)}
        if options is not None and options.from_address:
            tx["from"] = options.from_address
        data = self._unwrap(await self._rpc.call(tx, "latest"))
        return self._contract.decode_output(fn_abi, data)

    async def _build_transaction(self, input: EvmInput, fn_abi: Dict[str, Any],
                                 options: EvmTransactionOptions, sender: Optional[str]) -> Dict[str, Any]:
        tx: Dict[str, Any] = {
            "to": self._contract_address,
            "data": self._contract.encode(fn_abi, input.params),
            "value": options.value or 0,
        }
        if options.chain_id is not None:
            tx["chainId"] = options.chain_id
        else:
            tx["chainId"] = int(self._unwrap(await self._rpc.chain_id()), 16)

        if options.nonce is not None:
            tx["nonce"] = options.nonce
        else:
            tx["nonce"] = int(self._unwrap(await self._rpc.get_transaction_count(sender, "pending")), 16)

        if options.gas_amount is not None:
            tx["gas"] = options.gas_amount
        else:
            estimate = {"from": sender, "to": tx["to"], "data": tx["data"], "value": hex(tx["value"])}
            tx["gas"] = int(self._unwrap(await self._rpc.estimate_gas(estimate)), 16)

        if options.max_fee_per_gas is not None:
            tx["maxFeePerGas"] = options.max_fee_per_gas
            tx["maxPriorityFeePerGas"] = options.max_priority_fee_per_gas
        elif options.gas_price is not None:
            tx["gasPrice"] = options.gas_price
        else:
            tx["gasPrice"] = int(self._unwrap(await self._rpc.gas_price()), 16)

        if options.type is not None:
            tx["type"] = options.type
        tx["from"] = sender
        return tx

    async def _send_unlocked(self, input: EvmInput, fn_abi: Dict[str, Any],
                             options: EvmTransactionOptions) -> str:
        tx = {
            key: hex(value) if isinstance(value, int) else value
            for key, value in options.to_tx_params().items()
        }
        tx["to"] = self._contract_address
        tx["data"] = self._contract.encode(fn_abi, input.params)
        return self._unwrap(await self._rpc.send_transaction(tx)).lower()

    async def _broadcast(self, raw_transaction: str) -> str:
        return self._unwrap(await self._rpc.send_raw_transaction(raw_transaction)).lower()

    async def _get_receipt(self, tx_hash: str) -> Optional[TransactionResult]:
        receipt = self._unwrap(await self._rpc.get_transaction_receipt(tx_hash))
        if receipt is None:
            return None
        gas_price = receipt.get("effectiveGasPrice")
        return TransactionResult(
            transaction_hash=receipt["transactionHash"].lower(),
            status=TransactionStatus.CONFIRMED if int(receipt["status"], 16) == 1 else TransactionStatus.REVERTED,
            block_number=int(receipt["blockNumber"], 16),
            block_hash=receipt["blockHash"].lower(),
            gas_used=int(receipt["gasUsed"], 16),
            effective_gas_price=int(gas_price, 16) if gas_price else None,
            from_address=to_checksum_address(receipt["from"]) if receipt.get("from") else None,
            to_address=to_checksum_address(receipt["to"]) if receipt.get("to") else None,
            logs=list(receipt.get("logs") or []),
        )

    async def _get_block_number(self) -> int:
        return int(self._unwrap(await self._rpc.block_number()), 16)

    async def _replay(self, tx_hash: str, block_number: int) -> None:
        tx = self._unwrap(await self._rpc.get_transaction_by_hash(tx_hash))
        if tx is None:
            return
        call = {key: tx[field] for key, field in
                (("from", "from"), ("to", "to"), ("data", "input"), ("value", "value"), ("gas", "gas"))
                if tx.get(field) is not None}
        self._unwrap(await self._rpc.call(call, hex(block_number)))

    def _encode(self, input: EvmInput, fn_abi: Dict[str, Any]) -> str:
        return self._codec_contract().encode(fn_abi, input.params)

    def _decode(self, selector: str, tx_input: str) -> EvmInput:
        fn_abi, values = self._codec_contract().decode_input(selector, tx_input)
        return EvmInput(fn_abi["name"], values)

    def _selector(self, signature: str) -> str:
        return encode_hex(function_signature_to_4byte_selector(signature))

    def _to_wei(self, number: Union[int, float, str, Decimal], unit: str) -> int:
        return int(to_wei_decimal(number, unit))

    def _classify_exception(self, error: Exception, default_kind: Optional[ErrorKind]) -> EvmError:
        if isinstance(error, (DecodingError, AbiEncodingError, TypeError)):
            return EncodingError(f"{type(error).__name__}: {error}")
        return super()._classify_exception(error, default_kind)
