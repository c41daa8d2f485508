"""
Typed JSON-RPC clients built from method names.
"""

import logging
from typing import Any, Callable, Coroutine, Optional

from ..types import Result
from .engine import RPCEngine
from .types import DEFAULT_OPTIONS, RPCOptions, RPCRequest, RPCResultRulesOptions

logger = logging.getLogger(__name__)


def with_request_method(method: str, rules: Optional[RPCResultRulesOptions] = None
                        ) -> Callable[..., Coroutine[Any, Any, Result[Any]]]:
    """
    Build an async client method issuing ``method`` with positional params.

    The generated method returns a Result holding the response payload.
    ``rules`` replace the client's default result rules for this method;
    options passed explicitly by the caller are used as given.

    Usage:
        class MyRPC(RPCClient):
            chain_head = with_request_method("Filecoin.ChainHead")
    """
    async def request_method(self: "RPCClient", *params: Any,
                             options: Optional[RPCOptions] = None) -> Result[Any]:
        if options is None:
            options = self.options
            if rules is not None:
                options = RPCOptions(retry=options.retry, rules=rules)
        result = await self.engine.request(RPCRequest(method, list(params)), options)
        if not result.ok:
            return result
        return Result.success(result.data.result)

    request_method.__name__ = method.split(".")[-1]
    request_method.__doc__ = f"JSON-RPC {method}"
    request_method.rpc_method = method
    return request_method


class RPCClient:
    """Base for method-table clients bound to one engine"""

    def __init__(self, engine: RPCEngine, options: RPCOptions = DEFAULT_OPTIONS):
        self.engine = engine
        self.options = options

    async def request(self, method: str, *params: Any,
                      options: Optional[RPCOptions] = None) -> Result[Any]:
        """Issue an arbitrary method through the engine"""
        result = await self.engine.request(RPCRequest(method, list(params)), options or self.options)
        if not result.ok:
            return result
        return Result.success(result.data.result)


_NOT_NULL = RPCResultRulesOptions(allow_null=False)


class EthereumRPC(RPCClient):
    """Ethereum execution API methods"""

    chain_id = with_request_method("eth_chainId", _NOT_NULL)
    block_number = with_request_method("eth_blockNumber", _NOT_NULL)
    gas_price = with_request_method("eth_gasPrice", _NOT_NULL)
    max_priority_fee_per_gas = with_request_method("eth_maxPriorityFeePerGas", _NOT_NULL)
    get_balance = with_request_method("eth_getBalance", _NOT_NULL)
    get_code = with_request_method("eth_getCode")
    get_transaction_count = with_request_method("eth_getTransactionCount", _NOT_NULL)
    get_block_by_number = with_request_method("eth_getBlockByNumber")
    get_transaction_by_hash = with_request_method("eth_getTransactionByHash")
    get_transaction_receipt = with_request_method("eth_getTransactionReceipt")
    call = with_request_method("eth_call", _NOT_NULL)
    estimate_gas = with_request_method("eth_estimateGas", _NOT_NULL)
    send_transaction = with_request_method("eth_sendTransaction", _NOT_NULL)
    send_raw_transaction = with_request_method("eth_sendRawTransaction", _NOT_NULL)


class FilecoinRPC(RPCClient):
    """Lotus full node API methods (``Filecoin.*`` namespace)"""

    chain_head = with_request_method("Filecoin.ChainHead", _NOT_NULL)
    chain_get_tipset_by_height = with_request_method("Filecoin.ChainGetTipSetByHeight", _NOT_NULL)
    chain_get_message = with_request_method("Filecoin.ChainGetMessage")
    state_lookup_id = with_request_method("Filecoin.StateLookupID")
    state_account_key = with_request_method("Filecoin.StateAccountKey")
    state_get_actor = with_request_method("Filecoin.StateGetActor")
    state_search_msg = with_request_method("Filecoin.StateSearchMsg")
    state_network_version = with_request_method("Filecoin.StateNetworkVersion", _NOT_NULL)
    wallet_balance = with_request_method("Filecoin.WalletBalance", _NOT_NULL)
    mpool_get_nonce = with_request_method("Filecoin.MpoolGetNonce", _NOT_NULL)
    mpool_push = with_request_method("Filecoin.MpoolPush", _NOT_NULL)
    eth_address_to_filecoin_address = with_request_method("Filecoin.EthAddressToFilecoinAddress")
    filecoin_address_to_eth_address = with_request_method("Filecoin.FilecoinAddressToEthAddress")
