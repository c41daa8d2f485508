import httpx
import pytest
from eth_account import Account
from eth_utils import encode_hex, function_signature_to_4byte_selector

from platformq_evm import EthereumRPC, ErrorKind, EvmInput, EvmType, RpcContract, RpcEvm, RPCOptions, RPCRetryOptions

from .conftest import (
    CONTRACT_ADDRESS, DATASET_ABI, PROVIDER_URL, SUBMITTER, SUBMITTER_KEY, TX_HASH,
    JsonRpcNode, abi_result, mock_client
)


class TestRpcEvm:
    """Test the JSON-RPC backend"""

    def test_handles(self, rpc_evm):
        assert rpc_evm.get_evm_type() == EvmType.RPC
        assert isinstance(rpc_evm.get_rpc_provider(), EthereumRPC)
        assert isinstance(rpc_evm.get_contract(), RpcContract)
        assert rpc_evm.get_contract().address == CONTRACT_ADDRESS

    @pytest.mark.asyncio
    async def test_eth_call_payload(self, rpc_evm, node):
        node.results["eth_call"] = abi_result(["uint256"], [9])

        await rpc_evm.call(EvmInput("getDatasetCount"), {"from": SUBMITTER})

        tx, block = node.params("eth_call")[0]
        selector = encode_hex(function_signature_to_4byte_selector("getDatasetCount()"))
        assert tx == {"to": CONTRACT_ADDRESS, "data": selector, "from": SUBMITTER}
        assert block == "latest"

    @pytest.mark.asyncio
    async def test_unchecksummed_address_argument(self, rpc_evm):
        result = await rpc_evm.call(EvmInput("approve", [SUBMITTER.lower()]))

        assert result.error.kind == ErrorKind.ENCODING
        assert "checksum" in result.error.message

    @pytest.mark.asyncio
    async def test_fills_transaction_from_node(self, rpc_evm, node):
        node.results.update({
            "eth_chainId": "0x4cb2f",
            "eth_getTransactionCount": "0x3",
            "eth_estimateGas": "0x186a0",
            "eth_gasPrice": "0x64",
        })

        result = await rpc_evm.sign(EvmInput("submitDataset", [1, "Genome", b"\x00" * 32]),
                                    {"privateKey": SUBMITTER_KEY})

        assert result.ok
        assert Account.recover_transaction(result.data.raw_transaction) == SUBMITTER
        assert node.params("eth_getTransactionCount") == [[SUBMITTER, "pending"]]
        assert node.params("eth_estimateGas")[0][0]["from"] == SUBMITTER
        assert set(node.methods()) == {"eth_chainId", "eth_getTransactionCount", "eth_estimateGas", "eth_gasPrice"}

    @pytest.mark.asyncio
    async def test_eip1559_fees(self, rpc_evm, node):
        options = {"gas": 100000, "nonce": 0, "chainId": 314159, "maxFeePerGas": 200, "maxPriorityFeePerGas": 100,
                   "privateKey": SUBMITTER_KEY}

        result = await rpc_evm.sign(EvmInput("submitDataset", [1, "Genome", b"\x00" * 32]), options)

        assert result.ok
        assert result.data.raw_transaction.startswith("0x02")
        assert node.methods() == []

    @pytest.mark.asyncio
    async def test_estimate_gas_revert(self, rpc_evm, node):
        node.results.update({
            "eth_getTransactionCount": "0x0",
            "eth_estimateGas": {"error": {"code": -32000, "message": "execution reverted: not a submitter"}},
        })

        result = await rpc_evm.sign(EvmInput("submitDataset", [1, "Genome", b"\x00" * 32]),
                                    {"privateKey": SUBMITTER_KEY, "gasPrice": 1})

        assert result.error.kind == ErrorKind.REVERT
        assert result.error.message == "execution reverted: not a submitter"

    @pytest.mark.asyncio
    async def test_broadcast_rejected(self, rpc_evm, node):
        node.results["eth_sendRawTransaction"] = {"error": {"code": -32000, "message": "nonce too low"}}
        options = {"gas": 100000, "gasPrice": 1, "nonce": 0, "chainId": 1, "privateKey": SUBMITTER_KEY}

        result = await rpc_evm.send(EvmInput("submitDataset", [1, "Genome", b"\x00" * 32]), options)

        assert result.error.kind == ErrorKind.PROTOCOL
        assert result.error.message == "nonce too low"
        assert SUBMITTER_KEY[2:] not in str(result.error)

    @pytest.mark.asyncio
    async def test_broadcast_timeout_not_resubmitted(self, node):
        node.results["eth_sendRawTransaction"] = httpx.ReadTimeout("timed out")
        options = RPCOptions(retry=RPCRetryOptions(max_attempts=5))
        evm = RpcEvm(PROVIDER_URL, CONTRACT_ADDRESS, DATASET_ABI, private_key=SUBMITTER_KEY,
                     rpc_options=options, http_client=mock_client(node))

        result = await evm.send(EvmInput("submitDataset", [1, "Genome", b"\x00" * 32]),
                                {"gas": 100000, "gasPrice": 1, "nonce": 0, "chainId": 1})

        assert result.error.kind == ErrorKind.TRANSPORT
        assert len(node.params("eth_sendRawTransaction")) == 1

    @pytest.mark.asyncio
    async def test_receipt_unreachable_after_broadcast(self, rpc_evm, node):
        node.results.update({
            "eth_sendRawTransaction": TX_HASH,
            "eth_getTransactionReceipt": httpx.ConnectError("refused"),
        })
        options = {"gas": 100000, "gasPrice": 1, "nonce": 0, "chainId": 1,
                   "privateKey": SUBMITTER_KEY, "confirmations": 1}

        result = await rpc_evm.send(EvmInput("submitDataset", [1, "Genome", b"\x00" * 32]), options)

        assert result.error.kind == ErrorKind.TRANSPORT
        assert result.error.data == TX_HASH
        assert "submitted" in result.error.message

    @pytest.mark.asyncio
    async def test_reads_retried(self, node):
        replies = iter([httpx.ConnectError("refused"), abi_result(["uint256"], [4])])
        node.results["eth_call"] = lambda params: next(replies)
        evm = RpcEvm(PROVIDER_URL, CONTRACT_ADDRESS, DATASET_ABI,
                     rpc_options=RPCOptions(retry=RPCRetryOptions(max_attempts=2)), http_client=mock_client(node))

        result = await evm.call(EvmInput("getDatasetCount"))

        assert result.data == 4

    @pytest.mark.asyncio
    async def test_token_not_leaked(self):
        node = JsonRpcNode({"eth_call": {"error": {"code": -32000, "message": "bad token lotus-token"}}})
        evm = RpcEvm(PROVIDER_URL, CONTRACT_ADDRESS, DATASET_ABI, rpc_token="lotus-token",
                     http_client=mock_client(node))

        result = await evm.call(EvmInput("getDatasetCount"))

        assert "lotus-token" not in result.error.message
        assert node.headers.get("authorization") == "Bearer lotus-token"

    @pytest.mark.asyncio
    async def test_receipt_parsing(self, rpc_evm, node):
        node.results.update({
            "eth_sendRawTransaction": TX_HASH.upper().replace("0X", "0x"),
            "eth_getTransactionReceipt": {
                "transactionHash": TX_HASH, "blockHash": "0x" + "cd" * 32, "blockNumber": "0x10",
                "from": SUBMITTER.lower(), "to": CONTRACT_ADDRESS, "gasUsed": "0x5208", "status": "0x1",
                "logs": [{"address": CONTRACT_ADDRESS, "topics": [], "data": "0x"}],
            },
            "eth_blockNumber": "0x10",
        })
        options = {"gas": 100000, "gasPrice": 1, "nonce": 0, "chainId": 1, "privateKey": SUBMITTER_KEY,
                   "confirmations": 1}

        result = await rpc_evm.send(EvmInput("submitDataset", [1, "Genome", b"\x00" * 32]), options)

        assert result.data.transaction_hash == TX_HASH
        assert result.data.effective_gas_price is None
        assert result.data.to_address == CONTRACT_ADDRESS
        assert len(result.data.logs) == 1
