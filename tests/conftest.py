"""
Shared fixtures: contract ABI, test accounts and in-process JSON-RPC nodes
"""

import json

import httpx
import pytest
from eth_abi import encode as abi_encode
from eth_account import Account
from eth_utils import encode_hex
from web3.providers.async_base import AsyncBaseProvider

from platformq_evm import RpcEvm, Web3Evm

PROVIDER_URL = "https://node.test/rpc/v1"
CONTRACT_ADDRESS = "0x1111111111111111111111111111111111111111"
OTHER_ADDRESS = "0x2222222222222222222222222222222222222222"

# Well-known development accounts
SUBMITTER_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
SUBMITTER = Account.from_key(SUBMITTER_KEY).address
PROVER_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
PROVER = Account.from_key(PROVER_KEY).address

TX_HASH = "0x" + "ab" * 32
BLOCK_HASH = "0x" + "cd" * 32

DATASET_ABI = [
    {
        "type": "function",
        "name": "getDatasetCount",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "getDataset",
        "stateMutability": "view",
        "inputs": [{"name": "datasetId", "type": "uint64"}],
        "outputs": [
            {"name": "title", "type": "string"},
            {"name": "submitter", "type": "address"},
            {"name": "size", "type": "uint256"},
        ],
    },
    {
        "type": "function",
        "name": "getSubmitters",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address[]"}],
    },
    {
        "type": "function",
        "name": "ping",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "submitDataset",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "datasetId", "type": "uint64"},
            {"name": "title", "type": "string"},
            {"name": "root", "type": "bytes32"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "setSubmitters",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "submitters", "type": "address[]"}],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "approve",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "approve",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "account", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "setRange",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "", "type": "uint256"},
            {"name": "", "type": "uint256"},
        ],
        "outputs": [],
    },
    {
        "type": "event",
        "name": "DatasetSubmitted",
        "anonymous": False,
        "inputs": [{"name": "datasetId", "type": "uint64", "indexed": True}],
    },
]


def receipt(status="0x1", block_number="0xa"):
    """JSON-RPC transaction receipt"""
    return {
        "transactionHash": TX_HASH,
        "transactionIndex": "0x0",
        "blockHash": BLOCK_HASH,
        "blockNumber": block_number,
        "from": SUBMITTER.lower(),
        "to": CONTRACT_ADDRESS,
        "cumulativeGasUsed": "0x5208",
        "gasUsed": "0x5208",
        "effectiveGasPrice": "0x3b9aca00",
        "contractAddress": None,
        "logs": [],
        "logsBloom": "0x" + "00" * 256,
        "status": status,
        "type": "0x0",
    }


def mined_transaction(block_number="0xa"):
    """JSON-RPC transaction object for TX_HASH"""
    return {
        "hash": TX_HASH,
        "nonce": "0x5",
        "blockHash": BLOCK_HASH,
        "blockNumber": block_number,
        "transactionIndex": "0x0",
        "from": SUBMITTER.lower(),
        "to": CONTRACT_ADDRESS,
        "value": "0x0",
        "gas": "0x186a0",
        "gasPrice": "0x3b9aca00",
        "input": "0x" + "00" * 4,
        "type": "0x0",
    }


class JsonRpcNode:
    """
    Canned JSON-RPC node.

    ``results`` maps a method to a result, a ``{"error": {...}}`` dict, an
    exception to raise, or a callable of the params returning any of those.
    """

    def __init__(self, results=None):
        self.results = {"eth_chainId": "0x1"}
        self.results.update(results or {})
        self.calls = []

    def methods(self):
        return [method for method, _ in self.calls]

    def params(self, method):
        return [params for name, params in self.calls if name == method]

    def resolve(self, method, params):
        self.calls.append((method, params))
        if method not in self.results:
            return {"error": {"code": -32601, "message": f"the method {method} does not exist"}}
        response = self.results[method]
        if callable(response) and not isinstance(response, type):
            response = response(params)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, dict) and isinstance(response.get("error"), dict):
            return response
        return {"result": response}


class StaticProvider(AsyncBaseProvider):
    """web3 async provider answering from a JsonRpcNode"""

    def __init__(self, node: JsonRpcNode):
        super().__init__()
        self.node = node

    async def make_request(self, method, params):
        response = self.node.resolve(method, list(params))
        return {"jsonrpc": "2.0", "id": 1, **response}

    async def is_connected(self, show_traceback: bool = False) -> bool:
        return True


def mock_client(node: JsonRpcNode, status_code: int = 200) -> httpx.AsyncClient:
    """httpx client whose transport answers from ``node``"""
    def handler(request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        node.headers = request.headers
        response = node.resolve(payload["method"], payload["params"])
        return httpx.Response(status_code, json={"jsonrpc": "2.0", "id": payload["id"], **response})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def node():
    return JsonRpcNode()


@pytest.fixture
def web3_evm(node):
    """Web3 backend bound to the canned node"""
    return Web3Evm(
        provider_url=PROVIDER_URL,
        contract_address=CONTRACT_ADDRESS,
        abi=DATASET_ABI,
        provider=StaticProvider(node),
        http_client=mock_client(node),
        poll_interval=0.01,
    )


@pytest.fixture
def rpc_evm(node):
    """JSON-RPC backend bound to the canned node"""
    return RpcEvm(
        provider_url=PROVIDER_URL,
        contract_address=CONTRACT_ADDRESS,
        abi=DATASET_ABI,
        http_client=mock_client(node),
        poll_interval=0.01,
    )


@pytest.fixture(params=["web3", "rpc"])
def evm(request, web3_evm, rpc_evm):
    """Each backend in turn"""
    return web3_evm if request.param == "web3" else rpc_evm


def abi_result(types, values):
    """Hex-encoded return data for eth_call"""
    return encode_hex(abi_encode(types, values))


def revert_data(reason):
    """Error(string) revert payload"""
    return "0x08c379a0" + abi_result(["string"], [reason])[2:]
