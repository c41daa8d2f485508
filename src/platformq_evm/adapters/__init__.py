"""
EVM backend implementations.
"""

from .base import BaseEvm
from .web3_evm import Web3Evm
from .rpc_evm import RpcContract, RpcEvm

__all__ = [
    "BaseEvm",
    "Web3Evm",
    "RpcEvm",
    "RpcContract"
]
