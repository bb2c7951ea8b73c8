"""
Data Sources Package
Read-only on-chain access for the veABX holders pipeline
"""

from .multicall import Multicall3
from .onchain import CallResult, ChainReader, ContractCall, RpcError

__all__ = [
    "Multicall3",
    "CallResult",
    "ChainReader",
    "ContractCall",
    "RpcError",
]
