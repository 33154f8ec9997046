"""
Network Integration Layer.

Provides abstracted access to Solana blockhashes and transaction submission.
"""

from stake_batcher.node.interface import NetworkInterface, NodeConnectionError, BroadcastError
from stake_batcher.node.rpc import SolanaRpcNetwork, RpcError

__all__ = [
    "NetworkInterface",
    "NodeConnectionError",
    "BroadcastError",
    "SolanaRpcNetwork",
    "RpcError",
]
