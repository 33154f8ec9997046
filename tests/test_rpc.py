"""
Test suite for the Solana JSON-RPC adapter.
"""

import base64
import json

import httpx
import pytest

from stake_batcher.node.interface import BroadcastError, NodeConnectionError
from stake_batcher.node.rpc import SolanaRpcNetwork


def rpc_network(test_config, handler) -> SolanaRpcNetwork:
    return SolanaRpcNetwork(test_config, transport=httpx.MockTransport(handler))


class TestSolanaRpcNetwork:
    """Tests for the SolanaRpcNetwork."""

    @pytest.mark.asyncio
    async def test_latest_blockhash(self, test_config):
        payloads = []

        def handler(request):
            payloads.append(json.loads(request.content))
            return httpx.Response(200, json={
                "jsonrpc": "2.0",
                "id": 1,
                "result": {"context": {"slot": 1}, "value": {"blockhash": "Hash111", "lastValidBlockHeight": 9}},
            })

        network = rpc_network(test_config, handler)

        assert await network.get_latest_blockhash() == "Hash111"
        assert payloads[0]["method"] == "getLatestBlockhash"
        assert payloads[0]["params"] == [{"commitment": "finalized"}]
        await network.disconnect()

    @pytest.mark.asyncio
    async def test_send_transaction(self, test_config):
        payloads = []

        def handler(request):
            payloads.append(json.loads(request.content))
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": "Sig111"})

        network = rpc_network(test_config, handler)

        tx_id = await network.send_raw_transaction(b"\x01\x02", preflight_commitment="processed")

        assert tx_id == "Sig111"
        encoded, options = payloads[0]["params"]
        assert base64.b64decode(encoded) == b"\x01\x02"
        assert options == {
            "encoding": "base64",
            "skipPreflight": False,
            "preflightCommitment": "processed",
        }

    @pytest.mark.asyncio
    async def test_send_rejected_with_logs(self, test_config):
        def handler(request):
            return httpx.Response(200, json={
                "jsonrpc": "2.0",
                "id": 1,
                "error": {
                    "code": -32002,
                    "message": "Transaction simulation failed",
                    "data": {"logs": ["Program Stake111 invoke [1]", "Program failed"]},
                },
            })

        network = rpc_network(test_config, handler)

        with pytest.raises(BroadcastError) as exc_info:
            await network.send_raw_transaction(b"\x00")

        assert exc_info.value.error_code == -32002
        assert exc_info.value.logs == ["Program Stake111 invoke [1]", "Program failed"]

    @pytest.mark.asyncio
    async def test_http_failure(self, test_config):
        network = rpc_network(test_config, lambda r: httpx.Response(503, text="unavailable"))

        with pytest.raises(NodeConnectionError, match="503"):
            await network.get_latest_blockhash()

        with pytest.raises(BroadcastError, match="503"):
            await network.send_raw_transaction(b"\x00")
