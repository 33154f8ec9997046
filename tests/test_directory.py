"""
Test suite for stake account directories and request pacing.
"""

import asyncio

import httpx
import pytest

from stake_batcher.config import AccountSource
from stake_batcher.directory import (
    RequestQueue,
    SolanaBeachDirectory,
    SolscanDirectory,
    create_directory,
)
from stake_batcher.errors import ConfigValidationError, DirectoryError


# ============================================================================
# Test Request Queue
# ============================================================================

class TestRequestQueue:
    """Tests for the rate-limiting request queue."""

    @pytest.mark.asyncio
    async def test_spacing_between_starts(self):
        queue = RequestQueue(interval=0.05)
        loop = asyncio.get_running_loop()
        starts = []

        async def request():
            starts.append(loop.time())
            return len(starts)

        results = await asyncio.gather(*(queue.run(request) for _ in range(3)))

        assert results == [1, 2, 3]
        gaps = [b - a for a, b in zip(starts, starts[1:])]
        assert all(gap >= 0.045 for gap in gaps)

    @pytest.mark.asyncio
    async def test_errors_propagate(self):
        queue = RequestQueue(interval=0)

        async def failing():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await queue.run(failing)

        async def ok():
            return "ok"

        assert await queue.run(ok) == "ok"


# ============================================================================
# Test Solana Beach
# ============================================================================

def beach_page(page: int, total_pages: int, addresses):
    return {
        "totalPages": total_pages,
        "data": [{"pubkey": {"address": a}, "lamports": 5_000_000} for a in addresses],
    }


class TestSolanaBeachDirectory:
    """Tests for the Solana Beach adapter."""

    @pytest.mark.asyncio
    async def test_fetches_all_pages(self, test_config):
        pages = {
            "1": beach_page(1, 3, ["A1", "A2"]),
            "2": beach_page(2, 3, ["B1"]),
            "3": beach_page(3, 3, ["C1"]),
        }
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=pages[request.url.params["page"]])

        directory = SolanaBeachDirectory(
            test_config, transport=httpx.MockTransport(handler), interval=0
        )

        accounts = await directory.list_stake_accounts("Authority111")
        await directory.disconnect()

        assert [a.address for a in accounts] == ["A1", "A2", "B1", "C1"]
        assert accounts[0].lamports == 5_000_000
        assert [r.url.params["page"] for r in seen] == ["1", "2", "3"]
        assert seen[0].url.path.endswith("/account/Authority111/stakes")
        assert seen[0].headers["Authorization"] == "Bearer test-beach-key"

    @pytest.mark.asyncio
    async def test_error_status(self, test_config):
        directory = SolanaBeachDirectory(
            test_config,
            transport=httpx.MockTransport(lambda r: httpx.Response(429, text="slow down")),
            interval=0,
        )

        with pytest.raises(DirectoryError, match="429"):
            await directory.list_stake_accounts("Authority111")

    @pytest.mark.asyncio
    async def test_transport_error(self, test_config):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        directory = SolanaBeachDirectory(
            test_config, transport=httpx.MockTransport(handler), interval=0
        )

        with pytest.raises(DirectoryError, match="refused"):
            await directory.list_stake_accounts("Authority111")


# ============================================================================
# Test Solscan
# ============================================================================

class TestSolscanDirectory:
    """Tests for the Solscan adapter."""

    @pytest.mark.asyncio
    async def test_pages_until_empty(self, test_config):
        config = test_config.model_copy(update={"solscan_api_key": "scan-key"})
        pages = {
            "1": [
                {"stake_account": "S1", "sol_balance": 3_000_000, "status": "Active"},
                {"stake_account": "S2", "sol_balance": 4_000_000, "status": "INACTIVE"},
            ],
            "2": [{"stake_account": "S3", "sol_balance": 1, "status": None}],
            "3": [],
        }
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200, json={"success": True, "data": pages[request.url.params["page"]]}
            )

        directory = SolscanDirectory(config, transport=httpx.MockTransport(handler), interval=0)

        accounts = await directory.list_stake_accounts("Authority111")

        assert [a.address for a in accounts] == ["S1", "S2", "S3"]
        assert [a.status for a in accounts] == ["active", "inactive", None]
        assert accounts[1].lamports == 4_000_000
        assert len(seen) == 3
        assert seen[0].headers["token"] == "scan-key"
        assert seen[0].url.params["page_size"] == "40"
        assert seen[0].url.params["address"] == "Authority111"

    @pytest.mark.asyncio
    async def test_unsuccessful_response(self, test_config):
        directory = SolscanDirectory(
            test_config,
            transport=httpx.MockTransport(
                lambda r: httpx.Response(200, json={"success": False, "errors": {"code": 1}})
            ),
            interval=0,
        )

        with pytest.raises(DirectoryError, match="Solscan API error"):
            await directory.list_stake_accounts("Authority111")


class TestCreateDirectory:
    """Tests for selecting the directory from configuration."""

    def test_solana_beach(self, test_config):
        assert isinstance(create_directory(test_config), SolanaBeachDirectory)

    def test_solscan_requires_key(self, test_config):
        config = test_config.model_copy(update={"account_source": AccountSource.SOLSCAN})

        with pytest.raises(ConfigValidationError):
            create_directory(config)

        config = config.model_copy(update={"solscan_api_key": "scan-key"})
        assert isinstance(create_directory(config), SolscanDirectory)
