"""
Pytest configuration and shared fixtures for the test suite.
"""

from collections import deque
from typing import Callable, Dict, List, Optional, Sequence

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from stake_batcher.config import BatcherConfig, OperationKind
from stake_batcher.core.models import (
    Authority,
    AuthorityPair,
    GroupResult,
    SignedContent,
    StakeAccount,
)
from stake_batcher.directory.interface import AccountDirectory
from stake_batcher.node.interface import BroadcastError, NetworkInterface
from stake_batcher.signing.interface import AuthorityResolver, SigningStatus
from stake_batcher.state.report import ResultSink


CURRENT_VAULT = "1"
NEW_VAULT = "2"


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def test_config(tmp_path) -> BatcherConfig:
    """Create a test configuration."""
    return BatcherConfig(
        operation=OperationKind.CHANGE_AUTHORITY,
        current_authority_vault_id=CURRENT_VAULT,
        new_authority_vault_id=NEW_VAULT,
        fireblocks_api_key="test-api-key",
        solana_beach_api_key="test-beach-key",
        solana_rpc_url="http://rpc.test",
        signing_poll_interval_seconds=0,
        signing_timeout_seconds=5,
        report_dir=str(tmp_path / "reports"),
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'results.db'}",
        log_level="DEBUG",
    )


@pytest.fixture
def withdraw_config(test_config) -> BatcherConfig:
    """Create a withdraw configuration."""
    return test_config.model_copy(
        update={"operation": OperationKind.WITHDRAW, "new_authority_vault_id": None}
    )


# ============================================================================
# Test Data Generators
# ============================================================================

def generate_blockhash(index: int = 0) -> str:
    """Generate a deterministic, valid blockhash."""
    return str(Hash(bytes([index % 256]) * 32))


def generate_accounts(
    count: int,
    lamports: Optional[int] = 10_000_000,
    status: Optional[str] = "inactive",
) -> List[StakeAccount]:
    """Generate stake accounts with unique, valid addresses."""
    return [
        StakeAccount(address=str(Pubkey.new_unique()), lamports=lamports, status=status)
        for _ in range(count)
    ]


@pytest.fixture
def current_keypair() -> Keypair:
    return Keypair()


@pytest.fixture
def new_keypair() -> Keypair:
    return Keypair()


@pytest.fixture
def authorities(current_keypair, new_keypair) -> AuthorityPair:
    """Resolved authorities for a change-authority run."""
    return AuthorityPair(
        current=Authority(vault_id=CURRENT_VAULT, address=str(current_keypair.pubkey())),
        new=Authority(vault_id=NEW_VAULT, address=str(new_keypair.pubkey())),
    )


# ============================================================================
# Mock Network Interface
# ============================================================================

class MockNetwork(NetworkInterface):
    """Mock network interface for testing."""

    def __init__(self):
        self.blockhash_calls = 0
        self.submitted: List[Transaction] = []
        self.fail_submissions: Dict[int, BroadcastError] = {}
        self._connected = False

    async def connect(self) -> None:
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False

    async def get_latest_blockhash(self) -> str:
        self.blockhash_calls += 1
        return generate_blockhash(self.blockhash_calls)

    async def send_raw_transaction(
        self,
        raw_transaction: bytes,
        skip_preflight: bool = False,
        preflight_commitment: str = "confirmed",
    ) -> str:
        attempt = len(self.submitted) + 1
        transaction = Transaction.from_bytes(raw_transaction)
        self.submitted.append(transaction)

        if attempt in self.fail_submissions:
            raise self.fail_submissions[attempt]
        return str(transaction.signatures[0])


@pytest.fixture
def mock_network() -> MockNetwork:
    """Create a mock network interface."""
    return MockNetwork()


# ============================================================================
# Mock Signing Service
# ============================================================================

class MockResolver(AuthorityResolver):
    """
    Mock signing service that signs with local keypairs.

    Each submission consumes the next queued plan; a plan is the list of
    states reported by successive polls plus an optional transform applied
    to the signed messages.
    """

    def __init__(self, keypairs: Dict[str, Keypair]):
        self.keypairs = keypairs
        self.failing_vaults: set = set()
        self.submissions: List[dict] = []
        self.cancelled: List[str] = []
        self._plans: deque = deque()
        self._requests: Dict[str, dict] = {}
        self._connected = False

    def plan(
        self,
        states: Sequence[str],
        transform: Optional[Callable[[List[SignedContent]], List[SignedContent]]] = None,
        sub_status: Optional[str] = None,
    ) -> None:
        """Queue the behaviour of the next signing request."""
        self._plans.append({"states": list(states), "transform": transform, "sub_status": sub_status})

    async def connect(self) -> None:
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False

    async def resolve_address(self, vault_id: str) -> str:
        if vault_id in self.failing_vaults:
            raise RuntimeError(f"vault {vault_id} not found")
        return str(self.keypairs[vault_id].pubkey())

    async def submit_signing(self, contents: Sequence[str], source_vault_id: str, note: str) -> str:
        request_id = f"request-{len(self.submissions) + 1}"
        self.submissions.append(
            {"contents": list(contents), "vault_id": source_vault_id, "note": note}
        )

        plan = self._plans.popleft() if self._plans else {
            "states": ["SUBMITTED", "COMPLETED"], "transform": None, "sub_status": None,
        }
        self._requests[request_id] = {
            "plan": plan,
            "contents": list(contents),
            "keypair": self.keypairs[source_vault_id],
            "polls": 0,
        }
        return request_id

    async def poll(self, request_id: str) -> SigningStatus:
        request = self._requests[request_id]
        states = request["plan"]["states"]
        state = states[min(request["polls"], len(states) - 1)]
        request["polls"] += 1

        status = SigningStatus(
            request_id=request_id,
            state=state,
            sub_status=request["plan"]["sub_status"],
        )
        if status.is_success:
            keypair = request["keypair"]
            signed = [
                SignedContent(
                    content=content,
                    signature=bytes(keypair.sign_message(bytes.fromhex(content))).hex(),
                )
                for content in request["contents"]
            ]
            transform = request["plan"]["transform"]
            status.signed_messages = transform(signed) if transform else signed
        return status

    async def cancel(self, request_id: str) -> None:
        self.cancelled.append(request_id)


@pytest.fixture
def mock_resolver(current_keypair, new_keypair) -> MockResolver:
    """Create a mock signing service for both vaults."""
    return MockResolver({CURRENT_VAULT: current_keypair, NEW_VAULT: new_keypair})


# ============================================================================
# Mock Directory and Sink
# ============================================================================

class MockDirectory(AccountDirectory):
    """Mock account directory returning a fixed list."""

    def __init__(self, accounts: Optional[List[StakeAccount]] = None):
        self.accounts = accounts or []
        self.error: Optional[Exception] = None
        self.queried: List[str] = []

    async def connect(self) -> None:
        pass

    async def disconnect(self) -> None:
        pass

    async def list_stake_accounts(self, address: str) -> List[StakeAccount]:
        self.queried.append(address)
        if self.error:
            raise self.error
        return list(self.accounts)


class MemorySink(ResultSink):
    """Result sink that keeps results in memory."""

    def __init__(self):
        self.writes: List[List[GroupResult]] = []

    async def write(self, results, authorities, operation) -> str:
        self.writes.append(list(results))
        return "memory://results"


@pytest.fixture
def mock_directory() -> MockDirectory:
    return MockDirectory()


@pytest.fixture
def memory_sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def account_factory() -> Callable[..., List[StakeAccount]]:
    """Factory for stake accounts with unique, valid addresses."""
    return generate_accounts
