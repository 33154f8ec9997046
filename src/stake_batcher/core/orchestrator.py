"""
Batch orchestrator.

Coordinates all components to run one bulk stake operation end to end.
"""

from typing import Dict, List, Optional, Sequence

import structlog

from stake_batcher.config import BatcherConfig, get_config
from stake_batcher.core.grouping import partition, split_malformed
from stake_batcher.core.models import (
    Authority,
    AuthorityPair,
    GroupResult,
    RunSummary,
    StakeAccount,
    UnsignedGroup,
    parse_pubkey,
)
from stake_batcher.directory import AccountDirectory, create_directory
from stake_batcher.errors import DirectoryError, EmptyInputError, ResolutionError
from stake_batcher.node.interface import NetworkInterface
from stake_batcher.node.rpc import SolanaRpcNetwork
from stake_batcher.signing.coordinator import GroupSignature, SigningCoordinator
from stake_batcher.signing.fireblocks import FireblocksResolver
from stake_batcher.signing.interface import AuthorityResolver, CorrelationError
from stake_batcher.state import ResultSink, create_result_sink
from stake_batcher.tx.broadcaster import Broadcaster
from stake_batcher.tx.builder import TransactionBuilder
from stake_batcher.tx.operations import Operation, create_operation

logger = structlog.get_logger(__name__)


class BatchOrchestrator:
    """
    Main batch orchestrator.

    Coordinates all batch components:
    - Authority resolution
    - Stake account listing and filtering
    - Grouping into size-bounded transactions
    - Custodial signing and broadcast
    - Result persistence

    Usage:
        ```python
        orchestrator = BatchOrchestrator(config)
        summary = await orchestrator.run()
        ```
    """

    def __init__(
        self,
        config: Optional[BatcherConfig] = None,
        resolver: Optional[AuthorityResolver] = None,
        directory: Optional[AccountDirectory] = None,
        network: Optional[NetworkInterface] = None,
        sink: Optional[ResultSink] = None,
        operation: Optional[Operation] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Batcher configuration
            resolver: Custom signing service (Fireblocks if not provided)
            directory: Custom account directory (auto-created from config if not provided)
            network: Custom network interface (Solana RPC if not provided)
            sink: Custom result sink (auto-created from config if not provided)
            operation: Custom operation variant (auto-created from config if not provided)

        Raises:
            ConfigValidationError: If vault ids or collaborator credentials are invalid
        """
        self.config = config or get_config()
        self.config.validate_vaults()

        self.operation = operation or create_operation(
            self.config.operation,
            withdraw_require_inactive=self.config.withdraw_require_inactive,
        )

        self.resolver = resolver or FireblocksResolver.from_config(self.config)
        self.directory = directory or create_directory(self.config)
        self.network = network or SolanaRpcNetwork(self.config)
        self.sink = sink or create_result_sink(self.config)

        self.builder = TransactionBuilder(self.network, self.operation)
        self.coordinator = SigningCoordinator(
            self.resolver,
            poll_interval=self.config.signing_poll_interval_seconds,
            timeout=self.config.signing_timeout_seconds,
        )
        self.broadcaster = Broadcaster(
            self.network,
            skip_preflight=self.config.skip_preflight,
            preflight_commitment=self.config.preflight_commitment,
        )

        self._stopping = False

    async def initialize(self) -> None:
        """Connect all network collaborators."""
        await self.resolver.connect()
        await self.directory.connect()
        await self.network.connect()

    async def shutdown(self) -> None:
        """Disconnect all network collaborators."""
        await self.network.disconnect()
        await self.directory.disconnect()
        await self.resolver.disconnect()
        logger.info("batch_run_shutdown")

    def stop(self) -> None:
        """Stop after the current group and interrupt any signing wait."""
        self._stopping = True
        self.coordinator.cancel()
        logger.info("batch_run_stopping")

    async def run(self) -> RunSummary:
        """
        Run the configured operation.

        Returns:
            RunSummary with one GroupResult per attempted group

        Raises:
            ResolutionError: If an authority cannot be resolved
            DirectoryError: If stake accounts cannot be listed
            EmptyInputError: If there is nothing to process
        """
        logger.info("batch_run_starting", operation=self.operation.kind.value)

        await self.initialize()
        try:
            return await self._run()
        finally:
            await self.shutdown()

    async def _run(self) -> RunSummary:
        authorities = await self.resolve_authorities()
        accounts = await self._list_accounts(authorities.current.address)

        valid, malformed = self._filter_accounts(accounts)
        eligible, skipped = self.operation.select_accounts(valid)
        if not eligible:
            raise EmptyInputError(
                f"None of the {len(valid)} valid stake accounts are eligible for "
                f"{self.operation.kind.value}"
            )

        groups = partition(eligible, self.operation.group_size)
        summary = RunSummary(
            operation=self.operation.kind.value,
            total_accounts=len(eligible),
            skipped_accounts=len(skipped),
            malformed_accounts=malformed,
            planned_groups=len(groups),
        )

        logger.info(
            "groups_planned",
            accounts=len(eligible),
            skipped=len(skipped),
            malformed=malformed,
            groups=len(groups),
            group_size=self.operation.group_size,
        )

        index = 1
        for chunk in partition(groups, self.config.groups_per_signing_request):
            if self._stopping:
                logger.warning(
                    "batch_run_stopped",
                    attempted_groups=len(summary.results),
                    planned_groups=len(groups),
                )
                break

            summary.results.extend(await self._process_chunk(index, chunk, authorities))
            index += len(chunk)

        logger.info(
            "batch_run_completed",
            groups_succeeded=summary.groups_succeeded,
            groups_failed=summary.groups_failed,
            accounts_succeeded=summary.accounts_succeeded,
            accounts_failed=summary.accounts_failed,
        )

        summary.report_location = await self.sink.write(
            summary.results, authorities, self.operation.kind
        )
        return summary

    async def resolve_authorities(self) -> AuthorityPair:
        """
        Resolve the current (and for authority changes, new) authority.

        Raises:
            ResolutionError: If either vault cannot be resolved, or both
                resolve to the same address
        """
        current = await self._resolve(self.config.current_authority_vault_id)

        new = None
        if self.operation.requires_new_authority:
            new = await self._resolve(self.config.new_authority_vault_id)
            if new.address == current.address:
                raise ResolutionError(
                    f"Current and new authority resolve to the same address {current.address}"
                )

        authorities = AuthorityPair(current=current, new=new)
        logger.info("authorities_resolved", **authorities.to_dict())
        return authorities

    async def _resolve(self, vault_id: str) -> Authority:
        try:
            address = await self.resolver.resolve_address(vault_id)
        except Exception as e:
            logger.error("authority_resolution_failed", vault_id=vault_id, error=str(e))
            raise ResolutionError(f"Failed to resolve address for vault {vault_id}: {e}") from e

        if parse_pubkey(address) is None:
            raise ResolutionError(f"Vault {vault_id} resolved to an invalid address: {address!r}")

        return Authority(vault_id=vault_id, address=address)

    async def _list_accounts(self, address: str) -> List[StakeAccount]:
        try:
            accounts = await self.directory.list_stake_accounts(address)
        except DirectoryError:
            raise
        except Exception as e:
            raise DirectoryError(f"Failed to list stake accounts for {address}: {e}") from e

        if not accounts:
            raise EmptyInputError(f"No stake accounts found for {address}")
        return accounts

    def _filter_accounts(self, accounts: Sequence[StakeAccount]):
        """Drop malformed and duplicate accounts; returns (valid, dropped count)."""
        valid, malformed = split_malformed(accounts)
        for account in malformed:
            logger.warning("malformed_stake_account", address=account.address)

        unique = []
        seen = set()
        for account in valid:
            if account.address in seen:
                logger.warning("duplicate_stake_account", address=account.address)
                continue
            seen.add(account.address)
            unique.append(account)

        if not unique:
            raise EmptyInputError(f"None of the {len(accounts)} listed stake accounts are valid")

        return unique, len(accounts) - len(unique)

    async def _process_chunk(
        self,
        first_index: int,
        chunk: Sequence[Sequence[StakeAccount]],
        authorities: AuthorityPair,
    ) -> List[GroupResult]:
        """Build, sign and broadcast a chunk of groups sharing one signing request."""
        results: Dict[int, GroupResult] = {}
        built: List[UnsignedGroup] = []

        for offset, accounts in enumerate(chunk):
            index = first_index + offset
            logger.info("processing_group", group=index, accounts=len(accounts))
            try:
                built.append(await self.builder.build(index, accounts, authorities))
            except Exception as e:
                results[index] = self._failed(index, accounts, e, authorities)

        if built:
            note = self.operation.signing_note(authorities, sum(g.size for g in built))
            try:
                outcome = await self.coordinator.sign(
                    built, authorities.current.vault_id, note
                )
            except Exception as e:
                for group in built:
                    results[group.index] = self._failed(
                        group.index, group.accounts, e, authorities
                    )
            else:
                for signature in outcome.signatures:
                    results[signature.group.index] = await self._broadcast_group(
                        signature, authorities
                    )

        return [results[index] for index in sorted(results)]

    async def _broadcast_group(
        self,
        signature: GroupSignature,
        authorities: AuthorityPair,
    ) -> GroupResult:
        group = signature.group
        try:
            if not signature.is_signed:
                raise CorrelationError(signature.error)

            tx_id = await self.broadcaster.broadcast(
                group.content, signature.signature, group.fee_payer
            )
        except Exception as e:
            return self._failed(group.index, group.accounts, e, authorities)

        logger.info("group_succeeded", group=group.index, accounts=group.size, tx_id=tx_id)
        return GroupResult.success(group.index, group.account_addresses, tx_id, authorities)

    def _failed(
        self,
        index: int,
        accounts: Sequence[StakeAccount],
        error: Exception,
        authorities: AuthorityPair,
    ) -> GroupResult:
        logger.error(
            "group_failed",
            group=index,
            accounts=len(accounts),
            error_type=type(error).__name__,
            error=str(error),
        )
        return GroupResult.failure(
            index, [account.address for account in accounts], str(error), authorities
        )
