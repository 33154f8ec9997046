"""
Signing Coordinator - drives one raw signing request to completion.

Submits the contents of a set of unsigned groups, polls the signing service
until the request resolves, and matches every returned signature back to the
group it belongs to.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import structlog

from stake_batcher.core.models import SignedContent, UnsignedGroup
from stake_batcher.signing.interface import (
    AuthorityResolver,
    CorrelationWarning,
    SigningCancelledError,
    SigningStatus,
    SigningTerminalFailure,
    SigningTimeoutError,
)

logger = structlog.get_logger(__name__)

NO_MATCH_ERROR = "No matching transaction data"
MISSING_SIGNATURE_ERROR = "Missing signature"


@dataclass
class GroupSignature:
    """Signature (or correlation failure) for one submitted group."""

    group: UnsignedGroup
    signature: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_signed(self) -> bool:
        return self.signature is not None


@dataclass
class SigningOutcome:
    """Result of a resolved signing request."""

    request_id: str
    state: str
    signatures: List[GroupSignature] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def for_group(self, index: int) -> GroupSignature:
        for signature in self.signatures:
            if signature.group.index == index:
                return signature
        raise KeyError(index)


def correlate(
    groups: Sequence[UnsignedGroup],
    signed: Sequence[SignedContent],
) -> List[GroupSignature]:
    """
    Match returned signed contents to submitted groups.

    Contents are matched by exact equality. Identical contents are claimed in
    submission order. Entries without content fall back to their position in
    the response.

    Args:
        groups: Submitted groups, in submission order
        signed: Signed contents returned by the service

    Returns:
        One GroupSignature per submitted group, in submission order
    """
    claimed: Dict[int, SignedContent] = {}

    for position, item in enumerate(signed):
        match = None
        if item.content:
            for i, group in enumerate(groups):
                if i not in claimed and group.content == item.content:
                    match = i
                    break
        elif position < len(groups) and position not in claimed:
            match = position

        if match is None:
            logger.warning(
                "signed_message_unmatched",
                position=position,
                content_prefix=(item.content or "")[:16],
            )
            continue

        claimed[match] = item

    results = []
    for i, group in enumerate(groups):
        item = claimed.get(i)
        if item is None:
            results.append(GroupSignature(group=group, error=NO_MATCH_ERROR))
        elif not item.signature:
            results.append(GroupSignature(group=group, error=MISSING_SIGNATURE_ERROR))
        else:
            results.append(GroupSignature(group=group, signature=item.signature))
    return results


class SigningCoordinator:
    """
    Coordinates raw signing requests against an AuthorityResolver.

    Only one request is in flight at a time. Polling can be interrupted from
    another task with cancel().
    """

    def __init__(
        self,
        resolver: AuthorityResolver,
        poll_interval: float = 2.0,
        timeout: Optional[float] = 1800.0,
    ):
        """
        Initialize the coordinator.

        Args:
            resolver: Signing service adapter
            poll_interval: Seconds between status polls
            timeout: Seconds to wait for resolution, or None to wait forever
        """
        self.resolver = resolver
        self.poll_interval = poll_interval
        self.timeout = timeout
        self._cancelled = asyncio.Event()

    def cancel(self) -> None:
        """Interrupt the current (and any future) signing wait."""
        self._cancelled.set()

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    async def sign(
        self,
        groups: Sequence[UnsignedGroup],
        source_vault_id: str,
        note: str,
    ) -> SigningOutcome:
        """
        Sign a set of groups in a single request.

        Args:
            groups: Unsigned groups to sign
            source_vault_id: Vault whose key signs
            note: Note attached to the signing request

        Returns:
            SigningOutcome with one GroupSignature per group

        Raises:
            SigningTerminalFailure: If the request ends in a failure state
            SigningTimeoutError: If the request does not resolve in time
            SigningCancelledError: If cancel() was called while waiting
        """
        if self.is_cancelled:
            raise SigningCancelledError("Signing was cancelled before submission")

        contents = [group.content for group in groups]
        request_id = await self.resolver.submit_signing(contents, source_vault_id, note)

        try:
            status = await self._wait(request_id)
        except (SigningTimeoutError, SigningCancelledError):
            await self._cancel_request(request_id)
            raise

        outcome = SigningOutcome(
            request_id=request_id,
            state=status.state,
            signatures=correlate(groups, status.signed_messages),
        )

        if len(status.signed_messages) != len(groups):
            message = (
                f"Signing request {request_id} returned {len(status.signed_messages)} "
                f"signed messages for {len(groups)} submitted"
            )
            logger.warning(
                "signing_count_mismatch",
                request_id=request_id,
                submitted=len(groups),
                returned=len(status.signed_messages),
                category=CorrelationWarning.__name__,
            )
            outcome.warnings.append(message)

        return outcome

    async def _wait(self, request_id: str) -> SigningStatus:
        """Poll until the request reaches a terminal state."""
        loop = asyncio.get_running_loop()
        deadline = None if self.timeout is None else loop.time() + self.timeout

        status = await self.resolver.poll(request_id)
        last_state = status.state
        logger.info("signing_status", request_id=request_id, state=status.state)

        while not status.is_success:
            if status.is_failure:
                logger.error(
                    "signing_failed",
                    request_id=request_id,
                    state=status.state,
                    sub_status=status.sub_status,
                )
                raise SigningTerminalFailure(request_id, status.state, status.sub_status)

            delay = self.poll_interval
            if deadline is not None:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise SigningTimeoutError(
                        f"Signing request {request_id} did not resolve within "
                        f"{self.timeout}s (last state {status.state})"
                    )
                delay = min(delay, remaining)

            await self._sleep(request_id, delay)

            status = await self.resolver.poll(request_id)
            if status.state != last_state:
                logger.info("signing_status", request_id=request_id, state=status.state)
                last_state = status.state

        return status

    async def _sleep(self, request_id: str, delay: float) -> None:
        """Wait between polls, returning early if cancelled."""
        if self.is_cancelled:
            raise SigningCancelledError(f"Signing request {request_id} was cancelled")
        try:
            await asyncio.wait_for(self._cancelled.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise SigningCancelledError(f"Signing request {request_id} was cancelled")

    async def _cancel_request(self, request_id: str) -> None:
        try:
            await self.resolver.cancel(request_id)
        except Exception as e:
            logger.warning("signing_cancel_failed", request_id=request_id, error=str(e))
