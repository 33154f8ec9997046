"""
Broadcaster - attaches external signatures and submits transactions.

The signing service returns a bare signature over the message bytes; this
module rebuilds the transaction around it, verifies it, and broadcasts it.
"""

import structlog

from solders.message import Message
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction

from stake_batcher.node.interface import BroadcastError, NetworkInterface

logger = structlog.get_logger(__name__)


class SignatureVerificationError(Exception):
    """Raised when a signed transaction does not verify."""
    pass


class Broadcaster:
    """
    Reconstructs signed transactions and submits them.

    A transaction is only broadcast after every required signature has been
    verified against the message bytes.
    """

    def __init__(
        self,
        network: NetworkInterface,
        skip_preflight: bool = False,
        preflight_commitment: str = "confirmed",
    ):
        """
        Initialize the broadcaster.

        Args:
            network: Network interface used for submission
            skip_preflight: Skip the preflight simulation
            preflight_commitment: Commitment level for the simulation
        """
        self.network = network
        self.skip_preflight = skip_preflight
        self.preflight_commitment = preflight_commitment

    def assemble(self, content: str, signature_hex: str, signer: str) -> Transaction:
        """
        Rebuild a signed transaction and verify it.

        Args:
            content: Hex-encoded serialized message that was signed
            signature_hex: Hex-encoded ed25519 signature
            signer: Address that produced the signature

        Returns:
            Verified, fully signed transaction

        Raises:
            SignatureVerificationError: If the signature is malformed, belongs
                to the wrong signer, or does not verify
        """
        try:
            message_bytes = bytes.fromhex(content)
            message = Message.from_bytes(message_bytes)
        except (ValueError, TypeError) as e:
            raise SignatureVerificationError(f"Malformed transaction content: {e}")

        try:
            signature = Signature.from_bytes(bytes.fromhex(signature_hex))
            signer_pubkey = Pubkey.from_string(signer)
        except (ValueError, TypeError) as e:
            raise SignatureVerificationError(f"Malformed signature or signer: {e}")

        required = list(message.account_keys[: message.header.num_required_signatures])
        if required != [signer_pubkey]:
            raise SignatureVerificationError(
                f"Transaction requires signatures from {[str(k) for k in required]}, "
                f"only {signer} signed"
            )

        if not signature.verify(signer_pubkey, bytes(message)):
            raise SignatureVerificationError("Transaction signature verification failed")

        return Transaction.populate(message, [signature])

    async def broadcast(self, content: str, signature_hex: str, signer: str) -> str:
        """
        Verify and submit a signed transaction.

        Args:
            content: Hex-encoded serialized message that was signed
            signature_hex: Hex-encoded signature from the signing service
            signer: Address that produced the signature

        Returns:
            Transaction id assigned by the network

        Raises:
            SignatureVerificationError: If verification fails (nothing is sent)
            BroadcastError: If the network rejects the transaction; simulation
                logs are appended to the message
        """
        transaction = self.assemble(content, signature_hex, signer)

        try:
            tx_id = await self.network.send_raw_transaction(
                bytes(transaction),
                skip_preflight=self.skip_preflight,
                preflight_commitment=self.preflight_commitment,
            )
        except BroadcastError as e:
            if e.logs:
                logger.error("transaction_logs", logs=e.logs)
                raise BroadcastError(
                    f"{e} - Logs: {'; '.join(e.logs)}",
                    logs=e.logs,
                    error_code=e.error_code,
                )
            raise

        logger.info("transaction_broadcast", tx_id=tx_id)
        return tx_id
