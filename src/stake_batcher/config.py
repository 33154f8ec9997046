"""
Configuration management for the Stake Authority Batcher.

Supports configuration via environment variables and .env files.
"""

from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from stake_batcher.errors import ConfigValidationError


class OperationKind(str, Enum):
    """Bulk operations the batcher can run."""
    CHANGE_AUTHORITY = "change-authority"
    WITHDRAW = "withdraw"


class AccountSource(str, Enum):
    """Supported stake account directories."""
    SOLANA_BEACH = "solana_beach"
    SOLSCAN = "solscan"


class ReportBackend(str, Enum):
    """Where group results are persisted."""
    CSV = "csv"
    DATABASE = "database"


class BatcherConfig(BaseSettings):
    """
    Configuration settings for the Stake Authority Batcher.

    All settings can be configured via environment variables with the
    STAKE_BATCHER_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="STAKE_BATCHER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Run settings
    operation: OperationKind = Field(
        default=OperationKind.CHANGE_AUTHORITY,
        description="Bulk operation to run"
    )
    current_authority_vault_id: Optional[str] = Field(
        default=None,
        description="Vault holding the current stake/withdraw authority"
    )
    new_authority_vault_id: Optional[str] = Field(
        default=None,
        description="Vault that becomes the new authority (change-authority only)"
    )

    # Fireblocks settings
    fireblocks_api_key: Optional[str] = Field(
        default=None,
        description="Fireblocks API key"
    )
    fireblocks_api_secret_path: Optional[str] = Field(
        default=None,
        description="Path to the Fireblocks API private key (PEM)"
    )
    fireblocks_base_url: str = Field(
        default="https://api.fireblocks.io",
        description="Fireblocks API base URL"
    )
    fireblocks_asset_id: str = Field(
        default="SOL",
        description="Fireblocks asset id used for address lookup and signing"
    )

    # Account directory settings
    account_source: AccountSource = Field(
        default=AccountSource.SOLANA_BEACH,
        description="Service used to list stake accounts"
    )
    solana_beach_api_key: Optional[str] = Field(
        default=None,
        description="Solana Beach API key"
    )
    solana_beach_base_url: str = Field(
        default="https://api.solanabeach.io/v1",
        description="Solana Beach API base URL"
    )
    solscan_api_key: Optional[str] = Field(
        default=None,
        description="Solscan Pro API key"
    )
    solscan_base_url: str = Field(
        default="https://pro-api.solscan.io/v2.0",
        description="Solscan Pro API base URL"
    )

    # Network settings
    solana_rpc_url: str = Field(
        default="https://api.mainnet-beta.solana.com",
        description="Solana JSON-RPC endpoint"
    )
    skip_preflight: bool = Field(
        default=False,
        description="Skip preflight simulation when broadcasting"
    )
    preflight_commitment: str = Field(
        default="confirmed",
        description="Commitment level used for preflight simulation"
    )

    # Signing settings
    signing_poll_interval_seconds: float = Field(
        default=2.0,
        ge=0,
        description="Delay between signing status polls"
    )
    signing_timeout_seconds: Optional[float] = Field(
        default=1800.0,
        gt=0,
        description="Maximum time to wait for a signing request (None waits forever)"
    )
    groups_per_signing_request: int = Field(
        default=1,
        ge=1,
        description="Number of group transactions sent in one signing request"
    )

    # Withdraw settings
    withdraw_require_inactive: bool = Field(
        default=True,
        description="Only withdraw from accounts reported as inactive"
    )

    # Report settings
    report_backend: ReportBackend = Field(
        default=ReportBackend.CSV,
        description="Result sink used to persist group outcomes"
    )
    report_dir: str = Field(
        default="reports",
        description="Directory for CSV reports"
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///stake_batcher.db",
        description="SQLAlchemy database URL for the database result sink"
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format"
    )

    def validate_vaults(self) -> None:
        """
        Validate the vault identifiers for the configured operation.

        Vault ids are numeric in the signing service; for an authority change
        the current vault must sort strictly before the new one.

        Raises:
            ConfigValidationError: If the vault ids are missing or misordered
        """
        errors: List[str] = []
        current = (self.current_authority_vault_id or "").strip()
        new = (self.new_authority_vault_id or "").strip()

        if not current:
            errors.append("current_authority_vault_id is required")
        elif not current.isdigit():
            errors.append(f"current_authority_vault_id must be numeric: {current!r}")

        if self.operation == OperationKind.CHANGE_AUTHORITY:
            if not new:
                errors.append("new_authority_vault_id is required for change-authority")
            elif not new.isdigit():
                errors.append(f"new_authority_vault_id must be numeric: {new!r}")
            elif current.isdigit():
                if int(current) == int(new):
                    errors.append("current and new authority vault ids must differ")
                elif int(current) > int(new):
                    errors.append(
                        "current_authority_vault_id must be lower than new_authority_vault_id"
                    )

        if errors:
            raise ConfigValidationError(errors)

    def validate_fireblocks(self) -> None:
        """Validate the credentials needed by the Fireblocks resolver."""
        errors: List[str] = []

        if not self.fireblocks_api_key:
            errors.append("fireblocks_api_key is required")
        if not self.fireblocks_api_secret_path:
            errors.append("fireblocks_api_secret_path is required")
        elif not Path(self.fireblocks_api_secret_path).is_file():
            errors.append(
                f"fireblocks_api_secret_path does not exist: {self.fireblocks_api_secret_path}"
            )

        if errors:
            raise ConfigValidationError(errors)

    def validate_account_source(self) -> None:
        """Validate the credentials needed by the configured directory."""
        if self.account_source == AccountSource.SOLSCAN and not self.solscan_api_key:
            raise ConfigValidationError("solscan_api_key is required when account_source is solscan")
        if self.account_source == AccountSource.SOLANA_BEACH and not self.solana_beach_api_key:
            raise ConfigValidationError(
                "solana_beach_api_key is required when account_source is solana_beach"
            )

    def to_dict(self) -> dict:
        """Convert to dictionary with secrets masked."""
        return {
            "operation": self.operation.value,
            "current_authority_vault_id": self.current_authority_vault_id,
            "new_authority_vault_id": self.new_authority_vault_id,
            "fireblocks_api_key": "***" if self.fireblocks_api_key else None,
            "fireblocks_base_url": self.fireblocks_base_url,
            "account_source": self.account_source.value,
            "solana_rpc_url": self.solana_rpc_url,
            "groups_per_signing_request": self.groups_per_signing_request,
            "signing_timeout_seconds": self.signing_timeout_seconds,
            "report_backend": self.report_backend.value,
        }


# Global config instance
_config: Optional[BatcherConfig] = None


def get_config() -> BatcherConfig:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = BatcherConfig()
    return _config


def set_config(config: BatcherConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
