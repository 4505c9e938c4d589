"""
Configuration management for the fleet harness.

Uses pydantic-settings for type-safe environment variable handling.
Settings are read once at the CLI boundary and turned into explicit
values (topology, command set, run plans); library code never reads
the environment itself.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Harness settings loaded from environment variables (FLEET_*) or .env.

    Credentials use SecretStr to prevent accidental logging.
    """

    model_config = SettingsConfigDict(
        env_prefix="FLEET_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Fleet layout
    topology_file: Path = Field(
        default=Path("./topology.json"),
        description="JSON file describing workers and their node index ranges",
    )

    # Logging / run artefacts
    log_dir: Path = Field(
        default=Path("./testnet-logs"),
        description="Directory for per-run logs and ledgers",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )

    # Remote execution
    ssh_user: str = Field(default="root", description="SSH login user on workers")
    ssh_identity_file: Path | None = Field(
        default=None,
        description="Optional SSH private key path",
    )
    ssh_connect_timeout_s: int = Field(
        default=5,
        description="SSH connect timeout in seconds",
        ge=1,
        le=60,
    )
    command_timeout_s: float = Field(
        default=30.0,
        description="Upper bound for a single remote command",
        gt=0,
        le=600,
    )
    restore_timeout_s: float = Field(
        default=300.0,
        description="Upper bound for a worker-wide restore command",
        gt=0,
        le=3600,
    )

    # Node process layout on workers
    node_service_template: str = Field(
        default="peer-node-{index}",
        description="systemd unit name for a node; {index} is the global node index",
    )
    node_binary: str = Field(
        default="/usr/local/bin/peer-node",
        description="Node binary path on workers",
    )
    restore_command: str = Field(
        default="/usr/local/bin/start-nodes.sh {start}",
        description=(
            "Worker command starting every node of its range; "
            "{start}, {count} and {end} are substituted"
        ),
    )

    # Churn timing
    churn_settle_s: float = Field(
        default=5.0,
        description="Delay between stopping victims and starting recoveries",
        ge=0,
        le=300,
    )
    verify_interval_s: float = Field(
        default=30.0,
        description="Settle time after churn before verification",
        ge=0,
        le=3600,
    )
    churn_interval_s: float = Field(
        default=60.0,
        description="Wall-clock length of one churn cycle",
        ge=0,
        le=3600,
    )
    restore_settle_s: float = Field(
        default=10.0,
        description="Wait after the fleet-wide restore before the final checks",
        ge=0,
        le=600,
    )
    min_healthy_percent: float = Field(
        default=50.0,
        description="Below this share of running nodes results are flagged unreliable",
        ge=0,
        le=100,
    )

    # Data verification
    verify_sample_size: int | None = Field(
        default=None,
        description="Addresses checked per verification pass (all when unset)",
        ge=1,
    )
    verify_command: str | None = Field(
        default=None,
        description="Local retrieval command; {address} is substituted",
    )
    verify_timeout_s: float = Field(
        default=60.0,
        description="Timeout for a single retrieval check",
        gt=0,
        le=600,
    )
    verify_gateway_url: str | None = Field(
        default=None,
        description="HTTP gateway used for retrieval checks when no command is set",
    )
    bootstrap_peers: str = Field(
        default="",
        description="Comma-separated bootstrap endpoints handed to the retrieval client",
    )

    # Rollout monitoring
    upgrade_max_wait_s: float = Field(
        default=3600.0,
        description="Maximum time to wait for a rollout to saturate the fleet",
        gt=0,
    )
    upgrade_poll_interval_s: float = Field(
        default=60.0,
        description="Interval between rollout polls",
        gt=0,
    )
    release_repo: str = Field(
        default="",
        description="GitHub repository (owner/name) publishing node releases",
    )
    github_api_url: str = Field(
        default="https://api.github.com",
        description="GitHub API base URL",
    )
    github_token: SecretStr | None = Field(
        default=None,
        description="Optional GitHub token for release lookups",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper_v

    @field_validator("node_service_template")
    @classmethod
    def validate_service_template(cls, v: str) -> str:
        """Service template must place the node index."""
        if "{index}" not in v:
            raise ValueError("node_service_template must contain '{index}'")
        return v

    @field_validator("restore_command")
    @classmethod
    def validate_restore_command(cls, v: str) -> str:
        """Restore template may only use {start}, {count} and {end}."""
        try:
            v.format(start=0, count=1, end=1)
        except (AttributeError, KeyError, IndexError, ValueError) as e:
            raise ValueError(
                f"restore_command has an unknown placeholder or bad braces: {e!r}"
            ) from e
        return v

    @property
    def bootstrap_peer_list(self) -> list[str]:
        """Bootstrap endpoints as a list."""
        return [p.strip() for p in self.bootstrap_peers.split(",") if p.strip()]

    @property
    def has_github_token(self) -> bool:
        """Check if a GitHub token is configured."""
        return self.github_token is not None

    def get_redacted_config(self) -> dict[str, str | int | float | bool | None]:
        """
        Get configuration dict with sensitive values redacted.
        Safe for logging and run manifests.
        """
        return {
            "topology_file": str(self.topology_file),
            "log_dir": str(self.log_dir),
            "log_level": self.log_level,
            "ssh_user": self.ssh_user,
            "ssh_connect_timeout_s": self.ssh_connect_timeout_s,
            "command_timeout_s": self.command_timeout_s,
            "node_service_template": self.node_service_template,
            "churn_settle_s": self.churn_settle_s,
            "verify_interval_s": self.verify_interval_s,
            "churn_interval_s": self.churn_interval_s,
            "verify_sample_size": self.verify_sample_size,
            "release_repo": self.release_repo,
            "github_auth_configured": self.has_github_token,
        }


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure single instance throughout a process.
    """
    return Settings()
