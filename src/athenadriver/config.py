from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from athenadriver.util.env import get_env_bool, get_env_float, get_env_str

DEFAULT_WORKGROUP_NAME = "primary"
DEFAULT_DATABASE = "default"
DEFAULT_POLL_INTERVAL_SECONDS = 3.0
# Athena service limits for how long a statement may run.
DDL_QUERY_TIMEOUT_SECONDS = 600 * 60
DML_QUERY_TIMEOUT_SECONDS = 30 * 60
MAX_QUERY_STRING_LENGTH = 262144
DEFAULT_BYTES_SCANNED_CUTOFF_PER_QUERY = 10 * 1024 * 1024 * 1024


def default_workgroup_configuration() -> Dict[str, Any]:
    """Return the configuration used when the driver creates a workgroup remotely."""
    return {
        "BytesScannedCutoffPerQuery": DEFAULT_BYTES_SCANNED_CUTOFF_PER_QUERY,
        "EnforceWorkGroupConfiguration": False,
        "PublishCloudWatchMetricsEnabled": True,
        "RequesterPaysEnabled": False,
    }


@dataclass(frozen=True)
class WorkgroupConfig:
    """Workgroup a session submits to, plus what to create when it is missing."""

    name: str = DEFAULT_WORKGROUP_NAME
    configuration: Dict[str, Any] = field(default_factory=default_workgroup_configuration)
    tags: Dict[str, str] = field(default_factory=dict)

    @property
    def effective_name(self) -> str:
        """Return the name to submit with, falling back to the default workgroup."""
        return self.name or DEFAULT_WORKGROUP_NAME

    def tag_list(self) -> List[Dict[str, str]]:
        """Return tags in the Key/Value list shape the Athena API expects."""
        return [{"Key": key, "Value": value} for key, value in self.tags.items()]


@dataclass(frozen=True)
class ServiceLimitOverride:
    """Optional per-statement-type timeout overrides, in seconds."""

    ddl_query_timeout_seconds: Optional[float] = None
    dml_query_timeout_seconds: Optional[float] = None


@dataclass(frozen=True)
class DriverConfig:
    """Session configuration for Athena access."""

    output_location: str = ""
    region: Optional[str] = None
    database: str = DEFAULT_DATABASE
    workgroup: WorkgroupConfig = field(default_factory=WorkgroupConfig)
    allow_workgroup_remote_creation: bool = True
    read_only: bool = False
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    service_limit_override: Optional[ServiceLimitOverride] = None
    money_wise: bool = False

    def __post_init__(self) -> None:
        """Reject settings the poll loop cannot work with."""
        if self.poll_interval_seconds <= 0:
            raise ValueError(
                f"poll_interval_seconds must be positive, got {self.poll_interval_seconds}."
            )

    @classmethod
    def from_env(cls) -> "DriverConfig":
        """Load driver config from environment variables."""
        region = get_env_str("AWS_REGION")
        output_location = get_env_str("ATHENA_OUTPUT_LOCATION")

        missing = [
            name
            for name, value in {
                "AWS_REGION": region,
                "ATHENA_OUTPUT_LOCATION": output_location,
            }.items()
            if not value
        ]
        if missing:
            missing_list = ", ".join(missing)
            raise ValueError(
                f"Athena driver missing required config: {missing_list}. "
                "Set AWS_REGION and ATHENA_OUTPUT_LOCATION."
            )

        ddl_timeout = get_env_float("ATHENA_DDL_QUERY_TIMEOUT_SECONDS")
        dml_timeout = get_env_float("ATHENA_DML_QUERY_TIMEOUT_SECONDS")
        override = None
        if ddl_timeout is not None or dml_timeout is not None:
            override = ServiceLimitOverride(
                ddl_query_timeout_seconds=ddl_timeout,
                dml_query_timeout_seconds=dml_timeout,
            )

        return cls(
            output_location=output_location,
            region=region,
            database=get_env_str("ATHENA_DATABASE", DEFAULT_DATABASE),
            workgroup=WorkgroupConfig(
                name=get_env_str("ATHENA_WORKGROUP", DEFAULT_WORKGROUP_NAME),
            ),
            allow_workgroup_remote_creation=get_env_bool(
                "ATHENA_WORKGROUP_REMOTE_CREATION", True
            ),
            read_only=get_env_bool("ATHENA_READ_ONLY", False),
            poll_interval_seconds=get_env_float(
                "ATHENA_POLL_INTERVAL_SECONDS", DEFAULT_POLL_INTERVAL_SECONDS
            ),
            service_limit_override=override,
            money_wise=get_env_bool("ATHENA_MONEY_WISE", False),
        )
