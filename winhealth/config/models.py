"""Pydantic configuration models for the Windows health collector."""

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Any, Dict, List, Literal, Optional


DEFAULT_PROBES = [
    "system_info",
    "cpu",
    "memory",
    "disk",
    "network",
    "services",
    "processes",
    "ports",
    "event_logs",
    "windows_update",
    "performance_counters",
]


class ProcessCheck(BaseModel):
    """A process expected to be running. Critical processes escalate when absent."""
    model_config = ConfigDict(frozen=True)

    name: str
    critical: bool = False


class ThresholdConfig(BaseModel):
    """
    Health thresholds and check lists, resolved per environment.

    Flat on purpose: an environment override replaces whole keys.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    cpu_warning: float = Field(default=80, ge=0, le=100)
    memory_warning: float = Field(default=80, ge=0, le=100)
    memory_critical: float = Field(default=90, ge=0, le=100)
    disk_warning: float = Field(default=80, ge=0, le=100)
    disk_critical: float = Field(default=90, ge=0, le=100)
    event_log_hours: int = Field(default=24, ge=1)
    check_services: List[str] = Field(
        default_factory=lambda: ["Spooler", "BITS", "Themes", "RpcEptMapper", "Winmgmt"]
    )
    check_processes: List[ProcessCheck] = Field(
        default_factory=lambda: [
            ProcessCheck(name="explorer"),
            ProcessCheck(name="winlogon"),
            ProcessCheck(name="csrss"),
        ]
    )
    check_ports: List[int] = Field(default_factory=lambda: [3389, 5985, 5986])
    fail_on_critical: bool = False

    @field_validator('check_processes', mode='before')
    @classmethod
    def coerce_process_names(cls, v: Any) -> Any:
        """Allow plain process names alongside {name, critical} entries."""
        if isinstance(v, list):
            return [{"name": item} if isinstance(item, str) else item for item in v]
        return v

    @field_validator('check_ports')
    @classmethod
    def validate_ports(cls, v: List[int]) -> List[int]:
        for port in v:
            if not 1 <= port <= 65535:
                raise ValueError(f'Port out of range: {port}')
        return v

    @model_validator(mode='after')
    def warning_not_above_critical(self) -> "ThresholdConfig":
        """Ensure each warning bound does not exceed its critical bound."""
        if self.memory_warning > self.memory_critical:
            raise ValueError('memory_warning must not exceed memory_critical')
        if self.disk_warning > self.disk_critical:
            raise ValueError('disk_warning must not exceed disk_critical')
        return self


class TargetConfig(BaseModel):
    """Connection identity of one monitored Windows host."""
    model_config = ConfigDict(frozen=True)

    name: str
    host: str
    environment: Optional[str] = None
    connection: Literal["winrm", "ssh"] = "winrm"
    port: Optional[int] = None
    username: str = "Administrator"
    password: Optional[str] = None  # usually ${ENV_VAR}
    ssh_key_path: Optional[str] = None
    winrm_transport: str = "ntlm"
    winrm_scheme: Literal["http", "https"] = "http"
    server_cert_validation: Literal["ignore", "validate"] = "ignore"

    @property
    def effective_port(self) -> int:
        if self.port is not None:
            return self.port
        if self.connection == "ssh":
            return 22
        return 5986 if self.winrm_scheme == "https" else 5985


class MonitoringConfig(BaseModel):
    """Monitoring schedule configuration."""
    schedule: str = "0 */6 * * *"  # Cron syntax

    @field_validator('schedule')
    @classmethod
    def validate_cron(cls, v: str) -> str:
        """Basic cron syntax validation."""
        parts = v.split()
        if len(parts) != 5:
            raise ValueError('Cron expression must have 5 parts: minute hour day month weekday')
        return v


class CollectionConfig(BaseModel):
    """Concurrency, timeout and retry policy for one run."""
    max_workers: int = Field(default=10, ge=1)
    probe_timeout_seconds: float = Field(default=60.0, gt=0)
    host_timeout_seconds: float = Field(default=300.0, gt=0)
    run_timeout_seconds: Optional[float] = Field(default=None, gt=0)
    retry_attempts: int = Field(default=2, ge=0)
    retry_base_delay_seconds: float = Field(default=2.0, ge=0)
    retry_max_delay_seconds: float = Field(default=30.0, ge=0)
    probes: List[str] = Field(default_factory=lambda: list(DEFAULT_PROBES))

    @field_validator('probes')
    @classmethod
    def validate_probe_names(cls, v: List[str]) -> List[str]:
        unknown = [name for name in v if name not in DEFAULT_PROBES]
        if unknown:
            raise ValueError(f"Unknown probe(s): {', '.join(unknown)}")
        if not v:
            raise ValueError('At least one probe must be enabled')
        return v


class ReportingConfig(BaseModel):
    """Where per-host JSON reports are written."""
    output_dir: str = "./reports"
    write_files: bool = True


class HealthCheckConfig(BaseModel):
    """Root configuration model for the health collector."""
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    collection: CollectionConfig = Field(default_factory=CollectionConfig)
    reporting: ReportingConfig = Field(default_factory=ReportingConfig)
    defaults: ThresholdConfig = Field(default_factory=ThresholdConfig)
    environments: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    targets: List[TargetConfig] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_environments(self) -> "HealthCheckConfig":
        """Resolve every environment once so bad overrides fail at load time."""
        for name in self.environments:
            self.thresholds_for_environment(name)

        seen = set()
        for target in self.targets:
            if target.name in seen:
                raise ValueError(f'Duplicate target name: {target.name}')
            seen.add(target.name)
            if target.environment is not None and target.environment not in self.environments:
                raise ValueError(
                    f'Target {target.name} references undefined environment: {target.environment}'
                )
        return self

    def thresholds_for_environment(self, environment: Optional[str]) -> ThresholdConfig:
        """
        Resolve thresholds for an environment.

        Environment keys fully replace global keys of the same name; lists
        are replaced, never merged.
        """
        if environment is None:
            return self.defaults
        overrides = self.environments.get(environment, {})
        merged: Dict[str, Any] = self.defaults.model_dump()
        merged.update(overrides)
        return ThresholdConfig(**merged)

    def thresholds_for(self, target: TargetConfig) -> ThresholdConfig:
        return self.thresholds_for_environment(target.environment)
