"""
Configuration management for the graph importer.

Uses Pydantic Settings for type-safe configuration with YAML file support
and environment variable overrides.
"""

from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class DataConfig(BaseModel):
    """Data paths configuration."""
    input_dir: Path = Field(default=Path("./data/social_network"))
    workload: str = Field(
        default="interactive",
        description="Bundled workload name or path to a workload YAML file"
    )
    output_dir: Path = Field(default=Path("./outputs"))


class LoadingConfig(BaseModel):
    """Concurrency and batching settings, constant for a run."""
    num_threads: int = Field(default=4, gt=0, description="Writer pool size")
    transaction_size: int = Field(default=1000, gt=0, description="Rows per commit")
    stats_interval: float = Field(default=5.0, gt=0, description="Seconds between progress reports")
    max_file_readers: Optional[int] = Field(
        default=None,
        gt=0,
        description="Cap on the reader pool; defaults to one reader per file"
    )
    drain_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Seconds to wait for a pool to drain before reporting it stalled"
    )
    field_delimiter: str = Field(default="|", min_length=1, max_length=1)


class StoreConfig(BaseModel):
    """Graph store backend selection."""
    backend: Literal["surreal", "memory"] = Field(default="surreal")


class SurrealConfig(BaseModel):
    """SurrealDB connection configuration."""
    host: str = Field(default="localhost")
    port: int = Field(default=8000)
    namespace: str = Field(default="ldbc")
    database: str = Field(default="snb")
    username: str = Field(default="root")
    password: str = Field(default="root")

    @property
    def url(self) -> str:
        """Get the WebSocket URL for SurrealDB."""
        return f"ws://{self.host}:{self.port}/rpc"

    def connection(self) -> Dict[str, Any]:
        """Connection settings in the form the SurrealDB store expects."""
        return {
            "url": self.url,
            "namespace": self.namespace,
            "database": self.database,
            "username": self.username,
            "password": self.password,
        }


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field(default="INFO")
    format: Optional[str] = Field(default=None, description="Console format; None for the default")
    console: bool = Field(default=True)
    file: bool = Field(default=True)


class ImporterConfig(BaseSettings):
    """
    Main importer configuration.

    Configuration is loaded from:
    1. Default values
    2. YAML config file (if provided)
    3. Environment variables (prefix: IMPORTER_, nested with __,
       e.g. IMPORTER_LOADING__NUM_THREADS=8)

    Later sources win.
    """
    name: str = Field(default="graph_importer")
    version: str = Field(default="1.0.0")

    data: DataConfig = Field(default_factory=DataConfig)
    loading: LoadingConfig = Field(default_factory=LoadingConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    surreal: SurrealConfig = Field(default_factory=SurrealConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    class Config:
        env_prefix = "IMPORTER_"
        env_nested_delimiter = "__"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # Environment overrides the YAML values passed in by load_config
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @property
    def logs_dir(self) -> Path:
        """Get the logs directory."""
        return self.data.output_dir / "logs"

    @property
    def report_path(self) -> Path:
        """Get the default import report path."""
        return self.data.output_dir / "import_report.md"


def load_config(config_path: Optional[Path] = None) -> ImporterConfig:
    """
    Load importer configuration from YAML file.

    Args:
        config_path: Path to YAML config file. If None, uses defaults.

    Returns:
        ImporterConfig instance with loaded settings.
    """
    if config_path is None:
        # Try default location
        default_path = Path("config/import_config.yaml")
        if default_path.exists():
            config_path = default_path

    if config_path and Path(config_path).exists():
        with open(config_path, "r") as f:
            yaml_config = yaml.safe_load(f) or {}

        importer_config = yaml_config.get("importer", {})

        # Plain dicts so environment values merge into each section
        return ImporterConfig(
            name=importer_config.get("name", "graph_importer"),
            version=importer_config.get("version", "1.0.0"),
            data=yaml_config.get("data") or {},
            loading=yaml_config.get("loading") or {},
            store=yaml_config.get("store") or {},
            surreal=yaml_config.get("surreal") or {},
            logging=yaml_config.get("logging") or {},
        )

    return ImporterConfig()
