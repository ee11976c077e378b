"""Runtime configuration for sniper-metrics."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven runtime settings."""

    model_config = SettingsConfigDict(env_prefix="SNIPER_METRICS_", env_file=".env", extra="ignore")

    app_name: str = "sniper-metrics"
    log_level: str = "INFO"
    base_url: str = Field(
        default="http://report.mcstats.org",
        description="Collector endpoint that receives plugin reports.",
    )
    report_path: str = "/plugin/{plugin}"
    protocol_revision: int = 7
    ping_interval_seconds: float = 15 * 60
    tick_seconds: float = 0.1
    config_path: str = Field(
        default="plugins/PluginMetrics/config.properties",
        description="Properties file holding guid, opt-out and debug flags.",
    )
    bypass_proxy: bool = False

    # Values reported by the standalone CLI host.
    plugin_name: str = "VoxelSniper"
    plugin_version: str = "dev"
    server_version: str = "unknown"
    players_online: int = 0


settings = Settings()
