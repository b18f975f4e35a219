"""Environment-driven settings for the merchant relay.

The relay loads one `RelaySettings` at startup and hands it to the gateway
client and the request handlers. Values come from environment variables (see
`.env.example`).
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class RelaySettings(BaseSettings):
    """Typed, read-only view of runtime configuration."""

    service_name: str = "merchant-relay"
    log_level: str = "INFO"
    scb_base_url: str = "https://api-sandbox.partners.scb"
    scb_path_prefix: str = "/partners/sandbox/v1"
    scb_api_key: str = ""
    scb_biller_id: str = ""
    scb_accept_language: str = "EN"
    default_sending_bank: str = "014"
    upstream_timeout_seconds: float = 10.0
    broadcast_send_timeout_seconds: float = 5.0
    otel_exporter_otlp_endpoint: str | None = None
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", frozen=True)


settings = RelaySettings()
