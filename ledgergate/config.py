"""Configuration for ledgergate components."""

from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class LedgergateConfig(BaseSettings):
    host: str = "0.0.0.0"
    port: int = 10000

    rpc_url: str = "https://s1.ripple.com:51234"
    stream_url: str = "wss://xrplcluster.com"

    allowed_origins: Annotated[tuple[str, ...], NoDecode] = (
        "https://xrbitcoincash.com",
        "https://www.xrbitcoincash.com",
        "https://xrbitcoincash.github.io",
    )

    rpc_timeout_seconds: float = 20.0
    max_body_bytes: int = 1024 * 1024

    stream_open_timeout_seconds: float = 10.0
    stream_close_timeout_seconds: float = 10.0
    stream_max_frame_bytes: int | None = 16 * 1024 * 1024

    model_config = SettingsConfigDict(env_prefix="ledgergate_", frozen=True)

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def split_origins(cls, value: object) -> object:
        # LEDGERGATE_ALLOWED_ORIGINS="https://a.example,https://b.example"
        if isinstance(value, str):
            return tuple(item.strip() for item in value.split(",") if item.strip())
        return value
