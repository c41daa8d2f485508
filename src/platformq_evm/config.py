"""
EVM client configuration.
"""

from typing import Optional

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .types import EvmType
from .rpc import RPCEngineConfig, RPCOptions, RPCRetryOptions


class EvmSettings(BaseSettings):
    """EVM client settings, read from ``PLATFORMQ_EVM_*`` environment variables"""

    model_config = SettingsConfigDict(env_prefix="PLATFORMQ_EVM_", env_file=".env", extra="ignore")

    # Backend
    evm_type: EvmType = EvmType.WEB3
    provider_url: Optional[str] = None

    # Credentials
    private_key: Optional[SecretStr] = None
    rpc_token: Optional[SecretStr] = None

    # RPC engine
    rpc_timeout: float = 30.0
    rpc_max_attempts: int = 3
    rpc_retry_delay: float = 0.5
    rpc_retry_backoff: float = 2.0

    # Confirmations
    confirmation_poll_interval: float = 2.0

    @field_validator("provider_url")
    @classmethod
    def check_provider_url(cls, v):
        if v is not None and not v.startswith(("http://", "https://")):
            raise ValueError(f"provider_url must be http(s): {v}")
        return v

    def engine_config(self) -> RPCEngineConfig:
        if not self.provider_url:
            raise ValueError("provider_url is not configured")
        token = self.rpc_token.get_secret_value() if self.rpc_token else None
        return RPCEngineConfig(self.provider_url, token=token, timeout=self.rpc_timeout)

    def rpc_options(self) -> RPCOptions:
        retry = RPCRetryOptions(
            max_attempts=self.rpc_max_attempts,
            delay=self.rpc_retry_delay,
            backoff=self.rpc_retry_backoff,
        )
        return RPCOptions(retry=retry)

