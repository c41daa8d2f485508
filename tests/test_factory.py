import pytest
from pydantic import ValidationError

from platformq_evm import (
    ConfigurationError,
    EvmFactory,
    EvmSettings,
    EvmType,
    RpcEvm,
    Web3Evm,
)

from .conftest import CONTRACT_ADDRESS, DATASET_ABI, PROVIDER_URL, SUBMITTER_KEY


class TestEvmFactory:
    """Test backend selection"""

    @pytest.mark.parametrize("evm_type,backend", [
        (EvmType.WEB3, Web3Evm),
        (EvmType.RPC, RpcEvm),
        ("web3", Web3Evm),
        ("rpc", RpcEvm),
    ])
    def test_create(self, evm_type, backend):
        evm = EvmFactory.create(evm_type, provider_url=PROVIDER_URL, contract_address=CONTRACT_ADDRESS,
                                abi=DATASET_ABI)

        assert isinstance(evm, backend)
        assert evm.get_evm_type() == EvmType(evm_type)

    def test_unknown_type(self):
        with pytest.raises(ConfigurationError, match="Unsupported EVM type"):
            EvmFactory.create("ethers")

    def test_unknown_argument(self):
        with pytest.raises(ConfigurationError):
            EvmFactory.create(EvmType.RPC, endpoint=PROVIDER_URL)

    def test_supported_types(self):
        assert set(EvmFactory.get_supported_types()) >= {EvmType.WEB3, EvmType.RPC}
        assert EvmFactory.is_type_supported(EvmType.RPC)

    def test_register_backend(self, monkeypatch):
        class TracingRpcEvm(RpcEvm):
            pass

        monkeypatch.setattr(EvmFactory, "_backends", dict(EvmFactory._backends))
        EvmFactory.register_backend(EvmType.RPC, TracingRpcEvm)

        assert isinstance(EvmFactory.create(EvmType.RPC), TracingRpcEvm)

    def test_from_settings(self):
        settings = EvmSettings(evm_type="rpc", provider_url=PROVIDER_URL, private_key=SUBMITTER_KEY,
                               rpc_token="lotus-token", rpc_max_attempts=4, confirmation_poll_interval=0.5)

        evm = EvmFactory.from_settings(settings, contract_address=CONTRACT_ADDRESS, abi=DATASET_ABI)

        assert isinstance(evm, RpcEvm)
        assert evm.get_contract_address() == CONTRACT_ADDRESS
        assert evm.get_rpc_provider().options.retry.max_attempts == 4
        assert evm.get_rpc_provider().engine.config.token == "lotus-token"

    def test_from_settings_overrides(self):
        settings = EvmSettings(evm_type="web3", provider_url=PROVIDER_URL)

        evm = EvmFactory.from_settings(settings, poll_interval=0.1)

        assert isinstance(evm, Web3Evm)


class TestEvmSettings:
    """Test environment configuration"""

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("PLATFORMQ_EVM_EVM_TYPE", "rpc")
        monkeypatch.setenv("PLATFORMQ_EVM_PROVIDER_URL", PROVIDER_URL)
        monkeypatch.setenv("PLATFORMQ_EVM_RPC_TOKEN", "lotus-token")
        monkeypatch.setenv("PLATFORMQ_EVM_RPC_TIMEOUT", "12.5")

        settings = EvmSettings()

        assert settings.evm_type == EvmType.RPC
        assert settings.rpc_timeout == 12.5
        assert "lotus-token" not in repr(settings)

    def test_defaults(self):
        settings = EvmSettings(_env_file=None)

        assert settings.evm_type == EvmType.WEB3
        assert settings.provider_url is None
        assert settings.confirmation_poll_interval == 2.0

    def test_rejects_websocket_url(self):
        with pytest.raises(ValidationError):
            EvmSettings(provider_url="wss://node.test")

    def test_engine_config(self):
        settings = EvmSettings(provider_url=PROVIDER_URL, rpc_token="lotus-token", rpc_timeout=5)

        config = settings.engine_config()

        assert config.base_url == PROVIDER_URL
        assert config.timeout == 5
        assert config.request_headers()["Authorization"] == "Bearer lotus-token"

    def test_engine_config_requires_url(self):
        with pytest.raises(ValueError):
            EvmSettings(_env_file=None).engine_config()

    def test_rpc_options(self):
        options = EvmSettings(rpc_max_attempts=5, rpc_retry_delay=0.25, rpc_retry_backoff=1.0).rpc_options()

        assert options.retry.max_attempts == 5
        assert options.retry.delay == 0.25
        assert options.retry.backoff == 1.0
