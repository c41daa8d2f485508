"""
EVM client factory for creating backend-specific clients.
"""

import logging
from typing import Dict, Type, Any, List, Optional

from .config import EvmSettings
from .interfaces import IEvm
from .types import ConfigurationError, EvmType
from .adapters import RpcEvm, Web3Evm

logger = logging.getLogger(__name__)


class EvmFactory:
    """Factory for creating EVM clients"""

    # Mapping of backend types to client classes
    _backends: Dict[EvmType, Type[IEvm]] = {
        EvmType.WEB3: Web3Evm,
        EvmType.RPC: RpcEvm,
    }

    @classmethod
    def create(cls, evm_type: EvmType, **kwargs: Any) -> IEvm:
        """
        Create a client for the given backend.

        Args:
            evm_type: Backend to bind (an EvmType or its string value)
            **kwargs: Constructor arguments (provider_url, contract_address, abi, ...)

        Returns:
            Configured EVM client

        Raises:
            ConfigurationError: If the backend is unknown or the arguments are invalid
        """
        try:
            evm_type = EvmType(evm_type)
        except ValueError:
            raise ConfigurationError(f"Unsupported EVM type: {evm_type}")

        if evm_type not in cls._backends:
            raise ConfigurationError(f"No backend registered for {evm_type.value}")

        backend_class = cls._backends[evm_type]
        try:
            return backend_class(**kwargs)
        except TypeError as e:
            raise ConfigurationError(f"Invalid arguments for {backend_class.__name__}: {e}")

    @classmethod
    def from_settings(cls, settings: Optional[EvmSettings] = None,
                      contract_address: Optional[str] = None,
                      abi: Optional[List[Dict[str, Any]]] = None,
                      **kwargs: Any) -> IEvm:
        """Create a client from environment settings, overridable per call"""
        settings = settings or EvmSettings()
        params = {
            "provider_url": settings.provider_url,
            "contract_address": contract_address,
            "abi": abi,
            "private_key": settings.private_key.get_secret_value() if settings.private_key else None,
            "rpc_options": settings.rpc_options(),
            "rpc_token": settings.rpc_token.get_secret_value() if settings.rpc_token else None,
            "poll_interval": settings.confirmation_poll_interval,
            "rpc_timeout": settings.rpc_timeout,
        }
        params.update(kwargs)
        return cls.create(settings.evm_type, **params)

    @classmethod
    def register_backend(cls, evm_type: EvmType, backend_class: Type[IEvm]):
        """
        Register a custom client implementation for a backend type.

        Args:
            evm_type: The backend type
            backend_class: The client class to use
        """
        cls._backends[evm_type] = backend_class
        logger.info(f"Registered backend {backend_class.__name__} for {evm_type.value}")

    @classmethod
    def get_supported_types(cls) -> List[EvmType]:
        """Get list of supported backend types"""
        return list(cls._backends.keys())

    @classmethod
    def is_type_supported(cls, evm_type: EvmType) -> bool:
        """Check if a backend type is supported"""
        return evm_type in cls._backends
