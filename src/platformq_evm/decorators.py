"""
Decorators for EVM operations and contract wrapper classes.
"""

import asyncio
import inspect
import logging
from functools import wraps
from typing import Any, Dict, Iterable, Optional, Union

from pydantic import ValidationError

from .models import coerce_options
from .types import ConfigurationError, ErrorInfo, ErrorKind, EvmError, EvmInput, Result
from .utils import redact

logger = logging.getLogger(__name__)


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors(include_input=False, include_url=False):
        loc = ".".join(str(part) for part in item.get("loc", ()))
        parts.append(f"{loc}: {item['msg']}" if loc else item["msg"])
    return "Invalid transaction options: " + "; ".join(parts)


def _prepare_arguments(signature: inspect.Signature, args, kwargs):
    try:
        bound = signature.bind(*args, **kwargs)
    except TypeError as e:
        raise ConfigurationError(str(e))
    bound.apply_defaults()
    arguments = bound.arguments
    if "input" in arguments and not isinstance(arguments["input"], EvmInput):
        raise ConfigurationError(f"Expected EvmInput, got {type(arguments['input']).__name__}")
    if "options" in arguments:
        arguments["options"] = coerce_options(arguments["options"])
    return bound


def evm_operation(default_kind: Optional[ErrorKind] = None):
    """
    Wrap a backend operation so it returns a Result.

    The wrapped function returns plain data and raises freely. ``input``
    arguments must be EvmInput, ``options`` arguments are coerced to
    EvmTransactionOptions. EvmError subclasses become failures of their own
    kind; other exceptions go through the backend's ``_classify_exception``
    with ``default_kind`` as fallback. Secrets are scrubbed from messages.
    """
    def decorator(func):
        signature = inspect.signature(func)

        def failure(self, error: Exception, bound) -> Result:
            if isinstance(error, ValidationError):
                error = ConfigurationError(_format_validation_error(error))
            elif not isinstance(error, EvmError):
                error = self._classify_exception(error, default_kind)
            options = bound.arguments.get("options") if bound is not None else None
            info = error.to_info()
            message = redact(info.message, self._secrets(options))
            logger.debug(f"{func.__name__} failed with {info.kind.value} error: {message}")
            return Result.failure(ErrorInfo(kind=info.kind, message=message, code=info.code, data=info.data))

        if asyncio.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(self, *args, **kwargs):
                bound = None
                try:
                    bound = _prepare_arguments(signature, (self,) + args, kwargs)
                    return Result.success(await func(*bound.args, **bound.kwargs))
                except Exception as e:
                    return failure(self, e, bound)
            return async_wrapper

        @wraps(func)
        def wrapper(self, *args, **kwargs):
            bound = None
            try:
                bound = _prepare_arguments(signature, (self,) + args, kwargs)
                return Result.success(func(*bound.args, **bound.kwargs))
            except Exception as e:
                return failure(self, e, bound)
        return wrapper

    return decorator


def with_call_method(method: str):
    """Build a wrapper method that performs a read-only call of ``method``.

    The owning class must expose the EVM client as ``self.evm``.
    """
    async def call_method(self, *params: Any, options=None) -> Result[Any]:
        return await self.evm.call(EvmInput(method, params), options)

    call_method.__name__ = method
    call_method.__doc__ = f"Call {method} on the contract"
    return call_method


def with_send_method(method: str):
    """Build a wrapper method that sends a transaction calling ``method``"""
    async def send_method(self, *params: Any, options) -> Result[Any]:
        return await self.evm.send(EvmInput(method, params), options)

    send_method.__name__ = method
    send_method.__doc__ = f"Send a {method} transaction to the contract"
    return send_method


def _as_mapping(methods: Union[Iterable[str], Dict[str, str]]) -> Dict[str, str]:
    if isinstance(methods, dict):
        return dict(methods)
    return {name: name for name in methods}


def with_methods(call: Union[Iterable[str], Dict[str, str]] = (),
                 send: Union[Iterable[str], Dict[str, str]] = ()):
    """
    Class decorator attaching call/send wrappers for contract functions.

    Names may be given as a list, or as a mapping of attribute name to
    contract function name. Attributes already defined on the class win.

    Usage:
        @with_methods(call=["getDataset"], send={"submit": "submitDataset"})
        class DatasetContract:
            def __init__(self, evm):
                self.evm = evm
    """
    def decorator(cls):
        for builder, methods in ((with_call_method, call), (with_send_method, send)):
            for attr, method in _as_mapping(methods).items():
                if attr in cls.__dict__:
                    continue
                setattr(cls, attr, builder(method))
        return cls
    return decorator
