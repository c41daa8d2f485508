"""
Utility functions for EVM operations.
"""

import json
from decimal import Decimal, InvalidOperation, localcontext
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from eth_utils import is_address, is_hex, to_checksum_address
from eth_utils.abi import collapse_if_tuple
from eth_utils.currency import units
from eth_abi.grammar import TupleType, parse as parse_abi_type

from .types import ConfigurationError, EncodingError

SELECTOR_HEX_LENGTH = 10  # "0x" + 4 bytes
MAX_WEI = 2 ** 256 - 1


def validate_address(address: str) -> bool:
    """Validate EVM address format (checksum enforced for mixed case)"""
    return isinstance(address, str) and is_address(address)


def normalize_address(address: str) -> str:
    """Normalize address to its checksummed form"""
    if not validate_address(address):
        raise ConfigurationError(f"Invalid address: {address}")
    return to_checksum_address(address)


def to_wei_decimal(number: Union[int, float, str, Decimal], unit: str) -> Decimal:
    """Exact wei amount as a Decimal, rejecting unknown units and fractional wei"""
    unit_value = units.get(str(unit).lower())
    if unit_value is None:
        raise EncodingError(f"Unknown unit: {unit}")
    if isinstance(number, bool):
        raise EncodingError(f"Invalid amount: {number!r}")
    try:
        amount = Decimal(str(number)) if isinstance(number, float) else Decimal(number)
    except (InvalidOperation, TypeError, ValueError):
        raise EncodingError(f"Invalid amount: {number!r}")
    if not amount.is_finite():
        raise EncodingError(f"Invalid amount: {number!r}")
    with localcontext() as ctx:
        ctx.prec = 999
        wei = amount * unit_value
    if wei != wei.to_integral_value():
        raise EncodingError(f"{number} {unit} is not a whole number of wei")
    if wei < 0 or wei > MAX_WEI:
        raise EncodingError(f"{number} {unit} is outside the uint256 wei range")
    return wei


def load_abi_fragment(fragment: Union[str, Dict[str, Any]]) -> Dict[str, Any]:
    """Accept an ABI fragment as a dict or JSON text"""
    if isinstance(fragment, str):
        try:
            fragment = json.loads(fragment)
        except ValueError as e:
            raise EncodingError(f"Invalid ABI JSON: {e}")
    if not isinstance(fragment, dict):
        raise EncodingError("ABI fragment must be an object")
    return fragment


def abi_to_signature(fragment: Union[str, Dict[str, Any]]) -> str:
    """Canonical ``name(type,...)`` signature of a function fragment.

    Parameter names, outputs and mutability do not take part, so equivalent
    fragments produce the same signature.
    """
    fragment = load_abi_fragment(fragment)
    if fragment.get("type", "function") != "function":
        raise EncodingError(f"Not a function fragment: {fragment.get('type')}")
    name = fragment.get("name")
    if not isinstance(name, str) or not name:
        raise EncodingError("Function fragment has no name")
    inputs = fragment.get("inputs", [])
    if not isinstance(inputs, list):
        raise EncodingError(f"Invalid inputs for {name}")
    try:
        types = [collapse_if_tuple(dict(param)) for param in inputs]
    except (KeyError, TypeError, ValueError) as e:
        raise EncodingError(f"Invalid parameter in {name}: {e}")
    return f"{name}({','.join(types)})"


def input_types(fragment: Dict[str, Any]) -> List[str]:
    return [collapse_if_tuple(dict(param)) for param in fragment.get("inputs", [])]


def output_types(fragment: Dict[str, Any]) -> List[str]:
    return [collapse_if_tuple(dict(param)) for param in fragment.get("outputs", [])]


def find_function_abi(abi: List[Dict[str, Any]], name: str,
                      arg_count: Optional[int] = None) -> Dict[str, Any]:
    """Find a function fragment by name, resolving overloads by argument count"""
    candidates = [
        item for item in abi
        if item.get("type", "function") == "function" and item.get("name") == name
    ]
    if arg_count is not None:
        candidates = [item for item in candidates if len(item.get("inputs", [])) == arg_count]
    if not candidates:
        raise EncodingError(f"Function {name} not found in ABI")
    if len(candidates) > 1:
        raise EncodingError(f"Function {name} is ambiguous: {len(candidates)} overloads")
    return candidates[0]


def get_function_signature_from_txinput(tx_input: str) -> str:
    """Selector part of calldata, e.g. ``0xa9059cbb``"""
    if not isinstance(tx_input, str) or not tx_input.startswith("0x") or not is_hex(tx_input):
        raise EncodingError("Calldata must be a 0x-prefixed hex string")
    if len(tx_input) < SELECTOR_HEX_LENGTH or len(tx_input) % 2:
        raise EncodingError(f"Calldata too short or odd length: {len(tx_input)} chars")
    return tx_input[:SELECTOR_HEX_LENGTH].lower()


def get_encoded_params_from_txinput(tx_input: str) -> str:
    """Argument part of calldata (everything after the selector)"""
    get_function_signature_from_txinput(tx_input)
    return "0x" + tx_input[SELECTOR_HEX_LENGTH:]


def normalize_value(value: Any) -> Any:
    """Convert decoded ABI values to plain Python types shared by all backends"""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, (list, tuple)):
        return tuple(normalize_value(item) for item in value)
    if isinstance(value, dict):
        return {key: normalize_value(item) for key, item in value.items()}
    return value


def normalize_outputs(values: Any) -> Any:
    """Collapse the sequence of decoded outputs: none -> None, one -> value, many -> tuple"""
    values = tuple(values)
    if not values:
        return None
    if len(values) == 1:
        return normalize_value(values[0])
    return normalize_value(values)


def map_abi_addresses(abi_type: Union[str, Any], value: Any, leaf: Callable[[Any], Any]) -> Any:
    """Apply ``leaf`` to every address inside a value of ``abi_type``"""
    if isinstance(abi_type, str):
        abi_type = parse_abi_type(abi_type)
    if abi_type.is_array or isinstance(abi_type, TupleType):
        if not isinstance(value, (list, tuple)):
            raise EncodingError(f"Expected a sequence for {abi_type.to_type_str()}, got {type(value).__name__}")
        if abi_type.is_array:
            return tuple(map_abi_addresses(abi_type.item_type, item, leaf) for item in value)
        return tuple(map_abi_addresses(component, item, leaf)
                     for component, item in zip(abi_type.components, value))
    if abi_type.base == "address":
        return leaf(value)
    return value


def checksum_abi_values(types: List[str], values: Any) -> Tuple[Any, ...]:
    """Checksum every address in decoded ABI values"""
    return tuple(map_abi_addresses(abi_type, value, to_checksum_address)
                 for abi_type, value in zip(types, values))


def redact(message: str, secrets: List[str]) -> str:
    """Remove secret values (private keys, tokens) from a message"""
    for secret in secrets:
        if not secret:
            continue
        message = message.replace(secret, "***")
        bare = secret[2:] if secret.startswith("0x") else secret
        if bare:
            message = message.replace(bare, "***")
    return message
