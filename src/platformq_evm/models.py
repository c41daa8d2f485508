"""
Transaction envelope options for EVM operations.
"""

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator, model_validator

from .utils import normalize_address


class EvmTransactionOptions(BaseModel):
    """Options for an EVM transaction.

    Field names are snake_case; the camelCase names used on the wire
    (``from``, ``gasPrice``, ``maxFeePerGas`` ...) are accepted as aliases.
    Absent fields are filled in by the backend.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    from_address: Optional[str] = Field(None, alias="from")
    to: Optional[str] = None
    value: Optional[int] = None
    gas: Optional[int] = Field(None, ge=0)
    gas_limit: Optional[int] = Field(None, alias="gasLimit", ge=0)
    gas_price: Optional[int] = Field(None, alias="gasPrice", ge=0)
    max_fee_per_gas: Optional[int] = Field(None, alias="maxFeePerGas", ge=0)
    max_priority_fee_per_gas: Optional[int] = Field(None, alias="maxPriorityFeePerGas", ge=0)
    nonce: Optional[int] = Field(None, ge=0)
    data: Optional[str] = None
    type: Optional[int] = None
    input: Optional[str] = None
    chain_id: Optional[int] = Field(None, alias="chainId")
    network_id: Optional[int] = Field(None, alias="networkId")
    confirmations: int = Field(0, ge=0)
    private_key: Optional[SecretStr] = Field(None, alias="privateKey")

    @field_validator("from_address", "to")
    @classmethod
    def checksum_address(cls, v):
        if v is None:
            return v
        return normalize_address(v)

    @field_validator("value", mode="before")
    @classmethod
    def parse_value(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return int(v, 16) if v.lower().startswith("0x") else int(v)
        return v

    @model_validator(mode="after")
    def check_fee_model(self):
        eip1559 = (self.max_fee_per_gas, self.max_priority_fee_per_gas)
        if self.gas_price is not None and any(fee is not None for fee in eip1559):
            raise ValueError("gas_price cannot be combined with max_fee_per_gas/max_priority_fee_per_gas")
        if (eip1559[0] is None) != (eip1559[1] is None):
            raise ValueError("max_fee_per_gas and max_priority_fee_per_gas must be set together")
        if self.gas is not None and self.gas_limit is not None and self.gas != self.gas_limit:
            raise ValueError(f"gas ({self.gas}) and gas_limit ({self.gas_limit}) disagree")
        return self

    @property
    def gas_amount(self) -> Optional[int]:
        return self.gas if self.gas is not None else self.gas_limit

    @property
    def secret_key(self) -> Optional[str]:
        return self.private_key.get_secret_value() if self.private_key else None

    def to_tx_params(self) -> Dict[str, Any]:
        """Transaction dict in the camelCase shape used by web3 and eth-account"""
        params = {
            "from": self.from_address,
            "to": self.to,
            "value": self.value,
            "gas": self.gas_amount,
            "gasPrice": self.gas_price,
            "maxFeePerGas": self.max_fee_per_gas,
            "maxPriorityFeePerGas": self.max_priority_fee_per_gas,
            "nonce": self.nonce,
            "chainId": self.chain_id,
            "type": self.type,
        }
        return {key: value for key, value in params.items() if value is not None}


DEFAULT_TRANSACTION_OPTIONS = EvmTransactionOptions(confirmations=0)


def coerce_options(options: Union[EvmTransactionOptions, Dict[str, Any], None]) -> EvmTransactionOptions:
    """Accept options as a model or a plain dict"""
    if options is None:
        return DEFAULT_TRANSACTION_OPTIONS
    if isinstance(options, EvmTransactionOptions):
        return options
    return EvmTransactionOptions.model_validate(options)


def is_evm_transaction_options(obj: Any) -> bool:
    """Check whether an object is (or validates as) EvmTransactionOptions"""
    if isinstance(obj, EvmTransactionOptions):
        return True
    if not isinstance(obj, dict):
        return False
    try:
        EvmTransactionOptions.model_validate(obj)
    except (ValidationError, ValueError):
        return False
    return True
