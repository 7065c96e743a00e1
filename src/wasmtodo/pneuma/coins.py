"""
Coins, gas prices and gas policy.

Amounts are kept as integer strings (exact precision). Gas prices are
decimals, e.g. "0.025ujunox".
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional

from cosmpy.protos.cosmos.base.v1beta1.coin_pb2 import Coin as CoinProto

from ..utils import decimal_ceil


_DENOM = r"[a-zA-Z][a-zA-Z0-9/:._-]{2,127}"
_COIN_RE = re.compile(rf"^(\d+)({_DENOM})$")
_GAS_PRICE_RE = re.compile(rf"^(\d+(?:\.\d+)?|\.\d+)({_DENOM})$")

DEFAULT_GAS_MULTIPLIER = 1.3


@dataclass(frozen=True)
class Coin:
    denom: str
    amount: str

    def __post_init__(self) -> None:
        amount = str(self.amount)
        if not amount.isdigit():
            raise ValueError(f"Coin amount must be a non-negative integer: {self.amount!r}")
        if not re.match(rf"^{_DENOM}$", self.denom):
            raise ValueError(f"Invalid denom: {self.denom!r}")
        object.__setattr__(self, "amount", str(int(amount)))

    @classmethod
    def parse(cls, value: str) -> "Coin":
        """Parse "10000ujunox" into a Coin."""
        match = _COIN_RE.match(value.strip())
        if not match:
            raise ValueError(f"Invalid coin string: {value!r}")
        return cls(denom=match.group(2), amount=match.group(1))

    @classmethod
    def from_proto(cls, proto: CoinProto) -> "Coin":
        return cls(denom=proto.denom, amount=proto.amount or "0")

    def to_proto(self) -> CoinProto:
        return CoinProto(denom=self.denom, amount=self.amount)

    def to_dict(self) -> dict[str, str]:
        return {"denom": self.denom, "amount": self.amount}

    def __int__(self) -> int:
        return int(self.amount)

    def __str__(self) -> str:
        return f"{self.amount}{self.denom}"


def parse_coins(value: str) -> list[Coin]:
    """Parse a comma separated coin list ("10ujunox,5uatom")."""
    return [Coin.parse(part) for part in value.split(",") if part.strip()]


def coins_to_proto(coins: Iterable[Coin]) -> list[CoinProto]:
    # the chain expects coins sorted by denom
    return [c.to_proto() for c in sorted(coins, key=lambda c: c.denom)]


@dataclass(frozen=True)
class GasPrice:
    amount: Decimal
    denom: str

    @classmethod
    def parse(cls, value: str) -> "GasPrice":
        match = _GAS_PRICE_RE.match(value.strip())
        if not match:
            raise ValueError(
                f"Invalid gas price {value!r}; expected <decimal><denom>, e.g. 0.025ujunox"
            )
        try:
            amount = Decimal(match.group(1))
        except InvalidOperation as exc:
            raise ValueError(f"Invalid gas price amount: {value!r}") from exc
        return cls(amount=amount, denom=match.group(2))

    def fee_for(self, gas_limit: int) -> Coin:
        return Coin(denom=self.denom, amount=str(decimal_ceil(self.amount * gas_limit)))

    def __str__(self) -> str:
        return f"{self.amount}{self.denom}"


@dataclass(frozen=True)
class GasPolicy:
    """
    How gas and fees are set for a transaction.

    - auto:  gas estimated by simulation x multiplier, no fee attached
    - fixed: gas estimated by simulation x multiplier, fee = ceil(gas * price)

    ``gas_limit`` skips simulation and uses the given limit as-is.
    """
    price: Optional[GasPrice] = None
    multiplier: float = DEFAULT_GAS_MULTIPLIER
    gas_limit: Optional[int] = None

    @classmethod
    def auto(cls, multiplier: float = DEFAULT_GAS_MULTIPLIER) -> "GasPolicy":
        return cls(price=None, multiplier=multiplier)

    @classmethod
    def fixed(cls, price: GasPrice | str, multiplier: float = DEFAULT_GAS_MULTIPLIER) -> "GasPolicy":
        if isinstance(price, str):
            price = GasPrice.parse(price)
        return cls(price=price, multiplier=multiplier)

    @classmethod
    def parse(cls, value: Optional[str]) -> "GasPolicy":
        """Build a policy from configuration: absent or empty means auto."""
        if value is None or not value.strip() or value.strip().lower() == "auto":
            return cls.auto()
        return cls.fixed(value)

    @property
    def is_auto(self) -> bool:
        return self.price is None

    def with_limit(self, gas_limit: int) -> "GasPolicy":
        return GasPolicy(price=self.price, multiplier=self.multiplier, gas_limit=gas_limit)

    def limit_from_estimate(self, estimate: int) -> int:
        return decimal_ceil(Decimal(estimate) * Decimal(str(self.multiplier)))

    def fee(self, gas_limit: int) -> list[Coin]:
        if self.price is None:
            return []
        return [self.price.fee_for(gas_limit)]
