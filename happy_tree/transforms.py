"""
Transforms: deterministic maps NodeId -> NodeId that define a graph's forward edges.

Public API
----------
DigitPowerSum(base, power)      sum of each base-`base` digit raised to `power`
SquareMod(modulus)              (n * n) mod modulus
get_transform(name, domain_size) -> transform
TRANSFORM_NAMES

Every transform is a plain callable on int and also offers `apply_array`
for a numpy vector of ids, which the graph builder prefers when present.
"""

from __future__ import annotations

from typing import Callable, Dict, List

import numpy as np

from .errors import ConfigError


class DigitPowerSum:
    """
    F(n; p, b): the digits of n in base b, each raised to p, summed.

    Leading zeros contribute nothing, so the fixed display width of the ids
    does not matter. Digit powers come from a table indexed by digit value.
    """

    def __init__(self, base: int = 16, power: int = 2) -> None:
        if base < 2:
            raise ConfigError(f"base must be >= 2, got {base}")
        if power < 1:
            raise ConfigError(f"power must be >= 1, got {power}")
        self.base = int(base)
        self.power = int(power)
        self._table: List[int] = [d ** self.power for d in range(self.base)]
        self._table_arr = np.asarray(self._table, dtype=np.int64)

    def __call__(self, n: int) -> int:
        table, base = self._table, self.base
        total = 0
        while n > 0:
            n, d = divmod(n, base)
            total += table[d]
        return total

    def apply_array(self, ids: np.ndarray) -> np.ndarray:
        rest = np.asarray(ids, dtype=np.int64).copy()
        out = np.zeros_like(rest)
        while rest.any():
            out += self._table_arr[rest % self.base]
            rest //= self.base
        return out

    def __repr__(self) -> str:
        return f"DigitPowerSum(base={self.base}, power={self.power})"


class SquareMod:
    def __init__(self, modulus: int) -> None:
        if modulus < 1:
            raise ConfigError(f"modulus must be >= 1, got {modulus}")
        self.modulus = int(modulus)

    def __call__(self, n: int) -> int:
        return (n * n) % self.modulus

    def apply_array(self, ids: np.ndarray) -> np.ndarray:
        ids = np.asarray(ids, dtype=np.int64)
        return (ids * ids) % self.modulus

    def __repr__(self) -> str:
        return f"SquareMod(modulus={self.modulus})"


_FACTORIES: Dict[str, Callable[[int], Callable[[int], int]]] = {
    "hex-square-sum": lambda domain_size: DigitPowerSum(base=16, power=2),
    "digit-cube-sum": lambda domain_size: DigitPowerSum(base=10, power=3),
    "square-mod": lambda domain_size: SquareMod(domain_size),
}

TRANSFORM_NAMES = tuple(sorted(_FACTORIES))


def get_transform(name: str, domain_size: int) -> Callable[[int], int]:
    try:
        factory = _FACTORIES[name]
    except KeyError:
        raise ConfigError(f"Unknown transform '{name}'. Allowed: {list(TRANSFORM_NAMES)}") from None
    return factory(int(domain_size))
