"""
Player Resource Pool

Owns the five hardware capacity/usage pairs (memory, CPU, bandwidth, computing,
storage), virtual currency and mood of one player session. State is mutated
only through allocate/release/upgrade/spend/earn/generate operations; every
check-then-mutate call is all-or-nothing.

Usage is tracked in Decimal so an allocate/release pair of the same amounts
restores the previous usage exactly.
"""

import logging
import math
import numbers
import random
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional, Tuple

from config import CONFIG
from results import ActionResult

logger = logging.getLogger(__name__)

_ZERO = Decimal(0)
_HUNDRED = Decimal(100)


class ResourceType(str, Enum):
    MEMORY = "memory"
    CPU = "cpu"
    BANDWIDTH = "bandwidth"
    COMPUTING = "computing"
    STORAGE = "storage"


# The four resources jobs and skills reserve; storage fills through data generation.
ALLOCATABLE = (ResourceType.MEMORY, ResourceType.CPU, ResourceType.BANDWIDTH, ResourceType.COMPUTING)


class IdentityType(str, Enum):
    """Starting profile chosen at character creation."""

    CONSCIOUSNESS_LINKER = "consciousness_linker"
    FULL_VIRTUAL = "full_virtual"


def to_decimal(value: float, name: str = "amount") -> Decimal:
    """Convert a non-negative finite number to Decimal via its shortest repr."""
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise TypeError(f"{name} must be a number, got {type(value).__name__}")
    if isinstance(value, Decimal):
        result = value
    else:
        if not math.isfinite(value):
            raise ValueError(f"{name} must be finite, got {value}")
        result = Decimal(repr(float(value)))
    if result < 0:
        raise ValueError(f"{name} cannot be negative, got {value}")
    return result


def to_coins(amount: float) -> int:
    """Round a fractional coin amount to whole virtual coins."""
    return int(round(amount))


def _coin_amount(amount: int, action: str) -> int:
    if isinstance(amount, bool) or not isinstance(amount, numbers.Integral):
        raise TypeError(f"{action} amount must be whole coins, got {amount!r}")
    if amount < 0:
        raise ValueError(f"{action} amount cannot be negative, got {amount}")
    return int(amount)


def connection_fee(identity: IdentityType, rng: Optional[random.Random] = None) -> int:
    """Coins a player of this identity pays per tick to stay connected."""
    if identity is not IdentityType.CONSCIOUSNESS_LINKER:
        return 0
    rng = rng or random
    cfg = CONFIG.resources
    return rng.randint(cfg.connection_fee_min, cfg.connection_fee_max)


@dataclass(frozen=True, slots=True)
class ProvidedResources:
    """
    Memory/CPU/bandwidth/computing tuple.

    Used for resources a human proxy offers to a company and for the
    reservation a job holds while it is being worked.
    """

    memory: float = 0.0
    cpu: float = 0.0
    bandwidth: float = 0.0
    computing: float = 0.0

    def __post_init__(self):
        for name in ("memory", "cpu", "bandwidth", "computing"):
            value = getattr(self, name)
            if value < 0:
                raise ValueError(f"{name} cannot be negative, got {value}")

    def resource_value(self) -> float:
        """Coin value of the bundle (memory 10/GB, CPU 20/core, bandwidth 0.1/Mbps, computing 5/pt)."""
        cfg = CONFIG.employees
        return (
            self.memory * cfg.memory_value
            + self.cpu * cfg.cpu_value
            + self.bandwidth * cfg.bandwidth_value
            + self.computing * cfg.computing_value
        )

    def is_empty(self) -> bool:
        return self.memory <= 0 and self.cpu <= 0 and self.bandwidth <= 0 and self.computing <= 0

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.memory, self.cpu, self.bandwidth, self.computing)

    def to_dict(self) -> Dict[str, float]:
        return {
            "memory": self.memory,
            "cpu": self.cpu,
            "bandwidth": self.bandwidth,
            "computing": self.computing,
        }


# A job's reservation has the same shape as what a proxy provides.
ResourceRequirement = ProvidedResources


class ResourcePool:
    """
    Resource capacities and usages for a single player session.

    Invariant: usage <= capacity for memory, CPU, bandwidth and computing.
    Storage fills through data generation and is watched against the
    near-full (80%) and full (95%) thresholds.
    """

    def __init__(
        self,
        totals: Optional[Dict[ResourceType, float]] = None,
        used: Optional[Dict[ResourceType, float]] = None,
        virtual_coin: int = 0,
        mood: int = 0,
        data_generation_rate: float = 0.0,
    ):
        totals = totals or {}
        used = used or {}
        self._total: Dict[ResourceType, Decimal] = {
            kind: to_decimal(totals.get(kind, 0.0), f"{kind.value}_total") for kind in ResourceType
        }
        self._used: Dict[ResourceType, Decimal] = {
            kind: to_decimal(used.get(kind, 0.0), f"{kind.value}_used") for kind in ResourceType
        }
        for kind in ALLOCATABLE:
            if self._used[kind] > self._total[kind]:
                raise ValueError(
                    f"{kind.value} usage {self._used[kind]} exceeds capacity {self._total[kind]}"
                )
        if virtual_coin < 0:
            raise ValueError(f"virtual_coin cannot be negative, got {virtual_coin}")
        self.virtual_coin = int(virtual_coin)
        self.mood = int(mood)
        self.data_generation_rate = float(to_decimal(data_generation_rate, "data_generation_rate"))

    @classmethod
    def for_identity(cls, identity: IdentityType = IdentityType.CONSCIOUSNESS_LINKER) -> "ResourcePool":
        """Starting pool for a newly created character."""
        cfg = CONFIG.resources
        memory, cpu, bandwidth, computing, storage = cfg.identity_usage[identity.value]
        return cls(
            totals={
                ResourceType.MEMORY: cfg.memory_total,
                ResourceType.CPU: cfg.cpu_total,
                ResourceType.BANDWIDTH: cfg.bandwidth_total,
                ResourceType.COMPUTING: cfg.computing_total,
                ResourceType.STORAGE: cfg.storage_total,
            },
            used={
                ResourceType.MEMORY: memory,
                ResourceType.CPU: cpu,
                ResourceType.BANDWIDTH: bandwidth,
                ResourceType.COMPUTING: computing,
                ResourceType.STORAGE: storage,
            },
            virtual_coin=cfg.initial_virtual_coin,
            mood=cfg.initial_mood,
            data_generation_rate=cfg.identity_data_rate[identity.value],
        )

    # ------------------------------------------------------------------
    # Read-only queries
    # ------------------------------------------------------------------

    def total(self, kind: ResourceType) -> float:
        return float(self._total[kind])

    def used(self, kind: ResourceType) -> float:
        return float(self._used[kind])

    def available(self, kind: ResourceType) -> float:
        return float(max(_ZERO, self._total[kind] - self._used[kind]))

    def usage_percent(self, kind: ResourceType) -> float:
        total = self._total[kind]
        if total <= 0:
            return 0.0
        return float(self._used[kind] / total * _HUNDRED)

    def average_idle_percent(self) -> float:
        """Mean idle percentage of memory, CPU, bandwidth and computing."""
        idle = [100.0 - self.usage_percent(kind) for kind in ALLOCATABLE]
        return sum(idle) / len(idle)

    def is_storage_nearly_full(self) -> bool:
        return self.usage_percent(ResourceType.STORAGE) >= CONFIG.resources.storage_nearly_full_percent

    def is_storage_full(self) -> bool:
        return self.usage_percent(ResourceType.STORAGE) >= CONFIG.resources.storage_full_percent

    def can_afford(self, amount: int) -> bool:
        return self.virtual_coin >= amount

    def income_efficiency(self, level: int) -> float:
        """Efficiency percentage from idle resources, mood and level (100 = baseline)."""
        cfg = CONFIG.resources
        mood_bonus = (self.mood / 100.0) * cfg.mood_efficiency_rate
        level_bonus = level * cfg.level_efficiency_rate
        bonus_rate = (self.average_idle_percent() + mood_bonus + level_bonus) / 100.0
        return cfg.base_efficiency * (1.0 + bonus_rate)

    # Convenience accessors mirroring the saved field names
    memory_total = property(lambda self: self.total(ResourceType.MEMORY))
    memory_used = property(lambda self: self.used(ResourceType.MEMORY))
    cpu_total = property(lambda self: self.total(ResourceType.CPU))
    cpu_used = property(lambda self: self.used(ResourceType.CPU))
    bandwidth_total = property(lambda self: self.total(ResourceType.BANDWIDTH))
    bandwidth_used = property(lambda self: self.used(ResourceType.BANDWIDTH))
    computing_total = property(lambda self: self.total(ResourceType.COMPUTING))
    computing_used = property(lambda self: self.used(ResourceType.COMPUTING))
    storage_total = property(lambda self: self.total(ResourceType.STORAGE))
    storage_used = property(lambda self: self.used(ResourceType.STORAGE))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def try_allocate(
        self,
        memory: float = 0.0,
        cpu: float = 0.0,
        bandwidth: float = 0.0,
        computing: float = 0.0,
    ) -> bool:
        """
        Reserve the four amounts together.

        Succeeds only if every amount fits in what is currently available;
        otherwise nothing changes.
        """
        request = self._request(memory, cpu, bandwidth, computing)
        for kind, amount in request.items():
            if amount > self._total[kind] - self._used[kind]:
                logger.debug(
                    "Allocation rejected: %s needs %s, %s available",
                    kind.value, amount, self._total[kind] - self._used[kind],
                )
                return False
        for kind, amount in request.items():
            self._used[kind] += amount
        return True

    def release(
        self,
        memory: float = 0.0,
        cpu: float = 0.0,
        bandwidth: float = 0.0,
        computing: float = 0.0,
    ) -> None:
        """Return reserved amounts; usage never drops below zero."""
        for kind, amount in self._request(memory, cpu, bandwidth, computing).items():
            self._used[kind] = max(_ZERO, self._used[kind] - amount)

    def try_allocate_bundle(self, bundle: ProvidedResources) -> bool:
        return self.try_allocate(*bundle.as_tuple())

    def release_bundle(self, bundle: ProvidedResources) -> None:
        self.release(*bundle.as_tuple())

    def upgrade_capacity(self, kind: ResourceType, amount: float) -> None:
        self._total[kind] += to_decimal(amount)

    def try_upgrade_capacity(self, kind: ResourceType, amount: float, cost: int) -> bool:
        """Buy `amount` extra capacity for `cost` coins; nothing changes if coins are short."""
        size = to_decimal(amount)
        if not self.try_spend_currency(cost):
            return False
        self._total[kind] += size
        logger.info("Upgraded %s by %s for %d coins", kind.value, size, cost)
        return True

    def earn_currency(self, amount: int) -> None:
        amount = _coin_amount(amount, "earn")
        self.virtual_coin += amount

    def try_spend_currency(self, amount: int) -> bool:
        amount = _coin_amount(amount, "spend")
        if self.virtual_coin < amount:
            logger.debug("Spend rejected: need %d, balance %d", amount, self.virtual_coin)
            return False
        self.virtual_coin -= amount
        return True

    def pay_connection_fee(self, identity: IdentityType, rng: Optional[random.Random] = None) -> ActionResult:
        """
        Charge the per-tick connection fee of a consciousness linker.

        Other identities pay nothing. When the balance cannot cover the fee
        the call fails and nothing is charged.

        Returns:
            ActionResult with the fee charged in data["fee"]
        """
        fee = connection_fee(identity, rng)
        if fee == 0:
            return ActionResult.success(fee=0)
        if not self.try_spend_currency(fee):
            return ActionResult.failure(
                f"Connection fee {fee} exceeds balance {self.virtual_coin}"
            )
        return ActionResult.success(fee=fee)

    def change_mood(self, delta: int) -> None:
        self.mood += int(delta)

    def generate_data(self, rate: Optional[float] = None) -> bool:
        """
        Add `rate` GB to storage usage (defaults to the base data rate).

        Returns False without mutating when storage cannot hold it; raising
        the storage-full event is the caller's job.
        """
        if rate is None:
            rate = self.data_generation_rate
        return self.try_reserve_storage(rate)

    def try_reserve_storage(self, amount: float) -> bool:
        size = to_decimal(amount)
        if size > self._total[ResourceType.STORAGE] - self._used[ResourceType.STORAGE]:
            return False
        self._used[ResourceType.STORAGE] += size
        return True

    def clean_data(self, amount: float) -> None:
        storage = ResourceType.STORAGE
        self._used[storage] = max(_ZERO, self._used[storage] - to_decimal(amount))

    def _request(self, memory, cpu, bandwidth, computing) -> Dict[ResourceType, Decimal]:
        return {
            ResourceType.MEMORY: to_decimal(memory, "memory"),
            ResourceType.CPU: to_decimal(cpu, "cpu"),
            ResourceType.BANDWIDTH: to_decimal(bandwidth, "bandwidth"),
            ResourceType.COMPUTING: to_decimal(computing, "computing"),
        }

    def to_dict(self) -> Dict[str, object]:
        """
        Serialize all fields to basic Python types.

        Returns:
            Dictionary representation of the pool state
        """
        state: Dict[str, object] = {}
        for kind in ResourceType:
            state[f"{kind.value}_total"] = self.total(kind)
            state[f"{kind.value}_used"] = self.used(kind)
        state["virtual_coin"] = self.virtual_coin
        state["mood"] = self.mood
        state["data_generation_rate"] = self.data_generation_rate
        return state

    def __repr__(self) -> str:
        parts = ", ".join(
            f"{kind.value}={self.used(kind):g}/{self.total(kind):g}" for kind in ResourceType
        )
        return f"ResourcePool({parts}, coin={self.virtual_coin}, mood={self.mood})"
