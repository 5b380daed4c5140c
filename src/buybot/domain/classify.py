from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from enum import IntEnum

from .value_types import MagnitudeStrategy


BAR_FILLED = "🟩"
BAR_EMPTY  = "⬜"
METER_UNIT = "🐸"


class Tier(IntEnum):
    SPLASH     = 0
    TADPOLE    = 1
    SMALL_GUY  = 2
    SWAMP_BOSS = 3
    FROG_KING  = 4

    @property
    def badge(self) -> str:
        return _BADGES[self]


_BADGES = {
    Tier.SPLASH:     "💧 Splash",
    Tier.TADPOLE:    "🐣 Tadpole",
    Tier.SMALL_GUY:  "🐸 Small Guy",
    Tier.SWAMP_BOSS: "🐊 Swamp Boss",
    Tier.FROG_KING:  "👑 Frog King",
}

# lower bounds for TADPOLE, SMALL_GUY, SWAMP_BOSS, FROG_KING
DEFAULT_THRESHOLDS: tuple[float, float, float, float] = (100, 1_000, 10_000, 50_000)


# ---------------------------- fixed-point ------------------------------------

def format_units(raw: int, decimals: int) -> Decimal:
    """Exact `raw * 10**-decimals`; the string constructor does not round."""
    return Decimal(f"{int(raw)}E-{int(decimals)}")

def to_float(amount: Decimal) -> float:
    """Float view used for classification. Out-of-range values become inf, never raise."""
    try:
        return float(amount)
    except (OverflowError, ValueError):
        return math.inf

def pretty_amount(amount: Decimal, max_frac: int = 4) -> str:
    """Thousands separators, at most `max_frac` fraction digits, trailing zeros dropped."""
    if not math.isfinite(to_float(amount)):
        return str(amount)
    try:
        with localcontext() as ctx:
            ctx.prec = 100  # uint256 has at most 78 digits
            q = amount.quantize(Decimal(1).scaleb(-max_frac), rounding=ROUND_HALF_UP)
            s = f"{q:,f}"
    except InvalidOperation:
        return str(amount)
    if "." in s:
        s = s.rstrip("0").rstrip(".")
    return s


# ---------------------------- tier -------------------------------------------

def tier_for(amount: float, thresholds: tuple[float, ...] = DEFAULT_THRESHOLDS) -> Tier:
    if not math.isfinite(amount) or amount <= 0:
        return Tier.SPLASH
    for tier, bound in reversed(list(zip(list(Tier)[1:], thresholds))):
        if amount >= bound:
            return tier
    return Tier.SPLASH


# ---------------------------- magnitude indicator -----------------------------

def linear_meter(amount: float, step: float, cap: int, unit: str = METER_UNIT) -> str:
    """One unit per `step`, at most `cap` units; empty below one step."""
    if not math.isfinite(amount) or amount < step:
        return ""
    return unit * min(cap, int(amount // step))

def ladder_filled(amount: float, base: float, slots: int) -> int:
    # slot i is earned at base * 2**i; stop at the first unearned slot
    if not math.isfinite(amount) or amount <= 0:
        return 0
    filled = 0
    for i in range(slots):
        if amount >= base * 2 ** i:
            filled += 1
        else:
            break
    return filled

def doubling_ladder(amount: float, base: float, slots: int,
                    filled_sym: str = BAR_FILLED, empty_sym: str = BAR_EMPTY) -> str:
    filled = ladder_filled(amount, base, slots)
    return filled_sym * filled + empty_sym * (slots - filled)


# ---------------------------- compact label -----------------------------------

def compact_label(amount: float) -> str:
    if not math.isfinite(amount):
        return ""
    a = abs(amount)
    if a >= 1_000_000_000: return f"{amount / 1_000_000_000:.2f}B"
    if a >= 1_000_000:     return f"{amount / 1_000_000:.2f}M"
    if a >= 1_000:         return f"{amount / 1_000:.2f}K"
    return f"{math.floor(amount)}"


# ---------------------------- classifier --------------------------------------

@dataclass(slots=True, frozen=True)
class Classifier:
    """Tier thresholds plus the configured magnitude-indicator strategy."""
    thresholds: tuple[float, ...] = DEFAULT_THRESHOLDS
    strategy: MagnitudeStrategy = "ladder"
    ladder_base: float = 100
    ladder_slots: int = 10
    meter_step: float = 500
    meter_max: int = 20

    def tier(self, amount: float) -> Tier:
        return tier_for(amount, self.thresholds)

    def indicator(self, amount: float) -> str:
        if self.strategy == "linear":
            return linear_meter(amount, self.meter_step, self.meter_max)
        return doubling_ladder(amount, self.ladder_base, self.ladder_slots)

    def scale_range(self) -> tuple[float, float]:
        """Smallest and largest amount the indicator distinguishes."""
        if self.strategy == "linear":
            return self.meter_step, self.meter_step * self.meter_max
        return self.ladder_base, self.ladder_base * 2 ** (self.ladder_slots - 1)
