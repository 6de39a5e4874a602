"""Per-run generation state.

A :class:`GenerationContext` is built once per ``build()`` call and threaded
through every component.  It owns the run's random stream and vendor caches,
so nothing mutable lives at module level and concurrent builds never share
state.
"""

from __future__ import annotations

import math
import secrets
from dataclasses import dataclass, field
from datetime import MAXYEAR, MINYEAR
from typing import Any, Mapping

from .dates import PSEUDO_YEARS, is_iso_date, parse_pseudo_date
from .profiles import RecipeProfile, get_profile
from .rng import SeededRandom, create_rng
from .vendors import VENDOR_POOL, VendorCatalogResolver

DEFAULT_YEAR_END = "20X2-12-31"

DISBURSEMENT_COUNT_BOUNDS = (1, 30)
VENDOR_COUNT_BOUNDS = (1, len(VENDOR_POOL))
INVOICES_PER_VENDOR_BOUNDS = (1, 6)


def normalize_override_count(value: Any, lo: int, hi: int) -> int | None:
    """Round and clamp a numeric override; None when absent or not a number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(parsed):
        return None
    return min(max(math.floor(parsed + 0.5), lo), hi)


@dataclass(frozen=True)
class Overrides:
    """Caller overrides after clamping."""

    disbursement_count: int | None = None
    vendor_count: int | None = None
    invoices_per_vendor: int | None = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> "Overrides":
        raw = raw or {}
        return cls(
            disbursement_count=normalize_override_count(
                raw.get("disbursementCount"), *DISBURSEMENT_COUNT_BOUNDS
            ),
            vendor_count=normalize_override_count(
                raw.get("vendorCount"), *VENDOR_COUNT_BOUNDS
            ),
            invoices_per_vendor=normalize_override_count(
                raw.get("invoicesPerVendor"), *INVOICES_PER_VENDOR_BOUNDS
            ),
        )

    def as_plan(self) -> dict[str, int | None]:
        return {
            "disbursementCount": self.disbursement_count,
            "vendorCount": self.vendor_count,
            "invoicesPerVendor": self.invoices_per_vendor,
        }


def resolve_year_end(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        return DEFAULT_YEAR_END
    text = value.strip()
    parsed = parse_pseudo_date(text)
    if parsed is None:
        raise ValueError(
            f"Invalid yearEnd {text!r}: expected a date like {DEFAULT_YEAR_END}"
        )
    # Cases reach into the prior and following years.
    lo, hi = (MINYEAR, MAXYEAR) if is_iso_date(text) else PSEUDO_YEARS
    if not lo < parsed.year < hi:
        raise ValueError(
            f"Invalid yearEnd {text!r}: pseudo-years must be 20X1 through 20X8"
            if not is_iso_date(text)
            else f"Invalid yearEnd {text!r}: year out of range"
        )
    return text


def mint_seed() -> str:
    return secrets.token_hex(16)


@dataclass
class GenerationContext:
    seed: str
    profile: RecipeProfile
    year_end: str
    overrides: Overrides
    rng: SeededRandom = field(init=False)
    vendors: VendorCatalogResolver = field(init=False)

    def __post_init__(self) -> None:
        self.rng = create_rng(self.seed)
        self.vendors = VendorCatalogResolver(self.rng)

    @classmethod
    def create(
        cls,
        overrides: Mapping[str, Any] | None = None,
        *,
        seed: str | None = None,
        profile: RecipeProfile | str | None = None,
    ) -> "GenerationContext":
        raw = dict(overrides or {})
        if profile is None:
            level = raw.get("caseLevel")
            profile = level if isinstance(level, str) and level.strip() else None
        return cls(
            seed=str(seed) if seed is not None else mint_seed(),
            profile=get_profile(profile),
            year_end=resolve_year_end(raw.get("yearEnd")),
            overrides=Overrides.from_mapping(raw),
        )
