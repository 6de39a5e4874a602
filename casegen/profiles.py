"""Recipe profiles.

Both SURL recipes share one engine; a :class:`RecipeProfile` carries the
parts that differ (payment-date window and its repairs, amount ranges,
instruction module code, labels).
"""

from __future__ import annotations

from dataclasses import dataclass

from .money import dollars


@dataclass(frozen=True)
class RecipeProfile:
    """Configuration for one SURL recipe.

    *Window* settings bound payment dates to ``year_end + [window_min_days,
    window_max_days]``.  ``shared_payment_dates`` says whether several
    disbursements must share a payment date (advanced) or whether every date
    must be distinct (intermediate).
    """

    recipe_id: str
    case_level: str
    version: int
    label: str
    description: str
    module_code: str
    tier: str

    # --- Payment-date window ---
    window_min_days: int
    window_max_days: int
    window_message: str
    window_repair_offset: int  # payment-date-window repair: year_end + offset + index
    shared_payment_dates: bool
    period_name: str  # used in listing/statement titles

    # --- Amounts (cents) ---
    normal_amount_min: int = dollars(12_000)
    normal_amount_max: int = dollars(85_000)
    trap_amount_min: int = dollars(75_000)
    trap_amount_max: int = dollars(125_000)

    # --- Population bounds ---
    min_disbursements: int = 10
    max_disbursements: int = 15
    min_variation: int = 8
    max_attempts: int = 50

    def in_window(self, days_after_year_end: int | None) -> bool:
        if days_after_year_end is None or days_after_year_end <= 0:
            return False
        return self.window_min_days <= days_after_year_end <= self.window_max_days


# Presets ---------------------------------------------------------------

ADVANCED = RecipeProfile(
    recipe_id="case.surl.advanced.v1",
    case_level="advanced",
    version=1,
    label="SURL Advanced Cutoff (Generated)",
    description="Advanced SURL with tie-out gate, scoped selection, and allocation trap.",
    module_code="SURL-301",
    tier="advanced",
    window_min_days=1,
    window_max_days=31,
    window_message="Payment dates must fall in January after year-end.",
    window_repair_offset=2,
    shared_payment_dates=True,
    period_name="January",
)

INTERMEDIATE = RecipeProfile(
    recipe_id="case.surl.intermediate.v1",
    case_level="intermediate",
    version=1,
    label="SURL Intermediate Cutoff (Generated)",
    description="Intermediate SURL with tie-out gate, scoped selection, and allocation trap.",
    module_code="SURL-201",
    tier="foundations",
    window_min_days=30,
    window_max_days=60,
    window_message="Payment dates must be 1-2 months after year-end.",
    window_repair_offset=35,
    shared_payment_dates=False,
    period_name="Subsequent",
    normal_amount_max=dollars(90_000),
)

RECIPES: dict[str, RecipeProfile] = {p.recipe_id: p for p in (ADVANCED, INTERMEDIATE)}
_BY_LEVEL = {p.case_level: p for p in RECIPES.values()}

DEFAULT_PROFILE = ADVANCED


def get_profile(name: str | RecipeProfile | None) -> RecipeProfile:
    """Resolve a recipe id or case level (``advanced``/``intermediate``)."""
    if isinstance(name, RecipeProfile):
        return name
    if name is None or not str(name).strip():
        return DEFAULT_PROFILE
    key = str(name).strip()
    if key in RECIPES:
        return RECIPES[key]
    if key.lower() in _BY_LEVEL:
        return _BY_LEVEL[key.lower()]
    known = ", ".join(sorted([*RECIPES, *_BY_LEVEL]))
    raise ValueError(f"Unknown recipe {key!r}. Expected one of: {known}")
