"""Vendor pool, per-vendor item catalogs, and the per-run vendor resolver.

The resolver answers three questions about a vendor (which invoice template,
which sales-tax rate, which priced items) and remembers each answer for the
rest of the run, so every invoice from one vendor looks the same.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .money import dollars
from .rng import SeededRandom, hash_seed

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Catalog data
# ---------------------------------------------------------------------------

INVOICE_TEMPLATE_IDS = (
    "invoice.seed.alpha.v1",
    "invoice.seed.beta.v1",
    "invoice.seed.gamma.v1",
)

# Basis points: 4.5%, 5%, 7.25%, 8.25%
TAX_RATE_OPTIONS_BP = (450, 500, 725, 825)

_SERVICE_DEFAULTS = {"qty": (1, 6), "unit": (65, 240), "flexible": True}
_GOODS_DEFAULTS = {"qty": (25, 450), "unit": (2, 55), "flexible": False}


@dataclass(frozen=True)
class VendorCatalogEntry:
    """One purchasable item; prices in cents.

    ``flexible`` marks an item whose quantity can absorb the remainder when
    the solver fits a target subtotal.
    """

    description: str
    min_qty: int
    max_qty: int
    min_unit_price: int
    max_unit_price: int
    flexible: bool
    kind: str  # "good" | "service"


@dataclass(frozen=True)
class PricedItem:
    """A catalog entry with its unit price fixed for this run."""

    description: str
    min_qty: int
    max_qty: int
    unit_price: int
    flexible: bool
    kind: str


def _entry(description: str, kind: str, qty=None, unit=None, flexible=None) -> VendorCatalogEntry:
    defaults = _GOODS_DEFAULTS if kind == "good" else _SERVICE_DEFAULTS
    lo_qty, hi_qty = qty or defaults["qty"]
    lo_unit, hi_unit = unit or defaults["unit"]
    return VendorCatalogEntry(
        description=description,
        min_qty=lo_qty,
        max_qty=hi_qty,
        min_unit_price=dollars(lo_unit),
        max_unit_price=dollars(hi_unit),
        flexible=defaults["flexible"] if flexible is None else flexible,
        kind=kind,
    )


_G = "good"
_S = "service"

VENDOR_CATALOGS: dict[str, tuple[VendorCatalogEntry, ...]] = {
    "BrightStitch Apparel Co.": (
        _entry("5.3 oz cotton t-shirts, blank", _G, unit=(4, 12)),
        _entry("Midweight fleece hoodies, blank", _G, unit=(16, 34)),
        _entry("Performance polos, blank", _G, unit=(12, 26)),
        _entry("Beanies, blank", _G, unit=(4, 11)),
        _entry("Embroidery-ready twill caps, blank", _G, unit=(6, 15)),
        _entry("Size run / case pack assorting fee", _S, qty=(1, 4), unit=(95, 240)),
    ),
    "LogoForge Plastics": (
        _entry("Custom molded keychains", _G, unit=(1.5, 4.5)),
        _entry("Plastic badge reels with logo insert", _G, unit=(2.5, 6)),
        _entry("Injection-mold tooling setup", _S, qty=(1, 2), unit=(650, 1800)),
        _entry("Pantone color matching for resin", _S, qty=(1, 3), unit=(85, 220)),
        _entry("Polybagging per unit", _S, qty=(50, 600), unit=(0.2, 0.6)),
        _entry("Sample set (pre-production)", _G, qty=(1, 4), unit=(18, 45)),
    ),
    "InkRiver Print & Pack": (
        _entry("Screen print setup fee (per color)", _S, qty=(1, 4), unit=(65, 140)),
        _entry("Screen printing on garments (per print location)", _S, qty=(50, 450), unit=(2.5, 6.5)),
        _entry("DTG printing on garments", _S, qty=(30, 250), unit=(4, 9)),
        _entry("Heat press application", _S, qty=(40, 400), unit=(1.5, 4)),
        _entry("Kitting/assembly labor", _S, qty=(20, 200), unit=(1, 3.5)),
        _entry("Individual polybagging", _S, qty=(50, 600), unit=(0.25, 0.75)),
        _entry("Proof review/rush fee", _S, qty=(1, 3), unit=(75, 200)),
    ),
    "Pinnacle Penworks": (
        _entry("Soft-touch metal click pens with 1-color imprint", _G, unit=(1.4, 3.4)),
        _entry("Plastic retractable pens with full-color imprint", _G, unit=(0.6, 1.6)),
        _entry("Stylus pens with laser engraving", _G, unit=(1.8, 4.2)),
        _entry("Pen refill cartridges", _G, unit=(0.25, 0.85)),
        _entry("Setup charge for pad print", _S, qty=(1, 3), unit=(45, 120)),
        _entry("Custom ink color change fee", _S, qty=(1, 3), unit=(30, 85)),
    ),
    "SummitDrinkware Supply": (
        _entry("20 oz stainless steel tumblers", _G, unit=(6, 14)),
        _entry("32 oz insulated bottles", _G, unit=(7, 16)),
        _entry("Ceramic mugs (11 oz)", _G, unit=(3.5, 8)),
        _entry("Replacement lids", _G, unit=(0.9, 2.5)),
        _entry("Laser engraving setup fee", _S, qty=(1, 3), unit=(60, 160)),
        _entry("Individual gift boxing", _S, qty=(50, 500), unit=(0.4, 1.2)),
    ),
    "Evergreen Paper & Packaging": (
        _entry("Corrugated shipping boxes (standard sizes)", _G, unit=(1.2, 3.4)),
        _entry("Custom printed mailer boxes", _G, unit=(2.6, 5.8)),
        _entry("Packing tape (branded)", _G, unit=(1.1, 2.6)),
        _entry("Kraft crinkle paper", _G, unit=(0.8, 2.2)),
        _entry("Packing slip printing", _S, qty=(50, 600), unit=(0.15, 0.5)),
        _entry("Custom die-line design / packaging artwork", _S, qty=(1, 3), unit=(85, 240)),
    ),
    "ArrowShip Logistics": (
        _entry("Parcel shipping charges (UPS Ground equivalent)", _S, qty=(1, 10), unit=(18, 65)),
        _entry("International shipping surcharge", _S, qty=(1, 6), unit=(35, 110)),
        _entry("Residential delivery surcharge", _S, qty=(1, 8), unit=(12, 35)),
        _entry("Signature required add-on", _S, qty=(1, 8), unit=(6, 18)),
        _entry("Freight booking/dispatch fee", _S, qty=(1, 4), unit=(55, 160)),
        _entry("Claims handling / documentation fee", _S, qty=(1, 3), unit=(45, 120)),
    ),
    "Warehouse Harbor 3PL": (
        _entry("Monthly storage (per pallet)", _S, qty=(5, 80), unit=(14, 36)),
        _entry("Inbound receiving (per carton)", _S, qty=(20, 240), unit=(1.1, 3.2)),
        _entry("Pick & pack (per order)", _S, qty=(20, 180), unit=(2.2, 5.5)),
        _entry("Insert/kitting add-on (per unit)", _S, qty=(25, 220), unit=(0.6, 1.8)),
        _entry("Returns processing (per package)", _S, qty=(10, 80), unit=(3.5, 9)),
        _entry("Inventory cycle count", _S, qty=(1, 4), unit=(85, 210)),
    ),
    "BadgeCraft Awards": (
        _entry("Engraved acrylic name badges", _G, unit=(3.5, 8)),
        _entry("Laser-etched metal plates", _G, unit=(4.5, 11)),
        _entry("Custom trophies", _G, unit=(28, 75)),
        _entry("Plaques with full-color plates", _G, unit=(20, 55)),
        _entry("Artwork/setup fee for engraving", _S, qty=(1, 3), unit=(45, 120)),
        _entry("Rush production surcharge", _S, qty=(1, 4), unit=(35, 110)),
    ),
    "SparkPromo Creative Studio": (
        _entry("Vector logo redraw", _S, qty=(1, 3), unit=(85, 210)),
        _entry("Product mockup rendering", _S, qty=(1, 4), unit=(120, 320)),
        _entry("Prepress file prep", _S, qty=(1, 6), unit=(60, 160)),
        _entry("Brand guideline one-sheet creation", _S, qty=(1, 3), unit=(180, 420)),
        _entry("Hourly design retainer", _S, qty=(4, 16), unit=(65, 140)),
        _entry("Client proof revisions", _S, qty=(1, 6), unit=(45, 120)),
    ),
    "PayPilot Payroll Services": (
        _entry("Payroll processing fee (per pay run)", _S, qty=(1, 4), unit=(65, 180)),
        _entry("Per-employee payroll charge", _S, qty=(15, 120), unit=(1.2, 3.4)),
        _entry("Federal & state tax filing", _S, qty=(1, 4), unit=(85, 220)),
        _entry("Year-end W-2 preparation", _S, qty=(1, 3), unit=(120, 320)),
        _entry("Garnishment administration fee", _S, qty=(1, 4), unit=(30, 90)),
        _entry("Direct deposit processing", _S, qty=(15, 120), unit=(0.6, 1.6)),
    ),
    "BenefitBridge HR": (
        _entry("Benefits administration (monthly)", _S, qty=(1, 3), unit=(180, 420)),
        _entry("New hire onboarding packet setup", _S, qty=(1, 6), unit=(85, 220)),
        _entry("COBRA administration", _S, qty=(1, 4), unit=(120, 320)),
        _entry("Employee handbook review", _S, qty=(1, 3), unit=(250, 520)),
        _entry("HR compliance hotline", _S, qty=(1, 3), unit=(95, 210)),
        _entry("Open enrollment support", _S, qty=(1, 4), unit=(140, 360)),
    ),
    "LedgerLift Accounting": (
        _entry("Monthly bookkeeping services", _S, qty=(1, 3), unit=(420, 980)),
        _entry("Bank/credit card reconciliations", _S, qty=(1, 6), unit=(120, 320)),
        _entry("Sales tax return preparation", _S, qty=(1, 3), unit=(95, 260)),
        _entry("Accounts payable processing", _S, qty=(1, 6), unit=(140, 340)),
        _entry("Month-end close package", _S, qty=(1, 3), unit=(380, 900)),
        _entry("Fractional controller consult", _S, qty=(2, 10), unit=(120, 240)),
    ),
    "MetroNet Business Internet": (
        _entry("Business internet service (monthly)", _S, qty=(1, 3), unit=(190, 420)),
        _entry("Static IP add-on (monthly)", _S, qty=(1, 3), unit=(15, 45)),
        _entry("Modem/router rental (monthly)", _S, qty=(1, 3), unit=(12, 35)),
        _entry("Installation/activation fee", _S, qty=(1, 2), unit=(120, 320)),
        _entry("On-site service call", _S, qty=(1, 3), unit=(95, 220)),
        _entry("Managed Wi-Fi support", _S, qty=(1, 3), unit=(85, 210)),
    ),
    "BluePeak Energy & Gas": (
        _entry("Electricity usage charges", _S, qty=(1, 3), unit=(420, 1200)),
        _entry("Natural gas usage charges", _S, qty=(1, 3), unit=(260, 820)),
        _entry("Demand charge", _S, qty=(1, 2), unit=(180, 620)),
        _entry("Service availability / base fee", _S, qty=(1, 3), unit=(45, 160)),
        _entry("Late payment fee", _S, qty=(1, 2), unit=(25, 85)),
        _entry("Energy audit visit", _S, qty=(1, 2), unit=(180, 420)),
    ),
}

VENDOR_POOL: tuple[str, ...] = tuple(VENDOR_CATALOGS)

FALLBACK_CATALOG: tuple[VendorCatalogEntry, ...] = (_entry("Service line item", _S),)


def normalize_vendor(name: str | None) -> str:
    return str(name or "").strip().lower()


_CATALOG_BY_KEY = {normalize_vendor(k): v for k, v in VENDOR_CATALOGS.items()}


def vendor_catalog(vendor: str) -> tuple[VendorCatalogEntry, ...]:
    """Hard-coded catalog for a vendor, or the generic service fallback."""
    return _CATALOG_BY_KEY.get(normalize_vendor(vendor), FALLBACK_CATALOG)


def price_step(max_unit_price: int) -> int:
    """Quantization step (cents) that leaves several price points in range."""
    if max_unit_price >= 2500:
        return 500
    if max_unit_price >= 500:
        return 25
    return 5


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class VendorCatalogResolver:
    """Per-run memo of template, tax rate and priced items per vendor."""

    def __init__(self, rng: SeededRandom):
        self.rng = rng
        self._templates: dict[str, str] = {}
        self._tax_rates: dict[str, int] = {}
        self._line_items: dict[str, list[PricedItem]] = {}
        self._available: dict[str, list[VendorCatalogEntry]] = {}

    def template_id(self, vendor: str) -> str:
        key = normalize_vendor(vendor)
        if key not in self._templates:
            idx = hash_seed(key or INVOICE_TEMPLATE_IDS[0]) % len(INVOICE_TEMPLATE_IDS)
            self._templates[key] = INVOICE_TEMPLATE_IDS[idx]
        return self._templates[key]

    def tax_rate(self, vendor: str) -> int:
        """Sales-tax rate in basis points."""
        key = normalize_vendor(vendor)
        if key not in self._tax_rates:
            idx = hash_seed(f"{key or 'vendor'}|tax") % len(TAX_RATE_OPTIONS_BP)
            self._tax_rates[key] = TAX_RATE_OPTIONS_BP[idx]
        return self._tax_rates[key]

    def is_service_only(self, vendor: str) -> bool:
        return all(e.kind == "service" for e in vendor_catalog(vendor))

    def line_items(self, vendor: str) -> list[PricedItem]:
        """Priced catalog subset for ``vendor`` (3-7 items, flexible first)."""
        key = normalize_vendor(vendor)
        if key in self._line_items:
            return self._line_items[key]

        options = vendor_catalog(vendor)
        if key not in self._available:
            self._available[key] = self.rng.shuffle(options)
        available = self._available[key]

        size = min(self.rng.randint(3, 7), len(options))
        picked: list[VendorCatalogEntry] = []
        flex_idx = next((i for i, e in enumerate(available) if e.flexible), None)
        if flex_idx is not None:
            picked.append(available.pop(flex_idx))
        while len(picked) < size and available:
            picked.append(available.pop(0))
        if len(picked) < size:
            refill = self.rng.shuffle(options)
            while len(picked) < size and refill:
                picked.append(refill.pop())

        priced = [
            PricedItem(
                description=e.description,
                min_qty=e.min_qty,
                max_qty=e.max_qty,
                unit_price=self.rng.random_step(
                    e.min_unit_price, e.max_unit_price, price_step(e.max_unit_price)
                ),
                flexible=e.flexible,
                kind=e.kind,
            )
            for e in picked
        ]
        log.debug("Priced %d catalog items for %s", len(priced), vendor)
        self._line_items[key] = priced
        return priced
