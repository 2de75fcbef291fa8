"""
Deal fee calculation and legacy feature flag derivation.

Both calculate_deal_fee and deal_type_to_flags read the same deal_config
shape; keep them in step when a config field is added.
"""

from typing import Any, Optional

from pydantic import BaseModel

SMALL_EVENT_CHILDREN = 100
LARGE_EVENT_CHILDREN = 250

MIMU_DEFAULTS = {
    "base": 0,
    "under_100_kids": 600,
    "distance_surcharge": 200,
    "music_pricing": 0,
    "cheaper_music_small": 1000,
    "cheaper_music_large": 2000,
}

MIMU_SCS_DEFAULTS = {
    "base": 9500,
    "over_250_kids": 2000,
    "standard_song_discount": -500,
    "no_song_discount": -1000,
    "no_shirts_discount": -3000,
}

GRATIS_DEFAULTS = {
    "gratis_tshirts": 0,
    "gratis_minicards": 0,
}

NO_FEE_DEAL_TYPES = ("schus", "schus_xl")


class FeeItem(BaseModel):
    label: str
    amount: float
    quantity: Optional[int] = None


class FeeBreakdown(BaseModel):
    base: float
    items: list[FeeItem]
    total: float


class DealFlags(BaseModel):
    is_minimusikertag: bool
    is_plus: bool
    is_kita: bool
    is_schulsong: bool


def _fee(config: dict, key: str, defaults: dict) -> float:
    """custom_fees wins whenever the key is present, including an explicit 0"""
    custom = config.get("custom_fees") or {}
    if isinstance(custom, dict) and key in custom and custom[key] is not None:
        return custom[key]
    return defaults[key]


def is_small_event(children: Optional[int], config: dict) -> bool:
    forced = config.get("kleine_einrichtung_enabled")
    if forced is not None:
        return bool(forced)
    # An unknown head count is billed as a small venue
    return (children or 0) < SMALL_EVENT_CHILDREN


def is_large_event(children: Optional[int], config: dict) -> bool:
    forced = config.get("grosse_einrichtung_enabled")
    if forced is not None:
        return bool(forced)
    return (children or 0) > LARGE_EVENT_CHILDREN


def _mimu_fees(config: dict, children: Optional[int]) -> tuple[float, list[FeeItem]]:
    base = _fee(config, "base", MIMU_DEFAULTS) if config.get("pauschale_enabled") is not False else 0
    items = []

    if is_small_event(children, config):
        items.append(FeeItem(label="Kleine Einrichtung (< 100 Kinder)", amount=_fee(config, "under_100_kids", MIMU_DEFAULTS)))

    if config.get("distance_surcharge"):
        items.append(FeeItem(label="Entfernungspauschale", amount=_fee(config, "distance_surcharge", MIMU_DEFAULTS)))

    music_pricing = config.get("music_pricing_enabled")
    if music_pricing is True:
        items.append(FeeItem(label="Plus-Preise für Musik", amount=_fee(config, "music_pricing", MIMU_DEFAULTS)))
    elif music_pricing is None and config.get("cheaper_music"):
        key = "cheaper_music_large" if children is not None and children > LARGE_EVENT_CHILDREN else "cheaper_music_small"
        items.append(FeeItem(label="Günstigere Musik", amount=_fee(config, key, MIMU_DEFAULTS)))

    return base, items


def _mimu_scs_fees(config: dict, children: Optional[int]) -> tuple[float, list[FeeItem]]:
    base = _fee(config, "base", MIMU_SCS_DEFAULTS) if config.get("scs_pauschale_enabled") is not False else 0
    items = []

    if is_large_event(children, config):
        items.append(FeeItem(label="Große Einrichtung (> 250 Kinder)", amount=_fee(config, "over_250_kids", MIMU_SCS_DEFAULTS)))

    song_option = config.get("scs_song_option")
    if song_option == "schus":
        items.append(FeeItem(label="Standard-Schulsong", amount=_fee(config, "standard_song_discount", MIMU_SCS_DEFAULTS)))
    elif song_option == "none":
        items.append(FeeItem(label="Kein Schulsong", amount=_fee(config, "no_song_discount", MIMU_SCS_DEFAULTS)))

    if config.get("scs_shirts_included") is False:
        items.append(FeeItem(label="Keine T-Shirts", amount=_fee(config, "no_shirts_discount", MIMU_SCS_DEFAULTS)))

    return base, items


def _shared_items(config: dict) -> list[FeeItem]:
    """Gratis items show up only when a custom fee gives them an amount"""
    items = []
    for kind, label in (("tshirts", "Gratis T-Shirts"), ("minicards", "Gratis Minicards")):
        if not config.get(f"gratis_{kind}_enabled"):
            continue
        amount = _fee(config, f"gratis_{kind}", GRATIS_DEFAULTS)
        if amount:
            items.append(FeeItem(label=label, amount=amount, quantity=config.get(f"gratis_{kind}_quantity") or 0))

    for extra in config.get("additional_fees") or []:
        if not isinstance(extra, dict):
            continue
        amount = extra.get("amount")
        amount = amount if isinstance(amount, (int, float)) and not isinstance(amount, bool) else 0
        if extra.get("title") or amount:
            items.append(FeeItem(label=extra.get("title") or "Custom Fee", amount=amount))
    return items


def calculate_deal_fee(
    deal_type: Optional[str], config: Optional[dict[str, Any]], estimated_children: Optional[int]
) -> Optional[FeeBreakdown]:
    """
    Fee breakdown for a deal. schus / schus_xl are flat external
    arrangements and have no fee tracking (None).
    Discounts are negative line items; the base is never reduced directly.
    """
    config = config or {}
    if deal_type == "mimu":
        base, items = _mimu_fees(config, estimated_children)
    elif deal_type == "mimu_scs":
        base, items = _mimu_scs_fees(config, estimated_children)
    else:
        return None

    items.extend(_shared_items(config))
    total = base + sum(item.amount for item in items)
    return FeeBreakdown(base=base, items=items, total=total)


def deal_type_to_flags(deal_type: Optional[str], config: Optional[dict[str, Any]]) -> DealFlags:
    """
    Legacy booleans for a deal. The tier flags are exclusive: a tiered deal
    is either plus or minimusikertag, never both. is_kita is only set at
    booking intake.
    """
    config = config or {}
    if deal_type == "mimu":
        music_pricing = config.get("music_pricing_enabled")
        is_plus = bool(music_pricing if music_pricing is not None else config.get("cheaper_music"))
        return DealFlags(is_minimusikertag=not is_plus, is_plus=is_plus, is_kita=False, is_schulsong=True)

    if deal_type == "mimu_scs":
        is_plus = config.get("scs_audio_pricing") == "plus"
        return DealFlags(
            is_minimusikertag=not is_plus,
            is_plus=is_plus,
            is_kita=False,
            is_schulsong=config.get("scs_song_option") != "none",
        )

    if deal_type in NO_FEE_DEAL_TYPES:
        return DealFlags(is_minimusikertag=False, is_plus=False, is_kita=False, is_schulsong=True)

    return DealFlags(is_minimusikertag=False, is_plus=False, is_kita=False, is_schulsong=False)
