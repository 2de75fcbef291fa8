"""Tests for deal fee calculation and flag derivation."""

from musicday.utils.deal_calculator import calculate_deal_fee, deal_type_to_flags, is_large_event, is_small_event


def _labels(breakdown):
    return [item.label for item in breakdown.items]


class TestSizeThresholds:
    """Tests for the small and large event boundaries"""

    def test_small_boundary_is_strict(self):
        """99 children is small, 100 is not."""
        assert is_small_event(99, {})
        assert not is_small_event(100, {})

    def test_large_boundary_is_strict(self):
        """251 children is large, 250 is not."""
        assert is_large_event(251, {})
        assert not is_large_event(250, {})

    def test_unknown_children_counts_as_small(self):
        """Without an estimate the event is billed as small, never as large."""
        assert is_small_event(None, {})
        assert not is_large_event(None, {})

    def test_explicit_toggle_wins(self):
        """Admin toggles override the child count."""
        assert not is_small_event(50, {"kleine_einrichtung_enabled": False})
        assert is_large_event(120, {"grosse_einrichtung_enabled": True})


class TestMimuFees:
    """Tests for mimu deals"""

    def test_small_event_surcharge(self):
        """Under 100 children adds the small venue fee."""
        breakdown = calculate_deal_fee("mimu", {}, 80)
        assert _labels(breakdown) == ["Kleine Einrichtung (< 100 Kinder)"]
        assert breakdown.total == 600

    def test_unknown_children_pays_small_surcharge(self):
        breakdown = calculate_deal_fee("mimu", {}, None)
        assert _labels(breakdown) == ["Kleine Einrichtung (< 100 Kinder)"]
        assert breakdown.total == 600

    def test_distance_and_plus_pricing(self):
        """Distance surcharge and plus music pricing stack."""
        breakdown = calculate_deal_fee(
            "mimu", {"distance_surcharge": True, "music_pricing_enabled": True}, 150
        )
        assert _labels(breakdown) == ["Entfernungspauschale", "Plus-Preise für Musik"]
        assert breakdown.total == 200

    def test_cheaper_music_depends_on_size(self):
        """Large events pay the large cheaper-music fee."""
        assert calculate_deal_fee("mimu", {"cheaper_music": True}, 300).total == 2000
        assert calculate_deal_fee("mimu", {"cheaper_music": True}, 150).total == 1000

    def test_custom_fee_zero_is_honoured(self):
        """A custom fee of 0 replaces the default."""
        breakdown = calculate_deal_fee("mimu", {"custom_fees": {"under_100_kids": 0}}, 80)
        assert breakdown.items[0].amount == 0
        assert breakdown.total == 0


class TestMimuScsFees:
    """Tests for mimu_scs deals"""

    def test_base_fee(self):
        """The flat base applies without any options."""
        breakdown = calculate_deal_fee("mimu_scs", {}, 200)
        assert breakdown.base == 9500
        assert breakdown.items == []
        assert breakdown.total == 9500

    def test_discounts_are_negative_items(self):
        """Discounts reduce the total through line items, not the base."""
        breakdown = calculate_deal_fee(
            "mimu_scs", {"scs_song_option": "none", "scs_shirts_included": False}, 300
        )
        assert breakdown.base == 9500
        assert _labels(breakdown) == ["Große Einrichtung (> 250 Kinder)", "Kein Schulsong", "Keine T-Shirts"]
        assert breakdown.total == 9500 + 2000 - 1000 - 3000

    def test_base_can_be_disabled(self):
        """Turning off the flat fee zeroes the base."""
        assert calculate_deal_fee("mimu_scs", {"scs_pauschale_enabled": False}, 200).base == 0

    def test_gratis_items_need_an_amount(self):
        """Gratis items without a custom amount add no line item."""
        breakdown = calculate_deal_fee(
            "mimu_scs", {"gratis_tshirts_enabled": True, "gratis_tshirts_quantity": 20}, 200
        )
        assert breakdown.items == []

        priced = calculate_deal_fee(
            "mimu_scs",
            {"gratis_tshirts_enabled": True, "gratis_tshirts_quantity": 20, "custom_fees": {"gratis_tshirts": -400}},
            200,
        )
        assert _labels(priced) == ["Gratis T-Shirts"]
        assert priced.items[0].quantity == 20
        assert priced.total == 9100

    def test_additional_fees(self):
        """Untitled fees keep their amount under a default label."""
        breakdown = calculate_deal_fee(
            "mimu_scs",
            {"additional_fees": [
                {"title": "Anfahrt Insel", "amount": 150},
                {"title": "", "amount": 10},
                {"title": "", "amount": 0},
            ]},
            200,
        )
        assert _labels(breakdown) == ["Anfahrt Insel", "Custom Fee"]
        assert breakdown.total == 9660


class TestNoFeeDeals:
    """Tests for deals without fee tracking"""

    def test_schus_has_no_breakdown(self):
        """schus and schus_xl are flat external deals."""
        assert calculate_deal_fee("schus", {}, 200) is None
        assert calculate_deal_fee("schus_xl", {}, 400) is None

    def test_no_deal_has_no_breakdown(self):
        """An event without a deal has no fee."""
        assert calculate_deal_fee(None, None, None) is None


class TestDealFlags:
    """Tests for legacy flag derivation"""

    def test_mimu_standard_is_minimusikertag(self):
        """Without plus pricing a mimu deal is a plain minimusikertag."""
        flags = deal_type_to_flags("mimu", {})
        assert flags.is_minimusikertag and not flags.is_plus
        assert flags.is_schulsong

    def test_mimu_plus_flags_are_exclusive(self):
        """Plus pricing clears the minimusikertag flag."""
        flags = deal_type_to_flags("mimu", {"music_pricing_enabled": True})
        assert flags.is_plus and not flags.is_minimusikertag

    def test_scs_without_song(self):
        """The no-song option clears the schulsong flag."""
        flags = deal_type_to_flags("mimu_scs", {"scs_song_option": "none", "scs_audio_pricing": "plus"})
        assert flags.is_plus and not flags.is_schulsong

    def test_schus_is_schulsong_only(self):
        """schus deals only carry the schulsong flag."""
        flags = deal_type_to_flags("schus", {})
        assert flags.model_dump() == {
            "is_minimusikertag": False, "is_plus": False, "is_kita": False, "is_schulsong": True,
        }
