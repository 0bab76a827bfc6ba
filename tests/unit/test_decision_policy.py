"""Unit tests for the decision policy and the shared item resolver.

Tests cover:
    - Decision order (remap, move, new bucket, fill/move subcategory, invalid)
    - Inclusive threshold boundaries
    - Subcategory membership of every non-keep decision
    - Description fallback and internal error handling
    - Regression scenarios
"""
from unittest.mock import MagicMock

import pytest

from catalog_taxonomy.models import DecisionKind, Suggestion
from catalog_taxonomy.services.decision import DecisionPolicy, TaxonomyResolver, Thresholds
from catalog_taxonomy.services.classification import SubcategoryResolver, load_keyword_lists

HOME_AROMA = load_keyword_lists().lists["home_aroma"]


def _resolver(taxonomy, rule_tables, **thresholds):
    return TaxonomyResolver.build(taxonomy, rule_tables, Thresholds(**thresholds))


class TestThresholds:
    """Tests for Thresholds."""

    def test_defaults(self):
        thresholds = Thresholds()
        assert thresholds.move_category == 0.95
        assert thresholds.move_subcategory == 0.90
        assert thresholds.fill_subcategory == 0.86

    def test_out_of_range_rejected(self):
        with pytest.raises(ValueError):
            Thresholds(move_category=1.2)

    def test_from_settings(self):
        settings = MagicMock(min_move_category=0.97, min_move_subcategory=0.91, min_fill_subcategory=0.8)
        thresholds = Thresholds.from_settings(settings)
        assert thresholds == Thresholds(0.97, 0.91, 0.8)


class TestDecisionKinds:
    """One test per decision kind."""

    def test_remap_legacy_category(self, resolver, make_item):
        decision = resolver.resolve(make_item("Básica algodón blanca", category="tops", subcategory="camisetas"))
        assert decision.kind == DecisionKind.REMAP_CATEGORY
        assert decision.to_category == "camisetas_y_tops"
        assert decision.to_subcategory is None
        assert decision.confidence == 0.7
        assert "legacy:tops" in decision.reasons

    def test_remap_null_category_from_title(self, resolver, make_item):
        decision = resolver.resolve(make_item("Botas de cuero"))
        assert decision.kind == DecisionKind.REMAP_CATEGORY
        assert decision.to_category == "calzado"
        assert decision.to_subcategory == "botas"

    def test_unresolvable_legacy_item_is_kept(self, resolver, make_item):
        decision = resolver.resolve(make_item("Producto 123", category="ropa_vieja"))
        assert decision.kind == DecisionKind.KEEP
        assert decision.to_category == "ropa_vieja"

    def test_move_category(self, resolver, make_item):
        decision = resolver.resolve(make_item("Perfume floral 100 ml", category="camisetas_y_tops"))
        assert decision.kind == DecisionKind.MOVE_CATEGORY
        assert decision.from_category == "camisetas_y_tops"
        assert decision.to_category == "hogar_y_lifestyle"
        assert decision.to_subcategory == "cuidado_personal_y_belleza"

    def test_fill_subcategory(self, resolver, make_item):
        decision = resolver.resolve(make_item("Botas de cuero", category="calzado"))
        assert decision.kind == DecisionKind.FILL_SUBCATEGORY
        assert decision.to_category == "calzado"
        assert decision.to_subcategory == "botas"
        assert decision.confidence == 0.98

    def test_move_subcategory(self, resolver, make_item):
        decision = resolver.resolve(make_item("Botas de cuero", category="calzado", subcategory="sandalias"))
        assert decision.kind == DecisionKind.MOVE_SUBCATEGORY
        assert decision.from_subcategory == "sandalias"
        assert decision.to_subcategory == "botas"

    def test_same_subcategory_is_kept(self, resolver, make_item):
        decision = resolver.resolve(make_item("Botas de cuero", category="calzado", subcategory="botas"))
        assert decision.kind == DecisionKind.KEEP

    def test_low_confidence_fallback_does_not_fill(self, resolver, make_item):
        decision = resolver.resolve(make_item("Zapatos negros", category="calzado"))
        assert decision.kind == DecisionKind.KEEP
        assert decision.to_subcategory is None

    def test_invalid_subcategory(self, resolver, make_item):
        decision = resolver.resolve(make_item("Zapatos negros", category="calzado", subcategory="blusas"))
        assert decision.kind == DecisionKind.INVALID_SUBCATEGORY
        assert decision.to_category == "calzado"
        assert decision.to_subcategory is None
        assert decision.reasons == ["taxonomy:invalid_subcategory"]

    def test_invalid_subcategory_reports_suggestion(self, resolver, make_item):
        decision = resolver.resolve(make_item("Botas de cuero", category="calzado", subcategory="blusas"))
        assert decision.kind == DecisionKind.INVALID_SUBCATEGORY
        assert "suggested:botas" in decision.reasons

    def test_new_subcategory_candidate(self, resolver, make_item):
        decision = resolver.resolve(make_item("Collar para perro ajustable", category="hogar_y_lifestyle"))
        assert decision.kind == DecisionKind.NEW_SUBCATEGORY_CANDIDATE
        assert decision.new_bucket.key == "mascotas"
        assert not decision.is_applyable

    def test_keep_for_unmatched_canonical_item(self, resolver, make_item):
        decision = resolver.resolve(make_item("Producto 123", category="calzado", subcategory="botas"))
        assert decision.kind == DecisionKind.KEEP
        assert decision.reasons == []


class TestThresholdBoundaries:
    """Thresholds are inclusive."""

    def test_move_category_at_threshold(self, taxonomy, rule_tables, make_item):
        item = make_item("Perfume floral", category="camisetas_y_tops")
        assert _resolver(taxonomy, rule_tables, move_category=0.99).resolve(item).kind == DecisionKind.MOVE_CATEGORY
        assert _resolver(taxonomy, rule_tables, move_category=0.995).resolve(item).kind == DecisionKind.KEEP

    def test_fill_subcategory_at_threshold(self, taxonomy, rule_tables, make_item):
        item = make_item("Botas de cuero", category="calzado")
        assert _resolver(taxonomy, rule_tables, fill_subcategory=0.92).resolve(item).kind == DecisionKind.FILL_SUBCATEGORY
        assert _resolver(taxonomy, rule_tables, fill_subcategory=0.93).resolve(item).kind == DecisionKind.KEEP

    def test_move_subcategory_at_threshold(self, taxonomy, rule_tables, make_item):
        item = make_item("Botas de cuero", category="calzado", subcategory="sandalias")
        assert _resolver(taxonomy, rule_tables, move_subcategory=0.92).resolve(item).kind == DecisionKind.MOVE_SUBCATEGORY
        assert _resolver(taxonomy, rule_tables, move_subcategory=0.93).resolve(item).kind == DecisionKind.KEEP

    def test_remap_has_no_threshold(self, taxonomy, rule_tables, make_item):
        item = make_item("Básica algodón", category="accesorios")
        decision = _resolver(taxonomy, rule_tables).resolve(item)
        assert decision.kind == DecisionKind.REMAP_CATEGORY
        assert decision.confidence < 0.6


class TestDecisionPolicyDirect:
    """Policy edge cases with hand-made suggestions."""

    @pytest.fixture
    def policy(self, taxonomy, rule_tables):
        return DecisionPolicy(taxonomy, SubcategoryResolver.from_table(rule_tables.subcategories))

    def test_non_canonical_suggestion_is_ignored(self, policy):
        suggestion = Suggestion(category="no_existe", confidence=0.99, reasons=["kw:x"])
        decision = policy.decide("1", "tops", None, suggestion, ["texto"])
        assert decision.kind == DecisionKind.KEEP

    def test_invalid_suggested_subcategory_is_dropped(self, policy):
        suggestion = Suggestion(category="calzado", subcategory="bikini", confidence=0.99, reasons=["kw:x"])
        decision = policy.decide("1", None, None, suggestion, ["producto"])
        assert decision.kind == DecisionKind.REMAP_CATEGORY
        assert decision.to_category == "calzado"
        assert decision.to_subcategory is None

    def test_agreeing_suggestion_raises_confidence(self, policy):
        suggestion = Suggestion(category="calzado", confidence=0.98, reasons=["kw:footwear"])
        decision = policy.decide("1", "calzado", None, suggestion, ["botas"])
        assert decision.kind == DecisionKind.FILL_SUBCATEGORY
        assert decision.confidence == 0.98
        assert decision.reasons[0] == "kw:footwear"

    def test_category_without_rules_skips_inference(self, taxonomy):
        subcategories = MagicMock()
        subcategories.supports.return_value = False
        policy = DecisionPolicy(taxonomy, subcategories)
        assert policy.infer_subcategory("tops", ["camiseta basica"]) is None
        subcategories.resolve.assert_not_called()


class TestTaxonomyResolver:
    """Tests for TaxonomyResolver."""

    def test_description_fallback(self, resolver, make_item):
        item = make_item("Producto 123", description="Sandalias de cuero con hebilla")
        suggestion, texts = resolver.suggest_category(item)
        assert suggestion.category == "calzado"
        assert "src:description" in suggestion.reasons
        assert len(texts) == 2

    def test_title_wins_over_description(self, resolver, make_item):
        item = make_item("Vestido midi", description="Ideal con sandalias")
        suggestion, _ = resolver.suggest_category(item)
        assert suggestion.category == "vestidos"
        assert "src:description" not in suggestion.reasons

    def test_description_only_item_is_tagged(self, resolver, make_item):
        item = make_item("", description="Vela aromática de vainilla")
        suggestion, texts = resolver.suggest_category(item)
        assert texts == ["vela aromatica de vainilla"]
        assert suggestion.subcategory == "velas_y_aromas"
        assert "src:description" in suggestion.reasons

    def test_chain_match_comes_before_legacy_bucket(self, resolver, make_item):
        """A legacy bucket only sees items the whole detector chain left unmatched."""
        suggestion, _ = resolver.suggest_category(make_item("Pijama algodón", category="ropa_interior"))
        assert suggestion.category == "pijamas_y_ropa_de_descanso_loungewear"
        assert not any(reason.startswith("legacy:") for reason in suggestion.reasons)

    def test_internal_error_becomes_keep(self, resolver, make_item):
        resolver.category_resolver = MagicMock()
        resolver.category_resolver.resolve.side_effect = RuntimeError("boom")
        item = make_item("Botas", category="calzado", subcategory="botas")
        decision = resolver.resolve(item)
        assert decision.kind == DecisionKind.KEEP
        assert decision.to_category == "calzado"
        assert decision.reasons == ["error:internal:RuntimeError"]

    def test_deterministic(self, resolver, make_item):
        item = make_item("Blusa manga larga estampada", category="camisas_y_blusas")
        assert resolver.resolve(item) == resolver.resolve(item)


class TestScenarios:
    """Regression scenarios."""

    def test_legacy_tops_camisetas_remap(self, resolver, make_item):
        decision = resolver.resolve(make_item("Básica algodón blanca", category="tops", subcategory="camisetas"))
        assert decision.kind == DecisionKind.REMAP_CATEGORY
        assert decision.to_category == "camisetas_y_tops"
        assert decision.reasons == ["legacy:tops"]

    def test_boot_cut_pants_in_calzado_never_suggest_calzado(self, resolver, make_item):
        item = make_item("Pantalón bota recta negro", category="calzado")
        suggestion, _ = resolver.suggest_category(item)
        assert suggestion.category != "calzado"
        decision = resolver.resolve(item)
        assert decision.kind == DecisionKind.KEEP
        assert decision.to_subcategory != "botas"

    def test_boot_cut_pants_without_category(self, resolver, make_item):
        decision = resolver.resolve(make_item("Pantalón bota recta negro"))
        assert decision.kind == DecisionKind.REMAP_CATEGORY
        assert decision.to_category == "pantalones_no_denim"

    def test_candle_never_fills_beauty(self, resolver, make_item):
        decision = resolver.resolve(make_item("Vela aromática de vainilla", category="hogar_y_lifestyle"))
        assert decision.kind == DecisionKind.FILL_SUBCATEGORY
        assert decision.to_subcategory == "velas_y_aromas"

    @pytest.mark.parametrize("keyword", HOME_AROMA)
    def test_home_fragrance_never_fills_beauty(self, resolver, make_item, keyword):
        decision = resolver.resolve(make_item(f"Fragancia {keyword}", category="hogar_y_lifestyle"))
        assert decision.to_subcategory != "cuidado_personal_y_belleza"

    def test_reed_diffuser_fills_home_aroma(self, resolver, make_item):
        decision = resolver.resolve(make_item("Fragancia vainilla en sticks", category="hogar_y_lifestyle"))
        assert decision.kind == DecisionKind.FILL_SUBCATEGORY
        assert decision.to_subcategory == "velas_y_aromas"

    def test_body_splash_by_volume_fills_beauty(self, resolver, make_item):
        decision = resolver.resolve(make_item("Splash vainilla 250 ml", category="hogar_y_lifestyle"))
        assert decision.kind == DecisionKind.FILL_SUBCATEGORY
        assert decision.to_subcategory == "cuidado_personal_y_belleza"
        assert decision.confidence == 0.99

    def test_gift_card_beats_footwear(self, resolver, make_item):
        decision = resolver.resolve(make_item("Tarjeta de regalo zapatos", category="calzado"))
        assert decision.kind == DecisionKind.MOVE_CATEGORY
        assert decision.to_category == "tarjeta_regalo"
        assert decision.to_subcategory == "gift_card"


class TestDecisionInvariants:
    """Every non-keep decision respects the taxonomy."""

    TITLES = [
        "Botas de cuero", "Pantalón bota recta negro", "Vela aromática", "Perfume floral",
        "Collar para perro", "Camisa de lino", "Leggings running", "Bikini tiro alto",
        "Medias tobilleras", "Aretes dorados", "Gafas de sol", "Bolso cuero", "Body bebé",
        "Uniforme médico scrubs", "Falda tutu niña", "Blusa off shoulder", "Básica algodón",
    ]
    CURRENT = [
        (None, None), ("tops", "camisetas"), ("accesorios", None), ("calzado", None),
        ("calzado", "sandalias"), ("hogar_y_lifestyle", None), ("camisas_y_blusas", "guayabera"),
        ("vestidos", "no_existe"),
    ]

    def test_membership_and_reasons(self, taxonomy, resolver, make_item):
        for title in self.TITLES:
            for category, subcategory in self.CURRENT:
                decision = resolver.resolve(make_item(title, category=category, subcategory=subcategory))
                assert 0.0 <= decision.confidence <= 1.0
                if decision.kind == DecisionKind.KEEP:
                    continue
                assert decision.reasons, (title, category)
                assert taxonomy.is_canonical(decision.to_category), (title, category)
                if decision.to_subcategory is not None:
                    assert taxonomy.is_valid_subcategory(decision.to_category, decision.to_subcategory), (
                        title, category, decision.to_subcategory,
                    )
