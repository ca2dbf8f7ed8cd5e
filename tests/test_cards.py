"""Tests for catan_tracker/engine/cards.py — card types, supply, costs, payload checks."""

from __future__ import annotations

import numpy as np
import pytest

from catan_tracker.engine.cards import (
    ALL_CARD_TYPES,
    BUILDING_COSTS,
    COMMODITIES,
    RESOURCES,
    building_cost,
    card_types,
    cards_total,
    is_commodity,
    supply,
    validate_card,
    validate_cards,
)


# ─── Card types ───────────────────────────────────────────────────────────────

class TestCardTypes:
    def test_base_variant_has_five_resources(self):
        assert card_types() == ('wood', 'brick', 'sheep', 'wheat', 'ore')

    def test_extended_variant_appends_commodities(self):
        assert card_types(extended=True) == RESOURCES + ('cloth', 'coin', 'paper')

    def test_all_card_types_is_extended_order(self):
        assert ALL_CARD_TYPES == card_types(extended=True)

    def test_is_commodity(self):
        assert is_commodity('coin')
        assert not is_commodity('ore')


class TestSupply:
    @pytest.mark.parametrize('card', RESOURCES)
    def test_resources_have_19(self, card):
        assert supply(card) == 19

    @pytest.mark.parametrize('card', COMMODITIES)
    def test_commodities_have_12(self, card):
        assert supply(card) == 12

    def test_unknown_card_raises(self):
        with pytest.raises(ValueError, match="Unknown card type"):
            supply('gold')


# ─── Building costs ───────────────────────────────────────────────────────────

class TestBuildingCost:
    def test_road(self):
        assert building_cost('road') == {'wood': 1, 'brick': 1}

    def test_settlement(self):
        assert building_cost('settlement') == {'wood': 1, 'brick': 1, 'sheep': 1, 'wheat': 1}

    def test_city(self):
        assert building_cost('city') == {'wheat': 2, 'ore': 3}

    def test_dev_card(self):
        assert building_cost('devCard') == {'sheep': 1, 'wheat': 1, 'ore': 1}

    def test_city_wall(self):
        assert building_cost('cityWall') == {'brick': 2}

    @pytest.mark.parametrize('kind', ['knight', 'strongKnight', 'mightyKnight'])
    def test_knights(self, kind):
        assert building_cost(kind) == {'sheep': 1, 'ore': 1}

    def test_unknown_kind_raises(self):
        with pytest.raises(ValueError, match="Unknown building type"):
            building_cost('castle')

    def test_returns_a_copy(self):
        cost = building_cost('road')
        cost['wood'] = 99
        assert BUILDING_COSTS['road']['wood'] == 1


# ─── Payload validation ───────────────────────────────────────────────────────

class TestValidateCard:
    def test_base_resource_accepted(self):
        assert validate_card('ore') == 'ore'

    def test_commodity_rejected_in_base(self):
        with pytest.raises(ValueError, match="base variant"):
            validate_card('coin')

    def test_commodity_accepted_in_extended(self):
        assert validate_card('coin', extended=True) == 'coin'


class TestValidateCards:
    def test_drops_zero_amounts(self):
        assert validate_cards({'wood': 2, 'ore': 0}) == {'wood': 2}

    def test_keep_zero(self):
        assert validate_cards({'wood': 0}, keep_zero=True) == {'wood': 0}

    def test_returns_plain_ints(self):
        checked = validate_cards({'wood': np.int64(3)})
        assert checked == {'wood': 3}
        assert type(checked['wood']) is int

    def test_negative_amount_raises(self):
        with pytest.raises(ValueError, match="non-negative"):
            validate_cards({'wood': -1})

    def test_float_amount_raises(self):
        with pytest.raises(ValueError, match="integer"):
            validate_cards({'wood': 1.5})

    def test_bool_amount_raises(self):
        with pytest.raises(ValueError, match="integer"):
            validate_cards({'wood': True})

    def test_unknown_card_raises(self):
        with pytest.raises(ValueError):
            validate_cards({'gold': 1})

    def test_commodity_in_base_raises(self):
        with pytest.raises(ValueError):
            validate_cards({'paper': 1})

    def test_commodity_in_extended(self):
        assert validate_cards({'paper': 1}, extended=True) == {'paper': 1}

    def test_empty(self):
        assert validate_cards({}) == {}


class TestCardsTotal:
    def test_sum(self):
        assert cards_total({'wood': 2, 'ore': 3}) == 5

    def test_empty(self):
        assert cards_total({}) == 0
