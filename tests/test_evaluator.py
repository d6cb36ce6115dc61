# tests/test_evaluator.py
import math

import pytest

from app.models import EntityType
from app.scoring.evaluator import RelevanceScorer
from app.search.search_utils import SearchUtils
from .conftest import BANGALORE, make_entity, point_north_of
from .test_utils import print_test_name, print_test_result


@pytest.fixture
def scorer():
    return RelevanceScorer()


class TestTextScore:
    """Points de correspondance textuelle."""

    def test_exact_name_match(self, scorer):
        assert scorer.text_score("Pizza", None, "pizza") == 100

    def test_exact_name_excludes_contains_bonus(self, scorer):
        # Nom exact : +100 seulement, pas +150
        assert scorer.text_score("pizza", None, "PIZZA") == 100

    def test_name_contains(self, scorer):
        assert scorer.text_score("Pizza Palace", None, "pizza") == 50

    def test_description_contains(self, scorer):
        assert scorer.text_score("Luigi's", "Wood-fired pizza", "pizza") == 25

    def test_name_and_description(self, scorer):
        assert scorer.text_score("Pizza Palace", "Best pizza in town", "pizza") == 75

    def test_blank_query_scores_nothing(self, scorer):
        assert scorer.text_score("Pizza", "pizza", "") == 0
        assert scorer.text_score("Pizza", "pizza", "   ") == 0
        assert scorer.text_score("Pizza", "pizza", None) == 0


class TestRelevanceScorer:
    """Score total : texte + note - distance."""

    def test_rating_weight_by_entity_type(self, scorer):
        restaurant = make_entity(name="x", rating=4.0)
        dish = make_entity(name="x", rating=4.0, entity_type=EntityType.DISH)
        assert scorer.score(restaurant, "nomatch") == pytest.approx(20.0)
        assert scorer.score(dish, "nomatch") == pytest.approx(12.0)

    def test_distance_penalty(self, scorer):
        entity = make_entity(name="Pizza", rating=0)
        assert scorer.score(entity, "pizza", distance_km=3.5) == pytest.approx(93.0)

    def test_unknown_distance_has_no_penalty(self, scorer):
        entity = make_entity(name="Pizza", rating=2)
        assert scorer.score(entity, "pizza", distance_km=None) == pytest.approx(110.0)

    def test_score_can_be_negative(self, scorer):
        entity = make_entity(name="Sushi Bar", rating=0)
        assert scorer.score(entity, "pizza", distance_km=9.0) == pytest.approx(-18.0)

    def test_non_finite_distance_is_neutral(self, scorer):
        entity = make_entity(name="Pizza", rating=1)
        result = scorer.score(entity, "pizza", distance_km=float("nan"))
        assert not math.isnan(result)
        assert result == pytest.approx(105.0)

    def test_deterministic(self, scorer):
        entity = make_entity(name="Pizza Hut", description="pizza", rating=3.7)
        scores = {scorer.score(entity, "pizza", distance_km=1.2) for _ in range(10)}
        assert len(scores) == 1

    def test_custom_weights(self):
        scorer = RelevanceScorer(rating_weights={'restaurant': 10.0, 'dish': 0.0}, distance_penalty=1.0)
        entity = make_entity(name="x", rating=2.0)
        assert scorer.score(entity, None, distance_km=4.0) == pytest.approx(16.0)


class TestRankingScenarios:
    """Scénarios complets via SearchUtils.process_results."""

    def test_pizza_without_location(self):
        test_name = "test_pizza_without_location"
        print_test_name(test_name)
        try:
            candidates = [
                make_entity(id="desc", name="Luigi's", description="Neapolitan pizza", rating=5.0),
                make_entity(id="contains", name="Pizza Palace", rating=3.0),
                make_entity(id="exact", name="Pizza", rating=1.0),
            ]
            processed = SearchUtils().process_results(candidates, "pizza", None, 10)
            ids = [r.id for r in processed['results']]
            # exact: 100+5=105 ; contains: 50+15=65 ; desc: 25+25=50
            assert ids == ["exact", "contains", "desc"]
            assert all(r.distance_km is None for r in processed['results'])
            assert processed['total'] == 3
            print_test_result(test_name, passed=True)
        except Exception as e:
            print_test_result(test_name, passed=False)
            raise e

    def test_biryani_closer_name_match_wins(self):
        test_name = "test_biryani_closer_name_match_wins"
        print_test_name(test_name)
        try:
            house = make_entity(
                id="A", name="Biryani House", rating=4.2,
                location=point_north_of(BANGALORE, 2),
            )
            garden = make_entity(
                id="B", name="Generic Diner", description="Famous for Hyderabadi biryani",
                rating=4.8, location=point_north_of(BANGALORE, 8),
            )
            processed = SearchUtils().process_results([garden, house], "biryani", BANGALORE, 10)
            results = processed['results']

            assert [r.id for r in results] == ["A", "B"]
            # A : 50 + 4.2*5 - 2*2 ; B : 25 + 4.8*5 - 8*2
            assert results[0].relevance_score == pytest.approx(67.0)
            assert results[1].relevance_score == pytest.approx(33.0)
            assert results[0].distance_km == 2.0
            assert results[1].distance_km == 8.0
            print_test_result(test_name, passed=True)
        except Exception as e:
            print_test_result(test_name, passed=False)
            raise e

    def test_substring_matches_tie_in_input_order(self):
        candidates = [
            make_entity(id="palace", name="Pizza Palace", rating=4.5),
            make_entity(id="amazing", name="Amazing Pizza", rating=4.5),
            make_entity(id="menu", name="Trattoria", description="pizza and pasta", rating=4.5),
        ]
        results = SearchUtils().process_results(candidates, "pizza", None, 10)['results']
        assert [r.id for r in results] == ["palace", "amazing", "menu"]
        assert results[0].relevance_score == results[1].relevance_score == pytest.approx(72.5)
        assert results[2].relevance_score == pytest.approx(47.5)

    def test_out_of_radius_dropped(self):
        candidates = [
            make_entity(id="in", name="Pizza", location=point_north_of(BANGALORE, 3)),
            make_entity(id="out", name="Pizza", location=point_north_of(BANGALORE, 12)),
            make_entity(id="nowhere", name="Pizza", location=None),
        ]
        processed = SearchUtils().process_results(candidates, "pizza", BANGALORE, 10)
        assert {r.id for r in processed['results']} == {"in", "nowhere"}
        assert processed['total_before_filter'] == 3
        assert processed['total'] == 2

    def test_process_results_keys(self):
        processed = SearchUtils().process_results([make_entity(name="Pizza")], "pizza", None, 10)
        assert set(processed) == {'results', 'total', 'total_before_filter'}
