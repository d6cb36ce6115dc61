# tests/test_ranking.py
from app.models import RestaurantGroup, ScoredResult
from app.scoring.ranking import Ranker


def _result(id, score=0.0, distance=None, rating=0.0, count=0):
    return ScoredResult(
        id=id, name=id, relevance_score=score, distance_km=distance,
        rating_average=rating, rating_count=count,
    )


class TestRanker:
    """Ordres de tri."""

    def test_rank_descending(self):
        ranked = Ranker().rank([_result("a", 1), _result("b", 3), _result("c", 2)])
        assert [r.id for r in ranked] == ["b", "c", "a"]

    def test_rank_ties_keep_input_order(self):
        results = [_result("a", 5), _result("b", 7), _result("c", 5), _result("d", 5)]
        ranked = Ranker().rank(results)
        assert [r.id for r in ranked] == ["b", "a", "c", "d"]

    def test_rank_does_not_mutate_input(self):
        results = [_result("a", 1), _result("b", 2)]
        Ranker().rank(results)
        assert [r.id for r in results] == ["a", "b"]

    def test_rank_by_distance_unknown_last(self):
        ranked = Ranker().rank_by_distance([
            _result("unknown"), _result("far", distance=9.5),
            _result("here", distance=0.0), _result("mid", distance=3.1),
        ])
        assert [r.id for r in ranked] == ["here", "mid", "far", "unknown"]

    def test_restaurant_groups_order(self):
        groups = [
            RestaurantGroup(restaurant=_result("low", rating=3.9, count=500, distance=0.5)),
            RestaurantGroup(restaurant=_result("few", rating=4.5, count=10, distance=1.0)),
            RestaurantGroup(restaurant=_result("many_far", rating=4.5, count=80, distance=7.0)),
            RestaurantGroup(restaurant=_result("many_near", rating=4.5, count=80, distance=2.0)),
        ]
        ranked = Ranker().rank_restaurant_groups(groups)
        assert [g.restaurant.id for g in ranked] == ["many_near", "many_far", "few", "low"]

    def test_restaurant_groups_zero_distance_is_known(self):
        groups = [
            RestaurantGroup(restaurant=_result("unknown", rating=4.0, count=1)),
            RestaurantGroup(restaurant=_result("here", rating=4.0, count=1, distance=0.0)),
        ]
        ranked = Ranker().rank_restaurant_groups(groups)
        assert [g.restaurant.id for g in ranked] == ["here", "unknown"]
