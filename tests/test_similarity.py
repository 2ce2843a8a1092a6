"""Tests for Jaccard similarity and similar-user ranking."""
import pytest

from recoengine.domain.services.similarity import jaccard_similarity, rank_similar_users


class TestJaccardSimilarity:

    def test_is_symmetric(self):
        a, b = {"p1", "p2", "p3"}, {"p2", "p3", "p4", "p5"}
        assert jaccard_similarity(a, b) == jaccard_similarity(b, a)

    def test_identical_nonempty_sets_score_one(self):
        assert jaccard_similarity({"p1", "p2"}, {"p1", "p2"}) == 1.0

    def test_disjoint_sets_score_zero(self):
        assert jaccard_similarity({"p1"}, {"p2"}) == 0.0

    def test_both_empty_is_undefined(self):
        assert jaccard_similarity(set(), set()) is None

    def test_one_empty_scores_zero(self):
        assert jaccard_similarity({"p1"}, set()) == 0.0

    @pytest.mark.parametrize("a,b", [
        ({"p1"}, {"p1", "p2"}),
        ({"p1", "p2", "p3"}, {"p3"}),
        ({"x", "y"}, {"y", "z", "w"}),
    ])
    def test_stays_in_unit_interval(self, a, b):
        assert 0.0 <= jaccard_similarity(a, b) <= 1.0

    def test_intersection_over_union(self):
        assert jaccard_similarity({"p1", "p2"}, {"p2", "p3"}) == pytest.approx(1 / 3)


class TestRankSimilarUsers:

    def test_requester_without_purchases_gets_nothing(self):
        pool = {"bob": {"p1"}}
        assert rank_similar_users(set(), pool) == []

    def test_filters_below_threshold_and_sorts_descending(self):
        pool = {
            "low": {"p1", "p8", "p9", "p10"},  # 1/5
            "mid": {"p1", "p3"},               # 1/3
            "high": {"p1", "p2", "p3"},        # 2/3
        }
        result = rank_similar_users({"p1", "p2"}, pool, threshold=0.3)
        assert [u.user_id for u in result] == ["high", "mid"]
        assert result[0].similarity == pytest.approx(2 / 3)

    def test_threshold_is_inclusive(self):
        pool = {"bob": {"p1", "p2", "p3"}}
        result = rank_similar_users({"p1"}, pool, threshold=1 / 3)
        assert [u.user_id for u in result] == ["bob"]

    def test_ties_keep_pool_order(self):
        pool = {"zed": {"p1", "p2"}, "amy": {"p1", "p2"}, "kim": {"p1", "p2"}}
        result = rank_similar_users({"p1", "p2"}, pool)
        assert [u.user_id for u in result] == ["zed", "amy", "kim"]

    def test_limit_and_requester_exclusion(self):
        pool = {"me": {"p1"}, "a": {"p1"}, "b": {"p1"}, "c": {"p1"}}
        result = rank_similar_users({"p1"}, pool, exclude_user_id="me", limit=2)
        assert [u.user_id for u in result] == ["a", "b"]

    def test_users_without_purchases_fall_below_threshold(self):
        pool = {"ghost": set()}
        assert rank_similar_users({"p1"}, pool) == []
