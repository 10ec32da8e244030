"""Tests for the filter algebra: merge, merge_filters, conjoin and matches."""

import itertools

import pytest

from datagate.access import AccessDecision, conjoin, matches, merge, merge_filters
from datagate.errors import FilterError

ALLOW = AccessDecision.allow()
DENY = AccessDecision.deny()
PUBLISHED = AccessDecision.where({"status": {"equals": "published"}})
OWNED = AccessDecision.where({"authorId": {"equals": "u1"}})


# =============================================================================
# merge()
# =============================================================================


class TestMerge:
    def test_empty_is_allow(self):
        assert merge([]).is_allow

    def test_all_allow_is_allow(self):
        assert merge([ALLOW, ALLOW, ALLOW]).is_allow

    @pytest.mark.parametrize(
        "decisions",
        [
            [DENY],
            [ALLOW, DENY],
            [PUBLISHED, DENY, ALLOW],
            [DENY, OWNED],
        ],
    )
    def test_any_deny_dominates(self, decisions):
        assert merge(decisions).is_deny

    def test_allow_contributes_no_constraint(self):
        merged = merge([ALLOW, PUBLISHED, ALLOW])
        assert merged.is_predicate
        assert merged.predicate == {"status": {"equals": "published"}}

    def test_predicates_are_conjoined(self):
        merged = merge([PUBLISHED, OWNED])
        assert merged.is_predicate
        assert set(map(str, merged.predicate["AND"])) == {
            str({"status": {"equals": "published"}}),
            str({"authorId": {"equals": "u1"}}),
        }

    def test_order_independent(self):
        decisions = [PUBLISHED, OWNED, ALLOW]
        results = {
            str(merge(list(p)).predicate) for p in itertools.permutations(decisions)
        }
        assert len(results) == 1

    def test_associative(self):
        left = merge([merge([PUBLISHED, OWNED]), ALLOW])
        right = merge([PUBLISHED, merge([OWNED, ALLOW])])
        assert left == right

    def test_duplicate_predicates_collapse(self):
        merged = merge([PUBLISHED, PUBLISHED])
        assert merged.predicate == {"status": {"equals": "published"}}

    def test_nested_and_is_flattened(self):
        nested = AccessDecision.where({"AND": [{"a": 1}, {"AND": [{"b": 2}]}]})
        merged = merge([nested, AccessDecision.where({"c": 3})])
        assert merged.predicate == {"AND": [{"a": 1}, {"b": 2}, {"c": 3}]}


class TestAccessDecision:
    def test_from_rule_result_bool(self):
        assert AccessDecision.from_rule_result(True).is_allow
        assert AccessDecision.from_rule_result(False).is_deny

    def test_from_rule_result_filter(self):
        decision = AccessDecision.from_rule_result({"status": "published"})
        assert decision.is_predicate

    def test_empty_filter_is_allow(self):
        assert AccessDecision.from_rule_result({}).is_allow

    def test_unsupported_value_is_rule_fault(self):
        from datagate.errors import RuleFault

        with pytest.raises(RuleFault):
            AccessDecision.from_rule_result(None)
        with pytest.raises(RuleFault):
            AccessDecision.from_rule_result("yes")


# =============================================================================
# merge_filters() / conjoin()
# =============================================================================


class TestMergeFilters:
    def test_deny_gives_none(self):
        assert merge_filters({"title": "x"}, DENY) is None

    def test_allow_keeps_user_filter(self):
        assert merge_filters({"title": "x"}, ALLOW) == {"title": "x"}

    def test_allow_without_filter_is_unrestricted(self):
        assert merge_filters(None, ALLOW) == {}

    def test_predicate_scopes_user_filter(self):
        merged = merge_filters({"title": "x"}, PUBLISHED)
        assert {"title": "x"} in merged["AND"]
        assert {"status": {"equals": "published"}} in merged["AND"]


class TestConjoin:
    def test_drops_empty(self):
        assert conjoin(None, {}, {"a": 1}) == {"a": 1}

    def test_nothing_left_is_empty(self):
        assert conjoin(None, {}) == {}


# =============================================================================
# matches()
# =============================================================================


class TestMatches:
    row = {"status": "published", "views": 10, "title": "Hello World", "authorId": None}

    def test_none_matches_nothing(self):
        assert matches(self.row, None) is False

    def test_empty_matches_everything(self):
        assert matches(self.row, {}) is True

    def test_equality_shorthand(self):
        assert matches(self.row, {"status": "published"})
        assert not matches(self.row, {"status": "draft"})

    @pytest.mark.parametrize(
        "condition,expected",
        [
            ({"views": {"gt": 5}}, True),
            ({"views": {"gte": 10, "lt": 11}}, True),
            ({"views": {"lt": 10}}, False),
            ({"views": {"in": [1, 10]}}, True),
            ({"views": {"notIn": [10]}}, False),
            ({"title": {"contains": "World"}}, True),
            ({"title": {"contains": "world"}}, False),
            ({"title": {"startsWith": "Hell"}}, True),
            ({"title": {"endsWith": "xyz"}}, False),
            ({"status": {"not": "draft"}}, True),
        ],
    )
    def test_operators(self, condition, expected):
        assert matches(self.row, condition) is expected

    def test_null_never_compares(self):
        assert not matches(self.row, {"authorId": {"gt": "a"}})
        assert matches(self.row, {"authorId": {"equals": None}})

    def test_combinators(self):
        assert matches(self.row, {"OR": [{"status": "draft"}, {"views": 10}]})
        assert not matches(self.row, {"AND": [{"status": "draft"}, {"views": 10}]})
        assert matches(self.row, {"NOT": {"status": "draft"}})

    def test_unknown_operator_raises(self):
        with pytest.raises(FilterError):
            matches(self.row, {"views": {"gt": 1, "bogus": 2}})

    def test_malformed_combinator_raises(self):
        with pytest.raises(FilterError):
            matches(self.row, {"OR": "status"})
