import pytest

from filter_engine import (
    AND, OR, AdvancedFilters, Condition, ConditionGroup, FilterMode, FilterState, SimpleFilters,
    apply_filters, count_matching, evaluate_condition, evaluate_group,
)
from tests.conftest import make_record


def cond(field, operator, value=None):
    return Condition(field=field, operator=operator, value=value)


class TestConditionEvaluator:

    def test_contains_ignores_case(self):
        record = make_record("r", parent_name="Dana Levi")
        assert evaluate_condition(record, cond("parent_name", "contains", "LEVI"))
        assert not evaluate_condition(record, cond("parent_name", "contains", "cohen"))

    def test_equals_is_case_sensitive(self):
        record = make_record("r", course="Robotics")
        assert evaluate_condition(record, cond("course", "equals", "Robotics"))
        assert not evaluate_condition(record, cond("course", "equals", "robotics"))
        assert evaluate_condition(record, cond("course", "not_equals", "robotics"))

    def test_equals_compares_booleans_by_text(self):
        record = make_record("r", needs_pickup=True)
        assert evaluate_condition(record, cond("needs_pickup", "equals", "true"))
        assert evaluate_condition(record, cond("needs_pickup", "equals", True))
        assert evaluate_condition(record, cond("needs_pickup", "not_equals", False))

    @pytest.mark.parametrize("value", ["", "   ", False, None, 0])
    def test_is_empty_values(self, value):
        record = make_record("r", school=value)
        assert evaluate_condition(record, cond("school", "is_empty"))
        assert not evaluate_condition(record, cond("school", "is_not_empty"))

    @pytest.mark.parametrize("value", ["0", "false", "x", True])
    def test_is_not_empty_values(self, value):
        # The string "0" is truthy text, so it is not empty.
        record = make_record("r", school=value)
        assert evaluate_condition(record, cond("school", "is_not_empty"))
        assert not evaluate_condition(record, cond("school", "is_empty"))

    def test_unknown_operator_admits_record(self):
        record = make_record("r", school="גורדון")
        assert evaluate_condition(record, cond("school", "starts_with", "zzz"))

    def test_absent_field_is_treated_as_empty(self):
        record = {"id": "r"}
        assert evaluate_condition(record, cond("school", "is_empty"))
        assert not evaluate_condition(record, cond("school", "contains", "undefined"))
        assert evaluate_condition(record, cond("school", "equals", ""))

    def test_missing_value_compares_against_empty_text(self):
        record = make_record("r", school="גורדון")
        assert evaluate_condition(record, cond("school", "contains", None))
        assert not evaluate_condition(record, cond("school", "equals", None))


class TestGroupEvaluator:

    def test_empty_groups(self):
        record = make_record("r")
        assert evaluate_group(record, ConditionGroup((), AND))
        assert not evaluate_group(record, ConditionGroup((), OR))

    def test_and_or(self):
        record = make_record("r", course="X", school="A")
        conditions = (cond("course", "equals", "X"), cond("school", "equals", "B"))
        assert not evaluate_group(record, ConditionGroup(conditions, AND))
        assert evaluate_group(record, ConditionGroup(conditions, OR))


class TestFilterEngine:

    def test_simple_mode_scenario(self):
        records = [make_record("1", school="A", registration_status="אושר"),
                   make_record("2", school="B", registration_status="נדחה")]
        state = FilterState.from_controls(simple=SimpleFilters.from_dict({"school": "A", "course": ""}))
        assert apply_filters(records, state) == [records[0]]

    def test_simple_mode_boolean_text(self, registrations):
        state = FilterState.from_dict({"simple": {"needs_pickup": "true", "school": "גורדון"}})
        assert [r["id"] for r in apply_filters(registrations, state)] == ["rec1"]

    def test_group_mode_scenario(self):
        only_second = make_record("2", course="Y", school="בית ספר הגפן", needs_pickup=False)
        both_fail = make_record("3", course="Y", school="גורדון", needs_pickup=True)
        first = make_record("1", course="X", school="גורדון", needs_pickup=True)
        groups = (
            ConditionGroup((cond("course", "equals", "X"), cond("needs_pickup", "is_not_empty")), AND),
            ConditionGroup((cond("school", "contains", "ספר"),), AND),
        )
        state = FilterState.from_controls(advanced_mode=True, groups=groups, group_operator=OR)
        assert state.mode is FilterMode.GROUPS
        assert apply_filters([first, only_second, both_fail], state) == [first, only_second]

    def test_group_mode_and_between_groups(self):
        record = make_record("1", course="X", school="גורדון")
        groups = (ConditionGroup((cond("course", "equals", "X"),)),
                  ConditionGroup((cond("school", "contains", "ספר"),)))
        state = FilterState.from_controls(advanced_mode=True, groups=groups, group_operator=AND)
        assert apply_filters([record], state) == []

    def test_advanced_fallback_and(self, registrations):
        state = FilterState.from_dict({
            "advanced_mode": True,
            "advanced": {"school": ["גורדון"], "needs_pickup": True, "in_whatsapp_group": None},
        })
        assert state.mode is FilterMode.ADVANCED
        assert [r["id"] for r in apply_filters(registrations, state)] == ["rec1"]

    def test_advanced_fallback_or(self, registrations):
        state = FilterState.from_dict({
            "advanced_mode": True,
            "advanced": {"registration_status": ["נדחה"], "needs_pickup": True, "operator": "OR"},
        })
        assert [r["id"] for r in apply_filters(registrations, state)] == ["rec1", "rec3", "rec4"]

    def test_advanced_without_constraints_passes_everything(self, registrations):
        state = FilterState.from_dict({"advanced_mode": True, "advanced": {"school": [], "operator": "OR"}})
        assert apply_filters(registrations, state) == registrations

    def test_mode_precedence(self):
        groups = (ConditionGroup((cond("course", "equals", "X"),)),)
        simple = SimpleFilters.from_dict({"school": "A"})
        advanced = AdvancedFilters.from_dict({"school": ["A"]})

        assert FilterState.from_controls(False, simple, advanced, groups).mode is FilterMode.SIMPLE
        assert FilterState.from_controls(True, simple, advanced, groups).mode is FilterMode.GROUPS
        assert FilterState.from_controls(True, simple, advanced, ()).mode is FilterMode.ADVANCED

    def test_idempotent_and_order_preserving(self, registrations):
        state = FilterState.from_dict({
            "advanced_mode": True,
            "groups": [{"operator": "OR", "conditions": [
                {"field": "school", "operator": "equals", "value": "גורדון"},
                {"field": "registration_status", "operator": "equals", "value": "נדחה"},
            ]}],
        })
        once = apply_filters(registrations, state)
        assert [r["id"] for r in once] == ["rec1", "rec2", "rec4"]
        assert apply_filters(once, state) == once

    def test_does_not_mutate_snapshot(self, registrations):
        before = [dict(r) for r in registrations]
        apply_filters(registrations, FilterState.from_dict({"simple": {"school": "גורדון"}}))
        assert registrations == before

    def test_count_matching(self, registrations):
        assert count_matching(registrations, "school", "גורדון") == 2
        assert count_matching(registrations, "needs_pickup", True) == 2
        assert count_matching(registrations, "course", "ציור") == 0

    def test_group_parsing_normalizes_operator(self):
        group = ConditionGroup.from_dict({"id": "g1", "operator": "or", "conditions": [
            {"id": "c1", "field": "school", "operator": "is_empty"},
        ]})
        assert group.operator == OR
        assert group.conditions[0] == Condition("school", "is_empty", None, "c1")


class TestFilterPayloads:

    @pytest.mark.parametrize("payload", [
        ["school"],
        {"simple": ["school"]},
        {"advanced": "school"},
        {"groups": {"operator": "OR"}},
        {"groups": ["school"]},
        {"groups": [{"conditions": {"field": "school"}}]},
        {"groups": [{"conditions": ["school"]}]},
    ])
    def test_malformed_shapes_raise_value_error(self, payload):
        with pytest.raises(ValueError):
            FilterState.from_dict(payload)

    @pytest.mark.parametrize("payload", [
        {},
        {"simple": {"school": "גורדון", "needs_pickup": True}},
        {"advanced_mode": True, "advanced": {"school": ["גורדון"], "needs_pickup": False, "operator": "OR"}},
        {"advanced_mode": True, "group_operator": "OR", "groups": [
            {"id": "g1", "operator": "AND", "conditions": [
                {"id": "c1", "field": "course", "operator": "equals", "value": "X"},
                {"id": "c2", "field": "school", "operator": "is_empty"},
            ]},
        ]},
    ])
    def test_to_dict_reads_back_equal(self, payload):
        state = FilterState.from_dict(payload)
        assert FilterState.from_dict(state.to_dict()) == state
