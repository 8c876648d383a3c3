"""
Composable record filtering for the registrations table and the arrivals view.

Three mutually exclusive filter modes exist:

* ``SIMPLE``   - one exact value per field, all AND-ed (the plain dropdown bar)
* ``ADVANCED`` - multi-select membership per field plus yes/no flags,
                 combined by the structure's own AND/OR operator
* ``GROUPS``   - condition groups, each AND/OR internally, combined by an
                 inter-group operator

``FilterState.from_controls`` picks the mode from the UI controls; everything
downstream only looks at ``FilterState.mode``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

AND = 'AND'
OR = 'OR'

CONTAINS = 'contains'
EQUALS = 'equals'
NOT_EQUALS = 'not_equals'
IS_EMPTY = 'is_empty'
IS_NOT_EMPTY = 'is_not_empty'

OPERATORS = (CONTAINS, EQUALS, NOT_EQUALS, IS_EMPTY, IS_NOT_EMPTY)

FILTERABLE_FIELDS = (
    'child_name',
    'cycle',
    'parent_phone',
    'parent_name',
    'course',
    'school',
    'class',
    'needs_pickup',
    'trial_date',
    'in_whatsapp_group',
    'registration_status',
    'discount_type',
    'cohort_id',
)

BOOLEAN_FIELDS = ('needs_pickup', 'in_whatsapp_group')


class FilterMode(Enum):
    SIMPLE = 'simple'
    ADVANCED = 'advanced'
    GROUPS = 'groups'


def as_text(value: Any) -> str:
    """String form used by every comparison (booleans as lowercase words)."""
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


def _normalize_operator(value, default=AND) -> str:
    text = str(value or default).strip().upper()
    return OR if text == OR else AND


def _require(data, kind, label):
    if not isinstance(data, kind):
        expected = 'an object' if kind is dict else 'a list'
        raise ValueError(f"{label} must be {expected}")
    return data


@dataclass(frozen=True)
class Condition:
    field: str
    operator: str
    value: Any = None
    id: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Condition':
        _require(data, dict, 'condition')
        return cls(
            field=str(data.get('field', '')),
            operator=str(data.get('operator', '')),
            value=data.get('value'),
            id=str(data.get('id', '')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'field': self.field, 'operator': self.operator, 'value': self.value}


@dataclass(frozen=True)
class ConditionGroup:
    conditions: Tuple[Condition, ...] = ()
    operator: str = AND
    id: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ConditionGroup':
        _require(data, dict, 'group')
        conditions = _require(data.get('conditions') or [], list, 'group conditions')
        return cls(
            conditions=tuple(Condition.from_dict(c) for c in conditions),
            operator=_normalize_operator(data.get('operator')),
            id=str(data.get('id', '')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'operator': self.operator,
                'conditions': [c.to_dict() for c in self.conditions]}


@dataclass(frozen=True)
class SimpleFilters:
    """Exact-match dropdown values; empty values impose no constraint."""
    values: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'SimpleFilters':
        data = _require(data or {}, dict, 'simple filters')
        return cls(tuple((str(key), as_text(value)) for key, value in data.items()
                         if as_text(value) != ''))

    def to_dict(self) -> Dict[str, str]:
        return dict(self.values)


@dataclass(frozen=True)
class AdvancedFilters:
    """Per-field allowed values plus nullable yes/no flags."""
    memberships: Tuple[Tuple[str, Tuple[str, ...]], ...] = ()
    flags: Tuple[Tuple[str, bool], ...] = ()
    operator: str = AND

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'AdvancedFilters':
        data = dict(_require(data or {}, dict, 'advanced filters'))
        operator = _normalize_operator(data.pop('operator', None))
        memberships = []
        flags = []
        for key, value in data.items():
            if key in BOOLEAN_FIELDS:
                if value is not None:
                    flags.append((key, bool(value)))
            elif isinstance(value, (list, tuple)) and value:
                memberships.append((key, tuple(as_text(v) for v in value)))
        return cls(tuple(memberships), tuple(flags), operator)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {key: list(allowed) for key, allowed in self.memberships}
        data.update(self.flags)
        data['operator'] = self.operator
        return data

    @property
    def is_active(self) -> bool:
        return bool(self.memberships or self.flags)


@dataclass(frozen=True)
class GroupFilters:
    groups: Tuple[ConditionGroup, ...] = ()
    operator: str = AND


@dataclass(frozen=True)
class FilterState:
    mode: FilterMode = FilterMode.SIMPLE
    simple: SimpleFilters = field(default_factory=SimpleFilters)
    advanced: AdvancedFilters = field(default_factory=AdvancedFilters)
    grouped: GroupFilters = field(default_factory=GroupFilters)

    @classmethod
    def from_controls(cls, advanced_mode=False, simple=None, advanced=None,
                      groups=(), group_operator=AND) -> 'FilterState':
        """Build the state the way the filter panel resolves its three modes."""
        if not advanced_mode:
            return cls(FilterMode.SIMPLE, simple=simple or SimpleFilters())
        if groups:
            return cls(FilterMode.GROUPS,
                       grouped=GroupFilters(tuple(groups), _normalize_operator(group_operator)))
        return cls(FilterMode.ADVANCED, advanced=advanced or AdvancedFilters())

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'FilterState':
        """Parse the JSON body sent by the filter panel; malformed shapes raise ValueError."""
        data = _require(data or {}, dict, 'filters')
        groups = _require(data.get('groups') or [], list, 'groups')
        return cls.from_controls(
            advanced_mode=bool(data.get('advanced_mode')),
            simple=SimpleFilters.from_dict(data.get('simple')),
            advanced=AdvancedFilters.from_dict(data.get('advanced')),
            groups=tuple(ConditionGroup.from_dict(g) for g in groups),
            group_operator=data.get('group_operator', AND),
        )

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe form that ``from_dict`` reads back into an equal state."""
        return {
            'advanced_mode': self.mode is not FilterMode.SIMPLE,
            'simple': self.simple.to_dict(),
            'advanced': self.advanced.to_dict(),
            'groups': [group.to_dict() for group in self.grouped.groups],
            'group_operator': self.grouped.operator,
        }


def is_empty_value(value: Any) -> bool:
    return not value or not as_text(value).strip()


def evaluate_condition(record: Dict[str, Any], condition: Condition) -> bool:
    value = record.get(condition.field)
    operator = condition.operator

    if operator == CONTAINS:
        return as_text(condition.value).lower() in as_text(value).lower()
    if operator == EQUALS:
        return as_text(value) == as_text(condition.value)
    if operator == NOT_EQUALS:
        return as_text(value) != as_text(condition.value)
    if operator == IS_EMPTY:
        return is_empty_value(value)
    if operator == IS_NOT_EMPTY:
        return bool(value) and bool(as_text(value).strip())
    # Unrecognised operators admit the record.
    return True


def evaluate_group(record: Dict[str, Any], group: ConditionGroup) -> bool:
    results = (evaluate_condition(record, condition) for condition in group.conditions)
    if group.operator == OR:
        return any(results)
    return all(results)


def _matches_simple(record, simple: SimpleFilters) -> bool:
    return all(as_text(record.get(key)) == value for key, value in simple.values)


def _matches_groups(record, grouped: GroupFilters) -> bool:
    results = (evaluate_group(record, group) for group in grouped.groups)
    if grouped.operator == OR:
        return any(results)
    return all(results)


def _matches_advanced(record, advanced: AdvancedFilters) -> bool:
    if not advanced.is_active:
        return True
    checks = [as_text(record.get(key)) in allowed for key, allowed in advanced.memberships]
    checks.extend(bool(record.get(key)) == flag for key, flag in advanced.flags)
    if advanced.operator == OR:
        return any(checks)
    return all(checks)


def matches(record: Dict[str, Any], state: FilterState) -> bool:
    if state.mode is FilterMode.GROUPS:
        return _matches_groups(record, state.grouped)
    if state.mode is FilterMode.ADVANCED:
        return _matches_advanced(record, state.advanced)
    return _matches_simple(record, state.simple)


def apply_filters(records: Iterable[Dict[str, Any]], state: FilterState) -> List[Dict[str, Any]]:
    """Return the records passing ``state``, in their original order."""
    return [record for record in records if matches(record, state)]


def count_matching(records: Iterable[Dict[str, Any]], field_name: str, value: Any) -> int:
    """Badge count: how many of ``records`` hold exactly ``value`` in ``field_name``."""
    target = as_text(value)
    return sum(1 for record in records if as_text(record.get(field_name)) == target)
