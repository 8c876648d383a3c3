"""
Search, sort and pagination stages plus the derived-state holder that chains
them after the filter engine.

    snapshot -> apply_filters -> search_records -> sort_records -> paginate
"""

import math
import unicodedata
from dataclasses import dataclass
from functools import cmp_to_key
from typing import Any, Dict, List, Optional, Sequence

from filter_engine import FilterState, apply_filters, as_text
from settings import PAGE_SIZE

ASC = 'asc'
DESC = 'desc'

# Free-text search columns; phone and date are matched without case folding.
SEARCH_TEXT_FIELDS = (
    'child_name',
    'parent_name',
    'school',
    'course',
    'class',
    'cycle',
    'registration_status',
)
SEARCH_RAW_FIELDS = ('parent_phone', 'trial_date')

VIEW_MODES = ('registrations', 'arrivals', 'messaging')
DEFAULT_VIEW = 'registrations'


# --- Search ---

def search_records(records: Sequence[Dict[str, Any]], query: Optional[str]) -> List[Dict[str, Any]]:
    needle = (query or '').strip().lower()
    if not needle:
        return list(records)

    def _hit(record):
        for key in SEARCH_TEXT_FIELDS:
            if needle in as_text(record.get(key)).lower():
                return True
        for key in SEARCH_RAW_FIELDS:
            if needle in as_text(record.get(key)):
                return True
        return False

    return [record for record in records if _hit(record)]


# --- Sort ---

@dataclass(frozen=True)
class SortState:
    key: Optional[str] = None
    direction: str = ASC

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'SortState':
        data = data or {}
        if not isinstance(data, dict):
            raise ValueError("sort must be an object")
        key = data.get('key') or None
        direction = DESC if str(data.get('direction', ASC)).lower() == DESC else ASC
        return cls(None if key is None else str(key), direction)

    def to_dict(self) -> Dict[str, Any]:
        return {'key': self.key, 'direction': self.direction}


def next_sort_state(current: SortState, key: str) -> SortState:
    """Column header click: asc on a new column, then desc, then cleared."""
    if current.key != key:
        return SortState(key, ASC)
    if current.direction == ASC:
        return SortState(key, DESC)
    return SortState(None, ASC)


# Final forms sort with their base letter.
FINAL_LETTERS = str.maketrans('ךםןףץ', 'כמנפצ')


def collation_key(text: str):
    # Primary: marks (niqqud) dropped, finals mapped, case folded.
    # Tie-break puts lowercase before uppercase.
    decomposed = unicodedata.normalize('NFKD', text)
    base = ''.join(ch for ch in decomposed if not unicodedata.combining(ch))
    return base.translate(FINAL_LETTERS).casefold(), text.swapcase()


def _collate(left: str, right: str) -> int:
    left_key, right_key = collation_key(left), collation_key(right)
    return (left_key > right_key) - (left_key < right_key)


def compare_values(left: Any, right: Any) -> int:
    if isinstance(left, str) and isinstance(right, str):
        return _collate(left, right)
    if isinstance(left, bool) and isinstance(right, bool):
        return (left > right) - (left < right)
    return _collate(as_text(left), as_text(right))


def sort_records(records: Sequence[Dict[str, Any]], sort_state: SortState) -> List[Dict[str, Any]]:
    if sort_state.key is None:
        return list(records)

    key = sort_state.key
    sign = -1 if sort_state.direction == DESC else 1

    def _cmp(a, b):
        return sign * compare_values(a.get(key), b.get(key))

    return sorted(records, key=cmp_to_key(_cmp))


# --- Pagination ---

def parse_page_param(value, default=1):
    try:
        page = int(value)
    except (TypeError, ValueError):
        page = default
    return page if page > 0 else default


def _generate_page_numbers(current_page, total_pages, window=2):
    if total_pages <= (window * 2) + 3:
        return list(range(1, total_pages + 1))

    pages = []
    start = max(1, current_page - window)
    end = min(total_pages, current_page + window)

    if start > 1:
        pages.append(1)
        if start > 2:
            pages.append(None)

    pages.extend(range(start, end + 1))

    if end < total_pages:
        if end < total_pages - 1:
            pages.append(None)
        pages.append(total_pages)

    return pages


def paginate(items, page, per_page=PAGE_SIZE):
    """Slice ``items`` to ``page`` and describe the navigation around it."""
    total = len(items)
    total_pages = max(1, math.ceil(total / per_page))
    page = min(max(page, 1), total_pages)

    start = (page - 1) * per_page
    page_items = items[start:start + per_page]

    pagination = {
        'page': page,
        'per_page': per_page,
        'total': total,
        'total_pages': total_pages,
        'has_prev': page > 1,
        'has_next': page < total_pages,
        'show': total > per_page,
        'pages': [],
    }
    if total:
        for num in _generate_page_numbers(page, total_pages):
            if num is None:
                pagination['pages'].append({'ellipsis': True})
            else:
                pagination['pages'].append({'number': num, 'current': num == page})

    return page_items, pagination


# --- Derived state ---

class RegistrationTable:
    """Holds the snapshot plus user-controlled state and recomputes lazily.

    Each stage result is cached against the tuple of inputs it depends on, so
    a sort change reuses the filtered/searched lists and a page change reuses
    the ordered list.
    """

    def __init__(self, records=(), page_size=PAGE_SIZE, snapshot_version=0):
        self.page_size = page_size
        self._snapshot = tuple(records)
        self._snapshot_version = snapshot_version
        self.filter_state = FilterState()
        self.search = ''
        self.sort_state = SortState()
        self.page = 1
        self._cache = {}

    @property
    def snapshot(self):
        return self._snapshot

    def set_snapshot(self, records):
        self._snapshot = tuple(records)
        self._snapshot_version += 1
        self.page = 1

    def set_filter_state(self, state: FilterState):
        if state != self.filter_state:
            self.filter_state = state
            self.page = 1

    def set_search(self, query: Optional[str]):
        if query is not None and not isinstance(query, str):
            raise ValueError("search must be a string")
        query = query or ''
        if query != self.search:
            self.search = query
            self.page = 1

    def set_sort(self, sort_state: SortState):
        self.sort_state = sort_state

    def click_sort(self, key: str) -> SortState:
        self.sort_state = next_sort_state(self.sort_state, key)
        return self.sort_state

    def go_to_page(self, page):
        self.page = parse_page_param(page)

    def _memo(self, stage, inputs, compute):
        cached = self._cache.get(stage)
        if cached is not None and cached[0] == inputs:
            return cached[1]
        result = compute()
        self._cache[stage] = (inputs, result)
        return result

    def filtered(self):
        return self._memo(
            'filtered',
            (self._snapshot_version, self.filter_state),
            lambda: apply_filters(self._snapshot, self.filter_state),
        )

    def searched(self):
        return self._memo(
            'searched',
            (self._snapshot_version, self.filter_state, self.search.strip().lower()),
            lambda: search_records(self.filtered(), self.search),
        )

    def ordered(self):
        return self._memo(
            'ordered',
            (self._snapshot_version, self.filter_state, self.search.strip().lower(), self.sort_state),
            lambda: sort_records(self.searched(), self.sort_state),
        )

    def current_page(self):
        page_items, pagination = paginate(self.ordered(), self.page, self.page_size)
        self.page = pagination['page']
        return page_items, pagination

    def dump_state(self):
        """The user-controlled state as a small JSON-safe dict (kept in the session)."""
        return {
            'filters': self.filter_state.to_dict(),
            'search': self.search,
            'sort': self.sort_state.to_dict(),
            'page': self.page,
            'snapshot': self._snapshot_version,
        }

    def load_state(self, state):
        """Restore ``dump_state`` output; state saved against another snapshot restarts at page 1."""
        state = state or {}
        self.filter_state = FilterState.from_dict(state.get('filters'))
        self.search = state.get('search') or ''
        self.sort_state = SortState.from_dict(state.get('sort'))
        self.page = parse_page_param(state.get('page'))
        if state.get('snapshot') != self._snapshot_version:
            self.page = 1


# --- Shareable link state ---

def shareable_args(cohort=None, date=None, view=DEFAULT_VIEW):
    """Query parameters that let a link restore cohort, date and view."""
    args = {}
    if cohort:
        args['cohort'] = cohort
    if date:
        args['date'] = date
    if view and view != DEFAULT_VIEW and view in VIEW_MODES:
        args['view'] = view
    return args


def parse_shareable_args(args):
    view = args.get('view') or DEFAULT_VIEW
    if view not in VIEW_MODES:
        view = DEFAULT_VIEW
    return {
        'cohort': args.get('cohort') or None,
        'date': args.get('date') or None,
        'view': view,
    }
