"""Regroup aggregated rows by classification depth for drilldown views.

Codes are compared digits-only: chapter = 2 digits, subchapter = 4,
paragraph = 6. Dots exist only in ``display_code``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

from classification_labels import static_label
from models import ClassificationDimension, RootDepth
from schemas import AggregatedRow, AnalyticsFilter, GroupedItem, GroupingOptions

LEAF_DEPTH = 6

ROOT_DEPTHS = {
    RootDepth.chapter: 2,
    RootDepth.subchapter: 4,
    RootDepth.paragraph: 6,
}

_NON_DIGITS = re.compile(r"[^0-9]")


def normalize_code(code: Optional[str]) -> str:
    return _NON_DIGITS.sub("", code or "")


def format_code(code: str) -> str:
    digits = normalize_code(code)
    return ".".join(digits[i : i + 2] for i in range(0, len(digits), 2))


def is_unclassified(code: Optional[str]) -> bool:
    digits = normalize_code(code)
    return digits == "" or set(digits) == {"0"}


def target_depth(path: list[str], root_depth: RootDepth = RootDepth.chapter) -> int:
    if not path:
        return ROOT_DEPTHS[root_depth]
    digits = len(normalize_code(path[-1]))
    if digits > LEAF_DEPTH:
        raise ValueError(
            f"Drilldown path code {path[-1]!r} is deeper than a paragraph"
        )
    return min(digits + 2, LEAF_DEPTH)


def _code_for(row: AggregatedRow, dimension: ClassificationDimension) -> str:
    if dimension == ClassificationDimension.functional:
        return row.functional_code
    return row.economic_code


def _raw_name_for(row: AggregatedRow, dimension: ClassificationDimension) -> str:
    if dimension == ClassificationDimension.functional:
        return row.functional_name
    return row.economic_name


def resolve_label(
    code: str,
    depth: int,
    dimension: ClassificationDimension,
    representative: Optional[AggregatedRow],
) -> str:
    if depth < LEAF_DEPTH:
        # Chapters and subchapters never borrow a line item's name.
        return static_label(dimension, code) or format_code(code)
    if representative is not None:
        name = (_raw_name_for(representative, dimension) or "").strip()
        if name:
            return name
    return format_code(code)


@dataclass
class _Group:
    value: float = 0.0
    count: int = 0
    representative: Optional[AggregatedRow] = None


@dataclass
class _RowFilter:
    dimension: ClassificationDimension
    current_code: Optional[str]
    pivot_dimension: Optional[ClassificationDimension] = None
    pivot_code: Optional[str] = None
    excluded_chapters: set[str] = field(default_factory=set)

    def keep(self, row: AggregatedRow) -> bool:
        if self.excluded_chapters:
            if normalize_code(row.economic_code)[:2] in self.excluded_chapters:
                return False
        if self.dimension == ClassificationDimension.economic and is_unclassified(
            row.economic_code
        ):
            return False
        if self.pivot_code is not None and self.pivot_dimension is not None:
            pivot_value = normalize_code(_code_for(row, self.pivot_dimension))
            if not pivot_value.startswith(self.pivot_code):
                return False
        if self.current_code:
            code = normalize_code(_code_for(row, self.dimension))
            if not code.startswith(self.current_code):
                return False
        return True


def _human_summary(
    category: str,
    dimension: ClassificationDimension,
    label: str,
    value: float,
    percentage: float,
) -> str:
    kind = "functional" if dimension == ClassificationDimension.functional else "economic"
    return (
        f'The {category} for {kind} category "{label}" was {value:,.2f}, '
        f"{percentage * 100:.2f}% of total {category}."
    )


def group_aggregated_line_items(
    rows: Iterable[AggregatedRow],
    filter: AnalyticsFilter,
    options: GroupingOptions,
) -> list[GroupedItem]:
    dimension = options.dimension
    depth = target_depth(options.path, options.root_depth)
    current_code = normalize_code(options.path[-1]) if options.path else None

    row_filter = _RowFilter(
        dimension=dimension,
        current_code=current_code,
        excluded_chapters={normalize_code(c)[:2] for c in options.exclude_chapters},
    )
    if options.pivot_constraint is not None:
        row_filter.pivot_dimension = options.pivot_constraint.dimension
        row_filter.pivot_code = normalize_code(options.pivot_constraint.code)

    groups: dict[str, _Group] = {}
    for row in rows:
        if not row_filter.keep(row):
            continue
        group_code = normalize_code(_code_for(row, dimension))[:depth]
        # A code padded with trailing zeros can truncate back to the path leaf.
        if group_code == current_code:
            continue
        group = groups.setdefault(group_code, _Group(representative=row))
        group.value += row.amount
        group.count += row.count

    total = sum(group.value for group in groups.values())
    category = filter.account_category.value

    items: list[GroupedItem] = []
    for code, group in groups.items():
        label = resolve_label(code, depth, dimension, group.representative)
        percentage = group.value / total if total else 0.0
        items.append(
            GroupedItem(
                code=code,
                display_code=format_code(code),
                name=label,
                value=group.value,
                count=group.count,
                is_leaf=depth >= LEAF_DEPTH,
                percentage=percentage,
                human_summary=_human_summary(
                    category, dimension, label, group.value, percentage
                ),
            )
        )

    items.sort(key=lambda item: (-item.value, item.code))
    return items
