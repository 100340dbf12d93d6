"""
Aggregation Utilities

Pure functions over transaction-like records: anything with ``type``,
``amount``, ``category`` and ``date`` attributes. Nothing here touches
storage; the statistics views and the transaction list call these on
whatever (possibly filtered) list they are showing.

DESIGN DECISION: All sums are Decimal. Amounts are stored with two
decimal places, so totals are exact and ``income - expense == balance``
holds without float drift.
"""

import datetime as dt
from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional, Sequence

from pydantic import Field

from cashbook.categories import (
    DEFAULT_COLOR,
    DEFAULT_ICON,
    find_category,
    repair_category_id,
    resolve_category_name,
)
from cashbook.models.finance import CashbookModel, Category, Money, TransactionType


ZERO = Decimal("0")


# =============================================================================
# RESULT MODELS
# =============================================================================

class DayTotals(CashbookModel):
    income: Money = ZERO
    expense: Money = ZERO


class DailyGroup(CashbookModel):
    """Transactions of one calendar day."""
    date: str = Field(..., description="YYYY-MM-DD")
    date_display: str = Field(..., description="e.g. 1月15日")
    transactions: list[Any] = Field(default_factory=list)
    income: Money = ZERO
    expense: Money = ZERO
    balance: Money = ZERO
    count: int = 0


class MonthlyGroup(CashbookModel):
    """Transactions of one month with per-day breakdown."""
    month_key: str = Field(..., description="YYYY-MM")
    month_name: str = Field(..., description="e.g. 2024年1月")
    transactions: list[Any] = Field(default_factory=list)
    income: Money = ZERO
    expense: Money = ZERO
    balance: Money = ZERO
    count: int = 0
    daily_groups: list[DailyGroup] = Field(default_factory=list)


class MonthlyStat(CashbookModel):
    """One point of the month-by-month chart series."""
    month: str = Field(..., description="MM")
    full_month: str = Field(..., description="YYYY-MM")
    income: Money = ZERO
    expense: Money = ZERO
    balance: Money = ZERO


class YearlyStat(CashbookModel):
    year: int
    income: Money = ZERO
    expense: Money = ZERO
    balance: Money = ZERO


class CategoryStat(CashbookModel):
    """Per-category share of one transaction type."""
    category_id: str
    name: str
    amount: Money
    percentage: float = Field(..., description="Share of the type total, 0.1 precision")
    icon: str = DEFAULT_ICON
    color: str = DEFAULT_COLOR


class ChartSlice(CashbookModel):
    """A named value for pie/bar charts."""
    name: str
    value: Money


# =============================================================================
# FIELD ACCESS
# =============================================================================

def _type_of(record: Any) -> str:
    value = record.type
    return value.value if isinstance(value, TransactionType) else str(value)


def _amount_of(record: Any) -> Decimal:
    value = record.amount
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _day_of(record: Any) -> dt.date:
    value = record.date
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    return dt.date.fromisoformat(str(value)[:10])


def _type_value(transaction_type: TransactionType | str) -> str:
    return TransactionType(transaction_type).value


# =============================================================================
# TOTALS
# =============================================================================

def total(records: Iterable[Any], transaction_type: TransactionType | str) -> Decimal:
    """Sum of amounts of one type."""
    wanted = _type_value(transaction_type)
    return sum((_amount_of(r) for r in records if _type_of(r) == wanted), ZERO)


def balance(records: Iterable[Any]) -> Decimal:
    """Income minus expense."""
    records = list(records)
    return total(records, TransactionType.INCOME) - total(records, TransactionType.EXPENSE)


# =============================================================================
# GROUPING
# =============================================================================

def group_by_category(
    records: Iterable[Any],
    transaction_type: TransactionType | str,
) -> dict[str, Decimal]:
    """
    Sum amounts of one type per category.

    Keys are repaired category ids, so ``food`` and ``food:餐饮`` land in
    the same bucket. Keys keep first-seen order.
    """
    wanted = _type_value(transaction_type)
    grouped: dict[str, Decimal] = {}
    for record in records:
        if _type_of(record) != wanted:
            continue
        key = repair_category_id(record.category)
        grouped[key] = grouped.get(key, ZERO) + _amount_of(record)
    return grouped


def group_by_date(records: Iterable[Any]) -> dict[str, DayTotals]:
    """Income and expense per calendar day, ascending by date."""
    grouped: dict[str, DayTotals] = defaultdict(DayTotals)
    for record in records:
        day = grouped[_day_of(record).isoformat()]
        if _type_of(record) == TransactionType.INCOME.value:
            day.income += _amount_of(record)
        else:
            day.expense += _amount_of(record)
    return {key: grouped[key] for key in sorted(grouped)}


def _add_to_group(group: DailyGroup | MonthlyGroup, record: Any) -> None:
    group.transactions.append(record)
    group.count += 1
    if _type_of(record) == TransactionType.INCOME.value:
        group.income += _amount_of(record)
    else:
        group.expense += _amount_of(record)
    group.balance = group.income - group.expense


def group_by_month(records: Iterable[Any]) -> list[MonthlyGroup]:
    """
    Month buckets, most recent month first.

    Within a month, transactions are newest first and daily groups are
    sorted by date descending.
    """
    ordered = sorted(records, key=_day_of, reverse=True)

    months: dict[str, MonthlyGroup] = {}
    for record in ordered:
        day = _day_of(record)
        key = f"{day.year:04d}-{day.month:02d}"
        if key not in months:
            months[key] = MonthlyGroup(month_key=key, month_name=f"{day.year}年{day.month}月")
        _add_to_group(months[key], record)

    result = [months[key] for key in sorted(months, reverse=True)]

    for month in result:
        days: dict[str, DailyGroup] = {}
        for record in month.transactions:
            day = _day_of(record)
            key = day.isoformat()
            if key not in days:
                days[key] = DailyGroup(date=key, date_display=f"{day.month}月{day.day}日")
            _add_to_group(days[key], record)
        month.daily_groups = [days[key] for key in sorted(days, reverse=True)]

    return result


def aggregate_small_categories(
    slices: Sequence[ChartSlice],
    threshold_percent: float,
) -> list[ChartSlice]:
    """
    Merge small slices into one "other (N items)" slice.

    A slice is small when its value is at or below ``threshold_percent``
    of the total of ``slices``. Pass the currently filtered slices: the
    threshold follows whatever total is on screen. Remaining slices are
    sorted by value descending; the merged slice, if any, comes last.
    """
    grand_total = sum((s.value for s in slices), ZERO)
    ranked = sorted(slices, key=lambda s: s.value, reverse=True)
    if grand_total <= 0:
        return ranked

    percent = Decimal(str(threshold_percent))
    kept = [s for s in ranked if s.value * 100 > grand_total * percent]
    small = [s for s in ranked if s.value * 100 <= grand_total * percent]

    if not small:
        return kept

    other = ChartSlice(
        name=f"other ({len(small)} items)",
        value=sum((s.value for s in small), ZERO),
    )
    return [*kept, other]


# =============================================================================
# STATISTICS VIEWS
# =============================================================================

def filter_by_year(records: Iterable[Any], year: int) -> list[Any]:
    return [r for r in records if _day_of(r).year == year]


def filter_by_month(records: Iterable[Any], year: int, month: int) -> list[Any]:
    return [r for r in records if (_day_of(r).year, _day_of(r).month) == (year, month)]


def available_years(records: Iterable[Any]) -> list[int]:
    """Distinct years present, newest first."""
    return sorted({_day_of(r).year for r in records}, reverse=True)


def group_by_year(records: Iterable[Any]) -> list[YearlyStat]:
    """Yearly totals, newest year first."""
    years: dict[int, YearlyStat] = {}
    for record in records:
        year = _day_of(record).year
        stat = years.setdefault(year, YearlyStat(year=year))
        if _type_of(record) == TransactionType.INCOME.value:
            stat.income += _amount_of(record)
        else:
            stat.expense += _amount_of(record)

    for stat in years.values():
        stat.balance = stat.income - stat.expense
    return [years[year] for year in sorted(years, reverse=True)]


def monthly_stats(records: Iterable[Any]) -> list[MonthlyStat]:
    """Month series in ascending order, for trend charts."""
    months: dict[str, MonthlyStat] = {}
    for record in records:
        day = _day_of(record)
        key = f"{day.year:04d}-{day.month:02d}"
        stat = months.setdefault(key, MonthlyStat(month=key[5:], full_month=key))
        if _type_of(record) == TransactionType.INCOME.value:
            stat.income += _amount_of(record)
        else:
            stat.expense += _amount_of(record)

    for stat in months.values():
        stat.balance = stat.income - stat.expense
    return [months[key] for key in sorted(months)]


def category_stats(
    records: Iterable[Any],
    transaction_type: TransactionType | str,
    categories: Iterable[Category],
) -> list[CategoryStat]:
    """
    Per-category amounts and shares for one type, largest first.

    Ids that match no known category still get a display name (see
    ``resolve_category_name``) and the default icon and color.
    """
    categories = list(categories)
    records = list(records)
    grouped = group_by_category(records, transaction_type)
    type_total = total(records, transaction_type)

    stats = []
    for category_id, amount in grouped.items():
        category: Optional[Category] = find_category(category_id, categories)
        percentage = 0.0
        if type_total > 0:
            percentage = float((amount * 100 / type_total).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))
        stats.append(CategoryStat(
            category_id=category_id,
            name=category.name if category else resolve_category_name(category_id, categories),
            amount=amount,
            percentage=percentage,
            icon=category.icon if category else DEFAULT_ICON,
            color=category.color if category else DEFAULT_COLOR,
        ))

    return sorted(stats, key=lambda s: s.amount, reverse=True)


def to_chart_slices(stats: Iterable[CategoryStat]) -> list[ChartSlice]:
    return [ChartSlice(name=s.name, value=s.amount) for s in stats]
