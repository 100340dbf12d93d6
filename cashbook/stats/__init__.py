"""Totals, grouping and chart rollups over transactions."""

from cashbook.stats.aggregation import (
    CategoryStat,
    ChartSlice,
    DailyGroup,
    DayTotals,
    MonthlyGroup,
    MonthlyStat,
    YearlyStat,
    aggregate_small_categories,
    available_years,
    balance,
    category_stats,
    filter_by_month,
    filter_by_year,
    group_by_category,
    group_by_date,
    group_by_month,
    group_by_year,
    monthly_stats,
    to_chart_slices,
    total,
)

__all__ = [
    "CategoryStat",
    "ChartSlice",
    "DailyGroup",
    "DayTotals",
    "MonthlyGroup",
    "MonthlyStat",
    "YearlyStat",
    "aggregate_small_categories",
    "available_years",
    "balance",
    "category_stats",
    "filter_by_month",
    "filter_by_year",
    "group_by_category",
    "group_by_date",
    "group_by_month",
    "group_by_year",
    "monthly_stats",
    "to_chart_slices",
    "total",
]
