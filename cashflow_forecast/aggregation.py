"""Monthly and per-category aggregation of transaction history.

Transactions are normalised into a DataFrame with the columns
``Transaction Date``, ``Amount``, ``Category`` and ``Month`` and then
grouped into a month -> category table of income/expense totals.
Non-negative amounts count as income; negative amounts count towards
expenses by magnitude.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Union

import pandas as pd

from .models import (
    CategoryAggregate,
    MonthlyCategoryTable,
    Transaction,
    normalize_category,
    parse_date,
)

logger = logging.getLogger(__name__)

FRAME_COLUMNS = ['Transaction Date', 'Amount', 'Category', 'Month']

_COLUMN_ALIASES = {
    'amount': 'Amount',
    'category': 'Category',
    'booked_at': 'Transaction Date',
    'bookedAt': 'Transaction Date',
}

TransactionsLike = Union[pd.DataFrame, Iterable[Union[Transaction, Dict[str, Any]]], None]


def transactions_frame(transactions: TransactionsLike) -> pd.DataFrame:
    """Normalise transactions into a canonically ordered DataFrame.

    Accepts a DataFrame (title-case or snake_case columns), ``Transaction``
    objects or plain records.  Rows with unparseable booking dates are
    dropped; non-numeric amounts count as zero.  Rows are sorted on every
    column so results never depend on input order.
    """
    if isinstance(transactions, pd.DataFrame):
        if set(FRAME_COLUMNS).issubset(transactions.columns) and transactions.attrs.get('normalized'):
            return transactions
        source = transactions.rename(columns=_COLUMN_ALIASES)
        rows = pd.DataFrame({
            'Transaction Date': source.get('Transaction Date', pd.Series(None, index=source.index, dtype=object)),
            'Amount': source.get('Amount', pd.Series(0.0, index=source.index)),
            'Category': source.get('Category', pd.Series(None, index=source.index, dtype=object)),
        })
    else:
        records = []
        for item in transactions or []:
            txn = item if isinstance(item, Transaction) else Transaction.from_record(item)
            records.append({
                'Transaction Date': txn.booked_at,
                'Amount': txn.amount,
                'Category': txn.category,
            })
        rows = pd.DataFrame(records, columns=['Transaction Date', 'Amount', 'Category'])

    rows['Amount'] = pd.to_numeric(rows['Amount'], errors='coerce').fillna(0.0).astype(float)
    rows['Category'] = rows['Category'].map(normalize_category).astype(object)
    booked = rows['Transaction Date'].map(parse_date)
    invalid = booked.isna()
    if invalid.any():
        logger.warning("Dropping %d transaction(s) with unparseable booking dates", int(invalid.sum()))
    rows = rows.loc[~invalid].copy()
    rows['Transaction Date'] = pd.to_datetime(booked[~invalid].astype(object))
    rows['Month'] = rows['Transaction Date'].dt.to_period('M').astype(str)
    rows = rows.sort_values(['Transaction Date', 'Category', 'Amount'], kind='mergesort').reset_index(drop=True)
    rows = rows[FRAME_COLUMNS]
    rows.attrs['normalized'] = True
    return rows


def _split_flows(frame: pd.DataFrame) -> pd.DataFrame:
    amounts = frame['Amount']
    return frame.assign(
        Income=amounts.where(amounts >= 0, 0.0),
        Expenses=(-amounts).where(amounts < 0, 0.0),
    )


def aggregate_by_month_category(transactions: TransactionsLike) -> MonthlyCategoryTable:
    """Group transactions into month -> category income/expense totals."""
    frame = transactions_frame(transactions)
    table: MonthlyCategoryTable = {}
    if frame.empty:
        return table

    grouped = _split_flows(frame).groupby(['Month', 'Category'], sort=True)[['Income', 'Expenses']].sum()
    for (month, category), row in grouped.iterrows():
        table.setdefault(month, {})[category] = CategoryAggregate(
            income=float(row['Income']),
            expenses=float(row['Expenses']),
        )
    return table


def monthly_totals(table: MonthlyCategoryTable) -> Dict[str, CategoryAggregate]:
    """Collapse each month's categories into one aggregate."""
    totals: Dict[str, CategoryAggregate] = {}
    for month in sorted(table):
        total = CategoryAggregate()
        for category in sorted(table[month]):
            total = total + table[month][category]
        totals[month] = total
    return totals


def observed_categories(table: MonthlyCategoryTable) -> List[str]:
    categories = set()
    for cells in table.values():
        categories.update(cells)
    return sorted(categories)


def cumulative_balance(frame: pd.DataFrame, through_month: str) -> float:
    """Exact sum of every amount booked in or before ``through_month``."""
    return float(frame.loc[frame['Month'] <= through_month, 'Amount'].sum())


def total_balance(frame: pd.DataFrame) -> float:
    return float(frame['Amount'].sum())


def _period_start(period: str, today: date) -> Optional[pd.Timestamp]:
    if period == 'all':
        return None
    now = pd.Timestamp(today)
    if period == 'year':
        return now - pd.DateOffset(years=1)
    if period == 'quarter':
        return now - pd.DateOffset(months=3)
    raise ValueError(f"Unsupported period '{period}'")


def summarize_transactions(
    transactions: TransactionsLike,
    period: str = 'all',
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """Monthly and per-category report over a trailing period.

    ``current_balance`` always covers the full history, regardless of
    ``period``.
    """
    today = today or date.today()
    frame = transactions_frame(transactions)
    start = _period_start(period, today)
    filtered = frame if start is None else frame[frame['Transaction Date'] >= start.normalize()]
    flows = _split_flows(filtered)

    monthly = (
        flows.groupby('Month', sort=True)
        .agg(Income=('Income', 'sum'), Expenses=('Expenses', 'sum'), Transaction_Count=('Amount', 'size'))
        .reset_index()
    )
    monthly['Net'] = monthly['Income'] - monthly['Expenses']
    monthly = monthly[['Month', 'Income', 'Expenses', 'Net', 'Transaction_Count']]

    by_category = (
        flows.groupby('Category', sort=True)
        .agg(Income=('Income', 'sum'), Expenses=('Expenses', 'sum'), Transaction_Count=('Amount', 'size'))
    )
    by_category['Net'] = by_category['Income'] - by_category['Expenses']
    if not by_category.empty:
        order = by_category['Net'].abs().sort_values(ascending=False, kind='mergesort').index
        by_category = by_category.loc[order]

    income = float(flows['Income'].sum())
    expenses = float(flows['Expenses'].sum())
    return {
        'period': period,
        'from_date': start.date().isoformat() if start is not None else None,
        'count': int(len(filtered)),
        'monthly': monthly,
        'by_category': by_category[['Income', 'Expenses', 'Net', 'Transaction_Count']],
        'totals': {'income': income, 'expenses': expenses, 'net': income - expenses},
        'current_balance': total_balance(frame),
    }
