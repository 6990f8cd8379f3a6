"""Filter Engine - the single predicate every dashboard view is derived from."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable

import geopandas as gpd
import pandas as pd

from utils.exceptions import FilterError
from utils.logger_config import setup_logger

logger = setup_logger(__name__)


@dataclass(frozen=True)
class FilterCriteria:
    """User selection: inclusive date range, neighborhood set and the fines-due switch."""

    start_date: date
    end_date: date
    neighborhoods: frozenset[str] = field(default_factory=frozenset)
    fines_only: bool = False

    def __post_init__(self):
        # accept any iterable of names, keep equality/hash value-based
        if not isinstance(self.neighborhoods, frozenset):
            object.__setattr__(self, 'neighborhoods', frozenset(self.neighborhoods))

    @classmethod
    def build(cls, start_date, end_date, neighborhoods: Iterable[str] = (), fines_only: bool = False) -> "FilterCriteria":
        return cls(pd.Timestamp(start_date).date(), pd.Timestamp(end_date).date(), frozenset(neighborhoods), bool(fines_only))

    def validate(self) -> None:
        """Raise FilterError for criteria the widgets should never produce."""
        if not isinstance(self.start_date, date) or not isinstance(self.end_date, date):
            raise FilterError(f'Date range must be two dates, got {self.start_date!r} to {self.end_date!r}')
        if self.end_date < self.start_date:
            raise FilterError(f'End date {self.end_date} is before start date {self.start_date}')
        if not all(isinstance(n, str) for n in self.neighborhoods):
            raise FilterError('Neighborhood names must be strings')


@dataclass(frozen=True)
class FilteredView:
    """A snapshot of the records matching ``criteria``. Recomputed, never edited."""

    criteria: FilterCriteria
    records: gpd.GeoDataFrame

    def __len__(self) -> int:
        return len(self.records)

    @property
    def empty(self) -> bool:
        return self.records.empty


def _empty_view(records: pd.DataFrame, criteria: FilterCriteria) -> FilteredView:
    return FilteredView(criteria, records.iloc[0:0].copy())


def filter_violations(records: pd.DataFrame, criteria: FilterCriteria) -> FilteredView:
    """
    Apply the dashboard filter.

    A record is kept when its issue date lies in [start, end] (both ends
    inclusive), its neighborhood is one of the selected names, and, with
    ``fines_only`` on, it still has an amount due. An unmatched record (null
    neighborhood) never matches. An empty neighborhood selection means nothing
    is shown, not everything.

    ``records`` is only read. Malformed criteria give an empty view.
    """
    try:
        criteria.validate()
    except FilterError as e:
        logger.warning(f'Rejected filter criteria: {e}')
        return _empty_view(records, criteria)

    if not criteria.neighborhoods:
        return _empty_view(records, criteria)

    start = pd.Timestamp(criteria.start_date)
    end = pd.Timestamp(criteria.end_date)
    mask = (
        records['issued_date'].between(start, end, inclusive='both')
        & records['neighborhood'].isin(sorted(criteria.neighborhoods))
    )
    if criteria.fines_only:
        mask &= records['current_amount_due'] > 0

    return FilteredView(criteria, records.loc[mask].copy())
