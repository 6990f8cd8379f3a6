"""
Reactive Controller - owns the filter criteria of one dashboard session.

The controller holds the joined records (injected, never re-loaded), the current
FilterCriteria, the latest FilteredView and the last output of every subscribed
view adapter. A criteria change recomputes the view once and pushes the new
snapshot to every adapter. Changes that land while a recomputation is running
are coalesced: only the newest criteria get computed next, and a snapshot that
is already out of date is never published.
"""

import enum
import threading
from typing import Any, Callable, Dict, Optional

import pandas as pd

from utils.logger_config import setup_logger
from violation_filters import FilterCriteria, FilteredView, filter_violations

logger = setup_logger(__name__)

Adapter = Callable[[FilteredView], Any]


class ControllerState(enum.Enum):
    IDLE = 'idle'
    RECOMPUTING = 'recomputing'


class ReactiveController:
    """
    Observer-style fan-out of one filtered snapshot to many views.

    Attributes:
        records (pd.DataFrame): Joined violations, read-only
        filter_fn (callable): (records, criteria) -> FilteredView

    Example:
        >>> controller = ReactiveController(dataset.violations)
        >>> controller.subscribe('top_fines', top_fined_entities)
        >>> controller.set_criteria(criteria)
        >>> controller.outputs['top_fines']
    """

    def __init__(self, records: pd.DataFrame, filter_fn: Callable[[pd.DataFrame, FilterCriteria], FilteredView] = filter_violations) -> None:
        self.records = records
        self.filter_fn = filter_fn
        self._adapters: Dict[str, Adapter] = {}
        self._lock = threading.Lock()
        self._state = ControllerState.IDLE
        self._pending: Optional[FilterCriteria] = None
        self._criteria: Optional[FilterCriteria] = None
        self._view: Optional[FilteredView] = None
        self._outputs: Dict[str, Any] = {}
        self.recompute_count = 0

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def criteria(self) -> Optional[FilterCriteria]:
        return self._criteria

    @property
    def view(self) -> Optional[FilteredView]:
        return self._view

    @property
    def outputs(self) -> Dict[str, Any]:
        return dict(self._outputs)

    def subscribe(self, name: str, adapter: Adapter) -> None:
        """Register a view adapter; it is fed the current snapshot right away if there is one."""
        with self._lock:
            self._adapters[name] = adapter
            view = self._view
        if view is not None:
            output = adapter(view)
            with self._lock:
                if self._view is view:
                    self._outputs[name] = output

    def set_criteria(self, criteria: FilterCriteria) -> bool:
        """
        Record a criteria change and recompute.

        Returns:
            bool: False when ``criteria`` equals what is already displayed
                  (nothing recomputed), True otherwise.
        """
        with self._lock:
            if self._state is ControllerState.RECOMPUTING:
                # the running loop picks this up once it finishes its pass
                self._pending = criteria
                logger.debug('Criteria changed during recompute; coalescing')
                return True
            if self._view is not None and criteria == self._criteria:
                return False
            self._pending = criteria
            self._state = ControllerState.RECOMPUTING

        try:
            self._run()
        except Exception:
            with self._lock:
                self._state = ControllerState.IDLE
                self._pending = None
            raise
        return True

    def _run(self) -> None:
        while True:
            with self._lock:
                criteria = self._pending
                self._pending = None
                adapters = dict(self._adapters)
                if criteria is None:
                    self._state = ControllerState.IDLE
                    return

            view = self.filter_fn(self.records, criteria)
            outputs = {name: adapter(view) for name, adapter in adapters.items()}

            with self._lock:
                if self._pending is not None and self._pending != criteria:
                    # superseded while computing; don't publish a stale snapshot
                    continue
                self._pending = None
                self._criteria = criteria
                self._view = view
                self._outputs = outputs
                self.recompute_count += 1
                # back to idle under the same lock that publishes, so a change
                # arriving from here on starts its own recompute
                self._state = ControllerState.IDLE
            logger.debug(f'Recomputed view: {len(view)} records for {len(criteria.neighborhoods)} neighborhoods')
            return
