from typing import Any, Dict, List, Sequence, Tuple, Union
import numpy as np


class IntervalTable:
    """
    Labeled time intervals, e.g., the trials of a session.

    Rows keep the order of the source table. Auxiliary columns are looked up
    by name: table['direction'].
    """
    def __init__(self, starts: Sequence[float], stops: Sequence[float], *, columns: Union[Dict[str, Any], None] = None, name: str = 'trials'):
        self._name = name
        self._starts = np.array(starts, dtype=np.float64)
        self._stops = np.array(stops, dtype=np.float64)
        if self._starts.shape != self._stops.shape or self._starts.ndim != 1:
            raise ValueError(f"start and stop times must be 1D and of equal length: {self._starts.shape} != {self._stops.shape}")
        self._starts.setflags(write=False)
        self._stops.setflags(write=False)
        self._columns: Dict[str, Any] = {}
        for k, v in (columns or {}).items():
            if k in ('start_time', 'stop_time'):
                raise ValueError(f"Reserved column name: {k}")
            if len(v) != len(self._starts):
                raise ValueError(f"Column {k} has {len(v)} rows, expected {len(self._starts)}")
            self._columns[k] = v

    @property
    def name(self) -> str:
        return self._name

    @property
    def starts(self) -> np.ndarray:
        return self._starts

    @property
    def stops(self) -> np.ndarray:
        return self._stops

    @property
    def intervals(self) -> List[Tuple[float, float]]:
        return [(float(a), float(b)) for a, b in zip(self._starts, self._stops)]

    @property
    def colnames(self) -> List[str]:
        return list(self._columns.keys())

    def column(self, name: str):
        return self[name]

    def __getitem__(self, name: str):
        if name == 'start_time':
            return self._starts
        if name == 'stop_time':
            return self._stops
        return self._columns[name]

    def __contains__(self, name: str):
        return name in ('start_time', 'stop_time') or name in self._columns

    def __len__(self):
        return len(self._starts)

    def __repr__(self):
        return f'<IntervalTable {self._name}: {len(self)} rows, columns {self.colnames}>'

    def to_interval_set(self):
        """Return the intervals as a pynapple IntervalSet."""
        import pynapple as nap  # don't make this a required dependency for the package
        return nap.IntervalSet(start=np.array(self._starts), end=np.array(self._stops))
