from typing import Dict, Iterator, List, Mapping
import numpy as np


class EventTable(Mapping):
    """
    Event timestamps grouped by identifier, e.g., spike times by unit id.

    Behaves as a read-only mapping from int identifier to an ascending,
    read-only float64 array of timestamps.
    """
    def __init__(self, events: Mapping[int, np.ndarray], *, name: str = 'units', column: str = 'spike_times'):
        self._name = name
        self._column = column
        self._events: Dict[int, np.ndarray] = {}
        for k, v in events.items():
            arr = np.sort(np.asarray(v, dtype=np.float64), kind='stable')
            arr.setflags(write=False)
            self._events[int(k)] = arr

    @property
    def name(self) -> str:
        return self._name

    @property
    def column(self) -> str:
        return self._column

    @property
    def ids(self) -> List[int]:
        return list(self._events.keys())

    def __getitem__(self, key: int) -> np.ndarray:
        return self._events[key]

    def __iter__(self) -> Iterator[int]:
        return iter(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def __eq__(self, other):
        if not isinstance(other, Mapping):
            return NotImplemented
        if set(self.keys()) != set(other.keys()):
            return False
        return all(np.array_equal(self[k], np.asarray(other[k])) for k in self)

    def __hash__(self):
        return id(self)

    def __repr__(self):
        return f'<EventTable {self._name}/{self._column}: {len(self)} ids>'

    def to_tsgroup(self):
        """Return the events as a pynapple TsGroup."""
        import pynapple as nap  # don't make this a required dependency for the package
        return nap.TsGroup({k: nap.Ts(t=np.array(v)) for k, v in self._events.items()})
