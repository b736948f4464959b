from typing import Any, Dict, List, Tuple, Union
import numpy as np

from .EventTable import EventTable
from .IntervalTable import IntervalTable
from .TimeSeriesData import TimeSeriesData
from ..HierarchicalView.HierarchicalView import NWBFileView
from ..HierarchicalView.MalformedContainer import MalformedContainer


# name -> paths that must all exist for the substructure to be present
WELL_KNOWN_SUBSTRUCTURES: Dict[str, List[str]] = {
    'units': ['units/spike_times'],
    'trials': ['intervals/trials/start_time', 'intervals/trials/stop_time'],
    'epochs': ['intervals/epochs/start_time', 'intervals/epochs/stop_time'],
    'behavior': ['processing/behavior'],
}


class MissingSubstructure(Exception):
    """
    A substructure was requested although the presence check reports it
    absent. Check with NWBAdapter.has_substructure() first.
    """
    def __init__(self, name: str, path: Union[str, None] = None):
        msg = f"Substructure not present in this file: {name}"
        if path is not None and path != name:
            msg += f" ({path})"
        super().__init__(msg)
        self.name = name
        self.path = path


class NWBAdapter:
    """
    Maps the conventional NWB layout of a file onto analysis objects.

    Files differ in what they contain, so the presence of each well-known
    substructure is reported by has_substructure(); absence is not an error.
    Results are built once per file and reused.
    """
    def __init__(self, view: NWBFileView):
        self._view = view
        self._event_tables: Dict[Tuple[str, str], EventTable] = {}
        self._interval_tables: Dict[str, IntervalTable] = {}
        self._time_series: Dict[str, TimeSeriesData] = {}

    @property
    def view(self) -> NWBFileView:
        return self._view

    def has_substructure(self, name: str) -> bool:
        if name not in WELL_KNOWN_SUBSTRUCTURES:
            raise KeyError(f"Unknown substructure: {name}. Expected one of {list(WELL_KNOWN_SUBSTRUCTURES)}")
        return all(self._view.has(p) for p in WELL_KNOWN_SUBSTRUCTURES[name])

    def available_substructures(self) -> List[str]:
        return [name for name in WELL_KNOWN_SUBSTRUCTURES if self.has_substructure(name)]

    def list_interval_tables(self) -> List[str]:
        if not self._view.has('intervals') or not self._view.is_group('intervals'):
            return []
        return [
            name for name in self._view.list_children('intervals')
            if self._has_interval_table(f'intervals/{name}')
        ]

    def _has_interval_table(self, path: str) -> bool:
        return self._view.has(f'{path}/start_time') and self._view.has(f'{path}/stop_time')

    ##############################
    # event tables
    def get_event_table(self, name: str = 'units', column: str = 'spike_times') -> EventTable:
        """
        Timestamps grouped by identifier from a ragged column of a dynamic
        table. Identifiers come from the id column of the table, or are
        0..n-1 if it has none.
        """
        key = (name, column)
        if key in self._event_tables:
            return self._event_tables[key]
        path = name.strip('/')
        if not self._view.has(f'{path}/{column}'):
            raise MissingSubstructure(name, f'{path}/{column}')
        sequences = self._get_ragged_column(path, column)
        ids = self._get_ids(path, len(sequences))
        events: Dict[int, Any] = {}
        for id0, seq in zip(ids, sequences):
            id0 = int(id0)
            if id0 in events:
                events[id0] = np.concatenate([events[id0], seq])
            else:
                events[id0] = seq
        table = EventTable(events, name=name, column=column)
        self._event_tables[key] = table
        return table

    def _get_ragged_column(self, path: str, column: str) -> List[np.ndarray]:
        data = self._view.get_array(f'{path}/{column}')
        index_path = f'{path}/{column}_index'
        if not self._view.has(index_path):
            return [data[i:i + 1] for i in range(len(data))]
        index = self._view.get_array(index_path).astype(np.int64)
        if len(index) > 0 and (index[-1] > len(data) or np.any(np.diff(index) < 0)):
            raise MalformedContainer(f"Invalid ragged index for {path}/{column}")
        starts = np.concatenate([[0], index[:-1]]).astype(np.int64)
        return [data[a:b] for a, b in zip(starts, index)]

    def _get_ids(self, path: str, n: int) -> np.ndarray:
        if self._view.has(f'{path}/id'):
            ids = self._view.get_array(f'{path}/id')
            if len(ids) != n:
                raise MalformedContainer(f"Length of {path}/id is {len(ids)}, expected {n}")
            return ids
        return np.arange(n)

    ##############################
    # interval tables
    def get_interval_table(self, name: str = 'trials') -> IntervalTable:
        """
        Start/stop pairs and auxiliary columns of intervals/<name>. A name
        containing a slash is taken as the path of the table.
        """
        if name in self._interval_tables:
            return self._interval_tables[name]
        path = name.strip('/') if '/' in name else f'intervals/{name}'
        if not self._has_interval_table(path):
            raise MissingSubstructure(name, path)
        starts = self._view.get_array(f'{path}/start_time')
        stops = self._view.get_array(f'{path}/stop_time')
        if len(starts) != len(stops):
            raise MalformedContainer(f"start_time and stop_time of {path} differ in length")
        columns = {}
        for col in self._interval_column_names(path):
            val = self._get_interval_column(path, col)
            if val is None:
                continue
            if len(val) != len(starts):
                raise MalformedContainer(f"Column {col} of {path} has {len(val)} rows, expected {len(starts)}")
            columns[col] = val
        table = IntervalTable(starts, stops, columns=columns, name=name)
        self._interval_tables[name] = table
        return table

    def _interval_column_names(self, path: str) -> List[str]:
        attrs = self._view.get_attributes(path)
        colnames = attrs.get('colnames', None)
        if colnames is not None:
            names = [str(c) for c in np.atleast_1d(colnames)]
        else:
            names = [
                c for c in self._view.list_children(path)
                if c != 'id' and not c.endswith('_index')
            ]
        return [c for c in names if c not in ('start_time', 'stop_time')]

    def _get_interval_column(self, path: str, col: str):
        col_path = f'{path}/{col}'
        if not self._view.has(col_path) or not self._view.is_dataset(col_path):
            return None
        arr = self._view.get_array(col_path)
        if arr.dtype.names is not None:
            # compound columns hold object references (e.g., timeseries)
            return None
        if self._view.has(f'{col_path}_index'):
            return self._get_ragged_column(path, col)
        return arr

    ##############################
    # continuous streams
    def list_time_series(self, module: str = 'behavior') -> List[str]:
        """Paths of the time series under processing/<module> (or under the
        given path if it contains a slash)."""
        path = module.strip('/') if '/' in module else f'processing/{module}'
        if not self._view.has(path):
            raise MissingSubstructure(module, path)
        ret = []
        for p, kind in self._view.walk(path):
            if kind == 'group' and self._is_time_series(p):
                ret.append(p.lstrip('/'))
        return sorted(ret)

    def _is_time_series(self, path: str) -> bool:
        if not self._view.has(f'{path}/data') or not self._view.is_dataset(f'{path}/data'):
            return False
        return self._view.has(f'{path}/timestamps') or self._view.has(f'{path}/starting_time')

    def get_time_series(self, path: str) -> TimeSeriesData:
        path = path.strip('/')
        if path in self._time_series:
            return self._time_series[path]
        if not self._view.has(f'{path}/data'):
            raise MissingSubstructure(path, f'{path}/data')
        data = self._view.get_array(f'{path}/data')
        if data.ndim == 0:
            raise MalformedContainer(f"Data of time series {path} is a scalar")
        if self._view.has(f'{path}/timestamps'):
            timestamps = self._view.get_array(f'{path}/timestamps')
        elif self._view.has(f'{path}/starting_time'):
            starting_time = float(self._view.get_array(f'{path}/starting_time'))
            rate = self._view.get_attributes(f'{path}/starting_time').get('rate', None)
            if rate is None:
                raise MalformedContainer(f"starting_time of {path} has no rate")
            timestamps = starting_time + np.arange(data.shape[0]) / float(rate)
            timestamps.setflags(write=False)
        else:
            raise MalformedContainer(f"Time series {path} has neither timestamps nor starting_time")
        if len(timestamps) != data.shape[0]:
            raise MalformedContainer(f"Time series {path} has {data.shape[0]} samples but {len(timestamps)} timestamps")
        unit = self._view.get_attributes(f'{path}/data').get('unit', None)
        ts = TimeSeriesData(
            name=path.split('/')[-1],
            path=path,
            data=data,
            timestamps=timestamps,
            unit=str(unit) if unit is not None else None
        )
        self._time_series[path] = ts
        return ts
