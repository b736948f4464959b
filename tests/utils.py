from typing import Callable, Dict, List, Tuple, Union
import base64
import json
import numpy as np
import h5py
import zarr
import requests


def arrays_are_equal(a, b):
    if a.shape != b.shape:
        return False
    if a.dtype != b.dtype:
        return False
    # if this is numeric data we need to use allclose so that we can handle NaNs
    if np.issubdtype(a.dtype, np.number):
        return np.allclose(a, b, equal_nan=True)
    else:
        return np.array_equal(a, b)


def create_rfs(build: Callable[[zarr.Group], None]) -> dict:
    """Build a zarr hierarchy in memory and encode it as a reference file
    system with all content inline."""
    store: dict = {}
    root = zarr.group(store=store)
    build(root)
    refs = {}
    for k, v in store.items():
        v = bytes(v)
        if k.endswith('.zarray') or k.endswith('.zgroup') or k.endswith('.zattrs'):
            refs[k] = json.loads(v.decode('utf-8'))
        else:
            refs[k] = 'base64:' + base64.b64encode(v).decode('ascii')
    return {'refs': refs}


def write_nwb_like_file(
    fname: str,
    *,
    units: bool = True,
    trials: bool = True,
    epochs: bool = False,
    behavior: bool = True
):
    """Write an HDF5 file laid out the way NWB lays out units, intervals and
    behavioral time series."""
    with h5py.File(fname, 'w') as f:
        f.attrs['neurodata_type'] = 'NWBFile'
        f.attrs['namespace'] = 'core'
        f.create_dataset('identifier', data='test-session')
        if units:
            g = f.create_group('units')
            g.attrs['neurodata_type'] = 'Units'
            g.attrs['colnames'] = ['spike_times']
            g.create_dataset('spike_times', data=np.array([0.1, 0.5, 0.9, 0.2, 0.4]))
            g.create_dataset('spike_times_index', data=np.array([3, 5], dtype=np.uint32))
            g.create_dataset('id', data=np.array([7, 12], dtype=np.int64))
        if trials or epochs:
            intervals = f.create_group('intervals')
            if trials:
                t = intervals.create_group('trials')
                t.attrs['neurodata_type'] = 'TimeIntervals'
                t.attrs['colnames'] = ['start_time', 'stop_time', 'correct']
                t.create_dataset('start_time', data=np.array([0.0, 2.0]))
                t.create_dataset('stop_time', data=np.array([1.0, 3.0]))
                t.create_dataset('correct', data=np.array([True, False]))
                t.create_dataset('id', data=np.array([0, 1], dtype=np.int64))
            if epochs:
                e = intervals.create_group('epochs')
                e.attrs['colnames'] = ['start_time', 'stop_time', 'tags']
                e.create_dataset('start_time', data=np.array([0.0]))
                e.create_dataset('stop_time', data=np.array([10.0]))
                e.create_dataset('tags', data=np.array(['a', 'b', 'c'], dtype=h5py.string_dtype()))
                e.create_dataset('tags_index', data=np.array([3], dtype=np.uint32))
        if behavior:
            b = f.create_group('processing/behavior')
            b.attrs['neurodata_type'] = 'ProcessingModule'
            pos = b.create_group('Position/position')
            d = pos.create_dataset('data', data=np.arange(10, dtype=np.float64).reshape(5, 2))
            d.attrs['unit'] = 'cm'
            pos.create_dataset('timestamps', data=np.array([0.0, 0.1, 0.2, 0.3, 0.4]))
            speed = b.create_group('speed')
            speed.create_dataset('data', data=np.array([1.0, 2.0, 3.0, 4.0]))
            st = speed.create_dataset('starting_time', data=2.0)
            st.attrs['rate'] = 2.0


class FakeResponse:
    def __init__(self, status_code: int, content: bytes = b'', headers: Union[dict, None] = None, reason: str = 'OK'):
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}
        self.reason = reason
        self.closed = False

    def close(self):
        self.closed = True


class FakeHTTPSession:
    """Serves byte ranges of in-memory files with a requests-like get()."""
    def __init__(self, files: Dict[str, bytes]):
        self.files = files
        # (url, range header or None) for every request made
        self.requests: List[Tuple[str, Union[str, None]]] = []
        self.fail = False

    def num_range_requests(self) -> int:
        return len([r for r in self.requests if r[1] is not None])

    def num_bytes_requested(self) -> int:
        n = 0
        for _, rng in self.requests:
            if rng is not None:
                a, b = [int(x) for x in rng[len('bytes='):].split('-')]
                n += b - a + 1
        return n

    def get(self, url, headers=None, stream=False, **kwargs):
        headers = headers or {}
        rng = headers.get('Range', None)
        self.requests.append((url, rng))
        if self.fail:
            raise requests.exceptions.ConnectionError(f'Unable to connect to {url}')
        if url not in self.files:
            return FakeResponse(404, reason='Not Found')
        data = self.files[url]
        if rng is None:
            return FakeResponse(200, data, {'Content-Length': str(len(data))})
        a, b = [int(x) for x in rng[len('bytes='):].split('-')]
        if a >= len(data):
            return FakeResponse(416, reason='Range Not Satisfiable')
        content = data[a:b + 1]
        return FakeResponse(206, content, {'Content-Length': str(len(content))})
