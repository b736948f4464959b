import json
import tempfile
import numpy as np
import pytest
import h5py
import dandistream
from dandistream import (
    NWBFileView,
    open_container,
    resolve_locator,
    MalformedContainer,
    RemoteFetchError,
)
from utils import FakeHTTPSession, FakeResponse, write_nwb_like_file, create_rfs, arrays_are_equal


def test_local_view():
    with tempfile.TemporaryDirectory() as tmpdir:
        fname = f'{tmpdir}/test.nwb'
        write_nwb_like_file(fname)
        with open_container(resolve_locator(fname)) as view:
            assert isinstance(view, NWBFileView)
            assert set(view.list_children()) == {'identifier', 'units', 'intervals', 'processing'}
            assert view.list_children('/units') == view.list_children('units/')
            assert view.has('units/spike_times')
            assert view.has('/')
            assert not view.has('units/nope')
            assert view.is_group('units')
            assert view.is_dataset('units/spike_times')
            assert view.get_attributes('/')['neurodata_type'] == 'NWBFile'
            assert view.get_attributes('units')['colnames'].tolist() == ['spike_times']
            assert view.get_shape('units/spike_times') == (5,)
            with pytest.raises(KeyError):
                view.get_array('units/nope')
            with pytest.raises(TypeError):
                view.get_array('units')
            with pytest.raises(TypeError):
                view.list_children('units/spike_times')
            assert view.get_array('identifier')[()] == 'test-session'
        assert not view.is_open


def test_get_array_is_lazy_and_memoized():
    with tempfile.TemporaryDirectory() as tmpdir:
        fname = f'{tmpdir}/test.nwb'
        write_nwb_like_file(fname)
        view = open_container(resolve_locator(fname))
        assert not view.is_materialized('units/spike_times')
        x = view.get_array('units/spike_times')
        assert view.is_materialized('/units/spike_times')
        assert x is view.get_array('/units/spike_times')
        assert arrays_are_equal(x, np.array([0.1, 0.5, 0.9, 0.2, 0.4]))
        with pytest.raises(ValueError):
            x[0] = 5
        view.close()


def _corrupt_object_header(fname: str, path: str):
    with h5py.File(fname, 'r') as f:
        addr = h5py.h5o.get_info(f[path].id).addr
    with open(fname, 'r+b') as f:
        f.seek(addr)
        f.write(b'\xff' * 16)


def test_corrupt_object_header_is_not_reported_absent():
    with tempfile.TemporaryDirectory() as tmpdir:
        fname = f'{tmpdir}/test.nwb'
        write_nwb_like_file(fname)
        _corrupt_object_header(fname, 'units')
        view = open_container(resolve_locator(fname))
        assert view.has('intervals/trials/start_time')
        assert not view.has('not_there')
        with pytest.raises(MalformedContainer):
            view.has('units')
        with pytest.raises(MalformedContainer):
            view.get_array('units/spike_times')
        with pytest.raises(MalformedContainer):
            dict(view.walk())
        view.close()

        with dandistream.open_session(fname) as session:
            with pytest.raises(MalformedContainer):
                session.has_substructure('units')
            assert session.has_substructure('trials')


def test_direct_view_fetches_payload_on_first_request():
    url = 'https://example.org/large.nwb'
    values = np.arange(100000, dtype=np.float64)
    with tempfile.TemporaryDirectory() as tmpdir:
        fname = f'{tmpdir}/large.nwb'
        with h5py.File(fname, 'w') as f:
            f.attrs['neurodata_type'] = 'NWBFile'
            g = f.create_group('acquisition')
            g.attrs['description'] = 'raw data'
            g.create_dataset('signal', data=values)
        with open(fname, 'rb') as f:
            session = FakeHTTPSession({url: f.read()})
        opts = dandistream.CachedRemfileOpts(min_chunk_size=4096, max_chunk_size=8192)
        view = open_container(resolve_locator(url), opts=opts, _session=session)

        # navigating the tree reads metadata only
        assert view.list_children('acquisition') == ['signal']
        assert view.get_attributes('acquisition')['description'] == 'raw data'
        assert view.get_shape('acquisition/signal') == (100000,)
        assert not view.is_materialized('acquisition/signal')
        n_before = session.num_bytes_requested()
        assert n_before < values.nbytes // 4

        # the payload is fetched on the first request only
        x = view.get_array('acquisition/signal')
        assert arrays_are_equal(x, values)
        n_after = session.num_bytes_requested()
        assert n_after - n_before >= values.nbytes - 2 * 8192
        assert view.get_array('acquisition/signal') is x
        assert session.num_bytes_requested() == n_after
        view.close()


def test_walk():
    with tempfile.TemporaryDirectory() as tmpdir:
        fname = f'{tmpdir}/test.nwb'
        write_nwb_like_file(fname, trials=False, behavior=False)
        view = open_container(resolve_locator(fname))
        nodes = dict(view.walk())
        assert nodes == {
            '/identifier': 'dataset',
            '/units': 'group',
            '/units/spike_times': 'dataset',
            '/units/spike_times_index': 'dataset',
            '/units/id': 'dataset',
        }
        assert list(view.walk('units/id')) == []
        view.close()


def test_direct_view_and_cache():
    url = 'https://example.org/test.nwb'
    with tempfile.TemporaryDirectory() as tmpdir:
        fname = f'{tmpdir}/test.nwb'
        write_nwb_like_file(fname)
        with open(fname, 'rb') as f:
            session = FakeHTTPSession({url: f.read()})
        local_cache = dandistream.LocalCache(cache_dir=f'{tmpdir}/cache')
        resolved = resolve_locator(url)
        assert resolved.kind == 'direct'

        view = open_container(resolved, local_cache=local_cache, _session=session)
        x1 = view.get_array('units/spike_times')
        view.close()
        n = session.num_range_requests()
        assert n > 0

        view = open_container(resolved, local_cache=local_cache, _session=session)
        x2 = view.get_array('units/spike_times')
        view.close()
        assert arrays_are_equal(x1, x2)
        assert session.num_range_requests() == n
        local_cache.close()


def test_reference_view():
    def build(root):
        root.attrs['neurodata_type'] = 'NWBFile'
        g = root.create_group('units')
        g.create_dataset('spike_times', data=np.array([1.0, 2.0]))
    with tempfile.TemporaryDirectory() as tmpdir:
        fname = f'{tmpdir}/test.nwb.lindi.json'
        with open(fname, 'w') as f:
            json.dump(create_rfs(build), f)
        with open_container(resolve_locator(fname)) as view:
            assert isinstance(view.h5py_file, dandistream.ZarrH5pyFile)
            assert view.list_children() == ['units']
            assert view.get_attributes()['neurodata_type'] == 'NWBFile'
            assert arrays_are_equal(view.get_array('units/spike_times'), np.array([1.0, 2.0]))


def test_open_failures():
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(FileNotFoundError):
            open_container(resolve_locator(f'{tmpdir}/missing.nwb'))
        with pytest.raises(FileNotFoundError):
            open_container(resolve_locator(f'{tmpdir}/missing.lindi.json'))

        bad = f'{tmpdir}/bad.nwb'
        with open(bad, 'wb') as f:
            f.write(b'this is not an hdf5 file' * 100)
        with pytest.raises(MalformedContainer):
            open_container(resolve_locator(bad))

        url = 'https://example.org/bad.nwb'
        with open(bad, 'rb') as f:
            session = FakeHTTPSession({url: f.read()})
        with pytest.raises(MalformedContainer):
            open_container(resolve_locator(url), _session=session)

        with pytest.raises(RemoteFetchError):
            open_container(resolve_locator('https://example.org/missing.nwb'), _session=session)


def test_remote_failure_is_not_reported_as_malformed():
    url = 'https://example.org/test.nwb'
    with tempfile.TemporaryDirectory() as tmpdir:
        fname = f'{tmpdir}/test.nwb'
        write_nwb_like_file(fname)
        with open(fname, 'rb') as f:
            data = f.read()

    class FailingRangeSession(FakeHTTPSession):
        # reports the full length but fails every range request
        def get(self, url, headers=None, stream=False, **kwargs):
            if headers and 'Range' in headers:
                self.requests.append((url, headers['Range']))
                return self._failure()
            return super().get(url, headers=headers, stream=stream, **kwargs)

        def _failure(self):
            return FakeResponse(503, reason='Service Unavailable')

    session = FailingRangeSession({url: data})
    with pytest.raises(RemoteFetchError):
        open_container(resolve_locator(url), _session=session)


def test_view_over_h5py_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        fname = f'{tmpdir}/test.h5'
        with h5py.File(fname, 'w') as f:
            f.create_dataset('names', data=np.array([b'ab', b'cd']))
            f.attrs['label'] = np.bytes_(b'xyz')
        view = NWBFileView(h5py.File(fname, 'r'))
        assert view.get_array('names').tolist() == ['ab', 'cd']
        assert view.get_attributes()['label'] == 'xyz'
        view.close()
        # closing twice is fine
        view.close()
