import os
import tempfile
import pytest
import dandistream
from dandistream.LocalCache.LocalCache import get_default_cache_dir


def test_put_get_local_cache():
    with tempfile.TemporaryDirectory() as tmpdir:
        local_cache = dandistream.LocalCache(cache_dir=tmpdir + '/local_cache')
        assert local_cache.get_remote_chunk(url='dummy', offset=0, size=4) is None
        assert not local_cache.has_remote_chunk(url='dummy', offset=0, size=4)
        local_cache.put_remote_chunk(url='dummy', offset=0, size=4, data=b'abcd')
        assert local_cache.has_remote_chunk(url='dummy', offset=0, size=4)
        assert local_cache.get_remote_chunk(url='dummy', offset=0, size=4) == b'abcd'
        # the key includes offset and size
        assert local_cache.get_remote_chunk(url='dummy', offset=0, size=3) is None
        assert local_cache.get_remote_chunk(url='dummy', offset=1, size=4) is None
        assert local_cache.get_remote_chunk(url='dummy2', offset=0, size=4) is None
        assert local_cache.num_chunks() == 1
        local_cache.close()


def test_local_cache_entries_are_never_replaced():
    with tempfile.TemporaryDirectory() as tmpdir:
        local_cache = dandistream.LocalCache(cache_dir=tmpdir)
        local_cache.put_remote_chunk(url='u', offset=10, size=2, data=b'ab')
        local_cache.put_remote_chunk(url='u', offset=10, size=2, data=b'xy')
        assert local_cache.get_remote_chunk(url='u', offset=10, size=2) == b'ab'
        assert local_cache.num_chunks() == 1
        local_cache.close()


def test_local_cache_size_mismatch():
    with tempfile.TemporaryDirectory() as tmpdir:
        local_cache = dandistream.LocalCache(cache_dir=tmpdir)
        with pytest.raises(ValueError):
            local_cache.put_remote_chunk(url='u', offset=0, size=5, data=b'abc')
        assert local_cache.num_chunks() == 0
        local_cache.close()


def test_local_cache_persists_across_instances():
    with tempfile.TemporaryDirectory() as tmpdir:
        c1 = dandistream.LocalCache(cache_dir=tmpdir)
        c1.put_remote_chunk(url='https://example.org/a.nwb', offset=0, size=3, data=b'xyz')
        c1.close()
        c2 = dandistream.LocalCache(cache_dir=tmpdir)
        assert c2.get_remote_chunk(url='https://example.org/a.nwb', offset=0, size=3) == b'xyz'
        c2.close()


def test_local_cache_chunk_too_large():
    with tempfile.TemporaryDirectory() as tmpdir:
        local_cache = dandistream.LocalCache(cache_dir=tmpdir)
        # the size check happens before the data is looked at
        with pytest.raises(dandistream.ChunkTooLargeError):
            local_cache._sqlite_client.put_remote_chunk(url='u', offset=0, size=1000 * 1000 * 900, data=b'')
        local_cache.close()


def test_default_cache_dir(monkeypatch):
    with tempfile.TemporaryDirectory() as tmpdir:
        monkeypatch.setenv('DANDISTREAM_LOCAL_CACHE_DIR', tmpdir + '/c')
        assert get_default_cache_dir() == tmpdir + '/c'
        local_cache = dandistream.LocalCache()
        assert local_cache.cache_dir == tmpdir + '/c'
        assert os.path.exists(tmpdir + '/c/dandistream_cache.db')
        local_cache.close()
    monkeypatch.delenv('DANDISTREAM_LOCAL_CACHE_DIR')
    assert get_default_cache_dir() == os.path.expanduser('~/.dandistream/cache')
