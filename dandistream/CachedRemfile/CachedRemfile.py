from typing import Any, Dict, List, Union
from dataclasses import dataclass
import requests
from .url_resolvers import resolve_url
from ..LocalCache.LocalCache import LocalCache


_user_agent = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/58.0.3029.110 Safari/537.3"


class RemoteFetchError(Exception):
    """
    The remote byte source is unreachable, or the requested range does not
    exist. Never retried automatically.
    """
    def __init__(self, message: str, *, url: Union[str, None] = None):
        super().__init__(message)
        self.url = url


@dataclass(frozen=True)
class CachedRemfileOpts:
    """
    Options for the CachedRemfile class.

    Attributes:
        min_chunk_size (int): Reads are served from aligned chunks of this
        many bytes, and each chunk is one LocalCache entry. Changing it makes
        the chunks accumulated in an existing LocalCache unreachable. Default
        is 128 KiB.

        max_chunk_size (int): Upper bound on the number of bytes fetched in a
        single request when consecutive chunks are read in order. Default is
        100 MiB.

        chunk_increment_factor (float): Growth factor of the load-ahead window
        on consecutive chunk misses. Default is 1.7.

        max_memory_cache_size (int): Bytes of chunks kept in memory when no
        LocalCache is used. Default is 1 GiB.
    """
    min_chunk_size: int = 128 * 1024
    max_chunk_size: int = 100 * 1024 * 1024
    chunk_increment_factor: float = 1.7
    max_memory_cache_size: int = 1024 * 1024 * 1024


def _get(session: Any, url: str, **kwargs):
    try:
        resolved_url = resolve_url(url)
        return session.get(resolved_url, **kwargs)
    except requests.exceptions.RequestException as e:
        raise RemoteFetchError(f'Unable to reach {url}: {e}', url=url) from e


def get_remote_file_length(url: str, *, session: Any = None) -> int:
    if session is None:
        session = requests
    # use aborted GET request rather than HEAD request to get the length
    # because presigned AWS URLs do not support HEAD requests
    response = _get(session, url, headers={"User-Agent": _user_agent}, stream=True)
    try:
        if response.status_code != 200:
            raise RemoteFetchError(
                f"Error getting file length of {url}: {response.status_code} {response.reason}",
                url=url
            )
        content_length = response.headers.get("Content-Length", None)
        if content_length is None:
            raise RemoteFetchError(f"No Content-Length for {url}", url=url)
        return int(content_length)
    finally:
        # Close the connection without reading the content
        response.close()


def read_remote_byte_range(url: str, start_byte: int, end_byte: int, *, session: Any = None) -> bytes:
    """Read bytes start_byte..end_byte (inclusive) of a remote file.

    Raises RemoteFetchError if the server is unreachable, answers with an
    error status, or returns a different number of bytes than requested.
    """
    if session is None:
        session = requests
    expected_size = end_byte - start_byte + 1
    headers = {
        "User-Agent": _user_agent,
        "Range": f"bytes={start_byte}-{end_byte}"
    }
    response = _get(session, url, headers=headers)
    if response.status_code not in (200, 206):
        raise RemoteFetchError(
            f"Error reading bytes {start_byte}-{end_byte} of {url}: {response.status_code} {response.reason}",
            url=url
        )
    data = response.content
    if len(data) != expected_size:
        raise RemoteFetchError(
            f"Unexpected number of bytes for range {start_byte}-{end_byte} of {url}: {len(data)} != {expected_size}",
            url=url
        )
    return data


def fetch_cached_byte_range(url: str, offset: int, size: int, *, local_cache: Union[LocalCache, None], session: Any = None) -> bytes:
    """Read a byte range of a remote resource through the local cache.

    If (url, offset, size) is in the cache the cached bytes are returned.
    Otherwise the range is fetched, stored under that key, and returned. A
    failed fetch leaves the cache untouched.
    """
    if offset < 0 or size < 0:
        raise ValueError(f"Invalid byte range: offset={offset}, size={size}")
    if size == 0:
        return b''
    if local_cache is not None:
        cached = local_cache.get_remote_chunk(url=url, offset=offset, size=size)
        if cached is not None:
            return cached
    data = read_remote_byte_range(url, offset, offset + size - 1, session=session)
    if local_cache is not None:
        local_cache.put_remote_chunk(url=url, offset=offset, size=size, data=data)
    return data


class CachedRemfile:
    def __init__(
        self,
        url: str,
        *,
        local_cache: Union[LocalCache, None],
        verbose: bool = False,
        opts: Union[CachedRemfileOpts, None] = None,
        _session: Any = None
    ):
        """Create a read-only file-like object for a remote file. It can be
        passed directly to h5py.File.

        Args:
            url (str): The url of the remote file.
            local_cache (LocalCache, optional): Where chunks are persisted. If
            None, chunks are kept in a bounded in-memory store instead.
            verbose (bool, optional): Whether to print info for debugging.
            Defaults to False.
            opts (CachedRemfileOpts, optional): Chunking options.
            _session (optional): For testing. An object with a requests-like
            get() method.

        The length of the file is determined on construction, so an
        unreachable url raises RemoteFetchError right away.
        """
        if not isinstance(url, str):
            raise TypeError('Only string urls are supported for CachedRemfile')
        self._url = url
        self._local_cache = local_cache
        self._verbose = verbose
        self._opts = opts if opts is not None else CachedRemfileOpts()
        self._session = _session if _session is not None else requests.Session()
        self._max_chunks_in_memory = int(self._opts.max_memory_cache_size / self._opts.min_chunk_size)
        self._memory_chunks: Dict[int, bytes] = {}
        # chunk indices in order of loading, for cleaning up the memory chunks
        self._memory_chunk_indices: List[int] = []
        self._position = 0
        self._last_chunk_index_accessed = -99
        self._chunk_sequence_length = 1
        self._closed = False

        # The most recent fetch error. Some h5py builds wrap exceptions from
        # the read callback in a generic OSError; the caller can recover the
        # original here.
        self.last_fetch_error: Union[RemoteFetchError, None] = None

        self.length = get_remote_file_length(url, session=self._session)

    @property
    def url(self) -> str:
        return self._url

    def read(self, size=None) -> bytes:
        if size is None:
            raise ValueError("The size argument must be provided for CachedRemfile.read()")
        if size < 0:
            raise ValueError(f"Invalid size: {size}")
        size = max(0, min(size, self.length - self._position))
        if size == 0:
            return b''
        ret = self._read_bytes(self._position, size)
        self._position += size
        return ret

    def read_range(self, offset: int, size: int) -> bytes:
        """Read size bytes at offset without changing the file position."""
        if offset < 0 or size < 0 or offset + size > self.length:
            raise RemoteFetchError(
                f"Range {offset}-{offset + size} is out of bounds for {self._url} of length {self.length}",
                url=self._url
            )
        if size == 0:
            return b''
        return self._read_bytes(offset, size)

    def _read_bytes(self, offset: int, size: int) -> bytes:
        m = self._opts.min_chunk_size
        chunk_start_index = offset // m
        chunk_end_index = (offset + size - 1) // m
        pieces = []
        try:
            for chunk_index in range(chunk_start_index, chunk_end_index + 1):
                pieces.append(self._load_chunk(chunk_index))
        except RemoteFetchError as e:
            self.last_fetch_error = e
            raise
        data = b''.join(pieces)
        start = offset - chunk_start_index * m
        ret = data[start:start + size]

        if len(self._memory_chunk_indices) > self._max_chunks_in_memory:
            self._clean_up_memory_chunks()

        return ret

    def _chunk_size(self, chunk_index: int) -> int:
        m = self._opts.min_chunk_size
        return min(m, self.length - chunk_index * m)

    def _is_chunk_available(self, chunk_index: int) -> bool:
        if chunk_index in self._memory_chunks:
            return True
        if self._local_cache is not None:
            return self._local_cache.has_remote_chunk(
                url=self._url,
                offset=chunk_index * self._opts.min_chunk_size,
                size=self._chunk_size(chunk_index)
            )
        return False

    def _load_chunk(self, chunk_index: int) -> bytes:
        m = self._opts.min_chunk_size
        if chunk_index in self._memory_chunks:
            self._last_chunk_index_accessed = chunk_index
            return self._memory_chunks[chunk_index]

        if self._local_cache is not None:
            cached_value = self._local_cache.get_remote_chunk(
                url=self._url,
                offset=chunk_index * m,
                size=self._chunk_size(chunk_index)
            )
            if cached_value is not None:
                self._last_chunk_index_accessed = chunk_index
                return cached_value

        self._update_chunk_sequence_length(chunk_index)
        data_start = chunk_index * m
        data_end = min(data_start + m * self._chunk_sequence_length, self.length) - 1
        if self._verbose:
            print(
                f"Loading {self._chunk_sequence_length} chunks starting at {chunk_index} ({(data_end - data_start + 1) / 1e6} million bytes)"
            )
        x = read_remote_byte_range(self._url, data_start, data_end, session=self._session)
        for i in range(self._chunk_sequence_length):
            piece = x[i * m: (i + 1) * m]
            if not piece:
                break
            self._store_chunk(chunk_index + i, piece)
        self._last_chunk_index_accessed = chunk_index + self._chunk_sequence_length - 1
        return x[:m]

    def _update_chunk_sequence_length(self, chunk_index: int):
        factor = self._opts.chunk_increment_factor
        if chunk_index == self._last_chunk_index_accessed + 1:
            # reading in order, so load more chunks at once
            n = round(self._chunk_sequence_length * factor + 0.5)
            n = min(n, max(1, int(self._opts.max_chunk_size / self._opts.min_chunk_size)))
            for j in range(1, n):
                if self._is_chunk_available(chunk_index + j):
                    n = j
                    break
        else:
            n = round(self._chunk_sequence_length / factor + 0.5)
        self._chunk_sequence_length = max(1, n)

    def _store_chunk(self, chunk_index: int, data: bytes):
        if self._local_cache is not None:
            self._local_cache.put_remote_chunk(
                url=self._url,
                offset=chunk_index * self._opts.min_chunk_size,
                size=len(data),
                data=data
            )
        else:
            self._memory_chunks[chunk_index] = data
            self._memory_chunk_indices.append(chunk_index)

    def _clean_up_memory_chunks(self):
        if self._verbose:
            print("Cleaning up memory chunks")
        num_to_remove = int(self._max_chunks_in_memory * 0.5)
        for chunk_index in self._memory_chunk_indices[:num_to_remove]:
            # may already be gone (repeated chunk index in the list)
            self._memory_chunks.pop(chunk_index, None)
        self._memory_chunk_indices = self._memory_chunk_indices[num_to_remove:]

    def seek(self, offset: int, whence: int = 0):
        if whence == 0:
            self._position = offset
        elif whence == 1:
            self._position += offset
        elif whence == 2:
            self._position = self.length + offset
        else:
            raise ValueError("Invalid argument: 'whence' must be 0, 1, or 2.")
        return self._position

    def tell(self):
        return self._position

    def readable(self):
        return True

    def seekable(self):
        return True

    def writable(self):
        return False

    def close(self):
        if self._closed:
            return
        self._memory_chunks = {}
        self._memory_chunk_indices = []
        if isinstance(self._session, requests.Session):
            self._session.close()
        self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def __repr__(self):
        return f'CachedRemfile({self._url!r}, length={self.length})'
