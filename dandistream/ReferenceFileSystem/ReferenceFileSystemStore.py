from typing import Any, Union
import os
import json
import base64
import numpy as np
from zarr.storage import Store as ZarrStore

from ..LocalCache.LocalCache import MAX_CHUNK_SIZE, LocalCache
from ..CachedRemfile.CachedRemfile import fetch_cached_byte_range
from ..HierarchicalView.MalformedContainer import MalformedContainer


class ReferenceFileSystemStore(ZarrStore):
    """
    A read-only Zarr store that reads data from a reference file system.

    The reference file system follows the fsspec convention
    (https://fsspec.github.io/kerchunk/spec.html) as used by .lindi.json
    files. It is a dictionary with a "refs" key whose value maps the names of
    the files in the Zarr hierarchy to one of:

    - a string, the content of the file, base64 encoded if prefixed with
      "base64:" and utf-8 otherwise;
    - a dict, a json file whose content is the json representation of the
      dict;
    - a list [url_or_path, offset, length], a byte range of a remote or local
      file. The single-element form [url] of fsspec is not permitted, so the
      size of every chunk is known without a request.

    Templates are supported without jinja2: if there is a "templates" key,
    e.g. {"u1": "https://some/url"}, then "{{u1}}" in the first element of a
    list reference is replaced with "https://some/url". Relative paths of the
    form "./name" resolve against the directory of the reference file system
    itself.

    Byte ranges of remote urls go through the LocalCache, if one is given.
    DANDI API urls are resolved to pre-signed S3 urls (see url_resolvers),
    but the cache is keyed by the original url.

    Optionally there may be a "generationMetadata" key, which is ignored.
    """
    def __init__(
        self,
        rfs: dict,
        *,
        local_cache: Union[LocalCache, None] = None,
        source_url_or_path: Union[str, None] = None,
        _session: Any = None
    ):
        """
        Create a ReferenceFileSystemStore.

        Parameters
        ----------
        rfs : dict
            The reference file system (see class docstring for details).
        local_cache : LocalCache, optional
            The local cache for chunks read from remote urls. If None, no
            caching is done.
        source_url_or_path : str, optional
            Where the reference file system was loaded from, used to resolve
            relative paths.
        _session : optional
            For testing. An object with a requests-like get() method.
        """
        _validate_rfs(rfs)
        self.rfs = rfs
        self.local_cache = local_cache
        self._source_url_or_path = source_url_or_path
        self._session = _session

    # These methods are overridden from MutableMapping
    def __contains__(self, key: object):
        if not isinstance(key, str):
            return False
        return key in self.rfs["refs"]

    def __getitem__(self, key: str):
        val = self._get_helper(key)

        padded_size = _get_padded_size(self, key, val)
        if padded_size is not None:
            val = _pad_chunk(val, padded_size)

        return val

    def _get_helper(self, key: str) -> bytes:
        if key not in self.rfs["refs"]:
            raise KeyError(key)
        x = self.rfs["refs"][key]
        if isinstance(x, str):
            if x.startswith("base64:"):
                return base64.b64decode(x[len("base64:"):])
            return x.encode("utf-8")
        if isinstance(x, dict):
            return json.dumps(x).encode("utf-8")
        if isinstance(x, list) and len(x) == 3:
            url_or_path, offset, length = self._resolve_byte_range_reference(x)
            if _is_url(url_or_path):
                return self._read_remote(key, url_or_path, offset, length)
            return _read_local_bytes(url_or_path, offset, length)
        raise MalformedContainer(f"Problem with {key}: value must be a string, a dict, or a list of 3 elements")

    def _resolve_byte_range_reference(self, x: list):
        url_or_path, offset, length = x
        templates = self.rfs.get("templates", {})
        if '{{' in url_or_path and '}}' in url_or_path:
            for k, v in templates.items():
                url_or_path = url_or_path.replace("{{" + k + "}}", v)
            if '{{' in url_or_path:
                raise MalformedContainer(f"Unresolved template in reference: {url_or_path}")
        if url_or_path.startswith('./'):
            if self._source_url_or_path is None:
                raise MalformedContainer(f"Cannot resolve relative path {url_or_path} without the source of the reference file system")
            parent = '/'.join(self._source_url_or_path.split('?')[0].split('/')[:-1])
            url_or_path = (parent + '/' if parent else '') + url_or_path[2:]
        return url_or_path, offset, length

    def _read_remote(self, key: str, url: str, offset: int, length: int) -> bytes:
        local_cache = self.local_cache
        if local_cache is not None and length >= MAX_CHUNK_SIZE:
            print(f'Warning: unable to cache chunk of size {length} on LocalCache (key: {key})')
            local_cache = None
        return fetch_cached_byte_range(url, offset, length, local_cache=local_cache, session=self._session)

    def __setitem__(self, key: str, value: bytes):
        raise PermissionError("ReferenceFileSystemStore is read-only")

    def __delitem__(self, key: str):
        raise PermissionError("ReferenceFileSystemStore is read-only")

    def __iter__(self):
        return iter(self.rfs["refs"])

    def __len__(self):
        return len(self.rfs["refs"])

    # These methods are overridden from BaseStore
    def is_readable(self):
        return True

    def is_writeable(self):
        return False

    def is_listable(self):
        return True

    def is_erasable(self):
        return False


def _validate_rfs(rfs: Any):
    if not isinstance(rfs, dict):
        raise MalformedContainer(f"Reference file system must be a dict, got {type(rfs)}")
    if "refs" not in rfs or not isinstance(rfs["refs"], dict):
        raise MalformedContainer("Reference file system must contain a 'refs' dict")
    for k, v in rfs["refs"].items():
        if isinstance(v, (str, dict)):
            continue
        if isinstance(v, list):
            if len(v) != 3:
                raise MalformedContainer(f"Problem with {k}: list must have 3 elements")
            if not isinstance(v[0], str):
                raise MalformedContainer(f"Problem with {k}: first element must be a string")
            if not isinstance(v[1], int) or not isinstance(v[2], int):
                raise MalformedContainer(f"Problem with {k}: offset and length must be ints")
            if v[1] < 0 or v[2] < 0:
                raise MalformedContainer(f"Problem with {k}: offset and length must be non-negative")
            continue
        raise MalformedContainer(f"Problem with {k}: value must be a string, a dict, or a list")
    for k, v in rfs.get("templates", {}).items():
        if not isinstance(v, str):
            raise MalformedContainer(f"Problem with templates: value for {k} must be a string")


def _is_url(x: str) -> bool:
    return x.startswith('http://') or x.startswith('https://')


def _read_local_bytes(path: str, offset: int, length: int) -> bytes:
    file_size = os.path.getsize(path)
    if offset + length > file_size:
        raise MalformedContainer(f"Reference {offset}+{length} is out of bounds for {path} of size {file_size}")
    with open(path, 'rb') as f:
        f.seek(offset)
        return f.read(length)


def _is_chunk_base_key(base_key: str) -> bool:
    for x in base_key.split('.'):
        try:
            int(x)
        except ValueError:
            return False
    return True


def _pad_chunk(data: bytes, expected_chunk_size: int) -> bytes:
    return data + b'\0' * (expected_chunk_size - len(data))


def _get_padded_size(store: ReferenceFileSystemStore, key: str, val: bytes) -> Union[int, None]:
    # The final chunk of a contiguous hdf5 dataset may be referenced with
    # fewer bytes than a full uncompressed chunk; zarr expects the full size.
    base_key = key.split('/')[-1]
    if not val or not _is_chunk_base_key(base_key):
        return None
    zarray_key = '/'.join(key.split('/')[:-1] + ['.zarray'])
    if zarray_key not in store:
        return None
    zarray = json.loads(store._get_helper(zarray_key))
    if zarray.get('compressor') is not None or zarray.get('filters'):
        return None
    dtype = np.dtype(zarray['dtype'])
    if dtype.kind not in ['i', 'u', 'f']:
        return None
    expected_chunk_size = int(np.prod(zarray['chunks'])) * dtype.itemsize
    if len(val) < expected_chunk_size:
        return expected_chunk_size
    return None
