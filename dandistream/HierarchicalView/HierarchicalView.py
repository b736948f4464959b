from typing import Any, Dict, Iterator, List, Literal, Tuple, Union
import os
import numpy as np
import h5py

from .MalformedContainer import MalformedContainer
from ..LocatorResolver.LocatorResolver import ResolvedLocator
from ..LocalCache.LocalCache import LocalCache
from ..CachedRemfile.CachedRemfile import CachedRemfile, CachedRemfileOpts, RemoteFetchError
from ..ZarrH5py.ZarrH5pyFile import ZarrH5pyFile
from ..ZarrH5py.ZarrH5pyGroup import ZarrH5pyGroup


NodeKind = Literal["group", "dataset"]


class NWBFileView:
    """
    Read-only tree navigation over an h5py.File-like object.

    The underlying file may be an h5py.File (direct and local strategies) or
    a ZarrH5pyFile (reference strategy). Nodes are resolved by path when
    asked for; the payload of a dataset is read the first time get_array()
    is called for it and is then kept as a read-only array.
    """
    def __init__(self, root: h5py.File, *, locator: Union[str, None] = None, _byte_source: Any = None):
        self._root = root
        self._locator = locator
        self._byte_source = _byte_source
        self._arrays: Dict[str, np.ndarray] = {}
        self._is_open = True

    @property
    def h5py_file(self) -> h5py.File:
        return self._root

    @property
    def is_open(self) -> bool:
        return self._is_open

    def _node(self, path: str):
        x = self._lookup(path)
        if x is None:
            raise KeyError(f"No such node: {_normalize_path(path)}")
        return x

    def _lookup(self, path: str):
        """
        The node at path, or None if there is no link at path. A link that
        exists but whose object cannot be opened raises MalformedContainer.
        """
        path = _normalize_path(path)
        x = self._root
        opened = ''
        for name in [p for p in path.split('/') if p]:
            if not isinstance(x, h5py.Group) or not _link_exists(x, name):
                return None
            opened = f'{opened}/{name}'
            x = self._open_child(x, name, opened)
        return x

    def _open_child(self, parent: h5py.Group, name: str, path: str):
        last_fetch_error = getattr(self._byte_source, 'last_fetch_error', None)
        try:
            return parent[name]
        except (KeyError, OSError, RuntimeError) as e:
            err = getattr(self._byte_source, 'last_fetch_error', None)
            if err is not None and err is not last_fetch_error:
                raise err from e
            raise MalformedContainer(f"Unable to open {path}: {e}", locator=self._locator) from e

    def has(self, path: str) -> bool:
        return self._lookup(path) is not None

    def is_group(self, path: str) -> bool:
        return isinstance(self._node(path), h5py.Group)

    def is_dataset(self, path: str) -> bool:
        return isinstance(self._node(path), h5py.Dataset)

    def list_children(self, path: str = '/') -> List[str]:
        x = self._node(path)
        if not isinstance(x, h5py.Group):
            raise TypeError(f"Not a group: {path}")
        return list(x.keys())

    def get_attributes(self, path: str = '/') -> Dict[str, Any]:
        x = self._node(path)
        return {k: _decode_attr(v) for k, v in x.attrs.items()}

    def get_array(self, path: str) -> np.ndarray:
        path = _normalize_path(path)
        if path in self._arrays:
            return self._arrays[path]
        x = self._node(path)
        if not isinstance(x, h5py.Dataset):
            raise TypeError(f"Not a dataset: {path}")
        arr = np.asarray(self._read_dataset(x))
        if arr.dtype.kind in ('O', 'S'):
            arr = _decode_strings(arr)
        arr.setflags(write=False)
        self._arrays[path] = arr
        return arr

    def _read_dataset(self, x: h5py.Dataset):
        last_fetch_error = getattr(self._byte_source, 'last_fetch_error', None)
        try:
            return x[()]
        except OSError as e:
            # some h5py builds wrap exceptions from the read callback in OSError
            err = getattr(self._byte_source, 'last_fetch_error', None)
            if err is not None and err is not last_fetch_error:
                raise err from e
            raise

    def get_shape(self, path: str) -> Tuple[int, ...]:
        x = self._node(path)
        if not isinstance(x, h5py.Dataset):
            raise TypeError(f"Not a dataset: {path}")
        return tuple(x.shape)

    def is_materialized(self, path: str) -> bool:
        return _normalize_path(path) in self._arrays

    def walk(self, path: str = '/') -> Iterator[Tuple[str, NodeKind]]:
        """Yield (path, kind) for every node below path, depth first."""
        x = self._node(path)
        if not isinstance(x, h5py.Group):
            return
        base = _normalize_path(path).rstrip('/')
        for name in x.keys():
            child_path = f'{base}/{name}'
            child = self._open_child(x, name, child_path)
            if isinstance(child, h5py.Group):
                yield child_path, "group"
                yield from self.walk(child_path)
            elif isinstance(child, h5py.Dataset):
                yield child_path, "dataset"

    def close(self):
        if not self._is_open:
            return
        self._arrays = {}
        # the file may already be closed, e.g., by a pynwb io object
        if self._root:
            self._root.close()
        if self._byte_source is not None:
            self._byte_source.close()
        self._is_open = False

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def __repr__(self):
        return f'<NWBFileView {self._root}>'


def open_container(
    resolved: ResolvedLocator,
    *,
    local_cache: Union[LocalCache, None] = None,
    opts: Union[CachedRemfileOpts, None] = None,
    verbose: bool = False,
    _session: Any = None
) -> NWBFileView:
    """
    Open the hierarchical container a resolved locator points to. opts sets
    the chunking of the direct strategy and is ignored otherwise.

    Raises MalformedContainer if the bytes do not parse as a container,
    RemoteFetchError if the remote source cannot be read, and
    FileNotFoundError for a missing local file.
    """
    if resolved.kind == "reference":
        f = ZarrH5pyFile.from_reference_file_system(
            resolved.locator,
            local_cache=local_cache,
            verbose=verbose,
            _session=_session
        )
        return NWBFileView(f, locator=resolved.locator)
    elif resolved.kind == "direct":
        ff = CachedRemfile(resolved.locator, local_cache=local_cache, verbose=verbose, opts=opts, _session=_session)
        try:
            f = h5py.File(ff, "r")
        except RemoteFetchError:
            ff.close()
            raise
        except OSError as e:
            ff.close()
            # some h5py builds wrap exceptions from the read callback in OSError
            if ff.last_fetch_error is not None:
                raise ff.last_fetch_error from e
            raise MalformedContainer(f"Not a valid HDF5 file: {resolved.locator}", locator=resolved.locator) from e
        return NWBFileView(f, locator=resolved.locator, _byte_source=ff)
    elif resolved.kind == "local":
        if not os.path.exists(resolved.locator):
            raise FileNotFoundError(f"File does not exist: {resolved.locator}")
        try:
            f = h5py.File(resolved.locator, "r")
        except OSError as e:
            raise MalformedContainer(f"Not a valid HDF5 file: {resolved.locator}", locator=resolved.locator) from e
        return NWBFileView(f, locator=resolved.locator)
    else:
        raise ValueError(f"Unexpected locator kind: {resolved.kind}")


def _normalize_path(path: str) -> str:
    parts = [p for p in path.split('/') if p]
    return '/' + '/'.join(parts)


def _link_exists(group: h5py.Group, name: str) -> bool:
    if isinstance(group, (ZarrH5pyFile, ZarrH5pyGroup)):
        return name in group
    # reads the link in the parent only, not the object header it points to
    return group.id.links.exists(name.encode('utf-8'))


def _decode_attr(v: Any):
    if isinstance(v, bytes):
        return v.decode('utf-8')
    if isinstance(v, np.ndarray) and v.dtype.kind in ('O', 'S'):
        return _decode_strings(v)
    return v


def _decode_strings(arr: np.ndarray) -> np.ndarray:
    if arr.dtype.kind == 'S':
        return np.char.decode(arr, 'utf-8').astype(object)
    out = arr.copy()
    view_1d = out.reshape(-1)
    for i in range(len(view_1d)):
        if isinstance(view_1d[i], bytes):
            view_1d[i] = view_1d[i].decode('utf-8')
    return out


__all__ = [
    "NWBFileView",
    "open_container",
    "MalformedContainer",
]
