from typing import Any, Dict, List, Union
import h5py
import zarr
from zarr.storage import Store as ZarrStore

from .ZarrH5pyGroup import ZarrH5pyGroup
from .ZarrH5pyAttributes import ZarrH5pyAttributes
from .ZarrH5pyReference import ZarrH5pyReference
from ..LocalCache.LocalCache import LocalCache
from ..CachedRemfile.CachedRemfile import CachedRemfile
from ..ReferenceFileSystem.ReferenceFileSystemStore import ReferenceFileSystemStore
from ..ReferenceFileSystem.load_reference_file_system import load_reference_file_system
from ..HierarchicalView.MalformedContainer import MalformedContainer


class ZarrH5pyFile(h5py.File):
    def __init__(
        self,
        _zarr_group: zarr.Group,
        *,
        _zarr_store: ZarrStore,
        _local_cache: Union[LocalCache, None] = None,
        _source_url_or_path: Union[str, None] = None,
        _verbose: bool = False,
        _session: Any = None
    ):
        """
        Do not use this constructor directly. Instead, use
        from_reference_file_system or from_zarr_store.
        """
        self._zarr_group = _zarr_group
        self._zarr_store = _zarr_store
        self._local_cache = _local_cache
        self._source_url_or_path = _source_url_or_path
        self._verbose = _verbose
        self._session = _session

        # url -> h5py.File for datasets stored as external array links, and
        # the byte sources they read from. Closed together with this file.
        self._external_hdf5_clients: Dict[str, h5py.File] = {}
        self._external_byte_sources: List[Any] = []

        # see comment in ZarrH5pyGroup
        self._id = f'{id(self._zarr_group)}/'

        self._is_open = True

    @staticmethod
    def from_reference_file_system(
        rfs: Union[dict, str],
        *,
        local_cache: Union[LocalCache, None] = None,
        verbose: bool = False,
        _source_url_or_path: Union[str, None] = None,
        _session: Any = None
    ):
        """
        Create a ZarrH5pyFile from a reference file system.

        Parameters
        ----------
        rfs : Union[dict, str]
            The reference file system, either as a dict or as a URL or path
            of a .lindi.json file.
        local_cache : Union[LocalCache, None], optional
            The local cache for remote byte ranges, by default None.
        verbose : bool, optional
            Whether to print info for debugging, by default False.
        """
        if isinstance(rfs, str):
            if _source_url_or_path is not None:
                raise ValueError("_source_url_or_path must not be given when rfs is a string")
            data = load_reference_file_system(rfs, _session=_session)
            return ZarrH5pyFile.from_reference_file_system(
                data,
                local_cache=local_cache,
                verbose=verbose,
                _source_url_or_path=rfs,
                _session=_session
            )
        elif isinstance(rfs, dict):
            store = ReferenceFileSystemStore(
                rfs,
                local_cache=local_cache,
                source_url_or_path=_source_url_or_path,
                _session=_session
            )
            return ZarrH5pyFile.from_zarr_store(
                store,
                local_cache=local_cache,
                verbose=verbose,
                _source_url_or_path=_source_url_or_path,
                _session=_session
            )
        else:
            raise TypeError(f"Unhandled type for rfs: {type(rfs)}")

    @staticmethod
    def from_zarr_store(
        zarr_store: ZarrStore,
        *,
        local_cache: Union[LocalCache, None] = None,
        verbose: bool = False,
        _source_url_or_path: Union[str, None] = None,
        _session: Any = None
    ):
        """
        Create a read-only ZarrH5pyFile from a zarr store whose root is a
        group.
        """
        try:
            # even though the function is called "open", the zarr group does
            # not need to be closed
            zarr_group = zarr.open(store=zarr_store, mode="r")
        except (ValueError, KeyError) as e:
            raise MalformedContainer(f"Not a valid zarr hierarchy: {e}", locator=_source_url_or_path) from e
        if not isinstance(zarr_group, zarr.Group):
            raise MalformedContainer("The root of the zarr hierarchy is not a group", locator=_source_url_or_path)
        return ZarrH5pyFile(
            zarr_group,
            _zarr_store=zarr_store,
            _local_cache=local_cache,
            _source_url_or_path=_source_url_or_path,
            _verbose=verbose,
            _session=_session
        )

    def _root_group(self) -> ZarrH5pyGroup:
        # created on demand; the file does not hold on to its nodes
        return ZarrH5pyGroup(self._zarr_group, self)

    def _get_external_hdf5_client(self, url: str) -> h5py.File:
        if url not in self._external_hdf5_clients:
            if url.startswith("http://") or url.startswith("https://"):
                ff = CachedRemfile(url, local_cache=self._local_cache, verbose=self._verbose, _session=self._session)
            else:
                ff = open(url, "rb")
            self._external_byte_sources.append(ff)
            self._external_hdf5_clients[url] = h5py.File(ff, "r")
        return self._external_hdf5_clients[url]

    @property
    def attrs(self):  # type: ignore
        return ZarrH5pyAttributes(self._zarr_group.attrs)

    @property
    def filename(self):
        return self._source_url_or_path or ''

    @property
    def driver(self):
        raise ValueError("Getting driver is not allowed")

    @property
    def mode(self):
        return 'r'

    @property
    def libver(self):
        raise ValueError("Getting libver is not allowed")

    @property
    def userblock_size(self):
        raise ValueError("Getting userblock_size is not allowed")

    @property
    def meta_block_size(self):
        raise ValueError("Getting meta_block_size is not allowed")

    def swmr_mode(self, value):  # type: ignore
        raise ValueError("Getting swmr_mode is not allowed")

    @property
    def local_cache(self):
        return self._local_cache

    @property
    def is_open(self):
        return self._is_open

    def close(self):
        if not self._is_open:
            print('Warning: file already closed.')
            return
        for client in self._external_hdf5_clients.values():
            client.close()
        for ff in self._external_byte_sources:
            ff.close()
        self._external_hdf5_clients = {}
        self._external_byte_sources = []
        self._is_open = False

    def flush(self):
        pass

    def __enter__(self):  # type: ignore
        return self

    def __exit__(self, *args):
        self.close()

    def __str__(self):
        return f'<ZarrH5pyFile "{self._source_url_or_path or self._zarr_group}">'

    def __repr__(self):
        return f'<ZarrH5pyFile "{self._source_url_or_path or self._zarr_group}">'

    def __bool__(self):
        # h5py uses truthiness to check whether a file is open
        return self._is_open

    def __hash__(self):
        # files are used as dictionary keys, e.g., by hdmf
        return id(self)

    def __getitem__(self, name):  # type: ignore
        ret = self._get_item(name)
        if ret is None:
            raise KeyError(name)
        return ret

    def _get_item(self, name, getlink=False, default=None):
        if isinstance(name, ZarrH5pyReference):
            if getlink:
                raise ValueError("Getting link is not allowed for references")
            if name._source != '.':
                raise ValueError(f'Source of reference must be ".", got "{name._source}"')
            if name._source_object_id is not None:
                if name._source_object_id != self._zarr_group.attrs.get("object_id"):
                    raise KeyError(f'Mismatch in source object_id: "{name._source_object_id}" and "{self._zarr_group.attrs.get("object_id")}"')
            target = self[name._path]
            if name._object_id is not None:
                if name._object_id != target.attrs.get("object_id"):
                    raise KeyError(f'Mismatch in object_id: "{name._object_id}" and "{target.attrs.get("object_id")}"')
            return target
        if isinstance(name, bytes):
            name = name.decode('utf-8')
        if isinstance(name, str) and name.strip('/') == '':
            return self._root_group()
        if isinstance(name, str) and "/" in name:
            parts = [p for p in name.split("/") if p]
            x = self._root_group()
            for i, part in enumerate(parts):
                if not isinstance(x, ZarrH5pyGroup):
                    if default is not None:
                        return default
                    raise KeyError(name)
                if i == len(parts) - 1:
                    x = x.get(part, default=default, getlink=getlink)
                else:
                    x = x.get(part)
                    if x is None:
                        if default is not None:
                            return default
                        raise KeyError(name)
            return x
        return self._root_group().get(name, default=default, getlink=getlink)

    def get(self, name, default=None, getclass=False, getlink=False):
        if getclass:
            return self._root_group().get(name, default=default, getclass=True, getlink=getlink)
        try:
            return self._get_item(name, getlink=getlink, default=default)
        except KeyError:
            return default

    def keys(self):  # type: ignore
        return self._root_group().keys()

    def values(self):  # type: ignore
        return self._root_group().values()

    def items(self):  # type: ignore
        return self._root_group().items()

    def __iter__(self):
        return self._root_group().__iter__()

    def __len__(self):
        return self._root_group().__len__()

    def __reversed__(self):
        return self._root_group().__reversed__()

    def __contains__(self, name):
        return self.get(name) is not None

    @property
    def id(self):
        # see comment in ZarrH5pyGroup
        return self._id

    @property
    def file(self):
        return self

    @property
    def name(self):
        return '/'

    @property
    def parent(self):
        return self._root_group()

    @property
    def ref(self):
        raise ValueError("Cannot get ref on read-only object")

    def create_group(self, name, track_order=None):
        raise ValueError("Cannot create group in read-only mode")

    def require_group(self, name):
        raise ValueError("Cannot require group in read-only mode")

    def create_dataset(self, name, shape=None, dtype=None, data=None, **kwds):
        raise ValueError("Cannot create dataset in read-only mode")

    def require_dataset(self, name, shape, dtype, exact=False, **kwds):
        raise ValueError("Cannot require dataset in read-only mode")

    def __setitem__(self, name, obj):
        raise ValueError("Cannot set item in read-only mode")

    def __delitem__(self, name):
        raise ValueError("Cannot delete item in read-only mode")
