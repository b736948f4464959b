from typing import Any, Iterable, Iterator, List, Literal, Union
import h5py

from ..LocatorResolver.LocatorResolver import ResolvedLocator, resolve_locator
from ..LocalCache.LocalCache import LocalCache, get_default_cache_dir
from ..CachedRemfile.CachedRemfile import CachedRemfileOpts
from ..HierarchicalView.HierarchicalView import NWBFileView, open_container
from ..DomainAdapter.NWBAdapter import NWBAdapter
from ..DomainAdapter.EventTable import EventTable
from ..DomainAdapter.IntervalTable import IntervalTable
from ..DomainAdapter.TimeSeriesData import TimeSeriesData


def default_local_cache() -> LocalCache:
    """The local cache in $DANDISTREAM_LOCAL_CACHE_DIR, or in
    ~/.dandistream/cache if that is not set."""
    return LocalCache(cache_dir=get_default_cache_dir())


class Session:
    """
    One opened file: the resolved locator, the tree view over the file and
    the adapter that maps it onto analysis objects.

    Use as a context manager so that the file and any remote connections
    are released:

        with open_session(url) as session:
            if session.has_substructure('units'):
                units = session.get_event_table()
    """
    def __init__(self, resolved: ResolvedLocator, view: NWBFileView, *, local_cache: Union[LocalCache, None] = None, _owns_local_cache: bool = False):
        self._resolved = resolved
        self._view = view
        self._adapter = NWBAdapter(view)
        self._local_cache = local_cache
        self._owns_local_cache = _owns_local_cache
        self._nwb_io: Any = None
        self._nwbfile: Any = None
        self._is_open = True

    @property
    def locator(self) -> str:
        return self._resolved.locator

    @property
    def resolved_locator(self) -> ResolvedLocator:
        return self._resolved

    @property
    def view(self) -> NWBFileView:
        return self._view

    @property
    def adapter(self) -> NWBAdapter:
        return self._adapter

    @property
    def h5py_file(self) -> h5py.File:
        return self._view.h5py_file

    @property
    def local_cache(self) -> Union[LocalCache, None]:
        return self._local_cache

    @property
    def is_open(self) -> bool:
        return self._is_open

    def has_substructure(self, name: str) -> bool:
        return self._adapter.has_substructure(name)

    def available_substructures(self) -> List[str]:
        return self._adapter.available_substructures()

    def list_interval_tables(self) -> List[str]:
        return self._adapter.list_interval_tables()

    def get_event_table(self, name: str = 'units', column: str = 'spike_times') -> EventTable:
        return self._adapter.get_event_table(name, column)

    def get_interval_table(self, name: str = 'trials') -> IntervalTable:
        return self._adapter.get_interval_table(name)

    def list_time_series(self, module: str = 'behavior') -> List[str]:
        return self._adapter.list_time_series(module)

    def get_time_series(self, path: str) -> TimeSeriesData:
        return self._adapter.get_time_series(path)

    def read_nwb(self):
        """
        Read the file as a pynwb NWBFile. The IO object stays open until the
        session is closed, since pynwb reads datasets lazily.
        """
        import pynwb  # don't make this a required dependency for the package
        if self._nwbfile is None:
            self._nwb_io = pynwb.NWBHDF5IO(file=self.h5py_file, mode='r', load_namespaces=True)
            self._nwbfile = self._nwb_io.read()
        return self._nwbfile

    def close(self):
        if not self._is_open:
            return
        if self._nwb_io is not None:
            self._nwb_io.close()
            self._nwb_io = None
            self._nwbfile = None
        self._view.close()
        if self._owns_local_cache and self._local_cache is not None:
            self._local_cache.close()
        self._is_open = False

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def __repr__(self):
        return f'<Session {self._resolved.kind} "{self._resolved.locator}">'


def open_session(
    locator: str,
    *,
    local_cache: Union[LocalCache, None, Literal[False]] = None,
    opts: Union[CachedRemfileOpts, None] = None,
    verbose: bool = False,
    _session: Any = None
) -> Session:
    """
    Open an NWB file given a local path, a URL of an HDF5 file or a URL or
    path of a .lindi.json reference file.

    Parameters
    ----------
    locator : str
        Where the file is.
    local_cache : Union[LocalCache, None, False], optional
        The cache for remote byte ranges. None means the default cache (see
        default_local_cache) and False means no caching.
    opts : Union[CachedRemfileOpts, None], optional
        Chunking options for reading a remote HDF5 file directly.
    verbose : bool, optional
        Whether to print info for debugging, by default False.
    """
    resolved = resolve_locator(locator)
    owns_local_cache = False
    if local_cache is None:
        if resolved.kind != "local":
            cache = default_local_cache()
            owns_local_cache = True
        else:
            cache = None
    elif local_cache is False:
        cache = None
    else:
        cache = local_cache
    try:
        view = open_container(resolved, local_cache=cache, opts=opts, verbose=verbose, _session=_session)
    except Exception:
        if owns_local_cache and cache is not None:
            cache.close()
        raise
    return Session(resolved, view, local_cache=cache, _owns_local_cache=owns_local_cache)


def iter_sessions(locators: Iterable[str], **kwargs) -> Iterator[Session]:
    """
    Open the files one at a time. Each session is closed before the next
    one is opened, including when the loop body breaks or raises.
    """
    for locator in locators:
        session = open_session(locator, **kwargs)
        try:
            yield session
        finally:
            session.close()
