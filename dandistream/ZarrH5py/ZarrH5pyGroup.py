from typing import TYPE_CHECKING
import h5py
import zarr
from zarr.errors import MetadataError

from ..HierarchicalView.MalformedContainer import MalformedContainer
from .ZarrH5pyDataset import ZarrH5pyDataset
from .ZarrH5pyLink import ZarrH5pyHardLink, ZarrH5pySoftLink
from .ZarrH5pyAttributes import ZarrH5pyAttributes


if TYPE_CHECKING:
    from .ZarrH5pyFile import ZarrH5pyFile  # pragma: no cover


class ZarrH5pyGroup(h5py.Group):
    def __init__(self, _zarr_group: zarr.Group, _file: "ZarrH5pyFile"):
        self._zarr_group = _zarr_group
        self._file = _file

        # In h5py, the id property is an object that exposes low-level
        # operations of the HDF5 library. Some packages (e.g., pynwb) only use
        # it as a unique identifier for caching, so here it is a string that
        # is unique for each object. Any attempt at a low-level operation on
        # it raises, which usually means a high-level method should be
        # overridden.
        self._id = f'{id(self._file)}/{self._zarr_group.name}'

    def __getitem__(self, name):
        if not isinstance(name, (bytes, str)):
            raise TypeError(
                "Accessing a group is done with bytes or str, "
                "not {}".format(type(name))
            )
        if isinstance(name, bytes):
            name = name.decode('utf-8')
        if name.startswith('/'):
            return self._file[name]
        name = name.rstrip('/')
        if '/' in name:
            # resolve one level at a time so that soft links along the path are followed
            first, rest = name.split('/', 1)
            parent = self[first]
            if not isinstance(parent, ZarrH5pyGroup):
                raise KeyError(name)
            return parent[rest]
        if name in ('', '.'):
            return self
        x, soft_link = self._zarr_child(name)
        if isinstance(x, zarr.Group):
            # follow the link if this is a soft link
            if soft_link is not None:
                link_path = soft_link['path']
                target_item = self._file.get(link_path)
                if not isinstance(target_item, (ZarrH5pyGroup, ZarrH5pyDataset)):
                    raise KeyError(
                        f"Soft link {name} points to {link_path}, which does not exist"
                    )
                return target_item
            return ZarrH5pyGroup(x, self._file)
        elif isinstance(x, zarr.Array):
            return ZarrH5pyDataset(x, self._file)
        else:
            raise TypeError(f"Unknown type: {type(x)}")

    def _zarr_child(self, name: str):
        """The zarr node called name and its soft link, if any. Raises KeyError
        if there is no such node."""
        try:
            x = self._zarr_group[name]
            soft_link = x.attrs.get('_SOFT_LINK', None) if isinstance(x, zarr.Group) else None
        except (ValueError, TypeError, MetadataError) as e:
            raise MalformedContainer(
                f"Unable to decode the metadata of {name} in {self.name}: {e}",
                locator=self._file._source_url_or_path
            ) from e
        return x, soft_link

    def get(self, name, default=None, getclass=False, getlink=False):
        if not (getclass or getlink):
            try:
                return self[name]
            except KeyError:
                return default

        if name not in self:
            return default
        elif getclass and not getlink:
            x = self[name]
            return h5py.Group if isinstance(x, h5py.Group) else h5py.Dataset
        elif getlink and not getclass:
            try:
                _, soft_link = self._zarr_child(name)
            except KeyError:
                return default
            if soft_link is not None:
                return ZarrH5pySoftLink(soft_link['path'])
            return ZarrH5pyHardLink()
        else:
            return h5py.SoftLink if isinstance(self.get(name, getlink=True), h5py.SoftLink) else h5py.HardLink

    @property
    def name(self):
        return self._zarr_group.name

    @property
    def parent(self):
        parent_name = '/'.join(self.name.split('/')[:-1]) or '/'
        return self._file[parent_name]

    def keys(self):  # type: ignore
        return list(self._zarr_group.keys())

    def values(self):  # type: ignore
        return [self[k] for k in self.keys()]

    def items(self):  # type: ignore
        return [(k, self[k]) for k in self.keys()]

    def __iter__(self):
        return iter(self.keys())

    def __len__(self):
        return len(self.keys())

    def __reversed__(self):
        return reversed(self.keys())

    def __contains__(self, name):
        if isinstance(name, str) and '/' in name.strip('/'):
            return self.get(name) is not None
        return self._zarr_group.__contains__(name)

    def __str__(self):
        return f'<{self.__class__.__name__}: {self.name}>'

    def __repr__(self):
        return f'<{self.__class__.__name__}: {self.name}>'

    @property
    def id(self):
        # see comment above
        return self._id

    @property
    def file(self):
        return self._file

    @property
    def attrs(self):  # type: ignore
        return ZarrH5pyAttributes(self._zarr_group.attrs)

    @property
    def ref(self):
        raise ValueError("Cannot get ref on read-only object")

    def create_group(self, name, track_order=None):
        raise ValueError('Cannot create group in read-only mode')

    def require_group(self, name):
        raise ValueError('Cannot require group in read-only mode')

    def create_dataset(self, name, shape=None, dtype=None, data=None, **kwds):
        raise ValueError('Cannot create dataset in read-only mode')

    def require_dataset(self, name, shape, dtype, exact=False, **kwds):
        raise ValueError('Cannot require dataset in read-only mode')

    def __setitem__(self, name, obj):
        raise ValueError('Cannot set item in read-only mode')

    def __delitem__(self, name):
        raise ValueError('Cannot delete item in read-only mode')
