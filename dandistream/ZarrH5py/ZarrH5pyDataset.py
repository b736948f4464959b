from typing import TYPE_CHECKING, Any
import numpy as np
import h5py
import zarr

from .ZarrH5pyAttributes import ZarrH5pyAttributes
from .ZarrH5pyReference import ZarrH5pyReference
from ..conversion.decode_references import decode_references


if TYPE_CHECKING:
    from .ZarrH5pyFile import ZarrH5pyFile  # pragma: no cover


class ZarrH5pyDataset(h5py.Dataset):
    def __init__(self, _zarr_array: zarr.Array, _file: "ZarrH5pyFile"):
        self._zarr_array = _zarr_array
        self._file = _file

        # see comment in ZarrH5pyGroup
        self._id = f'{id(self._file)}/{self._zarr_array.name}'

        # _COMPOUND_DTYPE is a list of [name, dtype] pairs, where dtype is
        # "<REFERENCE>" for fields holding object references
        compound_dtype_obj = _zarr_array.attrs.get("_COMPOUND_DTYPE", None)
        if compound_dtype_obj is not None:
            fields = []
            for name, dt in compound_dtype_obj:
                if dt == '<REFERENCE>':
                    dt = h5py.special_dtype(ref=h5py.Reference)
                fields.append((name, dt))
            self._compound_dtype = np.dtype(fields)
        else:
            self._compound_dtype = None

        self._is_scalar = self._zarr_array.attrs.get("_SCALAR", False)

    @property
    def id(self):
        # see comment in ZarrH5pyGroup
        return self._id

    @property
    def shape(self):  # type: ignore
        if self._is_scalar:
            return ()
        return self._zarr_array.shape

    @property
    def size(self):
        if self._is_scalar:
            return 1
        return self._zarr_array.size

    @property
    def dtype(self):
        if self._compound_dtype is not None:
            return self._compound_dtype
        ret = self._zarr_array.dtype
        if ret.kind == 'O' and not ret.metadata:
            # hdmf and the pynwb validator expect object dtypes to carry vlen
            # metadata, as they do in h5py
            ret = np.dtype(str(ret), metadata={'vlen': bytes})  # type: ignore
        return ret

    @property
    def nbytes(self):
        return self._zarr_array.nbytes

    @property
    def file(self):
        return self._file

    @property
    def name(self):
        return self._zarr_array.name

    @property
    def parent(self):
        parent_name = '/'.join(self.name.split('/')[:-1]) or '/'
        return self._file[parent_name]

    @property
    def maxshape(self):
        return self.shape

    @property
    def ndim(self):
        if self._is_scalar:
            return 0
        return self._zarr_array.ndim

    @property
    def attrs(self):  # type: ignore
        return ZarrH5pyAttributes(self._zarr_array.attrs)

    @property
    def fletcher32(self):
        for f in self._zarr_array.filters or []:
            if f.__class__.__name__ == 'Fletcher32':
                return True
        return False

    @property
    def chunks(self):
        return self._zarr_array.chunks

    @property
    def external_array_link(self):
        link = self._zarr_array.attrs.get("_EXTERNAL_ARRAY_LINK", None)
        if isinstance(link, dict) and link.get("link_type", None) == 'hdf5_dataset':
            return link
        return None

    def __len__(self):
        if self.ndim == 0:
            raise TypeError("Attempt to take len() of scalar dataset")
        return self.shape[0]

    def __iter__(self):
        if self.ndim == 0:
            raise TypeError("Can't iterate over a scalar dataset")
        for i in range(self.shape[0]):
            yield self[i]

    def __repr__(self):  # type: ignore
        return f"<{self.__class__.__name__}: {self.name}>"

    def __str__(self):
        return f"<{self.__class__.__name__}: {self.name}>"

    def __getitem__(self, args, new_dtype=None):
        if new_dtype is not None:
            raise TypeError("new_dtype is not supported")
        return self._get_item(args)

    def _get_item(self, selection: Any):
        # Large datasets may be stored as a link to a dataset in the original
        # hdf5 file rather than as zarr chunks
        link = self.external_array_link
        if link is not None:
            url = link.get("url", None)
            name = link.get("name", None)
            if url is not None and name is not None:
                client = self._file._get_external_hdf5_client(url)
                dataset = client[name]
                assert isinstance(dataset, h5py.Dataset)
                return dataset[selection]

        if self._compound_dtype is not None:
            if isinstance(selection, str):
                ind = self._compound_dtype.names.index(selection)
                dt = self._compound_dtype[ind]
                dtype = h5py.Reference if dt == 'object' else np.dtype(dt)
                return ZarrH5pyDatasetCompoundFieldSelection(dataset=self, ind=ind, dtype=dtype)
            return self._get_compound_rows(selection)

        if self.ndim == 0:
            if selection != () and selection != Ellipsis:
                raise TypeError(f'Cannot slice a scalar dataset with {selection}')
            # with zarr 2.18 [0] raises "buffer source array is read-only",
            # so take [:][0] instead
            return self._zarr_array[:][0]
        return decode_references(self._zarr_array[selection])

    def _get_compound_rows(self, selection: Any):
        # compound data is stored as json rows: [[x0, y0, ...], [x1, y1, ...], ...]
        if self.ndim != 1:
            raise TypeError(f"Compound datasets are only supported in 1D, not {self.ndim}D")
        rows = self._zarr_array[selection]
        if isinstance(rows, list):
            return np.array(tuple(decode_references(rows)), dtype=self._compound_dtype)[()]
        return np.array(
            [tuple(decode_references(list(r))) for r in rows],
            dtype=self._compound_dtype
        )

    def read_direct(self, dest, source_sel=None, dest_sel=None):
        if source_sel is None:
            source_sel = ()
        if dest_sel is None:
            dest_sel = ()
        dest[dest_sel] = self[source_sel]

    @property
    def ref(self):
        raise ValueError("Cannot get ref on read-only object")

    def __setitem__(self, args, val):
        raise ValueError("Cannot set items on read-only object")


class ZarrH5pyDatasetCompoundFieldSelection:
    """
    Returned when a compound dataset is indexed with a field name. If the
    dataset has dtype [('x', 'f4'), ('y', 'f4')], then dataset['x'] is an
    object of this class and dataset['x'][0] is the first x value.
    """
    def __init__(self, *, dataset: ZarrH5pyDataset, ind: int, dtype: Any):
        self._dataset = dataset
        self._ind = ind
        self._dtype = dtype
        if self._dataset.ndim != 1:
            raise TypeError(
                f"Compound field selection only implemented for 1D datasets, not {self._dataset.ndim}D"
            )
        za = self._dataset._zarr_array
        self._zarr_array = za
        d = [row[self._ind] for row in za[:]]
        if self._dtype == h5py.Reference:
            d = [ZarrH5pyReference(x['_REFERENCE']) for x in d]
            self._data = np.array(d, dtype=object)
        else:
            self._data = np.array(d, dtype=self._dtype)

    def __len__(self):
        return self.shape[0]

    def __iter__(self):
        for i in range(self.shape[0]):
            yield self[i]

    @property
    def ndim(self):
        return self._zarr_array.ndim

    @property
    def shape(self):
        return self._zarr_array.shape

    @property
    def dtype(self):
        return self._dtype

    @property
    def size(self):
        return self._data.size

    def __getitem__(self, selection):
        return decode_references(self._data[selection])
