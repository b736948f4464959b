from collections.abc import Mapping
from .ZarrH5pyReference import ZarrH5pyReference
from ..conversion.attr_conversion import zarr_to_h5_attr
from ..conversion.nan_inf_ninf import decode_nan_inf_ninf

# attributes used by the LINDI encoding, never exposed to the caller
_special_attribute_keys = frozenset([
    "_SCALAR",
    "_COMPOUND_DTYPE",
    "_REFERENCE",
    "_EXTERNAL_ARRAY_LINK",
    "_SOFT_LINK",
])


class ZarrH5pyAttributes(Mapping):
    """
    Read-only attributes of a group or dataset, with values converted to
    what h5py would return: numpy arrays for lists, np.bool_ for booleans
    and ZarrH5pyReference for encoded object references.
    """
    def __init__(self, attrs):
        self._attrs = attrs

    def _visible_keys(self):
        return [k for k in self._attrs if k not in _special_attribute_keys]

    def __getitem__(self, key):
        if key in _special_attribute_keys:
            raise KeyError(key)
        val = self._attrs[key]
        if isinstance(val, dict) and "_REFERENCE" in val:
            return ZarrH5pyReference(val["_REFERENCE"])
        return zarr_to_h5_attr(decode_nan_inf_ninf(val))

    def __iter__(self):
        return iter(self._visible_keys())

    def __len__(self):
        return len(self._visible_keys())

    def __contains__(self, key):
        return key not in _special_attribute_keys and key in self._attrs

    def __setitem__(self, key, value):
        raise ValueError("Cannot set attributes on a read-only object")

    def __delitem__(self, key):
        raise ValueError("Cannot delete attributes on a read-only object")

    def __repr__(self):
        return f'<ZarrH5pyAttributes {self._visible_keys()}>'
