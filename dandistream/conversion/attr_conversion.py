from typing import Any
import numpy as np


def zarr_to_h5_attr(attr: Any):
    """Convert an attribute from zarr to the form h5py would return."""
    if isinstance(attr, bool):
        return np.bool_(attr)
    elif isinstance(attr, (str, int, float)):
        return attr
    elif isinstance(attr, list):
        if _nested_list_has_all(attr, str):
            return np.array(attr, dtype='O')
        elif _nested_list_has_all(attr, bool):
            return np.array(attr, dtype='bool')
        elif _nested_list_has_all(attr, int):
            return np.array(attr, dtype='int64')
        elif _nested_list_has_all(attr, (int, float)):
            return np.array(attr, dtype='float64')
        else:
            raise TypeError("Nested list contains mixed types")
    else:
        raise TypeError(f"Unexpected type in zarr attribute: {type(attr)}")


def _nested_list_has_all(x, types):
    if isinstance(x, list):
        return all(_nested_list_has_all(y, types) for y in x)
    if types is int or types == (int, float):
        # bool is a subclass of int but is not a number here
        if isinstance(x, bool):
            return False
    return isinstance(x, types)
