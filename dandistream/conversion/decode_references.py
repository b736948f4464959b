from typing import Any
import numpy as np


def decode_references(x: Any):
    """Replace encoded object references ({'_REFERENCE': {...}}) in a nested
    structure with ZarrH5pyReference objects. Lists and object arrays are
    modified in place."""
    from ..ZarrH5py.ZarrH5pyReference import ZarrH5pyReference  # avoid circular import
    if isinstance(x, dict):
        # x should only be a dict when x represents an encoded reference
        if '_REFERENCE' in x:
            return ZarrH5pyReference(x['_REFERENCE'])
        raise ValueError(f"Unexpected dict in selection: {x}")
    elif isinstance(x, list):
        for i, v in enumerate(x):
            x[i] = decode_references(v)
    elif isinstance(x, np.ndarray):
        if x.dtype == object:
            view_1d = x.reshape(-1)
            for i in range(len(view_1d)):
                view_1d[i] = decode_references(view_1d[i])
    return x
