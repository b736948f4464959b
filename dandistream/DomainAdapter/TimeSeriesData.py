from typing import Union
from dataclasses import dataclass
import numpy as np


@dataclass(frozen=True)
class TimeSeriesData:
    """
    A continuous stream (e.g., position or running speed) with one timestamp
    per sample along the first axis of data.
    """
    name: str
    path: str
    data: np.ndarray
    timestamps: np.ndarray
    unit: Union[str, None] = None

    def __len__(self):
        return len(self.timestamps)

    def to_tsd(self):
        """Return the stream as a pynapple Tsd (1D) or TsdFrame (2D)."""
        import pynapple as nap  # don't make this a required dependency for the package
        t = np.array(self.timestamps)
        d = np.array(self.data)
        if d.ndim == 1:
            return nap.Tsd(t=t, d=d)
        if d.ndim == 2:
            return nap.TsdFrame(t=t, d=d)
        return nap.TsdTensor(t=t, d=d)
