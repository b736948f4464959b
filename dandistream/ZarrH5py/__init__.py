from .ZarrH5pyFile import ZarrH5pyFile
from .ZarrH5pyDataset import ZarrH5pyDataset
from .ZarrH5pyGroup import ZarrH5pyGroup
from .ZarrH5pyLink import ZarrH5pySoftLink, ZarrH5pyHardLink
from .ZarrH5pyReference import ZarrH5pyReference

__all__ = [
    "ZarrH5pyFile",
    "ZarrH5pyDataset",
    "ZarrH5pyGroup",
    "ZarrH5pySoftLink",
    "ZarrH5pyHardLink",
    "ZarrH5pyReference",
]
