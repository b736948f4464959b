from typing import Literal
from dataclasses import dataclass


LocatorKind = Literal["reference", "direct", "local"]

reference_suffixes = ('.lindi.json',)
local_hdf5_suffixes = ('.nwb', '.h5', '.hdf5')


class UnrecognizedLocator(ValueError):
    pass


@dataclass(frozen=True)
class ResolvedLocator:
    """
    A dataset locator together with the loading strategy it implies.

    Attributes:
        locator (str): The original locator string.
        kind (LocatorKind): "reference" for a LINDI reference descriptor
        (local or remote), "direct" for a remote HDF5 object read by byte
        ranges, "local" for an HDF5 file on disk.
        is_remote (bool): Whether the locator is an http(s) URL.
    """
    locator: str
    kind: LocatorKind
    is_remote: bool


def is_url(x: str) -> bool:
    return x.startswith('http://') or x.startswith('https://')


def resolve_locator(locator: str) -> ResolvedLocator:
    """
    Classify a dataset locator. This is a syntactic decision only; no
    network or filesystem access takes place.
    """
    if not isinstance(locator, str):
        raise UnrecognizedLocator(f'Locator must be a string, got {type(locator)}')
    if not locator.strip():
        raise UnrecognizedLocator('Locator is empty')
    remote = is_url(locator)
    name = _strip_query_and_fragment(locator) if remote else locator
    if name.endswith(reference_suffixes):
        return ResolvedLocator(locator=locator, kind="reference", is_remote=remote)
    if remote:
        if len(name.split('://', 1)[1].strip('/')) == 0:
            raise UnrecognizedLocator(f'URL has no host or path: {locator}')
        return ResolvedLocator(locator=locator, kind="direct", is_remote=True)
    if '://' in locator:
        raise UnrecognizedLocator(f'Unsupported URL scheme: {locator}')
    if name.lower().endswith(local_hdf5_suffixes):
        return ResolvedLocator(locator=locator, kind="local", is_remote=False)
    raise UnrecognizedLocator(f'Locator is neither a reference descriptor nor an HDF5 URL or file: {locator}')


def _strip_query_and_fragment(url: str) -> str:
    for sep in ['#', '?']:
        if sep in url:
            url = url.split(sep, 1)[0]
    return url
