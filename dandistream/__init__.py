from .LocatorResolver.LocatorResolver import ResolvedLocator, UnrecognizedLocator, resolve_locator
from .LocalCache.LocalCache import LocalCache, ChunkTooLargeError
from .CachedRemfile.CachedRemfile import CachedRemfile, CachedRemfileOpts, RemoteFetchError
from .CachedRemfile.url_resolvers import add_additional_url_resolver
from .ZarrH5py import ZarrH5pyFile
from .HierarchicalView.HierarchicalView import NWBFileView, open_container
from .HierarchicalView.MalformedContainer import MalformedContainer
from .DomainAdapter.NWBAdapter import NWBAdapter, MissingSubstructure, WELL_KNOWN_SUBSTRUCTURES
from .DomainAdapter.EventTable import EventTable
from .DomainAdapter.IntervalTable import IntervalTable
from .DomainAdapter.TimeSeriesData import TimeSeriesData
from .Session.Session import Session, open_session, iter_sessions, default_local_cache
from .DandiCatalog.DandiCatalog import (
    DandiAssetInfo,
    list_dandiset_assets,
    list_dandiset_asset_urls,
    lindi_url_for_asset,
)

__all__ = [
    "ResolvedLocator",
    "UnrecognizedLocator",
    "resolve_locator",
    "LocalCache",
    "ChunkTooLargeError",
    "CachedRemfile",
    "CachedRemfileOpts",
    "RemoteFetchError",
    "add_additional_url_resolver",
    "ZarrH5pyFile",
    "NWBFileView",
    "open_container",
    "MalformedContainer",
    "NWBAdapter",
    "MissingSubstructure",
    "WELL_KNOWN_SUBSTRUCTURES",
    "EventTable",
    "IntervalTable",
    "TimeSeriesData",
    "Session",
    "open_session",
    "iter_sessions",
    "default_local_cache",
    "DandiAssetInfo",
    "list_dandiset_assets",
    "list_dandiset_asset_urls",
    "lindi_url_for_asset",
]
