from typing import List
from dataclasses import dataclass


dandi_api_url = 'https://api.dandiarchive.org/api'
dandi_staging_api_url = 'https://api-staging.dandiarchive.org/api'
lindi_base_url = 'https://lindi.neurosift.org'


@dataclass(frozen=True)
class DandiAssetInfo:
    path: str
    asset_id: str
    size: int
    download_url: str
    lindi_url: str


def download_url_for_asset(asset_id: str, *, staging: bool = False) -> str:
    api_url = dandi_staging_api_url if staging else dandi_api_url
    return f'{api_url}/assets/{asset_id}/download/'


def lindi_url_for_asset(dandiset_id: str, asset_id: str, *, staging: bool = False) -> str:
    """
    URL of the .lindi.json reference file that is published for an asset.
    Not every asset has one; opening the URL of a missing one fails with
    RemoteFetchError.
    """
    instance = 'dandi-staging' if staging else 'dandi'
    return f'{lindi_base_url}/{instance}/dandisets/{dandiset_id}/assets/{asset_id}/nwb.lindi.json'


def list_dandiset_assets(
    dandiset_id: str,
    version: str = 'draft',
    *,
    glob: str = '*.nwb',
    staging: bool = False
) -> List[DandiAssetInfo]:
    """
    List the assets of a dandiset whose paths match glob.

    Parameters
    ----------
    dandiset_id : str
        The dandiset, e.g., '000409'.
    version : str, optional
        The version of the dandiset, by default 'draft'.
    glob : str, optional
        Pattern for the asset paths, by default '*.nwb'.
    staging : bool, optional
        Whether to use the staging instance of the archive.
    """
    from dandi.dandiapi import DandiAPIClient  # don't make this a required dependency for the package
    if staging:
        client = DandiAPIClient.for_dandi_instance('dandi-staging')
    else:
        client = DandiAPIClient()
    ret: List[DandiAssetInfo] = []
    with client:
        dandiset = client.get_dandiset(dandiset_id, version)
        for asset in dandiset.get_assets_by_glob(glob):
            ret.append(DandiAssetInfo(
                path=asset.path,
                asset_id=asset.identifier,
                size=int(asset.size),
                download_url=download_url_for_asset(asset.identifier, staging=staging),
                lindi_url=lindi_url_for_asset(dandiset_id, asset.identifier, staging=staging)
            ))
    return ret


def list_dandiset_asset_urls(
    dandiset_id: str,
    version: str = 'draft',
    *,
    glob: str = '*.nwb',
    staging: bool = False
) -> List[str]:
    """Download URLs of the assets of a dandiset, suitable for open_session()."""
    assets = list_dandiset_assets(dandiset_id, version, glob=glob, staging=staging)
    return [a.download_url for a in assets]
