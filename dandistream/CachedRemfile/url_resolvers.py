from typing import Callable, Dict, List, Union
import os
import time
import requests


_global = {
    'additional_url_resolvers': []
}

# url -> {timestamp, url}
_global_resolved_urls: Dict[str, dict] = {}

resolved_url_lifetime_sec = 60 * 10


def get_additional_url_resolvers() -> List[Callable[[str], str]]:
    return _global['additional_url_resolvers']


def add_additional_url_resolver(resolver: Callable[[str], str]):
    """
    Register a function that rewrites URLs before they are fetched. Resolvers
    run in registration order. Cache keys are always computed from the URL
    before any resolver is applied.
    """
    _global['additional_url_resolvers'].append(resolver)


def clear_resolved_urls():
    _global_resolved_urls.clear()


def is_dandi_url(url: str) -> bool:
    if url.startswith('https://api.dandiarchive.org/api/'):
        return True
    if url.startswith('https://api-staging.dandiarchive.org/'):
        return True
    return False


def _get_dandi_api_key(url: str) -> Union[str, None]:
    if url.startswith('https://api.dandiarchive.org/api/'):
        return os.environ.get('DANDI_API_KEY', None)
    if url.startswith('https://api-staging.dandiarchive.org/'):
        return os.environ.get('DANDI_STAGING_API_KEY', None)
    return None


def _resolve_dandi_url(url: str) -> str:
    # Exchange the DANDI API url for the pre-signed S3 url it redirects to,
    # authenticating with the API token for embargoed assets
    headers = {}
    dandi_api_key = _get_dandi_api_key(url)
    if dandi_api_key is not None:
        headers['Authorization'] = f'token {dandi_api_key}'
    resp = requests.head(url, allow_redirects=True, headers=headers)
    resp.raise_for_status()
    return str(resp.url)

# Example:
# https://api.dandiarchive.org/api/dandisets/000939/versions/0.240318.1555/assets/11f512ba-5bcf-4230-a8cb-dc8d36db38cb/download/
# redirects to a pre-signed url of the form
# https://dandiarchive.s3.amazonaws.com/blobs/a2b/94f/a2b94f91-...?X-Amz-Expires=3600&X-Amz-Signature=...


def resolve_url(url: str) -> str:
    for aur in get_additional_url_resolvers():
        url = aur(url)
    if url in _global_resolved_urls:
        elapsed = time.time() - _global_resolved_urls[url]["timestamp"]
        if elapsed < resolved_url_lifetime_sec:
            return _global_resolved_urls[url]["url"]
    if is_dandi_url(url):
        resolved_url = _resolve_dandi_url(url)
    else:
        resolved_url = url
    _global_resolved_urls[url] = {"timestamp": time.time(), "url": resolved_url}
    return resolved_url
