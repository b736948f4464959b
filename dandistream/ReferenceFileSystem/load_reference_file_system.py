from typing import Any
import os
import json
import requests

from ..CachedRemfile.CachedRemfile import RemoteFetchError, _user_agent
from ..CachedRemfile.url_resolvers import resolve_url
from ..HierarchicalView.MalformedContainer import MalformedContainer


def load_reference_file_system(url_or_path: str, *, _session: Any = None) -> dict:
    """
    Load a reference file system (.lindi.json) from a URL or a local path.

    The descriptor itself is not cached; only the byte ranges it refers to
    are.
    """
    if url_or_path.startswith('http://') or url_or_path.startswith('https://'):
        content = _download_bytes(url_or_path, session=_session)
    else:
        if not os.path.exists(url_or_path):
            raise FileNotFoundError(f"File does not exist: {url_or_path}")
        with open(url_or_path, 'rb') as f:
            content = f.read()
    try:
        rfs = json.loads(content)
    except ValueError as e:
        raise MalformedContainer(f"Not a valid reference file system (invalid json): {url_or_path}", locator=url_or_path) from e
    if not isinstance(rfs, dict) or not isinstance(rfs.get('refs', None), dict):
        raise MalformedContainer(f"Not a valid reference file system (no refs): {url_or_path}", locator=url_or_path)
    return rfs


def _download_bytes(url: str, *, session: Any) -> bytes:
    if session is None:
        session = requests
    try:
        response = session.get(resolve_url(url), headers={"User-Agent": _user_agent})
    except requests.exceptions.RequestException as e:
        raise RemoteFetchError(f'Unable to reach {url}: {e}', url=url) from e
    if response.status_code != 200:
        raise RemoteFetchError(f"Error downloading {url}: {response.status_code} {response.reason}", url=url)
    return response.content
