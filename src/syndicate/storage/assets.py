"""
AssetDownloader - fetch asset files for new asset replicas.

A replicated asset is created on the destination by downloading the file
from the source's public URL into ``<data_dir>/uploads/<node_id>/``. When
the server sends a ``Content-MD5`` header the downloaded bytes are checked
against it.
"""

import base64
import hashlib
import logging
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse, unquote

import requests

from ..errors import SyndicateError

logger = logging.getLogger(__name__)


class AssetDownloadError(SyndicateError):
    """Raised when an asset file cannot be fetched or fails verification"""
    pass


class AssetDownloader:
    """
    Downloads asset files with a shared requests session.

    Example:
        downloader = AssetDownloader(Path("~/.syndicate"), timeout=15)
        path = downloader.fetch("https://a.example/uploads/logo.png", node_id=2)
    """

    CHUNK_SIZE = 64 * 1024

    def __init__(self, base_path: Path, timeout: int = 15, session: Optional[requests.Session] = None):
        self.upload_dir = Path(base_path) / "uploads"
        self.timeout = timeout
        self._session = session or requests.Session()

    def _target_path(self, url: str, node_id: int) -> Path:
        name = Path(unquote(urlparse(url).path)).name or "asset"
        directory = self.upload_dir / str(node_id)
        directory.mkdir(parents=True, exist_ok=True)

        target = directory / name
        counter = 1
        while target.exists():
            target = directory / f"{Path(name).stem}-{counter}{Path(name).suffix}"
            counter += 1
        return target

    def fetch(self, url: str, node_id: int) -> Path:
        """
        Download ``url`` into the upload directory of ``node_id``.

        Returns:
            Path of the stored file

        Raises:
            AssetDownloadError: On HTTP errors, timeouts or checksum mismatch
        """
        if not url:
            raise AssetDownloadError("Asset has no source URL")

        try:
            response = self._session.get(url, stream=True, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise AssetDownloadError(f"Failed to download {url}: {e}") from e

        target = self._target_path(url, node_id)
        digest = hashlib.md5()
        try:
            with open(target, "wb") as f:
                for chunk in response.iter_content(chunk_size=self.CHUNK_SIZE):
                    if chunk:
                        digest.update(chunk)
                        f.write(chunk)
        except requests.RequestException as e:
            target.unlink(missing_ok=True)
            raise AssetDownloadError(f"Failed to download {url}: {e}") from e
        finally:
            response.close()

        expected = response.headers.get("Content-MD5")
        if expected and expected not in (digest.hexdigest(), base64.b64encode(digest.digest()).decode()):
            target.unlink(missing_ok=True)
            raise AssetDownloadError(f"MD5 mismatch for {url}")

        logger.debug(f"Downloaded {url} to {target}")
        return target
