"""
Archive adapter — download a file and verify its checksum.

A resource is in sync when the target exists and its digest matches
the pinned checksum; only then is the network left alone. A download
that does not match is discarded and the resource fails. There is no
retry: the next run starts over.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
import urllib.error
import urllib.request
from pathlib import Path

from provisioner import __version__
from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.adapters.host.attributes import carry_attributes
from provisioner.core.models.parameters import CHECKSUM_LENGTHS
from provisioner.core.models.resource import Receipt

logger = logging.getLogger(__name__)

_CHUNK = 64 * 1024


def file_digest(path: Path, algorithm: str) -> str:
    """Hex digest of a file, read in chunks."""
    h = hashlib.new(algorithm)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK), b""):
            h.update(chunk)
    return h.hexdigest()


def _fmt_size(n: int | float) -> str:
    """Format byte count to human-readable string."""
    for unit in ("B", "KB", "MB", "GB"):
        if n < 1024:
            return f"{n:.1f} {unit}"
        n /= 1024
    return f"{n:.1f} TB"


class ChecksumMismatch(Exception):
    """Downloaded bytes do not hash to the pinned checksum."""


class ArchiveAdapter(Adapter):
    """Converge downloaded-file resources.

    Resource params:
        url (str): Where to download from.
        checksum (str): Expected hex digest.
        checksum_type (str): md5, sha1, sha256 or sha512.
        timeout (int): Socket timeout in seconds (default: 60).
    """

    @property
    def name(self) -> str:
        return "archive"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        resource = context.resource
        params = context.params
        if resource.ensure not in ("present", "absent"):
            return False, f"Unsupported ensure '{resource.ensure}'"
        if not Path(resource.target).is_absolute():
            return False, f"Target must be an absolute path: {resource.target}"
        if resource.ensure == "absent":
            return True, ""
        if not params.get("url"):
            return False, "Missing required param: 'url'"
        if not params.get("checksum"):
            return False, "Missing required param: 'checksum'"
        algorithm = params.get("checksum_type", "sha256")
        if algorithm not in CHECKSUM_LENGTHS:
            return False, f"Unsupported checksum type '{algorithm}'"
        return True, ""

    def _in_sync(self, path: Path, params: dict) -> bool:
        if not path.is_file():
            return False
        actual = file_digest(path, params.get("checksum_type", "sha256"))
        return actual == params["checksum"].lower()

    def drift(self, context: ExecutionContext) -> list[str]:
        resource = context.resource
        path = Path(resource.target)
        if resource.ensure == "absent":
            return [f"remove {path}"] if path.exists() else []
        if self._in_sync(path, context.params):
            return []
        if path.exists():
            return [f"replace {path} from {context.params['url']} (checksum differs)"]
        return [f"download {context.params['url']} to {path}"]

    def execute(self, context: ExecutionContext) -> Receipt:
        resource = context.resource
        params = context.params
        path = Path(resource.target)

        if resource.ensure == "absent":
            try:
                if path.exists():
                    path.unlink()
                    return Receipt.converged(
                        adapter=self.name, resource_id=resource.id, changes=[f"removed {path}"]
                    )
            except OSError as e:
                return Receipt.failure(
                    adapter=self.name, resource_id=resource.id, error=f"Cannot remove {path}: {e}"
                )
            return Receipt.converged(adapter=self.name, resource_id=resource.id)

        try:
            if self._in_sync(path, params):
                return Receipt.converged(adapter=self.name, resource_id=resource.id)
            size = self._download(path, params)
        except ChecksumMismatch as e:
            return Receipt.failure(
                adapter=self.name,
                resource_id=resource.id,
                error=str(e),
                metadata={"url": params["url"]},
            )
        except (urllib.error.URLError, OSError, ValueError) as e:
            return Receipt.failure(
                adapter=self.name,
                resource_id=resource.id,
                error=f"Download failed: {params['url']}: {e}",
                metadata={"url": params["url"]},
            )

        return Receipt.converged(
            adapter=self.name,
            resource_id=resource.id,
            changes=[f"downloaded {params['url']} ({_fmt_size(size)})"],
            metadata={"url": params["url"], "size_bytes": size},
        )

    def _download(self, path: Path, params: dict) -> int:
        """Fetch into a sibling temp file, verify, then rename into place.

        Returns:
            Number of bytes downloaded.

        Raises:
            ChecksumMismatch: Digest does not match; nothing is installed.
        """
        url = params["url"]
        algorithm = params.get("checksum_type", "sha256")
        expected = params["checksum"].lower()
        timeout = params.get("timeout", 60)

        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
        tmp = Path(tmp_name)
        h = hashlib.new(algorithm)
        downloaded = 0

        logger.info("Downloading %s", url)
        try:
            req = urllib.request.Request(url, headers={"User-Agent": f"minio-provisioner/{__version__}"})
            with os.fdopen(fd, "wb") as f, urllib.request.urlopen(req, timeout=timeout) as resp:
                total = int(resp.headers.get("Content-Length") or 0)
                last_progress = -1
                for chunk in iter(lambda: resp.read(_CHUNK), b""):
                    f.write(chunk)
                    h.update(chunk)
                    downloaded += len(chunk)
                    if total > 0:
                        pct = int(downloaded * 100 / total)
                        if pct >= last_progress + 25:
                            last_progress = pct
                            logger.debug(
                                "Download progress: %d%% (%s / %s)",
                                pct, _fmt_size(downloaded), _fmt_size(total),
                            )

            actual = h.hexdigest()
            if actual != expected:
                raise ChecksumMismatch(
                    f"Checksum mismatch for {url}: expected {algorithm} {expected}, got {actual}"
                )
            if path.exists():
                carry_attributes(tmp, path.stat())
            os.replace(tmp, path)
        finally:
            tmp.unlink(missing_ok=True)

        return downloaded
