"""File-system blob store.

Each blob lives in its own directory named by a random UUID4:

    <root>/<blob_id>/data   raw bytes
    <root>/<blob_id>/meta   {"name": "..."}

Blobs are immutable. They are removed only by explicit administrative action,
never as a side effect of ledger operations.
"""

from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path
from uuid import UUID, uuid4

from pydantic import BaseModel

from letovo_archive.errors import BlobNotFoundError, StorageUnavailableError

logger = logging.getLogger(__name__)

DATA_FILENAME = "data"
META_FILENAME = "meta"


class BlobMeta(BaseModel):
    """Metadata stored next to a blob."""

    name: str


class BlobStore:
    """Durable storage for byte payloads under opaque ids.

    Usage:
        store = BlobStore(Path("files"))
        blob_id = store.write("report.pdf", pdf_bytes)
        assert store.read_data(blob_id) == pdf_bytes
    """

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def ensure_root(self) -> None:
        """Create the storage root if it does not exist yet."""
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailableError(f"Cannot create blob root {self._root}: {e}") from e

    def write(self, name: str, data: bytes | str) -> str:
        """Persist ``data`` with ``{name}`` metadata under a fresh id.

        Returns:
            The new blob id.

        Raises:
            StorageUnavailableError: If the medium is unavailable or full.
        """
        payload = data.encode("utf-8") if isinstance(data, str) else bytes(data)

        while True:
            blob_id = str(uuid4())
            blob_dir = self._root / blob_id
            try:
                blob_dir.mkdir(parents=True, exist_ok=False)
            except FileExistsError:
                # Never reuse an id, even one left behind by a crashed write
                continue
            except OSError as e:
                raise StorageUnavailableError(f"Cannot allocate blob {blob_id}: {e}") from e
            break

        try:
            meta = BlobMeta(name=name)
            (blob_dir / META_FILENAME).write_text(
                json.dumps(meta.model_dump(), ensure_ascii=False), encoding="utf-8"
            )
            (blob_dir / DATA_FILENAME).write_bytes(payload)
        except OSError as e:
            shutil.rmtree(blob_dir, ignore_errors=True)
            raise StorageUnavailableError(f"Cannot write blob {blob_id}: {e}") from e

        logger.debug("Wrote blob %s (%d bytes, name=%r)", blob_id, len(payload), name)
        return blob_id

    def read_data(self, blob_id: str) -> bytes:
        """Return the payload of a blob.

        Raises:
            BlobNotFoundError: If no blob has this id.
        """
        path = self.data_path(blob_id)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise BlobNotFoundError(blob_id) from None
        except OSError as e:
            raise StorageUnavailableError(f"Cannot read blob {blob_id}: {e}") from e

    def read_meta(self, blob_id: str) -> BlobMeta:
        """Return the metadata of a blob.

        Raises:
            BlobNotFoundError: If no blob has this id.
        """
        path = self.meta_path(blob_id)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise BlobNotFoundError(blob_id) from None
        except OSError as e:
            raise StorageUnavailableError(f"Cannot read blob metadata {blob_id}: {e}") from e
        return BlobMeta.model_validate_json(raw)

    def remove(self, blob_id: str) -> None:
        """Delete a blob's payload and metadata.

        Not idempotent: removing an id twice raises on the second call.

        Raises:
            BlobNotFoundError: If no blob has this id.
        """
        blob_dir = self._blob_dir(blob_id)
        if not blob_dir.is_dir():
            raise BlobNotFoundError(blob_id)
        try:
            (blob_dir / META_FILENAME).unlink(missing_ok=True)
            (blob_dir / DATA_FILENAME).unlink(missing_ok=True)
            blob_dir.rmdir()
        except OSError as e:
            raise StorageUnavailableError(f"Cannot remove blob {blob_id}: {e}") from e
        logger.info("Removed blob %s", blob_id)

    def exists(self, blob_id: str) -> bool:
        try:
            return self.data_path(blob_id).is_file()
        except BlobNotFoundError:
            return False

    def data_path(self, blob_id: str) -> Path:
        """Path of a blob's payload file (for streaming responses)."""
        return self._blob_dir(blob_id) / DATA_FILENAME

    def meta_path(self, blob_id: str) -> Path:
        """Path of a blob's metadata file."""
        return self._blob_dir(blob_id) / META_FILENAME

    def _blob_dir(self, blob_id: str) -> Path:
        # Only canonical UUID strings map to a directory; anything else is absent
        try:
            canonical = str(UUID(blob_id))
        except (ValueError, TypeError, AttributeError):
            raise BlobNotFoundError(str(blob_id)) from None
        if canonical != blob_id:
            raise BlobNotFoundError(blob_id)
        return self._root / canonical
