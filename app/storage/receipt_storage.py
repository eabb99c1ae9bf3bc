from pathlib import Path

from app.processor.exceptions import (
    InvalidStoragePathError,
    ReceiptFileExistsError,
    ReceiptFileNotFoundError,
)


class ReceiptStorage:
    """Reads and writes receipt files below a local storage root."""

    DEFAULT_ROOT = Path(".receipt-storage")

    def __init__(self, root: Path | None = None) -> None:
        self._root = (root if root is not None else self.DEFAULT_ROOT).resolve()

    def store(self, storage_path: str, data: bytes) -> Path:
        """Write receipt bytes, creating parent directories as needed.

        Stored receipts are never replaced: a PENDING job may still point at
        the existing file.

        Raises:
            ReceiptFileExistsError: if a file already exists at the path.
            InvalidStoragePathError: if the path escapes the storage root.
        """
        path = self._resolve(storage_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with path.open("xb") as handle:
                handle.write(data)
        except FileExistsError as exc:
            raise ReceiptFileExistsError(f"Receipt already stored: {storage_path}") from exc
        return path

    def load(self, storage_path: str) -> bytes:
        """Read receipt bytes.

        Raises:
            ReceiptFileNotFoundError: if no file exists at the resolved path.
            InvalidStoragePathError: if the path escapes the storage root.
        """
        path = self._resolve(storage_path)
        if not path.is_file():
            raise ReceiptFileNotFoundError(f"File not found: {path}")
        return path.read_bytes()

    def _resolve(self, storage_path: str) -> Path:
        resolved = (self._root / storage_path).resolve()
        if not resolved.is_relative_to(self._root) or resolved == self._root:
            raise InvalidStoragePathError(f"Invalid storage path: {storage_path}")
        return resolved
