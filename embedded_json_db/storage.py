from __future__ import annotations
import json
import logging
import os
import tempfile
from typing import Any, Dict, List, Optional
from .errors import InvalidIdentityError, ParseError, SerializationError, StorageError

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = ".json"


class FileStorage:
    """
    One JSON array file per collection under a root directory.
    Every write replaces the whole file.
    """
    def __init__(self, root: str, *, indent: Optional[int] = None, extension: str = DEFAULT_EXTENSION) -> None:
        self.root = os.fspath(root)
        self.indent = indent
        self.extension = extension
        try:
            os.makedirs(self.root, exist_ok=True)
        except OSError as e:
            raise StorageError(f"cannot create directory {self.root}: {e}") from e

    def path_for(self, identity: str) -> str:
        if (
            not identity
            or identity.startswith(".")
            or "\0" in identity
            or os.sep in identity
            or (os.altsep and os.altsep in identity)
        ):
            raise InvalidIdentityError(f"identity {identity!r} cannot be used as a file name")
        return os.path.join(self.root, identity + self.extension)

    def read_document(self, identity: str) -> Optional[List[Any]]:
        """
        Load the collection array. A missing file is not an error: None is
        returned so that the first append can create it.
        """
        path = self.path_for(identity)
        try:
            with open(path, "rb") as f:
                raw = f.read()
        except FileNotFoundError:
            logger.debug("no collection file at %s", path)
            return None
        except OSError as e:
            raise StorageError(f"failed to read {path}: {e}") from e

        try:
            content = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(f"{path} is not valid UTF-8: {e}") from e
        if not content.strip():
            return []
        try:
            doc = json.loads(content)
        except json.JSONDecodeError as e:
            raise ParseError(f"invalid JSON in {path}: {e.msg} (line {e.lineno}, column {e.colno})") from e
        if not isinstance(doc, list):
            raise ParseError(f"{path} must contain a JSON array, found {type(doc).__name__}")
        logger.debug("loaded %d record(s) from %s", len(doc), path)
        return doc

    def append(self, identity: str, document: Dict[str, Any]) -> None:
        records = self.read_document(identity)
        if records is None:
            records = []
        records.append(document)
        self.write_all(identity, records)

    def write_all(self, identity: str, documents: List[Any]) -> None:
        path = self.path_for(identity)
        try:
            data = json.dumps(list(documents), ensure_ascii=False, indent=self.indent).encode("utf-8")
        except (TypeError, ValueError) as e:
            # UnicodeEncodeError (lone surrogates) is a ValueError
            raise SerializationError(f"cannot serialize records for {identity}: {e}") from e
        self._replace(path, data)
        logger.debug("wrote %d record(s) to %s", len(documents), path)

    def _replace(self, path: str, data: bytes) -> None:
        # Temp file in the same directory keeps os.replace atomic
        try:
            fd, tmp_path = tempfile.mkstemp(dir=self.root, prefix=".", suffix=".tmp")
        except OSError as e:
            raise StorageError(f"failed to create temp file in {self.root}: {e}") from e
        replaced = False
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
            replaced = True
        except OSError as e:
            raise StorageError(f"failed to write {path}: {e}") from e
        finally:
            if not replaced and os.path.exists(tmp_path):
                os.remove(tmp_path)
