"""
Form record persistence.

One human-readable JSON file per (form name, primary key), full replace
on every save.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import quote, unquote

from formchat.errors import MissingPrimaryKeyError, PersistenceError

logger = logging.getLogger(__name__)

RECORD_SUFFIX = ".json"


class FormPersistence:
    """
    Manages per-form JSON records.

    Layout:
        outputs/forms/registration/
            555-55-5555.json
            123-45-6789.json
        outputs/forms/visit/
            555-55-5555.json

    Design:
    - Full replace (record is the complete field mapping, never a patch)
    - Atomic write: temp file in the target directory, then os.replace()
    - Form names and keys are percent-encoded, so addressing is
      collision-free and can't escape base_dir
    - Missing record on load is a normal outcome (None), not an error
    - No cross-process locking: last writer wins
    """

    def __init__(self, base_dir: str = "outputs/forms"):
        """
        Initialize persistence layer.

        Args:
            base_dir: Base directory for all form records
        """
        self.base_dir = Path(base_dir)
        logger.info(f"FormPersistence initialized: {self.base_dir}")

    def form_dir(self, form_name: str) -> Path:
        return self.base_dir / quote(form_name, safe="")

    def record_path(self, form_name: str, key: str) -> Path:
        """
        Deterministic file path for a record.

        Args:
            form_name: Form identifier
            key: Primary key value (composite keys already composed)

        Returns:
            Path: Record file path (may not exist)

        Raises:
            MissingPrimaryKeyError: If key is empty
        """
        if not key:
            raise MissingPrimaryKeyError(form_name, ["<empty key>"])
        return self.form_dir(form_name) / f"{quote(key, safe='')}{RECORD_SUFFIX}"

    def save(self, form_name: str, key: str, record: Dict[str, str]) -> str:
        """
        Write a record, replacing any previous version.

        Args:
            form_name: Form identifier
            key: Primary key value
            record: Complete field mapping

        Returns:
            str: Absolute path to saved file

        Raises:
            MissingPrimaryKeyError: If key is empty
            PersistenceError: If the directory or file can't be written
        """
        filepath = self.record_path(form_name, key)
        directory = filepath.parent

        try:
            directory.mkdir(parents=True, exist_ok=True)

            fd, tmp_name = tempfile.mkstemp(
                prefix=".tmp-", suffix=RECORD_SUFFIX, dir=str(directory)
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(record, f, indent=2, ensure_ascii=False)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, filepath)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise

        except OSError as e:
            logger.error(f"Failed to save {form_name} record {key!r}: {e}")
            raise PersistenceError(
                f"Could not save {form_name} record: {e}", path=str(filepath)
            ) from e

        abs_path = str(filepath.absolute())
        logger.info(f"Saved {form_name} record {key!r}: {filepath.name}")

        return abs_path

    def load(self, form_name: str, key: str) -> Optional[Dict[str, str]]:
        """
        Load a record.

        Args:
            form_name: Form identifier
            key: Primary key value

        Returns:
            dict if the record exists, None otherwise

        Raises:
            PersistenceError: If the file exists but can't be read or parsed
        """
        if not key:
            return None

        filepath = self.record_path(form_name, key)
        if not filepath.exists():
            logger.debug(f"No {form_name} record for {key!r}")
            return None

        try:
            with open(filepath, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load {form_name} record {key!r}: {e}")
            raise PersistenceError(
                f"Could not load {form_name} record: {e}", path=str(filepath)
            ) from e

        if not isinstance(data, dict):
            raise PersistenceError(
                f"Record for {form_name} is not a JSON object", path=str(filepath)
            )

        logger.info(f"Loaded {form_name} record {key!r}")
        return data

    def exists(self, form_name: str, key: str) -> bool:
        return bool(key) and self.record_path(form_name, key).exists()

    def list_keys(self, form_name: str) -> List[str]:
        """
        Keys of every saved record for a form, sorted.

        Returns:
            list: Primary key values (empty if the form has no records)
        """
        directory = self.form_dir(form_name)
        if not directory.exists():
            return []

        return sorted(
            unquote(p.name[:-len(RECORD_SUFFIX)])
            for p in directory.glob(f"*{RECORD_SUFFIX}")
            if not p.name.startswith(".tmp-")
        )
