"""
snifferdeck/data/codec.py
Import/export of sniffer configuration sets.

The interchange document is a JSON array of ``{id, name, port, downstreamUrl}``
objects, indented by two spaces and delivered as ``config.json``. Parsing is
all-or-nothing: the whole document is validated before anything is returned,
so a failed import can never leave a half-replaced collection behind.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, List, Protocol

from pydantic import ValidationError

from snifferdeck.base.config import EXPORT_FILENAME
from snifferdeck.base.errors import ErrorCode, ParseFailure
from snifferdeck.data.models import ConfigRow, PartialSnifferConfig

logger = logging.getLogger(__name__)


class FileSink(Protocol):
    """Collaborator that hands an exported document to the user."""

    def deliver(self, filename: str, document: str) -> Path: ...


class DirectoryFileSink:
    """Writes exported documents into a directory on disk."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def deliver(self, filename: str, document: str) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / filename
        path.write_text(document, encoding="utf-8")
        logger.info(f"[Codec] Wrote {path}")
        return path


class ImportExportCodec:
    """Serialises rows to the interchange document and back."""

    filename = EXPORT_FILENAME

    def export(self, rows: Iterable[ConfigRow]) -> str:
        """Project rows to their configs (UI flags dropped) as indented JSON."""
        return json.dumps([row.config.to_document() for row in rows], indent=2)

    def parse(self, raw_text: str) -> List[PartialSnifferConfig]:
        """
        Parse an interchange document.

        Unknown keys, including any literal ``isNew``/``isStarted``, are ignored.

        Raises:
            ParseFailure: not JSON, not an array, or an entry of the wrong shape
        """
        try:
            data = json.loads(raw_text)
        except (json.JSONDecodeError, TypeError) as e:
            raise ParseFailure(ErrorCode.PARSE_INVALID_JSON, f"Import is not valid JSON: {e}") from e

        if not isinstance(data, list):
            raise ParseFailure(
                ErrorCode.PARSE_NOT_AN_ARRAY,
                f"Import must be a JSON array, got {type(data).__name__}",
            )

        configs: List[PartialSnifferConfig] = []
        for position, item in enumerate(data):
            if not isinstance(item, dict):
                raise ParseFailure(
                    ErrorCode.PARSE_INVALID_ENTRY,
                    f"Entry {position} is not an object",
                    details={"position": position},
                )
            try:
                configs.append(PartialSnifferConfig.model_validate(item))
            except ValidationError as e:
                raise ParseFailure(
                    ErrorCode.PARSE_INVALID_ENTRY,
                    f"Entry {position} has an invalid shape",
                    details={"position": position, "errors": e.errors(include_url=False)},
                ) from e
        return configs

    @staticmethod
    def rows_from(configs: Iterable[PartialSnifferConfig]) -> List[ConfigRow]:
        """Imported entries become drafts: new, stopped, not editing, expanded."""
        return [
            ConfigRow.draft(config, editing=False, collapsed=False)
            for config in configs
        ]

    @staticmethod
    def read_document(path: Path) -> str:
        """
        Read an import file as text.

        Raises:
            ParseFailure: the file is missing or not UTF-8
        """
        try:
            return Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ParseFailure(
                ErrorCode.PARSE_UNREADABLE,
                f"Cannot read {path}: {e}",
                details={"path": str(path)},
            ) from e
