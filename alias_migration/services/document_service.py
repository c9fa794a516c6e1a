"""Reading and writing the export document."""

import json
import logging
from pathlib import Path
from typing import Union

from pydantic import ValidationError

from ..core.mailbox import ExportDocument
from ..exceptions import DocumentError


logger = logging.getLogger(__name__)


def save_document(document: ExportDocument, path: Union[str, Path]) -> Path:
    """Write ``document`` as indented UTF-8 JSON and return the resolved path."""
    target = Path(path)
    if target.parent and not target.parent.exists():
        target.parent.mkdir(parents=True, exist_ok=True)

    with open(target, "w", encoding="utf-8") as handle:
        json.dump(document.to_dict(), handle, indent=2, ensure_ascii=False)
        handle.write("\n")

    logger.info(f"Exported {len(document.mailboxes)} mailbox(es) to {target.resolve()}")
    return target.resolve()


def load_document(path: Union[str, Path]) -> ExportDocument:
    """
    Load and validate an export document.

    Raises:
        DocumentError: missing file, malformed JSON, no ``Mailboxes`` key,
            invalid records, or duplicate primary SMTP addresses
    """
    source = Path(path)
    if not source.is_file():
        raise DocumentError(f"Export document not found: {source}")

    try:
        # utf-8-sig: Windows PowerShell writes a BOM
        with open(source, "r", encoding="utf-8-sig") as handle:
            raw = json.load(handle)
    except json.JSONDecodeError as e:
        raise DocumentError(f"Export document {source} is not valid JSON: {e}")
    except OSError as e:
        raise DocumentError(f"Cannot read export document {source}: {e}")

    if not isinstance(raw, dict) or "Mailboxes" not in raw:
        raise DocumentError(f"Invalid export document structure: 'Mailboxes' key missing in {source}")

    try:
        document = ExportDocument.model_validate(raw)
    except ValidationError as e:
        raise DocumentError(f"Invalid export document {source}: {e}")

    duplicates = document.duplicate_addresses()
    if duplicates:
        raise DocumentError(
            f"Export document {source} lists {len(duplicates)} primary SMTP address(es) more than once: "
            + ", ".join(duplicates[:10])
        )

    logger.info(f"Loaded {len(document.mailboxes)} mailbox record(s) from {source}")
    info = document.export_info
    if info.export_date or info.exported_by:
        logger.info(f"Export created {info.export_date or '?'} by {info.exported_by or '?'} on {info.server or '?'}")

    return document
