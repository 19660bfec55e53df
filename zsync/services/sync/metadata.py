"""In-place rewrite of versioned metadata documents.

codemeta.json gets the release version, the draft DOI as ``identifier`` and
today's date as ``dateModified``. CITATION.cff gets the version, the
``date-released`` field and the DOI inside its ``identifiers`` list.
.zenodo.json is never rewritten; it is sent to Zenodo as deposit metadata.
"""

from __future__ import annotations

import json
from datetime import date

import yaml

from zsync.core.result import Err, Ok, Result
from zsync.core.structured import StrDict, as_obj_list, as_str_dict
from zsync.services.sync import config
from zsync.services.sync.errors import SyncError
from zsync.services.sync.model import MetadataDocument, MetadataKind, ReleaseContext


def _error(document: MetadataDocument, message: str) -> Err[SyncError]:
    return Err(
        SyncError(
            kind="metadata_update",
            message=f"The {document.repo_path} file could not be updated. {message}",
            hint=str(document.local_path),
        )
    )


def load_document(document: MetadataDocument) -> Result[StrDict, SyncError]:
    """Read and parse a staged document; the root must be a mapping."""
    try:
        text = document.local_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        return _error(document, str(e))

    obj: object
    try:
        if document.kind.format == "yaml":
            obj = yaml.safe_load(text)
        else:
            obj = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        return _error(document, f"Parse error: {e}")

    data = as_str_dict(obj)
    if data is None:
        return _error(document, "The document root must be a mapping.")
    return Ok(data)


def dump_document(document: MetadataDocument, data: StrDict) -> Result[None, SyncError]:
    if document.kind.format == "yaml":
        text = yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=False)
    else:
        text = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    try:
        document.local_path.write_text(text, encoding="utf-8")
    except OSError as e:
        return _error(document, str(e))
    return Ok(None)


def _set_citation_doi(data: StrDict, doi: str) -> bool:
    """Put ``doi`` into the first ``type: doi`` identifier.

    A DOI entry is prepended when the list has none. Returns False if
    ``identifiers`` exists but is not a list.
    """
    entry: StrDict = {
        "description": config.CITATION_DOI_DESCRIPTION,
        "type": "doi",
        "value": doi,
    }
    raw = data.get("identifiers")
    if raw is None:
        data["identifiers"] = [entry]
        return True

    identifiers = as_obj_list(raw)
    if identifiers is None:
        return False
    for item in identifiers:
        d = as_str_dict(item)
        if d is not None and d.get("type") == "doi":
            d["value"] = doi
            return True
    identifiers.insert(0, entry)
    return True


def rewrite(
    document: MetadataDocument,
    context: ReleaseContext,
    *,
    today: date,
) -> Result[StrDict, SyncError]:
    """Apply the release version and draft DOI to a staged document.

    The updated document is written back to ``document.local_path``.

    Returns:
        Ok with the updated mapping, or Err(SyncError) of kind
        ``metadata_update`` naming the document.
    """
    if not document.kind.rewritable:
        return _error(document, "This document is not rewritten, only sent to Zenodo.")
    if context.doi is None:
        return _error(document, "No draft DOI is bound to the release context.")

    loaded = load_document(document)
    if isinstance(loaded, Err):
        return loaded
    data = loaded.value

    data["version"] = context.tag
    match document.kind:
        case MetadataKind.CODEMETA:
            data["identifier"] = context.doi
            data["dateModified"] = today.isoformat()
        case MetadataKind.CITATION:
            if not _set_citation_doi(data, context.doi):
                return _error(document, "The identifiers field must be a list.")
            data["date-released"] = today
        case _:
            raise AssertionError(f"unexpected document kind: {document.kind}")

    written = dump_document(document, data)
    if isinstance(written, Err):
        return written
    return Ok(data)


def rewrite_documents(
    documents: tuple[MetadataDocument, ...],
    context: ReleaseContext,
    *,
    today: date,
) -> Result[tuple[MetadataDocument, ...], SyncError]:
    """Rewrite every rewritable document; the first failure aborts the batch.

    Returns:
        Ok with the documents that were rewritten (in input order).
    """
    rewritten: list[MetadataDocument] = []
    for document in documents:
        if not document.kind.rewritable:
            continue
        result = rewrite(document, context, today=today)
        if isinstance(result, Err):
            return result
        rewritten.append(document)
    return Ok(tuple(rewritten))
