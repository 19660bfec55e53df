from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import pytest
import yaml

from zsync.core.result import Err, Ok
from zsync.services.sync.context import build_committer
from zsync.services.sync.metadata import load_document, rewrite, rewrite_documents
from zsync.services.sync.model import MetadataDocument, MetadataKind, ReleaseContext

from . import _fakes as f

TODAY = date(2026, 3, 14)


def _context(doi: str | None = f.DOI) -> ReleaseContext:
    ctx = ReleaseContext(
        repository=f.REPO,
        default_branch="main",
        tag="1.0.2",
        attachments=(),
        documents=(MetadataKind.CODEMETA, MetadataKind.CITATION),
        update_metadata_files=True,
        committer=build_committer(f.options()),
        deposition_id=f.PREVIOUS_ID,
        zenodo_url=f.ZENODO,
    )
    if doi is None:
        return ctx
    return ctx.with_draft(draft_id=f.DRAFT_ID, doi=doi)


def _stage(tmp_path: Path, kind: MetadataKind, text: str) -> MetadataDocument:
    path = tmp_path / kind.repo_path
    path.write_text(text, encoding="utf-8")
    return MetadataDocument(kind=kind, local_path=path)


class TestCodemeta:
    def test_rewrites_version_identifier_and_date(self, tmp_path: Path) -> None:
        doc = _stage(tmp_path, MetadataKind.CODEMETA, json.dumps(f.CODEMETA))

        result = rewrite(doc, _context(), today=TODAY)

        assert isinstance(result, Ok)
        on_disk = json.loads(doc.local_path.read_text(encoding="utf-8"))
        assert on_disk["version"] == "1.0.2"
        assert on_disk["identifier"] == f.DOI
        assert on_disk["dateModified"] == "2026-03-14"
        assert on_disk["name"] == "name"

    def test_output_is_indented_json_with_newline(self, tmp_path: Path) -> None:
        doc = _stage(tmp_path, MetadataKind.CODEMETA, json.dumps(f.CODEMETA))

        rewrite(doc, _context(), today=TODAY)

        text = doc.local_path.read_text(encoding="utf-8")
        assert text.endswith("}\n")
        assert '\n  "version": "1.0.2"' in text

    def test_keeps_key_order(self, tmp_path: Path) -> None:
        doc = _stage(tmp_path, MetadataKind.CODEMETA, json.dumps(f.CODEMETA))

        rewrite(doc, _context(), today=TODAY)

        on_disk = json.loads(doc.local_path.read_text(encoding="utf-8"))
        assert list(on_disk) == list(f.CODEMETA)


class TestCitation:
    def test_rewrites_existing_doi_identifier(self, tmp_path: Path) -> None:
        doc = _stage(tmp_path, MetadataKind.CITATION, f.CITATION)

        result = rewrite(doc, _context(), today=TODAY)

        assert isinstance(result, Ok)
        on_disk = yaml.safe_load(doc.local_path.read_text(encoding="utf-8"))
        assert on_disk["version"] == "1.0.2"
        assert on_disk["date-released"] == TODAY
        assert on_disk["identifiers"][0]["value"] == f.DOI
        assert on_disk["identifiers"][1] == {"type": "url", "value": "https://example.org/name"}
        assert len(on_disk["identifiers"]) == 2

    def test_prepends_doi_when_only_other_identifiers(self, tmp_path: Path) -> None:
        text = "cff-version: 1.2.0\ntitle: name\nidentifiers:\n  - type: url\n    value: https://x\n"
        doc = _stage(tmp_path, MetadataKind.CITATION, text)

        rewrite(doc, _context(), today=TODAY)

        on_disk = yaml.safe_load(doc.local_path.read_text(encoding="utf-8"))
        assert on_disk["identifiers"][0]["type"] == "doi"
        assert on_disk["identifiers"][0]["value"] == f.DOI
        assert on_disk["identifiers"][1]["type"] == "url"

    def test_adds_identifiers_when_missing(self, tmp_path: Path) -> None:
        doc = _stage(tmp_path, MetadataKind.CITATION, "cff-version: 1.2.0\ntitle: name\n")

        rewrite(doc, _context(), today=TODAY)

        on_disk = yaml.safe_load(doc.local_path.read_text(encoding="utf-8"))
        assert on_disk["identifiers"] == [
            {
                "description": "DOI for this application's record on Zenodo",
                "type": "doi",
                "value": f.DOI,
            }
        ]

    def test_identifiers_must_be_a_list(self, tmp_path: Path) -> None:
        doc = _stage(tmp_path, MetadataKind.CITATION, "title: name\nidentifiers: nope\n")

        result = rewrite(doc, _context(), today=TODAY)

        assert isinstance(result, Err)
        assert result.error.kind == "metadata_update"
        assert "CITATION.cff" in result.error.message

    def test_date_is_written_unquoted(self, tmp_path: Path) -> None:
        doc = _stage(tmp_path, MetadataKind.CITATION, f.CITATION)

        rewrite(doc, _context(), today=TODAY)

        assert "date-released: 2026-03-14\n" in doc.local_path.read_text(encoding="utf-8")


class TestFailures:
    @pytest.mark.parametrize(
        ("kind", "text"),
        [
            (MetadataKind.CODEMETA, "{not json"),
            (MetadataKind.CODEMETA, "[1, 2]"),
            (MetadataKind.CITATION, "title: [unclosed"),
            (MetadataKind.CITATION, "- just\n- a list\n"),
        ],
    )
    def test_unparseable_document(self, tmp_path: Path, kind: MetadataKind, text: str) -> None:
        doc = _stage(tmp_path, kind, text)

        result = load_document(doc)

        assert isinstance(result, Err)
        assert result.error.kind == "metadata_update"
        assert kind.repo_path in result.error.message

    def test_missing_local_file(self, tmp_path: Path) -> None:
        doc = MetadataDocument(kind=MetadataKind.CODEMETA, local_path=tmp_path / "absent.json")
        assert isinstance(load_document(doc), Err)

    def test_requires_bound_doi(self, tmp_path: Path) -> None:
        doc = _stage(tmp_path, MetadataKind.CODEMETA, json.dumps(f.CODEMETA))

        result = rewrite(doc, _context(doi=None), today=TODAY)

        assert isinstance(result, Err)
        assert json.loads(doc.local_path.read_text(encoding="utf-8")) == f.CODEMETA

    def test_zenodo_json_is_not_rewritable(self, tmp_path: Path) -> None:
        doc = _stage(tmp_path, MetadataKind.ZENODO, json.dumps(f.ZENODO_METADATA))
        assert isinstance(rewrite(doc, _context(), today=TODAY), Err)


class TestRewriteDocuments:
    def test_skips_zenodo_json(self, tmp_path: Path) -> None:
        docs = (
            _stage(tmp_path, MetadataKind.CODEMETA, json.dumps(f.CODEMETA)),
            _stage(tmp_path, MetadataKind.CITATION, f.CITATION),
            _stage(tmp_path, MetadataKind.ZENODO, json.dumps(f.ZENODO_METADATA)),
        )

        result = rewrite_documents(docs, _context(), today=TODAY)

        assert isinstance(result, Ok)
        assert [d.kind for d in result.value] == [MetadataKind.CODEMETA, MetadataKind.CITATION]
        assert json.loads(docs[2].local_path.read_text(encoding="utf-8")) == f.ZENODO_METADATA

    def test_first_failure_aborts(self, tmp_path: Path) -> None:
        docs = (
            _stage(tmp_path, MetadataKind.CITATION, "identifiers: nope\n"),
            _stage(tmp_path, MetadataKind.CODEMETA, json.dumps(f.CODEMETA)),
        )

        result = rewrite_documents(docs, _context(), today=TODAY)

        assert isinstance(result, Err)
        assert "CITATION.cff" in result.error.message
        assert json.loads(docs[1].local_path.read_text(encoding="utf-8")) == f.CODEMETA
