"""Zenodo deposition draft lifecycle.

A draft moves NoDraft -> open -> published, or open -> deleted when the run
has to be rolled back. This client performs the individual transitions; the
orchestrator decides when compensation (``delete``) is needed.
"""

from __future__ import annotations

import mimetypes
from pathlib import Path
from urllib.parse import quote

from zsync.core.result import Err, Ok, Result
from zsync.core.structured import (
    StrDict,
    as_str_dict,
    get_bool,
    get_id,
    get_list,
    get_str,
    get_table,
)
from zsync.output.console import ConsoleProtocol
from zsync.platform.http import HttpClient, HttpError
from zsync.services.sync.errors import SyncError
from zsync.services.sync.model import DepositDraft, DepositFile

_DOI_RESOLVERS = ("https://doi.org/", "http://doi.org/", "https://dx.doi.org/")
_ENCODING_TYPES = {
    "gzip": "application/gzip",
    "bzip2": "application/x-bzip2",
    "xz": "application/x-xz",
}


def _remote_error(error: HttpError, message: str) -> SyncError:
    return SyncError(
        kind="remote_operation",
        message=message,
        hint=error.api_message() or str(error),
    )


def content_type_for(file_name: str) -> str:
    """Infer the upload content type from a file name.

    Names with no known type are sent as text/plain, as are JSON types: the
    bucket API answers 400 to application/json bodies.
    """
    guessed, encoding = mimetypes.guess_type(file_name, strict=False)
    if encoding is not None:
        guessed = _ENCODING_TYPES.get(encoding, "application/octet-stream")
    content_type = guessed or "text/plain"
    if content_type == "application/json" or content_type.endswith("+json"):
        return "text/plain"
    return content_type


def resolve_doi(data: StrDict) -> str | None:
    doi = get_str(data, "doi")
    if doi:
        return doi

    metadata = get_table(data, "metadata") or {}
    reserved = get_table(metadata, "prereserve_doi") or {}
    doi = get_str(reserved, "doi")
    if doi:
        return doi

    doi_url = get_str(data, "doi_url")
    if doi_url:
        for prefix in _DOI_RESOLVERS:
            if doi_url.startswith(prefix):
                return doi_url[len(prefix) :]
        return doi_url
    return None


def _parse_files(raw: list[object]) -> tuple[DepositFile, ...]:
    out: list[DepositFile] = []
    for item in raw:
        d = as_str_dict(item)
        if d is None:
            continue
        file_id = get_id(d, "id")
        filename = get_str(d, "filename") or get_str(d, "key")
        if file_id is None or filename is None:
            continue
        out.append(DepositFile(id=file_id, filename=filename))
    return tuple(out)


class ZenodoClient:
    def __init__(
        self,
        http: HttpClient,
        token: str,
        *,
        base_url: str,
        console: ConsoleProtocol,
    ) -> None:
        self._http = http
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._console = console

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"}

    def deposition_url(self, deposition_id: str) -> str:
        return f"{self._base_url}/api/deposit/depositions/{deposition_id}"

    def create_new_version(self, previous_id: str) -> Result[str, SyncError]:
        """Open a new draft from the lineage of ``previous_id``.

        Returns:
            Ok with the new draft identifier (last segment of ``latest_draft``).
        """
        url = f"{self.deposition_url(previous_id)}/actions/newversion"
        self._console.info(f"Creating a new version of Zenodo deposition {previous_id}")
        response = self._http.request("POST", url, headers=self._headers())
        if isinstance(response, Err):
            return Err(
                _remote_error(response.error, "Could not create new Zenodo deposition version")
            )

        obj = response.value.json()
        data = as_str_dict(obj.value) if isinstance(obj, Ok) else None
        links = get_table(data, "links") if data is not None else None
        latest = get_str(links, "latest_draft") if links is not None else None
        draft_id = latest.rstrip("/").rsplit("/", 1)[-1] if latest else ""
        if not draft_id:
            return Err(
                SyncError(
                    kind="remote_operation",
                    message="Zenodo did not return a latest_draft link for the new version",
                    hint=url,
                )
            )

        self._console.info(f"Created new Zenodo deposition {draft_id}")
        return Ok(draft_id)

    def get_draft(self, draft_id: str) -> Result[DepositDraft, SyncError]:
        response = self._http.request("GET", self.deposition_url(draft_id), headers=self._headers())
        if isinstance(response, Err):
            if response.error.status == 404:
                return Err(
                    SyncError(kind="not_found", message=f"Zenodo deposition {draft_id} not found")
                )
            return Err(_remote_error(response.error, "Could not get Zenodo deposition"))

        obj = response.value.json()
        data = as_str_dict(obj.value) if isinstance(obj, Ok) else None
        if data is None:
            return Err(SyncError(kind="remote_operation", message="unexpected deposition payload"))

        if get_bool(data, "submitted"):
            return Err(
                SyncError(
                    kind="remote_operation",
                    message=f"Zenodo deposition {draft_id} is already published",
                    hint="newversion must return an unsubmitted draft",
                )
            )

        links = get_table(data, "links") or {}
        bucket_url = get_str(links, "bucket")
        if bucket_url is None:
            return Err(
                SyncError(
                    kind="remote_operation",
                    message=f"Zenodo deposition {draft_id} has no upload bucket",
                    hint="Only unpublished drafts expose links.bucket",
                )
            )
        doi = resolve_doi(data)
        if doi is None:
            return Err(
                SyncError(
                    kind="remote_operation",
                    message=f"Zenodo deposition {draft_id} has no DOI",
                )
            )

        self._console.info(f"Got Zenodo deposition {draft_id}")
        return Ok(
            DepositDraft(
                id=get_id(data, "id") or draft_id,
                bucket_url=bucket_url,
                doi=doi,
                files=_parse_files(get_list(data, "files") or []),
            )
        )

    def remove_file(self, draft_id: str, file_id: str) -> Result[bool, SyncError]:
        """Remove one inherited file from the draft.

        Returns:
            Ok(True) on 204, Ok(False) for any other HTTP answer (the file is
            treated as already gone), Err only for network-level failures.
        """
        url = f"{self.deposition_url(draft_id)}/files/{file_id}"
        response = self._http.request("DELETE", url, headers=self._headers())
        if isinstance(response, Err):
            e = response.error
            if e.is_network:
                return Err(_remote_error(e, "Could not delete file from Zenodo deposition"))
            self._console.warning(f"Could not delete file {file_id} from Zenodo deposition. {e}")
            return Ok(False)
        if response.value.status != 204:
            self._console.warning(
                f"Could not delete file {file_id} from Zenodo deposition "
                f"(HTTP {response.value.status})"
            )
            return Ok(False)
        return Ok(True)

    def upload_file(
        self,
        draft_id: str,
        bucket_url: str,
        name: str,
        local_path: Path,
    ) -> Result[None, SyncError]:
        url = f"{bucket_url.rstrip('/')}/{quote(name)}"
        content_type = content_type_for(name)
        self._console.info(f"Uploading file {name} ({content_type}) to draft {draft_id}")

        headers = self._headers()
        headers["Content-Type"] = content_type
        response = self._http.upload("PUT", url, local_path, headers=headers)
        if isinstance(response, Err):
            return Err(_remote_error(response.error, f"Could not upload {name} to Zenodo"))

        self._console.info(f"Uploaded file {name} to Zenodo")
        return Ok(None)

    def replace_metadata(self, draft_id: str, metadata: StrDict) -> Result[None, SyncError]:
        self._console.info("Updating Zenodo metadata")
        response = self._http.request(
            "PUT",
            self.deposition_url(draft_id),
            headers=self._headers(),
            json_body={"metadata": metadata},
        )
        if isinstance(response, Err):
            return Err(_remote_error(response.error, "Could not update Zenodo metadata"))
        return Ok(None)

    def publish(self, draft_id: str) -> Result[None, SyncError]:
        url = f"{self.deposition_url(draft_id)}/actions/publish"
        response = self._http.request("POST", url, headers=self._headers())
        if isinstance(response, Err):
            return Err(_remote_error(response.error, "Could not publish Zenodo deposition"))
        if response.value.status not in (200, 202):
            return Err(
                SyncError(
                    kind="remote_operation",
                    message="Could not publish Zenodo deposition",
                    hint=f"unexpected HTTP {response.value.status}",
                )
            )
        self._console.info("Published Zenodo deposition")
        return Ok(None)

    def delete(self, draft_id: str) -> Result[None, SyncError]:
        self._console.info(f"Deleting Zenodo deposition {draft_id}")
        response = self._http.request(
            "DELETE", self.deposition_url(draft_id), headers=self._headers()
        )
        if isinstance(response, Err):
            return Err(_remote_error(response.error, "Could not delete draft Zenodo deposition"))
        return Ok(None)
