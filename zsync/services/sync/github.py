from __future__ import annotations

import base64
import binascii
from pathlib import Path
from urllib.parse import quote

from zsync.core.result import Err, Ok, Result
from zsync.core.structured import as_str_dict, get_str
from zsync.output.console import ConsoleProtocol, Style
from zsync.platform.http import HttpClient, HttpError
from zsync.services.sync import config
from zsync.services.sync.errors import SyncError
from zsync.services.sync.timeouts import SNAPSHOT_TIMEOUT_SECONDS


def snapshot_file_name(repo: str, tag: str) -> str:
    """File name of the generated source archive, ``<name>-<tag>.zip``."""
    return f"{repo.split('/', 1)[-1]}-{tag}.zip"


def _remote_error(error: HttpError, message: str) -> SyncError:
    return SyncError(
        kind="remote_operation",
        message=message,
        hint=error.api_message() or str(error),
    )


class GitHubClient:
    """Contents API, release asset and zipball access for one token.

    Every method maps to exactly one API call, except
    ``put_versioned_file`` which reads the file's current blob SHA right
    before writing so the update is never based on a stale revision.
    """

    def __init__(
        self,
        http: HttpClient,
        token: str,
        *,
        console: ConsoleProtocol,
        api_url: str = config.GITHUB_API_URL,
    ) -> None:
        self._http = http
        self._token = token
        self._console = console
        self._api_url = api_url.rstrip("/")

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": config.GITHUB_ACCEPT,
            "Authorization": f"Bearer {self._token}",
        }

    def contents_url(self, repo: str, path: str) -> str:
        return f"{self._api_url}/repos/{repo}/contents/{quote(path)}"

    def _get_contents(self, repo: str, path: str, ref: str | None) -> Result[object, HttpError]:
        url = self.contents_url(repo, path)
        if ref:
            url += f"?ref={quote(ref)}"
        response = self._http.request("GET", url, headers=self._headers())
        if isinstance(response, Err):
            return response
        return response.value.json()

    def fetch_versioned_file(
        self, repo: str, path: str, *, ref: str | None = None
    ) -> Result[str, SyncError]:
        """Return the decoded text of ``path``.

        Returns:
            Err of kind ``not_found`` when the file does not exist.
        """
        self._console.info(f"Downloading {path} from {repo}")
        obj = self._get_contents(repo, path, ref)
        if isinstance(obj, Err):
            if obj.error.status == 404:
                return Err(
                    SyncError(
                        kind="not_found",
                        message=f"The {path} file could not be found in {repo}",
                        hint=ref,
                    )
                )
            return Err(_remote_error(obj.error, f"The {path} file could not be downloaded"))

        data = as_str_dict(obj.value)
        content = get_str(data, "content") if data is not None else None
        if data is None or content is None or get_str(data, "encoding") != "base64":
            return Err(
                SyncError(
                    kind="remote_operation",
                    message=f"unexpected contents payload for {repo}/{path}",
                )
            )

        try:
            raw = base64.b64decode(content, validate=False)
            return Ok(raw.decode("utf-8"))
        except (binascii.Error, ValueError) as e:
            return Err(
                SyncError(
                    kind="remote_operation",
                    message=f"failed to decode contents of {repo}/{path}: {e}",
                )
            )

    def get_file_revision(
        self, repo: str, path: str, *, ref: str | None = None
    ) -> Result[str, SyncError]:
        """Return the blob SHA of ``path``, or ``""`` if the file does not exist yet."""
        obj = self._get_contents(repo, path, ref)
        if isinstance(obj, Err):
            if obj.error.status == 404:
                return Ok("")
            return Err(_remote_error(obj.error, f"Could not get file SHA for {path}"))

        data = as_str_dict(obj.value)
        if data is None:
            return Ok("")
        return Ok(get_str(data, "sha") or "")

    def put_versioned_file(
        self,
        repo: str,
        path: str,
        content: str,
        *,
        message: str,
        branch: str | None = None,
        committer: dict[str, str] | None = None,
    ) -> Result[None, SyncError]:
        """Create or update ``path`` with a single commit."""
        revision = self.get_file_revision(repo, path, ref=branch)
        if isinstance(revision, Err):
            return revision
        self._console.print(f"{path}: revision {revision.value or '(new file)'}", Style.DIM)

        body: dict[str, object] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
        }
        if revision.value:
            body["sha"] = revision.value
        if branch:
            body["branch"] = branch
        if committer is not None:
            body["committer"] = committer

        response = self._http.request(
            "PUT",
            self.contents_url(repo, path),
            headers=self._headers(),
            json_body=body,
        )
        if isinstance(response, Err):
            e = response.error
            reason = "revision conflict" if e.status in (409, 422) else "request failed"
            return Err(_remote_error(e, f"Could not upload {path} to {repo} ({reason})"))

        self._console.info(f"Uploaded {path} to {repo}")
        return Ok(None)

    def download_release_asset(self, url: str, dest: Path) -> Result[Path, SyncError]:
        self._console.info(f"Downloading {url} to {dest}")
        result = self._http.download(
            url,
            dest,
            headers={"Accept": "application/octet-stream"},
        )
        if isinstance(result, Err):
            return Err(_remote_error(result.error, f"The {dest.name} file could not be downloaded"))
        return result

    def download_source_snapshot(
        self,
        repo: str,
        branch: str,
        tag: str,
        dest_dir: Path,
    ) -> Result[Path, SyncError]:
        """Download a zipball of the branch tip as ``<name>-<tag>.zip``."""
        dest = dest_dir / snapshot_file_name(repo, tag)
        url = f"{self._api_url}/repos/{repo}/zipball/{quote(branch)}"
        self._console.info(f"Downloading {dest.name} to {dest}")

        result = self._http.download(
            url,
            dest,
            headers=self._headers(),
            timeout=SNAPSHOT_TIMEOUT_SECONDS,
        )
        if isinstance(result, Err):
            return Err(_remote_error(result.error, f"Could not download source archive of {repo}"))
        return result
