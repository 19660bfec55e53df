from __future__ import annotations

from collections.abc import Mapping

from zsync.core.config import DEFAULT_COMMIT_MESSAGE, SyncOptions
from zsync.core.result import Err, Ok, Result
from zsync.core.structured import as_str_dict, get_list, get_str, get_table
from zsync.output.console import ConsoleProtocol
from zsync.services.sync import config
from zsync.services.sync.errors import SyncError
from zsync.services.sync.model import (
    Committer,
    MetadataKind,
    ReleaseAttachment,
    ReleaseContext,
)
from zsync.services.sync.semver import normalize_tag


def _missing(what: str) -> Err[SyncError]:
    return Err(
        SyncError(
            kind="configuration",
            message=f"The payload does not contain {what}",
            hint="zsync must run on a `release` event",
        )
    )


def _parse_attachments(raw: list[object]) -> Result[tuple[ReleaseAttachment, ...], SyncError]:
    out: list[ReleaseAttachment] = []
    for item in raw:
        d = as_str_dict(item)
        if d is None:
            return _missing("a valid release asset entry")
        name = get_str(d, "name")
        url = get_str(d, "browser_download_url")
        if name is None:
            return _missing("a release asset name")
        if url is None:
            return _missing(f"a download URL for release asset {name}")
        out.append(ReleaseAttachment(name=name, url=url))
    return Ok(tuple(out))


def selected_documents(options: SyncOptions) -> tuple[MetadataKind, ...]:
    flags = (
        (MetadataKind.CODEMETA, options.codemeta_json),
        (MetadataKind.CITATION, options.citation_cff),
        (MetadataKind.ZENODO, options.zenodo_json),
    )
    return tuple(kind for kind, enabled in flags if enabled)


def build_committer(options: SyncOptions) -> Committer:
    custom = (
        options.committer_name != ""
        or options.committer_email != ""
        or options.commit_message != DEFAULT_COMMIT_MESSAGE
    )
    return Committer(
        name=options.committer_name,
        email=options.committer_email,
        message=options.commit_message,
        custom=custom,
    )


def build_release_context(
    payload: Mapping[str, object],
    options: SyncOptions,
    *,
    console: ConsoleProtocol,
) -> Result[ReleaseContext, SyncError]:
    """Validate a GitHub ``release`` event payload and freeze the run context.

    Args:
        payload: Parsed event JSON.
        options: Operator inputs.
        console: Receives the warning when the tag is not a usable version.

    Returns:
        Ok(ReleaseContext) or Err(SyncError) of kind ``configuration`` naming
        the missing field.
    """
    repository = get_table(payload, "repository")
    if repository is None:
        return _missing("a repository object")
    full_name = get_str(repository, "full_name")
    if full_name is None or "/" not in full_name:
        return _missing("a repository full name")
    default_branch = get_str(repository, "default_branch")
    if default_branch is None:
        return _missing("a default branch")

    release = get_table(payload, "release")
    if release is None:
        return _missing("a release")
    raw_assets = get_list(release, "assets")
    if raw_assets is None:
        return _missing("release assets")
    attachments = _parse_attachments(raw_assets)
    if isinstance(attachments, Err):
        return attachments
    raw_tag = get_str(release, "tag_name")
    if raw_tag is None:
        return _missing("a tag name")

    tag, exact = normalize_tag(raw_tag)
    if not exact:
        console.warning(
            f"The tag name {raw_tag} is not a valid semver. Reverting to the original tag name."
        )

    if not options.deposition_id:
        return Err(SyncError(kind="configuration", message="The deposition_id input is required"))

    return Ok(
        ReleaseContext(
            repository=full_name,
            default_branch=default_branch,
            tag=tag,
            attachments=attachments.value,
            documents=selected_documents(options),
            update_metadata_files=options.update_metadata_files,
            committer=build_committer(options),
            deposition_id=options.deposition_id,
            zenodo_url=config.ZENODO_SANDBOX_URL if options.sandbox else config.ZENODO_URL,
        )
    )
