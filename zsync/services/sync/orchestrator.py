"""Release sync saga.

Steps, in order:
1. fetch and parse the selected metadata documents, download release assets
2. open a new draft version on Zenodo and read its DOI and upload bucket
3. rewrite codemeta.json / CITATION.cff with that DOI and push them to GitHub
4. clear the files the draft inherited from the previous version
5. download a zipball of the default branch (now containing the new metadata)
6. upload assets and zipball, send .zenodo.json as deposit metadata, publish

Nothing remote changes before step 2, so earlier failures just abort. Every
failure from step 2 on goes through ``_compensate``, which deletes the draft
so the deposition never keeps a half-built version.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import date
from pathlib import Path

from zsync.core.config import SyncOptions
from zsync.core.result import Err, Ok, Result
from zsync.core.structured import StrDict
from zsync.output.console import ConsoleProtocol, Style
from zsync.platform.http import HttpClient
from zsync.services.sync.context import build_release_context
from zsync.services.sync.errors import SyncError
from zsync.services.sync.github import GitHubClient, snapshot_file_name
from zsync.services.sync.metadata import load_document, rewrite_documents
from zsync.services.sync.model import (
    DraftState,
    MetadataDocument,
    MetadataKind,
    ReleaseAsset,
    ReleaseContext,
    ReleaseOutcome,
)
from zsync.services.sync.staging import StagingArea, prepare_staging
from zsync.services.sync.zenodo import ZenodoClient


@dataclass(frozen=True, slots=True)
class StagedInputs:
    documents: tuple[MetadataDocument, ...]
    deposit_metadata: StrDict | None
    assets: tuple[ReleaseAsset, ...]


def _write_staged(path: Path, content: str, repo_path: str) -> Result[None, SyncError]:
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        return Err(
            SyncError(
                kind="metadata_update",
                message=f"The {repo_path} file could not be written. {e}",
                hint=str(path),
            )
        )
    return Ok(None)


def stage_inputs(
    *,
    context: ReleaseContext,
    github: GitHubClient,
    staging: StagingArea,
) -> Result[StagedInputs, SyncError]:
    """Fetch and parse metadata documents, then download release attachments."""
    snapshot = snapshot_file_name(context.repository, context.tag)
    for attachment in context.attachments:
        if Path(attachment.name).name == snapshot:
            return Err(
                SyncError(
                    kind="configuration",
                    message=f"Release asset {attachment.name} clashes with the source archive",
                    hint=f"Rename the asset; the source archive is uploaded as {snapshot}",
                )
            )

    documents: list[MetadataDocument] = []
    deposit_metadata: StrDict | None = None

    for kind in context.documents:
        content = github.fetch_versioned_file(
            context.repository, kind.repo_path, ref=context.default_branch
        )
        if isinstance(content, Err):
            return content

        document = MetadataDocument(kind=kind, local_path=staging.metadata_dir / kind.repo_path)
        written = _write_staged(document.local_path, content.value, kind.repo_path)
        if isinstance(written, Err):
            return written

        # Parse now: a broken document must fail before any draft exists.
        parsed = load_document(document)
        if isinstance(parsed, Err):
            return parsed
        if kind is MetadataKind.ZENODO:
            deposit_metadata = parsed.value
        documents.append(document)

    assets: list[ReleaseAsset] = []
    for attachment in context.attachments:
        dest = staging.assets_dir / Path(attachment.name).name
        downloaded = github.download_release_asset(attachment.url, dest)
        if isinstance(downloaded, Err):
            return downloaded
        assets.append(ReleaseAsset(name=dest.name, path=downloaded.value))

    return Ok(
        StagedInputs(
            documents=tuple(documents),
            deposit_metadata=deposit_metadata,
            assets=tuple(assets),
        )
    )


def _push_documents(
    *,
    context: ReleaseContext,
    github: GitHubClient,
    documents: tuple[MetadataDocument, ...],
    today: date,
) -> Result[None, SyncError]:
    rewritten = rewrite_documents(documents, context, today=today)
    if isinstance(rewritten, Err):
        return rewritten

    for document in rewritten.value:
        try:
            content = document.local_path.read_text(encoding="utf-8")
        except OSError as e:
            return Err(
                SyncError(
                    kind="metadata_update",
                    message=f"The {document.repo_path} file could not be read back. {e}",
                )
            )
        pushed = github.put_versioned_file(
            context.repository,
            document.repo_path,
            content,
            message=context.committer.message_for(document.repo_path),
            branch=context.default_branch,
            committer=context.committer.identity(),
        )
        if isinstance(pushed, Err):
            return pushed
    return Ok(None)


def _populate_draft(
    *,
    context: ReleaseContext,
    github: GitHubClient,
    zenodo: ZenodoClient,
    staging: StagingArea,
    inputs: StagedInputs,
    console: ConsoleProtocol,
    publish: bool,
    today: date,
) -> Result[ReleaseOutcome, SyncError]:
    draft_id = context.draft_id
    if draft_id is None:
        raise AssertionError("context must be bound to a draft")

    draft = zenodo.get_draft(draft_id)
    if isinstance(draft, Err):
        return draft
    bound = context.with_draft(draft_id=draft_id, doi=draft.value.doi)
    console.print(f"DOI: {bound.doi}", Style.DIM)

    if bound.update_metadata_files:
        pushed = _push_documents(
            context=bound, github=github, documents=inputs.documents, today=today
        )
        if isinstance(pushed, Err):
            return pushed

    for file in draft.value.files:
        console.info(f"Removing file {file.filename} from Zenodo draft deposition")
        removed = zenodo.remove_file(draft_id, file.id)
        if isinstance(removed, Err):
            return removed

    snapshot = github.download_source_snapshot(
        bound.repository, bound.default_branch, bound.tag, staging.assets_dir
    )
    if isinstance(snapshot, Err):
        return snapshot
    uploads = (*inputs.assets, ReleaseAsset(name=snapshot.value.name, path=snapshot.value))

    for asset in uploads:
        uploaded = zenodo.upload_file(draft_id, draft.value.bucket_url, asset.name, asset.path)
        if isinstance(uploaded, Err):
            return uploaded

    if inputs.deposit_metadata is not None:
        replaced = zenodo.replace_metadata(draft_id, inputs.deposit_metadata)
        if isinstance(replaced, Err):
            return replaced

    state = DraftState.OPEN
    if publish:
        published = zenodo.publish(draft_id)
        if isinstance(published, Err):
            return published
        state = DraftState.PUBLISHED
    else:
        console.warning(f"Draft {draft_id} left unpublished (publish disabled)")

    return Ok(ReleaseOutcome(tag=bound.tag, doi=draft.value.doi, draft_id=draft_id, state=state))


def _compensate(
    *,
    zenodo: ZenodoClient,
    draft_id: str,
    error: SyncError,
    console: ConsoleProtocol,
) -> Err[SyncError]:
    console.warning(f"Deleting draft {draft_id}: {error.message}")
    deleted = zenodo.delete(draft_id)
    if isinstance(deleted, Err):
        console.error(deleted.error.pretty())
        hint = f"draft {draft_id} could not be deleted and needs manual cleanup"
        if error.hint:
            hint = f"{error.hint}; {hint}"
        return Err(replace(error, hint=hint))
    return Err(error)


def run_release_sync(
    *,
    context: ReleaseContext,
    github: GitHubClient,
    zenodo: ZenodoClient,
    staging: StagingArea,
    console: ConsoleProtocol,
    publish: bool,
    today: date | None = None,
) -> Result[ReleaseOutcome, SyncError]:
    """Publish one release to Zenodo.

    Args:
        context: Validated release context (no draft bound yet).
        github: Source host client.
        zenodo: Deposition client.
        staging: Local scratch folders.
        console: Progress output.
        publish: False leaves the populated draft open for manual review.
        today: Date written into metadata documents (defaults to today).

    Returns:
        Ok(ReleaseOutcome) with the resolved tag and DOI, or Err(SyncError).
        When the error happened after the draft was opened, the draft has
        already been deleted.
    """
    console.header(f"Release {context.tag} of {context.repository}")

    inputs = stage_inputs(context=context, github=github, staging=staging)
    if isinstance(inputs, Err):
        return inputs

    draft_id = zenodo.create_new_version(context.deposition_id)
    if isinstance(draft_id, Err):
        return draft_id

    result = _populate_draft(
        context=replace(context, draft_id=draft_id.value),
        github=github,
        zenodo=zenodo,
        staging=staging,
        inputs=inputs.value,
        console=console,
        publish=publish,
        today=today or date.today(),
    )
    if isinstance(result, Err):
        return _compensate(
            zenodo=zenodo, draft_id=draft_id.value, error=result.error, console=console
        )

    console.success(f"Version: {result.value.tag}")
    console.success(f"DOI: {result.value.doi}")
    return result


def sync_release(
    *,
    payload: Mapping[str, object],
    options: SyncOptions,
    http: HttpClient,
    workdir: Path,
    console: ConsoleProtocol,
    today: date | None = None,
) -> Result[ReleaseOutcome, SyncError]:
    """Build the run context from a release event and run the saga."""
    context = build_release_context(payload, options, console=console)
    if isinstance(context, Err):
        return context

    staging = prepare_staging(workdir)
    if isinstance(staging, Err):
        return staging

    return run_release_sync(
        context=context.value,
        github=GitHubClient(http, options.github_token, console=console),
        zenodo=ZenodoClient(
            http, options.zenodo_token, base_url=context.value.zenodo_url, console=console
        ),
        staging=staging.value,
        console=console,
        publish=options.publish,
        today=today,
    )
