from __future__ import annotations

import json
import os
from pathlib import Path
from typing import NoReturn

import typer

from zsync.core.config import load_options
from zsync.core.errors import ErrorCode
from zsync.core.result import Err
from zsync.core.structured import StrDict, as_str_dict
from zsync.output.console import ConsoleProtocol, RichConsole
from zsync.platform.http import RealHttpClient
from zsync.services.sync.errors import SyncError
from zsync.services.sync.model import ReleaseOutcome
from zsync.services.sync.orchestrator import sync_release
from zsync.services.sync.timeouts import HTTP_TIMEOUT_SECONDS


def _exit(err: str, *, code: ErrorCode) -> NoReturn:
    typer.echo(f"error: {err}", err=True)
    raise typer.Exit(code=int(code))


def exit_code_for(error: SyncError) -> ErrorCode:
    match error.kind:
        case "configuration":
            return ErrorCode.USER_ERROR
        case "metadata_update":
            return ErrorCode.IO_ERROR
        case "not_found" | "remote_operation":
            return ErrorCode.NETWORK_ERROR


def read_event(path: Path | None) -> StrDict:
    if path is None:
        env_path = os.environ.get("GITHUB_EVENT_PATH")
        if not env_path:
            _exit(
                "no release event: pass --event or set GITHUB_EVENT_PATH",
                code=ErrorCode.USER_ERROR,
            )
        path = Path(env_path)

    try:
        obj: object = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        _exit(f"cannot read event file {path}: {e}", code=ErrorCode.USER_ERROR)
    except json.JSONDecodeError as e:
        _exit(f"invalid JSON in event file {path}: {e}", code=ErrorCode.USER_ERROR)

    payload = as_str_dict(obj)
    if payload is None:
        _exit(f"event file {path} must contain a JSON object", code=ErrorCode.USER_ERROR)
    return payload


def write_outputs(outcome: ReleaseOutcome, *, console: ConsoleProtocol) -> None:
    """Expose ``doi`` and ``version`` as step outputs when running in Actions."""
    output_path = os.environ.get("GITHUB_OUTPUT")
    if not output_path:
        return
    try:
        with open(output_path, "a", encoding="utf-8") as f:
            f.write(f"doi={outcome.doi}\n")
            f.write(f"version={outcome.tag}\n")
    except OSError as e:
        console.warning(f"could not write step outputs to {output_path}: {e}")


def release(
    event: Path | None = typer.Option(
        None, "--event", help="Release event JSON (default: $GITHUB_EVENT_PATH)"
    ),
    workdir: Path = typer.Option(Path("."), "--workdir", help="Scratch directory for downloads"),
    config: Path | None = typer.Option(None, "--config", help="TOML file with a [zsync] table"),
    sandbox: bool | None = typer.Option(
        None, "--sandbox/--no-sandbox", help="Use sandbox.zenodo.org"
    ),
    publish: bool | None = typer.Option(
        None, "--publish/--no-publish", help="Publish the draft when done"
    ),
) -> None:
    """Archive the current GitHub release as a new Zenodo version."""
    options = load_options(
        env=os.environ,
        config_path=config,
        overrides={"sandbox": sandbox, "publish": publish},
    )
    if isinstance(options, Err):
        _exit(options.error.message, code=ErrorCode.USER_ERROR)

    payload = read_event(event)
    console = RichConsole()
    result = sync_release(
        payload=payload,
        options=options.value,
        http=RealHttpClient(timeout=HTTP_TIMEOUT_SECONDS),
        workdir=workdir.resolve(),
        console=console,
    )
    if isinstance(result, Err):
        _exit(result.error.pretty(), code=exit_code_for(result.error))

    write_outputs(result.value, console=console)
