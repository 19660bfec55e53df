from __future__ import annotations

from ._gate import require_arch_checks_enabled
from ._utils import iter_python_files, matches_prefix, package_root, parse_imports


def _offenders(
    subdir: str, forbidden: tuple[str, ...], allow: frozenset[str] = frozenset()
) -> list[str]:
    root = package_root()
    out: list[str] = []
    for file_path in iter_python_files(root / subdir):
        rel = file_path.relative_to(root)
        if rel.parts[0] == "test" or str(rel) in allow:
            continue
        for item in parse_imports(file_path):
            if any(matches_prefix(item.module, prefix) for prefix in forbidden):
                out.append(f"{rel}:{item.line}: forbidden import '{item.module}'")
    return out


def test_services_do_not_import_cli_or_ui_libraries() -> None:
    require_arch_checks_enabled()

    offenders = _offenders("services", ("zsync.cli", "typer", "rich"))

    assert not offenders, "services -> cli dependency violations:\n" + "\n".join(offenders)


def test_core_does_not_import_upper_layers() -> None:
    require_arch_checks_enabled()

    upper = ("zsync.services", "zsync.cli", "zsync.platform", "zsync.output")
    offenders = _offenders("core", upper)

    assert not offenders, "core layering violations:\n" + "\n".join(offenders)


def test_rich_is_only_used_by_console() -> None:
    require_arch_checks_enabled()

    offenders = _offenders(".", ("rich",), allow=frozenset({"output/console.py"}))

    assert not offenders, "Direct rich usage policy violations:\n" + "\n".join(offenders)
