from __future__ import annotations

import ast
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class ImportRef:
    module: str
    line: int


def tagrel_root() -> Path:
    return Path(__file__).resolve().parents[2]


def iter_python_files(base: Path) -> list[Path]:
    root = tagrel_root()
    files: list[Path] = []
    for path in sorted(base.rglob("*.py")):
        rel = path.relative_to(root)
        if any(part.startswith(".") or part == "__pycache__" for part in rel.parts):
            continue
        if rel.parts and rel.parts[0] == "test":
            continue
        files.append(path)
    return files


def read_tree(path: Path) -> ast.AST:
    return ast.parse(path.read_text(encoding="utf-8"), filename=str(path))


def parse_imports(path: Path) -> list[ImportRef]:
    imports: list[ImportRef] = []
    for node in ast.walk(read_tree(path)):
        if isinstance(node, ast.Import):
            for alias in node.names:
                imports.append(ImportRef(module=alias.name, line=node.lineno))
        elif isinstance(node, ast.ImportFrom):
            if node.level or node.module is None:
                continue
            imports.append(ImportRef(module=node.module, line=node.lineno))
    return imports


def matches_prefix(module: str, prefix: str) -> bool:
    return module == prefix or module.startswith(prefix + ".")


def _violations(base: str, forbidden: tuple[str, ...]) -> list[str]:
    root = tagrel_root()
    offenders: list[str] = []
    for file_path in iter_python_files(root / base):
        rel = file_path.relative_to(root)
        for item in parse_imports(file_path):
            if any(matches_prefix(item.module, prefix) for prefix in forbidden):
                offenders.append(f"{rel}:{item.line}: forbidden import '{item.module}'")
    return offenders


def test_services_do_not_import_cli() -> None:
    offenders = _violations("services", ("tagrel.cli", "typer"))
    assert not offenders, "services -> cli dependency violations:\n" + "\n".join(offenders)


def test_core_depends_on_nothing_else() -> None:
    offenders = _violations(
        "core",
        (
            "tagrel.cli",
            "tagrel.services",
            "tagrel.output",
            "tagrel.platform",
            "tagrel.git",
        ),
    )
    assert not offenders, "core dependency violations:\n" + "\n".join(offenders)


def test_infrastructure_does_not_import_services() -> None:
    offenders = _violations("platform", ("tagrel.services", "tagrel.cli"))
    offenders += _violations("git", ("tagrel.services", "tagrel.cli"))
    assert not offenders, "infrastructure dependency violations:\n" + "\n".join(offenders)


def test_rich_is_only_imported_by_console() -> None:
    root = tagrel_root()
    offenders: list[str] = []
    for file_path in iter_python_files(root):
        rel = str(file_path.relative_to(root))
        if rel == "output/console.py":
            continue
        for item in parse_imports(file_path):
            if matches_prefix(item.module, "rich"):
                offenders.append(f"{rel}:{item.line}: direct rich import '{item.module}'")
    assert not offenders, "Direct rich usage policy violations:\n" + "\n".join(offenders)


def _direct_subprocess_calls(tree: ast.AST) -> list[int]:
    lines: list[int] = []
    for node in ast.walk(tree):
        if not isinstance(node, ast.Call):
            continue
        func = node.func
        if not isinstance(func, ast.Attribute) or not isinstance(func.value, ast.Name):
            continue
        if func.value.id == "subprocess" and func.attr in {"run", "check_output", "Popen"}:
            lines.append(node.lineno)
    return lines


def test_subprocess_only_in_platform_process() -> None:
    root = tagrel_root()
    offenders: list[str] = []
    for file_path in iter_python_files(root):
        rel = str(file_path.relative_to(root))
        if rel == "platform/process.py":
            continue
        for line in _direct_subprocess_calls(read_tree(file_path)):
            offenders.append(f"{rel}:{line}: direct subprocess call outside platform/process.py")
    assert not offenders, "Subprocess policy violations:\n" + "\n".join(offenders)
