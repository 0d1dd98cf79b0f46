import ast
from pathlib import Path


def _imports(py_file):
    tree = ast.parse(py_file.read_text(encoding="utf-8"), filename=str(py_file))
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                yield node.lineno, alias.name
        elif isinstance(node, ast.ImportFrom):
            yield node.lineno, node.module or ""


def _violations(package_dir, forbidden):
    repo_root = Path(__file__).resolve().parents[2]
    violations = []
    for py_file in (repo_root / package_dir).rglob("*.py"):
        rel_path = py_file.relative_to(repo_root)
        for lineno, name in _imports(py_file):
            if any(name == f or name.startswith(f + ".") for f in forbidden):
                violations.append(f"{rel_path}:{lineno} imports {name}")
    return violations


def test_pipeline_layer_does_not_import_ui_layer():
    """Pipeline layer must not import from UI layer directly."""
    violations = _violations(Path("hbc") / "pipeline", ["hbc.ui", "rich"])
    assert not violations, "Pipeline layer must not import UI layer:\n" + "\n".join(violations)


def test_domain_layer_has_no_outward_imports():
    violations = _violations(Path("hbc") / "domain", ["hbc.pipeline", "hbc.infrastructure", "hbc.ui", "subprocess"])
    assert not violations, "Domain layer must stay pure:\n" + "\n".join(violations)


def test_external_tools_never_run_through_a_shell():
    repo_root = Path(__file__).resolve().parents[2]
    offenders = [
        str(py_file.relative_to(repo_root))
        for py_file in (repo_root / "hbc").rglob("*.py")
        if "shell=True" in py_file.read_text(encoding="utf-8")
    ]
    assert not offenders
