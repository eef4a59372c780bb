"""The scoring client (logic, session, reconcile) must run without the server package installed."""

import ast
from pathlib import Path

import pytest

HOOPS_DIR = Path(__file__).resolve().parents[2]
CLIENT_PACKAGES = ("logic", "session", "reconcile")
SERVER = "hoops.server"


def _imported_modules(path: Path) -> set[str]:
    tree = ast.parse(path.read_text(), filename=str(path))
    modules: set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            modules.update(alias.name for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module:
            modules.add(node.module)
    return modules


@pytest.mark.parametrize("package", CLIENT_PACKAGES)
def test_client_packages_do_not_import_server(package):
    offenders = {
        path.relative_to(HOOPS_DIR).as_posix(): sorted(m for m in _imported_modules(path) if m.startswith(SERVER))
        for path in sorted((HOOPS_DIR / package).glob("*.py"))
    }
    assert {name: modules for name, modules in offenders.items() if modules} == {}
