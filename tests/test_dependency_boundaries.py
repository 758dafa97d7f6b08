import ast
import unittest
from pathlib import Path
from typing import Iterable, List, Tuple


REPO_ROOT = Path(__file__).resolve().parents[1]

# Dependency rules (kept intentionally small and explicit):
# - tools/ and pipeline/ must not depend on cli/
# - tools/ may only reach into pipeline/ for its leaf vocabulary modules
# - the leaf modules themselves depend on nothing in tools/
FORBIDDEN_IMPORTS = {
    "tools": ("cli",),
    "pipeline": ("cli",),
}

TOOLS_ALLOWED_PIPELINE_MODULES = ("pipeline.constants", "pipeline.errors", "pipeline.models")

LEAF_MODULES = ("constants.py", "errors.py", "models.py")


def iter_py_files(package_dir: Path) -> Iterable[Path]:
    for p in package_dir.rglob("*.py"):
        # Skip cache/hidden dirs if present
        if any(part.startswith(".") for part in p.parts):
            continue
        if "__pycache__" in p.parts:
            continue
        yield p


def imported_modules(py_file: Path) -> List[str]:
    src = py_file.read_text(encoding="utf-8", errors="ignore")
    tree = ast.parse(src, filename=str(py_file))

    modules: List[str] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            modules.extend(alias.name for alias in node.names)
        elif isinstance(node, ast.ImportFrom):
            # Only absolute imports; relative imports are within-package by definition.
            if node.level == 0 and node.module:
                modules.append(node.module)
    return modules


def find_forbidden_imports(py_file: Path, forbidden_roots: Tuple[str, ...]) -> List[str]:
    return [m for m in imported_modules(py_file) if m.split(".", 1)[0] in forbidden_roots]


class TestDependencyBoundaries(unittest.TestCase):
    def test_dependency_direction_is_enforced(self) -> None:
        problems: List[str] = []

        for pkg, forbidden in FORBIDDEN_IMPORTS.items():
            pkg_dir = REPO_ROOT / pkg
            if not pkg_dir.exists():
                continue

            for py_file in iter_py_files(pkg_dir):
                bad = find_forbidden_imports(py_file, forbidden)
                if bad:
                    rel = py_file.relative_to(REPO_ROOT)
                    problems.append(f"{rel} imports forbidden modules: {bad}")

        if problems:
            self.fail("Forbidden imports detected (violates dependency direction):\n" + "\n".join(problems))

    def test_tools_only_use_pipeline_vocabulary(self) -> None:
        problems: List[str] = []
        for py_file in iter_py_files(REPO_ROOT / "tools"):
            bad = [
                m
                for m in imported_modules(py_file)
                if m.split(".", 1)[0] == "pipeline" and m not in TOOLS_ALLOWED_PIPELINE_MODULES
            ]
            if bad:
                problems.append(f"{py_file.relative_to(REPO_ROOT)} imports {bad}")
        self.assertEqual(problems, [])

    def test_leaf_modules_do_not_import_tools(self) -> None:
        for name in LEAF_MODULES:
            py_file = REPO_ROOT / "pipeline" / name
            bad = find_forbidden_imports(py_file, ("tools", "cli"))
            self.assertEqual(bad, [], f"pipeline/{name} imports {bad}")


if __name__ == "__main__":
    unittest.main()
