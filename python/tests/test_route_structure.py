"""Structural tests for route code.

Verifies that routes follow the service/route separation rule:
- Routes may not contain domain logic or raw DB access
- Routes may only import from allowed modules
"""

import ast
from pathlib import Path

import pytest


def get_routes_dir() -> Path:
    """Get the path to the routes directory."""
    # Navigate from tests/ to folio/api/routes/
    tests_dir = Path(__file__).parent
    return tests_dir.parent / "folio" / "api" / "routes"


def get_all_route_files() -> list[Path]:
    """Get all Python files in the routes directory."""
    routes_dir = get_routes_dir()
    if not routes_dir.exists():
        return []
    return [f for f in routes_dir.iterdir() if f.suffix == ".py" and f.name != "__init__.py"]


class TestForbiddenImports:
    """Tests that route files don't import forbidden modules."""

    # Allowed import roots for routes
    ALLOWED_MODULES = [
        "fastapi",
        "typing",
        "uuid",
        "sqlalchemy.orm",  # Only for Session type annotation
        "folio.api.deps",
        "folio.responses",
        "folio.errors",
        "folio.schemas",
        "folio.services",
    ]

    @pytest.fixture
    def route_files(self) -> list[Path]:
        """Get all route files to test."""
        files = get_all_route_files()
        assert len(files) > 0, "No route files found to test"
        return files

    def test_no_direct_sqlalchemy_imports(self, route_files: list[Path]):
        """Route files must not import SQLAlchemy modules directly (except Session)."""
        for route_file in route_files:
            tree = ast.parse(route_file.read_text())

            for node in ast.walk(tree):
                if isinstance(node, ast.Import):
                    for alias in node.names:
                        if alias.name.startswith("sqlalchemy") and alias.name != "sqlalchemy.orm":
                            pytest.fail(f"{route_file.name}: Forbidden import '{alias.name}'.")

                elif isinstance(node, ast.ImportFrom) and node.module:
                    if node.module == "sqlalchemy.orm":
                        for alias in node.names:
                            if alias.name != "Session":
                                pytest.fail(
                                    f"{route_file.name}: Forbidden import "
                                    f"'from sqlalchemy.orm import {alias.name}'. "
                                    "Only 'from sqlalchemy.orm import Session' is allowed."
                                )
                    elif node.module.startswith("sqlalchemy"):
                        pytest.fail(
                            f"{route_file.name}: Forbidden import from '{node.module}'. "
                            "Route files must not import SQLAlchemy modules directly."
                        )

    def test_imports_from_allowed_modules_only(self, route_files: list[Path]):
        """Route files import only transport, schema and service modules."""
        for route_file in route_files:
            tree = ast.parse(route_file.read_text())

            for node in ast.walk(tree):
                if isinstance(node, ast.ImportFrom) and node.module:
                    allowed = any(
                        node.module == module or node.module.startswith(module + ".")
                        for module in self.ALLOWED_MODULES
                    )
                    assert allowed, f"{route_file.name}: Forbidden import from '{node.module}'"

    def test_no_raw_db_operations_in_routes(self, route_files: list[Path]):
        """Route files must not call db.execute, db.scalar, etc."""
        for route_file in route_files:
            tree = ast.parse(route_file.read_text())

            for node in ast.walk(tree):
                if isinstance(node, ast.Call) and isinstance(node.func, ast.Attribute):
                    if node.func.attr in ("execute", "scalar", "scalars", "query", "add", "commit"):
                        if isinstance(node.func.value, ast.Name) and node.func.value.id in (
                            "db",
                            "session",
                        ):
                            pytest.fail(
                                f"{route_file.name}: Forbidden call "
                                f"'{node.func.value.id}.{node.func.attr}()'. "
                                "Route files must not perform raw DB operations."
                            )


class TestRouteFileStructure:
    """Tests for overall route file structure."""

    def test_all_routes_have_router(self):
        """All route files must define a 'router' object."""
        for route_file in get_all_route_files():
            tree = ast.parse(route_file.read_text())

            has_router = any(
                isinstance(node, ast.Assign)
                and any(isinstance(t, ast.Name) and t.id == "router" for t in node.targets)
                for node in ast.walk(tree)
            )

            assert has_router, f"{route_file.name} must define a 'router' object"

    def test_route_handlers_return_dict_or_response(self):
        """Route handlers should return dict (for success_response) or Response."""
        for route_file in get_all_route_files():
            tree = ast.parse(route_file.read_text())

            for node in ast.walk(tree):
                if not isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                    continue
                is_route_handler = any(
                    isinstance(decorator, ast.Call)
                    and isinstance(decorator.func, ast.Attribute)
                    and isinstance(decorator.func.value, ast.Name)
                    and decorator.func.value.id == "router"
                    for decorator in node.decorator_list
                )
                if is_route_handler and isinstance(node.returns, ast.Name):
                    assert node.returns.id in ("dict", "Response"), (
                        f"{route_file.name}:{node.name} should return dict or Response"
                    )
