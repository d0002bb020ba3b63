"""
Convention Enforcement Tests.

Permanent tests that catch anti-patterns which import-based layer rules
cannot detect: frozen dataclass conventions, immutable collections,
silent exception swallowing, third-party imports in the domain and
interface contracts.
"""

import ast
import inspect
from pathlib import Path

import pytest

SRC_ROOT = Path(__file__).parent.parent.parent / "src" / "reviewflow"
DOMAIN_FILES = sorted((SRC_ROOT / "domain").glob("*.py"))

# Standard-library modules the domain may import
DOMAIN_ALLOWED_IMPORTS = {
    "__future__",
    "abc",
    "collections",
    "dataclasses",
    "enum",
    "json",
    "re",
    "time",
    "typing",
    "uuid",
}


def _dataclass_info(filepath: Path) -> list[tuple[str, bool]]:
    """Parse a file and return (class_name, is_frozen) for each @dataclass."""
    tree = ast.parse(filepath.read_text())
    results = []

    for node in ast.walk(tree):
        if not isinstance(node, ast.ClassDef):
            continue
        for decorator in node.decorator_list:
            is_dataclass = False
            is_frozen = False

            if isinstance(decorator, ast.Name) and decorator.id == "dataclass":
                is_dataclass = True
            elif isinstance(decorator, ast.Call):
                func = decorator.func
                if isinstance(func, ast.Name) and func.id == "dataclass":
                    is_dataclass = True
                    for kw in decorator.keywords:
                        if kw.arg == "frozen" and isinstance(kw.value, ast.Constant):
                            is_frozen = kw.value.value

            if is_dataclass:
                results.append((node.name, is_frozen))
    return results


class TestFrozenDataclassConvention:
    """All domain dataclasses must be frozen."""

    @pytest.mark.parametrize("path", DOMAIN_FILES, ids=lambda p: p.name)
    def test_domain_dataclasses_are_frozen(self, path):
        violations = [name for name, frozen in _dataclass_info(path) if not frozen]

        assert not violations, f"Domain dataclasses must be frozen: {violations}"


class TestImmutableCollections:
    """Frozen domain snapshots should use tuple, not list."""

    @pytest.mark.parametrize("path", DOMAIN_FILES, ids=lambda p: p.name)
    def test_no_list_fields(self, path):
        source = path.read_text()
        tree = ast.parse(source)
        violations = []

        for node in ast.walk(tree):
            if not isinstance(node, ast.ClassDef):
                continue
            for item in node.body:
                if isinstance(item, ast.AnnAssign) and item.target:
                    annotation = ast.get_source_segment(source, item.annotation)
                    if annotation and "list[" in annotation.lower():
                        target_name = getattr(item.target, "id", "?")
                        violations.append(f"{node.name}.{target_name}")

        assert not violations, (
            f"Use tuple[] instead of list[] for fields: {violations}"
        )


class TestNoSilentExceptionSwallowing:
    """No bare 'except: pass' or 'except Exception: pass' in src/."""

    def test_no_bare_except_pass(self):
        violations = []

        for py_file in SRC_ROOT.rglob("*.py"):
            source = py_file.read_text()
            tree = ast.parse(source)

            for node in ast.walk(tree):
                if not isinstance(node, ast.ExceptHandler):
                    continue
                if node.type is None:
                    violations.append(f"{py_file.name}:{node.lineno}: bare except")
                    continue
                if len(node.body) == 1:
                    stmt = node.body[0]
                    is_pass = isinstance(stmt, ast.Pass)
                    is_ellipsis = (
                        isinstance(stmt, ast.Expr)
                        and isinstance(stmt.value, ast.Constant)
                        and stmt.value.value is ...
                    )
                    if is_pass or is_ellipsis:
                        violations.append(f"{py_file.name}:{node.lineno}: pass")

        assert not violations, "Silent exception swallowing found:\n" + "\n".join(
            f"  - {v}" for v in violations
        )


class TestDomainImports:
    """The domain imports only the standard library and itself."""

    @pytest.mark.parametrize("path", DOMAIN_FILES, ids=lambda p: p.name)
    def test_no_third_party_imports(self, path):
        tree = ast.parse(path.read_text())
        violations = []

        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                roots = [alias.name.split(".")[0] for alias in node.names]
            elif isinstance(node, ast.ImportFrom) and node.module:
                roots = [node.module.split(".")[0]]
            else:
                continue
            violations.extend(
                root
                for root in roots
                if root != "reviewflow" and root not in DOMAIN_ALLOWED_IMPORTS
            )

        assert not violations, f"{path.name} imports {violations}"


class TestInterfaceConventions:
    """Interface naming and contract conventions."""

    def test_all_ports_end_with_interface(self):
        """All ABCs in domain/interfaces.py must end with 'Interface'."""
        from reviewflow.domain import interfaces

        abstract_classes = [
            name
            for name, obj in inspect.getmembers(interfaces, inspect.isclass)
            if inspect.isabstract(obj) and not name.startswith("_")
        ]

        violations = [
            name for name in abstract_classes if not name.endswith("Interface")
        ]

        assert not violations, (
            f"Abstract classes should end with 'Interface': {violations}"
        )

    def test_all_interface_methods_are_abstract(self):
        """Every public method on a port must be abstract."""
        from reviewflow.domain import interfaces

        violations = []

        for name, cls in inspect.getmembers(interfaces, inspect.isclass):
            if not inspect.isabstract(cls) or not name.endswith("Interface"):
                continue

            for method_name, method in inspect.getmembers(
                cls, predicate=inspect.isfunction
            ):
                if method_name.startswith("_"):
                    continue
                if not getattr(method, "__isabstractmethod__", False):
                    violations.append(f"{name}.{method_name}")

        assert not violations, (
            f"Public interface methods must be abstract: {violations}"
        )

    @pytest.mark.parametrize(
        "interface_path, impl_paths",
        [
            (
                "reviewflow.domain.interfaces:LogStoreInterface",
                [
                    "reviewflow.infrastructure.persistence.filesystem"
                    ":FilesystemLogStore",
                    "reviewflow.infrastructure.persistence.memory:InMemoryLogStore",
                ],
            ),
            (
                "reviewflow.domain.interfaces:PlanStoreInterface",
                [
                    "reviewflow.infrastructure.plan_store:FilesystemPlanStore",
                    "reviewflow.infrastructure.plan_store:InMemoryPlanStore",
                ],
            ),
            (
                "reviewflow.domain.interfaces:StepResolverInterface",
                [
                    "reviewflow.domain.step_resolver:ListStepResolver",
                    "reviewflow.domain.step_resolver:PlanBodyStepResolver",
                ],
            ),
        ],
    )
    def test_implementations_satisfy_interfaces(self, interface_path, impl_paths):
        """Every adapter implements all abstract methods of its port."""
        import importlib

        def load(path: str) -> type:
            module_name, _, attr = path.partition(":")
            return getattr(importlib.import_module(module_name), attr)

        interface = load(interface_path)
        abstract_methods = {
            name
            for name, method in inspect.getmembers(
                interface, predicate=inspect.isfunction
            )
            if getattr(method, "__isabstractmethod__", False)
        }

        for impl_cls in map(load, impl_paths):
            assert issubclass(impl_cls, interface)
            assert not inspect.isabstract(impl_cls), impl_cls.__name__
            impl_methods = {
                name
                for name, _ in inspect.getmembers(
                    impl_cls, predicate=inspect.isfunction
                )
            }
            missing = abstract_methods - impl_methods
            assert not missing, f"{impl_cls.__name__} is missing methods: {missing}"
