"""Class and interface hierarchy analysis.

The builder keeps one ClassHierarchy aggregate per instance. Node maps are
filled by :meth:`ClassHierarchyBuilder.build` and :meth:`ClassHierarchyBuilder.refresh`;
the inheritance and implementation trees are always recomputed from the
node maps as a whole, never patched.
"""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Final, assert_never

from rich.console import Console

from codeatlas.exceptions import IndexerError, normalize_error
from codeatlas.indexer.cache import PersistenceCache
from codeatlas.indexer.parser import (
    ClassDecl,
    Declaration,
    EnumDecl,
    FunctionDecl,
    InterfaceDecl,
    MethodDecl,
    ModuleDecl,
    NamespaceDecl,
    Parameter,
    PropertyDecl,
    SourceParser,
    TypeAliasDecl,
    TypeParameter,
    VariableDecl,
    is_declaration_file,
    is_supported,
)
from codeatlas.indexer.scanner import FileKind, WorkspaceScanner
from codeatlas.indexer.symbols import content_hash

console = Console(stderr=True)

MAX_CHAIN_DEPTH: Final[int] = 50
SNAPSHOT_KEY: Final[str] = "class-hierarchy"
CACHE_PREFIX: Final[str] = "classes:"


@dataclass(slots=True)
class ParameterInfo:
    name: str
    type: str = "any"
    optional: bool = False
    default: str | None = None


@dataclass(slots=True)
class TypeParameterInfo:
    name: str
    constraint: str | None = None
    default: str | None = None


@dataclass(slots=True)
class MethodInfo:
    """A method of a ClassNode.

    ``is_override`` and ``overridden_from`` are derived fields, reset and
    recomputed on every tree rebuild.
    """

    name: str
    return_type: str = "void"
    parameters: list[ParameterInfo] = field(default_factory=list)
    access: str = "public"
    is_static: bool = False
    is_abstract: bool = False
    is_override: bool = False
    overridden_from: str | None = None

    @property
    def signature(self) -> str:
        """Formatted as ``name(a?: T, b: U): R``."""
        params = ", ".join(
            f"{p.name}{'?' if p.optional else ''}: {p.type}" for p in self.parameters
        )
        return f"{self.name}({params}): {self.return_type}"


@dataclass(slots=True)
class PropertyInfo:
    name: str
    type: str = "any"
    access: str = "public"
    is_static: bool = False
    is_readonly: bool = False


@dataclass(slots=True)
class ClassNode:
    """One class or interface declaration and its relationships.

    Attributes:
        name: Declared name.
        file_path: Declaring file.
        superclass: Name of the extended class, without type arguments.
        interfaces: Implemented interfaces (classes) or extended interfaces (interfaces).
        methods: Declared methods, constructors and accessors excluded.
        properties: Declared fields or property signatures.
        is_abstract: True for ``abstract class``.
        is_interface: True for interface declarations.
        access: Class-level access modifier.
        type_parameters: Generic parameters in declaration order.
    """

    name: str
    file_path: str
    superclass: str | None = None
    interfaces: list[str] = field(default_factory=list)
    methods: list[MethodInfo] = field(default_factory=list)
    properties: list[PropertyInfo] = field(default_factory=list)
    is_abstract: bool = False
    is_interface: bool = False
    access: str = "public"
    type_parameters: list[TypeParameterInfo] = field(default_factory=list)

    def method(self, name: str) -> MethodInfo | None:
        return next((m for m in self.methods if m.name == name), None)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClassNode:
        """Rebuild a node from :meth:`to_dict` output.

        Raises:
            KeyError: If a required field is missing.
            TypeError: If a nested record has unexpected fields.
        """
        return cls(
            name=data["name"],
            file_path=data["file_path"],
            superclass=data.get("superclass"),
            interfaces=list(data.get("interfaces", [])),
            methods=[
                MethodInfo(
                    **{**m, "parameters": [ParameterInfo(**p) for p in m.get("parameters", [])]}
                )
                for m in data.get("methods", [])
            ],
            properties=[PropertyInfo(**p) for p in data.get("properties", [])],
            is_abstract=bool(data.get("is_abstract", False)),
            is_interface=bool(data.get("is_interface", False)),
            access=data.get("access", "public"),
            type_parameters=[TypeParameterInfo(**t) for t in data.get("type_parameters", [])],
        )


@dataclass(frozen=True, slots=True)
class InheritanceChain:
    class_name: str
    chain: list[str]
    depth: int


@dataclass(frozen=True, slots=True)
class MethodOverride:
    method_name: str
    class_name: str
    overridden_from: str
    file_path: str
    signature: str


@dataclass(slots=True)
class ClassHierarchy:
    """Node maps plus the two trees derived from them."""

    classes: dict[str, ClassNode] = field(default_factory=dict)
    interfaces: dict[str, ClassNode] = field(default_factory=dict)
    inheritance_tree: dict[str, list[str]] = field(default_factory=dict)
    implementation_tree: dict[str, list[str]] = field(default_factory=dict)

    def register(self, node: ClassNode) -> None:
        """Add a node under its name; a later node with the same name wins."""
        target = self.interfaces if node.is_interface else self.classes
        target[node.name] = node

    def to_dict(self) -> dict[str, Any]:
        return {
            "classes": {name: node.to_dict() for name, node in self.classes.items()},
            "interfaces": {name: node.to_dict() for name, node in self.interfaces.items()},
            "inheritance_tree": {k: list(v) for k, v in self.inheritance_tree.items()},
            "implementation_tree": {k: list(v) for k, v in self.implementation_tree.items()},
        }


class ClassHierarchyBuilder:
    """Builds and queries the class/interface graph of a workspace.

    Usage::

        builder = ClassHierarchyBuilder(scanner, cache)
        await builder.build(Path("/my/project"))
        builder.inheritance_chain("AdminController")
        builder.overrides_of("BaseController", "handle")
    """

    def __init__(
        self,
        scanner: WorkspaceScanner,
        cache: PersistenceCache,
        parser: SourceParser | None = None,
    ) -> None:
        self._scanner = scanner
        self._cache = cache
        self._parser = parser or SourceParser()
        self._hierarchy = ClassHierarchy()

    @property
    def hierarchy(self) -> ClassHierarchy:
        return self._hierarchy

    async def build(self, workspace: Path | str) -> ClassHierarchy:
        """Scan the workspace and build the hierarchy from its source files.

        Raises:
            ScanError: If workspace is not a directory.
        """
        files = await self._scanner.scan(workspace)
        targets = [
            str(wf.path)
            for wf in files
            if wf.kind is FileKind.SOURCE
            and is_supported(wf.path)
            and not is_declaration_file(wf.path)
        ]

        self._hierarchy = ClassHierarchy()
        await self._process(targets, use_cache=True)
        self._rebuild_trees()
        self._persist()
        console.print(
            f"[green]Hierarchy[/green] built [bold]{len(self._hierarchy.classes)}[/bold] classes, "
            f"[bold]{len(self._hierarchy.interfaces)}[/bold] interfaces"
        )
        return self._hierarchy

    async def refresh(self, paths: list[Path] | list[str]) -> None:
        """Re-parse exactly the named files and recompute both trees.

        Nodes declared in the named files are dropped first, so a file that
        no longer exists simply loses its nodes.
        """
        targets = {self._key(p) for p in paths}
        for nodes in (self._hierarchy.classes, self._hierarchy.interfaces):
            for name in [n for n, node in nodes.items() if node.file_path in targets]:
                del nodes[name]

        existing = sorted(
            t
            for t in targets
            if is_supported(t) and not is_declaration_file(t) and Path(t).is_file()
        )
        await self._process(existing, use_cache=False)
        self._rebuild_trees()
        self._persist()

    def get(self, name: str) -> ClassNode | None:
        """Look up a class first, then an interface."""
        return self._hierarchy.classes.get(name) or self._hierarchy.interfaces.get(name)

    def implementations_of(self, interface_name: str) -> list[ClassNode]:
        """Classes that list interface_name directly."""
        names = self._hierarchy.implementation_tree.get(interface_name, [])
        return [self._hierarchy.classes[n] for n in names if n in self._hierarchy.classes]

    def inheritance_chain(self, class_name: str) -> InheritanceChain:
        """Ancestors of class_name, nearest first.

        Traversal stops after MAX_CHAIN_DEPTH hops and returns the partial
        chain, which is what a circular hierarchy produces.
        """
        chain: list[str] = []
        current = self._hierarchy.classes.get(class_name)
        while current is not None and current.superclass:
            if len(chain) >= MAX_CHAIN_DEPTH:
                console.print(
                    f"[yellow]Warning[/yellow]: Inheritance chain of {class_name} exceeds "
                    f"{MAX_CHAIN_DEPTH} levels, possible circular inheritance"
                )
                break
            chain.append(current.superclass)
            current = self._hierarchy.classes.get(current.superclass)
        return InheritanceChain(class_name=class_name, chain=chain, depth=len(chain))

    def derived_classes_of(self, class_name: str) -> list[ClassNode]:
        """Every transitive subclass of class_name."""
        result: list[ClassNode] = []
        seen: set[str] = {class_name}
        pending = list(self._hierarchy.inheritance_tree.get(class_name, []))
        while pending:
            name = pending.pop(0)
            if name in seen:
                continue
            seen.add(name)
            node = self._hierarchy.classes.get(name)
            if node is not None:
                result.append(node)
            pending.extend(self._hierarchy.inheritance_tree.get(name, []))
        return result

    def overrides_of(self, class_name: str, method_name: str) -> list[MethodOverride]:
        """Override records for a method on a class and all of its descendants."""
        node = self._hierarchy.classes.get(class_name)
        if node is None:
            return []

        overrides: list[MethodOverride] = []
        for candidate in [node, *self.derived_classes_of(class_name)]:
            method = candidate.method(method_name)
            if method is not None and method.is_override and method.overridden_from:
                overrides.append(
                    MethodOverride(
                        method_name=method.name,
                        class_name=candidate.name,
                        overridden_from=method.overridden_from,
                        file_path=candidate.file_path,
                        signature=method.signature,
                    )
                )
        return overrides

    def implements(self, class_name: str, interface_name: str) -> bool:
        """True if the class or any ancestor declares interface_name."""
        node = self._hierarchy.classes.get(class_name)
        if node is None:
            return False
        if interface_name in node.interfaces:
            return True
        for ancestor in self.inheritance_chain(class_name).chain:
            parent = self._hierarchy.classes.get(ancestor)
            if parent is not None and interface_name in parent.interfaces:
                return True
        return False

    async def _process(self, paths: list[str], use_cache: bool) -> None:
        results = await asyncio.gather(
            *(self._process_file(path, use_cache) for path in paths), return_exceptions=True
        )
        for path, result in zip(paths, results):
            if isinstance(result, BaseException):
                console.print(f"[red]Error[/red]: {path}: {normalize_error(result)}")

    async def _process_file(self, path: str, use_cache: bool) -> None:
        try:
            text = await self._scanner.read(path)
        except Exception as exc:
            raise IndexerError(f"Cannot read {path}", cause_type=type(exc).__name__) from exc

        digest = content_hash(text)
        cache_key = f"{CACHE_PREFIX}{path}"
        nodes: list[ClassNode] | None = None
        if use_cache and self._cache.is_unchanged(path, digest):
            nodes = self._adopt(self._cache.load(cache_key), path, digest)

        if nodes is None:
            try:
                declarations = self._parser.parse(text, path)
            except Exception as exc:
                raise IndexerError(f"Cannot parse {path}", cause_type=type(exc).__name__) from exc
            nodes = _nodes_from(declarations, path)
            self._cache.save(
                cache_key, {"path": path, "hash": digest, "classes": [n.to_dict() for n in nodes]}
            )
            self._cache.update_hash(path, digest)

        for node in nodes:
            self._hierarchy.register(node)

    @staticmethod
    def _adopt(entry: Any, path: str, digest: str) -> list[ClassNode] | None:
        if not isinstance(entry, dict):
            return None
        if entry.get("path") != path or entry.get("hash") != digest:
            return None
        try:
            return [ClassNode.from_dict(item) for item in entry["classes"]]
        except (KeyError, TypeError, ValueError) as exc:
            console.print(
                f"[yellow]Warning[/yellow]: Ignoring corrupt class cache entry: "
                f"{normalize_error(exc)}"
            )
            return None

    def _rebuild_trees(self) -> None:
        """Recompute both trees and override flags from the node maps."""
        hierarchy = self._hierarchy
        inheritance: dict[str, list[str]] = {}
        implementation: dict[str, list[str]] = {}

        for node in hierarchy.classes.values():
            for method in node.methods:
                method.is_override = False
                method.overridden_from = None

        for node in hierarchy.classes.values():
            if node.superclass:
                inheritance.setdefault(node.superclass, []).append(node.name)
            for interface in node.interfaces:
                implementation.setdefault(interface, []).append(node.name)

            parent = hierarchy.classes.get(node.superclass) if node.superclass else None
            if parent is None:
                continue
            inherited = {m.name for m in parent.methods}
            for method in node.methods:
                if method.name in inherited:
                    method.is_override = True
                    method.overridden_from = parent.name

        hierarchy.inheritance_tree = {k: sorted(v) for k, v in inheritance.items()}
        hierarchy.implementation_tree = {k: sorted(v) for k, v in implementation.items()}

    def _persist(self) -> None:
        self._cache.save(SNAPSHOT_KEY, self._hierarchy.to_dict())

    def _key(self, path: Path | str) -> str:
        target = Path(path)
        if not target.is_absolute() and self._scanner.root is not None:
            target = self._scanner.root / target
        return str(target.resolve())


def _nodes_from(
    declarations: list[Declaration] | tuple[Declaration, ...], path: str
) -> list[ClassNode]:
    nodes: list[ClassNode] = []
    for decl in declarations:
        match decl:
            case ClassDecl():
                nodes.append(
                    ClassNode(
                        name=decl.name,
                        file_path=path,
                        superclass=decl.superclass,
                        interfaces=list(decl.interfaces),
                        methods=[_method_info(m) for m in decl.members if isinstance(m, MethodDecl)],
                        properties=[
                            _property_info(p) for p in decl.members if isinstance(p, PropertyDecl)
                        ],
                        is_abstract=decl.is_abstract,
                        type_parameters=[_type_parameter_info(t) for t in decl.type_parameters],
                    )
                )
            case InterfaceDecl():
                nodes.append(
                    ClassNode(
                        name=decl.name,
                        file_path=path,
                        interfaces=list(decl.extends),
                        methods=[_method_info(m) for m in decl.members if isinstance(m, MethodDecl)],
                        properties=[
                            _property_info(p) for p in decl.members if isinstance(p, PropertyDecl)
                        ],
                        is_interface=True,
                        type_parameters=[_type_parameter_info(t) for t in decl.type_parameters],
                    )
                )
            case NamespaceDecl() | ModuleDecl():
                nodes.extend(_nodes_from(decl.body, path))
            case FunctionDecl() | VariableDecl() | EnumDecl() | TypeAliasDecl():
                pass
            case _:
                assert_never(decl)
    return nodes


def _method_info(method: MethodDecl) -> MethodInfo:
    return MethodInfo(
        name=method.name,
        return_type=method.return_type,
        parameters=[_parameter_info(p) for p in method.parameters],
        access=method.access,
        is_static=method.is_static,
        is_abstract=method.is_abstract,
    )


def _property_info(prop: PropertyDecl) -> PropertyInfo:
    return PropertyInfo(
        name=prop.name,
        type=prop.type,
        access=prop.access,
        is_static=prop.is_static,
        is_readonly=prop.is_readonly,
    )


def _parameter_info(param: Parameter) -> ParameterInfo:
    return ParameterInfo(
        name=param.name, type=param.type, optional=param.optional, default=param.default
    )


def _type_parameter_info(param: TypeParameter) -> TypeParameterInfo:
    return TypeParameterInfo(name=param.name, constraint=param.constraint, default=param.default)
