"""Tree-sitter front end for TypeScript and JavaScript sources.

The parser turns a file into a flat list of declaration records. Each
record type carries exactly the fields the symbol indexer and the class
hierarchy builder need, so neither consumer touches tree-sitter nodes.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Final

import tree_sitter_typescript as ts_typescript
from tree_sitter import Language, Node, Parser

TS_LANGUAGE: Final[Language] = Language(ts_typescript.language_typescript())
TSX_LANGUAGE: Final[Language] = Language(ts_typescript.language_tsx())

TS_EXTENSIONS: Final[frozenset[str]] = frozenset({".ts", ".mts", ".cts"})
TSX_EXTENSIONS: Final[frozenset[str]] = frozenset({".tsx", ".js", ".jsx", ".mjs", ".cjs"})
SUPPORTED_EXTENSIONS: Final[frozenset[str]] = TS_EXTENSIONS | TSX_EXTENSIONS

_MODIFIER_TOKENS: Final[frozenset[str]] = frozenset(
    {"static", "abstract", "readonly", "async", "get", "set", "declare"}
)


class ExportStatus(StrEnum):
    """How a top-level declaration is exported from its module."""

    EXPORTED = "exported"
    DEFAULT = "default"
    NONE = "none"


@dataclass(frozen=True, slots=True)
class Position:
    """1-indexed line and column of a declaration's name."""

    line: int
    column: int


@dataclass(frozen=True, slots=True)
class Parameter:
    name: str
    type: str = "any"
    optional: bool = False
    default: str | None = None


@dataclass(frozen=True, slots=True)
class TypeParameter:
    name: str
    constraint: str | None = None
    default: str | None = None


@dataclass(frozen=True, slots=True)
class MethodDecl:
    """A method of a class, or a method signature of an interface."""

    name: str
    position: Position
    doc: str = ""
    access: str = "public"
    is_static: bool = False
    is_abstract: bool = False
    parameters: tuple[Parameter, ...] = ()
    return_type: str = "void"


@dataclass(frozen=True, slots=True)
class PropertyDecl:
    """A field of a class, or a property signature of an interface."""

    name: str
    position: Position
    doc: str = ""
    access: str = "public"
    is_static: bool = False
    is_readonly: bool = False
    type: str = "any"


Member = MethodDecl | PropertyDecl


@dataclass(frozen=True, slots=True)
class ClassDecl:
    name: str
    position: Position
    doc: str = ""
    export: ExportStatus = ExportStatus.NONE
    superclass: str | None = None
    interfaces: tuple[str, ...] = ()
    is_abstract: bool = False
    type_parameters: tuple[TypeParameter, ...] = ()
    members: tuple[Member, ...] = ()


@dataclass(frozen=True, slots=True)
class InterfaceDecl:
    name: str
    position: Position
    doc: str = ""
    export: ExportStatus = ExportStatus.NONE
    extends: tuple[str, ...] = ()
    type_parameters: tuple[TypeParameter, ...] = ()
    members: tuple[Member, ...] = ()


@dataclass(frozen=True, slots=True)
class FunctionDecl:
    name: str
    position: Position
    doc: str = ""
    export: ExportStatus = ExportStatus.NONE


@dataclass(frozen=True, slots=True)
class VariableDecl:
    """One ``const``/``let``/``var`` statement; bindings share doc and export."""

    bindings: tuple[tuple[str, Position], ...]
    doc: str = ""
    export: ExportStatus = ExportStatus.NONE


@dataclass(frozen=True, slots=True)
class EnumDecl:
    name: str
    position: Position
    doc: str = ""
    export: ExportStatus = ExportStatus.NONE


@dataclass(frozen=True, slots=True)
class TypeAliasDecl:
    name: str
    position: Position
    doc: str = ""
    export: ExportStatus = ExportStatus.NONE


@dataclass(frozen=True, slots=True)
class NamespaceDecl:
    name: str
    position: Position
    doc: str = ""
    export: ExportStatus = ExportStatus.NONE
    body: tuple[Declaration, ...] = field(default=())


@dataclass(frozen=True, slots=True)
class ModuleDecl:
    name: str
    position: Position
    doc: str = ""
    export: ExportStatus = ExportStatus.NONE
    body: tuple[Declaration, ...] = field(default=())


Declaration = (
    ClassDecl
    | InterfaceDecl
    | FunctionDecl
    | VariableDecl
    | EnumDecl
    | TypeAliasDecl
    | NamespaceDecl
    | ModuleDecl
)

_Handler = Callable[[Node, str, ExportStatus], "list[Declaration]"]


def is_supported(path: Path | str) -> bool:
    """Return True if the file extension is handled by SourceParser."""
    return Path(path).suffix.lower() in SUPPORTED_EXTENSIONS


def is_declaration_file(path: Path | str) -> bool:
    """Return True for ``.d.ts``-style declaration-only files."""
    name = Path(path).name.lower()
    return name.endswith((".d.ts", ".d.mts", ".d.cts"))


class SourceParser:
    """Extracts declarations from TypeScript/JavaScript using tree-sitter."""

    def __init__(self) -> None:
        self._parser = Parser()
        self._handlers: dict[str, _Handler] = {
            "class_declaration": self._class,
            "abstract_class_declaration": self._class,
            "class": self._class,
            "interface_declaration": self._interface,
            "function_declaration": self._function,
            "generator_function_declaration": self._function,
            "function_signature": self._function,
            "function_expression": self._function,
            "function": self._function,
            "lexical_declaration": self._variables,
            "variable_declaration": self._variables,
            "enum_declaration": self._enum,
            "type_alias_declaration": self._type_alias,
            "internal_module": self._namespace,
            "module": self._module,
        }

    def parse(self, source: str, path: Path | str) -> list[Declaration]:
        """Parse source text into declarations.

        Args:
            source: File contents.
            path: File path; its extension selects the grammar.

        Returns:
            Top-level declarations in source order. Namespace and module
            bodies are nested inside their NamespaceDecl/ModuleDecl.
        """
        suffix = Path(path).suffix.lower()
        self._parser.language = TS_LANGUAGE if suffix in TS_EXTENSIONS else TSX_LANGUAGE
        tree = self._parser.parse(source.encode("utf-8"))
        return self._block(tree.root_node)

    def _block(self, container: Node) -> list[Declaration]:
        declarations: list[Declaration] = []
        for child in container.named_children:
            declarations.extend(self._statement(child))
        return declarations

    def _statement(self, node: Node) -> list[Declaration]:
        """Unwrap export/ambient/expression wrappers and dispatch on node type."""
        doc = _doc_comment(node)
        export = ExportStatus.NONE
        inner: Node | None = node

        if node.type == "export_statement":
            has_default = any(child.type == "default" for child in node.children)
            export = ExportStatus.DEFAULT if has_default else ExportStatus.EXPORTED
            inner = node.child_by_field_name("declaration") or node.child_by_field_name("value")
        if inner is not None and inner.type == "ambient_declaration":
            inner = next(
                (c for c in inner.named_children if c.type in self._handlers), None
            )
        if inner is not None and inner.type == "expression_statement":
            inner = next(
                (c for c in inner.named_children if c.type == "internal_module"), None
            )
        if inner is None:
            return []

        handler = self._handlers.get(inner.type)
        if handler is None:
            return []
        return handler(inner, doc, export)

    def _class(self, node: Node, doc: str, export: ExportStatus) -> list[Declaration]:
        name = node.child_by_field_name("name")
        if name is None:
            return []

        superclass: str | None = None
        interfaces: list[str] = []
        for heritage in (c for c in node.children if c.type == "class_heritage"):
            for clause in heritage.named_children:
                if clause.type == "extends_clause":
                    value = clause.child_by_field_name("value") or next(
                        (c for c in clause.named_children if c.type != "type_arguments"), None
                    )
                    if value is not None:
                        superclass = _text(value)
                elif clause.type == "implements_clause":
                    interfaces.extend(_type_name(t) for t in clause.named_children)

        is_abstract = node.type == "abstract_class_declaration" or any(
            c.type == "abstract" for c in node.children
        )
        return [
            ClassDecl(
                name=_text(name),
                position=_position(name),
                doc=doc,
                export=export,
                superclass=superclass,
                interfaces=tuple(interfaces),
                is_abstract=is_abstract,
                type_parameters=_type_parameters(node.child_by_field_name("type_parameters")),
                members=tuple(self._members(node.child_by_field_name("body"))),
            )
        ]

    def _interface(self, node: Node, doc: str, export: ExportStatus) -> list[Declaration]:
        name = node.child_by_field_name("name")
        if name is None:
            return []

        extends: list[str] = []
        for clause in node.children:
            if clause.type in ("extends_type_clause", "extends_clause"):
                extends.extend(
                    _type_name(t) for t in clause.named_children if t.type != "type_arguments"
                )

        body = node.child_by_field_name("body") or next(
            (c for c in node.children if c.type in ("interface_body", "object_type")), None
        )
        return [
            InterfaceDecl(
                name=_text(name),
                position=_position(name),
                doc=doc,
                export=export,
                extends=tuple(extends),
                type_parameters=_type_parameters(node.child_by_field_name("type_parameters")),
                members=tuple(self._members(body)),
            )
        ]

    def _members(self, body: Node | None) -> list[Member]:
        """Collect methods and properties of a class or interface body."""
        if body is None:
            return []

        members: list[Member] = []
        for child in body.named_children:
            name = child.child_by_field_name("name")
            if name is None:
                continue
            mods = _modifiers(child, name)
            access = next((m for m in mods if m in ("public", "private", "protected")), "public")

            if child.type in ("method_definition", "method_signature", "abstract_method_signature"):
                method_name = _text(name)
                if method_name == "constructor" or mods & {"get", "set"}:
                    continue
                return_type = _annotation(child.child_by_field_name("return_type"))
                members.append(
                    MethodDecl(
                        name=method_name,
                        position=_position(name),
                        doc=_doc_comment(child),
                        access=access,
                        is_static="static" in mods,
                        is_abstract=(
                            child.type == "abstract_method_signature" or "abstract" in mods
                        ),
                        parameters=_parameters(child.child_by_field_name("parameters")),
                        return_type=return_type or "void",
                    )
                )
            elif child.type in ("public_field_definition", "property_signature"):
                members.append(
                    PropertyDecl(
                        name=_text(name),
                        position=_position(name),
                        doc=_doc_comment(child),
                        access=access,
                        is_static="static" in mods,
                        is_readonly="readonly" in mods,
                        type=_annotation(child.child_by_field_name("type")) or "any",
                    )
                )
        return members

    def _function(self, node: Node, doc: str, export: ExportStatus) -> list[Declaration]:
        name = node.child_by_field_name("name")
        if name is None:
            return []
        return [FunctionDecl(name=_text(name), position=_position(name), doc=doc, export=export)]

    def _variables(self, node: Node, doc: str, export: ExportStatus) -> list[Declaration]:
        bindings: list[tuple[str, Position]] = []
        for declarator in node.named_children:
            if declarator.type != "variable_declarator":
                continue
            name = declarator.child_by_field_name("name")
            if name is not None and name.type == "identifier":
                bindings.append((_text(name), _position(name)))
        if not bindings:
            return []
        return [VariableDecl(bindings=tuple(bindings), doc=doc, export=export)]

    def _enum(self, node: Node, doc: str, export: ExportStatus) -> list[Declaration]:
        name = node.child_by_field_name("name")
        if name is None:
            return []
        return [EnumDecl(name=_text(name), position=_position(name), doc=doc, export=export)]

    def _type_alias(self, node: Node, doc: str, export: ExportStatus) -> list[Declaration]:
        name = node.child_by_field_name("name")
        if name is None:
            return []
        return [TypeAliasDecl(name=_text(name), position=_position(name), doc=doc, export=export)]

    def _namespace(self, node: Node, doc: str, export: ExportStatus) -> list[Declaration]:
        name = node.child_by_field_name("name")
        if name is None:
            return []
        body = node.child_by_field_name("body")
        return [
            NamespaceDecl(
                name=_text(name),
                position=_position(name),
                doc=doc,
                export=export,
                body=tuple(self._block(body)) if body is not None else (),
            )
        ]

    def _module(self, node: Node, doc: str, export: ExportStatus) -> list[Declaration]:
        name = node.child_by_field_name("name")
        if name is None:
            return []
        body = node.child_by_field_name("body")
        return [
            ModuleDecl(
                name=_text(name).strip("'\""),
                position=_position(name),
                doc=doc,
                export=export,
                body=tuple(self._block(body)) if body is not None else (),
            )
        ]


# Tree-sitter helpers


def _text(node: Node) -> str:
    """Extract source text for a tree-sitter node."""
    raw = node.text or b""
    return raw.decode("utf-8", errors="replace")


def _position(node: Node) -> Position:
    row, column = node.start_point
    return Position(line=row + 1, column=column + 1)


def _annotation(node: Node | None) -> str:
    """Strip the leading colon from a type annotation node."""
    if node is None:
        return ""
    return _text(node).lstrip(":").strip()


def _type_name(node: Node) -> str:
    """Name of a heritage type, without type arguments."""
    if node.type == "generic_type":
        name = node.child_by_field_name("name") or node.named_children[0]
        return _text(name)
    return _text(node)


def _modifiers(node: Node, name: Node) -> set[str]:
    """Keywords and accessibility modifiers written before a member's name."""
    mods: set[str] = set()
    for child in node.children:
        if child.start_byte >= name.start_byte:
            break
        if child.type == "accessibility_modifier":
            mods.add(_text(child))
        elif not child.is_named and child.type in _MODIFIER_TOKENS:
            mods.add(child.type)
    return mods


def _parameters(node: Node | None) -> tuple[Parameter, ...]:
    if node is None:
        return ()
    params: list[Parameter] = []
    for child in node.named_children:
        if child.type not in ("required_parameter", "optional_parameter"):
            continue
        pattern = child.child_by_field_name("pattern") or child.named_children[0]
        default = child.child_by_field_name("value")
        params.append(
            Parameter(
                name=_text(pattern),
                type=_annotation(child.child_by_field_name("type")) or "any",
                optional=child.type == "optional_parameter",
                default=_text(default) if default is not None else None,
            )
        )
    return tuple(params)


def _type_parameters(node: Node | None) -> tuple[TypeParameter, ...]:
    if node is None:
        return ()
    params: list[TypeParameter] = []
    for child in node.named_children:
        if child.type != "type_parameter":
            continue
        name = child.child_by_field_name("name") or child.named_children[0]
        constraint = child.child_by_field_name("constraint")
        default = child.child_by_field_name("value")
        params.append(
            TypeParameter(
                name=_text(name),
                constraint=(
                    _text(constraint).removeprefix("extends").strip()
                    if constraint is not None
                    else None
                ),
                default=_text(default).lstrip("=").strip() if default is not None else None,
            )
        )
    return tuple(params)


def _doc_comment(node: Node) -> str:
    """Nearest ``/** ... */`` comment among the comments directly above node."""
    sibling = node.prev_sibling
    while sibling is not None and sibling.type == "comment":
        raw = _text(sibling)
        if raw.startswith("/**") and not raw.startswith("/**/"):
            return _clean_doc(raw)
        sibling = sibling.prev_sibling
    return ""


def _clean_doc(raw: str) -> str:
    """Strip comment markers and per-line ``*`` decoration."""
    body = raw[3:-2] if raw.endswith("*/") else raw[3:]
    lines: list[str] = []
    for line in body.splitlines():
        stripped = line.strip()
        if stripped.startswith("*"):
            stripped = stripped[1:]
            if stripped.startswith(" "):
                stripped = stripped[1:]
        lines.append(stripped.rstrip())
    return "\n".join(lines).strip()
