"""Source model: the program view the call-site analysis runs on.

`SourceModelProvider` is the narrow interface the core components consume.
`TreeSitterSourceModel` implements it over tree-sitter syntax trees with a
networkx type hierarchy and local receiver inference.
"""
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple
import networkx as nx
from tree_sitter import Node, Tree

from . import scope
from .extractor import CONCRETE, PROPERTY, Declaration, DeclarationExtractor, Symbol, TypeDecl
from .import_tracker import ImportInfo, ImportTracker, ReExport
from .parser import LanguageParser
from .project import discover_source_files, load_tsconfig, resolve_tsconfig
from .resolver import ModuleResolver
from .syntax import node_key, node_text, position, same_node, traverse, unwrap_expression
from .type_inference import ReceiverType, TypeInference
from ..utils.logger import debug


@dataclass
class Reference:
    """One syntactic occurrence that resolves to a member symbol."""
    symbol: Optional[Symbol]
    name: str
    file_path: str
    node: Node = field(repr=False)
    line: int = 0
    column: int = 0
    start_byte: int = 0
    resolved: bool = True
    alias: bool = False

    @property
    def text(self) -> str:
        return node_text(self.node)


@dataclass
class SourceUnit:
    """One parsed file."""
    path: str
    language: str
    source: bytes = field(repr=False)
    tree: Tree = field(repr=False)
    types: List[TypeDecl] = field(default_factory=list)
    imports: Dict[str, ImportInfo] = field(default_factory=dict)
    reexports: List[ReExport] = field(default_factory=list)
    type_aliases: Dict[str, Node] = field(default_factory=dict, repr=False)
    default_export: Optional[str] = None
    # `export { local as exported }` clauses: exported name -> local name
    local_exports: Dict[str, str] = field(default_factory=dict)

    @property
    def has_syntax_errors(self) -> bool:
        return self.tree.root_node.has_error


class SourceModelProvider(ABC):
    """Read-only program model consumed by the call-site analysis."""

    @abstractmethod
    def units(self) -> List[SourceUnit]:
        """Parsed source units in discovery order."""

    @abstractmethod
    def method_declarations(self) -> List[Declaration]:
        """Every concrete method declaration, in discovery order."""

    def enclosing_type_name(self, decl: Declaration) -> str:
        return decl.type_name

    @abstractmethod
    def get_base_type(self, type_decl: TypeDecl) -> Optional[TypeDecl]:
        """Direct base class of a class, or None."""

    @abstractmethod
    def get_implemented_interfaces(self, type_decl: TypeDecl) -> List[TypeDecl]:
        """Interfaces a class names in its `implements` clause."""

    @abstractmethod
    def get_base_interfaces(self, interface: TypeDecl) -> List[TypeDecl]:
        """Interfaces an interface names in its `extends` clause."""

    def get_member(self, type_decl: TypeDecl, name: str, static: bool = False) -> Optional[Symbol]:
        """Own member symbol of a type (no inheritance)."""
        return type_decl.symbols.get((name, static))

    def symbol_of(self, decl: Declaration) -> Optional[Symbol]:
        return decl.symbol

    def type_identity(self, type_decl: TypeDecl) -> str:
        return type_decl.identity

    @abstractmethod
    def find_references(self, decl: Declaration) -> List[Reference]:
        """Every syntactic reference to the declaration's symbol."""

    @abstractmethod
    def resolve_call_signature(self, call_node: Node, file_path: str) -> Optional[Declaration]:
        """Declaration of the signature a call resolves to, or None."""

    def resolve_call_signatures(self, call_node: Node, file_path: str) -> List[Declaration]:
        """Every signature a call may bind to; several for a union receiver."""
        decl = self.resolve_call_signature(call_node, file_path)
        return [decl] if decl is not None else []

    @abstractmethod
    def is_reference_findable(self, decl: Declaration) -> bool:
        """False when references to the declaration cannot be enumerated."""

    @abstractmethod
    def find_binding_references(self, file_path: str, name_node: Node) -> List[Node]:
        """Identifier uses of a local binding, in source order."""

    @abstractmethod
    def tearoff_source(self, file_path: str, value: Node) -> Optional[Tuple['Reference', bool]]:
        """(member reference, bound) when an initializer reads a member, else None."""


class TreeSitterSourceModel(SourceModelProvider):
    """Source model built from tree-sitter parses of a fixed file snapshot."""

    def __init__(self, sources: Dict[str, bytes], base_url: Optional[str] = None,
                 paths: Optional[Dict[str, List[str]]] = None, loose: bool = False,
                 root: Optional[Path] = None, tsconfig_path: Optional[Path] = None,
                 failed_files: Optional[List[str]] = None):
        """Parse and index a snapshot.

        Args:
            sources: Map of posix path -> file contents
            base_url: compilerOptions.baseUrl (posix, relative to root)
            paths: compilerOptions.paths
            loose: Admit member accesses on receivers of unknown type by name
            root: Project root the paths are relative to
            tsconfig_path: tsconfig the snapshot was loaded from
            failed_files: Files that could not be read by the loader
        """
        self.root = root
        self.tsconfig_path = tsconfig_path
        self.loose = loose
        self.failed_files: List[str] = list(failed_files or [])
        self.resolver = ModuleResolver(sources.keys(), base_url=base_url, paths=paths)
        self.hierarchy = nx.DiGraph()
        self.inference = TypeInference(self)

        self._units: Dict[str, SourceUnit] = {}
        self._types_by_file: Dict[str, Dict[str, List[TypeDecl]]] = {}
        self._types_by_name: Dict[str, List[TypeDecl]] = defaultdict(list)
        self._types_by_node: Dict[Tuple, TypeDecl] = {}
        self._bindings: Dict[Tuple, Optional[scope.Binding]] = {}
        self._identifiers: Dict[str, Dict[str, List[Node]]] = {}
        self._references: Optional[Dict[Symbol, List[Reference]]] = None
        self._loose_references: Dict[str, List[Reference]] = defaultdict(list)
        self._property_references: Dict[Tuple, List[Reference]] = {}

        parsers: Dict[str, LanguageParser] = {}
        for path in sorted(sources):
            language = LanguageParser.language_for(path)
            if language is None:
                continue
            if language not in parsers:
                parsers[language] = LanguageParser(language)
            self._load_unit(path, language, sources[path], parsers[language])

        self._build_hierarchy()

    @classmethod
    def from_project(cls, project: str | Path, loose: bool = False) -> 'TreeSitterSourceModel':
        """Load every source file of a tsconfig project.

        Args:
            project: Project directory or tsconfig path

        Raises:
            ProjectError: If no readable tsconfig is found
        """
        tsconfig_path = resolve_tsconfig(project)
        config = load_tsconfig(tsconfig_path)
        debug(f"tsconfig: {tsconfig_path}")

        sources: Dict[str, bytes] = {}
        failed: List[str] = []
        for rel_path in discover_source_files(config):
            try:
                with open(config.root / rel_path, 'rb') as f:
                    sources[rel_path] = f.read()
            except (IOError, OSError):
                failed.append(rel_path)

        debug(f"loaded {len(sources)} source files")
        return cls(sources, base_url=config.base_url, paths=config.paths, loose=loose,
                   root=config.root, tsconfig_path=tsconfig_path, failed_files=failed)

    @classmethod
    def from_sources(cls, sources: Dict[str, str], loose: bool = False,
                     base_url: Optional[str] = None,
                     paths: Optional[Dict[str, List[str]]] = None) -> 'TreeSitterSourceModel':
        """Build a model from in-memory sources ({path: text})."""
        encoded = {path: text.encode('utf-8') for path, text in sources.items()}
        return cls(encoded, base_url=base_url, paths=paths, loose=loose)

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def _load_unit(self, path: str, language: str, source: bytes, parser: LanguageParser):
        tree = parser.parse_source(source)
        if tree is None:
            self.failed_files.append(path)
            return

        root = tree.root_node
        tracker = ImportTracker()
        unit = SourceUnit(
            path=path,
            language=language,
            source=source,
            tree=tree,
            types=DeclarationExtractor(language).extract_types(tree, path),
            imports=tracker.analyze_imports(root),
            reexports=tracker.analyze_reexports(root),
        )
        if unit.has_syntax_errors:
            debug(f"syntax errors in {path} (analyzed anyway)")

        for node in traverse(root):
            if node.type == 'type_alias_declaration':
                name = node.child_by_field_name('name')
                value = node.child_by_field_name('value')
                if name is not None and value is not None:
                    unit.type_aliases.setdefault(node_text(name), value)
            elif node.type == 'export_statement' and node.child_by_field_name('source') is None:
                self._record_exports(node, unit)

        exported = set(unit.local_exports.values())
        if unit.default_export:
            exported.add(unit.default_export)
        for type_decl in unit.types:
            parent = type_decl.node.parent
            if type_decl.name in exported and parent is not None and parent.type == 'program':
                type_decl.exported = True

        self._units[path] = unit
        by_name = self._types_by_file.setdefault(path, {})
        for type_decl in unit.types:
            by_name.setdefault(type_decl.name, []).append(type_decl)
            self._types_by_name[type_decl.name].append(type_decl)
            self._types_by_node[node_key(path, type_decl.node)] = type_decl
            self.hierarchy.add_node(type_decl.identity, decl=type_decl)

    def _record_exports(self, node: Node, unit: SourceUnit):
        if any(c.type == 'default' for c in node.children):
            target = node.child_by_field_name('declaration') or node.child_by_field_name('value')
            if target is not None:
                name = target.child_by_field_name('name') if target.type != 'identifier' else target
                if name is not None:
                    unit.default_export = node_text(name)
            return
        for clause in node.named_children:
            if clause.type != 'export_clause':
                continue
            for spec in clause.named_children:
                local = spec.child_by_field_name('name') if spec.type == 'export_specifier' else None
                if local is not None:
                    alias = spec.child_by_field_name('alias')
                    unit.local_exports[node_text(alias or local)] = node_text(local)

    def _build_hierarchy(self):
        """Add `extends` / `implements` edges, keeping source order."""
        for unit in self._units.values():
            for type_decl in unit.types:
                for relation, heritage in (('extends', type_decl.extends), ('implements', type_decl.implements)):
                    for order, ref in enumerate(heritage):
                        base = self._resolve_heritage(ref, unit.path)
                        if base is None:
                            continue
                        self.hierarchy.add_edge(type_decl.identity, base.identity,
                                                relation=relation, order=order)

    def _resolve_heritage(self, ref: Node, file_path: str) -> Optional[TypeDecl]:
        ref = unwrap_expression(ref)
        if ref is None:
            return None
        if ref.type == 'generic_type':
            return self._resolve_heritage(ref.child_by_field_name('name'), file_path)
        if ref.type in ('identifier', 'type_identifier'):
            return self.resolve_type_name(node_text(ref), file_path)
        if ref.type == 'member_expression':
            return self.resolve_qualified(node_text(ref.child_by_field_name('object')),
                                          node_text(ref.child_by_field_name('property')), file_path)
        if ref.type == 'nested_type_identifier':
            return self.resolve_qualified(node_text(ref.child_by_field_name('module')),
                                          node_text(ref.child_by_field_name('name')), file_path)
        return None

    # -------------------------------------------------------------------------
    # Name resolution
    # -------------------------------------------------------------------------

    def resolve_type_name(self, name: str, file_path: str) -> Optional[TypeDecl]:
        """Resolve a type name as seen from a file.

        Order: same-file declaration, then import (following re-exports),
        then the first same-named declaration in discovery order.
        """
        local = self._types_by_file.get(file_path, {}).get(name)
        if local:
            return local[0]

        found = self._resolve_import(file_path, name, set())
        if found is not None:
            return found

        candidates = self._types_by_name.get(name)
        return candidates[0] if candidates else None

    def resolve_qualified(self, qualifier: str, name: str, file_path: str) -> Optional[TypeDecl]:
        """Resolve `ns.Name` where `ns` is a namespace import."""
        unit = self._units.get(file_path)
        info = unit.imports.get(qualifier) if unit else None
        if info is None or not info.is_namespace:
            return None
        target = self.resolver.resolve(file_path, info.source_module)
        if target is None:
            return None
        return self._resolve_exported(target, name, set())

    def _resolve_import(self, file_path: str, name: str, visited: Set[Tuple[str, str]]) -> Optional[TypeDecl]:
        unit = self._units.get(file_path)
        info = unit.imports.get(name) if unit else None
        if info is None or info.is_namespace:
            return None
        target = self.resolver.resolve(file_path, info.source_module)
        if target is None:
            return None
        if info.original_name == 'default':
            return self._resolve_default(target, visited)
        return self._resolve_exported(target, info.original_name or name, visited)

    def _resolve_default(self, file_path: str, visited: Set[Tuple[str, str]]) -> Optional[TypeDecl]:
        unit = self._units.get(file_path)
        if unit is None or unit.default_export is None:
            return None
        return self._resolve_exported(file_path, unit.default_export, visited)

    def _resolve_exported(self, file_path: str, name: str, visited: Set[Tuple[str, str]]) -> Optional[TypeDecl]:
        """Find the declaration a module exports under `name`."""
        if (file_path, name) in visited:
            return None
        visited.add((file_path, name))

        local = self._types_by_file.get(file_path, {}).get(name)
        if local:
            return local[0]

        unit = self._units.get(file_path)
        renamed = unit.local_exports.get(name) if unit else None
        if renamed is not None and renamed != name:
            return self._resolve_exported(file_path, renamed, visited)

        found = self._resolve_import(file_path, name, visited)
        if found is not None:
            return found

        if unit is None:
            return None
        for reexport in unit.reexports:
            target = self.resolver.resolve(file_path, reexport.source_module)
            if target is None:
                continue
            if reexport.is_star:
                found = self._resolve_exported(target, name, visited)
            elif name in reexport.names:
                original = reexport.names[name]
                found = (self._resolve_default(target, visited) if original == 'default'
                         else self._resolve_exported(target, original, visited))
            else:
                continue
            if found is not None:
                return found
        return None

    def type_for_node(self, node: Node, file_path: str) -> Optional[TypeDecl]:
        return self._types_by_node.get(node_key(file_path, node))

    def type_alias(self, file_path: str, name: str) -> Optional[Node]:
        unit = self._units.get(file_path)
        return unit.type_aliases.get(name) if unit else None

    def binding_of(self, file_path: str, ident: Node) -> Optional[scope.Binding]:
        key = node_key(file_path, ident)
        if key not in self._bindings:
            self._bindings[key] = scope.resolve_binding(ident)
        return self._bindings[key]

    # -------------------------------------------------------------------------
    # Hierarchy
    # -------------------------------------------------------------------------

    def _related(self, type_decl: TypeDecl, relation: str) -> List[TypeDecl]:
        identity = type_decl.identity
        if identity not in self.hierarchy:
            return []
        edges = [
            (data['order'], target)
            for _, target, data in self.hierarchy.out_edges(identity, data=True)
            if data['relation'] == relation
        ]
        return [self.hierarchy.nodes[target]['decl'] for _, target in sorted(edges)]

    def get_base_type(self, type_decl: TypeDecl) -> Optional[TypeDecl]:
        if type_decl.kind != 'class':
            return None
        bases = self._related(type_decl, 'extends')
        return bases[0] if bases else None

    def get_implemented_interfaces(self, type_decl: TypeDecl) -> List[TypeDecl]:
        if type_decl.kind != 'class':
            return []
        return self._related(type_decl, 'implements')

    def get_base_interfaces(self, interface: TypeDecl) -> List[TypeDecl]:
        if interface.kind != 'interface':
            return []
        return self._related(interface, 'extends')

    def class_chain(self, type_decl: TypeDecl) -> List[TypeDecl]:
        """The type followed by its base classes, stopping at a cycle."""
        chain = []
        seen = set()
        current = type_decl
        while current is not None and current.identity not in seen:
            seen.add(current.identity)
            chain.append(current)
            current = self.get_base_type(current)
        return chain

    def member_search_order(self, type_decl: TypeDecl) -> List[TypeDecl]:
        """Types searched for a member: class chain first, then interfaces breadth-first."""
        order = self.class_chain(type_decl)
        seen = {t.identity for t in order}
        queue = []
        for owner in order:
            queue.extend(self.get_implemented_interfaces(owner) or self.get_base_interfaces(owner))
        while queue:
            current = queue.pop(0)
            if current.identity in seen:
                continue
            seen.add(current.identity)
            order.append(current)
            queue.extend(self.get_base_interfaces(current))
        return order

    def lookup_member(self, type_decl: TypeDecl, name: str, static: bool = False) -> Optional[Symbol]:
        """Member symbol visible on a type: own, inherited or from interfaces."""
        owners = self.class_chain(type_decl) if static else self.member_search_order(type_decl)
        for owner in owners:
            symbol = owner.symbols.get((name, static))
            if symbol is not None:
                return symbol
        return None

    def lookup_members(self, receiver: ReceiverType, name: str) -> List[Symbol]:
        """Member symbols an inferred receiver exposes, one per union member that has it."""
        if receiver.array:
            return []
        symbols: List[Symbol] = []
        for type_decl in receiver.decls():
            symbol = self.lookup_member(type_decl, name, receiver.static)
            if symbol is not None and symbol not in symbols:
                symbols.append(symbol)
        return symbols

    # -------------------------------------------------------------------------
    # Provider interface
    # -------------------------------------------------------------------------

    def units(self) -> List[SourceUnit]:
        return list(self._units.values())

    def unit(self, file_path: str) -> Optional[SourceUnit]:
        return self._units.get(file_path)

    def types(self) -> List[TypeDecl]:
        return [type_decl for unit in self._units.values() for type_decl in unit.types]

    def method_declarations(self) -> List[Declaration]:
        result = []
        for unit in self._units.values():
            decls = [d for t in unit.types for d in t.declarations() if d.kind == CONCRETE]
            result.extend(sorted(decls, key=lambda d: d.node.start_byte))
        return result

    def is_reference_findable(self, decl: Declaration) -> bool:
        if decl.name_node.type == 'computed_property_name':
            return False
        if decl.owner is not None and decl.owner.is_ambient:
            return False
        return True

    def find_references(self, decl: Declaration) -> List[Reference]:
        references = self._reference_index()
        result = list(references.get(decl.symbol, [])) if decl.symbol is not None else []
        if self.loose:
            result.extend(self._loose_references.get(decl.name, []))
        return result

    def find_binding_references(self, file_path: str, name_node: Node) -> List[Node]:
        uses = []
        for ident in self._identifiers_named(file_path, node_text(name_node)):
            if same_node(ident, name_node):
                continue
            binding = self.binding_of(file_path, ident)
            if binding is not None and same_node(binding.name_node, name_node):
                uses.append(ident)
        return uses

    def _identifiers_named(self, file_path: str, name: str) -> List[Node]:
        if file_path not in self._identifiers:
            table: Dict[str, List[Node]] = defaultdict(list)
            unit = self._units.get(file_path)
            if unit is not None:
                for node in traverse(unit.tree.root_node):
                    if node.type == 'identifier':
                        table[node_text(node)].append(node)
            self._identifiers[file_path] = table
        return self._identifiers[file_path].get(name, [])

    # -------------------------------------------------------------------------
    # Reference index
    # -------------------------------------------------------------------------

    def _reference_index(self) -> Dict[Symbol, List[Reference]]:
        """Build the symbol -> references index once per model."""
        if self._references is not None:
            return self._references

        self._references = defaultdict(list)
        for unit in self._units.values():
            for node in traverse(unit.tree.root_node):
                if node.type == 'member_expression':
                    self._index_member_access(unit.path, node)

        for unit in self._units.values():
            for node in traverse(unit.tree.root_node):
                if node.type == 'variable_declarator':
                    name_node = node.child_by_field_name('name')
                    value = node.child_by_field_name('value')
                    if name_node is None or value is None:
                        continue
                    if name_node.type == 'object_pattern':
                        self._index_destructuring(unit.path, name_node, value)
                    elif name_node.type == 'identifier':
                        self._index_alias(unit.path, name_node, value)
                elif node.type in ('required_parameter', 'optional_parameter'):
                    pattern = node.child_by_field_name('pattern')
                    value = node.child_by_field_name('value')
                    if pattern is not None and pattern.type == 'identifier' and value is not None:
                        self._index_alias(unit.path, pattern, value)
                elif node.type == 'assignment_pattern':
                    left = node.child_by_field_name('left')
                    right = node.child_by_field_name('right')
                    if left is not None and left.type == 'identifier' and right is not None:
                        self._index_alias(unit.path, left, right)
        return self._references

    def _make_reference(self, symbol: Optional[Symbol], name: str, file_path: str, node: Node,
                        resolved: bool = True, alias: bool = False) -> Reference:
        line, column = position(node)
        return Reference(symbol=symbol, name=name, file_path=file_path, node=node, line=line,
                         column=column, start_byte=node.start_byte, resolved=resolved, alias=alias)

    def _add_reference(self, reference: Reference):
        if reference.symbol is not None:
            self._references[reference.symbol].append(reference)
        else:
            self._loose_references[reference.name].append(reference)

    def _index_member_access(self, file_path: str, node: Node):
        prop = node.child_by_field_name('property')
        if prop is None or prop.type not in ('property_identifier', 'private_property_identifier'):
            return
        name = node_text(prop)
        receiver = self.inference.infer(node.child_by_field_name('object'), file_path)
        if receiver is not None:
            references = [self._make_reference(symbol, name, file_path, prop)
                          for symbol in self.lookup_members(receiver, name)]
            if not references:
                return
        elif self.loose:
            references = [self._make_reference(None, name, file_path, prop, resolved=False)]
        else:
            return
        for reference in references:
            self._add_reference(reference)
        self._property_references[node_key(file_path, node)] = references

    def _index_destructuring(self, file_path: str, pattern: Node, value: Node):
        receiver = self.inference.infer(value, file_path)
        if receiver is None:
            return
        for prop in pattern.named_children:
            if prop.type == 'shorthand_property_identifier_pattern':
                key_node, local = prop, prop
            elif prop.type == 'object_assignment_pattern':
                key_node = local = prop.child_by_field_name('left')
            elif prop.type == 'pair_pattern':
                key_node = prop.child_by_field_name('key')
                local = prop.child_by_field_name('value')
                if local is not None and local.type == 'assignment_pattern':
                    local = local.child_by_field_name('left')
            else:
                continue
            if key_node is None:
                continue
            for symbol in self.lookup_members(receiver, node_text(key_node)):
                self._add_reference(self._make_reference(symbol, symbol.name, file_path, key_node))
                if local is not None and local.type in ('identifier', 'shorthand_property_identifier_pattern'):
                    for use in self.find_binding_references(file_path, local):
                        self._add_reference(self._make_reference(symbol, symbol.name, file_path, use, alias=True))

    def tearoff_source(self, file_path: str, value: Node) -> Optional[Tuple[Reference, bool]]:
        """If `value` is `recv.m` or `recv.m.bind(...)` on an indexed member, return (reference, bound)."""
        found = self._member_references(file_path, value)
        return (found[0][0], found[1]) if found else None

    def _member_references(self, file_path: str, value: Node) -> Optional[Tuple[List[Reference], bool]]:
        """Every reference a member read indexes (several for a union receiver), and whether it is bound."""
        self._reference_index()
        value = unwrap_expression(value)
        if value is None:
            return None
        if value.type == 'member_expression':
            references = self._property_references.get(node_key(file_path, value))
            return (references, False) if references else None
        if value.type == 'call_expression':
            callee = unwrap_expression(value.child_by_field_name('function'))
            if callee is None or callee.type != 'member_expression':
                return None
            if node_text(callee.child_by_field_name('property')) != 'bind':
                return None
            target = unwrap_expression(callee.child_by_field_name('object'))
            if target is None or target.type != 'member_expression':
                return None
            references = self._property_references.get(node_key(file_path, target))
            return (references, True) if references else None
        return None

    def _index_alias(self, file_path: str, name_node: Node, value: Node):
        source = self._member_references(file_path, value)
        if source is None:
            return
        references, _ = source
        for use in self.find_binding_references(file_path, name_node):
            for reference in references:
                self._add_reference(self._make_reference(reference.symbol, reference.name, file_path, use,
                                                         resolved=reference.resolved, alias=True))

    # -------------------------------------------------------------------------
    # Call signatures
    # -------------------------------------------------------------------------

    def resolve_call_signature(self, call_node: Node, file_path: str) -> Optional[Declaration]:
        signatures = self.resolve_call_signatures(call_node, file_path)
        return signatures[0] if signatures else None

    def resolve_call_signatures(self, call_node: Node, file_path: str) -> List[Declaration]:
        """Resolve the declarations a call binds to, independently of the reference index.

        `.call` / `.apply` applications are unwrapped, local tear-off aliases
        and destructured bindings are followed, and among overloads the
        signature accepting the argument count wins. A union receiver
        yields one declaration per member type.
        """
        if call_node is None or call_node.type != 'call_expression':
            return []
        args = call_node.child_by_field_name('arguments')
        arity: Optional[int] = len(args.named_children) if args is not None else 0
        if args is not None and any(a.type == 'spread_element' for a in args.named_children):
            arity = None

        callee = unwrap_expression(call_node.child_by_field_name('function'))
        if callee is not None and callee.type == 'member_expression':
            method = node_text(callee.child_by_field_name('property'))
            if method in ('call', 'apply'):
                target = unwrap_expression(callee.child_by_field_name('object'))
                symbols = self._callee_symbols(target, file_path, set())
                if symbols:
                    arity = max(arity - 1, 0) if method == 'call' and arity is not None else None
                    return self._select_signatures(symbols, arity)

        return self._select_signatures(self._callee_symbols(callee, file_path, set()), arity)

    def _callee_symbols(self, callee: Optional[Node], file_path: str, seen: Set[Tuple]) -> List[Symbol]:
        if callee is None:
            return []
        key = node_key(file_path, callee)
        if key in seen:
            return []
        seen.add(key)

        if callee.type == 'member_expression':
            receiver = self.inference.infer(callee.child_by_field_name('object'), file_path)
            if receiver is None:
                return []
            return self.lookup_members(receiver, node_text(callee.child_by_field_name('property')))

        if callee.type == 'identifier':
            binding = self.binding_of(file_path, callee)
            if binding is None:
                return []
            value = None
            if binding.kind == scope.VARIABLE:
                value = binding.decl_node.child_by_field_name('value')
            elif binding.kind == scope.PARAMETER and binding.key is None:
                field_name = 'right' if binding.decl_node.type == 'assignment_pattern' else 'value'
                value = binding.decl_node.child_by_field_name(field_name)
            elif binding.kind == scope.DESTRUCTURED and binding.key is not None:
                receiver = self.inference.infer(binding.decl_node.child_by_field_name('value'), file_path)
                if receiver is None:
                    return []
                return self.lookup_members(receiver, binding.key)
            value = unwrap_expression(value)
            if value is None:
                return []
            if value.type == 'call_expression':
                bind_callee = unwrap_expression(value.child_by_field_name('function'))
                if bind_callee is None or bind_callee.type != 'member_expression' \
                        or node_text(bind_callee.child_by_field_name('property')) != 'bind':
                    return []
                value = unwrap_expression(bind_callee.child_by_field_name('object'))
            if value is None or value.type not in ('member_expression', 'identifier'):
                return []
            return self._callee_symbols(value, file_path, seen)
        return []

    def _select_signatures(self, symbols: List[Symbol], arity: Optional[int]) -> List[Declaration]:
        selected = (self._select_signature(symbol, arity) for symbol in symbols)
        return [decl for decl in selected if decl is not None]

    def _select_signature(self, symbol: Symbol, arity: Optional[int]) -> Optional[Declaration]:
        decls = list(symbol.declarations)
        if not decls:
            return None
        # With overloads, calls bind to a signature, never the implementation
        signatures = [d for d in decls if d.kind != CONCRETE]
        if signatures and any(d.kind == CONCRETE for d in decls):
            decls = signatures
        if arity is not None:
            for decl in decls:
                low, high = parameter_range(decl)
                if low <= arity and (high is None or arity <= high):
                    return decl
        return decls[0]


def parameter_range(decl: Declaration) -> Tuple[int, Optional[int]]:
    """(required, maximum) argument counts; maximum is None with a rest parameter."""
    node = decl.signature if decl.kind == PROPERTY else decl.node
    params = node.child_by_field_name('parameters') if node is not None else None
    if params is None:
        return 0, 0

    required = 0
    maximum = 0
    for param in params.named_children:
        target = param.child_by_field_name('pattern') if param.type in (
            'required_parameter', 'optional_parameter') else param
        if target is not None and target.type == 'this':
            continue
        if target is not None and target.type == 'rest_pattern':
            return required, None
        maximum += 1
        if param.type == 'required_parameter' and param.child_by_field_name('value') is None:
            required = maximum
        elif param.type in ('identifier', 'object_pattern', 'array_pattern'):
            required = maximum
    return required, maximum

