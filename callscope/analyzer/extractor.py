"""Type and member declaration extraction from parsed syntax trees."""
from dataclasses import dataclass, field
from functools import cached_property
from typing import Dict, List, Optional, Tuple
from tree_sitter import Tree, Node

from .syntax import CLASS_NODES, FUNCTION_SCOPES, is_static_member, node_text, position, traverse


# Declaration kinds
CONCRETE = 'concrete'      # method with a body
ABSTRACT = 'abstract'      # abstract method signature
SIGNATURE = 'signature'    # interface method signature or overload signature
PROPERTY = 'property'      # function-typed interface property


@dataclass(eq=False)
class Declaration:
    """One member definition on a class or interface."""
    name: str
    type_name: str
    kind: str
    file_path: str
    node: Node = field(repr=False)
    name_node: Node = field(repr=False)
    start_line: int = 0
    start_column: int = 0
    is_static: bool = False
    return_type: Optional[Node] = field(default=None, repr=False)
    # function_type node of a PROPERTY declaration
    signature: Optional[Node] = field(default=None, repr=False)
    owner: Optional['TypeDecl'] = field(default=None, repr=False)
    symbol: Optional['Symbol'] = field(default=None, repr=False)

    @property
    def location(self) -> str:
        return f"{self.file_path}:{self.start_line}:{self.start_column}"

    @cached_property
    def uses_implicit_receiver(self) -> bool:
        """True when the body reads `this` or `super`.

        Nested non-arrow functions and nested classes bind their own
        receiver, so their bodies are not scanned.
        """
        body = self.node.child_by_field_name('body')
        if body is None:
            return False
        stack = [body]
        while stack:
            current = stack.pop()
            if current.type in ('this', 'super'):
                return True
            if current.type in FUNCTION_SCOPES or current.type in CLASS_NODES:
                continue
            stack.extend(current.children)
        return False


@dataclass(frozen=True)
class Symbol:
    """Identity of one named member on one type.

    Groups the declarations that share a binding site (overload signatures
    plus the implementation). Compared by owner and name, never by text.
    """
    name: str
    owner: str
    file_path: str
    owner_offset: int
    is_static: bool = False
    declarations: Tuple[Declaration, ...] = field(default=(), compare=False, repr=False)

    @property
    def qualified_name(self) -> str:
        return f"{self.owner}.{self.name}"


@dataclass(eq=False)
class TypeDecl:
    """A class or interface declaration."""
    name: str
    kind: str  # 'class' or 'interface'
    file_path: str
    node: Node = field(repr=False)
    start_line: int = 0
    exported: bool = False
    is_ambient: bool = False
    extends: List[Node] = field(default_factory=list, repr=False)
    implements: List[Node] = field(default_factory=list, repr=False)
    members: Dict[str, List[Declaration]] = field(default_factory=dict, repr=False)
    static_members: Dict[str, List[Declaration]] = field(default_factory=dict, repr=False)
    fields: Dict[str, Node] = field(default_factory=dict, repr=False)
    symbols: Dict[Tuple[str, bool], Symbol] = field(default_factory=dict, repr=False)

    @property
    def start_byte(self) -> int:
        return self.node.start_byte

    @property
    def identity(self) -> str:
        """Canonical identity used for visited sets and graph nodes."""
        return f"{self.file_path}::{self.name}@{self.node.start_byte}"

    def declarations(self) -> List[Declaration]:
        result = []
        for table in (self.members, self.static_members):
            for decls in table.values():
                result.extend(decls)
        return result


class DeclarationExtractor:
    """Extract classes, interfaces and their members from syntax trees."""

    CLASS_TYPES = {'class_declaration', 'abstract_class_declaration'}
    INTERFACE_TYPES = {'interface_declaration'}

    def __init__(self, language: str):
        """Initialize extractor for given language.

        Args:
            language: One of 'typescript', 'tsx', 'javascript'
        """
        self.language = language
        self._aliases: Dict[str, Node] = {}

    def extract_types(self, tree: Tree, file_path: str) -> List[TypeDecl]:
        """Extract every class and interface declared in a tree.

        Nested declarations (classes inside functions or namespaces) are
        included. Results are in source order.

        Args:
            tree: Parsed tree-sitter Tree
            file_path: Path of the source unit

        Returns:
            List of TypeDecl objects with members grouped into symbols
        """
        self._aliases = self._collect_aliases(tree.root_node)
        types: List[TypeDecl] = []
        self._extract_with_context(tree.root_node, file_path, False, types)
        for type_decl in types:
            self._build_symbols(type_decl)
        return types

    def _extract_with_context(self, node: Node, file_path: str, ambient: bool,
                              types: List[TypeDecl]):
        """Recursively collect type declarations, tracking `declare` contexts."""
        if node.type == 'ambient_declaration':
            ambient = True

        if node.type in self.CLASS_TYPES:
            type_decl = self._extract_class(node, file_path, ambient)
            if type_decl:
                types.append(type_decl)
        elif node.type in self.INTERFACE_TYPES:
            type_decl = self._extract_interface(node, file_path, ambient)
            if type_decl:
                types.append(type_decl)

        for child in node.children:
            self._extract_with_context(child, file_path, ambient, types)

    def _new_type(self, node: Node, kind: str, file_path: str, ambient: bool) -> Optional[TypeDecl]:
        name_node = node.child_by_field_name('name')
        if name_node is None:
            return None
        parent = node.parent
        exported = parent is not None and parent.type == 'export_statement'
        return TypeDecl(
            name=node_text(name_node),
            kind=kind,
            file_path=file_path,
            node=node,
            start_line=node.start_point[0] + 1,
            exported=exported,
            is_ambient=ambient or file_path.endswith('.d.ts'),
        )

    def _extract_class(self, node: Node, file_path: str, ambient: bool) -> Optional[TypeDecl]:
        type_decl = self._new_type(node, 'class', file_path, ambient)
        if type_decl is None:
            return None

        for child in node.children:
            if child.type != 'class_heritage':
                continue
            for clause in child.named_children:
                if clause.type == 'extends_clause':
                    type_decl.extends.extend(clause.children_by_field_name('value'))
                elif clause.type == 'implements_clause':
                    type_decl.implements.extend(
                        c for c in clause.named_children if c.type != 'comment'
                    )
                elif clause.type != 'comment':
                    # JavaScript grammar: `extends <expression>` directly
                    type_decl.extends.append(clause)

        body = node.child_by_field_name('body')
        if body is not None:
            for member in body.named_children:
                self._extract_class_member(member, type_decl)
        return type_decl

    def _extract_class_member(self, member: Node, type_decl: TypeDecl):
        if member.type == 'method_definition':
            name_node = member.child_by_field_name('name')
            name = self._member_name(name_node)
            if name == 'constructor':
                self._extract_parameter_properties(member, type_decl)
                return
            if any(c.type in ('get', 'set') for c in member.children):
                type_decl.fields.setdefault(name, member)
                return
            self._add_member(type_decl, member, name_node, CONCRETE)
        elif member.type == 'method_signature':
            self._add_member(type_decl, member, member.child_by_field_name('name'), SIGNATURE)
        elif member.type == 'abstract_method_signature':
            self._add_member(type_decl, member, member.child_by_field_name('name'), ABSTRACT)
        elif member.type in ('public_field_definition', 'field_definition'):
            name_node = member.child_by_field_name('name') or member.child_by_field_name('property')
            if name_node is not None:
                type_decl.fields[self._member_name(name_node)] = member

    def _extract_parameter_properties(self, ctor: Node, type_decl: TypeDecl):
        """Record `constructor(private repo: Repo)` style parameter properties."""
        params = ctor.child_by_field_name('parameters')
        if params is None:
            return
        for param in params.named_children:
            if param.type not in ('required_parameter', 'optional_parameter'):
                continue
            if not any(c.type in ('accessibility_modifier', 'readonly') for c in param.children):
                continue
            pattern = param.child_by_field_name('pattern')
            if pattern is not None and pattern.type == 'identifier':
                type_decl.fields[node_text(pattern)] = param

    def _extract_interface(self, node: Node, file_path: str, ambient: bool) -> Optional[TypeDecl]:
        type_decl = self._new_type(node, 'interface', file_path, ambient)
        if type_decl is None:
            return None

        for child in node.children:
            if child.type == 'extends_type_clause':
                type_decl.extends.extend(c for c in child.named_children if c.type != 'comment')

        body = node.child_by_field_name('body')
        if body is None:
            return type_decl
        for member in body.named_children:
            if member.type == 'method_signature':
                self._add_member(type_decl, member, member.child_by_field_name('name'), SIGNATURE)
            elif member.type == 'property_signature':
                name_node = member.child_by_field_name('name')
                if name_node is None:
                    continue
                type_decl.fields[self._member_name(name_node)] = member
                if self._function_type(member) is not None:
                    self._add_member(type_decl, member, name_node, PROPERTY)
        return type_decl

    def _collect_aliases(self, root: Node) -> Dict[str, Node]:
        aliases: Dict[str, Node] = {}
        for node in traverse(root):
            if node.type != 'type_alias_declaration':
                continue
            name_node = node.child_by_field_name('name')
            value = node.child_by_field_name('value')
            if name_node is not None and value is not None:
                aliases.setdefault(node_text(name_node), value)
        return aliases

    def _function_type(self, member: Node) -> Optional[Node]:
        """Function type a property is annotated with, seen through parentheses
        and type aliases declared in the same file.
        """
        annotation = member.child_by_field_name('type')
        if annotation is None or not annotation.named_children:
            return None
        type_node = annotation.named_children[0]
        seen = set()
        while type_node is not None:
            if type_node.type == 'parenthesized_type' and type_node.named_children:
                type_node = type_node.named_children[0]
            elif type_node.type == 'type_identifier' and node_text(type_node) not in seen:
                seen.add(node_text(type_node))
                type_node = self._aliases.get(node_text(type_node))
            else:
                break
        if type_node is not None and type_node.type == 'function_type':
            return type_node
        return None
        for type_node in annotation.named_children:
            while type_node.type == 'parenthesized_type' and type_node.named_children:
                type_node = type_node.named_children[0]
            if type_node.type == 'function_type':
                return True
        return False

    def _add_member(self, type_decl: TypeDecl, node: Node, name_node: Optional[Node], kind: str):
        if name_node is None:
            return
        name = self._member_name(name_node)
        line, column = position(node)
        is_static = is_static_member(node)
        return_type = node.child_by_field_name('return_type')
        signature = None
        if kind == PROPERTY:
            signature = self._function_type(node)
            return_type = signature.child_by_field_name('return_type') if signature is not None else None

        decl = Declaration(
            name=name,
            type_name=type_decl.name,
            kind=kind,
            file_path=type_decl.file_path,
            node=node,
            name_node=name_node,
            start_line=line,
            start_column=column,
            is_static=is_static,
            return_type=return_type,
            signature=signature,
            owner=type_decl,
        )
        table = type_decl.static_members if is_static else type_decl.members
        table.setdefault(name, []).append(decl)

    def _build_symbols(self, type_decl: TypeDecl):
        for is_static, table in ((False, type_decl.members), (True, type_decl.static_members)):
            for name, decls in table.items():
                symbol = Symbol(
                    name=name,
                    owner=type_decl.name,
                    file_path=type_decl.file_path,
                    owner_offset=type_decl.node.start_byte,
                    is_static=is_static,
                    declarations=tuple(decls),
                )
                type_decl.symbols[(name, is_static)] = symbol
                for decl in decls:
                    decl.symbol = symbol

    def _member_name(self, name_node: Node) -> str:
        """Member name as written; quotes stripped from string-literal names."""
        text = node_text(name_node)
        if name_node.type == 'string':
            return text.strip('\'"`')
        return text
