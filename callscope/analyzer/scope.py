"""Lexical scope lookup: which declaration does an identifier refer to?

Pure syntax, no types. Block-scoped lookup walks outward from the use
through parameters, blocks, loop heads and catch clauses. `var` hoisting
out of nested blocks is not modelled.
"""
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple
from tree_sitter import Node

from .syntax import CALLABLE_NODES, node_text


# Binding kinds
VARIABLE = 'variable'
DESTRUCTURED = 'destructured'
PARAMETER = 'parameter'
FUNCTION = 'function'
CLASS = 'class'
IMPORT = 'import'

BLOCK_SCOPES = {'program', 'statement_block', 'switch_case', 'switch_default', 'class_static_block'}

DECLARATION_STATEMENTS = {'lexical_declaration', 'variable_declaration'}


@dataclass(frozen=True)
class Binding:
    """A local name and the syntax that introduces it.

    `decl_node` is the variable_declarator, parameter, function, class or
    import statement. `key` is the property name for destructured bindings.
    """
    kind: str
    name_node: Node
    decl_node: Node
    key: Optional[str] = None

    @property
    def name(self) -> str:
        return node_text(self.name_node)


def resolve_binding(ident: Node) -> Optional[Binding]:
    """Find the declaration an identifier refers to, innermost scope first."""
    name = node_text(ident)
    if not name:
        return None

    node = ident
    while node.parent is not None:
        parent = node.parent

        if parent.type in CALLABLE_NODES:
            binding = _parameter_binding(parent, name)
            if binding:
                return binding
            if parent.type in ('function_expression', 'function', 'generator_function'):
                fn_name = parent.child_by_field_name('name')
                if fn_name is not None and node_text(fn_name) == name:
                    return Binding(FUNCTION, fn_name, parent)

        elif parent.type in BLOCK_SCOPES:
            binding = _block_binding(parent, name)
            if binding:
                return binding

        elif parent.type in ('for_statement', 'for_in_statement'):
            for field_name in ('initializer', 'left'):
                head = parent.child_by_field_name(field_name)
                if head is None:
                    continue
                if head.type in DECLARATION_STATEMENTS:
                    binding = _statement_binding(head, name)
                elif head.type == 'identifier' and node_text(head) == name \
                        and any(c.type in ('const', 'let', 'var') for c in parent.children):
                    binding = Binding(VARIABLE, head, parent)
                else:
                    binding = None
                if binding:
                    return binding

        elif parent.type == 'catch_clause':
            param = parent.child_by_field_name('parameter')
            if param is not None:
                found = _pattern_identifier(param, name)
                if found:
                    return Binding(PARAMETER, found[0], parent)

        node = parent
    return None


def _parameter_binding(fn: Node, name: str) -> Optional[Binding]:
    single = fn.child_by_field_name('parameter')
    if single is not None and single.type == 'identifier' and node_text(single) == name:
        return Binding(PARAMETER, single, single)

    params = fn.child_by_field_name('parameters')
    if params is None:
        return None
    for param in params.named_children:
        target = param.child_by_field_name('pattern') if param.type in (
            'required_parameter', 'optional_parameter') else param
        if target is None:
            continue
        found = _pattern_identifier(target, name)
        if found:
            name_node, key = found
            return Binding(PARAMETER, name_node, param, key)
    return None


def _block_binding(block: Node, name: str) -> Optional[Binding]:
    for statement in block.named_children:
        binding = _statement_binding(statement, name)
        if binding:
            return binding
    return None


def _statement_binding(statement: Node, name: str) -> Optional[Binding]:
    if statement.type == 'export_statement':
        declaration = statement.child_by_field_name('declaration')
        if declaration is None:
            return None
        return _statement_binding(declaration, name)

    if statement.type in DECLARATION_STATEMENTS:
        for declarator in statement.named_children:
            if declarator.type != 'variable_declarator':
                continue
            target = declarator.child_by_field_name('name')
            if target is None:
                continue
            if target.type == 'identifier':
                if node_text(target) == name:
                    return Binding(VARIABLE, target, declarator)
                continue
            found = _pattern_identifier(target, name)
            if found:
                return Binding(DESTRUCTURED, found[0], declarator, found[1])
        return None

    if statement.type in ('function_declaration', 'generator_function_declaration',
                          'function_signature'):
        fn_name = statement.child_by_field_name('name')
        if fn_name is not None and node_text(fn_name) == name:
            return Binding(FUNCTION, fn_name, statement)
        return None

    if statement.type in ('class_declaration', 'abstract_class_declaration'):
        class_name = statement.child_by_field_name('name')
        if class_name is not None and node_text(class_name) == name:
            return Binding(CLASS, class_name, statement)
        return None

    if statement.type == 'import_statement':
        for local in import_locals(statement):
            if node_text(local) == name:
                return Binding(IMPORT, local, statement)
    return None


def import_locals(statement: Node) -> Iterator[Node]:
    """Yield the local name nodes an import statement introduces."""
    for clause in statement.named_children:
        if clause.type == 'import_require_clause':
            for child in clause.named_children:
                if child.type == 'identifier':
                    yield child
                    break
            continue
        if clause.type != 'import_clause':
            continue
        for child in clause.named_children:
            if child.type == 'identifier':
                yield child
            elif child.type == 'namespace_import':
                yield from (c for c in child.named_children if c.type == 'identifier')
            elif child.type == 'named_imports':
                for specifier in child.named_children:
                    if specifier.type != 'import_specifier':
                        continue
                    local = specifier.child_by_field_name('alias') or specifier.child_by_field_name('name')
                    if local is not None:
                        yield local


def _pattern_identifier(pattern: Node, name: str) -> Optional[Tuple[Node, Optional[str]]]:
    """Find `name` inside a binding pattern.

    Returns:
        (identifier node, property key) where the key is set only for
        object-pattern entries (`{ m }` or `{ m: alias }`), else None
    """
    if pattern.type == 'identifier':
        return (pattern, None) if node_text(pattern) == name else None

    if pattern.type == 'object_pattern':
        for prop in pattern.named_children:
            if prop.type == 'shorthand_property_identifier_pattern':
                if node_text(prop) == name:
                    return prop, name
            elif prop.type == 'object_assignment_pattern':
                left = prop.child_by_field_name('left')
                if left is not None and node_text(left) == name:
                    return left, name
            elif prop.type == 'pair_pattern':
                key = prop.child_by_field_name('key')
                value = prop.child_by_field_name('value')
                if value is None:
                    continue
                if value.type == 'identifier':
                    if node_text(value) == name:
                        return value, node_text(key)
                    continue
                if value.type == 'assignment_pattern':
                    left = value.child_by_field_name('left')
                    if left is not None and left.type == 'identifier' and node_text(left) == name:
                        return left, node_text(key)
                    continue
                found = _pattern_identifier(value, name)
                if found:
                    return found[0], None
            elif prop.type == 'rest_pattern':
                found = _pattern_identifier(prop, name)
                if found:
                    return found[0], None
        return None

    if pattern.type in ('array_pattern', 'rest_pattern'):
        for child in pattern.named_children:
            found = _pattern_identifier(child, name)
            if found:
                return found[0], None
        return None

    if pattern.type == 'assignment_pattern':
        left = pattern.child_by_field_name('left')
        if left is not None:
            return _pattern_identifier(left, name)
    return None
