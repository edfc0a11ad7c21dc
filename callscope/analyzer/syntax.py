"""Small helpers over tree-sitter nodes shared by the analyzer modules."""
from typing import Iterator, Optional
from tree_sitter import Node


# Function-like nodes that introduce their own `this`
FUNCTION_SCOPES = {
    'function_declaration',
    'function_expression',
    'function',
    'generator_function_declaration',
    'generator_function',
}

# Function-like nodes of any kind (parameters live on these)
CALLABLE_NODES = FUNCTION_SCOPES | {'arrow_function', 'method_definition'}

CLASS_NODES = {'class_declaration', 'abstract_class_declaration', 'class'}

# Wrappers that do not change which value an expression denotes
TRANSPARENT_EXPRESSIONS = {
    'parenthesized_expression',
    'non_null_expression',
    'as_expression',
    'satisfies_expression',
}


def node_text(node: Optional[Node]) -> str:
    """Decode a node's source text (empty string for None)."""
    if node is None or node.text is None:
        return ''
    return node.text.decode('utf-8', errors='ignore')


def same_node(a: Optional[Node], b: Optional[Node]) -> bool:
    """Structural identity of two nodes from the same tree."""
    if a is None or b is None:
        return False
    return (a.start_byte, a.end_byte, a.type) == (b.start_byte, b.end_byte, b.type)


def node_key(file_path: str, node: Node) -> tuple:
    """Hashable key for a node within a loaded source set."""
    return (file_path, node.start_byte, node.end_byte, node.type)


def traverse(node: Node) -> Iterator[Node]:
    """Iteratively traverse tree using a stack and yield all nodes.

    Children are visited left to right, so the order is source order.
    """
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def unwrap_expression(node: Optional[Node]) -> Optional[Node]:
    """Strip parentheses, `!`, `as T` and `satisfies T` around an expression."""
    while node is not None and node.type in TRANSPARENT_EXPRESSIONS:
        if not node.named_children:
            return None
        node = node.named_children[0]
    return node


def is_callee(node: Node) -> Optional[Node]:
    """Return the call_expression whose callee is `node`, else None."""
    parent = node.parent
    if parent is not None and parent.type == 'call_expression':
        if same_node(parent.child_by_field_name('function'), node):
            return parent
    return None


def has_optional_chain(node: Optional[Node]) -> bool:
    """True when a member or call expression uses `?.`."""
    if node is None:
        return False
    if node.child_by_field_name('optional_chain') is not None:
        return True
    # newer grammars emit a bare `?.` token instead of an optional_chain node
    return any(child.type in ('optional_chain', '?.') for child in node.children)


def is_static_member(node: Node) -> bool:
    """True when a class member node carries the `static` modifier."""
    return any(child.type == 'static' for child in node.children)


def position(node: Node) -> tuple:
    """1-based (line, column) of a node's start."""
    return node.start_point[0] + 1, node.start_point[1] + 1
