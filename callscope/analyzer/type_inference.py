"""Static, local receiver-type inference over tree-sitter syntax.

Answers "which class or interface does this expression evaluate to?" well
enough to attribute `recv.m` to a member symbol. Only declared information
is used: annotations, constructors, generic constraints, field and return
type annotations. Anything else is unknown (None), never guessed by name.

A union (`A | B`) infers to every member type, and an array (`A[]`,
`Array<A>`) infers to its element types flagged as an array.
"""
from typing import TYPE_CHECKING, Dict, Iterable, List, NamedTuple, Optional, Set, Tuple
from tree_sitter import Node

from . import scope
from .extractor import TypeDecl
from .syntax import (
    CLASS_NODES,
    FUNCTION_SCOPES,
    is_static_member,
    node_key,
    node_text,
    same_node,
    unwrap_expression,
)

if TYPE_CHECKING:
    from .source_model import TreeSitterSourceModel


MAX_DEPTH = 64

PROMISE_TYPES = {'Promise', 'PromiseLike'}
ARRAY_TYPES = {'Array', 'ReadonlyArray'}

# Array methods whose callback receives an element as its first argument
ITERATION_METHODS = {'forEach', 'map', 'filter', 'some', 'every', 'find', 'findIndex',
                     'findLast', 'findLastIndex', 'flatMap'}

# Array methods returning one element
ELEMENT_METHODS = {'find', 'findLast', 'at', 'pop', 'shift'}


class ReceiverType(NamedTuple):
    """Inferred type of an expression: declarations and which side of them.

    `alternatives` holds the remaining members of a union after `decl`.
    With `array` set, the expression is an array of values of these types.
    """
    decl: TypeDecl
    static: bool = False
    alternatives: Tuple[TypeDecl, ...] = ()
    array: bool = False

    def decls(self) -> Tuple[TypeDecl, ...]:
        return (self.decl,) + self.alternatives

    def element(self) -> Optional['ReceiverType']:
        return self._replace(array=False) if self.array else None


def merge_types(results: Iterable[Optional[ReceiverType]]) -> Optional[ReceiverType]:
    """Union of inferred types.

    Unknown results are skipped. Results whose shape (static side, array)
    differs from the first known one are dropped.
    """
    first = None
    decls: List[TypeDecl] = []
    for result in results:
        if result is None:
            continue
        if first is None:
            first = result
        elif (result.static, result.array) != (first.static, first.array):
            continue
        for decl in result.decls():
            if not any(decl is seen for seen in decls):
                decls.append(decl)
    if first is None:
        return None
    return ReceiverType(decls[0], first.static, tuple(decls[1:]), first.array)


def _array_of(element: Optional[ReceiverType]) -> Optional[ReceiverType]:
    # nested arrays are not tracked
    if element is None or element.array:
        return None
    return element._replace(array=True)


class TypeInference:
    """Memoized receiver inference for one model snapshot.

    Results are cached per (node, awaited) and a re-entrant query on the same
    node yields None, so cyclic initializers (`const a = b; const b = a`)
    terminate.
    """

    def __init__(self, model: 'TreeSitterSourceModel'):
        self.model = model
        self._memo: Dict[Tuple, Optional[ReceiverType]] = {}
        self._active: Set[Tuple] = set()

    # -------------------------------------------------------------------------
    # Expressions
    # -------------------------------------------------------------------------

    def infer(self, node: Optional[Node], file_path: str, awaited: bool = False) -> Optional[ReceiverType]:
        """Infer the type an expression evaluates to.

        Args:
            node: Expression node
            file_path: File the node belongs to
            awaited: True when the value is awaited (unwraps Promise<T>)

        Returns:
            ReceiverType, or None when the type is unknown
        """
        if node is None:
            return None
        key = ('expr', awaited) + node_key(file_path, node)
        if key in self._memo:
            return self._memo[key]
        if key in self._active or len(self._active) >= MAX_DEPTH:
            return None

        self._active.add(key)
        try:
            result = self._infer(node, file_path, awaited)
        finally:
            self._active.discard(key)
        self._memo[key] = result
        return result

    def _infer(self, node: Node, file_path: str, awaited: bool) -> Optional[ReceiverType]:
        kind = node.type

        if kind == 'this':
            return self._this_type(node, file_path)
        if kind == 'super':
            this_type = self._this_type(node, file_path)
            if this_type is None:
                return None
            base = self.model.get_base_type(this_type.decl)
            return ReceiverType(base, this_type.static) if base else None
        if kind == 'identifier':
            return self._identifier_type(node, file_path, awaited)
        if kind in ('parenthesized_expression', 'non_null_expression'):
            return self.infer(_first_named(node), file_path, awaited)
        if kind == 'satisfies_expression':
            return self.infer(_first_named(node), file_path, awaited)
        if kind == 'as_expression':
            type_node = node.named_children[-1] if len(node.named_children) > 1 else None
            if type_node is None or node_text(type_node) == 'const':
                return self.infer(_first_named(node), file_path, awaited)
            return self.type_from_node(type_node, file_path, node, awaited)
        if kind == 'type_assertion':
            type_args = _first_named(node)
            expr = node.named_children[-1] if node.named_children else None
            if type_args is not None and type_args.type == 'type_arguments' and type_args.named_children:
                return self.type_from_node(type_args.named_children[0], file_path, node, awaited)
            return self.infer(expr, file_path, awaited)
        if kind == 'await_expression':
            return self.infer(_first_named(node), file_path, True)
        if kind == 'new_expression':
            ctor = self.infer(node.child_by_field_name('constructor'), file_path)
            if ctor and ctor.static and not ctor.array and ctor.decl.kind == 'class':
                return ReceiverType(ctor.decl, False)
            return None
        if kind == 'member_expression':
            return self._member_type(node, file_path, awaited)
        if kind == 'call_expression':
            return self._call_type(node, file_path, awaited)
        if kind == 'assignment_expression':
            return self.infer(node.child_by_field_name('right'), file_path, awaited)
        if kind == 'ternary_expression':
            return merge_types([
                self.infer(node.child_by_field_name('consequence'), file_path, awaited),
                self.infer(node.child_by_field_name('alternative'), file_path, awaited),
            ])
        if kind == 'subscript_expression':
            container = self.infer(node.child_by_field_name('object'), file_path)
            return container.element() if container else None
        if kind == 'array':
            return _array_of(merge_types(
                self.infer(child, file_path) for child in node.named_children if child.type != 'spread_element'
            ))
        return None

    def _this_type(self, node: Node, file_path: str) -> Optional[ReceiverType]:
        """Enclosing class of `this`, crossing arrow functions only."""
        current = node.parent
        static = False
        while current is not None:
            if current.type in FUNCTION_SCOPES:
                return None
            if current.type in ('method_definition', 'public_field_definition', 'field_definition',
                                'class_static_block'):
                static = current.type == 'class_static_block' or is_static_member(current)
                if current.parent is None or current.parent.type != 'class_body':
                    # object-literal method: `this` is the literal
                    return None
            if current.type == 'class_body':
                owner = current.parent
                if owner is None or owner.type not in CLASS_NODES:
                    return None
                decl = self.model.type_for_node(owner, file_path)
                return ReceiverType(decl, static) if decl else None
            current = current.parent
        return None

    def _identifier_type(self, node: Node, file_path: str, awaited: bool) -> Optional[ReceiverType]:
        name = node_text(node)
        if name == 'undefined':
            return None
        binding = self.model.binding_of(file_path, node)
        if binding is None:
            decl = self.model.resolve_type_name(name, file_path)
            if decl is not None and decl.kind == 'class':
                return ReceiverType(decl, True)
            return None
        return self.binding_type(binding, file_path, awaited)

    def binding_type(self, binding: scope.Binding, file_path: str, awaited: bool = False) -> Optional[ReceiverType]:
        """Type of the value a local binding holds."""
        decl_node = binding.decl_node

        if binding.kind == scope.CLASS:
            decl = self.model.type_for_node(decl_node, file_path)
            return ReceiverType(decl, True) if decl else None

        if binding.kind == scope.IMPORT:
            decl = self.model.resolve_type_name(binding.name, file_path)
            if decl is not None and decl.kind == 'class':
                return ReceiverType(decl, True)
            return None

        if binding.kind == scope.FUNCTION:
            return None

        if binding.kind == scope.VARIABLE:
            if decl_node.type == 'for_in_statement':
                return self._loop_element(decl_node, file_path)
            annotation = decl_node.child_by_field_name('type')
            if annotation is not None:
                return self.type_from_node(annotation, file_path, decl_node, awaited)
            return self.infer(decl_node.child_by_field_name('value'), file_path, awaited)

        if binding.kind == scope.DESTRUCTURED:
            if binding.key is None:
                return None
            source = self.infer(decl_node.child_by_field_name('value'), file_path)
            if source is None:
                return None
            return self.field_type(source, binding.key, awaited)

        if binding.kind == scope.PARAMETER:
            param = decl_node
            if binding.key is not None:
                annotation = param.child_by_field_name('type')
                source = self.type_from_node(annotation, file_path, param) if annotation else None
                return self.field_type(source, binding.key, awaited) if source else None
            if param.type in ('required_parameter', 'optional_parameter'):
                annotation = param.child_by_field_name('type')
                if annotation is not None:
                    return self.type_from_node(annotation, file_path, param, awaited)
                value = param.child_by_field_name('value')
                if value is not None:
                    return self.infer(value, file_path, awaited)
                return self._callback_element(param, file_path)
            if param.type == 'identifier':
                return self._callback_element(param, file_path)
            if param.type == 'assignment_pattern':
                return self.infer(param.child_by_field_name('right'), file_path, awaited)
        return None

    def _loop_element(self, loop: Node, file_path: str) -> Optional[ReceiverType]:
        """Element type bound by `for (const x of xs)`; `for ... in` binds keys."""
        if not any(child.type == 'of' for child in loop.children):
            return None
        container = self.infer(loop.child_by_field_name('right'), file_path)
        return container.element() if container else None

    def _callback_element(self, param: Node, file_path: str) -> Optional[ReceiverType]:
        """Type of an untyped first parameter of an iteration callback.

        `xs.forEach(x => x.m())` gives `x` the element type of `xs`.
        """
        fn = param.parent
        if fn is not None and fn.type == 'formal_parameters':
            params = [p for p in fn.named_children if p.type != 'comment']
            if not params or not same_node(params[0], param):
                return None
            fn = fn.parent
        if fn is None or fn.type not in ('arrow_function', 'function_expression', 'function'):
            return None

        args = fn.parent
        if args is None or args.type != 'arguments' or not same_node(_first_named(args), fn):
            return None
        call = args.parent
        if call is None or call.type != 'call_expression':
            return None
        callee = unwrap_expression(call.child_by_field_name('function'))
        if callee is None or callee.type != 'member_expression' \
                or node_text(callee.child_by_field_name('property')) not in ITERATION_METHODS:
            return None
        container = self.infer(callee.child_by_field_name('object'), file_path)
        return container.element() if container else None

    def _member_type(self, node: Node, file_path: str, awaited: bool) -> Optional[ReceiverType]:
        obj = node.child_by_field_name('object')
        prop = node.child_by_field_name('property')
        if obj is None or prop is None:
            return None

        # `ns.Class` through a namespace import
        obj_inner = unwrap_expression(obj)
        if obj_inner is not None and obj_inner.type == 'identifier':
            decl = self.model.resolve_qualified(node_text(obj_inner), node_text(prop), file_path)
            if decl is not None and decl.kind == 'class':
                return ReceiverType(decl, True)

        receiver = self.infer(obj, file_path)
        if receiver is None:
            return None
        return self.field_type(receiver, node_text(prop), awaited)

    def field_type(self, receiver: ReceiverType, name: str, awaited: bool = False) -> Optional[ReceiverType]:
        """Declared type of a field, parameter property or getter on a type.

        On a union receiver the result is the union of each member's field type.
        """
        if receiver.array:
            return None
        return merge_types(self._own_field_type(decl, receiver.static, name, awaited)
                           for decl in receiver.decls())

    def _own_field_type(self, decl: TypeDecl, static: bool, name: str, awaited: bool) -> Optional[ReceiverType]:
        for owner in self.model.member_search_order(decl):
            field_node = owner.fields.get(name)
            if field_node is None:
                continue
            if field_node.type in ('public_field_definition', 'field_definition') \
                    and is_static_member(field_node) != static:
                continue
            annotation = field_node.child_by_field_name('type')
            if field_node.type == 'method_definition':
                annotation = field_node.child_by_field_name('return_type')
            if annotation is not None:
                return self.type_from_node(annotation, owner.file_path, field_node, awaited)
            value = field_node.child_by_field_name('value')
            if value is not None:
                return self.infer(value, owner.file_path, awaited)
            return None
        return None

    def _call_type(self, node: Node, file_path: str, awaited: bool) -> Optional[ReceiverType]:
        callee = unwrap_expression(node.child_by_field_name('function'))
        if callee is None:
            return None

        if callee.type == 'member_expression':
            receiver = self.infer(callee.child_by_field_name('object'), file_path)
            if receiver is None:
                return None
            name = node_text(callee.child_by_field_name('property'))
            if receiver.array:
                return receiver.element() if name in ELEMENT_METHODS else None
            results = []
            for symbol in self.model.lookup_members(receiver, name):
                for decl in symbol.declarations:
                    if decl.return_type is not None:
                        results.append(self.type_from_node(decl.return_type, decl.file_path, decl.node, awaited))
                        break
            return merge_types(results)

        if callee.type == 'identifier':
            binding = self.model.binding_of(file_path, callee)
            if binding is None:
                return None
            fn = binding.decl_node
            if binding.kind == scope.VARIABLE:
                fn = unwrap_expression(fn.child_by_field_name('value'))
            elif binding.kind != scope.FUNCTION:
                return None
            if fn is None:
                return None
            return_type = fn.child_by_field_name('return_type')
            if return_type is not None:
                return self.type_from_node(return_type, file_path, fn, awaited)
        return None

    # -------------------------------------------------------------------------
    # Type syntax
    # -------------------------------------------------------------------------

    def type_from_node(self, type_node: Optional[Node], file_path: str, context: Node,
                       awaited: bool = False) -> Optional[ReceiverType]:
        """Resolve a type annotation to a declaration.

        Args:
            type_node: Type syntax (annotation, identifier, generic, union, ...)
            file_path: File the annotation belongs to
            context: Node whose ancestors declare the visible type parameters
            awaited: Unwrap Promise<T> / PromiseLike<T>
        """
        if type_node is None:
            return None
        key = ('type', awaited) + node_key(file_path, type_node)
        if key in self._memo:
            return self._memo[key]
        if key in self._active or len(self._active) >= MAX_DEPTH:
            return None

        self._active.add(key)
        try:
            result = self._type_from_node(type_node, file_path, context, awaited)
        finally:
            self._active.discard(key)
        self._memo[key] = result
        return result

    def _type_from_node(self, type_node: Node, file_path: str, context: Node,
                        awaited: bool) -> Optional[ReceiverType]:
        kind = type_node.type

        if kind in ('type_annotation', 'parenthesized_type', 'constraint', 'asserts_annotation',
                    'readonly_type'):
            return self.type_from_node(type_node.named_children[-1] if type_node.named_children else None,
                                       file_path, context, awaited)

        if kind == 'type_identifier':
            name = node_text(type_node)
            type_param = _find_type_parameter(context, name)
            if type_param is not None:
                constraint = type_param.child_by_field_name('constraint')
                return self.type_from_node(constraint, file_path, type_param, awaited) if constraint else None
            alias = self.model.type_alias(file_path, name)
            if alias is not None:
                return self.type_from_node(alias, file_path, alias, awaited)
            decl = self.model.resolve_type_name(name, file_path)
            return ReceiverType(decl, False) if decl else None

        if kind == 'nested_type_identifier':
            module = type_node.child_by_field_name('module')
            name = type_node.child_by_field_name('name')
            decl = self.model.resolve_qualified(node_text(module), node_text(name), file_path)
            return ReceiverType(decl, False) if decl else None

        if kind == 'array_type':
            return _array_of(self.type_from_node(_first_named(type_node), file_path, context))

        if kind == 'generic_type':
            name_node = type_node.child_by_field_name('name')
            if node_text(name_node) in ARRAY_TYPES:
                args = type_node.child_by_field_name('type_arguments')
                if args is None or not args.named_children:
                    return None
                return _array_of(self.type_from_node(args.named_children[0], file_path, context))
            if awaited and node_text(name_node) in PROMISE_TYPES:
                args = type_node.child_by_field_name('type_arguments')
                if args is not None and args.named_children:
                    return self.type_from_node(args.named_children[0], file_path, context, awaited)
                return None
            return self.type_from_node(name_node, file_path, context)

        if kind == 'union_type':
            return merge_types(self.type_from_node(member, file_path, context, awaited)
                               for member in _flatten_union(type_node) if not _is_nullish(member))

        if kind == 'type_query':
            target = _first_named(type_node)
            if target is not None and target.type == 'identifier':
                decl = self.model.resolve_type_name(node_text(target), file_path)
                if decl is not None and decl.kind == 'class':
                    return ReceiverType(decl, True)
            return None

        return None


def _first_named(node: Node) -> Optional[Node]:
    return node.named_children[0] if node.named_children else None


def _find_type_parameter(context: Optional[Node], name: str) -> Optional[Node]:
    """Nearest enclosing `<name ...>` type parameter declaration."""
    current = context
    while current is not None:
        params = current.child_by_field_name('type_parameters')
        if params is not None:
            for param in params.named_children:
                if param.type == 'type_parameter' and node_text(param.child_by_field_name('name')) == name:
                    return param
        current = current.parent
    return None


def _flatten_union(node: Node):
    for child in node.named_children:
        if child.type == 'union_type':
            yield from _flatten_union(child)
        else:
            yield child


def _is_nullish(type_node: Node) -> bool:
    return node_text(type_node) in ('null', 'undefined', 'void')
