"""Tear-off Risk Reasoner.

A tear-off extracts a method as a plain function value (`const fn = obj.m`).
Invoking it later without a receiver is only safe when the method body never
reads `this`/`super`, or when the extraction rebound it (`obj.m.bind(obj)`).
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple
from tree_sitter import Node

from .extractor import Declaration, Symbol
from .reference_classifier import APPLY_METHODS, ReferenceClassifier, TEAROFF_APPLICATION
from .source_model import SourceModelProvider
from .syntax import is_callee, node_text, position, same_node, traverse


# Risk labels
TEAROFF_SAFE = 'tearoff-safe'
TEAROFF_UNSAFE = 'tearoff-unsafe'
BARE_CALLBACK = 'bare-callback'


@dataclass
class TearoffBinding:
    """A local whose initializer is a bare read (or bound read) of the target."""
    name: str
    file_path: str
    line: int
    bound: bool
    name_node: Node = field(repr=False)


@dataclass
class RiskLabel:
    label: str
    file_path: str
    line: int
    column: int
    start_byte: int
    text: str
    binding: Optional[str] = None
    node: Optional[Node] = field(default=None, repr=False)

    def to_dict(self) -> dict:
        return {
            'label': self.label,
            'file': self.file_path,
            'line': self.line,
            'column': self.column,
            'text': self.text,
            'binding': self.binding,
        }


class TearoffRiskReasoner:
    """Label every use of a torn-off method value by receiver risk."""

    def __init__(self, model: SourceModelProvider):
        self.model = model
        self.bindings: List[TearoffBinding] = []

    def find_bindings(self, decl: Declaration, equivalence_symbols: Iterable[Symbol]) -> List[TearoffBinding]:
        """Locals and parameter defaults initialized from the target method.

        Only property reads that resolve into the equivalence set count;
        a same-named method on an unrelated type is not a tear-off of ours.
        """
        target_nodes = self._reference_keys(equivalence_symbols)
        bindings = []
        for unit in self.model.units():
            for node in traverse(unit.tree.root_node):
                name_node, value = _binding_initializer(node)
                if name_node is None or name_node.type != 'identifier' or value is None:
                    continue
                source = self.model.tearoff_source(unit.path, value)
                if source is None:
                    continue
                reference, bound = source
                if (reference.file_path, reference.start_byte) not in target_nodes:
                    continue
                if reference.name != decl.name:
                    continue
                bindings.append(TearoffBinding(
                    name=node_text(name_node),
                    file_path=unit.path,
                    line=position(name_node)[0],
                    bound=bound,
                    name_node=name_node,
                ))
        return bindings

    def assess(self, decl: Declaration, equivalence_symbols: Iterable[Symbol]) -> List[RiskLabel]:
        """Label each use of each tear-off binding, plus direct `.call`/`.apply` applications.

        Args:
            decl: The target declaration (its receiver use decides the risk)
            equivalence_symbols: The declaration's equivalence set

        Returns:
            Risk labels deduplicated by (file, offset), sorted by file then offset
        """
        symbols = list(equivalence_symbols)
        uses_receiver = decl.uses_implicit_receiver
        labels: Dict[Tuple[str, int], RiskLabel] = {}

        self.bindings = self.find_bindings(decl, symbols)
        for binding in self.bindings:
            for use in self.model.find_binding_references(binding.file_path, binding.name_node):
                risk = self._classify_use(use, binding, uses_receiver)
                if risk is not None:
                    labels.setdefault((risk.file_path, risk.start_byte), risk)

        for risk in self._direct_applications(decl, symbols):
            labels.setdefault((risk.file_path, risk.start_byte), risk)

        return sorted(labels.values(), key=lambda r: (r.file_path, r.start_byte))

    def _classify_use(self, use: Node, binding: TearoffBinding, uses_receiver: bool) -> Optional[RiskLabel]:
        call = is_callee(use)
        if call is not None:
            if binding.bound or not uses_receiver:
                return _label(TEAROFF_SAFE, binding.file_path, call, binding.name)
            return _label(TEAROFF_UNSAFE, binding.file_path, call, binding.name)

        parent = use.parent
        if parent is not None and parent.type == 'member_expression' \
                and same_node(parent.child_by_field_name('object'), use) \
                and node_text(parent.child_by_field_name('property')) in APPLY_METHODS:
            call = is_callee(parent)
            if call is not None:
                # receiver supplied explicitly
                return _label(TEAROFF_SAFE, binding.file_path, call, binding.name)
            return None

        if parent is not None and parent.type == 'arguments':
            call = parent.parent
            if call is None or call.type not in ('call_expression', 'new_expression'):
                return None
            if not binding.bound and uses_receiver:
                return _label(BARE_CALLBACK, binding.file_path, call, binding.name)
            return _label(TEAROFF_SAFE, binding.file_path, call, binding.name)
        return None

    def _direct_applications(self, decl: Declaration, symbols: List[Symbol]) -> List[RiskLabel]:
        """`recv.m.call(...)` / `recv.m.apply(...)` on the target itself."""
        result = []
        seen: Set[Tuple[str, int]] = set()
        for symbol in symbols:
            for symbol_decl in symbol.declarations:
                if not self.model.is_reference_findable(symbol_decl):
                    continue
                for reference in self.model.find_references(symbol_decl):
                    if reference.alias or reference.name != decl.name:
                        continue
                    match = ReferenceClassifier.match_invocation(reference.node)
                    if match is None or match[0] != TEAROFF_APPLICATION:
                        continue
                    call = match[1]
                    if (reference.file_path, call.start_byte) in seen:
                        continue
                    seen.add((reference.file_path, call.start_byte))
                    result.append(_label(TEAROFF_SAFE, reference.file_path, call))
        return result

    def _reference_keys(self, symbols: Iterable[Symbol]) -> Set[Tuple[str, int]]:
        keys = set()
        for symbol in symbols:
            for symbol_decl in symbol.declarations:
                if not self.model.is_reference_findable(symbol_decl):
                    continue
                for reference in self.model.find_references(symbol_decl):
                    if not reference.alias:
                        keys.add((reference.file_path, reference.start_byte))
        return keys


def _binding_initializer(node: Node) -> Tuple[Optional[Node], Optional[Node]]:
    """(name, initializer) for declarators and defaulted parameters."""
    if node.type == 'variable_declarator':
        return node.child_by_field_name('name'), node.child_by_field_name('value')
    if node.type in ('required_parameter', 'optional_parameter'):
        return node.child_by_field_name('pattern'), node.child_by_field_name('value')
    if node.type == 'assignment_pattern' and node.parent is not None \
            and node.parent.type == 'formal_parameters':
        return node.child_by_field_name('left'), node.child_by_field_name('right')
    return None, None


def _label(label: str, file_path: str, call: Node, binding: Optional[str] = None) -> RiskLabel:
    line, column = position(call)
    return RiskLabel(label=label, file_path=file_path, line=line, column=column,
                     start_byte=call.start_byte, text=node_text(call), binding=binding, node=call)
