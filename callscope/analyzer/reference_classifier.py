"""Reference Classifier: turn symbol references into labelled call sites."""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple
from tree_sitter import Node

from .extractor import Declaration, Symbol
from .source_model import Reference, SourceModelProvider
from .syntax import has_optional_chain, is_callee, node_text, position, same_node


# Call site labels
DIRECT = 'direct'
OPTIONAL = 'optional'
TEAROFF = 'tearoff'
SUPER = 'super'

# Invocation patterns
NAME_CALLEE = 'name-callee'
DIRECT_IDENTIFIER = 'direct-identifier'
TEAROFF_APPLICATION = 'tear-off-application'

APPLY_METHODS = ('call', 'apply')


@dataclass
class CallSite:
    """A reference that takes part in an invocation."""
    label: str
    file_path: str
    line: int
    column: int
    start_byte: int
    text: str
    node: Node = field(repr=False)
    symbol: Optional[Symbol] = field(default=None, repr=False)
    resolved: bool = True

    @property
    def key(self) -> Tuple[str, int]:
        return self.file_path, self.start_byte

    def to_dict(self) -> dict:
        return {
            'label': self.label,
            'file': self.file_path,
            'line': self.line,
            'column': self.column,
            'text': self.text,
        }


def symbol_sort_key(symbol: Symbol) -> tuple:
    return symbol.file_path, symbol.owner_offset, symbol.name, symbol.is_static


class ReferenceClassifier:
    """Classify every reference to an equivalence set by invocation pattern."""

    def __init__(self, model: SourceModelProvider):
        self.model = model
        self.skipped: List[Declaration] = []

    def classify(self, symbols: Iterable[Symbol], skip_super: bool = False) -> List[CallSite]:
        """Collect labelled call sites for a set of symbols.

        Args:
            symbols: Equivalence set to search for
            skip_super: Drop `super.m(...)` calls

        Returns:
            Call sites deduplicated by (file, invocation offset), sorted by
            file path then offset. The first classification of a site wins.
        """
        self.skipped = []
        sites: Dict[Tuple[str, int], CallSite] = {}

        for symbol in sorted(symbols, key=symbol_sort_key):
            for decl in symbol.declarations:
                if not self.model.is_reference_findable(decl):
                    self.skipped.append(decl)
                    continue
                for reference in self.model.find_references(decl):
                    site = self.classify_reference(reference)
                    if site is None or (skip_super and site.label == SUPER):
                        continue
                    sites.setdefault(site.key, site)

        return sorted(sites.values(), key=lambda s: (s.file_path, s.start_byte))

    def classify_reference(self, reference: Reference) -> Optional[CallSite]:
        """Label one reference, or None when it is not part of an invocation."""
        match = self.match_invocation(reference.node)
        if match is None:
            return None
        pattern, call, access = match

        if access is not None and _receiver_is_super(access):
            label = SUPER
        elif pattern == TEAROFF_APPLICATION:
            label = TEAROFF
        elif has_optional_chain(access) or has_optional_chain(call):
            label = OPTIONAL
        else:
            label = DIRECT

        line, column = position(call)
        return CallSite(
            label=label,
            file_path=reference.file_path,
            line=line,
            column=column,
            start_byte=call.start_byte,
            text=node_text(call),
            node=call,
            symbol=reference.symbol,
            resolved=reference.resolved,
        )

    @staticmethod
    def match_invocation(node: Node) -> Optional[Tuple[str, Node, Optional[Node]]]:
        """Match a reference node against the invocation patterns.

        Returns:
            (pattern, call_expression, member access or None), or None when
            the reference is not invoked
        """
        parent = node.parent
        if parent is None:
            return None

        if node.type == 'identifier':
            call = is_callee(node)
            if call is not None:
                return DIRECT_IDENTIFIER, call, None
            if _is_apply_access(parent, node):
                call = is_callee(parent)
                if call is not None:
                    return TEAROFF_APPLICATION, call, None
            return None

        if parent.type != 'member_expression' or not same_node(parent.child_by_field_name('property'), node):
            return None
        access = parent

        call = is_callee(access)
        if call is not None:
            return NAME_CALLEE, call, access

        outer = access.parent
        if outer is not None and _is_apply_access(outer, access):
            call = is_callee(outer)
            if call is not None:
                return TEAROFF_APPLICATION, call, access
        return None


def _is_apply_access(node: Node, target: Node) -> bool:
    """True for `<target>.call` / `<target>.apply`."""
    return (
        node.type == 'member_expression'
        and same_node(node.child_by_field_name('object'), target)
        and node_text(node.child_by_field_name('property')) in APPLY_METHODS
    )


def _receiver_is_super(access: Node) -> bool:
    obj = access.child_by_field_name('object')
    return obj is not None and obj.type == 'super'
