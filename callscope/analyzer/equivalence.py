"""Equivalence Set Builder.

The equivalence set of a method is every member symbol a call could be
written against and still dispatch to that method: the method itself, the
same-named members it overrides up the class chain, and the same-named
members of every interface the chain implements (transitively).
"""
from typing import List, Set

from .extractor import Declaration, Symbol, TypeDecl
from .source_model import SourceModelProvider


class EquivalenceSetBuilder:
    """Collect the symbols equivalent to one concrete declaration."""

    def __init__(self, model: SourceModelProvider):
        self.model = model
        self.visited_interfaces: List[str] = []

    def build(self, decl: Declaration) -> Set[Symbol]:
        """Build the equivalence set for a declaration.

        Levels of the base chain that do not declare the member are skipped,
        not terminal: `C extends B extends A` with `m` on C and A still links
        C.m to A.m. Each interface is visited at most once, so cyclic and
        diamond-shaped `extends` graphs terminate.

        Args:
            decl: The resolved concrete declaration

        Returns:
            Set of symbols, always including the declaration's own symbol
        """
        self.visited_interfaces = []
        symbols: Set[Symbol] = set()

        origin = self.model.symbol_of(decl)
        if origin is not None:
            symbols.add(origin)
        owner = decl.owner
        if owner is None:
            return symbols

        chain = self._class_chain(owner)
        for base in chain[1:]:
            member = self.model.get_member(base, decl.name, decl.is_static)
            if member is not None:
                symbols.add(member)

        if decl.is_static:
            # static members are not part of any interface contract
            return symbols

        visited: Set[str] = set()
        for cls in chain:
            for interface in self.model.get_implemented_interfaces(cls):
                self._walk_interface(interface, decl.name, symbols, visited)
        return symbols

    def _class_chain(self, owner: TypeDecl) -> List[TypeDecl]:
        chain = []
        seen: Set[str] = set()
        current = owner
        while current is not None:
            identity = self.model.type_identity(current)
            if identity in seen:
                break
            seen.add(identity)
            chain.append(current)
            current = self.model.get_base_type(current)
        return chain

    def _walk_interface(self, interface: TypeDecl, name: str, symbols: Set[Symbol], visited: Set[str]):
        stack = [interface]
        while stack:
            current = stack.pop()
            identity = self.model.type_identity(current)
            if identity in visited:
                continue
            visited.add(identity)
            self.visited_interfaces.append(identity)

            member = self.model.get_member(current, name)
            if member is not None:
                symbols.add(member)
            stack.extend(reversed(self.model.get_base_interfaces(current)))
