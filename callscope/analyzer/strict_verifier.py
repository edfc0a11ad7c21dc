"""Strict Verifier: keep only call sites whose resolved signature is in the set."""
from typing import Iterable, List, Set

from .extractor import Declaration, Symbol
from .reference_classifier import CallSite
from .source_model import SourceModelProvider


def declarations_of(symbols: Iterable[Symbol]) -> List[Declaration]:
    """Every declaration of every symbol in an equivalence set."""
    return [decl for symbol in symbols for decl in symbol.declarations]


class StrictVerifier:
    """Second opinion on classified call sites.

    Each site's call is resolved again, independently of how it was found,
    and kept only when a signature it binds to belongs to the equivalence
    set. Sites that cannot be resolved are dropped, never raised.
    """

    def __init__(self, model: SourceModelProvider):
        self.model = model
        self.dropped: List[CallSite] = []

    def verify(self, call_sites: Iterable[CallSite], equivalence_decls: Iterable[Declaration]) -> List[CallSite]:
        allowed: Set[int] = {id(decl) for decl in equivalence_decls}
        kept = []
        self.dropped = []
        for site in call_sites:
            resolved = self.model.resolve_call_signatures(site.node, site.file_path)
            if any(id(decl) in allowed for decl in resolved):
                kept.append(site)
            else:
                self.dropped.append(site)
        return kept
