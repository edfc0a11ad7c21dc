"""CallSiteAnalyzer: wires configuration, source model and the analysis passes.

Resolver -> one declaration -> equivalence set -> labelled call sites ->
optional strict filter and/or tear-off risk labels.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Set

from ..config import AnalyzerConfig
from ..utils.logger import debug
from .declaration_resolver import DeclarationResolver
from .equivalence import EquivalenceSetBuilder
from .extractor import Declaration, Symbol
from .reference_classifier import CallSite, ReferenceClassifier
from .source_model import SourceModelProvider, TreeSitterSourceModel
from .strict_verifier import StrictVerifier, declarations_of
from .tearoff import RiskLabel, TearoffRiskReasoner


@dataclass
class AnalysisResult:
    """Everything one `calls` run produced."""
    declaration: Declaration
    symbols: Set[Symbol]
    call_sites: List[CallSite] = field(default_factory=list)
    skipped: List[Declaration] = field(default_factory=list)
    dropped: List[CallSite] = field(default_factory=list)


class CallSiteAnalyzer:
    """Run the call-site analysis for one configured query."""

    def __init__(self, config: AnalyzerConfig, model: Optional[SourceModelProvider] = None):
        """
        Args:
            config: Resolved settings (class, method, project, modes)
            model: Pre-built model; loaded from `config.project` when omitted
        """
        self.config = config
        self._model = model

    @property
    def model(self) -> SourceModelProvider:
        if self._model is None:
            model = TreeSitterSourceModel.from_project(self.config.project, loose=self.config.loose)
            for path in model.failed_files:
                debug(f"unreadable: {path}")
            self._model = model
        return self._model

    def candidates(self) -> List[Declaration]:
        found = DeclarationResolver(self.model).candidates(self.config.class_name, self.config.method_name)
        for decl in found:
            debug(f"candidate: {decl.type_name}.{decl.name} at {decl.location}")
        return found

    def resolve(self) -> Declaration:
        """Resolve the configured (class, method) query.

        Raises:
            ConfigError: If class or method is missing
            NotFoundError: If nothing matches
        """
        resolver = DeclarationResolver(self.model)
        decl = resolver.resolve(self.config.class_name, self.config.method_name, self.config.file_hint)
        debug(f"resolved: {decl.type_name}.{decl.name} at {decl.location}")
        return decl

    def equivalence(self, decl: Optional[Declaration] = None) -> Set[Symbol]:
        decl = decl or self.resolve()
        builder = EquivalenceSetBuilder(self.model)
        symbols = builder.build(decl)
        debug(f"equivalence set: {len(symbols)} symbols, "
              f"{len(builder.visited_interfaces)} interfaces visited")
        return symbols

    def calls(self, strict: bool = False) -> AnalysisResult:
        """Classified call sites for the configured query.

        With `dispatch=declared` only the origin symbol is searched; the
        default `conservative` mode searches the whole equivalence set.
        """
        decl = self.resolve()
        symbols = self.equivalence(decl)
        search = symbols
        if self.config.dispatch == 'declared' and decl.symbol is not None:
            search = {decl.symbol}

        classifier = ReferenceClassifier(self.model)
        sites = classifier.classify(search, skip_super=self.config.skip_super)
        for skipped in classifier.skipped:
            debug(f"skipped non-findable declaration: {skipped.type_name}.{skipped.name} at {skipped.location}")

        result = AnalysisResult(declaration=decl, symbols=symbols, call_sites=sites,
                                skipped=list(classifier.skipped))
        if strict:
            verifier = StrictVerifier(self.model)
            result.call_sites = verifier.verify(sites, declarations_of(search))
            result.dropped = list(verifier.dropped)
            debug(f"strict: kept {len(result.call_sites)}, dropped {len(result.dropped)}")
        return result

    def tearoff(self) -> List[RiskLabel]:
        decl = self.resolve()
        symbols = self.equivalence(decl)
        return TearoffRiskReasoner(self.model).assess(decl, symbols)
