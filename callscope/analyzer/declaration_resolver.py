"""Declaration Resolver: pick the one concrete method a query names."""
from typing import List, Optional

from ..errors import ConfigError, NotFoundError
from .extractor import Declaration
from .source_model import SourceModelProvider


IMPL_SEGMENT = '/impl/'


class DeclarationResolver:
    """Resolve (class name, method name, optional file hint) to one declaration.

    Tie-break when several classes share the name, first rule wins:
        1. file path contains the hint
        2. file path contains an `/impl/` segment
        3. the enclosing class is exported
        4. first in discovery order (path, then source position)
    """

    def __init__(self, model: SourceModelProvider):
        self.model = model

    def candidates(self, class_name: str, method_name: str) -> List[Declaration]:
        """All concrete methods named `method_name` directly on a class named `class_name`.

        Raises:
            ConfigError: If either name is empty
        """
        if not class_name or not class_name.strip():
            raise ConfigError("class name is required (--class or P_CLASS)")
        if not method_name or not method_name.strip():
            raise ConfigError("method name is required (--method or P_METHOD)")

        return [
            decl for decl in self.model.method_declarations()
            if decl.name == method_name and self.model.enclosing_type_name(decl) == class_name
        ]

    def resolve(self, class_name: str, method_name: str, file_hint: Optional[str] = None) -> Declaration:
        """Pick the declaration the query refers to.

        Args:
            class_name: Name of the concrete class
            method_name: Name of the method on that class
            file_hint: Optional path substring preferred among duplicates

        Returns:
            The chosen Declaration

        Raises:
            ConfigError: If class or method name is missing
            NotFoundError: If no class of that name declares the method
        """
        found = self.candidates(class_name, method_name)
        if not found:
            raise NotFoundError(f"No concrete method {class_name}.{method_name} found")

        rules = []
        if file_hint:
            rules.append(lambda d: file_hint in d.file_path)
        rules.append(lambda d: IMPL_SEGMENT in '/' + d.file_path)
        rules.append(lambda d: d.owner is not None and d.owner.exported)

        for rule in rules:
            for decl in found:
                if rule(decl):
                    return decl
        return found[0]
