"""Tree-sitter grammars for TypeScript and JavaScript sources."""
from pathlib import Path
from typing import Dict, Optional
from tree_sitter import Language, Parser, Tree
import tree_sitter_javascript as tsjavascript
import tree_sitter_typescript as tstypescript


class LanguageParser:
    """One tree-sitter parser bound to one grammar (tree-sitter v0.22+ API)."""

    SUPPORTED_LANGUAGES: Dict[str, str] = {
        '.ts': 'typescript',
        '.mts': 'typescript',
        '.cts': 'typescript',
        '.tsx': 'tsx',
        '.js': 'javascript',
        '.jsx': 'javascript',
        '.mjs': 'javascript',
        '.cjs': 'javascript',
    }

    def __init__(self, language: str):
        """
        Args:
            language: One of 'typescript', 'tsx', 'javascript'

        Raises:
            ValueError: If the grammar is not bundled
        """
        self.language = language
        self.parser = Parser(self._grammar(language))

    @staticmethod
    def _grammar(language: str) -> Language:
        if language == 'typescript':
            return Language(tstypescript.language_typescript())
        if language == 'tsx':
            # `<T>x` is an assertion in .ts and an element in .tsx
            return Language(tstypescript.language_tsx())
        if language == 'javascript':
            return Language(tsjavascript.language())
        raise ValueError(f"Unsupported language: {language}")

    def parse_source(self, source_code: bytes) -> Tree:
        """Parse source bytes; syntax errors are kept in the tree as ERROR nodes."""
        return self.parser.parse(source_code)

    @classmethod
    def language_for(cls, file_path: str | Path) -> Optional[str]:
        """Grammar name for a path, or None when the extension is not analyzed.

        Declaration files (`.d.ts`, `.d.mts`) use the TypeScript grammar.
        """
        return cls.SUPPORTED_LANGUAGES.get(Path(str(file_path).lower()).suffix)
