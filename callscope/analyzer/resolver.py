import posixpath
from typing import Dict, Iterable, List, Optional


class ModuleResolver:
    """
    Module specifier resolution against the loaded source set.
    Resolves import strings to file paths using TypeScript resolution rules,
    without touching the disk: only files already loaded can be targets.
    """

    EXTENSIONS = ['.ts', '.tsx', '.d.ts', '.js', '.jsx', '.mts', '.cts', '.mjs', '.cjs']

    # `import './x.js'` in TS sources refers to x.ts
    JS_TO_TS = {
        '.js': ['.ts', '.tsx', '.d.ts'],
        '.jsx': ['.tsx'],
        '.mjs': ['.mts'],
        '.cjs': ['.cts'],
    }

    def __init__(self, known_files: Iterable[str], base_url: Optional[str] = None,
                 paths: Optional[Dict[str, List[str]]] = None):
        """
        Args:
            known_files: Posix paths of every loaded source unit.
            base_url: compilerOptions.baseUrl, relative to the project root.
            paths: compilerOptions.paths, e.g. {"@app/*": ["src/*"]}.
        """
        self.known = set(known_files)
        self.base_url = posixpath.normpath(base_url) if base_url else None
        self.paths = paths or {}

    def resolve(self, current_file: str, specifier: str) -> Optional[str]:
        """
        Determines the loaded file an import specifier refers to.

        Args:
            current_file: Path of the file containing the import.
            specifier: The string used in the import statement (e.g., './utils', '@app/x').

        Returns:
            Path of the target unit, or None (external package or unknown).
        """
        if not specifier:
            return None

        # 1. Relative imports
        if specifier.startswith('.'):
            base = posixpath.dirname(current_file)
            return self._probe(posixpath.normpath(posixpath.join(base, specifier)))

        # 2. Path aliases (tsconfig), most specific pattern first
        for pattern in sorted(self.paths, key=len, reverse=True):
            remainder = self._match_pattern(pattern, specifier)
            if remainder is None:
                continue
            for target in self.paths[pattern]:
                candidate = target.replace('*', remainder)
                if self.base_url:
                    candidate = posixpath.join(self.base_url, candidate)
                found = self._probe(posixpath.normpath(candidate))
                if found:
                    return found

        # 3. baseUrl-relative (non-relative specifiers only)
        if self.base_url is not None:
            return self._probe(posixpath.normpath(posixpath.join(self.base_url, specifier)))
        return None

    @staticmethod
    def _match_pattern(pattern: str, specifier: str) -> Optional[str]:
        if '*' not in pattern:
            return '' if pattern == specifier else None
        prefix, _, suffix = pattern.partition('*')
        if specifier.startswith(prefix) and specifier.endswith(suffix) \
                and len(specifier) >= len(prefix) + len(suffix):
            return specifier[len(prefix):len(specifier) - len(suffix)]
        return None

    def _probe(self, path: str) -> Optional[str]:
        """
        Probes for a loaded file using TS resolution rules:
        1. Exact match
        2. .js specifier mapped onto its TS source
        3. Extensions (.ts, .tsx, .d.ts, .js, ...)
        4. Directory index files
        """
        if path.startswith('./'):
            path = path[2:]
        if path in self.known:
            # a bare `./x` that names a directory still falls through to index probing
            return path

        stem, ext = posixpath.splitext(path)
        for ts_ext in self.JS_TO_TS.get(ext, []):
            if stem + ts_ext in self.known:
                return stem + ts_ext

        for ext in self.EXTENSIONS:
            if path + ext in self.known:
                return path + ext

        for ext in self.EXTENSIONS:
            index_file = posixpath.join(path, f"index{ext}")
            if index_file in self.known:
                return index_file

        return None
