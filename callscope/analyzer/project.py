"""Project loading: tsconfig discovery, tsconfig parsing and source discovery.

tsconfig files are JSON with comments, so comments and trailing commas are
stripped before `json.loads`. `extends` chains are followed for relative
paths only; package-style bases (`@tsconfig/node18`) are reported and skipped.
"""
import json
import re
from dataclasses import dataclass, field
from fnmatch import fnmatch
from pathlib import Path
from typing import Dict, List, Optional

from ..errors import ProjectError
from ..utils.logger import warn
from .parser import LanguageParser


EXCLUDED_DIRS = {
    'node_modules', '.git', 'dist', 'build', 'out', 'coverage',
    '.venv', 'venv', '__pycache__',
}

DEFAULT_INCLUDE = ['**/*']

MAX_EXTENDS_DEPTH = 16


@dataclass
class ProjectConfig:
    """Resolved view of a tsconfig chain."""
    root: Path
    tsconfig_path: Optional[Path] = None
    include: List[str] = field(default_factory=lambda: list(DEFAULT_INCLUDE))
    exclude: List[str] = field(default_factory=list)
    files: List[str] = field(default_factory=list)
    base_url: Optional[str] = None  # posix, relative to root
    paths: Dict[str, List[str]] = field(default_factory=dict)
    allow_js: bool = False


def resolve_tsconfig(project: str | Path) -> Path:
    """Locate the tsconfig for a project directory or explicit tsconfig path.

    Args:
        project: Directory containing tsconfig.json, or a tsconfig file path

    Returns:
        Absolute path to the tsconfig file

    Raises:
        ProjectError: If no tsconfig can be found
    """
    path = Path(project).expanduser().resolve()
    if path.is_file():
        return path
    if path.is_dir():
        candidate = path / 'tsconfig.json'
        if candidate.is_file():
            return candidate
        raise ProjectError(f"No tsconfig.json found in {path}")
    raise ProjectError(f"Project path does not exist: {path}")


def strip_json_comments(content: str) -> str:
    """Remove // and /* */ comments and trailing commas (JSON5-style tsconfig)."""
    # Strings are matched first so `"src/**/*"` is never read as a comment
    pattern = re.compile(r'("(?:\\.|[^"\\])*")|//[^\n]*|/\*.*?\*/', re.DOTALL)
    content = pattern.sub(lambda m: m.group(1) or '', content)
    return re.sub(r',(\s*[}\]])', r'\1', content)


def _read_tsconfig(path: Path) -> dict:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.loads(strip_json_comments(f.read()))
    except (IOError, OSError) as e:
        raise ProjectError(f"Cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ProjectError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ProjectError(f"Invalid tsconfig (expected an object): {path}")
    return data


def _merge_chain(path: Path, depth: int = 0) -> dict:
    """Read a tsconfig and fold in its `extends` bases.

    Path-valued options are made absolute against the file that declares them.
    """
    data = _read_tsconfig(path)
    config_dir = path.parent
    merged: dict = {'compilerOptions': {}}

    extends = data.get('extends')
    bases = extends if isinstance(extends, list) else ([extends] if extends else [])
    for base in bases:
        if not base.startswith('.') and not Path(base).is_absolute():
            warn('Project', f"Ignoring non-relative extends '{base}' in {path.name}")
            continue
        base_path = (config_dir / base).resolve()
        if base_path.suffix != '.json':
            base_path = base_path.with_name(base_path.name + '.json')
        if depth >= MAX_EXTENDS_DEPTH or not base_path.is_file():
            warn('Project', f"Cannot follow extends '{base}' from {path}")
            continue
        parent = _merge_chain(base_path, depth + 1)
        merged['compilerOptions'].update(parent.get('compilerOptions', {}))
        for key in ('include', 'exclude', 'files'):
            if key in parent:
                merged[key] = parent[key]

    options = dict(data.get('compilerOptions') or {})
    if 'baseUrl' in options:
        options['baseUrl'] = str((config_dir / options['baseUrl']).resolve())
    if 'paths' in options and 'baseUrl' not in options and 'baseUrl' not in merged['compilerOptions']:
        # Without baseUrl, paths are relative to the declaring tsconfig
        options['pathsBase'] = str(config_dir.resolve())
    merged['compilerOptions'].update(options)

    for key in ('include', 'exclude', 'files'):
        if key in data:
            merged[key] = [str((config_dir / p).resolve()) if not Path(p).is_absolute() else p
                           for p in data[key]]
    return merged


def _relative(path: str, root: Path) -> str:
    try:
        return Path(path).relative_to(root).as_posix()
    except ValueError:
        return Path(path).as_posix()


def load_tsconfig(tsconfig_path: str | Path) -> ProjectConfig:
    """Parse a tsconfig (following `extends`) into a ProjectConfig.

    Raises:
        ProjectError: If the file or one of its relative bases cannot be parsed
    """
    tsconfig_path = Path(tsconfig_path).resolve()
    root = tsconfig_path.parent
    merged = _merge_chain(tsconfig_path)
    options = merged.get('compilerOptions', {})

    config = ProjectConfig(root=root, tsconfig_path=tsconfig_path)
    if 'include' in merged:
        config.include = [_relative(p, root) for p in merged['include']]
    elif 'files' in merged:
        config.include = []
    config.exclude = [_relative(p, root) for p in merged.get('exclude', [])]
    config.files = [_relative(p, root) for p in merged.get('files', [])]

    if options.get('baseUrl'):
        config.base_url = _relative(options['baseUrl'], root) or '.'
    paths = options.get('paths') or {}
    if paths and config.base_url is None:
        config.base_url = _relative(options.get('pathsBase', str(root)), root) or '.'
    config.paths = {alias: list(targets) for alias, targets in paths.items()}
    config.allow_js = bool(options.get('allowJs', False))
    return config


def _is_excluded(rel_path: str, patterns: List[str]) -> bool:
    for pattern in patterns:
        pattern = pattern.rstrip('/')
        if fnmatch(rel_path, pattern) or rel_path.startswith(pattern + '/'):
            return True
    return False


def discover_source_files(config: ProjectConfig) -> List[str]:
    """Enumerate the project's source units.

    Returns:
        Posix paths relative to the project root, sorted lexicographically
    """
    found = set()
    for pattern in config.include:
        pattern = pattern.rstrip('/')
        if pattern.startswith('./'):
            pattern = pattern[2:]
        if pattern in ('', '.'):
            pattern = '**/*'
        elif Path(pattern).is_absolute() or pattern.startswith('..'):
            warn('Project', f"Skipping include outside the project root: {pattern}")
            continue
        elif not any(ch in pattern for ch in '*?[') and (config.root / pattern).is_dir():
            pattern = f"{pattern}/**/*"
        for file_path in config.root.glob(pattern):
            language = LanguageParser.language_for(file_path)
            if not file_path.is_file() or language is None:
                continue
            if language == 'javascript' and not config.allow_js:
                continue
            rel = file_path.relative_to(config.root)
            if any(part in EXCLUDED_DIRS for part in rel.parts[:-1]):
                continue
            if _is_excluded(rel.as_posix(), config.exclude):
                continue
            found.add(rel.as_posix())

    for explicit in config.files:
        if (config.root / explicit).is_file():
            found.add(Path(explicit).as_posix())

    return sorted(found)
