"""Tests for tsconfig discovery, tsconfig parsing and source discovery."""
import pytest

from callscope.analyzer.parser import LanguageParser
from callscope.analyzer.project import (
    discover_source_files,
    load_tsconfig,
    resolve_tsconfig,
    strip_json_comments,
)
from callscope.analyzer.resolver import ModuleResolver
from callscope.errors import ProjectError

from conftest import BASIC_DIR, COLLISION_DIR


class TestTsconfig:
    """tsconfig discovery and parsing."""

    def test_resolve_from_directory(self):
        assert resolve_tsconfig(BASIC_DIR) == (BASIC_DIR / 'tsconfig.json').resolve()

    def test_resolve_explicit_file(self):
        path = COLLISION_DIR / 'tsconfig.json'
        assert resolve_tsconfig(path) == path.resolve()

    def test_missing_tsconfig_raises(self, tmp_path):
        with pytest.raises(ProjectError):
            resolve_tsconfig(tmp_path)

    def test_missing_path_raises(self, tmp_path):
        with pytest.raises(ProjectError):
            resolve_tsconfig(tmp_path / 'nope')

    def test_comments_and_trailing_commas(self):
        text = '{\n  // line\n  "a": "src/**/*", /* block */\n  "b": [1, 2,],\n}'
        assert strip_json_comments(text).replace(' ', '').replace('\n', '') == '{"a":"src/**/*","b":[1,2]}'

    def test_invalid_json_raises(self, tmp_path):
        (tmp_path / 'tsconfig.json').write_text('{ "compilerOptions": ')
        with pytest.raises(ProjectError):
            load_tsconfig(tmp_path / 'tsconfig.json')

    def test_extends_chain(self, tmp_path):
        (tmp_path / 'configs').mkdir()
        (tmp_path / 'configs' / 'base.json').write_text(
            '{ "compilerOptions": { "baseUrl": "..", "paths": { "@lib/*": ["lib/*"] } } }'
        )
        (tmp_path / 'tsconfig.json').write_text(
            '{ "extends": "./configs/base", "include": ["app"] }'
        )
        config = load_tsconfig(tmp_path / 'tsconfig.json')
        assert config.base_url == '.'
        assert config.paths == {'@lib/*': ['lib/*']}
        assert config.include == ['app']

    def test_package_extends_is_skipped(self, tmp_path, capsys):
        (tmp_path / 'tsconfig.json').write_text('{ "extends": "@tsconfig/node18/tsconfig.json" }')
        config = load_tsconfig(tmp_path / 'tsconfig.json')
        assert config.include == ['**/*']
        assert '[Project]' in capsys.readouterr().err


class TestDiscovery:
    """Source file discovery."""

    def test_basic_fixture_files(self):
        files = discover_source_files(load_tsconfig(BASIC_DIR / 'tsconfig.json'))
        assert files == sorted(files)
        assert 'src/impl/AnthropicConversationManager.ts' in files
        assert 'src/contracts/ConversationManager.ts' in files
        assert len(files) == 10

    def test_excluded_directories(self, tmp_path):
        (tmp_path / 'tsconfig.json').write_text('{}')
        (tmp_path / 'src').mkdir()
        (tmp_path / 'src' / 'a.ts').write_text('export const a = 1;')
        (tmp_path / 'node_modules' / 'lib').mkdir(parents=True)
        (tmp_path / 'node_modules' / 'lib' / 'index.ts').write_text('export const b = 2;')
        (tmp_path / 'src' / 'skip.js').write_text('module.exports = {};')
        files = discover_source_files(load_tsconfig(tmp_path / 'tsconfig.json'))
        assert files == ['src/a.ts']

    def test_exclude_patterns_and_allow_js(self, tmp_path):
        (tmp_path / 'tsconfig.json').write_text(
            '{ "compilerOptions": { "allowJs": true }, "exclude": ["src/gen"] }'
        )
        (tmp_path / 'src' / 'gen').mkdir(parents=True)
        (tmp_path / 'src' / 'a.js').write_text('class A {}')
        (tmp_path / 'src' / 'gen' / 'b.ts').write_text('class B {}')
        files = discover_source_files(load_tsconfig(tmp_path / 'tsconfig.json'))
        assert files == ['src/a.js']


class TestModuleResolver:
    """Module specifier resolution against the loaded file set."""

    FILES = [
        'src/app/main.ts',
        'src/lib/util.ts',
        'src/lib/index.ts',
        'src/models/user.tsx',
        'types/global.d.ts',
    ]

    def test_relative(self):
        resolver = ModuleResolver(self.FILES)
        assert resolver.resolve('src/app/main.ts', '../lib/util') == 'src/lib/util.ts'

    def test_index_file(self):
        resolver = ModuleResolver(self.FILES)
        assert resolver.resolve('src/app/main.ts', '../lib') == 'src/lib/index.ts'

    def test_js_specifier_maps_to_ts(self):
        resolver = ModuleResolver(self.FILES)
        assert resolver.resolve('src/app/main.ts', '../lib/util.js') == 'src/lib/util.ts'

    def test_paths_wildcard(self):
        resolver = ModuleResolver(self.FILES, base_url='.', paths={'@models/*': ['src/models/*']})
        assert resolver.resolve('src/app/main.ts', '@models/user') == 'src/models/user.tsx'

    def test_base_url(self):
        resolver = ModuleResolver(self.FILES, base_url='src')
        assert resolver.resolve('src/app/main.ts', 'lib/util') == 'src/lib/util.ts'

    def test_external_package_is_unresolved(self):
        resolver = ModuleResolver(self.FILES)
        assert resolver.resolve('src/app/main.ts', 'react') is None


@pytest.mark.parametrize('path,language', [
    ('src/a.ts', 'typescript'),
    ('src/types.d.ts', 'typescript'),
    ('src/View.TSX', 'tsx'),
    ('lib/index.mjs', 'javascript'),
    ('README.md', None),
])
def test_language_for(path, language):
    assert LanguageParser.language_for(path) == language
