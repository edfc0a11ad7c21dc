"""Shared fixtures: fixture projects on disk and in-memory models."""
from pathlib import Path
import pytest

from callscope.analyzer.declaration_resolver import DeclarationResolver
from callscope.analyzer.equivalence import EquivalenceSetBuilder
from callscope.analyzer.reference_classifier import ReferenceClassifier
from callscope.analyzer.source_model import TreeSitterSourceModel


# Fixture directory
FIXTURES_DIR = Path(__file__).parent / 'fixtures'
BASIC_DIR = FIXTURES_DIR / 'basic'
COLLISION_DIR = FIXTURES_DIR / 'collision'

TARGET_METHOD = 'sendMessageWithAttachments'


@pytest.fixture(scope='session')
def basic_model():
    """Model of the conversation-manager fixture project."""
    return TreeSitterSourceModel.from_project(BASIC_DIR)


@pytest.fixture(scope='session')
def loose_basic_model():
    return TreeSitterSourceModel.from_project(BASIC_DIR, loose=True)


@pytest.fixture(scope='session')
def collision_model():
    """Model of two unrelated classes sharing method names."""
    return TreeSitterSourceModel.from_project(COLLISION_DIR)


def resolve_and_build(model, class_name, method_name, file_hint=None):
    """Resolve a declaration and build its equivalence set."""
    decl = DeclarationResolver(model).resolve(class_name, method_name, file_hint)
    return decl, EquivalenceSetBuilder(model).build(decl)


def qualified_names(symbols):
    return {symbol.qualified_name for symbol in symbols}


def find_sites(model, class_name, method_name, skip_super=False):
    """Classified call sites for a method across its equivalence set."""
    _, symbols = resolve_and_build(model, class_name, method_name)
    return ReferenceClassifier(model).classify(symbols, skip_super=skip_super)


def site_summary(sites):
    """(file, line, label) tuples for compact assertions."""
    return [(site.file_path, site.line, site.label) for site in sites]
