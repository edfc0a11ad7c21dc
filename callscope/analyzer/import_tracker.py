from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from .syntax import node_text


@dataclass
class ImportInfo:
    source_module: str
    original_name: Optional[str] = None
    is_namespace: bool = False
    type_only: bool = False


@dataclass
class ReExport:
    """`export { X as Y } from 'mod'` or `export * from 'mod'`."""
    source_module: str
    names: Dict[str, str] = field(default_factory=dict)  # exported name -> original name
    is_star: bool = False


class ImportTracker:
    def analyze_imports(self, root_node, source_code: Union[str, bytes, None] = None) -> Dict[str, ImportInfo]:
        """
        Analyzes a Tree-sitter root node to map local names to their import sources.
        """
        imports: Dict[str, ImportInfo] = {}

        def strip_quotes(text: str) -> str:
            return text.strip('"\'`')

        # Stack for traversal
        stack = [root_node]

        while stack:
            node = stack.pop()

            # 1. Handle ESM Import Statements
            if node.type == 'import_statement':
                source_node = node.child_by_field_name('source')
                if not source_node:
                    continue

                module_name = strip_quotes(node_text(source_node))
                type_only = any(child.type == 'type' for child in node.children)
                import_clause = next(
                    (child for child in node.named_children if child.type == 'import_clause'), None
                )

                if import_clause:
                    # import x, { y } from 'mod' (Default + Named)
                    # import * as ns from 'mod' (Namespace)
                    # import x from 'mod' (Default)
                    for child in import_clause.named_children:

                        if child.type == 'identifier':
                            imports[node_text(child)] = ImportInfo(
                                source_module=module_name,
                                original_name='default',
                                type_only=type_only,
                            )

                        elif child.type == 'namespace_import':
                            for ns_child in child.named_children:
                                if ns_child.type == 'identifier':
                                    imports[node_text(ns_child)] = ImportInfo(
                                        source_module=module_name,
                                        is_namespace=True,
                                        type_only=type_only,
                                    )

                        elif child.type == 'named_imports':
                            for specifier in child.named_children:
                                if specifier.type != 'import_specifier':
                                    continue
                                # import { name as alias }, import { type Name }
                                name_node = specifier.child_by_field_name('name')
                                alias_node = specifier.child_by_field_name('alias')
                                original = strip_quotes(node_text(name_node))
                                local_name = node_text(alias_node) if alias_node else original
                                imports[local_name] = ImportInfo(
                                    source_module=module_name,
                                    original_name=original,
                                    type_only=type_only or any(
                                        c.type == 'type' for c in specifier.children
                                    ),
                                )
                continue

            # 2. Handle CommonJS Require (const x = require('mod'), const { X } = require('mod'))
            elif node.type in ('lexical_declaration', 'variable_declaration'):
                for declarator in node.named_children:
                    if declarator.type != 'variable_declarator':
                        continue
                    name_node = declarator.child_by_field_name('name')
                    module_name = self._require_target(declarator.child_by_field_name('value'))
                    if not name_node or module_name is None:
                        continue

                    if name_node.type == 'identifier':
                        imports[node_text(name_node)] = ImportInfo(
                            source_module=module_name,
                            original_name=None,  # CommonJS export object
                            is_namespace=True,
                        )
                    elif name_node.type == 'object_pattern':
                        for prop in name_node.named_children:
                            if prop.type == 'shorthand_property_identifier_pattern':
                                name = node_text(prop)
                                imports[name] = ImportInfo(source_module=module_name, original_name=name)
                            elif prop.type == 'pair_pattern':
                                key = node_text(prop.child_by_field_name('key'))
                                value = prop.child_by_field_name('value')
                                if value is not None and value.type == 'identifier':
                                    imports[node_text(value)] = ImportInfo(
                                        source_module=module_name, original_name=key
                                    )

            # Push named children so nested scopes are covered (require inside functions)
            stack.extend(reversed(node.named_children))

        return imports

    def analyze_reexports(self, root_node) -> List[ReExport]:
        """Collect `export ... from` statements at module level."""
        reexports: List[ReExport] = []
        for node in root_node.named_children:
            if node.type != 'export_statement':
                continue
            source_node = node.child_by_field_name('source')
            if source_node is None:
                continue
            module_name = node_text(source_node).strip('"\'`')
            clause = next((c for c in node.named_children if c.type == 'export_clause'), None)
            if clause is None:
                namespace = next((c for c in node.named_children if c.type == 'namespace_export'), None)
                if namespace is None:
                    reexports.append(ReExport(source_module=module_name, is_star=True))
                continue
            names = {}
            for specifier in clause.named_children:
                if specifier.type != 'export_specifier':
                    continue
                original = node_text(specifier.child_by_field_name('name'))
                alias = specifier.child_by_field_name('alias')
                names[node_text(alias) if alias else original] = original
            reexports.append(ReExport(source_module=module_name, names=names))
        return reexports

    @staticmethod
    def _require_target(value_node) -> Optional[str]:
        if value_node is None or value_node.type != 'call_expression':
            return None
        function_node = value_node.child_by_field_name('function')
        args_node = value_node.child_by_field_name('arguments')
        if not function_node or node_text(function_node) != 'require':
            return None
        if not args_node or args_node.named_child_count == 0:
            return None
        first_arg = args_node.named_children[0]
        if first_arg.type != 'string':
            return None
        return node_text(first_arg).strip('"\'`')
