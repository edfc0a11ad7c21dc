"""
Tests for the Equivalence Set Builder.

The set must hold the target, the members it overrides up the class chain
and every same-named interface member reachable through `implements`.
"""
from callscope.analyzer.equivalence import EquivalenceSetBuilder
from callscope.analyzer.source_model import TreeSitterSourceModel

from conftest import TARGET_METHOD, find_sites, qualified_names, resolve_and_build, site_summary


class TestFixtureSet:
    """Conversation-manager fixture."""

    def test_base_and_interfaces_included(self, basic_model):
        decl, symbols = resolve_and_build(basic_model, 'AnthropicConversationManager', TARGET_METHOD)
        assert decl.symbol in symbols
        assert qualified_names(symbols) == {
            f'AnthropicConversationManager.{TARGET_METHOD}',
            f'BaseConversationManager.{TARGET_METHOD}',
            f'ConversationManager.{TARGET_METHOD}',
        }

    def test_extended_interface_walked(self, basic_model):
        decl = resolve_and_build(basic_model, 'AnthropicConversationManager', TARGET_METHOD)[0]
        builder = EquivalenceSetBuilder(basic_model)
        builder.build(decl)
        visited = {identity.split('::')[1].split('@')[0] for identity in builder.visited_interfaces}
        assert visited == {'AdvancedConversationManager', 'ConversationManager'}
        assert len(builder.visited_interfaces) == len(set(builder.visited_interfaces))

    def test_base_class_target(self, basic_model):
        _, symbols = resolve_and_build(basic_model, 'BaseConversationManager', TARGET_METHOD)
        assert qualified_names(symbols) == {
            f'BaseConversationManager.{TARGET_METHOD}',
            f'ConversationManager.{TARGET_METHOD}',
        }

    def test_collision_sets_are_disjoint(self, collision_model):
        _, set_a = resolve_and_build(collision_model, 'ClassA', 'getVendorData')
        _, set_b = resolve_and_build(collision_model, 'ClassB', 'getVendorData')
        assert qualified_names(set_a) == {'ClassA.getVendorData'}
        assert qualified_names(set_b) == {'ClassB.getVendorData'}
        assert not set_a & set_b


class TestHierarchyShapes:
    """Chains with gaps, cycles and diamonds."""

    def test_skips_levels_without_member(self):
        model = TreeSitterSourceModel.from_sources({
            'src/chain.ts': (
                "class A { m(): void {} }\n"
                "class B extends A {}\n"
                "class C extends B { m(): void {} }\n"
            ),
        })
        _, symbols = resolve_and_build(model, 'C', 'm')
        assert qualified_names(symbols) == {'C.m', 'A.m'}

    def test_interfaces_of_base_classes(self):
        model = TreeSitterSourceModel.from_sources({
            'src/base.ts': (
                "interface Runnable { run(): void; }\n"
                "class Base implements Runnable { run(): void {} }\n"
                "class Child extends Base { run(): void {} }\n"
            ),
        })
        _, symbols = resolve_and_build(model, 'Child', 'run')
        assert qualified_names(symbols) == {'Child.run', 'Base.run', 'Runnable.run'}

    def test_cyclic_interfaces_terminate(self):
        model = TreeSitterSourceModel.from_sources({
            'src/cycle.ts': (
                "interface A extends B { m(): void; }\n"
                "interface B extends A { m(): void; }\n"
                "class C implements A { m(): void {} }\n"
            ),
        })
        decl = resolve_and_build(model, 'C', 'm')[0]
        builder = EquivalenceSetBuilder(model)
        symbols = builder.build(decl)
        assert qualified_names(symbols) == {'C.m', 'A.m', 'B.m'}
        assert len(builder.visited_interfaces) == 2

    def test_diamond_visits_each_interface_once(self):
        model = TreeSitterSourceModel.from_sources({
            'src/diamond.ts': (
                "interface Root { m(): void; }\n"
                "interface Left extends Root {}\n"
                "interface Right extends Root {}\n"
                "class Impl implements Left, Right { m(): void {} }\n"
            ),
        })
        decl = resolve_and_build(model, 'Impl', 'm')[0]
        builder = EquivalenceSetBuilder(model)
        symbols = builder.build(decl)
        assert qualified_names(symbols) == {'Impl.m', 'Root.m'}
        assert len(builder.visited_interfaces) == 3

    def test_function_typed_property_joins_set(self):
        model = TreeSitterSourceModel.from_sources({
            'src/handler.ts': (
                "interface Handler { handle: (input: string) => void; }\n"
                "class Echo implements Handler { handle(input: string): void {} }\n"
            ),
        })
        _, symbols = resolve_and_build(model, 'Echo', 'handle')
        assert qualified_names(symbols) == {'Echo.handle', 'Handler.handle'}

    def test_alias_typed_property_joins_set(self):
        model = TreeSitterSourceModel.from_sources({
            'src/port.ts': (
                "type Listener = ((text: string) => void);\n"
                "type Send = Listener;\n"
                "interface Port { send: Send; id: PortId; }\n"
                "type PortId = string;\n"
                "class Socket implements Port {\n"
                "  id = 'a';\n"
                "  send(text: string): void {}\n"
                "}\n"
                "function use(p: Port) {\n"
                "  p.send('x');\n"
                "}\n"
            ),
        })
        _, symbols = resolve_and_build(model, 'Socket', 'send')
        assert qualified_names(symbols) == {'Socket.send', 'Port.send'}
        port = next(t for t in model.types() if t.name == 'Port')
        assert set(port.members) == {'send'}
        assert site_summary(find_sites(model, 'Socket', 'send')) == [('src/port.ts', 10, 'direct')]

    def test_unrelated_same_name_interface_excluded(self):
        model = TreeSitterSourceModel.from_sources({
            'src/unrelated.ts': (
                "interface Other { m(): void; }\n"
                "class Impl { m(): void {} }\n"
            ),
        })
        _, symbols = resolve_and_build(model, 'Impl', 'm')
        assert qualified_names(symbols) == {'Impl.m'}

    def test_static_members_stay_off_interfaces(self):
        model = TreeSitterSourceModel.from_sources({
            'src/static.ts': (
                "interface Factory { create(): void; }\n"
                "class Base { static create(): void {} }\n"
                "class Impl extends Base implements Factory {\n"
                "  static create(): void {}\n"
                "  create(): void {}\n"
                "}\n"
            ),
        })
        static_decl = next(
            d for d in model.method_declarations()
            if d.type_name == 'Impl' and d.name == 'create' and d.is_static
        )
        symbols = EquivalenceSetBuilder(model).build(static_decl)
        assert qualified_names(symbols) == {'Impl.create', 'Base.create'}
        assert all(symbol.is_static for symbol in symbols)


class TestCrossFile:
    """Heritage resolved through imports."""

    def test_imported_interface_by_alias(self):
        model = TreeSitterSourceModel.from_sources({
            'src/contracts/store.ts': "export interface Store { save(): void; }\n",
            'src/impl/memory.ts': (
                "import { Store as Persist } from '../contracts/store';\n"
                "export class MemoryStore implements Persist { save(): void {} }\n"
            ),
        })
        _, symbols = resolve_and_build(model, 'MemoryStore', 'save')
        assert qualified_names(symbols) == {'MemoryStore.save', 'Store.save'}

    def test_same_named_interfaces_resolved_by_import(self):
        model = TreeSitterSourceModel.from_sources({
            'src/a/api.ts': "export interface Api { call(): void; }\n",
            'src/b/api.ts': "export interface Api { call(): void; }\n",
            'src/impl.ts': (
                "import { Api } from './b/api';\n"
                "export class Client implements Api { call(): void {} }\n"
            ),
        })
        _, symbols = resolve_and_build(model, 'Client', 'call')
        files = {symbol.file_path for symbol in symbols}
        assert files == {'src/impl.ts', 'src/b/api.ts'}
