"""
Tests for the Reference Classifier.

Labels: direct `recv.m()`, optional `recv?.m()`, tear-off application
`fn.call(recv)` and `super.m()`. Collisions between unrelated classes that
share a method name must never leak into each other's results.
"""
import pytest

from callscope.analyzer.reference_classifier import (
    DIRECT,
    OPTIONAL,
    SUPER,
    TEAROFF,
    ReferenceClassifier,
)
from callscope.analyzer.source_model import TreeSitterSourceModel

from conftest import TARGET_METHOD, find_sites, resolve_and_build, site_summary


EXPECTED_BASIC = [
    ('src/calls/generic.ts', 5, DIRECT),
    ('src/calls/optionalChain.ts', 5, OPTIONAL),
    ('src/calls/tearOff.ts', 9, TEAROFF),
    ('src/calls/viaBase.ts', 5, DIRECT),
    ('src/calls/viaExtendedInterface.ts', 5, DIRECT),
    ('src/impl/AnthropicConversationManager.ts', 13, SUPER),
]

SERVICE = (
    "export class Service {\n"
    "  run(): number {\n"
    "    return 1;\n"
    "  }\n"
    "}\n"
)


def service_sites(sources, loose=False):
    sources = dict(sources)
    sources.setdefault('src/svc.ts', SERVICE)
    model = TreeSitterSourceModel.from_sources(sources, loose=loose)
    return [(site.file_path, site.line, site.label)
            for site in find_sites(model, 'Service', 'run')
            if site.file_path != 'src/svc.ts']


class TestFixtureLabels:
    """Conversation-manager fixture."""

    def test_all_sites_labelled(self, basic_model):
        sites = find_sites(basic_model, 'AnthropicConversationManager', TARGET_METHOD)
        assert site_summary(sites) == EXPECTED_BASIC

    def test_skip_super(self, basic_model):
        sites = find_sites(basic_model, 'AnthropicConversationManager', TARGET_METHOD, skip_super=True)
        assert site_summary(sites) == EXPECTED_BASIC[:-1]

    def test_untyped_receiver_not_found_by_default(self, basic_model):
        sites = find_sites(basic_model, 'AnthropicConversationManager', TARGET_METHOD)
        assert 'src/calls/untyped.ts' not in {site.file_path for site in sites}

    def test_loose_admits_untyped_receiver(self, loose_basic_model):
        sites = find_sites(loose_basic_model, 'AnthropicConversationManager', TARGET_METHOD)
        untyped = [site for site in sites if site.file_path == 'src/calls/untyped.ts']
        assert len(sites) == len(EXPECTED_BASIC) + 1
        assert len(untyped) == 1
        assert untyped[0].label == DIRECT
        assert untyped[0].resolved is False
        assert untyped[0].symbol is None

    def test_base_target_sees_super_call(self, basic_model):
        sites = find_sites(basic_model, 'BaseConversationManager', TARGET_METHOD)
        assert ('src/impl/AnthropicConversationManager.ts', 13, SUPER) in site_summary(sites)

    def test_site_payload(self, basic_model):
        sites = find_sites(basic_model, 'AnthropicConversationManager', TARGET_METHOD)
        optional = sites[1]
        assert optional.text == 'maybe?.sendMessageWithAttachments("hi", ["d.txt"])'
        assert optional.column == 1
        assert optional.to_dict() == {
            'label': OPTIONAL,
            'file': 'src/calls/optionalChain.ts',
            'line': 5,
            'column': 1,
            'text': optional.text,
        }

    def test_sites_unique_by_location(self, basic_model):
        sites = find_sites(basic_model, 'AnthropicConversationManager', TARGET_METHOD)
        assert len({site.key for site in sites}) == len(sites)

    def test_classify_is_idempotent(self, basic_model):
        _, symbols = resolve_and_build(basic_model, 'AnthropicConversationManager', TARGET_METHOD)
        first = ReferenceClassifier(basic_model).classify(symbols)
        classifier = ReferenceClassifier(basic_model)
        second = classifier.classify(symbols)
        third = classifier.classify(symbols)
        expected = [(site.key, site.label) for site in first]
        assert expected
        assert [(site.key, site.label) for site in second] == expected
        assert [(site.key, site.label) for site in third] == expected


class TestCollision:
    """Two unrelated classes with the same method name."""

    def test_class_a_sites(self, collision_model):
        sites = find_sites(collision_model, 'ClassA', 'getVendorData')
        assert site_summary(sites) == [
            ('src/ClassA.ts', 14, DIRECT),
            ('src/ClassB.ts', 16, DIRECT),
        ]

    def test_class_b_sites(self, collision_model):
        sites = find_sites(collision_model, 'ClassB', 'getVendorData')
        assert site_summary(sites) == [
            ('src/ClassB.ts', 12, DIRECT),
            ('src/Consumer.ts', 4, DIRECT),
        ]

    def test_no_site_shared(self, collision_model):
        a = {site.key for site in find_sites(collision_model, 'ClassA', 'getVendorData')}
        b = {site.key for site in find_sites(collision_model, 'ClassB', 'getVendorData')}
        assert not a & b


class TestReceiverInference:
    """How receivers are typed."""

    def test_namespace_import(self):
        sites = service_sites({
            'src/app.ts': (
                "import * as svc from './svc';\n"
                "const s = new svc.Service();\n"
                "s.run();\n"
            ),
        })
        assert sites == [('src/app.ts', 3, DIRECT)]

    def test_default_import(self):
        sites = service_sites({
            'src/svc.ts': "class Service {\n  run(): number { return 1; }\n}\nexport default Service;\n",
            'src/app.ts': (
                "import Runner from './svc';\n"
                "new Runner().run();\n"
            ),
        })
        assert sites == [('src/app.ts', 2, DIRECT)]

    def test_renamed_local_export(self):
        sites = service_sites({
            'src/svc.ts': "class Service {\n  run(): number { return 1; }\n}\nexport { Service as Runner };\n",
            'src/app.ts': (
                "import { Runner } from './svc';\n"
                "const r: Runner = new Runner();\n"
                "r.run();\n"
            ),
        })
        assert sites == [('src/app.ts', 3, DIRECT)]

    def test_reexport_through_index(self):
        sites = service_sites({
            'src/lib/index.ts': "export { Service } from '../svc';\n",
            'src/app.ts': (
                "import { Service } from './lib';\n"
                "const s: Service = new Service();\n"
                "s.run();\n"
            ),
        })
        assert sites == [('src/app.ts', 3, DIRECT)]

    def test_awaited_promise_return(self):
        sites = service_sites({
            'src/app.ts': (
                "import { Service } from './svc';\n"
                "async function make(): Promise<Service> {\n"
                "  return new Service();\n"
                "}\n"
                "async function main() {\n"
                "  const s = await make();\n"
                "  s.run();\n"
                "  const p = make();\n"
                "  p.run();\n"
                "}\n"
            ),
        })
        assert sites == [('src/app.ts', 7, DIRECT)]

    def test_parameter_property_field(self):
        sites = service_sites({
            'src/client.ts': (
                "import { Service } from './svc';\n"
                "export class Client {\n"
                "  constructor(private service: Service) {}\n"
                "  go(): number {\n"
                "    return this.service.run();\n"
                "  }\n"
                "}\n"
            ),
        })
        assert sites == [('src/client.ts', 5, DIRECT)]

    def test_this_crosses_arrow_functions_only(self):
        model = TreeSitterSourceModel.from_sources({
            'src/timer.ts': (
                "export class Timer {\n"
                "  tick(): void {}\n"
                "  start(): void {\n"
                "    [1].forEach(() => this.tick());\n"
                "    [2].forEach(function () { this.tick(); });\n"
                "  }\n"
                "}\n"
            ),
        })
        assert site_summary(find_sites(model, 'Timer', 'tick')) == [('src/timer.ts', 4, DIRECT)]

    def test_destructured_method(self):
        sites = service_sites({
            'src/app.ts': (
                "import { Service } from './svc';\n"
                "const { run } = new Service();\n"
                "run();\n"
            ),
        })
        assert sites == [('src/app.ts', 3, DIRECT)]

    def test_static_factory_return_type(self):
        sites = service_sites({
            'src/factory.ts': (
                "import { Service } from './svc';\n"
                "export class Factory {\n"
                "  static create(): Service {\n"
                "    return new Service();\n"
                "  }\n"
                "}\n"
                "const instance = Factory.create();\n"
                "instance.run();\n"
            ),
        })
        assert sites == [('src/factory.ts', 8, DIRECT)]

    def test_any_receiver_ignored(self):
        sites = service_sites({
            'src/app.ts': (
                "import { Service } from './svc';\n"
                "const s: any = new Service();\n"
                "s.run();\n"
            ),
        })
        assert sites == []

    def test_javascript_source(self):
        model = TreeSitterSourceModel.from_sources({
            'src/app.js': (
                "class Job {\n"
                "  run() { return 1; }\n"
                "}\n"
                "const job = new Job();\n"
                "job.run();\n"
            ),
        })
        assert site_summary(find_sites(model, 'Job', 'run')) == [('src/app.js', 5, DIRECT)]

    def test_static_and_instance_members_distinct(self):
        model = TreeSitterSourceModel.from_sources({
            'src/box.ts': (
                "export class Box {\n"
                "  static open(): Box { return new Box(); }\n"
                "  open(): void {}\n"
                "}\n"
                "Box.open();\n"
                "new Box().open();\n"
            ),
        })
        by_static = {d.is_static: d for d in model.method_declarations() if d.name == 'open'}
        classifier = ReferenceClassifier(model)
        static_sites = classifier.classify({by_static[True].symbol})
        instance_sites = classifier.classify({by_static[False].symbol})
        assert [site.line for site in static_sites] == [5]
        assert [site.line for site in instance_sites] == [6]


class TestSkippedDeclarations:
    """Declarations whose references cannot be enumerated."""

    def test_ambient_base_is_skipped(self):
        model = TreeSitterSourceModel.from_sources({
            'src/remote.d.ts': "export declare class Remote {\n  fetch(): string;\n}\n",
            'src/local.ts': (
                "import { Remote } from './remote';\n"
                "export class Local extends Remote {\n"
                "  fetch(): string { return 'x'; }\n"
                "}\n"
                "new Local().fetch();\n"
            ),
        })
        _, symbols = resolve_and_build(model, 'Local', 'fetch')
        classifier = ReferenceClassifier(model)
        sites = classifier.classify(symbols)
        assert site_summary(sites) == [('src/local.ts', 5, DIRECT)]
        assert [d.type_name for d in classifier.skipped] == ['Remote']

    def test_computed_name_not_findable(self):
        model = TreeSitterSourceModel.from_sources({
            'src/keyed.ts': "class Keyed {\n  ['run']() { return 1; }\n}\n",
        })
        decls = model.types()[0].declarations()
        assert len(decls) == 1
        assert not model.is_reference_findable(decls[0])


PAIR = (
    "class A {\n"
    "  m(): void {}\n"
    "}\n"
    "class B {\n"
    "  m(): void {}\n"
    "}\n"
)


def pair_sites(body, class_name='A'):
    model = TreeSitterSourceModel.from_sources({'src/pair.ts': PAIR + body})
    return site_summary(find_sites(model, class_name, 'm'))


class TestUnionAndArrayReceivers:
    """Union members and array elements as receivers."""

    def test_union_parameter_reaches_every_member(self):
        body = "function f(x: A | B) {\n  x.m();\n}\n"
        assert pair_sites(body, 'A') == [('src/pair.ts', 8, DIRECT)]
        assert pair_sites(body, 'B') == [('src/pair.ts', 8, DIRECT)]

    def test_nullable_union_member(self):
        body = "function f(x: A | B | null | undefined) {\n  x?.m();\n}\n"
        assert pair_sites(body, 'B') == [('src/pair.ts', 8, OPTIONAL)]

    def test_union_through_alias_and_ternary(self):
        body = (
            "type Either = A | B;\n"
            "declare const flag: boolean;\n"
            "const e: Either = new A();\n"
            "e.m();\n"
            "(flag ? new A() : new B()).m();\n"
        )
        assert pair_sites(body, 'B') == [('src/pair.ts', 10, DIRECT), ('src/pair.ts', 11, DIRECT)]

    def test_union_member_without_method(self):
        model = TreeSitterSourceModel.from_sources({
            'src/pair.ts': PAIR + "class C {}\nfunction f(x: A | C) {\n  x.m();\n}\n",
        })
        assert site_summary(find_sites(model, 'A', 'm')) == [('src/pair.ts', 9, DIRECT)]

    def test_iteration_callback_and_for_of(self):
        body = (
            "const list: A[] = [];\n"
            "list.forEach(a => a.m());\n"
            "for (const a of list) { a.m(); }\n"
        )
        assert pair_sites(body) == [('src/pair.ts', 8, DIRECT), ('src/pair.ts', 9, DIRECT)]

    def test_generic_array_subscript_and_find(self):
        body = (
            "function g(items: ReadonlyArray<A>) {\n"
            "  items[0].m();\n"
            "  items.find(() => true)?.m();\n"
            "  items.map(function (item) { return item.m(); });\n"
            "}\n"
        )
        assert pair_sites(body) == [
            ('src/pair.ts', 8, DIRECT),
            ('src/pair.ts', 9, OPTIONAL),
            ('src/pair.ts', 10, DIRECT),
        ]

    def test_array_literal_elements(self):
        body = "[new A(), new B()].forEach((x) => x.m());\n"
        assert pair_sites(body, 'A') == [('src/pair.ts', 7, DIRECT)]
        assert pair_sites(body, 'B') == [('src/pair.ts', 7, DIRECT)]

    def test_for_in_binds_keys_not_elements(self):
        body = "const list: A[] = [];\nfor (const k in list) { k.m(); }\n"
        assert pair_sites(body) == []

    def test_array_receiver_has_no_members(self):
        body = "const list: A[] = [new A()];\nlist.m();\n"
        assert pair_sites(body) == []


@pytest.mark.parametrize('source,expected', [
    ("s.run();", DIRECT),
    ("s?.run();", OPTIONAL),
    ("s.run?.();", OPTIONAL),
    ("s.run.call(s);", TEAROFF),
    ("s.run.apply(s, []);", TEAROFF),
    ("const f = s.run;", None),
    ("console.log(s.run.name);", None),
])
def test_invocation_patterns(source, expected):
    sites = service_sites({
        'src/app.ts': "import { Service } from './svc';\nconst s = new Service();\n" + source + "\n",
    })
    if expected is None:
        assert sites == []
    else:
        assert sites == [('src/app.ts', 3, expected)]
