"""Tests for import resolution and the calls/calledBy graph."""

from metadatafy.classifier import FileClassifier
from metadatafy.graph import DependencyGraph
from metadatafy.models import Classification, FileAnalysis, ImportEdge

PATHS = [
    "components/button.tsx",
    "components/form/index.ts",
    "hooks/use-form.ts",
    "lib/format.js",
    "src/lib/api.ts",
]


def _analysis(path, *specifiers):
    return FileAnalysis(
        path=path,
        role="utility",
        name=path,
        classification=Classification("utility"),
        imports=[ImportEdge(source_specifier=s) for s in specifiers],
    )


def test_resolves_relative_specifiers():
    graph = DependencyGraph(PATHS)
    assert graph.resolve("components/form/index.ts", "../button") == "components/button.tsx"
    assert graph.resolve("hooks/use-form.ts", "../components/form") == "components/form/index.ts"
    assert graph.resolve("hooks/use-form.ts", "../lib/format.js") == "lib/format.js"
    assert graph.resolve("hooks/use-form.ts", "./missing") is None


def test_resolves_aliases():
    graph = DependencyGraph(PATHS, aliases={"@/": ["", "src/"]})
    assert graph.resolve("hooks/use-form.ts", "@/lib/format") == "lib/format.js"
    assert graph.resolve("hooks/use-form.ts", "@/lib/api") == "src/lib/api.ts"


def test_external_packages_are_not_resolved():
    graph = DependencyGraph(PATHS, aliases={"@/": [""]})
    assert graph.resolve("hooks/use-form.ts", "react") is None
    assert graph.resolve("hooks/use-form.ts", "@tanstack/react-query") is None


def test_edges_are_symmetric_and_deduplicated():
    analyses = [
        _analysis("components/button.tsx", "../hooks/use-form", "../hooks/use-form.ts", "react"),
        _analysis("hooks/use-form.ts", "../lib/format"),
        _analysis("lib/format.js"),
    ]
    graph = DependencyGraph(a.path for a in analyses)
    entries = graph.build(analyses)

    assert entries["components/button.tsx"].calls == ["hooks/use-form.ts"]
    assert entries["hooks/use-form.ts"].called_by == ["components/button.tsx"]
    assert entries["hooks/use-form.ts"].calls == ["lib/format.js"]
    assert entries["lib/format.js"].called_by == ["hooks/use-form.ts"]
    assert analyses[0].imports[0].resolved_path == "hooks/use-form.ts"
    assert analyses[0].imports[2].resolved_path is None


def test_self_imports_are_dropped():
    analyses = [_analysis("lib/format.js", "./format")]
    entries = DependencyGraph(["lib/format.js"]).build(analyses)
    assert entries["lib/format.js"].calls == []
    assert entries["lib/format.js"].called_by == []


def test_symmetry_holds_for_any_input_order():
    def build(order):
        analyses = [_analysis(p, *specs) for p, specs in order]
        return DependencyGraph(a.path for a in analyses).build(analyses)

    files = [
        ("a.ts", ("./b", "./c")),
        ("b.ts", ("./c",)),
        ("c.ts", ("./a",)),
    ]
    for order in (files, list(reversed(files)), [files[1], files[0], files[2]]):
        entries = build(order)
        for path, entry in entries.items():
            for target in entry.calls:
                assert path in entries[target].called_by
            for caller in entry.called_by:
                assert path in entries[caller].calls
