import asyncio

import pytest

from codechunk.indexer.errors import EmbeddingError, InvalidProjectError, ProjectNotFoundError
from codechunk.indexer.models import RunMode

from conftest import FakeEmbedder, make_orchestrator, write_file

UTIL = """\
export function add(a: number, b: number): number {
  return a + b;
}
"""

MAIN = """\
import { add } from "./util";

export function run(): number {
  return add(1, 2);
}
"""


def chunks_by_name(chunk_store, project_id):
    return {c.name: c for c in chunk_store.get_chunks_by_project(project_id)}


def snapshot(chunk_store, project_id):
    return sorted(
        (c.path, c.name, c.id, c.code, tuple(c.dependencies), tuple(c.dependents))
        for c in chunk_store.get_chunks_by_project(project_id)
    )


@pytest.fixture
def project(project_store, project_dir):
    write_file(project_dir, "util.ts", UTIL)
    write_file(project_dir, "main.ts", MAIN)
    return project_store.create_project(str(project_dir))


def test_end_to_end_dependencies_and_dependents(orchestrator, chunk_store, project):
    result = asyncio.run(orchestrator.analyze(project.id))

    assert result.mode == RunMode.FULL
    assert result.analyzed_files == 2
    assert result.indexed_chunks == 2
    assert result.total_chunks == 2

    chunks = chunks_by_name(chunk_store, project.id)
    assert chunks["add"].dependencies == []
    assert chunks["add"].dependents == ["run"]
    assert chunks["run"].dependencies == ["add"]
    assert chunks["run"].dependents == []
    assert chunks["add"].path == "util.ts"
    assert chunks["run"].path == "main.ts"
    assert result.transitive_dependencies == 1


def test_first_run_records_revision(orchestrator, project_store, project, fake_git):
    assert project_store.get_project(project.id).last_commit_hash is None
    asyncio.run(orchestrator.analyze(project.id))
    assert project_store.get_project(project.id).last_commit_hash == fake_git.revision


def test_unchanged_revision_skips_work(orchestrator, chunk_store, project, embedder):
    asyncio.run(orchestrator.analyze(project.id))
    calls_after_first = len(embedder.calls)

    result = asyncio.run(orchestrator.analyze(project.id))

    assert result.mode == RunMode.SKIP
    assert result.analyzed_files == 0
    assert result.total_chunks == 2
    assert len(embedder.calls) == calls_after_first


def test_two_full_runs_are_idempotent(orchestrator, chunk_store, project):
    asyncio.run(orchestrator.analyze(project.id, force_full=True))
    first = snapshot(chunk_store, project.id)

    asyncio.run(orchestrator.analyze(project.id, force_full=True))
    second = snapshot(chunk_store, project.id)

    assert first == second


def test_reindex_updates_chunk_in_place(orchestrator, chunk_store, project, project_dir, fake_git):
    asyncio.run(orchestrator.analyze(project.id))
    before = chunks_by_name(chunk_store, project.id)["add"]

    write_file(project_dir, "util.ts", UTIL.replace("a + b", "b + a"))
    fake_git.revision = "rev2"
    fake_git.changed = ["util.ts"]
    result = asyncio.run(orchestrator.analyze(project.id))

    assert result.mode == RunMode.INCREMENTAL
    assert result.analyzed_files == 1
    assert result.changed_files == ["util.ts"]
    assert chunk_store.count_chunks(project.id) == 2

    after = chunks_by_name(chunk_store, project.id)["add"]
    assert after.id == before.id
    assert after.created_at == before.created_at
    assert "b + a" in after.code


def test_incremental_run_scoping_gap(orchestrator, chunk_store, project, project_dir, fake_git):
    asyncio.run(orchestrator.analyze(project.id))
    assert chunks_by_name(chunk_store, project.id)["add"].dependents == ["run"]

    # main.ts (run -> add) is unchanged; only util.ts is re-extracted
    write_file(project_dir, "util.ts", UTIL + "\n")
    fake_git.revision = "rev2"
    fake_git.changed = ["util.ts"]
    asyncio.run(orchestrator.analyze(project.id))

    chunks = chunks_by_name(chunk_store, project.id)
    assert "run" not in chunks["add"].dependents
    assert chunks["run"].dependencies == ["add"]


def test_widened_resolution_keeps_dependents(
    project_store, chunk_store, embedder, fake_git, project, project_dir
):
    orchestrator = make_orchestrator(
        project_store, chunk_store, embedder, fake_git, resolve_against_stored=True
    )
    asyncio.run(orchestrator.analyze(project.id))

    write_file(project_dir, "util.ts", UTIL + "\n")
    fake_git.revision = "rev2"
    fake_git.changed = ["util.ts"]
    asyncio.run(orchestrator.analyze(project.id))

    assert chunks_by_name(chunk_store, project.id)["add"].dependents == ["run"]


def test_deleted_and_ignored_changed_files_are_skipped(orchestrator, project, project_dir, fake_git):
    asyncio.run(orchestrator.analyze(project.id))

    write_file(project_dir, "node_modules/lib/index.js", "function lib() {\n  return 1;\n}\n")
    write_file(project_dir, "README.md", "# readme\n")
    fake_git.revision = "rev2"
    fake_git.changed = ["removed.ts", "node_modules/lib/index.js", "README.md"]
    result = asyncio.run(orchestrator.analyze(project.id))

    assert result.mode == RunMode.INCREMENTAL
    assert result.analyzed_files == 0
    assert result.indexed_chunks == 0
    assert result.total_chunks == 2


def test_empty_run_still_records_revision(orchestrator, project_store, project, fake_git):
    asyncio.run(orchestrator.analyze(project.id))
    fake_git.revision = "rev2"
    fake_git.changed = ["removed.ts"]
    asyncio.run(orchestrator.analyze(project.id))
    assert project_store.get_project(project.id).last_commit_hash == "rev2"


def test_full_run_skips_ignored_directories(orchestrator, chunk_store, project, project_dir):
    write_file(project_dir, "dist/bundle.js", "function bundled() {\n  return 1;\n}\n")
    write_file(project_dir, "app.min.js", "function minified() {\n  return 1;\n}\n")
    asyncio.run(orchestrator.analyze(project.id))

    names = set(chunks_by_name(chunk_store, project.id))
    assert names == {"add", "run"}


def test_full_run_respects_gitignore(orchestrator, chunk_store, project, project_dir):
    write_file(project_dir, ".gitignore", "generated/\n")
    write_file(project_dir, "generated/api.ts", "export function generated() {\n  return 1;\n}\n")
    asyncio.run(orchestrator.analyze(project.id))

    assert "generated" not in chunks_by_name(chunk_store, project.id)


def test_failing_file_is_reported_and_others_indexed(orchestrator, chunk_store, project, project_dir, monkeypatch):
    write_file(project_dir, "broken.ts", "function explode() {\n  return 1;\n}\n")
    extractor = orchestrator.builder.extractor
    original = extractor.extract_symbols

    def extract(source_code, language):
        if b"explode" in source_code:
            raise RuntimeError("parser crashed")
        return original(source_code, language)

    monkeypatch.setattr(extractor, "extract_symbols", extract)
    result = asyncio.run(orchestrator.analyze(project.id))

    assert result.failed_files == ["broken.ts"]
    assert result.analyzed_files == 2
    assert set(chunks_by_name(chunk_store, project.id)) == {"add", "run"}


def test_embedding_failure_persists_nothing(project_store, chunk_store, fake_git, project):
    orchestrator = make_orchestrator(project_store, chunk_store, FakeEmbedder(fail=True), fake_git)

    with pytest.raises(EmbeddingError):
        asyncio.run(orchestrator.analyze(project.id))

    assert chunk_store.count_chunks(project.id) == 0
    assert project_store.get_project(project.id).last_commit_hash is None


def test_unknown_project_rejected(orchestrator):
    with pytest.raises(ProjectNotFoundError):
        asyncio.run(orchestrator.analyze("missing"))


def test_vanished_root_rejected(orchestrator, project, project_dir):
    for path in project_dir.iterdir():
        path.unlink()
    project_dir.rmdir()
    with pytest.raises(InvalidProjectError):
        asyncio.run(orchestrator.analyze(project.id))


def test_duplicate_symbol_names_in_one_file_collapse(orchestrator, chunk_store, project, project_dir):
    write_file(
        project_dir,
        "dup.ts",
        "function twice() {\n  return 1;\n}\n\nclass Holder {\n  twice() {\n    return 2;\n  }\n}\n",
    )
    asyncio.run(orchestrator.analyze(project.id))

    dup = [c for c in chunk_store.get_chunks_by_project(project.id) if c.path == "dup.ts"]
    assert sorted(c.name for c in dup) == ["Holder", "twice"]
    assert next(c for c in dup if c.name == "twice").line_start == 1


def test_dependency_graph_view(orchestrator, project):
    asyncio.run(orchestrator.analyze(project.id))
    graph = orchestrator.dependency_graph(project.id, "run")
    assert graph["chunks"][0]["dependencies"] == ["add"]
    assert graph["transitive_dependencies"] == ["add"]


def assert_transpose(chunk_store, project_id):
    chunks = chunks_by_name(chunk_store, project_id)
    for chunk in chunks.values():
        for name in chunk.dependencies:
            assert chunk.name in chunks[name].dependents, (chunk.name, name)
        for name in chunk.dependents:
            assert chunk.name in chunks[name].dependencies, (name, chunk.name)


MAIN_WITH_OLD = MAIN + """
export function old(): number {
  return add(3, 4);
}
"""


def test_full_run_removes_deleted_symbols(orchestrator, chunk_store, project, project_dir):
    write_file(project_dir, "main.ts", MAIN_WITH_OLD)
    asyncio.run(orchestrator.analyze(project.id))
    assert sorted(chunks_by_name(chunk_store, project.id)["add"].dependents) == ["old", "run"]

    write_file(project_dir, "main.ts", MAIN)
    result = asyncio.run(orchestrator.analyze(project.id, force_full=True))

    assert result.removed_chunks == 1
    chunks = chunks_by_name(chunk_store, project.id)
    assert set(chunks) == {"add", "run"}
    assert chunks["add"].dependents == ["run"]
    assert_transpose(chunk_store, project.id)


def test_incremental_run_removes_symbols_of_changed_file(orchestrator, chunk_store, project, project_dir, fake_git):
    write_file(project_dir, "main.ts", MAIN_WITH_OLD)
    asyncio.run(orchestrator.analyze(project.id))

    write_file(project_dir, "main.ts", MAIN)
    fake_git.revision = "rev2"
    fake_git.changed = ["main.ts"]
    result = asyncio.run(orchestrator.analyze(project.id))

    assert result.mode == RunMode.INCREMENTAL
    assert result.removed_chunks == 1
    assert set(chunks_by_name(chunk_store, project.id)) == {"add", "run"}


def test_incremental_run_removes_chunks_of_deleted_file(orchestrator, chunk_store, project, project_dir, fake_git):
    asyncio.run(orchestrator.analyze(project.id))

    (project_dir / "util.ts").unlink()
    fake_git.revision = "rev2"
    fake_git.changed = ["util.ts"]
    result = asyncio.run(orchestrator.analyze(project.id))

    assert result.analyzed_files == 0
    assert result.removed_chunks == 1
    assert set(chunks_by_name(chunk_store, project.id)) == {"run"}


def test_full_run_keeps_chunks_of_failing_file(orchestrator, chunk_store, project, project_dir, monkeypatch):
    write_file(project_dir, "broken.ts", "function explode() {\n  return 1;\n}\n")
    asyncio.run(orchestrator.analyze(project.id))
    assert "explode" in chunks_by_name(chunk_store, project.id)

    extractor = orchestrator.builder.extractor
    original = extractor.extract_symbols

    def extract(source_code, language):
        if b"explode" in source_code:
            raise RuntimeError("parser crashed")
        return original(source_code, language)

    monkeypatch.setattr(extractor, "extract_symbols", extract)
    result = asyncio.run(orchestrator.analyze(project.id, force_full=True))

    assert result.failed_files == ["broken.ts"]
    assert result.removed_chunks == 0
    assert "explode" in chunks_by_name(chunk_store, project.id)


def test_commit_outside_project_indexes_nothing(orchestrator, project_store, project, fake_git, embedder):
    asyncio.run(orchestrator.analyze(project.id))
    calls_after_first = len(embedder.calls)

    fake_git.revision = "rev2"
    fake_git.changed = []
    result = asyncio.run(orchestrator.analyze(project.id))

    assert result.mode == RunMode.INCREMENTAL
    assert result.analyzed_files == 0
    assert result.total_chunks == 2
    assert len(embedder.calls) == calls_after_first
    assert project_store.get_project(project.id).last_commit_hash == "rev2"


def test_failed_diff_reindexes_everything(orchestrator, project, fake_git):
    asyncio.run(orchestrator.analyze(project.id))

    fake_git.revision = "rev2"
    fake_git.diff_fails = True
    result = asyncio.run(orchestrator.analyze(project.id))

    assert result.mode == RunMode.FULL
    assert result.analyzed_files == 2
