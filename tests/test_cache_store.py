from __future__ import annotations

import json
from pathlib import Path

from artifact_cache.fileinfo import CacheEntry, CacheMetadata, WorktreeContext
from artifact_cache.fileinfo.schema import Fingerprint
from artifact_cache.fileinfo.store import CacheStore, encode_relative_path


def _entry(data: object, digest: str = "abc") -> CacheEntry:
    return CacheEntry(
        metadata=CacheMetadata.from_fingerprint("/src/file.py", Fingerprint(mtime=1, size=2, hash=digest)),
        data=data,
    )


def test_encode_relative_path_flattens_separators() -> None:
    assert encode_relative_path("src/pkg/index.ts") == "src__pkg__index.ts"


def test_path_for_repository_and_worktree(layout) -> None:
    repository = layout.repository()
    worktree = WorktreeContext(layout.worktree_a, repository)
    store = layout.store

    repo_path = store.path_for(repository, "ast", "src/index.ts")
    worktree_path = store.path_for(worktree, "ast", "src/index.ts")

    assert repo_path == layout.repo_root.resolve() / ".cache" / "repository" / "src__index.ts_ast_.info"
    assert worktree_path == (
        layout.repo_root.resolve() / ".cache" / "worktrees" / "wt-a" / "src__index.ts_ast_.info"
    )


def test_custom_cache_dir_from_config(tmp_path: Path) -> None:
    store = CacheStore.from_config(tmp_path, {"paths": {"cache": "data/cache"}})
    assert store.cache_root == tmp_path.resolve() / "data" / "cache"
    assert store.repository_cache_root == tmp_path.resolve() / "data" / "cache" / "repository"


def test_write_then_read_uses_wire_format(tmp_path: Path) -> None:
    store = CacheStore(tmp_path)
    cache_path = store.repository_cache_root / "nested" / "a.py_ast_.info"

    assert store.write(cache_path, _entry({"nodes": [1, 2]}))

    payload = json.loads(cache_path.read_text(encoding="utf-8"))
    assert payload == {
        "metadata": {"sourceFilePath": "/src/file.py", "mtime": 1, "size": 2, "hash": "abc"},
        "data": {"nodes": [1, 2]},
    }
    loaded = store.read(cache_path)
    assert loaded is not None
    assert loaded.metadata.hash == "abc"
    assert loaded.data == {"nodes": [1, 2]}


def test_read_treats_bad_files_as_cold_cache(tmp_path: Path) -> None:
    store = CacheStore(tmp_path)
    root = store.repository_cache_root
    root.mkdir(parents=True)

    missing = root / "missing_ast_.info"
    malformed = root / "malformed_ast_.info"
    malformed.write_text("{not json", encoding="utf-8")
    no_hash = root / "nohash_ast_.info"
    no_hash.write_text(json.dumps({"metadata": {"mtime": 1, "size": 2}, "data": 1}), encoding="utf-8")
    not_object = root / "list_ast_.info"
    not_object.write_text("[1, 2]", encoding="utf-8")

    assert store.read(missing) is None
    assert store.read(malformed) is None
    assert store.read(no_hash) is None
    assert store.read(not_object) is None


def test_write_failure_is_swallowed(tmp_path: Path) -> None:
    store = CacheStore(tmp_path)
    blocker = tmp_path / "blocker"
    blocker.write_text("file, not directory", encoding="utf-8")

    assert store.write(blocker / "child_ast_.info", _entry({"ok": True})) is False


def test_write_rejects_unserialisable_data(tmp_path: Path) -> None:
    store = CacheStore(tmp_path)
    cache_path = store.repository_cache_root / "obj_ast_.info"

    assert store.write(cache_path, _entry(object())) is False


def test_delete_context_tree_is_scoped_to_one_worktree(layout) -> None:
    repository = layout.repository()
    worktree_a = WorktreeContext(layout.worktree_a, repository)
    worktree_b = WorktreeContext(layout.worktree_b, repository)
    store = layout.store
    for context in (repository, worktree_a, worktree_b):
        store.write(store.path_for(context, "ast", "a.py"), _entry({"ok": True}))

    assert store.delete_context_tree(worktree_a)

    assert not store.context_root(worktree_a).exists()
    assert store.read(store.path_for(repository, "ast", "a.py")) is not None
    assert store.read(store.path_for(worktree_b, "ast", "a.py")) is not None
    assert store.list_worktree_caches() == ["wt-b"]


def test_delete_context_tree_refuses_repository(layout, caplog) -> None:
    repository = layout.repository()
    store = layout.store
    cache_path = store.path_for(repository, "ast", "a.py")
    store.write(cache_path, _entry({"ok": True}))

    with caplog.at_level("WARNING"):
        assert store.delete_context_tree(repository) is False

    assert cache_path.exists()
    assert "Refusing to delete" in caplog.text
