import json

import pytest

from reddit_to_gmap.cache import (
    CacheReadError,
    SnapshotNotFoundError,
    SnapshotParseError,
    SnapshotStore,
)
from reddit_to_gmap.models import Post


def test_write_then_read_uses_indented_data_envelope(tmp_path):
    store = SnapshotStore(str(tmp_path / "cache"))
    assert not store.exists("foodnyc")

    store.write("foodnyc", [{"a": 1}])

    assert store.exists("foodnyc")
    text = (tmp_path / "cache" / "foodnyc.json").read_text(encoding="utf-8")
    assert json.loads(text) == {"data": [{"a": 1}]}
    assert text.startswith('{\n  "data"')
    assert store.read("foodnyc") == [{"a": 1}]


def test_write_overwrites_whole_snapshot(tmp_path):
    store = SnapshotStore(str(tmp_path))
    store.write("k", [1, 2, 3])
    store.write("k", [4])

    assert store.read("k") == [4]
    leftovers = [p.name for p in tmp_path.iterdir() if p.name != "k.json"]
    assert not leftovers


def test_read_missing_snapshot_raises_not_found(tmp_path):
    store = SnapshotStore(str(tmp_path))

    with pytest.raises(SnapshotNotFoundError):
        store.read("nope")


def test_read_corrupt_snapshot_raises_parse_error(tmp_path):
    store = SnapshotStore(str(tmp_path))
    (tmp_path / "broken.json").write_text('{"data": [', encoding="utf-8")
    (tmp_path / "bare.json").write_text("[1, 2]", encoding="utf-8")

    with pytest.raises(SnapshotParseError):
        store.read("broken")
    with pytest.raises(SnapshotParseError):
        store.read("bare")
    assert issubclass(SnapshotParseError, CacheReadError)


def test_read_models_decodes_through_schema(tmp_path):
    store = SnapshotStore(str(tmp_path))
    posts = [Post(title="t", selftext="s", permalink="https://www.reddit.com/r/x/1", score=5)]
    store.write_models("x", posts)

    assert store.read_models("x", Post.from_dict) == posts


def test_read_models_rejects_schema_mismatch(tmp_path):
    store = SnapshotStore(str(tmp_path))
    store.write("x", [{"title": "t", "permalink": "p", "score": "lots"}])
    store.write("y", {"title": "not a list"})

    with pytest.raises(SnapshotParseError):
        store.read_models("x", Post.from_dict)
    with pytest.raises(SnapshotParseError):
        store.read_models("y", Post.from_dict)


@pytest.mark.parametrize("key", ["", "..", "a/b", "a b"])
def test_invalid_keys_are_rejected(tmp_path, key):
    store = SnapshotStore(str(tmp_path))

    with pytest.raises(ValueError):
        store.path_for(key)
