import pytest

from thinkfast.opponent.artifacts import ArtifactStore, format_size
from thinkfast.opponent.catalog import (
    AVAILABLE_MODELS,
    QWEN_2_5_0_5B,
    get_definition,
    list_models,
)


@pytest.mark.parametrize(
    "size,label",
    [
        (0, "0.0 B"),
        (512, "512.0 B"),
        (2048, "2.0 KB"),
        (5 * 1024 * 1024, "5.0 MB"),
        (int(1.5 * 1024**3), "1.5 GB"),
    ],
)
def test_format_size(size, label):
    assert format_size(size) == label


def test_catalog_order_and_lookup():
    assert [model.id for model in list_models()] == ["qwen-0.5b", "tinyllama", "qwen2.5-3b"]
    assert get_definition("tinyllama").context_length == 256
    assert all(model.url.endswith(model.filename) for model in AVAILABLE_MODELS)
    with pytest.raises(KeyError, match="not found in catalog"):
        get_definition("llama-70b")


def test_store_reports_download_status(tmp_path):
    store = ArtifactStore(tmp_path)
    assert store.is_downloaded(QWEN_2_5_0_5B) is False
    assert store.size_bytes(QWEN_2_5_0_5B) is None
    assert store.size_label(QWEN_2_5_0_5B) == "0.4 GB"

    store.part_path(QWEN_2_5_0_5B).write_bytes(b"x" * 10)
    assert store.partial_bytes(QWEN_2_5_0_5B) == 10
    assert store.is_downloaded(QWEN_2_5_0_5B) is False

    store.path_for(QWEN_2_5_0_5B).write_bytes(b"x" * 2048)
    assert store.is_downloaded(QWEN_2_5_0_5B) is True
    assert store.size_label(QWEN_2_5_0_5B) == "2.0 KB"


def test_delete_removes_artifact_and_partial(tmp_path):
    store = ArtifactStore(tmp_path)
    store.path_for(QWEN_2_5_0_5B).write_bytes(b"model")
    store.part_path(QWEN_2_5_0_5B).write_bytes(b"part")

    assert store.delete(QWEN_2_5_0_5B) is True
    assert not store.path_for(QWEN_2_5_0_5B).exists()
    assert not store.part_path(QWEN_2_5_0_5B).exists()
    assert store.delete(QWEN_2_5_0_5B) is False


def test_delete_can_keep_partial(tmp_path):
    store = ArtifactStore(tmp_path)
    store.part_path(QWEN_2_5_0_5B).write_bytes(b"part")
    assert store.delete(QWEN_2_5_0_5B, include_partial=False) is False
    assert store.partial_bytes(QWEN_2_5_0_5B) == 4
