from pathlib import Path

from stubs import make_attachment, make_post

from tootsnap.media import ImageKey, ImageKind
from tootsnap.models import Card, Context, MediaAttachment, MediaType
from tootsnap.state import ExportState
from tootsnap.storage import FileSettingsStore


def test_attachment_fills_missing_id_and_preview_from_source() -> None:
    attachment = MediaAttachment(id="", type="gifv", source_url="https://example.com/a.mp4", preview_url="")

    assert attachment.id == "https://example.com/a.mp4"
    assert attachment.preview_url == "https://example.com/a.mp4"
    assert attachment.type == MediaType.GIFV


def test_image_references_order_and_deduplication() -> None:
    card = Card(title="Story", link_url="https://news.example.org", preview_image_url="https://example.com/media/1.png")
    post = make_post(attachments=[make_attachment(1), make_attachment(2)], card=card)

    urls = [reference.url for reference in post.image_references()]

    assert urls == [
        "https://example.com/media/1.png",
        "https://example.com/media/2.png",
        "https://example.com/avatars/1.png",
    ]


def test_state_thread_order_and_visibility() -> None:
    root = make_post("1")
    ancestor = make_post("0")
    reply = make_post("2", attachments=[make_attachment(7)])
    state = ExportState(
        post=root,
        context=Context(ancestors=[ancestor], descendants=[reply]),
        visible_post_ids=frozenset({"1", "2"}),
    )

    assert [post.id for post in state.all_posts] == ["0", "1", "2"]
    assert [post.id for post in state.visible_posts] == ["1", "2"]
    assert state.is_image_visible("https://example.com/media/7.png")
    assert not state.is_image_visible("https://example.com/avatars/0.png")
    assert ExportState().all_posts == []


def test_image_for_prefers_remote_over_placeholder() -> None:
    url = "https://example.com/media/1.png"
    state = ExportState(image_cache={ImageKey(url, ImageKind.BLURHASH): b"blur"})
    assert state.image_for(url) == b"blur"

    state = state.model_copy(update={"image_cache": {**state.image_cache, ImageKey(url): b"real"}})
    assert state.image_for(url) == b"real"
    assert state.image_for("https://example.com/other.png") is None


def test_file_settings_store_round_trips_blobs(tmp_path: Path) -> None:
    store = FileSettingsStore(tmp_path / "config")

    assert store.read_blob("settings") is None
    store.write_blob("settings", b"{}")
    store.write_blob("../token", b"abc")

    assert store.read_blob("settings") == b"{}"
    assert store.read_blob("../token") == b"abc"
    assert sorted(path.name for path in (tmp_path / "config").iterdir()) == [".._token.json", "settings.json"]
