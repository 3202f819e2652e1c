"""End-to-end tests for the incremental encode pipeline."""

from datetime import timedelta

import pytest

from catalog_encoder.pipeline import encode_catalog
from catalog_encoder.transcode import parse_formats
from catalog_encoder.utils.errors import CatalogError, MediaMethodError, StoreError
from conftest import FakeThumbnailer, FakeTranscoder, FlakyStore, SimulatedCrash, read_json, write_json

TWO_FORMATS = "mp4:x264:22@64x64,webm:vp9:32@128x72"


def _run(workspace, transcoder, thumbnailer, store, temp_dir, formats="mp4:x264:22@64x64", **kwargs):
    kwargs.setdefault("clock", lambda: 1000)
    output, stats = encode_catalog(
        str(workspace / "search-data.json"),
        str(workspace / "out" / "encoded.json"),
        parse_formats(formats),
        transcoder,
        thumbnailer,
        store=store,
        temp_dir=str(temp_dir),
        **kwargs,
    )
    return output, stats


def _output(workspace):
    return read_json(workspace / "out" / "encoded.json")


def test_single_entry_end_to_end(workspace, transcoder, thumbnailer, store, temp_dir):
    _, stats = _run(workspace, transcoder, thumbnailer, store, temp_dir)

    data = _output(workspace)
    media = data["a"]["media"][0]
    assert data["a"]["title"] == "T"
    assert data["a"]["published"] is True
    assert len(media["encodes"]) == 1
    rendition = media["encodes"][0]
    assert rendition["version"] == "mp4:x264:22@64x64"
    assert rendition["url"] == "encoded-media/a-0-x264-64x64.mp4"
    assert rendition["type"] == "video/mp4"
    assert rendition["byteSize"] == len(b"mp4:x264")
    assert media["thumbnail"] == "encoded-media/a-0.webp"
    assert media["timestamp"] == 1000
    assert media["source"] == {"method": "fetch", "url": "v.mp4"}

    assert (workspace / "out" / "encoded-media" / "a-0-x264-64x64.mp4").read_bytes() == b"mp4:x264"
    assert (workspace / "out" / "encoded-media" / "a-0.webp").read_bytes() == b"webp"
    assert stats.encoded == 1
    assert stats.thumbnails_generated == 1


def test_second_run_reuses_everything(workspace, transcoder, thumbnailer, store, temp_dir):
    _run(workspace, transcoder, thumbnailer, store, temp_dir, formats=TWO_FORMATS)
    first = _output(workspace)
    assert len(transcoder.calls) == 2
    assert len(thumbnailer.calls) == 1

    _, stats = _run(workspace, transcoder, thumbnailer, store, temp_dir, formats=TWO_FORMATS,
                    clock=lambda: 5000)

    assert len(transcoder.calls) == 2
    assert len(thumbnailer.calls) == 1
    assert stats.reused == 2
    assert stats.thumbnails_reused == 1
    assert _output(workspace) == first


def test_reused_rendition_is_copied_unchanged(workspace, transcoder, thumbnailer, store, temp_dir):
    prior = {
        "type": "video/mp4", "width": 60, "height": 34, "container": "mp4", "codec": "x264",
        "version": "mp4:x264:22@64x64", "url": "encoded-media/old.mp4", "legacy": {"k": 1},
    }
    write_json(workspace / "out" / "encoded.json", {
        "a": {"title": "T", "media": [{
            "type": "video",
            "source": {"method": "fetch", "url": "v.mp4"},
            "thumbnail": "encoded-media/old.webp",
            "timestamp": 400,
            "encodes": [prior],
        }]},
    })

    _run(workspace, transcoder, thumbnailer, store, temp_dir)

    media = _output(workspace)["a"]["media"][0]
    assert transcoder.calls == []
    assert thumbnailer.calls == []
    assert store.downloads == []
    assert media["encodes"] == [prior]
    assert media["thumbnail"] == "encoded-media/old.webp"
    assert media["timestamp"] == 400


def test_new_format_encodes_only_the_missing_version(workspace, transcoder, thumbnailer, store, temp_dir):
    _run(workspace, transcoder, thumbnailer, store, temp_dir)
    _run(workspace, transcoder, thumbnailer, store, temp_dir, formats=TWO_FORMATS, clock=lambda: 3000)

    assert [c.codec for c in transcoder.calls] == ["x264", "vp9"]
    media = _output(workspace)["a"]["media"][0]
    assert [e["version"] for e in media["encodes"]] == ["mp4:x264:22@64x64", "webm:vp9:32@128x72"]
    assert media["timestamp"] == 1000


def test_source_identity_only_uses_version_and_url(workspace, transcoder, thumbnailer, store, temp_dir):
    _run(workspace, transcoder, thumbnailer, store, temp_dir)

    write_json(workspace / "search-data.json", {
        "a": {"title": "T", "media": [{"method": "fetch", "url": "v.mp4", "caption": "changed"}]},
    })
    _run(workspace, transcoder, thumbnailer, store, temp_dir)
    assert len(transcoder.calls) == 1

    write_json(workspace / "search-data.json", {
        "a": {"title": "T", "media": [{"method": "fetch", "url": "v.mp4", "version": 2}]},
    })
    _run(workspace, transcoder, thumbnailer, store, temp_dir)
    assert len(transcoder.calls) == 2
    assert len(thumbnailer.calls) == 2


def test_expired_media_is_fully_regenerated(workspace, transcoder, thumbnailer, store, temp_dir):
    _run(workspace, transcoder, thumbnailer, store, temp_dir)
    max_age = timedelta(seconds=1)

    _run(workspace, transcoder, thumbnailer, store, temp_dir, expire_after=max_age, clock=lambda: 2000)
    assert len(transcoder.calls) == 1

    _run(workspace, transcoder, thumbnailer, store, temp_dir, expire_after=max_age, clock=lambda: 2001)
    assert len(transcoder.calls) == 2
    assert len(thumbnailer.calls) == 2
    assert len(store.downloads) == 2
    assert _output(workspace)["a"]["media"][0]["timestamp"] == 2001


def test_one_failed_format_keeps_siblings(workspace, thumbnailer, store, temp_dir):
    transcoder = FakeTranscoder(fail_codecs={"vp9"})
    formats = "mp4:x264:22@64x64,webm:vp9:32@128x72,mkv:x264:20@32x32"

    _, stats = _run(workspace, transcoder, thumbnailer, store, temp_dir, formats=formats)

    entry = _output(workspace)["a"]
    versions = [e["version"] for e in entry["media"][0]["encodes"]]
    assert versions == ["mp4:x264:22@64x64", "mkv:x264:20@32x32"]
    assert entry["media"][0]["thumbnail"] == "encoded-media/a-0.webp"
    assert entry["published"] is False
    assert stats.failed == 1
    assert stats.unpublished == 1


def test_failed_format_is_retried_next_run(workspace, thumbnailer, store, temp_dir):
    _run(workspace, FakeTranscoder(fail_codecs={"vp9"}), thumbnailer, store, temp_dir, formats=TWO_FORMATS)

    retry = FakeTranscoder()
    _run(workspace, retry, thumbnailer, store, temp_dir, formats=TWO_FORMATS)

    assert [c.codec for c in retry.calls] == ["vp9"]
    entry = _output(workspace)["a"]
    assert entry["published"] is True
    assert len(entry["media"][0]["encodes"]) == 2


def test_thumbnail_failure_unpublishes_but_keeps_renditions(workspace, transcoder, store, temp_dir):
    _run(workspace, transcoder, FakeThumbnailer(fail=True), store, temp_dir)

    entry = _output(workspace)["a"]
    assert entry["published"] is False
    assert entry["media"][0]["thumbnail"] is None
    assert len(entry["media"][0]["encodes"]) == 1


def test_fetch_failure_only_affects_that_media_item(workspace, transcoder, thumbnailer, store, temp_dir):
    write_json(workspace / "search-data.json", {
        "a": {"media": [
            {"method": "fetch", "url": "missing.mp4"},
            {"method": "fetch", "url": "v.mp4"},
        ]},
    })

    _run(workspace, transcoder, thumbnailer, store, temp_dir, formats=TWO_FORMATS)

    entry = _output(workspace)["a"]
    assert entry["published"] is False
    assert entry["media"][0]["encodes"] == []
    assert len(entry["media"][1]["encodes"]) == 2
    assert [d.rsplit("/", 1)[-1] for d in store.downloads] == ["missing.mp4", "v.mp4"]


def test_source_downloaded_once_per_entry(workspace, transcoder, thumbnailer, store, temp_dir):
    _run(workspace, transcoder, thumbnailer, store, temp_dir, formats=TWO_FORMATS)

    assert len(store.downloads) == 1
    assert transcoder.calls[0].input == transcoder.calls[1].input
    assert list(temp_dir.iterdir()) == []


def test_output_order_mirrors_input(tmp_path, transcoder, thumbnailer, store, temp_dir):
    for name in ("one.mp4", "two.mp4", "three.mp4"):
        (tmp_path / name).write_bytes(name.encode())
    write_json(tmp_path / "search-data.json", {
        "z": {"media": [{"method": "fetch", "url": "one.mp4"}, {"method": "fetch", "url": "two.mp4"}]},
        "b": {"media": [{"method": "fetch", "url": "three.mp4"}]},
    })

    _run(tmp_path, transcoder, thumbnailer, store, temp_dir, formats=TWO_FORMATS)

    data = _output(tmp_path)
    assert list(data) == ["z", "b"]
    assert [m["source"]["url"] for m in data["z"]["media"]] == ["one.mp4", "two.mp4"]
    for entry in data.values():
        for media in entry["media"]:
            assert [e["codec"] for e in media["encodes"]] == ["x264", "vp9"]
    assert data["z"]["media"][1]["encodes"][0]["url"] == "encoded-media/z-1-x264-64x64.mp4"


def test_clipping_is_passed_to_transcoder_and_thumbnail(workspace, transcoder, thumbnailer, store, temp_dir):
    write_json(workspace / "search-data.json", {
        "a": {"media": [{"method": "fetch", "url": "v.mp4", "clipping": {"start": 2, "end": 5}}]},
    })

    _run(workspace, transcoder, thumbnailer, store, temp_dir)

    options = transcoder.calls[0]
    assert options.start == 2
    assert options.duration == 3
    assert thumbnailer.calls[0][1] == 2


def test_entry_ids_are_sanitized_in_filenames(tmp_path, transcoder, thumbnailer, store, temp_dir):
    (tmp_path / "v.mp4").write_bytes(b"x")
    write_json(tmp_path / "search-data.json", {"Hello World!": {"media": [{"method": "fetch", "url": "v.mp4"}]}})

    _run(tmp_path, transcoder, thumbnailer, store, temp_dir)

    media = _output(tmp_path)["Hello World!"]["media"][0]
    assert media["encodes"][0]["url"] == "encoded-media/Hello_World_-x-_-0-x264-64x64.mp4"
    assert media["thumbnail"] == "encoded-media/Hello_World_-x-_-0.webp"


def test_unsupported_media_method_aborts_before_any_work(workspace, transcoder, thumbnailer, store, temp_dir):
    write_json(workspace / "search-data.json", {
        "a": {"media": [{"method": "fetch", "url": "v.mp4"}]},
        "b": {"media": [{"method": "upload", "url": "v.mp4"}]},
    })

    with pytest.raises(MediaMethodError):
        _run(workspace, transcoder, thumbnailer, store, temp_dir)

    assert transcoder.calls == []
    assert not (workspace / "out" / "encoded.json").exists()


def test_missing_input_catalog_is_fatal(tmp_path, transcoder, thumbnailer, store, temp_dir):
    with pytest.raises(CatalogError):
        _run(tmp_path, transcoder, thumbnailer, store, temp_dir)


def test_corrupt_previous_output_is_treated_as_empty(workspace, transcoder, thumbnailer, store, temp_dir):
    (workspace / "out").mkdir()
    (workspace / "out" / "encoded.json").write_text("{not json")

    _run(workspace, transcoder, thumbnailer, store, temp_dir)

    assert len(transcoder.calls) == 1
    assert _output(workspace)["a"]["media"][0]["encodes"][0]["version"] == "mp4:x264:22@64x64"


def test_final_write_drops_entries_no_longer_in_input(workspace, transcoder, thumbnailer, store, temp_dir):
    write_json(workspace / "out" / "encoded.json", {"gone": {"media": [], "published": True}})

    _run(workspace, transcoder, thumbnailer, store, temp_dir)

    assert list(_output(workspace)) == ["a"]


def _two_entry_workspace(tmp_path):
    (tmp_path / "a.mp4").write_bytes(b"entry-a")
    (tmp_path / "b.mp4").write_bytes(b"entry-b")
    write_json(tmp_path / "search-data.json", {
        "a": {"media": [{"method": "fetch", "url": "a.mp4"}]},
        "b": {"media": [{"method": "fetch", "url": "b.mp4"}]},
    })
    write_json(tmp_path / "out" / "encoded.json", {"old": {"media": [], "published": True}})


def test_continuous_checkpoint_allows_resume(tmp_path, thumbnailer, store, temp_dir):
    _two_entry_workspace(tmp_path)
    crashing = FakeTranscoder(crash_on="entry-b")

    with pytest.raises(SimulatedCrash):
        _run(tmp_path, crashing, thumbnailer, store, temp_dir, write_continuously=True)

    checkpoint = _output(tmp_path)
    assert set(checkpoint) == {"old", "a"}
    assert len(checkpoint["a"]["media"][0]["encodes"]) == 1
    assert list(temp_dir.iterdir()) == []

    resumed = FakeTranscoder()
    _run(tmp_path, resumed, thumbnailer, store, temp_dir, write_continuously=True)

    assert resumed.sources == [b"entry-b"]
    assert list(_output(tmp_path)) == ["a", "b"]


def test_without_continuous_mode_nothing_is_written_before_the_end(tmp_path, thumbnailer, store, temp_dir):
    _two_entry_workspace(tmp_path)

    with pytest.raises(SimulatedCrash):
        _run(tmp_path, FakeTranscoder(crash_on="entry-b"), thumbnailer, store, temp_dir)

    assert list(_output(tmp_path)) == ["old"]


def test_unexpected_transcoder_error_only_fails_that_format(workspace, thumbnailer, store, temp_dir):
    transcoder = FakeTranscoder(errors={"vp9": PermissionError("cannot create output dir")})

    _, stats = _run(workspace, transcoder, thumbnailer, store, temp_dir,
                    formats="webm:vp9:32@64x64,mp4:x264:22@64x64")

    entry = _output(workspace)["a"]
    assert [e["version"] for e in entry["media"][0]["encodes"]] == ["mp4:x264:22@64x64"]
    assert entry["media"][0]["thumbnail"] == "encoded-media/a-0.webp"
    assert entry["published"] is False
    assert stats.failed == 1
    assert list(temp_dir.iterdir()) == []


def test_unexpected_thumbnailer_error_unpublishes_entry(workspace, transcoder, store, temp_dir):
    class BrokenThumbnailer:
        def generate(self, source, dest, seek=None):
            raise OSError("read-only file system")

    _, stats = _run(workspace, transcoder, BrokenThumbnailer(), store, temp_dir)

    entry = _output(workspace)["a"]
    assert entry["published"] is False
    assert entry["media"][0]["thumbnail"] is None
    assert len(entry["media"][0]["encodes"]) == 1
    assert stats.thumbnails_failed == 1


def test_failed_checkpoint_write_does_not_stop_the_run(tmp_path, thumbnailer, temp_dir):
    _two_entry_workspace(tmp_path)
    store = FlakyStore(failures=1)

    _run(tmp_path, FakeTranscoder(), thumbnailer, store, temp_dir, write_continuously=True)

    assert len(store.writes) == 3
    assert list(_output(tmp_path)) == ["a", "b"]


def test_failed_final_write_is_fatal(tmp_path, thumbnailer, temp_dir):
    _two_entry_workspace(tmp_path)

    with pytest.raises(StoreError):
        _run(tmp_path, FakeTranscoder(), thumbnailer, FlakyStore(failures=1), temp_dir)


def _media_workspace(tmp_path, *names):
    for name in names:
        (tmp_path / name).write_bytes(name[0].encode())
    write_json(tmp_path / "search-data.json", {
        "a": {"media": [{"method": "fetch", "url": name} for name in names]},
    })


def test_removing_a_leading_media_item_keeps_reused_files_intact(tmp_path, thumbnailer, store, temp_dir):
    transcoder = FakeTranscoder(tag_source=True)
    media_dir = tmp_path / "out" / "encoded-media"
    _media_workspace(tmp_path, "A.mp4", "B.mp4")
    _run(tmp_path, transcoder, thumbnailer, store, temp_dir)

    _media_workspace(tmp_path, "B.mp4", "C.mp4")
    _run(tmp_path, transcoder, thumbnailer, store, temp_dir)

    reused, fresh = _output(tmp_path)["a"]["media"]
    assert reused["encodes"][0]["url"] == "encoded-media/a-1-x264-64x64.mp4"
    assert reused["thumbnail"] == "encoded-media/a-1.webp"
    assert fresh["encodes"][0]["url"] == "encoded-media/a-1-x264-64x64-2.mp4"
    assert fresh["thumbnail"] == "encoded-media/a-1-2.webp"
    assert (media_dir / "a-1-x264-64x64.mp4").read_bytes() == b"mp4:x264:B"
    assert (media_dir / "a-1-x264-64x64-2.mp4").read_bytes() == b"mp4:x264:C"


def test_new_leading_media_item_does_not_overwrite_later_reuse(tmp_path, thumbnailer, store, temp_dir):
    transcoder = FakeTranscoder(tag_source=True)
    media_dir = tmp_path / "out" / "encoded-media"
    _media_workspace(tmp_path, "A.mp4")
    _run(tmp_path, transcoder, thumbnailer, store, temp_dir)

    _media_workspace(tmp_path, "C.mp4", "A.mp4")
    _run(tmp_path, transcoder, thumbnailer, store, temp_dir)

    fresh, reused = _output(tmp_path)["a"]["media"]
    assert reused["encodes"][0]["url"] == "encoded-media/a-0-x264-64x64.mp4"
    assert fresh["encodes"][0]["url"] == "encoded-media/a-0-x264-64x64-2.mp4"
    assert (media_dir / "a-0-x264-64x64.mp4").read_bytes() == b"mp4:x264:A"
    assert store.uploads.count((media_dir / "a-0-x264-64x64.mp4").as_uri()) == 1
