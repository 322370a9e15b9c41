import re
from types import SimpleNamespace

import pytest

import audio
from storage import parse_range_header, stored_filename

AUDIO_BYTES = bytes(range(256)) * 4


@pytest.fixture
def track(storage_dirs):
    _, music = storage_dirs
    path = music / "track.mp3"
    path.write_bytes(AUDIO_BYTES)
    return path


class TestUploads:
    def test_upload_as_public(self, client, storage_dirs):
        public, _ = storage_dirs

        response = client.post(
            "/api/storage/upload-as-public", files={"file": ("cover.png", b"img", "image/png")}
        )

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "CREATED"
        assert re.fullmatch(r"/public/cover-\d+-\d+\.png", body["fileUrl"])
        stored = public / body["fileUrl"].rsplit("/", 1)[1]
        assert stored.read_bytes() == b"img"

    def test_upload_song_url_is_playable(self, client, storage_dirs):
        _, music = storage_dirs

        response = client.post(
            "/api/storage/upload-song", files={"file": ("song.mp3", AUDIO_BYTES, "audio/mpeg")}
        )

        assert response.status_code == 201
        file_url = response.json()["fileUrl"]
        assert re.fullmatch(r"/api/storage/stream/song-\d+-\d+\.mp3", file_url)
        assert (music / file_url.rsplit("/", 1)[1]).read_bytes() == AUDIO_BYTES

        played = client.get(file_url)
        assert played.status_code == 200
        assert played.content == AUDIO_BYTES

    def test_stored_filename_falls_back_to_mime_subtype(self):
        assert re.fullmatch(r"blob-\d+-\d+\.mpeg", stored_filename("blob", "audio/mpeg"))
        assert re.fullmatch(r"file-\d+-\d+", stored_filename(None))


class TestStreaming:
    def test_full_file(self, client, track):
        response = client.get("/api/storage/stream/track.mp3")

        assert response.status_code == 200
        assert response.headers["content-type"] == "audio/mpeg"
        assert response.headers["accept-ranges"] == "bytes"
        assert response.content == AUDIO_BYTES

    def test_byte_range(self, client, track):
        response = client.get("/api/storage/stream/track.mp3", headers={"Range": "bytes=100-199"})

        assert response.status_code == 206
        assert response.headers["content-range"] == f"bytes 100-199/{len(AUDIO_BYTES)}"
        assert response.content == AUDIO_BYTES[100:200]

    def test_open_ended_range(self, client, track):
        response = client.get("/api/storage/stream/track.mp3", headers={"Range": "bytes=1000-"})

        assert response.status_code == 206
        assert response.content == AUDIO_BYTES[1000:]

    def test_whole_file_range_is_still_partial(self, client, track):
        response = client.get("/api/storage/stream/track.mp3", headers={"Range": "bytes=0-"})

        assert response.status_code == 206
        assert response.headers["content-range"] == f"bytes 0-{len(AUDIO_BYTES) - 1}/{len(AUDIO_BYTES)}"
        assert response.content == AUDIO_BYTES

    def test_missing_file(self, client, storage_dirs):
        response = client.get("/api/storage/stream/nope.mp3")

        assert response.status_code == 404
        assert response.json()["status"] == "NOT_FOUND"

    @pytest.mark.parametrize(
        "header, expected",
        [
            ("bytes=0-99", (0, 99)),
            ("bytes=500-", (500, 1023)),
            ("bytes=-24", (1000, 1023)),
            ("bytes=900-5000", (900, 1023)),
            ("items=0-5", (0, 1023)),
            ("bytes=abc-def", (0, 1023)),
        ],
    )
    def test_parse_range_header(self, header, expected):
        assert parse_range_header(header, 1024) == expected


class TestDuration:
    def test_unreadable_audio_is_zero(self):
        assert audio.probe_duration(b"definitely not audio") == 0.0

    def test_probe_reads_mutagen_length(self, monkeypatch):
        monkeypatch.setattr(
            audio.mutagen, "File", lambda fileobj: SimpleNamespace(info=SimpleNamespace(length=212.3456))
        )

        assert audio.probe_duration(b"\xff\xfb") == 212.346

    def test_song_duration_reads_stored_file(self, monkeypatch, track):
        seen = {}

        def fake_probe(data):
            seen["size"] = len(data)
            return 42.0

        monkeypatch.setattr(audio, "probe_duration", fake_probe)

        assert audio.song_duration("/api/storage/stream/track.mp3") == 42.0
        assert seen["size"] == len(AUDIO_BYTES)

    def test_song_duration_without_local_file(self, storage_dirs):
        assert audio.song_duration("https://cdn.example.com/elsewhere.mp3") == 0.0
