import base64
import gzip
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

import asset_store.storage.blob_store as blob_store_module
from asset_store.errors import BlobNotFoundError, CodecError, InvalidPayloadError
from asset_store.storage.blob_store import BlobStore
from asset_store.storage.codecs import GZIP, RAW, SNAPPY

CONTENT = b"ABCDEFGHIJKLMNOPQRSTUVWXYZ"
CONTENT_B64 = "QUJDREVGR0hJSktMTU5PUFFSU1RVVldYWVo="
CONTENT_HASH = "D6EC6898DE87DDAC6E5B3611708A7AA1C2D298293349CC1A6C299A1DB7149D38"
EMPTY_HASH = "E3B0C44298FC1C149AFBF4C8996FB92427AE41E4649B934CA495991B7852B855"


def _store(tmp_path: Path) -> BlobStore:
    return BlobStore(tmp_path / "data", tmp_path / "tmp", fsync_writes=False)


def _spool_files(store: BlobStore) -> list[Path]:
    return [path for path in store.spool_dir.rglob("*") if path.is_file()]


def test_store_writes_snappy_blob_at_shard_path(tmp_path: Path) -> None:
    store = _store(tmp_path)
    assert store.store(CONTENT_B64) == CONTENT_HASH

    expected = tmp_path / "data" / "D6E" / "C68" / f"{CONTENT_HASH}.snappy"
    assert expected.is_file()
    assert store.locate(CONTENT_HASH) == (expected, SNAPPY)
    assert _spool_files(store) == []


def test_round_trip(tmp_path: Path) -> None:
    store = _store(tmp_path)
    digest = store.store(CONTENT_B64)
    with store.load(digest) as reader:
        assert reader.read() == CONTENT
    assert store.get_as_base64(digest) == CONTENT_B64


def test_empty_payload_round_trips(tmp_path: Path) -> None:
    store = _store(tmp_path)
    assert store.store("") == EMPTY_HASH
    assert store.exists(EMPTY_HASH)
    with store.load(EMPTY_HASH) as reader:
        assert reader.read() == b""
    assert store.get_as_base64(EMPTY_HASH) == ""


def test_duplicate_store_writes_once(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    store = _store(tmp_path)
    renames: list[tuple[object, object]] = []
    real_rename = blob_store_module.os.rename

    def _counting_rename(src, dst):
        renames.append((src, dst))
        return real_rename(src, dst)

    monkeypatch.setattr(blob_store_module.os, "rename", _counting_rename)

    first = store.store(CONTENT_B64)
    second = store.store(CONTENT_B64)
    assert first == second == CONTENT_HASH
    assert len(renames) == 1


def test_store_bytes_matches_base64_store(tmp_path: Path) -> None:
    store = _store(tmp_path)
    assert store.store_bytes(CONTENT) == CONTENT_HASH
    assert store.store(CONTENT_B64) == CONTENT_HASH


def test_invalid_base64_is_rejected(tmp_path: Path) -> None:
    store = _store(tmp_path)
    with pytest.raises(InvalidPayloadError):
        store.store("not base64!!")
    assert not any(store.data_dir.rglob("*"))


def test_line_wrapped_base64_is_accepted(tmp_path: Path) -> None:
    store = _store(tmp_path)
    raw = b"x" * 200
    wrapped = base64.encodebytes(raw).decode("ascii").replace("\n", "\r\n")
    assert "\n" in wrapped

    digest = store.store(wrapped)
    with store.load(digest) as reader:
        assert reader.read() == raw


def test_commit_fsyncs_file_and_shard_directory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    store = BlobStore(tmp_path / "data", tmp_path / "tmp", fsync_writes=True)
    synced: list[int] = []
    real_fsync = blob_store_module.os.fsync

    def _recording_fsync(fd: int) -> None:
        synced.append(fd)
        real_fsync(fd)

    opened: list[str] = []
    real_open = blob_store_module.os.open

    def _recording_open(path, flags, *args):
        opened.append(str(path))
        return real_open(path, flags, *args)

    monkeypatch.setattr(blob_store_module.os, "fsync", _recording_fsync)
    monkeypatch.setattr(blob_store_module.os, "open", _recording_open)

    store.store(CONTENT_B64)

    assert len(synced) == 2
    assert str(store.path_for(CONTENT_HASH, SNAPPY).parent) in opened


def test_missing_blob(tmp_path: Path) -> None:
    store = _store(tmp_path)
    assert store.exists(CONTENT_HASH) is False
    assert store.locate(CONTENT_HASH) is None
    with pytest.raises(BlobNotFoundError):
        store.load(CONTENT_HASH)
    with pytest.raises(FileNotFoundError):
        store.get_as_base64(CONTENT_HASH)


def test_legacy_gzip_blob_is_readable_without_rewrite(tmp_path: Path) -> None:
    store = _store(tmp_path)
    legacy = store.path_for(CONTENT_HASH, GZIP)
    legacy.parent.mkdir(parents=True)
    legacy.write_bytes(gzip.compress(CONTENT))

    assert store.exists(CONTENT_HASH)
    with store.load(CONTENT_HASH) as reader:
        assert reader.codec is GZIP
        assert reader.read() == CONTENT
    assert not store.path_for(CONTENT_HASH, SNAPPY).exists()


def test_legacy_raw_blob_takes_precedence(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.store(CONTENT_B64)
    raw_path = store.path_for(CONTENT_HASH, RAW)
    raw_path.write_bytes(CONTENT)

    path, codec = store.locate(CONTENT_HASH)
    assert (path, codec) == (raw_path, RAW)
    assert store.get_as_base64(CONTENT_HASH) == CONTENT_B64


def test_existing_legacy_blob_short_circuits_store(tmp_path: Path) -> None:
    store = _store(tmp_path)
    legacy = store.path_for(CONTENT_HASH, GZIP)
    legacy.parent.mkdir(parents=True)
    legacy.write_bytes(gzip.compress(CONTENT))

    assert store.store(CONTENT_B64) == CONTENT_HASH
    assert not store.path_for(CONTENT_HASH, SNAPPY).exists()


def test_corrupt_blob_surfaces_codec_error(tmp_path: Path) -> None:
    store = _store(tmp_path)
    broken = store.path_for(CONTENT_HASH, SNAPPY)
    broken.parent.mkdir(parents=True)
    broken.write_bytes(b"garbage")

    with pytest.raises(CodecError):
        store.get_as_base64(CONTENT_HASH)


def test_failed_commit_removes_spool_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    store = _store(tmp_path)

    def _raise_rename(*args: object, **kwargs: object) -> object:
        del args, kwargs
        raise OSError("disk full")

    monkeypatch.setattr(blob_store_module.os, "rename", _raise_rename)

    with pytest.raises(OSError, match="disk full"):
        store.store(CONTENT_B64)
    assert _spool_files(store) == []
    assert not store.exists(CONTENT_HASH)


def test_lost_rename_race_is_success(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    store = _store(tmp_path)

    def _exists_rename(src, dst):
        raise FileExistsError(dst)

    monkeypatch.setattr(blob_store_module.os, "rename", _exists_rename)

    assert store.store(CONTENT_B64) == CONTENT_HASH
    assert _spool_files(store) == []


def test_concurrent_writers_of_same_payload(tmp_path: Path) -> None:
    store = _store(tmp_path)
    payload = base64.b64encode(b"shared payload" * 1000).decode("ascii")

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: store.store(payload), range(16)))

    assert len(set(results)) == 1
    digest = results[0]
    assert store.get_as_base64(digest) == payload
    assert _spool_files(store) == []
    shard = store.path_for(digest, SNAPPY).parent
    assert [path.name for path in shard.iterdir()] == [f"{digest}.snappy"]


def test_spool_on_other_filesystem_is_rejected(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    devices = {tmp_path / "data": 1, tmp_path / "tmp": 2}
    monkeypatch.setattr(blob_store_module, "_device_of", lambda path: devices[path])

    with pytest.raises(ValueError, match="same filesystem"):
        BlobStore(tmp_path / "data", tmp_path / "tmp")
