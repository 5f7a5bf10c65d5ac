"""Tests for the archive codec (export / read / stage)."""

from __future__ import annotations

import base64
import io
import json
import zipfile
from datetime import date

import pytest

from notechat.archive import (
    FORMAT_VERSION,
    MANIFEST_PATH,
    archive_filename,
    decode_data_url,
    entry_path,
    export_archive,
    read_archive,
    stage_import,
)
from notechat.db.blob_store import BlobStore
from notechat.db.models import Attachment, Chat, Note
from notechat.errors import ArchiveFormatError, IntegrityWarning, StorageIOError


@pytest.fixture
def blobs(tmp_db):
    return BlobStore(tmp_db)


def _dataset(blobs):
    blobs.put("b1", b"%PDF-1.4 fake")
    blobs.put("b2", b"\x89PNG")
    return [
        Chat(
            id="c1",
            name="Work",
            description="job",
            icon="💼",
            created_at="2024-01-01T00:00:00.000Z",
            notes=[
                Note(id="n1", timestamp="2024-01-01T10:00:00.000Z", text="hello"),
                Note(
                    id="n2",
                    timestamp="2024-01-01T11:00:00.000Z",
                    attachments=[
                        Attachment(name="report.pdf", size="13 Bytes", type="application/pdf", id="b1"),
                        Attachment(name="shot.png", size="4 Bytes", type="image/png", id="b2"),
                    ],
                ),
            ],
        ),
        Chat(id="c2", name="Empty", created_at="2024-01-02T00:00:00.000Z"),
    ]


def _zip(files: dict[str, bytes | str]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, data in files.items():
            zf.writestr(name, data)
    return buf.getvalue()


def _manifest(chats) -> str:
    return json.dumps({"version": "2.0", "timestamp": "2024-01-01T00:00:00.000Z", "chats": chats})


# ---------------------------------------------------------------------------
# Naming
# ---------------------------------------------------------------------------


def test_archive_filename():
    assert archive_filename(date(2024, 3, 9)) == "notechat_backup_2024-03-09.zip"


def test_entry_path_layout():
    assert entry_path("c1", "b1", "report.pdf") == "notechat_data/files/chat_c1/b1_report.pdf"


def test_entry_path_flattens_slashes_in_filename():
    assert entry_path("c1", "b1", "dir/evil.txt") == "notechat_data/files/chat_c1/b1_dir_evil.txt"


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


def test_export_writes_manifest_and_entries(blobs):
    result = export_archive(_dataset(blobs), blobs)

    with zipfile.ZipFile(io.BytesIO(result.data)) as zf:
        names = set(zf.namelist())
        manifest = json.loads(zf.read(MANIFEST_PATH))
        pdf = zf.read("notechat_data/files/chat_c1/b1_report.pdf")

    assert names == {
        MANIFEST_PATH,
        "notechat_data/files/chat_c1/b1_report.pdf",
        "notechat_data/files/chat_c1/b2_shot.png",
    }
    assert pdf == b"%PDF-1.4 fake"
    assert manifest["version"] == FORMAT_VERSION
    assert manifest["timestamp"].endswith("Z")
    assert result.attachment_count == 2
    assert result.warnings == []


def test_export_manifest_schema(blobs):
    result = export_archive(_dataset(blobs), blobs)
    with zipfile.ZipFile(io.BytesIO(result.data)) as zf:
        manifest = json.loads(zf.read(MANIFEST_PATH))

    chat = manifest["chats"][0]
    assert set(chat) == {"id", "name", "description", "icon", "createdAt", "notes"}
    text_note, file_note = chat["notes"]
    assert text_note["text"] == "hello"
    assert "text" not in file_note
    assert file_note["attachments"][0] == {
        "name": "report.pdf",
        "size": "13 Bytes",
        "type": "application/pdf",
        "path": "notechat_data/files/chat_c1/b1_report.pdf",
    }
    assert manifest["chats"][1]["notes"] == []


def test_export_skips_missing_blob_with_warning(blobs, caplog):
    chats = _dataset(blobs)
    blobs.delete("b2")

    with caplog.at_level("WARNING", logger="notechat.archive"):
        result = export_archive(chats, blobs)

    with zipfile.ZipFile(io.BytesIO(result.data)) as zf:
        manifest = json.loads(zf.read(MANIFEST_PATH))
    atts = manifest["chats"][0]["notes"][1]["attachments"]
    assert [a["name"] for a in atts] == ["report.pdf"]
    assert len(result.warnings) == 1
    assert isinstance(result.warnings[0], IntegrityWarning)
    assert result.warnings[0].name == "shot.png"
    assert "shot.png" in caplog.text


def test_export_empty_dataset(blobs):
    result = export_archive([], blobs)
    with zipfile.ZipFile(io.BytesIO(result.data)) as zf:
        assert zf.namelist() == [MANIFEST_PATH]
        assert json.loads(zf.read(MANIFEST_PATH))["chats"] == []


def test_export_storage_failure_propagates(blobs, tmp_db):
    chats = _dataset(blobs)
    tmp_db.execute("DROP TABLE files")
    tmp_db.commit()
    with pytest.raises(StorageIOError):
        export_archive(chats, blobs)


# ---------------------------------------------------------------------------
# read_archive: format errors
# ---------------------------------------------------------------------------


def test_read_archive_roundtrips_export(blobs):
    parsed = read_archive(export_archive(_dataset(blobs), blobs).data)
    assert not parsed.legacy
    assert [c.id for c in parsed.manifest.chats] == ["c1", "c2"]
    assert len(parsed.entries) == 2


def test_read_archive_missing_manifest():
    data = _zip({"notechat_data/files/chat_c1/x_a.txt": b"a"})
    with pytest.raises(ArchiveFormatError, match="no manifest"):
        read_archive(data)


def test_read_archive_unparsable_manifest():
    with pytest.raises(ArchiveFormatError, match="JSON"):
        read_archive(_zip({MANIFEST_PATH: "{not json"}))


@pytest.mark.parametrize("body", ['{"version": "2.0"}', '{"chats": "nope"}', "[]"])
def test_read_archive_missing_chat_list(body):
    with pytest.raises(ArchiveFormatError):
        read_archive(_zip({MANIFEST_PATH: body}))


def test_read_archive_malformed_chat_record():
    with pytest.raises(ArchiveFormatError, match="missing 'name'"):
        read_archive(_zip({MANIFEST_PATH: _manifest([{"id": "c1"}])}))


def test_read_archive_duplicate_chat_ids():
    chats = [{"id": "c1", "name": "A"}, {"id": "c1", "name": "B"}]
    with pytest.raises(ArchiveFormatError, match="duplicate"):
        read_archive(_zip({MANIFEST_PATH: _manifest(chats)}))


def test_read_archive_garbage_bytes():
    with pytest.raises(ArchiveFormatError):
        read_archive(b"\x00\x01\x02 definitely not an archive")


def test_read_archive_corrupt_zip_member():
    data = bytearray(_zip({MANIFEST_PATH: _manifest([]), "notechat_data/files/c/x_a": b"A" * 200}))
    # Flip bytes inside the stored member payload so its CRC no longer matches.
    idx = data.find(b"A" * 50)
    data[idx : idx + 10] = b"B" * 10
    with pytest.raises(ArchiveFormatError):
        read_archive(bytes(data))


def _patch_manifest_header(data: bytes, *, flags: int = 0, method: int | None = None) -> bytes:
    """Rewrite the manifest's local and central directory headers in place."""
    out = bytearray(data)
    # (signature, offset of general-purpose flags); the method field follows the flags
    for sig, flag_off in ((b"PK\x03\x04", 6), (b"PK\x01\x02", 8)):
        at = out.find(sig)
        current = int.from_bytes(out[at + flag_off : at + flag_off + 2], "little")
        out[at + flag_off : at + flag_off + 2] = (current | flags).to_bytes(2, "little")
        if method is not None:
            out[at + flag_off + 2 : at + flag_off + 4] = method.to_bytes(2, "little")
    return bytes(out)


def test_read_archive_encrypted_manifest():
    data = _patch_manifest_header(_zip({MANIFEST_PATH: _manifest([])}), flags=0x1)
    with pytest.raises(ArchiveFormatError, match="Unreadable archive"):
        read_archive(data)


def test_read_archive_unsupported_compression_method():
    data = _patch_manifest_header(_zip({MANIFEST_PATH: _manifest([])}), method=99)
    with pytest.raises(ArchiveFormatError, match="Unreadable archive"):
        read_archive(data)


def test_read_archive_deeply_nested_legacy_document():
    with pytest.raises(ArchiveFormatError, match="JSON"):
        read_archive(b"[" * 100_000 + b"]" * 100_000)


def test_read_archive_deeply_nested_manifest():
    data = _zip({MANIFEST_PATH: "[" * 100_000 + "]" * 100_000})
    with pytest.raises(ArchiveFormatError, match="JSON"):
        read_archive(data)


# ---------------------------------------------------------------------------
# read_archive: legacy flat JSON
# ---------------------------------------------------------------------------


def test_read_archive_legacy_document():
    legacy = {
        "version": "1.0",
        "timestamp": "2023-05-01T00:00:00.000Z",
        "chats": [
            {
                "id": 1682899200000,
                "name": "Old",
                "description": "",
                "icon": "📝",
                "createdAt": "2023-05-01T00:00:00.000Z",
                "notes": [
                    {
                        "id": 1682899200001,
                        "text": "legacy note",
                        "timestamp": "2023-05-01T00:00:01.000Z",
                        "attachments": [
                            {
                                "name": "a.txt",
                                "size": "3 Bytes",
                                "type": "text/plain",
                                "data": "data:text/plain;base64,YWJj",
                            }
                        ],
                    }
                ],
            }
        ],
    }
    parsed = read_archive(json.dumps(legacy).encode())
    assert parsed.legacy
    assert parsed.manifest.version == "1.0"
    assert parsed.manifest.chats[0].id == "1682899200000"
    assert parsed.manifest.chats[0].notes[0].attachments[0].inline_data.endswith("YWJj")


def test_read_archive_legacy_without_chats_is_format_error():
    with pytest.raises(ArchiveFormatError):
        read_archive(b'{"version": "1.0", "timestamp": "x"}')


# ---------------------------------------------------------------------------
# decode_data_url
# ---------------------------------------------------------------------------


def test_decode_data_url_base64():
    payload = base64.b64encode(b"\x00\xffbytes").decode()
    assert decode_data_url(f"data:application/octet-stream;base64,{payload}") == b"\x00\xffbytes"


def test_decode_data_url_percent_encoded():
    assert decode_data_url("data:text/plain,hello%20world") == b"hello world"


@pytest.mark.parametrize("value", ["not a url", "data:nocomma", "data:;base64,@@@"])
def test_decode_data_url_malformed(value):
    assert decode_data_url(value) is None


# ---------------------------------------------------------------------------
# stage_import
# ---------------------------------------------------------------------------


def _counter_ids():
    n = iter(range(1, 1000))
    return lambda: f"new{next(n)}"


def test_stage_import_assigns_new_ids_and_stores_bytes(blobs):
    data = export_archive(_dataset(blobs), blobs).data
    blobs.clear()

    staged = stage_import(read_archive(data), blobs, id_factory=_counter_ids())

    atts = staged.chats[0].notes[1].attachments
    assert [a.id for a in atts] == ["new1", "new2"]
    assert all(a.path is None for a in atts)
    assert blobs.get("new1") == b"%PDF-1.4 fake"
    assert blobs.get("new2") == b"\x89PNG"
    assert staged.blob_ids == ["new1", "new2"]
    assert staged.warnings == []


def test_stage_import_skips_missing_entry(blobs):
    chats = [
        {
            "id": "c1",
            "name": "Work",
            "notes": [
                {
                    "id": "n1",
                    "timestamp": "t",
                    "attachments": [
                        {"name": "here.txt", "size": "1 Bytes", "type": "text/plain",
                         "path": "notechat_data/files/chat_c1/x_here.txt"},
                        {"name": "gone.txt", "size": "1 Bytes", "type": "text/plain",
                         "path": "notechat_data/files/chat_c1/y_gone.txt"},
                    ],
                }
            ],
        }
    ]
    data = _zip({MANIFEST_PATH: _manifest(chats), "notechat_data/files/chat_c1/x_here.txt": b"h"})

    staged = stage_import(read_archive(data), blobs, id_factory=_counter_ids())

    note = staged.chats[0].notes[0]
    assert [a.name for a in note.attachments] == ["here.txt"]
    assert len(staged.warnings) == 1
    assert staged.warnings[0].ref.endswith("y_gone.txt")
    assert blobs.count() == 1


def test_stage_import_drops_note_left_empty(blobs, caplog):
    chats = [
        {
            "id": "c1",
            "name": "Work",
            "notes": [
                {
                    "id": "n1",
                    "timestamp": "t1",
                    "attachments": [
                        {"name": "gone.txt", "size": "1 Bytes", "type": "text/plain",
                         "path": "notechat_data/files/chat_c1/y_gone.txt"},
                    ],
                },
                {"id": "n2", "timestamp": "t2", "text": "kept"},
                {"id": "n3", "timestamp": "t3", "attachments": []},
            ],
        }
    ]
    data = _zip({MANIFEST_PATH: _manifest(chats)})

    with caplog.at_level("WARNING", logger="notechat.archive"):
        staged = stage_import(read_archive(data), blobs, id_factory=_counter_ids())

    assert [n.id for n in staged.chats[0].notes] == ["n2"]
    assert len(staged.warnings) == 1
    assert staged.warnings[0].note_id == "n1"
    assert "Note n1 in chat c1" in caplog.text
    assert "Note n3 in chat c1" in caplog.text
    assert blobs.count() == 0


def test_stage_import_legacy_inline_data(blobs):
    legacy = {
        "version": "1.0",
        "chats": [{"id": 1, "name": "Old", "notes": [{"id": 2, "timestamp": "t", "attachments": [
            {"name": "a.txt", "size": "3 Bytes", "type": "text/plain", "data": "data:text/plain;base64,YWJj"},
            {"name": "bad.txt", "size": "1 Bytes", "type": "text/plain", "data": "garbage"},
        ]}]}],
    }
    staged = stage_import(read_archive(json.dumps(legacy).encode()), blobs, id_factory=_counter_ids())
    atts = staged.chats[0].notes[0].attachments
    assert [a.name for a in atts] == ["a.txt"]
    assert blobs.get(atts[0].id) == b"abc"
    assert len(staged.warnings) == 1


def test_stage_import_failure_discards_staged_blobs(blobs, tmp_db):
    data = export_archive(_dataset(blobs), blobs).data
    blobs.clear()
    tmp_db.execute(
        "CREATE TRIGGER reject_second BEFORE INSERT ON files "
        "WHEN NEW.id = 'new2' BEGIN SELECT RAISE(ABORT, 'disk full'); END"
    )
    tmp_db.commit()

    with pytest.raises(StorageIOError):
        stage_import(read_archive(data), blobs, id_factory=_counter_ids())

    assert blobs.count() == 0
