import io

import pytest

from app import app


@pytest.fixture
def client(tmp_path):
    app.config["TESTING"] = True
    app.config["DATA_DIR"] = str(tmp_path)
    with app.test_client() as client:
        yield client


def _upload(client, url, **files):
    data = {field: (io.BytesIO(content), name) for field, (content, name) in files.items()}
    return client.post(url, data=data, content_type="multipart/form-data")


def test_home_lists_endpoints(client):
    res = client.get("/")
    assert res.status_code == 200
    assert "encode" in res.get_json()["endpoints"]


def test_encode_then_decode(client, tmp_path):
    original = b"It was the best of times, it was the worst of times. " * 30
    res = _upload(client, "/encode", file=(original, "tale.txt"))
    assert res.status_code == 200
    body = res.get_json()
    assert body["success"] is True
    assert body["original_size"] == len(original)
    assert body["compressed_size"] < len(original)
    assert (tmp_path / "tale.txt.huff").exists()
    assert (tmp_path / "tale.txt.codes").exists()

    compressed = client.get(body["download_compressed_url"]).data
    codes = client.get(body["download_codes_url"]).data

    # drop the original so the decoded file is written fresh
    (tmp_path / "tale.txt").unlink()
    res = _upload(client, "/decode",
                  compressed=(compressed, "tale.txt.huff"),
                  codes=(codes, "tale.txt.codes"))
    assert res.status_code == 200
    body = res.get_json()
    assert body["decompressed_filename"] == "tale.txt"
    assert body["decompressed_size"] == len(original)
    assert client.get(body["download_url"]).data == original


def test_encode_without_file(client):
    res = client.post("/encode", data={}, content_type="multipart/form-data")
    assert res.status_code == 400
    assert res.get_json()["success"] is False


def test_encode_empty_file_is_rejected(client):
    res = _upload(client, "/encode", file=(b"", "empty.txt"))
    assert res.status_code == 400
    assert "symbols" in res.get_json()["error"]


def test_decode_requires_both_files(client):
    res = _upload(client, "/decode", compressed=(b"\x00", "x.huff"))
    assert res.status_code == 400


def test_decode_bad_code_table(client):
    res = _upload(client, "/decode",
                  compressed=(b"\x1f\x00", "x.huff"),
                  codes=(b"not a table\n", "x.codes"))
    assert res.status_code == 400
    assert res.get_json()["success"] is False


def test_download_missing_file(client):
    assert client.get("/download/nothing.huff").status_code == 404


def test_decode_rejects_same_filename_for_both_uploads(client, tmp_path):
    res = _upload(client, "/decode",
                  compressed=(b"\x1f\x00", "same.huff"),
                  codes=(b"97 3 0\n98 2 11\n99 1 10\n", "same.huff"))
    assert res.status_code == 400
    assert "different" in res.get_json()["error"]
    assert not (tmp_path / "same.huff").exists()
