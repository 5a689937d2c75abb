from unittest.mock import Mock, patch

import orjson
import pytest
import requests

from store.content_store import (
    ContentStoreClient,
    ContentStoreError,
    FileNotFoundInStore,
)


def _response(status=200, body=None):
    resp = Mock()
    resp.status_code = status
    resp.ok = 200 <= status < 300
    resp.content = orjson.dumps(body) if body is not None else b""
    resp.text = resp.content.decode()
    resp.json.return_value = body
    return resp


def _client(*responses, max_attempts=1):
    session = Mock()
    session.headers = {}
    session.request.side_effect = list(responses)
    client = ContentStoreClient(
        bot_id="bot",
        token="tok",
        base_url="https://api.example.test/",
        timeout=5,
        max_attempts=max_attempts,
        session=session,
    )
    return client, session


def test_auth_headers_are_set():
    _, session = _client()
    assert session.headers["Authorization"] == "Bearer tok"
    assert session.headers["x-bot-id"] == "bot"


def test_list_files_follows_next_token():
    client, session = _client(
        _response(body={"files": [{"id": "1", "key": "a"}], "meta": {"nextToken": "t2"}}),
        _response(body={"files": [{"id": "2", "key": "b"}], "meta": {}}),
    )

    docs = list(client.list_kb_files("kb1"))

    assert [(d.id, d.key) for d in docs] == [("1", "a"), ("2", "b")]
    first, second = session.request.call_args_list
    assert first.args == ("GET", "https://api.example.test/v1/files")
    params = first.kwargs["params"]
    assert orjson.loads(params["tags"]) == {"source": "knowledge-base", "kbId": "kb1"}
    assert params["sortField"] == "updatedAt"
    assert params["sortDirection"] == "desc"
    assert second.kwargs["params"]["nextToken"] == "t2"


def test_list_passages_reads_every_page():
    client, _ = _client(
        _response(
            body={
                "passages": [{"content": "b", "meta": {"position": 1}}],
                "meta": {"nextToken": "n"},
            }
        ),
        _response(body={"passages": [{"content": "a", "meta": {}}]}),
    )

    passages = list(client.list_passages("file_1"))

    assert [(p.content, p.position) for p in passages] == [("b", 1), ("a", None)]


def test_upload_registers_then_puts_bytes():
    client, session = _client(
        _response(body={"file": {"uploadUrl": "https://upload.test/x"}}),
        _response(),
    )

    client.upload_file("kb-analysis-cache/kb1.jsonl", "héllo")

    register, put = session.request.call_args_list
    assert register.args == ("PUT", "https://api.example.test/v1/files")
    assert register.kwargs["json"]["key"] == "kb-analysis-cache/kb1.jsonl"
    assert register.kwargs["json"]["size"] == len("héllo".encode("utf-8"))
    assert put.args == ("PUT", "https://upload.test/x")
    assert put.kwargs["data"] == "héllo".encode("utf-8")


def test_failed_upload_raises():
    client, _ = _client(
        _response(body={"file": {"uploadUrl": "https://upload.test/x"}}),
        _response(status=500),
    )
    with pytest.raises(ContentStoreError):
        client.upload_file("k", "v")


def test_get_file_url_not_found():
    client, _ = _client(_response(status=404))
    with pytest.raises(FileNotFoundInStore):
        client.get_file_url("kb-analysis-cache/kb1.jsonl")


def test_get_file_url_returns_url():
    client, _ = _client(_response(body={"file": {"url": "https://files.test/blob"}}))
    assert client.get_file_url("k") == "https://files.test/blob"


def test_download_does_not_send_credentials():
    client, session = _client()
    resp = Mock()
    resp.content = "data".encode("utf-8")
    with patch("store.content_store.requests.get", return_value=resp) as get:
        assert client.download("https://files.test/blob") == "data"
    get.assert_called_once_with("https://files.test/blob", timeout=5)
    session.request.assert_not_called()


def test_update_metadata():
    client, session = _client(_response(body={}))

    client.update_file_metadata("doc.txt", {"categories": [["A", "A"]]})

    call = session.request.call_args
    assert call.args == ("PUT", "https://api.example.test/v1/files/doc.txt/metadata")
    assert call.kwargs["json"] == {"metadata": {"categories": [["A", "A"]]}}


def test_connection_errors_not_retried_by_default():
    client, session = _client(requests.ConnectionError("down"), _response(body={}))
    with pytest.raises(requests.ConnectionError):
        client.get_file_url("k")
    assert session.request.call_count == 1


def test_connection_errors_retried_when_configured():
    client, session = _client(
        requests.ConnectionError("down"),
        _response(body={"file": {"url": "u"}}),
        max_attempts=2,
    )
    with patch("tenacity.nap.time.sleep"):
        assert client.get_file_url("k") == "u"
    assert session.request.call_count == 2


def test_get_file_url_encodes_slash_in_key():
    client, session = _client(_response(body={"file": {"url": "u"}}))

    client.get_file_url("kb-analysis-cache/kb1.jsonl")

    assert session.request.call_args.args == (
        "GET",
        "https://api.example.test/v1/files/kb-analysis-cache%2Fkb1.jsonl",
    )


def test_update_metadata_encodes_reserved_characters():
    client, session = _client(_response(body={}))

    client.update_file_metadata("FAQ #3?.pdf", {"categories": []})

    assert session.request.call_args.args == (
        "PUT",
        "https://api.example.test/v1/files/FAQ%20%233%3F.pdf/metadata",
    )


def test_list_passages_encodes_file_id():
    client, session = _client(_response(body={"passages": []}))

    assert list(client.list_passages("folder/a b.txt")) == []

    assert session.request.call_args.args == (
        "GET",
        "https://api.example.test/v1/files/folder%2Fa%20b.txt/passages",
    )
