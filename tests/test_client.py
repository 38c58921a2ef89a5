"""Tests for GitHubClient: request building and status mapping.

The requests layer is patched at ``requests.Session.request`` so every
test sees exactly the method, URL and JSON body the client would send.
"""

import base64
import json
from unittest.mock import Mock, patch

import pytest
import requests

from spec_git_sync.config import Config
from spec_git_sync.core.client import GitHubClient
from spec_git_sync.errors import (
    AuthError,
    EncodingError,
    NetworkError,
    NotFound,
    RefConflict,
    RemoteError,
)
from spec_git_sync.sync.models import SyncTarget, TreeEntry

SESSION_REQUEST = "spec_git_sync.core.client.requests.Session.request"


def _response(status=200, body=None, text=None):
    response = Mock()
    response.status_code = status
    response.reason = "Reason"
    if body is not None:
        response.content = json.dumps(body).encode()
        response.json.return_value = body
        response.text = json.dumps(body)
    else:
        response.content = (text or "").encode()
        response.text = text or ""
        response.json.side_effect = ValueError("no json")
    return response


@pytest.fixture
def client(mock_config):
    return GitHubClient(mock_config)


@pytest.fixture
def tgt():
    return SyncTarget(owner="alice", repo="specs", branch="main")


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class TestSession:
    def test_headers(self, client):
        headers = client.session.headers
        assert headers["Authorization"] == "Bearer ghp_testtoken"
        assert headers["Accept"] == "application/vnd.github+json"
        assert "X-GitHub-Api-Version" in headers
        assert client.session.verify

    def test_insecure(self):
        client = GitHubClient(Config(token="t", insecure=True))
        assert not client.session.verify

    def test_retry_only_reads(self, client):
        retry = client.session.get_adapter("https://api.github.com").max_retries
        assert retry.allowed_methods == frozenset({"GET"})
        assert 503 in retry.status_forcelist

    def test_session_is_per_thread(self, client):
        import threading

        sessions = []
        t = threading.Thread(target=lambda: sessions.append(client.session))
        t.start()
        t.join()
        assert sessions[0] is not client.session


# ---------------------------------------------------------------------------
# Status mapping
# ---------------------------------------------------------------------------


class TestStatusMapping:
    @pytest.mark.parametrize("status", [401, 403])
    def test_auth(self, client, status):
        with patch(SESSION_REQUEST, return_value=_response(status, {"message": "Bad credentials"})):
            with pytest.raises(AuthError, match="Bad credentials"):
                client.get_authenticated_user()

    def test_not_found(self, client, tgt):
        with patch(SESSION_REQUEST, return_value=_response(404, {"message": "Not Found"})):
            with pytest.raises(NotFound):
                client.get_contents(tgt, "specs")

    def test_server_error_is_network_error(self, client):
        with patch(SESSION_REQUEST, return_value=_response(502, text="Bad gateway")):
            with pytest.raises(NetworkError, match="502"):
                client.get_authenticated_user()

    def test_transport_failure(self, client):
        with patch(SESSION_REQUEST, side_effect=requests.ConnectionError("refused")):
            with pytest.raises(NetworkError, match="refused"):
                client.get_authenticated_user()

    def test_other_status_is_remote_error(self, client, tgt):
        body = {"message": "Validation Failed", "errors": [{"message": "name already exists"}]}
        with patch(SESSION_REQUEST, return_value=_response(422, body)):
            with pytest.raises(RemoteError) as exc_info:
                client.create_repository("specs")
        assert exc_info.value.status == 422
        assert "name already exists" in str(exc_info.value)

    def test_non_json_body(self, client):
        with patch(SESSION_REQUEST, return_value=_response(200, text="<html>")):
            with pytest.raises(EncodingError, match="not JSON"):
                client.get_authenticated_user()

    def test_unexpected_shape(self, client):
        with patch(SESSION_REQUEST, return_value=_response(200, {"id": 1})):
            with pytest.raises(EncodingError):
                client.get_authenticated_user()


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


class TestEndpoints:
    def test_create_blob_sends_base64_utf8(self, client, tgt):
        text = '{"title": "naïve ☕"}'
        with patch(SESSION_REQUEST, return_value=_response(201, {"sha": "b1"})) as req:
            assert client.create_blob(tgt, text) == "b1"
        method, url = req.call_args[0]
        assert method == "POST"
        assert url == "https://api.github.example.com/repos/alice/specs/git/blobs"
        body = req.call_args[1]["json"]
        assert body["encoding"] == "base64"
        assert base64.b64decode(body["content"]).decode("utf-8") == text

    def test_create_blob_on_empty_repository(self, client, tgt):
        body = {"message": "Git Repository is empty."}
        with patch(SESSION_REQUEST, return_value=_response(409, body)):
            with pytest.raises(RemoteError, match="must be initialised") as exc_info:
                client.create_blob(tgt, "{}")
        assert exc_info.value.status == 409

    def test_create_tree_with_base(self, client, tgt):
        entries = [
            TreeEntry(path="specs/a.json", sha="b1"),
            TreeEntry(path="specs/old.json", sha=None),
        ]
        with patch(SESSION_REQUEST, return_value=_response(201, {"sha": "t1"})) as req:
            assert client.create_tree(tgt, entries, base_tree="t0") == "t1"
        body = req.call_args[1]["json"]
        assert body["base_tree"] == "t0"
        assert body["tree"] == [
            {"path": "specs/a.json", "mode": "100644", "type": "blob", "sha": "b1"},
            {"path": "specs/old.json", "mode": "100644", "type": "blob", "sha": None},
        ]

    def test_create_tree_without_base(self, client, tgt):
        with patch(SESSION_REQUEST, return_value=_response(201, {"sha": "t1"})) as req:
            client.create_tree(tgt, [TreeEntry(path="specs/a.json", sha="b1")])
        assert "base_tree" not in req.call_args[1]["json"]

    def test_create_commit(self, client, tgt):
        with patch(SESSION_REQUEST, return_value=_response(201, {"sha": "c2"})) as req:
            assert client.create_commit(tgt, "msg", "t1", ["c1"]) == "c2"
        assert req.call_args[1]["json"] == {"message": "msg", "tree": "t1", "parents": ["c1"]}

    def test_create_commit_rejects_merge(self, client, tgt):
        with pytest.raises(ValueError, match="linear"):
            client.create_commit(tgt, "msg", "t1", ["a", "b"])

    def test_get_ref(self, client, tgt):
        body = {"ref": "refs/heads/main", "object": {"sha": "c1", "type": "commit"}}
        with patch(SESSION_REQUEST, return_value=_response(200, body)) as req:
            assert client.get_ref(tgt) == "c1"
        assert req.call_args[0][1].endswith("/repos/alice/specs/git/ref/heads/main")

    def test_get_ref_absent(self, client, tgt):
        with patch(SESSION_REQUEST, return_value=_response(404, {"message": "Not Found"})):
            assert client.get_ref(tgt) is None

    def test_get_ref_empty_repository(self, client, tgt):
        with patch(
            SESSION_REQUEST,
            return_value=_response(409, {"message": "Git Repository is empty."}),
        ):
            assert client.get_ref(tgt) is None

    def test_create_ref(self, client, tgt):
        with patch(SESSION_REQUEST, return_value=_response(201, {"ref": "refs/heads/main"})) as req:
            client.create_ref(tgt, "c1")
        assert req.call_args[1]["json"] == {"ref": "refs/heads/main", "sha": "c1"}

    def test_create_ref_exists_is_conflict(self, client, tgt):
        with patch(
            SESSION_REQUEST,
            return_value=_response(422, {"message": "Reference already exists"}),
        ):
            with pytest.raises(RefConflict):
                client.create_ref(tgt, "c1")

    def test_update_ref_never_forces(self, client, tgt):
        with patch(SESSION_REQUEST, return_value=_response(200, {"ref": "refs/heads/main"})) as req:
            client.update_ref(tgt, "c2", expected_prior="c1")
        assert req.call_args[0][0] == "PATCH"
        assert req.call_args[1]["json"] == {"sha": "c2", "force": False}

    def test_update_ref_not_fast_forward(self, client, tgt):
        with patch(
            SESSION_REQUEST,
            return_value=_response(422, {"message": "Update is not a fast forward"}),
        ):
            with pytest.raises(RefConflict) as exc_info:
                client.update_ref(tgt, "c2", expected_prior="c1")
        assert exc_info.value.expected == "c1"

    def test_get_contents_directory(self, client, tgt):
        body = [
            {"type": "dir", "name": "features", "path": "specs/features", "sha": "d"},
            {"type": "file", "name": "x.json", "path": "specs/x.json", "sha": "f", "size": 2},
        ]
        with patch(SESSION_REQUEST, return_value=_response(200, body)) as req:
            listing = client.get_contents(tgt, "specs")
        assert [e.type for e in listing] == ["dir", "file"]
        assert req.call_args[1]["params"] == {"ref": "main"}

    def test_get_contents_at_commit(self, client, tgt):
        with patch(SESSION_REQUEST, return_value=_response(200, [])) as req:
            assert client.get_contents(tgt, "specs", ref="c0ffee") == []
        assert req.call_args[1]["params"] == {"ref": "c0ffee"}

    def test_get_contents_file(self, client, tgt):
        body = {
            "type": "file",
            "name": "1.json",
            "path": "specs/features/1.json",
            "sha": "f",
            "content": base64.b64encode(b"{}").decode(),
            "encoding": "base64",
        }
        with patch(SESSION_REQUEST, return_value=_response(200, body)):
            entry = client.get_contents(tgt, "specs/features/1.json")
        assert entry.decoded_text() == "{}"

    def test_create_repository(self, client):
        body = {
            "name": "specs",
            "full_name": "alice/specs",
            "owner": {"login": "alice"},
            "html_url": "https://github.com/alice/specs",
            "default_branch": "main",
            "private": True,
        }
        with patch(SESSION_REQUEST, return_value=_response(201, body)) as req:
            repo = client.create_repository("specs")
        assert repo.owner.login == "alice"
        sent = req.call_args[1]["json"]
        assert sent["private"] is True
        assert sent["auto_init"] is True

    def test_create_repository_invalid_name(self, client):
        with pytest.raises(ValueError, match="Repository name"):
            client.create_repository("bad name")

    def test_get_tree_recursive(self, client, tgt):
        body = {
            "sha": "t1",
            "tree": [{"path": "specs/a.json", "mode": "100644", "type": "blob", "sha": "b"}],
            "truncated": False,
        }
        with patch(SESSION_REQUEST, return_value=_response(200, body)) as req:
            tree = client.get_tree(tgt, "t1")
        assert tree.tree[0].path == "specs/a.json"
        assert req.call_args[1]["params"] == {"recursive": "1"}


@pytest.mark.live
def test_live_whoami():
    """Requires SPEC_GIT_TOKEN in the environment."""
    from spec_git_sync.config import load_config

    client = GitHubClient(load_config())
    assert client.get_authenticated_user().login
