"""Tests for the assistant reply contract."""

import json

import pytest
from pydantic import ValidationError

from spec_git_sync.assistant import (
    AssistantResponse,
    FileOperation,
    build_key_listing,
    parse_assistant_response,
)
from spec_git_sync.errors import EncodingError
from spec_git_sync.store import Document, DocumentStore


class TestFileOperation:
    def test_write_from_file_alias(self):
        op = FileOperation.model_validate(
            {"action": "write", "file": {"id": "features/42", "content": "{}"}}
        )
        assert op.document == Document(key="features/42", content="{}")
        assert op.target == "features/42"

    def test_delete_from_file_alias(self):
        op = FileOperation.model_validate(
            {"action": "delete", "file": {"id": "pages/3"}}
        )
        assert op.key == "pages/3"
        assert op.document is None

    def test_delete_with_key(self):
        assert FileOperation(action="delete", key="pages/3").target == "pages/3"

    def test_write_without_document_rejected(self):
        with pytest.raises(ValidationError, match="requires a document"):
            FileOperation(action="write")

    def test_delete_invalid_key_rejected(self):
        with pytest.raises(ValidationError):
            FileOperation(action="delete", key="a//b")

    def test_unknown_action_rejected(self):
        with pytest.raises(ValidationError):
            FileOperation.model_validate({"action": "rename", "key": "a"})


class TestParseAssistantResponse:
    def test_camel_case_reply(self):
        raw = json.dumps(
            {
                "chatResponse": "Added billing.",
                "fileOperations": [
                    {
                        "action": "write",
                        "file": {"id": "features/9", "content": '{"title": "Billing"}'},
                    },
                    {"action": "delete", "key": "pages/1"},
                ],
            }
        )
        reply = parse_assistant_response(raw)
        assert reply.chat_response == "Added billing."
        assert [op.action for op in reply.file_operations] == ["write", "delete"]

    def test_file_operations_optional_and_null(self):
        assert parse_assistant_response({"chatResponse": "hi"}).file_operations == []
        assert (
            parse_assistant_response(
                {"chatResponse": "hi", "fileOperations": None}
            ).file_operations
            == []
        )

    def test_not_json(self):
        with pytest.raises(EncodingError, match="not valid JSON"):
            parse_assistant_response("Sure! Here you go")

    def test_wrong_shape(self):
        with pytest.raises(EncodingError, match="unexpected shape"):
            parse_assistant_response({"fileOperations": []})


class TestApply:
    def test_apply_to_store_is_single_batch(self):
        store = DocumentStore()
        store.put(Document(key="pages/1", content="old"))
        reply = AssistantResponse(
            chat_response="ok",
            file_operations=[
                FileOperation(
                    action="write", document=Document(key="features/1", content="{}")
                ),
                FileOperation(action="delete", key="pages/1"),
            ],
        )
        assert reply.apply_to(store) == 2
        assert store.keys() == ["features/1"]

    def test_empty_reply_applies_nothing(self):
        store = DocumentStore()
        assert AssistantResponse(chat_response="ok").apply_to(store) == 0


def test_build_key_listing():
    store = DocumentStore()
    store.bulk_put(
        [Document(key="pages/2", content="{}"), Document(key="features/1", content="{}")]
    )
    assert build_key_listing(store) == "features/1\npages/2"
