"""Tests for the landgit.ledger module."""

from unittest.mock import Mock

import pytest
import requests
from dacite.exceptions import DaciteError

from landgit.ledger import (
    HTTPMetadataClient,
    descriptor_from_ledger,
    is_valid_uuid,
    repo_id_from_url,
)
from landgit.wallet import Wallet

_REPO_ID = "6ace6247-d267-463d-b5bd-7e50d98c3693"

_RECORD = {
    "id": _REPO_ID,
    "name": "hello",
    "description": "hello world",
    "owner": "owner-address",
    "contributors": ["alice", "bob"],
    "dataTxId": "snapshot-1",
    "fork": True,
    "parent": "0b1b2c3d-0000-4000-8000-000000000001",
    "timestamp": 1700000000,
}


def _response(status_code=200, json_data=None):
    resp = Mock()
    resp.status_code = status_code
    resp.json.return_value = json_data if json_data is not None else {}
    if status_code >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status_code}")
    return resp


class TestDescriptorFromLedger:
    """Tests for converting ledger records."""

    def test_full_record(self):
        descriptor = descriptor_from_ledger(_RECORD)
        assert descriptor.id == _REPO_ID
        assert descriptor.snapshot_id == "snapshot-1"
        assert descriptor.contributors == ["alice", "bob"]
        assert descriptor.fork
        assert descriptor.fork_of == "0b1b2c3d-0000-4000-8000-000000000001"

    def test_optional_fields_default(self):
        """Verify that missing optional fields get their defaults."""
        record = {"id": _REPO_ID, "name": "hello", "owner": "o", "dataTxId": "s"}
        descriptor = descriptor_from_ledger(record)
        assert descriptor.description == ""
        assert descriptor.contributors == []
        assert not descriptor.fork
        assert descriptor.fork_of is None

    def test_missing_snapshot_id(self):
        record = {"id": _REPO_ID, "name": "hello", "owner": "o"}
        with pytest.raises(DaciteError):
            descriptor_from_ledger(record)


class TestIdentifiers:
    """Tests for repository identifiers."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (_REPO_ID, True),
            (_REPO_ID.upper(), True),
            ("00000000-0000-0000-0000-000000000000", True),
            ("owner/name", False),
            ("6ace6247-d267-463d-b5bd", False),
        ],
    )
    def test_is_valid_uuid(self, value, expected):
        assert is_valid_uuid(value) is expected

    def test_repo_id_from_url(self):
        assert repo_id_from_url(f"proland://{_REPO_ID}") == _REPO_ID
        assert repo_id_from_url(_REPO_ID) == _REPO_ID


class TestHTTPMetadataClient:
    """Tests for the HTTP ledger client."""

    def test_resolve_by_uuid(self):
        session = Mock()
        session.get.return_value = _response(json_data={"result": _RECORD})
        client = HTTPMetadataClient("https://ledger.example/", session=session)

        descriptor = client.resolve(_REPO_ID)

        assert descriptor.name == "hello"
        assert session.get.call_args.args == (f"https://ledger.example/repos/{_REPO_ID}",)

    def test_resolve_by_name(self):
        session = Mock()
        session.get.return_value = _response(json_data={"result": _RECORD})
        client = HTTPMetadataClient("https://ledger.example", session=session)

        client.resolve("owner-address/hello")

        assert session.get.call_args.args == (
            "https://ledger.example/repos/by-name/owner-address/hello",
        )

    def test_resolve_not_found(self):
        session = Mock()
        session.get.return_value = _response(status_code=404)
        assert HTTPMetadataClient("https://l", session=session).resolve(_REPO_ID) is None

    def test_resolve_empty_result(self):
        session = Mock()
        session.get.return_value = _response(json_data={"result": None})
        assert HTTPMetadataClient("https://l", session=session).resolve(_REPO_ID) is None

    def test_resolve_invalid_id(self):
        session = Mock()
        assert HTTPMetadataClient("https://l", session=session).resolve("no-slash") is None
        session.get.assert_not_called()

    def test_resolve_server_error(self):
        session = Mock()
        session.get.return_value = _response(status_code=503)
        with pytest.raises(requests.HTTPError):
            HTTPMetadataClient("https://l", session=session).resolve(_REPO_ID)

    def test_publish(self):
        session = Mock()
        session.post.return_value = _response(json_data={"id": _REPO_ID})
        wallet = Wallet(jwk={}, address="owner-address")
        client = HTTPMetadataClient("https://ledger.example", wallet=wallet, session=session)

        assert client.publish(_REPO_ID, "snapshot-2") == _REPO_ID

        args, kwargs = session.post.call_args
        assert args == (f"https://ledger.example/repos/{_REPO_ID}/snapshot",)
        assert kwargs["json"] == {"snapshotId": "snapshot-2", "address": "owner-address"}

    def test_publish_without_wallet(self):
        session = Mock()
        with pytest.raises(ValueError, match="wallet"):
            HTTPMetadataClient("https://l", session=session).publish(_REPO_ID, "snapshot-2")
        session.post.assert_not_called()

    def test_publish_rejected(self):
        session = Mock()
        session.post.return_value = _response(status_code=409)
        client = HTTPMetadataClient(
            "https://l", wallet=Wallet(jwk={}, address="a"), session=session
        )
        with pytest.raises(requests.HTTPError):
            client.publish(_REPO_ID, "snapshot-2")
