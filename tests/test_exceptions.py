"""Test error serialization for persisted error payloads."""

import json

from app.core.exceptions import InvalidInputError, serialize_error


class RpcError(Exception):
    def __init__(self, message, code, reason, receipt=None):
        super().__init__(message)
        self.code = code
        self.reason = reason
        self.receipt = receipt


def test_serialize_error_includes_hidden_fields():
    try:
        raise RpcError("execution reverted", "CALL_EXCEPTION", "Insufficient balance")
    except RpcError as e:
        payload = serialize_error(e)

    assert payload["name"] == "RpcError"
    assert payload["message"] == "execution reverted"
    assert payload["code"] == "CALL_EXCEPTION"
    assert payload["reason"] == "Insufficient balance"
    assert "Traceback" in payload["stack"]
    json.dumps(payload)


def test_serialize_error_stringifies_unserializable_values():
    payload = serialize_error(RpcError("boom", 3, "x", receipt=object()))

    assert isinstance(payload["receipt"], str)
    assert "stack" not in payload
    json.dumps(payload)


def test_serialize_error_follows_cause():
    try:
        try:
            raise ValueError("inner")
        except ValueError as inner:
            raise RuntimeError("outer") from inner
    except RuntimeError as e:
        payload = serialize_error(e)

    assert payload["cause"]["name"] == "ValueError"
    assert payload["cause"]["message"] == "inner"


def test_serialize_api_exception():
    payload = serialize_error(InvalidInputError("Missing", {"missing": ["feeAmount"]}))

    assert payload["status_code"] == 400
    assert payload["data"] == {"missing": ["feeAmount"]}
