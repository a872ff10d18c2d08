"""Tests for failure classification."""

import asyncio

import httpx
import pytest

from savequeue.errors import (
    AuthError,
    ClientError,
    ConflictError,
    ErrorClass,
    ErrorClassifier,
    StoreError,
    TransientError,
    UnsupportedOperationError,
)


@pytest.fixture
def classifier():
    return ErrorClassifier()


def http_status_error(status):
    request = httpx.Request("PATCH", "http://api.test/my/messages/m1")
    response = httpx.Response(status, request=request)
    return httpx.HTTPStatusError("failed", request=request, response=response)


class TestErrorTypes:
    """Tests for the structured error types."""

    def test_defaults(self):
        assert AuthError().status == 401
        assert ConflictError().status == 409
        assert ClientError("bad").status == 400
        assert TransientError("down").status is None

    def test_conflict_stamps(self):
        error = ConflictError(server_updated_at="srv", client_updated_at="cli")
        assert (error.server_updated_at, error.client_updated_at) == ("srv", "cli")

    def test_unsupported_operation(self):
        error = UnsupportedOperationError("fleet-update")
        assert isinstance(error, ClientError)
        assert "fleet-update" in str(error)


class TestErrorClassifier:
    """Tests for ErrorClassifier."""

    def test_typed_errors(self, classifier):
        assert classifier.classify(AuthError()) == ErrorClass.AUTH
        assert classifier.classify(ConflictError()) == ErrorClass.CONFLICT
        assert classifier.classify(ClientError("bad", 404)) == ErrorClass.CLIENT
        assert classifier.classify(TransientError("down", 503)) == ErrorClass.TRANSIENT

    def test_type_wins_over_status(self, classifier):
        assert classifier.classify(TransientError("rate limited", 429)) == ErrorClass.TRANSIENT
        assert classifier.classify(UnsupportedOperationError("x")) == ErrorClass.CLIENT

    @pytest.mark.parametrize("status,expected", [
        (None, ErrorClass.TRANSIENT),
        (401, ErrorClass.AUTH),
        (403, ErrorClass.CLIENT),
        (409, ErrorClass.CONFLICT),
        (400, ErrorClass.CLIENT),
        (404, ErrorClass.CLIENT),
        (408, ErrorClass.CLIENT),
        (429, ErrorClass.CLIENT),
        (500, ErrorClass.TRANSIENT),
        (503, ErrorClass.TRANSIENT),
    ])
    def test_store_error_by_status(self, classifier, status, expected):
        assert classifier.classify(StoreError("failed", status)) == expected

    def test_http_status_error(self, classifier):
        assert classifier.classify(http_status_error(401)) == ErrorClass.AUTH
        assert classifier.classify(http_status_error(409)) == ErrorClass.CONFLICT
        assert classifier.classify(http_status_error(422)) == ErrorClass.CLIENT
        assert classifier.classify(http_status_error(500)) == ErrorClass.TRANSIENT

    def test_network_errors_transient(self, classifier):
        assert classifier.classify(asyncio.TimeoutError()) == ErrorClass.TRANSIENT
        assert classifier.classify(ConnectionResetError()) == ErrorClass.TRANSIENT
        assert classifier.classify(httpx.ConnectError("refused")) == ErrorClass.TRANSIENT

    def test_unknown_errors_transient(self, classifier):
        assert classifier.classify(ValueError("message mentions 401")) == ErrorClass.TRANSIENT
