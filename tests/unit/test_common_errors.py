"""Tests for am_common.errors and am_common.response."""

from src.am_common.errors import (
    AppError,
    ExpiredError,
    InternalError,
    InvalidStateError,
    NotFoundError,
    SettlementFailureError,
    StoreConsistencyError,
    UnauthorizedError,
    ValidationError,
)
from src.am_common.response import ApiResponse, error_response, success_response


class TestAppError:
    def test_base_error(self) -> None:
        err = AppError(code=9002, message="Internal error")
        assert err.code == 9002
        assert err.message == "Internal error"
        assert err.http_status == 500

    def test_is_exception(self) -> None:
        assert isinstance(AppError(code=1001, message="x"), Exception)


class TestSpecificErrors:
    def test_not_found(self) -> None:
        err = NotFoundError("listing", "listing-1-abcdef")
        assert err.code == 1001
        assert err.http_status == 404
        assert "listing-1-abcdef" in err.message

    def test_invalid_state(self) -> None:
        err = InvalidStateError("escrow", "escrow-1", "settled", "settle")
        assert err.code == 2001
        assert err.http_status == 409
        assert err.status == "settled"
        assert err.action == "settle"

    def test_expired(self) -> None:
        err = ExpiredError("offer", "offer-1")
        assert (err.code, err.http_status) == (2002, 410)

    def test_unauthorized(self) -> None:
        err = UnauthorizedError("bob is not the seller")
        assert (err.code, err.http_status) == (3001, 403)

    def test_validation(self) -> None:
        err = ValidationError("price must be positive")
        assert (err.code, err.http_status) == (4001, 422)

    def test_settlement_failure_keeps_action(self) -> None:
        err = SettlementFailureError("buy_listing", "insufficient funds")
        assert (err.code, err.http_status) == (5001, 502)
        assert err.action == "buy_listing"
        assert "insufficient funds" in err.message

    def test_store_consistency(self) -> None:
        assert StoreConsistencyError("collision").code == 5002

    def test_internal_default_message(self) -> None:
        err = InternalError()
        assert err.code == 9002
        assert err.message == "Internal server error"

    def test_all_are_app_errors(self) -> None:
        for err in (
            NotFoundError("a", "b"),
            ExpiredError("a", "b"),
            UnauthorizedError("x"),
            ValidationError("x"),
        ):
            assert isinstance(err, AppError)


class TestApiResponse:
    def test_success_envelope(self) -> None:
        resp = success_response({"id": "listing-1"})
        assert resp.code == 0
        assert resp.message == "success"
        assert resp.data == {"id": "listing-1"}
        assert resp.request_id.startswith("req_")

    def test_success_with_request_id(self) -> None:
        assert success_response(None, request_id="req_abc").request_id == "req_abc"

    def test_error_envelope(self) -> None:
        resp = error_response(4001, "bad price")
        assert isinstance(resp, ApiResponse)
        assert resp.code == 4001
        assert resp.data is None
