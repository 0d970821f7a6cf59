"""Tests for ps_common.errors and ps_common.response."""

from src.ps_common.errors import (
    AppError,
    ChargeError,
    InvalidDurationError,
    InvalidPlateError,
    PaymentTimeoutError,
    PlateAlreadyActiveError,
    SessionNotActiveError,
    SpotNotFoundError,
    SpotUnavailableError,
    WebhookSignatureError,
)
from src.ps_common.response import ApiResponse, error_response, success_response


class TestAppError:
    def test_base_error(self) -> None:
        err = AppError(code=9002, message="Internal error")
        assert err.code == 9002
        assert err.message == "Internal error"
        assert err.http_status == 500

    def test_is_exception(self) -> None:
        assert isinstance(AppError(code=1001, message="test"), Exception)


class TestSpecificErrors:
    def test_validation_errors_are_422(self) -> None:
        assert InvalidPlateError("a!").code == 1001
        assert InvalidPlateError("a!").http_status == 422
        err = InvalidDurationError(1441)
        assert err.code == 1002
        assert "1441" in err.message

    def test_not_found_is_404(self) -> None:
        err = SpotNotFoundError("spot_9")
        assert err.code == 2001
        assert err.http_status == 404
        assert "spot_9" in err.message

    def test_conflicts_carry_current_state(self) -> None:
        err = SpotUnavailableError("spot_1", available_spots=0, is_active=True)
        assert err.code == 3002
        assert err.http_status == 409
        assert "0 spots available" in err.message

        inactive = SpotUnavailableError("spot_1", available_spots=4, is_active=False)
        assert "inactive" in inactive.message

        not_active = SessionNotActiveError("ses_1", "cancelled")
        assert not_active.code == 3003
        assert "cancelled" in not_active.message

        assert PlateAlreadyActiveError("ABC123").code == 3001

    def test_external_errors(self) -> None:
        assert ChargeError("declined").http_status == 502
        timeout = PaymentTimeoutError(15.0)
        assert timeout.code == 4003
        assert timeout.http_status == 504
        assert "15s" in timeout.message
        assert WebhookSignatureError("bad").http_status == 400


class TestApiResponse:
    def test_success_response(self) -> None:
        resp = success_response({"id": "spot_1"})
        assert resp.code == 0
        assert resp.message == "success"
        assert resp.data == {"id": "spot_1"}
        assert resp.request_id.startswith("req_")

    def test_error_response(self) -> None:
        resp = error_response(3001, "already active")
        assert isinstance(resp, ApiResponse)
        assert resp.code == 3001
        assert resp.data is None
