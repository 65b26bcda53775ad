"""Tests for remote error classification."""

import pytest

from bankid.classifier import (
    RFA4,
    RFA5,
    RFA22,
    ErrorCategory,
    ErrorCode,
    StructuredError,
    classify,
    known_errors,
)


class TestClassify:
    """Tests for classify()."""

    @pytest.mark.parametrize("code", [c.value for c in ErrorCode])
    def test_every_code_maps_to_itself(self, code):
        """Test each known code maps to exactly its own entry."""
        error = classify(code)
        assert isinstance(error, StructuredError)
        assert error.code.value == code

    @pytest.mark.parametrize("code", ["somethingNew", "", None, "AlreadyInProgress"])
    def test_unrecognized_code_falls_back(self, code):
        """Test unknown codes map to unknownErrorCode, never None."""
        error = classify(code)
        assert error.code is ErrorCode.UNKNOWN_ERROR_CODE
        assert error.status_code == 501
        assert error.user_message == RFA22
        assert error.inform_user

    def test_already_in_progress(self):
        """Test alreadyInProgress is shown to the user and not retried."""
        error = classify("alreadyInProgress")
        assert error.category is ErrorCategory.USER_FACING
        assert error.user_message == RFA4
        assert not error.retryable

    @pytest.mark.parametrize("code", ["requestTimeout", "internalError"])
    def test_remote_faults_inform_user(self, code):
        """Test remote faults are user facing with RFA5."""
        error = classify(code)
        assert error.inform_user
        assert not error.retryable
        assert error.user_message == RFA5

    def test_maintenance_is_retryable(self):
        """Test maintenance may be retried without informing the user."""
        error = classify("maintenance")
        assert error.retryable
        assert not error.inform_user
        assert error.status_code == 503

    @pytest.mark.parametrize(
        "code,status",
        [
            ("invalidParameters", 400),
            ("unauthorized", 403),
            ("notFound", 404),
            ("methodNotAllowed", 405),
            ("unsupportedMediaType", 415),
        ],
    )
    def test_caller_faults(self, code, status):
        """Test caller-side errors carry no user message."""
        error = classify(code)
        assert error.caller_fault
        assert not error.retryable
        assert not error.inform_user
        assert error.user_message is None
        assert error.status_code == status

    def test_categories_are_exclusive(self):
        """Test every entry has exactly one handling flag set."""
        for error in known_errors():
            flags = [error.retryable, error.inform_user, error.caller_fault]
            assert flags.count(True) == 1, error.code

    def test_table_covers_enum(self):
        """Test the table has one entry per error code."""
        assert {e.code for e in known_errors()} == set(ErrorCode)
