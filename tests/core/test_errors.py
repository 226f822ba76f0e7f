"""Tests for the error hierarchy."""

from __future__ import annotations

import pytest

from bulkspine.core.errors import (
    BulkSpineError,
    ErrorCategory,
    ErrorContext,
    JobAlreadyRunningError,
    JobConfigError,
    RemoteCallError,
    VerificationError,
)


class TestBulkSpineError:
    def test_defaults(self):
        err = BulkSpineError("boom")
        assert err.message == "boom"
        assert str(err) == "boom"
        assert err.category is ErrorCategory.INTERNAL
        assert err.retryable is False
        assert err.cause is None

    def test_cause_is_chained(self):
        cause = ValueError("inner")
        err = BulkSpineError("outer", cause=cause)
        assert err.__cause__ is cause
        assert err.to_dict()["cause"] == "inner"

    def test_with_context_known_and_extra_keys(self):
        err = BulkSpineError("x").with_context(job_id="c_p_t", row_number=4, batch=2)
        assert err.context.job_id == "c_p_t"
        assert err.context.row_number == 4
        assert err.context.metadata == {"batch": 2}

    def test_to_dict_omits_empty_context(self):
        d = BulkSpineError("x").to_dict()
        assert d == {
            "error_type": "BulkSpineError",
            "message": "x",
            "category": "INTERNAL",
            "retryable": False,
        }

    def test_repr(self):
        assert repr(JobConfigError("bad")) == "JobConfigError('bad', category=CONFIG)"


class TestErrorContext:
    def test_to_dict_skips_none(self):
        ctx = ErrorContext(profile="acme", http_status=404, metadata={"k": "v"})
        assert ctx.to_dict() == {"profile": "acme", "http_status": 404, "k": "v"}


class TestJobErrors:
    def test_config_error_category(self):
        err = JobConfigError("Invalid bulk data or empty list.")
        assert err.category is ErrorCategory.CONFIG
        assert not err.retryable

    def test_already_running_carries_job_id(self):
        err = JobAlreadyRunningError("c1_acme_contacts")
        assert err.job_id == "c1_acme_contacts"
        assert err.category is ErrorCategory.ORCHESTRATION
        assert "c1_acme_contacts" in err.message
        assert err.to_dict()["context"] == {"job_id": "c1_acme_contacts"}


class TestRemoteCallError:
    def test_transport_failure_is_network_and_retryable(self):
        err = RemoteCallError("connection refused")
        assert err.category is ErrorCategory.NETWORK
        assert err.retryable is True
        assert err.http_status is None

    @pytest.mark.parametrize("status,retryable", [(400, False), (404, False), (429, True), (500, True), (503, True)])
    def test_retryable_by_status(self, status, retryable):
        err = RemoteCallError("rejected", http_status=status, full_response={"code": 1})
        assert err.category is ErrorCategory.SOURCE
        assert err.retryable is retryable
        assert err.full_response == {"code": 1}
        assert err.context.http_status == status

    def test_verification_error_is_retryable(self):
        assert VerificationError("Record not found").retryable is True
