# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for exception handling and secret redaction."""
from __future__ import annotations

import pytest

from ade2eah.azure.exceptions import AzureError, CopyToolError, wrap_azure_auth_error, wrap_copy_tool_error
from ade2eah.core.exceptions import (
    Ade2EahError,
    ExitCode,
    Fatal,
    format_exception_for_cli,
    precondition,
)


@pytest.mark.unit
class TestExceptionHierarchy:
    def test_base_exception_creation(self):
        err = Ade2EahError(code=1, msg="Test error")
        assert err.code == 1
        assert err.msg == "Test error"
        assert err.cause is None
        assert str(err) == "Test error"

    def test_fatal_is_base(self):
        err = Fatal(code=2, msg="Fatal error")
        assert isinstance(err, Ade2EahError)
        assert err.code == 2

    def test_code_is_clamped(self):
        assert Ade2EahError(code=-3, msg="x").code == 1
        assert Ade2EahError(code=999, msg="x").code == 255
        assert Ade2EahError(code="nope", msg="x").code == 1

    def test_context_and_cause(self):
        cause = ValueError("Original error")
        err = Fatal(code=4, msg="Wrapper", cause=cause, context={"vm": "web01"})
        assert err.cause is cause
        assert err.context["vm"] == "web01"
        assert "cause: ValueError" in err.user_message(include_cause=True)

    def test_precondition_code(self):
        err = precondition(ExitCode.ALREADY_ENCRYPTED_AT_HOST, "nothing to do", vm="web01")
        assert isinstance(err, Fatal)
        assert err.code == 7
        assert err.context == {"vm": "web01"}

    def test_exit_code_values(self):
        assert int(ExitCode.COPY_FAILED) == 11
        assert int(ExitCode.DECRYPTION_TIMEOUT) == 12
        assert int(ExitCode.INTERNAL) == 99

    def test_azure_errors(self):
        auth = wrap_azure_auth_error("not logged in")
        assert isinstance(auth, AzureError)
        assert auth.code == int(ExitCode.NOT_AUTHENTICATED)

        copy = wrap_copy_tool_error("azcopy failed", returncode=5, source="os")
        assert isinstance(copy, CopyToolError)
        assert copy.code == 11
        assert copy.context["returncode"] == 5


@pytest.mark.security
class TestSecretRedaction:
    def test_sas_and_password_redacted(self):
        err = Ade2EahError(msg="x", context={"sas": "https://x?sig=abc", "admin_password": "p", "disk": "os"})
        msg = err.user_message(include_context=True)
        assert "sas='<redacted>'" in msg
        assert "admin_password='<redacted>'" in msg
        assert "disk='os'" in msg
        assert "sig=abc" not in msg

    def test_nested_redaction(self):
        err = Ade2EahError(msg="x", context={"grant": {"access_sas": "https://x?sig=abc", "level": "Read"}})
        msg = err.user_message(include_context=True)
        assert "sig=abc" not in msg
        assert "Read" in msg

    def test_cli_format_levels(self):
        err = Fatal(code=5, msg="bad", context={"token": "t0k", "flag": "--new-vm"})
        assert format_exception_for_cli(err) == "bad"
        one = format_exception_for_cli(err, verbose=1)
        assert "--new-vm" in one and "t0k" not in one
        assert format_exception_for_cli(RuntimeError("boom"), verbose=2) == "RuntimeError: boom"
