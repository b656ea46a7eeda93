# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ade2eah/azure/exceptions.py

from __future__ import annotations

from typing import Any, Optional

from ..core.exceptions import Ade2EahError, ExitCode


class AzureError(Ade2EahError):
    """
    Base exception for Azure operations.

    Inherits exit codes, context tracking, cause chaining and secret
    redaction from Ade2EahError.
    """
    pass


class AzureCLIError(AzureError):
    """
    Azure CLI command failed.

    Used when 'az' commands fail (non-zero exit, parsing errors, etc.).
    """
    pass


class AzureAuthError(AzureError):
    """
    Azure authentication error.

    Used when there is no usable 'az login' session.
    """
    pass


class AzureNotFoundError(AzureCLIError):
    """The requested resource does not exist."""
    pass


class CopyToolError(AzureError):
    """
    The block-copy tool exited non-zero.

    Fatal to the whole run; the exit code is COPY_FAILED regardless of the
    tool's own status, which is kept in context.
    """
    pass


def wrap_azure_auth_error(msg: str, exc: Optional[BaseException] = None, **context: Any) -> AzureAuthError:
    """Wrap Azure authentication errors with context."""
    return AzureAuthError(code=int(ExitCode.NOT_AUTHENTICATED), msg=msg, cause=exc, context=context or None)


def wrap_copy_tool_error(
    msg: str, *, returncode: int, exc: Optional[BaseException] = None, **context: Any
) -> CopyToolError:
    """Wrap a failed copy-tool invocation."""
    return CopyToolError(code=int(ExitCode.COPY_FAILED), msg=msg, cause=exc, context={"returncode": returncode, **context})
