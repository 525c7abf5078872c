"""Classification of remote store failures."""

from __future__ import annotations

import logging
from enum import Enum

import httpx

from ..api.client import RemoteStoreError


class RemoteErrorKind(str, Enum):
    PERMISSION_DENIED = "permission_denied"
    SCHEMA_MISMATCH = "schema_mismatch"
    MALFORMED_ID = "malformed_id"
    DUPLICATE_KEY = "duplicate_key"
    POLICY_RECURSION = "policy_recursion"
    NETWORK = "network"
    FAILED = "failed"


# Log level per failure class. Duplicates are expected under last-write-wins.
SEVERITY: dict[RemoteErrorKind, int] = {
    RemoteErrorKind.PERMISSION_DENIED: logging.ERROR,
    RemoteErrorKind.SCHEMA_MISMATCH: logging.WARNING,
    RemoteErrorKind.MALFORMED_ID: logging.ERROR,
    RemoteErrorKind.DUPLICATE_KEY: logging.INFO,
    RemoteErrorKind.POLICY_RECURSION: logging.CRITICAL,
    RemoteErrorKind.NETWORK: logging.WARNING,
    RemoteErrorKind.FAILED: logging.ERROR,
}


def classify(exc: BaseException) -> RemoteErrorKind:
    """Map a remote failure to its class."""
    if isinstance(exc, httpx.TransportError):
        return RemoteErrorKind.NETWORK
    if not isinstance(exc, RemoteStoreError):
        return RemoteErrorKind.FAILED

    code = exc.code or ""
    message = (exc.message or "").lower()

    if code == "42P17" or "infinite recursion" in message:
        return RemoteErrorKind.POLICY_RECURSION
    if code == "42501" or "row-level security" in message:
        return RemoteErrorKind.PERMISSION_DENIED
    if code in ("PGRST204", "42703") or "column" in message or "schema cache" in message:
        return RemoteErrorKind.SCHEMA_MISMATCH
    if code == "22P02":
        return RemoteErrorKind.MALFORMED_ID
    if code == "23505":
        return RemoteErrorKind.DUPLICATE_KEY
    return RemoteErrorKind.FAILED


def log_remote_failure(
    logger: logging.Logger,
    kind: RemoteErrorKind,
    operation: str,
    table: str,
    exc: BaseException,
) -> None:
    labels = {
        RemoteErrorKind.PERMISSION_DENIED: "permission denied (row-level security)",
        RemoteErrorKind.SCHEMA_MISMATCH: "schema mismatch",
        RemoteErrorKind.MALFORMED_ID: "malformed identifier",
        RemoteErrorKind.DUPLICATE_KEY: "duplicate key",
        RemoteErrorKind.POLICY_RECURSION: "access policy recursion",
        RemoteErrorKind.NETWORK: "remote unreachable",
        RemoteErrorKind.FAILED: "failed",
    }
    logger.log(SEVERITY[kind], "Remote %s on %s: %s: %s", operation, table, labels[kind], exc)
