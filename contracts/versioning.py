"""Schema versions for persisted match history and RPC responses.

Match history is stored as a bare list of records with its schema version
under a sibling key. History without a version key predates versioning
and reads as version 1. History written by a newer build is never loaded
or overwritten.
"""

from __future__ import annotations

from typing import Any, Dict

from exceptions import SchemaVersionError

APP_VERSION = "0.4.0"

# Bumped whenever the MatchSession.to_dict layout changes incompatibly
RECORD_SCHEMA_VERSION = 1

RPC_SCHEMA_VERSION = "1.0.0"


def make_envelope(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Wrap an RPC response payload with the response schema and app version."""
    return {
        "schema_version": RPC_SCHEMA_VERSION,
        "app_version": APP_VERSION,
        "payload": payload,
    }


def check_record_schema(stored: Any) -> int:
    """Validate the stored history version and return it.

    Raises:
        SchemaVersionError: If the version is malformed or newer than this build reads
    """
    if stored is None:
        return RECORD_SCHEMA_VERSION
    if isinstance(stored, bool) or not isinstance(stored, int) or stored < 1:
        raise SchemaVersionError(f"Unrecognised match history schema version {stored!r}")
    if stored > RECORD_SCHEMA_VERSION:
        raise SchemaVersionError(
            f"Match history schema {stored} is newer than supported ({RECORD_SCHEMA_VERSION})"
        )
    return stored
