"""Prefixed identifiers for the two principal collections.

Doctors and organizations are looked up by the same token subject, so their ids
must never collide; the prefix keeps the two id spaces disjoint.
"""
import time
import uuid

DOCTOR_PREFIX = "doc"
ORGANIZATION_PREFIX = "org"


def new_id(prefix: str) -> str:
    ts = int(time.time() * 1000)
    return f"{prefix}_{ts}_{uuid.uuid4().hex[:12]}"


def new_doctor_id() -> str:
    return new_id(DOCTOR_PREFIX)


def new_organization_id() -> str:
    return new_id(ORGANIZATION_PREFIX)
