"""Isolation guards: FastAPI dependencies that run before a route handler.

    @router.get("/{farm_id}")
    async def get_farm(farm_id: str, user_id: str = Depends(check_farm_ownership)):
        ...

Each guard returns the authenticated user id, so a route that depends
on a guard needs no separate auth dependency.

Checks, in order:
  1. identity present                          → else 401
  2. farm_id / field_id owned by the user      → else 403
     (path param, then JSON body, then query string)
  3. POST body owner_id equals the user        → else 403 (enforce_tenant_isolation)

A store failure while checking ends the request with 500; it is never
reported as a denial.
"""

import json
import logging
from typing import Any

from fastapi import Depends, Request

from agrohub.auth.deps import get_current_user_id
from agrohub.middleware.exceptions import (
    MSG_FARM_DENIED,
    MSG_FIELD_DENIED,
    AuthenticationMissing,
    ImpersonationDenied,
    OwnershipDenied,
)
from agrohub.tenancy.resolver import ChainKey
from agrohub.tenancy.store import OwnershipStore, get_ownership_store
from agrohub.tenancy.verifier import OwnershipVerifier

logger = logging.getLogger(__name__)

_BODY_METHODS = {"POST", "PUT", "PATCH"}

_DENIAL_MESSAGES = {
    ChainKey.FARM: MSG_FARM_DENIED,
    ChainKey.FIELD: MSG_FIELD_DENIED,
}


# ── Request inspection ──────────────────────────────────────

async def read_json_body(request: Request) -> dict[str, Any]:
    """JSON object body, or {} when the request has none.

    Starlette caches the body on the request, so the route handler can
    still parse it afterwards.
    """
    if request.method not in _BODY_METHODS:
        return {}
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = json.loads(raw)
    except ValueError:
        # Malformed JSON is reported by the route's own body validation
        return {}
    return body if isinstance(body, dict) else {}


def _first(*candidates: Any) -> str | None:
    for value in candidates:
        if value:
            return str(value)
    return None


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


async def extract_id(request: Request, name: str) -> str | None:
    """Look up `name` (or its camelCase form) in path, body, then query."""
    alias = _camel(name)
    body = await read_json_body(request)
    return _first(
        request.path_params.get(name),
        request.path_params.get(alias),
        body.get(name),
        body.get(alias),
        request.query_params.get(name),
        request.query_params.get(alias),
    )


def _query_id(request: Request, name: str) -> str | None:
    return _first(
        request.query_params.get(name),
        request.query_params.get(_camel(name)),
    )


def query_farm_id(request: Request) -> str | None:
    """List filter: the `farm_id` / `farmId` query value the guard checked."""
    return _query_id(request, "farm_id")


def query_field_id(request: Request) -> str | None:
    """List filter: the `field_id` / `fieldId` query value the guard checked."""
    return _query_id(request, "field_id")


# ── Guards ──────────────────────────────────────────────────

async def _check_ownership(
    kind: ChainKey,
    request: Request,
    user_id: str | None,
    store: OwnershipStore,
) -> str:
    if not user_id:
        raise AuthenticationMissing()

    resource_id = await extract_id(request, f"{kind.value}_id")
    if resource_id:
        verifier = OwnershipVerifier(store, strict=True)
        if not await verifier.verify(kind, resource_id, user_id):
            logger.info(
                f"Denied {kind.value} access",
                extra={"path": request.url.path, "method": request.method},
            )
            raise OwnershipDenied(_DENIAL_MESSAGES[kind])
    return user_id


async def check_farm_ownership(
    request: Request,
    user_id: str | None = Depends(get_current_user_id),
    store: OwnershipStore = Depends(get_ownership_store),
) -> str:
    return await _check_ownership(ChainKey.FARM, request, user_id, store)


async def check_field_ownership(
    request: Request,
    user_id: str | None = Depends(get_current_user_id),
    store: OwnershipStore = Depends(get_ownership_store),
) -> str:
    return await _check_ownership(ChainKey.FIELD, request, user_id, store)


async def enforce_tenant_isolation(
    request: Request,
    user_id: str | None = Depends(get_current_user_id),
    store: OwnershipStore = Depends(get_ownership_store),
) -> str:
    """Guard for create/update flows: every reference in the body must be owned."""
    if not user_id:
        raise AuthenticationMissing()

    body = await read_json_body(request)
    verifier = OwnershipVerifier(store, strict=True)

    farm_id = _first(body.get("farm_id"), body.get("farmId"))
    if farm_id and not await verifier.verify_farm_ownership(farm_id, user_id):
        raise OwnershipDenied(MSG_FARM_DENIED)

    field_id = _first(body.get("field_id"), body.get("fieldId"))
    if field_id and not await verifier.verify_field_ownership(field_id, user_id):
        raise OwnershipDenied(MSG_FIELD_DENIED)

    owner_id = _first(body.get("owner_id"), body.get("ownerId"))
    if request.method == "POST" and owner_id and owner_id != user_id:
        logger.warning(
            "Rejected create on behalf of another user",
            extra={"path": request.url.path},
        )
        raise ImpersonationDenied()

    return user_id
