# caseconfig/routes.py
"""
Configuration and delivery routes.

Endpoints:
- POST   /api/subjects - Register a subject (product added to a case)
- DELETE /api/subjects/{subject_id} - Remove a subject
- GET    /api/subjects/{subject_id}/configuration - Both records
- PUT    /api/subjects/{subject_id}/sides/{side}/attributes/{kind} - Resolve and write
- DELETE /api/subjects/{subject_id}/sides/{side}/attributes/{kind} - Clear
- PUT    /api/subjects/{subject_id}/sides/{side}/fields/{field} - Scalar write
- POST   /api/subjects/{subject_id}/catalog/refresh - Drop cached catalogs
- GET    /api/subjects/{subject_id}/stages/{stage_id}/delivery - Cached estimate
- GET    /api/subjects/{subject_id}/sides/{side}/delivery - Estimate for the side's stage

Feature Flags:
- CONFIG_API_ENABLED: routes answer 404 when off

Caller Context (headers):
- X-Role, X-Tenant-Id, X-Selected-Lab-Id

Errors use the {"error": {"code", "message"}} envelope.
"""

import logging
import os
from collections import OrderedDict
from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response
from pydantic import BaseModel, Field, model_validator

from slowapi import Limiter
from slowapi.util import get_remote_address

from caseconfig.db import is_config_api_enabled
from caseconfig.configuration.models import (
    AttributeKind,
    CallerContext,
    ConfigurationPair,
    ResolvedAttribute,
    ScalarField,
    Side,
    Subject,
)
from caseconfig.configuration.store import ConfigurationStore, UnknownSubject
from caseconfig.delivery.cache import ComputationFailure, DerivedValueCache
from caseconfig.delivery.estimator import HttpDeliveryEstimator

log = logging.getLogger("caseconfig.routes")

WRITE_RATE_LIMIT = f"{int(os.getenv('RATE_LIMIT_PER_MIN', '60'))}/minute"

# ============================================================
# Router Setup
# ============================================================

router = APIRouter(prefix="/api/subjects", tags=["Configuration"])

limiter = Limiter(key_func=get_remote_address)


# ============================================================
# Shared State
# ============================================================

@lru_cache(maxsize=1)
def get_store() -> ConfigurationStore:
    """Process-wide configuration store."""
    return ConfigurationStore()


MAX_DELIVERY_CACHES = max(1, int(os.getenv("MAX_DELIVERY_CACHES", "128")))

# lab id -> cache, least recently used first
_delivery_caches: "OrderedDict[str, DerivedValueCache]" = OrderedDict()


def get_delivery_cache(context: CallerContext) -> DerivedValueCache:
    """
    One cache per lab: estimates are lab-specific, keys are subject-stage.

    Lab ids come from request headers, so the table is capped at
    MAX_DELIVERY_CACHES and the least recently used lab is evicted.
    """
    lab_key = str(context.lab_id or "").strip()
    if not lab_key:
        raise _error(422, "LAB_ID_REQUIRED", "A lab must be selected to estimate delivery.")
    cache = _delivery_caches.get(lab_key)
    if cache is None:
        cache = DerivedValueCache(HttpDeliveryEstimator(context))
        _delivery_caches[lab_key] = cache
        while len(_delivery_caches) > MAX_DELIVERY_CACHES:
            evicted, _ = _delivery_caches.popitem(last=False)
            log.info("Delivery cache for lab %s evicted", evicted)
    else:
        _delivery_caches.move_to_end(lab_key)
    return cache


def get_caller_context(
    x_role: Optional[str] = Header(default=None),
    x_tenant_id: Optional[str] = Header(default=None),
    x_selected_lab_id: Optional[str] = Header(default=None),
) -> CallerContext:
    return CallerContext(role=x_role, tenant_id=x_tenant_id, selected_lab_id=x_selected_lab_id)


# ============================================================
# Request/Response Schemas
# ============================================================

class SubjectCreate(BaseModel):
    """Input schema for POST /api/subjects."""

    subject_id: int = Field(..., ge=1, description="Product id within the case")
    product_type: Optional[str] = Field(default=None, description="e.g. 'Maxillary, Mandibular'")
    is_dual_sided: Optional[bool] = Field(default=None, description="Overrides product_type detection")

    @model_validator(mode="after")
    def require_type_or_flag(self):
        if self.product_type is None and self.is_dual_sided is None:
            raise ValueError("Provide product_type or is_dual_sided")
        return self

    def to_subject(self) -> Subject:
        subject = Subject.from_product_type(self.subject_id, self.product_type)
        if self.is_dual_sided is not None:
            subject = subject.model_copy(update={"is_dual_sided": self.is_dual_sided})
        return subject


class SelectionInput(BaseModel):
    selection: str = Field(..., max_length=200, description="Brand/variant name or id")


class FieldInput(BaseModel):
    value: Any = Field(default=None, description="Stored verbatim")


class ConfigurationResponse(BaseModel):
    subject_id: int
    is_dual_sided: bool
    configuration: ConfigurationPair


class AttributeWriteResponse(ConfigurationResponse):
    side: Side
    kind: AttributeKind
    attribute: ResolvedAttribute
    warnings: List[str] = Field(default_factory=list)


# ============================================================
# Helpers
# ============================================================

def _error(status: int, code: str, message: str) -> HTTPException:
    return HTTPException(status_code=status, detail={"error": {"code": code, "message": message}})


def _require_enabled() -> None:
    if not is_config_api_enabled():
        raise _error(404, "NOT_FOUND", "Configuration API is disabled.")


def _parse_side(value: str) -> Side:
    try:
        return Side(value)
    except ValueError:
        raise _error(422, "INVALID_SIDE", f"Unknown side '{value}'.")


def _parse_kind(value: str) -> AttributeKind:
    try:
        return AttributeKind(value)
    except ValueError:
        allowed = ", ".join(k.value for k in AttributeKind)
        raise _error(422, "INVALID_ATTRIBUTE_KIND", f"Attribute kind must be one of: {allowed}.")


def _parse_field(value: str) -> ScalarField:
    try:
        return ScalarField(value)
    except ValueError:
        raise _error(422, "INVALID_FIELD", f"Unknown field '{value}'.")


def _configuration(store: ConfigurationStore, subject_id: int) -> ConfigurationResponse:
    try:
        subject = store.get_subject(subject_id)
        pair = store.get_pair(subject_id)
    except UnknownSubject:
        raise _error(404, "SUBJECT_NOT_FOUND", f"Subject {subject_id} not found.")
    return ConfigurationResponse(
        subject_id=subject_id, is_dual_sided=subject.is_dual_sided, configuration=pair
    )


def _warnings(attribute: ResolvedAttribute) -> List[str]:
    out = []
    if attribute.brand_unresolved:
        out.append(f"Brand '{attribute.raw_part1}' was not found in the catalog.")
    if attribute.variant_unresolved:
        out.append(f"Shade '{attribute.raw_part2}' was not found in the catalog.")
    return out


async def _estimate(context: CallerContext, subject_id: int, stage_id: int) -> Dict[str, Any]:
    cache = get_delivery_cache(context)
    try:
        estimate = await cache.get(subject_id, stage_id)
    except ComputationFailure as e:
        raise _error(502, "DELIVERY_UNAVAILABLE", str(e.cause)[:200] or "Delivery estimate failed.")
    if estimate is None:
        raise _error(404, "NO_ESTIMATE", "No delivery estimate for this stage.")
    return {"subject_id": subject_id, "stage_id": stage_id, "estimate": estimate.model_dump()}


# ============================================================
# Routes
# ============================================================

@router.post("", response_model=ConfigurationResponse, status_code=201)
@limiter.limit(WRITE_RATE_LIMIT)
def create_subject(request: Request, body: SubjectCreate):
    _require_enabled()
    store = get_store()
    store.add_subject(body.to_subject())
    return _configuration(store, body.subject_id)


@router.delete("/{subject_id}", status_code=204)
@limiter.limit(WRITE_RATE_LIMIT)
def delete_subject(request: Request, subject_id: int):
    _require_enabled()
    try:
        get_store().remove_subject(subject_id)
    except UnknownSubject:
        raise _error(404, "SUBJECT_NOT_FOUND", f"Subject {subject_id} not found.")
    return Response(status_code=204)


@router.get("/{subject_id}/configuration", response_model=ConfigurationResponse)
def read_configuration(subject_id: int):
    _require_enabled()
    return _configuration(get_store(), subject_id)


@router.put("/{subject_id}/sides/{side}/attributes/{kind}", response_model=AttributeWriteResponse)
@limiter.limit(WRITE_RATE_LIMIT)
def write_attribute(
    request: Request,
    subject_id: int,
    side: str,
    kind: str,
    body: SelectionInput,
    context: CallerContext = Depends(get_caller_context),
):
    _require_enabled()
    side_enum, kind_enum = _parse_side(side), _parse_kind(kind)
    store = get_store()
    try:
        attribute = store.set_attribute(subject_id, side_enum, kind_enum, body.selection, context)
    except UnknownSubject:
        raise _error(404, "SUBJECT_NOT_FOUND", f"Subject {subject_id} not found.")

    warnings = _warnings(attribute)
    for w in warnings:
        log.info("Subject %s %s %s: %s", subject_id, side_enum.value, kind_enum.value, w)
    base = _configuration(store, subject_id)
    return AttributeWriteResponse(
        subject_id=base.subject_id,
        is_dual_sided=base.is_dual_sided,
        configuration=base.configuration,
        side=side_enum,
        kind=kind_enum,
        attribute=attribute,
        warnings=warnings,
    )


@router.delete("/{subject_id}/sides/{side}/attributes/{kind}", response_model=ConfigurationResponse)
@limiter.limit(WRITE_RATE_LIMIT)
def clear_attribute(request: Request, subject_id: int, side: str, kind: str):
    _require_enabled()
    side_enum, kind_enum = _parse_side(side), _parse_kind(kind)
    store = get_store()
    try:
        store.clear(subject_id, side_enum, kind_enum)
    except UnknownSubject:
        raise _error(404, "SUBJECT_NOT_FOUND", f"Subject {subject_id} not found.")
    return _configuration(store, subject_id)


@router.put("/{subject_id}/sides/{side}/fields/{field}", response_model=ConfigurationResponse)
@limiter.limit(WRITE_RATE_LIMIT)
def write_field(request: Request, subject_id: int, side: str, field: str, body: FieldInput):
    _require_enabled()
    side_enum, field_enum = _parse_side(side), _parse_field(field)
    store = get_store()
    try:
        store.set_field(subject_id, side_enum, field_enum, body.value)
    except UnknownSubject:
        raise _error(404, "SUBJECT_NOT_FOUND", f"Subject {subject_id} not found.")
    return _configuration(store, subject_id)


@router.post("/{subject_id}/catalog/refresh", status_code=202)
def refresh_catalog(subject_id: int):
    _require_enabled()
    store = get_store()
    if not store.has_subject(subject_id):
        raise _error(404, "SUBJECT_NOT_FOUND", f"Subject {subject_id} not found.")
    store.refresh_catalog(subject_id)
    return {"subject_id": subject_id, "refreshed": True}


@router.get("/{subject_id}/stages/{stage_id}/delivery")
async def read_delivery(
    subject_id: int,
    stage_id: int,
    context: CallerContext = Depends(get_caller_context),
):
    _require_enabled()
    return await _estimate(context, subject_id, stage_id)


@router.get("/{subject_id}/sides/{side}/delivery")
async def estimate_for_side(
    subject_id: int,
    side: str,
    context: CallerContext = Depends(get_caller_context),
):
    _require_enabled()
    side_enum = _parse_side(side)
    try:
        record = get_store().get_record(subject_id, side_enum)
    except UnknownSubject:
        raise _error(404, "SUBJECT_NOT_FOUND", f"Subject {subject_id} not found.")
    if record.stage_id is None:
        raise _error(404, "NO_STAGE", f"No stage selected on {side_enum.value}.")
    return await _estimate(context, subject_id, int(record.stage_id))
