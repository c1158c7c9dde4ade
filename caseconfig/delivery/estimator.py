# caseconfig/delivery/estimator.py
"""
Delivery estimate computation against the lab API.

Endpoint: GET {LAB_API_BASE_URL}/slip/lab/{lab_id}/delivery-date?product_id=&stage_id=
Response: {"success": bool, "message": str,
           "data": {"pickup_date": str, "delivery_date": str, "delivery_time": str}}

The estimator is the compute function wrapped by DerivedValueCache; any
exception it raises (missing lab id, HTTP error, timeout, bad payload)
becomes a ComputationFailure there.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from caseconfig.db import get_lab_api_base_url, get_lab_api_timeout, lab_api_headers

log = logging.getLogger("caseconfig.delivery.estimator")


class DeliveryEstimate(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    pickup_date: Optional[str] = None
    delivery_date: Optional[str] = None
    delivery_time: Optional[str] = None


class DeliveryPayloadError(ValueError):
    """The lab API answered without a usable estimate."""


class HttpDeliveryEstimator:
    """
    Async callable: ``await estimator(subject_id, stage_id) -> DeliveryEstimate``.

    Args:
        context: CallerContext providing the lab id.
        base_url: Overrides LAB_API_BASE_URL.
        timeout: Overrides LAB_API_TIMEOUT_SECONDS.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        context=None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.context = context
        self.base_url = (base_url if base_url is not None else get_lab_api_base_url()).rstrip("/")
        self.timeout = timeout if timeout is not None else get_lab_api_timeout()
        self.transport = transport

    async def __call__(self, subject_id: int, stage_id: int) -> Optional[DeliveryEstimate]:
        lab_id = getattr(self.context, "lab_id", None) if self.context is not None else None
        if not lab_id:
            raise ValueError("Lab ID not found. A lab must be selected to estimate delivery.")
        if not self.base_url:
            raise RuntimeError("LAB_API_BASE_URL not configured")

        async with httpx.AsyncClient(
            base_url=self.base_url,
            headers=lab_api_headers(),
            timeout=self.timeout,
            transport=self.transport,
        ) as client:
            response = await client.get(
                f"/slip/lab/{lab_id}/delivery-date",
                params={"product_id": subject_id, "stage_id": stage_id},
            )
            response.raise_for_status()
            payload = response.json()

        data = payload.get("data") if isinstance(payload, dict) else None
        if data is None:
            log.info("No delivery estimate for product %s stage %s", subject_id, stage_id)
            return None
        try:
            return DeliveryEstimate.model_validate(data)
        except ValidationError as e:
            raise DeliveryPayloadError(f"malformed delivery payload: {e.errors()[:1]}") from e
