"""Merge resolved job context (customer + property address) into wizard fields."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from certnow.utils.normalization import pick_first_non_empty

if TYPE_CHECKING:
    from certnow.services.job_context_service import JobContext


# Keys owned by the job context; everything else passes through untouched
CONTEXT_FIELD_KEYS = (
    "customer_name",
    "customer_address",
    "customer_email",
    "customer_phone",
    "customer_contact",
    "property_address",
    "postcode",
    "landlord_name",
    "landlord_address",
)


def merge_job_context_fields(
    fields: dict[str, Any],
    context: JobContext | None,
) -> dict[str, Any]:
    """
    Overlay context values onto a wizard field map.

    Context wins when non-empty, then the wizard value, then "". Pure and
    idempotent; with no context the fields are returned unchanged (copied).
    """
    merged = dict(fields)
    if context is None:
        return merged

    customer = context.customer
    address = context.property_address

    def c(attr: str):
        return getattr(customer, attr, None) if customer is not None else None

    def a(attr: str):
        return getattr(address, attr, None) if address is not None else None

    merged["customer_name"] = pick_first_non_empty(c("name"), fields.get("customer_name"))
    merged["customer_address"] = pick_first_non_empty(c("address"), fields.get("customer_address"))
    merged["customer_email"] = pick_first_non_empty(c("email"), fields.get("customer_email"))
    merged["customer_phone"] = pick_first_non_empty(c("phone"), fields.get("customer_phone"))
    merged["customer_contact"] = pick_first_non_empty(
        c("phone"), c("email"), fields.get("customer_contact")
    )
    merged["property_address"] = pick_first_non_empty(
        a("summary"), a("line1"), fields.get("property_address")
    )
    merged["postcode"] = pick_first_non_empty(
        c("postcode"), a("postcode"), fields.get("postcode")
    )
    merged["landlord_name"] = pick_first_non_empty(c("landlord_name"), fields.get("landlord_name"))
    merged["landlord_address"] = pick_first_non_empty(
        c("landlord_address"), fields.get("landlord_address")
    )
    return merged
