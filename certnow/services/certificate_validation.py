"""Issuance validators, one rule set per certificate type.

Each validator is a pure function over the merged field map (CP12 also takes
its appliance rows) and returns an ordered list of violations. An empty list
means the certificate may be issued.
"""

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping

from certnow.core.errors import ValidationFailedError
from certnow.db.enums import CERTIFICATE_LABELS, CertificateType, GasWarningClassification
from certnow.utils.normalization import has_value, is_truthy_flag, to_text


@dataclass(frozen=True)
class Violation:
    rule: str
    message: str


CP12_REQUIRED_FIELDS = (
    "property_address",
    "inspection_date",
    "landlord_name",
    "landlord_address",
    "engineer_name",
    "gas_safe_number",
)

BOILER_SERVICE_REQUIRED_FOR_ISSUE = (
    "property_address",
    "service_date",
    "engineer_name",
    "gas_safe_number",
    "boiler_make",
    "boiler_model",
    "boiler_location",
    "service_summary",
    "recommendations",
    "engineer_signature",
    "customer_signature",
)

GENERAL_WORKS_REQUIRED_FIELDS = (
    "property_address",
    "work_date",
    "engineer_name",
    "work_summary",
    "work_completed",
    "engineer_signature",
    "customer_signature",
)

GAS_WARNING_REQUIRED_FOR_ISSUE = (
    "property_address",
    "customer_name",
    "appliance_location",
    "appliance_type",
    "classification",
    "unsafe_situation_description",
    "actions_taken",
    "engineer_name",
    "gas_safe_number",
    "issued_at",
    "record_id",
)

# Checkboxes: stored as "true"/"false", so presence alone is not enough
GAS_WARNING_REQUIRED_FLAGS = ("customer_informed",)


def _attr(row: Any, name: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(name)
    return getattr(row, name, None)


def _required(fields: Mapping[str, Any], keys: Iterable[str]) -> list[Violation]:
    return [
        Violation(f"required:{key}", f"{key.replace('_', ' ')} is required")
        for key in keys
        if not has_value(fields.get(key))
    ]


def _defects_rule(fields: Mapping[str, Any], message: str) -> list[Violation]:
    if is_truthy_flag(fields.get("defects_found")) and not has_value(fields.get("defects_details")):
        return [Violation("defects_details", message)]
    return []


def validate_cp12(fields: Mapping[str, Any], appliances: Iterable[Any] = ()) -> list[Violation]:
    violations = _required(fields, CP12_REQUIRED_FIELDS)

    if not is_truthy_flag(fields.get("reg_26_9_confirmed")):
        violations.append(
            Violation("reg_26_9_confirmed", "Regulation 26(9) confirmation is required")
        )

    rows = [
        row for row in appliances
        if has_value(_attr(row, "appliance_type")) or has_value(_attr(row, "location"))
    ]
    if not rows:
        violations.append(Violation(
            "appliances_present",
            "At least one appliance with location and description is required",
        ))
    elif any(
        not has_value(_attr(row, "location")) or not has_value(_attr(row, "appliance_type"))
        for row in rows
    ):
        violations.append(Violation(
            "appliance_complete",
            "Each appliance must include location and description",
        ))

    for row in rows:
        if (
            has_value(_attr(row, "classification_code"))
            and to_text(_attr(row, "safety_rating")).lower() == "safe"
        ):
            violations.append(Violation(
                "classification_on_safe",
                "Classification code should only be set when safety rating is not safe",
            ))

    description = has_value(fields.get("defect_description"))
    remedial = has_value(fields.get("remedial_action"))
    if (description or remedial) and not (description and remedial):
        violations.append(Violation(
            "defect_remedial_pair",
            "Defects require both description and remedial action",
        ))

    if not has_value(fields.get("engineer_signature")):
        violations.append(Violation("engineer_signature", "Engineer signature is required"))
    if not has_value(fields.get("customer_signature")):
        violations.append(Violation("customer_signature", "Customer signature is required"))

    return violations


def validate_boiler_service(fields: Mapping[str, Any], appliances: Iterable[Any] = ()) -> list[Violation]:
    return _required(fields, BOILER_SERVICE_REQUIRED_FOR_ISSUE) + _defects_rule(
        fields, "Defects details are required when defects are found"
    )


def validate_general_works(fields: Mapping[str, Any], appliances: Iterable[Any] = ()) -> list[Violation]:
    return _required(fields, GENERAL_WORKS_REQUIRED_FIELDS) + _defects_rule(
        fields, "Defect details required when defects are marked"
    )


def validate_gas_warning_notice(fields: Mapping[str, Any], appliances: Iterable[Any] = ()) -> list[Violation]:
    violations = _required(fields, GAS_WARNING_REQUIRED_FOR_ISSUE)
    violations += [
        Violation(f"required:{key}", f"{key.replace('_', ' ')} is required")
        for key in GAS_WARNING_REQUIRED_FLAGS
        if not is_truthy_flag(fields.get(key))
    ]
    violations += _defects_rule(fields, "Defect details required when defects are marked")

    if to_text(fields.get("classification")) == GasWarningClassification.IMMEDIATELY_DANGEROUS.value:
        if not is_truthy_flag(fields.get("danger_do_not_use_label_fitted")):
            violations.append(Violation(
                "danger_label_fitted",
                "Danger do not use label must be fitted for immediately dangerous situations",
            ))
        if not (
            is_truthy_flag(fields.get("gas_supply_isolated"))
            or is_truthy_flag(fields.get("customer_refused_isolation"))
        ):
            violations.append(Violation(
                "isolation_or_refusal",
                "Gas supply must be isolated or customer refusal recorded for immediately dangerous situations",
            ))

    return violations


def _no_issuance_rules(fields: Mapping[str, Any], appliances: Iterable[Any] = ()) -> list[Violation]:
    return []


VALIDATORS: dict[CertificateType, Callable[..., list[Violation]]] = {
    CertificateType.CP12: validate_cp12,
    CertificateType.BOILER_SERVICE: validate_boiler_service,
    CertificateType.GENERAL_WORKS: validate_general_works,
    CertificateType.GAS_WARNING_NOTICE: validate_gas_warning_notice,
    CertificateType.BREAKDOWN: _no_issuance_rules,
    CertificateType.COMMISSIONING: _no_issuance_rules,
}


def validate_for_issue(
    certificate_type: CertificateType,
    fields: Mapping[str, Any],
    appliances: Iterable[Any] = (),
) -> list[Violation]:
    return VALIDATORS[certificate_type](fields, list(appliances))


def format_violations(certificate_type: CertificateType, violations: list[Violation]) -> str:
    """'<Label> validation failed: a; b; c'"""
    label = CERTIFICATE_LABELS[certificate_type]
    return f"{label} validation failed: " + "; ".join(v.message for v in violations)


def ensure_issuable(
    certificate_type: CertificateType,
    fields: Mapping[str, Any],
    appliances: Iterable[Any] = (),
) -> None:
    """Raise ValidationFailedError carrying every violation, if any."""
    violations = validate_for_issue(certificate_type, fields, appliances)
    if violations:
        raise ValidationFailedError(format_violations(certificate_type, violations), violations)
