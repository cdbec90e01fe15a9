"""
Certificate PDF rendering.

Builds certificate PDFs from a merged field map using reportlab platypus.
Layout is data-driven: each certificate type is a list of sections, each
section a list of (label, field_key) pairs.
"""

import io
from datetime import datetime, timezone
from typing import Any, Iterable
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from certnow.db.enums import CERTIFICATE_LABELS, CertificateType
from certnow.utils.normalization import as_utc, has_value, is_truthy_flag

BRAND_COLOR = colors.HexColor("#0f766e")
MUTED_COLOR = colors.HexColor("#64748b")

PROPERTY_SECTION = ("Property & customer", [
    ("Customer", "customer_name"),
    ("Property address", "property_address"),
    ("Postcode", "postcode"),
    ("Contact", "customer_contact"),
])

ENGINEER_SECTION = ("Engineer", [
    ("Engineer", "engineer_name"),
    ("Company", "company_name"),
    ("Gas Safe number", "gas_safe_number"),
])

SIGNATURE_SECTION = ("Signatures", [
    ("Engineer signature", "engineer_signature"),
    ("Customer signature", "customer_signature"),
])

CERTIFICATE_SECTIONS: dict[CertificateType, list[tuple[str, list[tuple[str, str]]]]] = {
    CertificateType.CP12: [
        PROPERTY_SECTION,
        ("Landlord", [
            ("Landlord", "landlord_name"),
            ("Landlord address", "landlord_address"),
        ]),
        ENGINEER_SECTION,
        ("Inspection", [
            ("Inspection date", "inspection_date"),
            ("Next inspection due", "next_inspection_due"),
            ("Regulation 26(9) confirmed", "reg_26_9_confirmed"),
        ]),
        ("Defects & remedial actions", [
            ("Defect description", "defect_description"),
            ("Remedial action", "remedial_action"),
        ]),
        SIGNATURE_SECTION,
    ],
    CertificateType.BOILER_SERVICE: [
        PROPERTY_SECTION,
        ENGINEER_SECTION,
        ("Boiler", [
            ("Service date", "service_date"),
            ("Make", "boiler_make"),
            ("Model", "boiler_model"),
            ("Type", "boiler_type"),
            ("Location", "boiler_location"),
            ("Serial number", "serial_number"),
            ("Gas type", "gas_type"),
            ("Flue type", "flue_type"),
        ]),
        ("Readings", [
            ("Operating pressure (mbar)", "operating_pressure_mbar"),
            ("Inlet pressure (mbar)", "inlet_pressure_mbar"),
            ("CO (ppm)", "co_ppm"),
            ("CO2 (%)", "co2_percent"),
            ("Flue gas temp (C)", "flue_gas_temp_c"),
            ("System pressure (bar)", "system_pressure_bar"),
        ]),
        ("Outcome", [
            ("Service summary", "service_summary"),
            ("Recommendations", "recommendations"),
            ("Defects found", "defects_found"),
            ("Defect details", "defects_details"),
            ("Parts used", "parts_used"),
            ("Next service due", "next_service_due"),
        ]),
        SIGNATURE_SECTION,
    ],
    CertificateType.GENERAL_WORKS: [
        PROPERTY_SECTION,
        ENGINEER_SECTION,
        ("Work", [
            ("Work date", "work_date"),
            ("Work summary", "work_summary"),
            ("Work completed", "work_completed"),
            ("Parts used", "parts_used"),
            ("Defects found", "defects_found"),
            ("Defect details", "defects_details"),
            ("Recommendations", "recommendations"),
            ("Follow-up required", "follow_up_required"),
            ("Follow-up date", "follow_up_date"),
        ]),
        SIGNATURE_SECTION,
    ],
    CertificateType.GAS_WARNING_NOTICE: [
        PROPERTY_SECTION,
        ("Appliance", [
            ("Location", "appliance_location"),
            ("Type", "appliance_type"),
            ("Make / model", "make_model"),
        ]),
        ("Unsafe situation", [
            ("Classification", "classification"),
            ("Classification code", "classification_code"),
            ("Description", "unsafe_situation_description"),
            ("Underlying cause", "underlying_cause"),
            ("Actions taken", "actions_taken"),
        ]),
        ("Actions", [
            ("Gas supply isolated", "gas_supply_isolated"),
            ("Appliance capped off", "appliance_capped_off"),
            ("Customer refused isolation", "customer_refused_isolation"),
            ("Danger: Do Not Use label fitted", "danger_do_not_use_label_fitted"),
            ("Emergency services contacted", "emergency_services_contacted"),
            ("Emergency reference", "emergency_reference"),
            ("Customer informed", "customer_informed"),
        ]),
        ENGINEER_SECTION,
        ("Record", [
            ("Issued at", "issued_at"),
            ("Record ID", "record_id"),
        ]),
        SIGNATURE_SECTION,
    ],
    CertificateType.BREAKDOWN: [
        PROPERTY_SECTION,
        ENGINEER_SECTION,
        ("Breakdown", [
            ("Fault reported", "fault_reported"),
            ("Diagnosis", "diagnosis"),
            ("Work completed", "work_completed"),
            ("Parts used", "parts_used"),
            ("Appliance safe to use", "appliance_safe"),
            ("Recommendations", "recommendations"),
        ]),
        SIGNATURE_SECTION,
    ],
    CertificateType.COMMISSIONING: [
        PROPERTY_SECTION,
        ENGINEER_SECTION,
        ("Installation", [
            ("Commissioning date", "commissioning_date"),
            ("Make", "boiler_make"),
            ("Model", "boiler_model"),
            ("Serial number", "serial_number"),
            ("Operating pressure (mbar)", "operating_pressure_mbar"),
            ("CO (ppm)", "co_ppm"),
            ("CO2 (%)", "co2_percent"),
            ("Notes", "commissioning_notes"),
        ]),
        SIGNATURE_SECTION,
    ],
}

APPLIANCE_COLUMNS = [
    ("Location", "location"),
    ("Type", "appliance_type"),
    ("Make / model", "make_model"),
    ("Flue", "flue_type"),
    ("CO ppm", "co_reading_ppm"),
    ("Rating", "safety_rating"),
    ("Code", "classification_code"),
]

FLAG_KEYS = {
    "reg_26_9_confirmed",
    "defects_found",
    "follow_up_required",
    "gas_supply_isolated",
    "appliance_capped_off",
    "customer_refused_isolation",
    "danger_do_not_use_label_fitted",
    "emergency_services_contacted",
    "customer_informed",
    "appliance_safe",
}


def _display(key: str, value: Any) -> str:
    if key.endswith("_signature"):
        return "Signed" if has_value(value) else "Not signed"
    if key in FLAG_KEYS:
        if not has_value(value) and value is not True:
            return "-"
        return "Yes" if is_truthy_flag(value) else "No"
    return value.strip() if has_value(value) else "-"


def _styles():
    styles = getSampleStyleSheet()
    title = ParagraphStyle(
        "CertTitle",
        parent=styles["Heading1"],
        fontSize=18,
        textColor=BRAND_COLOR,
        spaceAfter=4,
    )
    heading = ParagraphStyle(
        "CertHeading",
        parent=styles["Heading2"],
        fontSize=11,
        textColor=BRAND_COLOR,
        spaceBefore=10,
        spaceAfter=4,
    )
    muted = ParagraphStyle("Muted", parent=styles["Normal"], fontSize=8, textColor=MUTED_COLOR)
    cell = ParagraphStyle("Cell", parent=styles["Normal"], fontSize=9, leading=11)
    return title, heading, muted, cell


def _section_table(rows: list[tuple[str, str]], fields: dict, cell_style) -> Table:
    data = [
        [Paragraph(escape(label), cell_style), Paragraph(escape(_display(key, fields.get(key))), cell_style)]
        for label, key in rows
    ]
    table = Table(data, colWidths=[55 * mm, 115 * mm])
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (0, -1), colors.HexColor("#f1f5f9")),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.HexColor("#cbd5e1")),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("TOPPADDING", (0, 0), (-1, -1), 3),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
    ]))
    return table


def _appliance_table(appliances: Iterable[Any], cell_style) -> Table | None:
    rows = [
        [Paragraph(escape(_display(key, getattr(app, key, None))), cell_style) for _, key in APPLIANCE_COLUMNS]
        for app in appliances
    ]
    if not rows:
        return None
    header = [Paragraph(f"<b>{label}</b>", cell_style) for label, _ in APPLIANCE_COLUMNS]
    table = Table([header] + rows, repeatRows=1)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#e2e8f0")),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.HexColor("#cbd5e1")),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ]))
    return table


def render_certificate_pdf(
    certificate_type: CertificateType,
    fields: dict,
    appliances: Iterable[Any] = (),
    *,
    issued_at: datetime | None = None,
    preview: bool = False,
) -> bytes:
    """
    Render a certificate to PDF bytes.

    issued_at is printed in the header of an issued certificate. Preview
    renders carry a banner and show the render time instead.
    """
    buffer = io.BytesIO()
    label = CERTIFICATE_LABELS[certificate_type]
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=20 * mm,
        rightMargin=20 * mm,
        topMargin=18 * mm,
        bottomMargin=18 * mm,
        title=f"{label} certificate",
    )
    title_style, heading_style, muted_style, cell_style = _styles()

    story = [Paragraph(f"{label} certificate", title_style)]
    if preview:
        story.append(Paragraph("PREVIEW - not a valid certificate", heading_style))
    if issued_at is not None and not preview:
        stamp = f"Issued {as_utc(issued_at).strftime('%Y-%m-%d %H:%M UTC')}"
    else:
        stamp = f"Generated {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')}"
    story.append(Paragraph(stamp, muted_style))
    story.append(Spacer(1, 6))

    for section_title, rows in CERTIFICATE_SECTIONS[certificate_type]:
        story.append(Paragraph(escape(section_title), heading_style))
        story.append(_section_table(rows, fields, cell_style))
        if certificate_type == CertificateType.CP12 and section_title == "Inspection":
            appliance_table = _appliance_table(appliances, cell_style)
            if appliance_table is not None:
                story.append(Paragraph("Appliances", heading_style))
                story.append(appliance_table)

    doc.build(story)
    return buffer.getvalue()
