"""Address formatting."""

from certnow.utils.normalization import to_text


def format_address_line(*parts) -> str:
    """Join non-empty address parts with ", "."""
    return ", ".join(p for p in (to_text(part) for part in parts) if p)


def format_structured_address(fields: dict) -> str:
    """Format the structured job-address fields (line1, line2, town) into one line."""
    return format_address_line(
        fields.get("address_line1"),
        fields.get("address_line2"),
        fields.get("address_town"),
    )
