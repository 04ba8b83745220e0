"""
Map search filters (property type, subtype, transaction type) onto flows.
"""

from typing import Optional

from marketplace.flows.definitions import FlowType, coerce_flow_type

PG_SUBTYPES = frozenset({
    "pghostel", "pg",
    "single_sharing", "double_sharing", "triple_sharing", "four_sharing", "dormitory",
})

COWORKING_SUBTYPES = frozenset({
    "private_office", "dedicated_desk", "hot_desk", "meeting_room",
    "conference_room", "event_space", "virtual_office",
})

TRANSACTION_BUY = "buy"
TRANSACTION_RENT = "rent"


def _is_buy(transaction_type: Optional[str]) -> bool:
    return (transaction_type or "").strip().lower() in (TRANSACTION_BUY, "sale")


def map_subtype_to_flow(
    property_type: Optional[str],
    subtype: Optional[str] = None,
    transaction_type: Optional[str] = None,
) -> FlowType:
    """
    Resolve the flow a search should filter on.

    Args:
        property_type: residential, commercial, land, pghostel or flatmates
        subtype: Search subtype such as ``apartment`` or ``hot_desk``
        transaction_type: ``buy`` or ``rent``

    Returns:
        The matching flow; residential rent when nothing more specific applies
    """
    property_type = (property_type or "").strip().lower()
    subtype = (subtype or "").strip().lower()
    buy = _is_buy(transaction_type)

    if property_type == "residential":
        if subtype in PG_SUBTYPES:
            return FlowType.RESIDENTIAL_PGHOSTEL
        if subtype == "flatmates":
            return FlowType.RESIDENTIAL_FLATMATES
        return FlowType.RESIDENTIAL_SALE if buy else FlowType.RESIDENTIAL_RENT

    if property_type == "commercial":
        if subtype in COWORKING_SUBTYPES or subtype == "coworking":
            return FlowType.COMMERCIAL_COWORKING
        return FlowType.COMMERCIAL_SALE if buy else FlowType.COMMERCIAL_RENT

    if property_type == "land":
        return FlowType.LAND_SALE
    if property_type == "pghostel":
        return FlowType.RESIDENTIAL_PGHOSTEL
    if property_type == "flatmates":
        return FlowType.RESIDENTIAL_FLATMATES

    return FlowType.RESIDENTIAL_RENT


def extract_transaction_type(flow_type) -> str:
    """``buy`` for sale flows, ``rent`` for everything else."""
    value = coerce_flow_type(flow_type).value
    if "sale" in value or "buy" in value:
        return TRANSACTION_BUY
    return TRANSACTION_RENT
