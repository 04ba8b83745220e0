"""
Helpers for reading and building the canonical property details blob.

Blob layout::

    {
      "meta":  {"_version": "v3", "created_at", "updated_at", "status",
                "id", "owner_id", "code", "title"},
      "flow":  {"category", "listingType"},
      "steps": {"<step_id>": {...}},
      "media": {"photos": {"images": [...]},
                "videos": {"urls": [...], "video": {...}}}
    }

All functions here return new dictionaries and never mutate their input,
so SQLAlchemy always sees a fresh value on the JSON column.
"""

from copy import deepcopy
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional
import math
import re

from marketplace.flows.definitions import FlowType, get_flow
from marketplace.utils.exceptions import ValidationError

DETAILS_VERSION = "v3"
UNTITLED = "Untitled Property"

# sizes of the denormalized property and coordinates columns
COLUMN_LENGTHS = {"title": 255, "address": 500, "city": 100, "state": 100, "zip_code": 20}

# (step suffix, field) holding the headline price of each flow
PRICE_FIELDS = {
    FlowType.RESIDENTIAL_RENT: ("rental", "rentAmount"),
    FlowType.RESIDENTIAL_SALE: ("sale_details", "expectedPrice"),
    FlowType.RESIDENTIAL_PGHOSTEL: ("pg_details", "rentAmount"),
    FlowType.RESIDENTIAL_FLATMATES: ("flatmate_details", "rentAmount"),
    FlowType.COMMERCIAL_RENT: ("rental", "rentAmount"),
    FlowType.COMMERCIAL_SALE: ("sale_details", "expectedPrice"),
    FlowType.COMMERCIAL_COWORKING: ("coworking_details", "deskPrice"),
    FlowType.LAND_SALE: ("basic_details", "expectedPrice"),
}

LISTING_LABELS = {
    "rent": "Rent",
    "sale": "Sale",
    "pghostel": "PG/Hostel",
    "flatmates": "Flatmates",
    "coworking": "Co-working",
}

BHK_LABELS = {
    "1rk": "1 RK",
    "4plus": "4+ BHK",
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _humanize(value: str) -> str:
    return " ".join(part.capitalize() for part in str(value).replace("-", "_").split("_") if part)


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def _to_int(value: Any) -> Optional[int]:
    number = _to_float(value)
    return int(number) if number is not None else None


def clip(value: Optional[str], column: str) -> Optional[str]:
    """Trim a text value to the size of the column it is stored in."""
    if value is None:
        return None
    return value[:COLUMN_LENGTHS[column]].rstrip() or None


def get_steps(details: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    return dict((details or {}).get("steps") or {})


def find_step(details: Optional[Mapping[str, Any]], suffix: str) -> Dict[str, Any]:
    """
    Find a step by its suffix, whatever flow prefix it carries.

    Returns:
        The step data, or an empty dict when no step matches
    """
    for step_id, data in get_steps(details).items():
        if step_id.endswith(f"_{suffix}") and isinstance(data, Mapping):
            return dict(data)
    return {}


def extract_price(flow_type, details: Optional[Mapping[str, Any]]) -> Decimal:
    """Headline price for the flow, 0 when absent or unparseable."""
    flow = get_flow(flow_type)
    suffix, field_name = PRICE_FIELDS[flow.flow_type]
    raw = get_steps(details).get(f"{flow.prefix}_{suffix}", {}).get(field_name)
    if raw is None or isinstance(raw, bool):
        return Decimal("0")
    try:
        price = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        return Decimal("0")
    return price if price.is_finite() else Decimal("0")


def extract_title(details: Optional[Mapping[str, Any]]) -> str:
    title = _text(find_step(details, "basic_details").get("title"))
    if title:
        return title
    title = _text(((details or {}).get("meta") or {}).get("title"))
    return title or UNTITLED


def generate_title(flow_type, details: Optional[Mapping[str, Any]]) -> str:
    """Build a descriptive title from the basic and location steps."""
    flow = get_flow(flow_type)
    basic = find_step(details, "basic_details")
    city = _text(find_step(details, "location").get("city"))
    suffix = f" in {city}" if city else ""

    if flow.flow_type == FlowType.LAND_SALE:
        land_type = _text(basic.get("landType"))
        head = _humanize(land_type) if land_type else "Land"
        return f"{head} for Sale{suffix}"

    bhk = _text(basic.get("bhkType"))
    if bhk:
        bhk_label = BHK_LABELS.get(bhk.lower(), bhk.upper().replace("BHK", " BHK"))
        property_type = _humanize(basic.get("propertyType") or "property")
        action = "Sale" if flow.listing_type == "sale" else "Rent"
        return f"{bhk_label} {property_type} for {action}{suffix}"

    return f"Property for {LISTING_LABELS.get(flow.listing_type, _humanize(flow.listing_type))}{suffix}"


def extract_address(details: Optional[Mapping[str, Any]]) -> str:
    location = find_step(details, "location")
    parts = [
        _text(location.get("address")),
        _text(location.get("locality")) or _text(location.get("landmark")),
        _text(location.get("city")),
    ]
    return ", ".join(part for part in parts if part)


def extract_location(details: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Coordinates and address fields of the location step."""
    location = find_step(details, "location")
    coordinates = location.get("coordinates") if isinstance(location.get("coordinates"), Mapping) else {}
    return {
        "latitude": _to_float(coordinates.get("latitude")),
        "longitude": _to_float(coordinates.get("longitude")),
        "address": _text(location.get("address")),
        "city": _text(location.get("city")),
        "state": _text(location.get("state")),
        "pin_code": _text(location.get("pinCode")),
    }


def extract_bedrooms(details: Optional[Mapping[str, Any]]) -> Optional[int]:
    """Bedrooms from the BHK type: 1rk is 1, Nbhk is N, 4plus is 5."""
    bhk = _text(find_step(details, "basic_details").get("bhkType"))
    if not bhk:
        return None

    bhk = bhk.lower()
    if bhk == "1rk":
        return 1
    if bhk == "4plus":
        return 5
    match = re.match(r"^(\d+)\s*bhk$", bhk)
    return int(match.group(1)) if match else None


def extract_bathrooms(details: Optional[Mapping[str, Any]]) -> Optional[int]:
    return _to_int(find_step(details, "basic_details").get("bathrooms"))


def extract_area(details: Optional[Mapping[str, Any]]) -> Optional[int]:
    basic = find_step(details, "basic_details")
    for key in ("builtUpArea", "area", "carpetArea"):
        area = _to_int(basic.get(key))
        if area is not None:
            return area
    return None


def build_details(
    flow_type,
    property_id: str,
    owner_id: str,
    code: str,
    steps: Optional[Mapping[str, Any]] = None,
    status: str = "draft",
) -> Dict[str, Any]:
    """Create a fresh canonical blob for a new property."""
    flow = get_flow(flow_type)
    now = _now_iso()
    details = {
        "meta": {
            "_version": DETAILS_VERSION,
            "created_at": now,
            "updated_at": now,
            "status": status,
            "id": property_id,
            "owner_id": owner_id,
            "code": code,
            "title": UNTITLED,
        },
        "flow": {"category": flow.category, "listingType": flow.listing_type},
        "steps": deepcopy(dict(steps or {})),
        "media": {"photos": {"images": []}, "videos": {"urls": []}},
    }
    details["meta"]["title"] = resolve_title(flow.flow_type, details)
    return details


def resolve_title(flow_type, details: Optional[Mapping[str, Any]]) -> str:
    """Explicit title when given, otherwise a generated one once there is data to describe."""
    title = _text(find_step(details, "basic_details").get("title"))
    if title:
        return title
    if get_steps(details):
        return generate_title(flow_type, details)
    return extract_title(details)


def denormalize(flow_type, details: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Column values derived from the blob on every save."""
    location = extract_location(details)
    return {
        "title": clip(resolve_title(flow_type, details), "title"),
        "price": extract_price(flow_type, details),
        "bedrooms": extract_bedrooms(details),
        "bathrooms": extract_bathrooms(details),
        "square_feet": extract_area(details),
        "address": clip(extract_address(details) or None, "address"),
        "city": clip(location["city"], "city"),
        "state": clip(location["state"], "state"),
        "zip_code": clip(location["pin_code"], "zip_code"),
    }


def with_step(details: Mapping[str, Any], step_id: str, data: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy of the blob with one step's data replaced."""
    updated = deepcopy(dict(details))
    steps = dict(updated.get("steps") or {})
    steps[step_id] = deepcopy(dict(data))
    updated["steps"] = steps
    return updated


def with_meta(details: Mapping[str, Any], **values: Any) -> Dict[str, Any]:
    """Copy of the blob with meta fields set and updated_at stamped; None removes a key."""
    updated = deepcopy(dict(details))
    meta = dict(updated.get("meta") or {})
    for key, value in values.items():
        if value is None:
            meta.pop(key, None)
        else:
            meta[key] = value
    meta["updated_at"] = _now_iso()
    updated["meta"] = meta
    return updated


def with_media(details: Mapping[str, Any], images: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    """Copy of the blob with the photo list replaced."""
    updated = deepcopy(dict(details))
    media = dict(updated.get("media") or {})
    photos = dict(media.get("photos") or {})
    photos["images"] = [dict(image) for image in images]
    media["photos"] = photos
    media.setdefault("videos", {"urls": []})
    updated["media"] = media
    return updated


def with_video(details: Mapping[str, Any], video: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Copy of the blob with the walkthrough video set, or cleared when video is None."""
    updated = deepcopy(dict(details))
    media = dict(updated.get("media") or {})
    media.setdefault("photos", {"images": []})
    if video is None:
        media["videos"] = {"urls": []}
    else:
        media["videos"] = {"urls": [video["url"]], "video": dict(video)}
    updated["media"] = media
    return updated


def get_video(details: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    videos = (((details or {}).get("media") or {}).get("videos")) or {}
    video = videos.get("video") if isinstance(videos, Mapping) else None
    return dict(video) if isinstance(video, Mapping) else None


def check_details_shape(flow_type, details: Any) -> None:
    """
    Reject blobs that are not in the canonical shape for the flow.

    Raises:
        ValidationError: With one field error per problem found
    """
    flow = get_flow(flow_type)
    errors: List[Dict[str, str]] = []

    if not isinstance(details, Mapping):
        raise ValidationError("Property details must be an object")

    meta = details.get("meta")
    if not isinstance(meta, Mapping):
        errors.append({"field": "meta", "message": "meta section is required"})
    elif meta.get("_version") != DETAILS_VERSION:
        errors.append({"field": "meta._version", "message": f"Unsupported details version, expected {DETAILS_VERSION}"})

    flow_section = details.get("flow")
    if not isinstance(flow_section, Mapping):
        errors.append({"field": "flow", "message": "flow section is required"})
    elif (flow_section.get("category"), flow_section.get("listingType")) != (flow.category, flow.listing_type):
        errors.append({"field": "flow", "message": f"flow section does not match {flow.flow_type.value}"})

    steps = details.get("steps")
    if not isinstance(steps, Mapping):
        errors.append({"field": "steps", "message": "steps section is required"})
    else:
        for step_id, data in steps.items():
            if step_id not in flow.step_ids:
                errors.append({"field": f"steps.{step_id}", "message": "Step does not belong to this flow"})
            elif not isinstance(data, Mapping):
                errors.append({"field": f"steps.{step_id}", "message": "Step data must be an object"})

    media = details.get("media")
    if media is not None and not isinstance(media, Mapping):
        errors.append({"field": "media", "message": "media section must be an object"})

    if errors:
        raise ValidationError("Property details are not in the expected format", errors)
