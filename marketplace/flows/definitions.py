"""
Static flow and step tables for the listing wizard.

Every listing belongs to exactly one of eight flows. A flow is an ordered
list of steps; each step carries the field rules used to validate the data
stored under ``steps[<prefix>_<step>]`` in the property details blob.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple
import enum

from marketplace.utils.exceptions import InvalidFlowError


class FlowType(str, enum.Enum):
    """The eight listing flows (category x listing type)."""
    RESIDENTIAL_RENT = "residential_rent"
    RESIDENTIAL_SALE = "residential_sale"
    RESIDENTIAL_PGHOSTEL = "residential_pghostel"
    RESIDENTIAL_FLATMATES = "residential_flatmates"
    COMMERCIAL_RENT = "commercial_rent"
    COMMERCIAL_SALE = "commercial_sale"
    COMMERCIAL_COWORKING = "commercial_coworking"
    LAND_SALE = "land_sale"


class FieldKind(str, enum.Enum):
    TEXT = "text"
    NUMBER = "number"
    SELECT = "select"
    CHECKBOX = "checkbox"
    BOOLEAN = "boolean"
    DATE = "date"
    COORDINATES = "coordinates"


@dataclass(frozen=True)
class FieldRule:
    """Validation rule for a single wizard field."""
    name: str
    label: str
    kind: FieldKind = FieldKind.TEXT
    required: bool = True
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    pattern: Optional[str] = None
    options: Tuple[str, ...] = ()
    min_items: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "label": self.label,
            "kind": self.kind.value,
            "required": self.required,
            "min_length": self.min_length,
            "max_length": self.max_length,
            "min_value": self.min_value,
            "max_value": self.max_value,
            "pattern": self.pattern,
            "options": list(self.options),
            "min_items": self.min_items,
        }


@dataclass(frozen=True)
class StepConfig:
    """One wizard page: its full id, display name and field rules."""
    step_id: str
    name: str
    fields: Tuple[FieldRule, ...] = ()

    @property
    def suffix(self) -> str:
        """Step id without the flow prefix, e.g. ``basic_details``."""
        # Every flow prefix is two words joined by one underscore
        return self.step_id.split("_", 2)[-1]

    def to_dict(self) -> dict:
        return {
            "step_id": self.step_id,
            "name": self.name,
            "fields": [rule.to_dict() for rule in self.fields],
            "required_fields": get_required_fields(self),
        }


@dataclass(frozen=True)
class FlowConfig:
    """A complete flow: metadata plus its ordered steps."""
    flow_type: FlowType
    name: str
    prefix: str
    category: str
    listing_type: str
    steps: Tuple[StepConfig, ...] = field(default_factory=tuple)

    @property
    def step_ids(self) -> List[str]:
        return [step.step_id for step in self.steps]

    def to_dict(self) -> dict:
        return {
            "flow_type": self.flow_type.value,
            "name": self.name,
            "prefix": self.prefix,
            "category": self.category,
            "listing_type": self.listing_type,
            "steps": [step.to_dict() for step in self.steps],
        }


# Common validation rules

def _rule(name: str, label: str, **kwargs) -> FieldRule:
    return FieldRule(name=name, label=label, **kwargs)


def _optional(name: str, label: str, kind: FieldKind = FieldKind.TEXT, **kwargs) -> FieldRule:
    return FieldRule(name=name, label=label, kind=kind, required=False, **kwargs)


def _select(name: str, label: str, options: Tuple[str, ...], required: bool = True) -> FieldRule:
    return FieldRule(name=name, label=label, kind=FieldKind.SELECT, options=options, required=required)


def _multi(name: str, label: str, options: Tuple[str, ...] = ()) -> FieldRule:
    return FieldRule(name=name, label=label, kind=FieldKind.CHECKBOX, options=options, min_items=1)


def _price(name: str, label: str, minimum: float = 1000) -> FieldRule:
    return FieldRule(name=name, label=label, kind=FieldKind.NUMBER, min_value=minimum)


def _number(name: str, label: str, minimum: Optional[float] = None, maximum: Optional[float] = None) -> FieldRule:
    return FieldRule(name=name, label=label, kind=FieldKind.NUMBER, min_value=minimum, max_value=maximum)


PIN_CODE_PATTERN = r"^\d{6}$"
PHONE_PATTERN = r"^\d{10}$"

FACING_OPTIONS = ("north", "south", "east", "west", "north_east", "north_west", "south_east", "south_west")
PROPERTY_AGE_OPTIONS = ("under_construction", "0_1_years", "1_3_years", "3_5_years", "5_10_years", "10_plus_years")
FURNISHING_OPTIONS = ("unfurnished", "semi_furnished", "fully_furnished")
BHK_OPTIONS = ("1rk", "1bhk", "2bhk", "3bhk", "4bhk", "4plus")
GENDER_OPTIONS = ("male", "female", "any")
COWORKING_SPACE_TYPES = (
    "private_office", "dedicated_desk", "hot_desk", "meeting_room",
    "conference_room", "event_space", "virtual_office",
)

TITLE = _optional("title", "Property Title", max_length=255)
ADDRESS = _rule("address", "Complete Address", min_length=10, max_length=500)
FLAT_PLOT_NO = _optional("flatPlotNo", "Flat/Plot Number")
LANDMARK = _optional("landmark", "Landmark")
CITY = _rule("city", "City", max_length=100)
STATE = _rule("state", "State", max_length=100)
PIN_CODE = _rule("pinCode", "PIN Code", min_length=6, max_length=6, pattern=PIN_CODE_PATTERN)
COORDINATES = _rule("coordinates", "Map Location", kind=FieldKind.COORDINATES)
AVAILABLE_FROM = _rule("availableFrom", "Available From", kind=FieldKind.DATE)
FURNISHING = _select("furnishingStatus", "Furnishing Status", FURNISHING_OPTIONS)
FLOOR = _number("floor", "Floor", 0, 100)
TOTAL_FLOORS = _number("totalFloors", "Total Floors in Building", 1, 100)
PROPERTY_AGE = _select("propertyAge", "Property Age", PROPERTY_AGE_OPTIONS)
CONTACT_PHONE = _optional("contactPhone", "Contact Phone", pattern=PHONE_PATTERN, min_length=10, max_length=10)

LOCATION_FIELDS = (ADDRESS, FLAT_PLOT_NO, LANDMARK, CITY, STATE, PIN_CODE, COORDINATES)
LAND_LOCATION_FIELDS = (ADDRESS, LANDMARK, CITY, STATE, PIN_CODE, COORDINATES)

RESIDENTIAL_BASIC_FIELDS = (
    TITLE,
    _select("propertyType", "Property Type", ("apartment", "house", "villa", "builder_floor")),
    _select("bhkType", "BHK Configuration", BHK_OPTIONS),
    FLOOR,
    TOTAL_FLOORS,
    _number("builtUpArea", "Built-up Area", 50),
    _number("bathrooms", "Bathrooms", 1, 10),
    _select("facing", "Facing Direction", FACING_OPTIONS),
    PROPERTY_AGE,
)

RESIDENTIAL_RENTAL_FIELDS = (
    _price("rentAmount", "Monthly Rent"),
    _price("securityDeposit", "Security Deposit"),
    _optional("maintenanceCharges", "Maintenance Charges", kind=FieldKind.NUMBER),
    AVAILABLE_FROM,
    FURNISHING,
    _multi("preferredTenants", "Preferred Tenants", ("family", "bachelors", "students", "professionals")),
)

SALE_DETAIL_FIELDS = (
    _price("expectedPrice", "Expected Price", 100000),
    _optional("priceNegotiable", "Price Negotiable", kind=FieldKind.BOOLEAN),
    _rule("possessionDate", "Possession Date", kind=FieldKind.DATE),
    FURNISHING,
)

RESIDENTIAL_FEATURE_FIELDS = (
    _multi("amenities", "Amenities", (
        "parking", "gym", "swimming_pool", "garden", "elevator", "security",
        "power_backup", "water_supply", "internet", "club_house",
    )),
    _optional("petFriendly", "Pet Friendly", kind=FieldKind.BOOLEAN),
    _optional("nonVegAllowed", "Non-Veg Cooking Allowed", kind=FieldKind.BOOLEAN),
    CONTACT_PHONE,
)

COMMERCIAL_BASIC_FIELDS = (
    TITLE,
    _select("propertyType", "Commercial Property Type", (
        "office", "retail", "warehouse", "showroom", "restaurant", "industrial",
    )),
    _number("area", "Total Area", 100),
    FLOOR,
    TOTAL_FLOORS,
    PROPERTY_AGE,
)

COMMERCIAL_RENTAL_FIELDS = (
    _price("rentAmount", "Monthly Rent", 5000),
    _price("securityDeposit", "Security Deposit", 10000),
    _optional("maintenanceCharges", "Maintenance Charges", kind=FieldKind.NUMBER),
    AVAILABLE_FROM,
    _select("leaseDuration", "Minimum Lease Duration", (
        "11_months", "1_year", "2_years", "3_years", "5_years", "negotiable",
    )),
)

COMMERCIAL_FEATURE_FIELDS = (
    _multi("amenities", "Commercial Amenities", (
        "parking", "elevator", "security", "power_backup", "water_supply",
        "internet", "conference_room", "reception", "cafeteria", "fire_safety",
    )),
    _multi("suitableFor", "Suitable For Business Types", (
        "it_software", "consulting", "finance", "retail", "healthcare",
        "education", "manufacturing", "any",
    )),
    CONTACT_PHONE,
)

PG_BASIC_FIELDS = (
    TITLE,
    _select("pgType", "PG Type", ("boys", "girls", "coliving")),
    _number("totalRooms", "Total Rooms", 1, 500),
)

PG_DETAIL_FIELDS = (
    _price("rentAmount", "Monthly Rent"),
    _price("securityDeposit", "Security Deposit"),
    _select("roomType", "Room Type", ("single", "double", "triple", "four_sharing", "dormitory")),
    _select("genderPreference", "Gender Preference", GENDER_OPTIONS),
    _optional("foodIncluded", "Food Included", kind=FieldKind.BOOLEAN),
    AVAILABLE_FROM,
)

FLATMATE_DETAIL_FIELDS = (
    _price("rentAmount", "Monthly Rent"),
    _price("securityDeposit", "Security Deposit"),
    _select("preferredGender", "Preferred Gender", GENDER_OPTIONS),
    _select("occupancy", "Occupancy", ("single", "shared")),
    _optional("foodPreference", "Food Preference"),
    AVAILABLE_FROM,
)

COWORKING_BASIC_FIELDS = (
    TITLE,
    _select("spaceType", "Space Type", COWORKING_SPACE_TYPES),
    _number("area", "Total Area", 100),
    _number("seatingCapacity", "Seating Capacity", 1, 1000),
)

COWORKING_DETAIL_FIELDS = (
    _price("deskPrice", "Price per Seat"),
    _select("bookingOption", "Booking Option", ("daily", "weekly", "monthly")),
    AVAILABLE_FROM,
    _optional("operatingHours", "Operating Hours"),
)

LAND_BASIC_FIELDS = (
    _optional("title", "Plot Title", max_length=255),
    _select("landType", "Land Type", ("residential", "commercial", "industrial", "agricultural", "mixed_use")),
    _number("area", "Total Area", 100),
    _select("areaUnit", "Area Unit", ("sqft", "sqyds", "acres", "guntas")),
    _price("expectedPrice", "Expected Price", 100000),
)

LAND_FEATURE_FIELDS = (
    _multi("approvals", "Approvals & Clearances", (
        "gram_panchayat", "dtcp", "hmda", "rera", "municipal", "none",
    )),
    _select("boundaryStatus", "Boundary Status", ("clear", "partial", "disputed", "unknown")),
    _select("roadAccess", "Road Access", ("paved_road", "unpaved_road", "no_direct_access")),
    _optional("cornerPlot", "Corner Plot", kind=FieldKind.BOOLEAN),
)


def _steps(prefix: str, *pages: Tuple[str, str, Tuple[FieldRule, ...]]) -> Tuple[StepConfig, ...]:
    return tuple(
        StepConfig(step_id=f"{prefix}_{suffix}", name=name, fields=fields)
        for suffix, name, fields in pages
    )


_BASIC = "basic_details"
_LOCATION = ("location", "Location Details", LOCATION_FIELDS)

FLOW_CONFIGS: Dict[FlowType, FlowConfig] = {
    FlowType.RESIDENTIAL_RENT: FlowConfig(
        FlowType.RESIDENTIAL_RENT, "Residential Rent", "res_rent", "residential", "rent",
        _steps(
            "res_rent",
            (_BASIC, "Property Details", RESIDENTIAL_BASIC_FIELDS),
            _LOCATION,
            ("rental", "Rental Details", RESIDENTIAL_RENTAL_FIELDS),
            ("features", "Features & Amenities", RESIDENTIAL_FEATURE_FIELDS),
        ),
    ),
    FlowType.RESIDENTIAL_SALE: FlowConfig(
        FlowType.RESIDENTIAL_SALE, "Residential Sale", "res_sale", "residential", "sale",
        _steps(
            "res_sale",
            (_BASIC, "Property Details", RESIDENTIAL_BASIC_FIELDS),
            _LOCATION,
            ("sale_details", "Sale Details", SALE_DETAIL_FIELDS),
            ("features", "Features & Amenities", RESIDENTIAL_FEATURE_FIELDS),
        ),
    ),
    FlowType.RESIDENTIAL_PGHOSTEL: FlowConfig(
        FlowType.RESIDENTIAL_PGHOSTEL, "PG/Hostel", "res_pg", "residential", "pghostel",
        _steps(
            "res_pg",
            (_BASIC, "PG Details", PG_BASIC_FIELDS),
            _LOCATION,
            ("pg_details", "Room Details", PG_DETAIL_FIELDS),
            ("features", "Features & Amenities", RESIDENTIAL_FEATURE_FIELDS),
        ),
    ),
    FlowType.RESIDENTIAL_FLATMATES: FlowConfig(
        FlowType.RESIDENTIAL_FLATMATES, "Flatmates", "res_flat", "residential", "flatmates",
        _steps(
            "res_flat",
            (_BASIC, "Property Details", RESIDENTIAL_BASIC_FIELDS),
            _LOCATION,
            ("flatmate_details", "Flatmate Preferences", FLATMATE_DETAIL_FIELDS),
            ("features", "Features & Amenities", RESIDENTIAL_FEATURE_FIELDS),
        ),
    ),
    FlowType.COMMERCIAL_RENT: FlowConfig(
        FlowType.COMMERCIAL_RENT, "Commercial Rent", "com_rent", "commercial", "rent",
        _steps(
            "com_rent",
            (_BASIC, "Commercial Property Details", COMMERCIAL_BASIC_FIELDS),
            _LOCATION,
            ("rental", "Rental Details", COMMERCIAL_RENTAL_FIELDS),
            ("features", "Commercial Features", COMMERCIAL_FEATURE_FIELDS),
        ),
    ),
    FlowType.COMMERCIAL_SALE: FlowConfig(
        FlowType.COMMERCIAL_SALE, "Commercial Sale", "com_sale", "commercial", "sale",
        _steps(
            "com_sale",
            (_BASIC, "Commercial Property Details", COMMERCIAL_BASIC_FIELDS),
            _LOCATION,
            ("sale_details", "Sale Details", SALE_DETAIL_FIELDS),
            ("features", "Commercial Features", COMMERCIAL_FEATURE_FIELDS),
        ),
    ),
    FlowType.COMMERCIAL_COWORKING: FlowConfig(
        FlowType.COMMERCIAL_COWORKING, "Co-working Space", "com_cow", "commercial", "coworking",
        _steps(
            "com_cow",
            (_BASIC, "Space Details", COWORKING_BASIC_FIELDS),
            _LOCATION,
            ("coworking_details", "Co-working Details", COWORKING_DETAIL_FIELDS),
            ("features", "Commercial Features", COMMERCIAL_FEATURE_FIELDS),
        ),
    ),
    FlowType.LAND_SALE: FlowConfig(
        FlowType.LAND_SALE, "Land Sale", "land_sale", "land", "sale",
        _steps(
            "land_sale",
            (_BASIC, "Land/Plot Details", LAND_BASIC_FIELDS),
            ("location", "Location Details", tuple(
                replace(rule, label="Plot Address") if rule.name == "address" else rule
                for rule in LAND_LOCATION_FIELDS
            )),
            ("land_features", "Land Features", LAND_FEATURE_FIELDS),
        ),
    ),
}

# The wizard ends with a data-less review page for every flow.
REVIEW_STEP = "review"


def coerce_flow_type(flow_type) -> FlowType:
    """Accept a FlowType or its string value."""
    if isinstance(flow_type, FlowType):
        return flow_type
    try:
        return FlowType(str(flow_type).strip().lower())
    except ValueError:
        raise InvalidFlowError(f"Unknown flow type: {flow_type}")


def get_flow(flow_type) -> FlowConfig:
    """
    Get the flow configuration.

    Raises:
        InvalidFlowError: If the flow type is unknown
    """
    return FLOW_CONFIGS[coerce_flow_type(flow_type)]


def list_flows() -> List[FlowConfig]:
    return list(FLOW_CONFIGS.values())


def get_step_ids(flow_type) -> List[str]:
    return get_flow(flow_type).step_ids


def get_step_config(flow_type, step_id: str) -> Optional[StepConfig]:
    """Get a step of the flow, or None when the flow has no such step."""
    for step in get_flow(flow_type).steps:
        if step.step_id == step_id:
            return step
    return None


def require_step(flow_type, step_id: str) -> StepConfig:
    """
    Get a step of the flow.

    Raises:
        InvalidFlowError: If the step does not belong to the flow
    """
    step = get_step_config(flow_type, step_id)
    if step is None:
        flow = get_flow(flow_type)
        raise InvalidFlowError(
            f"Step '{step_id}' does not belong to flow '{flow.flow_type.value}'. "
            f"Valid steps: {', '.join(flow.step_ids)}"
        )
    return step


def get_required_fields(step: StepConfig) -> List[str]:
    return [rule.name for rule in step.fields if rule.required]


def step_suffix(flow_type, step_id: str) -> str:
    """Strip the flow prefix from a step id."""
    prefix = get_flow(flow_type).prefix + "_"
    return step_id[len(prefix):] if step_id.startswith(prefix) else step_id
