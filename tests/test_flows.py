"""
Tests for the listing flow tables and step validation.
"""

import pytest

from marketplace.flows.definitions import (
    FLOOR,
    REVIEW_STEP,
    TOTAL_FLOORS,
    FlowType,
    coerce_flow_type,
    get_flow,
    get_required_fields,
    get_step_config,
    get_step_ids,
    list_flows,
    require_step,
    step_suffix,
)
from marketplace.flows.validation import (
    check_completion,
    completion_percentage,
    get_nested_value,
    is_empty,
    is_step_valid,
    validate_all_steps,
    validate_field,
    validate_step,
)
from marketplace.utils.exceptions import InvalidFlowError
from tests.conftest import land_steps, rental_steps


class TestFlowDefinitions:
    """Static flow and step tables."""

    def test_eight_flows(self):
        flows = list_flows()
        assert len(flows) == 8
        assert {flow.flow_type for flow in flows} == set(FlowType)

    def test_step_ids_carry_flow_prefix(self):
        for flow in list_flows():
            assert flow.step_ids, flow.flow_type
            assert len(set(flow.step_ids)) == len(flow.step_ids)
            for step_id in flow.step_ids:
                assert step_id.startswith(f"{flow.prefix}_")

    def test_residential_rent_steps_in_order(self):
        assert get_step_ids(FlowType.RESIDENTIAL_RENT) == [
            "res_rent_basic_details",
            "res_rent_location",
            "res_rent_rental",
            "res_rent_features",
        ]

    def test_land_sale_has_no_features_step(self):
        assert get_step_ids("land_sale") == [
            "land_sale_basic_details",
            "land_sale_location",
            "land_sale_land_features",
        ]

    def test_flow_metadata(self):
        flow = get_flow(FlowType.COMMERCIAL_COWORKING)
        assert flow.prefix == "com_cow"
        assert flow.category == "commercial"
        assert flow.listing_type == "coworking"

    def test_coerce_flow_type_accepts_strings(self):
        assert coerce_flow_type(" Residential_Sale ") == FlowType.RESIDENTIAL_SALE
        assert coerce_flow_type(FlowType.LAND_SALE) is FlowType.LAND_SALE

    def test_unknown_flow_type(self):
        with pytest.raises(InvalidFlowError, match="Unknown flow type"):
            get_flow("residential_lease")

    def test_require_step_rejects_foreign_step(self):
        with pytest.raises(InvalidFlowError) as exc_info:
            require_step(FlowType.RESIDENTIAL_RENT, "res_sale_sale_details")

        assert exc_info.value.error_code == "INVALID_FLOW"
        assert "res_rent_location" in exc_info.value.detail

    def test_review_step_has_no_configuration(self):
        assert get_step_config(FlowType.RESIDENTIAL_RENT, REVIEW_STEP) is None

    def test_step_suffix(self):
        assert step_suffix(FlowType.LAND_SALE, "land_sale_land_features") == "land_features"
        assert get_step_config(FlowType.COMMERCIAL_COWORKING, "com_cow_coworking_details").suffix == "coworking_details"

    def test_required_fields_skip_optional_ones(self):
        step = get_step_config(FlowType.RESIDENTIAL_RENT, "res_rent_location")
        assert get_required_fields(step) == ["address", "city", "state", "pinCode", "coordinates"]

    def test_flow_to_dict(self):
        data = get_flow(FlowType.RESIDENTIAL_RENT).to_dict()
        assert data["flow_type"] == "residential_rent"
        assert len(data["steps"]) == 4
        assert "required_fields" in data["steps"][0]


class TestFieldValidation:
    """Single field rules."""

    def test_empty_values(self):
        assert is_empty(None)
        assert is_empty("   ")
        assert is_empty([])
        assert is_empty({})
        assert not is_empty(0)
        assert not is_empty(False)

    def test_nested_value(self):
        data = {"coordinates": {"latitude": 12.5}}
        assert get_nested_value(data, "coordinates.latitude") == 12.5
        assert get_nested_value(data, "coordinates.longitude") is None
        assert get_nested_value(None, "city") is None

    def test_zero_is_a_value(self):
        assert validate_field(FLOOR, 0) is None

    def test_number_bounds(self):
        assert validate_field(TOTAL_FLOORS, 0) == "Total Floors in Building must be at least 1"
        assert validate_field(TOTAL_FLOORS, 101) == "Total Floors in Building must not exceed 100"
        assert validate_field(TOTAL_FLOORS, "12") is None

    def test_number_format(self):
        assert validate_field(FLOOR, "third") == "Floor format is invalid"

    def test_required_field_missing(self):
        assert validate_field(TOTAL_FLOORS, None) == "Total Floors in Building is required"


class TestStepValidation:
    """Whole step validation."""

    def test_complete_rental_steps_are_valid(self):
        results = validate_all_steps(FlowType.RESIDENTIAL_RENT, rental_steps())
        assert all(result.is_valid for result in results.values()), {
            step_id: result.errors for step_id, result in results.items()
        }

    def test_complete_land_steps_are_valid(self):
        results = validate_all_steps(FlowType.LAND_SALE, land_steps(title="Farm land near the ring road"))
        assert all(result.is_valid for result in results.values())

    def test_price_below_minimum(self):
        data = dict(rental_steps()["res_rent_rental"], rentAmount=500)
        result = validate_step(FlowType.RESIDENTIAL_RENT, "res_rent_rental", data)

        assert not result.is_valid
        assert result.errors == {"rentAmount": "Monthly Rent must be at least 1000"}

    def test_pin_code_rules(self):
        location = rental_steps()["res_rent_location"]

        short = validate_step(FlowType.RESIDENTIAL_RENT, "res_rent_location", dict(location, pinCode="5600"))
        assert short.errors["pinCode"] == "PIN Code must be at least 6 characters"

        letters = validate_step(FlowType.RESIDENTIAL_RENT, "res_rent_location", dict(location, pinCode="56000a"))
        assert letters.errors["pinCode"] == "PIN Code format is invalid"

    def test_coordinates_rules(self):
        location = rental_steps()["res_rent_location"]
        step_id = "res_rent_location"

        missing = validate_step(FlowType.RESIDENTIAL_RENT, step_id, dict(location, coordinates=None))
        assert missing.errors["coordinates"] == "Map Location is required"

        out_of_range = validate_step(
            FlowType.RESIDENTIAL_RENT, step_id, dict(location, coordinates={"latitude": 95, "longitude": 10})
        )
        assert out_of_range.errors["coordinates"] == "Invalid coordinates"

        unparseable = validate_step(
            FlowType.RESIDENTIAL_RENT, step_id, dict(location, coordinates={"latitude": "north", "longitude": 10})
        )
        assert unparseable.errors["coordinates"] == "Please select location on map"

    def test_checkbox_rules(self):
        rental = rental_steps()["res_rent_rental"]

        empty = validate_step(FlowType.RESIDENTIAL_RENT, "res_rent_rental", dict(rental, preferredTenants=[]))
        assert empty.errors["preferredTenants"] == "Preferred Tenants is required"

        unknown = validate_step(FlowType.RESIDENTIAL_RENT, "res_rent_rental", dict(rental, preferredTenants=["pets"]))
        assert unknown.errors["preferredTenants"] == "Preferred Tenants must be one of the allowed options"

    def test_boolean_and_date_rules(self):
        features = rental_steps()["res_rent_features"]
        result = validate_step(FlowType.RESIDENTIAL_RENT, "res_rent_features", dict(features, petFriendly="yes"))
        assert result.errors == {"petFriendly": "Pet Friendly format is invalid"}

        rental = rental_steps()["res_rent_rental"]
        bad_date = validate_step(FlowType.RESIDENTIAL_RENT, "res_rent_rental", dict(rental, availableFrom="soon"))
        assert bad_date.errors == {"availableFrom": "Available From format is invalid"}

        with_time = validate_step(
            FlowType.RESIDENTIAL_RENT, "res_rent_rental", dict(rental, availableFrom="2026-12-01T10:00:00")
        )
        assert with_time.is_valid

    def test_select_rule(self):
        basic = rental_steps()["res_rent_basic_details"]
        result = validate_step(FlowType.RESIDENTIAL_RENT, "res_rent_basic_details", dict(basic, facing="up"))
        assert result.errors == {"facing": "Facing Direction must be one of the allowed options"}

    @pytest.mark.parametrize("flow_type,step_id", [
        (FlowType.RESIDENTIAL_RENT, "res_rent_basic_details"),
        (FlowType.LAND_SALE, "land_sale_basic_details"),
    ])
    def test_title_is_optional(self, flow_type, step_id):
        steps = rental_steps(title=None) if flow_type == FlowType.RESIDENTIAL_RENT else land_steps()
        assert "title" not in steps[step_id]

        result = validate_step(flow_type, step_id, steps[step_id])
        assert result.is_valid, result.errors
        assert "title" not in get_required_fields(get_step_config(flow_type, step_id))

    def test_untitled_listing_is_fully_valid(self):
        results = validate_all_steps(FlowType.RESIDENTIAL_RENT, rental_steps(title=None))
        assert all(result.is_valid for result in results.values())

    @pytest.mark.parametrize("raw", ["nan", "inf", "-inf", float("nan"), float("inf")])
    def test_non_finite_price_is_rejected(self, raw):
        rental = dict(rental_steps()["res_rent_rental"], rentAmount=raw, securityDeposit=raw)
        result = validate_step(FlowType.RESIDENTIAL_RENT, "res_rent_rental", rental)

        assert not result.is_valid
        assert result.errors == {
            "rentAmount": "Monthly Rent format is invalid",
            "securityDeposit": "Security Deposit format is invalid",
        }

    @pytest.mark.parametrize("raw", ["nan", "inf", float("nan"), float("-inf")])
    def test_non_finite_coordinates_are_rejected(self, raw):
        location = dict(rental_steps()["res_rent_location"], coordinates={"latitude": raw, "longitude": 77.5})
        result = validate_step(FlowType.RESIDENTIAL_RENT, "res_rent_location", location)

        assert result.errors == {"coordinates": "Please select location on map"}

    def test_city_and_state_fit_their_columns(self):
        location = dict(rental_steps()["res_rent_location"], city="C" * 101, state="S" * 101)
        result = validate_step(FlowType.RESIDENTIAL_RENT, "res_rent_location", location)

        assert result.errors == {
            "city": "City must not exceed 100 characters",
            "state": "State must not exceed 100 characters",
        }

    def test_optional_fields_may_be_blank(self):
        location = dict(rental_steps()["res_rent_location"], landmark="", flatPlotNo=None)
        assert is_step_valid(FlowType.RESIDENTIAL_RENT, "res_rent_location", location)

    def test_completion_percentage_counts_required_fields(self):
        data = {"address": "42 Test Street, Test Layout", "city": "Bangalore"}
        assert completion_percentage(FlowType.RESIDENTIAL_RENT, "res_rent_location", data) == 40

        result = validate_step(FlowType.RESIDENTIAL_RENT, "res_rent_location", data)
        assert result.completion_percentage == 40
        assert set(result.errors) == {"state", "pinCode", "coordinates"}

    def test_review_step_is_always_valid(self):
        result = validate_step(FlowType.RESIDENTIAL_RENT, REVIEW_STEP, None)
        assert result.is_valid
        assert result.completion_percentage == 100


class TestCompletion:
    """Publish readiness."""

    def test_all_steps_without_images(self):
        status = check_completion(FlowType.RESIDENTIAL_RENT, {"steps": rental_steps()}, image_count=0)

        assert not status.is_complete
        assert status.missing_steps == []
        assert not status.has_images
        assert status.percentage == 80

    def test_all_steps_with_images(self):
        status = check_completion(FlowType.RESIDENTIAL_RENT, {"steps": rental_steps()}, image_count=1)

        assert status.is_complete
        assert status.percentage == 100
        assert len(status.completed_steps) == 4

    def test_empty_step_counts_as_missing(self):
        steps = rental_steps()
        steps["res_rent_features"] = {}
        status = check_completion(FlowType.RESIDENTIAL_RENT, {"steps": steps}, image_count=2)

        assert not status.is_complete
        assert status.missing_steps == ["res_rent_features"]

    def test_nothing_filled(self):
        status = check_completion(FlowType.LAND_SALE, None, image_count=0)
        assert status.percentage == 0
        assert status.missing_steps == get_step_ids(FlowType.LAND_SALE)
