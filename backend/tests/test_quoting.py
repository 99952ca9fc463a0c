"""
Pricing engine tests: brackets, minimum fares, multipliers, discounts and cancellation fees.
"""
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from backend.errors import InvalidCategory, InvalidInput
from backend.models import BookingType, Package, Passengers, TripType, VehicleCategory
from backend.pricing.catalog import DEFAULT_CATEGORIES, PricingCatalog
from backend.pricing.quoting import (
    PricingEngine,
    calculate_fare,
    calculate_package_price,
    cancellation_fee,
    is_night_time,
    is_peak_time,
    select_bracket,
)


@pytest.fixture
def sedan(catalog):
    return catalog.get("Sedan")


class TestBrackets:
    """Distance bracket selection."""

    @pytest.mark.parametrize("distance,label", [
        (0, "0-100km"),
        (100, "0-100km"),
        (100.5, "100-300km"),
        (300, "100-300km"),
        (301, "300km+"),
        (2500, "300km+"),
    ])
    def test_boundaries(self, sedan, distance, label):
        assert select_bracket(sedan, distance).label == label

    def test_catalog_lookup_is_case_insensitive(self, catalog):
        assert catalog.get("tempo traveller").name == "Tempo Traveller"
        assert "suv" in catalog
        assert "Helicopter" not in catalog

    def test_unknown_category(self, catalog):
        with pytest.raises(InvalidCategory):
            catalog.get("Helicopter")

    def test_inactive_category_is_rejected(self):
        doc = dict(DEFAULT_CATEGORIES[0], isActive=False)
        catalog = PricingCatalog.from_documents([doc])
        with pytest.raises(InvalidCategory):
            catalog.get("Mini")


class TestCategoryValidation:
    """Profiles are rejected at load time when inconsistent."""

    def _profile(self, **pricing):
        base = {
            "basePrice": 100,
            "perKm": 10,
            "outstationRates": {
                "0-100km": {"perKm": 10, "driverAllowance": 0, "minimumFare": 0},
                "100km+": {"perKm": 9, "driverAllowance": 0, "minimumFare": 0},
            },
        }
        base.update(pricing)
        return {"name": "Test", "seatingCapacity": 4, "pricing": base}

    def test_valid_profile(self):
        profile = VehicleCategory.model_validate(self._profile())
        assert [b.label for b in profile.outstationRates] == ["0-100km", "100km+"]

    def test_gap_between_brackets(self):
        doc = self._profile(outstationRates={
            "0-100km": {"perKm": 10},
            "150-300km": {"perKm": 9},
            "300km+": {"perKm": 8},
        })
        with pytest.raises(PydanticValidationError):
            VehicleCategory.model_validate(doc)

    def test_last_bracket_must_be_open(self):
        doc = self._profile(outstationRates={"0-100km": {"perKm": 10}, "100-300km": {"perKm": 9}})
        with pytest.raises(PydanticValidationError):
            VehicleCategory.model_validate(doc)

    def test_multiplier_below_one(self):
        with pytest.raises(PydanticValidationError):
            VehicleCategory.model_validate(self._profile(nightChargeMultiplier=0.9))

    def test_cancellation_fees_must_not_decrease(self):
        doc = self._profile(cancellationCharges={"before_1_hour": 100, "before_30_min": 50, "after_arrival": 100})
        with pytest.raises(PydanticValidationError):
            VehicleCategory.model_validate(doc)


class TestCalculateFare:
    """Fare arithmetic."""

    def test_round_trip_sedan_floored_then_discounted(self, sedan):
        # 150km * 12 + 600 = 2400, floored to 3000, less 10%
        fare = calculate_fare(sedan, 150, trip_type=TripType.ROUND_TRIP)

        assert fare.bracket == "100-300km"
        assert fare.distanceCharge == 1800
        assert fare.driverAllowance == 600
        assert fare.minimumFareAdjustment == 600
        assert fare.subtotal == 3000
        assert fare.discount == 300
        assert fare.totalAmount == 2700

    def test_one_way_above_minimum(self, sedan):
        # 280 * 12 + 600 = 3960
        fare = calculate_fare(sedan, 280)
        assert fare.minimumFareAdjustment == 0
        assert fare.totalAmount == 3960

    def test_city_ride_uses_flat_rates(self, sedan):
        fare = calculate_fare(sedan, 10, duration_hours=1, outstation=False)
        assert fare.bracket is None
        assert fare.totalAmount == 500 + 150 + 200

    def test_city_ride_floor_is_base_price(self, sedan):
        fare = calculate_fare(sedan, 0, outstation=False)
        assert fare.totalAmount == 500

    def test_night_wins_over_peak(self, sedan):
        # 400km: 4400 + 1000 = 5400, floored to 6000
        fare = calculate_fare(sedan, 400, is_night_trip=True, is_peak_hour=True)
        assert fare.multipliers == {"night": 1.25}
        assert fare.totalAmount == 7500

    def test_peak_hour(self, sedan):
        fare = calculate_fare(sedan, 400, is_peak_hour=True)
        assert fare.multipliers == {"peak": 1.15}
        assert fare.totalAmount == 6900

    def test_multi_city_stacks_after_night(self, sedan):
        fare = calculate_fare(sedan, 400, trip_type=TripType.MULTI_CITY, is_night_trip=True)
        assert list(fare.multipliers) == ["night", "multiCity"]
        assert fare.totalAmount == 9000

    def test_round_half_up(self):
        profile = VehicleCategory(name="Test", seatingCapacity=4, basePrice=100, perKm=1)
        fare = calculate_fare(profile, 0.5)
        assert fare.totalAmount == 101

    def test_negative_distance(self, sedan):
        with pytest.raises(InvalidInput):
            calculate_fare(sedan, -1)

    def test_negative_duration(self, sedan):
        with pytest.raises(InvalidInput):
            calculate_fare(sedan, 10, duration_hours=-2, outstation=False)

    def test_too_many_passengers(self, sedan):
        with pytest.raises(InvalidInput):
            calculate_fare(sedan, 100, passengers=Passengers(adults=4, children=1))

    def test_negative_passenger_counts_rejected(self):
        with pytest.raises(PydanticValidationError):
            Passengers(adults=6, children=-2)
        with pytest.raises(PydanticValidationError):
            Passengers(adults=1, infants=-1)

    def test_missing_profile(self):
        with pytest.raises(InvalidCategory):
            calculate_fare(None, 100)


class TestTimeOfDay:
    def test_night_window(self):
        assert is_night_time(datetime(2030, 1, 2, 22, 0))
        assert is_night_time(datetime(2030, 1, 2, 5, 59))
        assert not is_night_time(datetime(2030, 1, 2, 6, 0))
        assert not is_night_time(datetime(2030, 1, 2, 21, 59))

    def test_peak_is_weekday_only(self):
        assert is_peak_time(datetime(2030, 1, 2, 9, 0))
        assert is_peak_time(datetime(2030, 1, 2, 19, 30))
        assert not is_peak_time(datetime(2030, 1, 2, 12, 0))
        assert not is_peak_time(datetime(2030, 1, 5, 9, 0))


class TestPricingEngine:
    def test_quote_derives_flags_from_pickup(self, catalog):
        engine = PricingEngine(catalog)
        night = engine.quote("Sedan", 150, pickup_at=datetime(2030, 1, 2, 23, 0, tzinfo=timezone.utc))
        peak = engine.quote("Sedan", 150, pickup_at=datetime(2030, 1, 2, 9, 0, tzinfo=timezone.utc))
        weekend = engine.quote("Sedan", 150, pickup_at=datetime(2030, 1, 5, 9, 0, tzinfo=timezone.utc))

        assert night.totalAmount == 3750
        assert peak.totalAmount == 3450
        assert weekend.totalAmount == 3000

    def test_explicit_flag_overrides_pickup(self, catalog):
        engine = PricingEngine(catalog)
        fare = engine.quote("Sedan", 150, pickup_at=datetime(2030, 1, 2, 23, 0), is_night_trip=False)
        assert fare.multipliers == {}

    def test_local_trip_is_not_bracketed(self, catalog):
        fare = PricingEngine(catalog).quote("Mini", 20, duration_hours=2, booking_type=BookingType.LOCAL_TRIP)
        assert fare.bracket is None
        assert fare.totalAmount == 300 + 240 + 300

    def test_unknown_category(self, catalog):
        with pytest.raises(InvalidCategory):
            PricingEngine(catalog).quote("Rickshaw", 10)


class TestCancellationFee:
    @pytest.mark.parametrize("minutes,tier,fee", [
        (180, "before_1_hour", 0),
        (60, "before_1_hour", 0),
        (45, "before_30_min", 75),
        (30, "before_30_min", 75),
        (10, "after_arrival", 150),
        (-15, "after_arrival", 150),
    ])
    def test_sedan_schedule(self, sedan, minutes, tier, fee):
        result = cancellation_fee(sedan, minutes)
        assert result.tier == tier
        assert result.fee == fee

    def test_fee_never_decreases_as_pickup_approaches(self, catalog):
        for profile in catalog:
            fees = [cancellation_fee(profile, m).fee for m in range(240, -60, -5)]
            assert fees == sorted(fees)


class TestPackagePricing:
    @pytest.fixture
    def tour(self):
        return Package.model_validate({
            "name": "Golden Triangle Tour",
            "duration": {"days": 3, "nights": 2},
            "pricing": {
                "pricePerPerson": 15000,
                "childPrice": 7500,
                "seasonalPricing": [{
                    "season": "Winter Peak",
                    "startDate": "2030-12-15T00:00:00+00:00",
                    "endDate": "2031-01-15T00:00:00+00:00",
                    "multiplier": 1.2,
                }],
                "groupDiscounts": [{"minPeople": 4, "maxPeople": 6, "discountPercentage": 5}],
            },
            "vehicleOptions": [{"vehicleType": "SUV", "capacity": 7, "additionalCost": 3000}],
        })

    def test_per_person_with_children(self, tour):
        price = calculate_package_price(tour, adults=2, children=1, travel_date=datetime(2030, 3, 1))
        assert price.totalAmount == 37500

    def test_seasonal_multiplier_and_vehicle_option(self, tour):
        price = calculate_package_price(
            tour, adults=2, children=1, travel_date=datetime(2030, 12, 24), vehicle_type="suv",
        )
        assert price.multipliers == {"seasonal": 1.2}
        assert price.extraCharges == 3000
        assert price.totalAmount == 45000 + 3000

    def test_group_discount(self, tour):
        price = calculate_package_price(tour, adults=4, travel_date=datetime(2030, 3, 1))
        assert price.discount == 3000
        assert price.totalAmount == 57000
