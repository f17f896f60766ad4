"""
Unit tests for the search query compiler.
"""

from __future__ import annotations

import pytest

from carmarket.errors import ValidationError
from carmarket.search.compiler import compile_query
from carmarket.search.filters import (
    AnyOf,
    Contains,
    ContainsAll,
    ContainsAny,
    Equals,
    GeoRadius,
    OneOf,
    Range,
    and_,
    fields_of,
    find,
)


@pytest.mark.unit
def test_price_range_and_vehicle_type() -> None:
    """Test that a price range and a single vehicle type compile to range + equality."""
    compiled = compile_query({"priceMin": 500000, "priceMax": 1000000, "vehicleType": "Car"})

    assert find(compiled.filter, "price") == [Range("price", gte=500000.0, lte=1000000.0)]
    assert find(compiled.filter, "vehicle_type") == [Equals("vehicle_type", "Car")]
    assert compiled.geo is None


@pytest.mark.unit
def test_single_character_search_is_rejected() -> None:
    """Test that free text shorter than two characters raises a validation error."""
    with pytest.raises(ValidationError) as exc_info:
        compile_query({"search": "a"})

    assert exc_info.value.field == "search"


@pytest.mark.unit
@pytest.mark.parametrize("name", ["search", "keyword", "q"])
def test_free_text_ors_across_text_fields(name: str) -> None:
    """Test that each free-text alias produces an OR of substring matches."""
    compiled = compile_query({name: "  patrol  "})

    (clause,) = compiled.filter.clauses
    assert isinstance(clause, AnyOf)
    assert Contains("make", "patrol") in clause.clauses
    assert Contains("location", "patrol") in clause.clauses
    assert len(clause.clauses) == 7


@pytest.mark.unit
def test_free_text_supersedes_field_text_filters() -> None:
    """Test that make/model text filters are ignored when free text is given."""
    compiled = compile_query({"q": "gxr", "make": "Toyota"})

    assert find(compiled.filter, "make") == [Contains("make", "gxr")]


@pytest.mark.unit
def test_field_text_filters_without_free_text() -> None:
    """Test that text filters become case-insensitive substring matches; blanks are ignored."""
    compiled = compile_query({"make": "Toyota", "city": "  ", "model": "Land"})

    assert compiled.filter.clauses == (Contains("make", "Toyota"), Contains("model", "Land"))


@pytest.mark.unit
def test_enum_values_parsed_from_every_list_shape() -> None:
    """Test that enum values accept comma lists, JSON arrays and repeated keys."""
    from_csv = compile_query({"fuelType": "Petrol,Hybrid"})
    from_json = compile_query({"fuelType": '["Petrol", "Hybrid"]'})
    from_list = compile_query({"fuelType": ["Petrol", "Hybrid"]})

    expected = [OneOf("fuel_type", ("Petrol", "Hybrid"))]
    assert find(from_csv.filter, "fuel_type") == expected
    assert find(from_json.filter, "fuel_type") == expected
    assert find(from_list.filter, "fuel_type") == expected


@pytest.mark.unit
def test_invalid_enum_value_names_field_and_allowed_set() -> None:
    """Test that an unknown enum value is rejected with the allowed values."""
    with pytest.raises(ValidationError) as exc_info:
        compile_query({"transmission": "Manual,CVT"})

    error = exc_info.value
    assert error.field == "transmission"
    assert error.allowed == ["Manual", "Automatic"]
    assert "CVT" in error.message
    assert error.to_dict()["allowed"] == ["Manual", "Automatic"]


@pytest.mark.unit
def test_features_contain_all_and_colors_contain_any() -> None:
    """Test that features require every value while colors match any."""
    compiled = compile_query({"features": "Sunroof,Leather", "colorExterior": "White,Black"})

    assert find(compiled.filter, "features") == [ContainsAll("features", ("Sunroof", "Leather"))]
    assert find(compiled.filter, "color_exterior") == [
        ContainsAny("color_exterior", ("White", "Black"))
    ]


@pytest.mark.unit
def test_one_sided_ranges_and_short_aliases() -> None:
    """Test that one-sided bounds and the hp/doors aliases compile."""
    compiled = compile_query({"yearMin": "2018", "hpMax": "400", "doorsMin": "2"})

    assert find(compiled.filter, "year") == [Range("year", gte=2018.0)]
    assert find(compiled.filter, "horsepower") == [Range("horsepower", lte=400.0)]
    assert find(compiled.filter, "car_doors") == [Range("car_doors", gte=2.0)]


@pytest.mark.unit
def test_non_numeric_bound_is_rejected() -> None:
    """Test that a non-numeric range bound names the offending parameter."""
    with pytest.raises(ValidationError) as exc_info:
        compile_query({"mileageMax": "lots"})

    assert exc_info.value.field == "mileageMax"


@pytest.mark.unit
def test_inverted_range_is_rejected() -> None:
    """Test that min greater than max is a validation error."""
    with pytest.raises(ValidationError):
        compile_query({"priceMin": "900", "priceMax": "100"})


@pytest.mark.unit
def test_geo_radius_is_separate_from_filter() -> None:
    """Test that radius (km) + coordinates become a GeoRadius in meters."""
    compiled = compile_query({"radius": "25", "userLat": "25.2", "userLng": "55.27"})

    assert compiled.geo == GeoRadius(latitude=25.2, longitude=55.27, radius_meters=25000.0)
    assert compiled.filter.clauses == ()


@pytest.mark.unit
@pytest.mark.parametrize(
    "params, field",
    [
        ({"radius": "10", "userLat": "25.2"}, "userLng"),
        ({"radius": "10", "userLat": "91", "userLng": "55"}, "userLat"),
        ({"radius": "10", "userLat": "25", "userLng": "-181"}, "userLng"),
        ({"radius": "0", "userLat": "25", "userLng": "55"}, "radius"),
    ],
)
def test_invalid_geo_parameters(params: dict[str, str], field: str) -> None:
    """Test that incomplete or out-of-range geo parameters are rejected."""
    with pytest.raises(ValidationError) as exc_info:
        compile_query(params)

    assert exc_info.value.field == field


@pytest.mark.unit
def test_featured_flag_and_unknown_params() -> None:
    """Test that featured=true adds equality and unknown params are ignored."""
    compiled = compile_query({"featured": "true", "favouriteColour": "teal"})

    assert compiled.filter.clauses == (Equals("featured", True),)


@pytest.mark.unit
def test_featured_false_adds_nothing() -> None:
    compiled = compile_query({"featured": "false"})

    assert compiled.filter.clauses == ()


@pytest.mark.unit
def test_compiled_filter_can_be_anded_with_other_filters() -> None:
    """Test that the compiled filter composes with another predicate."""
    compiled = compile_query({"make": "Nissan"})
    combined = and_(compiled.filter, Equals("status", "active"))

    assert fields_of(combined) == {"make", "status"}
    assert len(combined.clauses) == 2


@pytest.mark.unit
def test_non_mapping_params_are_rejected() -> None:
    with pytest.raises(ValidationError):
        compile_query(None)  # type: ignore[arg-type]


@pytest.mark.unit
@pytest.mark.parametrize("name", ["search", "keyword", "q"])
def test_empty_repeated_search_key_is_ignored(name: str) -> None:
    """Test that an empty list for a free-text key compiles like the key was absent."""
    compiled = compile_query({name: [], "make": "Toyota"})

    assert find(compiled.filter, "make") == [Contains("make", "Toyota")]
    assert find(compiled.filter, "title") == []


@pytest.mark.unit
def test_whitespace_search_term_is_still_rejected() -> None:
    with pytest.raises(ValidationError) as exc_info:
        compile_query({"q": "   "})

    assert exc_info.value.field == "q"
