"""Tests for the attribute filter builder."""
from app.services.filter_service import build_attribute_filters


def _sql(clauses) -> list[str]:
    return [str(c) for c in clauses]


class TestNoConstraint:
    def test_empty_params(self):
        assert build_attribute_filters({}) == []

    def test_unknown_keys_ignored(self):
        assert build_attribute_filters({"colour": "blue", "page": "2", "sort": "-price"}) == []

    def test_blank_values_ignored(self):
        assert build_attribute_filters({"city": "  ", "status": "", "propertyType": " , "}) == []


class TestNumericFilters:
    def test_price_range(self):
        sql = _sql(build_attribute_filters({"minPrice": "100000", "maxPrice": "300000"}))
        assert len(sql) == 2
        assert "properties.price >=" in sql[0]
        assert "properties.price <=" in sql[1]

    def test_bad_number_drops_only_that_filter(self):
        sql = _sql(build_attribute_filters({"minPrice": "cheap", "maxPrice": "300000"}))
        assert len(sql) == 1
        assert "properties.price <=" in sql[0]

    def test_non_finite_numbers_dropped(self):
        assert build_attribute_filters({"minPrice": "nan", "maxPrice": "inf"}) == []

    def test_bedrooms_range(self):
        sql = _sql(build_attribute_filters({"minBedrooms": 2, "maxBedrooms": 4}))
        assert len(sql) == 2

    def test_bedrooms_shorthand_wins(self):
        sql = _sql(build_attribute_filters({"bedrooms": "3", "minBedrooms": "1", "maxBedrooms": "2"}))
        assert sql == ["properties.bedrooms >= :bedrooms_1"]

    def test_bad_shorthand_falls_back_to_range(self):
        sql = _sql(build_attribute_filters({"bedrooms": "lots", "maxBedrooms": "2"}))
        assert sql == ["properties.bedrooms <= :bedrooms_1"]

    def test_bathrooms_at_least(self):
        sql = _sql(build_attribute_filters({"bathrooms": "2"}))
        assert sql == ["properties.bathrooms >= :bathrooms_1"]


class TestTextFilters:
    def test_property_type_list(self):
        clauses = build_attribute_filters({"propertyType": "house, apartment,"})
        assert len(clauses) == 1
        assert "IN" in str(clauses[0])

    def test_status_exact(self):
        assert _sql(build_attribute_filters({"status": "sold"})) == ["properties.status = :status_1"]

    def test_city_is_case_insensitive_substring(self):
        clauses = build_attribute_filters({"city": "lah"})
        assert len(clauses) == 1
        assert "lower(properties.city) LIKE lower(" in str(clauses[0])

    def test_like_wildcards_escaped(self):
        clause = build_attribute_filters({"state": "50%_off"})[0]
        params = clause.compile().params
        assert "%50\\%\\_off%" in params.values()
