"""
Tests for the inbound event schema and management request schemas.
"""
import pytest
from pydantic import ValidationError

from monitorflow.schemas.event_request import EventRequest
from monitorflow.schemas.management import CategoryCreateRequest, WebhookCreateRequest, WebhookUpdateRequest
from monitorflow.utils.errors import format_validation_errors


class TestEventRequest:
    def test_minimal(self):
        request = EventRequest.model_validate({"category": "sale"})
        assert request.fields is None
        assert request.description is None

    def test_field_value_types(self):
        request = EventRequest.model_validate({
            "category": "sale",
            "fields": {"amount": 42, "ratio": 0.5, "plan": "pro", "trial": False},
        })
        assert request.fields == {"amount": 42, "ratio": 0.5, "plan": "pro", "trial": False}
        assert request.fields["trial"] is False
        assert isinstance(request.fields["amount"], int)

    def test_ten_fields_allowed(self):
        fields = {f"k{i}": i for i in range(10)}
        assert len(EventRequest.model_validate({"category": "sale", "fields": fields}).fields) == 10

    def test_eleven_fields_rejected(self):
        fields = {f"k{i}": i for i in range(11)}
        with pytest.raises(ValidationError) as exc_info:
            EventRequest.model_validate({"category": "sale", "fields": fields})
        assert "Maximum 10 fields allowed" in format_validation_errors(exc_info.value.errors())

    def test_nested_field_value_rejected(self):
        with pytest.raises(ValidationError):
            EventRequest.model_validate({"category": "sale", "fields": {"items": [1, 2]}})

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_float_rejected(self, value):
        with pytest.raises(ValidationError):
            EventRequest.model_validate({"category": "sale", "fields": {"x": value}})

    def test_null_field_value_rejected(self):
        with pytest.raises(ValidationError):
            EventRequest.model_validate({"category": "sale", "fields": {"amount": None}})

    def test_extra_key_rejected(self):
        with pytest.raises(ValidationError):
            EventRequest.model_validate({"category": "sale", "priority": "high"})

    def test_missing_category_rejected(self):
        with pytest.raises(ValidationError):
            EventRequest.model_validate({"fields": {"a": 1}})

    def test_invalid_category_characters(self):
        with pytest.raises(ValidationError) as exc_info:
            EventRequest.model_validate({"category": "new sale!"})
        assert "letters, numbers or hypens" in format_validation_errors(exc_info.value.errors())

    def test_empty_category(self):
        with pytest.raises(ValidationError) as exc_info:
            EventRequest.model_validate({"category": ""})
        assert "Category name is required." in format_validation_errors(exc_info.value.errors())

    def test_description_bounds(self):
        assert EventRequest.model_validate({"category": "a", "description": "x" * 1000})
        with pytest.raises(ValidationError):
            EventRequest.model_validate({"category": "a", "description": "x" * 1001})
        with pytest.raises(ValidationError):
            EventRequest.model_validate({"category": "a", "description": ""})


class TestFormatValidationErrors:
    def test_strips_value_error_prefix_and_body_loc(self):
        errors = [
            {"loc": ("body", "url"), "msg": "Value error, URL must use HTTPS for security"},
            {"loc": ("fields",), "msg": "Value error, Maximum 10 fields allowed"},
        ]
        assert format_validation_errors(errors) == (
            "url: URL must use HTTPS for security; fields: Maximum 10 fields allowed"
        )

    def test_no_location(self):
        assert format_validation_errors([{"loc": (), "msg": "Invalid"}]) == "Invalid"


class TestCategoryCreateRequest:
    def test_valid(self):
        request = CategoryCreateRequest(name="sale", color="#ff00AA", emoji="\U0001f4b0")
        assert request.color == "#ff00AA"

    def test_bad_color(self):
        with pytest.raises(ValidationError):
            CategoryCreateRequest(name="sale", color="red")


class TestWebhookCreateRequest:
    def _valid(self, **overrides):
        data = {
            "name": "Orders hook",
            "url": "https://hooks.example.com/orders",
            "event_categories": ["Sale", "sale", "bug"],
        }
        data.update(overrides)
        return data

    def test_categories_normalized_and_deduplicated(self):
        request = WebhookCreateRequest.model_validate(self._valid())
        assert request.event_categories == ["sale", "bug"]
        assert request.headers == {}

    def test_http_url_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            WebhookCreateRequest.model_validate(self._valid(url="http://hooks.example.com"))
        assert "HTTPS" in format_validation_errors(exc_info.value.errors())

    def test_name_characters(self):
        with pytest.raises(ValidationError):
            WebhookCreateRequest.model_validate(self._valid(name="bad/name"))

    def test_name_length(self):
        with pytest.raises(ValidationError):
            WebhookCreateRequest.model_validate(self._valid(name="x" * 51))

    def test_requires_category(self):
        with pytest.raises(ValidationError):
            WebhookCreateRequest.model_validate(self._valid(event_categories=[]))
        with pytest.raises(ValidationError):
            WebhookCreateRequest.model_validate(self._valid(event_categories=["  "]))

    def test_header_values_must_be_strings(self):
        with pytest.raises(ValidationError):
            WebhookCreateRequest.model_validate(self._valid(headers={"X-Count": 3}))

    def test_non_ascii_header_value_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            WebhookCreateRequest.model_validate(self._valid(headers={"X-Note": "caf\xe9 \u2603"}))
        assert "printable ASCII" in format_validation_errors(exc_info.value.errors())

    def test_invalid_header_name_rejected(self):
        with pytest.raises(ValidationError):
            WebhookCreateRequest.model_validate(self._valid(headers={"X Note": "ok"}))
        with pytest.raises(ValidationError):
            WebhookCreateRequest.model_validate(self._valid(headers={"X-\xc9tat": "ok"}))

    def test_printable_header_accepted(self):
        request = WebhookCreateRequest.model_validate(
            self._valid(headers={"Authorization": "Bearer abc-123 ~!"})
        )
        assert request.headers == {"Authorization": "Bearer abc-123 ~!"}

    def test_update_requires_valid_status(self):
        with pytest.raises(ValidationError):
            WebhookUpdateRequest.model_validate(self._valid(status="PAUSED"))
        request = WebhookUpdateRequest.model_validate(self._valid(status="INACTIVE"))
        assert request.status == "INACTIVE"
