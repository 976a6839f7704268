"""
Unit tests for request validators.
"""
from neuraslide.validators.admin import validate_bulk_operation, validate_settings_update
from neuraslide.validators.ai import validate_generate, validate_training_data
from neuraslide.validators.auth import WEAK_PASSWORD, validate_change_password, validate_signup
from neuraslide.validators.automation import validate_create_automation, validate_update_automation
from neuraslide.validators.base import BODY_NOT_OBJECT, ValidationResult
from neuraslide.validators.conversation import validate_add_tags, validate_update_status
from neuraslide.validators.instagram import validate_send_dm_with_link
from neuraslide.validators.product import validate_bulk_import, validate_create_product, validate_search


class TestValidationResult:

    def test_empty_result_is_valid(self):
        result = ValidationResult()
        assert result.is_valid
        assert result.to_dict() == {"isValid": True, "errors": []}

    def test_add_ignores_none(self):
        result = ValidationResult()
        result.add(None)
        result.add("Name is required")
        assert result.errors == ["Name is required"]
        assert not result.is_valid

    def test_non_object_body(self):
        assert validate_signup(None).errors == [BODY_NOT_OBJECT]
        assert validate_signup(["a"]).errors == [BODY_NOT_OBJECT]


class TestSignupValidation:

    def test_valid_payload(self):
        assert validate_signup({"email": "a@b.com", "password": "Weak1", "name": "A"}).is_valid

    def test_each_missing_field_reports_once(self):
        result = validate_signup({})
        assert result.errors == ["Email is required", "Password is required", "Name is required"]

    def test_blank_string_counts_as_missing(self):
        result = validate_signup({"email": "   ", "password": "Weak1", "name": "A"})
        assert result.errors == ["Email is required"]

    def test_only_first_failing_rule_per_field(self):
        result = validate_signup({"email": "not-an-email", "password": "abc", "name": "A"})
        assert result.errors == ["Please provide a valid email address", WEAK_PASSWORD]

    def test_password_needs_mixed_case_and_digit(self):
        for password in ("weak1", "WEAK1", "Weakk", "W1a"):
            result = validate_signup({"email": "a@b.com", "password": password, "name": "A"})
            assert result.errors == [WEAK_PASSWORD], password

    def test_change_password_must_differ(self):
        result = validate_change_password({"currentPassword": "Same1", "newPassword": "Same1"})
        assert result.errors == ["New password must be different from current password"]


class TestAutomationValidation:

    def test_string_shorthand_accepted(self):
        payload = {"name": "Greeting", "trigger": "hello", "response": "Hi there!"}
        assert validate_create_automation(payload).is_valid

    def test_structured_trigger(self):
        payload = {
            "name": "Pricing",
            "trigger": {"type": "keyword", "keywords": ["price", "cost"], "matchType": "contains"},
            "response": {"type": "template", "template": "Prices start at {price}", "variables": {"price": "$10"}},
        }
        assert validate_create_automation(payload).is_valid

    def test_unknown_trigger_type(self):
        payload = {"name": "Bad", "trigger": {"type": "weather"}, "response": "x"}
        result = validate_create_automation(payload)
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Trigger type must be one of")

    def test_missing_fields_accumulate(self):
        result = validate_create_automation({})
        assert result.errors == ["Automation name is required", "Trigger is required", "Response is required"]

    def test_update_needs_a_field(self):
        result = validate_update_automation({"unknown": 1})
        assert result.errors == ["At least one field must be provided for update"]

    def test_status_case_insensitive(self):
        assert validate_update_automation({"status": "active"}).is_valid

    def test_time_trigger_timezone(self):
        trigger = {"type": "time", "timeRange": {"start": "09:00", "end": "17:00"}}
        assert validate_create_automation({"name": "Hours", "trigger": {**trigger, "timezone": "Europe/Berlin"}, "response": "x"}).is_valid
        for zone in ("", "../etc/passwd", "/abs", "Mars/Olympus", 5):
            result = validate_create_automation({"name": "Hours", "trigger": {**trigger, "timezone": zone}, "response": "x"})
            assert result.errors == ["Trigger timezone must be a valid IANA zone"]

    def test_message_count_needs_time_window(self):
        payload = {"name": "Busy", "trigger": {"type": "message_count", "count": 2}, "response": "x"}
        assert validate_create_automation(payload).errors == ["Trigger time window is required"]


class TestConversationValidation:

    def test_status_required(self):
        assert validate_update_status({}).errors == ["Status is required"]

    def test_status_enum(self):
        assert validate_update_status({"status": "resolved"}).is_valid
        assert not validate_update_status({"status": "DONE"}).is_valid

    def test_tags_need_at_least_one(self):
        assert validate_add_tags({"tags": []}).errors == ["Tags must contain at least 1 tag"]


class TestProductValidation:

    def test_valid_product(self, sample_product):
        assert validate_create_product(sample_product).is_valid

    def test_negative_price_and_bad_currency(self, sample_product):
        result = validate_create_product({**sample_product, "price": -1, "currency": "dollars"})
        assert result.errors == ["Product price must be at least 0", "Currency must be a 3-letter code"]

    def test_search_query_length(self):
        assert validate_search({"query": "a"}).errors == ["Search query must be between 2 and 200 characters"]

    def test_search_price_range(self):
        result = validate_search({"query": "shoe", "filters": {"price_min": 50, "price_max": 10}})
        assert result.errors == ["Minimum price cannot exceed maximum price"]

    def test_bulk_import_limit(self):
        result = validate_bulk_import({"products": [{}] * 3}, max_items=2)
        assert result.errors == ["Cannot import more than 2 products at once"]


class TestOtherValidators:

    def test_generate_limits(self):
        result = validate_generate({"message": "hi", "temperature": 3, "maxTokens": 0})
        assert result.errors == [
            "Temperature must be between 0 and 2",
            "Max tokens must be between 1 and 4000",
        ]

    def test_training_data_required_fields(self):
        result = validate_training_data({})
        assert result.errors == ["Input is required", "Expected output is required", "Category is required"]

    def test_bulk_operation(self):
        result = validate_bulk_operation({"operation": "explode", "targetIds": []})
        assert len(result.errors) == 2

    def test_settings_entries(self):
        result = validate_settings_update({"settings": [{"key": "maintenance_mode"}]})
        assert result.errors == ["Setting 1 value is required"]

    def test_dm_with_link_requires_link(self):
        payload = {"accountId": "a", "recipientId": "r", "message": "Hello"}
        assert validate_send_dm_with_link(payload).errors == ["Link is required"]
        assert validate_send_dm_with_link({**payload, "link": "https://shop.example.com"}).is_valid
