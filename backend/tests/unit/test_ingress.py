"""Unit tests for ingress alias resolution and value coercion"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from kycdesk.domain.attachments.attachment_ref import AttachmentSlot
from kycdesk.domain.submissions.ingress import (
    collect_form_fields,
    normalize_fields,
    parse_bool,
    parse_date,
    parse_datetime,
    parse_decimal,
    resolve_slot,
    resolve_uploads,
)


class TestNormalizeFields:
    """Test the alias table is applied once, canonical names first"""

    def test_legacy_names_map_to_canonical(self):
        fields = normalize_fields({
            "firstName": "Asha",
            "aadharNumber": "1234 5678 9012",
            "pincode": "411001",
            "agreeTerms": "true",
            "agreeMarketing": "false",
            "dateOfBirth": "2000-03-01",
        })

        assert fields == {
            "first_name": "Asha",
            "national_id": "1234 5678 9012",
            "postal_code": "411001",
            "terms_accepted": "true",
            "marketing_opt_in": "false",
            "date_of_birth": "2000-03-01",
        }

    def test_canonical_name_wins_over_alias(self):
        fields = normalize_fields({"pincode": "560001", "postal_code": "411001"})
        assert fields["postal_code"] == "411001"

    def test_alias_order_decides_between_aliases(self):
        fields = normalize_fields({"agreeTerms": "false", "termsAccepted": "true"})
        assert fields["terms_accepted"] == "true"

    def test_multi_valued_collapses_to_first_non_blank(self):
        fields = normalize_fields({"courseName": ["", "  ", " Options 101 "]})
        assert fields["course_name"] == "Options 101"

    def test_blank_values_and_unknown_names_dropped(self):
        fields = normalize_fields({"first_name": "   ", "favouriteColour": "blue"})
        assert fields == {}

    def test_blank_canonical_falls_through_to_alias(self):
        fields = normalize_fields({"email": "", "emailAddress": "asha@gmail.com"})
        assert fields["email"] == "asha@gmail.com"

    def test_collect_form_fields_groups_repeats(self):
        grouped = collect_form_fields([("courseName", "A"), ("courseName", "B"), ("city", "Pune")])
        assert grouped == {"courseName": ["A", "B"], "city": ["Pune"]}


class TestSlotResolution:

    @pytest.mark.parametrize("name", ["primary_id_document", "aadharFile", "idProof", "aadhar", "pan", "AADHAR"])
    def test_primary_aliases(self, name):
        assert resolve_slot(name) == AttachmentSlot.PRIMARY_ID_DOCUMENT

    @pytest.mark.parametrize("name", ["signature_or_second_document", "signatureFile", "addressProof", "signature"])
    def test_second_aliases(self, name):
        assert resolve_slot(name) == AttachmentSlot.SIGNATURE_OR_SECOND_DOCUMENT

    def test_unknown_slot(self):
        assert resolve_slot("selfie") is None
        assert resolve_slot("") is None

    def test_resolve_uploads_first_per_slot(self):
        uploads = resolve_uploads({
            "aadharFile": ["first", "second"],
            "signature": "sig",
            "selfie": "ignored",
        })
        assert uploads == {
            AttachmentSlot.PRIMARY_ID_DOCUMENT: "first",
            AttachmentSlot.SIGNATURE_OR_SECOND_DOCUMENT: "sig",
        }


class TestCoercion:

    @pytest.mark.parametrize("value", ["true", "TRUE", "1", "yes", "on", True])
    def test_true_tokens(self, value):
        assert parse_bool(value) is True

    @pytest.mark.parametrize("value", ["false", "0", "no", "off", "", False])
    def test_false_tokens(self, value):
        assert parse_bool(value) is False

    def test_unknown_bool_token(self):
        assert parse_bool("maybe") is None

    def test_decimal_with_thousands_separators(self):
        assert parse_decimal("1,50,000.50") == Decimal("150000.50")
        assert parse_decimal(25000) == Decimal("25000")

    @pytest.mark.parametrize("value", ["abc", "", "NaN", "Infinity"])
    def test_decimal_rejects(self, value):
        with pytest.raises(ValueError):
            parse_decimal(value)

    def test_parse_date_variants(self):
        assert parse_date("2000-03-01") == date(2000, 3, 1)
        assert parse_date("2000-03-01T00:00:00.000Z") == date(2000, 3, 1)
        assert parse_date(datetime(2000, 3, 1, 12, 30)) == date(2000, 3, 1)

    @pytest.mark.parametrize("value", ["01/03/2000", "", "2000-13-01"])
    def test_parse_date_rejects(self, value):
        with pytest.raises(ValueError):
            parse_date(value)

    def test_parse_datetime(self):
        assert parse_datetime("2024-06-01") == datetime(2024, 6, 1)
        assert parse_datetime("2024-06-01T08:00:00Z") == datetime(2024, 6, 1, 8, tzinfo=timezone.utc)
