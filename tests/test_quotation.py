"""
Tests for the quotation document and the export payload.
"""
from datetime import date, datetime, timezone

import pytest

from blindquote.models.quote import Customer
from blindquote.services.pricing import compute_totals
from blindquote.services.quotation import (
    build_export_payload,
    quote_filename,
    render_print_document,
    render_quotation_html,
)


class TestQuotationHtml:

    def test_customer_view(self, customer, item):
        html = render_quotation_html(customer, [item], compute_totals([item]), "QU123456",
                                     today=date(2024, 3, 5))
        assert "Jane Citizen" in html
        assert "05/03/2024" in html
        assert "QU123456" in html
        assert "Width mm" not in html
        assert "$110.00" in html
        assert "$121.00" in html
        assert "$60.50" in html
        assert 'colspan="8"' in html

    def test_internal_view_shows_bands(self, customer, item):
        html = render_quotation_html(customer, [item], compute_totals([item]), "QU123456", view_mode="internal")
        assert "Width mm" in html
        assert "Drop mm" in html
        assert "700&rarr;760" in html
        assert "1000&rarr;1200" in html
        assert 'colspan="10"' in html

    def test_invalid_view_mode(self, customer, item):
        with pytest.raises(ValueError):
            render_quotation_html(customer, [item], compute_totals([item]), "QU1", view_mode="admin")

    def test_customer_text_is_escaped(self, item):
        customer = Customer(name="<b>Bob</b>", address="1 & 2 St", phone="0400")
        html = render_quotation_html(customer, [item], compute_totals([item]), "QU1")
        assert "<b>Bob</b>" not in html
        assert "&lt;b&gt;Bob&lt;/b&gt;" in html
        assert "1 &amp; 2 St" in html

    def test_missing_email_placeholder(self, item):
        customer = Customer(name="Bob", address="1 St", phone="0400")
        html = render_quotation_html(customer, [item], compute_totals([item]), "QU1")
        assert "<strong>Email:</strong> xxx" in html

    def test_category_labels(self, customer, make_item):
        items = [make_item(category="Screen"), make_item()]
        html = render_quotation_html(customer, items, compute_totals(items), "QU1")
        assert ">SCREEN<" in html
        assert ">BO<" in html

    def test_print_document(self, customer, item):
        body = render_quotation_html(customer, [item], compute_totals([item]), "QU1")
        page = render_print_document(body, "Jane_Citizen_Quote_QU1")
        assert page.startswith("<!doctype html>")
        assert "<title>Jane_Citizen_Quote_QU1</title>" in page
        assert "size: A4" in page
        assert body in page


class TestQuoteFilename:

    def test_name_is_sanitised(self):
        assert quote_filename("Jane O'Brien", "QU123456") == "Jane_O_Brien_Quote_QU123456"

    def test_default_name(self):
        assert quote_filename("  ", "QU1") == "Customer_Quote_QU1"


class TestExportPayload:

    def test_fields(self, customer, item):
        now = datetime(2024, 3, 5, 1, 2, 3, 456000, tzinfo=timezone.utc)
        payload = build_export_payload(customer, [item], compute_totals([item]), "QU123456", now=now)

        assert payload["quoteNumber"] == "QU123456"
        assert payload["date"] == "2024-03-05T01:02:03.456Z"
        assert payload["customer"] == {
            "name": "Jane Citizen",
            "address": "12 Example St, Parramatta NSW",
            "phone": "0400 000 000",
            "email": "jane@example.com",
        }
        assert payload["items"] == [{
            "location": "Living Room",
            "product": "Roller Blinds",
            "category": "Blockout",
            "group": "1",
            "recess": "Recess",
            "width": 700,
            "drop": 1000,
            "widthBand": 760,
            "dropBand": 1200,
            "quantity": 2,
            "unitPrice": 55,
            "totalPrice": 110,
        }]
        assert payload["totals"] == {"subtotal": 110, "gst": 11, "total": 121, "deposit": 60.5, "balance": 60.5}
        assert payload["metadata"] == {"currency": "AUD", "gstRate": 0.1, "depositRate": 0.5}

    def test_empty_email_is_null(self, item):
        customer = Customer(name="Bob", address="1 St", phone="0400", email="")
        payload = build_export_payload(customer, [item], compute_totals([item]), "QU1")
        assert payload["customer"]["email"] is None

    def test_default_date_is_utc(self, customer, item):
        payload = build_export_payload(customer, [item], compute_totals([item]), "QU1")
        assert payload["date"].endswith("Z")
        assert datetime.fromisoformat(payload["date"][:-1])
