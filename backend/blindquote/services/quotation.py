import re
from datetime import date, datetime, timezone
from html import escape
from typing import Any, Dict, Optional, Sequence

from blindquote.models.quote import Customer, LineItem, Totals
from blindquote.services.pricing import CURRENCY, DEPOSIT_RATE, GST_RATE, format_currency

VIEW_MODES = ("customer", "internal")

COMPANY = {
    "initials": "SP",
    "name": "SP Interior Solutions Pty Ltd",
    "phone": "0449 736 429",
    "email": "info@spisolutions.com.au",
    "facebook": "fb.com/spinteriorsolutions",
    "website": "www.spisolutions.com.au",
    "abn": "86 658 409 548",
    "account_name": "SP INTERIOR SOLUTIONS PTY LTD",
    "bank": "BSB : xxx-xxx / Account number : xxxxxx / xxxxxx",
}

TERMS = (
    ("Roller Blind Fabric", "Blockout: Group 03- TBC"),
    ("Roller Blind Fabric -", "SCREEN: Group 03- TBC"),
    ("Roller Blind Mounted", "Face Fit / Recess Fit"),
    ("Surcharge on Group 2 & 3", "Approx 5-10% increase for Group 02 and 15-25% increase for Group 03"),
    ("Roller Blinds Blockout fabric", "Blockout fabric"),
    ("Fabric colours", "May differ slightly from batch to batch from sample shown"),
    ("Confirmation", "50% deposit"),
    ("ETA", "Blinds 2-3 wks"),
    ("Quote", "Price is for the above quantities and valid for 14 days only. "
              "Price includes supply and installation"),
)

_CELL = "border:1px solid #9ca3af; padding:8px;"
_TOTAL_CELL = "border:1px solid #4b5563; padding:8px; text-align:right;"


def _category_label(category: str) -> str:
    return "SCREEN" if category == "Screen" else "BO"


def _header_row(internal: bool) -> str:
    cols = [("#", "center"), ("LOCATION", "left"), ("TYPE", "left"), ("Recess / Face fit", "left"),
            ("FABRIC", "left"), ("BLOCKOUT/SCREEN", "left")]
    if internal:
        cols += [("Width mm", "center"), ("Drop mm", "center")]
    cols += [("QTY", "center"), ("PRICE", "right")]
    cells = "".join(f'<th style="{_CELL} text-align:{align}; font-weight:600;">{label}</th>' for label, align in cols)
    return f'<tr style="background-color:#f3f4f6;">{cells}</tr>'


def _item_row(index: int, item: LineItem, internal: bool) -> str:
    cells = [
        f'<td style="{_CELL} text-align:center;">{index}</td>',
        f'<td style="{_CELL}">{escape(item.location)}</td>',
        f'<td style="{_CELL}">{escape(item.product)}</td>',
        f'<td style="{_CELL}">{escape(item.recess)}</td>',
        f'<td style="{_CELL}">Group {item.group}</td>',
        f'<td style="{_CELL}">{_category_label(item.category)}</td>',
    ]
    if internal:
        cells += [
            f'<td style="{_CELL} text-align:center;">{item.width:g}&rarr;{item.width_band}</td>',
            f'<td style="{_CELL} text-align:center;">{item.drop:g}&rarr;{item.drop_band}</td>',
        ]
    cells += [
        f'<td style="{_CELL} text-align:center;">{item.quantity}</td>',
        f'<td style="{_CELL} text-align:right;">{format_currency(item.total_price)}</td>',
    ]
    return "<tr>" + "".join(cells) + "</tr>"


def render_quotation_html(
    customer: Customer,
    items: Sequence[LineItem],
    totals: Totals,
    quote_number: str,
    view_mode: str = "customer",
    today: Optional[date] = None,
) -> str:
    """Quotation document body in customer or internal view.

    The internal view adds the raw width and drop next to the band each was
    priced at.
    """
    if view_mode not in VIEW_MODES:
        raise ValueError(f"invalid view mode: {view_mode!r}")
    internal = view_mode == "internal"
    today = today or date.today()

    rows = "".join(_item_row(i, item, internal) for i, item in enumerate(items, start=1))
    colspan = 10 if internal else 8
    email = escape(customer.email) if customer.email else "xxx"
    terms_left = "".join(f'<p style="margin:3px 0;"><strong>{escape(k)}</strong></p>' for k, _ in TERMS)
    terms_right = "".join(f'<p style="margin:3px 0;">{escape(v)}</p>' for _, v in TERMS)
    gst_pct = int(GST_RATE * 100)
    deposit_pct = int(DEPOSIT_RATE * 100)

    return f"""
<div class="quotation quotation-{view_mode}">
  <div style="border:2px solid #1f2937; margin-bottom:20px; background:white;">
    <div style="display:flex; justify-content:space-between; align-items:flex-start; padding:20px; border-bottom:2px solid #1f2937;">
      <div style="display:flex; align-items:center; gap:20px;">
        <div style="width:100px; height:100px; background:#7c3aed; border-radius:50%; display:flex; align-items:center; justify-content:center; color:white; font-size:40px; font-weight:700;">{COMPANY['initials']}</div>
        <div>
          <h1 style="font-size:28px; line-height:1.2; margin:0; font-weight:700;">INTERIOR</h1>
          <h1 style="font-size:28px; line-height:1.2; margin:0; font-weight:700;">SOLUTIONS</h1>
          <p style="color:#7c3aed; font-style:italic; font-size:14px; margin:5px 0 0 0;">Inspired Interiors</p>
        </div>
      </div>
      <div style="text-align:right; font-size:13px; line-height:1.6;">
        <p style="margin:2px 0; font-weight:700;">{COMPANY['name']}</p>
        <p style="margin:2px 0;">{COMPANY['phone']}</p>
        <p style="margin:2px 0;">{COMPANY['email']}</p>
        <p style="margin:2px 0;">{COMPANY['facebook']}</p>
        <p style="margin:2px 0;">{COMPANY['website']}</p>
        <p style="margin:8px 0 0 0; font-weight:700;">ABN {COMPANY['abn']}</p>
      </div>
    </div>
    <div style="display:grid; grid-template-columns:1fr 1fr; padding:20px; gap:40px;">
      <div style="font-size:13px;">
        <p style="margin:3px 0;"><strong>Name:</strong> {escape(customer.name)}</p>
        <p style="margin:3px 0;"><strong>Add:</strong> {escape(customer.address)}</p>
        <p style="margin:3px 0;"><strong>Phone:</strong> {escape(customer.phone)}</p>
        <p style="margin:3px 0;"><strong>Email:</strong> {email}</p>
      </div>
      <div style="text-align:right; font-size:13px;">
        <p style="margin:3px 0;"><strong>Date:</strong> {today.strftime('%d/%m/%Y')}</p>
        <p style="margin:3px 0;"><strong>Quote No:</strong> {escape(quote_number)}</p>
      </div>
    </div>
  </div>

  <div style="text-align:center; margin:20px 0;">
    <h2 style="font-size:20px; font-weight:700; color:#7c3aed; margin:0;">QUOTATION FOR ROLLER BLINDS</h2>
  </div>

  <table style="width:100%; border-collapse:collapse; margin-bottom:20px; font-size:13px;">
    <thead>{_header_row(internal)}</thead>
    <tbody>
      {rows}
      <tr><td colspan="{colspan}" style="border:none; padding:10px;"></td></tr>
    </tbody>
  </table>

  <div style="margin-left:auto; width:320px; margin-bottom:20px;">
    <table style="width:100%; border-collapse:collapse; font-size:13px;">
      <tbody>
        <tr><td style="{_TOTAL_CELL} font-weight:600;">Total</td><td style="{_TOTAL_CELL}">{format_currency(totals.subtotal)}</td></tr>
        <tr><td style="{_TOTAL_CELL} font-weight:600;">GST {gst_pct}%</td><td style="{_TOTAL_CELL}">{format_currency(totals.gst)}</td></tr>
        <tr><td style="{_TOTAL_CELL} font-weight:700;">Total Payable</td><td style="{_TOTAL_CELL} font-weight:700;">{format_currency(totals.total)}</td></tr>
        <tr><td style="{_TOTAL_CELL} font-weight:600;">{deposit_pct}% Deposit</td><td style="{_TOTAL_CELL}">{format_currency(totals.deposit)}</td></tr>
        <tr><td style="{_TOTAL_CELL} font-weight:600;">Balance Payable</td><td style="{_TOTAL_CELL}">{format_currency(totals.balance)}</td></tr>
      </tbody>
    </table>
  </div>

  <div style="border:2px solid #4b5563; padding:15px; margin:20px 0; text-align:center; font-weight:700; font-size:13px;">
    <p style="margin:3px 0;">Account Name : {COMPANY['account_name']}</p>
    <p style="margin:3px 0;">{COMPANY['bank']}</p>
  </div>

  <div style="border:2px solid #4b5563; padding:15px; font-size:12px; line-height:1.6;">
    <h3 style="font-weight:700; margin:0 0 10px 0; font-size:13px;">Additional information / terms and conditions</h3>
    <div style="display:grid; grid-template-columns:1fr 1fr; gap:20px;">
      <div>{terms_left}</div>
      <div>{terms_right}</div>
    </div>
  </div>
</div>
"""


def render_print_document(body: str, title: str) -> str:
    """Standalone A4 page around a rendered quotation, ready for print to PDF."""
    return f"""<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <title>{escape(title)}</title>
  <style>
    body {{ font-family: Arial, sans-serif; margin: 20px; }}
    .instructions {{ position:fixed; top:10px; right:10px; background:#7c3aed; color:white; padding:15px 20px; border-radius:8px; font-size:14px; max-width:300px; }}
    .instructions button {{ margin-top:10px; padding:8px 16px; background:white; color:#7c3aed; border:none; border-radius:4px; cursor:pointer; font-weight:600; width:100%; }}
    @media print {{
      body {{ margin: 0; }}
      @page {{ size: A4; margin: 15mm; }}
      .instructions {{ display: none !important; }}
    }}
  </style>
</head>
<body>
  <div class="instructions">
    <strong>Save as PDF</strong>
    <ol>
      <li>Press <strong>Ctrl + P</strong> (Windows) or <strong>Cmd + P</strong> (Mac)</li>
      <li>Select <strong>"Save as PDF"</strong></li>
      <li>Click <strong>Save</strong></li>
    </ol>
    <button onclick="window.print()">Print Now</button>
  </div>
  {body}
</body>
</html>
"""


def quote_filename(customer_name: str, quote_number: str) -> str:
    name = (customer_name or "").strip() or "Customer"
    return f"{re.sub(r'[^a-zA-Z0-9]', '_', name)}_Quote_{quote_number}"


def build_export_payload(
    customer: Customer,
    items: Sequence[LineItem],
    totals: Totals,
    quote_number: str,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Webhook payload; field names are relied on by the downstream workflow."""
    now = now or datetime.now(timezone.utc)
    stamp = now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return {
        "quoteNumber": quote_number,
        "date": stamp,
        "customer": {
            "name": customer.name,
            "address": customer.address,
            "phone": customer.phone,
            "email": customer.email or None,
        },
        "items": [
            {
                "location": item.location,
                "product": item.product,
                "category": item.category,
                "group": str(item.group),
                "recess": item.recess,
                "width": item.width,
                "drop": item.drop,
                "widthBand": item.width_band,
                "dropBand": item.drop_band,
                "quantity": item.quantity,
                "unitPrice": item.unit_price,
                "totalPrice": item.total_price,
            }
            for item in items
        ],
        "totals": {
            "subtotal": totals.subtotal,
            "gst": totals.gst,
            "total": totals.total,
            "deposit": totals.deposit,
            "balance": totals.balance,
        },
        "metadata": {
            "currency": CURRENCY,
            "gstRate": float(GST_RATE),
            "depositRate": float(DEPOSIT_RATE),
        },
    }
