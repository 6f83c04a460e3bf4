from typing import Any, Dict, List, Mapping, Optional

from blindquote.services.bands import OTHER_LOCATION, get_product_config, parse_group
from blindquote.services.pricing import parse_measurement

REQUIRED_CUSTOMER_FIELDS = ("name", "address", "phone")


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


class Validator:
    """Validation rules for customer records and line item input.

    Rules:
    - name, address and phone are required for a customer; email is optional and free text
    - location, product, category and group are required for an item
    - location "Other" needs an other_location value
    - width and drop must be positive numbers
    - product must be in the catalogue, and category and group must be offered for it

    Any issue rejects the record. Issues are returned sorted.
    """

    def _add_issue(self, issues: List[str], issue: str) -> None:
        if issue not in issues:
            issues.append(issue)

    def _result(self, issues: List[str]) -> Dict[str, Any]:
        decision = "rejected" if issues else "accepted"
        return {"decision": decision, "issues": sorted(issues)}

    def validate_customer(self, data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        issues: List[str] = []
        data = data or {}

        for field in REQUIRED_CUSTOMER_FIELDS:
            if not _text(data.get(field)):
                self._add_issue(issues, f"missing_{field}")

        return self._result(issues)

    def validate_item(self, data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        issues: List[str] = []
        data = data or {}

        location = _text(data.get("location"))
        if not location:
            self._add_issue(issues, "missing_location")
        elif location == OTHER_LOCATION:
            other = data.get("other_location", data.get("otherLocation"))
            if not _text(other):
                self._add_issue(issues, "missing_other_location")

        for field in ("width", "drop"):
            raw = data.get(field)
            if raw is None or (isinstance(raw, str) and not raw.strip()):
                self._add_issue(issues, f"missing_{field}")
            elif parse_measurement(raw) is None:
                self._add_issue(issues, f"invalid_{field}")

        product = _text(data.get("product"))
        category = _text(data.get("category"))
        raw_group = data.get("group")
        group = parse_group(raw_group)

        if not product:
            self._add_issue(issues, "missing_product")
        if not category:
            self._add_issue(issues, "missing_category")
        if raw_group is None or (isinstance(raw_group, str) and not raw_group.strip()):
            self._add_issue(issues, "missing_group")
        elif group is None:
            self._add_issue(issues, "invalid_group")

        config = get_product_config(product) if product else None
        if product and config is None:
            self._add_issue(issues, f"unknown_product:{product}")
        if config is not None:
            if category and category not in config.categories:
                self._add_issue(issues, f"unsupported_category:{category}")
            if group is not None and group not in config.groups:
                self._add_issue(issues, f"group_not_offered:{group}")

        return self._result(issues)
