"""
Two-Stage Record Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence
- Parseable numbers and dates
- Known enum values

STAGE 2 - SEMANTIC VALIDATION:
- Positive quantities and prices
- Fuel total matching price x liters within tolerance
- Next service odometer not below the current one
- Suspicious dates and years (warnings only)

Rejected input never reaches the store: build() raises
RecordValidationError carrying the full result.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them back to the rider.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

from pydantic import ValidationError

from motoring.config import get_settings
from motoring.config.settings import AppSettings
from motoring.models.records import (
    OrderLabel,
    RecordBase,
    RecordKind,
    coerce_calendar_date,
)
from motoring.models.registry import attribute_name, model_for
from motoring.models.validation import ValidationIssue, ValidationResult


# Accepted input names per attribute: stored alias first, then attribute name
FIELD_KEYS: dict[str, tuple[str, ...]] = {
    "quantity": ("qty", "quantity"),
    "unit_rate": ("tarif", "unit_rate"),
    "unit_price": ("price", "unit_price"),
    "liter_price": ("price", "liter_price"),
    "liters": ("liters",),
    "total": ("total",),
    "record_date": ("tanggal", "date", "record_date"),
    "label": ("labelType", "label"),
    "name": ("name",),
    "motorcycle_id": ("motorcycleId", "motorcycle_id"),
    "current_km": ("currentKm", "current_km"),
    "next_service_km": ("nextKm", "next_service_km"),
    "odometer_km": ("km", "odometer_km"),
    "year": ("year",),
}


# Attributes the semantic stage reads
SEMANTIC_FIELDS = (
    "record_date",
    "quantity",
    "unit_rate",
    "unit_price",
    "current_km",
    "next_service_km",
    "liter_price",
    "liters",
    "total",
    "odometer_km",
    "year",
)


class RecordValidationError(ValueError):
    """Input rejected before any store call."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(i.message for i in result.issues if i.severity == "error")
        super().__init__(f"Invalid {result.kind} input: {messages}")


def _raw(data: dict[str, Any], attribute: str) -> Any:
    for key in FIELD_KEYS.get(attribute, (attribute,)):
        value = data.get(key)
        if value is not None and value != "":
            return value
    return None


def _parse_decimal(value: Any) -> Optional[Decimal]:
    """Decimal or None when the value isn't a finite number."""
    if isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() else None


def _parse_date(value: Any) -> Optional[date]:
    try:
        return coerce_calendar_date(value)
    except (TypeError, ValueError):
        return None


class RecordValidator:
    """
    Validates record input for every record kind.

    Usage:
        result = validator.validate(RecordKind.FUEL_STOP, form_data)
        record = validator.build(RecordKind.ORDER, owner_id, form_data)
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    # -------------------------------------------------------------------------
    # Stage helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _issue(field: str, issue_type: str, message: str, severity: str = "error",
               suggested_fix: Optional[str] = None) -> ValidationIssue:
        return ValidationIssue(
            field=field,
            issue_type=issue_type,
            message=message,
            severity=severity,
            suggested_fix=suggested_fix,
        )

    def _number(
        self,
        data: dict,
        attribute: str,
        label: str,
        issues: list[ValidationIssue],
        required: bool = True,
    ) -> Optional[Decimal]:
        raw = _raw(data, attribute)
        if raw is None:
            if required:
                issues.append(self._issue(attribute, "missing", f"{label} is required"))
            return None
        number = _parse_decimal(raw)
        if number is None:
            issues.append(self._issue(
                attribute, "invalid_format", f"{label} must be a number (got {raw!r})",
            ))
        return number

    def _date(self, data: dict, issues: list[ValidationIssue]) -> Optional[date]:
        raw = _raw(data, "record_date")
        if raw is None:
            issues.append(self._issue(
                "record_date", "missing", "Date is required",
                suggested_fix="Pick the day the record belongs to",
            ))
            return None
        day = _parse_date(raw)
        if day is None:
            issues.append(self._issue(
                "record_date", "invalid_format", f"Date must be YYYY-MM-DD (got {raw!r})",
            ))
        return day

    def _text(self, data: dict, attribute: str, label: str, issues: list[ValidationIssue]) -> None:
        raw = _raw(data, attribute)
        if raw is None or not str(raw).strip():
            issues.append(self._issue(attribute, "missing", f"{label} is required"))

    # -------------------------------------------------------------------------
    # Stage 1: schema
    # -------------------------------------------------------------------------

    def _validate_schema(self, kind: RecordKind, data: dict) -> tuple[dict, list[ValidationIssue]]:
        """
        Returns the parsed values stage 2 works on, and the issues found.
        """
        issues: list[ValidationIssue] = []
        parsed: dict[str, Any] = {}

        if kind == RecordKind.ORDER:
            parsed["quantity"] = self._number(data, "quantity", "Quantity", issues)
            parsed["unit_rate"] = self._number(data, "unit_rate", "Rate", issues)
            parsed["record_date"] = self._date(data, issues)
            label = getattr(_raw(data, "label"), "value", _raw(data, "label"))
            if label is not None and label not in {option.value for option in OrderLabel}:
                issues.append(self._issue(
                    "label", "invalid_value", f"Unknown label {label!r}",
                    suggested_fix="Use 'klik' or 'paket'",
                ))

        elif kind == RecordKind.SPARE_PART:
            self._text(data, "name", "Part name", issues)
            self._text(data, "motorcycle_id", "Motorcycle", issues)
            parsed["quantity"] = self._number(data, "quantity", "Quantity", issues)
            parsed["unit_price"] = self._number(data, "unit_price", "Price", issues)
            parsed["current_km"] = self._number(data, "current_km", "Current odometer", issues, required=False)
            parsed["next_service_km"] = self._number(data, "next_service_km", "Next service odometer", issues, required=False)
            parsed["record_date"] = self._date(data, issues)

        elif kind == RecordKind.FUEL_STOP:
            parsed["record_date"] = self._date(data, issues)
            parsed["liter_price"] = self._number(data, "liter_price", "Price per liter", issues)
            parsed["liters"] = self._number(data, "liters", "Liters", issues)
            parsed["total"] = self._number(data, "total", "Total", issues)

        elif kind == RecordKind.ODOMETER_READING:
            self._text(data, "motorcycle_id", "Motorcycle", issues)
            parsed["record_date"] = self._date(data, issues)
            parsed["odometer_km"] = self._number(data, "odometer_km", "Odometer", issues)

        elif kind == RecordKind.MOTORCYCLE:
            self._text(data, "name", "Motorcycle name", issues)
            year = _raw(data, "year")
            if year is not None:
                try:
                    parsed["year"] = int(str(year).strip())
                except ValueError:
                    issues.append(self._issue("year", "invalid_format", f"Year must be a number (got {year!r})"))

        else:
            issues.append(self._issue("kind", "unsupported", f"{kind.value} records are not entered directly"))

        return parsed, issues

    # -------------------------------------------------------------------------
    # Stage 2: semantic
    # -------------------------------------------------------------------------

    def _validate_semantic(self, kind: RecordKind, parsed: dict) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        today = date.today()

        def positive(attribute: str, label: str) -> None:
            value = parsed.get(attribute)
            if value is not None and value <= 0:
                issues.append(self._issue(attribute, "invalid_value", f"{label} must be greater than zero"))

        def non_negative(attribute: str, label: str) -> None:
            value = parsed.get(attribute)
            if value is not None and value < 0:
                issues.append(self._issue(attribute, "invalid_value", f"{label} cannot be negative"))

        record_date = parsed.get("record_date")
        if record_date is not None and record_date > today:
            issues.append(self._issue(
                "record_date", "future_date", f"Date ({record_date}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        if kind == RecordKind.ORDER:
            positive("quantity", "Quantity")
            non_negative("unit_rate", "Rate")

        elif kind == RecordKind.SPARE_PART:
            positive("quantity", "Quantity")
            non_negative("unit_price", "Price")
            non_negative("current_km", "Current odometer")
            non_negative("next_service_km", "Next service odometer")
            current_km = parsed.get("current_km") or Decimal("0")
            next_km = parsed.get("next_service_km") or Decimal("0")
            if next_km < current_km:
                issues.append(self._issue(
                    "next_service_km", "inconsistent",
                    "Next service odometer cannot be below current odometer",
                ))

        elif kind == RecordKind.FUEL_STOP:
            positive("liter_price", "Price per liter")
            positive("liters", "Liters")
            positive("total", "Total")
            price, liters, total = parsed.get("liter_price"), parsed.get("liters"), parsed.get("total")
            if price and liters and total and price > 0 and liters > 0:
                expected = price * liters
                tolerance = Decimal(str(self._settings.fuel_total_tolerance))
                if abs(total - expected) > tolerance:
                    issues.append(self._issue(
                        "total", "inconsistent",
                        f"Total ({total}) doesn't match price x liters ({expected})",
                        suggested_fix="Check the price, liters and total on the receipt",
                    ))

        elif kind == RecordKind.ODOMETER_READING:
            non_negative("odometer_km", "Odometer")

        elif kind == RecordKind.MOTORCYCLE:
            year = parsed.get("year")
            if year is not None and not 1900 <= year <= today.year + 1:
                issues.append(self._issue(
                    "year", "suspicious_value", f"Year {year} looks unusual",
                    severity="warning",
                ))

        return issues

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def validate(self, kind: Union[RecordKind, str], data: dict[str, Any]) -> ValidationResult:
        """
        Run both stages over raw input.

        Stage 2 only runs when stage 1 found no errors.
        """
        kind = RecordKind(kind)
        parsed, schema_issues = self._validate_schema(kind, data)
        schema_valid = not any(issue.severity == "error" for issue in schema_issues)

        all_issues = list(schema_issues)
        semantic_valid = False
        if schema_valid:
            semantic_issues = self._validate_semantic(kind, parsed)
            all_issues.extend(semantic_issues)
            semantic_valid = not any(issue.severity == "error" for issue in semantic_issues)

        return ValidationResult(
            kind=kind.value,
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=[issue.message for issue in all_issues if issue.severity == "warning"],
        )

    def build(self, kind: Union[RecordKind, str], owner_id: str, data: dict[str, Any]) -> RecordBase:
        """
        Validate and construct the record for an owner.

        Raises:
            RecordValidationError: If any error-level issue was found
        """
        kind = RecordKind(kind)
        result = self.validate(kind, data)
        if not result.is_valid:
            raise RecordValidationError(result)

        payload = {key: value for key, value in data.items() if key not in ("id", "userId", "owner_id")}
        payload["owner_id"] = owner_id
        try:
            return model_for(kind).model_validate(payload)
        except ValidationError as e:
            raise RecordValidationError(result.model_copy(update={
                "is_valid": False,
                "semantic_valid": False,
                "issues": result.issues + [
                    self._issue(
                        ".".join(str(part) for part in error["loc"]) or "record",
                        "invalid_value",
                        error["msg"],
                    )
                    for error in e.errors()
                ],
            }))

    def validate_record(self, kind: Union[RecordKind, str], record: RecordBase) -> ValidationResult:
        """
        Run the semantic stage over a record that is already built.

        Used for records that arrive whole (backup import), where the
        model has parsed the fields but cross-field rules still apply.
        """
        kind = RecordKind(kind)
        parsed = {name: getattr(record, name, None) for name in SEMANTIC_FIELDS}
        issues = self._validate_semantic(kind, parsed)
        semantic_valid = not any(issue.severity == "error" for issue in issues)
        return ValidationResult(
            kind=kind.value,
            schema_valid=True,
            semantic_valid=semantic_valid,
            is_valid=semantic_valid,
            issues=issues,
            warnings=[issue.message for issue in issues if issue.severity == "warning"],
        )

    def validate_changes(
        self,
        kind: Union[RecordKind, str],
        current: RecordBase,
        changes: dict[str, Any],
    ) -> ValidationResult:
        """Validate a partial update against the record it changes."""
        model = type(current)
        merged = current.model_dump(mode="json")
        for key, value in changes.items():
            merged[attribute_name(model, key)] = value
        return self.validate(kind, merged)

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """Short text for the rider: errors first, then warnings."""
        if result.is_valid and not result.warnings:
            return "All checks passed."

        lines = []
        errors = [issue for issue in result.issues if issue.severity == "error"]
        if errors:
            lines.append("Please fix the following:")
            for issue in errors:
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     {issue.suggested_fix}")
        if result.warnings:
            if lines:
                lines.append("")
            lines.append("Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")
        return "\n".join(lines)
