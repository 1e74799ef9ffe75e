from __future__ import annotations
from datetime import datetime
from shopmaster.time_utils import parse_timestamp

import re
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime, JSON
from sqlalchemy.orm import DeclarativeMeta

from .models.orders import ORDER_STATUSES, PAYMENT_METHODS


# Maximum price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

MAX_NOTE_LENGTH = 500

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

SHIPPING_ADDRESS_FIELDS = ("full_name", "phone", "street", "city", "state", "pincode")


class ValidationError(ValueError):
    """
    400-level input problem.

    `errors` carries per-field messages: [{"field": ..., "message": ...}].
    """

    def __init__(self, message: str = "Validation failed", errors: list[dict] | None = None):
        super().__init__(message)
        self.errors = errors or []


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate review)."""


class FieldErrors:
    """Collects field problems so a request reports all of them at once."""

    def __init__(self):
        self.errors: list[dict] = []

    def add(self, field: str, message: str) -> None:
        self.errors.append({"field": field, "message": message})

    def __bool__(self) -> bool:
        return bool(self.errors)

    def raise_if_any(self, message: str = "Validation failed") -> None:
        if self.errors:
            raise ValidationError(message, self.errors)


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _strict_int(value: Any, field: str) -> int:
    """Integers only: no bools, floats or scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return _strict_int(value, col.key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_timestamp(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # JSON columns are shape-checked by the enforce_rules_* helpers
    if isinstance(coltype, JSON):
        return value

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    All field problems are reported together on one ValidationError.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errors = FieldErrors()

    required = policy.required_on_create or set()
    if not partial:
        for f in sorted(required):
            if f not in payload:
                errors.add(f, f"{f} is required")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            errors.add(k, f"Field not allowed: {k}")
        elif k not in cols:
            errors.add(k, f"Unknown field: {k}")
    errors.raise_if_any()

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                errors.add(k, f"{k} cannot be null")
                continue
            patch[k] = None
            continue

        try:
            val = _coerce_value(col, raw)
        except ValidationError as e:
            errors.add(k, str(e))
            continue

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                errors.add(k, f"{k} cannot be blank")
                continue

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                errors.add(k, f"{k} exceeds max length {col.type.length}")
                continue

        patch[k] = val

    errors.raise_if_any()
    return patch


def _check_price(errors: FieldErrors, patch: dict, field: str) -> None:
    if field in patch and patch[field] is not None:
        price = patch[field]
        if price < 0:
            errors.add(field, f"{field} must be >= 0")
        elif price > MAX_PRICE_CENTS:
            errors.add(field, f"{field} cannot exceed {MAX_PRICE_CENTS}")


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    errors = FieldErrors()
    _check_price(errors, patch, "base_price_cents")
    _check_price(errors, patch, "selling_price_cents")

    if patch.get("low_stock_threshold") is not None and patch["low_stock_threshold"] < 0:
        errors.add("low_stock_threshold", "low_stock_threshold must be >= 0")

    if patch.get("attributes") is not None and not isinstance(patch["attributes"], dict):
        errors.add("attributes", "attributes must be an object")
    for field in ("images", "tags"):
        value = patch.get(field)
        if value is not None and (not isinstance(value, list) or not all(isinstance(v, str) for v in value)):
            errors.add(field, f"{field} must be a list of strings")

    errors.raise_if_any()


def enforce_rules_category(patch: dict) -> None:
    if patch.get("sort_order") is not None and patch["sort_order"] < 0:
        raise ValidationError("Validation failed", [{"field": "sort_order", "message": "sort_order must be >= 0"}])


def validate_variants(raw: Any) -> list[dict]:
    """
    Normalize the `variants` list of a product write.

    Each entry: optional id (to keep an existing variant and its stock), name,
    attributes (string -> string), additional_price_cents >= 0, is_active, images.
    Stock is never writable here; it only moves through inventory operations.
    """
    errors = FieldErrors()
    if not isinstance(raw, list):
        errors.add("variants", "variants must be a list")
        errors.raise_if_any()

    cleaned = []
    for i, entry in enumerate(raw):
        prefix = f"variants[{i}]"
        if not isinstance(entry, dict):
            errors.add(prefix, "variant must be an object")
            continue

        attributes = entry.get("attributes") or {}
        if not isinstance(attributes, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in attributes.items()
        ):
            errors.add(f"{prefix}.attributes", "attributes must map strings to strings")
            attributes = {}

        name = entry.get("name")
        if name is None:
            name = " / ".join(attributes.values())
        name = str(name).strip()
        if not name:
            errors.add(f"{prefix}.name", "Variant name is required")
        elif len(name) > 120:
            errors.add(f"{prefix}.name", "Variant name cannot exceed 120 characters")

        additional = entry.get("additional_price_cents", 0)
        try:
            additional = _strict_int(additional if additional is not None else 0, "additional_price_cents")
            if additional < 0 or additional > MAX_PRICE_CENTS:
                errors.add(f"{prefix}.additional_price_cents", "additional_price_cents out of range")
        except ValidationError as e:
            errors.add(f"{prefix}.additional_price_cents", str(e))

        variant_id = entry.get("id")
        if variant_id is not None:
            try:
                variant_id = _strict_int(variant_id, "id")
            except ValidationError as e:
                errors.add(f"{prefix}.id", str(e))

        is_active = entry.get("is_active", True)
        if not isinstance(is_active, bool):
            errors.add(f"{prefix}.is_active", "is_active must be a boolean")

        images = entry.get("images") or []
        if not isinstance(images, list):
            errors.add(f"{prefix}.images", "images must be a list")

        cleaned.append({
            "id": variant_id,
            "name": name,
            "attributes": attributes,
            "additional_price_cents": additional,
            "is_active": is_active,
            "images": images,
        })

    errors.raise_if_any()
    return cleaned


# =============================================================================
# Request-body validators (non-model payloads)
# =============================================================================

def _int_field(errors: FieldErrors, payload: dict, field: str, *, required: bool = True, minimum: int | None = None,
               message: str | None = None) -> int | None:
    raw = payload.get(field)
    if raw is None or raw == "":
        if required:
            errors.add(field, f"{field} is required")
        return None
    try:
        value = _strict_int(raw, field)
    except ValidationError as e:
        errors.add(field, str(e))
        return None
    if minimum is not None and value < minimum:
        errors.add(field, message or f"{field} must be >= {minimum}")
        return None
    return value


def _str_field(errors: FieldErrors, payload: dict, field: str, *, required: bool = False,
               max_length: int | None = None) -> str | None:
    raw = payload.get(field)
    if raw is None:
        if required:
            errors.add(field, f"{field} is required")
        return None
    value = str(raw).strip()
    if required and not value:
        errors.add(field, f"{field} is required")
        return None
    if max_length is not None and len(value) > max_length:
        errors.add(field, f"{field} cannot exceed {max_length} characters")
        return None
    return value or None


def _require_object(payload: Any) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def validate_stock_in(payload: Any) -> dict:
    payload = _require_object(payload)
    errors = FieldErrors()
    data = {
        "product_id": _int_field(errors, payload, "product_id"),
        "variant_id": _int_field(errors, payload, "variant_id", required=False),
        "quantity": _int_field(errors, payload, "quantity", minimum=1,
                               message="Quantity must be a positive integer"),
        "purchase_price_cents": _int_field(errors, payload, "purchase_price_cents", minimum=0,
                                           message="Purchase price must be a positive number"),
        "batch_number": _str_field(errors, payload, "batch_number", max_length=64),
        "supplier": _str_field(errors, payload, "supplier", max_length=120),
        "note": _str_field(errors, payload, "note", max_length=MAX_NOTE_LENGTH),
    }
    if data["purchase_price_cents"] is not None and data["purchase_price_cents"] > MAX_PRICE_CENTS:
        errors.add("purchase_price_cents", f"purchase_price_cents cannot exceed {MAX_PRICE_CENTS}")
    errors.raise_if_any()
    return data


def validate_stock_out(payload: Any) -> dict:
    payload = _require_object(payload)
    errors = FieldErrors()
    data = {
        "product_id": _int_field(errors, payload, "product_id"),
        "variant_id": _int_field(errors, payload, "variant_id", required=False),
        "quantity": _int_field(errors, payload, "quantity", minimum=1,
                               message="Quantity must be a positive integer"),
        "note": _str_field(errors, payload, "note", max_length=MAX_NOTE_LENGTH),
    }
    errors.raise_if_any()
    return data


def validate_stock_adjust(payload: Any) -> dict:
    payload = _require_object(payload)
    errors = FieldErrors()
    data = {
        "product_id": _int_field(errors, payload, "product_id"),
        "variant_id": _int_field(errors, payload, "variant_id", required=False),
        "new_quantity": _int_field(errors, payload, "new_quantity", minimum=0,
                                   message="New quantity must be a non-negative integer"),
        "note": _str_field(errors, payload, "note", max_length=MAX_NOTE_LENGTH),
    }
    errors.raise_if_any()
    return data


def validate_order_create(payload: Any) -> dict:
    """
    Shape-check an order request. An empty `items` list passes here; the
    order service rejects it as an empty order.
    """
    payload = _require_object(payload)
    errors = FieldErrors()

    raw_items = payload.get("items")
    items: list[dict] = []
    if not isinstance(raw_items, list):
        errors.add("items", "items must be a list")
    else:
        for i, raw in enumerate(raw_items):
            if not isinstance(raw, dict):
                errors.add(f"items[{i}]", "item must be an object")
                continue
            item_errors = FieldErrors()
            product_id = _int_field(item_errors, raw, "product_id")
            variant_id = _int_field(item_errors, raw, "variant_id", required=False)
            quantity = _int_field(item_errors, raw, "quantity", minimum=1,
                                  message="Quantity must be a positive integer")
            for err in item_errors.errors:
                errors.add(f"items[{i}].{err['field']}", err["message"])
            items.append({"product_id": product_id, "variant_id": variant_id, "quantity": quantity})

    address = payload.get("shipping_address")
    shipping_address: dict = {}
    if not isinstance(address, dict):
        errors.add("shipping_address", "shipping_address is required")
    else:
        for field in SHIPPING_ADDRESS_FIELDS:
            value = address.get(field)
            if value is None or not str(value).strip():
                errors.add(f"shipping_address.{field}", f"{field} is required in shipping address")
            else:
                shipping_address[field] = str(value).strip()
        shipping_address["country"] = str(address.get("country") or "India").strip()

    payment_method = "cod"
    payment_info = payload.get("payment_info")
    if payment_info is not None:
        if not isinstance(payment_info, dict):
            errors.add("payment_info", "payment_info must be an object")
        else:
            payment_method = payment_info.get("method") or "cod"
            if payment_method not in PAYMENT_METHODS:
                errors.add("payment_info.method", f"method must be one of: {', '.join(PAYMENT_METHODS)}")

    customer_note = _str_field(errors, payload, "customer_note", max_length=MAX_NOTE_LENGTH)

    errors.raise_if_any()
    return {
        "items": items,
        "shipping_address": shipping_address,
        "payment_method": payment_method,
        "customer_note": customer_note,
    }


def validate_status_update(payload: Any) -> dict:
    payload = _require_object(payload)
    errors = FieldErrors()
    status = payload.get("status")
    if status not in ORDER_STATUSES:
        errors.add("status", f"status must be one of: {', '.join(ORDER_STATUSES)}")
    data = {
        "status": status,
        "admin_note": _str_field(errors, payload, "admin_note", max_length=MAX_NOTE_LENGTH),
        "cancel_reason": _str_field(errors, payload, "cancel_reason", max_length=255),
    }
    errors.raise_if_any()
    return data


def validate_review(payload: Any) -> dict:
    payload = _require_object(payload)
    errors = FieldErrors()
    rating = _int_field(errors, payload, "rating", minimum=1, message="Rating must be between 1 and 5")
    if rating is not None and rating > 5:
        errors.add("rating", "Rating must be between 1 and 5")
    data = {
        "rating": rating,
        "comment": _str_field(errors, payload, "comment", max_length=1000),
    }
    errors.raise_if_any()
    return data


def validate_email(errors: FieldErrors, payload: dict, field: str = "email", *, required: bool = True) -> str | None:
    email = _str_field(errors, payload, field, required=required, max_length=255)
    if email is None:
        return None
    email = email.lower()
    if not EMAIL_RE.match(email):
        errors.add(field, "Please provide a valid email")
        return None
    return email


def validate_user_fields(payload: Any, *, partial: bool) -> dict:
    """name / email / phone / password / role / is_active for registration and admin writes."""
    payload = _require_object(payload)
    errors = FieldErrors()
    data: dict = {}

    if not partial or "name" in payload:
        data["name"] = _str_field(errors, payload, "name", required=True, max_length=100)
    if not partial or "email" in payload:
        data["email"] = validate_email(errors, payload)
    if not partial or "password" in payload:
        raw = payload.get("password")
        if not isinstance(raw, str) or not raw:
            errors.add("password", "Password is required")
        else:
            data["password"] = raw
    if "phone" in payload:
        data["phone"] = _str_field(errors, payload, "phone", max_length=32)
    if "role" in payload:
        data["role"] = payload.get("role")
    if "is_active" in payload:
        if not isinstance(payload["is_active"], bool):
            errors.add("is_active", "is_active must be a boolean")
        else:
            data["is_active"] = payload["is_active"]

    errors.raise_if_any()
    return data


def parse_bool_arg(value: str | None) -> bool | None:
    """Query-string boolean: "true"/"1" -> True, "false"/"0" -> False, absent -> None."""
    if value is None or value == "":
        return None
    lowered = value.strip().lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    raise ValidationError("Validation failed", [{"field": "query", "message": f"Invalid boolean: {value}"}])
