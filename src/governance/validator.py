"""
Validates an inbound KPI request body before any SQL is built.

Checks performed:
  1. Body is a JSON object with the shape of `kpi_request.v1`
  2. contract_version (when given) is the supported one
  3. The KPI is registered

Filter values are not validated here; they are quoted by the filter compiler.
"""
from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from src.kpi.request import CONTRACT_VERSION, KpiRequest
from src.governance.kpi_registry import load_kpi_registry, KpiRegistry


def _format_validation_error(exc: ValidationError) -> list[str]:
    messages: list[str] = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "body"
        messages.append(f"Invalid field '{loc}': {err.get('msg', 'invalid value')}")
    return messages


def parse_request(body: Any) -> tuple[KpiRequest | None, list[str]]:
    """Parse a decoded JSON body into a KpiRequest.

    Returns the request (or None) and a list of error messages.
    """
    if not isinstance(body, dict):
        return None, ["Request body must be a JSON object."]
    try:
        return KpiRequest.model_validate(body), []
    except ValidationError as exc:
        return None, _format_validation_error(exc)


def validate_request(req: KpiRequest, registry: KpiRegistry | None = None) -> list[str]:
    """Return a list of validation error messages (empty list = request is valid)."""
    if registry is None:
        registry = load_kpi_registry()

    errors: list[str] = []

    if req.contract_version != CONTRACT_VERSION:
        errors.append(
            f"Unsupported contract_version '{req.contract_version}'. "
            f"Expected '{CONTRACT_VERSION}'."
        )

    if registry.resolve(req.kpi) is None:
        errors.append(
            f"KPI '{req.kpi}' is not yet implemented. "
            f"Allowed: {', '.join(registry.get_kpi_names())}"
        )

    return errors
