import logging
import os
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from form_engine.catalog import FORM_BUILDERS, available_forms, get_schema
from form_engine.dependencies import DependencyResolver
from form_engine.models import FormMode, FormSchema, Option
from form_engine.reference_data import ReferenceDataError, RemoteReferenceProvider
from form_engine.search import SearchHighlighter
from form_engine.validation import ValidationEngine

load_dotenv()

app = FastAPI(title="Form Engine Service")
logger = logging.getLogger(__name__)


def _get_reference_data_url() -> Optional[str]:
    return os.getenv("REFERENCE_DATA_URL")


if not _get_reference_data_url():
    logger.warning("REFERENCE_DATA_URL not configured; reference lookups will return 503 until set.")


class FormSummary(BaseModel):
    id: str
    title: str


class EvaluateRequest(BaseModel):
    mode: FormMode = "full"
    values: Dict[str, Any] = Field(default_factory=dict)
    search_term: str = ""


class EvaluateResponse(BaseModel):
    visible: List[str]
    required: List[str]
    sections: List[str]
    matches: List[str]
    options: Dict[str, List[Option]]


class ValidateRequest(BaseModel):
    mode: FormMode = "full"
    values: Dict[str, Any] = Field(default_factory=dict)


class ValidateResponse(BaseModel):
    valid: bool
    errors: Dict[str, str]


def _dev_routes_enabled() -> bool:
    return os.getenv("ENABLE_DEV_ROUTES", "false").lower() == "true"


def _load_schema(form_id: str) -> FormSchema:
    if form_id not in FORM_BUILDERS:
        raise HTTPException(status_code=404, detail="form_not_found")
    return get_schema(form_id)


def _merge_values(schema: FormSchema, values: Dict[str, Any]) -> Dict[str, Any]:
    unknown = sorted(key for key in values if not schema.has_field(key))
    if unknown:
        logger.warning("Rejected %d unknown fields for %s: %s", len(unknown), schema.id, unknown)
        raise HTTPException(status_code=422, detail={"unknown_fields": unknown})
    merged = schema.default_values()
    merged.update(values)
    return merged


@app.get("/health")
async def health():
    return {"ok": True, "service": "form-service"}


@app.get("/forms", response_model=List[FormSummary])
async def list_forms():
    return [FormSummary(id=schema.id, title=schema.title) for schema in available_forms()]


@app.get("/forms/{form_id}/schema")
async def form_schema(form_id: str):
    schema = _load_schema(form_id)
    return schema.model_dump(mode="json")


@app.post("/forms/{form_id}/evaluate", response_model=EvaluateResponse)
async def evaluate(form_id: str, payload: EvaluateRequest):
    schema = _load_schema(form_id)
    values = _merge_values(schema, payload.values)
    validation = ValidationEngine(schema)
    resolver = DependencyResolver(schema)

    visible = validation.visibility.visible_fields(payload.mode, values)
    options = {
        field.key: resolver.options_for(field.key, values)
        for field in schema.fields
        if field.key in visible and (field.static_options or field.options_depend_on)
    }
    response = EvaluateResponse(
        visible=sorted(visible),
        required=sorted(validation.required_fields(payload.mode, values)),
        sections=validation.visibility.visible_sections(payload.mode, values),
        matches=sorted(SearchHighlighter(schema).matches(payload.search_term, values)),
        options=options,
    )
    logger.info(
        "Evaluated %s (%s mode): %d visible, %d required",
        form_id,
        payload.mode,
        len(response.visible),
        len(response.required),
    )
    return response


@app.post("/forms/{form_id}/validate", response_model=ValidateResponse)
async def validate(form_id: str, payload: ValidateRequest):
    schema = _load_schema(form_id)
    values = _merge_values(schema, payload.values)
    errors = ValidationEngine(schema).validate(payload.mode, values)
    logger.info("Validated %s (%s mode) with %d errors", form_id, payload.mode, len(errors))
    return ValidateResponse(valid=not errors, errors=errors)


@app.get("/dev/reference/{resource}/{parent_id}")
def reference_lookup(resource: str, parent_id: str):
    if not _dev_routes_enabled():
        raise HTTPException(status_code=404, detail="Not found")
    base_url = _get_reference_data_url()
    if not base_url:
        raise HTTPException(status_code=503, detail="REFERENCE_DATA_URL not configured")
    provider = RemoteReferenceProvider(base_url, resource)
    try:
        options = provider.fetch_children(parent_id)
    except ReferenceDataError:
        logger.exception("Reference lookup for %s/%s failed", resource, parent_id)
        raise HTTPException(status_code=502, detail="reference_lookup_failed")
    return {"options": [option.model_dump() for option in options]}
