import logging
from typing import Any, Dict, Optional, Set

from form_engine.models import FieldDefinition, FormSchema, is_blank
from form_engine.visibility import VisibilityEvaluator

logger = logging.getLogger(__name__)


class ValidationEngine:
    """Computes the required set for a mode and turns blank required values into errors.

    ``validate`` never raises on field content; errors are returned as a
    mapping of field key to message.
    """

    def __init__(self, schema: FormSchema, visibility: Optional[VisibilityEvaluator] = None):
        self.schema = schema
        self.visibility = visibility or VisibilityEvaluator(schema)

    def base_required(self, mode: str) -> Set[str]:
        if mode == "quick":
            return set(self.schema.quick_mode_fields)
        return {field.key for field in self.schema.fields if field.required}

    def conditional_required(self, values: Dict[str, Any]) -> Set[str]:
        return {
            field.key
            for field in self.schema.fields
            if field.required_when is not None and field.required_when.matches(values)
        }

    def required_fields(self, mode: str, values: Dict[str, Any]) -> Set[str]:
        required = self.base_required(mode) | self.conditional_required(values)
        return required & self.visibility.visible_fields(mode, values)

    def inactive_conditionals(self, values: Dict[str, Any]) -> Set[str]:
        """Conditionally required fields whose condition currently does not hold."""
        return {
            field.key
            for field in self.schema.fields
            if field.required_when is not None and not field.required_when.matches(values)
        }

    def validate(self, mode: str, values: Dict[str, Any]) -> Dict[str, str]:
        required = self.required_fields(mode, values)
        errors: Dict[str, str] = {}
        for field in self.schema.fields:
            if field.key not in required:
                continue
            value = values.get(field.key)
            if field.repeatable is not None:
                if not _has_entry(field, value):
                    errors[field.key] = field.repeatable.empty_message or f"{field.label} is required"
            elif is_blank(value):
                errors[field.key] = f"{field.label} is required"
        if errors:
            logger.debug("Validation of %s (%s mode) failed for %s", self.schema.id, mode, sorted(errors))
        return errors


def _has_entry(field: FieldDefinition, value: Any) -> bool:
    if not isinstance(value, (list, tuple)):
        return False
    item_key = field.repeatable.item_key if field.repeatable else None
    for item in value:
        if item_key and isinstance(item, dict):
            item = item.get(item_key)
        if not is_blank(item):
            return True
    return False
