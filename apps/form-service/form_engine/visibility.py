from typing import Any, Dict, List, Set

from form_engine.models import FORM_MODES, FormSchema


class VisibilityEvaluator:
    def __init__(self, schema: FormSchema):
        self.schema = schema

    def visible_fields(self, mode: str, values: Dict[str, Any]) -> Set[str]:
        """Return the keys that render for ``mode``.

        Quick mode projects the full-mode set onto the schema's quick list, so
        it can only ever hide fields. Values of hidden fields are left alone.
        """
        if mode not in FORM_MODES:
            raise ValueError(f"unknown form mode: {mode}")
        visible = {
            field.key
            for field in self.schema.fields
            if field.visible_when is None or field.visible_when.matches(values)
        }
        if mode == "quick":
            visible &= self.schema.quick_mode_fields
        return visible

    def is_visible(self, key: str, mode: str, values: Dict[str, Any]) -> bool:
        self.schema.field(key)
        return key in self.visible_fields(mode, values)

    def visible_sections(self, mode: str, values: Dict[str, Any]) -> List[str]:
        visible = self.visible_fields(mode, values)
        return [
            section.key
            for section in self.schema.ordered_sections()
            if any(field.key in visible for field in self.schema.fields_in(section.key))
        ]
