import copy
from typing import Any, Dict, List, Literal, Optional, Set

from pydantic import BaseModel, Field, PrivateAttr, model_validator

FieldKind = Literal[
    "text",
    "email",
    "date",
    "datetime",
    "number",
    "select",
    "multiselect",
    "textarea",
    "checkbox",
    "file-list",
    "repeatable-list",
]
FormMode = Literal["full", "quick"]
ConditionOp = Literal["equals", "not_equals", "in", "filled", "empty"]

FORM_MODES = ("full", "quick")
COLLECTION_KINDS = ("file-list", "repeatable-list")


class UnknownFieldError(KeyError):
    """Raised when a field key is not declared in the form schema."""


class UnknownSectionError(KeyError):
    """Raised when a section key is not declared in the form schema."""


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return not value


class Option(BaseModel):
    value: str
    label: str


class Condition(BaseModel):
    """A single rule on another field's current value."""

    field: str
    op: ConditionOp = "equals"
    value: Any = None

    def matches(self, values: Dict[str, Any]) -> bool:
        current = values.get(self.field)
        if self.op == "equals":
            return current == self.value
        if self.op == "not_equals":
            return current != self.value
        if self.op == "in":
            return current in (self.value or [])
        if self.op == "filled":
            return not is_blank(current)
        return is_blank(current)


class RepeatableSpec(BaseModel):
    min_items: int = Field(default=1, ge=0)
    max_items: int = Field(default=5, ge=1)
    item_default: Any = ""
    item_key: Optional[str] = None
    empty_message: Optional[str] = None

    @model_validator(mode="after")
    def _check_bounds(self) -> "RepeatableSpec":
        if self.min_items > self.max_items:
            raise ValueError(f"min_items {self.min_items} exceeds max_items {self.max_items}")
        return self


class FieldDefinition(BaseModel):
    key: str
    label: str
    section: str
    kind: FieldKind = "text"
    required: bool = False
    searchable: bool = False
    default: Any = ""
    static_options: List[Option] = Field(default_factory=list)
    options_depend_on: Optional[str] = None
    options_by_parent: Dict[str, List[Option]] = Field(default_factory=dict)
    default_on_parent_set: Optional[str] = None
    required_when: Optional[Condition] = None
    visible_when: Optional[Condition] = None
    repeatable: Optional[RepeatableSpec] = None

    @model_validator(mode="after")
    def _default_collection_bounds(self) -> "FieldDefinition":
        if self.kind in COLLECTION_KINDS and self.repeatable is None:
            min_items = 0 if self.kind == "file-list" else 1
            self.repeatable = RepeatableSpec(min_items=min_items)
        if self.default_on_parent_set is not None and self.options_depend_on is None:
            raise ValueError(f"{self.key}: default_on_parent_set requires options_depend_on")
        return self

    def empty_value(self) -> Any:
        """Value a field takes when it is cleared (reset, cascade or pruning)."""
        if self.repeatable is not None:
            return [copy.deepcopy(self.repeatable.item_default) for _ in range(self.repeatable.min_items)]
        if self.kind == "multiselect":
            return []
        if self.kind == "checkbox":
            return False
        return ""

    def initial_value(self) -> Any:
        if self.repeatable is not None and not self.default:
            return self.empty_value()
        return copy.deepcopy(self.default)


class SectionDefinition(BaseModel):
    key: str
    label: str
    order: int = 0


class ScrollThresholds(BaseModel):
    trigger_ratio: float = Field(default=0.2, ge=0.0, le=1.0)
    min_visible_ratio: float = Field(default=0.1, ge=0.0, le=1.0)
    debounce_ms: int = Field(default=5, ge=0)


class FormSchema(BaseModel):
    id: str
    title: str
    sections: List[SectionDefinition] = Field(default_factory=list)
    fields: List[FieldDefinition] = Field(default_factory=list)
    quick_mode_fields: Set[str] = Field(default_factory=set)
    scroll: ScrollThresholds = Field(default_factory=ScrollThresholds)

    _by_key: Dict[str, FieldDefinition] = PrivateAttr(default_factory=dict)
    _children: Dict[str, List[str]] = PrivateAttr(default_factory=dict)

    @model_validator(mode="after")
    def _check_consistency(self) -> "FormSchema":
        if not self.sections:
            raise ValueError(f"form {self.id} declares no sections")

        section_keys = [section.key for section in self.sections]
        if len(set(section_keys)) != len(section_keys):
            raise ValueError(f"form {self.id} has duplicate section keys")

        by_key: Dict[str, FieldDefinition] = {}
        for field in self.fields:
            if field.key in by_key:
                raise ValueError(f"duplicate field key: {field.key}")
            if field.section not in section_keys:
                raise ValueError(f"{field.key}: unknown section {field.section}")
            by_key[field.key] = field

        for field in self.fields:
            parent = field.options_depend_on
            if parent is not None and parent not in by_key:
                raise ValueError(f"{field.key}: options depend on undeclared field {parent}")
            for rule in (field.required_when, field.visible_when):
                if rule is not None and rule.field not in by_key:
                    raise ValueError(f"{field.key}: rule references undeclared field {rule.field}")

        for field in self.fields:
            seen = {field.key}
            parent = field.options_depend_on
            while parent is not None:
                if parent in seen:
                    raise ValueError(f"dependency cycle through {field.key}")
                seen.add(parent)
                parent = by_key[parent].options_depend_on

        unknown_quick = self.quick_mode_fields - set(by_key)
        if unknown_quick:
            raise ValueError(f"quick mode lists undeclared fields: {sorted(unknown_quick)}")
        return self

    def model_post_init(self, __context: Any) -> None:
        self._by_key = {field.key: field for field in self.fields}
        self._children = {}
        for field in self.fields:
            if field.options_depend_on is not None:
                self._children.setdefault(field.options_depend_on, []).append(field.key)

    def field(self, key: str) -> FieldDefinition:
        try:
            return self._by_key[key]
        except KeyError:
            raise UnknownFieldError(key) from None

    def has_field(self, key: str) -> bool:
        return key in self._by_key

    def dependents_of(self, key: str) -> List[str]:
        return list(self._children.get(key, []))

    def ordered_sections(self) -> List[SectionDefinition]:
        return sorted(self.sections, key=lambda section: section.order)

    def first_section(self) -> str:
        return self.ordered_sections()[0].key

    def has_section(self, key: str) -> bool:
        return any(section.key == key for section in self.sections)

    def fields_in(self, section_key: str) -> List[FieldDefinition]:
        return [field for field in self.fields if field.section == section_key]

    def searchable_keys(self) -> Set[str]:
        return {field.key for field in self.fields if field.searchable}

    def default_values(self) -> Dict[str, Any]:
        return {field.key: field.initial_value() for field in self.fields}


class FormState(BaseModel):
    values: Dict[str, Any] = Field(default_factory=dict)
    errors: Dict[str, str] = Field(default_factory=dict)
    active_section: str
    search_term: str = ""
    mode: FormMode = "full"
    version: int = 0
    loading: bool = False
    collaborator_error: Optional[str] = None
