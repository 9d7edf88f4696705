import copy
import logging
from typing import Any, Dict, Mapping, Optional, Set

from form_engine.dependencies import DependencyResolver
from form_engine.models import FORM_MODES, FormSchema, FormState, UnknownSectionError
from form_engine.validation import ValidationEngine
from form_engine.visibility import VisibilityEvaluator

logger = logging.getLogger(__name__)


def _copy_values(values: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy values one level deep; file handles inside lists are shared, not cloned."""
    copied: Dict[str, Any] = {}
    for key, value in values.items():
        if isinstance(value, list):
            value = [dict(item) if isinstance(item, dict) else item for item in value]
        copied[key] = value
    return copied


class FormStateStore:
    """Holds the live state of one open dialog.

    Every mutation builds the next state completely and swaps it in with a
    single assignment, bumping ``version`` once.
    """

    def __init__(self, schema: FormSchema, resolver: Optional[DependencyResolver] = None):
        self.schema = schema
        self.resolver = resolver or DependencyResolver(schema)
        self.visibility = VisibilityEvaluator(schema)
        self.validation = ValidationEngine(schema, self.visibility)
        self._initial_values = schema.default_values()
        self._state = FormState(values=_copy_values(self._initial_values), active_section=schema.first_section())

    @property
    def state(self) -> FormState:
        return self._state

    @property
    def values(self) -> Dict[str, Any]:
        return self._state.values

    @property
    def errors(self) -> Dict[str, str]:
        return self._state.errors

    @property
    def mode(self) -> str:
        return self._state.mode

    @property
    def active_section(self) -> str:
        return self._state.active_section

    @property
    def search_term(self) -> str:
        return self._state.search_term

    @property
    def version(self) -> int:
        return self._state.version

    def snapshot(self) -> FormState:
        return self._state.model_copy(
            update={"values": _copy_values(self._state.values), "errors": dict(self._state.errors)}
        )

    def _commit(self, **changes: Any) -> None:
        changes["version"] = self._state.version + 1
        self._state = self._state.model_copy(update=changes)

    def _fill_slots(self, key: str, value: Any) -> Any:
        """Pad a collection value up to its field's ``min_items``."""
        field = self.schema.field(key)
        if field.repeatable is None:
            return value
        items = list(value) if isinstance(value, (list, tuple)) else []
        while len(items) < field.repeatable.min_items:
            items.append(copy.deepcopy(field.repeatable.item_default))
        return items

    def _clear_inactive(self, values: Dict[str, Any]) -> Set[str]:
        cleared = set()
        for conditional in self.validation.inactive_conditionals(values):
            field = self.schema.field(conditional)
            if values.get(conditional) != field.empty_value():
                values[conditional] = field.empty_value()
            cleared.add(conditional)
        return cleared

    def set_field(self, key: str, value: Any) -> None:
        values = _copy_values(self._state.values)
        values[key] = self._fill_slots(key, value)
        values = self.resolver.cascade(key, values)
        cleared = self._clear_inactive(values)

        errors = {
            error_key: message
            for error_key, message in self._state.errors.items()
            if error_key != key and error_key not in cleared
        }
        self._commit(values=values, errors=errors)

    def set_mode(self, mode: str) -> None:
        if mode not in FORM_MODES:
            raise ValueError(f"unknown form mode: {mode}")
        if mode == self._state.mode:
            return
        visible = self.visibility.visible_fields(mode, self._state.values)
        errors = {key: message for key, message in self._state.errors.items() if key in visible}
        logger.debug("Form %s switched to %s mode", self.schema.id, mode)
        self._commit(mode=mode, errors=errors)

    def set_search_term(self, term: str) -> None:
        self._commit(search_term=term or "")

    def set_active_section(self, key: str) -> None:
        if not self.schema.has_section(key):
            raise UnknownSectionError(key)
        if key != self._state.active_section:
            self._commit(active_section=key)

    def set_errors(self, errors: Mapping[str, str]) -> None:
        self._commit(errors={key: message for key, message in errors.items() if self.schema.has_field(key)})

    def set_loading(self, loading: bool, error: Optional[str] = None) -> None:
        self._commit(loading=loading, collaborator_error=error)

    def hydrate(self, record: Mapping[str, Any]) -> None:
        """Load an existing record for editing; it becomes the state reset returns to.

        The record goes through the same rules as an edit: collections are
        padded to their minimum, dependents whose option list is known are
        pruned against it, and inactive conditional fields are cleared.
        """
        values = self.schema.default_values()
        for key, value in record.items():
            if not self.schema.has_field(key):
                logger.debug("Ignoring %s on %s record; not in schema", key, self.schema.id)
                continue
            if value is None:
                continue
            values[key] = self._fill_slots(key, value)
        for field in self.schema.fields:
            if self.schema.dependents_of(field.key):
                values = self.resolver.cascade(field.key, values, known_only=True)
        self._clear_inactive(values)
        self._initial_values = values
        self.reset_to_initial()

    def reset_to_initial(self) -> None:
        self._state = FormState(
            values=_copy_values(self._initial_values),
            active_section=self.schema.first_section(),
            version=self._state.version + 1,
        )

    def discard(self) -> None:
        """Forget any hydrated record and runtime option lists; return to schema defaults."""
        self.resolver.reset()
        self._initial_values = self.schema.default_values()
        self.reset_to_initial()
