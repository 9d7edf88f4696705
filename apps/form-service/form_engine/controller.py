import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set

from form_engine import line_items
from form_engine.dependencies import CascadingLookup
from form_engine.models import FieldDefinition, FormSchema, Option
from form_engine.reference_data import ReferenceDataProvider
from form_engine.search import SearchHighlighter
from form_engine.store import FormStateStore

logger = logging.getLogger(__name__)

SubmitHandler = Callable[[Dict[str, Any]], None]


class FormController:
    """Drives one dialog: open, edit, submit or cancel, and repeatable-list slots.

    ``on_submit`` is called once per successful submission; anything it raises
    propagates to the caller and the state is left untouched.
    """

    def __init__(
        self,
        schema: FormSchema,
        on_submit: SubmitHandler,
        on_close: Optional[Callable[[], None]] = None,
        store: Optional[FormStateStore] = None,
    ):
        self.schema = schema
        self.on_submit = on_submit
        self.on_close = on_close
        self.store = store or FormStateStore(schema)
        self.highlighter = SearchHighlighter(schema)
        self.is_open = False
        self._lookups: List[CascadingLookup] = []

    def open(self, record: Optional[Mapping[str, Any]] = None) -> None:
        if record:
            self.store.hydrate(record)
        else:
            self.store.discard()
        self.is_open = True
        logger.info("Opened %s form (%s)", self.schema.id, "edit" if record else "create")

    def set_field(self, key: str, value: Any) -> None:
        self.store.set_field(key, value)

    def set_mode(self, mode: str) -> None:
        self.store.set_mode(mode)

    def set_search_term(self, term: str) -> None:
        self.store.set_search_term(term)

    def submit(self) -> bool:
        errors = self.store.validation.validate(self.store.mode, self.store.values)
        if errors:
            self.store.set_errors(errors)
            logger.info("Submit of %s blocked by %d errors", self.schema.id, len(errors))
            return False
        self.on_submit(self._payload())
        logger.info("Submitted %s form", self.schema.id)
        self.store.reset_to_initial()
        self.close()
        return True

    def _payload(self) -> Dict[str, Any]:
        payload = self.store.snapshot().values
        totals = [self.grand_total(field.key) for field in self.schema.fields if line_items.is_line_item_field(field)]
        if totals:
            payload["grandTotal"] = sum(totals)
        return payload

    def cancel(self) -> None:
        self.close()

    def close(self) -> None:
        for lookup in self._lookups:
            lookup.close()
        self._lookups = []
        self.store.discard()
        self.is_open = False
        if self.on_close is not None:
            self.on_close()

    def lookup(self, child_key: str, provider: ReferenceDataProvider) -> CascadingLookup:
        """Bind a remote lookup to this dialog; it stops applying responses once the dialog closes."""
        cascading = CascadingLookup(self.store, child_key, provider)
        self._lookups.append(cascading)
        return cascading

    def _collection(self, key: str) -> FieldDefinition:
        field = self.schema.field(key)
        if field.repeatable is None:
            raise ValueError(f"{key} is not a repeatable field")
        return field

    def _items(self, key: str) -> List[Any]:
        return list(self.store.values.get(key) or [])

    def add_item(self, key: str) -> bool:
        field = self._collection(key)
        items = self._items(key)
        if len(items) >= field.repeatable.max_items:
            return False
        items.append(line_items.new_item(items, field.repeatable.item_default))
        self.store.set_field(key, items)
        return True

    def remove_item(self, key: str, index: int) -> bool:
        field = self._collection(key)
        items = self._items(key)
        if len(items) <= field.repeatable.min_items or not 0 <= index < len(items):
            return False
        del items[index]
        self.store.set_field(key, items)
        return True

    def update_item(self, key: str, index: int, value: Any) -> bool:
        self._collection(key)
        items = self._items(key)
        if not 0 <= index < len(items):
            return False
        items[index] = line_items.apply_update(items[index], value)
        self.store.set_field(key, items)
        return True

    def attach_files(self, key: str, handles: Iterable[Any]) -> int:
        """Append opaque file handles up to the field's limit; returns how many were kept."""
        field = self._collection(key)
        items = [item for item in self._items(key) if item is not None]
        room = field.repeatable.max_items - len(items)
        accepted = list(handles)[: max(0, room)]
        if accepted:
            self.store.set_field(key, items + accepted)
        return len(accepted)

    def remove_file(self, key: str, index: int) -> bool:
        return self.remove_item(key, index)

    def visible_fields(self) -> Set[str]:
        return self.store.visibility.visible_fields(self.store.mode, self.store.values)

    def visible_sections(self) -> List[str]:
        return self.store.visibility.visible_sections(self.store.mode, self.store.values)

    def required_fields(self) -> Set[str]:
        return self.store.validation.required_fields(self.store.mode, self.store.values)

    def options_for(self, key: str) -> List[Option]:
        return self.store.resolver.options_for(key, self.store.values)

    def matches(self) -> Set[str]:
        return self.highlighter.matches(self.store.search_term, self.store.values)

    def is_match(self, key: str) -> bool:
        return key in self.matches()

    def grand_total(self, key: str) -> float:
        self._collection(key)
        return line_items.grand_total(self._items(key))
