import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Set

from form_engine.models import FieldDefinition, FormSchema, Option, is_blank
from form_engine.reference_data import ReferenceDataProvider

if TYPE_CHECKING:
    from form_engine.store import FormStateStore

logger = logging.getLogger(__name__)


class DependencyResolver:
    """Resolves option lists for dependent fields and cascades resets down the chain."""

    def __init__(self, schema: FormSchema):
        self.schema = schema
        self.reset()

    def reset(self) -> None:
        """Forget option lists registered at runtime, keeping the schema's own."""
        self._registered: Dict[str, Dict[str, List[Option]]] = {
            field.key: {parent: list(options) for parent, options in field.options_by_parent.items()}
            for field in self.schema.fields
            if field.options_depend_on is not None
        }

    def dependents_of(self, key: str) -> List[str]:
        return self.schema.dependents_of(key)

    def options_for(self, key: str, values: Dict[str, Any]) -> List[Option]:
        field = self.schema.field(key)
        if field.options_depend_on is None:
            return list(field.static_options)
        parent_value = values.get(field.options_depend_on)
        if is_blank(parent_value):
            return []
        return list(self._registered.get(key, {}).get(str(parent_value), []))

    def has_options(self, key: str, values: Dict[str, Any]) -> bool:
        """Whether the option list ``key`` offers for ``values`` is known yet."""
        field = self.schema.field(key)
        if field.options_depend_on is None:
            return True
        parent_value = values.get(field.options_depend_on)
        return is_blank(parent_value) or str(parent_value) in self._registered.get(key, {})

    def register_options(self, key: str, parent_value: Any, options: List[Option]) -> None:
        field = self.schema.field(key)
        if field.options_depend_on is None:
            raise ValueError(f"{key} does not depend on another field")
        self._registered.setdefault(key, {})[str(parent_value)] = list(options)

    def clear_options(self, key: str) -> None:
        """Drop every option list registered for ``key`` at runtime and from the schema."""
        self.schema.field(key)
        self._registered[key] = {}

    def cascade(self, parent_key: str, values: Dict[str, Any], known_only: bool = False) -> Dict[str, Any]:
        """Return ``values`` with every stale dependent of ``parent_key`` reset.

        Children are checked against the option list for the parent's current
        value; a child that changes is itself treated as a parent so chains
        resolve in one pass. With ``known_only`` a child whose list has not
        been loaded yet is left as it is.
        """
        values = dict(values)
        pending = [parent_key]
        while pending:
            parent = pending.pop(0)
            parent_value = values.get(parent)
            for child_key in self.dependents_of(parent):
                if known_only and not self.has_options(child_key, values):
                    continue
                child = self.schema.field(child_key)
                current = values.get(child_key)
                allowed = {option.value for option in self.options_for(child_key, values)}
                updated = self._prune(child, current, allowed)
                default = child.default_on_parent_set
                if default is not None and not is_blank(parent_value) and is_blank(updated) and default in allowed:
                    updated = default
                if updated != current:
                    logger.debug("Reset %s after %s changed to %r", child_key, parent, parent_value)
                    values[child_key] = updated
                    pending.append(child_key)
        return values

    def _prune(self, field: FieldDefinition, current: Any, allowed: Set[str]) -> Any:
        if field.repeatable is not None and field.repeatable.item_key:
            item_key = field.repeatable.item_key
            items = []
            for item in current or []:
                if isinstance(item, dict) and not is_blank(item.get(item_key)) and item.get(item_key) not in allowed:
                    item = {**item, item_key: ""}
                items.append(item)
            return items
        if field.kind == "multiselect":
            return [value for value in current or [] if value in allowed]
        if is_blank(current) or current in allowed:
            return current
        return field.empty_value()


class CascadingLookup:
    """Keeps a dependent field's option list in step with remotely fetched children.

    The dependent selection and its list are cleared before the provider is
    asked for the new parent's children, and a response is applied only while
    its request is still the latest one and the lookup is open.
    """

    def __init__(
        self,
        store: "FormStateStore",
        child_key: str,
        provider: ReferenceDataProvider,
    ):
        child = store.schema.field(child_key)
        if child.options_depend_on is None:
            raise ValueError(f"{child_key} does not depend on another field")
        self.store = store
        self.child_key = child_key
        self.parent_key = child.options_depend_on
        self.provider = provider
        self.loading = False
        self.error: Optional[str] = None
        self._token = 0
        self._closed = False

    @property
    def options(self) -> List[Option]:
        return self.store.resolver.options_for(self.child_key, self.store.values)

    def begin(self, parent_value: Any) -> int:
        """Select a new parent value and return the request token for its children."""
        self._token += 1
        self.store.resolver.clear_options(self.child_key)
        self.store.set_field(self.parent_key, parent_value)
        self.error = None
        self.loading = not is_blank(parent_value)
        self.store.set_loading(self.loading, None)
        return self._token

    def select_parent(self, parent_value: Any) -> int:
        token = self.begin(parent_value)
        if is_blank(parent_value):
            return token
        try:
            children = self.provider.fetch_children(parent_value)
        except Exception as exc:
            logger.warning("Fetching %s for %s=%r failed: %s", self.child_key, self.parent_key, parent_value, exc)
            self.fail(token, str(exc))
            return token
        self.deliver(token, parent_value, children)
        return token

    def deliver(self, token: int, parent_value: Any, options: List[Option]) -> bool:
        if self._closed or token != self._token:
            logger.debug("Dropping stale %s response for %r", self.child_key, parent_value)
            return False
        self.store.resolver.register_options(self.child_key, parent_value, options)
        self.loading = False
        self.store.set_loading(False, None)
        return True

    def fail(self, token: int, message: str) -> bool:
        if self._closed or token != self._token:
            return False
        self.loading = False
        self.error = message
        self.store.set_loading(False, message)
        return True

    def close(self) -> None:
        self._closed = True
        self.loading = False
