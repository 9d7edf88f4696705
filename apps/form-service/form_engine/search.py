from typing import Any, Dict, Iterable, Optional, Set

from form_engine.models import FormSchema


def _as_text(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value if item not in (None, ""))
    return str(value)


def find_matches(search_term: str, values: Dict[str, Any], searchable_keys: Iterable[str]) -> Set[str]:
    """Keys of searchable fields whose current value contains ``search_term``, ignoring case."""
    if not (search_term or "").strip():
        return set()
    term = search_term.lower()
    matched = set()
    for key in searchable_keys:
        value = values.get(key)
        if value is None or value == "":
            continue
        if term in _as_text(value).lower():
            matched.add(key)
    return matched


class SearchHighlighter:
    def __init__(self, schema: FormSchema):
        self.schema = schema
        self.searchable_keys = schema.searchable_keys()

    def matches(
        self,
        search_term: str,
        values: Dict[str, Any],
        searchable_keys: Optional[Iterable[str]] = None,
    ) -> Set[str]:
        keys = self.searchable_keys if searchable_keys is None else set(searchable_keys) & self.searchable_keys
        return find_matches(search_term, values, keys)
