"""Template lookup backed by the workflow definition's `templates` section."""

from collections.abc import Mapping
from typing import Any

from chatgraph.capabilities.base import TemplateStore


class DictTemplateStore(TemplateStore):
    """
    Templates are either plain strings or `{language: text}` mappings.

    Example:
        store = DictTemplateStore(
            {"greeting": {"english": "Hi!", "malay": "Hai!"}, "bye": "Bye"},
            default_language="english",
        )
        store.get("greeting", "malay")   # "Hai!"
        store.get("greeting", "tamil")   # "Hi!"
    """

    def __init__(self, templates: Mapping[str, Any] | None = None, default_language: str = "english"):
        self._templates = dict(templates or {})
        self.default_language = default_language

    def get(self, key: str, language: str) -> str | None:
        entry = self._templates.get(key)
        if isinstance(entry, str):
            return entry
        if isinstance(entry, Mapping):
            text = entry.get(language) or entry.get(self.default_language)
            return text if isinstance(text, str) else None
        return None

    def __contains__(self, key: str) -> bool:
        return key in self._templates

    def keys(self) -> list[str]:
        return list(self._templates)
