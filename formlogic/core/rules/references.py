"""Field references and the data context conditions are evaluated against."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from formlogic.config import get_settings


class _Absent:
    """Marker for a value that was never captured."""

    _instance: Optional["_Absent"] = None

    def __new__(cls) -> "_Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"

    def __reduce__(self):
        return (_Absent, ())


ABSENT = _Absent()


def is_absent(value: Any) -> bool:
    """Check if a resolved value is the absent marker."""
    return value is ABSENT


def parse_field_reference(reference: str) -> Tuple[Optional[str], str]:
    """Split a field reference into (module_key, field_id).

    The split happens on the first '.', so "Step1.address.city" names field
    "address.city" in module "Step1". A leading or trailing dot does not
    count as a module prefix.

    Args:
        reference: "fieldId" or "moduleKey.fieldId"

    Returns:
        Tuple of module key (None when unprefixed) and field id

    Raises:
        ValueError: If the reference is empty
    """
    if reference is None or not str(reference).strip():
        raise ValueError("Field reference cannot be null or empty")

    dot_index = reference.find(".")
    if 0 < dot_index < len(reference) - 1:
        return reference[:dot_index], reference[dot_index + 1:]

    return None, reference


class DataContext(BaseModel):
    """Field values of a workflow, organized by module.

    Module keys can be numeric step ids ("1") or named keys ("PersonalInfo").
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    modules: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    current_module_key: Optional[str] = None

    def get_field_value(self, module_key: Optional[str], field_id: str) -> Any:
        """Get a field value, or ABSENT if the module or field is missing.

        Args:
            module_key: Module key. If None, uses the current module.
            field_id: Field identifier

        Returns:
            Stored value, or ABSENT (a stored None also counts as absent)
        """
        target = module_key
        if target is None:
            target = self.current_module_key or get_settings().default_module_key

        module_data = self.modules.get(target)
        if module_data is None:
            return ABSENT

        value = module_data.get(field_id)
        return ABSENT if value is None else value

    def set_field_value(self, module_key: str, field_id: str, value: Any) -> None:
        """Set a field value in a module, creating the module if needed."""
        self.modules.setdefault(module_key, {})[field_id] = value

    def has_module(self, module_key: str) -> bool:
        return module_key in self.modules

    def get_module_data(self, module_key: str) -> Optional[Dict[str, Any]]:
        return self.modules.get(module_key)

    @property
    def module_keys(self) -> Iterable[str]:
        return self.modules.keys()

    @classmethod
    def from_single_module(
        cls,
        module_key: str,
        field_data: Dict[str, Any],
    ) -> "DataContext":
        """Create a context holding one module, which becomes current."""
        return cls(modules={module_key: dict(field_data)}, current_module_key=module_key)

    @classmethod
    def empty(cls) -> "DataContext":
        return cls()


def resolve_value(reference: str, context: DataContext) -> Any:
    """Resolve a field reference against a data context.

    Args:
        reference: Field reference string
        context: Data context

    Returns:
        The raw value, or ABSENT when it was never populated
    """
    module_key, field_id = parse_field_reference(reference)
    return context.get_field_value(module_key, field_id)
