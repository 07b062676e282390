"""
Partial update value for products.
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Tuple, Union


class _Unset:
    """Marker for a field the caller did not supply."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass(frozen=True)
class ProductPatch:
    """
    Fields to change on an existing product.

    Each field is either ``UNSET`` or an explicit value. ``0`` and ``0.0``
    are explicit values like any other.
    """

    name: Union[str, _Unset] = UNSET
    price: Union[float, _Unset] = UNSET
    stock: Union[int, _Unset] = UNSET

    @classmethod
    def from_fields(cls, values: Mapping[str, Any]) -> "ProductPatch":
        """
        Build a patch from the supplied fields only.

        Raises:
            ValueError: If a key is not a patchable product field
        """
        allowed = {f.name for f in fields(cls)}
        unknown = set(values) - allowed
        if unknown:
            raise ValueError(f"Unknown product fields: {sorted(unknown)}")
        return cls(**dict(values))

    @property
    def fields_set(self) -> Tuple[str, ...]:
        """Names of the supplied fields, in column order."""
        return tuple(f.name for f in fields(self) if getattr(self, f.name) is not UNSET)

    @property
    def is_empty(self) -> bool:
        return not self.fields_set

    def assignments(self) -> Dict[str, Any]:
        """Column assignments for the UPDATE statement (name, price, stock order)."""
        return {name: getattr(self, name) for name in self.fields_set}
