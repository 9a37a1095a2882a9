"""
Database model definition
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional


@dataclass(frozen=True)
class Database:
    """
    A database (schema) inside a tenant.

    Equality and hashing use name and tenant only.
    """
    name: str
    tenant: Optional[str] = None
    charset: Optional[str] = field(default=None, compare=False)
    collation: Optional[str] = field(default=None, compare=False)

    @classmethod
    def from_row(cls, row: Mapping[str, Any], tenant: Optional[str] = None) -> "Database":
        """Build from an information_schema.SCHEMATA row"""
        return cls(
            name=row["SCHEMA_NAME"],
            tenant=tenant,
            charset=row.get("DEFAULT_CHARACTER_SET_NAME"),
            collation=row.get("DEFAULT_COLLATION_NAME"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "tenant": self.tenant, "charset": self.charset, "collation": self.collation}

    def __str__(self):
        return self.name
