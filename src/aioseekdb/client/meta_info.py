"""
Naming convention for collection tables and their fixed columns.
"""
from typing import Optional


class CollectionFieldNames:
    ID = "_id"
    DOCUMENT = "document"
    EMBEDDING = "embedding"
    METADATA = "metadata"

    ALL_FIELDS = [ID, DOCUMENT, EMBEDDING, METADATA]


class CollectionNames:
    PREFIX = "c$v1$"

    @staticmethod
    def table_name(collection_name: str) -> str:
        return f"{CollectionNames.PREFIX}{collection_name}"

    @staticmethod
    def collection_name(table_name: str) -> Optional[str]:
        """Inverse of table_name(); None for tables that are not collections"""
        if table_name.startswith(CollectionNames.PREFIX) and len(table_name) > len(CollectionNames.PREFIX):
            return table_name[len(CollectionNames.PREFIX):]
        return None
