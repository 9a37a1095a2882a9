"""
Helpers for turning Python values into SQL text fragments and back.

Values are always bound as statement parameters; these helpers only cover
identifiers and the textual vector format understood by the vector column.
"""
import json
from typing import Any, List, Optional, Sequence

from .errors import InvalidInputError, SerializationError


def quote_identifier(name: str) -> str:
    """Quote a table or database name with backticks"""
    if name is None:
        raise InvalidInputError("Identifier shouldn't be null")
    if not isinstance(name, str):
        raise InvalidInputError(f"Identifier should be string type, but got {type(name).__name__}")
    if not name:
        raise InvalidInputError("Identifier shouldn't be empty")
    return "`" + name.replace("`", "``") + "`"


def vector_to_string(vector: Sequence[float]) -> str:
    """Format a vector as the literal accepted by vector columns: [1.0,2.0,3.0]"""
    try:
        return "[" + ",".join(str(float(v)) for v in vector) + "]"
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"Vector must contain only numbers: {e}") from e


def parse_vector(value: Any) -> Optional[List[float]]:
    """Parse a vector column value ('[1,2,3]' text or list) into a list of floats"""
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise SerializationError(f"Invalid vector value: {value[:64]!r}") from e
    return [float(v) for v in value]


def parse_json_value(value: Any) -> Any:
    """Parse a JSON column value; dicts and lists pass through untouched"""
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            raise SerializationError(f"Invalid JSON value: {value[:64]!r}") from e
    return value


def dump_json_value(value: Any) -> str:
    """Serialize a metadata document for a JSON column"""
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Metadata is not JSON serializable: {e}") from e


def decode_id(record_id: Any) -> str:
    """
    Convert an _id column value (varbinary) to str

    UTF-8 is tried first; undecodable bytes fall back to their hex form.
    """
    if isinstance(record_id, str):
        return record_id
    if isinstance(record_id, (bytes, bytearray)):
        try:
            return bytes(record_id).decode("utf-8")
        except UnicodeDecodeError:
            return bytes(record_id).hex()
    return str(record_id)
