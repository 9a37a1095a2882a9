"""
Error types raised by aioseekdb

Every error raised by the library derives from SeekDBError. Driver errors coming
from pymysql/aiomysql are classified into SeekDBConnectionError, NotFoundError
or SqlError by classify_driver_error().
"""
from typing import Optional

import pymysql

# MySQL client/server error codes that indicate a transport problem
_CONNECTION_ERROR_CODES = frozenset({2002, 2003, 2006, 2013, 2055})
# Unknown database / table doesn't exist / unknown table
_NOT_FOUND_ERROR_CODES = frozenset({1049, 1146, 1051})


class SeekDBError(Exception):
    """Base class for all aioseekdb errors"""


class SeekDBConnectionError(SeekDBError):
    """Pool or transport failure"""


class SqlError(SeekDBError):
    """Statement failure that is not classified any further (includes key conflicts)"""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


class NotFoundError(SeekDBError, LookupError):
    """Missing collection or database"""


class ConfigError(SeekDBError):
    """Missing or invalid configuration, e.g. an unresolvable vector dimension"""


class EmbeddingError(SeekDBError):
    """Text-to-vector derivation was required but is unavailable or failed"""


class InvalidInputError(SeekDBError, ValueError):
    """Precondition violation detected before any statement is issued"""


class SerializationError(SeekDBError, ValueError):
    """Malformed structured value"""


def driver_error_code(exc: BaseException) -> Optional[int]:
    """Return the numeric MySQL error code carried by a pymysql error, if any"""
    if isinstance(exc, SqlError):
        return exc.code
    args = getattr(exc, "args", ())
    if args and isinstance(args[0], int):
        return args[0]
    return None


def classify_driver_error(exc: BaseException, context: str = "") -> SeekDBError:
    """
    Map a driver exception onto the aioseekdb error taxonomy

    Args:
        exc: exception raised by pymysql/aiomysql (or an OSError while connecting)
        context: short description of the failed operation, prefixed to the message

    Returns:
        SeekDBError subclass instance; callers raise it ``from exc``
    """
    if isinstance(exc, SeekDBError):
        return exc

    code = driver_error_code(exc)
    message = str(exc.args[1]) if len(getattr(exc, "args", ())) > 1 else str(exc)
    if context:
        message = f"{context}: {message}"

    if isinstance(exc, (pymysql.err.InterfaceError, OSError)):
        return SeekDBConnectionError(message)
    if isinstance(exc, pymysql.err.OperationalError) and code in _CONNECTION_ERROR_CODES:
        return SeekDBConnectionError(message)
    if code in _NOT_FOUND_ERROR_CODES:
        return NotFoundError(message)
    return SqlError(message, code=code)
