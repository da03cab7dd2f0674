"""Request context values carrying diagnostic metadata for a request flow.

A ``RequestContext`` is a small record of string fields describing the request
being served: who asked, under which correlator, for which operation. The
fields end up in every log line emitted on behalf of the request, so values are
stored as strings (the logger renders them verbatim) and typed accessors parse
them back on read.

Contexts have value semantics. Every mutator returns a new instance and leaves
the receiver untouched, so a context that has been published to a flow can be
read concurrently without coordination.
"""

import re
import uuid
from collections.abc import Iterator, Mapping
from typing import Final

type FieldValue = str | int | bool | None

_TRUE: Final[str] = "true"
_FALSE: Final[str] = "false"
_INTEGER_PATTERN: Final[re.Pattern[str]] = re.compile(r"[+-]?[0-9]+")
_INT_MIN: Final[int] = -(2**63)
_INT_MAX: Final[int] = 2**63 - 1


class ContextField:
    """Reserved context keys.

    The values double as the field names in structured log output, so they
    are kept short.
    """

    TRANSACTION_ID: Final[str] = "trans"
    CORRELATOR: Final[str] = "corr"
    OPERATION: Final[str] = "op"
    SERVICE: Final[str] = "svc"
    COMPONENT: Final[str] = "comp"
    USER: Final[str] = "user"
    REALM: Final[str] = "realm"
    ALARM: Final[str] = "alarm"

    ALL: Final[tuple[str, ...]] = (
        TRANSACTION_ID,
        CORRELATOR,
        OPERATION,
        SERVICE,
        COMPONENT,
        USER,
        REALM,
        ALARM,
    )


def _serialize(value: FieldValue) -> str | None:
    # bool is checked first because it is a subclass of int
    if value is None:
        return None
    if isinstance(value, bool):
        return _TRUE if value else _FALSE
    return str(value)


class RequestContext:
    """Immutable key/value record of diagnostic fields for one request flow.

    Args:
        fields: Initial field values. Non-string values are serialized and
            ``None`` values are dropped.

    Examples:
        >>> ctx = RequestContext().set_correlator("abc-123").set_int("retries", 2)
        >>> ctx.correlator
        'abc-123'
        >>> ctx.get_int("retries")
        2
        >>> RequestContext().correlator is None
        True
    """

    __slots__ = ("_fields",)

    def __init__(self, fields: Mapping[str, FieldValue] | None = None) -> None:
        self._fields: dict[str, str] = {}
        if fields:
            for key, value in fields.items():
                serialized = _serialize(value)
                if serialized is not None:
                    self._fields[key] = serialized

    @classmethod
    def _from_fields(cls, fields: dict[str, str]) -> "RequestContext":
        instance = cls.__new__(cls)
        instance._fields = fields
        return instance

    # Generic accessors

    def set(self, key: str, value: FieldValue) -> "RequestContext":
        """Return a new context with ``key`` set to ``value``.

        Args:
            key: Field name. Any string is accepted.
            value: Field value. ``None`` removes the key.

        Returns:
            RequestContext: The updated copy.
        """
        fields = dict(self._fields)
        serialized = _serialize(value)
        if serialized is None:
            fields.pop(key, None)
        else:
            fields[key] = serialized
        return self._from_fields(fields)

    def get(self, key: str) -> str | None:
        """Return the raw string value of ``key`` or None when unset."""
        return self._fields.get(key)

    def merge(self, values: Mapping[str, FieldValue]) -> "RequestContext":
        """Return a new context with all ``values`` applied.

        Args:
            values: Fields to set. ``None`` values remove the key.

        Returns:
            RequestContext: The updated copy.
        """
        fields = dict(self._fields)
        for key, value in values.items():
            serialized = _serialize(value)
            if serialized is None:
                fields.pop(key, None)
            else:
                fields[key] = serialized
        return self._from_fields(fields)

    def set_string(self, key: str, value: str | None) -> "RequestContext":
        """Return a new context with a string field."""
        return self.set(key, value)

    def get_string(self, key: str) -> str | None:
        """Return a string field or None when unset."""
        return self._fields.get(key)

    def set_int(self, key: str, value: int | None) -> "RequestContext":
        """Return a new context with an integer field stored as its decimal form."""
        return self.set(key, value)

    def get_int(self, key: str) -> int | None:
        """Parse a field as an integer.

        Args:
            key: Field name.

        Returns:
            int | None: The parsed value, or None when the key is unset, the
                stored string is not a plain signed decimal or it falls outside
                the signed 64-bit range.
        """
        raw = self._fields.get(key)
        if raw is None or not _INTEGER_PATTERN.fullmatch(raw):
            return None
        try:
            value = int(raw)
        except ValueError:
            return None
        if not _INT_MIN <= value <= _INT_MAX:
            return None
        return value

    def set_bool(self, key: str, value: bool | None) -> "RequestContext":
        """Return a new context with a boolean field stored as true/false."""
        return self.set(key, value)

    def get_bool(self, key: str) -> bool | None:
        """Parse a field as a boolean.

        Only ``true`` and ``false`` (any case) are recognized.

        Args:
            key: Field name.

        Returns:
            bool | None: The parsed value, or None when the key is unset or
                holds anything else.
        """
        raw = self._fields.get(key)
        if raw is None:
            return None
        lowered = raw.strip().lower()
        if lowered == _TRUE:
            return True
        if lowered == _FALSE:
            return False
        return None

    # Reserved fields

    @property
    def transaction_id(self) -> str | None:
        """Per-request identifier."""
        return self._fields.get(ContextField.TRANSACTION_ID)

    def set_transaction_id(self, transaction_id: str | None) -> "RequestContext":
        return self.set(ContextField.TRANSACTION_ID, transaction_id)

    @property
    def correlator(self) -> str | None:
        """End-to-end business transaction identifier."""
        return self._fields.get(ContextField.CORRELATOR)

    def set_correlator(self, correlator: str | None) -> "RequestContext":
        return self.set(ContextField.CORRELATOR, correlator)

    @property
    def operation(self) -> str | None:
        return self._fields.get(ContextField.OPERATION)

    def set_operation(self, operation: str | None) -> "RequestContext":
        return self.set(ContextField.OPERATION, operation)

    @property
    def service(self) -> str | None:
        return self._fields.get(ContextField.SERVICE)

    def set_service(self, service: str | None) -> "RequestContext":
        return self.set(ContextField.SERVICE, service)

    @property
    def component(self) -> str | None:
        return self._fields.get(ContextField.COMPONENT)

    def set_component(self, component: str | None) -> "RequestContext":
        return self.set(ContextField.COMPONENT, component)

    @property
    def user(self) -> str | None:
        return self._fields.get(ContextField.USER)

    def set_user(self, user: str | None) -> "RequestContext":
        return self.set(ContextField.USER, user)

    @property
    def realm(self) -> str | None:
        return self._fields.get(ContextField.REALM)

    def set_realm(self, realm: str | None) -> "RequestContext":
        return self.set(ContextField.REALM, realm)

    @property
    def alarm(self) -> str | None:
        return self._fields.get(ContextField.ALARM)

    def set_alarm(self, alarm: str | None) -> "RequestContext":
        return self.set(ContextField.ALARM, alarm)

    # Export

    def to_map(self) -> dict[str, str]:
        """Export all fields as a fresh dictionary.

        Returns:
            dict[str, str]: A copy of the field map, safe to mutate.
        """
        return dict(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __contains__(self, key: object) -> bool:
        return key in self._fields

    def __iter__(self) -> Iterator[str]:
        return iter(dict(self._fields))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RequestContext):
            return NotImplemented
        return self._fields == other._fields

    def __hash__(self) -> int:
        return hash(frozenset(self._fields.items()))

    def __repr__(self) -> str:
        return f"RequestContext({self._fields!r})"


def generate_transaction_id() -> str:
    """Generate a unique transaction ID for a single request.

    Returns:
        str: A string representation of a UUID4.

    Examples:
        >>> len(generate_transaction_id())
        36
    """
    return str(uuid.uuid4())


def generate_correlator() -> str:
    """Generate a correlator for requests that did not bring one.

    Correlators can span several requests of the same business transaction,
    while transaction IDs are unique per request.

    Returns:
        str: A string representation of a UUID4.
    """
    return str(uuid.uuid4())
