"""Checked access to loosely-typed CDP payloads.

CDP params and results are arbitrary JSON. ``Payload`` wraps one decoded JSON
value and exposes accessors that raise ``ResponseShapeError`` naming the exact
path that did not match, instead of scattering ``isinstance`` checks over the
call sites.

Example:
    >>> response = Payload({'id': 3, 'result': {'result': {'type': 'boolean', 'value': True}}})
    >>> response.at('result', 'result', 'value').as_bool()
    True
"""

from typing import Any, Union

from greenlight.exceptions import ResponseShapeError

JSONValue = Union[str, int, float, bool, None, list['JSONValue'], dict[str, 'JSONValue']]


def _kind(value: Any) -> str:
    if value is None:
        return 'null'
    if isinstance(value, bool):
        return 'bool'
    if isinstance(value, (int, float)):
        return 'number'
    if isinstance(value, str):
        return 'string'
    if isinstance(value, list):
        return 'list'
    if isinstance(value, dict):
        return 'mapping'
    return type(value).__name__


class Payload:
    """A JSON value (string, number, bool, null, list or mapping) with typed accessors."""

    __slots__ = ('_value', '_path')

    def __init__(self, value: JSONValue, path: str = '$'):
        self._value = value
        self._path = path

    @property
    def value(self) -> JSONValue:
        """The wrapped JSON value, unchecked."""
        return self._value

    @property
    def path(self) -> str:
        """Location of this value inside the outermost payload, e.g. ``$.result.result``."""
        return self._path

    @property
    def kind(self) -> str:
        return _kind(self._value)

    def _mismatch(self, expected: str, detail: str | None = None) -> ResponseShapeError:
        message = detail or f'Expected {expected} at {self._path}, got {self.kind}: {self._value!r:.200}'
        return ResponseShapeError(message, path=self._path, expected=expected)

    def __contains__(self, key: object) -> bool:
        return isinstance(self._value, dict) and key in self._value

    def get(self, key: str) -> 'Payload':
        """Member ``key`` of a mapping.

        Raises:
            ResponseShapeError: If this is not a mapping or has no such member.
        """
        if not isinstance(self._value, dict):
            raise self._mismatch('mapping')
        if key not in self._value:
            raise self._mismatch('mapping', f'Missing key {key!r} at {self._path}')
        return Payload(self._value[key], f'{self._path}.{key}')

    def get_optional(self, key: str) -> 'Payload | None':
        """Member ``key`` of a mapping, or None when absent."""
        if not isinstance(self._value, dict):
            raise self._mismatch('mapping')
        if key not in self._value:
            return None
        return Payload(self._value[key], f'{self._path}.{key}')

    def index(self, position: int) -> 'Payload':
        """Element ``position`` of a list."""
        items = self.as_list()
        try:
            return Payload(items[position], f'{self._path}[{position}]')
        except IndexError:
            raise self._mismatch('list', f'Index {position} out of range at {self._path} (length {len(items)})') from None

    def at(self, *keys: str | int) -> 'Payload':
        """Walk nested mappings and lists, e.g. ``at('result', 'result', 'value')``."""
        node = self
        for key in keys:
            node = node.index(key) if isinstance(key, int) else node.get(key)
        return node

    def is_null(self) -> bool:
        return self._value is None

    def as_bool(self) -> bool:
        if not isinstance(self._value, bool):
            raise self._mismatch('bool')
        return self._value

    def as_str(self) -> str:
        if not isinstance(self._value, str):
            raise self._mismatch('string')
        return self._value

    def as_int(self) -> int:
        # bool is an int subclass; JSON numbers decode to float only when fractional
        if isinstance(self._value, bool) or not isinstance(self._value, int):
            if isinstance(self._value, float) and self._value.is_integer():
                return int(self._value)
            raise self._mismatch('integer')
        return self._value

    def as_float(self) -> float:
        if isinstance(self._value, bool) or not isinstance(self._value, (int, float)):
            raise self._mismatch('number')
        return float(self._value)

    def as_list(self) -> list[JSONValue]:
        if not isinstance(self._value, list):
            raise self._mismatch('list')
        return self._value

    def as_dict(self) -> dict[str, JSONValue]:
        if not isinstance(self._value, dict):
            raise self._mismatch('mapping')
        return self._value

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Payload):
            return self._value == other._value
        return self._value == other

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f'Payload({self._value!r:.200}, path={self._path!r})'
