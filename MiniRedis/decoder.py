"""
Reply Decoder

Converts a RawReply into the typed value a command expects. Decoding never
raises: a missing reply or a reply of another kind gives the zero value of
the target type together with ``ok=False``. Every decode path releases the
reply exactly once.
"""

from typing import Any, Callable, Dict, Optional, Sequence, Tuple, Union

from .exceptions import ProtocolError
from .logs import get_logger
from .reply import RawReply, ReplyKind

logger = get_logger("Decoder")

Expected = Union[ReplyKind, Sequence[ReplyKind]]
ErrorHook = Callable[[ProtocolError], None]

INTEGER_ZERO = -1


def _kinds(expected: Expected) -> Tuple[ReplyKind, ...]:
    if isinstance(expected, ReplyKind):
        return (expected,)
    return tuple(expected)


def zero_value(expected: Expected, encoding: Optional[str] = None) -> Any:
    """Value returned alongside ok=False for the given target kind"""
    kind = _kinds(expected)[0]
    if kind is ReplyKind.INTEGER:
        return INTEGER_ZERO
    if kind is ReplyKind.ARRAY:
        return []
    if kind in (ReplyKind.NIL, ReplyKind.ERROR):
        return None
    return "" if encoding else b""


def _text(value: bytes, encoding: Optional[str]) -> Union[str, bytes]:
    if not encoding:
        return value
    try:
        return value.decode(encoding)
    except UnicodeDecodeError as e:
        raise ProtocolError(f"Reply is not valid {encoding}: {e}")


def _flatten(element: RawReply, encoding: Optional[str]) -> Union[str, bytes]:
    if element.kind in (ReplyKind.BULK, ReplyKind.STATUS):
        return _text(element.value, encoding)
    if element.kind is ReplyKind.INTEGER:
        return _text(str(element.value).encode('ascii'), encoding)
    if element.kind is ReplyKind.NIL:
        return _text(b"", encoding)
    raise ProtocolError(f"Cannot flatten {element.kind.value} element of an array reply")


def extract(raw: RawReply, expected: Expected, encoding: Optional[str] = None) -> Any:
    """
    Return the value carried by ``raw``.

    Args:
        raw: Reply to decode, released on return
        expected: Accepted kind, or a sequence of accepted kinds
        encoding: Decode strings with this encoding, None keeps bytes

    Raises:
        ProtocolError: If the kind is not accepted, an array element cannot be
            flattened, or the reply was already released
    """
    kinds = _kinds(expected)
    with raw:
        if raw.kind not in kinds:
            names = "/".join(kind.value for kind in kinds)
            detail = f": {raw.value}" if raw.kind is ReplyKind.ERROR else ""
            raise ProtocolError(f"Expected {names} reply, got {raw.kind.value}{detail}")
        if raw.kind is ReplyKind.INTEGER:
            return raw.value
        if raw.kind is ReplyKind.ARRAY:
            return [_flatten(element, encoding) for element in raw.elements]
        if raw.kind in (ReplyKind.STATUS, ReplyKind.BULK):
            return _text(raw.value, encoding)
        return raw.value


def extract_mapping(raw: RawReply, encoding: Optional[str] = None) -> Dict:
    """
    Flatten an array of alternating fields and values into a dict.

    Raises:
        ProtocolError: If the reply is not an array or has an odd length
    """
    items = extract(raw, ReplyKind.ARRAY, encoding)
    if len(items) % 2:
        raise ProtocolError(f"Cannot build a mapping from {len(items)} array elements")
    return dict(zip(items[::2], items[1::2]))


def decode(raw: Optional[RawReply], expected: Expected, encoding: Optional[str] = None,
           on_error: Optional[ErrorHook] = None) -> Tuple[Any, bool]:
    """
    Decode a reply into ``(value, ok)``.

    ``raw`` is None when the transport failed. ``ok`` is False on any failure
    and the value is then the zero value of the target type; callers must not
    read success from the value alone. ``on_error`` receives the
    ProtocolError of a reply that could not be decoded.
    """
    if raw is None:
        return zero_value(expected, encoding), False
    try:
        return extract(raw, expected, encoding), True
    except ProtocolError as e:
        logger.debug(f"Reply decode failed: {e}")
        if on_error is not None:
            on_error(e)
        return zero_value(expected, encoding), False


def decode_mapping(raw: Optional[RawReply], encoding: Optional[str] = None,
                   on_error: Optional[ErrorHook] = None) -> Tuple[Dict, bool]:
    """Decode an even-length array reply into ``(dict, ok)``"""
    if raw is None:
        return {}, False
    try:
        return extract_mapping(raw, encoding), True
    except ProtocolError as e:
        logger.debug(f"Mapping decode failed: {e}")
        if on_error is not None:
            on_error(e)
        return {}, False
