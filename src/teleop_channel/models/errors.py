"""
Error Kinds
===========

Fixed set of machine-readable error kinds for the channel layer.

None of these are fatal. Each maps to one recovery rule:

    - TRANSPORT_CLOSED: reconnect immediately, not surfaced
    - TRANSPORT_ERROR: logged, optionally forwarded to a caller hook
    - UNEXPECTED_TEXT_PAYLOAD: logged, message dropped
    - UNRECOGNIZED_FRAME_TAG: logged, frame dropped
    - MALFORMED_FRAME_LENGTH: logged, frame dropped
    - PAYLOAD_DECODE_FAILURE: logged, only that stream skips this frame
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Machine-readable error kinds, used as metric keys and log tags."""

    TRANSPORT_CLOSED = "TRANSPORT_CLOSED"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    UNEXPECTED_TEXT_PAYLOAD = "UNEXPECTED_TEXT_PAYLOAD"
    UNRECOGNIZED_FRAME_TAG = "UNRECOGNIZED_FRAME_TAG"
    MALFORMED_FRAME_LENGTH = "MALFORMED_FRAME_LENGTH"
    PAYLOAD_DECODE_FAILURE = "PAYLOAD_DECODE_FAILURE"


class PayloadDecodeError(Exception):
    """Raised when one payload of a composite frame cannot be decoded."""
