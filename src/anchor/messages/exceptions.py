# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later


__all__ = (  # noqa: RUF022
    'PayloadTooShortError',
    'InvalidMagicError',
    'TruncatedAnchorsError',
    'AnchorListTooLargeError',
    'InvalidVarintError',
    'UnknownKindError',
    'BodyDecodeError',
    'HashSizeMismatchError',
)


class PayloadTooShortError(ValueError):
    """Raised when a buffer is too short to contain the message header."""

    def __init__(self, length: int, minimum: int) -> None:
        super().__init__(f'Payload is too short to be a message ({length} < {minimum} bytes)')
        self.length = length
        self.minimum = minimum


class InvalidMagicError(ValueError):
    """Raised when a buffer does not start with the message magic bytes."""

    def __init__(self, magic: bytes) -> None:
        super().__init__(f'Invalid message magic: {magic.hex()}')
        self.magic = magic


class TruncatedAnchorsError(ValueError):
    """
    Raised when a message declares more anchors than the buffer holds.

    The ``expected`` attribute holds the declared anchor count, while the
    ``available`` attribute holds the number of bytes following the header.

    """

    def __init__(self, expected: int, available: int) -> None:
        super().__init__(f'Insufficient data in buffer to extract {expected} anchors ({available} bytes available)')
        self.expected = expected
        self.available = available


class AnchorListTooLargeError(ValueError):
    """Raised when a message is built with more anchors than the header can count."""

    def __init__(self, count: int, maximum: int) -> None:
        super().__init__(f'Too many anchors for a message ({count} > {maximum})')
        self.count = count
        self.maximum = maximum


class InvalidVarintError(ValueError):
    """
    Raised when a variable length integer cannot be decoded.

    This happens when the data ends before the last byte of the varint, or
    when the varint keeps going for more than 128 bits, which is treated as
    an overflow to avoid unbounded reads from adversarial input.

    """


class UnknownKindError(ValueError):
    """Raised when a message references a Kind that is not defined."""


class BodyDecodeError(ValueError):
    """
    Raised when the body of a message cannot be decoded by its Kind.

    The error is scoped to the body. The message envelope that carried it
    was decoded successfully and its kind and anchors are still available.

    """

    def __init__(self, kind: int, reason: str) -> None:
        super().__init__(f'Cannot decode body for kind {kind}: {reason}')
        self.kind = kind
        self.reason = reason


class HashSizeMismatchError(ValueError):
    """Raised when a proof hash does not have the size required by its algorithm."""

    def __init__(self, algorithm: str, expected: int, actual: int) -> None:
        super().__init__(f'Hash size mismatch for {algorithm}: expected {expected} bytes, got {actual}')
        self.algorithm = algorithm
        self.expected = expected
        self.actual = actual
