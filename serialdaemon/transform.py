"""Newline normalization applied to each direction of the bridge."""


class ByteTransform:
    """Optional newline stripping.

    Toward the serial device every ``\\n`` is removed. Toward the client every
    ``\\r`` becomes ``\\n`` and the length is unchanged. The two directions
    share no state.
    """

    def __init__(self, strip: bool = False):
        self.strip = strip

    def to_serial(self, data: bytes) -> bytes:
        if not self.strip:
            return data
        return data.replace(b"\n", b"")

    def to_client(self, data: bytes) -> bytes:
        if not self.strip:
            return data
        return data.replace(b"\r", b"\n")


def describe_bytes(data: bytes) -> str:
    """Render bytes for trace output: printable text, then decimal values."""
    text = "".join(chr(b) if 32 <= b < 127 else "?" for b in data)
    values = " ".join(str(b) for b in data)
    return f"{text} | {values}"
