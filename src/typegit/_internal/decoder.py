"""Incremental bytes to lines decoding.

Note
----
This is an internal API not covered by versioning policy.

Examples
--------
A multi-byte character split across two chunks is decoded once both halves
arrived:

>>> decoder = LineDecoder()
>>> decoder.decode("caf\\u00e9\\nna".encode()[:4])
[]
>>> decoder.decode("caf\\u00e9\\nna".encode()[4:])
['café']
>>> decoder.flush()
['na']
>>> decoder.flush()
[]
"""

from __future__ import annotations

import codecs
import re

from typegit.constants import OUTPUT_ENCODING, OUTPUT_ERRORS

_LF = re.compile(r"\n")
_CR_OR_LF = re.compile(r"\r|\n")


class LineDecoder:
    """Stateful bytes to text to lines splitter.

    Parameters
    ----------
    encoding : str
        Codec used for byte input.
    errors : str
        Codec error handler. ``backslashreplace`` keeps undecodable bytes
        visible instead of dropping them.
    split_cr : bool
        Also treat ``\\r`` as a line terminator, as git progress meters
        redraw in place with carriage returns.

    Examples
    --------
    >>> decoder = LineDecoder(split_cr=True)
    >>> decoder.feed("Receiving objects:  50% (1/2)\\rReceiving objects: 100% (2/2)")
    ['Receiving objects:  50% (1/2)']
    >>> decoder.flush()
    ['Receiving objects: 100% (2/2)']
    """

    def __init__(
        self,
        encoding: str = OUTPUT_ENCODING,
        errors: str = OUTPUT_ERRORS,
        split_cr: bool = False,
    ) -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors=errors)
        self._separator = _CR_OR_LF if split_cr else _LF
        self._carry = ""

    @property
    def pending(self) -> str:
        """Return the partial line held back so far."""
        return self._carry

    def decode(self, chunk: bytes) -> list[str]:
        """Decode *chunk* and return every line it completes."""
        return self.feed(self._decoder.decode(chunk))

    def feed(self, text: str) -> list[str]:
        """Append already decoded *text* and return every line it completes."""
        if not text:
            return []
        parts = self._separator.split(self._carry + text)
        self._carry = parts.pop()
        return parts

    def flush(self) -> list[str]:
        """Finish the stream, returning the final partial line if non-empty."""
        lines = self.feed(self._decoder.decode(b"", final=True))
        tail, self._carry = self._carry, ""
        if tail:
            lines.append(tail)
        return lines
