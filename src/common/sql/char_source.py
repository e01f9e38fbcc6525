"""Case-folding character source placed in front of the SQL tokenizer.

The grammar matches keywords against uppercase text. Folding is applied to
every character the tokenizer looks at, while the raw text is kept around so
token values and rewrites still use what the user typed.
"""

from __future__ import annotations

EOF = -1

_LOWER_A = 97
_LOWER_Z = 122
_CASE_OFFSET = 32


def fold_codepoint(c: int) -> int:
    """Map an ASCII lowercase codepoint to uppercase.

    Non-positive values are end-of-input or error sentinels and are returned
    unchanged, as is every codepoint outside ``a``-``z``.
    """
    if c <= 0:
        return c
    if _LOWER_A <= c <= _LOWER_Z:
        return c - _CASE_OFFSET
    return c


def normalize_source(text: str) -> str:
    """Return ``text`` with ``fold_codepoint`` applied to every character.

    The result has the same length as the input, so offsets into it are
    offsets into the raw text.
    """
    return "".join(chr(fold_codepoint(ord(ch))) for ch in text)


class CaseFoldingSource:
    """Lookahead view over raw SQL text that yields folded codepoints.

    ``la(1)`` is the current character, ``la(2)`` the next one and ``la(-1)``
    the previous one. Reading past either end returns ``EOF``.
    """

    def __init__(self, text: str):
        self.text = text
        self.normalized = normalize_source(text)
        self.index = 0

    def la(self, offset: int) -> int:
        if offset == 0:
            return 0
        if offset < 0:
            offset += 1
        position = self.index + offset - 1
        if position < 0 or position >= len(self.text):
            return EOF
        return fold_codepoint(ord(self.text[position]))

    def consume(self) -> None:
        if self.index >= len(self.text):
            raise ValueError("cannot consume EOF")
        self.index += 1

    def read_folded(self) -> str:
        """Consume the rest of the source and return the folded characters read.

        This is what the tokenizer sees.
        """
        chars = []
        while self.la(1) != EOF:
            chars.append(chr(self.la(1)))
            self.consume()
        return "".join(chars)

    def slice(self, start: int, stop: int) -> str:
        """Raw (unfolded) text between two inclusive offsets."""
        return self.text[start : stop + 1]
