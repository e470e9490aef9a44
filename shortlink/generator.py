"""Short-code candidate generation.

Candidates are drawn uniformly at random from the configured alphabet with
nanoid (backed by the ``secrets`` CSPRNG), so the output carries no sequence
and existing links cannot be enumerated from a known code.

Collision odds
==============
::
    P(candidate collides) ≈ N / A^L

    N   live + tombstoned codes
    A   alphabet size   (62 for base62)
    L   code length     (7 by default → 62^7 ≈ 3.5e12)

How to Use
===========
**Step 1 — Build from settings**::
    generator = CodeGenerator.from_settings(settings)

**Step 2 — Draw a candidate**::
    code = generator.generate()
"""

from nanoid import generate

from shortlink.config import BASE62_ALPHABET, Settings

__all__ = ["CodeGenerator"]


class CodeGenerator:
    def __init__(self, alphabet: str = BASE62_ALPHABET, length: int = 7) -> None:
        if len(alphabet) < 2:
            raise ValueError(f"alphabet needs at least two symbols, got {alphabet!r}")
        if len(set(alphabet)) != len(alphabet):
            raise ValueError(f"alphabet contains duplicate symbols: {alphabet!r}")
        if not isinstance(length, int) or length < 1:
            raise ValueError(f"length must be a positive integer, got {length!r}")
        self.alphabet = alphabet
        self.length = length
        self._symbols = frozenset(alphabet)

    @classmethod
    def from_settings(cls, settings: Settings) -> "CodeGenerator":
        return cls(alphabet=settings.CODE_ALPHABET, length=settings.CODE_LENGTH)

    @property
    def code_space(self) -> int:
        return len(self.alphabet) ** self.length

    def generate(self) -> str:
        return generate(self.alphabet, self.length)

    def is_valid(self, code: str) -> bool:
        """True if ``code`` could have been produced by this generator."""
        return isinstance(code, str) and len(code) == self.length and self._symbols.issuperset(code)

    def __repr__(self) -> str:
        return f"<CodeGenerator(alphabet_size={len(self.alphabet)}, length={self.length})>"
