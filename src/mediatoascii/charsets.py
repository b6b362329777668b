"""Predefined character ramps, ordered from darkest to brightest glyph."""

import numpy as np

CHAR_SETS = {
    'standard': {
        'chars': " .:-=+*#%@",
        'name': 'Standard ASCII'
    },
    'standard_alt': {
        'chars': " .,:ilwW",
        'name': 'Standard ASCII Alternative'
    },
    'detailed': {
        'chars': " `.-':_,^=;><+!rc*/z?sLTv)J7(|Fi{C}fI31tlu[neoZ5Yxjya]2ESwqkP6h9d4VpOGbUAKXHm8RD#$Bg0MNWQ%&@",
        'name': 'Detailed ASCII'
    },
    'fine': {
        'chars': " `^\",:;Il!i~+_-?][}{1)(|\\/tfjrxnuvczXYUJCLQ0OZmwqpdbkhao*#MW&8%B@$",
        'name': 'Fine Detail ASCII'
    },
    'blocks': {
        'chars': " ░▒▓█",
        'name': 'Shaded Blocks'
    },
}

DEFAULT_CHAR_SET = 'standard'


class CharacterRamp:
    """Immutable brightness-to-glyph table.

    Index 0 is the glyph drawn for the darkest luminance, the last index the
    one drawn for the brightest. ``invert`` swaps the two poles.
    """

    __slots__ = ('_glyphs', '_name')

    def __init__(self, glyphs, name=None):
        if len(glyphs) < 2:
            raise ValueError("A character ramp needs at least two glyphs")
        object.__setattr__(self, '_glyphs', tuple(glyphs))
        object.__setattr__(self, '_name', name)

    def __setattr__(self, key, value):
        raise AttributeError("CharacterRamp is read-only")

    def __len__(self):
        return len(self._glyphs)

    def __getitem__(self, index):
        return self._glyphs[index]

    def __iter__(self):
        return iter(self._glyphs)

    def __repr__(self):
        return f"CharacterRamp({''.join(self._glyphs)!r})"

    @property
    def name(self):
        return self._name

    @property
    def glyphs(self):
        return ''.join(self._glyphs)

    def index_for(self, luminance: float, invert: bool = False) -> int:
        last = len(self._glyphs) - 1
        luminance = min(max(float(luminance), 0.0), 1.0)
        index = int(luminance * last)
        return last - index if invert else index

    def indices_for(self, luminance: np.ndarray, invert: bool = False) -> np.ndarray:
        """Vectorised ``index_for`` over an array of luminance values in [0, 1]."""
        last = len(self._glyphs) - 1
        clipped = np.clip(luminance.astype(np.float32), 0.0, 1.0)
        indices = np.floor(clipped * last).astype(np.int32)
        if invert:
            indices = last - indices
        return indices


_RAMPS = {key: CharacterRamp(value['chars'], key) for key, value in CHAR_SETS.items()}


def get_ramp(name=DEFAULT_CHAR_SET):
    try:
        return _RAMPS[name]
    except KeyError:
        raise KeyError(f"Unknown character set '{name}'. Choose from: {', '.join(CHAR_SETS)}") from None


DEFAULT_RAMP = _RAMPS[DEFAULT_CHAR_SET]
