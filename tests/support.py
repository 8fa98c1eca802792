"""
Shared fixtures for the test suite: synthetic drawings and fake predictors.
"""

import os
import sys

import numpy as np

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from nines.constants import SYMBOL_ALPHABET


def blank_canvas(width=160, height=60):
    """White RGBA canvas."""
    return np.full((height, width, 4), 255, dtype=np.uint8)


def paint_block(canvas, x, y, w, h, value=0):
    """Fill a rectangle with an opaque grey level (default black)."""
    canvas[y:y + h, x:x + w, :3] = value
    canvas[y:y + h, x:x + w, 3] = 255
    return canvas


def paint_plus(canvas, x, y, size=20, thickness=4):
    mid = size // 2 - thickness // 2
    paint_block(canvas, x, y + mid, size, thickness)
    paint_block(canvas, x + mid, y, thickness, size)
    return canvas


def one_hot(symbol, strength=0.9):
    labels = list(SYMBOL_ALPHABET)
    rest = (1.0 - strength) / (len(labels) - 1)
    row = np.full(len(labels), rest, dtype=np.float32)
    row[labels.index(symbol)] = strength
    return row


class DensityPredictor:
    """Fake classifier: solid glyphs are '9', sparse glyphs are '+'."""

    def __init__(self):
        self.calls = 0
        self.batch_sizes = []

    def predict(self, batch):
        self.calls += 1
        self.batch_sizes.append(len(batch))
        rows = []
        for tensor in batch:
            rows.append(one_hot("9" if float(tensor.mean()) > 0.8 else "+"))
        return np.stack(rows)


class FailingPredictor:
    def predict(self, batch):
        raise RuntimeError("device lost")


def template_images():
    """One distinct 28x28 binary template per alphabet symbol."""
    templates = {symbol: np.zeros((28, 28), dtype=np.float32) for symbol in SYMBOL_ALPHABET}
    templates["9"][4:14, 8:20] = 1.0
    templates["9"][4:24, 17:20] = 1.0
    templates["+"][12:16, 4:24] = 1.0
    templates["+"][4:24, 12:16] = 1.0
    templates["-"][12:16, 4:24] = 1.0
    for i in range(4, 24):
        templates["*"][i, i] = 1.0
        templates["*"][i, 27 - i] = 1.0
        templates["/"][i, 27 - i] = 1.0
    templates["*"][13:15, 4:24] = 1.0
    templates["("][4:24, 8:11] = 1.0
    templates[")"][4:24, 17:20] = 1.0
    return templates
