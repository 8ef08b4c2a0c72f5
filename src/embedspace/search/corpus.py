"""
Corpus provider: the built-in demo sentences or a user-supplied file.
"""

from __future__ import annotations

import json
from pathlib import Path


DEFAULT_CORPUS: tuple[str, ...] = (
    "The cat sat on the mat.",
    "My dog loves to chase squirrels.",
    "The sun is a star.",
    "Jupiter is the largest planet in our solar system.",
    "I enjoy reading books about history.",
    "She is a talented musician who plays the piano.",
    "The new software update includes several security patches.",
    "To build a web application, you need to know HTML, CSS, and JavaScript.",
    "The stock market experienced a significant downturn.",
    "Economic policy can have a major impact on inflation.",
)


def load_corpus(path: str | None = None) -> list[str]:
    """
    Return corpus texts in order.

    ``.json`` files must hold a list of strings; any other file is read as
    one item per non-blank line. Without a path the demo corpus is used.
    """
    if path is None:
        return list(DEFAULT_CORPUS)

    file_path = Path(path).expanduser()
    if not file_path.is_file():
        raise ValueError(f"No such corpus file: {file_path}")

    raw = file_path.read_text(encoding="utf-8")
    if file_path.suffix.lower() == ".json":
        data = json.loads(raw)
        if not isinstance(data, list) or not all(isinstance(item, str) for item in data):
            raise ValueError(f"{file_path} must contain a JSON list of strings")
        texts = [item.strip() for item in data if item.strip()]
    else:
        texts = [line.strip() for line in raw.splitlines() if line.strip()]

    if not texts:
        raise ValueError(f"Corpus file {file_path} has no entries")
    return texts
