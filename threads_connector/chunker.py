"""Text splitting for threaded posts.

Long text is broken at word boundaries into chunks that each fit the
platform's character limit, so it can be published as a reply chain.
"""

from __future__ import annotations


def split_text(text: str, limit: int) -> list[str]:
    """Split text into ordered chunks of at most ``limit`` characters.

    Words are accumulated greedily; a word that does not fit (with its
    separating space) starts the next chunk. A single word longer than
    ``limit`` is hard-split into ``limit``-sized pieces.
    """
    if limit <= 0:
        raise ValueError("limit must be positive")
    if not text or not text.strip():
        return []
    if len(text) <= limit:
        return [text]

    chunks: list[str] = []
    current = ""

    for word in text.split():
        if len(word) > limit:
            if current:
                chunks.append(current)
                current = ""
            pieces = [word[i:i + limit] for i in range(0, len(word), limit)]
            chunks.extend(pieces[:-1])
            current = pieces[-1]
            continue

        if not current:
            current = word
        elif len(current) + 1 + len(word) > limit:
            chunks.append(current)
            current = word
        else:
            current = f"{current} {word}"

    if current:
        chunks.append(current)
    return chunks
