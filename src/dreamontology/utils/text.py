import re

_SEPARATORS = re.compile(r"[\s\-]+")
_DISALLOWED = re.compile(r"[^a-z0-9_]")


def slugify(name: str) -> str:
    """
    Derive a symbol id from its display name.

    "Falling Down" -> "falling_down", "Jack-in-the-box" -> "jack_in_the_box"
    """
    slug = _SEPARATORS.sub("_", name.strip().lower())
    slug = _DISALLOWED.sub("", slug)
    return re.sub(r"_+", "_", slug).strip("_")
