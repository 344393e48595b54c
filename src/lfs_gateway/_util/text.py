def split_first(text: str, delim: str) -> tuple[str, str | None]:
    """Split text on the first occurrence of delim.

    Returns:
        Tuple of (head, tail) where tail is ``None`` if delim does not occur.

    Examples:
        >>> split_first("oid sha256:abc", " ")
        ('oid', 'sha256:abc')
        >>> split_first("novalue", "=")
        ('novalue', None)
    """
    head, sep, tail = text.partition(delim)
    return (head, tail if sep else None)
