"""Lookup of the LFS server URL in ``.lfsconfig`` text."""

from ._util.text import split_first


def get_lfs_url(config: str) -> str | None:
    """Find ``lfs.url`` in git-config style text.

    Only the ``[lfs]`` section is considered and the first ``url`` key wins.
    Any line in that section without ``=`` (blank and comment-only lines
    included) makes the whole lookup fail.

    Returns:
        The configured URL, or None if it is absent or cannot be parsed.
    """
    section: str | None = None
    for raw_line in config.splitlines():
        line = split_first(raw_line, ";")[0].strip()
        if line.startswith("[") and line.endswith("]"):
            section = line[1:-1]
        elif section == "lfs":
            key, value = split_first(line, "=")
            if value is None:
                return None
            if key.rstrip() == "url":
                return value.lstrip()

    return None
