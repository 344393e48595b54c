from lfs_gateway._util.text import split_first


def test_split_on_first_delimiter_only() -> None:
    assert split_first("oid sha256:abc:def", ":") == ("oid sha256", "abc:def")


def test_missing_delimiter_has_no_tail() -> None:
    assert split_first("novalue", "=") == ("novalue", None)


def test_trailing_delimiter_gives_empty_tail() -> None:
    assert split_first("key=", "=") == ("key", "")


def test_str_is_not_modified() -> None:
    assert not hasattr(str, "split_first")
