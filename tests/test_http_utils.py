try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from jukebox.utils.http import local_path, with_query


@pytest.mark.parametrize(
    ("target", "expected"),
    [
        (None, "/"),
        ("", "/"),
        ("/mixes?id=3", "/mixes?id=3"),
        ("mixes", "/mixes"),
        ("https://evil.example/steal?x=1#frag", "/steal?x=1"),
        ("//evil.example/steal", "/steal"),
        ("/\\evil.example", "/evil.example"),
        ("///evil.example", "/evil.example"),
    ],
)
def test_local_path_never_leaves_the_site(target, expected: str) -> None:
    assert local_path(target) == expected


def test_with_query_encodes_values() -> None:
    assert with_query("/auth/login", provider="acme", **{"from": "/a?b=c"}) == (
        "/auth/login?provider=acme&from=%2Fa%3Fb%3Dc"
    )
