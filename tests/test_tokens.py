from urllib.parse import parse_qs, urlparse

import pytest

from approvals.models import Action
from approvals.tokens import TokenAuthority, sign, verify


SECRET = "test-secret"


COMPANY_IDS = (
    "c1",
    "9f1c2b7e0d5a4e3f8b6a1c2d3e4f5a6b",
    "company:with:colons",
    "ünïcode",
)


def flip(token: str, i: int = 0) -> str:
    swapped = "0" if token[i] != "0" else "1"
    return token[:i] + swapped + token[i + 1 :]


@pytest.mark.parametrize("company_id", COMPANY_IDS)
@pytest.mark.parametrize("action", list(Action))
def test_signed_token_verifies(company_id: str, action: Action) -> None:
    token = sign(SECRET, company_id, action)
    assert len(token) == 32
    assert all(c in "0123456789abcdef" for c in token)
    assert verify(SECRET, company_id, action, token)


@pytest.mark.parametrize("company_id", COMPANY_IDS)
def test_tokens_are_action_scoped(company_id: str) -> None:
    approve = sign(SECRET, company_id, Action.approve)
    reject = sign(SECRET, company_id, Action.reject)
    assert approve != reject
    assert not verify(SECRET, company_id, Action.reject, approve)
    assert not verify(SECRET, company_id, Action.approve, reject)


def test_tokens_are_company_scoped() -> None:
    token = sign(SECRET, "c1", Action.approve)
    assert not verify(SECRET, "c2", Action.approve, token)


def test_tokens_are_deterministic() -> None:
    assert sign(SECRET, "c1", Action.approve) == sign(SECRET, "c1", Action.approve)
    assert sign(SECRET, "c1", Action.approve) != sign("other", "c1", Action.approve)


@pytest.mark.parametrize(
    "token",
    (
        "",
        "abc",
        flip(sign(SECRET, "c1", Action.approve)),
        flip(sign(SECRET, "c1", Action.approve), 31),
        sign(SECRET, "c1", Action.approve) + "0",
        sign(SECRET, "c1", Action.approve).upper(),
        "é" * 32,
    ),
)
def test_tampered_tokens_do_not_verify(token: str) -> None:
    assert not verify(SECRET, "c1", Action.approve, token)


def test_authority_length() -> None:
    authority = TokenAuthority(SECRET, length=64)
    token = authority.sign("c1", Action.approve)
    assert len(token) == 64
    assert authority.verify("c1", Action.approve, token)
    assert not authority.verify("c1", Action.approve, token[:32])


@pytest.mark.parametrize("secret,length", (("", 32), (SECRET, 8), (SECRET, 65)))
def test_authority_rejects_bad_settings(secret: str, length: int) -> None:
    with pytest.raises(ValueError):
        TokenAuthority(secret, length=length)


def test_links() -> None:
    authority = TokenAuthority(SECRET)
    links = authority.links("c1", "https://gastro.test/")
    assert set(links) == {Action.approve, Action.reject}
    for action, url in links.items():
        parsed = urlparse(url)
        assert parsed.netloc == "gastro.test"
        assert parsed.path == "/email-action"
        params = parse_qs(parsed.query)
        assert params["companyId"] == ["c1"]
        assert params["action"] == [action.value]
        assert authority.verify("c1", action, params["token"][0])
