import pytest

from core.domain.response_codes import SUCCESS, UNRECOGNIZED, interpret


def test_only_success_code_is_ok() -> None:
    assert interpret(SUCCESS).ok is True
    assert interpret(22).name == "SUCCESS"
    for code in [-1, 0, 1, 7, 21, 23, 33, 180, 10_000]:
        assert interpret(code).ok is False


@pytest.mark.parametrize(
    "code,name,category",
    [
        (7, "INVALID_SIGNATURE", "signature"),
        (33, "CONTRACT_REVERT_EXECUTED", "contract"),
        (180, "TOKEN_HAS_NO_SUPPLY_KEY", "token"),
    ],
)
def test_known_codes_carry_name_and_category(code: int, name: str, category: str) -> None:
    verdict = interpret(code)
    assert verdict.name == name
    assert verdict.category == category
    assert str(verdict) == f"{name} ({code})"


def test_unknown_codes_are_unrecognized_not_errors() -> None:
    verdict = interpret(987_654)
    assert verdict.ok is False
    assert verdict.category == UNRECOGNIZED
    assert verdict.name == "UNRECOGNIZED_987654"
    assert interpret(-5).category == UNRECOGNIZED
