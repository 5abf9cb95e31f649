from datetime import datetime, timezone

import pytest
from oes.attendance.entities.checkin import CheckinCodeEntity, generate_code
from oes.attendance.models.checkin import CODE_CHARS, CODE_LENGTH


def test_generate_code():
    # not super robust
    code1 = generate_code()
    code2 = generate_code()
    assert len(code1) == CODE_LENGTH
    assert all(c in CODE_CHARS for c in code1)
    assert code1 != code2


@pytest.mark.parametrize("char", ["0", "O", "1", "I", "L"])
def test_code_alphabet_excludes_confusables(char):
    assert char not in CODE_CHARS


@pytest.mark.parametrize(
    "now, exp, res",
    [
        (datetime(2020, 1, 1, 12), None, False),
        (datetime(2020, 1, 1, 12), datetime(2020, 1, 1, 13), False),
        (datetime(2020, 1, 1, 12), datetime(2020, 1, 1, 12), False),
        (datetime(2020, 1, 1, 12), datetime(2020, 1, 1, 11), True),
    ],
)
def test_is_expired(now, exp, res):
    code = CheckinCodeEntity(date_expires=exp)
    assert code.is_expired(now=now) == res


def test_is_expired_default_now():
    code = CheckinCodeEntity(date_expires=datetime(2020, 1, 1, tzinfo=timezone.utc))
    assert code.is_expired()


@pytest.mark.parametrize(
    "max_uses, current_uses, res",
    [
        (None, 0, False),
        (None, 100, False),
        (1, 0, False),
        (1, 1, True),
        (3, 2, False),
        (3, 4, True),
    ],
)
def test_is_exhausted(max_uses, current_uses, res):
    code = CheckinCodeEntity(max_uses=max_uses, current_uses=current_uses)
    assert code.is_exhausted() == res
