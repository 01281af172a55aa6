"""Unit tests for shared helpers"""

import pytest

from uservault.core.abstract_factory import TypeAbstractFactory
from uservault.core.logging import mask_token
from uservault.utils.common import coerce_positive_int, dig, first_present


@pytest.mark.unit
class TestLookups:

    def test_dig(self):
        payload = {"data": {"auth": {"user": {"id": 7}}}}

        assert dig(payload, "data.auth.user.id") == 7
        assert dig(payload, ["data", "auth"]) == {"user": {"id": 7}}
        assert dig(payload, "") is payload
        assert dig(payload, "data.missing", "default") == "default"
        assert dig("text", "data") is None

    def test_first_present_skips_missing_and_rejected(self):
        payload = {"token": "", "data": {"token": "abc"}}

        assert first_present(payload, ("token", "data.token"), accept=bool) == "abc"
        assert first_present(payload, ("missing",)) is None

    @pytest.mark.parametrize(
        "value, expected",
        [(7, 7), ("12", 12), (" 3 ", 3), (0, None), (-1, None), ("abc", None), (True, None), (None, None)],
    )
    def test_coerce_positive_int(self, value, expected):
        assert coerce_positive_int(value) == expected

    def test_mask_token(self):
        assert mask_token(None) == "<none>"
        assert mask_token("short") == "***"
        assert mask_token("42|p7Qx2LmN8vR4tY6wZ1aB3cD5") == "42|p...3cD5 (len=27)"


class _Widgets(TypeAbstractFactory[str, object]):
    pass


class _Gadgets(TypeAbstractFactory[str, object]):
    pass


@_Widgets.register("box")
class _Box:
    def __init__(self, size=1):
        self.size = size


@pytest.mark.unit
class TestTypeAbstractFactory:

    def test_create_registered_type(self):
        box = _Widgets.create("box", size=3)

        assert isinstance(box, _Box)
        assert box.size == 3

    def test_registries_are_separate(self):
        assert _Widgets.is_registered("box")
        assert not _Gadgets.is_registered("box")

    def test_unknown_key(self):
        with pytest.raises(KeyError):
            _Gadgets.create("box")
