"""Unit tests for object name construction."""

from sso_operator.utils.naming import build_name


class TestBuildName:
    """Tests for build_name truncation rules."""

    def test_short_names_are_joined(self):
        name = build_name("name", "suffix")

        assert name == "name-suffix"
        assert len(name) == 11

    def test_long_base_is_truncated(self):
        base = "aaaaaaaaaa-bbbbbbbbbb-cccccccccc-dddddddddd-eeeeeeeeee-ffffffffff"

        name = build_name(base, "suffix")

        assert name == "aaaaaaaaaa-bbbbbbbbbb-cccccccccc-dddddddddd-eeeeeeeeee-f-suffix"
        assert len(name) == 63

    def test_long_suffix_is_truncated(self):
        suffix = "aaaaaaaaaa-bbbbbbbbbb-cccccccccc-dddddddddd-eeeeeeeeee-ffffffffff"

        name = build_name("name", suffix)

        assert name == "name-aaaaaaaaaa-bbbbbbbbbb-cccccccccc-dddddddddd-eeeeeeeeee-fff"
        assert len(name) == 63

    def test_both_long_are_cut_in_half(self):
        base = "aaaaaaaaaa-bbbbbbbbbb-cccccccccc-dddddddddd-eeeeeeeeee-ffffffffff"
        suffix = "gggggggggg-hhhhhhhhhh-iiiiiiiiii-jjjjjjjjjj-kkkkkkkkkk-llllllllll"

        name = build_name(base, suffix)

        assert name == "aaaaaaaaaa-bbbbbbbbbb-ccccccccc-gggggggggg-hhhhhhhhhh-iiiiiiiii"
        assert len(name) == 63

    def test_truncated_base_does_not_end_with_dash(self):
        base = "aaaaaaaaaa-bbbbbbbbbb-cccccccccc-dddddddddd-eeeeeeeeee-ffffff"

        name = build_name(base, "sufffix")

        assert name == "aaaaaaaaaa-bbbbbbbbbb-cccccccccc-dddddddddd-eeeeeeeeee-sufffix"
        assert len(name) == 62
        assert "--" not in name
