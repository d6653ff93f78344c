import re

import pytest

from components.objectgateway.errors import InvalidBucketName
from components.objectgateway.naming import is_valid_bucket_name, validate_bucket_name

REFERENCE = re.compile(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$")


@pytest.mark.parametrize("name", ["abc", "photos", "my-bucket.v2", "a" * 63, "123", "a.b-c"])
def test_valid_names(name):
    assert validate_bucket_name(name) == name
    assert is_valid_bucket_name(name)


@pytest.mark.parametrize(
    "name,rule",
    [
        ("ab", "length"),
        ("", "length"),
        ("a" * 64, "length"),
        ("My-Bucket", "charset"),
        ("under_score", "charset"),
        ("space here", "charset"),
        ("abc\n", "charset"),
        ("abc\ndef", "charset"),
        ("-leading", "edge"),
        ("trailing-", "edge"),
        (".dotted", "edge"),
        ("dotted.", "edge"),
        ("two..dots", "consecutive_dots"),
    ],
)
def test_invalid_names_report_rule(name, rule):
    with pytest.raises(InvalidBucketName) as ei:
        validate_bucket_name(name)
    assert ei.value.rule == rule
    assert ei.value.context()["rule"] == rule
    assert not is_valid_bucket_name(name)


def test_verdict_matches_reference_pattern():
    samples = [
        "abc", "a.b", "a..b", "a-b", "-ab", "ab-", "AB1", "x" * 62, "x" * 64, "a_b",
        "bucket.name.example", "9lives", "ok-9", "é-bucket", "a.-b", "a-.b",
    ]
    for s in samples:
        expected = bool(REFERENCE.fullmatch(s)) and ".." not in s
        assert is_valid_bucket_name(s) is expected, s
