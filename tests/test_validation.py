import uuid

import pytest

from repotrack.utils.validation import is_valid_identifier, is_valid_source_locator


def test_identifier_accepts_generated_uuid():
    assert is_valid_identifier(str(uuid.uuid4()))


def test_identifier_is_case_insensitive():
    assert is_valid_identifier("0191F139-A55F-76AD-AD4B-C873B1F6FB16")


@pytest.mark.parametrize("value", [
    "",
    "999",
    "0191f139a55f76adad4bc873b1f6fb16",
    "0191f139-a55f-76ad-ad4b-c873b1f6fb1",
    "0191f139-a55f-76ad-ad4b-c873b1f6fb16 ",
    "0191f139-a55f-76ad-ad4b-c873b1f6fb16\n",
    "g191f139-a55f-76ad-ad4b-c873b1f6fb16",
    None,
    42,
])
def test_identifier_rejects_malformed_values(value):
    assert not is_valid_identifier(value)


@pytest.mark.parametrize("value", [
    "http://git.internal/acme/api.git",
    "https://github.com/acme/web",
    "git@github.com:acme/mobile.git",
    "/srv/repos/api",
    "C:\\src\\api",
    "d:\\work\\web",
])
def test_source_locator_accepts_cloneable_locations(value):
    assert is_valid_source_locator(value)


@pytest.mark.parametrize("value", [
    "",
    "github.com/acme/api",
    "ftp://example.com/repo",
    "relative/path",
    "C:/src/api",
    None,
])
def test_source_locator_rejects_everything_else(value):
    assert not is_valid_source_locator(value)
