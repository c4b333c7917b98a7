from datetime import datetime, timezone

import pytest

from app.errors import ValidationError
from app.services.slugs import (
    build_npmtrends_url,
    compute_preset_id,
    is_valid_package_name,
    normalize_package_names,
    normalize_tag_ids,
    normalize_title,
    slugify,
    to_base36,
)


def test_slugify_strips_punctuation_and_collapses_separators():
    assert slugify("  React vs. Vue_3!  ") == "react-vs-vue-3"
    assert slugify("A  --  B") == "a-b"
    assert slugify("!!!") == ""


def test_to_base36():
    assert to_base36(0) == "0"
    assert to_base36(35) == "z"
    assert to_base36(36) == "10"
    with pytest.raises(ValueError):
        to_base36(-1)


def test_compute_preset_id_uses_title_and_millisecond_timestamp():
    created_at = datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)  # 1700000000000 ms
    assert compute_preset_id("A vs B", created_at) == "a-vs-b-loyw3v28"


def test_compute_preset_id_falls_back_when_title_has_no_word_characters():
    created_at = datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
    assert compute_preset_id("???", created_at) == "preset-loyw3v28"


def test_compute_preset_id_treats_naive_datetimes_as_utc():
    naive = datetime(2023, 11, 14, 22, 13, 20)
    aware = naive.replace(tzinfo=timezone.utc)
    assert compute_preset_id("x", naive) == compute_preset_id("x", aware)


def test_normalize_title():
    assert normalize_title("  Hello  ") == "Hello"
    with pytest.raises(ValidationError):
        normalize_title("   ")
    with pytest.raises(ValidationError):
        normalize_title(None)
    assert normalize_title("x" * 100) == "x" * 100
    with pytest.raises(ValidationError):
        normalize_title("x" * 101)


def test_normalize_package_names_lowercases_dedupes_and_filters():
    assert normalize_package_names(["React", " react ", "vue", "bad name!", "@types/node"]) == [
        "react",
        "vue",
        "@types/node",
    ]


@pytest.mark.parametrize(
    "packages",
    [
        [],
        ["react"],
        [f"pkg-{i}" for i in range(11)],
        ["react", "REACT"],
        ["react", "$$$"],
        ["react", "a" * 215],
        None,
    ],
)
def test_normalize_package_names_rejects_out_of_bounds(packages):
    with pytest.raises(ValidationError) as exc_info:
        normalize_package_names(packages)
    assert exc_info.value.code == "VALIDATION_ERROR"


def test_normalize_package_names_drops_names_over_registry_length():
    assert normalize_package_names(["react", "a" * 215, "vue", "b" * 214]) == ["react", "vue", "b" * 214]


def test_normalize_package_names_accepts_ten():
    names = [f"pkg-{i}" for i in range(10)]
    assert normalize_package_names(names) == names


def test_is_valid_package_name():
    assert is_valid_package_name("left-pad")
    assert is_valid_package_name("@scope/pkg.js")
    assert not is_valid_package_name("")
    assert not is_valid_package_name("has space")
    assert not is_valid_package_name("a" * 215)


def test_normalize_tag_ids():
    assert normalize_tag_ids([" Frontend", "frontend", "build-tool", ""]) == ["frontend", "build-tool"]
    with pytest.raises(ValidationError):
        normalize_tag_ids(["not valid"])
    with pytest.raises(ValidationError):
        normalize_tag_ids(["-leading-dash"])


def test_build_npmtrends_url():
    assert build_npmtrends_url(["react", "vue", "svelte"]) == "https://npmtrends.com/react-vs-vue-vs-svelte"
