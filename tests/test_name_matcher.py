import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from name_matcher import (
    ImageCatalogEntry,
    ImageLookup,
    build_catalog,
    build_image_url,
    find_match,
    match_images,
    normalize_name,
)

BASE = "https://raw.githubusercontent.com/yuhonas/free-exercise-db/main/exercises"


@pytest.mark.parametrize(
    "raw",
    ["Leg-Press", "leg_press", "leg   press", "  LEG press\t", "leg-_press", "Leg - Press"],
)
def test_normalize_collapses_separators(raw):
    assert normalize_name(raw) == "leg press"


@pytest.mark.parametrize(
    "raw", ["", "   ", "Bench__Press", "Dumbbell\nFly", "a-b_c  d", "ALREADY normal"]
)
def test_normalize_is_idempotent(raw):
    once = normalize_name(raw)
    assert normalize_name(once) == once


def test_normalize_empty_input():
    assert normalize_name("") == ""
    assert normalize_name(" - _ ") == ""


def test_entry_from_dict_handles_missing_images():
    entry = ImageCatalogEntry.from_dict({"name": "Curl", "images": None})
    assert entry == ImageCatalogEntry("Curl", ())


@pytest.mark.parametrize(
    "raw", [{"images": ["a.jpg"]}, {"name": None}, {"name": 7}, {"name": " - "}]
)
def test_entry_from_dict_rejects_unusable_name(raw):
    with pytest.raises(ValueError):
        ImageCatalogEntry.from_dict(raw)


def test_build_catalog_skips_nameless_entries():
    raw = [
        {"images": ["x/0.jpg"]},
        "not an object",
        {"name": "", "images": ["y/0.jpg"]},
        {"name": "Deadlift", "images": ["Deadlift/0.jpg"]},
    ]
    catalog = build_catalog(raw)
    assert catalog == (ImageCatalogEntry("Deadlift", ("Deadlift/0.jpg",)),)
    assert match_images("deadlift", catalog, BASE).images == [f"{BASE}/Deadlift/0.jpg"]


def test_blank_entry_name_never_matches():
    catalog = [
        ImageCatalogEntry(" ", ("x/0.jpg",)),
        ImageCatalogEntry("Deadlift", ("Deadlift/0.jpg",)),
    ]
    assert find_match("deadlift", catalog) is catalog[1]


def test_query_contained_in_entry():
    catalog = [ImageCatalogEntry("Bench Press", ("Bench_Press/0.jpg",))]
    assert find_match("press", catalog) is catalog[0]


def test_entry_contained_in_query():
    catalog = [ImageCatalogEntry("bench press", ("b/0.jpg",))]
    assert find_match("Incline Bench Press Variant", catalog) is catalog[0]


def test_first_match_wins():
    catalog = [
        ImageCatalogEntry("Barbell Bench Press", ("first/0.jpg",)),
        ImageCatalogEntry("Bench Press", ("second/0.jpg",)),
    ]
    assert find_match("bench press", catalog).images == ("first/0.jpg",)


def test_no_match_returns_none():
    catalog = [ImageCatalogEntry("Squat", ("s.jpg",))]
    assert find_match("deadlift", catalog) is None
    assert find_match("deadlift", []) is None


def test_empty_images_candidate_is_not_found():
    catalog = [
        ImageCatalogEntry("Curl", ()),
        ImageCatalogEntry("Hammer Curl", ("Hammer_Curl/0.jpg",)),
    ]
    result = match_images("curl", catalog, BASE)
    assert result == ImageLookup(found=False, images=None)
    assert result.to_dict() == {"images": None, "found": False}


def test_unloaded_catalog_is_not_found():
    assert match_images("anything", None, BASE).to_dict() == {
        "images": None,
        "found": False,
    }


def test_match_expands_all_images_in_order():
    catalog = [ImageCatalogEntry("Curl", ("Curl/0.jpg", "Curl/1.jpg"))]
    result = match_images("CURL", catalog, BASE)
    assert result.found is True
    assert result.images == [f"{BASE}/Curl/0.jpg", f"{BASE}/Curl/1.jpg"]


@pytest.mark.parametrize(
    "base,fragment",
    [
        ("https://x.test/ex", "Curl/0.jpg"),
        ("https://x.test/ex/", "Curl/0.jpg"),
        ("https://x.test/ex", "/Curl/0.jpg"),
        ("https://x.test/ex/", "/Curl/0.jpg"),
    ],
)
def test_build_image_url_single_separator(base, fragment):
    assert build_image_url(base, fragment) == "https://x.test/ex/Curl/0.jpg"
