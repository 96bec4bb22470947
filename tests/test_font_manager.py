import pytest

from conftest import FAMILY, build_test_font
from flextext.text.font_manager import FontCollection, LRUCache
from utils.exceptions import FontError, FontResolutionError


def test_registered_faces_are_described(font_collection):
    faces = font_collection.faces
    assert len(faces) == 2
    assert {face.family for face in faces} == {FAMILY}
    assert sorted(face.weight for face in faces) == [400.0, 700.0]
    assert all(face.units_per_em == 1000 for face in faces)
    assert faces[0].ascender == 800.0
    assert faces[0].descender == -200.0
    assert font_collection.families() == [FAMILY]
    assert font_collection.has_family("test sans")


@pytest.mark.parametrize("weight, expected", [(100, 400), (400, 400), (550, 700), (600, 700), (900, 700)])
def test_resolve_picks_nearest_weight(font_collection, weight, expected):
    assert font_collection.resolve(FAMILY, weight).face.weight == expected


def test_resolve_without_italic_face_returns_upright(font_collection):
    resolved = font_collection.resolve(FAMILY, 400, italic=True)
    assert resolved.face.italic is False


def test_unknown_family_falls_back_to_first_family(font_collection):
    resolved = font_collection.resolve("Open Sans", 400)
    assert resolved.face.family == FAMILY


def test_unknown_family_uses_configured_fallback(regular_font_data):
    collection = FontCollection(fallback_family="Other Sans")
    collection.register_fonts(regular_font_data)
    collection.register_fonts(build_test_font(family="Other Sans"))
    assert collection.resolve("Missing").face.family == "Other Sans"


def test_resolve_with_no_fonts_raises():
    with pytest.raises(FontResolutionError):
        FontCollection().resolve(FAMILY)


def test_garbage_bytes_raise_font_error():
    with pytest.raises(FontError):
        FontCollection().register_fonts(b"not a font at all")


def test_register_font_file_and_dir(font_files, tmp_path):
    collection = FontCollection()
    collection.register_font_file(font_files[0])
    assert len(collection.faces) == 1

    from_dir = FontCollection()
    faces = from_dir.register_font_dir(str(tmp_path / "fonts"))
    assert [face.style_name for face in faces] == ["Bold", "Regular"]


def test_missing_font_file_raises(tmp_path):
    with pytest.raises(FontError):
        FontCollection().register_font_file(str(tmp_path / "missing.ttf"))


def test_missing_font_dir_raises(tmp_path):
    with pytest.raises(FontError):
        FontCollection().register_font_dir(str(tmp_path / "missing"))


def test_engine_resources_are_cached_per_collection(font_collection, regular_font_data):
    resolved = font_collection.resolve(FAMILY)
    assert font_collection.typeface(resolved) is font_collection.typeface(resolved)
    assert font_collection.hb_face(resolved.face) is font_collection.hb_face(resolved.face)

    other = FontCollection()
    other.register_fonts(regular_font_data)
    assert other.typeface(other.resolve(FAMILY)) is not font_collection.typeface(resolved)


def test_hb_font_uses_font_units(font_collection):
    resolved = font_collection.resolve(FAMILY)
    assert font_collection.hb_font(resolved).scale == (1000, 1000)


def test_lru_cache_evicts_least_recently_used():
    cache = LRUCache(max_size=2)
    cache.put("a", 1)
    cache.put("b", 2)
    assert cache.get("a") == 1
    cache.put("c", 3)
    assert "b" not in cache
    assert "a" in cache
    assert len(cache) == 2


def test_fallbacks_are_recorded_once(font_collection):
    font_collection.resolve("Open Sans", 400)
    font_collection.resolve("Open Sans", 700)
    font_collection.resolve(FAMILY, 400)
    assert font_collection.substitutions == {"Open Sans": FAMILY}
