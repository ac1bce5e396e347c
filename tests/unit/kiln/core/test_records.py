"""
Tests for content type detection and BOM handling.
"""
import pytest

from kiln.core.records import BOM, content_type_for, strip_bom


@pytest.mark.parametrize(
    "path,content_type",
    [
        ("app.css", "text/css"),
        ("app.js", "application/javascript"),
        ("app.coffee", "application/coffeescript"),
        ("app.scss", "text/sass"),
        ("app.sass", "text/sass"),
        ("app.less", "text/less"),
        ("app.styl", "text/stylus"),
        ("layout.jst", "text/template"),
    ],
)
def test_content_type_for(path, content_type):
    assert content_type_for(path) == content_type


def test_strip_bom_removes_one_mark():
    assert strip_bom(BOM + "a") == "a"
    assert strip_bom(BOM + BOM + "a") == BOM + "a"


def test_strip_bom_is_idempotent_on_clean_text():
    assert strip_bom("a") == "a"
    assert strip_bom(strip_bom(BOM + "a")) == "a"
