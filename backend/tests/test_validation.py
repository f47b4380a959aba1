"""Unit tests for upload validation, sanitization and filename generation."""
import re

import pytest

from gallery.images.schemas import MAX_FIELD_LENGTH
from gallery.images.validation import (
    generate_file_name,
    get_extension,
    sanitize,
    validate_extension,
    validate_file_path,
    validate_form_fields,
)

UUID_NAME = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}\.[a-z]+$")


class TestValidateExtension:
    @pytest.mark.parametrize(
        "filename",
        ["a.jpg", "a.jpeg", "a.png", "a.gif", "a.webp", "a.JPG", "Photo.PnG", "archive.tar.png"],
    )
    def test_allowed(self, filename):
        assert validate_extension(filename) is True

    @pytest.mark.parametrize(
        "filename",
        ["a.jpgx", "a", "photo.bmp", "a.png.exe", "png", "a.", "", "a.svg"],
    )
    def test_rejected(self, filename):
        assert validate_extension(filename) is False

    def test_only_last_suffix_counts(self):
        assert get_extension("evil.php.jpg") == ".jpg"
        assert get_extension("no_dot") == ""


class TestValidateFormFields:
    def test_valid_fields(self):
        assert validate_form_fields({"name": "n", "description": "d", "author": "a"}) == []

    def test_absent_fields_are_valid(self):
        assert validate_form_fields({}) == []
        assert validate_form_fields({"name": None, "author": ""}) == []

    def test_exactly_at_limit_is_valid(self):
        assert validate_form_fields({"name": "x" * MAX_FIELD_LENGTH}) == []

    def test_each_long_field_reported(self):
        long = "x" * (MAX_FIELD_LENGTH + 1)
        errors = validate_form_fields({"name": long, "description": long, "author": long})
        assert errors == [
            "Name is too long (max 500 characters)",
            "Description is too long (max 500 characters)",
            "Author is too long (max 500 characters)",
        ]

    def test_does_not_mutate_input(self):
        fields = {"name": "x" * 600}
        validate_form_fields(fields)
        assert fields == {"name": "x" * 600}

    def test_unrelated_fields_ignored(self):
        assert validate_form_fields({"other": "x" * 600}) == []


class TestValidateFilePath:
    @pytest.mark.parametrize(
        "candidate",
        ["../etc/passwd", "..", "a..png", "dir/a.png", "dir\\a.png", "/abs.png"],
    )
    def test_rejects_traversal_and_separators(self, candidate):
        assert validate_file_path(candidate) is False

    def test_accepts_generated_name(self):
        assert validate_file_path(generate_file_name("photo.png")) is True


class TestSanitize:
    @pytest.mark.parametrize("value", [None, "", 0, False])
    def test_falsy_becomes_empty(self, value):
        assert sanitize(value) == ""

    def test_strips_null_bytes_and_whitespace(self):
        assert sanitize("  x\0y  ") == "xy"

    def test_coerces_to_text(self):
        assert sanitize(42) == "42"

    def test_truncates_to_limit(self):
        assert len(sanitize("a" * 1000)) == MAX_FIELD_LENGTH
        assert len(sanitize("b" * 501)) == MAX_FIELD_LENGTH

    @pytest.mark.parametrize(
        "value",
        [
            "plain",
            "  padded  ",
            "nul\0\0byte",
            "a" * 499 + " " + "b" * 10,
            " " * 600,
            "\0 " * 300,
            None,
        ],
    )
    def test_idempotent(self, value):
        once = sanitize(value)
        assert sanitize(once) == once


class TestGenerateFileName:
    def test_format(self):
        assert UUID_NAME.match(generate_file_name("photo.png"))

    def test_keeps_only_lowercased_extension(self):
        name = generate_file_name("../../My Holiday.JPEG")
        assert name.endswith(".jpeg")
        assert "Holiday" not in name
        assert "/" not in name

    def test_unique(self):
        names = {generate_file_name("a.gif") for _ in range(1000)}
        assert len(names) == 1000
