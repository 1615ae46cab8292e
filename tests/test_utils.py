"""Tests for code generation and pagination helpers."""

from __future__ import annotations

from utm_tracker.utils.code_generator import CODE_ALPHABET, generate_code, generate_unique_code
from utm_tracker.utils.pagination import format_pagination_meta, get_pagination_params


class TestCodeGenerator:
    """Tests for short code generation."""

    def test_default_length_and_alphabet(self):
        code = generate_code()
        assert len(code) == 8
        assert all(c in CODE_ALPHABET for c in code)

    def test_alphabet_is_full_alphanumeric(self):
        assert len(CODE_ALPHABET) == 62

    def test_unique_code_skips_taken(self):
        taken = []

        def link_exists(code):
            taken.append(code)
            return len(taken) < 3

        code = generate_unique_code(link_exists)

        assert code == taken[-1]
        assert len(taken) == 3
        assert len(code) == 8

    def test_falls_back_to_longer_code(self):
        checks = []

        def always_taken(code):
            checks.append(code)
            return True

        code = generate_unique_code(always_taken, length=8, max_retries=10)

        assert len(checks) == 10
        assert len(code) == 10


class TestPagination:
    """Tests for pagination parameter parsing and metadata."""

    def test_defaults(self):
        params = get_pagination_params({})
        assert (params.page, params.limit, params.offset) == (1, 10, 0)

    def test_values(self):
        params = get_pagination_params({"page": "3", "limit": "25"})
        assert (params.page, params.limit, params.offset) == (3, 25, 50)

    def test_invalid_values_use_defaults(self):
        params = get_pagination_params({"page": "-2", "limit": "0"})
        assert (params.page, params.limit) == (1, 10)

    def test_limit_clamped_to_max(self):
        assert get_pagination_params({"limit": "500"}, max_limit=100).limit == 100

    def test_meta(self):
        assert format_pagination_meta(45, 2, 10) == {
            "count": 45, "page": 2, "pageCount": 5, "limit": 10, "from": 11, "to": 20,
        }

    def test_meta_last_partial_page(self):
        meta = format_pagination_meta(45, 5, 10)
        assert (meta["from"], meta["to"]) == (41, 45)

    def test_meta_empty(self):
        assert format_pagination_meta(0, 1, 10) == {
            "count": 0, "page": 1, "pageCount": 1, "limit": 10, "from": 0, "to": 0,
        }
