"""Tests for SKU/EAN extraction, validation and ranking."""

import pytest
from bs4 import BeautifulSoup

from catalogminer.exceptions import ValidationReject
from catalogminer.extractor.identifiers import (
    IdentifierExtractor,
    best_identifier,
    extract_eans,
    rank_skus,
    validate_ean8,
    validate_ean13,
)
from catalogminer.extractor.lexicon import Lexicon
from catalogminer.protocols import IdentifierKind


def fragment(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


@pytest.fixture
def extractor() -> IdentifierExtractor:
    return IdentifierExtractor(Lexicon())


@pytest.mark.unit
class TestEanChecksums:
    def test_valid_ean13(self):
        assert validate_ean13("4006381333931")

    def test_flipped_check_digit_is_invalid(self):
        assert not validate_ean13("4006381333932")

    def test_valid_ean8(self):
        assert validate_ean8("96385074")

    def test_wrong_length_is_rejected(self):
        assert not validate_ean13("96385074")
        assert not validate_ean8("4006381333931")

    def test_extract_eans_skips_invalid_codes(self):
        assert extract_eans("EAN: 4006381333931 und 12345678") == ["4006381333931"]


@pytest.mark.unit
class TestSkuValidation:
    def test_accepts_mixed_token(self, extractor):
        assert extractor.validate("XYZ-100") == "XYZ-100"

    @pytest.mark.parametrize("value", ["ab", "AB 123", "SKU", "48012345"])
    def test_rejects(self, extractor, value):
        with pytest.raises(ValidationReject):
            extractor.validate(value)

    def test_digit_requirement(self, extractor):
        with pytest.raises(ValidationReject):
            extractor.validate("ABCDEF", require_digit=True)


@pytest.mark.unit
class TestExtraction:
    def test_labeled_sku_wins_over_check_number(self, extractor):
        html = (
            '<div><a href="/p/1">Kabel</a>'
            "<span>Artikel-Nr.: XYZ-100</span>"
            "<span>Prüfziffer: 4801234567</span></div>"
        )
        candidate = extractor.extract(fragment(html))
        assert candidate is not None
        assert candidate.value == "XYZ-100"
        assert candidate.kind is IdentifierKind.SKU
        assert not candidate.is_last_resort

    def test_check_number_alone_is_last_resort(self, extractor):
        html = '<div><a href="/p/1">Kabel</a><span>Prüfziffer: 4801234567</span></div>'
        candidate = extractor.extract(fragment(html))
        assert candidate is not None
        assert candidate.value == "4801234567"
        assert candidate.is_last_resort
        assert not candidate.validated

    def test_long_digit_sku_only_kept_as_last_resort(self, extractor):
        candidate = extractor.extract(fragment('<div><span class="sku">12345678</span></div>'))
        assert candidate is not None
        assert candidate.is_last_resort

    def test_itemprop_sku(self, extractor):
        candidate = extractor.extract(fragment('<div><span itemprop="sku">LMP-7</span></div>'))
        assert candidate is not None
        assert candidate.value == "LMP-7"

    def test_unlabeled_attribute_values_are_ranked(self, extractor):
        html = '<div data-sku="12345"><span class="sku">AB-12345</span></div>'
        candidate = extractor.extract(fragment(html))
        assert candidate is not None
        assert candidate.value == "AB-12345"

    def test_json_ld_sku(self, extractor):
        html = (
            '<html><head><script type="application/ld+json">'
            '{"@context": "https://schema.org", "@type": "Product", "name": "Lamp", "sku": "LD-42"}'
            "</script></head><body><h1>Lamp</h1></body></html>"
        )
        candidate = extractor.extract(fragment(html))
        assert candidate is not None
        assert candidate.value == "LD-42"

    def test_nothing_found(self, extractor):
        assert extractor.extract(fragment("<div><p>Nur Text</p></div>")) is None


@pytest.mark.unit
class TestBestIdentifier:
    def test_ean_when_no_sku(self, extractor):
        candidate = best_identifier(fragment("<div>EAN: 4006381333931</div>"), extractor)
        assert candidate is not None
        assert candidate.kind is IdentifierKind.EAN13
        assert candidate.value == "4006381333931"

    def test_labeled_sku_beats_ean(self, extractor):
        html = "<div><p>SKU: AB-123</p><p>EAN: 4006381333931</p></div>"
        candidate = best_identifier(fragment(html), extractor)
        assert candidate is not None
        assert candidate.value == "AB-123"


@pytest.mark.unit
def test_rank_skus_prefers_letters_separators_and_length_near_ten():
    assert rank_skus(["12345", "AB-1234567", "ABC12345"]) == ["AB-1234567", "ABC12345", "12345"]


@pytest.mark.unit
class TestIdentifierPrecedence:
    def test_ean_beats_unlabeled_attribute_sku(self, extractor):
        html = '<div><span class="sku">12345</span><p>EAN: 4006381333931</p></div>'
        candidate = best_identifier(fragment(html), extractor)
        assert candidate is not None
        assert candidate.kind is IdentifierKind.EAN13
        assert candidate.value == "4006381333931"

    def test_unlabeled_sku_used_without_ean(self, extractor):
        candidate = best_identifier(fragment('<div><span itemprop="sku">LMP-7</span></div>'), extractor)
        assert candidate is not None
        assert candidate.value == "LMP-7"
        assert not candidate.labeled

    def test_ean_beats_check_number(self, extractor):
        html = "<div><p>Prüfziffer: 4801234567</p><p>EAN: 4006381333931</p></div>"
        candidate = best_identifier(fragment(html), extractor)
        assert candidate is not None
        assert candidate.value == "4006381333931"


@pytest.mark.unit
class TestCheckNumberWithoutSeparator:
    def test_bare_check_number_is_last_resort(self, extractor):
        candidate = extractor.extract(fragment("<div><p>Kabel 25pol</p><p>Prüfziffer 49012345678</p></div>"))
        assert candidate is not None
        assert candidate.value == "49012345678"
        assert candidate.is_last_resort

    def test_labeled_sku_wins_over_bare_check_number(self, extractor):
        html = "<div><p>Artikel-Nr.: XYZ-100</p><p>Prüfziffer 49012345678</p></div>"
        candidate = extractor.extract(fragment(html))
        assert candidate is not None
        assert candidate.value == "XYZ-100"
        assert not candidate.is_last_resort
