"""Tests for field pickers, lexicon predicates and URL/image helpers."""

import pytest
from bs4 import BeautifulSoup

from catalogminer.extractor.fields import find_moq, find_price, guess_sku_from_title, text_lines
from catalogminer.extractor.lexicon import Lexicon
from catalogminer.protocols import DraftItem
from catalogminer.utils.images import is_placeholder, pick_from_srcset, pick_image
from catalogminer.utils.prices import normalize_price
from catalogminer.utils.urls import absolutize, dedup_key, same_url


def tag(html: str):
    return BeautifulSoup(html, "html.parser")


@pytest.mark.unit
class TestPrices:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("1.299,00 €", ("1299.00", "EUR")),
            ("$1,299.00", ("1299.00", "USD")),
            ("ab 19,99", ("19.99", "")),
            ("Preis auf Anfrage", ("", "")),
        ],
    )
    def test_normalize_price(self, text, expected):
        assert normalize_price(text) == expected

    def test_record_carries_normalized_price(self):
        item = DraftItem(title="Lampe", detail_url="https://a.example/p/1", price_text="1.299,00 €", complete=True)
        record = item.to_record()
        assert (record.price, record.currency) == ("1299.00", "EUR")

    def test_find_price_prefers_price_nodes(self):
        scope = tag('<div><span>Art. 123,45</span><span class="price">49,90 €</span></div>')
        assert find_price(scope) == "49,90 €"

    def test_find_price_from_text(self):
        assert find_price(tag("<div>Nur heute 12,50 EUR</div>")) == "12,50 EUR"

    def test_find_moq(self):
        assert find_moq(tag("<div>Mindestbestellmenge: 10 Stück</div>")) == "10"


@pytest.mark.unit
class TestText:
    def test_text_lines_skip_scripts(self):
        lines = text_lines(tag("<div><p>Eins</p><script>var x = 1;</script><p>Zwei</p></div>"))
        assert lines == ["Eins", "Zwei"]

    @pytest.mark.parametrize(
        "title, sku",
        [
            ("78001-3 Druckerkabel 25pol", "78001-3"),
            ("AB12 Lampe", "AB12"),
            ("Lampe Deluxe", ""),
            ("123 Lampen", ""),
            ("123456 Lampen", "123456"),
        ],
    )
    def test_guess_sku_from_title(self, title, sku):
        assert guess_sku_from_title(title) == sku


@pytest.mark.unit
class TestLexicon:
    @pytest.fixture
    def lexicon(self):
        return Lexicon()

    def test_check_numbers(self, lexicon):
        assert lexicon.looks_like_check_number("4801234567")
        assert lexicon.looks_like_check_number("12345678")
        assert not lexicon.looks_like_check_number("1234567")
        assert not lexicon.looks_like_check_number("AB-4801234")

    def test_generic_links(self, lexicon):
        assert lexicon.is_generic_link("https://shop.example.com/impressum")
        assert lexicon.is_generic_link("mailto:info@example.com")
        assert not lexicon.is_generic_link("https://shop.example.com/cartridge-black")
        assert not lexicon.is_generic_link("https://shop.example.com/product/contact-lens")

    def test_product_paths(self, lexicon):
        assert lexicon.is_product_path("https://shop.example.com/p/lamp")
        assert lexicon.is_product_path("https://shop.example.com/shop?sku=123")
        assert not lexicon.is_product_path("https://shop.example.com/shop?sku=abc")

    def test_blocked_links(self, lexicon):
        assert lexicon.is_blocked_href("https://shop.example.com/cart")
        assert lexicon.is_blocked_href("https://shop.example.com/lampen?orderby=price")
        assert not lexicon.is_blocked_href("https://shop.example.com/lampen")

    def test_jump_titles(self, lexicon):
        assert lexicon.is_jump_title("Zum  Produkt")
        assert not lexicon.is_jump_title("Produktlampe")


@pytest.mark.unit
class TestUrlsAndImages:
    def test_absolutize(self):
        assert absolutize("https://a.example/x/y", "../z") == "https://a.example/z"
        assert absolutize("https://a.example/x", "#top") == ""
        assert absolutize("https://a.example/x", None) == ""

    def test_dedup_key_keeps_query(self):
        assert dedup_key("https://A.example/p/1/#reviews") == "https://a.example/p/1"
        assert dedup_key("https://a.example/p?id=1") != dedup_key("https://a.example/p?id=2")
        assert same_url("https://a.example/p/1", "https://a.example/p/1/")

    def test_placeholders(self):
        assert is_placeholder("https://a.example/img/placeholder.png")
        assert not is_placeholder("https://a.example/img/lamp.jpg")

    def test_srcset_picks_largest(self):
        assert pick_from_srcset("/s.jpg 300w, /l.jpg 1200w, /m.jpg 600w") == "/l.jpg"

    def test_lazy_image(self):
        scope = tag('<div><img src="/img/spacer.gif" data-src="/img/lamp.jpg"></div>').div
        assert pick_image(scope, "https://a.example/c/") == "https://a.example/img/lamp.jpg"
