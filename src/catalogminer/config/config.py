"""
Configuration management for CatalogMiner using Pydantic.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, ClassVar, Dict, List, Literal, cast

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Setup Logging ---
log = logging.getLogger(__name__)

SpeedPreset = Literal["normal", "fast"]

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/126.0 Safari/537.36"
)

# --- Nested Configuration Models ---


class CrawlerConfig(BaseModel):
    """Settings for the default HTTP page fetcher."""

    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User-Agent string for HTTP requests.")
    accept_language: str = Field(default="de,en;q=0.9", description="Accept-Language header.")
    timeout: float = Field(default=25.0, gt=0, description="Start-page request timeout in seconds.")
    start_page_retries: int = Field(default=2, ge=0, description="Retries for the first listing page.")
    max_redirects: int = Field(default=5, ge=0, description="Maximum redirects followed per request.")
    rotate_user_agents: bool = Field(default=True, description="Pick a random desktop User-Agent per request.")
    backoff_base: float = Field(default=1.0, ge=0, description="Base delay of the start-page retry backoff, seconds.")


class PolitenessPreset(BaseModel):
    """Worker pool sizing and pacing for detail-page enrichment."""

    workers: int = Field(ge=1, description="Number of concurrent enrichment workers (K).")
    retries: int = Field(ge=0, description="Retries per detail page (R).")
    delay_min: float = Field(ge=0, description="Lower bound of the randomized delay, seconds.")
    delay_max: float = Field(ge=0, description="Upper bound of the randomized delay, seconds.")
    timeout: float = Field(gt=0, description="Per-fetch timeout, seconds.")

    @model_validator(mode="after")
    def check_delay_range(self) -> PolitenessPreset:
        if self.delay_max < self.delay_min:
            raise ValueError("delay_max must not be smaller than delay_min")
        return self


def _default_presets() -> Dict[str, PolitenessPreset]:
    return {
        "normal": PolitenessPreset(workers=3, retries=3, delay_min=0.22, delay_max=0.44, timeout=18.0),
        "fast": PolitenessPreset(workers=10, retries=1, delay_min=0.06, delay_max=0.12, timeout=9.0),
    }


class EnrichmentConfig(BaseModel):
    """Detail enrichment settings."""

    presets: Dict[str, PolitenessPreset] = Field(default_factory=_default_presets)
    max_items: int = Field(default=30, ge=0, description="Maximum number of items sent to detail pages.")

    def preset(self, name: str) -> PolitenessPreset:
        try:
            return self.presets[name]
        except KeyError:
            raise ValueError(f"Unknown speed preset '{name}'. Available presets: {sorted(self.presets)}") from None


class PaginationConfig(BaseModel):
    """Listing traversal settings."""

    max_pages: int = Field(default=50, ge=1, description="Safety cap on listing pages per run.")


class ClassifierSettings(BaseModel):
    """
    Weights and thresholds for page classification and root location.

    The values are empirically tuned; they are kept here so they can be
    adjusted per deployment without touching control flow.
    """

    product_max_cards: int = 3
    catalog_min_cards: int = 6
    catalog_min_product_links: int = 12
    denylist_sample_size: int = 60
    denylist_ratio: float = Field(default=0.4, ge=0.0, le=1.0)

    product_confidence: float = 0.7
    catalog_confidence: float = 0.6
    homepage_confidence: float = 0.5

    root_sample_size: int = 12
    root_base_score: float = 0.2
    root_price_weight: float = 0.04
    root_price_cap: float = 0.4
    root_link_weight: float = 0.01
    root_link_cap: float = 0.2
    root_image_weight: float = 0.01
    root_image_cap: float = 0.2
    root_fallback_confidence: float = 0.1


class LexiconSettings(BaseModel):
    """Language-listed word lists used by the heuristics."""

    sku_labels: List[str] = Field(
        default_factory=lambda: [
            "Artikel-Nr",
            "Artikelnummer",
            "Art.-Nr",
            "Bestellnummer",
            "Item No",
            "SKU",
            "MPN",
            "Modell",
            "Model",
            "Herstellernummer",
        ]
    )
    sku_attribute_hints: List[str] = Field(
        default_factory=lambda: ["sku", "ordernumber", "product-ordernumber", "product-sku", "articlenumber"]
    )
    sku_class_hints: List[str] = Field(
        default_factory=lambda: ["sku", "ordernumber", "entry--sku", "product--suppliernumber", "article-number"]
    )
    disqualifying_words: List[str] = Field(default_factory=lambda: ["Prüfziffer", "Pruefziffer", "Hersteller"])
    check_number_labels: List[str] = Field(default_factory=lambda: ["Prüfziffer", "Pruefziffer"])
    check_number_prefix: str = Field(default="48", description="Brand-specific prefix of internal check numbers.")
    check_number_min_digits: int = Field(default=8, ge=1)
    ean_labels: List[str] = Field(default_factory=lambda: ["EAN", "GTIN", "Barcode"])
    generic_link_words: List[str] = Field(
        default_factory=lambda: [
            "help",
            "hilfe",
            "support",
            "faq",
            "privacy",
            "datenschutz",
            "impressum",
            "imprint",
            "agb",
            "terms",
            "legal",
            "widerruf",
            "revocation",
            "kontakt",
            "contact",
            "about",
            "ueber-uns",
            "login",
            "logout",
            "anmelden",
            "register",
            "registrieren",
            "signup",
            "account",
            "konto",
            "cart",
            "warenkorb",
            "basket",
            "checkout",
            "kasse",
            "newsletter",
            "blog",
            "news",
            "sitemap",
            "versand",
            "shipping",
            "returns",
            "rueckgabe",
            "zahlung",
            "payment",
            "wishlist",
            "merkzettel",
            "compare",
            "karriere",
            "careers",
            "jobs",
            "presse",
            "press",
            "cookies",
        ]
    )
    product_path_cues: List[str] = Field(
        default_factory=lambda: [
            "/product/",
            "/products/",
            "/produkt/",
            "/item/",
            "/items/",
            "/p/",
            "/dp/",
            "/artikel/",
            "/detail/",
            "/details/",
        ]
    )
    product_query_params: List[str] = Field(
        default_factory=lambda: ["sku", "pid", "product_id", "productid", "sarticle", "item", "itemid", "id"]
    )
    blocked_link_words: List[str] = Field(
        default_factory=lambda: [
            "cart",
            "warenkorb",
            "basket",
            "checkout",
            "wishlist",
            "merkzettel",
            "compare",
            "vergleich",
            "login",
            "register",
            "add-to-cart",
            "add_to_cart",
        ]
    )
    blocked_query_keys: List[str] = Field(
        default_factory=lambda: ["add-to-cart", "add_to_cart", "wishlist", "compare", "filter", "sort", "orderby"]
    )
    cart_phrases: List[str] = Field(
        default_factory=lambda: [
            "add to cart",
            "add to basket",
            "add to bag",
            "buy now",
            "in den warenkorb",
            "jetzt kaufen",
            "ajouter au panier",
            "añadir al carrito",
            "aggiungi al carrello",
            "in winkelwagen",
            "adicionar ao carrinho",
            "do koszyka",
            "加入购物车",
            "カートに入れる",
        ]
    )
    next_words: List[str] = Field(
        default_factory=lambda: [
            "next",
            "weiter",
            "nächste",
            "naechste",
            "siguiente",
            "suivant",
            "successiva",
            "avanti",
            "volgende",
            "próxima",
            "proxima",
            "seguinte",
            "następna",
            "следующ",
            "下一页",
            "下一頁",
            "次へ",
            "다음",
        ]
    )
    jump_card_titles: List[str] = Field(default_factory=lambda: ["produkt", "zum produkt", "details", "mehr"])
    placeholder_image_hints: List[str] = Field(
        default_factory=lambda: ["loader.svg", "spacer.gif", "transparent", "placeholder", "no-image", "no_image", "dummy", "blank"]
    )


class MonitoringConfig(BaseModel):
    """Configuration for logging and metrics."""

    log_level: str = Field(default="INFO", description="Logging level (e.g., DEBUG, INFO, WARNING).")
    log_file: str | None = Field(default=None, description="Path to log file. If None, logs to console.")
    metrics_enabled: bool = Field(default=True, description="Record Prometheus metrics.")

    @field_validator("log_file", mode="before")
    @classmethod
    def create_parent_dir(cls, v: str | Path | None) -> str | None:
        if v is None:
            return None
        path = Path(v)
        path.parent.mkdir(parents=True, exist_ok=True)
        return str(path)


# --- Main Configuration Class ---


class Config(BaseSettings):
    project_name: str = "CatalogMiner"
    version: str = "0.1.0"
    crawler: CrawlerConfig = Field(default_factory=CrawlerConfig)
    enrichment: EnrichmentConfig = Field(default_factory=EnrichmentConfig)
    pagination: PaginationConfig = Field(default_factory=PaginationConfig)
    classifier: ClassifierSettings = Field(default_factory=ClassifierSettings)
    lexicon: LexiconSettings = Field(default_factory=LexiconSettings)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    model_config = SettingsConfigDict(env_prefix="CATALOGMINER_", env_nested_delimiter="__", case_sensitive=False)

    @classmethod
    def from_yaml(cls, path: Path) -> Config:
        log.debug("Loading configuration from YAML file: %s", path)
        if not path.is_file():
            raise FileNotFoundError(f"Configuration file not found or is not a file: {path}")
        with open(path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
        if not yaml_data:
            log.warning("Configuration file is empty: %s. Using default settings.", path)
            return cls.model_validate({})
        return cls.model_validate(yaml_data)


def find_config_file() -> Path | None:
    current_dir = Path.cwd()
    for path in (current_dir / "catalogminer.yaml", current_dir / "catalogminer.yml"):
        if path.exists():
            return path
    return None


# --- Lazy Configuration Loader ---


class LazyConfig:
    """
    A proxy for the Config object that delays its loading and validation
    until an attribute is first accessed.
    """

    _config: ClassVar[Config | None] = None
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __getattr__(self, name: str) -> Any:
        if self.__class__._config is None:
            with self.__class__._lock:
                if self.__class__._config is None:
                    self.__class__._config = self._load_config_with_fallback()
        return getattr(self.__class__._config, name)

    def _load_config_with_fallback(self) -> Config:
        config_path = find_config_file()
        if config_path:
            try:
                log.info("Lazy loading configuration from: %s", config_path)
                return Config.from_yaml(config_path)
            except (ValidationError, FileNotFoundError, yaml.YAMLError) as e:
                log.error(
                    "Failed to load or validate configuration from '%s': %s. Falling back to default settings.",
                    config_path,
                    e,
                )
        else:
            log.info("No config file found. Using default settings for lazy load.")

        try:
            return Config()
        except ValidationError as e:
            log.critical("FATAL: Default configuration is invalid: %s", e, exc_info=True)
            raise RuntimeError(f"Default configuration is invalid, cannot start: {e}") from e


settings: "Config" = cast("Config", LazyConfig())
