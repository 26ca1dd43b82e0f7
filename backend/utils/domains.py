"""
Official-site classifier and competitor categorizer.

Both are pure lookups against utils/domain_tables.yaml, which is loaded once
per process. Nothing here raises on bad input except classify_result(), which
rejects result items with no domain so the caller can skip them.

Classifier rule order (first match wins):
  1. educational TLD                 -> official
  2. curated official-domain table   -> official
  3. excluded third-party platform   -> NOT official (guards 4 and 5 only)
  4. organization name tokens        -> official
  5. concatenated organization name  -> official
"""

import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import yaml

from utils.errors import ClassificationError
from utils.models import Category, ClassifiedResult, SearchResultItem

logger = logging.getLogger(__name__)

DOMAIN_TABLES_PATH = Path(__file__).parent / "domain_tables.yaml"

_NON_LETTERS = re.compile(r"[^a-z]")


@lru_cache(maxsize=1)
def load_domain_tables(path: Optional[str] = None) -> dict:
    """Parse the YAML table once. Returns the raw mapping with a `version` key."""
    with open(path or DOMAIN_TABLES_PATH, "r", encoding="utf-8") as f:
        tables = yaml.safe_load(f) or {}

    # Category keys must name a real Category; a typo here should fail at startup.
    categories = {}
    for label, domains in (tables.get("categories") or {}).items():
        categories[Category(label)] = [d.lower() for d in domains or []]
    tables["categories"] = categories

    official = {}
    for entry in tables.get("official_domains") or []:
        domains = [d.lower() for d in entry.get("domains") or []]
        for alias in entry.get("names") or []:
            official[" ".join(alias.lower().split())] = domains
    tables["official_domains"] = official

    logger.info("Loaded domain tables v%s", tables.get("version", "?"))
    return tables


def tables_version() -> int:
    return int(load_domain_tables().get("version", 0))


# ── Normalization ─────────────────────────────────────────────────────────────

def normalize_domain(value: str) -> str:
    """
    Reduce a URL or host to a bare lower-case host.
    'https://www.GoDuke.com/sports/' -> 'goduke.com'
    """
    if not value:
        return ""
    value = value.strip().lower()
    if "://" not in value:
        value = "https://" + value
    try:
        host = urlparse(value).hostname or ""
    except ValueError:
        return ""
    if host.startswith("www."):
        host = host[4:]
    return host.strip(".")


def _letters_only(text: str) -> str:
    return _NON_LETTERS.sub("", text.lower())


def _matches_any(host: str, domains: list[str]) -> Optional[str]:
    """Suffix match on label boundaries: 'sports.yahoo.com' matches 'm.sports.yahoo.com'."""
    for d in domains:
        if host == d or host.endswith("." + d):
            return d
    return None


# ── Classifier ────────────────────────────────────────────────────────────────

def is_official_site(domain: str, organization_name: str) -> bool:
    """True when `domain` belongs to the organization. Never raises."""
    if not domain or not organization_name or not organization_name.strip():
        return False

    host = normalize_domain(domain)
    if not host:
        return False

    tables = load_domain_tables()
    name = " ".join(organization_name.lower().split())

    labels = host.split(".")
    if any(tld in labels[1:] for tld in tables.get("educational_tlds") or []):
        logger.debug("Official (educational TLD): %s", host)
        return True

    for pattern in tables["official_domains"].get(name, []):
        stem = pattern.rsplit(".", 1)[0]
        if stem and stem in host:
            logger.debug("Official (known domain for %s): %s", name, host)
            return True

    if _matches_any(host, tables.get("excluded_domains") or []):
        logger.debug("Excluded platform: %s", host)
        return False

    # Drop the TLD so 'com'/'org' can never satisfy a name token.
    clean_host = _letters_only(".".join(labels[:-1]) if len(labels) > 1 else host)
    # Length is judged on the raw word, so "a&m" counts even though it reduces to "am".
    words = [w for w in (_letters_only(w) for w in name.split() if len(w) > 2) if w]

    if len(words) >= 2 and all(w in clean_host for w in words):
        logger.debug("Official (all name tokens): %s", host)
        return True
    if len(words) == 1 and words[0] in clean_host:
        logger.debug("Official (name token %s): %s", words[0], host)
        return True

    concatenated = _letters_only(name)
    if concatenated and concatenated in clean_host:
        logger.debug("Official (concatenated name): %s", host)
        return True

    return False


# ── Categorizer ───────────────────────────────────────────────────────────────

def categorize_domain(domain: str) -> Category:
    """Competitor category for a domain; Other when no set lists it."""
    host = normalize_domain(domain or "")
    if not host:
        return Category.OTHER
    for category, domains in load_domain_tables()["categories"].items():
        if _matches_any(host, domains):
            return category
    return Category.OTHER


def classify_result(item: SearchResultItem, organization_name: str) -> ClassifiedResult:
    """
    Tag one result item as official or as a categorized competitor.
    Raises ClassificationError for items with no usable domain.
    """
    host = normalize_domain(item.domain or item.url)
    if not host:
        raise ClassificationError(f"Result #{item.rank} has no domain")

    official = is_official_site(host, organization_name)
    return ClassifiedResult(
        domain=host,
        title=item.title,
        rank=item.rank,
        url=item.url,
        is_official=official,
        category=None if official else categorize_domain(host),
    )
