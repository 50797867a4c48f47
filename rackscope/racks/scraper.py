# ==============================================
# ModularGridScraper
# ==============================================
#
# PURPOSE:
#   The scrape collaborator RackSelector depends on: fetch a public
#   ModularGrid rack page and turn its embedded rack JSON into a
#   RawRack of classified modules.
#
#   Anything with a `scrape(source_id) -> RawRack` method that raises
#   ScrapeError on failure can replace it (tests use a fake).
#
# HOW:
#   1. Validate the URL (modulargrid.net, /e/racks/view/<id>)
#   2. GET the page with requests (timeout, browser user agent)
#   3. Find `var rack = {...};` or a `"modules": [...]` array in the HTML
#   4. Map each raw module dict to a Module, classifying its type
#   5. Rack name from the first <h1>
#
# Every failure (network, HTTP status, missing/invalid JSON) is raised
# as ScrapeError.
# ==============================================

import html
import json
import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import requests

from rackscope.analysis.classifier import ModuleTypeClassifier
from rackscope.analysis.models import Module, Position, PowerDraw, RawRack
from rackscope.errors import ScrapeError

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36"
DEFAULT_TIMEOUT_SECONDS = 30

RACK_ID_PATTERN = re.compile(r"/view/(\d+)")
RACK_JSON_PATTERN = re.compile(r"var rack = (\{.*?\});", re.DOTALL)
MODULES_JSON_PATTERN = re.compile(r'"modules":\s*(\[.*?\])', re.DOTALL)
HEADING_PATTERN = re.compile(r"<h1[^>]*>(.*?)</h1>", re.DOTALL | re.IGNORECASE)
TAG_PATTERN = re.compile(r"<[^>]+>")
INT_PATTERN = re.compile(r"-?\d+")


def extract_rack_id(url: str) -> Optional[str]:
    match = RACK_ID_PATTERN.search(url or "")
    return match.group(1) if match else None


def is_valid_rack_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return "modulargrid.net" in (parsed.hostname or "") and "/e/racks/view/" in parsed.path


def _to_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return int(value)
    match = INT_PATTERN.search(str(value))
    return int(match.group()) if match else None


def _extract_rack_data(page: str) -> Optional[Dict[str, Any]]:
    rack_match = RACK_JSON_PATTERN.search(page)
    if rack_match:
        try:
            return json.loads(rack_match.group(1))
        except ValueError:
            logger.debug("Embedded rack JSON did not parse, trying modules array")

    modules_match = MODULES_JSON_PATTERN.search(page)
    if modules_match:
        try:
            return {"modules": json.loads(modules_match.group(1))}
        except ValueError:
            logger.debug("Embedded modules JSON did not parse")

    return None


def _extract_rack_name(page: str) -> str:
    match = HEADING_PATTERN.search(page)
    if not match:
        return "Untitled Rack"
    name = html.unescape(TAG_PATTERN.sub("", match.group(1))).strip()
    return name or "Untitled Rack"


class ModularGridScraper:
    def __init__(
        self,
        classifier: Optional[ModuleTypeClassifier] = None,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.classifier = classifier or ModuleTypeClassifier()
        self.session = session or requests.Session()
        self.timeout = timeout

    def scrape(self, url: str) -> RawRack:
        if not is_valid_rack_url(url):
            raise ScrapeError(url, "Invalid ModularGrid rack URL")

        logger.info("Scraping %s", url)
        try:
            response = self.session.get(url, headers={"User-Agent": USER_AGENT}, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ScrapeError(url, str(e)) from e

        rack = self.parse_page(url, response.text)
        logger.info("✓ Scraped rack '%s' (%d modules)", rack.rack_name, len(rack.modules))
        return rack

    def parse_page(self, url: str, page: str) -> RawRack:
        """Build a RawRack from a rack page's HTML."""
        rack_data = _extract_rack_data(page)
        if rack_data is None:
            raise ScrapeError(url, "No rack data found in page")

        modules = [
            self._parse_module(raw, index)
            for index, raw in enumerate(rack_data.get("modules") or [])
            if isinstance(raw, dict)
        ]
        return RawRack.from_modules(
            url=url,
            modules=modules,
            rack_id=extract_rack_id(url) or "unknown",
            rack_name=_extract_rack_name(page),
        )

    def _parse_module(self, raw: Dict[str, Any], index: int) -> Module:
        name = raw.get("name") or raw.get("moduleName") or "Unknown Module"
        description = raw.get("description")
        power = raw.get("power") or {}
        position = raw.get("position") or {}

        return Module(
            name=name,
            manufacturer=raw.get("manufacturer") or raw.get("brand") or "Unknown",
            type=self.classifier.classify(name, description),
            hp=_to_int(raw.get("hp") or raw.get("size")) or 0,
            depth_mm=_to_int(raw.get("depth")),
            power=PowerDraw(
                positive_12v=_to_int(power.get("positive12V") or raw.get("mAPositive12V")),
                negative_12v=_to_int(power.get("negative12V") or raw.get("mANegative12V")),
                positive_5v=_to_int(power.get("positive5V") or raw.get("mA5V")),
            ),
            description=description,
            position=Position(
                row=_to_int(position.get("row", raw.get("row"))) or 0,
                column=_to_int(position.get("column", raw.get("column"))) or 0,
            ),
            module_id=str(raw.get("id") or f"module-{index}"),
            source_url=raw.get("url"),
        )
