"""
Picture of the Day Sources
Fetches today's picture of the day description and image from Google Sheets or the
Wikimedia Commons RSS feed, and downloads the image.
"""

import logging
import re
from typing import NamedTuple, Optional

import feedparser
import requests
from bs4 import BeautifulSoup
from googleapiclient.discovery import build

DEFAULT_FEED_URL = "https://commons.wikimedia.org/w/api.php?action=featuredfeed&feed=potd&feedformat=rss&language=en"
DESCRIPTION_SEPARATOR = "] \n\n"  # Sheet cells hold "[<date/title>] \n\n<description>"
REQUEST_TIMEOUT_SECONDS = 60
USER_AGENT = "potd-poster/1.0 (picture of the day bot)"

# upload.wikimedia.org/wikipedia/commons/thumb/a/ab/Name.jpg/300px-Name.jpg
COMMONS_THUMBNAIL_PATTERN = re.compile(
    r"^(?P<base>https?://upload\.wikimedia\.org/wikipedia/commons)/thumb/(?P<path>[^/]+/[^/]+/[^/]+)/[^/]+$"
)

logger = logging.getLogger(__name__)


class PotdSourceError(Exception):
    """Raised when the picture of the day cannot be fetched."""


class PotdEntry(NamedTuple):
    description: str
    download_url: str


def clean_sheet_description(cell: str) -> str:
    """
    Isolate the description text from a sheet cell.

    Args:
        cell: Raw cell value, a bracketed header followed by a blank line and the description

    Returns:
        Description text with line breaks removed
    """
    parts = cell.split(DESCRIPTION_SEPARATOR, 1)
    if len(parts) < 2:
        raise PotdSourceError(f"Description cell is missing the {DESCRIPTION_SEPARATOR!r} separator")
    return parts[1].replace("\n", "")


def fetch_potd_from_sheet(spreadsheet_id: str, sheet_range: str, api_key: str) -> PotdEntry:
    """
    Fetch today's entry from a Google Sheet.

    Args:
        spreadsheet_id: ID of the spreadsheet
        sheet_range: A1 range whose first row is [description, download URL]
        api_key: Google API key with Sheets access

    Returns:
        Today's picture of the day entry
    """
    service = build("sheets", "v4", developerKey=api_key, cache_discovery=False)
    result = service.spreadsheets().values().get(
        spreadsheetId=spreadsheet_id,
        range=sheet_range
    ).execute()

    rows = result.get("values", [])
    if not rows:
        logger.error(f"No data found in sheet range {sheet_range}")
        raise PotdSourceError("No data found in sheet")

    row = rows[0]
    if len(row) < 2:
        logger.error(f"Sheet row has {len(row)} cell(s), expected description and download URL")
        raise PotdSourceError("Sheet row is missing the description or download URL")

    entry = PotdEntry(
        description=clean_sheet_description(str(row[0])),
        download_url=str(row[1]).strip()
    )
    logger.info(f"Fetched picture of the day from sheet: {entry.download_url}")
    return entry


def thumbnail_to_original_url(url: str) -> str:
    """
    Turn a Wikimedia Commons thumbnail URL into the URL of the full-size file.
    URLs that are not Commons thumbnails are returned unchanged.
    """
    if url.startswith("//"):
        url = "https:" + url

    match = COMMONS_THUMBNAIL_PATTERN.match(url)
    if not match:
        return url
    return f"{match.group('base')}/{match.group('path')}"


def _newest_entry(entries):
    dated = [entry for entry in entries if entry.get("published_parsed")]
    if dated:
        return max(dated, key=lambda entry: entry["published_parsed"])
    # The Commons feed lists days oldest first
    return entries[-1]


def fetch_potd_from_feed(feed_url: str = DEFAULT_FEED_URL) -> PotdEntry:
    """
    Fetch today's entry from the Wikimedia Commons picture of the day RSS feed.

    Args:
        feed_url: URL of the RSS feed

    Returns:
        Today's picture of the day entry
    """
    try:
        response = requests.get(feed_url, headers={"User-Agent": USER_AGENT}, timeout=REQUEST_TIMEOUT_SECONDS)
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        logger.error(f"Error fetching picture of the day feed: {str(e)}")
        raise PotdSourceError(f"Could not fetch feed {feed_url}") from e

    feed = feedparser.parse(response.content)
    if feed.bozo:
        logger.warning(f"Feed parsing warning for {feed_url}: {feed.bozo_exception}")

    if not feed.entries:
        raise PotdSourceError("No entries found in picture of the day feed")

    entry = _newest_entry(feed.entries)
    soup = BeautifulSoup(entry.get("summary", ""), "html.parser")

    img = soup.find("img")
    if not img or not img.get("src"):
        raise PotdSourceError(f"No image found in feed entry {entry.get('title', '')!r}")

    description_div = soup.find("div", class_="description")
    if description_div:
        description = description_div.get_text(separator=" ")
    else:
        description = soup.get_text(separator=" ")
    description = " ".join(description.split())

    if not description:
        raise PotdSourceError(f"No description found in feed entry {entry.get('title', '')!r}")

    potd = PotdEntry(description=description, download_url=thumbnail_to_original_url(img["src"]))
    logger.info(f"Fetched picture of the day from feed: {potd.download_url}")
    return potd


def fetch_potd_entry(source: str,
                     spreadsheet_id: Optional[str] = None,
                     sheet_range: Optional[str] = None,
                     api_key: Optional[str] = None,
                     feed_url: str = DEFAULT_FEED_URL) -> PotdEntry:
    """Fetch today's entry from the configured source ("sheet" or "feed")."""
    if source == "sheet":
        return fetch_potd_from_sheet(spreadsheet_id, sheet_range, api_key)  # type: ignore
    if source == "feed":
        return fetch_potd_from_feed(feed_url)
    raise PotdSourceError(f"Unknown picture of the day source: {source!r}")


def download_image(url: str) -> bytes:
    """
    Download the picture of the day image.

    Args:
        url: Image URL

    Returns:
        Raw image bytes
    """
    try:
        response = requests.get(url, headers={"User-Agent": USER_AGENT}, timeout=REQUEST_TIMEOUT_SECONDS)
    except requests.exceptions.RequestException as e:
        logger.error(f"Could not download image via http: {str(e)}")
        raise PotdSourceError(f"Could not download image from {url}") from e

    if response.status_code != 200:
        logger.error(f"Bad http status while downloading image: {response.status_code}, body: {response.text[:500]}")
        raise PotdSourceError(f"Bad http status {response.status_code} while downloading image")

    logger.info(f"Downloaded image from {url} ({len(response.content) / 1024:.1f}KB)")
    return response.content
