"""
Picture of the Day Poster - Azure Function
Posts the Wikimedia Commons picture of the day to Twitter/X as a thread, once a day.
"""

import os
import logging
from typing import List

import azure.functions as func

from image_compressor import compress_image, MAX_IMAGE_DIMENSION
from potd_sources import fetch_potd_entry, download_image, DEFAULT_FEED_URL
from thread_splitter import split_caption, format_thread
from twitter_poster import create_twitter_session, upload_media, post_thread

app = func.FunctionApp()

# Configure logging - quiet verbose third-party logging
logging.getLogger('urllib3').setLevel(logging.WARNING)
logging.getLogger('googleapiclient').setLevel(logging.WARNING)
logging.getLogger('PIL').setLevel(logging.WARNING)
logging.getLogger('requests_oauthlib').setLevel(logging.WARNING)
logging.getLogger('oauthlib').setLevel(logging.WARNING)

# Configuration
POTD_SOURCE = os.environ.get("POTD_SOURCE", "sheet")  # "sheet" or "feed"
POTD_SPREADSHEET_ID = os.environ.get("POTD_SPREADSHEET_ID")
POTD_SHEET_RANGE = os.environ.get("POTD_SHEET_RANGE", "Sheet1!Y1:Z1")
GOOGLE_API_KEY = os.environ.get("GOOGLE_API_KEY")
POTD_FEED_URL = os.environ.get("POTD_FEED_URL", DEFAULT_FEED_URL)

TWITTER_CONSUMER_KEY = os.environ.get("TWITTER_CONSUMER_KEY")
TWITTER_CONSUMER_SECRET = os.environ.get("TWITTER_CONSUMER_SECRET")
TWITTER_ACCESS_TOKEN = os.environ.get("TWITTER_ACCESS_TOKEN")
TWITTER_ACCESS_TOKEN_SECRET = os.environ.get("TWITTER_ACCESS_TOKEN_SECRET")

JPEG_QUALITY = int(os.environ.get("JPEG_QUALITY", "90"))
MAX_UPLOAD_SIZE_BYTES = int(os.environ.get("MAX_UPLOAD_SIZE_BYTES", "5000000"))  # Twitter's 5 MB image limit
OUTPUT_IMAGE_PATH = os.environ.get("OUTPUT_IMAGE_PATH", os.path.join(os.getcwd(), "new.jpeg"))

# Constants
MAX_THREAD_LENGTH = 99  # Never post more tweets than this in one thread


class ConfigurationError(Exception):
    """Raised when required settings are missing."""


class ThreadTooLongError(Exception):
    """Raised when a caption would need more tweets than a thread may hold."""


def validate_configuration() -> None:
    """
    Check that every setting needed for this run is present.

    Raises:
        ConfigurationError: Listing the missing settings
    """
    required = {
        "TWITTER_CONSUMER_KEY": TWITTER_CONSUMER_KEY,
        "TWITTER_CONSUMER_SECRET": TWITTER_CONSUMER_SECRET,
        "TWITTER_ACCESS_TOKEN": TWITTER_ACCESS_TOKEN,
        "TWITTER_ACCESS_TOKEN_SECRET": TWITTER_ACCESS_TOKEN_SECRET,
    }
    if POTD_SOURCE == "sheet":
        required["POTD_SPREADSHEET_ID"] = POTD_SPREADSHEET_ID
        required["GOOGLE_API_KEY"] = GOOGLE_API_KEY
    elif POTD_SOURCE != "feed":
        raise ConfigurationError(f"POTD_SOURCE must be 'sheet' or 'feed', got {POTD_SOURCE!r}")

    missing = [name for name, value in required.items() if not value]
    if missing:
        logging.error(f"Missing required configuration: {', '.join(missing)}")
        raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")


def check_thread_length(texts: List[str]) -> None:
    """Refuse to post threads longer than MAX_THREAD_LENGTH tweets."""
    if len(texts) > MAX_THREAD_LENGTH:
        logging.error(f"Too many tweets generated from description: {len(texts)} (max {MAX_THREAD_LENGTH})")
        raise ThreadTooLongError(f"Caption needs {len(texts)} tweets, at most {MAX_THREAD_LENGTH} allowed")


def post_picture_of_the_day() -> List[str]:
    """
    Fetch today's picture of the day and post it as a thread.

    Returns:
        IDs of the posted tweets, in order
    """
    validate_configuration()

    potd = fetch_potd_entry(
        POTD_SOURCE,
        spreadsheet_id=POTD_SPREADSHEET_ID,
        sheet_range=POTD_SHEET_RANGE,
        api_key=GOOGLE_API_KEY,
        feed_url=POTD_FEED_URL
    )
    logging.info(f"Fetched today's picture of the day: {potd.download_url}")

    image_data = download_image(potd.download_url)

    try:
        # Resize to fit Twitter's upload limits
        logging.info(f"Compressing image to under {MAX_UPLOAD_SIZE_BYTES} bytes and {MAX_IMAGE_DIMENSION}px")
        image_data = compress_image(
            image_data,
            quality=JPEG_QUALITY,
            max_size_bytes=MAX_UPLOAD_SIZE_BYTES,
            output_path=OUTPUT_IMAGE_PATH,
            logger=logging.getLogger(__name__)
        )

        # This session signs every request to the Twitter API
        session = create_twitter_session(
            TWITTER_CONSUMER_KEY,  # type: ignore
            TWITTER_CONSUMER_SECRET,  # type: ignore
            TWITTER_ACCESS_TOKEN,  # type: ignore
            TWITTER_ACCESS_TOKEN_SECRET  # type: ignore
        )

        media_id = upload_media(session, image_data)
        logging.info(f"Picture of the day uploaded, media id: {media_id}")

        chunks = split_caption(potd.description, logger=logging.getLogger(__name__))
        texts = format_thread(chunks)
        check_thread_length(texts)

        tweet_ids = post_thread(session, texts, media_id)
    finally:
        if os.path.exists(OUTPUT_IMAGE_PATH):
            os.remove(OUTPUT_IMAGE_PATH)

    logging.info(f"Posted picture of the day thread of {len(tweet_ids)} tweet(s), root tweet: {tweet_ids[0]}")
    return tweet_ids


@app.timer_trigger(
    schedule="0 0 12 * * *",  # Cron: sec min hour day month day-of-week (12:00 PM UTC daily)
    arg_name="timer",
    run_on_startup=False
)
def daily_potd_post(timer: func.TimerRequest) -> None:
    """
    Azure Function triggered daily at 12:00 PM UTC to post the picture of the day.

    Args:
        timer: Timer trigger information
    """
    logging.info("Daily picture of the day poster function started")
    if timer.past_due:
        logging.warning("Timer is past due, posting anyway")

    try:
        post_picture_of_the_day()
    except Exception as e:
        logging.error(f"Error in daily_potd_post function: {str(e)}", exc_info=True)
        raise


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    post_picture_of_the_day()
