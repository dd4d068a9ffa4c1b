"""
Twitter Poster
Uploads the picture of the day and posts its caption as a thread on Twitter/X.
"""

import logging
from typing import Any, Dict, List, Optional

import requests
from requests_oauthlib import OAuth1Session

MEDIA_UPLOAD_URL = "https://upload.twitter.com/1.1/media/upload.json?media_category=tweet_image"
TWEETS_URL = "https://api.twitter.com/2/tweets"
SUCCESS_STATUS_CODES = (200, 201)
REQUEST_TIMEOUT_SECONDS = 60

logger = logging.getLogger(__name__)


class TwitterApiError(Exception):
    """Raised when the Twitter API rejects a request."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


def create_twitter_session(consumer_key: str, consumer_secret: str,
                           access_token: str, access_token_secret: str) -> OAuth1Session:
    """Create an HTTP session that signs every request with the account's OAuth 1.0a credentials."""
    return OAuth1Session(
        consumer_key,
        client_secret=consumer_secret,
        resource_owner_key=access_token,
        resource_owner_secret=access_token_secret,
    )


def _check_response(response: requests.Response, action: str) -> Dict[str, Any]:
    if response.status_code not in SUCCESS_STATUS_CODES:
        body = response.text[:500]
        logger.error(f"Bad http status while {action}: {response.status_code}, body: {body}")
        raise TwitterApiError(f"Bad http status while {action}", response.status_code, response.text)

    logger.info(f"Received http {response.status_code} on {action}")

    try:
        return response.json()
    except ValueError as e:
        raise TwitterApiError(f"Could not decode Twitter API response while {action}",
                              response.status_code, response.text) from e


def upload_media(session: OAuth1Session, image_data: bytes, filename: str = "potd.jpg") -> str:
    """
    Upload an image to Twitter.

    Args:
        session: OAuth-signed session
        image_data: Image bytes to upload
        filename: File name sent with the multipart form

    Returns:
        ID of the uploaded media
    """
    logger.info(f"Uploading image to Twitter ({len(image_data) / 1024:.1f}KB)")

    files = {
        "media": (filename, image_data, "application/octet-stream")
    }
    response = session.post(MEDIA_UPLOAD_URL, files=files, timeout=REQUEST_TIMEOUT_SECONDS)
    upload_data = _check_response(response, "uploading media")

    media_id = upload_data.get("media_id_string") or upload_data.get("media_id")
    if not media_id:
        logger.error(f"No media id returned from upload. Response: {upload_data}")
        raise TwitterApiError("No media id returned from upload", response.status_code, response.text)

    return str(media_id)


def post_tweet(session: OAuth1Session, text: str,
               media_id: Optional[str] = None, reply_to_id: Optional[str] = None) -> str:
    """
    Post a tweet, optionally with an uploaded image or in reply to another tweet.

    Returns:
        ID of the new tweet
    """
    post_data: Dict[str, Any] = {"text": text}
    if media_id:
        post_data["media"] = {"media_ids": [media_id]}
    if reply_to_id:
        post_data["reply"] = {"in_reply_to_tweet_id": reply_to_id}

    logger.info(f"Tweet request body: {post_data}")

    response = session.post(TWEETS_URL, json=post_data, timeout=REQUEST_TIMEOUT_SECONDS)
    tweet = _check_response(response, "submitting tweet")

    tweet_id = tweet.get("data", {}).get("id")
    if not tweet_id:
        logger.error(f"No tweet id returned. Response: {tweet}")
        raise TwitterApiError("No tweet id returned", response.status_code, response.text)

    return tweet_id


def post_thread(session: OAuth1Session, texts: List[str], media_id: str) -> List[str]:
    """
    Post a thread: the first text with the image, every following text in reply
    to the tweet before it.

    Returns:
        IDs of the posted tweets, in order
    """
    if not texts:
        raise ValueError("Cannot post an empty thread")

    tweet_id = post_tweet(session, texts[0], media_id=media_id)
    logger.info(f"Tweet posted with media: {tweet_id}")
    tweet_ids = [tweet_id]

    for text in texts[1:]:
        tweet_id = post_tweet(session, text, reply_to_id=tweet_id)
        logger.info(f"Tweet posted in reply to previous tweet: {tweet_id}")
        tweet_ids.append(tweet_id)

    logger.info(f"Done posting {len(tweet_ids)} tweet(s)")
    return tweet_ids
