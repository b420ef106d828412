"""Mapping between seed tweet lines, tweet IDs and annotated tweet JSON."""

import json
import logging
import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from tweet_refetcher.errors import InputFileError
from tweet_refetcher.models.tweet import MAX_TWEET_ID, MIN_TWEET_ID

logger = logging.getLogger(__name__)

COLLECTED_AT_FIELD = "collected_at"

# Fixed English names, so the timestamp does not depend on the host locale
_DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTH_NAMES = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

_PREVIEW_LENGTH = 70
_DECIMAL_ID = re.compile(r"-?\d+")
_WHITESPACE = " \t\n\r"
_decoder = json.JSONDecoder()


def _check_range(tweet_id: int) -> int:
    if not MIN_TWEET_ID <= tweet_id <= MAX_TWEET_ID:
        raise ValueError(f"Tweet ID out of 64-bit range: {tweet_id}")
    return tweet_id


def extract_tweet_id(tweet: Dict[str, Any]) -> Optional[int]:
    """
    Recover the tweet ID from a parsed tweet object.

    ``id_str`` is preferred when present and not null (an empty string or
    the string ``"null"`` counts as null). Otherwise an integer ``id`` is used.

    Args:
        tweet: Parsed tweet JSON object

    Returns:
        The tweet ID, or None if the object carries neither field

    Raises:
        ValueError: If ``id_str`` is not an integer or the ID is out of range
    """
    id_str = tweet.get("id_str")
    if isinstance(id_str, str) and id_str.strip() in ("", "null"):
        id_str = None

    if id_str is not None:
        if not isinstance(id_str, str):
            raise ValueError(f"id_str is not a string: {id_str!r}")
        if not _DECIMAL_ID.fullmatch(id_str.strip()):
            raise ValueError(f"id_str is not an integer: {id_str!r}")
        return _check_range(int(id_str.strip()))

    numeric_id = tweet.get("id")
    if isinstance(numeric_id, int) and not isinstance(numeric_id, bool):
        return _check_range(numeric_id)

    return None


def _preview(line: str) -> str:
    return line[:_PREVIEW_LENGTH] + "..."


def parse_tweet_ids(lines: Iterable[str]) -> List[int]:
    """
    Extract one tweet ID per line of JSON, preserving input order.

    Lines that fail to parse or carry no usable ID are logged and skipped.

    Args:
        lines: Lines of text, each one JSON object

    Returns:
        List of tweet IDs in input order
    """
    tweet_ids = []
    for line_number, line in enumerate(lines, start=1):
        line = line.strip()
        if not line:
            continue

        try:
            tweet = json.loads(line)
        except json.JSONDecodeError:
            logger.warning(f"Failed to parse line {line_number}: {_preview(line)}")
            continue

        if not isinstance(tweet, dict):
            logger.warning(f"Line {line_number} is not a JSON object: {_preview(line)}")
            continue

        try:
            tweet_id = extract_tweet_id(tweet)
        except ValueError as e:
            logger.warning(f"Bad tweet ID on line {line_number} ({e}): {_preview(line)}")
            continue

        if tweet_id is None:
            logger.warning(f"No id_str or id on line {line_number}: {_preview(line)}")
            continue

        tweet_ids.append(tweet_id)

    return tweet_ids


def read_tweet_ids(path: str) -> List[int]:
    """
    Read the seed tweet file and extract the tweet IDs.

    Args:
        path: Path to a file of tweets, one JSON object per line

    Returns:
        List of tweet IDs in file order

    Raises:
        InputFileError: If the file cannot be opened or read
    """
    try:
        with open(path, "r", encoding="utf-8") as file:
            tweet_ids = parse_tweet_ids(file)
    except (OSError, UnicodeDecodeError) as e:
        raise InputFileError(f"Failed to read seed tweets from {path}: {e}") from e

    logger.info(f"Read in {len(tweet_ids)} tweet IDs from {path}")
    return tweet_ids


def twitter_timestamp(moment: Optional[datetime] = None) -> str:
    """
    Format a moment the way Twitter formats ``created_at``.

    Example: ``Wed Sep 29 04:15:02 +0000 2017``. Naive datetimes are taken
    to be in the local zone.

    Args:
        moment: Time to format (defaults to now, local zone)
    """
    if moment is None:
        moment = datetime.now().astimezone()
    elif moment.tzinfo is None:
        moment = moment.astimezone()

    return (
        f"{_DAY_NAMES[moment.weekday()]} {_MONTH_NAMES[moment.month - 1]} "
        f"{moment:%d %H:%M:%S %z %Y}"
    )


def annotate_payload(raw_json: str, timestamp: str) -> str:
    """
    Splice a ``collected_at`` field into raw tweet JSON right after the opening brace.

    All other characters of ``raw_json`` are kept as they are.

    Args:
        raw_json: JSON text of one tweet object
        timestamp: Value for the collected_at field

    Returns:
        The annotated JSON text

    Raises:
        ValueError: If raw_json is not a JSON object
    """
    if not raw_json.startswith("{"):
        raise ValueError(f"Not a JSON object: {_preview(raw_json)}")

    field_json = f'"{COLLECTED_AT_FIELD}":{json.dumps(timestamp)}'
    if raw_json[1:].lstrip().startswith("}"):
        return raw_json[0] + field_json + raw_json[1:]
    return raw_json[0] + field_json + "," + raw_json[1:]


def _skip_whitespace(text: str, index: int) -> int:
    while index < len(text) and text[index] in _WHITESPACE:
        index += 1
    return index


def split_json_objects(text: str) -> List[str]:
    """
    Split the JSON text of an array into the text of each object element.

    Each element is sliced out of ``text`` as it stands, so number formatting,
    escapes and key order are kept. Elements that are not objects are dropped.

    Args:
        text: JSON text of an array, e.g. a statuses/lookup response body

    Returns:
        Text of each object element, in array order

    Raises:
        ValueError: If text is not a well-formed JSON array
    """
    index = _skip_whitespace(text, 0)
    if index >= len(text) or text[index] != "[":
        raise ValueError("Not a JSON array")

    elements = []
    index = _skip_whitespace(text, index + 1)
    if index < len(text) and text[index] == "]":
        index += 1
    else:
        while True:
            value, end = _decoder.raw_decode(text, index)
            if isinstance(value, dict):
                elements.append(text[index:end])

            index = _skip_whitespace(text, end)
            if index < len(text) and text[index] == ",":
                index = _skip_whitespace(text, index + 1)
            elif index < len(text) and text[index] == "]":
                index += 1
                break
            else:
                raise ValueError(f"Expected ',' or ']' at position {index}")

    if _skip_whitespace(text, index) != len(text):
        raise ValueError(f"Extra data after JSON array at position {index}")
    return elements
