"""End-to-end tests for the refetch engine, with the Twitter API faked out."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from tweet_refetcher.collector.rate_limiter import RateLimiter
from tweet_refetcher.collector.refetcher import RefetchState, Refetcher
from tweet_refetcher.config import RateLimitConfig
from tweet_refetcher.errors import InputFileError
from tweet_refetcher.models.tweet import RateLimitStatus
from tweet_refetcher.storage.jsonl_sink import JsonlSink

FIXED_TIMESTAMP = "Wed Sep 27 04:15:02 +0000 2017"


def seed_lines(start, count):
    return [json.dumps({"id_str": str(n), "text": f"tweet {n}"}) for n in range(start, start + count)]


def read_output(path):
    with open(path, "r", encoding="utf-8") as f:
        return [json.loads(line) for line in f.read().splitlines()]


@pytest.fixture
def outfile(tmp_path):
    return str(tmp_path / "updated-tweets.json")


@pytest.fixture
def mock_sleep():
    with patch("tweet_refetcher.collector.rate_limiter.asyncio.sleep", new_callable=AsyncMock) as sleep:
        yield sleep


def make_refetcher(client, outfile, **kwargs):
    return Refetcher(
        client,
        RateLimiter(RateLimitConfig()),
        JsonlSink(outfile),
        timestamp_factory=lambda: FIXED_TIMESTAMP,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_refetch_in_batches_of_100(fake_client, seed_file, outfile, mock_sleep):
    """150 seed tweets are looked up as 100 + 50 and all appended with collected_at."""
    client = fake_client()
    refetcher = make_refetcher(client, outfile)

    summary = await refetcher.run(seed_file(seed_lines(1, 150)))

    assert [len(batch) for batch in client.batches] == [100, 50]
    assert client.batches[0][0] == 1
    assert client.batches[1][-1] == 150

    tweets = read_output(outfile)
    assert len(tweets) == 150
    assert all(tweet["collected_at"] == FIXED_TIMESTAMP for tweet in tweets)
    assert [tweet["id"] for tweet in tweets] == list(range(1, 151))

    assert summary.ids_read == 150
    assert summary.batches_requested == 2
    assert summary.batches_failed == 0
    assert summary.tweets_refetched == 150
    assert summary.tweets_written == 150
    assert refetcher.state == RefetchState.DONE
    mock_sleep.assert_not_called()


@pytest.mark.asyncio
async def test_collected_at_is_first_field(fake_client, seed_file, outfile, mock_sleep):
    refetcher = make_refetcher(fake_client(), outfile)

    await refetcher.run(seed_file(['{"id_str":"42"}']))

    with open(outfile, "r", encoding="utf-8") as f:
        line = f.read()
    assert line == '{"collected_at":"%s","id":42,"id_str":"42","retweet_count":3}\n' % FIXED_TIMESTAMP


@pytest.mark.asyncio
async def test_malformed_line_is_skipped(fake_client, seed_file, outfile, mock_sleep, caplog):
    client = fake_client()
    refetcher = make_refetcher(client, outfile)
    lines = seed_lines(1, 2) + ["{this is not json"] + seed_lines(3, 2)

    summary = await refetcher.run(seed_file(lines))

    assert client.batches == [[1, 2, 3, 4]]
    assert summary.ids_read == 4
    assert len(read_output(outfile)) == 4
    assert "Failed to parse line 3: {this is not json..." in caplog.text


@pytest.mark.asyncio
async def test_id_falls_back_to_numeric_id(fake_client, seed_file, outfile, mock_sleep):
    client = fake_client()
    refetcher = make_refetcher(client, outfile)

    await refetcher.run(seed_file(['{"id_str":"null","id":7}', '{"id":8}', '{"id_str":"9","id":1}']))

    assert client.batches == [[7, 8, 9]]


@pytest.mark.asyncio
async def test_missing_input_aborts(fake_client, tmp_path, outfile, mock_sleep):
    client = fake_client()
    refetcher = make_refetcher(client, outfile)

    with pytest.raises(InputFileError):
        await refetcher.run(str(tmp_path / "does-not-exist.json"))

    assert refetcher.state == RefetchState.FATAL_ABORT
    assert client.batches == []
    assert not (tmp_path / "updated-tweets.json").exists()


@pytest.mark.asyncio
async def test_failed_batch_is_skipped(fake_client, seed_file, outfile, mock_sleep):
    """A failing middle batch loses only its own tweets."""
    client = fake_client(fail_batches={2})
    refetcher = make_refetcher(client, outfile)

    summary = await refetcher.run(seed_file(seed_lines(1, 250)))

    assert [len(batch) for batch in client.batches] == [100, 100, 50]
    ids = [tweet["id"] for tweet in read_output(outfile)]
    assert ids == list(range(1, 101)) + list(range(201, 251))
    assert summary.batches_failed == 1
    assert summary.tweets_written == 150
    assert refetcher.state == RefetchState.DONE


@pytest.mark.asyncio
async def test_failure_rate_limit_still_paces(fake_client, seed_file, outfile, mock_sleep):
    """The rate limit carried by a failed call is still honoured."""
    client = fake_client(
        fail_batches={1},
        failure_rate_limit=RateLimitStatus(remaining=0, seconds_until_reset=120),
    )
    refetcher = make_refetcher(client, outfile)

    summary = await refetcher.run(seed_file(seed_lines(1, 150)))

    mock_sleep.assert_awaited_once_with(125.0)
    assert summary.pauses == 1
    assert summary.seconds_paused == 125.0
    assert len(read_output(outfile)) == 50


@pytest.mark.asyncio
async def test_low_budget_pauses_after_every_batch(fake_client, seed_file, outfile, mock_sleep):
    client = fake_client(rate_limit=RateLimitStatus(remaining=3, seconds_until_reset=30))
    refetcher = make_refetcher(client, outfile)

    summary = await refetcher.run(seed_file(seed_lines(1, 201)))

    assert mock_sleep.await_count == 3
    mock_sleep.assert_awaited_with(35.0)
    assert summary.pauses == 3


@pytest.mark.asyncio
async def test_output_is_appended(fake_client, seed_file, outfile, mock_sleep):
    with open(outfile, "w", encoding="utf-8") as f:
        f.write('{"id":0}\n')

    refetcher = make_refetcher(fake_client(), outfile)
    await refetcher.run(seed_file(seed_lines(1, 2)))

    tweets = read_output(outfile)
    assert tweets[0] == {"id": 0}
    assert [tweet["id"] for tweet in tweets[1:]] == [1, 2]


@pytest.mark.asyncio
async def test_empty_seed_file(fake_client, seed_file, outfile, mock_sleep):
    client = fake_client()
    refetcher = make_refetcher(client, outfile)

    summary = await refetcher.run(seed_file([]))

    assert client.batches == []
    assert summary.ids_read == 0
    assert summary.tweets_written == 0
    assert refetcher.state == RefetchState.DONE


@pytest.mark.asyncio
async def test_custom_batch_size(fake_client, seed_file, outfile, mock_sleep):
    client = fake_client()
    refetcher = make_refetcher(client, outfile, batch_size=2)

    await refetcher.run(seed_file(seed_lines(1, 5)))

    assert client.batches == [[1, 2], [3, 4], [5]]


@pytest.mark.asyncio
async def test_metrics_are_recorded(fake_client, seed_file, outfile, mock_sleep):
    exporter = MagicMock()
    client = fake_client(fail_batches={2})
    refetcher = make_refetcher(client, outfile, prometheus_exporter=exporter)

    await refetcher.run(seed_file(seed_lines(1, 150)))

    exporter.record_lookup.assert_any_call("success")
    exporter.record_lookup.assert_any_call("failure")
    exporter.record_api_error.assert_called_once_with("503")
    exporter.record_tweets_refetched.assert_called_once_with(100)
    exporter.record_tweets_written.assert_called_once_with(100)
    exporter.set_rate_limit_remaining.assert_called_once_with(800)
    exporter.record_pause.assert_not_called()
