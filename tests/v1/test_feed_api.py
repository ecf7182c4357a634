# mypy: ignore-errors
# tests/v1/test_feed_api.py
"""Tests for feed read endpoints."""

import time

from fastapi import status


def _post(client, content, headers=None, **extra):
    # Keep message timestamps (milliseconds) distinct so ordering is deterministic.
    time.sleep(0.005)
    response = client.post("/api/v1/messages/", json={"content": content, **extra}, headers=headers)
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


def test_empty_feed(client) -> None:
    response = client.get("/api/v1/feed/")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == []


def test_feed_is_newest_first_and_enriched(client) -> None:
    first = _post(client, "first")
    second = _post(client, "second")

    items = client.get("/api/v1/feed/").json()

    assert [item["message"]["id"] for item in items] == [second["id"], first["id"]]
    assert items[0]["score"] == 0
    assert items[0]["parent"] is None
    assert items[0]["is_own"] is True


def test_oldest_sort(client) -> None:
    first = _post(client, "first")
    _post(client, "second")
    items = client.get("/api/v1/feed/", params={"sort": "oldest"}).json()
    assert items[0]["message"]["id"] == first["id"]


def test_search_and_tag_filters(client) -> None:
    _post(client, "cats #pets")
    _post(client, "dogs #pets")
    _post(client, "rain #weather")

    assert len(client.get("/api/v1/feed/", params={"tag": "pets"}).json()) == 2
    found = client.get("/api/v1/feed/", params={"q": "DOGS"}).json()
    assert [item["message"]["content"] for item in found] == ["dogs #pets"]
    assert client.get("/api/v1/feed/", params={"q": "#weather"}).json()[0]["message"]["tags"] == ["#weather"]


def test_popular_tags(client) -> None:
    _post(client, "#a1 #b2")
    _post(client, "#b2")

    response = client.get("/api/v1/feed/tags/popular")

    assert response.json() == [{"tag": "#b2", "count": 2}, {"tag": "#a1", "count": 1}]


def test_mine_tab_shows_dialogs(client, auth_headers) -> None:
    alice = auth_headers("alice-uid")
    bob = auth_headers("bob-uid")
    question = _post(client, "question", headers=alice)
    _post(client, "answer", headers=bob, parent_id=question["id"])
    _post(client, "unrelated", headers=bob)

    mine = client.get("/api/v1/feed/", params={"tab": "mine"}, headers=alice).json()
    assert sorted(item["message"]["content"] for item in mine) == ["answer", "question"]


def test_invalid_sort_is_rejected(client) -> None:
    response = client.get("/api/v1/feed/", params={"sort": "random"})
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_get_single_item(client) -> None:
    message = _post(client, "single")
    assert client.get(f"/api/v1/feed/{message['id']}").json()["message"]["content"] == "single"
    assert client.get("/api/v1/feed/missing").status_code == status.HTTP_404_NOT_FOUND


def test_anonymous_reads_do_not_accumulate_send_limiters(client, feed_core) -> None:
    for _ in range(50):
        client.cookies.clear()
        assert client.get("/api/v1/feed/").status_code == status.HTTP_200_OK
    assert len(feed_core.limiters) == 0

    feed_core.limiters.cooldown_seconds = 15.0
    _post(client, "now a writer")
    assert len(feed_core.limiters) == 1
