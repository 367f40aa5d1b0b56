"""Tests for TrelloClient against a mocked requests session."""

import json
from unittest.mock import MagicMock

import pytest

from marketing_agents.core.config import TrelloConfig
from marketing_agents.core.task import Stage
from marketing_agents.errors import DispatchError, UnexpectedResponseError, UpstreamHttpError
from marketing_agents.integrations.trello.client import TrelloClient

LISTS = [
    {"id": "L0", "name": "Backlog"},
    {"id": "L1", "name": "To Do"},
    {"id": "L1b", "name": "À faire"},
    {"id": "L2", "name": "En cours"},
    {"id": "L3", "name": "Review"},
    {"id": "L4", "name": "Done"},
    {"id": "L9", "name": "Ideas"},
]

LABELS = [
    {"id": "lab-seo", "name": "SEO", "color": "green"},
    {"id": "lab-blue", "name": "", "color": "blue"},
    {"id": "lab-high", "name": "high", "color": "orange"},
]


def _make_response(payload=None, status=200):
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 300
    response.reason = "OK" if response.ok else "Error"
    body = json.dumps(payload) if payload is not None else ""
    response.content = body.encode()
    response.text = body
    response.json.return_value = payload
    return response


class FakeTrello:
    """Routes session.request calls to canned responses and records them."""

    def __init__(self):
        self.calls = []
        self.routes = {}

    def route(self, method, path, payload=None, status=200):
        self.routes[(method, path)] = _make_response(payload, status)

    def request(self, method, url, **kwargs):
        path = url.split("/1", 1)[1]
        self.calls.append((method, path, kwargs))
        return self.routes.get((method, path), _make_response(None))


def _make_client():
    fake = FakeTrello()
    fake.route("GET", "/boards/b1/lists", LISTS)
    fake.route("GET", "/boards/b1/labels", LABELS)
    session = MagicMock()
    session.request.side_effect = fake.request
    config = TrelloConfig(api_key="KEY", token="TOKEN", board_id="b1")
    return TrelloClient(config, session=session), fake


class TestInitialize:
    @pytest.mark.asyncio
    async def test_maps_first_list_per_stage(self):
        client, _ = _make_client()

        await client.initialize()

        assert client.get_list_id(Stage.BACKLOG) == "L0"
        assert client.get_list_id(Stage.TODO) == "L1"
        assert client.get_list_id(Stage.IN_PROGRESS) == "L2"
        assert client.get_list_id(Stage.REVIEW) == "L3"
        assert client.get_list_id(Stage.DONE) == "L4"

    @pytest.mark.asyncio
    async def test_parser_learns_list_names(self):
        client, _ = _make_client()

        await client.initialize()

        assert client.parser.list_names["L2"] == "En cours"
        assert client.parser.detect_stage("L2") is Stage.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_credentials_sent_as_params(self):
        client, fake = _make_client()

        await client.initialize()

        _, _, kwargs = fake.calls[0]
        assert kwargs["params"] == {"key": "KEY", "token": "TOKEN"}
        assert kwargs["timeout"] == 30.0

    @pytest.mark.asyncio
    async def test_find_label_by_name_then_colour(self):
        client, _ = _make_client()
        await client.initialize()

        assert client.find_label_id("seo") == "lab-seo"
        assert client.find_label_id("blue") == "lab-blue"
        assert client.find_label_id("purple") is None


class TestCards:
    @pytest.mark.asyncio
    async def test_get_available_tasks_reads_todo_list(self):
        client, fake = _make_client()
        fake.route("GET", "/lists/L1/cards?fields=id,name,desc,idList,labels,due,idMembers,url", [
            {"id": "c1", "name": "Audit SEO", "desc": "", "idList": "L1",
             "labels": [{"id": "lab-seo", "name": "seo", "color": "green"}], "due": None,
             "url": "https://trello.com/c/c1"},
        ])
        await client.initialize()

        cards = await client.get_available_tasks()

        assert [c.id for c in cards] == ["c1"]
        assert cards[0].id_list == "L1"
        assert cards[0].labels[0].name == "seo"

    @pytest.mark.asyncio
    async def test_move_card_puts_list_id(self):
        client, fake = _make_client()
        await client.initialize()

        await client.move_card("c1", Stage.DONE)

        method, path, kwargs = fake.calls[-1]
        assert (method, path) == ("PUT", "/cards/c1")
        assert kwargs["json"] == {"idList": "L4"}

    @pytest.mark.asyncio
    async def test_unmapped_stage_raises_dispatch_error(self):
        client, fake = _make_client()
        fake.route("GET", "/boards/b1/lists", [{"id": "L1", "name": "Todo"}])
        await client.initialize()

        with pytest.raises(DispatchError, match="review"):
            await client.move_card("c1", Stage.REVIEW)

    @pytest.mark.asyncio
    async def test_add_comment(self):
        client, fake = _make_client()

        await client.add_comment("c1", "hello")

        method, path, kwargs = fake.calls[-1]
        assert (method, path) == ("POST", "/cards/c1/actions/comments")
        assert kwargs["json"] == {"text": "hello"}

    @pytest.mark.asyncio
    async def test_add_checklist_items_in_order(self):
        client, fake = _make_client()
        fake.route("POST", "/cards/c1/checklists", {"id": "chk1"})

        await client.add_checklist("c1", "Next steps", ["one", "two"])

        item_calls = [c for c in fake.calls if c[1] == "/checklists/chk1/checkItems"]
        assert [c[2]["json"]["name"] for c in item_calls] == ["one", "two"]

    @pytest.mark.asyncio
    async def test_checklist_without_id_rejected(self):
        client, fake = _make_client()
        fake.route("POST", "/cards/c1/checklists", {})

        with pytest.raises(UnexpectedResponseError):
            await client.add_checklist("c1", "Next steps", ["one"])

    @pytest.mark.asyncio
    async def test_create_card(self):
        client, fake = _make_client()
        fake.route("POST", "/cards", {"id": "new1", "name": "T", "idList": "L1", "url": "https://trello.com/c/new1"})
        await client.initialize()

        card = await client.create_card(Stage.TODO, "T", "desc", label_ids=["lab-seo"])

        assert card.id == "new1"
        _, _, kwargs = fake.calls[-1]
        assert kwargs["json"] == {"idList": "L1", "name": "T", "desc": "desc", "idLabels": ["lab-seo"]}

    @pytest.mark.asyncio
    async def test_create_card_without_id_rejected(self):
        client, fake = _make_client()
        fake.route("POST", "/cards", {"name": "T"})
        await client.initialize()

        with pytest.raises(UnexpectedResponseError):
            await client.create_card(Stage.TODO, "T", "desc")

    @pytest.mark.asyncio
    async def test_http_error_has_no_credentials(self):
        client, fake = _make_client()
        fake.route("POST", "/cards/c1/actions/comments", {"message": "invalid token"}, status=401)

        with pytest.raises(UpstreamHttpError) as exc_info:
            await client.add_comment("c1", "hello")

        assert exc_info.value.status == 401
        assert "TOKEN" not in str(exc_info.value)
        assert "KEY" not in str(exc_info.value)
