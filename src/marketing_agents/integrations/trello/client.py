"""Trello client for the marketing task board."""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests

from ...core.config import TrelloConfig
from ...core.task import BoardCard, BoardLabel, BoardList, Stage, Task
from ...errors import DispatchError, UnexpectedResponseError
from ...utils.http import secure_request_ok
from .parser import CardParser, UNMAPPED, lookup_stage

logger = logging.getLogger(__name__)

CARD_FIELDS = "id,name,desc,idList,labels,due,idMembers,url"


class TrelloClient:
    """Trello REST client: reads cards, moves them between lists, comments.

    Blocking HTTP runs in a worker thread; every public network method is a
    coroutine. Credentials travel as query parameters and are redacted from
    any error message by the secure request wrapper.
    """

    def __init__(
        self,
        config: TrelloConfig,
        session: Optional[requests.Session] = None,
        parser: Optional[CardParser] = None,
    ):
        self.config = config
        self.session = session or requests.Session()
        self.parser = parser or CardParser()
        self._lists: Dict[str, BoardList] = {}
        self._stage_to_list_id: Dict[Stage, str] = {}
        self._labels: List[BoardLabel] = []

    def _request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.config.api_base.rstrip('/')}{path}"
        response = secure_request_ok(
            method,
            url,
            timeout=self.config.timeout,
            session=self.session,
            params={"key": self.config.api_key, "token": self.config.token},
            json=body,
        )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise UnexpectedResponseError(f"Trello returned non-JSON body on {method} {path}") from e

    async def _call(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> Any:
        return await asyncio.to_thread(self._request, method, path, body)

    async def initialize(self) -> None:
        """Load board lists and labels, and map list names to stages."""
        lists = await self._call("GET", f"/boards/{self.config.board_id}/lists")
        labels = await self._call("GET", f"/boards/{self.config.board_id}/labels")

        self._lists.clear()
        self._stage_to_list_id.clear()
        for raw in lists or []:
            board_list = BoardList.model_validate(raw)
            self._lists[board_list.id] = board_list
            stage = lookup_stage(board_list.name)
            if stage is not UNMAPPED and stage not in self._stage_to_list_id:
                self._stage_to_list_id[stage] = board_list.id

        self._labels = [BoardLabel.model_validate(raw) for raw in labels or []]
        self.parser.list_names = {list_id: bl.name for list_id, bl in self._lists.items()}

        mapped = ", ".join(s.value for s in self._stage_to_list_id) or "none"
        logger.info(f"📋 Board loaded: {len(self._lists)} lists (stages: {mapped}), {len(self._labels)} labels")

    def get_list_id(self, stage: Stage) -> Optional[str]:
        return self._stage_to_list_id.get(stage)

    def _require_list_id(self, stage: Stage) -> str:
        list_id = self._stage_to_list_id.get(stage)
        if not list_id:
            raise DispatchError(f"No list found on the board for stage: {stage.value}")
        return list_id

    async def get_available_tasks(self) -> List[BoardCard]:
        """Cards in the todo list (available for agents to pick up)."""
        list_id = self._require_list_id(Stage.TODO)
        cards = await self._call("GET", f"/lists/{list_id}/cards?fields={CARD_FIELDS}")
        return [BoardCard.model_validate(raw) for raw in cards or []]

    async def get_all_cards(self) -> List[BoardCard]:
        cards = await self._call("GET", f"/boards/{self.config.board_id}/cards?fields={CARD_FIELDS}")
        return [BoardCard.model_validate(raw) for raw in cards or []]

    async def move_card(self, card_id: str, stage: Stage) -> None:
        """Move a card to the list mapped to ``stage``."""
        list_id = self._require_list_id(stage)
        await self._call("PUT", f"/cards/{card_id}", {"idList": list_id})

    async def add_comment(self, card_id: str, text: str) -> None:
        await self._call("POST", f"/cards/{card_id}/actions/comments", {"text": text})

    async def add_checklist(self, card_id: str, name: str, items: List[str]) -> None:
        """Create a checklist, then add its items one by one in order."""
        checklist = await self._call("POST", f"/cards/{card_id}/checklists", {"name": name})
        checklist_id = checklist.get("id") if isinstance(checklist, dict) else None
        if not checklist_id:
            raise UnexpectedResponseError(f"Checklist creation on card {card_id} returned no id")
        for item in items:
            await self._call("POST", f"/checklists/{checklist_id}/checkItems", {"name": item})

    async def create_card(
        self,
        stage: Stage,
        name: str,
        desc: str,
        label_ids: Optional[List[str]] = None,
        due: Optional[datetime] = None,
    ) -> BoardCard:
        """Create a card in the list mapped to ``stage``."""
        list_id = self._require_list_id(stage)
        body: Dict[str, Any] = {
            "idList": list_id,
            "name": name,
            "desc": desc,
            "idLabels": label_ids or [],
        }
        if due is not None:
            body["due"] = due.isoformat()

        raw = await self._call("POST", "/cards", body)
        if not isinstance(raw, dict) or not raw.get("id"):
            raise UnexpectedResponseError(f"Card creation for '{name}' returned no id")
        return BoardCard.model_validate(raw)

    def find_label_id(self, name_or_color: str) -> Optional[str]:
        """Board label id by name (case-insensitive) or colour."""
        wanted = name_or_color.strip().lower()
        for label in self._labels:
            if label.name.lower() == wanted:
                return label.id
        for label in self._labels:
            if (label.color or "").lower() == wanted:
                return label.id
        return None

    def parse_card(self, card: BoardCard) -> Task:
        return self.parser.parse(card)
