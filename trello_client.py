# trello_client.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Type, TypeVar, Union

import requests

from trello_config import TrelloConfig
from trello_rate_limit import RateLimitConfig
from trello_errors import TrelloValidationError
from trello_http import DEFAULT_BASE_ORIGIN, JSON_HEADERS, RequestPayload, Verb, execute
from trello_types import (
    Action,
    Board,
    Card,
    CheckItem,
    Checklist,
    CustomField,
    Label,
    Member,
    Organization,
    Passthrough,
    Reaction,
    Sticker,
    TrelloList,
    Webhook,
    decode_many,
    decode_one,
)

E = TypeVar("E", bound=Enum)


class CardField(str, Enum):
    NAME = "name"
    DESC = "desc"
    ID_LIST = "idList"
    ID_BOARD = "idBoard"
    DUE = "due"
    DUE_COMPLETE = "dueComplete"
    CLOSED = "closed"
    POS = "pos"
    SUBSCRIBED = "subscribed"


class ChecklistField(str, Enum):
    NAME = "name"
    POS = "pos"


class LabelField(str, Enum):
    NAME = "name"
    COLOR = "color"


class BoardPref(str, Enum):
    PERMISSION_LEVEL = "permissionLevel"
    SELF_JOIN = "selfJoin"
    CARD_COVERS = "cardCovers"
    BACKGROUND = "background"
    CALENDAR_FEED_ENABLED = "calendarFeedEnabled"
    CARD_AGING = "cardAging"
    COMMENTS = "comments"
    INVITATIONS = "invitations"
    VOTING = "voting"
    HIDE_VOTES = "hideVotes"


class ActionField(str, Enum):
    ID = "id"
    DATA = "data"
    TYPE = "type"
    DATE = "date"
    ID_MEMBER_CREATOR = "idMemberCreator"
    DISPLAY = "display"
    MEMBER_CREATOR = "memberCreator"
    LIMITS = "limits"


def _field(enum_cls: Type[E], value: Union[E, str]) -> E:
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise TrelloValidationError(f"Unknown {enum_cls.__name__} {value!r}. Allowed: {allowed}") from None


@dataclass(frozen=True)
class TrelloCredentials:
    api_key: str
    api_token: str

    def __post_init__(self) -> None:
        if not self.api_key or not self.api_token:
            raise TrelloValidationError("api_key and api_token are required")

    def as_query(self) -> dict[str, Any]:
        return {"key": self.api_key, "token": self.api_token}

    def __repr__(self) -> str:
        return f"TrelloCredentials(api_key={self.api_key!r}, api_token='***')"


class TrelloClient:
    """
    Typed methods over the Trello REST API (v1).

    Every call merges the credentials into the query and is sent through
    trello_http.execute, which owns the 429 backoff and error mapping.
    """

    def __init__(
        self,
        credentials: TrelloCredentials,
        *,
        base_origin: str = DEFAULT_BASE_ORIGIN,
        rate_limit: Optional[RateLimitConfig] = None,
        session: Optional[requests.Session] = None,
        timeout_seconds: Optional[float] = None,
    ):
        if not isinstance(credentials, TrelloCredentials):
            raise TypeError("credentials should be a TrelloCredentials instance")
        self._credentials = credentials
        self.base_origin = base_origin
        self.rate_limit = rate_limit or RateLimitConfig()
        self.session = session
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_keys(cls, api_key: str, api_token: str, **kwargs: Any) -> "TrelloClient":
        return cls(TrelloCredentials(api_key, api_token), **kwargs)

    @classmethod
    def from_config(cls, cfg: TrelloConfig, session: Optional[requests.Session] = None) -> "TrelloClient":
        return cls(
            TrelloCredentials(cfg.api_key, cfg.api_token),
            base_origin=cfg.api_base,
            rate_limit=RateLimitConfig(
                min_delay=cfg.rate_limit_min_delay,
                max_delay=cfg.rate_limit_max_delay,
                max_retries=cfg.rate_limit_max_retries,
            ),
            session=session,
            timeout_seconds=cfg.timeout_seconds,
        )

    @property
    def credentials(self) -> TrelloCredentials:
        return self._credentials

    def _query(self, params: Optional[Mapping[str, Any]] = None) -> dict[str, Any]:
        query = self._credentials.as_query()
        if params:
            query.update(params)
        return query

    async def _call(
        self,
        verb: Verb,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        data: Any = None,
    ) -> Any:
        if verb.is_json:
            payload = RequestPayload(query=self._query(params), headers=JSON_HEADERS, data=data)
        else:
            payload = RequestPayload(query=self._query(params))
        return await execute(
            verb,
            path,
            payload,
            self.base_origin,
            rate_limit=self.rate_limit,
            session=self.session,
            timeout=self.timeout_seconds,
        )

    # -------------------------
    # Generic escape hatch
    # -------------------------

    async def make_request(
        self,
        request_method: Any,
        path: str,
        options: Any = None,
    ) -> Any:
        """
        Raw call for endpoints without a typed method. `options` become
        query parameters; for POST_JSON/PUT_JSON its "data" entry is sent
        as the JSON body instead. Returns the undecoded JSON.
        """
        if not isinstance(request_method, str):
            raise TypeError("requestMethod should be a string")
        if options is None:
            options = {}
        if not isinstance(options, Mapping):
            raise TypeError("options should be an object")

        verb = Verb.parse(request_method)
        options = dict(options)
        data = options.pop("data", None) if verb.is_json else None

        query = {**options, **self._credentials.as_query()}
        if verb.is_json:
            payload = RequestPayload(query=query, headers=JSON_HEADERS, data=data)
        else:
            payload = RequestPayload(query=query)
        return await execute(
            verb,
            path,
            payload,
            self.base_origin,
            rate_limit=self.rate_limit,
            session=self.session,
            timeout=self.timeout_seconds,
        )

    # -------------------------
    # Boards
    # -------------------------

    async def add_board(
        self,
        name: str,
        description: Optional[str] = None,
        organization_id: Optional[str] = None,
    ) -> Board:
        params: dict[str, Any] = {"name": name}
        if description is not None:
            params["desc"] = description
        if organization_id is not None:
            params["idOrganization"] = organization_id
        return decode_one(Board, await self._call(Verb.POST, "/1/boards/", params))

    async def copy_board(self, name: str, source_board_id: str) -> Board:
        params = {"name": name, "idBoardSource": source_board_id}
        return decode_one(Board, await self._call(Verb.POST, "/1/boards/", params))

    async def update_board_pref(self, board_id: str, pref: Union[BoardPref, str], value: Any) -> Passthrough:
        pref = _field(BoardPref, pref)
        data = await self._call(Verb.PUT, f"/1/boards/{board_id}/prefs/{pref.value}", {"value": value})
        return Passthrough(data)

    async def get_boards(self, member_id: str) -> list[Board]:
        return decode_many(Board, await self._call(Verb.GET, f"/1/members/{member_id}/boards"))

    async def get_board_members(self, board_id: str) -> list[Member]:
        return decode_many(Member, await self._call(Verb.GET, f"/1/boards/{board_id}/members"))

    async def add_member_to_board(self, board_id: str, member_id: str, member_type: str) -> Passthrough:
        if member_type not in ("normal", "admin", "observer"):
            raise TrelloValidationError(f"member_type must be normal, admin or observer, got {member_type!r}")
        data = await self._call(
            Verb.PUT_JSON,
            f"/1/boards/{board_id}/members/{member_id}",
            data={"type": member_type},
        )
        return Passthrough(data)

    async def add_list_to_board(self, board_id: str, name: str) -> TrelloList:
        data = await self._call(Verb.POST, f"/1/boards/{board_id}/lists", {"name": name})
        return decode_one(TrelloList, data)

    async def get_lists_on_board(self, board_id: str, fields: str = "all") -> list[TrelloList]:
        data = await self._call(Verb.GET, f"/1/boards/{board_id}/lists", {"fields": fields})
        return decode_many(TrelloList, data)

    async def get_lists_on_board_by_filter(self, board_id: str, list_filter: str) -> list[TrelloList]:
        data = await self._call(Verb.GET, f"/1/boards/{board_id}/lists", {"filter": list_filter})
        return decode_many(TrelloList, data)

    async def get_cards_on_board(self, board_id: str) -> list[Card]:
        return decode_many(Card, await self._call(Verb.GET, f"/1/boards/{board_id}/cards"))

    async def get_cards_on_board_with_extra_params(
        self,
        board_id: str,
        extra_params: Mapping[str, Any],
        fields: str = "all",
    ) -> list[Card]:
        params = {**extra_params, "fields": fields}
        return decode_many(Card, await self._call(Verb.GET, f"/1/boards/{board_id}/cards", params))

    async def get_custom_fields_on_board(self, board_id: str) -> list[CustomField]:
        data = await self._call(Verb.GET, f"/1/boards/{board_id}/customFields")
        return decode_many(CustomField, data)

    async def get_labels_for_board(self, board_id: str) -> list[Label]:
        return decode_many(Label, await self._call(Verb.GET, f"/1/boards/{board_id}/labels"))

    async def get_actions_on_board(self, board_id: str) -> list[Action]:
        return decode_many(Action, await self._call(Verb.GET, f"/1/boards/{board_id}/actions"))

    # -------------------------
    # Organizations
    # -------------------------

    async def get_organization(self, organization_id: str) -> Organization:
        data = await self._call(Verb.GET, f"/1/organizations/{organization_id}")
        return decode_one(Organization, data)

    async def get_org_boards(self, organization_id: str) -> list[Board]:
        data = await self._call(Verb.GET, f"/1/organizations/{organization_id}/boards")
        return decode_many(Board, data)

    async def get_org_members(self, organization_id: str) -> list[Member]:
        data = await self._call(Verb.GET, f"/1/organizations/{organization_id}/members")
        return decode_many(Member, data)

    # -------------------------
    # Cards
    # -------------------------

    async def add_card(self, name: str, list_id: str, description: Optional[str] = None) -> Card:
        params: dict[str, Any] = {"name": name, "idList": list_id}
        if description is not None:
            params["desc"] = description
        return decode_one(Card, await self._call(Verb.POST, "/1/cards", params))

    async def add_card_with_extra_params(
        self,
        name: str,
        list_id: str,
        extra_params: Mapping[str, Any],
    ) -> Card:
        params = {"name": name, "idList": list_id, **extra_params}
        return decode_one(Card, await self._call(Verb.POST, "/1/cards", params))

    async def get_card(self, card_id: str, board_id: Optional[str] = None) -> Card:
        if board_id is None:
            return await self.get_card_by_id(card_id)
        return decode_one(Card, await self._call(Verb.GET, f"/1/boards/{board_id}/cards/{card_id}"))

    async def get_card_by_id(self, card_id: str) -> Card:
        return decode_one(Card, await self._call(Verb.GET, f"/1/cards/{card_id}"))

    async def get_cards_for_list(self, list_id: str, actions: Optional[str] = None) -> list[Card]:
        params = {"actions": actions} if actions else None
        return decode_many(Card, await self._call(Verb.GET, f"/1/lists/{list_id}/cards", params))

    async def get_cards_on_list(self, list_id: str) -> list[Card]:
        return decode_many(Card, await self._call(Verb.GET, f"/1/lists/{list_id}/cards"))

    async def get_cards_on_list_with_extra_params(
        self,
        list_id: str,
        extra_params: Mapping[str, Any],
    ) -> list[Card]:
        data = await self._call(Verb.GET, f"/1/lists/{list_id}/cards", extra_params)
        return decode_many(Card, data)

    async def update_card(self, card_id: str, card_field: Union[CardField, str], value: Any) -> Passthrough:
        card_field = _field(CardField, card_field)
        data = await self._call(Verb.PUT, f"/1/cards/{card_id}/{card_field.value}", {"value": value})
        return Passthrough(data)

    async def update_card_name(self, card_id: str, name: str) -> Passthrough:
        return await self.update_card(card_id, CardField.NAME, name)

    async def update_card_description(self, card_id: str, description: str) -> Passthrough:
        return await self.update_card(card_id, CardField.DESC, description)

    async def update_card_list(self, card_id: str, list_id: str) -> Passthrough:
        return await self.update_card(card_id, CardField.ID_LIST, list_id)

    async def update_card_pos(self, card_id: str, position: Union[str, float]) -> Passthrough:
        data = await self._call(Verb.PUT_JSON, f"/1/cards/{card_id}", data={"pos": position})
        return Passthrough(data)

    async def add_due_date_to_card(self, card_id: str, date_value: str) -> Passthrough:
        return await self.update_card(card_id, CardField.DUE, date_value)

    async def delete_card(self, card_id: str) -> Passthrough:
        return Passthrough(await self._call(Verb.DELETE, f"/1/cards/{card_id}"))

    async def add_comment_to_card(self, card_id: str, comment: str) -> Action:
        data = await self._call(Verb.POST, f"/1/cards/{card_id}/actions/comments", {"text": comment})
        return decode_one(Action, data)

    async def add_attachment_to_card(self, card_id: str, url: str) -> Passthrough:
        data = await self._call(Verb.POST, f"/1/cards/{card_id}/attachments", {"url": url})
        return Passthrough(data)

    async def get_attachments_on_card(self, card_id: str) -> Passthrough:
        return Passthrough(await self._call(Verb.GET, f"/1/cards/{card_id}/attachments"))

    async def add_member_to_card(self, card_id: str, member_id: str) -> Passthrough:
        data = await self._call(Verb.POST, f"/1/cards/{card_id}/members", {"value": member_id})
        return Passthrough(data)

    async def del_member_from_card(self, card_id: str, member_id: str) -> Passthrough:
        return Passthrough(await self._call(Verb.DELETE, f"/1/cards/{card_id}/members/{member_id}"))

    async def get_member_cards(self, member_id: str) -> list[Card]:
        return decode_many(Card, await self._call(Verb.GET, f"/1/members/{member_id}/cards"))

    async def add_label_to_card(self, card_id: str, label_id: str) -> Passthrough:
        data = await self._call(Verb.POST_JSON, f"/1/cards/{card_id}/idLabels", data={"value": label_id})
        return Passthrough(data)

    async def delete_label_from_card(self, card_id: str, label_id: str) -> Passthrough:
        return Passthrough(await self._call(Verb.DELETE, f"/1/cards/{card_id}/idLabels/{label_id}"))

    async def get_card_stickers(self, card_id: str) -> list[Sticker]:
        return decode_many(Sticker, await self._call(Verb.GET, f"/1/cards/{card_id}/stickers"))

    async def add_sticker_to_card(
        self,
        card_id: str,
        image: str,
        left: float,
        top: float,
        z_index: int,
        rotate: float = 0,
    ) -> Sticker:
        body = {"image": image, "top": top, "left": left, "zIndex": z_index, "rotate": rotate}
        data = await self._call(Verb.POST_JSON, f"/1/cards/{card_id}/stickers", data=body)
        return decode_one(Sticker, data)

    async def get_custom_fields_on_card(self, card_id: str) -> Passthrough:
        return Passthrough(await self._call(Verb.GET, f"/1/cards/{card_id}/customFieldItems"))

    async def set_custom_field_on_card(self, card_id: str, custom_field_id: str, value: Any) -> Passthrough:
        """`value` is sent as the whole body, e.g. {"value": {"text": "x"}} or {"idValue": "..."}."""
        data = await self._call(
            Verb.PUT_JSON,
            f"/1/card/{card_id}/customField/{custom_field_id}/item",
            data=value,
        )
        return Passthrough(data)

    async def update_custom_field_on_card(self, card_id: str, field_id: str, value: Any) -> Passthrough:
        data = await self._call(
            Verb.PUT_JSON,
            f"/1/cards/{card_id}/customField/{field_id}/item",
            data={"value": value},
        )
        return Passthrough(data)

    async def get_actions_on_card(self, card_id: str) -> list[Action]:
        return decode_many(Action, await self._call(Verb.GET, f"/1/cards/{card_id}/actions"))

    # -------------------------
    # Lists / checklists
    # -------------------------

    async def rename_list(self, list_id: str, name: str) -> Passthrough:
        return Passthrough(await self._call(Verb.PUT, f"/1/lists/{list_id}/name", {"value": name}))

    async def add_checklist_to_card(self, card_id: str, name: str) -> Checklist:
        data = await self._call(Verb.POST, f"/1/cards/{card_id}/checklists", {"name": name})
        return decode_one(Checklist, data)

    async def add_existing_checklist_to_card(self, card_id: str, checklist_id: str) -> Checklist:
        params = {"idChecklistSource": checklist_id}
        return decode_one(Checklist, await self._call(Verb.POST, f"/1/cards/{card_id}/checklists", params))

    async def get_checklists_on_card(self, card_id: str) -> list[Checklist]:
        return decode_many(Checklist, await self._call(Verb.GET, f"/1/cards/{card_id}/checklists"))

    async def add_item_to_checklist(self, checklist_id: str, name: str, pos: Union[str, float]) -> CheckItem:
        params = {"name": name, "pos": pos}
        data = await self._call(Verb.POST, f"/1/checklists/{checklist_id}/checkitems", params)
        return decode_one(CheckItem, data)

    async def update_checklist(
        self,
        checklist_id: str,
        checklist_field: Union[ChecklistField, str],
        value: Any,
    ) -> Passthrough:
        checklist_field = _field(ChecklistField, checklist_field)
        path = f"/1/checklists/{checklist_id}/{checklist_field.value}"
        return Passthrough(await self._call(Verb.PUT, path, {"value": value}))

    # -------------------------
    # Members
    # -------------------------

    async def get_member(self, member_id: str) -> Member:
        return decode_one(Member, await self._call(Verb.GET, f"/1/member/{member_id}"))

    # -------------------------
    # Custom fields
    # -------------------------

    async def add_custom_field(self, board_id: str, name: str) -> CustomField:
        body = {
            "idModel": board_id,
            "modelType": "board",
            "name": name,
            "options": [],
            "pos": "bottom",
            "type": "list",
        }
        return decode_one(CustomField, await self._call(Verb.POST_JSON, "/1/customFields", data=body))

    async def add_option_to_custom_field(self, custom_field_id: str, value: str) -> Passthrough:
        body = {"pos": "bottom", "value": {"text": value}}
        data = await self._call(Verb.POST_JSON, f"/1/customFields/{custom_field_id}/options", data=body)
        return Passthrough(data)

    # -------------------------
    # Webhooks
    # -------------------------

    async def add_webhook(self, description: str, callback_url: str, id_model: str) -> Webhook:
        body = {"description": description, "callbackURL": callback_url, "idModel": id_model}
        path = f"/1/tokens/{self._credentials.api_token}/webhooks/"
        return decode_one(Webhook, await self._call(Verb.POST_JSON, path, data=body))

    async def delete_webhook(self, webhook_id: str) -> Passthrough:
        return Passthrough(await self._call(Verb.DELETE, f"/1/webhooks/{webhook_id}"))

    # -------------------------
    # Labels
    # -------------------------

    async def add_label_on_board(self, board_id: str, name: str, color: str) -> Label:
        body = {"idBoard": board_id, "color": color, "name": name}
        return decode_one(Label, await self._call(Verb.POST_JSON, "/1/labels", data=body))

    async def delete_label(self, label_id: str) -> Passthrough:
        return Passthrough(await self._call(Verb.DELETE, f"/1/labels/{label_id}"))

    async def update_label(self, label_id: str, label_field: Union[LabelField, str], value: str) -> Passthrough:
        label_field = _field(LabelField, label_field)
        data = await self._call(Verb.PUT, f"/1/labels/{label_id}/{label_field.value}", {"value": value})
        return Passthrough(data)

    async def update_label_name(self, label_id: str, name: str) -> Passthrough:
        return await self.update_label(label_id, LabelField.NAME, name)

    async def update_label_color(self, label_id: str, color: str) -> Passthrough:
        return await self.update_label(label_id, LabelField.COLOR, color)

    # -------------------------
    # Actions
    # -------------------------

    async def get_action(self, action_id: str) -> Action:
        return decode_one(Action, await self._call(Verb.GET, f"/1/actions/{action_id}"))

    async def get_action_field(self, action_id: str, action_field: Union[ActionField, str]) -> Passthrough:
        action_field = _field(ActionField, action_field)
        return Passthrough(await self._call(Verb.GET, f"/1/actions/{action_id}/{action_field.value}"))

    async def update_action(self, action_id: str, text: str) -> Action:
        # only comment actions can be updated
        return decode_one(Action, await self._call(Verb.PUT, f"/1/actions/{action_id}", {"text": text}))

    async def update_comment_action(self, action_id: str, text: str) -> Action:
        data = await self._call(Verb.PUT, f"/1/actions/{action_id}/text", {"value": text})
        return decode_one(Action, data)

    async def delete_action(self, action_id: str) -> Passthrough:
        return Passthrough(await self._call(Verb.DELETE, f"/1/actions/{action_id}"))

    async def get_action_board(self, action_id: str) -> Board:
        return decode_one(Board, await self._call(Verb.GET, f"/1/actions/{action_id}/board"))

    async def get_action_card(self, action_id: str) -> Card:
        return decode_one(Card, await self._call(Verb.GET, f"/1/actions/{action_id}/card"))

    async def get_action_list(self, action_id: str) -> TrelloList:
        return decode_one(TrelloList, await self._call(Verb.GET, f"/1/actions/{action_id}/list"))

    async def get_action_member(self, action_id: str) -> Member:
        return decode_one(Member, await self._call(Verb.GET, f"/1/actions/{action_id}/member"))

    async def get_action_member_creator(self, action_id: str) -> Member:
        return decode_one(Member, await self._call(Verb.GET, f"/1/actions/{action_id}/memberCreator"))

    async def get_action_organization(self, action_id: str) -> Organization:
        data = await self._call(Verb.GET, f"/1/actions/{action_id}/organization")
        return decode_one(Organization, data)

    # -------------------------
    # Reactions
    # -------------------------

    @staticmethod
    def _reaction_params(member: Optional[bool], emoji: Optional[bool]) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if member is not None:
            params["member"] = member
        if emoji is not None:
            params["emoji"] = emoji
        return params

    async def get_action_reactions(
        self,
        action_id: str,
        member: Optional[bool] = None,
        emoji: Optional[bool] = None,
    ) -> list[Reaction]:
        params = self._reaction_params(member, emoji)
        return decode_many(Reaction, await self._call(Verb.GET, f"/1/actions/{action_id}/reactions", params))

    async def add_reaction_to_action(
        self,
        action_id: str,
        short_name: str,
        skin_variation: Optional[str] = None,
        native: Optional[str] = None,
        unified: Optional[str] = None,
    ) -> Reaction:
        body: dict[str, Any] = {"shortName": short_name}
        if skin_variation is not None:
            body["skinVariation"] = skin_variation
        if native is not None:
            body["native"] = native
        if unified is not None:
            body["unified"] = unified
        data = await self._call(Verb.POST_JSON, f"/1/actions/{action_id}/reactions", data=body)
        return decode_one(Reaction, data)

    async def get_action_reaction(
        self,
        action_id: str,
        reaction_id: str,
        member: Optional[bool] = None,
        emoji: Optional[bool] = None,
    ) -> Reaction:
        params = self._reaction_params(member, emoji)
        path = f"/1/actions/{action_id}/reactions/{reaction_id}"
        return decode_one(Reaction, await self._call(Verb.GET, path, params))

    async def delete_action_reaction(self, action_id: str, reaction_id: str) -> Passthrough:
        return Passthrough(await self._call(Verb.DELETE, f"/1/actions/{action_id}/reactions/{reaction_id}"))

    async def get_action_reactions_summary(self, action_id: str) -> Passthrough:
        return Passthrough(await self._call(Verb.GET, f"/1/actions/{action_id}/reactionsSummary"))
