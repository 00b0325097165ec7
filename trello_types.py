# trello_types.py
from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, ClassVar, Optional, Type, TypeVar

from trello_errors import TrelloDecodeError

T = TypeVar("T", bound="TrelloEntity")


@dataclass(frozen=True)
class TrelloEntity:
    """
    Base for the decoded result types. Only the commonly used fields are
    typed; the full JSON object stays available in `raw`.
    """

    # python field name -> Trello JSON key, where they differ
    _json_keys: ClassVar[dict[str, str]] = {}

    id: Optional[str] = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_dict(cls: Type[T], data: Any) -> T:
        if not isinstance(data, dict):
            raise TrelloDecodeError(f"Expected a JSON object for {cls.__name__}, got {type(data).__name__}")

        kwargs: dict[str, Any] = {}
        for f in fields(cls):
            if f.name == "raw":
                continue
            key = cls._json_keys.get(f.name, f.name)
            if key in data:
                kwargs[f.name] = data[key]
        return cls(raw=data, **kwargs)

    def get(self, key: str, default: Any = None) -> Any:
        return self.raw.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self.raw[key]


@dataclass(frozen=True)
class Board(TrelloEntity):
    _json_keys: ClassVar[dict[str, str]] = {"id_organization": "idOrganization"}

    name: Optional[str] = None
    desc: Optional[str] = None
    closed: Optional[bool] = None
    id_organization: Optional[str] = None
    url: Optional[str] = None


@dataclass(frozen=True)
class TrelloList(TrelloEntity):
    _json_keys: ClassVar[dict[str, str]] = {"id_board": "idBoard"}

    name: Optional[str] = None
    closed: Optional[bool] = None
    id_board: Optional[str] = None
    pos: Optional[float] = None


@dataclass(frozen=True)
class Card(TrelloEntity):
    _json_keys: ClassVar[dict[str, str]] = {
        "id_board": "idBoard",
        "id_list": "idList",
        "due_complete": "dueComplete",
    }

    name: Optional[str] = None
    desc: Optional[str] = None
    closed: Optional[bool] = None
    id_board: Optional[str] = None
    id_list: Optional[str] = None
    pos: Optional[float] = None
    due: Optional[str] = None
    due_complete: Optional[bool] = None
    url: Optional[str] = None


@dataclass(frozen=True)
class Checklist(TrelloEntity):
    _json_keys: ClassVar[dict[str, str]] = {"id_board": "idBoard", "id_card": "idCard"}

    name: Optional[str] = None
    id_board: Optional[str] = None
    id_card: Optional[str] = None
    pos: Optional[float] = None


@dataclass(frozen=True)
class CheckItem(TrelloEntity):
    _json_keys: ClassVar[dict[str, str]] = {"id_checklist": "idChecklist"}

    name: Optional[str] = None
    state: Optional[str] = None  # complete|incomplete
    id_checklist: Optional[str] = None
    pos: Optional[float] = None


@dataclass(frozen=True)
class Member(TrelloEntity):
    _json_keys: ClassVar[dict[str, str]] = {"full_name": "fullName", "avatar_url": "avatarUrl"}

    username: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


@dataclass(frozen=True)
class Label(TrelloEntity):
    _json_keys: ClassVar[dict[str, str]] = {"id_board": "idBoard"}

    name: Optional[str] = None
    color: Optional[str] = None
    id_board: Optional[str] = None


@dataclass(frozen=True)
class Organization(TrelloEntity):
    _json_keys: ClassVar[dict[str, str]] = {"display_name": "displayName"}

    name: Optional[str] = None
    display_name: Optional[str] = None
    desc: Optional[str] = None
    url: Optional[str] = None


@dataclass(frozen=True)
class CustomField(TrelloEntity):
    _json_keys: ClassVar[dict[str, str]] = {"id_model": "idModel", "model_type": "modelType"}

    name: Optional[str] = None
    type: Optional[str] = None
    pos: Optional[float] = None
    id_model: Optional[str] = None
    model_type: Optional[str] = None


@dataclass(frozen=True)
class Webhook(TrelloEntity):
    _json_keys: ClassVar[dict[str, str]] = {"callback_url": "callbackURL", "id_model": "idModel"}

    description: Optional[str] = None
    callback_url: Optional[str] = None
    id_model: Optional[str] = None
    active: Optional[bool] = None


@dataclass(frozen=True)
class Sticker(TrelloEntity):
    _json_keys: ClassVar[dict[str, str]] = {"image_url": "imageUrl", "z_index": "zIndex"}

    image: Optional[str] = None
    image_url: Optional[str] = None
    top: Optional[float] = None
    left: Optional[float] = None
    z_index: Optional[int] = None
    rotate: Optional[float] = None


@dataclass(frozen=True)
class Action(TrelloEntity):
    _json_keys: ClassVar[dict[str, str]] = {"id_member_creator": "idMemberCreator"}

    type: Optional[str] = None
    date: Optional[str] = None
    id_member_creator: Optional[str] = None
    data: Optional[dict[str, Any]] = field(default=None, compare=False)

    @property
    def member_creator(self) -> Optional[Member]:
        mc = self.raw.get("memberCreator")
        return Member.from_dict(mc) if isinstance(mc, dict) else None


@dataclass(frozen=True)
class Reaction(TrelloEntity):
    _json_keys: ClassVar[dict[str, str]] = {
        "id_member": "idMember",
        "id_model": "idModel",
        "id_action": "idAction",
    }

    id_member: Optional[str] = None
    id_model: Optional[str] = None
    id_action: Optional[str] = None
    emoji: Optional[dict[str, Any]] = field(default=None, compare=False)

    @property
    def short_name(self) -> Optional[str]:
        return (self.emoji or {}).get("shortName")


@dataclass(frozen=True)
class Passthrough:
    """Undecoded JSON for endpoints without a modeled result type."""

    data: Any = None

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default) if isinstance(self.data, dict) else default

    def __getitem__(self, key: Any) -> Any:
        return self.data[key]


def decode_one(cls: Type[T], data: Any) -> T:
    return cls.from_dict(data)


def decode_many(cls: Type[T], data: Any) -> list[T]:
    if not isinstance(data, list):
        raise TrelloDecodeError(f"Expected a JSON array of {cls.__name__}, got {type(data).__name__}")
    return [cls.from_dict(item) for item in data]
