from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Union

FALLBACK_NAME = "Player"


@dataclass(frozen=True)
class RegisteredPlayer:
    user_id: int


@dataclass(frozen=True)
class GuestPlayer:
    name: str

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValueError("guest name must not be blank")


Player = Union[RegisteredPlayer, GuestPlayer]


def build_lineup(
    creator_id: int,
    participant_ids: Iterable[int] = (),
    guest_names: Iterable[str] = (),
) -> list[Player]:
    """
    Ordered participant set for a reservation: the creator first, then the
    registered users in input order, then guests. Repeated users (including the
    creator) and blank guest names are dropped.
    """
    lineup: list[Player] = [RegisteredPlayer(creator_id)]
    seen = {creator_id}
    for user_id in participant_ids:
        if user_id in seen:
            continue
        seen.add(user_id)
        lineup.append(RegisteredPlayer(user_id))
    for name in guest_names:
        if name.strip():
            lineup.append(GuestPlayer(name.strip()))
    return lineup


def registered_ids(lineup: Iterable[Player]) -> list[int]:
    return [p.user_id for p in lineup if isinstance(p, RegisteredPlayer)]


def display_name(player: Player, names: Mapping[int, str]) -> str:
    if isinstance(player, GuestPlayer):
        return player.name
    return names.get(player.user_id) or FALLBACK_NAME
