"""
Transition events published on a match's topic.

A closed set of kinds, each with a fixed payload. Pydantic picks the right
model from the "kind" field when parsing (MatchEventAdapter).
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from .types import Phase


class SecretSetPayload(BaseModel):
    participant_id: str
    phase: Phase
    turn_holder: Optional[str] = None


class ParticipantJoinedPayload(BaseModel):
    participant_id: str


class GuessSubmittedPayload(BaseModel):
    participant_id: str
    guess: str
    shared_count: int
    exact_count: int
    sequence_number: int
    turn_number: int
    turn_holder: Optional[str] = None


class MatchFinishedPayload(BaseModel):
    winner: str
    # secrets are revealed only once the match is over
    secrets: dict[str, str]
    total_moves: int


class SecretSet(BaseModel):
    kind: Literal["secret_set"] = "secret_set"
    match_id: str
    payload: SecretSetPayload


class ParticipantJoined(BaseModel):
    kind: Literal["participant_joined"] = "participant_joined"
    match_id: str
    payload: ParticipantJoinedPayload


class GuessSubmitted(BaseModel):
    kind: Literal["guess_submitted"] = "guess_submitted"
    match_id: str
    payload: GuessSubmittedPayload


class MatchFinished(BaseModel):
    kind: Literal["match_finished"] = "match_finished"
    match_id: str
    payload: MatchFinishedPayload


MatchEvent = Annotated[
    Union[SecretSet, ParticipantJoined, GuessSubmitted, MatchFinished],
    Field(discriminator="kind"),
]

MatchEventAdapter: TypeAdapter = TypeAdapter(MatchEvent)
