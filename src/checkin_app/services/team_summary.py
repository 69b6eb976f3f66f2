from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Mapping

from checkin_app.models import Team, TeamMember
from checkin_app.utils.time import format_local_date

# Placeholder schedule: a round counts as upcoming before its cutoff hour.
ROUND_CUTOFF_HOURS: Mapping[int, int] = {1: 12, 2: 14}

UPCOMING = "upcoming"
COMPLETED = "completed"


def member_initials(full_name: str) -> str:
    return "".join(part[0] for part in full_name.split()).upper()[:2]


def round_status(round_number: int, now: datetime | None = None) -> str:
    moment = now or datetime.now()
    cutoff = ROUND_CUTOFF_HOURS.get(round_number)
    if cutoff is not None and moment.hour < cutoff:
        return UPCOMING
    return COMPLETED


@dataclass(frozen=True)
class MemberSummary:
    initials: str
    full_name: str
    phone: str
    email: str


@dataclass(frozen=True)
class TeamSummary:
    team_name: str
    code: int
    round_label: str
    status: str
    members: tuple[MemberSummary, ...]
    registered_label: str


def _summarize_member(member: TeamMember) -> MemberSummary:
    return MemberSummary(
        initials=member_initials(member.full_name),
        full_name=member.full_name,
        phone=member.phone,
        email=member.email,
    )


def summarize_team(team: Team, now: datetime | None = None) -> TeamSummary:
    moment = now or datetime.now()
    registered = format_local_date(team.created_at) if team.created_at else moment.strftime("%x")
    return TeamSummary(
        team_name=team.team_name,
        code=team.code,
        round_label=f"Round {team.round} - {team.round_time}",
        status=round_status(team.round, moment),
        members=tuple(_summarize_member(member) for member in team.members),
        registered_label=f"Registered on {registered}",
    )
