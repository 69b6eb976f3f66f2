from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Protocol, Union

from checkin_app.errors import CheckInError, NotFoundError, StoreReadError, StoreWriteError
from checkin_app.models import Team
from checkin_app.utils.codes import parse_team_code

log = logging.getLogger(__name__)

DEFAULT_LOCATION = "Check-in Station"
RECORDED_NOTICE = "Attendance recorded successfully!"
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred. Please try again."


class EntryMethod(str, Enum):
    QR_SCAN = "QR scan"
    MANUAL = "manual entry"

    @property
    def notes(self) -> str:
        return f"Checked in via {self.value}"


class CheckInStore(Protocol):
    def find_team_by_code(self, code: int) -> Team | None: ...

    def record_attendance(self, team_code: int, *, location: str, notes: str) -> int: ...


@dataclass(frozen=True)
class CheckInResult:
    team: Team
    method: EntryMethod
    record_id: Optional[int] = None
    write_error: Optional[StoreWriteError] = None

    @property
    def recorded(self) -> bool:
        return self.record_id is not None


CheckInListener = Callable[[CheckInResult], None]
CheckInOutcome = Union[CheckInResult, CheckInError]


class CheckInService:
    """Look a team up by its access code, then log the check-in.

    The lookup and the attendance write are separate operations. A failed
    lookup raises; a failed write after a successful lookup is reported on the
    result so the team can still be shown.
    """

    def __init__(
        self,
        store: CheckInStore,
        *,
        location: str = DEFAULT_LOCATION,
        listeners: list[CheckInListener] | None = None,
    ) -> None:
        self._store = store
        self._location = location
        self._listeners: list[CheckInListener] = list(listeners or [])

    def add_listener(self, listener: CheckInListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def lookup(self, code_text: str) -> Team:
        code = parse_team_code(code_text)
        team = self._store.find_team_by_code(code)
        if team is None:
            log.info("No team registered for code %s", code)
            raise NotFoundError(code)
        return team

    def record(self, team_code: int, method: EntryMethod) -> int:
        return self._store.record_attendance(team_code, location=self._location, notes=method.notes)

    def check_in(self, code_text: str, method: EntryMethod) -> CheckInResult:
        team = self.lookup(code_text)

        try:
            record_id = self.record(team.code, method)
        except StoreWriteError as exc:
            result = CheckInResult(team=team, method=method, write_error=exc)
        else:
            result = CheckInResult(team=team, method=method, record_id=record_id)

        self._notify(result)
        return result

    def _notify(self, result: CheckInResult) -> None:
        for listener in list(self._listeners):
            try:
                listener(result)
            except Exception:
                log.exception("Check-in listener %r failed", listener)


@dataclass(frozen=True)
class CheckInTicket:
    number: int
    code_text: str
    method: EntryMethod


@dataclass(frozen=True)
class CheckInState:
    team: Optional[Team] = None
    error: Optional[CheckInError] = None
    notice: Optional[str] = None
    notice_tone: str = "info"
    busy: bool = False
    code_text: Optional[str] = None
    method: Optional[EntryMethod] = None


@dataclass
class CheckInFlow:
    """Displayed check-in state with stale-result protection.

    ``begin`` clears the previous team and error before anything is issued and
    hands out a ticket; ``finish`` only applies outcomes for the newest ticket.
    """

    service: CheckInService
    state: CheckInState = field(default_factory=CheckInState)
    _current: int = 0

    def begin(self, code_text: str, method: EntryMethod) -> CheckInTicket:
        self._current += 1
        self.state = CheckInState(busy=True, code_text=code_text, method=method)
        return CheckInTicket(number=self._current, code_text=code_text, method=method)

    def execute(self, ticket: CheckInTicket) -> CheckInOutcome:
        try:
            return self.service.check_in(ticket.code_text, ticket.method)
        except CheckInError as exc:
            return exc
        except Exception:
            log.exception("Check-in for %r failed unexpectedly", ticket.code_text)
            return StoreReadError(UNEXPECTED_ERROR_MESSAGE)

    def is_current(self, ticket: CheckInTicket) -> bool:
        return ticket.number == self._current

    def finish(self, ticket: CheckInTicket, outcome: CheckInOutcome) -> bool:
        if not self.is_current(ticket):
            log.debug("Discarding stale check-in result for %r", ticket.code_text)
            return False

        if isinstance(outcome, CheckInResult):
            if outcome.write_error is not None:
                notice, tone = str(outcome.write_error), "warning"
            else:
                notice, tone = RECORDED_NOTICE, "success"
            self.state = CheckInState(
                team=outcome.team,
                notice=notice,
                notice_tone=tone,
                code_text=ticket.code_text,
                method=ticket.method,
            )
        else:
            self.state = CheckInState(error=outcome, code_text=ticket.code_text, method=ticket.method)
        return True

    def submit(self, code_text: str, method: EntryMethod) -> CheckInState:
        """Run a whole check-in synchronously on the calling thread."""

        ticket = self.begin(code_text, method)
        self.finish(ticket, self.execute(ticket))
        return self.state

    def reset(self) -> None:
        self._current += 1
        self.state = CheckInState()
