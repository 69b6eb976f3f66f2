import pytest

from checkin_app.data import Database
from checkin_app.errors import NotFoundError, StoreReadError, StoreWriteError, ValidationError
from checkin_app.models import Team, TeamMember
from checkin_app.services import AttendanceService, CheckInFlow, CheckInService, EntryMethod
from checkin_app.services.check_in import RECORDED_NOTICE, UNEXPECTED_ERROR_MESSAGE


class FakeStore:
    def __init__(self, teams=(), *, fail_reads=False, fail_writes=False):
        self.teams = {team.code: team for team in teams}
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes
        self.lookups = []
        self.records = []

    def find_team_by_code(self, code):
        self.lookups.append(code)
        if self.fail_reads:
            raise StoreReadError("Error fetching team data. Please try again.")
        return self.teams.get(code)

    def record_attendance(self, team_code, *, location, notes):
        if self.fail_writes:
            raise StoreWriteError("Error recording attendance. Please try again.")
        self.records.append((team_code, location, notes))
        return len(self.records)


def _team(code=1001, name="Alpha"):
    return Team(
        id=1,
        team_name=name,
        members=(TeamMember("Ada Lovelace"), TeamMember("Alan Turing")),
        code=code,
        round=1,
        round_time="10:00 AM",
    )


@pytest.mark.parametrize("code_text", ["", "  ", "12ab"])
def test_invalid_code_never_reaches_store(code_text):
    store = FakeStore([_team()])
    service = CheckInService(store)

    with pytest.raises(ValidationError):
        service.check_in(code_text, EntryMethod.MANUAL)

    assert store.lookups == []
    assert store.records == []


def test_unknown_code_writes_nothing():
    store = FakeStore([_team()])
    service = CheckInService(store)

    with pytest.raises(NotFoundError) as excinfo:
        service.check_in("9999", EntryMethod.QR_SCAN)

    assert str(excinfo.value) == "No team found with this code"
    assert excinfo.value.code == 9999
    assert store.records == []


def test_oversized_numeric_code_is_not_found(tmp_path):
    store = AttendanceService(Database(tmp_path / "checkin.db"))
    store.initialize()
    flow = CheckInFlow(CheckInService(store))

    state = flow.submit("99999999999999999999", EntryMethod.MANUAL)

    assert isinstance(state.error, NotFoundError)
    assert str(state.error) == "No team found with this code"
    assert store.list_attendance() == []


def test_matched_code_records_one_event_for_team_code():
    store = FakeStore([_team(code=42)])
    service = CheckInService(store, location="Main Hall")

    result = service.check_in(" 0042 ", EntryMethod.QR_SCAN)

    assert result.recorded
    assert result.team.code == 42
    assert store.records == [(42, "Main Hall", "Checked in via QR scan")]


def test_manual_entry_notes():
    store = FakeStore([_team()])
    CheckInService(store).check_in("1001", EntryMethod.MANUAL)

    assert store.records == [(1001, "Check-in Station", "Checked in via manual entry")]


def test_write_failure_still_returns_team():
    store = FakeStore([_team()], fail_writes=True)
    service = CheckInService(store)

    result = service.check_in("1001", EntryMethod.MANUAL)

    assert result.team.team_name == "Alpha"
    assert not result.recorded
    assert isinstance(result.write_error, StoreWriteError)


def test_listeners_receive_results_and_failures_are_isolated():
    store = FakeStore([_team()])
    seen = []

    def broken_listener(_result):
        raise RuntimeError("listener failed")

    service = CheckInService(store, listeners=[broken_listener])
    service.add_listener(seen.append)
    service.add_listener(seen.append)

    result = service.check_in("1001", EntryMethod.QR_SCAN)

    assert seen == [result]


def test_flow_success_sets_team_and_notice():
    flow = CheckInFlow(CheckInService(FakeStore([_team()])))

    state = flow.submit("1001", EntryMethod.QR_SCAN)

    assert state.team.code == 1001
    assert state.error is None
    assert state.notice == RECORDED_NOTICE
    assert state.notice_tone == "success"
    assert not state.busy


def test_flow_write_failure_keeps_team_with_warning():
    flow = CheckInFlow(CheckInService(FakeStore([_team()], fail_writes=True)))

    state = flow.submit("1001", EntryMethod.MANUAL)

    assert state.team is not None
    assert state.notice == "Error recording attendance. Please try again."
    assert state.notice_tone == "warning"


def test_flow_lookup_failure_shows_error_without_team():
    flow = CheckInFlow(CheckInService(FakeStore(fail_reads=True)))

    state = flow.submit("1001", EntryMethod.MANUAL)

    assert state.team is None
    assert isinstance(state.error, StoreReadError)


def test_flow_unexpected_failure_becomes_generic_error():
    class ExplodingStore(FakeStore):
        def find_team_by_code(self, code):
            raise KeyError(code)

    flow = CheckInFlow(CheckInService(ExplodingStore()))

    state = flow.submit("1001", EntryMethod.MANUAL)

    assert str(state.error) == UNEXPECTED_ERROR_MESSAGE


def test_flow_begin_clears_previous_result():
    flow = CheckInFlow(CheckInService(FakeStore([_team()])))
    flow.submit("1001", EntryMethod.QR_SCAN)

    flow.begin("2002", EntryMethod.MANUAL)

    assert flow.state.team is None
    assert flow.state.error is None
    assert flow.state.busy


def test_flow_discards_stale_results():
    store = FakeStore([_team(1001, "Alpha"), _team(2002, "Beta")])
    flow = CheckInFlow(CheckInService(store))

    first = flow.begin("1001", EntryMethod.MANUAL)
    first_outcome = flow.execute(first)
    second = flow.begin("2002", EntryMethod.MANUAL)
    second_outcome = flow.execute(second)

    assert flow.finish(second, second_outcome)
    assert not flow.finish(first, first_outcome)
    assert flow.state.team.team_name == "Beta"


def test_flow_reset_invalidates_in_flight_ticket():
    flow = CheckInFlow(CheckInService(FakeStore([_team()])))

    ticket = flow.begin("1001", EntryMethod.QR_SCAN)
    outcome = flow.execute(ticket)
    flow.reset()

    assert not flow.finish(ticket, outcome)
    assert flow.state.team is None
    assert not flow.state.busy
