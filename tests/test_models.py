"""
Unit tests for the data models and error types.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from tourney.models import Participant, Tournament, Series, STATUS_TRANSITIONS, TOURNAMENT_STATUSES
from tourney.errors import (
    TournamentError, InsufficientParticipantsError, ErrorCode, ERROR_MESSAGES,
    get_error_message, validation_error, not_found_error, forbidden_error,
)


class TestParticipant:

    def test_defaults(self):
        participant = Participant(user_id='alice', entry_number=1)
        assert participant.seed is None
        assert participant.display_name == 'alice'
        assert participant.checked_in_at is None
        assert participant.final_placement is None

    def test_dict_round_trip(self):
        participant = Participant(user_id='bob', entry_number=3, seed=2, display_name='Bobby')
        restored = Participant.from_dict(participant.to_dict())
        assert restored.to_dict() == participant.to_dict()

    def test_from_dict_missing_optional_fields(self):
        participant = Participant.from_dict({'user_id': 'c', 'entry_number': 4})
        assert participant.seed is None
        assert participant.display_name == 'c'

    def test_repr(self):
        assert 'alice' in repr(Participant(user_id='alice', entry_number=1))


class TestTournament:

    def test_defaults(self):
        tournament = Tournament(id='cup', title='Cup', organizer='org')
        assert tournament.status == 'draft'
        assert tournament.tournament_format == 'single_elimination'
        assert tournament.max_participants == 32

    def test_from_dict_ignores_unknown_keys(self):
        tournament = Tournament.from_dict({'id': 'cup', 'title': 'Cup', 'organizer': 'org', 'extra': 1})
        assert tournament.id == 'cup'
        assert 'extra' not in tournament.to_dict()

    def test_transitions(self):
        tournament = Tournament(id='cup', title='Cup', organizer='org')
        assert tournament.can_transition_to('published')
        assert not tournament.can_transition_to('recruiting')
        assert not tournament.can_transition_to('in_progress')
        tournament.status = 'completed'
        assert not tournament.can_transition_to('cancelled')

    def test_every_status_has_transitions(self):
        assert set(STATUS_TRANSITIONS) == set(TOURNAMENT_STATUSES)
        for targets in STATUS_TRANSITIONS.values():
            assert 'in_progress' not in targets
            assert 'completed' not in targets


class TestSeries:

    def test_defaults(self):
        series = Series(id='league', name='League', organizer='org')
        assert series.point_system == 'ranking'
        assert series.point_config == {}
        assert series.tournaments == []

    def test_dict_round_trip(self):
        series = Series(id='league', name='League', organizer='org', point_system='wins',
                        point_config={'points_per_win': 3}, tournaments=['cup'])
        assert Series.from_dict(series.to_dict()).to_dict() == series.to_dict()


class TestErrors:

    def test_http_status_mapping(self):
        assert TournamentError(ErrorCode.UNAUTHORIZED).http_status == 401
        assert TournamentError(ErrorCode.FORBIDDEN).http_status == 403
        assert TournamentError(ErrorCode.NOT_FOUND).http_status == 404
        assert TournamentError(ErrorCode.TOURNAMENT_FULL).http_status == 400
        assert TournamentError(ErrorCode.LOCK_TIMEOUT).http_status == 503
        assert TournamentError(ErrorCode.UNKNOWN_ERROR).http_status == 500

    def test_default_message(self):
        error = TournamentError(ErrorCode.DUPLICATE_ENTRY)
        assert error.message == ERROR_MESSAGES[ErrorCode.DUPLICATE_ENTRY]
        assert str(error) == error.message

    def test_unknown_code_message(self):
        assert get_error_message('NOPE') == ERROR_MESSAGES[ErrorCode.UNKNOWN_ERROR]

    def test_to_dict(self):
        error = TournamentError(ErrorCode.VALIDATION_ERROR, 'Bad title', {'field': 'title'})
        assert error.to_dict() == {'error': 'Bad title', 'code': 'VALIDATION_ERROR'}

    def test_insufficient_participants(self):
        error = InsufficientParticipantsError(1)
        assert isinstance(error, TournamentError)
        assert error.code == ErrorCode.INSUFFICIENT_PARTICIPANTS
        assert error.http_status == 400
        assert error.details == {'count': 1}

    def test_helpers(self):
        assert validation_error('x').code == ErrorCode.VALIDATION_ERROR
        assert not_found_error('Match').message == 'Match not found.'
        assert forbidden_error().http_status == 403
