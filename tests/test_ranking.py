"""
Unit tests for tournament standings and series points.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from tourney.elimination import generate_bracket, advance_winner, apply_match_update
from tourney.models import Participant
from tourney.ranking import (
    calculate_participant_stats,
    calculate_rankings,
    calculate_points_from_placement,
    calculate_points_from_record,
    calculate_series_points,
    calculate_series_rankings,
    DEFAULT_RANKING_POINTS,
)
from conftest import make_participants


def _report(matches, match_id, winner_id):
    matches = apply_match_update(matches, {'id': match_id, 'winner_id': winner_id, 'status': 'completed'})
    completed = next(m for m in matches if m['id'] == match_id)
    update = advance_winner(completed, matches)
    if update:
        matches = apply_match_update(matches, update)
    return matches


@pytest.fixture
def finished_four():
    """Four player bracket: p1 beats p2, p3 beats p4, p1 wins the final."""
    matches = generate_bracket('t', make_participants(4))
    matches = _report(matches, 't-r1m1', 'p1')
    matches = _report(matches, 't-r1m2', 'p3')
    matches = _report(matches, 't-r2m1', 'p1')
    return matches


class TestParticipantStats:

    def test_counts_wins_and_losses(self, four_participants, finished_four):
        stats = calculate_participant_stats(four_participants, finished_four)
        assert stats['p1'] == {'wins': 2, 'losses': 0, 'round_reached': 2, 'is_eliminated': False}
        assert stats['p3'] == {'wins': 1, 'losses': 1, 'round_reached': 2, 'is_eliminated': True}
        assert stats['p2']['losses'] == 1
        assert stats['p2']['round_reached'] == 1

    def test_byes_are_not_wins(self):
        participants = make_participants(3)
        stats = calculate_participant_stats(participants, generate_bracket('t', participants))
        assert stats['p1']['wins'] == 0
        assert stats['p1']['round_reached'] == 0

    def test_ignores_unknown_players(self):
        matches = [{'round': 1, 'status': 'completed', 'winner_id': 'ghost',
                    'player1_id': 'ghost', 'player2_id': 'p1'}]
        stats = calculate_participant_stats(make_participants(2), matches)
        assert stats['p1']['losses'] == 1
        assert 'ghost' not in stats


class TestRankings:

    def test_finished_bracket(self, four_participants, finished_four):
        ranking = calculate_rankings(four_participants, finished_four)
        assert [(r['user_id'], r['rank']) for r in ranking] == [('p1', 1), ('p3', 2), ('p2', 3), ('p4', 3)]

    def test_mid_tournament(self, four_participants):
        matches = _report(generate_bracket('t', four_participants), 't-r1m1', 'p1')
        ranking = calculate_rankings(four_participants, matches)
        assert [(r['user_id'], r['rank']) for r in ranking] == [('p1', 1), ('p3', 2), ('p4', 2), ('p2', 4)]

    def test_final_placement_comes_first(self, finished_four):
        participants = make_participants(4)
        participants[3].final_placement = 1
        ranking = calculate_rankings(participants, finished_four)
        assert ranking[0]['user_id'] == 'p4'
        assert ranking[0]['rank'] == 1
        assert ranking[1]['rank'] == 2

    def test_entrants_outside_bracket_are_not_ranked(self, finished_four):
        participants = make_participants(5)
        ranking = calculate_rankings(participants, finished_four)
        assert [r['user_id'] for r in ranking] == ['p1', 'p3', 'p2', 'p4']

    def test_no_matches(self):
        ranking = calculate_rankings(make_participants(3), [])
        assert [r['rank'] for r in ranking] == [1, 1, 1]

    def test_display_name_defaults_to_user_id(self):
        participants = [Participant(user_id='u1', entry_number=1, display_name='Alice'),
                        {'user_id': 'u2', 'entry_number': 2}]
        ranking = calculate_rankings(participants, [])
        assert {r['user_id']: r['display_name'] for r in ranking} == {'u1': 'Alice', 'u2': 'u2'}


class TestPoints:

    def test_exact_placement(self):
        assert calculate_points_from_placement(1, DEFAULT_RANKING_POINTS) == 100
        assert calculate_points_from_placement(4, DEFAULT_RANKING_POINTS) == 30

    def test_range_placement(self):
        assert calculate_points_from_placement(5, DEFAULT_RANKING_POINTS) == 10
        assert calculate_points_from_placement(8, DEFAULT_RANKING_POINTS) == 10

    def test_unlisted_placement(self):
        assert calculate_points_from_placement(9, DEFAULT_RANKING_POINTS) == 0
        assert calculate_points_from_placement(None, DEFAULT_RANKING_POINTS) == 0

    def test_custom_ranges(self):
        config = {'1': 50, '2-3': 20}
        assert calculate_points_from_placement(3, config) == 20

    def test_points_from_record(self):
        assert calculate_points_from_record(3, 1, {'points_per_win': 10, 'points_per_loss': 2}) == 32
        assert calculate_points_from_record(2, 5, {'points_per_win': 5}) == 10


class TestSeriesPoints:

    def test_ranking_system_uses_default_config(self, four_participants, finished_four):
        rankings = calculate_rankings(four_participants, finished_four)
        records = calculate_series_points('ranking', {}, 't', rankings)
        points = {r['user_id']: r['points'] for r in records}
        assert points == {'p1': 100, 'p3': 70, 'p2': 50, 'p4': 50}
        assert all(r['tournament_id'] == 't' for r in records)

    def test_wins_system(self, four_participants, finished_four):
        rankings = calculate_rankings(four_participants, finished_four)
        records = calculate_series_points('wins', {'points_per_win': 3, 'points_per_loss': 1}, 't', rankings)
        points = {r['user_id']: r['points'] for r in records}
        assert points == {'p1': 6, 'p3': 4, 'p2': 1, 'p4': 1}

    def test_series_ranking_shares_tied_ranks(self):
        records = [
            {'tournament_id': 't1', 'user_id': 'a', 'points': 100, 'wins': 3, 'losses': 0},
            {'tournament_id': 't1', 'user_id': 'b', 'points': 70, 'wins': 2, 'losses': 1},
            {'tournament_id': 't1', 'user_id': 'c', 'points': 50, 'wins': 0, 'losses': 1},
            {'tournament_id': 't2', 'user_id': 'c', 'points': 20, 'wins': 1, 'losses': 1},
            {'tournament_id': 't2', 'user_id': 'd', 'points': 10, 'wins': 0, 'losses': 1},
        ]
        ranking = calculate_series_rankings(records, {'a': 'Alice'})
        assert [(e['user_id'], e['rank']) for e in ranking] == [('a', 1), ('b', 2), ('c', 2), ('d', 4)]
        assert ranking[0]['name'] == 'Alice'
        c_entry = next(e for e in ranking if e['user_id'] == 'c')
        assert c_entry['tournaments_played'] == 2
        assert c_entry['total_wins'] == 1
        assert len(c_entry['breakdown']) == 2

    def test_series_ranking_orders_ties_by_wins(self):
        records = [
            {'tournament_id': 't1', 'user_id': 'a', 'points': 10, 'wins': 1, 'losses': 1},
            {'tournament_id': 't1', 'user_id': 'b', 'points': 10, 'wins': 2, 'losses': 1},
        ]
        ranking = calculate_series_rankings(records)
        assert [e['user_id'] for e in ranking] == ['b', 'a']
        assert [e['rank'] for e in ranking] == [1, 1]

    def test_empty(self):
        assert calculate_series_rankings([]) == []
