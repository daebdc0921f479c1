"""
Tournament standings and series point calculation.
"""
from typing import List, Dict, Optional, Any

DEFAULT_RANKING_POINTS = {
    '1': 100,
    '2': 70,
    '3': 50,
    '4': 30,
    '5-8': 10,
}

DEFAULT_WINS_POINTS = {
    'points_per_win': 10,
    'points_per_loss': 0,
}


def _field(participant: Any, name: str):
    if isinstance(participant, dict):
        return participant.get(name)
    return getattr(participant, name, None)


def calculate_participant_stats(participants: List[Any], matches: List[Dict]) -> Dict[str, Dict]:
    """
    Count wins and losses per participant from completed matches.

    Byes are free advances and do not count as wins. ``round_reached`` is the
    highest round in which the participant finished a match.
    """
    stats = {
        _field(p, 'user_id'): {'wins': 0, 'losses': 0, 'round_reached': 0, 'is_eliminated': False}
        for p in participants
    }

    for match in matches:
        if match.get('status') != 'completed' or not match.get('winner_id'):
            continue

        winner_id = match['winner_id']
        if match.get('player1_id') == winner_id:
            loser_id = match.get('player2_id')
        else:
            loser_id = match.get('player1_id')

        winner_stats = stats.get(winner_id)
        if winner_stats:
            winner_stats['wins'] += 1
            winner_stats['round_reached'] = max(winner_stats['round_reached'], match['round'])

        loser_stats = stats.get(loser_id) if loser_id else None
        if loser_stats:
            loser_stats['losses'] += 1
            loser_stats['round_reached'] = max(loser_stats['round_reached'], match['round'])
            loser_stats['is_eliminated'] = True

    return stats


def calculate_rankings(participants: List[Any], matches: List[Dict]) -> List[Dict]:
    """
    Rank tournament participants.

    Ordering: explicit final placement first, then players still alive,
    then deepest round reached, most wins, fewest losses. Players with
    identical records share a rank.

    Once a bracket exists, only participants placed in one of its matches
    are ranked; entrants left out of the bracket are skipped.

    Returns a list of dicts with user_id, display_name, rank, wins, losses,
    round_reached, is_eliminated and final_placement.
    """
    if matches:
        placed = {m.get(slot) for m in matches for slot in ('player1_id', 'player2_id')}
        participants = [p for p in participants if _field(p, 'user_id') in placed]

    stats = calculate_participant_stats(participants, matches)

    ranked = []
    for participant in participants:
        user_id = _field(participant, 'user_id')
        ranked.append({
            'user_id': user_id,
            'display_name': _field(participant, 'display_name') or user_id,
            'final_placement': _field(participant, 'final_placement'),
            'rank': 0,
            **stats[user_id],
        })

    def sort_key(item):
        placement = item['final_placement']
        return (
            0 if placement else 1,
            placement or 0,
            1 if item['is_eliminated'] else 0,
            -item['round_reached'],
            -item['wins'],
            item['losses'],
        )

    ranked.sort(key=sort_key)

    for index, item in enumerate(ranked):
        if index == 0:
            item['rank'] = 1
            continue
        prev = ranked[index - 1]
        same_record = (
            not item['final_placement'] and not prev['final_placement']
            and item['round_reached'] == prev['round_reached']
            and item['wins'] == prev['wins']
            and item['losses'] == prev['losses']
            and item['is_eliminated'] == prev['is_eliminated']
        )
        item['rank'] = prev['rank'] if same_record else index + 1

    return ranked


def calculate_points_from_placement(placement: Optional[int], point_config: Dict) -> int:
    """
    Look up the points for a placement.

    Exact keys ("1", "2") win over range keys ("5-8", inclusive). Unmatched
    placements score 0.
    """
    if not placement:
        return 0

    exact = point_config.get(str(placement))
    if exact:
        return exact

    for key, points in point_config.items():
        if '-' not in str(key):
            continue
        low, high = (int(part) for part in str(key).split('-', 1))
        if low <= placement <= high:
            return points

    return 0


def calculate_points_from_record(wins: int, losses: int, point_config: Dict) -> int:
    return wins * point_config.get('points_per_win', 0) + losses * point_config.get('points_per_loss', 0)


def calculate_series_points(point_system: str, point_config: Dict, tournament_id: str,
                            rankings: List[Dict]) -> List[Dict]:
    """
    Build one series points record per ranked participant of a tournament.

    ``point_system`` is 'ranking' (points by placement) or 'wins'
    (points by match record). An empty config falls back to the defaults.
    """
    if point_system == 'wins':
        config = point_config or DEFAULT_WINS_POINTS
    else:
        config = point_config or DEFAULT_RANKING_POINTS

    records = []
    for item in rankings:
        placement = item['final_placement'] or item['rank']
        if point_system == 'wins':
            points = calculate_points_from_record(item['wins'], item['losses'], config)
        else:
            points = calculate_points_from_placement(placement, config)
        records.append({
            'tournament_id': tournament_id,
            'user_id': item['user_id'],
            'points': points,
            'placement': placement,
            'wins': item['wins'],
            'losses': item['losses'],
        })
    return records


def calculate_series_rankings(point_records: List[Dict], names: Optional[Dict[str, str]] = None) -> List[Dict]:
    """
    Aggregate series point records into a ranking.

    Sorted by total points, then wins, then fewest losses. Equal totals
    share a rank and the next rank skips (1, 1, 3).
    """
    names = names or {}
    totals = {}
    for record in point_records:
        user_id = record['user_id']
        entry = totals.setdefault(user_id, {
            'user_id': user_id,
            'name': names.get(user_id, user_id),
            'total_points': 0,
            'tournaments_played': 0,
            'total_wins': 0,
            'total_losses': 0,
            'breakdown': [],
        })
        entry['total_points'] += record['points']
        entry['tournaments_played'] += 1
        entry['total_wins'] += record.get('wins', 0)
        entry['total_losses'] += record.get('losses', 0)
        entry['breakdown'].append({
            'tournament_id': record['tournament_id'],
            'points': record['points'],
            'placement': record.get('placement'),
            'wins': record.get('wins', 0),
            'losses': record.get('losses', 0),
        })

    ranking = sorted(
        totals.values(),
        key=lambda e: (-e['total_points'], -e['total_wins'], e['total_losses'], e['user_id']),
    )
    for index, entry in enumerate(ranking):
        if index > 0 and entry['total_points'] == ranking[index - 1]['total_points']:
            entry['rank'] = ranking[index - 1]['rank']
        else:
            entry['rank'] = index + 1
    return ranking
