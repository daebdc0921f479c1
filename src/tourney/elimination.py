"""
Single elimination bracket generation and winner advancement.

All functions here are pure: they read their arguments and return new data.
Persisting matches and serializing concurrent calls per tournament is the
caller's job.
"""
import math
from typing import List, Dict, Optional, Any

from tourney.errors import InsufficientParticipantsError


def get_round_name(slots: int) -> str:
    """Display name of a round with ``slots`` player slots."""
    names = {2: "Final", 4: "Semifinal", 8: "Quarterfinal"}
    return names.get(slots, f"Round of {slots}")


def calculate_bracket_size(num_participants: int) -> int:
    """Calculate the bracket size (next power of 2)."""
    if num_participants <= 0:
        return 0
    return 2 ** math.ceil(math.log2(num_participants))


def calculate_byes(num_participants: int) -> int:
    """Calculate number of byes needed."""
    return calculate_bracket_size(num_participants) - num_participants


def calculate_total_rounds(num_participants: int) -> int:
    bracket_size = calculate_bracket_size(num_participants)
    if bracket_size < 2:
        return 0
    return int(math.log2(bracket_size))


def make_match_id(tournament_id: str, round_number: int, match_number: int) -> str:
    """Stable match id; the same round/match pair always maps to the same id."""
    return f"{tournament_id}-r{round_number}m{match_number}"


def _field(participant: Any, name: str):
    if isinstance(participant, dict):
        return participant.get(name)
    return getattr(participant, name, None)


def sort_participants(participants: List[Any]) -> List[Any]:
    """
    Order participants for slot assignment.

    Seeded entries come first by ascending seed, then unseeded entries.
    Entry number breaks every remaining tie.
    """
    def sort_key(participant):
        seed = _field(participant, 'seed')
        entry_number = _field(participant, 'entry_number') or 0
        if seed is None:
            return (1, 0, entry_number)
        return (0, seed, entry_number)

    return sorted(participants, key=sort_key)


def _first_round_pairings(sorted_ids: List[str], bracket_size: int) -> List[Dict]:
    """
    Fill round 1 from the sorted list.

    The first ``bye_count`` matches get a single entrant (the strongest ones
    take the byes); the rest take consecutive pairs, so no match is empty.
    """
    bye_count = bracket_size - len(sorted_ids)
    pairings = []
    index = 0
    for match_index in range(bracket_size // 2):
        if match_index < bye_count:
            pairings.append({'player1': sorted_ids[index], 'player2': None})
            index += 1
        else:
            pairings.append({'player1': sorted_ids[index], 'player2': sorted_ids[index + 1]})
            index += 2
    return pairings


def generate_bracket(tournament_id: str, participants: List[Any]) -> List[Dict]:
    """
    Build every match of a single elimination bracket.

    Args:
        tournament_id: owning tournament, used to derive match ids
        participants: Participant objects or dicts with user_id, seed and
            entry_number

    Returns the match records ordered by round, then match number. Later
    rounds are placeholders with both players unset; byes carry their lone
    player as the winner.

    Raises InsufficientParticipantsError for fewer than two participants.
    """
    if len(participants) < 2:
        raise InsufficientParticipantsError(len(participants))

    bracket_size = calculate_bracket_size(len(participants))
    total_rounds = int(math.log2(bracket_size))
    sorted_ids = [_field(p, 'user_id') for p in sort_participants(participants)]

    rounds = [_first_round_pairings(sorted_ids, bracket_size)]
    for _ in range(2, total_rounds + 1):
        previous_count = len(rounds[-1])
        rounds.append([{'player1': None, 'player2': None} for _ in range(previous_count // 2)])

    matches = []
    for round_number, round_pairings in enumerate(rounds, start=1):
        for match_number, pairing in enumerate(round_pairings, start=1):
            player1 = pairing['player1']
            player2 = pairing['player2']

            next_match_id = None
            next_match_slot = None
            if round_number < total_rounds:
                next_match_id = make_match_id(tournament_id, round_number + 1, math.ceil(match_number / 2))
                next_match_slot = 1 if match_number % 2 == 1 else 2

            is_bye = (player1 is None) != (player2 is None)
            matches.append({
                'id': make_match_id(tournament_id, round_number, match_number),
                'tournament_id': tournament_id,
                'round': round_number,
                'match_number': match_number,
                'player1_id': player1,
                'player2_id': player2,
                'player1_score': 0,
                'player2_score': 0,
                'winner_id': (player1 or player2) if is_bye else None,
                'status': 'bye' if is_bye else 'pending',
                'next_match_id': next_match_id,
                'next_match_slot': next_match_slot,
            })

    return matches


def advance_winner(completed_match: Dict, all_matches: List[Dict]) -> Optional[Dict]:
    """
    Compute the update that puts a match winner into the next match.

    Returns ``{'id': ..., 'player1_id': winner}`` or
    ``{'id': ..., 'player2_id': winner}`` depending on the slot, or None when
    there is nothing to advance: no winner, no next match (the final), or a
    next match id that is not in ``all_matches``. Only one hop is computed.
    """
    next_match_id = completed_match.get('next_match_id')
    winner_id = completed_match.get('winner_id')
    if not next_match_id or not winner_id:
        return None

    next_match = next((m for m in all_matches if m['id'] == next_match_id), None)
    if next_match is None:
        return None

    update = {'id': next_match['id']}
    slot = completed_match.get('next_match_slot')
    if slot == 1:
        update['player1_id'] = winner_id
    elif slot == 2:
        update['player2_id'] = winner_id
    return update


def apply_match_update(matches: List[Dict], update: Dict) -> List[Dict]:
    """Return a copy of ``matches`` with ``update`` merged into the match it names."""
    updated = []
    for match in matches:
        if match['id'] == update['id']:
            match = {**match, **update}
        updated.append(match)
    return updated


def group_matches_by_round(matches: List[Dict]) -> List[Dict]:
    """
    Group match records into display rounds.

    Returns a list of ``{'round': n, 'name': ..., 'matches': [...]}`` ordered
    by round, with matches ordered by match number.
    """
    if not matches:
        return []

    by_round = {}
    for match in matches:
        by_round.setdefault(match['round'], []).append(match)

    rounds = []
    for round_number in sorted(by_round):
        round_matches = sorted(by_round[round_number], key=lambda m: m['match_number'])
        rounds.append({
            'round': round_number,
            'name': get_round_name(len(round_matches) * 2),
            'matches': round_matches,
        })
    return rounds


def find_champion(matches: List[Dict]) -> Optional[str]:
    """Winner of the final, if it has been played."""
    finals = [m for m in matches if not m.get('next_match_id')]
    if len(finals) != 1:
        return None
    final = finals[0]
    if final.get('status') != 'completed':
        return None
    return final.get('winner_id')
