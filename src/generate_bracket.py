import os
import sys
import yaml
from tourney.models import Participant
from tourney.elimination import generate_bracket, group_matches_by_round
from tourney.errors import InsufficientParticipantsError


def load_participants(file_path):
    """
    Read participants from YAML.

    Accepts either a list of user ids (entry order) or a list of mappings
    with user_id and optional seed / entry_number.
    """
    with open(file_path, mode='r', encoding='utf-8') as file:
        data = yaml.safe_load(file) or []
    if isinstance(data, dict):
        data = data.get('participants', [])

    participants = []
    for index, item in enumerate(data, start=1):
        if isinstance(item, dict):
            participants.append(Participant(
                user_id=str(item['user_id']),
                entry_number=item.get('entry_number', index),
                seed=item.get('seed'),
                display_name=item.get('display_name'),
            ))
        else:
            participants.append(Participant(user_id=str(item), entry_number=index))
    return participants


def format_bracket(matches):
    lines = []
    for round_data in group_matches_by_round(matches):
        if lines:
            lines.append('')
        lines.append(f"# Round {round_data['round']}: {round_data['name']}")
        for match in round_data['matches']:
            player1 = match['player1_id'] or 'TBD'
            player2 = match['player2_id'] or 'TBD'
            if match['status'] == 'bye':
                lines.append(f"M{match['match_number']}: {match['winner_id']} (bye)")
            else:
                lines.append(f"M{match['match_number']}: {player1} vs {player2}")
    return '\n'.join(lines)


def main():
    script_dir = os.path.dirname(__file__)
    base_dir = os.path.dirname(script_dir)

    participants_file = sys.argv[1] if len(sys.argv) > 1 else os.path.join(base_dir, 'data', 'participants.yaml')
    tournament_id = sys.argv[2] if len(sys.argv) > 2 else 'bracket'

    participants = load_participants(participants_file)
    try:
        matches = generate_bracket(tournament_id, participants)
    except InsufficientParticipantsError as e:
        print(f"Error: {e.message} ({e.count} found in {participants_file})", file=sys.stderr)
        return 1

    print(format_bracket(matches))
    return 0


if __name__ == '__main__':
    sys.exit(main())
