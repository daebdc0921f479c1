TOURNAMENT_STATUSES = ('draft', 'published', 'recruiting', 'in_progress', 'completed', 'cancelled')
TOURNAMENT_FORMATS = ('single_elimination', 'double_elimination', 'swiss', 'round_robin')
MATCH_FORMATS = ('bo1', 'bo3', 'bo5')

SERIES_STATUSES = ('draft', 'active', 'completed', 'cancelled')
POINT_SYSTEMS = ('ranking', 'wins')
POINT_CALCULATION_MODES = ('auto', 'manual')

# Transitions an organizer may request directly. 'in_progress' is only entered
# by generating the bracket and 'completed' only by reporting the final.
STATUS_TRANSITIONS = {
    'draft': {'published', 'cancelled'},
    'published': {'recruiting', 'draft', 'cancelled'},
    'recruiting': {'published', 'cancelled'},
    'in_progress': {'cancelled'},
    'completed': set(),
    'cancelled': set(),
}


class Participant:
    def __init__(self, user_id, entry_number, seed=None, display_name=None,
                 checked_in_at=None, final_placement=None):
        self.user_id = user_id
        self.entry_number = entry_number
        self.seed = seed
        self.display_name = display_name if display_name else user_id
        self.checked_in_at = checked_in_at
        self.final_placement = final_placement

    @classmethod
    def from_dict(cls, data):
        return cls(
            user_id=data['user_id'],
            entry_number=data['entry_number'],
            seed=data.get('seed'),
            display_name=data.get('display_name'),
            checked_in_at=data.get('checked_in_at'),
            final_placement=data.get('final_placement'),
        )

    def to_dict(self):
        return {
            'user_id': self.user_id,
            'entry_number': self.entry_number,
            'seed': self.seed,
            'display_name': self.display_name,
            'checked_in_at': self.checked_in_at,
            'final_placement': self.final_placement,
        }

    def __repr__(self):
        return f"Participant(user_id={self.user_id}, seed={self.seed}, entry_number={self.entry_number})"


class Tournament:
    def __init__(self, id, title, organizer, tournament_format='single_elimination',
                 match_format='bo1', max_participants=32, status='draft', description='',
                 entry_start_at=None, entry_deadline=None, start_at=None,
                 series_id=None, created=None):
        self.id = id
        self.title = title
        self.organizer = organizer
        self.tournament_format = tournament_format
        self.match_format = match_format
        self.max_participants = max_participants
        self.status = status
        self.description = description
        self.entry_start_at = entry_start_at
        self.entry_deadline = entry_deadline
        self.start_at = start_at
        self.series_id = series_id
        self.created = created

    @classmethod
    def from_dict(cls, data):
        return cls(**{key: data[key] for key in _TOURNAMENT_FIELDS if key in data})

    def to_dict(self):
        return {key: getattr(self, key) for key in _TOURNAMENT_FIELDS}

    def can_transition_to(self, status):
        return status in STATUS_TRANSITIONS.get(self.status, set())

    def __repr__(self):
        return f"Tournament(id={self.id}, title={self.title}, status={self.status})"


_TOURNAMENT_FIELDS = (
    'id', 'title', 'organizer', 'tournament_format', 'match_format', 'max_participants',
    'status', 'description', 'entry_start_at', 'entry_deadline', 'start_at',
    'series_id', 'created',
)


class Series:
    def __init__(self, id, name, organizer, point_system='ranking', point_config=None,
                 point_calculation_mode='auto', status='draft', description='',
                 start_date=None, end_date=None, tournaments=None, created=None):
        self.id = id
        self.name = name
        self.organizer = organizer
        self.point_system = point_system
        self.point_config = point_config if point_config else {}
        self.point_calculation_mode = point_calculation_mode
        self.status = status
        self.description = description
        self.start_date = start_date
        self.end_date = end_date
        self.tournaments = tournaments if tournaments else []
        self.created = created

    @classmethod
    def from_dict(cls, data):
        return cls(**{key: data[key] for key in _SERIES_FIELDS if key in data})

    def to_dict(self):
        return {key: getattr(self, key) for key in _SERIES_FIELDS}

    def __repr__(self):
        return f"Series(id={self.id}, name={self.name}, point_system={self.point_system})"


_SERIES_FIELDS = (
    'id', 'name', 'organizer', 'point_system', 'point_config', 'point_calculation_mode',
    'status', 'description', 'start_date', 'end_date', 'tournaments', 'created',
)
