# Tournament formats
SWISS = 'swiss'
ROUND_ROBIN = 'round_robin'
ELIMINATION = 'elimination'
FORMATS = (SWISS, ROUND_ROBIN, ELIMINATION)

# Tournament lifecycle
UPCOMING = 'upcoming'
ONGOING = 'ongoing'
FINISHED = 'finished'
CANCELLED = 'cancelled'
STATUSES = (UPCOMING, ONGOING, FINISHED, CANCELLED)
TERMINAL_STATUSES = (FINISHED, CANCELLED)

# Match results
NOT_STARTED = 'not_started'
IN_PROGRESS = 'ongoing'
WHITE_WINS = 'white_wins'
BLACK_WINS = 'black_wins'
DRAW = 'draw'
RESULTS = (NOT_STARTED, IN_PROGRESS, WHITE_WINS, BLACK_WINS, DRAW)
PENDING_RESULTS = (NOT_STARTED, IN_PROGRESS)

# Scores
WIN_SCORE = 1.0
DRAW_SCORE = 0.5

# Roles
PLAYER = 'player'
ADMIN = 'admin'
ROLES = (PLAYER, ADMIN)

# Reserved identity standing in for accounts that were purged. Autoincrement
# ids start at 1, so 0 never collides with a real user.
DELETED_USER_ID = 0
DELETED_USER_NAME = 'Deleted user'

DEFAULT_RATING = 1200
