from .constants import PLAYER, ADMIN
from .errors import AuthorizationError

VIEW_TOURNAMENTS = 'view_tournaments'
JOIN_TOURNAMENTS = 'join_tournaments'
VIEW_MATCHES = 'view_matches'
VIEW_RANKINGS = 'view_rankings'
CREATE_TOURNAMENTS = 'create_tournaments'
EDIT_OWN_TOURNAMENTS = 'edit_own_tournaments'
DELETE_OWN_TOURNAMENTS = 'delete_own_tournaments'
MANAGE_OWN_TOURNAMENT_INSCRIPTIONS = 'manage_own_tournament_inscriptions'
MANAGE_USERS = 'manage_users'
EDIT_ANY_TOURNAMENT = 'edit_any_tournament'
DELETE_ANY_TOURNAMENT = 'delete_any_tournament'
VIEW_SYSTEM_ANALYTICS = 'view_system_analytics'

_PLAYER_PERMISSIONS = frozenset({
    VIEW_TOURNAMENTS,
    JOIN_TOURNAMENTS,
    VIEW_MATCHES,
    VIEW_RANKINGS,
    CREATE_TOURNAMENTS,
    EDIT_OWN_TOURNAMENTS,
    DELETE_OWN_TOURNAMENTS,
    MANAGE_OWN_TOURNAMENT_INSCRIPTIONS,
})

ROLE_PERMISSIONS = {
    PLAYER: _PLAYER_PERMISSIONS,
    ADMIN: _PLAYER_PERMISSIONS | {
        MANAGE_USERS,
        EDIT_ANY_TOURNAMENT,
        DELETE_ANY_TOURNAMENT,
        VIEW_SYSTEM_ANALYTICS,
    },
}

# Tournament actions -> (permission when acting on any tournament,
#                        permission when acting on one's own tournament)
TOURNAMENT_ACTIONS = {
    'edit': (EDIT_ANY_TOURNAMENT, EDIT_OWN_TOURNAMENTS),
    'delete': (DELETE_ANY_TOURNAMENT, DELETE_OWN_TOURNAMENTS),
    'manage_inscriptions': (MANAGE_OWN_TOURNAMENT_INSCRIPTIONS, MANAGE_OWN_TOURNAMENT_INSCRIPTIONS),
    'start': (EDIT_ANY_TOURNAMENT, EDIT_OWN_TOURNAMENTS),
    'finish': (EDIT_ANY_TOURNAMENT, EDIT_OWN_TOURNAMENTS),
    'cancel': (EDIT_ANY_TOURNAMENT, EDIT_OWN_TOURNAMENTS),
    'generate_round': (EDIT_ANY_TOURNAMENT, EDIT_OWN_TOURNAMENTS),
    'enter_result': (EDIT_ANY_TOURNAMENT, EDIT_OWN_TOURNAMENTS),
    'view_logs': (EDIT_ANY_TOURNAMENT, EDIT_OWN_TOURNAMENTS),
}


def permissions_for(role) -> frozenset:
    return frozenset(ROLE_PERMISSIONS.get(role, ()))


def has_permission(role, permission) -> bool:
    return permission in ROLE_PERMISSIONS.get(role, ())


def actor_role(actor):
    if actor is None or not getattr(actor, 'is_authenticated', True):
        return None
    if getattr(actor, 'is_deleted', False):
        return None
    return getattr(actor, 'role', None)


def can_perform_tournament_action(role, user_id, organizer_id, action) -> bool:
    """Role and ownership check for an action on a single tournament."""
    if action not in TOURNAMENT_ACTIONS:
        return False
    any_perm, own_perm = TOURNAMENT_ACTIONS[action]
    if role == ADMIN:
        return has_permission(role, any_perm)
    if user_id is not None and organizer_id is not None and user_id == organizer_id:
        return has_permission(role, own_perm)
    return False


def may(actor, tournament, action) -> bool:
    role = actor_role(actor)
    if role is None:
        return False
    return can_perform_tournament_action(
        role, getattr(actor, 'id', None), tournament.created_by, action
    )


def authorize(actor, tournament, action):
    if not may(actor, tournament, action):
        raise AuthorizationError(f'Not allowed to {action.replace("_", " ")} this tournament.')


def require(actor, permission):
    role = actor_role(actor)
    if role is None or not has_permission(role, permission):
        raise AuthorizationError(f'Missing permission: {permission}.')
