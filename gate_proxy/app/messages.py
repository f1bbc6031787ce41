"""
User-facing messages returned in error and success bodies.

The mobile client displays these verbatim, so they stay static and never
embed upstream error text.
"""

UPSTREAM_UNREACHABLE = "Erreur de connexion au serveur API"

ACCOUNT_DELETED_DENIAL = "Ce compte a été supprimé et ne peut plus se connecter."

NOT_AUTHENTICATED = "Non authentifié"

IDENTITY_UNRESOLVED = "Impossible d'identifier le compte à supprimer"

ACCOUNT_DELETED = "Votre compte a été définitivement supprimé."

STORE_FAILURE = "Erreur interne, la suppression n'a pas pu être enregistrée"

STORE_UNAVAILABLE = "Erreur interne, veuillez réessayer plus tard"

INTERNAL_ERROR = "Une erreur inattendue est survenue"
