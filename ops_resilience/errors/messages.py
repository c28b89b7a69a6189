# ops_resilience/errors/messages.py

"""User-facing error messages per locale."""

from .types import ErrorCodes

DEFAULT_LOCALE = "fr"

USER_MESSAGES: dict[str, dict[str, str]] = {
    "fr": {
        ErrorCodes.UNAUTHORIZED: "Vous devez vous connecter pour accéder à cette fonctionnalité.",
        ErrorCodes.TOKEN_EXPIRED: "Votre session a expiré. Veuillez vous reconnecter.",
        ErrorCodes.INSUFFICIENT_PERMISSIONS: "Vous n'avez pas les permissions nécessaires pour cette action.",
        ErrorCodes.CONNECTION_FAILED: "Impossible de se connecter au service. Vérifiez votre connexion internet.",
        ErrorCodes.REQUEST_TIMEOUT: "La demande a pris trop de temps. Veuillez réessayer.",
        ErrorCodes.SERVICE_UNAVAILABLE: "Le service est temporairement indisponible. Veuillez réessayer plus tard.",
        ErrorCodes.RATE_LIMITED: "Trop de tentatives. Veuillez attendre avant de réessayer.",
        ErrorCodes.REQUIRED_FIELD: "Ce champ est obligatoire.",
        ErrorCodes.INVALID_FORMAT: "Le format n'est pas valide.",
        ErrorCodes.DUPLICATE_VALUE: "Cette valeur existe déjà.",
        ErrorCodes.RESOURCE_NOT_FOUND: "La ressource demandée est introuvable.",
        ErrorCodes.CIRCUIT_OPEN: "Le service est momentanément suspendu après plusieurs échecs.",
        ErrorCodes.UNEXPECTED_ERROR: "Une erreur inattendue s'est produite. Veuillez réessayer.",
    },
    "en": {
        ErrorCodes.UNAUTHORIZED: "You need to sign in to use this feature.",
        ErrorCodes.TOKEN_EXPIRED: "Your session has expired. Please sign in again.",
        ErrorCodes.INSUFFICIENT_PERMISSIONS: "You do not have permission to perform this action.",
        ErrorCodes.CONNECTION_FAILED: "Unable to reach the service. Please check your internet connection.",
        ErrorCodes.REQUEST_TIMEOUT: "The request took too long. Please try again.",
        ErrorCodes.SERVICE_UNAVAILABLE: "The service is temporarily unavailable. Please try again later.",
        ErrorCodes.RATE_LIMITED: "Too many attempts. Please wait before trying again.",
        ErrorCodes.REQUIRED_FIELD: "This field is required.",
        ErrorCodes.INVALID_FORMAT: "The format is not valid.",
        ErrorCodes.DUPLICATE_VALUE: "This value already exists.",
        ErrorCodes.RESOURCE_NOT_FOUND: "The requested resource could not be found.",
        ErrorCodes.CIRCUIT_OPEN: "The service is paused after repeated failures.",
        ErrorCodes.UNEXPECTED_ERROR: "An unexpected error occurred. Please try again.",
    },
}

GENERIC_MESSAGES: dict[str, str] = {
    "fr": "Une erreur inattendue s'est produite.",
    "en": "An unexpected error occurred.",
}

FEEDBACK_LABELS: dict[str, dict[str, str]] = {
    "fr": {
        "critical_title": "Erreur Critique",
        "high_title": "Erreur Importante",
        "reload": "Recharger la page",
        "retry": "Réessayer",
        "acknowledge": "J'ai compris",
    },
    "en": {
        "critical_title": "Critical Error",
        "high_title": "Important Error",
        "reload": "Reload the page",
        "retry": "Try again",
        "acknowledge": "Got it",
    },
}


def resolve_user_message(code: str, locale: str = DEFAULT_LOCALE) -> str:
    """Resolve the message for ``code``: per-code table, then generic."""
    table = USER_MESSAGES.get(locale, USER_MESSAGES[DEFAULT_LOCALE])
    if code in table:
        return table[code]
    return GENERIC_MESSAGES.get(locale, GENERIC_MESSAGES[DEFAULT_LOCALE])


def feedback_label(key: str, locale: str = DEFAULT_LOCALE) -> str:
    labels = FEEDBACK_LABELS.get(locale, FEEDBACK_LABELS[DEFAULT_LOCALE])
    return labels[key]
