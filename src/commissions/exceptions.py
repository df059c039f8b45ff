"""Error taxonomy of the commission engine.

Every error carries a stable ``code`` and the HTTP status the API maps it to,
so callers can tell a retry (``ConcurrentModification``) from a resync
(``InvalidTransition``) from an input fix (``ValidationError``).
"""


class CommissionError(Exception):
    """Base class for every commission engine error."""

    code = "commission_error"
    http_status = 400
    retryable = False
    default_message = "Erreur de commission."

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def as_dict(self):
        return {
            "detail": self.message,
            "code": self.code,
            "retryable": self.retryable,
        }


class ValidationError(CommissionError):
    """Malformed input: empty reason, zero delta, non-completed sale..."""

    code = "validation_error"
    http_status = 400
    default_message = "Donnees invalides."


class RuleConfigurationError(ValidationError):
    """A commission rule has parameters that do not match its type."""

    code = "rule_configuration_error"
    default_message = "Configuration de regle de commission invalide."


class InvalidTransition(CommissionError):
    """The requested transition is not legal from the current status."""

    code = "invalid_transition"
    http_status = 409
    default_message = "Transition de statut invalide."

    def __init__(self, message=None, current_status=None):
        self.current_status = current_status
        super().__init__(message)


class ConcurrentModification(CommissionError):
    """The row changed between read and write; reload and retry."""

    code = "concurrent_modification"
    http_status = 409
    retryable = True
    default_message = "La commission a ete modifiee entre-temps. Rechargez et reessayez."


class AlreadyPaid(CommissionError):
    """Idempotent success: the commission was already paid.

    Not a failure for callers; it carries the stored commission.
    """

    code = "already_paid"
    http_status = 200
    default_message = "Commission deja payee."

    def __init__(self, commission=None, message=None):
        self.commission = commission
        super().__init__(message)


class NoApplicableRule(CommissionError):
    """No active rule matches the sale."""

    code = "no_applicable_rule"
    http_status = 422
    default_message = "Aucune regle de commission applicable a cette vente."


class NotAuthorized(CommissionError):
    """The actor's role does not allow the operation."""

    code = "not_authorized"
    http_status = 403
    default_message = "Action non autorisee pour ce role."
