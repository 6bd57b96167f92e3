# flat error taxonomy shared by the db package and the screens


class StoreError(Exception):
    """
    Raised by the document client for storage failures, missing documents
    and writes attempted without a session.
    """


class AuthError(Exception):
    """
    Raised by the identity provider when a credential is rejected.
    """


class ProviderUnavailable(AuthError):
    """
    The identity provider could not be reached at all.
    """


class ValidationError(ValueError):
    """
    A domain rule was violated (bad quantity, illegal status change, ...).
    The message is meant to be shown to the user as is.
    """
