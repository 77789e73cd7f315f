"""Offer python errors and tools."""


class MetaTxError(Exception):
    """Generic error for meta-transactions."""


class ConfigLoaderError(MetaTxError):
    """Generic error for the settings loader."""


class MalformedCallDescriptorError(MetaTxError, ValueError):
    """Call descriptor could not be classified or lowered.

    Raised before any network or signer interaction, nothing has been mutated.
    """


class ChainReadError(MetaTxError):
    """On-chain state could not be read."""


class AuthorityUnavailableError(ChainReadError):
    """Replay protection state could not be read from chain.

    The authority local state is left unchanged, the operation can be retried.
    """


class SigningRejectedError(MetaTxError):
    """The signing identity declined or failed to sign.

    Notes:
        The replay protection token requested before signing is NOT released.
        Its slot (queue counter value or bitmap bit) will never be used, a retry
        receives a new token.

    """


class DecodeMismatchError(MetaTxError, ValueError):
    """Payload was not produced by the matching encode path."""
