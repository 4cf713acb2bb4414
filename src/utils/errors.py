"""Error taxonomy shared by the synchronizer, the decrypt client and the CLI."""


class SecretSyncError(Exception):
    """Base class for every error raised on purpose by this package."""


class ConfigurationError(SecretSyncError):
    pass


class MalformedEnvelope(SecretSyncError, ValueError):
    pass


class DecryptionFailed(SecretSyncError):
    """Wrong passphrase or tampered ciphertext. The two are never told apart."""

    MESSAGE = "Decryption failed: invalid passphrase or corrupted envelope"

    def __init__(self) -> None:
        super().__init__(self.MESSAGE)


AuthenticationFailed = DecryptionFailed


class EnvelopeNotFound(SecretSyncError, FileNotFoundError):
    pass


NotFound = EnvelopeNotFound


class FilesystemError(SecretSyncError, OSError):
    pass


class RemoteFetchError(SecretSyncError):
    pass
