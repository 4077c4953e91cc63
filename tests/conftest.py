import io

import pytest

from sealstream.core.crypto.aes_gcm import Aes256Gcm
from sealstream.core.crypto.provider import AeadSession, CryptoProvider

# Low enough to keep the suite fast; production default is 600k.
FAST_ITERATIONS = 1_000


class RecordingSession(AeadSession):
    """AeadSession that keeps a reference to every key buffer it is given."""

    def __init__(self, keys):
        super().__init__()
        self.keys = keys

    def init(self, direction, key, nonce):
        self.keys.append(key)
        super().init(direction, key, nonce)


class RecordingProvider(CryptoProvider):
    """Real provider that records the buffers handed to it."""

    def __init__(self):
        self.keys = []
        self.passwords = []
        self.sessions = 0

    def derive_key(self, password, salt, iterations, length=32):
        self.passwords.append(password)
        return super().derive_key(password, salt, iterations, length)

    def new_session(self):
        self.sessions += 1
        return RecordingSession(self.keys)


class UnseekableStream(io.BytesIO):
    def seekable(self):
        return False


@pytest.fixture
def password():
    return "correct-password"


@pytest.fixture
def session():
    return Aes256Gcm(iterations=FAST_ITERATIONS)


@pytest.fixture
def recording_provider():
    return RecordingProvider()


@pytest.fixture
def recording_session(recording_provider):
    return Aes256Gcm(iterations=FAST_ITERATIONS, provider=recording_provider)


@pytest.fixture
def unseekable():
    return UnseekableStream
