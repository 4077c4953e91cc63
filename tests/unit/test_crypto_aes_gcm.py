"""Unit tests for the AES-256-GCM cipher session."""

import errno
import io
import logging
import os
from unittest import mock

import pytest

from sealstream.core.config import CipherConfig, SecureConfig
from sealstream.core.crypto.aes_gcm import (
    Aes256Gcm,
    CipherResult,
    aes256_decrypt,
    aes256_decrypt_stream,
    aes256_encrypt,
    aes256_encrypt_stream,
)
from sealstream.core.crypto.envelope import FORMAT_TAG, Envelope
from sealstream.core.crypto.provider import CryptoProvider
from sealstream.core.exceptions import (
    AuthenticationError,
    CancelledError,
    CryptoError,
    FormatError,
    ResourceError,
    SealError,
)

FAST = 1_000


def _encrypt(session, data, password):
    sink = io.BytesIO()
    result = session.encrypt(data, password, sink)
    assert result, result.message
    return sink.getvalue()


def _decrypt(session, data, password):
    sink = io.BytesIO()
    result = session.decrypt(data, password, sink)
    return result, sink.getvalue()


class _FailingSink(io.RawIOBase):
    def __init__(self, exc):
        self._exc = exc

    def writable(self):
        return True

    def write(self, data):
        raise self._exc


# ---------------------------------------------------------------------------
# Round trips
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("size", [0, 1, 15, 16, 17, 1000, 70_000])
def test_roundtrip(session, password, size):
    data = os.urandom(size)
    envelope = _encrypt(session, data, password)
    assert len(envelope) == size + 51

    result, plaintext = _decrypt(session, envelope, password)
    assert result
    assert plaintext == data


def test_hello_world_scenario(session):
    envelope = _encrypt(session, b"hello world", "correct-password")
    assert len(envelope) == 62
    assert envelope[:7] == FORMAT_TAG

    result, plaintext = _decrypt(session, envelope, "correct-password")
    assert result
    assert plaintext == b"hello world"

    result, _ = _decrypt(session, envelope, "wrong-password")
    assert not result
    assert isinstance(result.error, AuthenticationError)


def test_empty_plaintext_envelope(session, password):
    envelope = _encrypt(session, b"", password)
    assert len(envelope) == 51
    assert Envelope.from_bytes(envelope).ciphertext == b""
    assert session.decrypt_bytes(envelope, password) == b""


def test_stream_source_and_sink(session, password, tmp_path):
    data = os.urandom(200_000)
    plain = tmp_path / "plain.bin"
    sealed = tmp_path / "plain.bin.gcm"
    plain.write_bytes(data)

    with open(plain, "rb") as src, open(sealed, "wb") as dst:
        assert session.encrypt(src, password, dst)
    assert sealed.stat().st_size == len(data) + 51

    out = io.BytesIO()
    with open(sealed, "rb") as src:
        assert session.decrypt(src, password, out)
    assert out.getvalue() == data


def test_stream_read_from_current_position(session, password):
    source = io.BytesIO(b"skip-me:payload")
    source.seek(8)
    envelope = _encrypt(session, source, password)
    assert len(envelope) == 51 + len(b"payload")
    assert session.decrypt_bytes(envelope, password) == b"payload"


def test_bytes_and_text_passwords_are_interchangeable(session):
    envelope = _encrypt(session, b"data", "pässwörd")
    assert session.decrypt_bytes(envelope, "pässwörd".encode("utf-8")) == b"data"
    assert session.decrypt_bytes(envelope, bytearray("pässwörd".encode("utf-8"))) == b"data"


def test_caller_bytearray_password_left_intact(session):
    secret = bytearray(b"caller-owned")
    envelope = _encrypt(session, b"data", secret)
    assert secret == bytearray(b"caller-owned")
    assert session.decrypt_bytes(envelope, secret) == b"data"


def test_invalid_password_type(session):
    with pytest.raises(TypeError):
        session.encrypt(b"data", 1234, io.BytesIO())


@pytest.mark.parametrize("encrypt_chunk,decrypt_chunk", [(1, 1 << 20), (1 << 20, 1)])
def test_chunk_size_invariance(password, encrypt_chunk, decrypt_chunk):
    data = os.urandom(5_000)
    envelope = Aes256Gcm(iterations=FAST, chunk_size=encrypt_chunk).encrypt_bytes(data, password)
    plaintext = Aes256Gcm(iterations=FAST, chunk_size=decrypt_chunk).decrypt_bytes(envelope, password)
    assert plaintext == data


def test_envelopes_are_unique(session, password):
    first = Envelope.from_bytes(_encrypt(session, b"same input", password))
    second = Envelope.from_bytes(_encrypt(session, b"same input", password))
    assert first.header.salt != second.header.salt
    assert first.header.nonce != second.header.nonce
    assert first.ciphertext != second.ciphertext


# ---------------------------------------------------------------------------
# Authentication and format failures
# ---------------------------------------------------------------------------

def test_wrong_password(session, password):
    envelope = _encrypt(session, b"secret data", password)
    result, _ = _decrypt(session, envelope, "not-" + password)

    assert not result
    assert isinstance(result.error, AuthenticationError)
    assert session.last_error == "Authentication failed"
    assert session.last_exception is result.error


def test_iteration_mismatch_fails_authentication(password):
    envelope = Aes256Gcm(iterations=FAST).encrypt_bytes(b"data", password)
    with pytest.raises(AuthenticationError):
        Aes256Gcm(iterations=FAST + 1).decrypt_bytes(envelope, password)


@pytest.mark.parametrize("offset", [0, 3, 6, 7, 15, 22, 23, 30, 34, 35, 40, 45, 46, 55, 61])
@pytest.mark.parametrize("bit", [0, 7])
def test_single_bit_flip_detected(session, password, offset, bit):
    envelope = bytearray(_encrypt(session, b"hello world", password))
    envelope[offset] ^= 1 << bit

    result, _ = _decrypt(session, bytes(envelope), password)
    assert not result
    if offset < len(FORMAT_TAG):
        assert isinstance(result.error, FormatError)
        assert result.message == "Invalid format"
    else:
        assert isinstance(result.error, AuthenticationError)
        assert result.message == "Authentication failed"


def test_tamper_and_wrong_password_are_indistinguishable(session, password):
    envelope = bytearray(_encrypt(session, b"payload", password))
    wrong, _ = _decrypt(session, bytes(envelope), "other")
    envelope[40] ^= 0x01
    tampered, _ = _decrypt(session, bytes(envelope), password)

    assert type(wrong.error) is type(tampered.error)
    assert wrong.message == tampered.message


@pytest.mark.parametrize("size", [0, 1, 35, 50])
def test_short_input_rejected_without_crypto(size):
    spy = mock.Mock(wraps=CryptoProvider())
    session = Aes256Gcm(iterations=FAST, provider=spy)

    result, _ = _decrypt(session, b"\x00" * size, "pw")

    assert not result
    assert isinstance(result.error, FormatError)
    assert session.last_error == "Encrypted input is too short"
    assert spy.method_calls == []


def test_bad_format_tag_rejected_before_key_derivation():
    spy = mock.Mock(wraps=CryptoProvider())
    session = Aes256Gcm(iterations=FAST, provider=spy)

    result, _ = _decrypt(session, b"NOTGCM!" + b"\x00" * 60, "pw")

    assert isinstance(result.error, FormatError)
    assert result.message == "Invalid format"
    spy.derive_key.assert_not_called()


def test_truncated_envelope_fails(session, password):
    envelope = _encrypt(session, b"hello world", password)
    result, _ = _decrypt(session, envelope[:-1], password)
    assert isinstance(result.error, AuthenticationError)

    result, _ = _decrypt(session, envelope[:50], password)
    assert isinstance(result.error, FormatError)


def test_appended_byte_fails_authentication(session, password):
    envelope = _encrypt(session, b"hello world", password)
    result, _ = _decrypt(session, envelope + b"\x00", password)
    assert not result
    assert isinstance(result.error, AuthenticationError)


def test_unseekable_source_rejected(session, password, unseekable):
    result = session.encrypt(unseekable(b"data"), password, io.BytesIO())
    assert isinstance(result.error, FormatError)
    assert "Invalid stream size" in result.message

    result = session.decrypt(unseekable(b"\x00" * 64), password, io.BytesIO())
    assert isinstance(result.error, FormatError)


def test_decrypt_bytes_raises_and_returns_nothing(session, password):
    envelope = _encrypt(session, b"top secret", password)
    with pytest.raises(AuthenticationError):
        session.decrypt_bytes(envelope, "wrong")


# ---------------------------------------------------------------------------
# Progress and cancellation
# ---------------------------------------------------------------------------

def test_encrypt_progress_sequence(password):
    calls = []
    session = Aes256Gcm(iterations=FAST, chunk_size=4, on_progress=lambda p, t: calls.append((p, t)) and False)
    result = session.encrypt(b"hello world", password, io.BytesIO())

    assert result.processed == result.total == 62
    assert calls == [(35, 62), (39, 62), (43, 62), (46, 62), (62, 62)]


def test_decrypt_progress_sequence(session, password):
    envelope = _encrypt(session, b"hello world", password)
    calls = []
    session.on_progress = lambda p, t: calls.append((p, t)) and False
    result, _ = _decrypt(session, envelope, password)

    assert result.processed == result.total == 62
    assert calls == [(51, 62), (62, 62), (62, 62)]


def test_empty_encrypt_progress(password):
    calls = []
    session = Aes256Gcm(iterations=FAST, on_progress=lambda p, t: calls.append((p, t)) and False)
    session.encrypt(b"", password, io.BytesIO())
    assert calls == [(35, 51), (51, 51)]


def test_cancel_on_first_chunk_of_large_encryption(recording_provider, password):
    session = Aes256Gcm(
        iterations=FAST,
        chunk_size=64 * 1024,
        on_progress=lambda p, t: p > 35,
        provider=recording_provider,
    )
    sink = io.BytesIO()
    result = session.encrypt(os.urandom(1024 * 1024), password, sink)

    assert not result
    assert isinstance(result.error, CancelledError)
    assert session.last_error == "Encryption aborted"
    # the first chunk completes before the abort is honoured
    assert len(sink.getvalue()) == 35 + 64 * 1024

    assert len(recording_provider.keys) == 1
    assert recording_provider.keys[0] == bytearray(32)
    assert all(b == 0 for b in recording_provider.passwords[0])


def test_cancel_after_header(session, password):
    session.on_progress = lambda p, t: True
    sink = io.BytesIO()
    result = session.encrypt(b"data", password, sink)
    assert isinstance(result.error, CancelledError)
    assert len(sink.getvalue()) == 35


def test_cancel_decrypt(session, password):
    envelope = _encrypt(session, b"x" * 100, password)
    session.on_progress = lambda p, t: True
    result, plaintext = _decrypt(session, envelope, password)
    assert isinstance(result.error, CancelledError)
    assert session.last_error == "Decryption aborted"
    assert plaintext == b""


def test_final_decrypt_progress_cannot_cancel(session, password):
    envelope = _encrypt(session, b"hello world", password)
    calls = []

    def abort_on_third(p, t):
        calls.append((p, t))
        return len(calls) == 3

    session.on_progress = abort_on_third
    result, plaintext = _decrypt(session, envelope, password)
    assert result
    assert plaintext == b"hello world"
    assert len(calls) == 3


# ---------------------------------------------------------------------------
# Key scrubbing and error mapping
# ---------------------------------------------------------------------------

def test_key_zeroed_after_success(recording_session, recording_provider, password):
    envelope = recording_session.encrypt_bytes(b"data", password)
    recording_session.decrypt_bytes(envelope, password)

    assert len(recording_provider.keys) == 2
    for key in recording_provider.keys:
        assert isinstance(key, bytearray)
        assert key == bytearray(32)
    for secret in recording_provider.passwords:
        assert secret == bytearray(len(secret))


def test_key_zeroed_after_authentication_failure(recording_session, recording_provider, password):
    envelope = recording_session.encrypt_bytes(b"data", password)
    with pytest.raises(AuthenticationError):
        recording_session.decrypt_bytes(envelope, "wrong")
    assert recording_provider.keys[-1] == bytearray(32)


def test_key_zeroed_after_unexpected_error(recording_session, recording_provider, password):
    result = recording_session.encrypt(b"data", password, _FailingSink(RuntimeError("boom")))

    assert not result
    assert type(result.error) is SealError
    assert result.message == "Unknown exception"
    assert isinstance(result.error.__cause__, RuntimeError)
    assert recording_provider.keys[0] == bytearray(32)


def test_sink_io_error_maps_to_resource_error(session, password):
    failure = OSError(errno.ENOSPC, "No space left on device")
    result = session.encrypt(b"data", password, _FailingSink(failure))

    assert isinstance(result.error, ResourceError)
    assert result.message == "Stream I/O failed: No space left on device"
    assert result.error.__cause__ is failure


def test_key_derivation_failure(password):
    provider = CryptoProvider()
    provider.derive_key = mock.Mock(side_effect=RuntimeError("backend"))
    result = Aes256Gcm(iterations=FAST, provider=provider).encrypt(b"data", password, io.BytesIO())

    assert isinstance(result.error, CryptoError)
    assert result.message == "Key derivation failed"


def test_random_generation_failure(password):
    provider = CryptoProvider()
    provider.random_bytes = mock.Mock(return_value=b"short")
    result = Aes256Gcm(iterations=FAST, provider=provider).encrypt(b"data", password, io.BytesIO())

    assert isinstance(result.error, CryptoError)
    assert result.message == "Salt/IV generation failed"


def test_header_randomness_comes_from_provider(password):
    salt, nonce = bytes(range(16)), bytes(range(100, 112))
    provider = CryptoProvider()
    provider.random_bytes = mock.Mock(side_effect=[salt, nonce])
    sink = io.BytesIO()
    Aes256Gcm(iterations=FAST, provider=provider).encrypt(b"data", password, sink).raise_for_error()

    assert provider.random_bytes.call_args_list == [mock.call(16), mock.call(12)]
    header = Envelope.from_bytes(sink.getvalue()).header
    assert header.salt == salt
    assert header.nonce == nonce


def test_context_allocation_failure(password):
    provider = CryptoProvider()
    provider.new_session = mock.Mock(side_effect=MemoryError)
    result = Aes256Gcm(iterations=FAST, provider=provider).encrypt(b"data", password, io.BytesIO())

    assert isinstance(result.error, ResourceError)
    assert result.message == "Failed to create context"


def test_failure_is_logged_without_secrets(session, caplog):
    envelope = _encrypt(session, b"data", "hunter2-correct")
    with caplog.at_level(logging.WARNING, logger="sealstream.cipher"):
        _decrypt(session, envelope, "hunter2-wrong")

    assert "Decryption failed: Authentication failed" in caplog.text
    assert "hunter2" not in caplog.text


# ---------------------------------------------------------------------------
# Session lifecycle
# ---------------------------------------------------------------------------

def test_session_reuse(recording_session, recording_provider, password):
    messages = [b"first", b"", os.urandom(3000)]
    envelopes = [recording_session.encrypt_bytes(m, password) for m in messages]

    result, _ = _decrypt(recording_session, envelopes[0], "wrong")
    assert not result
    assert recording_session.last_error

    for message, envelope in zip(messages, envelopes):
        assert recording_session.decrypt_bytes(envelope, password) == message
        assert recording_session.last_error == ""
        assert recording_session.last_exception is None

    # one AEAD context serves every call
    assert recording_provider.sessions == 1


def test_settings_validated(session):
    with pytest.raises(ValueError):
        Aes256Gcm(iterations=0)
    with pytest.raises(ValueError):
        Aes256Gcm(chunk_size=0)
    with pytest.raises(ValueError):
        session.chunk_size = -1


def test_from_config():
    config = SecureConfig(cipher=CipherConfig(kdf_iterations=200_000, chunk_size=4096))
    session = Aes256Gcm.from_config(config)
    assert session.iterations == 200_000
    assert session.chunk_size == 4096


def test_repr_has_no_secrets(session):
    assert repr(session) == f"Aes256Gcm(iterations={FAST}, chunk_size={64 * 1024})"


def test_cipher_result():
    ok = CipherResult(ok=True, processed=62, total=62)
    assert ok
    assert ok.message == ""
    ok.raise_for_error()

    failed = CipherResult(ok=False, error=FormatError("Invalid format"))
    assert not failed
    assert failed.message == "Invalid format"
    with pytest.raises(FormatError):
        failed.raise_for_error()


# ---------------------------------------------------------------------------
# Module helpers (default iteration count)
# ---------------------------------------------------------------------------

def test_module_bytes_helpers(password):
    envelope = aes256_encrypt(b"hello world", password)
    assert len(envelope) == 62
    assert aes256_decrypt(envelope, password) == b"hello world"


def test_module_stream_helpers(password):
    sealed = io.BytesIO()
    assert aes256_encrypt_stream(b"streamed", password, sealed)

    plain = io.BytesIO()
    result = aes256_decrypt_stream(sealed.getvalue(), password, plain)
    assert result
    assert plain.getvalue() == b"streamed"

    result = aes256_decrypt_stream(b"short", password, io.BytesIO())
    assert isinstance(result.error, FormatError)
