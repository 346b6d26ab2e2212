"""
Tests for the credential vault.

Covers:
- Round trip and token layout
- Tamper detection on every character of a token
- Version tag handling
- Missing / malformed key
- Plaintext mode
"""
import base64

import pytest

from app.exceptions import (
    AuthenticationFailure,
    ConfigurationError,
    CryptoError,
    UnsupportedVersion,
)
from app.utils.encryption import (
    CredentialVault,
    IV_BYTES,
    TAG_BYTES,
    TOKEN_VERSION,
    VaultConfig,
    generate_key,
)


class TestRoundTrip:

    @pytest.mark.parametrize("plaintext", [
        "x",
        '{"organization": "contoso", "personalAccessToken": "abc123"}',
        "unicode: déjà vu ✓",
        "a" * 10000,
    ])
    def test_decrypt_inverts_encrypt(self, vault, plaintext):
        assert vault.decrypt(vault.encrypt(plaintext)) == plaintext

    def test_token_layout(self, vault):
        token = vault.encrypt("secret")
        version, iv, data, tag = token.split(":")
        assert version == TOKEN_VERSION
        assert len(base64.b64decode(iv)) == IV_BYTES
        assert len(base64.b64decode(tag)) == TAG_BYTES
        assert len(base64.b64decode(data)) == len("secret")

    def test_fresh_iv_per_call(self, vault):
        assert vault.encrypt("same") != vault.encrypt("same")

    def test_wrong_key_fails_authentication(self, vault):
        token = vault.encrypt("secret")
        other = CredentialVault(VaultConfig(encoded_key=generate_key()))
        with pytest.raises(AuthenticationFailure):
            other.decrypt(token)


class TestTamperDetection:

    def test_every_altered_character_is_rejected(self, vault):
        token = vault.encrypt('{"apiToken": "t0k3n"}')
        for i, ch in enumerate(token):
            if ch == ":":
                continue
            replacement = "A" if ch != "A" else "B"
            tampered = token[:i] + replacement + token[i + 1:]
            with pytest.raises(CryptoError):
                vault.decrypt(tampered)

    def test_flipped_ciphertext_bit_fails_tag_check(self, vault):
        version, iv, data, tag = vault.encrypt("secret").split(":")
        raw = bytearray(base64.b64decode(data))
        raw[0] ^= 0x01
        tampered = ":".join([version, iv, base64.b64encode(bytes(raw)).decode(), tag])
        with pytest.raises(AuthenticationFailure):
            vault.decrypt(tampered)

    def test_missing_part(self, vault):
        token = vault.encrypt("secret")
        with pytest.raises(CryptoError):
            vault.decrypt(token.rsplit(":", 1)[0])


class TestVersion:

    def test_unknown_version(self, vault):
        token = vault.encrypt("secret")
        with pytest.raises(UnsupportedVersion) as exc_info:
            vault.decrypt("v2" + token[len(TOKEN_VERSION):])
        assert exc_info.value.version == "v2"

    def test_plain_json_is_not_a_token(self, vault):
        with pytest.raises(UnsupportedVersion):
            vault.decrypt('{"email": "a@b.c"}')


class TestKeyConfiguration:

    def test_missing_key_is_configuration_error(self):
        vault = CredentialVault(VaultConfig.plaintext())
        with pytest.raises(ConfigurationError, match="APP_ENCRYPTION_KEY not set"):
            vault.encrypt("secret")

    def test_short_key_rejected(self):
        short = base64.b64encode(b"0" * 16).decode()
        vault = CredentialVault(VaultConfig(encoded_key=short))
        with pytest.raises(ConfigurationError, match="32 bytes"):
            vault.encrypt("secret")

    def test_non_base64_key_rejected(self):
        vault = CredentialVault(VaultConfig(encoded_key="not base64!!"))
        with pytest.raises(ConfigurationError):
            vault.encrypt("secret")

    def test_generated_key_is_32_bytes(self):
        assert len(base64.b64decode(generate_key())) == 32


class TestPlaintextMode:

    def test_seal_passes_through(self, plaintext_vault):
        value = '{"email": "a@b.c", "apiToken": "t"}'
        assert plaintext_vault.enabled is False
        assert plaintext_vault.seal(value) == value
        assert plaintext_vault.unseal(value) == value

    def test_seal_encrypts_with_key(self, vault):
        sealed = vault.seal("secret")
        assert sealed.startswith(f"{TOKEN_VERSION}:")
        assert vault.unseal(sealed) == "secret"
