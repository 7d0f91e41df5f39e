"""Tests for the cipher parameter record and its JSON form."""

import json

import pytest

from citadel_vault.crypto.params import (
    AESMode,
    CipherParams,
    ccm_nonce,
    params_from_string,
    params_to_string,
    require_decrypt_fields,
    validate,
    verify_round_trip,
    with_defaults,
)
from citadel_vault.errors import CipherParameterError, MissingCipherParameter


class TestDefaults:

    def test_with_defaults_fills_everything(self):
        params = with_defaults()
        assert params.mode is AESMode.CCM
        assert params.iterations == 10000
        assert params.key_size == 128
        assert params.tag_size == 64
        assert params.version == 1
        assert params.cipher == "aes"
        assert params.adata == ""
        assert len(params.iv) == 16
        assert len(params.salt) == 8
        assert params.ciphertext is None

    def test_with_defaults_keeps_given_values(self):
        params = with_defaults(CipherParams(mode="gcm", iterations=2000, adata="x"))
        assert params.mode is AESMode.GCM
        assert params.iterations == 2000
        assert params.adata == "x"

    def test_with_defaults_draws_fresh_iv_and_salt(self):
        first, second = with_defaults(), with_defaults()
        assert first.iv != second.iv
        assert first.salt != second.salt


class TestValidation:

    @pytest.mark.parametrize("params", [
        CipherParams(key_size=64),
        CipherParams(tag_size=32),
        CipherParams(iterations=100),
        CipherParams(iv=b"short"),
        CipherParams(iv=b"x" * 17),
        CipherParams(cipher="des"),
        CipherParams(version=2),
        CipherParams(tag_size=128, ciphertext=b"tiny"),
    ])
    def test_invalid(self, params):
        with pytest.raises(CipherParameterError):
            validate(params)

    def test_valid(self):
        validate(with_defaults())

    def test_required_fields_order(self):
        with pytest.raises(MissingCipherParameter) as exc_info:
            require_decrypt_fields(CipherParams())
        assert exc_info.value.field == "mode"
        assert str(exc_info.value) == "missing AES mode"

    def test_missing_tag_length(self):
        params = with_defaults(CipherParams(tag_size=None))
        incomplete = CipherParams(
            iv=params.iv, salt=params.salt, iterations=1000, key_size=128,
            mode=AESMode.CCM, ciphertext=b"0123456789",
        )
        with pytest.raises(MissingCipherParameter, match="missing tag length"):
            require_decrypt_fields(incomplete)

    def test_round_trip_mismatch(self):
        requested = CipherParams(key_size=256)
        used = with_defaults(CipherParams(key_size=128))
        with pytest.raises(CipherParameterError, match="key_size"):
            verify_round_trip(requested, used)

    def test_round_trip_ignores_unrequested(self):
        verify_round_trip(CipherParams(), with_defaults())


class TestCcmNonce:

    def test_short_message(self):
        assert len(ccm_nonce(bytes(16), 100)) == 13

    def test_message_over_64k(self):
        assert len(ccm_nonce(bytes(16), 70000)) == 12

    def test_message_over_16m(self):
        assert len(ccm_nonce(bytes(16), 1 << 24)) == 11

    def test_short_iv_used_whole(self):
        iv = bytes(range(8))
        assert ccm_nonce(iv, 10) == iv

    def test_prefix_of_iv(self):
        iv = bytes(range(16))
        assert ccm_nonce(iv, 10) == iv[:13]


class TestStringForm:

    def test_field_order(self):
        text = params_to_string(with_defaults())
        assert list(json.loads(text)) == [
            "iv", "v", "iter", "ks", "ts", "mode", "adata", "cipher", "salt",
        ]

    def test_compact(self):
        assert " " not in params_to_string(with_defaults())

    def test_adata_is_base64(self):
        text = params_to_string(with_defaults(CipherParams(adata="hello")))
        assert json.loads(text)["adata"] == "aGVsbG8="
        assert params_from_string(text).adata == "hello"

    def test_parse_round_trip(self):
        params = with_defaults(CipherParams(mode=AESMode.GCM))
        assert params_from_string(params_to_string(params)) == params

    def test_parse_without_padding(self):
        text = '{"iv":"AAECAwQFBgcICQoLDA0ODw","salt":"AQIDBAUGBwg","mode":"ccm"}'
        params = params_from_string(text)
        assert params.iv == bytes(range(16))
        assert params.salt == bytes(range(1, 9))

    @pytest.mark.parametrize("text", [
        "not json",
        "[1, 2]",
        '{"mode": "ecb"}',
        '{"iter": "many"}',
        '{"iv": 12}',
        '{"salt": "!!!"}',
    ])
    def test_malformed(self, text):
        with pytest.raises(CipherParameterError):
            params_from_string(text)
