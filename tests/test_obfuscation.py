import random
import string

import pytest

from obfuscation import (
    MAX_GENERAL_ID,
    MAX_NUMERIC_ID,
    TOKEN_DIGITS,
    IdObfuscator,
    InvalidToken,
    NumericCipher,
    ObfuscationKeys,
    TokenMode,
)


# ===================================
# 1. Bijection
# ===================================

SAMPLE_IDS = [0, 1, 2, 9, 10, 99, 1000, 12345, 2**31 - 1, 10**11, MAX_NUMERIC_ID]


@pytest.mark.parametrize("mode", [TokenMode.GENERAL, TokenMode.NUMERIC])
def test_decode_inverts_encode(obfuscator: IdObfuscator, mode):
    for n in SAMPLE_IDS:
        assert obfuscator.decode(obfuscator.encode(n, mode), mode) == n


def test_encoding_is_deterministic(keys):
    first, second = IdObfuscator(keys), IdObfuscator(keys)
    for mode in TokenMode:
        assert first.encode(4242, mode) == second.encode(4242, mode)


def test_distinct_ids_get_distinct_tokens(obfuscator: IdObfuscator):
    for mode in TokenMode:
        tokens = {obfuscator.encode(n, mode) for n in range(2000)}
        assert len(tokens) == 2000


def test_sequential_ids_do_not_produce_sequential_tokens(obfuscator: IdObfuscator):
    a = int(obfuscator.encode(100, TokenMode.NUMERIC))
    b = int(obfuscator.encode(101, TokenMode.NUMERIC))
    assert abs(a - b) > 1


# ===================================
# 2. Token shape
# ===================================

def test_general_tokens_are_alphanumeric(obfuscator: IdObfuscator):
    for n in SAMPLE_IDS:
        token = obfuscator.encode(n, TokenMode.GENERAL)
        assert token.isalnum() and token.isascii()
        assert len(token) >= obfuscator.keys.min_length


def test_numeric_tokens_are_fixed_width_digits(obfuscator: IdObfuscator):
    for n in SAMPLE_IDS:
        token = obfuscator.encode(n, TokenMode.NUMERIC)
        assert len(token) == TOKEN_DIGITS
        assert token.isdigit()
        assert "-" not in token


def test_numeric_encode_rejects_out_of_range_ids():
    cipher = NumericCipher("123456789")
    with pytest.raises(ValueError):
        cipher.encrypt(-1)
    with pytest.raises(ValueError):
        cipher.encrypt(MAX_NUMERIC_ID + 1)


def test_general_encode_rejects_negative_ids(obfuscator: IdObfuscator):
    with pytest.raises(ValueError):
        obfuscator.encode(-5, TokenMode.GENERAL)


def test_general_mode_covers_the_sqlite_integer_range(obfuscator: IdObfuscator):
    token = obfuscator.encode(MAX_GENERAL_ID, TokenMode.GENERAL)
    assert obfuscator.decode(token, TokenMode.GENERAL) == MAX_GENERAL_ID


def test_general_encode_rejects_ids_beyond_the_sqlite_range(obfuscator: IdObfuscator):
    for n in (MAX_GENERAL_ID + 1, 10**100):
        with pytest.raises(ValueError):
            obfuscator.encode(n, TokenMode.GENERAL)


# ===================================
# 3. Rejection of malformed and tampered tokens
# ===================================

@pytest.mark.parametrize("token", ["", "-", "abc$def", "with space", "0" * 200, "é" * 10])
def test_general_decode_rejects_malformed_tokens(obfuscator: IdObfuscator, token):
    with pytest.raises(InvalidToken):
        obfuscator.decode(token, TokenMode.GENERAL)


@pytest.mark.parametrize("token", ["", "123", "1" * (TOKEN_DIGITS + 1), "12345678901234567a", "１" * TOKEN_DIGITS])
def test_numeric_decode_rejects_malformed_tokens(obfuscator: IdObfuscator, token):
    with pytest.raises(InvalidToken):
        obfuscator.decode(token, TokenMode.NUMERIC)


def test_decode_rejects_non_string_input(obfuscator: IdObfuscator):
    for mode in TokenMode:
        with pytest.raises(InvalidToken):
            obfuscator.decode(12345, mode)


def _single_character_variants(token: str, alphabet: str):
    for i, original in enumerate(token):
        for replacement in alphabet:
            if replacement != original:
                yield token[:i] + replacement + token[i + 1:]


def test_single_character_changes_never_decode_to_the_same_id(obfuscator: IdObfuscator):
    alphabets = {
        TokenMode.GENERAL: string.ascii_letters + string.digits,
        TokenMode.NUMERIC: string.digits,
    }
    for mode, alphabet in alphabets.items():
        token = obfuscator.encode(777, mode)
        for variant in _single_character_variants(token, alphabet):
            try:
                assert obfuscator.decode(variant, mode) != 777
            except InvalidToken:
                pass


def test_tampered_numeric_tokens_are_almost_always_rejected(obfuscator: IdObfuscator):
    token = obfuscator.encode(31337, TokenMode.NUMERIC)
    variants = list(_single_character_variants(token, string.digits))
    accepted = 0
    for variant in variants:
        try:
            obfuscator.decode(variant, TokenMode.NUMERIC)
            accepted += 1
        except InvalidToken:
            pass
    assert accepted == 0


def test_random_numeric_tokens_are_rejected(obfuscator: IdObfuscator):
    rng = random.Random(7)
    accepted = 0
    for _ in range(2000):
        token = "".join(rng.choice(string.digits) for _ in range(TOKEN_DIGITS))
        try:
            obfuscator.decode(token, TokenMode.NUMERIC)
            accepted += 1
        except InvalidToken:
            pass
    assert accepted == 0


def test_random_general_tokens_are_rejected(obfuscator: IdObfuscator):
    rng = random.Random(11)
    alphabet = string.ascii_letters + string.digits
    for _ in range(2000):
        token = "".join(rng.choice(alphabet) for _ in range(10))
        with pytest.raises(InvalidToken):
            obfuscator.decode(token, TokenMode.GENERAL)


def test_plain_hashid_without_tag_is_rejected(keys, obfuscator: IdObfuscator):
    from hashids import Hashids

    bare = Hashids(salt=keys.general_key, min_length=keys.min_length).encode(42)
    with pytest.raises(InvalidToken):
        obfuscator.decode(bare, TokenMode.GENERAL)


# ===================================
# 4. Keys
# ===================================

def test_rotating_a_key_invalidates_tokens_of_that_mode_only(keys):
    original = IdObfuscator(keys)
    rotated_numeric = IdObfuscator(ObfuscationKeys(
        general_key=keys.general_key, numeric_key="987654321", min_length=keys.min_length,
    ))

    numeric_token = original.encode(555, TokenMode.NUMERIC)
    general_token = original.encode(555, TokenMode.GENERAL)

    with pytest.raises(InvalidToken):
        rotated_numeric.decode(numeric_token, TokenMode.NUMERIC)
    assert rotated_numeric.decode(general_token, TokenMode.GENERAL) == 555


def test_rotating_the_general_key_invalidates_general_tokens(keys):
    original = IdObfuscator(keys)
    rotated = IdObfuscator(ObfuscationKeys(
        general_key="another_general_key_0123456789", numeric_key=keys.numeric_key,
    ))
    token = original.encode(555, TokenMode.GENERAL)
    with pytest.raises(InvalidToken):
        rotated.decode(token, TokenMode.GENERAL)


def test_mode_accepts_plain_strings(obfuscator: IdObfuscator):
    token = obfuscator.encode(10, "numeric")
    assert obfuscator.decode(token, "numeric") == 10


# ===================================
# 5. Process-wide engine
# ===================================

def test_shared_engine_uses_configured_keys(obfuscator: IdObfuscator):
    from encoding import get_obfuscator

    engine = get_obfuscator()
    assert engine is get_obfuscator()
    assert engine.encode(99, TokenMode.GENERAL) == obfuscator.encode(99, TokenMode.GENERAL)
    assert engine.decode(obfuscator.encode(99, TokenMode.NUMERIC), TokenMode.NUMERIC) == 99
