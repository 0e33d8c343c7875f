import hashlib
import hmac
import re

from stshield.core.security import compute_payment_signature, generate_policy_number, verify_payment_signature

SECRET = "s3cr3t"
ORDER_ID = "order_N5x1"
PAYMENT_ID = "pay_Q9z7"


def _sign(order_id: str, payment_id: str, secret: str = SECRET) -> str:
    return hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


def _flip(s: str, i: int) -> str:
    c = "0" if s[i] != "0" else "1"
    return s[:i] + c + s[i + 1:]


def test_signature_matches_hmac_sha256():
    assert compute_payment_signature(ORDER_ID, PAYMENT_ID, SECRET) == _sign(ORDER_ID, PAYMENT_ID)
    assert verify_payment_signature(ORDER_ID, PAYMENT_ID, SECRET, _sign(ORDER_ID, PAYMENT_ID))


def test_flipping_any_character_fails_verification():
    sig = _sign(ORDER_ID, PAYMENT_ID)
    for i in range(len(sig)):
        assert not verify_payment_signature(ORDER_ID, PAYMENT_ID, SECRET, _flip(sig, i))
    for i in range(len(ORDER_ID)):
        assert not verify_payment_signature(_flip(ORDER_ID, i), PAYMENT_ID, SECRET, sig)
    for i in range(len(PAYMENT_ID)):
        assert not verify_payment_signature(ORDER_ID, _flip(PAYMENT_ID, i), SECRET, sig)
    for i in range(len(SECRET)):
        assert not verify_payment_signature(ORDER_ID, PAYMENT_ID, _flip(SECRET, i), sig)


def test_separator_is_part_of_signed_body():
    # "ab|c" and "a|bc" must not collide
    assert not verify_payment_signature("a", "bc", SECRET, _sign("ab", "c"))


def test_missing_inputs_do_not_raise():
    sig = _sign(ORDER_ID, PAYMENT_ID)
    assert not verify_payment_signature(ORDER_ID, PAYMENT_ID, SECRET, None)
    assert not verify_payment_signature(ORDER_ID, PAYMENT_ID, SECRET, "")
    assert not verify_payment_signature("", PAYMENT_ID, SECRET, sig)
    assert not verify_payment_signature(ORDER_ID, PAYMENT_ID, "", sig)
    assert not verify_payment_signature(ORDER_ID, PAYMENT_ID, SECRET, "ünïcode")


def test_policy_number_format_and_uniqueness():
    numbers = {generate_policy_number() for _ in range(1000)}
    assert len(numbers) == 1000
    for n in numbers:
        assert re.fullmatch(r"SSST[0-9A-F]{12}", n)
