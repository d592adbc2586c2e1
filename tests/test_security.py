import hashlib
import hmac

from faqbot.middleware.security import sanitize_message, strip_html, verify_meta_signature


def _sign(body: bytes, secret: str) -> str:
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def test_sanitize_masks_personal_data():
    assert sanitize_message("我的电话是13812345678") == "我的电话是***-****-****"
    assert sanitize_message("mail me at jane.doe@example.com") == "mail me at ***@***.***"
    assert sanitize_message("card 6222021234567890123 please") == "card ****-****-****-**** please"
    assert sanitize_message("身份证 11010519491231002X") == "身份证 ***-****-****-****-***"


def test_sanitize_leaves_ordinary_text_alone():
    assert sanitize_message("clinic hours 9-18") == "clinic hours 9-18"
    assert sanitize_message("") == ""


def test_strip_html():
    assert strip_html("<b>hello</b> <script>x</script>") == "hello x"
    assert strip_html("") == ""


def test_signature_verification():
    body = b'{"object": "page"}'
    assert verify_meta_signature(body, _sign(body, "s3cret"), "s3cret")
    assert verify_meta_signature(body, _sign(body, "s3cret").upper().replace("SHA256=", "sha256="), "s3cret")
    assert not verify_meta_signature(body, _sign(body, "other"), "s3cret")
    assert not verify_meta_signature(body + b" ", _sign(body, "s3cret"), "s3cret")
    assert not verify_meta_signature(body, None, "s3cret")


def test_signature_skipped_without_secret():
    assert verify_meta_signature(b"{}", None, "")
