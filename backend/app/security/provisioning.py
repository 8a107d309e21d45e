# backend/app/security/provisioning.py
"""
Pairing URI and QR code generation for authenticator apps.

Format: otpauth://totp/{issuer}:{label}?secret={secret}&issuer={issuer}

Issuer and label are percent-encoded with no safe characters, so ':'
and '/' in a username stay inside the label and cannot add a path
segment or extra URI parameters.
"""
import base64
import io
from urllib.parse import quote

import pyotp
import qrcode

from backend.app.security.totp import DEFAULT_POLICY, TotpPolicy


def build_uri(
    account_label: str,
    issuer: str,
    secret: str,
    policy: TotpPolicy = DEFAULT_POLICY,
) -> str:
    """
    Generate the otpauth:// URI for QR code encoding.

    Authenticator apps scan this to add the account. pyotp formats the
    query string; the label is encoded here.

    Raises:
        ValueError: if the label or issuer is empty
    """
    if not account_label or not issuer:
        raise ValueError("Account label and issuer are required")

    totp = pyotp.TOTP(secret, digits=policy.digits, interval=policy.interval)
    _, query = totp.provisioning_uri(name=account_label, issuer_name=issuer).split("?", 1)

    label = f"{quote(issuer, safe='')}:{quote(account_label, safe='')}"
    return f"otpauth://totp/{label}?{query}"


def qr_code_base64(uri: str) -> str:
    """
    Render a provisioning URI as a Base64-encoded PNG QR code.

    Frontend can display this directly using: <img src="data:image/png;base64,{result}">
    """
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=10,
        border=4,
    )
    qr.add_data(uri)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    buffer.seek(0)

    return base64.b64encode(buffer.read()).decode("utf-8")
