import os
import re
import secrets
import time

from ledger.currency import convert_currency, format_currency, quantize

ALLOWED_IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}


def validate_email(email):
    return re.match(r'^[\w\.+-]+@[\w\.-]+\.\w+$', email or "")


def validate_phone(phone):
    return re.match(r'^\+?\d{9,15}$', (phone or "").replace(" ", ""))


def generate_referral_code(exists, attempts=10):
    """
    8 uppercase hex chars. `exists(code)` reports collisions; retries until a
    free code turns up.
    """
    for _ in range(attempts):
        code = secrets.token_hex(4).upper()
        if not exists(code):
            return code
    raise RuntimeError("Could not generate a unique referral code")


def generate_demo_id():
    return f"demo_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def allowed_image(filename, mimetype=None):
    if not filename or "." not in filename:
        return False
    ext = filename.rsplit(".", 1)[1].lower()
    if ext not in ALLOWED_IMAGE_EXTENSIONS:
        return False
    return mimetype is None or mimetype.startswith("image/")


def remove_file_quietly(path):
    if path and os.path.isfile(path):
        os.remove(path)


def history_row(tx, user_currency):
    """Transaction dict plus the amount formatted and converted to the viewer's currency."""
    row = tx.to_dict()
    row["formattedAmount"] = format_currency(tx.amount, tx.currency)
    if tx.currency != user_currency:
        converted = quantize(convert_currency(tx.amount, tx.currency, user_currency))
        row["convertedAmount"] = float(converted)
        row["formattedConvertedAmount"] = format_currency(converted, user_currency)
    else:
        row["convertedAmount"] = row["amount"]
        row["formattedConvertedAmount"] = row["formattedAmount"]
    return row
