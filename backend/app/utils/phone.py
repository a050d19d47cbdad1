import re

from app.core.config import DIRECT_SEND_COUNTRY_CODE

WHATSAPP_USER_SUFFIX = "@s.whatsapp.net"
WHATSAPP_GROUP_SUFFIX = "@g.us"


def digits_only(phone) -> str:
    return re.sub(r"\D", "", str(phone or ""))


def to_jid(digits: str) -> str:
    return f"{digits}{WHATSAPP_USER_SUFFIX}"


def phone_from_jid(jid: str) -> str:
    return jid.split("@")[0]


def is_group_jid(jid: str) -> bool:
    return jid.endswith(WHATSAPP_GROUP_SUFFIX)


def normalize_direct_phone(phone, country_code: str = DIRECT_SEND_COUNTRY_CODE) -> str:
    """
    Normalise a number for the direct-send path.

    Ten-digit numbers are treated as local Mexican numbers and get the country
    code. Sequence sends do NOT go through here; they use the stored digits as-is.
    """
    number = digits_only(phone)
    if len(number) == 10:
        number = f"{country_code}{number}"
    return number
