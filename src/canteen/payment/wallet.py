"""Mobile-wallet payment details embedded in an Order.

A wallet order is paid by a manual peer-to-peer transfer to the vendor's
wallet number. The order carries a ``WalletPayment`` snapshot that the
customer confirms (reference number) and the vendor verifies against their
own wallet history. Nothing here talks to a payment network.
"""

import re
from enum import Enum

from protean.fields import DateTime, Float, Identifier, String

from canteen.domain import canteen
from canteen.errors import InvalidWalletDetails


class WalletStatus(Enum):
    PENDING = "pending"
    AWAITING_VERIFICATION = "awaiting_verification"
    VERIFIED = "verified"
    FAILED = "failed"
    EXPIRED = "expired"


_REFERENCE_NUMBER = re.compile(r"^\d{10,20}$")

# Globe, Smart, DITO and sub-brand mobile prefixes (after the leading 0)
_VALID_MOBILE_PREFIXES = frozenset(
    "900 905 906 907 908 909 910 911 912 913 914 915 916 917 918 919 920 921 "
    "922 923 924 925 926 927 928 929 930 931 932 933 934 935 936 937 938 939 "
    "940 941 942 943 944 945 946 947 948 949 950 951 953 954 955 956 957 958 "
    "959 960 961 963 964 965 966 967 968 969 970 971 973 974 975 976 977 978 "
    "979 980 981 989 991 992 993 994 995 996 997 998 999".split()
)


def normalize_wallet_number(number):
    """Return a wallet mobile number as ``09XXXXXXXXX``.

    Accepts ``+63``, ``63`` and ``0`` prefixed forms with any separators.
    Raises ``InvalidWalletDetails`` for anything that is not a Philippine
    mobile number on a known network prefix.
    """
    cleaned = re.sub(r"[^\d+]", "", number or "")
    if cleaned.startswith("+63"):
        cleaned = cleaned[3:]
    elif cleaned.startswith("63"):
        cleaned = cleaned[2:]
    elif cleaned.startswith("0"):
        cleaned = cleaned[1:]

    if len(cleaned) != 10 or not cleaned.isdigit():
        raise InvalidWalletDetails("Phone number must be 10 digits")
    if not cleaned.startswith("9"):
        raise InvalidWalletDetails("Invalid Philippine mobile number")
    if cleaned[:3] not in _VALID_MOBILE_PREFIXES:
        raise InvalidWalletDetails("Invalid mobile network prefix")

    return f"0{cleaned}"


def clean_reference_number(reference_number):
    """Strip whitespace from a wallet transaction reference and validate it."""
    cleaned = re.sub(r"\s", "", reference_number or "")
    if not _REFERENCE_NUMBER.match(cleaned):
        raise InvalidWalletDetails("Wallet reference number must be 10 to 20 digits")
    return cleaned


@canteen.value_object(part_of="Order")
class WalletPayment:
    """Snapshot of a wallet transfer expected for one Order.

    ``reference_code`` is the order id the customer must quote in the
    transfer message; ``wallet_reference_number`` is the transaction number
    the wallet app issued to the customer.
    """

    status = String(choices=WalletStatus, default=WalletStatus.PENDING.value)
    reference_code = String(required=True, max_length=64)
    amount_expected = Float(required=True, min_value=0.0)
    vendor_wallet_handle = String(max_length=20)
    created_at = DateTime(required=True)
    expires_at = DateTime(required=True)
    submitted_at = DateTime()
    wallet_reference_number = String(max_length=20)
    sender_number = String(max_length=20)
    verified_at = DateTime()
    verified_by = Identifier()


def payment_instructions(order):
    """Customer-facing steps for paying a wallet order."""
    wallet = order.wallet_payment
    if wallet is None:
        return None

    return {
        "steps": [
            "Open your mobile wallet app",
            "Tap Send Money",
            f"Send to the stall's wallet number {wallet.vendor_wallet_handle}",
            f"Enter the exact amount: {wallet.amount_expected:.2f}",
            f"Add this reference in the message: {wallet.reference_code}",
            "Review and confirm the transfer",
            "Enter the wallet reference number you received to submit the payment",
        ],
        "expires_at": wallet.expires_at.isoformat() if wallet.expires_at else None,
        "amount": wallet.amount_expected,
        "reference_code": wallet.reference_code,
    }
