"""
Hyp Service — client for the Hyp (YaadPay) hosted payment page.

Handles:
    1. APISign / SIGN   — sign an outbound payment request and build the
                          redirect URL the customer is sent to
    2. APISign / VERIFY — forward the gateway's callback parameters back to
                          Hyp and read the verified result code

Both calls are HTTP GETs against the same endpoint and both answer with a
flat query-string body (``key=value&key=value``).

Merchant credentials are injected as a HypCredentials value and never logged.
A declined card is a normal VerifyResult with ``verified=False``; only
transport and protocol failures raise GatewayError.
"""
import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional
from urllib.parse import parse_qsl

import httpx

from domain.constants import (
    DEFAULT_HYP_USER_ID,
    GATEWAY_ORDER_ID_MAX_LENGTH,
    HYP_CCODE_FIELD,
    HYP_ORDER_FIELD,
    HYP_SUCCESS_CCODE,
    HYP_TRANSACTION_FIELD,
)
from domain.errors import GatewayError

logger = logging.getLogger(__name__)

# Parameters owned by the client; callback values never override them
_RESERVED_PARAMS = frozenset({"action", "What", "Masof", "PassP", "KEY"})


def is_success_ccode(ccode: Optional[str]) -> bool:
    """Canonical success predicate for Hyp result codes."""
    return str(ccode if ccode is not None else "").strip() == HYP_SUCCESS_CCODE


def parse_query_like(text: str) -> dict[str, str]:
    """
    Parse a flat ``a=1&b=2`` response body. Later duplicates win.

    Raises ValueError when a segment is not a key=value pair.
    """
    return dict(parse_qsl(text.strip(), keep_blank_values=True, strict_parsing=True))


def _parse_response(text: str, what: str) -> dict[str, str]:
    try:
        data = parse_query_like(text)
    except ValueError as e:
        raise GatewayError(f"Hyp APISign {what} returned an unparseable response") from e
    if not data:
        raise GatewayError(f"Hyp APISign {what} returned an empty response")
    return data


# ════════════════════════════════════════════════════════════════════
# Value objects
# ════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class HypCredentials:
    base_url: str
    masof: str
    passp: str = field(repr=False)
    key: str = field(repr=False)

    def missing(self) -> list[str]:
        names = {
            "HYP_BASE_URL": self.base_url,
            "HYP_MASOF": self.masof,
            "HYP_PASSP": self.passp,
            "HYP_KEY": self.key,
        }
        return [name for name, value in names.items() if not value]


@dataclass(frozen=True)
class HypOptions:
    """
    Recognized gateway behavior flags.

    Unset or false options are omitted from the outbound request entirely.
    """
    page_lang: str = "HEB"
    more_data: bool = True
    max_installments: Optional[int] = None     # Tash
    fixed_installments: bool = False           # FixTash
    send_invoice: bool = False                 # SendHesh
    send_email: bool = False                   # sendemail
    itemized: bool = False                     # Pritim
    invoice_description: Optional[str] = None  # heshDesc
    template: Optional[int] = None             # tmp

    def to_params(self) -> dict[str, str]:
        params = {"PageLang": self.page_lang or "HEB"}
        if self.more_data:
            params["MoreData"] = "True"
        if self.max_installments is not None:
            params["Tash"] = str(self.max_installments)
        if self.fixed_installments:
            params["FixTash"] = "True"
        if self.send_invoice:
            params["SendHesh"] = "True"
        if self.send_email:
            params["sendemail"] = "True"
        if self.itemized:
            params["Pritim"] = "True"
        if self.invoice_description:
            params["heshDesc"] = self.invoice_description
        if self.template is not None:
            params["tmp"] = str(self.template)
        return params


@dataclass(frozen=True)
class SignRequest:
    order_id: str
    info: str
    amount: int  # minor currency units (agorot)
    coin: int = 1
    user_id: str = DEFAULT_HYP_USER_ID
    client_name: Optional[str] = None
    client_last_name: Optional[str] = None
    phone: Optional[str] = None
    cell: Optional[str] = None
    email: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    zip: Optional[str] = None
    options: HypOptions = field(default_factory=HypOptions)


@dataclass(frozen=True)
class SignResult:
    redirect_url: str
    raw_query_string: str
    fields: dict[str, str]


@dataclass(frozen=True)
class VerifyResult:
    ccode: str
    order_id: str
    transaction_id: str
    raw: dict[str, str]

    @property
    def verified(self) -> bool:
        return is_success_ccode(self.ccode)


# ════════════════════════════════════════════════════════════════════
# Client
# ════════════════════════════════════════════════════════════════════


class HypClient:
    """APISign client. One instance per credentials set; safe to share."""

    def __init__(
        self,
        credentials: HypCredentials,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credentials = credentials
        self.timeout = timeout
        self._transport = transport

    def _credential_params(self, what: str) -> dict[str, str]:
        missing = self.credentials.missing()
        if missing:
            raise GatewayError(
                f"Hyp merchant configuration incomplete: {', '.join(missing)}",
                fatal=True,
            )
        return {
            "action": "APISign",
            "What": what,
            "Masof": self.credentials.masof,
            "PassP": self.credentials.passp,
            "KEY": self.credentials.key,
        }

    def build_sign_params(self, request: SignRequest) -> dict[str, str]:
        """Outbound SIGN query parameters, credentials included."""
        if not request.order_id or len(request.order_id) > GATEWAY_ORDER_ID_MAX_LENGTH:
            raise ValueError(
                f"order_id must be 1-{GATEWAY_ORDER_ID_MAX_LENGTH} characters"
            )
        if not isinstance(request.amount, int) or request.amount <= 0:
            raise ValueError("amount must be a positive integer in minor units")

        params = self._credential_params("SIGN")
        params.update({
            "Order": request.order_id,
            "Info": request.info,
            "Amount": str(request.amount),
            "Coin": str(request.coin),
            "UTF8": "True",
            "UTF8out": "True",
            "Sign": "True",
        })
        params.update(request.options.to_params())

        optional = {
            "UserId": request.user_id,
            "ClientName": request.client_name,
            "ClientLName": request.client_last_name,
            "phone": request.phone,
            "cell": request.cell,
            "email": request.email,
            "street": request.street,
            "city": request.city,
            "zip": request.zip,
        }
        params.update({k: v for k, v in optional.items() if v})
        return params

    async def _call(self, params: dict[str, str], what: str) -> str:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(self.credentials.base_url, params=params)
        except httpx.HTTPError as e:
            logger.error(f"Hyp APISign {what} transport error: {e.__class__.__name__}")
            raise GatewayError(f"Hyp APISign {what} request failed: {e.__class__.__name__}") from e

        if not response.is_success:
            logger.error(f"Hyp APISign {what} returned HTTP {response.status_code}")
            raise GatewayError(
                f"Hyp APISign {what} failed ({response.status_code})",
                details={"status": response.status_code},
            )
        return response.text

    async def sign(self, request: SignRequest) -> SignResult:
        """
        Sign a payment request.

        Returns the redirect URL (gateway base URL + signed query string).

        Raises:
            GatewayError: credentials missing (fatal), transport failure,
                non-2xx, unparseable body, or no ``signature`` in the
                response (fatal: terminal not set to verify by signature).
        """
        params = self.build_sign_params(request)
        text = await self._call(params, "SIGN")
        raw = text.strip()

        fields = _parse_response(raw, "SIGN")
        if not fields.get("signature"):
            raise GatewayError(
                "Hyp APISign SIGN did not return a signature. "
                "Check the terminal setting \"Verify by signature\".",
                fatal=True,
            )

        logger.info(f"Hyp payment signed: order={request.order_id} amount={request.amount}")
        return SignResult(
            redirect_url=f"{self.credentials.base_url}?{raw}",
            raw_query_string=raw,
            fields=fields,
        )

    async def verify(self, callback_params: Mapping[str, Optional[str]]) -> VerifyResult:
        """
        Verify a payment callback with the gateway.

        A non-success CCode is returned, not raised.
        """
        params = self._credential_params("VERIFY")
        for k, v in callback_params.items():
            if v is None or k in _RESERVED_PARAMS:
                continue
            params[k] = str(v)

        text = await self._call(params, "VERIFY")
        data = _parse_response(text, "VERIFY")

        result = VerifyResult(
            ccode=str(data.get(HYP_CCODE_FIELD, "")),
            order_id=data.get(HYP_ORDER_FIELD) or str(callback_params.get(HYP_ORDER_FIELD) or ""),
            transaction_id=data.get(HYP_TRANSACTION_FIELD) or str(callback_params.get(HYP_TRANSACTION_FIELD) or ""),
            raw=data,
        )
        logger.info(
            f"Hyp payment verified: order={result.order_id} "
            f"ccode={result.ccode} verified={result.verified}"
        )
        return result
