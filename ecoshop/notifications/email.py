"""
E-mails transactionnels via l'API HTTP Resend (POST /emails).
- Gabarits HTML jinja2 dans ecoshop/notifications/templates
- Une erreur HTTP remonte (httpx.HTTPStatusError): l'abonné appelant sera rejoué
"""
import logging
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
from jinja2 import Environment, FileSystemLoader, select_autoescape

from ecoshop.config import BASE_URL, RESEND_API_KEY, RESEND_FROM_EMAIL, SITE_NAME

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


def format_money(amount: Optional[int], currency: str = "usd") -> str:
    """Centimes -> '25.00 USD' (pas de float)."""
    value = (Decimal(int(amount or 0)) / 100).quantize(Decimal("0.01"))
    return f"{value} {(currency or 'usd').upper()}"


def _env() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(["html"]),
    )
    env.filters["money"] = format_money
    return env


class EmailSender:
    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: str = RESEND_API_KEY,
        from_email: str = RESEND_FROM_EMAIL,
        site_name: str = SITE_NAME,
        site_url: str = BASE_URL,
    ):
        self.http = http
        self.api_key = api_key
        self.from_email = from_email
        self.site_name = site_name
        self.site_url = site_url
        self.templates = _env()

    def render(self, template: str, **context: Any) -> str:
        return self.templates.get_template(template).render(
            site_name=self.site_name, site_url=self.site_url, **context
        )

    async def send(self, *, to: str, subject: str, html: str) -> Optional[Dict[str, Any]]:
        if not self.api_key:
            logger.warning("email.skipped RESEND_API_KEY absent to=%s subject=%s", to, subject)
            return None
        res = await self.http.post(
            RESEND_API_URL,
            json={
                "from": f"{self.site_name} <{self.from_email}>",
                "to": [to],
                "subject": subject,
                "html": html,
            },
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=10,
        )
        res.raise_for_status()
        logger.info("email.sent to=%s subject=%s", to, subject)
        return res.json()

    async def send_order_confirmation(self, order: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        to = order.get("customer_email")
        if not to:
            logger.warning("email.order_confirmation no customer_email order_id=%s", order.get("id"))
            return None
        html = self.render("order_confirmation.html", order=order)
        return await self.send(to=to, subject=f"Confirmation de commande #{order.get('id')}", html=html)

    async def send_seller_notification(self, to: str, seller: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        items: List[Dict[str, Any]] = seller.get("items") or []
        html = self.render("seller_notification.html", seller=seller, items=items)
        return await self.send(to=to, subject=f"Nouvelle commande #{seller.get('orderId')}", html=html)
