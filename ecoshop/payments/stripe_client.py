"""
Adaptateur Stripe: centralise les appels et la configuration Stripe.

Une instance StripeGateway est construite par le lifespan avec ses clés; la clé API est
passée à chaque appel (pas de stripe.api_key global).
"""
import logging
from typing import Any, Dict, List, Optional

import stripe

from ecoshop.errors import PaymentProviderError, ValidationError

logger = logging.getLogger(__name__)


def _to_dict(obj: Any) -> Dict[str, Any]:
    # Les StripeObject exposent to_dict() (récursif) selon les versions du SDK
    if isinstance(obj, dict):
        return obj
    to_dict = getattr(obj, "to_dict_recursive", None) or getattr(obj, "to_dict", None)
    return to_dict() if to_dict else dict(obj)


class StripeGateway:
    def __init__(self, secret_key: str, webhook_secret: str = "", currency: str = "usd"):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.currency = currency

    def _require_key(self) -> str:
        if not self.secret_key:
            raise PaymentProviderError("STRIPE_SECRET_KEY non configurée")
        return self.secret_key

    def create_session(
        self,
        *,
        line_items: List[Dict[str, Any]],
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
        customer_email: Optional[str] = None,
        collect_shipping_countries: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """
        Crée une session Stripe Checkout (mode paiement).
        - line_items: lignes price_data (unit_amount en centimes) + quantity
        - metadata: recopiée sur le PaymentIntent (user_id) pour rapprocher les webhooks
        - collect_shipping_countries: active la collecte d'adresse par Stripe
        Retour: dict session (ex: {"id": "cs_test_...", "url": "https://..."})
        Erreurs: PaymentProviderError si Stripe refuse ou est injoignable.
        """
        params: Dict[str, Any] = {
            "mode": "payment",
            "line_items": line_items,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
            "payment_intent_data": {"metadata": {"user_id": metadata.get("user_id", "")}},
        }
        if customer_email:
            params["customer_email"] = customer_email
        if collect_shipping_countries:
            params["shipping_address_collection"] = {"allowed_countries": collect_shipping_countries}
        try:
            session = stripe.checkout.Session.create(api_key=self._require_key(), **params)
        except stripe.StripeError as e:
            logger.warning("stripe.create_session failed: %s", getattr(e, "user_message", None) or str(e))
            raise PaymentProviderError(f"Erreur Stripe: {getattr(e, 'user_message', None) or str(e)}") from e
        return _to_dict(session)

    def get_session(self, session_id: str) -> Dict[str, Any]:
        """Récupère une session Checkout (id, payment_status, metadata, amount_total, ...)."""
        try:
            session = stripe.checkout.Session.retrieve(session_id, api_key=self._require_key())
        except stripe.StripeError as e:
            raise PaymentProviderError(f"Erreur Stripe: {str(e)}") from e
        return _to_dict(session)

    def parse_event(self, payload: bytes, sig_header: Optional[str]) -> Dict[str, Any]:
        """
        Valide la signature d'un événement webhook et le retourne sous forme de dict.
        - Signature absente ou invalide, payload illisible: ValidationError (400)
        """
        if not sig_header:
            raise ValidationError("En-tête stripe-signature manquant")
        try:
            event = stripe.Webhook.construct_event(payload, sig_header, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            raise ValidationError(f"Signature webhook invalide: {str(e)}") from e
        except ValueError as e:
            raise ValidationError("Payload webhook invalide") from e
        return _to_dict(event)
