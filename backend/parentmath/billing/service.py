"""
Stripe checkout for the Pro subscription.

Talks to the Stripe REST API directly (form-encoded, secret key as basic auth):
  1. reuse the profile's stripe_customer_id, or create a customer tagged with the uid
  2. create a subscription checkout session for the fixed price
"""

import logging
from typing import Optional

import httpx

from parentmath.config import Settings
from parentmath.exceptions import CheckoutError, ConfigurationError
from parentmath.usage.store import EntitlementStore

logger = logging.getLogger(__name__)

STRIPE_API = "https://api.stripe.com/v1"


async def _stripe_post(http: httpx.AsyncClient, path: str, data: dict, secret_key: str) -> dict:
    try:
        resp = await http.post(f"{STRIPE_API}{path}", data=data, auth=(secret_key, ""))
    except httpx.HTTPError as e:
        logger.error(f"Stripe {path} request failed: {e}")
        raise CheckoutError() from e
    if resp.status_code != 200:
        logger.warning(f"Stripe {path} returned {resp.status_code}: {resp.text[:200]}")
        raise CheckoutError()
    return resp.json()


async def _resolve_customer(http, uid: str, email: Optional[str], store: EntitlementStore,
                            secret_key: str) -> str:
    profile = await store.get_profile(uid)
    if profile and profile.stripe_customer_id:
        return profile.stripe_customer_id

    data = {"metadata[uid]": uid}
    if email:
        data["email"] = email
    customer = await _stripe_post(http, "/customers", data, secret_key)
    await store.set_stripe_customer_id(uid, customer["id"])
    logger.info(f"Created Stripe customer for {uid}")
    return customer["id"]


async def create_checkout_session(
    uid: str,
    email: Optional[str],
    store: EntitlementStore,
    settings: Settings,
    http: Optional[httpx.AsyncClient] = None,
) -> dict:
    """Returns {"url": ...} for the hosted checkout page."""
    if not settings.stripe_secret_key or not settings.stripe_price_id:
        raise ConfigurationError("Stripe not configured")

    async def run(client: httpx.AsyncClient) -> dict:
        customer_id = await _resolve_customer(client, uid, email, store, settings.stripe_secret_key)
        session = await _stripe_post(client, "/checkout/sessions", {
            "mode": "subscription",
            "customer": customer_id,
            "line_items[0][price]": settings.stripe_price_id,
            "line_items[0][quantity]": "1",
            "success_url": settings.checkout_success_url,
            "cancel_url": settings.checkout_cancel_url,
            "metadata[uid]": uid,
        }, settings.stripe_secret_key)
        if not session.get("url"):
            raise CheckoutError()
        return {"url": session["url"]}

    if http is not None:
        return await run(http)
    async with httpx.AsyncClient(timeout=15.0) as client:
        return await run(client)
