import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field

from guest_checkout.api.dependencies import get_orchestrator
from guest_checkout.checkout.errors import CheckoutError, FormValidationError
from guest_checkout.checkout.orchestrator import CheckoutOrchestrator, cart_to_dict
from guest_checkout.checkout.states import CheckoutState
from guest_checkout.error_handler import ErrorHandler

logger = logging.getLogger(__name__)

api = APIRouter()
checkout_api = api

error_handler = ErrorHandler()


class CartIdRequest(BaseModel):
    cartId: str = Field(..., min_length=1, description="Cart created by the storefront collaborator")


class CartItemQuantityRequest(BaseModel):
    quantity: int = Field(..., description="New quantity for the line item")


def _internal_error(exc: Exception, context: Dict[str, Any]) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=error_handler.handle_exception(exc, context),
    )


# ---------------------------------------------------------------------------
# Checkout page
# ---------------------------------------------------------------------------


@api.get("/checkout", tags=["Checkout"])
async def load_checkout(
    request: Request,
    token: Optional[str] = Query(default=None),
    payer_id: Optional[str] = Query(default=None, alias="PayerID"),
    orchestrator: CheckoutOrchestrator = Depends(get_orchestrator),
):
    """
    Page load. With ``token`` (the provider's return leg) the payment is
    captured and the order placed; without it the cart and saved address are
    returned for the form.
    """
    try:
        await orchestrator.start({"token": token, "PayerID": payer_id})
    except Exception as e:
        raise _internal_error(e, {"path": request.url.path, "resume": bool(token)})
    return orchestrator.to_dict()


@api.post("/checkout/place-order", tags=["Checkout"])
async def place_order(
    fields: Dict[str, Any] = Body(...),
    orchestrator: CheckoutOrchestrator = Depends(get_orchestrator),
):
    """Validate the guest form, prepare the cart and create the external payment order."""
    try:
        state = await orchestrator.load()
        if state != CheckoutState.CART_READY:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=orchestrator.to_dict())
        await orchestrator.submit(fields)
    except FormValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "error": "validation_error",
                "message": e.message,
                "field_errors": e.field_errors,
            },
        )
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error(e, {"step": "place_order"})
    return orchestrator.to_dict()


@api.post("/checkout/retry", tags=["Checkout"])
async def retry_checkout(orchestrator: CheckoutOrchestrator = Depends(get_orchestrator)):
    """Reload the cart after a failed submit.

    Each request starts a fresh orchestrator, so recovering is a plain cart load.
    """
    try:
        await orchestrator.load()
    except Exception as e:
        raise _internal_error(e, {"step": "retry"})
    return orchestrator.to_dict()


# ---------------------------------------------------------------------------
# Cart hand-over and mutations
# ---------------------------------------------------------------------------


@api.put("/cart", tags=["Cart"])
async def set_cart(body: CartIdRequest, orchestrator: CheckoutOrchestrator = Depends(get_orchestrator)):
    try:
        orchestrator.session.set_cart_id(body.cartId.strip())
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    logger.info("Cart handed over for profile %s", orchestrator.session.profile_id)
    return {"cartId": orchestrator.session.get_cart_id()}


def _require_cart_id(orchestrator: CheckoutOrchestrator) -> str:
    cart_id = orchestrator.session.get_cart_id()
    if not cart_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cart not found")
    return cart_id


@api.post("/cart/items/{item_uid}", tags=["Cart"])
async def update_cart_item(
    item_uid: str,
    body: CartItemQuantityRequest,
    orchestrator: CheckoutOrchestrator = Depends(get_orchestrator),
):
    cart_id = _require_cart_id(orchestrator)
    try:
        cart = await orchestrator.cart_gateway.update_item_quantity(cart_id, item_uid, body.quantity)
    except CheckoutError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=error_handler.handle_exception(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"cart": cart_to_dict(cart)}


@api.delete("/cart/items/{item_uid}", tags=["Cart"])
async def remove_cart_item(item_uid: str, orchestrator: CheckoutOrchestrator = Depends(get_orchestrator)):
    cart_id = _require_cart_id(orchestrator)
    try:
        cart = await orchestrator.cart_gateway.remove_item(cart_id, item_uid)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"cart": cart_to_dict(cart)}
