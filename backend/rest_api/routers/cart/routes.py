"""
Cart Router.

Each endpoint acts on the authenticated caller's own cart. Business rules
(stock ceilings, availability, merging into an existing row) live in
CartService; this module only validates input and shapes responses.
"""

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.security.auth import current_user_context
from shared.security.rate_limit import limiter, CART_RATE_LIMIT
from shared.utils.schemas import (
    AddToCartRequest,
    CartCountOutput,
    CartItemOutput,
    CartMutationOutput,
    CartOutput,
    CartSummaryOutput,
    ClearCartOutput,
    UpdateCartItemRequest,
)
from rest_api.routers._common import translate_db_errors
from rest_api.services.domain.cart_service import CartLine, CartService
from rest_api.services.domain.pricing import cents_to_amount


router = APIRouter(prefix="/api/cart", tags=["cart"])


def _line_output(line: CartLine) -> CartItemOutput:
    return CartItemOutput(
        id=line.row.id,
        item_type=line.row.item_type,
        item_id=line.row.item_id,
        name=line.item.name,
        image_url=line.item.image_url,
        unit_price=float(cents_to_amount(line.item.price_cents)),
        quantity=line.row.quantity,
        line_total=float(cents_to_amount(line.line_total_cents)),
        notes=line.row.notes,
        available=line.item.orderable,
        stock=line.item.stock,
        added_at=line.row.added_at,
    )


@router.get("", response_model=CartOutput)
def get_cart(
    db: Session = Depends(get_db),
    ctx: dict = Depends(current_user_context),
) -> CartOutput:
    """Cart rows with current item data and the computed summary."""
    with translate_db_errors(db, "load cart"):
        view = CartService(db).get_items(ctx["sub"])

    return CartOutput(
        items=[_line_output(line) for line in view.lines],
        summary=CartSummaryOutput(**view.summary.to_dict()),
    )


@router.get("/count", response_model=CartCountOutput)
def get_cart_count(
    db: Session = Depends(get_db),
    ctx: dict = Depends(current_user_context),
) -> CartCountOutput:
    """Total quantity in the cart (for the header badge)."""
    with translate_db_errors(db, "count cart items"):
        count = CartService(db).item_count(ctx["sub"])
    return CartCountOutput(count=count)


@router.post("/items", response_model=CartMutationOutput, status_code=status.HTTP_201_CREATED)
@limiter.limit(CART_RATE_LIMIT)
def add_to_cart(
    request: Request,
    body: AddToCartRequest,
    db: Session = Depends(get_db),
    ctx: dict = Depends(current_user_context),
) -> CartMutationOutput:
    """
    Add an item to the cart, summing into an existing row for the same item.

    409 when the item is unavailable or the quantity exceeds stock.
    """
    with translate_db_errors(db, "add to cart"):
        row = CartService(db).add_item(
            ctx["sub"],
            body.item_type,
            body.item_id,
            body.quantity,
            body.notes,
        )

    return CartMutationOutput(item_id=row.id, quantity=row.quantity, message="Item added to cart")


@router.patch("/items/{row_id}", response_model=CartMutationOutput)
@limiter.limit(CART_RATE_LIMIT)
def update_cart_item(
    request: Request,
    row_id: int,
    body: UpdateCartItemRequest,
    db: Session = Depends(get_db),
    ctx: dict = Depends(current_user_context),
) -> CartMutationOutput:
    """Overwrite the quantity of one of the caller's cart rows."""
    with translate_db_errors(db, "update cart item"):
        row = CartService(db).update_quantity(ctx["sub"], row_id, body.quantity)

    return CartMutationOutput(item_id=row.id, quantity=row.quantity, message="Cart updated")


@router.delete("/items/{row_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(CART_RATE_LIMIT)
def remove_cart_item(
    request: Request,
    row_id: int,
    db: Session = Depends(get_db),
    ctx: dict = Depends(current_user_context),
) -> Response:
    """Remove a row. Removing a row that is already gone is not an error."""
    with translate_db_errors(db, "remove cart item"):
        CartService(db).remove_item(ctx["sub"], row_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("", response_model=ClearCartOutput)
@limiter.limit(CART_RATE_LIMIT)
def clear_cart(
    request: Request,
    db: Session = Depends(get_db),
    ctx: dict = Depends(current_user_context),
) -> ClearCartOutput:
    with translate_db_errors(db, "clear cart"):
        removed = CartService(db).clear_cart(ctx["sub"])
    return ClearCartOutput(removed=removed)
