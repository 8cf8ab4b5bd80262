"""
Cart Router

Register cart endpoints. Every response is the standard envelope; domain
errors propagate to the POSError handler installed in api/index.py.
"""
from fastapi import APIRouter, Depends

from pos.auth import Identity, get_identity, require_store_access
from pos.cart import CartManager

from .deps import get_cart_manager_dep
from .models import AddCartItemRequest, CreateCartRequest, UpdateCartItemRequest
from .responses import success

router = APIRouter(tags=["carts"])


@router.post("/carts", status_code=201)
async def create_cart(
    request: CreateCartRequest,
    identity: Identity = Depends(get_identity),
    carts: CartManager = Depends(get_cart_manager_dep),
):
    require_store_access(identity, request.store_id)
    cart = await carts.create(
        store_id=request.store_id,
        cashier_id=request.cashier_id or identity.user_id,
        customer_id=request.customer_id,
        metadata=request.metadata,
    )
    return success(cart.to_dict(), "Cart created successfully")


@router.get("/carts/{cart_id}")
async def get_cart(
    cart_id: str,
    identity: Identity = Depends(get_identity),
    carts: CartManager = Depends(get_cart_manager_dep),
):
    cart = await carts.get(cart_id)
    return success(cart.to_dict())


@router.post("/carts/{cart_id}/items")
async def add_cart_item(
    cart_id: str,
    request: AddCartItemRequest,
    identity: Identity = Depends(get_identity),
    carts: CartManager = Depends(get_cart_manager_dep),
):
    cart = await carts.add_item(
        cart_id,
        product_id=request.product_id,
        quantity=request.quantity,
        unit_price=request.unit_price,
        discount=request.discount,
        metadata=request.metadata,
    )
    return success(cart.to_dict(), "Item added to cart")


@router.put("/carts/{cart_id}/items/{item_id}")
async def update_cart_item(
    cart_id: str,
    item_id: str,
    request: UpdateCartItemRequest,
    identity: Identity = Depends(get_identity),
    carts: CartManager = Depends(get_cart_manager_dep),
):
    cart = await carts.update_item(
        cart_id,
        item_id,
        quantity=request.quantity,
        discount=request.discount,
        metadata=request.metadata,
    )
    return success(cart.to_dict(), "Cart item updated")


@router.delete("/carts/{cart_id}/items/{item_id}")
async def remove_cart_item(
    cart_id: str,
    item_id: str,
    identity: Identity = Depends(get_identity),
    carts: CartManager = Depends(get_cart_manager_dep),
):
    cart = await carts.remove_item(cart_id, item_id)
    return success(cart.to_dict(), "Item removed from cart")


@router.delete("/carts/{cart_id}/items")
async def clear_cart(
    cart_id: str,
    identity: Identity = Depends(get_identity),
    carts: CartManager = Depends(get_cart_manager_dep),
):
    cart = await carts.clear(cart_id)
    return success(cart.to_dict(), "Cart cleared")


@router.delete("/carts/{cart_id}")
async def delete_cart(
    cart_id: str,
    identity: Identity = Depends(get_identity),
    carts: CartManager = Depends(get_cart_manager_dep),
):
    await carts.delete(cart_id)
    return success(None, "Cart deleted")
