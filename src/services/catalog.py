"""
Public catalog reads and the back-office writes behind them.

Reads never raise on a store failure; they return ReadResult(ok=False) so the
caller can tell "could not load" apart from "nothing there".
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence

import backend.crud as crud
from backend.models import Category, GalleryItem, Product, Project
from services.admin_auth import authorize
from services.results import ReadResult, read_or_empty
from utils.errors import NotFoundError
from utils.logger import get_logger
from utils.pure import slugify

if TYPE_CHECKING:
    from utils.state import SessionContext

_logger = get_logger(__name__)

UNCATEGORIZED = "Other Equipment"

CATEGORY_DESCRIPTIONS: Dict[str, str] = {
    "Diagnostic Equipment": "Advanced diagnostic tools for accurate medical assessments",
    "Laboratory Equipment": "Precision laboratory instruments for research and testing",
    "Healthcare Equipment": "Essential healthcare equipment for patient care",
    "Industrial Equipment": "Robust industrial equipment for manufacturing and production",
}


def category_description(name: str) -> str:
    return CATEGORY_DESCRIPTIONS.get(
        name, f"High-quality {name.lower()} for medical and industrial applications."
    )


def group_by_category(products: Iterable[Product]) -> List[Category]:
    """
    Group products under their category, keeping first-seen order of both
    categories and products.
    """
    grouped: Dict[str, List[Product]] = {}
    for product in products:
        grouped.setdefault(product.category or UNCATEGORIZED, []).append(product)
    return [
        Category(
            id=slugify(name),
            name=name,
            description=category_description(name),
            products=tuple(items),
        )
        for name, items in grouped.items()
    ]


# ---------------------------
# Public reads
# ---------------------------


async def list_products() -> ReadResult[List[Product]]:
    return await read_or_empty("products", crud.list_products, [])


async def list_featured_products() -> ReadResult[List[Product]]:
    return await read_or_empty(
        "featured products", lambda: crud.list_products(featured_only=True), []
    )


async def list_categories() -> ReadResult[List[Category]]:
    async def fetch() -> List[Category]:
        return group_by_category(await crud.list_products())

    return await read_or_empty("product categories", fetch, [])


async def get_product(product_id: str) -> ReadResult[Optional[Product]]:
    return await read_or_empty(
        f"product {product_id}", lambda: crud.get_product(product_id), None
    )


async def list_projects() -> ReadResult[List[Project]]:
    return await read_or_empty("projects", crud.list_projects, [])


async def list_gallery(project_id: Optional[str] = None) -> ReadResult[List[GalleryItem]]:
    return await read_or_empty(
        "gallery", lambda: crud.list_gallery(project_id), []
    )


# ---------------------------
# Product management
# ---------------------------


async def create_product(actor: "SessionContext", name: str, price, **fields) -> Product:
    state = await authorize(actor, "manage_products")
    product = await crud.create_product(name, price, **fields)
    _logger.info(f"Product {product.id} '{product.name}' created by {state.admin_id}")
    return product


async def update_product(actor: "SessionContext", product_id: str, **fields) -> Product:
    await authorize(actor, "manage_products")
    if fields and not await crud.update_product(product_id, **fields):
        raise NotFoundError(f"product {product_id} not found")
    product = await crud.get_product(product_id)
    if product is None:
        raise NotFoundError(f"product {product_id} not found")
    return product


async def delete_product(actor: "SessionContext", product_id: str) -> None:
    state = await authorize(actor, "manage_products")
    if not await crud.delete_product(product_id):
        raise NotFoundError(f"product {product_id} not found")
    _logger.info(f"Product {product_id} deleted by {state.admin_id}")


# ---------------------------
# Gallery & projects
# ---------------------------


async def create_project(
    actor: "SessionContext", name: str, description: Optional[str] = None
) -> Project:
    await authorize(actor)
    return await crud.create_project(name, description)


async def update_project(
    actor: "SessionContext", project_id: str, name: str, description: Optional[str] = None
) -> None:
    await authorize(actor)
    if not await crud.update_project(project_id, name, description):
        raise NotFoundError(f"project {project_id} not found")


async def delete_project(actor: "SessionContext", project_id: str) -> None:
    """Gallery items of the project stay, detached from it."""
    await authorize(actor)
    if not await crud.delete_project(project_id):
        raise NotFoundError(f"project {project_id} not found")


async def add_gallery_item(
    actor: "SessionContext",
    title: str,
    image_url: str,
    description: Optional[str] = None,
    project_id: Optional[str] = None,
) -> GalleryItem:
    await authorize(actor)
    return await crud.create_gallery_item(title, image_url, description, project_id)


async def update_gallery_item(
    actor: "SessionContext",
    item_id: str,
    title: str,
    image_url: str,
    description: Optional[str] = None,
    project_id: Optional[str] = None,
) -> None:
    await authorize(actor)
    if not await crud.update_gallery_item(item_id, title, description, image_url, project_id):
        raise NotFoundError(f"gallery item {item_id} not found")


async def delete_gallery_items(actor: "SessionContext", item_ids: Sequence[str]) -> int:
    """Delete several gallery items at once; returns how many existed."""
    state = await authorize(actor)
    deleted = await crud.delete_gallery_items(item_ids)
    _logger.info(f"{deleted} gallery items deleted by {state.admin_id}")
    return deleted
