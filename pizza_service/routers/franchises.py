from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from pizza_service.core.database import get_db
from pizza_service.deps import get_catalog_service, get_optional_identity, require_identity
from pizza_service.services.catalog import CatalogService
from pizza_service.services.identity import Identity
from pizza_service.services.serializers import store_to_dict

router = APIRouter(prefix="/api/franchise", tags=["franchises"])


class FranchiseAdminRef(BaseModel):
    email: str


class FranchiseCreate(BaseModel):
    name: Optional[str] = None
    admins: List[FranchiseAdminRef] = Field(default_factory=list)


class StoreCreate(BaseModel):
    name: Optional[str] = None


@router.get("")
def list_franchises(
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    name: Optional[str] = Query(None),
    identity: Optional[Identity] = Depends(get_optional_identity),
    db: Session = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service),
):
    return catalog.list_franchises(db, identity, name=name, page=page, limit=limit)


@router.get("/{user_id}")
def list_user_franchises(
    user_id: int,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service),
):
    return catalog.list_user_franchises(db, identity, user_id)


@router.post("")
def create_franchise(
    payload: FranchiseCreate,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service),
):
    return catalog.create_franchise(
        db,
        identity,
        name=payload.name,
        admin_emails=[admin.email for admin in payload.admins],
    )


@router.delete("/{franchise_id}")
def delete_franchise(
    franchise_id: int,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service),
):
    catalog.delete_franchise(db, identity, franchise_id)
    return {"message": "franchise deleted"}


@router.post("/{franchise_id}/store")
def create_store(
    franchise_id: int,
    payload: StoreCreate,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service),
):
    store = catalog.create_store(db, identity, franchise_id, name=payload.name)
    return {**store_to_dict(store), "franchiseId": store.franchise_id}


@router.delete("/{franchise_id}/store/{store_id}")
def delete_store(
    franchise_id: int,
    store_id: int,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service),
):
    catalog.delete_store(db, identity, franchise_id, store_id)
    return {"message": "store deleted"}
