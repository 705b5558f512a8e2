from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_renderer
from app.db.session import get_db
from app.schemas.action_item import ActionItemList
from app.schemas.customer import Customer, CustomerCreate, CustomerList, CustomerMerge, CustomerRename
from app.services import action_item_service, customer_service
from app.services.diagram_renderer import MermaidRenderer

router = APIRouter()


@router.get("", response_model=CustomerList)
def list_customers(db: Session = Depends(get_db)):
    return customer_service.list_customers(db)


@router.get("/unknown", response_model=CustomerList)
def list_unknown_customers(db: Session = Depends(get_db)):
    return customer_service.list_unknown_customers(db)


@router.get("/search", response_model=CustomerList)
def search_customers(q: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    customers = customer_service.search_customers(db, q)
    return {"customers": customers, "total": len(customers)}


@router.post("", response_model=Customer, status_code=status.HTTP_201_CREATED)
def create_customer(payload: CustomerCreate, db: Session = Depends(get_db)):
    if not payload.name.strip():
        raise HTTPException(status_code=400, detail="Name is required")
    return customer_service.create_customer(db, payload.name, payload.is_unknown)


@router.get("/{customer_id}", response_model=Customer)
def get_customer(customer_id: int, db: Session = Depends(get_db)):
    customer = customer_service.get_customer(db, customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")
    return customer


@router.put("/{customer_id}", response_model=Customer)
def rename_customer(customer_id: int, payload: CustomerRename, db: Session = Depends(get_db)):
    customer = customer_service.rename_customer(db, customer_id, payload.name)
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")
    return customer


@router.post("/{customer_id}/merge", response_model=Customer)
def merge_customer(customer_id: int, payload: CustomerMerge, db: Session = Depends(get_db)):
    """Fold this customer (typically an unknown one) into an existing customer."""
    customer = customer_service.merge_customer(db, customer_id, payload.target_customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")
    return customer


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_customer(
    customer_id: int,
    db: Session = Depends(get_db),
    renderer: MermaidRenderer = Depends(get_renderer),
):
    image_paths = customer_service.delete_customer(db, customer_id)
    if image_paths is None:
        raise HTTPException(status_code=404, detail="Customer not found")
    for image_path in image_paths:
        renderer.delete_image(image_path)
    return None


@router.get("/{customer_id}/action-items", response_model=ActionItemList)
def list_customer_action_items(
    customer_id: int,
    include_completed: bool = False,
    db: Session = Depends(get_db),
):
    customer = customer_service.get_customer(db, customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")
    return {
        "customer_id": customer.id,
        "customer_name": customer.name,
        "items": action_item_service.list_for_customer(db, customer_id, include_completed=include_completed),
        "open_count": action_item_service.open_count(db, customer_id),
    }
