import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request, status
from pydantic import Field
from pymongo import ReturnDocument

from database import as_utc_naive, create_document, get_db, utcnow
from errors import NotFound, ValidationError
from helpers import RequestBody, get_collection_name, ok, public_user, serialize_doc, to_object_id, with_image_url
from schemas import Booking, BookingStatus, Guide, Trek, User
from security import get_current_user, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bookings", tags=["Bookings"])

BOOKINGS = get_collection_name(Booking)
TREKS = get_collection_name(Trek)
GUIDES = get_collection_name(Guide)
USERS = get_collection_name(User)

CANCELLABLE = ("pending", "confirmed")


class BookingCreate(RequestBody):
    trek_id: Optional[str] = None
    start_date: Optional[datetime] = None
    participants: Optional[int] = Field(None, ge=1)


class BookingUpdate(RequestBody):
    start_date: Optional[datetime] = None
    participants: Optional[int] = Field(None, ge=1)


class BookingAdminUpdate(RequestBody):
    status: Optional[BookingStatus] = None
    guide_id: Optional[str] = None


def total_price(participants: int, trek: Dict[str, Any]) -> float:
    return participants * trek["price"]


def _by_id(collection: str, ids: List[Any]) -> Dict[Any, Dict[str, Any]]:
    ids = [i for i in set(ids) if i is not None]
    if not ids:
        return {}
    return {d["_id"]: d for d in get_db()[collection].find({"_id": {"$in": ids}})}


def populate(request: Request, docs: List[Dict[str, Any]], include_user: bool = False) -> List[Dict[str, Any]]:
    """Serialize bookings with their trek, guide and (for admins) user embedded."""
    treks = _by_id(TREKS, [d.get("trek_id") for d in docs])
    guides = _by_id(GUIDES, [d.get("guide_id") for d in docs])
    users = _by_id(USERS, [d.get("user_id") for d in docs]) if include_user else {}

    out = []
    for doc in docs:
        item = serialize_doc(doc)
        item["trek"] = with_image_url(request, treks.get(doc.get("trek_id")))
        item["guide"] = with_image_url(request, guides.get(doc.get("guide_id")))
        if include_user:
            user = users.get(doc.get("user_id"))
            item["user"] = public_user(request, user) if user else None
        out.append(item)
    return out


def find_booking(booking_id: str, user_id: Optional[Any] = None) -> Dict[str, Any]:
    query: Dict[str, Any] = {"_id": to_object_id(booking_id)}
    if user_id is not None:
        query["user_id"] = user_id
    doc = get_db()[BOOKINGS].find_one(query)
    if not doc:
        raise NotFound("Booking not found")
    return doc


# -------------------- Admin --------------------
@router.get("/admin/all")
def list_all_bookings(request: Request, _: Dict[str, Any] = Depends(require_admin)):
    docs = list(get_db()[BOOKINGS].find({}).sort("created_at", -1))
    return ok("Bookings fetched successfully", populate(request, docs, include_user=True))


@router.get("/admin/{booking_id}")
def get_booking_admin(booking_id: str, request: Request, _: Dict[str, Any] = Depends(require_admin)):
    doc = find_booking(booking_id)
    return ok("Booking fetched successfully", populate(request, [doc], include_user=True)[0])


@router.put("/admin/{booking_id}")
def update_booking_admin(
    booking_id: str,
    payload: BookingAdminUpdate,
    request: Request,
    admin: Dict[str, Any] = Depends(require_admin),
):
    update: Dict[str, Any] = {}
    if payload.status:
        update["status"] = payload.status
    if payload.guide_id:
        guide_id = to_object_id(payload.guide_id)
        if not get_db()[GUIDES].find_one({"_id": guide_id}):
            raise NotFound("Guide not found")
        update["guide_id"] = guide_id
    if not update:
        raise ValidationError("No fields to update")

    update["updated_at"] = utcnow()
    doc = get_db()[BOOKINGS].find_one_and_update(
        {"_id": to_object_id(booking_id)}, {"$set": update}, return_document=ReturnDocument.AFTER
    )
    if not doc:
        raise NotFound("Booking not found")
    logger.info("Booking %s updated by admin %s: %s", booking_id, admin["_id"], sorted(update))
    return ok("Booking updated successfully", populate(request, [doc], include_user=True)[0])


@router.delete("/admin/{booking_id}")
def delete_booking_admin(booking_id: str, _: Dict[str, Any] = Depends(require_admin)):
    res = get_db()[BOOKINGS].delete_one({"_id": to_object_id(booking_id)})
    if res.deleted_count == 0:
        raise NotFound("Booking not found")
    return ok("Booking deleted successfully", {"id": booking_id})


# -------------------- Current user --------------------
@router.post("", status_code=status.HTTP_201_CREATED)
def create_booking(payload: BookingCreate, request: Request, user: Dict[str, Any] = Depends(get_current_user)):
    if not payload.trek_id or not payload.start_date or not payload.participants:
        raise ValidationError("trekId, startDate, participants are required")

    trek = get_db()[TREKS].find_one({"_id": to_object_id(payload.trek_id)})
    if not trek:
        raise NotFound("Trek not found")

    doc = Booking(
        user_id=user["_id"],
        trek_id=trek["_id"],
        start_date=as_utc_naive(payload.start_date),
        participants=payload.participants,
        total_price=total_price(payload.participants, trek),
    )
    new_id = create_document(BOOKINGS, doc)
    logger.info("Booking %s created by user %s for trek %s", new_id, user["_id"], trek["_id"])
    return ok("Booking created successfully", populate(request, [find_booking(new_id)])[0])


@router.get("")
def list_my_bookings(request: Request, user: Dict[str, Any] = Depends(get_current_user)):
    docs = list(get_db()[BOOKINGS].find({"user_id": user["_id"]}).sort("created_at", -1))
    return ok("Bookings fetched successfully", populate(request, docs))


@router.get("/{booking_id}")
def get_my_booking(booking_id: str, request: Request, user: Dict[str, Any] = Depends(get_current_user)):
    doc = find_booking(booking_id, user["_id"])
    return ok("Booking fetched successfully", populate(request, [doc])[0])


@router.put("/{booking_id}")
def update_my_booking(
    booking_id: str,
    payload: BookingUpdate,
    request: Request,
    user: Dict[str, Any] = Depends(get_current_user),
):
    booking = find_booking(booking_id, user["_id"])
    if booking.get("status") != "pending":
        raise ValidationError("Only pending bookings can be updated")

    update: Dict[str, Any] = {}
    if payload.start_date:
        update["start_date"] = as_utc_naive(payload.start_date)
    if payload.participants:
        trek = get_db()[TREKS].find_one({"_id": booking["trek_id"]})
        if not trek:
            raise NotFound("Trek not found")
        update["participants"] = payload.participants
        update["total_price"] = total_price(payload.participants, trek)
    if not update:
        raise ValidationError("No fields to update")

    update["updated_at"] = utcnow()
    # Guarded on status: a booking cancelled in the meantime stays untouched.
    doc = get_db()[BOOKINGS].find_one_and_update(
        {"_id": booking["_id"], "status": "pending"},
        {"$set": update},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise ValidationError("Only pending bookings can be updated")
    return ok("Booking updated successfully", populate(request, [doc])[0])


@router.delete("/{booking_id}")
def cancel_my_booking(booking_id: str, request: Request, user: Dict[str, Any] = Depends(get_current_user)):
    booking = find_booking(booking_id, user["_id"])
    if booking.get("status") not in CANCELLABLE:
        raise ValidationError("Only pending or confirmed bookings can be cancelled")

    doc = get_db()[BOOKINGS].find_one_and_update(
        {"_id": booking["_id"], "status": {"$in": list(CANCELLABLE)}},
        {"$set": {"status": "cancelled", "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise ValidationError("Only pending or confirmed bookings can be cancelled")
    logger.info("Booking %s cancelled by user %s", booking_id, user["_id"])
    return ok("Booking cancelled successfully", populate(request, [doc])[0])
