"""
Partners and pets: the records bookings, orders and health entries hang off.
"""
import logging
from typing import Optional

from dogcatify import config
from dogcatify.db import SessionLocal
from dogcatify.models import Partner, Pet
from dogcatify.services.transitions import RecordNotFound

logger = logging.getLogger(__name__)


def _partner_dict(p: Partner) -> dict:
    return {
        "partner_id": p.partner_id,
        "business_name": p.business_name,
        "business_type": p.business_type,
        "email": p.email,
        "commission_percentage": p.commission_percentage,
    }


def _pet_dict(p: Pet) -> dict:
    return {
        "pet_id": p.pet_id,
        "owner_id": p.owner_id,
        "name": p.name,
        "species": p.species,
        "breed": p.breed,
    }


def create_partner(
    partner_id: str,
    business_name: str,
    business_type: str = "veterinary",
    email: Optional[str] = None,
    commission_percentage: Optional[float] = None,
) -> dict:
    db = SessionLocal()
    try:
        partner = Partner(
            partner_id=partner_id,
            business_name=business_name,
            business_type=business_type,
            email=email,
            commission_percentage=(
                config.DEFAULT_COMMISSION_PERCENTAGE if commission_percentage is None else commission_percentage
            ),
        )
        db.add(partner)
        db.commit()
        db.refresh(partner)
        logger.info("partner_created", extra={"partner_id": partner_id})
        return _partner_dict(partner)
    finally:
        db.close()


def get_partner(partner_id: str) -> dict:
    db = SessionLocal()
    try:
        partner = db.query(Partner).filter(Partner.partner_id == partner_id).first()
        if not partner:
            raise RecordNotFound("partner", partner_id)
        return _partner_dict(partner)
    finally:
        db.close()


def create_pet(pet_id: str, owner_id: str, name: str, species: str = "dog", breed: Optional[str] = None) -> dict:
    db = SessionLocal()
    try:
        pet = Pet(pet_id=pet_id, owner_id=owner_id, name=name, species=species, breed=breed)
        db.add(pet)
        db.commit()
        db.refresh(pet)
        return _pet_dict(pet)
    finally:
        db.close()


def get_pet(pet_id: str) -> dict:
    db = SessionLocal()
    try:
        pet = db.query(Pet).filter(Pet.pet_id == pet_id).first()
        if not pet:
            raise RecordNotFound("pet", pet_id)
        return _pet_dict(pet)
    finally:
        db.close()
