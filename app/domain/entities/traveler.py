"""Entidades Traveler y TravelerDocument."""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any


class Gender(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"


class PassengerType(str, Enum):
    ADULT = "adult"
    CHILD = "child"
    INFANT = "infant"


@dataclass
class TravelerDocument:
    number: str
    expiry_date: str | None = None
    issuing_country: str | None = None
    nationality: str | None = None
    document_type: str = "passport"
    holder: bool = True
    id: int | None = None
    traveler_id: int | None = None

    def is_expired(self, today: date) -> bool:
        if not self.expiry_date:
            return False
        return date.fromisoformat(self.expiry_date) < today


@dataclass
class Traveler:
    """
    Pasajero de una reserva.

    `offer_passenger_id` es el identificador que el proveedor moderno asignó en la
    oferta; debe viajar sin cambios hasta la creación de la orden.
    """

    first_name: str
    last_name: str
    date_of_birth: str | None
    gender: str | None
    documents: list[TravelerDocument] = field(default_factory=list)
    email: str | None = None
    phone_number: str | None = None
    phone_country_code: str | None = None
    passenger_type: str = PassengerType.ADULT.value
    nationality: str | None = None
    title: str | None = None
    offer_passenger_id: str | None = None

    id: int | None = None
    booking_id: int | None = None
    flight_order_id: int | None = None

    @property
    def resolved_title(self) -> str:
        if self.title:
            return self.title
        return "Mr" if (self.gender or "").upper() == Gender.MALE.value else "Ms"

    @property
    def resolved_nationality(self) -> str | None:
        if self.nationality:
            return self.nationality
        first = self.documents[0] if self.documents else None
        return (first.nationality or first.issuing_country) if first else None

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "firstName": self.first_name,
            "lastName": self.last_name,
            "dateOfBirth": self.date_of_birth,
            "gender": self.gender,
            "email": self.email,
            "phoneNumber": self.phone_number,
            "phoneCountryCode": self.phone_country_code,
            "passengerType": self.passenger_type,
            "nationality": self.nationality,
            "title": self.title,
            "offerPassengerId": self.offer_passenger_id,
            "documents": [
                {
                    "documentType": doc.document_type,
                    "number": doc.number,
                    "expiryDate": doc.expiry_date,
                    "issuingCountry": doc.issuing_country,
                    "nationality": doc.nationality,
                    "holder": doc.holder,
                }
                for doc in self.documents
            ],
        }

    @classmethod
    def from_snapshot(cls, data: dict[str, Any]) -> "Traveler":
        return cls(
            first_name=data.get("firstName") or "",
            last_name=data.get("lastName") or "",
            date_of_birth=data.get("dateOfBirth"),
            gender=data.get("gender"),
            email=data.get("email"),
            phone_number=data.get("phoneNumber"),
            phone_country_code=data.get("phoneCountryCode"),
            passenger_type=data.get("passengerType") or PassengerType.ADULT.value,
            nationality=data.get("nationality"),
            title=data.get("title"),
            offer_passenger_id=data.get("offerPassengerId"),
            documents=[
                TravelerDocument(
                    document_type=(doc.get("documentType") or "passport").lower(),
                    number=doc.get("number") or "",
                    expiry_date=doc.get("expiryDate"),
                    issuing_country=doc.get("issuingCountry"),
                    nationality=doc.get("nationality"),
                    holder=doc.get("holder", True),
                )
                for doc in data.get("documents") or []
            ],
        )


@dataclass
class ContactInfo:
    email: str
    phone: str | None = None
    name: str | None = None

    def to_snapshot(self) -> dict[str, Any]:
        return {"email": self.email, "phone": self.phone, "name": self.name}

    @classmethod
    def from_snapshot(cls, data: dict[str, Any]) -> "ContactInfo":
        return cls(email=data["email"], phone=data.get("phone"), name=data.get("name"))
